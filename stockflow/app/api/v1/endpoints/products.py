from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from stockflow.app.api.deps import get_db, get_entreprise, get_image_store, get_settings_dep
from stockflow.app.core.config import Settings
from stockflow.app.db.models.models_v1 import Entreprise, Product
from stockflow.app.schemas.catalog import ProductPage, ProductRead
from stockflow.services import catalog
from stockflow.services.exceptions import StockflowError
from stockflow.services.images import ImageStore
from stockflow.services.inventory import MAX_QUANTITY
from stockflow.services.catalog import UNCATEGORIZED, UNSPECIFIED

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products")


class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str = ""
    category_id: int
    sub_category_id: int | None = None
    image_url: str | None = Field(default=None, max_length=500)
    unit: str = Field(default="", max_length=32)
    reference: str | None = Field(default=None, max_length=64)
    initial_quantity: int = Field(default=0, ge=0, le=MAX_QUANTITY)


class ProductUpdate(BaseModel):
    # pas de quantity : le stock ne bouge que via /stock-movements
    name: str = Field(min_length=1, max_length=255)
    description: str = ""
    sub_category_id: int | None = None
    image_url: str | None = Field(default=None, max_length=500)
    unit: str | None = Field(default=None, max_length=32)
    reference: str | None = Field(default=None, max_length=64)


def product_out(p: Product) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "description": p.description,
        "image_url": p.image_url,
        "unit": p.unit,
        "reference": p.reference,
        "quantity": p.quantity,
        "category_id": p.category_id,
        "sub_category_id": p.sub_category_id,
        "category_name": p.category.name if p.category else UNCATEGORIZED,
        "sub_category_name": p.sub_category.name if p.sub_category else UNSPECIFIED,
        "created_at": p.created_at,
    }


def _discard_image(images: ImageStore, image_url: str | None) -> None:
    """Nettoyage best effort : une image orpheline ne doit pas faire échouer l'opération."""
    if not images.owns(image_url):
        return
    try:
        images.delete(image_url)
    except StockflowError as exc:
        logger.warning("Image non supprimée %s: %s", image_url, exc.message)


@router.get("", response_model=ProductPage)
def list_products(
    search: str | None = None,
    category_id: int | None = None,
    sub_category_id: int | None = None,
    reference: str | None = None,
    limit: int | None = Query(default=None, gt=0),
    offset: int = Query(default=0, ge=0),
    ent: Entreprise = Depends(get_entreprise),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
):
    limit = min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
    page = catalog.list_products(
        db,
        entreprise_id=ent.id,
        search=search,
        category_id=category_id,
        sub_category_id=sub_category_id,
        reference=reference,
        limit=limit,
        offset=offset,
    )
    return {
        "items": [product_out(p) for p in page.items],
        "total_count": page.total_count,
        "total_pages": page.total_pages,
        "limit": limit,
        "offset": offset,
    }


@router.get("/{product_id}", response_model=ProductRead)
def get_product(product_id: int, ent: Entreprise = Depends(get_entreprise), db: Session = Depends(get_db)):
    return product_out(catalog.get_product(db, entreprise_id=ent.id, product_id=product_id))


@router.post("", response_model=ProductRead, status_code=201)
def create_product(payload: ProductCreate, ent: Entreprise = Depends(get_entreprise), db: Session = Depends(get_db)):
    p = catalog.create_product(
        db,
        entreprise_id=ent.id,
        name=payload.name,
        description=payload.description,
        category_id=payload.category_id,
        sub_category_id=payload.sub_category_id,
        image_url=payload.image_url,
        unit=payload.unit,
        reference=payload.reference,
        initial_quantity=payload.initial_quantity,
    )
    return product_out(p)


@router.put("/{product_id}", response_model=ProductRead)
def update_product(
    product_id: int,
    payload: ProductUpdate,
    ent: Entreprise = Depends(get_entreprise),
    db: Session = Depends(get_db),
    images: ImageStore = Depends(get_image_store),
):
    previous_image = catalog.get_product(db, entreprise_id=ent.id, product_id=product_id).image_url

    p = catalog.update_product(
        db,
        entreprise_id=ent.id,
        product_id=product_id,
        name=payload.name,
        description=payload.description,
        sub_category_id=payload.sub_category_id,
        image_url=payload.image_url,
        unit=payload.unit,
        reference=payload.reference,
    )

    if payload.image_url is not None and payload.image_url != previous_image:
        _discard_image(images, previous_image)
    return product_out(p)


@router.delete("/{product_id}")
def delete_product(
    product_id: int,
    ent: Entreprise = Depends(get_entreprise),
    db: Session = Depends(get_db),
    images: ImageStore = Depends(get_image_store),
):
    image_url = catalog.delete_product(db, entreprise_id=ent.id, product_id=product_id)
    _discard_image(images, image_url)
    return {"success": True, "id": product_id}
