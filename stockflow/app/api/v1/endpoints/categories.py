from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from stockflow.app.api.deps import get_db, get_entreprise
from stockflow.app.db.models.models_v1 import Entreprise
from stockflow.app.schemas.catalog import CategoryRead
from stockflow.services import catalog

router = APIRouter(prefix="/categories")


class CategoryWrite(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None


@router.get("", response_model=list[CategoryRead])
def list_categories(ent: Entreprise = Depends(get_entreprise), db: Session = Depends(get_db)):
    return catalog.list_categories(db, entreprise_id=ent.id)


@router.get("/tree")
def list_category_tree(ent: Entreprise = Depends(get_entreprise), db: Session = Depends(get_db)):
    """Catégories + sous-catégories avec le nombre de produits."""
    return catalog.list_categories_with_subcategories(db, entreprise_id=ent.id)


@router.post("", response_model=CategoryRead, status_code=201)
def create_category(payload: CategoryWrite, ent: Entreprise = Depends(get_entreprise), db: Session = Depends(get_db)):
    return catalog.create_category(db, entreprise_id=ent.id, name=payload.name, description=payload.description)


@router.put("/{category_id}", response_model=CategoryRead)
def update_category(
    category_id: int,
    payload: CategoryWrite,
    ent: Entreprise = Depends(get_entreprise),
    db: Session = Depends(get_db),
):
    return catalog.update_category(
        db,
        entreprise_id=ent.id,
        category_id=category_id,
        name=payload.name,
        description=payload.description,
    )


@router.delete("/{category_id}")
def delete_category(category_id: int, ent: Entreprise = Depends(get_entreprise), db: Session = Depends(get_db)):
    catalog.delete_category(db, entreprise_id=ent.id, category_id=category_id)
    return {"success": True, "id": category_id}
