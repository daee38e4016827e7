from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from stockflow.app.api.deps import get_db, get_entreprise
from stockflow.app.db.models.models_v1 import Entreprise
from stockflow.app.schemas.catalog import SubCategoryRead
from stockflow.services import catalog

router = APIRouter(prefix="/sub-categories")


class SubCategoryCreate(BaseModel):
    category_id: int
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None


class SubCategoryUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None


@router.get("")
def list_sub_categories(
    category_id: int | None = None,
    ent: Entreprise = Depends(get_entreprise),
    db: Session = Depends(get_db),
):
    return catalog.list_subcategories(db, entreprise_id=ent.id, category_id=category_id)


@router.post("", response_model=SubCategoryRead, status_code=201)
def create_sub_category(
    payload: SubCategoryCreate,
    ent: Entreprise = Depends(get_entreprise),
    db: Session = Depends(get_db),
):
    return catalog.create_subcategory(
        db,
        entreprise_id=ent.id,
        category_id=payload.category_id,
        name=payload.name,
        description=payload.description,
    )


@router.put("/{sub_category_id}", response_model=SubCategoryRead)
def update_sub_category(
    sub_category_id: int,
    payload: SubCategoryUpdate,
    ent: Entreprise = Depends(get_entreprise),
    db: Session = Depends(get_db),
):
    return catalog.update_subcategory(
        db,
        entreprise_id=ent.id,
        sub_category_id=sub_category_id,
        name=payload.name,
        description=payload.description,
    )


@router.delete("/{sub_category_id}")
def delete_sub_category(
    sub_category_id: int,
    ent: Entreprise = Depends(get_entreprise),
    db: Session = Depends(get_db),
):
    catalog.delete_subcategory(db, entreprise_id=ent.id, sub_category_id=sub_category_id)
    return {"success": True, "id": sub_category_id}
