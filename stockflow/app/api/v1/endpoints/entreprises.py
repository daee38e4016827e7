from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from stockflow.app.api.deps import get_db
from stockflow.app.schemas.catalog import EntrepriseRead
from stockflow.services.tenants import ensure_entreprise, require_entreprise

router = APIRouter(prefix="/entreprises")


class EntrepriseUpsert(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    name: str | None = Field(default=None, max_length=200)


@router.post("", response_model=EntrepriseRead)
def upsert_entreprise(payload: EntrepriseUpsert, db: Session = Depends(get_db)):
    """Premier contact : crée l'entreprise si l'email est inconnu, sinon la renvoie."""
    return ensure_entreprise(db, email=payload.email, name=payload.name)


@router.get("", response_model=EntrepriseRead)
def read_entreprise(email: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    return require_entreprise(db, email)
