from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from stockflow.app.api.deps import get_db, get_entreprise
from stockflow.app.db.models.models_v1 import Destination, Entreprise
from stockflow.app.schemas.catalog import DestinationRead
from stockflow.services import catalog
from stockflow.services.tenants import require_entreprise

router = APIRouter(prefix="/destinations")


class DestinationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    email: str = Field(min_length=1, max_length=255)


def destination_out(d: Destination, transaction_count: int) -> dict:
    return {
        "id": d.id,
        "name": d.name,
        "description": d.description,
        "entreprise_id": d.entreprise_id,
        "transaction_count": transaction_count,
    }


@router.get("", response_model=list[DestinationRead])
def list_destinations(ent: Entreprise = Depends(get_entreprise), db: Session = Depends(get_db)):
    return [destination_out(d, n) for d, n in catalog.list_destinations(db, entreprise_id=ent.id)]


@router.post("", response_model=DestinationRead, status_code=201)
def create_destination(payload: DestinationCreate, db: Session = Depends(get_db)):
    # email dans le body (formulaire de sortie de stock)
    ent = require_entreprise(db, payload.email)
    d = catalog.create_destination(
        db,
        entreprise_id=ent.id,
        name=payload.name,
        description=payload.description,
    )
    return destination_out(d, 0)


@router.delete("/{destination_id}")
def delete_destination(destination_id: int, ent: Entreprise = Depends(get_entreprise), db: Session = Depends(get_db)):
    catalog.delete_destination(db, entreprise_id=ent.id, destination_id=destination_id)
    return {"success": True, "id": destination_id}


@router.get("/{destination_id}", response_model=DestinationRead)
def get_destination(destination_id: int, ent: Entreprise = Depends(get_entreprise), db: Session = Depends(get_db)):
    d = catalog.get_destination(db, entreprise_id=ent.id, destination_id=destination_id)
    return destination_out(d, catalog.count_destination_transactions(db, destination_id=d.id))
