from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from stockflow.app.api.deps import get_db, get_entreprise
from stockflow.app.db.models.models_v1 import Entreprise
from stockflow.services.inventory import OrderItem, deduct_stock, replenish_stock

router = APIRouter(prefix="/stock-movements")


# ---------- Schemas ----------
class ReplenishCreate(BaseModel):
    product_id: int
    # bornes (> 0, <= MAX_QUANTITY) vérifiées par le ledger (InvalidArgument, 400)
    quantity: int


class OrderItemIn(BaseModel):
    product_id: int
    quantity: int


class DeductCreate(BaseModel):
    items: list[OrderItemIn] = Field(default_factory=list)
    destination_id: int | None = None


# ---------- Endpoints ----------
@router.post("/replenish", status_code=201)
def replenish(payload: ReplenishCreate, ent: Entreprise = Depends(get_entreprise), db: Session = Depends(get_db)):
    tx = replenish_stock(
        db,
        product_id=payload.product_id,
        quantity=payload.quantity,
        entreprise_id=ent.id,
    )
    return {"success": True, "transaction_id": int(tx.id)}


@router.post("/deduct", status_code=201)
def deduct(payload: DeductCreate, ent: Entreprise = Depends(get_entreprise), db: Session = Depends(get_db)):
    """Sortie tout-ou-rien : en cas d'échec aucun article n'est décrémenté."""
    transactions = deduct_stock(
        db,
        items=[OrderItem(product_id=i.product_id, quantity=i.quantity) for i in payload.items],
        entreprise_id=ent.id,
        destination_id=payload.destination_id,
    )
    return {"success": True, "transaction_ids": [int(tx.id) for tx in transactions]}
