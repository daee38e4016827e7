from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockflow.app.api.deps import get_db, get_entreprise
from stockflow.app.db.models.core_types import TransactionType
from stockflow.app.db.models.models_v1 import Entreprise, StockTransaction
from stockflow.app.schemas.stock import TransactionRead
from stockflow.services.history import list_transactions

router = APIRouter(prefix="/transactions")


def transaction_out(tx: StockTransaction) -> dict:
    return {
        "id": tx.id,
        "type": tx.type,
        "quantity": tx.quantity,
        "product_id": tx.product_id,
        "entreprise_id": tx.entreprise_id,
        "destination_id": tx.destination_id,
        "created_at": tx.created_at,
        "product_name": tx.product.name,
        "unit": tx.product.unit,
        "image_url": tx.product.image_url,
        "category_name": tx.product.category.name,
        "destination": (
            {"id": tx.destination.id, "name": tx.destination.name, "description": tx.destination.description}
            if tx.destination
            else None
        ),
    }


@router.get("", response_model=list[TransactionRead])
def get_transactions(
    product_id: int | None = None,
    type: TransactionType | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    limit: int | None = Query(default=None, gt=0, le=1000),
    ent: Entreprise = Depends(get_entreprise),
    db: Session = Depends(get_db),
):
    rows = list_transactions(
        db,
        entreprise_id=ent.id,
        product_id=product_id,
        type=type,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
    )
    return [transaction_out(tx) for tx in rows]
