from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stockflow.app.api.deps import get_db, get_entreprise
from stockflow.app.db.models.models_v1 import Entreprise
from stockflow.app.schemas.stock import LedgerBalanceRead
from stockflow.services.inventory import compute_ledger_balance

router = APIRouter(prefix="/stock")


@router.get("/{product_id}/balance", response_model=LedgerBalanceRead)
def get_ledger_balance(product_id: int, ent: Entreprise = Depends(get_entreprise), db: Session = Depends(get_db)):
    """
    Audit (READ ONLY)
    - quantity : stock porté par le produit
    - ledger_quantity : SUM(IN) - SUM(OUT) recalculé depuis le journal
    """
    b = compute_ledger_balance(db, product_id=product_id, entreprise_id=ent.id)
    return {
        "product_id": b.product_id,
        "quantity": b.quantity,
        "total_in": b.total_in,
        "total_out": b.total_out,
        "ledger_quantity": b.ledger_quantity,
        "consistent": b.consistent,
    }
