from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from stockflow.app.db.models.models_v1 import Product, StockTransaction
from stockflow.app.db.models.core_types import TransactionType


def list_transactions(
    db: Session,
    *,
    entreprise_id: int,
    product_id: int | None = None,
    type: TransactionType | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    limit: int | None = None,
) -> list[StockTransaction]:
    """Journal du tenant, plus récent d'abord (produit, catégorie et destination préchargés)."""
    stmt = (
        select(StockTransaction)
        .where(StockTransaction.entreprise_id == entreprise_id)
        .options(
            joinedload(StockTransaction.product).joinedload(Product.category),
            joinedload(StockTransaction.destination),
        )
        .order_by(StockTransaction.created_at.desc(), StockTransaction.id.desc())
    )

    if product_id is not None:
        stmt = stmt.where(StockTransaction.product_id == product_id)
    if type is not None:
        stmt = stmt.where(StockTransaction.type == type)
    if date_from is not None:
        stmt = stmt.where(StockTransaction.created_at >= date_from)
    if date_to is not None:
        stmt = stmt.where(StockTransaction.created_at <= date_to)
    if limit is not None:
        stmt = stmt.limit(limit)

    return list(db.execute(stmt).scalars().all())
