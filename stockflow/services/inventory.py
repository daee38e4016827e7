"""
Stock Ledger.

Toute la logique de stock est centralisée ici : c'est le SEUL code qui écrit
products.quantity, et chaque variation produit une ligne dans transactions.

Invariant :
    products.quantity == SUM(IN) - SUM(OUT)   (par produit)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from sqlalchemy import select, update, func, case
from sqlalchemy.orm import Session

from stockflow.app.db.models.models_v1 import Product, Destination, StockTransaction
from stockflow.app.db.models.core_types import TransactionType
from stockflow.services.exceptions import (
    InsufficientStock,
    InvalidArgument,
    NotFound,
    ProductNotFound,
    Shortfall,
)
from stockflow.services.unit_of_work import unit_of_work

logger = logging.getLogger(__name__)

# products.quantity et transactions.quantity sont des INTEGER 32 bits
MAX_QUANTITY = 2**31 - 1


@dataclass(frozen=True)
class OrderItem:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class LedgerBalance:
    product_id: int
    quantity: int
    total_in: int
    total_out: int

    @property
    def ledger_quantity(self) -> int:
        return self.total_in - self.total_out

    @property
    def consistent(self) -> bool:
        return self.quantity == self.ledger_quantity


def _lock_products(db: Session, entreprise_id: int, product_ids: Iterable[int]) -> dict[int, Product]:
    """
    SELECT ... FOR UPDATE sur les produits du tenant.
    Ordre croissant des ids : deux lots concurrents verrouillent dans le même ordre.
    """
    ids = sorted({int(pid) for pid in product_ids})
    if not ids:
        return {}

    rows = (
        db.execute(
            select(Product)
            .where(Product.entreprise_id == entreprise_id)
            .where(Product.id.in_(ids))
            .order_by(Product.id.asc())
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalars()
        .all()
    )
    return {int(p.id): p for p in rows}


def _check_quantity(quantity: int) -> None:
    if quantity is None or int(quantity) <= 0:
        raise InvalidArgument(f"quantity must be > 0 (got {quantity})")
    if int(quantity) > MAX_QUANTITY:
        raise InvalidArgument(f"quantity must be <= {MAX_QUANTITY} (got {quantity})")


def apply_replenishment(db: Session, *, product_id: int, quantity: int, entreprise_id: int) -> StockTransaction:
    """
    Entrée de stock dans la transaction courante, sans commit.
    L'appelant est responsable de l'unit of work.
    """
    _check_quantity(quantity)

    locked = _lock_products(db, entreprise_id, [product_id])
    if product_id not in locked:
        raise ProductNotFound([product_id])
    if locked[product_id].quantity + quantity > MAX_QUANTITY:
        raise InvalidArgument(
            f"stock of product {product_id} would exceed {MAX_QUANTITY} "
            f"(current={locked[product_id].quantity}, added={quantity})"
        )

    db.execute(
        update(Product)
        .where(Product.id == product_id)
        .where(Product.entreprise_id == entreprise_id)
        .values(quantity=Product.quantity + quantity)
        .execution_options(synchronize_session=False)
    )

    tx = StockTransaction(
        type=TransactionType.IN,
        quantity=quantity,
        product_id=product_id,
        entreprise_id=entreprise_id,
    )
    db.add(tx)
    return tx


def replenish_stock(
    db: Session,
    *,
    product_id: int,
    quantity: int,
    entreprise_id: int,
) -> StockTransaction:
    """Entrée de stock : quantity += q et une transaction IN, ensemble ou rien."""
    _check_quantity(quantity)

    with unit_of_work(db, "replenish", entreprise_id=entreprise_id, product_id=product_id, quantity=quantity):
        tx = apply_replenishment(db, product_id=product_id, quantity=quantity, entreprise_id=entreprise_id)

    logger.info("Réapprovisionnement: entreprise=%s product=%s +%s", entreprise_id, product_id, quantity)
    return tx


def deduct_stock(
    db: Session,
    *,
    items: Sequence[OrderItem],
    entreprise_id: int,
    destination_id: int | None = None,
) -> list[StockTransaction]:
    """
    Sortie de stock pour un lot d'articles, tout ou rien.

    1. verrouillage des produits (FOR UPDATE)
    2. validation : existence + stock suffisant (quantités cumulées par produit)
    3. décrément conditionnel + transaction OUT, dans l'ordre du lot

    Aucune écriture si un seul article échoue.
    """
    if not items:
        raise InvalidArgument("order items must not be empty")
    for item in items:
        _check_quantity(item.quantity)

    # cumul par produit, ordre d'apparition conservé
    requested: dict[int, int] = {}
    for item in items:
        requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity

    with unit_of_work(
        db,
        "deduct",
        entreprise_id=entreprise_id,
        product_ids=list(requested),
        destination_id=destination_id,
    ):
        if destination_id is not None:
            dest = db.execute(
                select(Destination.id)
                .where(Destination.id == destination_id)
                .where(Destination.entreprise_id == entreprise_id)
            ).scalar_one_or_none()
            if dest is None:
                raise NotFound(f"Destination not found: {destination_id}")

        locked = _lock_products(db, entreprise_id, requested)

        missing = [pid for pid in requested if pid not in locked]
        if missing:
            raise ProductNotFound(missing)

        shortfalls = [
            Shortfall(
                product_id=pid,
                product_name=locked[pid].name,
                requested=qty,
                available=locked[pid].quantity,
            )
            for pid, qty in requested.items()
            if locked[pid].quantity < qty
        ]
        if shortfalls:
            raise InsufficientStock(shortfalls)

        transactions = []
        for item in items:
            # compare-and-swap : ne décrémente que si le stock couvre encore la demande
            result = db.execute(
                update(Product)
                .where(Product.id == item.product_id)
                .where(Product.entreprise_id == entreprise_id)
                .where(Product.quantity >= item.quantity)
                .values(quantity=Product.quantity - item.quantity)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                available = db.execute(
                    select(Product.quantity).where(Product.id == item.product_id)
                ).scalar_one()
                raise InsufficientStock(
                    [
                        Shortfall(
                            product_id=item.product_id,
                            product_name=locked[item.product_id].name,
                            requested=item.quantity,
                            available=available,
                        )
                    ]
                )

            tx = StockTransaction(
                type=TransactionType.OUT,
                quantity=item.quantity,
                product_id=item.product_id,
                entreprise_id=entreprise_id,
                destination_id=destination_id,
            )
            db.add(tx)
            transactions.append(tx)

        db.flush()

    logger.info(
        "Sortie de stock: entreprise=%s destination=%s lignes=%s",
        entreprise_id,
        destination_id,
        [(i.product_id, i.quantity) for i in items],
    )
    return transactions


def compute_ledger_balance(db: Session, *, product_id: int, entreprise_id: int) -> LedgerBalance:
    """
    Recalcule SUM(IN) - SUM(OUT) depuis le journal et le compare au stock.
    Lecture seule, déterministe.
    """
    product = db.execute(
        select(Product)
        .where(Product.id == product_id)
        .where(Product.entreprise_id == entreprise_id)
    ).scalar_one_or_none()
    if product is None:
        raise ProductNotFound([product_id])

    total_in, total_out = db.execute(
        select(
            func.coalesce(
                func.sum(case((StockTransaction.type == TransactionType.IN, StockTransaction.quantity), else_=0)),
                0,
            ),
            func.coalesce(
                func.sum(case((StockTransaction.type == TransactionType.OUT, StockTransaction.quantity), else_=0)),
                0,
            ),
        )
        .where(StockTransaction.product_id == product_id)
        .where(StockTransaction.entreprise_id == entreprise_id)
    ).one()

    return LedgerBalance(
        product_id=int(product.id),
        quantity=int(product.quantity),
        total_in=int(total_in),
        total_out=int(total_out),
    )
