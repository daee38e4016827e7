from unittest import mock

import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import OperationalError
from sqlalchemy.sql.dml import Update

from stockflow.app.db.models.core_types import TransactionType
from stockflow.app.db.models.models_v1 import Product, StockTransaction
from stockflow.services import catalog
from stockflow.services.exceptions import (
    InsufficientStock,
    InvalidArgument,
    NotFound,
    ProductNotFound,
    StorageError,
)
from stockflow.services.inventory import (
    MAX_QUANTITY,
    OrderItem,
    compute_ledger_balance,
    deduct_stock,
    replenish_stock,
)


def _quantity(db, product_id):
    db.expire_all()
    return db.execute(select(Product.quantity).where(Product.id == product_id)).scalar_one()


def _transactions(db, product_id):
    return (
        db.execute(
            select(StockTransaction)
            .where(StockTransaction.product_id == product_id)
            .order_by(StockTransaction.id)
        )
        .scalars()
        .all()
    )


def test_replenish_then_deduct_round_trip(db_session, entreprise, make_product):
    """
    GIVEN un produit à 0
    WHEN Replenish(20) puis Deduct([{P, 5}], destination=D)
    THEN quantity == 15, une transaction IN(20), une transaction OUT(5, D)
    """
    product = make_product()
    dest = catalog.create_destination(db_session, entreprise_id=entreprise.id, name="Chantier A")

    replenish_stock(db_session, product_id=product.id, quantity=20, entreprise_id=entreprise.id)
    deduct_stock(
        db_session,
        items=[OrderItem(product_id=product.id, quantity=5)],
        entreprise_id=entreprise.id,
        destination_id=dest.id,
    )

    assert _quantity(db_session, product.id) == 15

    txs = _transactions(db_session, product.id)
    assert [(t.type, t.quantity, t.destination_id) for t in txs] == [
        (TransactionType.IN, 20, None),
        (TransactionType.OUT, 5, dest.id),
    ]
    assert all(t.entreprise_id == entreprise.id for t in txs)
    assert all(t.created_at is not None for t in txs)


def test_initial_quantity_is_recorded_as_in_transaction(db_session, make_product):
    product = make_product(quantity=12)

    txs = _transactions(db_session, product.id)
    assert len(txs) == 1
    assert txs[0].type == TransactionType.IN
    assert txs[0].quantity == 12
    assert _quantity(db_session, product.id) == 12


@pytest.mark.parametrize("quantity", [0, -3])
def test_replenish_rejects_non_positive_quantity(db_session, entreprise, make_product, quantity):
    product = make_product()

    with pytest.raises(InvalidArgument):
        replenish_stock(db_session, product_id=product.id, quantity=quantity, entreprise_id=entreprise.id)

    assert _transactions(db_session, product.id) == []
    assert _quantity(db_session, product.id) == 0


def test_replenish_unknown_product(db_session, entreprise):
    with pytest.raises(ProductNotFound) as exc_info:
        replenish_stock(db_session, product_id=999_999, quantity=1, entreprise_id=entreprise.id)

    assert exc_info.value.product_ids == [999_999]
    assert db_session.execute(select(func.count(StockTransaction.id))).scalar_one() == 0


def test_deduct_is_all_or_nothing(db_session, entreprise, make_product):
    """A=10, B=2 ; lot [{A,5},{B,3}] -> InsufficientStock sur B, A reste à 10."""
    a = make_product(name="A", quantity=10)
    b = make_product(name="B", quantity=2)

    with pytest.raises(InsufficientStock) as exc_info:
        deduct_stock(
            db_session,
            items=[OrderItem(a.id, 5), OrderItem(b.id, 3)],
            entreprise_id=entreprise.id,
        )

    [shortfall] = exc_info.value.shortfalls
    assert shortfall.product_id == b.id
    assert shortfall.product_name == "B"
    assert shortfall.requested == 3
    assert shortfall.available == 2

    assert _quantity(db_session, a.id) == 10
    assert _quantity(db_session, b.id) == 2
    out = db_session.execute(
        select(func.count(StockTransaction.id)).where(StockTransaction.type == TransactionType.OUT)
    ).scalar_one()
    assert out == 0


def test_deduct_reports_every_failing_product(db_session, entreprise, make_product):
    a = make_product(name="A", quantity=1)
    b = make_product(name="B", quantity=1)

    with pytest.raises(InsufficientStock) as exc_info:
        deduct_stock(db_session, items=[OrderItem(a.id, 2), OrderItem(b.id, 4)], entreprise_id=entreprise.id)

    assert {s.product_id for s in exc_info.value.shortfalls} == {a.id, b.id}
    assert "requested=4" in exc_info.value.message


def test_deduct_sums_duplicate_lines(db_session, entreprise, make_product):
    a = make_product(quantity=10)

    with pytest.raises(InsufficientStock) as exc_info:
        deduct_stock(db_session, items=[OrderItem(a.id, 6), OrderItem(a.id, 6)], entreprise_id=entreprise.id)
    assert exc_info.value.shortfalls[0].requested == 12
    assert _quantity(db_session, a.id) == 10

    txs = deduct_stock(db_session, items=[OrderItem(a.id, 4), OrderItem(a.id, 6)], entreprise_id=entreprise.id)
    assert [t.quantity for t in txs] == [4, 6]
    assert _quantity(db_session, a.id) == 0


def test_deduct_keeps_input_order(db_session, entreprise, make_product):
    a = make_product(name="A", quantity=5)
    b = make_product(name="B", quantity=5)

    txs = deduct_stock(db_session, items=[OrderItem(b.id, 1), OrderItem(a.id, 2)], entreprise_id=entreprise.id)

    assert [t.product_id for t in txs] == [b.id, a.id]
    assert txs[0].id < txs[1].id


def test_deduct_unknown_product_rejects_whole_batch(db_session, entreprise, make_product):
    a = make_product(quantity=5)

    with pytest.raises(ProductNotFound) as exc_info:
        deduct_stock(db_session, items=[OrderItem(a.id, 1), OrderItem(424242, 1)], entreprise_id=entreprise.id)

    assert exc_info.value.product_ids == [424242]
    assert _quantity(db_session, a.id) == 5


@pytest.mark.parametrize(
    "items",
    [
        [],
        [OrderItem(1, 0)],
        [OrderItem(1, -2)],
    ],
)
def test_deduct_rejects_invalid_items(db_session, entreprise, items):
    with pytest.raises(InvalidArgument):
        deduct_stock(db_session, items=items, entreprise_id=entreprise.id)


def test_deduct_unknown_destination(db_session, entreprise, other_entreprise, make_product):
    a = make_product(quantity=5)
    foreign_dest = catalog.create_destination(db_session, entreprise_id=other_entreprise.id, name="Ailleurs")

    with pytest.raises(NotFound):
        deduct_stock(
            db_session,
            items=[OrderItem(a.id, 1)],
            entreprise_id=entreprise.id,
            destination_id=foreign_dest.id,
        )
    assert _quantity(db_session, a.id) == 5


def test_tenant_isolation(db_session, entreprise, other_entreprise, make_product):
    """Un produit d'un autre tenant est introuvable : jamais modifié."""
    foreign_category = catalog.create_category(db_session, entreprise_id=other_entreprise.id, name="Autre")
    foreign = make_product(
        name="Secret",
        quantity=7,
        entreprise_id=other_entreprise.id,
        category_id=foreign_category.id,
    )

    with pytest.raises(NotFound):
        replenish_stock(db_session, product_id=foreign.id, quantity=3, entreprise_id=entreprise.id)
    with pytest.raises(NotFound):
        deduct_stock(db_session, items=[OrderItem(foreign.id, 1)], entreprise_id=entreprise.id)

    assert _quantity(db_session, foreign.id) == 7
    assert len(_transactions(db_session, foreign.id)) == 1


def test_quantity_matches_ledger_after_sequence(db_session, entreprise, make_product):
    product = make_product(quantity=3)
    operations = [("in", 10), ("out", 4), ("out", 9), ("in", 2), ("out", 2), ("out", 50), ("in", 1)]

    for kind, qty in operations:
        try:
            if kind == "in":
                replenish_stock(db_session, product_id=product.id, quantity=qty, entreprise_id=entreprise.id)
            else:
                deduct_stock(db_session, items=[OrderItem(product.id, qty)], entreprise_id=entreprise.id)
        except InsufficientStock:
            pass

        balance = compute_ledger_balance(db_session, product_id=product.id, entreprise_id=entreprise.id)
        assert balance.consistent
        assert balance.quantity >= 0

    balance = compute_ledger_balance(db_session, product_id=product.id, entreprise_id=entreprise.id)
    # 3 + 10 - 4 - 9 + 2 - 2 + 1 (le retrait de 50 est refusé)
    assert balance.quantity == 1
    assert balance.total_in == 16
    assert balance.total_out == 15


def test_ledger_balance_unknown_product(db_session, entreprise):
    with pytest.raises(ProductNotFound):
        compute_ledger_balance(db_session, product_id=1234, entreprise_id=entreprise.id)


@pytest.mark.parametrize("quantity", [MAX_QUANTITY + 1, 10**20])
def test_quantity_above_column_range_is_rejected(db_session, entreprise, make_product, quantity):
    product = make_product(quantity=1)

    with pytest.raises(InvalidArgument):
        replenish_stock(db_session, product_id=product.id, quantity=quantity, entreprise_id=entreprise.id)
    with pytest.raises(InvalidArgument):
        deduct_stock(db_session, items=[OrderItem(product.id, quantity)], entreprise_id=entreprise.id)

    assert _quantity(db_session, product.id) == 1
    assert len(_transactions(db_session, product.id)) == 1


def test_replenish_cannot_overflow_stock(db_session, entreprise, make_product):
    product = make_product(quantity=10)

    with pytest.raises(InvalidArgument):
        replenish_stock(db_session, product_id=product.id, quantity=MAX_QUANTITY - 5, entreprise_id=entreprise.id)

    assert _quantity(db_session, product.id) == 10
    assert len(_transactions(db_session, product.id)) == 1


def test_storage_failure_mid_batch_rolls_back_every_item(db_session, entreprise, make_product):
    """
    GIVEN A=5, B=5
    WHEN  le décrément de B échoue en base (2e UPDATE du lot)
    THEN  StorageError, A reste à 5, aucune transaction OUT
    """
    a = make_product(name="A", quantity=5)
    b = make_product(name="B", quantity=5)

    real_execute = db_session.execute
    updates = []

    def failing_on_second_update(statement, *args, **kwargs):
        if isinstance(statement, Update):
            updates.append(statement)
            if len(updates) == 2:
                raise OperationalError("UPDATE products", {}, Exception("disk I/O error"))
        return real_execute(statement, *args, **kwargs)

    with mock.patch.object(db_session, "execute", side_effect=failing_on_second_update):
        with pytest.raises(StorageError):
            deduct_stock(
                db_session,
                items=[OrderItem(a.id, 2), OrderItem(b.id, 3)],
                entreprise_id=entreprise.id,
            )

    assert len(updates) == 2
    assert _quantity(db_session, a.id) == 5
    assert _quantity(db_session, b.id) == 5
    out = db_session.execute(
        select(func.count(StockTransaction.id)).where(StockTransaction.type == TransactionType.OUT)
    ).scalar_one()
    assert out == 0
