import threading

from sqlalchemy import select, func

from stockflow.app.db.models.core_types import TransactionType
from stockflow.app.db.models.models_v1 import Product, StockTransaction
from stockflow.services.exceptions import InsufficientStock
from stockflow.services.inventory import OrderItem, deduct_stock, replenish_stock

WORKERS = 8


def _run_concurrently(database, target_count, fn):
    """Lance `target_count` appels de fn(session) en parallèle, une Session par thread."""
    barrier = threading.Barrier(target_count)
    outcomes = []
    lock = threading.Lock()

    def worker():
        session = database.session()
        try:
            barrier.wait()
            try:
                fn(session)
                result = "ok"
            except InsufficientStock:
                result = "insufficient"
            with lock:
                outcomes.append(result)
        finally:
            session.close()

    threads = [threading.Thread(target=worker) for _ in range(target_count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return outcomes


def test_concurrent_deductions_never_overdraw(database, db_session, entreprise, make_product):
    """
    GIVEN stock = 10
    WHEN 8 sorties concurrentes de 2
    THEN 5 réussissent, 3 échouent en InsufficientStock, stock final = 0
    """
    product = make_product(quantity=10)
    product_id, entreprise_id = product.id, entreprise.id
    # libère la transaction de la session de test avant de lancer les threads
    db_session.rollback()

    outcomes = _run_concurrently(
        database,
        WORKERS,
        lambda s: deduct_stock(s, items=[OrderItem(product_id, 2)], entreprise_id=entreprise_id),
    )

    assert outcomes.count("ok") == 5
    assert outcomes.count("insufficient") == WORKERS - 5

    db_session.expire_all()
    assert db_session.execute(select(Product.quantity).where(Product.id == product_id)).scalar_one() == 0
    out_total = db_session.execute(
        select(func.coalesce(func.sum(StockTransaction.quantity), 0))
        .where(StockTransaction.product_id == product_id)
        .where(StockTransaction.type == TransactionType.OUT)
    ).scalar_one()
    assert out_total == 10


def test_concurrent_replenish_and_deduct_keep_ledger_balanced(database, db_session, entreprise, make_product):
    product = make_product(quantity=4)
    product_id, entreprise_id = product.id, entreprise.id
    db_session.rollback()

    counter = iter(range(WORKERS))
    counter_lock = threading.Lock()

    def mixed(session):
        with counter_lock:
            n = next(counter)
        if n % 2 == 0:
            replenish_stock(session, product_id=product_id, quantity=3, entreprise_id=entreprise_id)
        else:
            deduct_stock(session, items=[OrderItem(product_id, 3)], entreprise_id=entreprise_id)

    outcomes = _run_concurrently(database, WORKERS, mixed)
    assert len(outcomes) == WORKERS

    db_session.expire_all()
    quantity = db_session.execute(select(Product.quantity).where(Product.id == product_id)).scalar_one()
    ins, outs = (
        db_session.execute(
            select(func.coalesce(func.sum(StockTransaction.quantity), 0))
            .where(StockTransaction.product_id == product_id)
            .where(StockTransaction.type == kind)
        ).scalar_one()
        for kind in (TransactionType.IN, TransactionType.OUT)
    )
    assert quantity >= 0
    assert quantity == ins - outs
