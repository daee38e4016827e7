import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from stockflow.app.core.config import Settings
from stockflow.app.db.session import Database
from stockflow.app.main import create_app
from stockflow.services import catalog
from stockflow.services.tenants import ensure_entreprise


def _database_url(tmp_path) -> str:
    # TEST_DATABASE_URL=postgresql+psycopg://... pour tester les verrous Postgres
    return os.getenv("TEST_DATABASE_URL") or f"sqlite:///{tmp_path / 'stockflow_test.db'}"


@pytest.fixture(scope="function")
def database(tmp_path) -> Database:
    """
    Base isolée par test : schéma créé au début, supprimé à la fin.

    Les services commitent eux-mêmes (unit of work), on ne peut donc pas
    s'appuyer sur un rollback englobant : on repart d'un schéma vide.
    """
    db = Database(_database_url(tmp_path))
    db.drop_all()
    db.create_all()
    try:
        yield db
    finally:
        db.drop_all()
        db.dispose()


@pytest.fixture(scope="function")
def db_session(database) -> Session:
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def entreprise(db_session):
    return ensure_entreprise(db_session, email="acme@example.com", name="ACME")


@pytest.fixture
def other_entreprise(db_session):
    return ensure_entreprise(db_session, email="globex@example.com", name="Globex")


@pytest.fixture
def category(db_session, entreprise):
    return catalog.create_category(db_session, entreprise_id=entreprise.id, name="Outillage")


@pytest.fixture
def make_product(db_session, entreprise, category):
    """Fabrique de produits ; le stock initial passe par le ledger."""

    def _make(name="Marteau", quantity=0, entreprise_id=None, category_id=None, **kwargs):
        return catalog.create_product(
            db_session,
            entreprise_id=entreprise_id or entreprise.id,
            category_id=category_id or category.id,
            name=name,
            initial_quantity=quantity,
            **kwargs,
        )

    return _make


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=_database_url(tmp_path),
        DB_CREATE_ALL=True,
        UPLOAD_DIR=str(tmp_path / "uploads"),
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as c:
        yield c
        app.state.db.drop_all()
