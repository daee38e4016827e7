from __future__ import annotations

from sqlalchemy import select

from stockflow.app.core.config import get_settings
from stockflow.app.core.logging_setup import configure_logging
from stockflow.app.db.session import Database
from stockflow.app.db.models.models_v1 import Category, Destination, Product
from stockflow.services import catalog
from stockflow.services.tenants import ensure_entreprise

DEMO_EMAIL = "demo@stockflow.local"


def run_seed(db_client: Database) -> None:
    db = db_client.session()
    try:
        # 1) Entreprise de démo
        ent = ensure_entreprise(db, email=DEMO_EMAIL, name="Demo SARL")

        # 2) Catégorie + destination
        cat = db.scalar(select(Category).where(Category.entreprise_id == ent.id, Category.name == "Fournitures"))
        if not cat:
            cat = catalog.create_category(db, entreprise_id=ent.id, name="Fournitures", description="Consommables")

        dest = db.scalar(select(Destination).where(Destination.entreprise_id == ent.id, Destination.name == "Atelier"))
        if not dest:
            catalog.create_destination(db, entreprise_id=ent.id, name="Atelier")

        # 3) Produit avec stock initial (transaction IN via le ledger)
        product = db.scalar(select(Product).where(Product.entreprise_id == ent.id, Product.reference == "DEMO-001"))
        if not product:
            catalog.create_product(
                db,
                entreprise_id=ent.id,
                name="Ramette papier A4",
                category_id=cat.id,
                unit="ramette",
                reference="DEMO-001",
                initial_quantity=50,
            )

        print(f"SEED OK: entreprise={DEMO_EMAIL}")
    finally:
        db.close()


if __name__ == "__main__":
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    database = Database(settings.DATABASE_URL)
    try:
        run_seed(database)
    finally:
        database.dispose()
