"""
Statistiques du tableau de bord.

Lectures indicatives : overview et stock_summary renvoient des zéros en cas
d'erreur de stockage (loggée) plutôt que de casser l'affichage.
"""
from __future__ import annotations

import logging

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from stockflow.app.db.models.models_v1 import Category, SubCategory, Product, StockTransaction
from stockflow.services.catalog import UNCATEGORIZED, UNSPECIFIED, list_categories_with_subcategories

logger = logging.getLogger(__name__)


def _count(db: Session, model, entreprise_id: int) -> int:
    return int(db.execute(select(func.count(model.id)).where(model.entreprise_id == entreprise_id)).scalar_one())


def get_overview_stats(db: Session, *, entreprise_id: int) -> dict:
    try:
        return {
            "total_products": _count(db, Product, entreprise_id),
            "total_categories": _count(db, Category, entreprise_id),
            "total_sub_categories": _count(db, SubCategory, entreprise_id),
            "total_transactions": _count(db, StockTransaction, entreprise_id),
        }
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Stats overview indisponibles: entreprise=%s", entreprise_id)
        return {
            "total_products": 0,
            "total_categories": 0,
            "total_sub_categories": 0,
            "total_transactions": 0,
        }


def get_category_distribution(db: Session, *, entreprise_id: int) -> list[dict]:
    """Nombre de produits par catégorie puis par sous-catégorie (données du graphique)."""
    return [
        {
            "name": c["name"],
            "value": c["product_count"],
            "sub_categories": [{"name": s["name"], "value": s["product_count"]} for s in c["sub_categories"]],
        }
        for c in list_categories_with_subcategories(db, entreprise_id=entreprise_id)
    ]


def _empty_summary() -> dict:
    return {
        "in_stock_count": 0,
        "low_stock_count": 0,
        "out_of_stock_count": 0,
        "health_percentage": 0.0,
        "critical_products": [],
    }


def get_stock_summary(db: Session, *, entreprise_id: int, low_stock_threshold: int = 20) -> dict:
    """
    Répartition du stock :
    - en stock   : quantity > seuil
    - stock bas  : 0 < quantity <= seuil
    - rupture    : quantity == 0
    """
    try:
        products = (
            db.execute(
                select(Product)
                .where(Product.entreprise_id == entreprise_id)
                .options(selectinload(Product.category), selectinload(Product.sub_category))
                .order_by(Product.quantity, Product.name)
            )
            .scalars()
            .all()
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Résumé de stock indisponible: entreprise=%s", entreprise_id)
        return _empty_summary()

    in_stock = [p for p in products if p.quantity > low_stock_threshold]
    low_stock = [p for p in products if 0 < p.quantity <= low_stock_threshold]
    out_of_stock = [p for p in products if p.quantity == 0]

    health = round(100.0 * len(in_stock) / len(products), 1) if products else 0.0

    return {
        "in_stock_count": len(in_stock),
        "low_stock_count": len(low_stock),
        "out_of_stock_count": len(out_of_stock),
        "health_percentage": health,
        "critical_products": [
            {
                "id": p.id,
                "name": p.name,
                "quantity": p.quantity,
                "unit": p.unit,
                "category_name": p.category.name if p.category else UNCATEGORIZED,
                "sub_category_name": p.sub_category.name if p.sub_category else UNSPECIFIED,
                "image_url": p.image_url,
                "reference": p.reference or "N/A",
            }
            for p in low_stock + out_of_stock
        ],
    }
