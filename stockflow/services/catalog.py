"""
Catalogue d'une entreprise : catégories, sous-catégories, produits, destinations.

Chaque requête porte le filtre entreprise_id : un id appartenant à un autre
tenant se comporte exactement comme un id inexistant (NotFound).
La quantité des produits n'est JAMAIS écrite ici (voir services.inventory).
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from sqlalchemy import select, func, or_
from sqlalchemy.orm import Session, selectinload

from stockflow.app.db.models.models_v1 import (
    Category,
    SubCategory,
    Product,
    Destination,
    StockTransaction,
)
from stockflow.services.exceptions import InvalidArgument, NotFound, ProductNotFound
from stockflow.services.inventory import apply_replenishment
from stockflow.services.unit_of_work import unit_of_work

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Non catégorisé"
UNSPECIFIED = "Non spécifiée"


def _require_name(name: str | None, what: str = "name") -> str:
    if not name or not name.strip():
        raise InvalidArgument(f"{what} is required")
    return name.strip()


# ---------- CATEGORIES ----------
def get_category(db: Session, *, entreprise_id: int, category_id: int) -> Category:
    cat = db.execute(
        select(Category)
        .where(Category.id == category_id)
        .where(Category.entreprise_id == entreprise_id)
    ).scalar_one_or_none()
    if cat is None:
        raise NotFound(f"Category not found: {category_id}")
    return cat


def create_category(db: Session, *, entreprise_id: int, name: str, description: str | None = None) -> Category:
    name = _require_name(name)
    with unit_of_work(db, "create_category", entreprise_id=entreprise_id, name=name):
        cat = Category(name=name, description=description or "", entreprise_id=entreprise_id)
        db.add(cat)
    db.refresh(cat)
    return cat


def update_category(
    db: Session,
    *,
    entreprise_id: int,
    category_id: int,
    name: str,
    description: str | None = None,
) -> Category:
    name = _require_name(name)
    with unit_of_work(db, "update_category", entreprise_id=entreprise_id, category_id=category_id):
        cat = get_category(db, entreprise_id=entreprise_id, category_id=category_id)
        cat.name = name
        cat.description = description or ""
    db.refresh(cat)
    return cat


def delete_category(db: Session, *, entreprise_id: int, category_id: int) -> None:
    with unit_of_work(db, "delete_category", entreprise_id=entreprise_id, category_id=category_id):
        cat = get_category(db, entreprise_id=entreprise_id, category_id=category_id)
        db.delete(cat)


def list_categories(db: Session, *, entreprise_id: int) -> list[Category]:
    return list(
        db.execute(
            select(Category)
            .where(Category.entreprise_id == entreprise_id)
            .order_by(Category.name)
        )
        .scalars()
        .all()
    )


def _product_counts(db: Session, column, entreprise_id: int) -> dict[int, int]:
    rows = db.execute(
        select(column, func.count(Product.id))
        .where(Product.entreprise_id == entreprise_id)
        .where(column.is_not(None))
        .group_by(column)
    ).all()
    return {int(key): int(count) for key, count in rows}


def list_categories_with_subcategories(db: Session, *, entreprise_id: int) -> list[dict]:
    """Arbre catégorie -> sous-catégories avec le nombre de produits à chaque niveau."""
    categories = (
        db.execute(
            select(Category)
            .where(Category.entreprise_id == entreprise_id)
            .options(selectinload(Category.sub_categories))
            .order_by(Category.name)
        )
        .scalars()
        .all()
    )
    by_category = _product_counts(db, Product.category_id, entreprise_id)
    by_sub = _product_counts(db, Product.sub_category_id, entreprise_id)

    return [
        {
            "id": c.id,
            "name": c.name,
            "description": c.description,
            "product_count": by_category.get(c.id, 0),
            "sub_categories": [
                {
                    "id": s.id,
                    "name": s.name,
                    "description": s.description,
                    "category_id": s.category_id,
                    "product_count": by_sub.get(s.id, 0),
                }
                for s in c.sub_categories
            ],
        }
        for c in categories
    ]


# ---------- SUB-CATEGORIES ----------
def get_subcategory(db: Session, *, entreprise_id: int, sub_category_id: int) -> SubCategory:
    sub = db.execute(
        select(SubCategory)
        .where(SubCategory.id == sub_category_id)
        .where(SubCategory.entreprise_id == entreprise_id)
    ).scalar_one_or_none()
    if sub is None:
        raise NotFound(f"Sub-category not found: {sub_category_id}")
    return sub


def create_subcategory(
    db: Session,
    *,
    entreprise_id: int,
    category_id: int,
    name: str,
    description: str | None = None,
) -> SubCategory:
    name = _require_name(name)
    with unit_of_work(db, "create_subcategory", entreprise_id=entreprise_id, category_id=category_id):
        get_category(db, entreprise_id=entreprise_id, category_id=category_id)
        sub = SubCategory(
            name=name,
            description=description or "",
            category_id=category_id,
            entreprise_id=entreprise_id,
        )
        db.add(sub)
    db.refresh(sub)
    return sub


def update_subcategory(
    db: Session,
    *,
    entreprise_id: int,
    sub_category_id: int,
    name: str,
    description: str | None = None,
) -> SubCategory:
    name = _require_name(name)
    with unit_of_work(db, "update_subcategory", entreprise_id=entreprise_id, sub_category_id=sub_category_id):
        sub = get_subcategory(db, entreprise_id=entreprise_id, sub_category_id=sub_category_id)
        sub.name = name
        sub.description = description or ""
    db.refresh(sub)
    return sub


def delete_subcategory(db: Session, *, entreprise_id: int, sub_category_id: int) -> None:
    with unit_of_work(db, "delete_subcategory", entreprise_id=entreprise_id, sub_category_id=sub_category_id):
        sub = get_subcategory(db, entreprise_id=entreprise_id, sub_category_id=sub_category_id)
        db.delete(sub)


def list_subcategories(db: Session, *, entreprise_id: int, category_id: int | None = None) -> list[dict]:
    stmt = (
        select(SubCategory)
        .where(SubCategory.entreprise_id == entreprise_id)
        .options(selectinload(SubCategory.category))
        .order_by(SubCategory.name)
    )
    if category_id is not None:
        stmt = stmt.where(SubCategory.category_id == category_id)

    subs = db.execute(stmt).scalars().all()
    counts = _product_counts(db, Product.sub_category_id, entreprise_id)
    return [
        {
            "id": s.id,
            "name": s.name,
            "description": s.description,
            "category_id": s.category_id,
            "category_name": s.category.name,
            "product_count": counts.get(s.id, 0),
        }
        for s in subs
    ]


# ---------- PRODUCTS ----------
@dataclass
class ProductPage:
    items: list[Product]
    total_count: int
    total_pages: int


def _check_sub_category(db: Session, entreprise_id: int, category_id: int, sub_category_id: int | None) -> None:
    if sub_category_id is None:
        return
    sub = get_subcategory(db, entreprise_id=entreprise_id, sub_category_id=sub_category_id)
    if sub.category_id != category_id:
        raise InvalidArgument(f"Sub-category {sub_category_id} does not belong to category {category_id}")


def get_product(db: Session, *, entreprise_id: int, product_id: int) -> Product:
    product = db.execute(
        select(Product)
        .where(Product.id == product_id)
        .where(Product.entreprise_id == entreprise_id)
        .options(selectinload(Product.category), selectinload(Product.sub_category))
    ).scalar_one_or_none()
    if product is None:
        raise ProductNotFound([product_id])
    return product


def create_product(
    db: Session,
    *,
    entreprise_id: int,
    name: str,
    category_id: int | None,
    description: str | None = None,
    image_url: str | None = None,
    unit: str | None = None,
    reference: str | None = None,
    sub_category_id: int | None = None,
    initial_quantity: int = 0,
) -> Product:
    """
    Crée un produit à quantité 0.
    Un stock initial passe par le ledger (transaction IN), jamais par un INSERT direct.
    Produit et stock initial sont commités ensemble.
    """
    name = _require_name(name)
    if category_id is None:
        raise InvalidArgument("category_id is required")
    if initial_quantity < 0:
        raise InvalidArgument("initial_quantity must be >= 0")

    with unit_of_work(
        db,
        "create_product",
        entreprise_id=entreprise_id,
        name=name,
        initial_quantity=initial_quantity,
    ):
        get_category(db, entreprise_id=entreprise_id, category_id=category_id)
        _check_sub_category(db, entreprise_id, category_id, sub_category_id)
        product = Product(
            name=name,
            description=description or "",
            image_url=image_url or "",
            unit=unit or "",
            reference=reference or None,
            quantity=0,
            category_id=category_id,
            sub_category_id=sub_category_id,
            entreprise_id=entreprise_id,
        )
        db.add(product)

        if initial_quantity > 0:
            db.flush()
            apply_replenishment(
                db,
                product_id=product.id,
                quantity=initial_quantity,
                entreprise_id=entreprise_id,
            )

    logger.info("Produit créé: entreprise=%s product=%s", entreprise_id, product.id)
    return get_product(db, entreprise_id=entreprise_id, product_id=product.id)


def update_product(
    db: Session,
    *,
    entreprise_id: int,
    product_id: int,
    name: str,
    description: str | None = None,
    image_url: str | None = None,
    unit: str | None = None,
    reference: str | None = None,
    sub_category_id: int | None = None,
) -> Product:
    name = _require_name(name)
    with unit_of_work(db, "update_product", entreprise_id=entreprise_id, product_id=product_id):
        product = get_product(db, entreprise_id=entreprise_id, product_id=product_id)
        _check_sub_category(db, entreprise_id, product.category_id, sub_category_id)
        product.name = name
        product.description = description or ""
        if image_url is not None:
            product.image_url = image_url
        if unit is not None:
            product.unit = unit
        product.reference = reference or None
        product.sub_category_id = sub_category_id

    return get_product(db, entreprise_id=entreprise_id, product_id=product_id)


def delete_product(db: Session, *, entreprise_id: int, product_id: int) -> str:
    """
    Supprime un produit sans historique (transactions en RESTRICT -> Conflict).
    Renvoie l'image_url de la ligne supprimée pour nettoyer le stockage.
    """
    with unit_of_work(db, "delete_product", entreprise_id=entreprise_id, product_id=product_id):
        product = get_product(db, entreprise_id=entreprise_id, product_id=product_id)
        image_url = product.image_url
        db.delete(product)
    return image_url


def _escape_like(value: str) -> str:
    # recherche littérale : % et _ ne sont pas des jokers
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def list_products(
    db: Session,
    *,
    entreprise_id: int,
    search: str | None = None,
    category_id: int | None = None,
    sub_category_id: int | None = None,
    reference: str | None = None,
    limit: int = 10,
    offset: int = 0,
) -> ProductPage:
    if limit <= 0:
        raise InvalidArgument("limit must be > 0")
    if offset < 0:
        raise InvalidArgument("offset must be >= 0")

    filters = [Product.entreprise_id == entreprise_id]
    if search:
        pattern = f"%{_escape_like(search.lower())}%"
        filters.append(
            or_(
                func.lower(Product.name).like(pattern, escape="\\"),
                func.lower(func.coalesce(Product.reference, "")).like(pattern, escape="\\"),
            )
        )
    if category_id is not None:
        filters.append(Product.category_id == category_id)
    if sub_category_id is not None:
        filters.append(Product.sub_category_id == sub_category_id)
    if reference:
        filters.append(Product.reference.contains(reference, autoescape=True))

    total_count = db.execute(select(func.count(Product.id)).where(*filters)).scalar_one()

    items = (
        db.execute(
            select(Product)
            .where(*filters)
            .options(selectinload(Product.category), selectinload(Product.sub_category))
            .order_by(Product.name, Product.id)
            .limit(limit)
            .offset(offset)
        )
        .scalars()
        .all()
    )
    return ProductPage(
        items=list(items),
        total_count=int(total_count),
        total_pages=math.ceil(total_count / limit),
    )


# ---------- DESTINATIONS ----------
def create_destination(
    db: Session,
    *,
    entreprise_id: int,
    name: str,
    description: str | None = None,
) -> Destination:
    name = _require_name(name)
    with unit_of_work(db, "create_destination", entreprise_id=entreprise_id, name=name):
        dest = Destination(name=name, description=description or None, entreprise_id=entreprise_id)
        db.add(dest)
    db.refresh(dest)
    return dest


def get_destination(db: Session, *, entreprise_id: int, destination_id: int) -> Destination:
    dest = db.execute(
        select(Destination)
        .where(Destination.id == destination_id)
        .where(Destination.entreprise_id == entreprise_id)
    ).scalar_one_or_none()
    if dest is None:
        raise NotFound(f"Destination not found: {destination_id}")
    return dest


def delete_destination(db: Session, *, entreprise_id: int, destination_id: int) -> None:
    with unit_of_work(db, "delete_destination", entreprise_id=entreprise_id, destination_id=destination_id):
        dest = get_destination(db, entreprise_id=entreprise_id, destination_id=destination_id)
        db.delete(dest)


def list_destinations(db: Session, *, entreprise_id: int) -> list[tuple[Destination, int]]:
    """Destinations triées par nom avec leur nombre de transactions."""
    tx_count = (
        select(func.count(StockTransaction.id))
        .where(StockTransaction.destination_id == Destination.id)
        .correlate(Destination)
        .scalar_subquery()
    )
    rows = db.execute(
        select(Destination, tx_count)
        .where(Destination.entreprise_id == entreprise_id)
        .order_by(Destination.name)
    ).all()
    return [(dest, int(count)) for dest, count in rows]


def count_destination_transactions(db: Session, *, destination_id: int) -> int:
    return int(
        db.execute(
            select(func.count(StockTransaction.id)).where(StockTransaction.destination_id == destination_id)
        ).scalar_one()
    )
