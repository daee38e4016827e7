from unittest import mock

from sqlalchemy.exc import OperationalError

from stockflow.services import catalog, stats
from stockflow.services.inventory import OrderItem, deduct_stock


def test_overview_counts(db_session, entreprise, category, make_product):
    catalog.create_subcategory(db_session, entreprise_id=entreprise.id, category_id=category.id, name="Vis")
    product = make_product(quantity=5)
    deduct_stock(db_session, items=[OrderItem(product.id, 1)], entreprise_id=entreprise.id)

    assert stats.get_overview_stats(db_session, entreprise_id=entreprise.id) == {
        "total_products": 1,
        "total_categories": 1,
        "total_sub_categories": 1,
        "total_transactions": 2,
    }


def test_overview_degrades_to_zero_on_storage_error(db_session, entreprise):
    with mock.patch.object(db_session, "execute", side_effect=OperationalError("SELECT", {}, Exception("down"))):
        result = stats.get_overview_stats(db_session, entreprise_id=entreprise.id)

    assert set(result.values()) == {0}


def test_stock_summary_buckets(db_session, entreprise, make_product):
    make_product(name="Plein", quantity=25)
    make_product(name="Limite", quantity=20)
    make_product(name="Bas", quantity=1)
    make_product(name="Vide")

    summary = stats.get_stock_summary(db_session, entreprise_id=entreprise.id, low_stock_threshold=20)

    assert summary["in_stock_count"] == 1
    assert summary["low_stock_count"] == 2
    assert summary["out_of_stock_count"] == 1
    assert summary["health_percentage"] == 25.0
    critical = {p["name"]: p for p in summary["critical_products"]}
    assert set(critical) == {"Limite", "Bas", "Vide"}
    assert critical["Vide"]["reference"] == "N/A"
    assert critical["Vide"]["sub_category_name"] == "Non spécifiée"
    assert critical["Bas"]["category_name"] == "Outillage"


def test_stock_summary_empty_catalog(db_session, entreprise):
    summary = stats.get_stock_summary(db_session, entreprise_id=entreprise.id)
    assert summary["critical_products"] == []
    assert summary["health_percentage"] == 0.0


def test_category_distribution(db_session, entreprise, category, make_product):
    sub = catalog.create_subcategory(db_session, entreprise_id=entreprise.id, category_id=category.id, name="Vis")
    make_product(name="a", sub_category_id=sub.id)
    make_product(name="b")
    catalog.create_category(db_session, entreprise_id=entreprise.id, name="Autre")

    assert stats.get_category_distribution(db_session, entreprise_id=entreprise.id) == [
        {"name": "Autre", "value": 0, "sub_categories": []},
        {"name": "Outillage", "value": 2, "sub_categories": [{"name": "Vis", "value": 1}]},
    ]
