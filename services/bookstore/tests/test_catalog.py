from datetime import datetime

import pytest
from fastapi import HTTPException

from bookstore.application.catalog import CatalogService
from bookstore.infrastructure.cache import ResponseCache
from conftest import add_item


@pytest.fixture
def catalog(client):
    return CatalogService(client)


@pytest.fixture
def books(client):
    return {
        "old": add_item(client, name="Old Maps", price_cents=1200, stock=3, created_at=datetime(2023, 1, 1)),
        "new": add_item(client, name="New Roads", price_cents=2500, stock=0, created_at=datetime(2024, 1, 1)),
        "mid": add_item(client, name="Middle Ground", price_cents=1600, stock=1, created_at=datetime(2023, 6, 1)),
        "hidden": add_item(client, name="Hidden Maps", price_cents=1300, active=False, created_at=datetime(2023, 3, 1)),
    }


def names(rows):
    return [row["name"] for row in rows]


def test_default_sort_is_newest_first(catalog, books):
    assert names(catalog.list_items()) == ["New Roads", "Middle Ground", "Old Maps"]


def test_price_and_name_sorts(catalog, books):
    assert names(catalog.list_items(sort="price_low")) == ["Old Maps", "Middle Ground", "New Roads"]
    assert names(catalog.list_items(sort="price_high")) == ["New Roads", "Middle Ground", "Old Maps"]
    assert names(catalog.list_items(sort="name")) == ["Middle Ground", "New Roads", "Old Maps"]


def test_search_is_case_insensitive_and_trimmed(catalog, books):
    assert names(catalog.list_items(q="  maps ")) == ["Old Maps"]


def test_admin_sees_inactive_items(catalog, books):
    assert "Hidden Maps" in names(catalog.list_items(q="maps", is_admin=True))


def test_available_only(catalog, books):
    assert names(catalog.list_items(available=True, sort="name")) == ["Middle Ground", "Old Maps"]


def test_get_item_hides_inactive_from_customers(catalog, books):
    with pytest.raises(HTTPException) as exc:
        catalog.get_item(books["hidden"]["id"])
    assert exc.value.status_code == 404
    assert catalog.get_item(books["hidden"]["id"], is_admin=True)["name"] == "Hidden Maps"


def test_related_items_within_price_range(catalog, client, books):
    for i in range(5):
        add_item(client, name=f"Near {i}", price_cents=1100 + i)
    related = catalog.related_items(books["old"])
    assert len(related) == 4
    assert all(700 <= row["price_cents"] <= 1700 for row in related)
    assert books["old"]["id"] not in [row["id"] for row in related]
    assert books["hidden"]["id"] not in [row["id"] for row in related]


def test_book_detail(catalog, books):
    detail = catalog.book_detail(books["old"]["id"])
    assert detail["item"]["name"] == "Old Maps"
    assert detail["metadata"]["author"] == "Old Maps's Author"
    assert len(detail["metadata"]["reviews"]) == 3
    assert "Old Maps" in detail["author_bio"]
    assert names(detail["related"]) == ["Middle Ground"]


@pytest.fixture
def sale_books(client):
    add_item(client, name="Deal One", price_cents=3000, sale_price_cents=1500, sale_percentage=50, on_sale=True, stock=2)
    add_item(client, name="Deal Two", price_cents=2000, sale_price_cents=1800, sale_percentage=10, on_sale=True, stock=5)
    add_item(client, name="Deal Gone", price_cents=4000, sale_price_cents=1000, sale_percentage=75, on_sale=True, stock=0)
    add_item(client, name="Pricey Deal", price_cents=30000, sale_price_cents=20000, sale_percentage=33, on_sale=True, stock=1)
    add_item(client, name="Full Price", price_cents=900, on_sale=False, stock=9)


def test_sales_default_in_stock_by_discount(catalog, sale_books):
    assert names(catalog.sale_items()) == ["Deal One", "Deal Two"]


def test_sales_availability_filters(catalog, sale_books):
    assert names(catalog.sale_items(availability="2")) == ["Deal Gone"]
    assert names(catalog.sale_items(availability="0")) == ["Deal Gone", "Deal One", "Deal Two"]


def test_sales_price_window_uses_sale_price(catalog, sale_books):
    assert names(catalog.sale_items(price_min=16, price_max=20)) == ["Deal Two"]
    assert names(catalog.sale_items(price_max=300, sort="price_high")) == ["Pricey Deal", "Deal Two", "Deal One"]


def test_sales_price_sort_and_search(catalog, sale_books):
    assert names(catalog.sale_items(sort="price_low")) == ["Deal One", "Deal Two"]
    assert names(catalog.sale_items(q="two")) == ["Deal Two"]


def test_sales_rejects_unknown_sort(catalog):
    with pytest.raises(HTTPException) as exc:
        catalog.sale_items(sort="random")
    assert exc.value.status_code == 422


def test_listing_is_served_from_cache(client, books):
    catalog = CatalogService(client, cache=ResponseCache(ttl=60))
    first = catalog.list_items()
    add_item(client, name="Fresh Arrival", created_at=datetime(2025, 1, 1))
    assert catalog.list_items() == first
    assert names(catalog.list_items(q="fresh")) == ["Fresh Arrival"]


def test_zero_ttl_disables_cache(client, books):
    catalog = CatalogService(client, cache=ResponseCache(ttl=0))
    catalog.list_items()
    add_item(client, name="Fresh Arrival", created_at=datetime(2025, 1, 1))
    assert names(catalog.list_items())[0] == "Fresh Arrival"
