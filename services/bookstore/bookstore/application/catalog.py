from typing import List, Optional

from fastapi import HTTPException

from bookstore.core_settings import Settings, get_settings
from bookstore.infrastructure.cache import ResponseCache
from bookstore.infrastructure.table_client import TableClient
from shared.core import get_logger

from .book_metadata import generate_author_bio, generate_book_metadata

logger = get_logger(__name__)

ITEMS = "items"
RELATED_COLUMNS = "id, name, price_cents, img_url, stock"

# sort key -> (column, descending)
CATALOG_SORTS = {
    "price_low": ("price_cents", False),
    "price_high": ("price_cents", True),
    "name": ("name", False),
}
DEFAULT_CATALOG_SORT = ("created_at", True)

SALE_SORTS = ("discount", "price_low", "price_high")
AVAILABILITY_ALL = "0"
AVAILABILITY_IN_STOCK = "1"
AVAILABILITY_OUT_OF_STOCK = "2"


def effective_price_cents(item: dict) -> int:
    return item.get("sale_price_cents") or item["price_cents"]


class CatalogService:
    def __init__(self, client: TableClient, cache: Optional[ResponseCache] = None, settings: Optional[Settings] = None):
        self.client = client
        self.cache = cache
        self.settings = settings or get_settings()

    def _cached(self, key: str, load):
        if self.cache is not None:
            hit = self.cache.get(key)
            if hit is not None:
                return hit
        value = load()
        if self.cache is not None:
            self.cache.set(key, value)
        return value

    def list_items(
        self,
        q: Optional[str] = None,
        sort: Optional[str] = None,
        available: bool = False,
        is_admin: bool = False,
    ) -> List[dict]:
        term = (q or "").strip()
        key = f"catalog:items:{term.lower()}:{sort or ''}:{int(available)}:{int(is_admin)}"

        def load():
            filters = {}
            if term:
                filters["name__ilike"] = f"%{term}%"
            if not is_admin:
                filters["active"] = True
            if available:
                filters["stock__gt"] = 0
            column, descending = CATALOG_SORTS.get(sort or "", DEFAULT_CATALOG_SORT)
            return self.client.select(ITEMS, filters=filters, order_by=column, descending=descending)

        return self._cached(key, load)

    def get_item(self, item_id: int, is_admin: bool = False) -> dict:
        filters = {"id": item_id}
        if not is_admin:
            filters["active"] = True
        item = self.client.select_one(ITEMS, filters=filters)
        if not item:
            raise HTTPException(status_code=404, detail="Item not found")
        return item

    def related_items(self, item: dict) -> List[dict]:
        spread = self.settings.RELATED_PRICE_RANGE_CENTS
        return self.client.select(
            ITEMS,
            RELATED_COLUMNS,
            filters={
                "active": True,
                "id__neq": item["id"],
                "price_cents__gte": item["price_cents"] - spread,
                "price_cents__lte": item["price_cents"] + spread,
            },
            order_by="id",
            limit=self.settings.RELATED_LIMIT,
        )

    def book_detail(self, item_id: int, is_admin: bool = False) -> dict:
        item = self.get_item(item_id, is_admin=is_admin)
        return {
            "item": item,
            "metadata": generate_book_metadata(item["name"]),
            "author_bio": generate_author_bio(item["name"]),
            "related": self.related_items(item),
        }

    def sale_items(
        self,
        q: Optional[str] = None,
        sort: str = "discount",
        availability: str = AVAILABILITY_IN_STOCK,
        price_min: float = 0,
        price_max: float = 100,
    ) -> List[dict]:
        if sort not in SALE_SORTS:
            raise HTTPException(status_code=422, detail=f"Unknown sort '{sort}'")
        if availability not in (AVAILABILITY_ALL, AVAILABILITY_IN_STOCK, AVAILABILITY_OUT_OF_STOCK):
            raise HTTPException(status_code=422, detail=f"Unknown availability '{availability}'")
        term = (q or "").strip()
        key = f"catalog:sales:{term.lower()}:{sort}:{availability}:{price_min}:{price_max}"

        def load():
            filters = {"on_sale": True, "active": True}
            if availability == AVAILABILITY_IN_STOCK:
                filters["stock__gt"] = 0
            elif availability == AVAILABILITY_OUT_OF_STOCK:
                filters["stock__lte"] = 0
            if term:
                filters["name__ilike"] = f"%{term}%"
            rows = self.client.select(ITEMS, filters=filters)

            rows = [row for row in rows if price_min <= effective_price_cents(row) / 100 <= price_max]
            if sort == "price_low":
                rows.sort(key=effective_price_cents)
            elif sort == "price_high":
                rows.sort(key=effective_price_cents, reverse=True)
            else:
                rows.sort(key=lambda row: float(row.get("sale_percentage") or 0), reverse=True)
            return rows

        return self._cached(key, load)
