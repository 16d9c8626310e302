from dataclasses import asdict, dataclass
from typing import Iterable, List, Optional

from fastapi import HTTPException

from bookstore.infrastructure.table_client import TableClient
from shared.core import get_logger

logger = get_logger(__name__)

CARTS = "carts"
CART_ITEMS = "cart_items"
LINE_ITEM_COLUMNS = "id, name, price_cents, img_url, stock"
BADGE_LIMIT = 9


@dataclass
class CartSummary:
    subtotal_cents: int
    discount_pct: int
    discount_cents: int
    taxable_cents: int
    tax_cents: int
    total_cents: int

    def dict(self) -> dict:
        return asdict(self)


def summarize(lines: Iterable[dict], pct_off: int = 0, tax_rate: float = 0.0825) -> CartSummary:
    """Money breakdown for cart lines carrying ``qty`` and ``item.price_cents``.

    Each step is floored to whole cents before the next one is computed.
    """
    subtotal = sum(line["item"]["price_cents"] * line["qty"] for line in lines if line.get("item"))
    discount = subtotal * pct_off // 100
    taxable = subtotal - discount
    tax = int(taxable * tax_rate)
    return CartSummary(
        subtotal_cents=subtotal,
        discount_pct=pct_off,
        discount_cents=discount,
        taxable_cents=taxable,
        tax_cents=tax,
        total_cents=taxable + tax,
    )


def badge_label(count: int) -> Optional[str]:
    if count <= 0:
        return None
    return f"{BADGE_LIMIT}+" if count > BADGE_LIMIT else str(count)


class CartService:
    def __init__(self, client: TableClient):
        self.client = client

    def get_cart_id(self, user_id: str) -> Optional[int]:
        cart = self.client.select_one(CARTS, "id", {"user_id": user_id})
        return cart["id"] if cart else None

    def get_or_create_cart(self, user_id: str) -> int:
        cart_id = self.get_cart_id(user_id)
        if cart_id is not None:
            return cart_id
        cart = self.client.insert(CARTS, {"user_id": user_id})
        logger.info(f"Created cart {cart['id']} for user {user_id}")
        return cart["id"]

    def _item(self, item_id: int) -> dict:
        item = self.client.select_one("items", filters={"id": item_id, "active": True})
        if not item:
            raise HTTPException(status_code=404, detail="Item not found")
        return item

    def list_items(self, user_id: str) -> List[dict]:
        cart_id = self.get_cart_id(user_id)
        if cart_id is None:
            return []
        lines = self.client.select(CART_ITEMS, filters={"cart_id": cart_id}, order_by="item_id")
        if not lines:
            return []
        items = {
            item["id"]: item
            for item in self.client.select(
                "items", LINE_ITEM_COLUMNS, {"id__in": [line["item_id"] for line in lines]}
            )
        }
        return [{**line, "item": items.get(line["item_id"])} for line in lines]

    def add_item(self, user_id: str, item_id: int, qty: int = 1) -> dict:
        if qty < 1:
            raise HTTPException(status_code=422, detail="Quantity must be at least 1")
        item = self._item(item_id)
        if qty > item["stock"]:
            raise HTTPException(status_code=409, detail=f"Only {item['stock']} items available in stock")
        cart_id = self.get_or_create_cart(user_id)
        return self.client.upsert(
            CART_ITEMS,
            {"cart_id": cart_id, "item_id": item_id, "qty": qty},
            on_conflict=("cart_id", "item_id"),
        )

    def update_quantity(self, user_id: str, item_id: int, qty: int) -> Optional[dict]:
        """Set a line's quantity. Zero removes the line and returns ``None``."""
        if qty < 0:
            raise HTTPException(status_code=422, detail="Quantity cannot be negative")
        cart_id = self.get_cart_id(user_id)
        if cart_id is None:
            raise HTTPException(status_code=404, detail="Cart not found")
        if qty == 0:
            self.remove_item(user_id, item_id)
            return None
        item = self._item(item_id)
        if qty > item["stock"]:
            raise HTTPException(status_code=409, detail=f"Only {item['stock']} items available in stock")
        rows = self.client.update(CART_ITEMS, {"qty": qty}, {"cart_id": cart_id, "item_id": item_id})
        if not rows:
            raise HTTPException(status_code=404, detail="Item not in cart")
        return rows[0]

    def remove_item(self, user_id: str, item_id: int) -> bool:
        cart_id = self.get_cart_id(user_id)
        if cart_id is None:
            return False
        return self.client.delete(CART_ITEMS, {"cart_id": cart_id, "item_id": item_id}) > 0

    def clear(self, cart_id: int) -> int:
        return self.client.delete(CART_ITEMS, {"cart_id": cart_id})

    def count_items(self, user_id: str) -> int:
        cart_id = self.get_cart_id(user_id)
        if cart_id is None:
            return 0
        return sum(line["qty"] for line in self.client.select(CART_ITEMS, "qty", {"cart_id": cart_id}))
