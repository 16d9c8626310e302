from typing import List, Optional

from fastapi import HTTPException

from bookstore.core_settings import Settings, get_settings
from bookstore.infrastructure.auth import AuthUser
from bookstore.infrastructure.table_client import TableClient
from shared.core import get_logger

from .cart import CartService, summarize
from .discounts import DiscountService
from .fulfillment import FulfillmentService

logger = get_logger(__name__)

ORDERS = "orders"
ORDER_ITEMS = "order_items"


class OrderService:
    def __init__(self, client: TableClient, settings: Optional[Settings] = None):
        self.client = client
        self.settings = settings or get_settings()
        self.carts = CartService(client)
        self.discounts = DiscountService(client)
        self.fulfillments = FulfillmentService(client)

    def _with_items(self, orders: List[dict]) -> List[dict]:
        if not orders:
            return []
        lines = self.client.select(
            ORDER_ITEMS, filters={"order_id__in": [o["id"] for o in orders]}, order_by="id"
        )
        by_order = {}
        for line in lines:
            by_order.setdefault(line["order_id"], []).append(line)
        return [{**order, "items": by_order.get(order["id"], [])} for order in orders]

    def place_order(self, user: AuthUser, discount_code: Optional[str] = None) -> dict:
        cart_id = self.carts.get_cart_id(user.id)
        lines = self.carts.list_items(user.id) if cart_id is not None else []
        if not lines:
            raise HTTPException(status_code=400, detail="Cart is empty")

        for line in lines:
            item = line["item"]
            if item is None:
                raise HTTPException(status_code=409, detail=f"Item {line['item_id']} is no longer available")
            if line["qty"] > item["stock"]:
                raise HTTPException(
                    status_code=409,
                    detail=f"Only {item['stock']} items available in stock for '{item['name']}'",
                )

        pct_off = 0
        code = None
        if discount_code is not None and discount_code.strip():
            validation = self.discounts.validate_code(discount_code)
            if not validation.valid:
                raise HTTPException(status_code=422, detail=validation.error)
            pct_off = validation.pct_off
            code = validation.code

        summary = summarize(lines, pct_off, self.settings.TAX_RATE)
        order = self.client.insert(ORDERS, {
            "user_id": user.id,
            "customer_email": user.email,
            "subtotal_cents": summary.subtotal_cents,
            "discount_code": code,
            "discount_pct": summary.discount_pct,
            "discount_cents": summary.discount_cents,
            "tax_cents": summary.tax_cents,
            "total_cents": summary.total_cents,
        })
        items = [
            self.client.insert(ORDER_ITEMS, {
                "order_id": order["id"],
                "item_id": line["item_id"],
                "qty": line["qty"],
                "unit_price_cents": line["item"]["price_cents"],
            })
            for line in lines
        ]
        self.carts.clear(cart_id)

        report = self.fulfillments.create_fulfillments_report(order["id"])
        logger.info(
            f"Order {order['id']} placed",
            extra={"extra_fields": {
                "order_id": order["id"],
                "user_id": user.id,
                "total_cents": summary.total_cents,
                "fulfillments_created": report.created,
            }},
        )
        return {**order, "items": items, "fulfillments_created": report.complete}

    def list_orders(self, user_id: str) -> List[dict]:
        orders = self.client.select(ORDERS, filters={"user_id": user_id}, order_by="created_at", descending=True)
        return self._with_items(orders)

    def get_order(self, order_id: int, user_id: Optional[str] = None) -> dict:
        """Fetch one order. With ``user_id`` set, other users' orders are reported as missing."""
        filters = {"id": order_id}
        if user_id is not None:
            filters["user_id"] = user_id
        order = self.client.select_one(ORDERS, filters=filters)
        if not order:
            raise HTTPException(status_code=404, detail="Order not found")
        return self._with_items([order])[0]
