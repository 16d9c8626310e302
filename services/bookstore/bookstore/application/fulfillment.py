"""Fulfillment rules layer.

One ``order_fulfillments`` row tracks the shipment of one order line. Rows are
created ``pending`` when an order is placed and walk
pending -> processing -> shipped -> delivered, or end ``cancelled``.

An order may be cancelled only while nothing in it has started shipping:
every fulfillment row must be ``pending`` with ``shipped_qty == 0``, and an
order without fulfillment rows is never cancellable.

Every public operation is fail-soft: a ``BackendError`` is logged and the
caller receives ``None``, ``False``, ``[]`` or zeroed stats. The
``check_cancellation``, ``try_cancel_order`` and ``create_fulfillments_report``
variants return typed outcomes for callers that need to know why.
Multi-row operations are not atomic; partial creation is reported, not undone.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional

from bookstore.domain.models import FulfillmentStatus
from bookstore.infrastructure.table_client import BackendError, TableClient
from shared.core import get_logger

from .clock import to_naive_utc, utcnow
from .schemas import FulfillmentCreate, FulfillmentUpdate

logger = get_logger(__name__)

FULFILLMENTS = "order_fulfillments"


class CancellationReason(str, Enum):
    ALLOWED = "allowed"
    CANCELLED = "cancelled"
    NO_FULFILLMENTS = "no_fulfillments"
    NOT_PENDING = "not_pending"
    ALREADY_SHIPPED = "already_shipped"
    BACKEND_ERROR = "backend_error"


@dataclass
class CancellationOutcome:
    order_id: int
    reason: CancellationReason
    fulfillment_count: int = 0

    @property
    def ok(self) -> bool:
        return self.reason in (CancellationReason.ALLOWED, CancellationReason.CANCELLED)


@dataclass
class FulfillmentCreationReport:
    order_id: int
    expected: int
    created: int
    backend_error: bool = False

    @property
    def complete(self) -> bool:
        return not self.backend_error and self.created == self.expected


class FulfillmentService:
    def __init__(self, client: TableClient, clock: Callable[[], datetime] = utcnow):
        self.client = client
        self.clock = clock

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def create_fulfillment(self, data: FulfillmentCreate) -> Optional[dict]:
        values = {
            "order_id": data.order_id,
            "item_id": data.item_id,
            "status": data.status or FulfillmentStatus.PENDING.value,
            "shipped_qty": data.shipped_qty or 0,
            "tracking_number": data.tracking_number or None,
        }
        try:
            return self.client.insert(FULFILLMENTS, values)
        except BackendError:
            logger.error(
                f"Error creating fulfillment for order {data.order_id}, item {data.item_id}",
                exc_info=True,
            )
            return None

    def get_fulfillments_by_order_id(self, order_id: int) -> List[dict]:
        try:
            return self.client.select(FULFILLMENTS, filters={"order_id": order_id}, order_by="created_at")
        except BackendError:
            logger.error(f"Error fetching fulfillments for order {order_id}", exc_info=True)
            return []

    def get_fulfillments_by_order_item(self, order_id: int, item_id: int) -> List[dict]:
        try:
            return self.client.select(
                FULFILLMENTS,
                filters={"order_id": order_id, "item_id": item_id},
                order_by="created_at",
            )
        except BackendError:
            logger.error(f"Error fetching fulfillments for order {order_id}, item {item_id}", exc_info=True)
            return []

    def update_fulfillment(self, fulfillment_id: int, data: FulfillmentUpdate) -> Optional[dict]:
        values = data.model_dump(exclude_none=True)
        for field in ("fulfilled_at", "shipped_at"):
            if field in values:
                values[field] = to_naive_utc(values[field])

        status = values.get("status")
        if status == FulfillmentStatus.PROCESSING.value and not values.get("fulfilled_at"):
            values["fulfilled_at"] = self.clock()
        if status == FulfillmentStatus.SHIPPED.value and not values.get("shipped_at"):
            values["shipped_at"] = self.clock()

        try:
            if not values:
                return self.client.select_one(FULFILLMENTS, filters={"id": fulfillment_id})
            rows = self.client.update(FULFILLMENTS, values, {"id": fulfillment_id})
        except BackendError:
            logger.error(f"Error updating fulfillment {fulfillment_id}", exc_info=True)
            return None
        if not rows:
            logger.warning(f"Fulfillment {fulfillment_id} not found")
            return None
        return rows[0]

    def mark_as_shipped(
        self, fulfillment_id: int, tracking_number: str, shipped_qty: Optional[int] = None
    ) -> Optional[dict]:
        return self.update_fulfillment(
            fulfillment_id,
            FulfillmentUpdate(
                status=FulfillmentStatus.SHIPPED,
                tracking_number=tracking_number,
                shipped_qty=shipped_qty,
                shipped_at=self.clock(),
            ),
        )

    def mark_as_delivered(self, fulfillment_id: int) -> Optional[dict]:
        return self.update_fulfillment(fulfillment_id, FulfillmentUpdate(status=FulfillmentStatus.DELIVERED))

    def cancel_fulfillment(self, fulfillment_id: int) -> Optional[dict]:
        return self.update_fulfillment(fulfillment_id, FulfillmentUpdate(status=FulfillmentStatus.CANCELLED))

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    @staticmethod
    def _evaluate(order_id: int, rows: List[dict]) -> CancellationOutcome:
        if not rows:
            return CancellationOutcome(order_id, CancellationReason.NO_FULFILLMENTS)
        if not all(row.get("status") == FulfillmentStatus.PENDING.value for row in rows):
            return CancellationOutcome(order_id, CancellationReason.NOT_PENDING, len(rows))
        if not all(row.get("shipped_qty") == 0 for row in rows):
            return CancellationOutcome(order_id, CancellationReason.ALREADY_SHIPPED, len(rows))
        return CancellationOutcome(order_id, CancellationReason.ALLOWED, len(rows))

    def check_cancellation(self, order_id: int) -> CancellationOutcome:
        try:
            rows = self.client.select(FULFILLMENTS, "id, status, shipped_qty", {"order_id": order_id})
        except BackendError:
            logger.error(f"Error checking cancellation for order {order_id}", exc_info=True)
            return CancellationOutcome(order_id, CancellationReason.BACKEND_ERROR)
        return self._evaluate(order_id, rows)

    def can_cancel_order(self, order_id: int) -> bool:
        return self.check_cancellation(order_id).reason == CancellationReason.ALLOWED

    def try_cancel_order(self, order_id: int) -> CancellationOutcome:
        check = self.check_cancellation(order_id)
        if not check.ok:
            logger.info(f"Order {order_id} not cancellable: {check.reason.value}")
            return check
        try:
            self.client.update(FULFILLMENTS, {"status": FulfillmentStatus.CANCELLED.value}, {"order_id": order_id})
        except BackendError:
            logger.error(f"Error cancelling fulfillments for order {order_id}", exc_info=True)
            return CancellationOutcome(order_id, CancellationReason.BACKEND_ERROR, check.fulfillment_count)
        logger.info(
            f"Order {order_id} cancelled",
            extra={"extra_fields": {"order_id": order_id, "fulfillments": check.fulfillment_count}},
        )
        return CancellationOutcome(order_id, CancellationReason.CANCELLED, check.fulfillment_count)

    def cancel_order(self, order_id: int) -> bool:
        return self.try_cancel_order(order_id).reason == CancellationReason.CANCELLED

    def create_fulfillments_report(self, order_id: int) -> FulfillmentCreationReport:
        try:
            order_items = self.client.select("order_items", "item_id, qty", {"order_id": order_id})
        except BackendError:
            logger.error(f"Error fetching order items for order {order_id}", exc_info=True)
            return FulfillmentCreationReport(order_id, expected=0, created=0, backend_error=True)

        if not order_items:
            logger.info(f"No order items found for order {order_id}")
            return FulfillmentCreationReport(order_id, expected=0, created=0)

        created = 0
        for line in order_items:
            record = self.create_fulfillment(FulfillmentCreate(order_id=order_id, item_id=line["item_id"]))
            if record is not None:
                created += 1

        report = FulfillmentCreationReport(order_id, expected=len(order_items), created=created)
        if report.complete:
            logger.info(f"Created {created} fulfillments for order {order_id}")
        else:
            logger.warning(
                f"Created only {created} of {len(order_items)} fulfillments for order {order_id}",
                extra={"extra_fields": {"order_id": order_id, "expected": len(order_items), "created": created}},
            )
        return report

    def create_fulfillments_for_order(self, order_id: int) -> bool:
        return self.create_fulfillments_report(order_id).complete

    # ------------------------------------------------------------------
    # Admin dashboard
    # ------------------------------------------------------------------

    def get_pending_fulfillments(self) -> List[dict]:
        try:
            rows = self.client.select(
                FULFILLMENTS, filters={"status": FulfillmentStatus.PENDING.value}, order_by="created_at"
            )
        except BackendError:
            logger.error("Error fetching pending fulfillments", exc_info=True)
            return []
        if not rows:
            return []

        orders: Dict[int, dict] = {}
        items: Dict[int, dict] = {}
        try:
            order_ids = sorted({row["order_id"] for row in rows})
            for order in self.client.select("orders", "id, customer_email, created_at", {"id__in": order_ids}):
                orders[order["id"]] = order
            item_ids = sorted({row["item_id"] for row in rows})
            for item in self.client.select("items", "id, name, img_url, author", {"id__in": item_ids}):
                items[item["id"]] = {key: item.get(key) for key in ("name", "img_url", "author")}
        except BackendError:
            logger.error("Error enriching pending fulfillments", exc_info=True)

        return [
            {**row, "orders": orders.get(row["order_id"]), "items": items.get(row["item_id"])}
            for row in rows
        ]

    def get_fulfillment_stats(self) -> Dict[str, int]:
        stats = {status.value: 0 for status in FulfillmentStatus}
        try:
            rows = self.client.select(FULFILLMENTS, "status")
        except BackendError:
            logger.error("Error fetching fulfillment stats", exc_info=True)
            return stats
        for row in rows:
            status = row.get("status")
            if status in stats:
                stats[status] += 1
        return stats
