"""Read-only GraphQL view of the fulfillment dashboard (admin only)."""

from datetime import datetime
from typing import List, Optional

import strawberry
from fastapi import Depends
from strawberry.fastapi import GraphQLRouter
from strawberry.types import Info

from bookstore.application.clock import to_naive_utc
from bookstore.application.fulfillment import FulfillmentService
from bookstore.infrastructure.auth import AuthUser

from .dependencies import get_fulfillment_service, require_admin

TIMESTAMPS = ("fulfilled_at", "shipped_at", "created_at")


@strawberry.type
class Fulfillment:
    id: int
    order_id: int
    item_id: int
    status: str
    shipped_qty: int
    tracking_number: Optional[str] = None
    fulfilled_by: Optional[str] = None
    fulfilled_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: dict) -> "Fulfillment":
        values = {name: row.get(name) for name in cls.__annotations__}
        for name in TIMESTAMPS:
            values[name] = to_naive_utc(values[name])
        return cls(**values)


@strawberry.type
class PendingFulfillment:
    fulfillment: Fulfillment
    customer_email: Optional[str] = None
    ordered_at: Optional[datetime] = None
    item_name: Optional[str] = None
    item_author: Optional[str] = None
    item_img_url: Optional[str] = None


@strawberry.type
class FulfillmentStats:
    pending: int
    processing: int
    shipped: int
    delivered: int
    cancelled: int


@strawberry.type
class CancellationCheck:
    order_id: int
    ok: bool
    reason: str


def _service(info: Info) -> FulfillmentService:
    return info.context["fulfillments"]


@strawberry.type
class Query:
    @strawberry.field
    def fulfillment_stats(self, info: Info) -> FulfillmentStats:
        return FulfillmentStats(**_service(info).get_fulfillment_stats())

    @strawberry.field
    def pending_fulfillments(self, info: Info, take: Optional[int] = None) -> List[PendingFulfillment]:
        rows = _service(info).get_pending_fulfillments()
        if take is not None and take >= 0:
            rows = rows[:take]
        result = []
        for row in rows:
            order = row.get("orders") or {}
            item = row.get("items") or {}
            result.append(PendingFulfillment(
                fulfillment=Fulfillment.from_row(row),
                customer_email=order.get("customer_email"),
                ordered_at=to_naive_utc(order.get("created_at")),
                item_name=item.get("name"),
                item_author=item.get("author"),
                item_img_url=item.get("img_url"),
            ))
        return result

    @strawberry.field
    def order_fulfillments(self, info: Info, order_id: int) -> List[Fulfillment]:
        return [Fulfillment.from_row(row) for row in _service(info).get_fulfillments_by_order_id(order_id)]

    @strawberry.field
    def can_cancel_order(self, info: Info, order_id: int) -> CancellationCheck:
        outcome = _service(info).check_cancellation(order_id)
        return CancellationCheck(order_id=order_id, ok=outcome.ok, reason=outcome.reason.value)


schema = strawberry.Schema(query=Query)


def _gql_context_getter(
    user: AuthUser = Depends(require_admin),
    fulfillments: FulfillmentService = Depends(get_fulfillment_service),
):
    return {"user": user, "fulfillments": fulfillments}


graphql_app = GraphQLRouter(schema, graphql_ide="graphiql", context_getter=_gql_context_getter)
