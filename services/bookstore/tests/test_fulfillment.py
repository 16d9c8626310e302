from datetime import datetime, timedelta, timezone

import pytest

from bookstore.application.fulfillment import CancellationReason, FulfillmentService
from bookstore.application.schemas import FulfillmentCreate, FulfillmentUpdate
from bookstore.infrastructure.table_client import BackendError, SqlTableClient
from conftest import FIXED_NOW, FailingClient, StubClient, add_item, add_order, fixed_clock


@pytest.fixture
def service(client):
    return FulfillmentService(client, clock=fixed_clock)


@pytest.fixture
def order_id(client):
    first = add_item(client, name="First Light")
    second = add_item(client, name="Second Wind")
    return add_order(client, [(first["id"], 1), (second["id"], 2)])


def statuses(client, order_id):
    return [row["status"] for row in client.select("order_fulfillments", filters={"order_id": order_id})]


def test_create_fulfillment_defaults(service, order_id):
    row = service.create_fulfillment(FulfillmentCreate(order_id=order_id, item_id=1))
    assert row["status"] == "pending"
    assert row["shipped_qty"] == 0
    assert row["tracking_number"] is None


def test_create_fulfillments_for_order_one_per_item(service, client, order_id):
    assert service.create_fulfillments_for_order(order_id) is True
    rows = client.select("order_fulfillments", filters={"order_id": order_id})
    assert len(rows) == 2
    assert all(row["status"] == "pending" and row["shipped_qty"] == 0 for row in rows)
    assert sorted(row["item_id"] for row in rows) == [1, 2]


def test_create_fulfillments_for_order_without_items(service, client):
    order_id = add_order(client, [])
    report = service.create_fulfillments_report(order_id)
    assert report.complete
    assert (report.expected, report.created) == (0, 0)
    assert service.create_fulfillments_for_order(order_id) is True


class FlakyInsertClient:
    """Delegates to a real client but fails fulfillment inserts after ``allowed`` successes."""

    def __init__(self, inner, allowed):
        self.inner = inner
        self.allowed = allowed

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def insert(self, table, values):
        if table == "order_fulfillments":
            if self.allowed == 0:
                raise BackendError("insert on 'order_fulfillments' failed")
            self.allowed -= 1
        return self.inner.insert(table, values)


def test_partial_creation_is_reported_and_kept(client, order_id):
    service = FulfillmentService(FlakyInsertClient(client, allowed=1), clock=fixed_clock)
    report = service.create_fulfillments_report(order_id)
    assert not report.complete
    assert (report.expected, report.created) == (2, 1)
    # no compensation: the row that made it stays
    assert len(client.select("order_fulfillments", filters={"order_id": order_id})) == 1


def test_can_cancel_when_all_pending_and_unshipped(service, order_id):
    service.create_fulfillments_for_order(order_id)
    assert service.can_cancel_order(order_id) is True
    assert service.check_cancellation(order_id).reason == CancellationReason.ALLOWED


def test_cannot_cancel_without_fulfillments(service, order_id):
    assert service.can_cancel_order(order_id) is False
    assert service.check_cancellation(order_id).reason == CancellationReason.NO_FULFILLMENTS


def test_cannot_cancel_once_any_line_moves_past_pending(service, client, order_id):
    service.create_fulfillments_for_order(order_id)
    first = service.get_fulfillments_by_order_id(order_id)[0]
    service.update_fulfillment(first["id"], FulfillmentUpdate(status="processing"))
    assert service.can_cancel_order(order_id) is False
    assert service.check_cancellation(order_id).reason == CancellationReason.NOT_PENDING


def test_cannot_cancel_pending_line_with_shipped_quantity(service, client, order_id):
    service.create_fulfillments_for_order(order_id)
    first = service.get_fulfillments_by_order_id(order_id)[0]
    client.update("order_fulfillments", {"shipped_qty": 1}, {"id": first["id"]})
    assert service.can_cancel_order(order_id) is False
    assert service.check_cancellation(order_id).reason == CancellationReason.ALREADY_SHIPPED


def test_cancel_order_cancels_every_line(service, client, order_id):
    service.create_fulfillments_for_order(order_id)
    assert service.cancel_order(order_id) is True
    assert statuses(client, order_id) == ["cancelled", "cancelled"]
    # a cancelled order no longer passes the precondition
    assert service.cancel_order(order_id) is False


def test_cancel_order_refused_leaves_rows_untouched(service, client, order_id):
    service.create_fulfillments_for_order(order_id)
    first = service.get_fulfillments_by_order_id(order_id)[0]
    service.mark_as_shipped(first["id"], "TRACK1")
    outcome = service.try_cancel_order(order_id)
    assert not outcome.ok
    assert outcome.reason == CancellationReason.NOT_PENDING
    assert sorted(statuses(client, order_id)) == ["pending", "shipped"]


class UpdateOutageClient(SqlTableClient):
    """Reads and inserts work; every update fails."""

    def update(self, table, values, filters):
        raise BackendError(f"update on '{table}' failed")


def test_cancel_order_update_failure_is_reported(client, session, order_id):
    FulfillmentService(client, clock=fixed_clock).create_fulfillments_for_order(order_id)
    service = FulfillmentService(UpdateOutageClient(session), clock=fixed_clock)
    assert service.can_cancel_order(order_id) is True
    assert service.cancel_order(order_id) is False
    outcome = service.try_cancel_order(order_id)
    assert outcome.reason == CancellationReason.BACKEND_ERROR
    assert outcome.fulfillment_count == 2
    assert statuses(client, order_id) == ["pending", "pending"]


def test_mark_as_shipped(service, order_id):
    row = service.create_fulfillment(FulfillmentCreate(order_id=order_id, item_id=1))
    shipped = service.mark_as_shipped(row["id"], "TRACK123")
    assert shipped["status"] == "shipped"
    assert shipped["tracking_number"] == "TRACK123"
    assert shipped["shipped_at"] == FIXED_NOW
    assert shipped["shipped_qty"] == 0


def test_mark_as_shipped_with_quantity(service, order_id):
    row = service.create_fulfillment(FulfillmentCreate(order_id=order_id, item_id=2))
    shipped = service.mark_as_shipped(row["id"], "TRACK9", shipped_qty=2)
    assert shipped["shipped_qty"] == 2


def test_mark_as_delivered(service, order_id):
    row = service.create_fulfillment(FulfillmentCreate(order_id=order_id, item_id=1))
    assert service.mark_as_delivered(row["id"])["status"] == "delivered"


def test_cancel_fulfillment_is_idempotent(service, order_id):
    row = service.create_fulfillment(FulfillmentCreate(order_id=order_id, item_id=1))
    assert service.cancel_fulfillment(row["id"])["status"] == "cancelled"
    assert service.cancel_fulfillment(row["id"])["status"] == "cancelled"


def test_processing_stamps_fulfilled_at(service, order_id):
    row = service.create_fulfillment(FulfillmentCreate(order_id=order_id, item_id=1))
    updated = service.update_fulfillment(row["id"], FulfillmentUpdate(status="processing", fulfilled_by="ops@example.com"))
    assert updated["status"] == "processing"
    assert updated["fulfilled_at"] == FIXED_NOW
    assert updated["fulfilled_by"] == "ops@example.com"


def test_explicit_timestamp_wins_over_stamp(service, order_id):
    row = service.create_fulfillment(FulfillmentCreate(order_id=order_id, item_id=1))
    when = datetime(2024, 4, 30, 9, 30, tzinfo=timezone(timedelta(hours=2)))
    updated = service.update_fulfillment(row["id"], FulfillmentUpdate(status="shipped", shipped_at=when))
    assert updated["shipped_at"] == datetime(2024, 4, 30, 7, 30)


def test_update_leaves_unset_fields(service, order_id):
    row = service.create_fulfillment(FulfillmentCreate(order_id=order_id, item_id=1, tracking_number="KEEP"))
    updated = service.update_fulfillment(row["id"], FulfillmentUpdate(status="delivered"))
    assert updated["tracking_number"] == "KEEP"
    assert updated["fulfilled_at"] is None
    assert updated["shipped_at"] is None


def test_empty_update_returns_current_row(service, order_id):
    row = service.create_fulfillment(FulfillmentCreate(order_id=order_id, item_id=1))
    assert service.update_fulfillment(row["id"], FulfillmentUpdate())["id"] == row["id"]


def test_update_missing_fulfillment_returns_none(service):
    assert service.update_fulfillment(999, FulfillmentUpdate(status="delivered")) is None


def test_fulfillments_are_listed_oldest_first(service, client, order_id):
    client.insert("order_fulfillments", {"order_id": order_id, "item_id": 2, "created_at": datetime(2024, 1, 2)})
    client.insert("order_fulfillments", {"order_id": order_id, "item_id": 1, "created_at": datetime(2024, 1, 1)})
    assert [row["item_id"] for row in service.get_fulfillments_by_order_id(order_id)] == [1, 2]
    assert len(service.get_fulfillments_by_order_item(order_id, 2)) == 1


def test_stats_count_each_status(service, client, order_id):
    for status in ["pending"] * 3 + ["shipped"] * 2 + ["cancelled"]:
        client.insert("order_fulfillments", {"order_id": order_id, "item_id": 1, "status": status})
    assert service.get_fulfillment_stats() == {
        "pending": 3,
        "processing": 0,
        "shipped": 2,
        "delivered": 0,
        "cancelled": 1,
    }


def test_stats_ignore_unknown_statuses():
    stub = StubClient({"order_fulfillments": [{"status": "pending"}, {"status": "returned"}]})
    stats = FulfillmentService(stub).get_fulfillment_stats()
    assert stats["pending"] == 1
    assert "returned" not in stats


def test_pending_fulfillments_are_enriched(service, client):
    item = add_item(client, name="Harbor Lights", author="M. Keel", img_url="/harbor.jpg")
    order_id = add_order(client, [(item["id"], 1)], email="buyer@example.com")
    service.create_fulfillments_for_order(order_id)
    client.insert("order_fulfillments", {"order_id": order_id, "item_id": item["id"], "status": "shipped"})

    pending = service.get_pending_fulfillments()
    assert len(pending) == 1
    assert pending[0]["orders"]["customer_email"] == "buyer@example.com"
    assert pending[0]["orders"]["id"] == order_id
    assert pending[0]["items"] == {"name": "Harbor Lights", "img_url": "/harbor.jpg", "author": "M. Keel"}


def test_pending_fulfillments_with_missing_parents(service, client):
    client.insert("order_fulfillments", {"order_id": 404, "item_id": 405})
    pending = service.get_pending_fulfillments()
    assert pending[0]["orders"] is None
    assert pending[0]["items"] is None


def test_backend_failures_degrade_to_sentinels():
    service = FulfillmentService(FailingClient())
    assert service.create_fulfillment(FulfillmentCreate(order_id=1, item_id=1)) is None
    assert service.get_fulfillments_by_order_id(1) == []
    assert service.get_fulfillments_by_order_item(1, 1) == []
    assert service.update_fulfillment(1, FulfillmentUpdate(status="shipped")) is None
    assert service.mark_as_shipped(1, "TRACK") is None
    assert service.can_cancel_order(1) is False
    assert service.cancel_order(1) is False
    assert service.create_fulfillments_for_order(1) is False
    assert service.get_pending_fulfillments() == []
    assert service.get_fulfillment_stats() == {
        "pending": 0,
        "processing": 0,
        "shipped": 0,
        "delivered": 0,
        "cancelled": 0,
    }


def test_backend_failure_is_distinguishable_from_refusal():
    service = FulfillmentService(FailingClient())
    assert service.check_cancellation(7).reason == CancellationReason.BACKEND_ERROR
    assert service.create_fulfillments_report(7).backend_error


def test_enrichment_failure_still_returns_rows():
    class EnrichFails(StubClient):
        def select(self, table, columns="*", filters=None, order_by=None, descending=False, limit=None):
            if table != "order_fulfillments":
                raise BackendError("down")
            return super().select(table)

    stub = EnrichFails({"order_fulfillments": [{"id": 1, "order_id": 2, "item_id": 3, "status": "pending"}]})
    rows = FulfillmentService(stub).get_pending_fulfillments()
    assert rows == [{"id": 1, "order_id": 2, "item_id": 3, "status": "pending", "orders": None, "items": None}]
