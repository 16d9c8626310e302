import os

# Settings are read once at import time, so the test environment goes first
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["BACKEND"] = "sql"
os.environ["SUPABASE_JWT_SECRET"] = "test-secret"
os.environ["CATALOG_CACHE_TTL"] = "60"
os.environ.pop("REDIS_URL", None)

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from bookstore.domain.models import Base
from bookstore.infrastructure.auth import create_access_token
from bookstore.infrastructure.cache import get_cache
from bookstore.infrastructure.db import SessionLocal, engine
from bookstore.infrastructure.table_client import BackendError, SqlTableClient, TableClient

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0)


def fixed_clock():
    return FIXED_NOW


class FailingClient(TableClient):
    """Every query fails the way an unreachable backend would."""

    def select(self, table, columns="*", filters=None, order_by=None, descending=False, limit=None):
        raise BackendError(f"select on '{table}' failed")

    def insert(self, table, values):
        raise BackendError(f"insert on '{table}' failed")

    def update(self, table, values, filters):
        raise BackendError(f"update on '{table}' failed")

    def upsert(self, table, values, on_conflict):
        raise BackendError(f"upsert on '{table}' failed")

    def delete(self, table, filters):
        raise BackendError(f"delete on '{table}' failed")


class StubClient(FailingClient):
    """Serves canned rows per table; writes still fail."""

    def __init__(self, rows):
        self.rows = rows

    def select(self, table, columns="*", filters=None, order_by=None, descending=False, limit=None):
        return list(self.rows.get(table, []))


@pytest.fixture(autouse=True)
def database():
    Base.metadata.create_all(engine)
    get_cache().clear()
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture
def session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(session):
    return SqlTableClient(session)


@pytest.fixture
def api():
    from bookstore.main import app
    return TestClient(app)


def auth_headers(user_id="user-1", email="reader@example.com"):
    return {"Authorization": f"Bearer {create_access_token(user_id, email=email)}"}


def add_item(client, **values):
    row = {
        "name": "The Quiet Shore",
        "author": "A. Writer",
        "price_cents": 1500,
        "stock": 10,
        "active": True,
        "on_sale": False,
    }
    row.update(values)
    return client.insert("items", row)


def add_order(client, lines, user_id="user-1", email="reader@example.com"):
    """Insert an order with ``lines`` of ``(item_id, qty)`` and return its id."""
    order = client.insert("orders", {"user_id": user_id, "customer_email": email})
    for item_id, qty in lines:
        client.insert("order_items", {"order_id": order["id"], "item_id": item_id, "qty": qty, "unit_price_cents": 1000})
    return order["id"]


def make_admin(client, user_id="admin-1", email="admin@example.com"):
    client.insert("profiles", {"id": user_id, "email": email, "role": "admin"})
    return user_id
