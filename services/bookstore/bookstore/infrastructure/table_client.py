"""Table-query interface to the storefront's backing store.

Services never build SQL or HTTP requests themselves; they describe a query
as a table name, an optional column projection and a filter mapping, and hand
it to a ``TableClient``. Filter keys are column names, optionally suffixed
with an operator: ``{"order_id": 7, "stock__gt": 0, "id__in": [1, 2]}``.

Every driver or transport failure surfaces as ``BackendError`` so callers have
a single exception type to handle.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from sqlalchemy import MetaData, Table, and_, or_, select
from sqlalchemy import delete as sa_delete
from sqlalchemy import insert as sa_insert
from sqlalchemy import update as sa_update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bookstore.domain.models import Base

Row = Dict[str, Any]
Filters = Dict[str, Any]
Columns = Union[str, Sequence[str]]

FILTER_OPERATORS = ("eq", "neq", "gt", "gte", "lt", "lte", "ilike", "in")


class BackendError(Exception):
    """Raised when the backing store cannot complete a query."""


def parse_filter_key(key: str) -> Tuple[str, str]:
    """Split ``"column__op"`` into ``("column", "op")``; a bare column means ``eq``."""
    column, sep, op = key.partition("__")
    if not sep:
        return key, "eq"
    if op not in FILTER_OPERATORS:
        raise ValueError(f"Unsupported filter operator '{op}' in '{key}'")
    return column, op


def parse_columns(columns: Columns) -> Optional[List[str]]:
    """Normalize a projection. ``"*"`` (all columns) becomes ``None``."""
    if isinstance(columns, str):
        if columns.strip() == "*":
            return None
        return [name.strip() for name in columns.split(",") if name.strip()]
    return list(columns)


class TableClient(ABC):
    """Minimal CRUD surface shared by every backend implementation."""

    @abstractmethod
    def select(
        self,
        table: str,
        columns: Columns = "*",
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Row]:
        ...

    def select_one(self, table: str, columns: Columns = "*", filters: Optional[Filters] = None) -> Optional[Row]:
        rows = self.select(table, columns=columns, filters=filters, limit=1)
        return rows[0] if rows else None

    @abstractmethod
    def insert(self, table: str, values: Row) -> Row:
        ...

    @abstractmethod
    def update(self, table: str, values: Row, filters: Filters) -> List[Row]:
        """Apply ``values`` to every row matching ``filters``; return the updated rows."""

    @abstractmethod
    def upsert(self, table: str, values: Row, on_conflict: Sequence[str]) -> Row:
        ...

    @abstractmethod
    def delete(self, table: str, filters: Filters) -> int:
        """Delete matching rows and return how many were removed."""


class SqlTableClient(TableClient):
    """``TableClient`` over a SQLAlchemy session, using the declarative metadata."""

    def __init__(self, db: Session, metadata: MetaData = Base.metadata):
        self.db = db
        self.metadata = metadata

    @contextmanager
    def _translate_errors(self, action: str, table: str):
        try:
            yield
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise BackendError(f"{action} on '{table}' failed: {exc}") from exc

    def _table(self, name: str) -> Table:
        try:
            return self.metadata.tables[name]
        except KeyError:
            raise BackendError(f"Unknown table '{name}'") from None

    def _column(self, table: Table, name: str):
        try:
            return table.c[name]
        except KeyError:
            raise BackendError(f"Unknown column '{name}' on '{table.name}'") from None

    def _where(self, table: Table, filters: Optional[Filters]) -> list:
        clauses = []
        for key, value in (filters or {}).items():
            name, op = parse_filter_key(key)
            column = self._column(table, name)
            if op == "eq":
                clauses.append(column.is_(None) if value is None else column == value)
            elif op == "neq":
                clauses.append(column.is_not(None) if value is None else column != value)
            elif op == "gt":
                clauses.append(column > value)
            elif op == "gte":
                clauses.append(column >= value)
            elif op == "lt":
                clauses.append(column < value)
            elif op == "lte":
                clauses.append(column <= value)
            elif op == "ilike":
                clauses.append(column.ilike(value))
            elif op == "in":
                clauses.append(column.in_(list(value)))
        return clauses

    def _key_match(self, table: Table, keys: Iterable[tuple]):
        pk_cols = list(table.primary_key.columns)
        keys = list(keys)
        if len(pk_cols) == 1:
            return pk_cols[0].in_([key[0] for key in keys])
        return or_(*[and_(*[col == value for col, value in zip(pk_cols, key)]) for key in keys])

    def select(self, table, columns="*", filters=None, order_by=None, descending=False, limit=None):
        sa_table = self._table(table)
        names = parse_columns(columns)
        if names:
            stmt = select(*[self._column(sa_table, name) for name in names])
        else:
            stmt = select(sa_table)
        stmt = stmt.where(*self._where(sa_table, filters))
        if order_by:
            column = self._column(sa_table, order_by)
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._translate_errors("select", table):
            rows = self.db.execute(stmt).mappings().all()
        return [dict(row) for row in rows]

    def insert(self, table, values):
        sa_table = self._table(table)
        with self._translate_errors("insert", table):
            result = self.db.execute(sa_insert(sa_table).values(**values))
            key = tuple(result.inserted_primary_key)
            self.db.commit()
            row = self.db.execute(select(sa_table).where(self._key_match(sa_table, [key]))).mappings().first()
        if row is None:
            raise BackendError(f"insert on '{table}' returned no row")
        return dict(row)

    def update(self, table, values, filters):
        if not filters:
            raise ValueError("update requires at least one filter")
        sa_table = self._table(table)
        where = self._where(sa_table, filters)
        with self._translate_errors("update", table):
            pk_cols = list(sa_table.primary_key.columns)
            keys = [tuple(row) for row in self.db.execute(select(*pk_cols).where(*where)).all()]
            if not keys:
                return []
            self.db.execute(sa_update(sa_table).where(*where).values(**values))
            self.db.commit()
            rows = self.db.execute(select(sa_table).where(self._key_match(sa_table, keys))).mappings().all()
        return [dict(row) for row in rows]

    def upsert(self, table, values, on_conflict):
        conflict = {column: values[column] for column in on_conflict}
        existing = self.select_one(table, filters=conflict)
        if existing is None:
            return self.insert(table, values)
        changes = {k: v for k, v in values.items() if k not in conflict}
        if not changes:
            return existing
        updated = self.update(table, changes, conflict)
        return updated[0] if updated else existing

    def delete(self, table, filters):
        if not filters:
            raise ValueError("delete requires at least one filter")
        sa_table = self._table(table)
        with self._translate_errors("delete", table):
            result = self.db.execute(sa_delete(sa_table).where(*self._where(sa_table, filters)))
            self.db.commit()
        return result.rowcount
