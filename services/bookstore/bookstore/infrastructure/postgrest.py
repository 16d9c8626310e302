"""``TableClient`` for the hosted backend's REST endpoint (PostgREST dialect)."""

from datetime import date, datetime
from typing import Any, List, Optional, Tuple

import httpx
from fastapi.encoders import jsonable_encoder

from .table_client import BackendError, TableClient, parse_columns, parse_filter_key

_DEFAULT_TIMEOUT = 10.0


def _literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _in_list(values) -> str:
    parts = []
    for value in values:
        text = _literal(value)
        parts.append(f'"{text}"' if isinstance(value, str) else text)
    return "(" + ",".join(parts) + ")"


class PostgrestTableClient(TableClient):
    def __init__(
        self,
        base_url: str,
        api_key: str,
        http_client: Optional[httpx.Client] = None,
        timeout: float = _DEFAULT_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/") + "/rest/v1"
        self.http = http_client or httpx.Client(timeout=timeout)
        self.headers = {"apikey": api_key, "Authorization": f"Bearer {api_key}"}

    def close(self):
        self.http.close()

    def _filter_params(self, filters) -> List[Tuple[str, str]]:
        params = []
        for key, value in (filters or {}).items():
            column, op = parse_filter_key(key)
            if value is None and op in ("eq", "neq"):
                expr = "is.null" if op == "eq" else "not.is.null"
            elif op == "in":
                expr = f"in.{_in_list(value)}"
            else:
                expr = f"{op}.{_literal(value)}"
            params.append((column, expr))
        return params

    def _request(self, method: str, table: str, params=None, payload=None, prefer: Optional[str] = None) -> list:
        headers = dict(self.headers)
        if prefer:
            headers["Prefer"] = prefer
        body = jsonable_encoder(payload) if payload is not None else None
        try:
            response = self.http.request(
                method, f"{self.base_url}/{table}", params=params or [], json=body, headers=headers
            )
        except httpx.HTTPError as exc:
            raise BackendError(f"{method} {table} failed: {exc}") from exc
        if response.status_code >= 400:
            raise BackendError(f"{method} {table} returned {response.status_code}: {response.text}")
        if response.status_code == 204 or not response.content:
            return []
        return response.json()

    def select(self, table, columns="*", filters=None, order_by=None, descending=False, limit=None):
        names = parse_columns(columns)
        params = [("select", ",".join(names) if names else "*")]
        params.extend(self._filter_params(filters))
        if order_by:
            params.append(("order", f"{order_by}.{'desc' if descending else 'asc'}"))
        if limit is not None:
            params.append(("limit", str(limit)))
        return self._request("GET", table, params=params)

    def insert(self, table, values):
        rows = self._request("POST", table, payload=values, prefer="return=representation")
        if not rows:
            raise BackendError(f"insert on '{table}' returned no row")
        return rows[0]

    def update(self, table, values, filters):
        if not filters:
            raise ValueError("update requires at least one filter")
        return self._request(
            "PATCH", table, params=self._filter_params(filters), payload=values, prefer="return=representation"
        )

    def upsert(self, table, values, on_conflict):
        rows = self._request(
            "POST",
            table,
            params=[("on_conflict", ",".join(on_conflict))],
            payload=values,
            prefer="resolution=merge-duplicates,return=representation",
        )
        if not rows:
            raise BackendError(f"upsert on '{table}' returned no row")
        return rows[0]

    def delete(self, table, filters):
        if not filters:
            raise ValueError("delete requires at least one filter")
        rows = self._request("DELETE", table, params=self._filter_params(filters), prefer="return=representation")
        return len(rows)
