from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from threading import RLock
from typing import Any, Dict, List, Optional

from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
Response = Dict[str, Any]

AUDIT_FIELDS = ("CreatedOn", "CreatedBy", "ModifiedOn", "ModifiedBy")


# PUBLIC_INTERFACE
class RecordStore(ABC):
    """
    Abstract contract for the external record store.

    Payload and response shapes follow the record service SDK:
    - fetch_records(table, {"fields", "orderBy", "pagingInfo"}) -> {"success", "data": [...]}
    - create_record / update_record(table, {"records": [...]}) -> {"success", "results": [{"success", "data"}]}
    - delete_record(table, {"RecordIds": [...]}) -> {"success"}
    """

    name: str = "abstract"

    @abstractmethod
    def fetch_records(self, table: str, params: Dict[str, Any]) -> Response:
        """Return a page of records from table."""

    @abstractmethod
    def create_record(self, table: str, params: Dict[str, Any]) -> Response:
        """Persist new records and return them with Id and audit fields."""

    @abstractmethod
    def update_record(self, table: str, params: Dict[str, Any]) -> Response:
        """Replace the writable fields of existing records, matched by Id."""

    @abstractmethod
    def delete_record(self, table: str, params: Dict[str, Any]) -> Response:
        """Delete records by Id."""

    def close(self) -> None:
        """Release any resources held by the store."""


def project_fields(record: Record, fields: Optional[List[str]]) -> Record:
    """Return a copy of record restricted to Id plus the requested fields."""
    if not fields:
        return dict(record)
    projected: Record = {"Id": record.get("Id")}
    for f in fields:
        if f in record:
            projected[f] = record[f]
    return projected


def order_and_page(records: List[Record], params: Dict[str, Any]) -> List[Record]:
    """
    Apply orderBy and pagingInfo from fetch params.

    Records missing the ordering field sort after those that have it.
    """
    items = list(records)
    for order in reversed(params.get("orderBy") or []):
        field = order.get("field")
        if not field:
            continue
        reverse = str(order.get("direction", "asc")).lower() == "desc"
        present = [r for r in items if r.get(field) is not None]
        missing = [r for r in items if r.get(field) is None]
        present.sort(key=lambda r: r[field], reverse=reverse)
        items = present + missing

    paging = params.get("pagingInfo") or {}
    offset = max(int(paging.get("offset", 0)), 0)
    limit = paging.get("limit")
    if limit is None:
        return items[offset:]
    return items[offset : offset + max(int(limit), 0)]


def _result(success: bool, data: Optional[Record] = None, message: Optional[str] = None) -> Dict[str, Any]:
    entry: Dict[str, Any] = {"success": success}
    if data is not None:
        entry["data"] = data
    if message is not None:
        entry["message"] = message
    return entry


class InMemoryRecordStore(RecordStore):
    """
    Thread-safe in-memory record store suitable for testing and default runtime.
    """

    name = "memory"

    def __init__(self, actor: str = "system") -> None:
        self._lock = RLock()
        self._tables: Dict[str, Dict[int, Record]] = {}
        self._next_id = 1
        self._actor = actor

    def _now(self) -> str:
        return datetime.now().isoformat()

    def _allocate_id(self) -> int:
        with self._lock:
            i = self._next_id
            self._next_id += 1
            return i

    def _table(self, table: str) -> Dict[int, Record]:
        return self._tables.setdefault(table, {})

    def fetch_records(self, table: str, params: Dict[str, Any]) -> Response:
        with self._lock:
            rows = [dict(r) for r in self._table(table).values()]
        page = order_and_page(rows, params)
        fields = params.get("fields")
        return {"success": True, "data": [project_fields(r, fields) for r in page]}

    def create_record(self, table: str, params: Dict[str, Any]) -> Response:
        results = []
        with self._lock:
            for incoming in params.get("records") or []:
                now = self._now()
                record = {k: v for k, v in incoming.items() if k != "Id" and k not in AUDIT_FIELDS}
                record.update(
                    {
                        "Id": self._allocate_id(),
                        "CreatedOn": now,
                        "CreatedBy": self._actor,
                        "ModifiedOn": now,
                        "ModifiedBy": self._actor,
                    }
                )
                self._table(table)[record["Id"]] = record
                results.append(_result(True, dict(record)))
        return {"success": bool(results), "results": results}

    def update_record(self, table: str, params: Dict[str, Any]) -> Response:
        results = []
        with self._lock:
            rows = self._table(table)
            for incoming in params.get("records") or []:
                existing = rows.get(incoming.get("Id"))  # type: ignore[arg-type]
                if existing is None:
                    results.append(_result(False, message=f"Record {incoming.get('Id')!r} not found"))
                    continue
                updated = dict(existing)
                updated.update({k: v for k, v in incoming.items() if k not in AUDIT_FIELDS})
                updated["ModifiedOn"] = self._now()
                updated["ModifiedBy"] = self._actor
                rows[updated["Id"]] = updated
                results.append(_result(True, dict(updated)))
        success = bool(results) and all(r["success"] for r in results)
        return {"success": success, "results": results}

    def delete_record(self, table: str, params: Dict[str, Any]) -> Response:
        with self._lock:
            rows = self._table(table)
            ids = list(params.get("RecordIds") or [])
            missing = [i for i in ids if i not in rows]
            if missing or not ids:
                return {"success": False, "message": f"Records not found: {missing}"}
            for i in ids:
                rows.pop(i, None)
        return {"success": True}


# PUBLIC_INTERFACE
def get_record_store(settings: Optional[Settings] = None) -> RecordStore:
    """
    Factory to return the configured record store based on settings.
    - memory: InMemoryRecordStore
    - sqlite: SQLiteRecordStore (local durable file)
    - http: HttpRecordStore (remote record service, requires RECORD_STORE_URL)
    """
    settings = settings or get_settings()
    if settings.record_store_backend == "sqlite":
        from .db import SQLiteRecordStore

        return SQLiteRecordStore(settings.sqlite_db_path)
    if settings.record_store_backend == "http":
        from .http_store import HttpRecordStore

        if not settings.record_store_url:
            raise ValueError("RECORD_STORE_URL is required when RECORD_STORE_BACKEND=http")
        return HttpRecordStore(
            settings.record_store_url,
            project_id=settings.record_store_project_id,
            public_key=settings.record_store_public_key,
            timeout=settings.record_store_timeout,
        )
    logger.debug("Using in-memory record store")
    return InMemoryRecordStore()
