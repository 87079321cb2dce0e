from __future__ import annotations

import json
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Generator, List

from .record_store import AUDIT_FIELDS, Record, RecordStore, Response, order_and_page, project_fields


@dataclass(frozen=True)
class _Cols:
    table: str = "records"
    id: str = "id"
    table_name: str = "table_name"
    body: str = "body"
    created_on: str = "created_on"
    modified_on: str = "modified_on"


_COLS = _Cols()


class SQLiteRecordStore(RecordStore):
    """
    Lightweight SQLite record store. Each record is kept as a JSON body keyed
    by (table_name, id); ids are allocated by SQLite and shared across tables.
    """

    name = "sqlite"

    def __init__(self, db_path: str, actor: str = "system") -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._actor = actor
        self._init_db()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_COLS.table} (
                    {_COLS.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                    {_COLS.table_name} TEXT NOT NULL,
                    {_COLS.body} TEXT NOT NULL,
                    {_COLS.created_on} TEXT NOT NULL,
                    {_COLS.modified_on} TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_{_COLS.table_name} "
                f"ON {_COLS.table}({_COLS.table_name})"
            )

    def _row_to_record(self, row: sqlite3.Row) -> Record:
        record: Record = json.loads(row[_COLS.body])
        record["Id"] = int(row[_COLS.id])
        return record

    def _get(self, conn: sqlite3.Connection, table: str, record_id: Any) -> sqlite3.Row:
        return conn.execute(
            f"SELECT * FROM {_COLS.table} WHERE {_COLS.table_name} = ? AND {_COLS.id} = ?",
            (table, record_id),
        ).fetchone()

    def fetch_records(self, table: str, params: Dict[str, Any]) -> Response:
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM {_COLS.table} WHERE {_COLS.table_name} = ?", (table,)
            ).fetchall()
        records = [self._row_to_record(r) for r in rows]
        page = order_and_page(records, params)
        fields = params.get("fields")
        return {"success": True, "data": [project_fields(r, fields) for r in page]}

    def create_record(self, table: str, params: Dict[str, Any]) -> Response:
        results: List[Dict[str, Any]] = []
        with self._conn() as conn:
            for incoming in params.get("records") or []:
                now = datetime.now().isoformat()
                body = {k: v for k, v in incoming.items() if k != "Id" and k not in AUDIT_FIELDS}
                body.update({"CreatedOn": now, "CreatedBy": self._actor, "ModifiedOn": now, "ModifiedBy": self._actor})
                cur = conn.execute(
                    f"""
                    INSERT INTO {_COLS.table} ({_COLS.table_name}, {_COLS.body}, {_COLS.created_on}, {_COLS.modified_on})
                    VALUES (?, ?, ?, ?)
                    """,
                    (table, json.dumps(body), now, now),
                )
                row = self._get(conn, table, cur.lastrowid)
                assert row is not None
                results.append({"success": True, "data": self._row_to_record(row)})
        return {"success": bool(results), "results": results}

    def update_record(self, table: str, params: Dict[str, Any]) -> Response:
        results: List[Dict[str, Any]] = []
        with self._conn() as conn:
            for incoming in params.get("records") or []:
                row = self._get(conn, table, incoming.get("Id"))
                if not row:
                    results.append({"success": False, "message": f"Record {incoming.get('Id')!r} not found"})
                    continue
                current = self._row_to_record(row)
                current.update({k: v for k, v in incoming.items() if k not in AUDIT_FIELDS})
                now = datetime.now().isoformat()
                current["ModifiedOn"] = now
                current["ModifiedBy"] = self._actor
                body = {k: v for k, v in current.items() if k != "Id"}
                conn.execute(
                    f"UPDATE {_COLS.table} SET {_COLS.body} = ?, {_COLS.modified_on} = ? WHERE {_COLS.id} = ?",
                    (json.dumps(body), now, row[_COLS.id]),
                )
                results.append({"success": True, "data": current})
        success = bool(results) and all(r["success"] for r in results)
        return {"success": success, "results": results}

    def delete_record(self, table: str, params: Dict[str, Any]) -> Response:
        ids = list(params.get("RecordIds") or [])
        if not ids:
            return {"success": False, "message": "No record ids given"}
        with self._conn() as conn:
            missing = [i for i in ids if not self._get(conn, table, i)]
            if missing:
                return {"success": False, "message": f"Records not found: {missing}"}
            conn.executemany(
                f"DELETE FROM {_COLS.table} WHERE {_COLS.table_name} = ? AND {_COLS.id} = ?",
                [(table, i) for i in ids],
            )
        return {"success": True}
