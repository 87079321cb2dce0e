"""HTTP client for a remote record service."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from .errors import RecordStoreError
from .record_store import RecordStore, Response

logger = logging.getLogger(__name__)


class HttpRecordStore(RecordStore):
    """
    Record store backed by a remote record service.

    Every call is a single JSON request; there is no retry. Transport errors
    and non-2xx responses raise RecordStoreError.
    """

    name = "http"

    def __init__(
        self,
        base_url: str,
        *,
        project_id: Optional[str] = None,
        public_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers=self._get_headers(project_id, public_key),
            transport=transport,
        )

    @staticmethod
    def _get_headers(project_id: Optional[str], public_key: Optional[str]) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if project_id:
            headers["X-Project-Id"] = project_id
        if public_key:
            headers["Authorization"] = f"Bearer {public_key}"
        return headers

    def _request(self, method: str, path: str, payload: Dict[str, Any]) -> Response:
        try:
            response = self._client.request(method, path, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error("Record store %s %s failed with HTTP %s", method, path, e.response.status_code)
            raise RecordStoreError(
                f"Record store returned HTTP {e.response.status_code}",
                detail=e.response.text,
            ) from e
        except httpx.RequestError as e:
            logger.error("Record store %s %s failed: %s", method, path, e)
            raise RecordStoreError(f"Record store unreachable: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise RecordStoreError("Record store returned a non-JSON body") from e
        if not isinstance(body, dict):
            raise RecordStoreError("Record store returned an unexpected body", detail=body)
        return body

    def fetch_records(self, table: str, params: Dict[str, Any]) -> Response:
        return self._request("POST", f"/tables/{table}/records/query", params)

    def create_record(self, table: str, params: Dict[str, Any]) -> Response:
        return self._request("POST", f"/tables/{table}/records", params)

    def update_record(self, table: str, params: Dict[str, Any]) -> Response:
        return self._request("PUT", f"/tables/{table}/records", params)

    def delete_record(self, table: str, params: Dict[str, Any]) -> Response:
        return self._request("DELETE", f"/tables/{table}/records", params)

    def close(self) -> None:
        self._client.close()
