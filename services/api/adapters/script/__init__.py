# services/api/adapters/script/__init__.py
from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict, List, Optional

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from models.drafts import AttachedFile
from models.row import SerialCounters

from ..base import DocumentStore, StoreError

logger = logging.getLogger(__name__)


class ScriptError(StoreError):
    """The script endpoint answered with an error, a bad status or garbage."""


# ========== Retry decorator for read-only script calls ==========
def retry_script_read(func):
    """
    Retry idempotent GETs (master data, serial lookup) on transport errors.

    Uploads, inserts and counter updates are never retried: the endpoint
    has no idempotency key, so a retry could write twice.
    """
    return retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((httpx.TransportError,)),
        reraise=True,
    )(func)


def _parse_response(resp: httpx.Response, what: str) -> Dict[str, Any]:
    """Turn a script response into its JSON payload, or raise ScriptError."""
    if resp.status_code >= 400:
        raise ScriptError(f"{what} failed: {resp.status_code} - {resp.text[:200]}")

    try:
        payload = resp.json()
    except ValueError:
        raise ScriptError(f"{what} returned a non-JSON response")

    if not isinstance(payload, dict):
        raise ScriptError(f"{what} returned an unexpected payload")

    if not payload.get("success"):
        raise ScriptError(str(payload.get("error") or f"{what} failed"))

    return payload


class ScriptAdapter(DocumentStore):
    """
    Talks to the deployed Apps Script web app.

    All traffic goes to a single /exec URL; the `action` parameter selects
    what the script does. Apps Script answers POSTs with a redirect, so
    redirects are followed.
    """

    backend_name = "script"

    def __init__(
        self,
        script_url: Optional[str],
        *,
        timeout: float = 120.0,
        documents_sheet: str = "Documents",
        master_sheet: str = "Master",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not script_url:
            raise ValueError("ScriptAdapter requires SCRIPT_URL")

        self.script_url = script_url
        self.timeout = timeout
        self.documents_sheet = documents_sheet
        self.master_sheet = master_sheet
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            transport=self._transport,
        )

    async def _get(self, params: Dict[str, Any], what: str) -> Dict[str, Any]:
        async with self._client() as client:
            resp = await client.get(self.script_url, params=params)
        return _parse_response(resp, what)

    async def _post_form(self, data: Dict[str, str], what: str) -> Dict[str, Any]:
        async with self._client() as client:
            resp = await client.post(self.script_url, data=data)
        return _parse_response(resp, what)

    # ========== DocumentStore API ==========

    @retry_script_read
    async def fetch_master(self) -> List[List[str]]:
        payload = await self._get(
            {"sheet": self.master_sheet, "action": "fetch"},
            "Fetch master data",
        )
        rows = payload.get("data")
        if not isinstance(rows, list) or not all(isinstance(r, list) for r in rows):
            raise ScriptError("Master data response has no rows")
        return rows

    @retry_script_read
    async def get_next_serials(self) -> SerialCounters:
        payload = await self._get({"action": "getNextSerials"}, "Fetch serial numbers")
        try:
            return SerialCounters.from_dict(payload.get("nextSerials") or {})
        except ValueError as e:
            raise ScriptError(str(e)) from e

    async def update_serials(self, counters: SerialCounters) -> None:
        params: Dict[str, Any] = {"action": "updateSerials"}
        params.update(counters.to_dict())
        await self._get(params, "Update serial numbers")

    async def upload_file(self, file: AttachedFile, folder_id: str) -> str:
        payload = await self._post_form(
            {
                "action": "uploadImage",
                "folderId": folder_id,
                "fileName": file.name,
                "base64Data": base64.b64encode(file.content).decode("ascii"),
                "mimeType": file.mime_type,
            },
            f"Upload of {file.name}",
        )
        url = payload.get("fileUrl")
        if not url:
            raise ScriptError(f"Upload of {file.name} returned no fileUrl")
        return str(url)

    async def insert_row(self, row: List[str]) -> None:
        logger.debug(f"Inserting row with {len(row)} columns into {self.documents_sheet}")
        await self._post_form(
            {
                "sheetName": self.documents_sheet,
                "action": "insert",
                "rowData": json.dumps(row),
            },
            "Insert document",
        )

    async def ping(self) -> None:
        await self.fetch_master()
