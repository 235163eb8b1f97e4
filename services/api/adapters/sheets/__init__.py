# services/api/adapters/sheets/__init__.py
from __future__ import annotations

import json
import logging
from io import BytesIO
from typing import Any, Callable, List, Optional

import gspread
from fastapi.concurrency import run_in_threadpool
from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build
from googleapiclient.http import MediaIoBaseUpload
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from models.drafts import AttachedFile
from models.row import DOCUMENTS_HEADER, SerialCounters

from ..base import DocumentStore, StoreError

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    # Uploads land in a folder shared with the service account, which
    # drive.file alone does not cover.
    "https://www.googleapis.com/auth/drive",
]

MASTER_HEADER = ["Document Type", "Category"]
SERIALS_HEADER = ["personal", "company", "director"]


def _sa_credentials(google_sa_json: str) -> Credentials:
    """
    Accepts either:
      - absolute/relative path to a service-account JSON file, OR
      - a literal JSON string.
    """
    if not google_sa_json:
        raise ValueError("GOOGLE_SA_JSON is required (path to file or inline JSON).")

    # Try to treat as inline JSON first
    try:
        parsed = json.loads(google_sa_json)
        return Credentials.from_service_account_info(parsed, scopes=SCOPES)
    except json.JSONDecodeError:
        # Not JSON; treat as file path
        return Credentials.from_service_account_file(google_sa_json, scopes=SCOPES)


def _safe_int(v, default=None):
    try:
        if v is None:
            return default
        s = str(v).strip()
        if s == "":
            return default
        # allow "3.0" etc
        return int(float(s))
    except Exception:
        return default


# ========== Retry decorator for Google Sheets API calls ==========
def retry_sheets_api(func):
    """Decorator to retry Sheets API calls with exponential backoff on quota errors."""
    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((gspread.exceptions.APIError,)),
        reraise=True,
    )
    def wrapper(*args, **kwargs):
        return func(*args, **kwargs)

    return wrapper


class SheetsAdapter(DocumentStore):
    """
    Direct Google Sheets + Drive backend.

    Writes the same tabs the Apps Script endpoint writes:
      - Master:    document type / category vocabulary
      - Documents: one fixed-layout row per submitted draft
      - Serials:   next serial per category in row 2
    gspread is synchronous, so every call runs in the thread pool.
    """

    backend_name = "sheets"

    def __init__(
        self,
        google_sa_json: Optional[str],
        spreadsheet_id: Optional[str],
        *,
        master_sheet: str = "Master",
        documents_sheet: str = "Documents",
        serials_sheet: str = "Serials",
    ) -> None:
        if not google_sa_json or not spreadsheet_id:
            raise ValueError("SheetsAdapter requires GOOGLE_SA_JSON and SHEETS_SPREADSHEET_ID")

        self.creds = _sa_credentials(google_sa_json)
        self.gc = gspread.authorize(self.creds)
        self.ss = self.gc.open_by_key(spreadsheet_id)
        self._drive = None

        self.master_sheet = master_sheet
        self.documents_sheet = documents_sheet
        self.serials_sheet = serials_sheet

        self.ws: dict[str, gspread.Worksheet] = {
            master_sheet: self._ensure_worksheet(master_sheet, MASTER_HEADER),
            documents_sheet: self._ensure_worksheet(documents_sheet, DOCUMENTS_HEADER),
            serials_sheet: self._ensure_worksheet(serials_sheet, SERIALS_HEADER),
        }
        self._ensure_serial_row()

    # ========== Worksheet helpers ==========

    def _ensure_worksheet(self, name: str, header: List[str]) -> gspread.Worksheet:
        try:
            ws = self.ss.worksheet(name)
        except gspread.WorksheetNotFound:
            ws = self.ss.add_worksheet(title=name, rows=200, cols=len(header) + 2)

        values = ws.get_values("1:1")
        if not values or not values[0]:
            ws.update("A1", [header])
        return ws

    def _ensure_serial_row(self) -> None:
        ws = self.ws[self.serials_sheet]
        if not ws.row_values(2):
            ws.update("A2", [[1, 1, 1]])

    def _drive_service(self):
        """Lazily construct and cache a Drive v3 client for uploads."""
        if self._drive is None:
            self._drive = build("drive", "v3", credentials=self.creds, cache_discovery=False)
            logger.info("Initialized Google Drive client using service account credentials.")
        return self._drive

    async def _run(self, what: str, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return await run_in_threadpool(fn, *args)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"{what} failed: {e}") from e

    # ========== Sync operations ==========

    @retry_sheets_api
    def _read_master(self) -> List[List[str]]:
        return self.ws[self.master_sheet].get_all_values()

    @retry_sheets_api
    def _read_serials(self) -> SerialCounters:
        vals = self.ws[self.serials_sheet].row_values(2)
        nums = [_safe_int(vals[i] if i < len(vals) else None) for i in range(3)]
        if any(n is None for n in nums):
            raise StoreError(f"Serials sheet row 2 is malformed: {vals!r}")
        return SerialCounters(personal=nums[0], company=nums[1], director=nums[2])

    @retry_sheets_api
    def _write_serials(self, counters: SerialCounters) -> None:
        self.ws[self.serials_sheet].update(
            "A2",
            [[counters.personal, counters.company, counters.director]],
        )

    # Not retried: a repeated append would duplicate the row.
    # RAW keeps "DD/MM/YYYY HH:MM" as text instead of a locale-parsed date.
    def _append_row(self, row: List[str]) -> None:
        self.ws[self.documents_sheet].append_rows([row], value_input_option="RAW")

    def _upload(self, file: AttachedFile, folder_id: str) -> str:
        service = self._drive_service()

        media = MediaIoBaseUpload(
            BytesIO(file.content),
            mimetype=file.mime_type or "application/octet-stream",
            resumable=False,
        )
        metadata: dict[str, Any] = {"name": file.name}
        if folder_id:
            metadata["parents"] = [folder_id]

        created = service.files().create(
            body=metadata,
            media_body=media,
            fields="id",
            supportsAllDrives=True,
        ).execute()
        file_id = created["id"]

        # Make it viewable by link (anyone with the link can read)
        try:
            service.permissions().create(
                fileId=file_id,
                body={"role": "reader", "type": "anyone"},
                fields="id",
                supportsAllDrives=True,
            ).execute()
        except Exception as e:
            logger.warning("Failed to set public permission for file %s: %s", file_id, e)

        return f"https://drive.google.com/file/d/{file_id}/view"

    # ========== DocumentStore API ==========

    async def fetch_master(self) -> List[List[str]]:
        return await self._run("Fetch master data", self._read_master)

    async def get_next_serials(self) -> SerialCounters:
        return await self._run("Fetch serial numbers", self._read_serials)

    async def update_serials(self, counters: SerialCounters) -> None:
        await self._run("Update serial numbers", self._write_serials, counters)

    async def upload_file(self, file: AttachedFile, folder_id: str) -> str:
        return await self._run(f"Upload of {file.name}", self._upload, file, folder_id)

    async def insert_row(self, row: List[str]) -> None:
        await self._run("Insert document", self._append_row, row)

    async def ping(self) -> None:
        await self._run("Ping", self.ws[self.serials_sheet].acell, "A1")
