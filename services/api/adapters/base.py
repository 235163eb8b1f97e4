"""
Storage adapter interface for the document register.
Defines the contract that all storage backends must implement.
"""

from typing import Protocol, List

from models.drafts import AttachedFile
from models.row import SerialCounters


class StoreError(RuntimeError):
    """A backend call failed or returned something unusable."""


class DocumentStore(Protocol):
    """
    Protocol defining the interface for all storage adapters.

    This allows swapping between the Apps Script endpoint, direct Google
    Sheets access and a local SQLite file without changing the submission
    pipeline or the routers.

    NOTE:
    - Every method is async. Synchronous backends push their blocking work
      to a thread pool.
    - Failures are raised (StoreError or a subclass), never reported through
      return values. The pipeline decides which ones are fatal.
    """

    backend_name: str

    # ========== Master vocabulary ==========

    async def fetch_master(self) -> List[List[str]]:
        """
        Return the raw rows of the master sheet, header row included.

        Column 0 holds document types, column 1 holds categories.
        """
        ...

    # ========== Serial counters ==========

    async def get_next_serials(self) -> SerialCounters:
        """Read the next free serial number for each category."""
        ...

    async def update_serials(self, counters: SerialCounters) -> None:
        """
        Overwrite the stored counters.

        No compare-and-swap: whatever was stored is replaced.
        """
        ...

    # ========== Files ==========

    async def upload_file(self, file: AttachedFile, folder_id: str) -> str:
        """
        Store one file and return a URL for it.

        Raises:
            StoreError if the upload did not produce a URL.
        """
        ...

    # ========== Rows ==========

    async def insert_row(self, row: List[str]) -> None:
        """
        Append one row to the Documents sheet.

        Not idempotent: calling twice appends twice.
        """
        ...

    async def ping(self) -> None:
        """Cheap connectivity check used by /health."""
        ...
