"""
Shared fixtures: an in-memory store that records every call.
"""
import asyncio
import os
import sys
from datetime import datetime
from typing import List, Optional

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from adapters.base import StoreError
from core.vocabulary import clear_vocabulary_cache
from models.drafts import AttachedFile, DocumentDraft
from models.row import SerialCounters

FIXED_NOW = datetime(2024, 3, 5, 9, 7)


class FakeStore:
    """
    DocumentStore double.

    Every method yields to the event loop once so overlapping calls would
    show up in `max_in_flight`.
    """

    backend_name = "fake"

    def __init__(
        self,
        counters: Optional[SerialCounters] = None,
        master_rows: Optional[List[List[str]]] = None,
        fail_uploads=(),
        fail_insert_at: Optional[int] = None,
        fail_serials: bool = False,
        fail_update: bool = False,
        fail_master: bool = False,
    ):
        self.counters = counters or SerialCounters(personal=1, company=1, director=1)
        self.master_rows = master_rows if master_rows is not None else [["Type", "Category"]]
        self.fail_uploads = set(fail_uploads)
        self.fail_insert_at = fail_insert_at
        self.fail_serials = fail_serials
        self.fail_update = fail_update
        self.fail_master = fail_master
        # Set to an asyncio.Event to hold every insert until it is set
        self.insert_gate = None

        self.calls: List[tuple] = []
        self.rows: List[List[str]] = []
        self.serial_updates: List[dict] = []
        self.insert_attempts = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def _enter(self, *call):
        self.calls.append(call)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)
        self.in_flight -= 1

    async def fetch_master(self):
        await self._enter("fetch_master")
        if self.fail_master:
            raise StoreError("Master sheet unavailable")
        return self.master_rows

    async def get_next_serials(self):
        snapshot = SerialCounters(**self.counters.to_dict())
        await self._enter("get_next_serials")
        if self.fail_serials:
            raise StoreError("Failed to get next serial numbers")
        return snapshot

    async def update_serials(self, counters):
        await self._enter("update_serials", counters.to_dict())
        if self.fail_update:
            raise StoreError("Serials sheet is protected")
        self.serial_updates.append(counters.to_dict())
        self.counters = SerialCounters(**counters.to_dict())

    async def upload_file(self, file, folder_id):
        await self._enter("upload_file", file.name)
        if file.name in self.fail_uploads:
            raise StoreError(f"Upload of {file.name} failed: 500")
        return f"https://files.example/{file.name}"

    async def insert_row(self, row):
        self.insert_attempts += 1
        if self.insert_gate is not None:
            await self.insert_gate.wait()
        await self._enter("insert_row", row[1])
        if self.fail_insert_at == self.insert_attempts:
            raise StoreError("Failed to insert document: 500 - Sheet is locked")
        self.rows.append(list(row))

    async def ping(self):
        await self._enter("ping")


def make_file(name: str, size: int = 10, mime_type: str = "image/jpeg") -> AttachedFile:
    return AttachedFile(name=name, content=b"x" * size, mime_type=mime_type)


def make_draft(**overrides) -> DocumentDraft:
    values = dict(
        name="Passport",
        type_tag="ID Proof",
        category="Personal",
        entity_name="Asha Rao",
        files=(make_file("front.jpg"),),
    )
    values.update(overrides)
    return DocumentDraft(**values)


@pytest.fixture(autouse=True)
def _fresh_vocabulary_cache():
    clear_vocabulary_cache()
    yield
    clear_vocabulary_cache()


@pytest.fixture
def store():
    return FakeStore()
