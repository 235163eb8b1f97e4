"""
Tests for the master vocabulary loader.

Run with: pytest tests/test_vocabulary.py -v
"""
import asyncio

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import FakeStore
from core.vocabulary import load_vocabulary, parse_master_rows


MASTER = [
    ["Document Type", "Category"],
    ["Passport", "Personal"],
    [" PAN ", "Trust"],
    ["Passport", ""],
    ["", "Partnership"],
    ["GST"],
]


class TestParseMasterRows:
    """Column extraction from raw sheet rows."""

    def test_types_skip_header_blank_and_duplicates(self):
        vocab = parse_master_rows(MASTER)
        assert vocab.document_types == ["Passport", "PAN", "GST"]

    def test_categories_merge_after_defaults(self):
        vocab = parse_master_rows(MASTER)
        assert vocab.categories == ["Personal", "Company", "Director", "Trust", "Partnership"]

    def test_header_only(self):
        vocab = parse_master_rows([["Document Type", "Category"]])
        assert vocab.document_types == ["General"]
        assert vocab.categories == ["Personal", "Company", "Director"]
        assert vocab.degraded is False


class TestLoadVocabulary:
    """Fetching through a store, with fallback and caching."""

    def test_loads_from_store(self):
        store = FakeStore(master_rows=MASTER)
        vocab = asyncio.run(load_vocabulary(store))
        assert "PAN" in vocab.document_types
        assert vocab.degraded is False

    def test_failure_falls_back_to_defaults(self):
        store = FakeStore(fail_master=True)
        vocab = asyncio.run(load_vocabulary(store))
        assert vocab.document_types == ["General"]
        assert vocab.categories == ["Personal", "Company", "Director"]
        assert vocab.degraded is True

    def test_sheet_without_types_offers_fallback(self):
        store = FakeStore(master_rows=[["Document Type", "Category"], ["", "Trust"]])
        vocab = asyncio.run(load_vocabulary(store))
        assert vocab.document_types == ["General"]
        assert vocab.degraded is False

    def test_result_is_cached(self):
        store = FakeStore(master_rows=MASTER)
        asyncio.run(load_vocabulary(store))
        asyncio.run(load_vocabulary(store))
        assert store.calls.count(("fetch_master",)) == 1

    def test_fallback_is_not_cached(self):
        store = FakeStore(fail_master=True)
        asyncio.run(load_vocabulary(store))
        store.fail_master = False
        vocab = asyncio.run(load_vocabulary(store))
        assert vocab.degraded is False
        assert store.calls.count(("fetch_master",)) == 2

    def test_bypass_cache(self):
        store = FakeStore(master_rows=MASTER)
        asyncio.run(load_vocabulary(store))
        asyncio.run(load_vocabulary(store, use_cache=False))
        assert store.calls.count(("fetch_master",)) == 2
