"""
Tests for the batch submission pipeline.

Run with: pytest tests/test_submission.py -v
"""
import asyncio

import pytest

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import FIXED_NOW, FakeStore, make_draft, make_file
from core.submission import SubmissionError, SubmissionPipeline
from core.validation import DraftValidationError
from models.row import COL_IMAGE_1, COL_IMAGE_2, COL_IMAGE_3, SerialCounters


def _pipeline(store):
    return SubmissionPipeline(store, folder_id="folder-1", clock=lambda: FIXED_NOW)


def _run(pipeline, drafts):
    return asyncio.run(pipeline.submit(drafts))


class TestHappyPath:
    """Full batches that go through."""

    def test_serials_rows_and_writeback(self):
        store = FakeStore(counters=SerialCounters(personal=5, company=10, director=3))
        drafts = [
            make_draft(name="Passport"),
            make_draft(name="GST", category="Company", entity_name="Acme", files=(make_file("gst.pdf"),)),
            make_draft(name="Aadhaar", files=(make_file("a1.jpg"), make_file("a2.jpg"))),
        ]

        result = _run(_pipeline(store), drafts)

        assert result.serials == ["PN-005", "CN-010", "PN-006"]
        assert [r[1] for r in store.rows] == ["PN-005", "CN-010", "PN-006"]
        assert store.serial_updates == [{"personal": 7, "company": 11, "director": 3}]
        assert result.counters_persisted is True
        assert result.drafts_submitted == 3
        assert result.files_attached == 4
        assert result.uploads_succeeded == 4
        assert result.message == "3 document(s) with 4 image(s) added successfully."

    def test_one_timestamp_per_batch(self, store):
        drafts = [make_draft(), make_draft(name="Voter ID")]
        result = _run(_pipeline(store), drafts)
        assert result.timestamp == "05/03/2024 09:07"
        assert {r[0] for r in store.rows} == {"05/03/2024 09:07"}

    def test_calls_are_strictly_ordered(self, store):
        drafts = [
            make_draft(files=(make_file("a.jpg"), make_file("b.jpg"))),
            make_draft(name="Voter ID", files=(make_file("c.jpg"),)),
        ]
        _run(_pipeline(store), drafts)

        assert [c[0] for c in store.calls] == [
            "get_next_serials",
            "upload_file", "upload_file", "insert_row",
            "upload_file", "insert_row",
            "update_serials",
        ]
        assert [c[1] for c in store.calls if c[0] == "upload_file"] == ["a.jpg", "b.jpg", "c.jpg"]
        assert store.max_in_flight == 1

    def test_draft_without_files_skips_upload(self, store):
        drafts = [make_draft(), make_draft(name="Notes", files=())]
        result = _run(_pipeline(store), drafts)
        assert len(store.rows) == 2
        assert store.rows[1][COL_IMAGE_1] == ""
        assert result.files_attached == 1

    def test_redirect_hint(self, store):
        pipeline = SubmissionPipeline(store, clock=lambda: FIXED_NOW,
                                      redirect_to="/register", redirect_delay_ms=900)
        result = _run(pipeline, [make_draft()])
        assert result.redirect_to == "/register"
        assert result.redirect_delay_ms == 900


class TestPartialUploads:
    """A failed file upload does not stop the draft."""

    def test_failed_upload_leaves_empty_slot(self):
        store = FakeStore(fail_uploads={"back.jpg"})
        draft = make_draft(files=(make_file("front.jpg"), make_file("back.jpg"), make_file("side.jpg")))

        result = _run(_pipeline(store), [draft])

        row = store.rows[0]
        assert row[COL_IMAGE_1] == "https://files.example/front.jpg"
        assert row[COL_IMAGE_2] == ""
        assert row[COL_IMAGE_3] == "https://files.example/side.jpg"
        assert result.uploads_succeeded == 2
        assert result.uploads_attempted == 3

    def test_all_uploads_failing_still_inserts(self):
        store = FakeStore(fail_uploads={"front.jpg"})
        result = _run(_pipeline(store), [make_draft()])
        assert len(store.rows) == 1
        assert result.uploads_succeeded == 0


class TestFailures:
    """Fatal and non-fatal store errors."""

    def test_insert_failure_stops_batch(self):
        store = FakeStore(fail_insert_at=2)
        drafts = [make_draft(name=f"Doc {i}") for i in range(1, 4)]

        with pytest.raises(SubmissionError) as exc:
            _run(_pipeline(store), drafts)

        assert exc.value.drafts_committed == 1
        assert str(exc.value).startswith("Document 2 submission failed:")
        assert store.insert_attempts == 2
        assert len(store.rows) == 1
        assert not any(c[0] == "update_serials" for c in store.calls)

    def test_serial_fetch_failure_is_fatal(self):
        store = FakeStore(fail_serials=True)
        with pytest.raises(SubmissionError) as exc:
            _run(_pipeline(store), [make_draft()])
        assert "Failed to fetch serial numbers" in str(exc.value)
        assert exc.value.drafts_committed == 0
        assert [c[0] for c in store.calls] == ["get_next_serials"]

    def test_writeback_failure_is_reported_not_raised(self):
        store = FakeStore(fail_update=True)
        result = _run(_pipeline(store), [make_draft()])
        assert result.counters_persisted is False
        assert len(store.rows) == 1

    def test_invalid_batch_touches_nothing(self, store):
        with pytest.raises(DraftValidationError) as exc:
            _run(_pipeline(store), [make_draft(), make_draft(name="  ")])
        assert exc.value.problems == ["Document 2: document name is required"]
        assert store.calls == []

    def test_no_files_anywhere(self, store):
        with pytest.raises(DraftValidationError):
            _run(_pipeline(store), [make_draft(files=())])
        assert store.calls == []


class TestConcurrentBatches:
    """Two batches against one store with no cross-batch coordination."""

    def test_overlapping_batches_reuse_serials(self):
        store = FakeStore(counters=SerialCounters(personal=1, company=1, director=1))

        async def both():
            return await asyncio.gather(
                _pipeline(store).submit([make_draft(name="A")]),
                _pipeline(store).submit([make_draft(name="B")]),
            )

        first, second = asyncio.run(both())

        # Both read the counters before either wrote them back
        assert first.serials == ["PN-001"]
        assert second.serials == ["PN-001"]
        assert store.counters.personal == 2
