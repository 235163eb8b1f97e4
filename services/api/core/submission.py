# services/api/core/submission.py
"""
Batch submission of document drafts.

For one batch:
  1) read the next serial per category (fatal on failure)
  2) for each draft, in order:
       - upload its files one at a time; a failed file leaves "" in its slot
       - take the next serial from the draft's category counter
       - build the fixed-layout row and insert it (fatal on failure)
  3) write the advanced counters back (failure is only logged)

Only one store call is in flight at any time. Rows inserted before a fatal
error stay in the sheet; there is no rollback and nothing cleans up files
uploaded for the draft that failed.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

from adapters.base import DocumentStore
from core.validation import validate_drafts
from models.drafts import AttachedFile, DocumentDraft
from models.row import SerialCounters, build_row, format_timestamp

logger = logging.getLogger(__name__)


class SubmissionError(RuntimeError):
    """
    A batch stopped part-way.

    `drafts_committed` rows were already inserted and are not rolled back.
    """

    def __init__(self, message: str, *, drafts_committed: int = 0) -> None:
        super().__init__(message)
        self.drafts_committed = drafts_committed


@dataclass
class SubmissionResult:
    drafts_submitted: int
    files_attached: int
    uploads_succeeded: int
    uploads_attempted: int
    timestamp: str
    serials: List[str] = field(default_factory=list)
    counters_persisted: bool = True
    redirect_to: str = "/documents"
    redirect_delay_ms: int = 1500

    @property
    def message(self) -> str:
        return (
            f"{self.drafts_submitted} document(s) with {self.files_attached} "
            f"image(s) added successfully."
        )


class SubmissionPipeline:
    """
    Turns a finished list of drafts into rows in the store.

    Args:
        store: Backend adapter
        folder_id: Upload destination passed through to the store
        clock: Returns "now" for the batch timestamp (local time by default)
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        folder_id: str = "",
        clock: Optional[Callable[[], datetime]] = None,
        redirect_to: str = "/documents",
        redirect_delay_ms: int = 1500,
    ) -> None:
        self.store = store
        self.folder_id = folder_id
        self.clock = clock or datetime.now
        self.redirect_to = redirect_to
        self.redirect_delay_ms = redirect_delay_ms

    async def upload_files(self, files: Sequence[AttachedFile]) -> Tuple[List[str], int]:
        """
        Upload files one by one.

        Returns:
            (urls, succeeded) where urls[i] belongs to files[i] and is ""
            when that upload failed.
        """
        urls: List[str] = []
        succeeded = 0
        total = len(files)

        for i, f in enumerate(files, start=1):
            logger.info(f"Uploading file {i}/{total}: {f.name} ({f.size / 1024:.1f} KB)")
            try:
                url = await self.store.upload_file(f, self.folder_id)
            except Exception as e:
                logger.warning(f"Upload {i}/{total} failed for {f.name}: {e}")
                urls.append("")
                continue

            if not url:
                logger.warning(f"Upload {i}/{total} for {f.name} returned no URL")
                urls.append("")
                continue

            urls.append(url)
            succeeded += 1

        logger.info(f"Uploaded {succeeded} of {total} file(s)")
        return urls, succeeded

    async def submit(self, drafts: Sequence[DocumentDraft]) -> SubmissionResult:
        """
        Submit every draft, in order.

        Raises:
            DraftValidationError: before any store call, if the batch is not
                submittable
            SubmissionError: if the counters cannot be read or a row insert
                fails; later drafts are not attempted
        """
        drafts = tuple(drafts)
        validate_drafts(drafts)

        try:
            counters: SerialCounters = await self.store.get_next_serials()
        except Exception as e:
            logger.error(f"Failed to fetch serial numbers: {e}")
            raise SubmissionError(f"Failed to fetch serial numbers: {e}") from e

        logger.info(f"Starting batch of {len(drafts)} document(s) with counters {counters.to_dict()}")

        timestamp = format_timestamp(self.clock())
        serials: List[str] = []
        uploads_attempted = 0
        uploads_succeeded = 0

        for i, draft in enumerate(drafts, start=1):
            logger.info(f"Processing document {i}/{len(drafts)}: {draft.name}")

            urls: List[str] = []
            if draft.files:
                urls, ok = await self.upload_files(draft.files)
                uploads_attempted += len(draft.files)
                uploads_succeeded += ok

            serial = counters.allocate(draft.category)
            row = build_row(draft=draft, serial=serial, timestamp=timestamp, uploaded_urls=urls)

            try:
                await self.store.insert_row(row)
            except Exception as e:
                logger.error(f"Document {i} ({serial}) insert failed: {e}")
                raise SubmissionError(
                    f"Document {i} submission failed: {e}",
                    drafts_committed=i - 1,
                ) from e

            serials.append(serial)
            logger.info(f"✓ Document {i} added as {serial} ({len(row)} columns)")

        counters_persisted = True
        try:
            await self.store.update_serials(counters)
        except Exception as e:
            # Rows are already in; the stale counters will hand out these
            # serials again on the next batch.
            logger.warning(f"Failed to update serial numbers: {e}")
            counters_persisted = False

        return SubmissionResult(
            drafts_submitted=len(drafts),
            files_attached=sum(len(d.files) for d in drafts),
            uploads_succeeded=uploads_succeeded,
            uploads_attempted=uploads_attempted,
            timestamp=timestamp,
            serials=serials,
            counters_persisted=counters_persisted,
            redirect_to=self.redirect_to,
            redirect_delay_ms=self.redirect_delay_ms,
        )
