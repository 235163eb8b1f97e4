from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from .drafts import (
    COMPANY,
    DEFAULT_CATEGORIES,
    DIRECTOR,
    PERSONAL,
    AttachedFile,
    DocumentDraft,
    DraftEditor,
    DraftNotFound,
    entity_label,
    entity_placeholder,
)
from .row import SerialCounters, build_row, format_serial


class Vocabulary(BaseModel):
    """
    Choices offered by the form, read from the `Master` sheet.

    `degraded` is set when the master sheet could not be read and the
    defaults are being used instead.
    """
    document_types: List[str] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=lambda: list(DEFAULT_CATEGORIES))
    degraded: bool = False


__all__ = [
    "AttachedFile",
    "COMPANY",
    "DEFAULT_CATEGORIES",
    "DIRECTOR",
    "DocumentDraft",
    "DraftEditor",
    "DraftNotFound",
    "PERSONAL",
    "SerialCounters",
    "Vocabulary",
    "build_row",
    "entity_label",
    "entity_placeholder",
    "format_serial",
]
