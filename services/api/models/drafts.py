# services/api/models/drafts.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, Optional, Tuple
from uuid import uuid4


PERSONAL = "Personal"
COMPANY = "Company"
DIRECTOR = "Director"

DEFAULT_CATEGORIES = [PERSONAL, COMPANY, DIRECTOR]

_ENTITY_LABELS = {
    PERSONAL: ("Person Name", "Enter person name"),
    COMPANY: ("Company Name", "Enter company name"),
    DIRECTOR: ("Director Name", "Enter director name"),
}


def entity_label(category: str) -> str:
    """Form label for `entity_name`, which means something different per category."""
    return _ENTITY_LABELS.get(category, ("Entity Name", ""))[0]


def entity_placeholder(category: str) -> str:
    return _ENTITY_LABELS.get(category, ("", "Enter name"))[1]


def _gen_id() -> str:
    return f"d-{uuid4().hex[:10]}"


class DraftNotFound(LookupError):
    """No draft with the given id in the editor."""


@dataclass(frozen=True)
class AttachedFile:
    """
    A locally-held file waiting to be uploaded with its draft.

    Two files are the same attachment when name and byte size match.
    """
    name: str
    content: bytes = b""
    mime_type: str = "application/octet-stream"
    size: int = -1

    def __post_init__(self) -> None:
        if self.size < 0:
            object.__setattr__(self, "size", len(self.content))

    @property
    def key(self) -> Tuple[str, int]:
        return (self.name, self.size)


@dataclass(frozen=True)
class DocumentDraft:
    """
    One document row the user is composing.

    Values are immutable; the editor swaps whole drafts via `replace()`.
    """
    id: str = field(default_factory=_gen_id)
    name: str = ""
    type_tag: str = ""
    category: str = PERSONAL
    sub_category: str = ""
    entity_name: str = ""
    files: Tuple[AttachedFile, ...] = ()

    needs_renewal: bool = False
    renewal_date: str = ""     # YYYY-MM-DD
    renewal_time: str = ""     # HH:MM

    @property
    def total_size(self) -> int:
        return sum(f.size for f in self.files)


# Scalar fields `update_field` may touch. Category goes through set_category.
EDITABLE_FIELDS = (
    "name",
    "type_tag",
    "sub_category",
    "entity_name",
    "renewal_date",
    "renewal_time",
)


class DraftEditor:
    """
    Ordered list of drafts with CRUD-style edits.

    The list is held as a tuple and every edit swaps in a new tuple that
    differs from the old one in exactly one element, so a reader holding
    `rows` always sees a complete snapshot. There is always at least one
    draft.
    """

    def __init__(self, rows: Optional[Iterable[DocumentDraft]] = None) -> None:
        initial = tuple(rows or ())
        self._rows: Tuple[DocumentDraft, ...] = initial or (DocumentDraft(),)

    @property
    def rows(self) -> Tuple[DocumentDraft, ...]:
        return self._rows

    def snapshot(self) -> Tuple[DocumentDraft, ...]:
        return self._rows

    def __len__(self) -> int:
        return len(self._rows)

    def get(self, draft_id: str) -> DocumentDraft:
        return self._rows[self._index_of(draft_id)]

    def total_files(self) -> int:
        return sum(len(d.files) for d in self._rows)

    # ========== internals ==========

    def _index_of(self, draft_id: str) -> int:
        for i, d in enumerate(self._rows):
            if d.id == draft_id:
                return i
        raise DraftNotFound(f"Draft {draft_id} not found")

    def _swap(self, draft_id: str, **changes) -> DocumentDraft:
        idx = self._index_of(draft_id)
        updated = replace(self._rows[idx], **changes)
        self._rows = self._rows[:idx] + (updated,) + self._rows[idx + 1:]
        return updated

    # ========== list operations ==========

    def add_row(self) -> DocumentDraft:
        draft = DocumentDraft()
        self._rows = self._rows + (draft,)
        return draft

    def remove_row(self, draft_id: str) -> None:
        """Remove a draft. Removing the last remaining draft does nothing."""
        if len(self._rows) <= 1:
            return
        self._rows = tuple(d for d in self._rows if d.id != draft_id)

    def reset(self) -> None:
        self._rows = (DocumentDraft(),)

    # ========== field operations ==========

    def update_field(self, draft_id: str, field_name: str, value: str) -> DocumentDraft:
        if field_name == "category":
            return self.set_category(draft_id, value)
        if field_name not in EDITABLE_FIELDS:
            raise ValueError(f"Unknown draft field: {field_name}")
        return self._swap(draft_id, **{field_name: value})

    def set_category(self, draft_id: str, category: str) -> DocumentDraft:
        # entity_name means person/company/director depending on category
        return self._swap(draft_id, category=category, entity_name="")

    def toggle_renewal(self, draft_id: str, enabled: bool) -> DocumentDraft:
        # renewal_date/renewal_time are kept; they are ignored while disabled
        return self._swap(draft_id, needs_renewal=bool(enabled))

    # ========== file operations ==========

    def add_files(self, draft_id: str, files: Iterable[AttachedFile]) -> DocumentDraft:
        """
        Append files not already attached (same name and size); duplicates
        are skipped silently. Raises DraftNotFound only for an unknown id.
        """
        current = self.get(draft_id).files
        seen = {f.key for f in current}
        fresh = []
        for f in files:
            if f.key in seen:
                continue
            seen.add(f.key)
            fresh.append(f)
        return self._swap(draft_id, files=current + tuple(fresh))

    def remove_file(self, draft_id: str, file_index: int) -> DocumentDraft:
        current = self.get(draft_id).files
        if not 0 <= file_index < len(current):
            return self.get(draft_id)
        return self._swap(draft_id, files=current[:file_index] + current[file_index + 1:])

    def clear_files(self, draft_id: str) -> DocumentDraft:
        return self._swap(draft_id, files=())
