# services/api/models/row.py
"""
Row layout for the `Documents` sheet.

The store appends rows positionally, so the column order below is a wire
contract with the remote script and must not move:

    0  Timestamp              10 Total file size
    1  Serial No              11 Image #1
    2  Document name          12 Email           (blank)
    3  Document Type          13 Mobile          (blank)
    4  Category               14 Delete marker   (blank)
    5  Company/Department     15 Sub Category
       (blank)                16 Renewal Filter  (blank)
    6  Tags (blank)           17 Image2
    7  Name (entity)          18 Image3
    8  Need Renewal Yes/No    19 Image4
    9  Renewal Date           20+ Image5, Image6, ...
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Sequence

from .drafts import COMPANY, DIRECTOR, PERSONAL, DocumentDraft

COL_TIMESTAMP = 0
COL_SERIAL = 1
COL_NAME = 2
COL_TYPE = 3
COL_CATEGORY = 4
COL_ENTITY_NAME = 7
COL_NEEDS_RENEWAL = 8
COL_RENEWAL_AT = 9
COL_TOTAL_SIZE = 10
COL_IMAGE_1 = 11
COL_SUB_CATEGORY = 15
COL_IMAGE_2 = 17
COL_IMAGE_3 = 18
COL_IMAGE_4 = 19

BASE_ROW_WIDTH = 20

# Header row used when a backend has to create the Documents tab itself
DOCUMENTS_HEADER = [
    "Timestamp",
    "Serial No",
    "Document name",
    "Document Type",
    "Category",
    "Company/Department",
    "Tags",
    "Name",
    "Need Renewal",
    "Renewal Date",
    "Total Size",
    "Image #1",
    "Email",
    "Mobile",
    "Delete",
    "Sub Category",
    "Renewal Filter",
    "Image2",
    "Image3",
    "Image4",
]

SERIAL_PREFIXES = {
    PERSONAL: "PN",
    COMPANY: "CN",
    DIRECTOR: "DN",
}

BYTES_PER_MB = 1024 * 1024


def serial_prefix(category: str) -> str:
    return SERIAL_PREFIXES.get(category, "DN")


def format_serial(category: str, number: int) -> str:
    """PN-007, CN-123, ... (at least three digits, never truncated)."""
    return f"{serial_prefix(category)}-{int(number):03d}"


@dataclass
class SerialCounters:
    """
    Next free serial number per category.

    Read once at the start of a batch, advanced in memory for every draft and
    written back once at the end. Nothing guards against another batch doing
    the same thing concurrently.
    """
    personal: int = 1
    company: int = 1
    director: int = 1

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "SerialCounters":
        try:
            return cls(
                personal=int(data["personal"]),
                company=int(data["company"]),
                director=int(data["director"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed serial counters: {data!r}") from e

    def to_dict(self) -> Dict[str, int]:
        return {
            "personal": self.personal,
            "company": self.company,
            "director": self.director,
        }

    def _slot(self, category: str) -> str:
        if category == PERSONAL:
            return "personal"
        if category == COMPANY:
            return "company"
        # Director and any category discovered from the master sheet share
        # the DN series.
        return "director"

    def allocate(self, category: str) -> str:
        """Return the next serial for `category` and advance its counter."""
        slot = self._slot(category)
        number = getattr(self, slot)
        setattr(self, slot, number + 1)
        return format_serial(category, number)


def format_timestamp(now: datetime) -> str:
    return now.strftime("%d/%m/%Y %H:%M")


def format_renewal_date(date_str: str) -> str:
    """YYYY-MM-DD -> DD/MM/YYYY. Unparseable input is passed through."""
    if not date_str:
        return ""
    try:
        return datetime.strptime(date_str.strip()[:10], "%Y-%m-%d").strftime("%d/%m/%Y")
    except ValueError:
        return date_str


def renewal_datetime(draft: DocumentDraft) -> str:
    if not (draft.needs_renewal and draft.renewal_date and draft.renewal_time):
        return ""
    return f"{format_renewal_date(draft.renewal_date)} {draft.renewal_time}"


def format_total_size(total_bytes: int) -> str:
    return f"{total_bytes / BYTES_PER_MB:.2f} MB"


def _url_at(urls: Sequence[str], idx: int) -> str:
    return (urls[idx] or "") if idx < len(urls) else ""


def build_row(
    *,
    draft: DocumentDraft,
    serial: str,
    timestamp: str,
    uploaded_urls: Sequence[str],
) -> List[str]:
    """
    Flatten one draft into the fixed Documents layout.

    `uploaded_urls` is aligned with `draft.files`; failed uploads are ""
    and keep their slot so later images do not shift columns.
    """
    row = [""] * BASE_ROW_WIDTH
    row[COL_TIMESTAMP] = timestamp
    row[COL_SERIAL] = serial
    row[COL_NAME] = draft.name
    row[COL_TYPE] = draft.type_tag
    row[COL_CATEGORY] = draft.category
    row[COL_ENTITY_NAME] = draft.entity_name
    row[COL_NEEDS_RENEWAL] = "Yes" if draft.needs_renewal else "No"
    row[COL_RENEWAL_AT] = renewal_datetime(draft)
    row[COL_TOTAL_SIZE] = format_total_size(draft.total_size)
    row[COL_IMAGE_1] = _url_at(uploaded_urls, 0)
    row[COL_SUB_CATEGORY] = draft.sub_category
    row[COL_IMAGE_2] = _url_at(uploaded_urls, 1)
    row[COL_IMAGE_3] = _url_at(uploaded_urls, 2)
    row[COL_IMAGE_4] = _url_at(uploaded_urls, 3)

    # Images beyond the fourth go after the fixed columns, in order
    row.extend(url or "" for url in uploaded_urls[4:])
    return row
