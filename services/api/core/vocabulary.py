# services/api/core/vocabulary.py
from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional

from cachetools import TTLCache

from adapters.base import DocumentStore
from models import Vocabulary
from models.drafts import DEFAULT_CATEGORIES
from settings import get_settings

logger = logging.getLogger(__name__)

# Offered when the master sheet yields no document types, so the form
# always has one selectable type.
FALLBACK_DOCUMENT_TYPES = ["General"]

_vocab_cache: Optional[TTLCache] = None


def _get_cache() -> TTLCache:
    global _vocab_cache
    if _vocab_cache is None:
        ttl = max(1, get_settings().master_cache_ttl_seconds)
        _vocab_cache = TTLCache(maxsize=16, ttl=ttl)
    return _vocab_cache


def clear_vocabulary_cache() -> None:
    if _vocab_cache is not None:
        _vocab_cache.clear()


def _unique(values: Iterable[str]) -> List[str]:
    seen = set()
    out = []
    for v in values:
        if v and v not in seen:
            seen.add(v)
            out.append(v)
    return out


def _column(rows: List[Any], idx: int) -> List[str]:
    """Trimmed, non-empty values of one column, header row skipped."""
    out = []
    for r in rows[1:]:
        if not isinstance(r, (list, tuple)) or idx >= len(r) or r[idx] is None:
            continue
        v = str(r[idx]).strip()
        if v:
            out.append(v)
    return out


def parse_master_rows(rows: List[Any]) -> Vocabulary:
    """
    Build the form vocabulary from raw master rows.

    Column 0 = document type, column 1 = category. Fetched categories are
    merged after the defaults, never instead of them. An empty type column
    gives the single fallback type.
    """
    types = _unique(_column(rows, 0)) or list(FALLBACK_DOCUMENT_TYPES)
    categories = _unique(list(DEFAULT_CATEGORIES) + _column(rows, 1))
    return Vocabulary(document_types=types, categories=categories)


def default_vocabulary() -> Vocabulary:
    return Vocabulary(document_types=list(FALLBACK_DOCUMENT_TYPES), categories=list(DEFAULT_CATEGORIES), degraded=True)


async def load_vocabulary(store: DocumentStore, *, use_cache: bool = True) -> Vocabulary:
    """
    Fetch document types and categories from the master sheet.

    Any failure degrades to the fallback type and the default categories;
    degraded results are not cached so the next call tries again.
    """
    key = (store.backend_name, id(store))
    cache = _get_cache()
    if use_cache and key in cache:
        return cache[key]

    try:
        rows = await store.fetch_master()
        vocab = parse_master_rows(rows)
    except Exception as e:
        logger.warning(f"Master data unavailable, falling back to defaults: {e}")
        return default_vocabulary()

    logger.info(
        f"Loaded master vocabulary: {len(vocab.document_types)} types, "
        f"{len(vocab.categories)} categories"
    )
    cache[key] = vocab
    return vocab
