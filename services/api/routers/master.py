"""
Master vocabulary endpoint (document types and categories for the form).
"""
from fastapi import APIRouter, Depends

from adapters.base import DocumentStore
from core.vocabulary import load_vocabulary
from dependencies import get_storage_adapter
from models.drafts import entity_label, entity_placeholder
from schemas.submission import EntityLabel, VocabularyOut

router = APIRouter(prefix="/master", tags=["master"])


@router.get("", response_model=VocabularyOut)
async def get_master(store: DocumentStore = Depends(get_storage_adapter)):
    """
    Document types and categories from the Master sheet.

    Never fails because of the sheet: on error the defaults come back with
    `degraded=true` so the client can warn and carry on.
    """
    vocab = await load_vocabulary(store)
    return VocabularyOut(
        document_types=vocab.document_types,
        categories=vocab.categories,
        degraded=vocab.degraded,
        entity_labels={
            c: EntityLabel(label=entity_label(c), placeholder=entity_placeholder(c))
            for c in vocab.categories
        },
    )
