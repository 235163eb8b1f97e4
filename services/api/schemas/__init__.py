"""
Pydantic schemas for API request/response validation.
"""
from .draft import AttachedFileOut, DraftOut, DraftUpdate, EditorOut, RenewalToggle
from .submission import EntityLabel, SubmissionOut, VocabularyOut

__all__ = [
    "AttachedFileOut",
    "DraftOut",
    "DraftUpdate",
    "EditorOut",
    "EntityLabel",
    "RenewalToggle",
    "SubmissionOut",
    "VocabularyOut",
]
