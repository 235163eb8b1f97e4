"""
Pydantic schemas for submission results and the master vocabulary.
"""
from typing import Dict, List

from pydantic import BaseModel, Field


class SubmissionOut(BaseModel):
    status: str = "ok"
    message: str
    drafts_submitted: int
    files_attached: int
    uploads_succeeded: int
    uploads_attempted: int
    serials: List[str] = Field(default_factory=list)
    timestamp: str
    counters_persisted: bool = True
    redirect_to: str = Field(..., description="Where the client should navigate next")
    redirect_delay_ms: int = 1500


class EntityLabel(BaseModel):
    label: str
    placeholder: str


class VocabularyOut(BaseModel):
    document_types: List[str] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    degraded: bool = Field(False, description="True when defaults are used because the master sheet failed")
    entity_labels: Dict[str, EntityLabel] = Field(default_factory=dict)
