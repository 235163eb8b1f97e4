"""
Pydantic schemas for the draft editor.
"""
from typing import List, Optional

from pydantic import BaseModel, Field

from models.drafts import DocumentDraft, entity_label, entity_placeholder


class AttachedFileOut(BaseModel):
    name: str
    size: int = Field(..., ge=0, description="Size in bytes")
    mime_type: str


class DraftOut(BaseModel):
    """One draft row as shown in the form."""
    id: str
    name: str = ""
    type_tag: str = ""
    category: str = "Personal"
    sub_category: str = ""
    entity_name: str = ""
    entity_label: str = Field("", description="Form label for entity_name (depends on category)")
    entity_placeholder: str = ""
    files: List[AttachedFileOut] = Field(default_factory=list)
    total_size: int = 0
    needs_renewal: bool = False
    renewal_date: str = ""
    renewal_time: str = ""

    @classmethod
    def from_draft(cls, draft: DocumentDraft) -> "DraftOut":
        return cls(
            id=draft.id,
            name=draft.name,
            type_tag=draft.type_tag,
            category=draft.category,
            sub_category=draft.sub_category,
            entity_name=draft.entity_name,
            entity_label=entity_label(draft.category),
            entity_placeholder=entity_placeholder(draft.category),
            files=[
                AttachedFileOut(name=f.name, size=f.size, mime_type=f.mime_type)
                for f in draft.files
            ],
            total_size=draft.total_size,
            needs_renewal=draft.needs_renewal,
            renewal_date=draft.renewal_date,
            renewal_time=draft.renewal_time,
        )


class EditorOut(BaseModel):
    """Full editor state for a session."""
    session_id: str
    rows: List[DraftOut]
    total_files: int = 0
    submitting: bool = False


class DraftUpdate(BaseModel):
    """
    Partial update of one draft. Only the fields that are sent are applied;
    changing `category` also clears `entity_name`.
    """
    name: Optional[str] = None
    type_tag: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1)
    sub_category: Optional[str] = None
    entity_name: Optional[str] = None
    renewal_date: Optional[str] = Field(None, description="YYYY-MM-DD")
    renewal_time: Optional[str] = Field(None, description="HH:MM")


class RenewalToggle(BaseModel):
    enabled: bool
