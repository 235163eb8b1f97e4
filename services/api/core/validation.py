"""
Validation utilities for the document register.
Runs before a submission touches the network and collects every problem so
the user can fix them in one go.
"""
from typing import List, Sequence

from models.drafts import DocumentDraft


class DraftValidationError(ValueError):
    """One or more drafts are not ready to submit."""

    def __init__(self, problems: List[str]) -> None:
        self.problems = problems
        super().__init__("; ".join(problems))


NO_FILES_MESSAGE = "Please upload at least one image for your documents."


def draft_problems(draft: DocumentDraft, position: int) -> List[str]:
    """
    Required-field checks for a single draft.

    Rules:
    - name, type, category and entity name must be non-blank
    - renewal date and time are required only when renewal is enabled

    Args:
        draft: Draft to check
        position: 1-based position used in messages
    """
    problems = []
    label = f"Document {position}"

    if not draft.name.strip():
        problems.append(f"{label}: document name is required")
    if not draft.type_tag.strip():
        problems.append(f"{label}: document type is required")
    if not draft.category.strip():
        problems.append(f"{label}: category is required")
    if not draft.entity_name.strip():
        problems.append(f"{label}: name is required")

    if draft.needs_renewal:
        if not draft.renewal_date.strip():
            problems.append(f"{label}: renewal date is required")
        if not draft.renewal_time.strip():
            problems.append(f"{label}: renewal time is required")

    return problems


def validate_drafts(drafts: Sequence[DocumentDraft]) -> None:
    """
    Ensure a batch can be submitted.

    Raises:
        DraftValidationError: if no files are attached anywhere or any
            draft is missing a required field
    """
    problems: List[str] = []

    if sum(len(d.files) for d in drafts) == 0:
        problems.append(NO_FILES_MESSAGE)

    for i, draft in enumerate(drafts, start=1):
        problems.extend(draft_problems(draft, i))

    if problems:
        raise DraftValidationError(problems)
