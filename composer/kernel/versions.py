"""
Composer Kernel — Version records and document lifecycle

Version records are persisted by the surrounding application; the kernel
only reads them. The "current" version is never stored: it is synthesized
from the live document on read and placed ahead of stored history.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from composer.kernel.types import now_iso

DocumentStatus = Literal["draft", "sent", "viewed", "signed", "completed", "declined", "expired"]
ChangeType = Literal["created", "edited", "sent", "resent", "current"]

# draft → sent → viewed → {signed → completed | declined}; sent|viewed → expired
_TRANSITIONS: dict[str, set[str]] = {
    "draft": {"sent"},
    "sent": {"viewed", "expired"},
    "viewed": {"signed", "declined", "expired"},
    "signed": {"completed"},
    "completed": set(),
    "declined": set(),
    "expired": set(),
}


class _Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class DocumentVersion(_Record):
    """Immutable snapshot of a document at one committed change."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore", frozen=True)

    id: str | None = None
    version_number: int = Field(ge=1)
    title: str
    content: list[dict[str, Any]] = Field(default_factory=list)
    variables: dict[str, Any] | None = None
    change_type: ChangeType = "edited"
    change_description: str | None = None
    created_by: str | None = None
    created_at: datetime | str


class DocumentRecord(_Record):
    """The fields of a persisted document the kernel reads."""

    id: str
    title: str
    content: list[dict[str, Any]] = Field(default_factory=list)
    variables: dict[str, Any] | None = None
    current_version: int = Field(default=1, ge=1)
    status: DocumentStatus = "draft"
    locked_at: datetime | None = None


def build_version_history(
    document: DocumentRecord,
    stored: list[DocumentVersion],
) -> list[DocumentVersion]:
    """
    Stored history plus the synthesized current version, newest first.
    """
    current = DocumentVersion(
        id="current",
        version_number=document.current_version,
        title=document.title,
        content=document.content,
        variables=None,
        change_type="current",
        change_description="Current version",
        created_at=now_iso(),
    )
    # Stable sort keeps "current" ahead of a stored record with the same number
    return sorted([current, *stored], key=lambda v: v.version_number, reverse=True)


def next_version_number(stored: list[DocumentVersion]) -> int:
    """Version numbers increase monotonically per document."""
    return max((v.version_number for v in stored), default=0) + 1


def can_transition(current: str, target: str) -> bool:
    return target in _TRANSITIONS.get(current, set())


def is_locked(document: DocumentRecord) -> bool:
    """A document is locked once any recipient has signed."""
    return document.locked_at is not None
