"""
Composer Kernel — Shared Types

Data classes and constants used across blocks, variables, conditions,
builder, diff and session. These are the contracts that bind the kernel
together.

Key points:
- Blocks are JSON-shaped dicts keyed by their persisted (camelCase) names.
- `BuilderState` is the editing state; the reducer never mutates it in place.
- `Action` is the unit the reducer consumes: a type string plus a payload.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

# ---------------------------------------------------------------------------
# Block type registry
# ---------------------------------------------------------------------------

BLOCK_TYPES: set[str] = {
    "text",
    "heading",
    "image",
    "divider",
    "spacer",
    "signature",
    "pricing-table",
    "video",
    "data-uri",
    "table",
    "payment",
    "date",
    "checkbox",
    "text-input",
    "page-break",
}

# ---------------------------------------------------------------------------
# Action type registry
# ---------------------------------------------------------------------------

ACTION_TYPES: set[str] = {
    # Document
    "document.set",
    "title.set",
    # Block (structural)
    "block.add",
    "block.remove",
    "block.update",
    "block.move",
    # Selection
    "block.select",
    # Save bracketing
    "save.start",
    "save.complete",
    # History
    "history.undo",
    "history.redo",
    "history.clear",
}

# Actions that rewrite the block sequence and are recorded in history
STRUCTURAL_ACTIONS: set[str] = {
    "block.add",
    "block.remove",
    "block.update",
    "block.move",
}

# Actions refused while the document is locked
LOCKED_ACTIONS: set[str] = STRUCTURAL_ACTIONS | {"history.undo", "history.redo"}

CONDITION_OPERATORS: set[str] = {"==", "!=", ">", "<", ">=", "<="}
CONDITION_LOGIC: set[str] = {"AND", "OR"}


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class KernelError(Exception):
    """Base class for everything the kernel raises."""

    pass


class BlockValidationError(KernelError):
    """A block payload fails the invariants of its variant."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "invalid block")


class LockedDocumentError(KernelError):
    """A mutating action was dispatched against a locked document."""

    def __init__(self, action_type: str):
        self.action_type = action_type
        super().__init__(f"Document is locked: {action_type} rejected")


class InvalidActionError(KernelError):
    """Action type is unknown or its payload is malformed."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class DocumentNotFound(KernelError):
    """Document does not exist in storage."""

    pass


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class History:
    """Bounded undo/redo stacks of block-sequence snapshots."""

    past: list[list[dict[str, Any]]] = field(default_factory=list)
    future: list[list[dict[str, Any]]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"past": self.past, "future": self.future}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> History:
        return cls(past=d.get("past", []), future=d.get("future", []))


@dataclass
class BuilderState:
    """
    The authoritative in-memory editing state of one document.

    - blocks: ordered block sequence (position is the only ordering)
    - history: undo/redo snapshots of `blocks`
    - saved_blocks / saved_title: the last persisted content; `is_dirty`
      is true iff the current content differs from it
    """

    document_id: str = ""
    title: str = "Untitled Document"
    blocks: list[dict[str, Any]] = field(default_factory=list)
    selected_block_id: str | None = None
    is_dirty: bool = False
    is_saving: bool = False
    last_saved_at: str | None = None  # ISO 8601 UTC
    history: History = field(default_factory=History)
    saved_blocks: list[dict[str, Any]] = field(default_factory=list)
    saved_title: str = "Untitled Document"

    def to_dict(self) -> dict[str, Any]:
        return {
            "documentId": self.document_id,
            "title": self.title,
            "blocks": self.blocks,
            "selectedBlockId": self.selected_block_id,
            "isDirty": self.is_dirty,
            "isSaving": self.is_saving,
            "lastSavedAt": self.last_saved_at,
            "history": self.history.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> BuilderState:
        blocks = d.get("blocks", [])
        title = d.get("title", "Untitled Document")
        return cls(
            document_id=d.get("documentId", ""),
            title=title,
            blocks=blocks,
            selected_block_id=d.get("selectedBlockId"),
            is_dirty=d.get("isDirty", False),
            is_saving=d.get("isSaving", False),
            last_saved_at=d.get("lastSavedAt"),
            history=History.from_dict(d.get("history", {})),
            saved_blocks=copy.deepcopy(blocks),
            saved_title=title,
        )


@dataclass
class Action:
    """
    One builder action. The reducer reads only `type` and `payload`.
    """

    type: str
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "payload": self.payload}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Action:
        return cls(type=d["type"], payload=d.get("payload", {}))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def snapshot_blocks(blocks: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Deep, independent copy of a block sequence."""
    return copy.deepcopy(blocks)


def now_iso() -> str:
    """Current UTC time as ISO 8601 string."""
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
