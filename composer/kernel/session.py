"""
Composer Kernel — Builder Session

Sits between the pure reducer and the outside world (document storage).
Coordinates one editor's lifecycle of a document: load, edit, save,
preview.

This is where IO happens. The reducer, interpolation, visibility and diff
functions are pure.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from composer.kernel import actions
from composer.kernel.blocks import create_default
from composer.kernel.builder import can_redo, can_undo, initial_state, reduce, selected_block
from composer.kernel.conditions import build_field_values, filter_visible_blocks
from composer.kernel.types import Action, BuilderState, DocumentNotFound, now_iso, snapshot_blocks
from composer.kernel.variables import interpolate_document
from composer.kernel.versions import DocumentRecord, is_locked

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Storage protocol
# ---------------------------------------------------------------------------


class DocumentStore:
    """
    Abstract storage interface.
    Documents are JSON-shaped dicts: id, title, content, variables,
    currentVersion, status, lockedAt.
    """

    async def get(self, document_id: str) -> dict[str, Any] | None:
        """Fetch a document. Returns None if not found."""
        raise NotImplementedError

    async def put(self, document_id: str, document: dict[str, Any]) -> None:
        """Write a document."""
        raise NotImplementedError


class MemoryDocumentStore(DocumentStore):
    """In-memory storage for testing."""

    def __init__(self) -> None:
        self.documents: dict[str, dict[str, Any]] = {}

    async def get(self, document_id: str) -> dict[str, Any] | None:
        return self.documents.get(document_id)

    async def put(self, document_id: str, document: dict[str, Any]) -> None:
        self.documents[document_id] = document


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class BuilderSession:
    """
    One local writer applying a linear sequence of actions to one document.

    The lock flag comes from the document's lifecycle (set once a recipient
    has signed) and is passed to every reduce call.
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        locked: bool = False,
        history_limit: int | None = None,
    ):
        self.store = store
        self.state: BuilderState = initial_state()
        self.is_locked = locked
        self.history_limit = history_limit
        self.variables: dict[str, Any] = {}
        self._save_lock = asyncio.Lock()

    # -- Loading ------------------------------------------------------------

    async def load(self, document_id: str) -> BuilderState:
        raw = await self.store.get(document_id)
        if raw is None:
            raise DocumentNotFound(document_id)

        record = DocumentRecord.model_validate(raw)
        self.is_locked = is_locked(record)
        self.variables = dict(record.variables or {})
        self.dispatch(actions.set_document(record.id, record.title, record.content))
        logger.info(
            "session: loaded %d blocks for document_id=%s locked=%s",
            len(record.content),
            document_id,
            self.is_locked,
        )
        return self.state

    # -- Editing ------------------------------------------------------------

    def dispatch(self, action: Action) -> BuilderState:
        self.state = reduce(
            self.state,
            action,
            is_locked=self.is_locked,
            history_limit=self.history_limit,
        )
        return self.state

    def add_block(self, block_type: str, index: int | None = None) -> dict[str, Any]:
        """Insert a default block of `block_type` and return it."""
        block = create_default(block_type)
        self.dispatch(actions.add_block(block, index))
        return block

    def remove_block(self, block_id: str) -> BuilderState:
        return self.dispatch(actions.remove_block(block_id))

    def update_block(self, block_id: str, data: dict[str, Any]) -> BuilderState:
        return self.dispatch(actions.update_block(block_id, data))

    def move_block(self, active_id: str, over_id: str) -> BuilderState:
        return self.dispatch(actions.move_block(active_id, over_id))

    def select_block(self, block_id: str | None) -> BuilderState:
        return self.dispatch(actions.select_block(block_id))

    def set_title(self, title: str) -> BuilderState:
        return self.dispatch(actions.set_title(title))

    def undo(self) -> BuilderState:
        return self.dispatch(actions.undo())

    def redo(self) -> BuilderState:
        return self.dispatch(actions.redo())

    @property
    def can_undo(self) -> bool:
        return can_undo(self.state)

    @property
    def can_redo(self) -> bool:
        return can_redo(self.state)

    @property
    def selected_block(self) -> dict[str, Any] | None:
        return selected_block(self.state)

    # -- Saving -------------------------------------------------------------

    async def save(self) -> bool:
        """
        Persist the current title and blocks.

        Bracketed by save.start / save.complete. On failure `is_saving` is
        reset, the state stays dirty, and the error propagates.
        Returns False when there was nothing to save.
        """
        async with self._save_lock:
            if not self.state.is_dirty:
                logger.debug("session: nothing to save for document_id=%s", self.state.document_id)
                return False

            document_id = self.state.document_id
            blocks = snapshot_blocks(self.state.blocks)
            title = self.state.title
            self.dispatch(actions.set_saving(True))

            try:
                existing = await self.store.get(document_id) or {}
                await self.store.put(document_id, {**existing, "id": document_id, "title": title, "content": blocks})
            except Exception:
                logger.exception("session: save failed for document_id=%s", document_id)
                self.dispatch(actions.set_saving(False))
                raise

            self.dispatch(actions.set_saved(now_iso(), blocks=blocks, title=title))
            logger.info("session: saved %d blocks for document_id=%s", len(blocks), document_id)
            return True

    # -- Read paths ---------------------------------------------------------

    def preview(
        self,
        context: dict[str, Any] | None = None,
        custom_values: dict[str, Any] | None = None,
        field_values: dict[str, Any] | None = None,
        *,
        is_editor_context: bool = False,
    ) -> list[dict[str, Any]]:
        """
        The blocks a reader would see: hidden blocks filtered out, merge
        fields resolved. Document variables are the fallback custom values.
        """
        blocks = self.state.blocks
        if field_values is None:
            field_values = build_field_values(blocks)
        values = {**self.variables, **(custom_values or {})}
        visible = filter_visible_blocks(blocks, field_values, is_editor_context)
        return interpolate_document(visible, values, context)
