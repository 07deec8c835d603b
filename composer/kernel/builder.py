"""
Composer Kernel — Builder Reducer

Pure function: (state, action) → state
No side effects. No IO. Deterministic.

Given the same sequence of actions, produces the same state every time.
The input state is never modified: each call works on a shallow copy with
its own history lists, and a handler that rewrites the block sequence
deep-copies it first. Block lists already in history are never mutated,
so they are shared between states instead of copied again.

Structural actions (block.add/remove/update/move) push a snapshot of the
block sequence onto history.past (bounded, oldest evicted) and clear
history.future. While the document is locked they raise
LockedDocumentError instead.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
from typing import Any

from composer.kernel.actions import validate_action
from composer.kernel.blocks import ensure_valid_block
from composer.kernel.config import settings
from composer.kernel.types import (
    LOCKED_ACTIONS,
    Action,
    BlockValidationError,
    BuilderState,
    History,
    InvalidActionError,
    LockedDocumentError,
    snapshot_blocks,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def initial_state() -> BuilderState:
    """The state before any document is loaded."""
    return BuilderState()


def reduce(
    state: BuilderState,
    action: Action,
    *,
    is_locked: bool = False,
    history_limit: int | None = None,
    allow_title_edits: bool | None = None,
) -> BuilderState:
    """
    Apply one action to the current state and return the new state.

    Raises:
      InvalidActionError    unknown type or malformed payload
      LockedDocumentError   mutating action while `is_locked`
      BlockValidationError  added/updated block fails its variant invariants
    """
    errors = validate_action(action)
    if errors:
        logger.warning("builder: invalid action %s: %s", action.type, "; ".join(errors))
        raise InvalidActionError(errors)

    if is_locked and _refused_when_locked(action.type, allow_title_edits):
        logger.warning("builder: rejected %s on locked document %s", action.type, state.document_id)
        raise LockedDocumentError(action.type)

    limit = history_limit if history_limit is not None else settings.HISTORY_LIMIT
    new_state = dataclasses.replace(
        state,
        history=History(past=list(state.history.past), future=list(state.history.future)),
    )
    _HANDLERS[action.type](new_state, action.payload, limit)
    return new_state


def replay(actions: list[Action], *, is_locked: bool = False) -> BuilderState:
    """
    Rebuild state from scratch by reducing over all actions.
    replay(actions) == reduce(reduce(initial_state(), a1), a2)...
    """
    state = initial_state()
    for action in actions:
        state = reduce(state, action, is_locked=is_locked)
    return state


def can_undo(state: BuilderState) -> bool:
    return len(state.history.past) > 0


def can_redo(state: BuilderState) -> bool:
    return len(state.history.future) > 0


def selected_block(state: BuilderState) -> dict[str, Any] | None:
    if state.selected_block_id is None:
        return None
    idx = _index_of(state.blocks, state.selected_block_id)
    return state.blocks[idx] if idx is not None else None


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _refused_when_locked(action_type: str, allow_title_edits: bool | None) -> bool:
    if action_type in LOCKED_ACTIONS:
        return True
    if action_type == "title.set":
        allowed = settings.ALLOW_TITLE_WHEN_LOCKED if allow_title_edits is None else allow_title_edits
        return not allowed
    return False


def _index_of(blocks: list[dict[str, Any]], block_id: str) -> int | None:
    for i, block in enumerate(blocks):
        if block.get("id") == block_id:
            return i
    return None


def _record(state: BuilderState, limit: int) -> None:
    """
    Push the current blocks onto history.past, drop any redo branch, and
    give the state a private copy of the blocks to mutate.
    """
    state.history.past.append(state.blocks)
    del state.history.past[:-limit]
    state.history.future.clear()
    state.blocks = snapshot_blocks(state.blocks)


def _refresh_dirty(state: BuilderState) -> None:
    state.is_dirty = state.blocks != state.saved_blocks or state.title != state.saved_title


def _fix_selection(state: BuilderState) -> None:
    if state.selected_block_id is not None and _index_of(state.blocks, state.selected_block_id) is None:
        state.selected_block_id = None


# ---------------------------------------------------------------------------
# Action handlers
# ---------------------------------------------------------------------------


def _handle_set_document(state: BuilderState, p: dict, limit: int) -> None:
    # A fresh load, not an edit
    state.document_id = p["id"]
    state.title = p["title"]
    state.blocks = snapshot_blocks(p["blocks"])
    state.saved_blocks = snapshot_blocks(p["blocks"])
    state.saved_title = p["title"]
    state.selected_block_id = None
    state.is_dirty = False
    state.history = History()


def _handle_set_title(state: BuilderState, p: dict, limit: int) -> None:
    state.title = p["title"]
    _refresh_dirty(state)


def _handle_add_block(state: BuilderState, p: dict, limit: int) -> None:
    block = p["block"]
    ensure_valid_block(block)
    if _index_of(state.blocks, block["id"]) is not None:
        raise BlockValidationError([f"Duplicate block id: {block['id']}"])

    _record(state, limit)
    index = p.get("index")
    if index is None:
        state.blocks.append(copy.deepcopy(block))
    else:
        state.blocks.insert(index, copy.deepcopy(block))
    state.selected_block_id = block["id"]
    _refresh_dirty(state)


def _handle_remove_block(state: BuilderState, p: dict, limit: int) -> None:
    idx = _index_of(state.blocks, p["id"])
    if idx is None:
        return

    _record(state, limit)
    del state.blocks[idx]
    if state.selected_block_id == p["id"]:
        state.selected_block_id = None
    _refresh_dirty(state)


def _handle_update_block(state: BuilderState, p: dict, limit: int) -> None:
    idx = _index_of(state.blocks, p["id"])
    if idx is None:
        return

    block = state.blocks[idx]
    data = p["data"]
    for key in ("id", "type"):
        if key in data and data[key] != block.get(key):
            raise BlockValidationError([f"'{key}' cannot be changed by block.update"])

    updated = copy.deepcopy(block)
    for key, value in data.items():
        if value is None:
            updated.pop(key, None)
        else:
            updated[key] = copy.deepcopy(value)
    if updated == block:
        return
    ensure_valid_block(updated)

    _record(state, limit)
    state.blocks[idx] = updated
    _refresh_dirty(state)


def _handle_move_block(state: BuilderState, p: dict, limit: int) -> None:
    old_index = _index_of(state.blocks, p["active_id"])
    new_index = _index_of(state.blocks, p["over_id"])
    if old_index is None or new_index is None or old_index == new_index:
        return

    _record(state, limit)
    moved = state.blocks.pop(old_index)
    state.blocks.insert(new_index, moved)
    _refresh_dirty(state)


def _handle_select_block(state: BuilderState, p: dict, limit: int) -> None:
    block_id = p.get("id")
    if block_id is not None and _index_of(state.blocks, block_id) is None:
        block_id = None
    state.selected_block_id = block_id


def _handle_set_saving(state: BuilderState, p: dict, limit: int) -> None:
    state.is_saving = p["saving"]


def _handle_set_saved(state: BuilderState, p: dict, limit: int) -> None:
    state.is_saving = False
    state.last_saved_at = p["saved_at"]
    state.saved_blocks = snapshot_blocks(p.get("blocks", state.blocks))
    state.saved_title = p.get("title", state.title)
    _refresh_dirty(state)


def _handle_undo(state: BuilderState, p: dict, limit: int) -> None:
    if not state.history.past:
        return
    previous = state.history.past.pop()
    state.history.future.append(state.blocks)
    state.blocks = previous
    _fix_selection(state)
    _refresh_dirty(state)


def _handle_redo(state: BuilderState, p: dict, limit: int) -> None:
    if not state.history.future:
        return
    following = state.history.future.pop()
    state.history.past.append(state.blocks)
    del state.history.past[:-limit]
    state.blocks = following
    _fix_selection(state)
    _refresh_dirty(state)


def _handle_clear_history(state: BuilderState, p: dict, limit: int) -> None:
    state.history = History()


# ---------------------------------------------------------------------------
# Handler dispatch table
# ---------------------------------------------------------------------------

_HANDLERS: dict[str, Any] = {
    "document.set": _handle_set_document,
    "title.set": _handle_set_title,
    "block.add": _handle_add_block,
    "block.remove": _handle_remove_block,
    "block.update": _handle_update_block,
    "block.move": _handle_move_block,
    "block.select": _handle_select_block,
    "save.start": _handle_set_saving,
    "save.complete": _handle_set_saved,
    "history.undo": _handle_undo,
    "history.redo": _handle_redo,
    "history.clear": _handle_clear_history,
}
