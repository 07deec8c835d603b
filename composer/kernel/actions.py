"""
Composer Kernel — Action Construction

Factory functions for well-formed builder actions.
Used by the session to wrap user edits before feeding them to the reducer,
and by tests to build actions concisely.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from composer.kernel.types import ACTION_TYPES, Action, now_iso


def set_document(document_id: str, title: str, blocks: list[dict[str, Any]]) -> Action:
    return Action("document.set", {"id": document_id, "title": title, "blocks": blocks})


def set_title(title: str) -> Action:
    return Action("title.set", {"title": title})


def add_block(block: dict[str, Any], index: int | None = None) -> Action:
    payload: dict[str, Any] = {"block": block}
    if index is not None:
        payload["index"] = index
    return Action("block.add", payload)


def remove_block(block_id: str) -> Action:
    return Action("block.remove", {"id": block_id})


def update_block(block_id: str, data: dict[str, Any]) -> Action:
    """Partial payload: keys in `data` replace the block's keys, others are kept."""
    return Action("block.update", {"id": block_id, "data": data})


def move_block(active_id: str, over_id: str) -> Action:
    return Action("block.move", {"active_id": active_id, "over_id": over_id})


def select_block(block_id: str | None) -> Action:
    return Action("block.select", {"id": block_id})


def set_saving(saving: bool) -> Action:
    return Action("save.start", {"saving": saving})


def set_saved(
    saved_at: datetime | str | None = None,
    blocks: list[dict[str, Any]] | None = None,
    title: str | None = None,
) -> Action:
    """
    Mark a save as finished.

    `blocks`/`title` are what was actually persisted; when omitted the
    current content is taken as persisted.
    """
    if isinstance(saved_at, datetime):
        saved_at = saved_at.isoformat()
    payload: dict[str, Any] = {"saved_at": saved_at or now_iso()}
    if blocks is not None:
        payload["blocks"] = blocks
    if title is not None:
        payload["title"] = title
    return Action("save.complete", payload)


def undo() -> Action:
    return Action("history.undo")


def redo() -> Action:
    return Action("history.redo")


def clear_history() -> Action:
    return Action("history.clear")


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_action(action: Action) -> list[str]:
    """
    Validate an action's type and payload structure.
    Returns a list of error strings. Empty list = valid.

    Structural only: it does NOT check whether referenced blocks exist or
    whether a block payload satisfies its variant. That's the reducer's job.
    """
    errors: list[str] = []

    if action.type not in ACTION_TYPES:
        errors.append(f"Unknown action type: {action.type}")
        return errors

    if not isinstance(action.payload, dict):
        errors.append("Payload must be a non-null object")
        return errors

    validator = _VALIDATORS.get(action.type)
    if validator:
        errors.extend(validator(action.payload))

    return errors


def _require_str(p: dict, key: str, action_type: str) -> list[str]:
    if key not in p:
        return [f"{action_type} requires '{key}'"]
    if not isinstance(p[key], str) or not p[key]:
        return [f"'{key}' must be a non-empty string"]
    return []


def _validate_set_document(p: dict) -> list[str]:
    errors = _require_str(p, "id", "document.set")
    if not isinstance(p.get("title"), str):
        errors.append("document.set requires 'title' string")
    if not isinstance(p.get("blocks"), list):
        errors.append("document.set requires 'blocks' list")
    return errors


def _validate_set_title(p: dict) -> list[str]:
    if not isinstance(p.get("title"), str):
        return ["title.set requires 'title' string"]
    return []


def _validate_add_block(p: dict) -> list[str]:
    errors: list[str] = []
    if not isinstance(p.get("block"), dict):
        errors.append("block.add requires 'block' object")
    index = p.get("index")
    if index is not None and (isinstance(index, bool) or not isinstance(index, int)):
        errors.append("'index' must be an integer")
    return errors


def _validate_remove_block(p: dict) -> list[str]:
    return _require_str(p, "id", "block.remove")


def _validate_update_block(p: dict) -> list[str]:
    errors = _require_str(p, "id", "block.update")
    if not isinstance(p.get("data"), dict):
        errors.append("block.update requires 'data' object")
    return errors


def _validate_move_block(p: dict) -> list[str]:
    return _require_str(p, "active_id", "block.move") + _require_str(p, "over_id", "block.move")


def _validate_select_block(p: dict) -> list[str]:
    block_id = p.get("id")
    if block_id is not None and not isinstance(block_id, str):
        return ["'id' must be a string or null"]
    return []


def _validate_set_saving(p: dict) -> list[str]:
    if not isinstance(p.get("saving"), bool):
        return ["save.start requires 'saving' boolean"]
    return []


def _validate_set_saved(p: dict) -> list[str]:
    errors: list[str] = []
    if not isinstance(p.get("saved_at"), str):
        errors.append("save.complete requires 'saved_at' string")
    if "blocks" in p and not isinstance(p["blocks"], list):
        errors.append("'blocks' must be a list")
    if "title" in p and not isinstance(p["title"], str):
        errors.append("'title' must be a string")
    return errors


_VALIDATORS: dict[str, Any] = {
    "document.set": _validate_set_document,
    "title.set": _validate_set_title,
    "block.add": _validate_add_block,
    "block.remove": _validate_remove_block,
    "block.update": _validate_update_block,
    "block.move": _validate_move_block,
    "block.select": _validate_select_block,
    "save.start": _validate_set_saving,
    "save.complete": _validate_set_saved,
}
