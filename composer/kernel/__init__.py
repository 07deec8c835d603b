"""
Composer Kernel — the document composition and versioning engine.

Components:
  blocks      — block registry: defaults and per-variant validation
  variables   — merge-field interpolation ({{recipient.name}} etc.)
  conditions  — visibility rule evaluation over a flattened field context
  builder     — (state, action) → state  (pure, deterministic, undo/redo)
  diff        — block-level and line-level diff between two snapshots
  session     — coordinates builder + storage IO (load, save, preview)
"""

from composer.kernel.blocks import create_default, validate_block, validate_document
from composer.kernel.builder import can_redo, can_undo, initial_state, reduce, replay
from composer.kernel.conditions import evaluate, filter_visible_blocks, should_render
from composer.kernel.diff import compare_versions, compute_block_diff, compute_text_diff
from composer.kernel.session import BuilderSession
from composer.kernel.types import BlockValidationError, LockedDocumentError
from composer.kernel.variables import extract_variables, interpolate, interpolate_document

__all__ = [
    "create_default",
    "validate_block",
    "validate_document",
    "reduce",
    "replay",
    "initial_state",
    "can_undo",
    "can_redo",
    "interpolate",
    "interpolate_document",
    "extract_variables",
    "evaluate",
    "should_render",
    "filter_visible_blocks",
    "compute_block_diff",
    "compute_text_diff",
    "compare_versions",
    "BuilderSession",
    "BlockValidationError",
    "LockedDocumentError",
]
