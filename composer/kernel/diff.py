"""
Composer Kernel — Version Diff

Pure functions: (old snapshot, new snapshot) → block diff + line diff
No side effects. Deterministic. Total: malformed or empty content
degrades to an all-added / all-removed diff, never an exception.

Block-level: blocks are matched by id and compared through a plain-text
projection (block_text). Line-level: classic LCS over the projections of
a modified block.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class DiffLine:
    type: str  # "added" | "removed" | "unchanged"
    content: str
    line_number: int | None = None  # position in the new text; never set on removed lines

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"type": self.type, "content": self.content}
        if self.line_number is not None:
            d["lineNumber"] = self.line_number
        return d


@dataclass
class BlockDiff:
    type: str  # "added" | "removed" | "modified" | "unchanged"
    old_block: dict[str, Any] | None = None
    new_block: dict[str, Any] | None = None
    text_diff: list[DiffLine] | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"type": self.type}
        if self.old_block is not None:
            d["oldBlock"] = self.old_block
        if self.new_block is not None:
            d["newBlock"] = self.new_block
        if self.text_diff is not None:
            d["textDiff"] = [line.to_dict() for line in self.text_diff]
        return d


@dataclass
class VersionComparison:
    title_changed: bool
    old_title: str
    new_title: str
    block_diffs: list[BlockDiff] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return self.title_changed or any(d.type != "unchanged" for d in self.block_diffs)

    def counts(self) -> dict[str, int]:
        result = {"added": 0, "removed": 0, "modified": 0, "unchanged": 0}
        for d in self.block_diffs:
            result[d.type] += 1
        return result

    def to_dict(self) -> dict[str, Any]:
        return {
            "titleChanged": self.title_changed,
            "oldTitle": self.old_title,
            "newTitle": self.new_title,
            "hasChanges": self.has_changes,
            "counts": self.counts(),
            "blockDiffs": [d.to_dict() for d in self.block_diffs],
        }


# ---------------------------------------------------------------------------
# Plain-text projection
# ---------------------------------------------------------------------------


def _count(value: Any) -> int:
    return len(value) if isinstance(value, list) else 0


_PROJECTIONS: dict[str, Any] = {
    "text": lambda b: str(b.get("content") or ""),
    "heading": lambda b: f"# {b.get('content') or ''}",
    "image": lambda b: f"[Image: {b.get('alt') or 'Image'}]",
    "divider": lambda b: "---",
    "spacer": lambda b: "",
    "signature": lambda b: "[Signed]" if b.get("signatureValue") or b.get("signedData") else "[Signature: Sign here]",
    "pricing-table": lambda b: f"[Pricing Table: {_count(b.get('items'))} items]",
    "video": lambda b: f"[Video: {b.get('url') or 'No URL'}]",
    "data-uri": lambda b: f"[Data URI: {b.get('label') or b.get('network') or 'payload'}]",
    "table": lambda b: f"[Table: {_count(b.get('cells', b.get('rows')))} rows]",
    "payment": lambda b: f"[Payment: {b.get('amount') or 0} {b.get('currency') or 'USD'}]",
    "date": lambda b: str(b.get("value") or "[Date field]"),
    "checkbox": lambda b: f"[{'x' if b.get('checked') else ' '}] {b.get('label') or ''}",
    "text-input": lambda b: str(b.get("value") or f"[Input: {b.get('label') or 'Text field'}]"),
    "page-break": lambda b: "--- Page Break ---",
}


def block_text(block: Any) -> str:
    """
    Deterministic plain-text rendering of a block, for change detection only.
    Unknown types fall back to canonical JSON.
    """
    if not isinstance(block, dict):
        return ""
    block_type = block.get("type")
    projection = _PROJECTIONS.get(block_type) if isinstance(block_type, str) else None
    if projection is None:
        return json.dumps(block, sort_keys=True, default=str)
    return projection(block)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def compute_text_diff(old_text: str, new_text: str) -> list[DiffLine]:
    """
    LCS line diff. Within a changed run, removed lines come before added
    ones. `line_number` is the 1-based line in the new text.
    """
    old_lines = old_text.split("\n")
    new_lines = new_text.split("\n")
    m, n = len(old_lines), len(new_lines)

    # lcs[i][j] = LCS length of old_lines[i:] and new_lines[j:]
    lcs = [[0] * (n + 1) for _ in range(m + 1)]
    for i in range(m - 1, -1, -1):
        for j in range(n - 1, -1, -1):
            if old_lines[i] == new_lines[j]:
                lcs[i][j] = lcs[i + 1][j + 1] + 1
            else:
                lcs[i][j] = max(lcs[i + 1][j], lcs[i][j + 1])

    diff: list[DiffLine] = []
    i = j = 0
    while i < m and j < n:
        if old_lines[i] == new_lines[j]:
            diff.append(DiffLine("unchanged", new_lines[j], j + 1))
            i += 1
            j += 1
        elif lcs[i + 1][j] >= lcs[i][j + 1]:
            diff.append(DiffLine("removed", old_lines[i]))
            i += 1
        else:
            diff.append(DiffLine("added", new_lines[j], j + 1))
            j += 1
    for k in range(i, m):
        diff.append(DiffLine("removed", old_lines[k]))
    for k in range(j, n):
        diff.append(DiffLine("added", new_lines[k], k + 1))
    return diff


def compute_block_diff(old_content: Any, new_content: Any) -> list[BlockDiff]:
    """
    Match blocks by id.

    Order: the old snapshot's blocks (removed / modified / unchanged) in
    their old order, then added blocks in new-snapshot order. Blocks
    without an id never match anything.
    """
    old_blocks = _blocks_of(old_content)
    new_blocks = _blocks_of(new_content)

    old_ids = {b["id"] for b in old_blocks if _has_id(b)}
    new_by_id = {b["id"]: b for b in new_blocks if _has_id(b)}

    diffs: list[BlockDiff] = []
    for old_block in old_blocks:
        new_block = new_by_id.get(old_block["id"]) if _has_id(old_block) else None
        if new_block is None:
            diffs.append(BlockDiff("removed", old_block=old_block))
            continue
        old_text = block_text(old_block)
        new_text = block_text(new_block)
        if old_text != new_text:
            diffs.append(
                BlockDiff(
                    "modified",
                    old_block=old_block,
                    new_block=new_block,
                    text_diff=compute_text_diff(old_text, new_text),
                )
            )
        else:
            diffs.append(BlockDiff("unchanged", old_block=old_block, new_block=new_block))

    for new_block in new_blocks:
        if not _has_id(new_block) or new_block["id"] not in old_ids:
            diffs.append(BlockDiff("added", new_block=new_block))

    return diffs


def compare_versions(old_version: Any, new_version: Any) -> VersionComparison:
    """
    Compare two version records (dicts or DocumentVersion models):
    title change plus block diff of their content.
    """
    old = _as_record(old_version)
    new = _as_record(new_version)
    old_title = str(old.get("title") or "")
    new_title = str(new.get("title") or "")
    return VersionComparison(
        title_changed=old_title != new_title,
        old_title=old_title,
        new_title=new_title,
        block_diffs=compute_block_diff(old.get("content"), new.get("content")),
    )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _blocks_of(content: Any) -> list[dict[str, Any]]:
    if not isinstance(content, list):
        return []
    return [b for b in content if isinstance(b, dict)]


def _has_id(block: dict[str, Any]) -> bool:
    block_id = block.get("id")
    return isinstance(block_id, str) and bool(block_id)


def _as_record(version: Any) -> dict[str, Any]:
    if hasattr(version, "model_dump"):
        return version.model_dump(by_alias=True)
    if isinstance(version, dict):
        return version
    return {}
