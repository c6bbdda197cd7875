"""Unified diff normalization.

Turns a per-file unified-diff patch (the ``patch`` field GitHub returns for
each changed file) into an ordered list of line records addressed by their
line number in the new revision of the file.

The records serve two consumers: the prompt renderer, which shows the model
a compact line-numbered view instead of the raw patch, and the extractor,
which can use the set of new-file line numbers to judge whether a cited line
is plausible.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum

from prverdict_core.models import FileDiff

logger = logging.getLogger(__name__)

# Ranges between the leading "@@" markers. The counts are optional: "@@ -3 +3 @@" is a
# valid header for a one-line hunk. The new range is read independently of the old one.
_OLD_RANGE_RE = re.compile(r"(?:^|\s)-(\d+)(?:,(\d+))?(?=\s|$)")
_NEW_RANGE_RE = re.compile(r"(?:^|\s)\+(\d+)(?:,(\d+))?(?=\s|$)")

# File-level headers that may precede the first hunk when a patch comes from
# `git diff` rather than the GitHub API.
_PREAMBLE_PREFIXES = ("diff --git", "index ", "--- ", "+++ ", "new file mode", "deleted file mode", "similarity index")


class LineKind(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    CONTEXT = "context"


@dataclass(frozen=True)
class HunkHeader:
    """``old_start``/``old_count`` are None when the old range is unreadable."""

    old_start: int | None
    old_count: int | None
    new_start: int
    new_count: int


@dataclass(frozen=True)
class DiffLineRecord:
    """One content line of a patch.

    ``target_line`` is the line number in the new file and is None only for
    removed lines. ``old_line`` is the line number in the old file and is None
    only for added lines.
    """

    file: str
    kind: LineKind
    target_line: int | None
    content: str = ""
    old_line: int | None = None


def parse_hunk_header(line: str) -> HunkHeader | None:
    """Parse an ``@@ -a,b +c,d @@`` header, or return None if the new range is missing."""
    if not line.startswith("@@"):
        return None
    ranges = line[2:].split("@@", 1)[0]
    new = _NEW_RANGE_RE.search(ranges)
    if not new:
        return None
    old_start = old_count = None
    old = _OLD_RANGE_RE.search(ranges)
    if old:
        old_start = int(old.group(1))
        old_count = int(old.group(2)) if old.group(2) is not None else 1
    return HunkHeader(
        old_start=old_start,
        old_count=old_count,
        new_start=int(new.group(1)),
        new_count=int(new.group(2)) if new.group(2) is not None else 1,
    )


def normalize_patch(file_path: str, patch: str | None) -> list[DiffLineRecord]:
    """Return the ordered line records for one file's patch.

    A missing patch (binary file, oversized diff, pure rename) yields an empty
    list. A hunk header that cannot be parsed leaves the running counters
    where they were; the lines below it are still recorded.
    """
    if not patch:
        return []

    records: list[DiffLineRecord] = []
    new_line = 1
    old_line = 1
    in_hunk = False

    for line in patch.splitlines():
        if line.startswith("@@"):
            in_hunk = True
            header = parse_hunk_header(line)
            if header is None:
                logger.debug("Malformed hunk header in %s, keeping line %d: %r", file_path, new_line, line)
                continue
            new_line = header.new_start
            if header.old_start is not None:
                old_line = header.old_start
            continue

        if not in_hunk and line.startswith(_PREAMBLE_PREFIXES):
            continue

        if line.startswith("\\"):
            # "\ No newline at end of file"
            continue

        if line.startswith("+"):
            records.append(DiffLineRecord(file_path, LineKind.ADDED, new_line, line[1:]))
            new_line += 1
        elif line.startswith("-"):
            records.append(DiffLineRecord(file_path, LineKind.REMOVED, None, line[1:], old_line))
            old_line += 1
        else:
            content = line[1:] if line.startswith(" ") else line
            records.append(DiffLineRecord(file_path, LineKind.CONTEXT, new_line, content, old_line))
            new_line += 1
            old_line += 1

    return records


def normalize_files(files: list[FileDiff]) -> dict[str, list[DiffLineRecord]]:
    """Normalize every file of a pull request, keyed by path in diff order."""
    return {f.path: normalize_patch(f.path, f.patch) for f in files}


def target_lines(records: list[DiffLineRecord]) -> set[int]:
    """Return the new-file line numbers that appear in the records."""
    return {r.target_line for r in records if r.target_line is not None}


def render_diff_view(normalized: dict[str, list[DiffLineRecord]]) -> str:
    """Render a compact, line-numbered view of the changes.

    Only added and removed lines are shown; context lines are omitted to keep
    the prompt small. Files without a patch are left out entirely.
    """
    sections = []
    for path, records in normalized.items():
        if not records:
            continue
        lines = [f"File: {path}", "Changes:"]
        for record in records:
            if record.kind is LineKind.ADDED:
                lines.append(f"+ Line {record.target_line}: {record.content}")
            elif record.kind is LineKind.REMOVED:
                lines.append(f"- Old line {record.old_line}: {record.content}")
        sections.append("\n".join(lines))
    return "\n\n".join(sections)
