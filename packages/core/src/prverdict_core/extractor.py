"""Recover a structured review from the critique source's free-text answer.

The model is asked (see ``prverdict_core.prompt``) to put line comments under
a fixed header, one per line::

    ### Specific Comments:
    - File: "src/app.py", Line 42: "Missing null check."

and to end with a verdict token. Models drift from any format they are
given, so everything here is best-effort: lines that cannot be read are
skipped, comments that cite files outside the diff are dropped, and an
unclear verdict falls back to requesting changes. Nothing in this module
raises on malformed model output.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Collection, Mapping
from dataclasses import dataclass

from prverdict_core.models import Review, ReviewComment, ReviewVerdict
from prverdict_core.prompt import APPROVE_TOKEN, REQUEST_CHANGES_TOKEN

logger = logging.getLogger(__name__)

# "### Specific Comments:", "4. **Specific Comments:**", "**Specific Comments**:",
# "### Specific Comments (line-level):", "## Specific Comments - by file" ...
_HEADER_RE = re.compile(
    r"^\s*(?:#{1,6}\s*)?(?:\d+\.\s*)?(?:\*\*|__)?\s*specific\s+comments"
    r"(?:\s*\([^)]*\)|\s+[-–]\s*[\w\s-]{0,40}?)?\s*:?\s*(?:\*\*|__)?\s*:?\s*$",
    re.IGNORECASE,
)

# A markdown heading, or a bold line acting as one, closes the comment section.
_SECTION_END_RE = re.compile(r"^\s*(?:#{1,6}\s+\S|(?:\d+\.\s*)?\*\*[^*]+\*\*\s*:?\s*$)")

_COMMENT_RE = re.compile(
    r"""
    ^\s*(?:[-*+•]|\d+[.)])?\s*                 # optional bullet
    (?:\*\*)?file(?:\*\*)?\s*:?\s*(?:\*\*)?\s*      # File:
    (?:["“](?P<dq>[^"“”]+)["”]|[`'](?P<sq>[^`']+)[`']|(?P<bare>[^\s,;"'`“”]+))
    \s*[,;]?\s*
    (?:\*\*)?lines?(?:\*\*)?\s*:?\s*                # Line
    (?P<line>[+-]?\d+)(?:\s*[-–]\s*\d+)?       # 42 or 42-45
    \s*(?:\*\*)?\s*[:\-–]?\s*
    (?P<rest>.*)$
    """,
    re.IGNORECASE | re.VERBOSE,
)

_OPEN_QUOTES = {'"': '"', "“": "”"}


@dataclass
class _Candidate:
    file: str
    line: str
    text: str
    closed: bool
    close_quote: str = ""


def _normalize_token_text(text: str) -> str:
    # Markdown renderers and some models escape underscores: \_\_approve\_\_
    return text.replace("\\_", "_").lower()


def extract_verdict(text: str) -> ReviewVerdict:
    """Return APPROVE only when the approve token, and only it, is present."""
    normalized = _normalize_token_text(text)
    has_approve = APPROVE_TOKEN in normalized
    has_request_changes = REQUEST_CHANGES_TOKEN in normalized

    if has_approve and not has_request_changes:
        return ReviewVerdict.APPROVE
    if has_approve and has_request_changes:
        logger.warning("Critique contains both verdict tokens; defaulting to request changes.")
    elif not has_request_changes:
        logger.warning("Critique contains no verdict token; defaulting to request changes.")
    return ReviewVerdict.REQUEST_CHANGES


def _is_header(line: str) -> bool:
    return bool(_HEADER_RE.match(line))


def _is_section_end(line: str) -> bool:
    # A comment record may quote a verdict token; it never closes the section.
    if _COMMENT_RE.match(line):
        return False
    if _SECTION_END_RE.match(line):
        return True
    normalized = _normalize_token_text(line)
    return APPROVE_TOKEN in normalized or REQUEST_CHANGES_TOKEN in normalized


def find_comment_sections(lines: list[str]) -> list[tuple[int, int]]:
    """Return ``(start, end)`` line index pairs of every comment section.

    ``start`` is the header line; ``end`` is exclusive and points at the line
    that closed the section (or ``len(lines)``).
    """
    sections = []
    i = 0
    while i < len(lines):
        if not _is_header(lines[i]):
            i += 1
            continue
        end = i + 1
        while end < len(lines) and not _is_header(lines[end]) and not _is_section_end(lines[end]):
            end += 1
        sections.append((i, end))
        i = end
    return sections


def _start_candidate(line: str) -> _Candidate | None:
    match = _COMMENT_RE.match(line)
    if not match:
        return None
    rest = match.group("rest").strip()
    closed = True
    close_quote = ""
    if rest[:1] in _OPEN_QUOTES:
        close_quote = _OPEN_QUOTES[rest[0]]
        body = rest[1:]
        if len(body) >= 1 and body.rstrip().endswith(close_quote):
            body = body.rstrip()[: -len(close_quote)]
        else:
            closed = False
        rest = body
    path = match.group("dq") or match.group("sq") or match.group("bare")
    return _Candidate(path, match.group("line"), rest, closed, close_quote)


def _collect_candidates(section: list[str]) -> list[_Candidate]:
    candidates: list[_Candidate] = []
    current: _Candidate | None = None

    for raw in section:
        started = _start_candidate(raw)
        if started is not None:
            if current is not None:
                candidates.append(current)
            current = started if not started.closed else None
            if started.closed:
                candidates.append(started)
            continue

        if current is not None:
            # Continuation of a quoted comment that spans several lines.
            stripped = raw.rstrip()
            if stripped.endswith(current.close_quote):
                current.text += "\n" + stripped[: -len(current.close_quote)]
                current.closed = True
                candidates.append(current)
                current = None
            else:
                current.text += "\n" + stripped
            continue

        if raw.strip():
            logger.debug("Skipping unrecognised comment line: %r", raw)

    if current is not None:
        logger.debug("Comment for %s line %s was never closed; keeping it as is.", current.file, current.line)
        candidates.append(current)
    return candidates


def _clean_path(path: str) -> str:
    path = path.strip().strip("*").strip()
    if path.startswith("./"):
        path = path[2:]
    return path


def extract_comments(
    text: str,
    valid_files: Collection[str],
    line_index: Mapping[str, Collection[int]] | None = None,
) -> list[ReviewComment]:
    """Return the line comments found in the comment section(s) of ``text``.

    A comment is kept only when its file is one of ``valid_files``, its line is
    a positive integer, and its text is non-empty. When ``line_index`` is given
    the line must additionally be one of the new-file lines recorded for that
    file in the diff.
    """
    lines = text.splitlines()
    sections = find_comment_sections(lines)
    if not sections:
        logger.info("No 'Specific Comments' section found.")
        return []

    valid = set(valid_files)
    comments: list[ReviewComment] = []
    seen: set[tuple[str, int, str]] = set()

    for start, end in sections:
        for candidate in _collect_candidates(lines[start + 1 : end]):
            path = _clean_path(candidate.file)
            try:
                line_number = int(candidate.line)
            except ValueError:
                logger.info("Invalid line number %r for %s. Skipping comment.", candidate.line, path)
                continue
            body = candidate.text.strip()

            if path not in valid:
                logger.info("File %s not found in PR diff. Skipping comment.", path)
                continue
            if line_number <= 0:
                logger.info("Non-positive line number %d for %s. Skipping comment.", line_number, path)
                continue
            if not body:
                logger.info("Empty comment for %s line %d. Skipping comment.", path, line_number)
                continue
            if line_index is not None and line_number not in line_index.get(path, ()):
                logger.info("Line %d is not part of the diff for %s. Skipping comment.", line_number, path)
                continue

            key = (path, line_number, body)
            if key in seen:
                logger.debug("Skipping duplicate comment for %s line %d", path, line_number)
                continue
            seen.add(key)
            comments.append(ReviewComment(file=path, line=line_number, body=body))

    logger.info("Marked %d line comment(s).", len(comments))
    return comments


def strip_comments_section(text: str) -> str:
    """Remove the structured comment section(s), keeping the prose around them.

    Text without a comment section is returned unchanged.
    """
    lines = text.splitlines()
    sections = find_comment_sections(lines)
    if not sections:
        return text

    chunks: list[str] = []
    cursor = 0
    for start, end in sections:
        chunks.append("\n".join(lines[cursor:start]).strip("\n"))
        cursor = end
    chunks.append("\n".join(lines[cursor:]).strip("\n"))

    return "\n\n".join(chunk.rstrip() for chunk in chunks if chunk.strip())


def extract_review(
    text: str,
    valid_files: Collection[str],
    line_index: Mapping[str, Collection[int]] | None = None,
) -> Review:
    """Build a Review from the raw critique text."""
    return Review(
        verdict=extract_verdict(text),
        body=strip_comments_section(text),
        comments=tuple(extract_comments(text, valid_files, line_index)),
    )
