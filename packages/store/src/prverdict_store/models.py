"""Cached review data models.

Decoupled from prverdict_core so the store layer can be used independently
and prverdict_core has no knowledge of persistence concerns. A cached review
is split into a narrative (plain Markdown prose) and structured data
(verdict and line comments); backends persist the two together.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class CommentRecord:
    """A single line comment persisted to the store."""

    path: str
    line: int
    body: str


@dataclass(frozen=True)
class ReviewRecord:
    """A generated review persisted for one ``(repo, head_sha)``."""

    repo: str
    head_sha: str
    verdict: str  # "approve" | "request_changes"
    narrative: str
    comments: tuple[CommentRecord, ...] = field(default_factory=tuple)
    created_at: str = ""  # ISO-8601 UTC timestamp


def structured_payload(record: ReviewRecord) -> dict:
    """The machine-readable half of a record."""
    return {
        "repo": record.repo,
        "head_sha": record.head_sha,
        "verdict": record.verdict,
        "created_at": record.created_at,
        "comments": [{"path": c.path, "line": c.line, "body": c.body} for c in record.comments],
    }


def record_from_parts(narrative: str, payload: dict) -> ReviewRecord:
    """Reassemble a record from its narrative and structured halves."""
    return ReviewRecord(
        repo=payload.get("repo", ""),
        head_sha=payload.get("head_sha", ""),
        verdict=payload.get("verdict", "request_changes"),
        narrative=narrative,
        comments=tuple(
            CommentRecord(path=c.get("path", ""), line=c.get("line", 0), body=c.get("body", ""))
            for c in payload.get("comments", [])
        ),
        created_at=payload.get("created_at", ""),
    )
