"""Domain types shared by the review pipeline.

Kept free of any GitHub or store imports so every stage of the pipeline
(normalizer, extractor, cache, decision engine) can be exercised with plain
values in tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ReviewVerdict(str, Enum):
    """The binary recommendation recovered from a critique."""

    APPROVE = "approve"
    REQUEST_CHANGES = "request_changes"


@dataclass(frozen=True)
class FileDiff:
    """One changed file as supplied by the diff source.

    ``patch`` is None for binary files, files too large for the API to
    return a patch for, and pure renames.
    """

    path: str
    patch: str | None = None
    status: str = "modified"


@dataclass(frozen=True)
class ReviewComment:
    """A line-level comment addressed to a file in the new revision."""

    file: str
    line: int
    body: str


@dataclass(frozen=True)
class Review:
    """A generated review. Immutable once created.

    ``body`` is the human-facing narrative with the structured comment
    section already removed.
    """

    verdict: ReviewVerdict
    body: str
    comments: tuple[ReviewComment, ...] = field(default_factory=tuple)
