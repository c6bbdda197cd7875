"""Review cache contract and the normal / force-refresh lookup policy.

A generated review is keyed by ``(repository, head commit SHA)``. A new commit
changes the key, so stale entries are never looked up again; nothing is
purged. Persistent backends live in ``prverdict_store`` and are adapted to
this interface by the CLI, which keeps the core free of storage concerns.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum

from prverdict_core.models import Review

logger = logging.getLogger(__name__)


class CacheMode(str, Enum):
    NORMAL = "normal"
    FORCE_REFRESH = "force_refresh"


class ReviewCache(ABC):
    """Key-value store of reviews by ``(repository, head_sha)``.

    ``store`` must be all-or-nothing: after it returns or raises, a lookup
    sees either the complete new review, the previous one, or nothing.
    """

    @abstractmethod
    def lookup(self, repository: str, head_sha: str) -> Review | None:
        """Return the cached review for the commit, or None."""

    @abstractmethod
    def store(self, repository: str, head_sha: str, review: Review) -> None:
        """Persist ``review`` for the commit, replacing any previous entry."""


class InMemoryReviewCache(ReviewCache):
    """Dict-backed cache, for tests and embedding callers."""

    def __init__(self):
        self._entries: dict[tuple[str, str], Review] = {}

    def lookup(self, repository: str, head_sha: str) -> Review | None:
        return self._entries.get((repository, head_sha))

    def store(self, repository: str, head_sha: str, review: Review) -> None:
        self._entries[(repository, head_sha)] = review

    def __len__(self) -> int:
        return len(self._entries)


def resolve_review(
    cache: ReviewCache,
    repository: str,
    head_sha: str,
    mode: CacheMode,
    generate: Callable[[], Review],
) -> tuple[Review, bool]:
    """Return ``(review, from_cache)`` for the commit.

    In NORMAL mode a cached review is reused; otherwise ``generate`` is called
    and its result stored. FORCE_REFRESH always regenerates and overwrites.
    If ``generate`` raises, nothing is stored.
    """
    if mode is CacheMode.NORMAL:
        cached = cache.lookup(repository, head_sha)
        if cached is not None:
            logger.info("Using cached review for %s@%s", repository, head_sha[:7])
            return cached, True
        logger.debug("No cached review for %s@%s", repository, head_sha[:7])
    else:
        logger.info("Force refresh: regenerating review for %s@%s", repository, head_sha[:7])

    review = generate()
    cache.store(repository, head_sha, review)
    return review, False
