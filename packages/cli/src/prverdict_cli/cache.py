"""Bridge between prverdict_core's ReviewCache and prverdict_store backends.

The CLI layer owns this mapping: prverdict_core has no store knowledge and
prverdict_store has no core knowledge. The CLI bridges the two.
"""

from __future__ import annotations

from datetime import datetime, timezone

from prverdict_core.cache import ReviewCache
from prverdict_core.models import Review, ReviewComment, ReviewVerdict
from prverdict_store.base import BaseStore
from prverdict_store.models import CommentRecord, ReviewRecord


def review_to_record(repo: str, head_sha: str, review: Review) -> ReviewRecord:
    return ReviewRecord(
        repo=repo,
        head_sha=head_sha,
        verdict=review.verdict.value,
        narrative=review.body,
        comments=tuple(CommentRecord(path=c.file, line=c.line, body=c.body) for c in review.comments),
        created_at=datetime.now(timezone.utc).isoformat(),
    )


def record_to_review(record: ReviewRecord) -> Review:
    try:
        verdict = ReviewVerdict(record.verdict)
    except ValueError:
        verdict = ReviewVerdict.REQUEST_CHANGES
    return Review(
        verdict=verdict,
        body=record.narrative,
        comments=tuple(ReviewComment(file=c.path, line=c.line, body=c.body) for c in record.comments),
    )


class StoreReviewCache(ReviewCache):
    """A ReviewCache backed by any BaseStore."""

    def __init__(self, store: BaseStore):
        self._store = store

    def lookup(self, repository: str, head_sha: str) -> Review | None:
        record = self._store.lookup(repository, head_sha)
        return record_to_review(record) if record is not None else None

    def store(self, repository: str, head_sha: str, review: Review) -> None:
        self._store.store(review_to_record(repository, head_sha, review))
