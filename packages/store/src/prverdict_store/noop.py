"""No-op store, used when caching is disabled (``cache: none``).

Using a NoOpStore rather than None lets the CLI always go through the same
cache code path without conditional checks; every run regenerates.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from prverdict_store.base import BaseStore

if TYPE_CHECKING:
    from prverdict_store.models import ReviewRecord


class NoOpStore(BaseStore):
    """Discards all records and never finds one."""

    def lookup(self, repo: str, head_sha: str) -> ReviewRecord | None:
        return None

    def store(self, record: ReviewRecord) -> None:
        pass  # intentional no-op
