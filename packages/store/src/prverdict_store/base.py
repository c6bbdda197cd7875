"""Abstract store interface.

Each backend (file tree, SQLite) implements this interface. The CLI depends
on BaseStore, not on a concrete backend, so backends are swappable without
touching CLI code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prverdict_store.models import ReviewRecord


class BaseStore(ABC):
    """Persistence for generated reviews, one entry per ``(repo, head_sha)``.

    ``store`` must be atomic from the caller's point of view: a concurrent or
    later ``lookup`` sees the whole new record, the previous one, or nothing,
    never a narrative without its structured half.
    """

    @abstractmethod
    def lookup(self, repo: str, head_sha: str) -> ReviewRecord | None:
        """Return the record for the commit, or None if there is none."""

    @abstractmethod
    def store(self, record: ReviewRecord) -> None:
        """Persist a record, replacing any existing one for the same commit."""

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Default is a no-op so callers can always call close() safely.
        """
