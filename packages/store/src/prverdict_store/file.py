"""FileStore: reviews cached as plain files, one directory per commit.

Layout::

    <root>/<owner>__<name>/<head_sha>/review.md    narrative, plain Markdown
    <root>/<owner>__<name>/<head_sha>/review.json  verdict + line comments

The Markdown half can be read or edited by a person; the JSON half stays
machine-readable. Both are written into a staging directory first and the
directory is renamed into place, so a reader never sees one file without
the other.
"""

from __future__ import annotations

import json
import logging
import os
import re
import shutil
import tempfile
import uuid
from pathlib import Path

from prverdict_store.base import BaseStore
from prverdict_store.models import ReviewRecord, record_from_parts, structured_payload

logger = logging.getLogger(__name__)

NARRATIVE_FILE = "review.md"
STRUCTURED_FILE = "review.json"

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9._-]")


def _slug(value: str) -> str:
    return _UNSAFE_RE.sub("_", value.replace("/", "__"))


class FileStore(BaseStore):
    """Caches reviews under a directory tree (default `.prverdict/reviews`)."""

    def __init__(self, root: str = ".prverdict/reviews"):
        self._root = Path(root)

    def unit_dir(self, repo: str, head_sha: str) -> Path:
        return self._root / _slug(repo) / _slug(head_sha)

    def lookup(self, repo: str, head_sha: str) -> ReviewRecord | None:
        unit = self.unit_dir(repo, head_sha)
        if not unit.is_dir():
            return None
        try:
            # newline="" keeps CRLF in the narrative as written.
            with open(unit / NARRATIVE_FILE, encoding="utf-8", newline="") as f:
                narrative = f.read()
            payload = json.loads((unit / STRUCTURED_FILE).read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            logger.warning("Incomplete cache entry at %s (%s); ignoring it.", unit, e.filename)
            return None
        except json.JSONDecodeError as e:
            logger.warning("Unreadable cache entry at %s: %s; ignoring it.", unit, e)
            return None
        if not isinstance(payload, dict):
            logger.warning("Unreadable cache entry at %s: structured half is not an object; ignoring it.", unit)
            return None
        return record_from_parts(narrative, payload)

    def store(self, record: ReviewRecord) -> None:
        unit = self.unit_dir(record.repo, record.head_sha)
        unit.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f".{unit.name}.", suffix=".tmp", dir=unit.parent))
        try:
            with open(staging / NARRATIVE_FILE, "w", encoding="utf-8", newline="") as f:
                f.write(record.narrative)
            (staging / STRUCTURED_FILE).write_text(
                json.dumps(structured_payload(record), indent=2), encoding="utf-8"
            )
            self._swap_in(staging, unit)
        except Exception:
            shutil.rmtree(staging, ignore_errors=True)
            raise
        logger.debug("Cached review at %s", unit)

    @staticmethod
    def _swap_in(staging: Path, unit: Path) -> None:
        # A directory cannot be renamed over a non-empty one, so the old entry
        # is moved aside first and restored if the swap fails.
        retired = None
        if unit.exists():
            retired = unit.with_name(f".{unit.name}.{uuid.uuid4().hex}.old")
            os.replace(unit, retired)
        try:
            os.replace(staging, unit)
        except OSError:
            if retired is not None:
                os.replace(retired, unit)
            raise
        if retired is not None:
            shutil.rmtree(retired, ignore_errors=True)
