"""JSON-backed draft store.

Persists every Draft in a single JSON file, loaded on init and written
after every mutation.  Writes go to a temporary file that is then
atomically renamed over the snapshot, so a crash mid-write never leaves
a truncated store behind.  Mutations are serialised with a lock; reads
return copies so callers cannot change stored state behind its back.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import time
from datetime import UTC, datetime
from pathlib import Path

from blogpipe.blog.models import Draft, DraftStatus, Metadata, Section
from blogpipe.shared.errors import StoreError
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

STORE_FILENAME = ".blog-db.json"

IMMUTABLE_FIELDS = frozenset({"id", "created_at"})

# Alias to avoid shadowing by DraftStore.list method
_list = list


class _StoreData(BaseModel):
    """Internal wrapper for JSON serialization."""

    drafts: list[Draft] = Field(default_factory=list)
    id_counter: int = 1


class DraftStore:
    """JSON-backed CRUD store for drafts."""

    def __init__(self, data_dir: Path) -> None:
        self._path = data_dir / STORE_FILENAME
        self._lock = threading.Lock()
        self._data = self._load()

    @property
    def path(self) -> Path:
        return self._path

    # ── Private helpers ──────────────────────────────────────────

    def _load(self) -> _StoreData:
        if not self._path.exists():
            return _StoreData()
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            return _StoreData.model_validate(raw)
        except (json.JSONDecodeError, ValueError, KeyError):
            logger.warning("Corrupt draft store at %s, starting fresh", self._path)
            return _StoreData()

    def _write(self, data: _StoreData) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=self._path.name + ".", suffix=".tmp", dir=self._path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data.model_dump_json(indent=2))
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _commit(self, data: _StoreData) -> None:
        """Persist *data* and make it the live state.

        On failure the live state is left untouched and StoreError raised.
        """
        try:
            self._write(data)
        except OSError as exc:
            logger.error("Failed to persist draft store to %s: %s", self._path, exc)
            raise StoreError(f"Failed to persist draft store: {exc}") from exc
        self._data = data

    def _snapshot(self) -> _StoreData:
        return self._data.model_copy(deep=True)

    @staticmethod
    def _index(data: _StoreData, draft_id: str) -> int | None:
        for i, draft in enumerate(data.drafts):
            if draft.id == draft_id:
                return i
        return None

    # ── Write operations ─────────────────────────────────────────

    def create(self, topic: str) -> Draft:
        """Create and persist a new draft with topic-derived metadata."""
        with self._lock:
            data = self._snapshot()
            draft_id = f"blog_{int(time.time() * 1000)}_{data.id_counter}"
            data.id_counter += 1
            draft = Draft(id=draft_id, topic=topic, metadata=Metadata.for_topic(topic))
            data.drafts.append(draft)
            self._commit(data)
            logger.info("Created draft %s for topic %r", draft_id, topic)
            return draft.model_copy(deep=True)

    def update(self, draft_id: str, **fields: object) -> Draft | None:
        """Shallow-merge *fields* into a draft and refresh ``updated_at``.

        Returns None when the draft does not exist.

        Raises:
            ValueError: No fields given, an unknown field name, or an
                attempt to change ``id`` or ``created_at``.
        """
        if not fields:
            raise ValueError("update() requires at least one field")
        unknown = sorted(set(fields) - set(Draft.model_fields))
        if unknown:
            raise ValueError(f"Unknown draft fields: {', '.join(unknown)}")
        frozen = sorted(set(fields) & IMMUTABLE_FIELDS)
        if frozen:
            raise ValueError(f"Draft fields are immutable: {', '.join(frozen)}")

        with self._lock:
            data = self._snapshot()
            idx = self._index(data, draft_id)
            if idx is None:
                return None
            merged = data.drafts[idx].model_dump()
            merged.update(fields)
            merged["updated_at"] = datetime.now(tz=UTC)
            data.drafts[idx] = Draft.model_validate(merged)
            self._commit(data)
            return data.drafts[idx].model_copy(deep=True)

    def put_section(self, draft_id: str, index: int, section: Section) -> Draft | None:
        """Write one section slot without touching any other slot.

        The sections list is padded with empty slots up to *index*.
        Returns None when the draft does not exist.
        """
        if index < 0:
            raise ValueError(f"Section index must be >= 0, got {index}")
        with self._lock:
            data = self._snapshot()
            idx = self._index(data, draft_id)
            if idx is None:
                return None
            draft = data.drafts[idx]
            while len(draft.sections) <= index:
                draft.sections.append(None)
            draft.sections[index] = section
            draft.updated_at = datetime.now(tz=UTC)
            self._commit(data)
            return draft.model_copy(deep=True)

    def delete(self, draft_id: str) -> bool:
        """Remove a draft. Returns False when it did not exist."""
        with self._lock:
            data = self._snapshot()
            idx = self._index(data, draft_id)
            if idx is None:
                return False
            del data.drafts[idx]
            self._commit(data)
            logger.info("Deleted draft %s", draft_id)
            return True

    # ── Read operations ──────────────────────────────────────────

    def get(self, draft_id: str) -> Draft | None:
        """Return a copy of a draft, or None if not found."""
        with self._lock:
            idx = self._index(self._data, draft_id)
            if idx is None:
                return None
            return self._data.drafts[idx].model_copy(deep=True)

    def list(self) -> _list[Draft]:
        """Return every draft in creation order."""
        with self._lock:
            return [d.model_copy(deep=True) for d in self._data.drafts]

    def list_by_status(self, status: DraftStatus) -> _list[Draft]:
        return [d for d in self.list() if d.status == status]

    def list_in_progress(self) -> _list[Draft]:
        """Drafts that have not been published yet."""
        return [d for d in self.list() if d.status != DraftStatus.PUBLISHED]

    def list_published(self) -> _list[Draft]:
        return self.list_by_status(DraftStatus.PUBLISHED)
