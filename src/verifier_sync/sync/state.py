"""Persisted sync progress for the key and revocation streams."""

import json
import logging
import os
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator

logger = logging.getLogger(__name__)

REVOCATION_FIELDS = (
    "last_downloaded_version",
    "last_downloaded_chunk",
    "current_version",
    "total_chunks",
    "chunk_size_bytes",
    "expected_adds",
    "expected_deletes",
)


class SyncProgress:
    """JSON-based progress store that makes both sync streams resumable.

    Every setter persists immediately unless inside ``batch_updates()``, so a
    checkpoint written by a synchronizer survives a crash right after it.

    State file format:
    {
        "keys": {
            "resume_token": 42,
            "date_last_fetch": "2026-10-18T09:30:00"
        },
        "revocation": {
            "last_downloaded_version": 4,
            "last_downloaded_chunk": 2,
            "current_version": 5,
            "total_chunks": 3,
            "chunk_size_bytes": 1000,
            "expected_adds": 250,
            "expected_deletes": 12
        },
        "validation_rules": [...]
    }
    """

    def __init__(self, state_file: str | Path = ".sync_state.json"):
        """Initialize progress store.

        Args:
            state_file: Path to state file
        """
        self.state_file = Path(state_file)
        self._state: dict[str, Any] = {}
        self._batch_mode = False
        self._load()

    @contextmanager
    def batch_updates(self) -> Iterator[None]:
        """Context manager grouping several updates into one write.

        Example:
            with progress.batch_updates():
                progress.last_downloaded_version = 5
                progress.last_downloaded_chunk = 0
                # State file written once here
        """
        self._batch_mode = True
        try:
            yield
        finally:
            self._batch_mode = False
            self._save()

    def _load(self):
        """Load state from file."""
        if not self.state_file.exists():
            self._state = {}
            return
        try:
            with open(self.state_file, "r") as f:
                self._state = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Discarding unreadable sync state {self.state_file}: {e}")
            self._state = {}

    def _save(self, force: bool = False):
        """Save state to file, replacing it atomically.

        Args:
            force: Save even if in batch mode
        """
        if self._batch_mode and not force:
            return
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        tmp_file = self.state_file.with_name(self.state_file.name + ".tmp")
        with open(tmp_file, "w") as f:
            json.dump(self._state, f, indent=2, default=str)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_file, self.state_file)

    def _section(self, name: str) -> dict[str, Any]:
        return self._state.setdefault(name, {})

    def _set(self, section: str, key: str, value: Any):
        self._section(section)[key] = value
        self._save()

    # -------------------------------------------------------------------------
    # Key stream
    # -------------------------------------------------------------------------

    @property
    def resume_token(self) -> int | None:
        """Position in the key-update stream, None when starting over."""
        return self._state.get("keys", {}).get("resume_token")

    @resume_token.setter
    def resume_token(self, value: int | None):
        self._set("keys", "resume_token", value)

    @property
    def date_last_fetch(self) -> datetime | None:
        raw = self._state.get("keys", {}).get("date_last_fetch")
        return datetime.fromisoformat(raw) if raw else None

    @date_last_fetch.setter
    def date_last_fetch(self, value: datetime | None):
        self._set("keys", "date_last_fetch", value.isoformat() if value else None)

    # -------------------------------------------------------------------------
    # Revocation stream
    # -------------------------------------------------------------------------

    def _get_revocation(self, key: str) -> int:
        return int(self._state.get("revocation", {}).get(key, 0))

    @property
    def last_downloaded_version(self) -> int:
        return self._get_revocation("last_downloaded_version")

    @last_downloaded_version.setter
    def last_downloaded_version(self, value: int):
        self._set("revocation", "last_downloaded_version", value)

    @property
    def last_downloaded_chunk(self) -> int:
        return self._get_revocation("last_downloaded_chunk")

    @last_downloaded_chunk.setter
    def last_downloaded_chunk(self, value: int):
        self._set("revocation", "last_downloaded_chunk", value)

    @property
    def current_version(self) -> int:
        return self._get_revocation("current_version")

    @current_version.setter
    def current_version(self, value: int):
        self._set("revocation", "current_version", value)

    @property
    def total_chunks(self) -> int:
        return self._get_revocation("total_chunks")

    @total_chunks.setter
    def total_chunks(self, value: int):
        self._set("revocation", "total_chunks", value)

    @property
    def chunk_size_bytes(self) -> int:
        return self._get_revocation("chunk_size_bytes")

    @chunk_size_bytes.setter
    def chunk_size_bytes(self, value: int):
        self._set("revocation", "chunk_size_bytes", value)

    @property
    def expected_adds(self) -> int:
        return self._get_revocation("expected_adds")

    @expected_adds.setter
    def expected_adds(self, value: int):
        self._set("revocation", "expected_adds", value)

    @property
    def expected_deletes(self) -> int:
        return self._get_revocation("expected_deletes")

    @expected_deletes.setter
    def expected_deletes(self, value: int):
        self._set("revocation", "expected_deletes", value)

    # -------------------------------------------------------------------------
    # Validation rules
    # -------------------------------------------------------------------------

    @property
    def validation_rules(self) -> list[dict[str, Any]] | None:
        return self._state.get("validation_rules")

    @validation_rules.setter
    def validation_rules(self, value: list[dict[str, Any]] | None):
        self._state["validation_rules"] = value
        self._save()

    def clear(self):
        """Clear all progress, forcing a full download next cycle."""
        self._state = {}
        self._save()

    def clear_revocation(self):
        """Reset the revocation counters so the next download starts from version 0."""
        self._state.pop("revocation", None)
        self._save()

    def to_dict(self) -> dict[str, Any]:
        """Get a flat snapshot of the progress counters.

        Returns:
            Dict with the resume token, last fetch date and revocation counters
        """
        snapshot: dict[str, Any] = {
            "resume_token": self.resume_token,
            "date_last_fetch": self._state.get("keys", {}).get("date_last_fetch"),
        }
        for key in REVOCATION_FIELDS:
            snapshot[key] = self._get_revocation(key)
        return snapshot
