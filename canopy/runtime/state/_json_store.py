"""Keyed JSON-file record store shared by the worktree/session/repo stores."""

from __future__ import annotations

import copy
import json
import logging
import threading
from collections.abc import Iterator
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class JsonRecordStore:
    """Thread-safe ``{id: record}`` map persisted as a JSON object.

    Records are plain dicts; subclasses convert them to dataclasses.  The
    file is read once and rewritten after every mutation.
    """

    _label: str = "records"

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.RLock()
        self._records: dict[str, dict[str, Any]] = {}
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            raw = json.loads(self._path.read_text())
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Failed to load %s from %s: %s", self._label, self._path, exc, exc_info=True)
            return
        if not isinstance(raw, dict):
            logger.warning("Ignoring %s at %s: expected a JSON object", self._label, self._path)
            return
        self._records = {k: v for k, v in raw.items() if isinstance(v, dict)}

    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._records, indent=2, default=str) + "\n")
        tmp.replace(self._path)

    def _get_raw(self, record_id: str) -> dict[str, Any] | None:
        with self._lock:
            raw = self._records.get(record_id)
            return copy.deepcopy(raw) if raw is not None else None

    def _put_raw(self, record_id: str, raw: dict[str, Any]) -> None:
        with self._lock:
            self._records[record_id] = copy.deepcopy(raw)
            self._save()

    def _patch_raw(self, record_id: str, **fields: Any) -> dict[str, Any] | None:
        with self._lock:
            raw = self._records.get(record_id)
            if raw is None:
                return None
            raw.update(fields)
            self._save()
            return copy.deepcopy(raw)

    def _delete_raw(self, record_id: str) -> bool:
        with self._lock:
            if self._records.pop(record_id, None) is None:
                return False
            self._save()
            return True

    def _iter_raw(self) -> Iterator[dict[str, Any]]:
        with self._lock:
            snapshot = copy.deepcopy(list(self._records.values()))
        return iter(snapshot)

    def __len__(self) -> int:
        return len(self._records)
