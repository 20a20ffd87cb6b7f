"""JSON-file-backed repo store (read-only from the runtime's perspective)."""

from __future__ import annotations

from pathlib import Path

from ..config.settings import cfg
from ..errors import NotFoundError
from ._json_store import JsonRecordStore
from .models import Repo


class RepoStore(JsonRecordStore):
    _label = "repos"

    def __init__(self, path: Path | None = None) -> None:
        super().__init__(path or cfg.repos_path)

    def get(self, repo_id: str) -> Repo:
        raw = self._get_raw(repo_id)
        if raw is None:
            raise NotFoundError(f"Repo {repo_id} not found")
        return Repo.from_dict(raw)

    def save(self, repo: Repo) -> Repo:
        self._put_raw(repo.repo_id, repo.to_dict())
        return repo
