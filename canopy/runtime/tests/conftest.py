"""Shared pytest fixtures for canopy.runtime tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from canopy.runtime.state import (
    EnvironmentConfig,
    HealthCheckConfig,
    Repo,
    RepoStore,
    SessionStore,
    Worktree,
    WorktreeSchedule,
    WorktreeStore,
)


@pytest.fixture(autouse=True)
def _isolate_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    monkeypatch.setenv("CANOPY_DATA_DIR", str(data_dir))
    monkeypatch.setenv("DOTENV_PATH", str(tmp_path / ".env"))
    return data_dir


@pytest.fixture(autouse=True)
def _reset_singletons(_isolate_data_dir: Path):
    from canopy.runtime.util.singletons import reset_all_singletons

    reset_all_singletons()
    yield
    reset_all_singletons()


@pytest.fixture()
def data_dir(_isolate_data_dir: Path) -> Path:
    return _isolate_data_dir


@pytest.fixture()
def worktree_store(data_dir: Path) -> WorktreeStore:
    return WorktreeStore(data_dir / "worktrees.json")


@pytest.fixture()
def session_store(data_dir: Path) -> SessionStore:
    return SessionStore(data_dir / "sessions.json")


@pytest.fixture()
def repo_store(data_dir: Path) -> RepoStore:
    return RepoStore(data_dir / "repos.json")


@pytest.fixture()
def worktree_dir(tmp_path: Path) -> Path:
    path = tmp_path / "worktrees" / "feature-x"
    path.mkdir(parents=True)
    return path


@pytest.fixture()
def make_worktree(worktree_dir: Path):
    def _make(**overrides) -> Worktree:
        fields = dict(
            worktree_id="wt-1",
            repo_id="repo-1",
            name="feature-x",
            path=str(worktree_dir),
            ref="feature/x",
            worktree_unique_id=7,
            created_by="alice",
            schedule_enabled=True,
            schedule_cron="*/5 * * * *",
            schedule=WorktreeSchedule(
                prompt_template="Check {{ worktree.name }} on {{ worktree.ref }}",
                retention=0,
            ),
        )
        fields.update(overrides)
        return Worktree(**fields)

    return _make


@pytest.fixture()
def make_repo():
    def _make(*, health_url: str | None = None, **config) -> Repo:
        env = EnvironmentConfig(
            health_check=HealthCheckConfig(url_template=health_url) if health_url else None,
            **config,
        )
        return Repo(repo_id="repo-1", slug="acme/shop", environment_config=env)

    return _make
