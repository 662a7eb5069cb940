import logging
import shutil
import subprocess
import sys
from pathlib import Path

import pytest

# Ensure repository root is on sys.path so the in-tree package imports cleanly.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from phasegrid.config import Config, _reset_config_for_tests  # noqa: E402
from phasegrid.db.database import SQLiteDatabase  # noqa: E402
from phasegrid.logging import DefaultFieldsFilter  # noqa: E402
from phasegrid.services.base import ServiceContext  # noqa: E402

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.setenv("PHASEGRID_DB_PATH", str(tmp_path / "phasegrid.sqlite"))
    monkeypatch.setenv("PHASEGRID_LOG_LEVEL", "ERROR")
    for name in ("PHASEGRID_BATCH_SIZE", "PHASEGRID_WORKTREES_DIR", "PHASEGRID_LOG_JSON"):
        monkeypatch.delenv(name, raising=False)
    _reset_config_for_tests()
    yield
    _reset_config_for_tests()


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Drop the stderr handler a CLI run installs and restore the root level."""
    root = logging.getLogger()
    level = root.level
    yield root
    for handler in root.handlers[:]:
        if any(isinstance(f, DefaultFieldsFilter) for f in handler.filters):
            root.removeHandler(handler)
    root.setLevel(level)


@pytest.fixture
def db(tmp_path: Path) -> SQLiteDatabase:
    database = SQLiteDatabase(tmp_path / "phasegrid.sqlite")
    database.init_schema()
    return database


@pytest.fixture
def context(tmp_path: Path) -> ServiceContext:
    return ServiceContext(config=Config(db_path=tmp_path / "phasegrid.sqlite"))


@pytest.fixture
def project(db: SQLiteDatabase, tmp_path: Path):
    return db.create_project("demo", str(tmp_path / "repo"))


def _git(repo: Path, *args: str) -> None:
    subprocess.run(["git", *args], cwd=repo, check=True, capture_output=True, text=True)


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """A git repository with one commit, at <tmp>/work/repo."""
    if shutil.which("git") is None:
        pytest.skip("git not installed")
    repo = tmp_path / "work" / "repo"
    repo.mkdir(parents=True)
    _git(repo, "init", "-q")
    _git(repo, "config", "user.email", "dev@example.com")
    _git(repo, "config", "user.name", "Dev")
    _git(repo, "config", "commit.gpgsign", "false")
    (repo / "README.md").write_text("hello\n", encoding="utf-8")
    _git(repo, "add", "README.md")
    _git(repo, "commit", "-q", "-m", "init")
    return repo
