from pathlib import Path

import pytest

from src.adapters.sqlite.migrator import SQLiteMigrator
from src.adapters.sqlite.repos import (
    SQLiteArticleRepo,
    SQLiteImageRepo,
    SQLiteStatsRepo,
    SQLiteVersionRepo,
)

PROJECT_ROOT = Path(__file__).parent.parent
RULES_PATH = PROJECT_ROOT / "rules.yaml"


@pytest.fixture
def db_path(tmp_path):
    """A migrated SQLite database in a temp dir."""
    path = str(tmp_path / "content_ops.db")
    SQLiteMigrator(path).run_migrations()
    return path


@pytest.fixture
def article_repo(db_path):
    return SQLiteArticleRepo(db_path)


@pytest.fixture
def version_repo(db_path):
    return SQLiteVersionRepo(db_path)


@pytest.fixture
def image_repo(db_path):
    return SQLiteImageRepo(db_path)


@pytest.fixture
def stats_repo(db_path):
    return SQLiteStatsRepo(db_path)
