import pytest

from copycheck import config as config_module
from copycheck.anti_copying import detector as detector_module
from copycheck.storage import database as database_module
from copycheck.storage.database import Database
from fakes import FakeFetcher


@pytest.fixture
def fetcher_factory(tmp_path):
    """Build a FakeFetcher over the given repositories."""
    def _create(repos: dict[str, dict[str, bytes | None]]) -> FakeFetcher:
        base_dir = tmp_path / "checkouts"
        base_dir.mkdir(exist_ok=True)
        return FakeFetcher(base_dir, repos)
    return _create


@pytest.fixture
async def test_db():
    """Create a test database with in-memory SQLite."""
    db = Database("sqlite+aiosqlite:///:memory:")
    await db.initialize()
    yield db
    await db.close()


@pytest.fixture
def reset_globals(monkeypatch):
    """Drop lazily created global config/database/detector instances."""
    monkeypatch.setattr(config_module, "_config", None)
    monkeypatch.setattr(database_module, "_database", None)
    monkeypatch.setattr(detector_module, "_detector", None)
