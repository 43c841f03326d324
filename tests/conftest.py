"""Test configuration and fixtures for the library circulation service.

1. Isolated databases - each test gets its own SQLite file under tmp_path
2. Configuration isolation - the global config and service are reset around each test
3. Deterministic time - the engine reads a fixed clock the test can advance
4. No outbound email - notifications land in a recording gateway
"""

import threading
from collections.abc import Generator
from datetime import datetime, timedelta
from pathlib import Path

import logfire
import pytest

from library_circulation.circulation import service as service_module
from library_circulation.circulation.engine import CirculationEngine
from library_circulation.circulation.locks import AssetLockRegistry
from library_circulation.circulation.service import CirculationService
from library_circulation.config import reset_config
from library_circulation.database import AssetRegistry, DatabaseManager, DatabasePatronDirectory
from library_circulation.models import Asset, AssetCreate, AssetType, PatronContact
from library_circulation.notifications import RecordingNotificationGateway


def pytest_configure(config):
    """Keep spans and metrics local during tests."""
    logfire.configure(send_to_logfire=False, console=False)
    config.addinivalue_line("markers", "concurrency: test runs circulation from several threads")


# === Time ===


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime):
        self._now = start
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            return self._now

    def advance(self, **kwargs) -> datetime:
        with self._lock:
            self._now += timedelta(**kwargs)
            return self._now


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 3, 1, 10, 0, 0))


# === Database Fixtures ===


@pytest.fixture
def test_db_path(tmp_path: Path) -> Generator[Path, None, None]:
    """Provide a temporary database path for each test."""
    db_path = tmp_path / "test_library.db"
    yield db_path

    if db_path.exists():
        db_path.unlink()


@pytest.fixture
def test_database_url(test_db_path: Path) -> str:
    return f"sqlite:///{test_db_path}"


@pytest.fixture
def db_manager(test_database_url: str) -> Generator[DatabaseManager, None, None]:
    """Database manager over a fresh schema."""
    manager = DatabaseManager(test_database_url)
    manager.init_database()
    yield manager
    manager.close()


@pytest.fixture
def session(db_manager: DatabaseManager):
    """One transactional session, committed when the test ends."""
    with db_manager.session_scope() as s:
        yield s


# === Configuration Fixtures ===


@pytest.fixture(autouse=True)
def reset_globals() -> Generator[None, None, None]:
    """Reset global config and service so tests do not leak into each other."""
    reset_config()
    service_module._service = None
    yield
    service_module._service = None
    reset_config()


# === Collaborator Fixtures ===


@pytest.fixture
def patron_directory(db_manager: DatabaseManager) -> DatabasePatronDirectory:
    return DatabasePatronDirectory(db_manager)


@pytest.fixture
def patrons(patron_directory: DatabasePatronDirectory) -> list[PatronContact]:
    """Three registered library cards: 1001, 1002 and 1003."""
    contacts = [
        PatronContact(
            library_card_id=1001, first_name="Ada", last_name="Lovelace", email="ada@example.org"
        ),
        PatronContact(
            library_card_id=1002, first_name="Grace", last_name="Hopper", email="grace@example.org"
        ),
        PatronContact(
            library_card_id=1003, first_name="Alan", last_name="Turing", email="alan@example.org"
        ),
    ]
    return [patron_directory.register(contact) for contact in contacts]


@pytest.fixture
def gateway() -> RecordingNotificationGateway:
    return RecordingNotificationGateway()


def _add_asset(db_manager: DatabaseManager, data: AssetCreate) -> Asset:
    with db_manager.session_scope() as s:
        return AssetRegistry(s).add(data)


@pytest.fixture
def book(db_manager: DatabaseManager) -> Asset:
    return _add_asset(
        db_manager,
        AssetCreate(
            asset_type=AssetType.BOOK,
            title="The Left Hand of Darkness",
            author_or_director="Ursula K. Le Guin",
            year=1969,
            cost=18.99,
            isbn="9780441478125",
            home_branch="Central",
        ),
    )


@pytest.fixture
def video(db_manager: DatabaseManager) -> Asset:
    return _add_asset(
        db_manager,
        AssetCreate(
            asset_type=AssetType.VIDEO,
            title="Stalker",
            author_or_director="Andrei Tarkovsky",
            year=1979,
            cost=24.5,
        ),
    )


# === Circulation Fixtures ===


@pytest.fixture
def engine(
    db_manager: DatabaseManager,
    patron_directory: DatabasePatronDirectory,
    gateway: RecordingNotificationGateway,
    clock: FixedClock,
) -> CirculationEngine:
    return CirculationEngine(
        db_manager,
        patron_directory,
        gateway,
        locks=AssetLockRegistry(timeout_seconds=5.0),
        clock=clock,
        claim_window_hours=24,
    )


@pytest.fixture
def service(engine: CirculationEngine) -> CirculationService:
    return CirculationService(engine)


@pytest.fixture
def global_service(service: CirculationService) -> CirculationService:
    """Install ``service`` as the one MCP tools and resources use."""
    service_module._service = service
    return service
