"""
Pytest configuration for CalQ tests

Provides a throwaway encrypted settings store per test and a dispatcher
wired to mocked Google collaborators.
"""

from unittest.mock import Mock

import pytest
from apscheduler.schedulers.background import BackgroundScheduler
from cryptography.fernet import Fernet

from calq.api.commands import CommandDispatcher
from calq.calendar.fetch import CalendarFetcher
from calq.calendar.oauth import GoogleOAuthService
from calq.digest.scheduler import DigestScheduler
from calq.digest.service import DigestService
from calq.infrastructure.database import init_database
from calq.observability import telemetry
from calq.storage.app_settings import AppSettingsStore
from calq.storage.settings_repository import SettingsRepository


@pytest.fixture(autouse=True)
def reset_telemetry():
    telemetry.reset()
    yield
    telemetry.reset()


@pytest.fixture
def encryption_key():
    """Generate test encryption key"""
    return Fernet.generate_key()


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "calq.db"
    init_database(path)
    return path


@pytest.fixture
def repository(db_path, encryption_key):
    return SettingsRepository(db_path=db_path, encryption_key=encryption_key)


@pytest.fixture
def settings_store(repository):
    return AppSettingsStore(repository)


@pytest.fixture
def mock_oauth(settings_store):
    """Spy over a real service: state checks read the test store, Google calls are stubbed per test"""
    oauth = Mock(spec=GoogleOAuthService, wraps=GoogleOAuthService(settings_store))
    oauth.run_local_authorization.return_value = {}
    return oauth


@pytest.fixture
def mock_fetcher():
    fetcher = Mock(spec=CalendarFetcher)
    fetcher.fetch_events.return_value = []
    fetcher.list_calendars.return_value = []
    return fetcher


@pytest.fixture
def digest_scheduler():
    """Scheduler that is never started: jobs stay pending"""
    return DigestScheduler(Mock(spec=DigestService), scheduler=BackgroundScheduler())


@pytest.fixture
def delivery_factory():
    return Mock()


@pytest.fixture
def dispatcher(settings_store, mock_oauth, mock_fetcher, digest_scheduler, delivery_factory):
    return CommandDispatcher(
        settings_store,
        mock_oauth,
        mock_fetcher,
        digest_scheduler,
        delivery_factory=delivery_factory,
    )
