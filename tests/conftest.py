import pytest

from config import TestingSettings
from main import configure_logging
from repositories import InMemoryAccountRepository
from services import LedgerService

configure_logging(TestingSettings())


@pytest.fixture
def settings():
    return TestingSettings()


@pytest.fixture
def repository():
    return InMemoryAccountRepository()


@pytest.fixture
def service(repository, settings):
    """Fresh ledger over an empty registry for each test."""
    return LedgerService(repository, settings)
