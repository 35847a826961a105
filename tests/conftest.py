import os
import sys
from typing import Any, Iterator, List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

# Ensure the repository root is on sys.path so tests can import the package
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from medicaidready.config import AppConfig  # noqa: E402
from medicaidready.db.session import configure_engine, session_scope  # noqa: E402
from medicaidready.main import create_app  # noqa: E402


@pytest.fixture
def engine():
    engine = configure_engine('sqlite://')
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine) -> Iterator[Session]:
    with session_scope() as db:
        yield db


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig()


@pytest.fixture
def client(engine, app_config):
    app = create_app(app_config)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_client(engine):
    """Build a client for a specific configuration."""

    clients: List[TestClient] = []

    def _factory(**overrides: Any) -> TestClient:
        test_client = TestClient(create_app(AppConfig(**overrides)))
        clients.append(test_client)
        return test_client

    yield _factory
    for test_client in clients:
        test_client.close()

