"""
Pytest Configuration and Fixtures for the Saga Core Tests
==========================================================

Purpose
-------
Shared fixtures for the saga test suite: mocks for unit tests and a real
PostgreSQL (testcontainers) for integration tests.

Responsibilities
----------------
- Testcontainers setup for PostgreSQL
- DatabaseService wiring against the container, schema creation, and a
  clean slate per integration test
- A fully initialized ServiceContainer with a seeded RNG
- Mock config manager / event bus for unit tests

LES 2025 Compliance
-------------------
- Async support via pytest-asyncio (session loop)
- Testcontainers for real infrastructure in integration tests
- Separation of unit vs integration fixtures
"""

from __future__ import annotations

import random
from typing import Any, AsyncGenerator, Generator

import pytest
import pytest_asyncio
from sqlalchemy import text

from src.core.cache.ttl_cache import clear_all_caches
from src.core.config.config import Config
from src.core.config.manager import ConfigManager
from src.core.database.base import Base
from src.core.database.service import DatabaseService
from src.core.event.bus import EventBus
from src.core.logging.logger import get_logger
from src.core.services.container import ServiceContainer

logger = get_logger(__name__)

TEST_SEED = 1337

# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """NullPool for the async engine; keep test logs off disk."""
    Config.ENVIRONMENT = "testing"
    Config.LOG_TO_FILE = False


# ============================================================================
# TESTCONTAINERS FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def postgres_container() -> Generator[Any, None, None]:
    """
    Start a PostgreSQL testcontainer.

    Scope: session (container persists across all tests)
    """
    from testcontainers.postgres import PostgresContainer

    logger.info("Starting PostgreSQL testcontainer...")
    try:
        container = PostgresContainer(image="postgres:17-alpine", driver="asyncpg")
        container.start()
    except Exception as exc:  # docker daemon missing or unreachable
        pytest.skip(f"PostgreSQL testcontainer unavailable: {exc}")
    logger.info("PostgreSQL testcontainer started: %s", container.get_connection_url())

    yield container

    logger.info("Stopping PostgreSQL testcontainer...")
    container.stop()


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


@pytest_asyncio.fixture(scope="session")
async def database(postgres_container) -> AsyncGenerator[None, None]:
    """
    Initialize DatabaseService against the container and create the schema.

    Scope: session (one schema for all tests)
    """
    url = postgres_container.get_connection_url()
    if "+asyncpg" not in url:
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1).replace("+psycopg2", "+asyncpg")

    await DatabaseService.initialize(url)
    await DatabaseService.create_schema()

    from src.database.seed import seed_items

    async with DatabaseService.get_transaction() as session:
        await seed_items(session)

    yield

    await DatabaseService.drop_schema()
    await DatabaseService.shutdown()


@pytest_asyncio.fixture
async def clean_database(database) -> AsyncGenerator[None, None]:
    """
    Empty every table except the item catalog after the test.

    Scope: function (clean slate per test)
    """
    clear_all_caches()
    yield
    tables = [t.name for t in Base.metadata.sorted_tables if t.name != "items"]
    async with DatabaseService.get_transaction() as session:
        await session.execute(text(f"TRUNCATE {', '.join(tables)} RESTART IDENTITY CASCADE"))
    clear_all_caches()


@pytest_asyncio.fixture
async def services(clean_database) -> AsyncGenerator[ServiceContainer, None]:
    """Fully wired ServiceContainer on a real EventBus with a seeded RNG."""
    bus = EventBus(config_manager=ConfigManager)
    container = ServiceContainer(
        config_manager=ConfigManager,
        event_bus=bus,
        logger=get_logger("tests.services"),
        rng=random.Random(TEST_SEED),
    )
    await container.initialize()
    yield container
    await container.shutdown()


# ============================================================================
# MOCK FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def mock_event_bus(mocker):
    mock_bus = mocker.MagicMock()
    mock_bus.publish = mocker.AsyncMock(return_value=[])
    mock_bus.subscribe = mocker.MagicMock(return_value="listener-id")
    return mock_bus


@pytest.fixture
def mock_config_manager(mocker):
    """Config manager that always answers with the caller's default."""
    mock_config = mocker.MagicMock()
    mock_config.get = mocker.MagicMock(side_effect=lambda key, default=None: default)
    mock_config.get_int = mocker.MagicMock(side_effect=lambda key, default=0: default)
    mock_config.get_float = mocker.MagicMock(side_effect=lambda key, default=0.0: default)
    mock_config.get_bool = mocker.MagicMock(side_effect=lambda key, default=False: default)
    mock_config.get_config_int = mocker.AsyncMock(side_effect=lambda key, default: default)
    return mock_config


@pytest.fixture(autouse=True)
def _reset_caches():
    clear_all_caches()
    yield
    clear_all_caches()


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================


def assert_domain_event_emitted(entity, event_name: str) -> bool:
    """
    True when the entity has a pending domain event with this name.

    Usage:
        session.attack()
        assert assert_domain_event_emitted(session, "battle.victory")
    """
    return any(event.event_name == event_name for event in entity.get_pending_events())


def get_domain_event_payload(entity, event_name: str) -> dict | None:
    for event in entity.get_pending_events():
        if event.event_name == event_name:
            return event.payload
    return None
