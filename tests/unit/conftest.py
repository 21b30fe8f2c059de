"""Pytest configuration and fixtures for unit tests."""

import pytest

from src.core.cache_client import LocalEventCache
from src.core.day_keys import DayKeyPolicy
from src.services.notification_service import Notifier
from src.services.reconciliation_service import ReconciliationController
from tests.conftest import FIXED_NOW
from tests.unit.mocks import InMemoryProductivityAPI


@pytest.fixture
def fake_api(policy: DayKeyPolicy) -> InMemoryProductivityAPI:
    """Provides a fresh InMemoryProductivityAPI for each test."""
    return InMemoryProductivityAPI(policy)


@pytest.fixture
def cache(policy: DayKeyPolicy) -> LocalEventCache:
    """In-memory local event cache."""
    return LocalEventCache(policy=policy)


@pytest.fixture
def test_notifier() -> Notifier:
    return Notifier(max_items=100)


@pytest.fixture
def controller(
    fake_api: InMemoryProductivityAPI,
    cache: LocalEventCache,
    test_notifier: Notifier,
    policy: DayKeyPolicy,
) -> ReconciliationController:
    """Controller wired to in-memory collaborators with the clock fixed at 2024-01-10 12:00 UTC."""
    return ReconciliationController(
        api=fake_api,  # type: ignore[arg-type]
        cache=cache,
        notifier=test_notifier,
        policy=policy,
        clock=lambda: FIXED_NOW,
    )
