"""Test fixtures for readiness-engine.

Wires the lifecycle controller to in-memory fakes and a fixed clock so
reporting quarters are deterministic.
"""

import pytest

from readiness_engine.adapters.guest_store import InMemoryGuestStore
from readiness_engine.adapters.question_catalog import StaticQuestionCatalog
from readiness_engine.core.questions import AI_READINESS_SURVEY
from readiness_engine.core.services.lifecycle import LifecycleController
from tests.fakes import (
    FIXED_NOW,
    LIMITED_SURVEY,
    SMALL_SURVEY,
    InMemoryAttemptRepository,
    InMemoryOutboxRepository,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def attempt_repo() -> InMemoryAttemptRepository:
    return InMemoryAttemptRepository()


@pytest.fixture()
def outbox_repo() -> InMemoryOutboxRepository:
    return InMemoryOutboxRepository()


@pytest.fixture()
def guest_store() -> InMemoryGuestStore:
    return InMemoryGuestStore()


@pytest.fixture()
def catalog() -> StaticQuestionCatalog:
    return StaticQuestionCatalog([AI_READINESS_SURVEY, SMALL_SURVEY, LIMITED_SURVEY])


@pytest.fixture()
def controller(
    attempt_repo: InMemoryAttemptRepository,
    outbox_repo: InMemoryOutboxRepository,
    catalog: StaticQuestionCatalog,
    guest_store: InMemoryGuestStore,
) -> LifecycleController:
    """LifecycleController wired to in-memory fakes and a fixed clock."""
    return LifecycleController(
        attempt_repo=attempt_repo,
        outbox_repo=outbox_repo,
        question_catalog=catalog,
        guest_store=guest_store,
        clock=lambda: FIXED_NOW,
    )
