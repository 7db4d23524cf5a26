"""FastAPI dependency factories.

Every collaborator a route needs is built here from the request-scoped
session, so tests can swap any layer with ``app.dependency_overrides``.
Post-completion work runs outside the request through
``PostCompletionRunner``, which opens its own session.
"""

import uuid
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from readiness_engine.adapters.database import get_db_session, get_session_factory
from readiness_engine.adapters.guest_store import FileGuestStore
from readiness_engine.adapters.question_catalog import StaticQuestionCatalog
from readiness_engine.adapters.recommendation_client import HttpRecommendationGenerator
from readiness_engine.adapters.report_renderer import PdfReportRenderer
from readiness_engine.adapters.repositories import AttemptRepository, OutboxRepository
from readiness_engine.core.domain import AccountOwner, GuestOwner, Owner
from readiness_engine.core.interfaces import (
    IAttemptRepository,
    IGuestPersistence,
    IOutboxRepository,
    IQuestionCatalog,
    IRecommendationGenerator,
    IReportRenderer,
)
from readiness_engine.core.services.benchmark import BenchmarkAggregator
from readiness_engine.core.services.lifecycle import LifecycleController
from readiness_engine.core.services.post_completion import PostCompletionPipeline
from readiness_engine.observability import get_logger
from readiness_engine.settings import Settings

logger = get_logger(__name__)


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, read once from the environment."""
    return Settings()


@lru_cache
def get_question_catalog() -> IQuestionCatalog:
    return StaticQuestionCatalog()


def get_guest_store(
    settings: Annotated[Settings, Depends(get_settings)],
) -> IGuestPersistence:
    return FileGuestStore(settings.guest_store_dir)


def get_recommendation_generator(
    settings: Annotated[Settings, Depends(get_settings)],
) -> IRecommendationGenerator:
    return HttpRecommendationGenerator(
        api_url=settings.recommendation_api_url,
        api_key=settings.recommendation_api_key,
        model=settings.recommendation_model,
        timeout=settings.recommendation_timeout_seconds,
    )


def get_report_renderer(
    settings: Annotated[Settings, Depends(get_settings)],
) -> IReportRenderer:
    return PdfReportRenderer(settings.report_output_dir)


def get_attempt_repository(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> IAttemptRepository:
    return AttemptRepository(session)


def get_outbox_repository(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> IOutboxRepository:
    return OutboxRepository(session)


# ---------------------------------------------------------------------------
# Auth boundary
# ---------------------------------------------------------------------------


def get_owner(
    x_user_id: Annotated[str | None, Header()] = None,
    x_guest_token: Annotated[str | None, Header()] = None,
) -> Owner:
    """Resolve the caller from headers set by the upstream auth layer.

    ``X-User-Id`` identifies an account and takes precedence over
    ``X-Guest-Token``. A request carrying neither is rejected with 401.
    """
    if x_user_id:
        return AccountOwner(user_id=x_user_id)
    if x_guest_token:
        return GuestOwner(token=x_guest_token)
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Missing X-User-Id or X-Guest-Token header.",
    )


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


def get_lifecycle_controller(
    attempt_repo: Annotated[IAttemptRepository, Depends(get_attempt_repository)],
    outbox_repo: Annotated[IOutboxRepository, Depends(get_outbox_repository)],
    catalog: Annotated[IQuestionCatalog, Depends(get_question_catalog)],
    guest_store: Annotated[IGuestPersistence, Depends(get_guest_store)],
) -> LifecycleController:
    """Build LifecycleController with injected dependencies."""
    return LifecycleController(
        attempt_repo=attempt_repo,
        outbox_repo=outbox_repo,
        question_catalog=catalog,
        guest_store=guest_store,
    )


def get_benchmark_aggregator(
    attempt_repo: Annotated[IAttemptRepository, Depends(get_attempt_repository)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> BenchmarkAggregator:
    """Build BenchmarkAggregator with injected dependencies."""
    return BenchmarkAggregator(
        attempt_repo=attempt_repo,
        min_industry_sample=settings.benchmark_min_industry_sample,
        exclude_uniform_answers=settings.benchmark_exclude_uniform_answers,
    )


def get_post_completion_pipeline(
    attempt_repo: Annotated[IAttemptRepository, Depends(get_attempt_repository)],
    outbox_repo: Annotated[IOutboxRepository, Depends(get_outbox_repository)],
    generator: Annotated[IRecommendationGenerator, Depends(get_recommendation_generator)],
    renderer: Annotated[IReportRenderer, Depends(get_report_renderer)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> PostCompletionPipeline:
    """Pipeline bound to the request session, used for report recovery."""
    return PostCompletionPipeline(
        attempt_repo=attempt_repo,
        outbox_repo=outbox_repo,
        recommendation_generator=generator,
        report_renderer=renderer,
        generation_timeout=settings.recommendation_timeout_seconds,
    )


class PostCompletionRunner:
    """Runs outbox tasks in a session of its own.

    Used from FastAPI background tasks, which execute after the request
    session has been committed and closed, and from the startup hook.
    Errors are logged and swallowed so that a broken collaborator or
    database hiccup never surfaces in an unrelated request.

    Args:
        session_factory: Factory for fresh sessions.
        settings: Service settings.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
    ) -> None:
        self._session_factory = session_factory
        self._settings = settings

    def _pipeline(self, session: AsyncSession) -> PostCompletionPipeline:
        return PostCompletionPipeline(
            attempt_repo=AttemptRepository(session),
            outbox_repo=OutboxRepository(session),
            recommendation_generator=get_recommendation_generator(self._settings),
            report_renderer=get_report_renderer(self._settings),
            generation_timeout=self._settings.recommendation_timeout_seconds,
            checkpoint=session.commit,
        )

    async def run_for_attempt(self, attempt_id: uuid.UUID) -> None:
        """Execute the pending tasks of one attempt."""
        try:
            async with self._session_factory() as session:
                executed = await self._pipeline(session).run_pending(attempt_id)
        except Exception:
            logger.exception("Post-completion run aborted", attempt_id=str(attempt_id))
            return
        logger.info("Post-completion run finished", attempt_id=str(attempt_id), executed=executed)

    async def recover(self) -> None:
        """Fail interrupted tasks and drain the pending queue."""
        try:
            async with self._session_factory() as session:
                executed = await self._pipeline(session).recover()
        except Exception:
            logger.exception("Post-completion recovery aborted")
            return
        logger.info("Post-completion recovery finished", executed=executed)


def get_post_completion_runner(
    settings: Annotated[Settings, Depends(get_settings)],
) -> PostCompletionRunner:
    return PostCompletionRunner(get_session_factory(), settings)
