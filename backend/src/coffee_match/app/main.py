"""FastAPI application entry point for the Coffee Match API."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coffee_match.app.config import Settings, get_settings
from coffee_match.app.errors import register_error_handlers
from coffee_match.domain.schemas import HealthResponse
from coffee_match.infra.database import async_session, engine, init_db
from coffee_match.services.availability_config_service import AvailabilityConfigService
from coffee_match.services.match_lifecycle import MatchLifecycle, Notifier
from coffee_match.services.match_scheduler import MatchScheduler
from coffee_match.services.pairing_engine import PairingEngine
from coffee_match.services.task_runner import BackgroundTaskRunner

logger = logging.getLogger(__name__)


def attach_services(
    app: FastAPI,
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
    notifier: Optional[Notifier] = None,
) -> None:
    """Wire the match engine onto ``app.state``; routes resolve services from there."""
    runner = BackgroundTaskRunner(settings.background_max_concurrency)
    pairing_engine = PairingEngine(session_factory, timezone_name=settings.match_timezone)

    app.state.session_factory = session_factory
    app.state.task_runner = runner
    app.state.pairing_engine = pairing_engine
    app.state.match_lifecycle = MatchLifecycle(
        session_factory,
        pairing_engine,
        runner,
        notifier=notifier,
        expiry_days=settings.match_expiry_days,
    )
    app.state.match_scheduler = MatchScheduler(
        session_factory,
        pairing_engine,
        runner,
        timezone_name=settings.match_timezone,
        weekday=settings.match_run_weekday,
        hour=settings.match_run_hour,
        org_timeout_seconds=settings.match_org_timeout_seconds,
    )
    app.state.availability_service = AvailabilityConfigService(session_factory, pairing_engine, runner)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: initialize database, run matching once, start the weekly scheduler."""
    await init_db(engine)

    settings = get_settings()
    attach_services(app, async_session, settings)
    scheduler: MatchScheduler = app.state.match_scheduler

    if settings.scheduler_enabled:
        # Non-blocking: a failed startup pass must not keep the API down
        try:
            await scheduler.run_immediately()
        except Exception as e:
            logger.warning("Startup match generation failed: %s", e)
        scheduler.start()

    yield

    await scheduler.stop()
    await app.state.task_runner.shutdown()
    await engine.dispose()


settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.debug else logging.WARNING,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

app = FastAPI(
    title="Coffee Match API",
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS middleware: allow all origins in debug mode for LAN/IP access
_cors_origins = settings.cors_origins_list
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=("*" not in _cors_origins),
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# ---------------------------------------------------------------------------
# Route includes
# ---------------------------------------------------------------------------
from coffee_match.app.routes.admin import router as admin_router  # noqa: E402
from coffee_match.app.routes.availability import router as availability_router  # noqa: E402
from coffee_match.app.routes.matches import router as matches_router  # noqa: E402

app.include_router(matches_router)
app.include_router(availability_router)
app.include_router(admin_router)


@app.get("/health", tags=["health"], response_model=HealthResponse)
async def health_check():
    """Return service health status."""
    return HealthResponse(status="ok", service="coffee-match")


def run():
    """Console entry point."""
    uvicorn.run("coffee_match.app.main:app", host="0.0.0.0", port=8000, reload=settings.debug)


if __name__ == "__main__":
    run()
