"""FastAPI server for the Scramble tracker."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as redis
import sentry_sdk
from fastapi import FastAPI
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from config import config
from logging_config import setup_logging
from middleware.context import RequestContextMiddleware
from routers.courses import router as courses_router
from routers.deps import set_session_manager
from routers.drafts import router as drafts_router
from routers.games import router as games_router
from routers.health import router as health_router
from routers.health import set_health_dependencies
from routers.stats import router as stats_router
from routers.stats import set_stats_service
from services.course_api import CourseApiClient
from services.stats_service import StatsService
from session import PersistenceError, SessionManager
from stores.game_store import GameStore, close_game_store, get_game_store
from stores.outbox import SyncOutbox

# Initialize Sentry if configured
if config.SENTRY_DSN:
    sentry_sdk.init(
        dsn=config.SENTRY_DSN,
        environment=config.ENVIRONMENT,
        traces_sample_rate=0.1 if config.ENVIRONMENT == "production" else 1.0,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
    )
    logging.getLogger(__name__).info("Sentry error tracking initialized")

# Configure logging based on environment
setup_logging(
    level=config.LOG_LEVEL,
    environment=config.ENVIRONMENT,
)
logger = logging.getLogger(__name__)


# =============================================================================
# Services (initialized in lifespan)
# =============================================================================

_course_client: Optional[CourseApiClient] = None
_game_store: Optional[GameStore] = None
_outbox: Optional[SyncOutbox] = None
_session_manager: Optional[SessionManager] = None
_outbox_flush_task: Optional[asyncio.Task] = None


async def _periodic_outbox_flush(manager: SessionManager, interval: int):
    """Periodic task that retries parked completion writes."""
    while True:
        try:
            await asyncio.sleep(interval)
            flushed = await manager.flush_outbox()
            if flushed:
                logger.info(f"Outbox flush synced {flushed} games")
        except asyncio.CancelledError:
            break
        except PersistenceError as e:
            logger.warning(f"Outbox flush failed: {e.message}")
        except Exception as e:
            logger.error(f"Outbox flush failed: {e}")


async def _init_outbox() -> Optional[SyncOutbox]:
    """Connect the sync outbox; the server runs without one if Redis is down."""
    try:
        return await SyncOutbox.create(config.REDIS_URL, config.OUTBOX_MAX_ATTEMPTS)
    except (redis.RedisError, OSError) as e:
        logger.warning(f"Redis connection failed: {e} - completion retry disabled")
        return None


async def _init_services():
    """Initialize the course client, game store, outbox and session manager."""
    global _course_client, _game_store, _outbox, _session_manager, _outbox_flush_task

    _course_client = CourseApiClient(
        config.COURSE_API_URL,
        config.COURSE_API_KEY,
        timeout=config.COURSE_API_TIMEOUT,
    )
    if not config.COURSE_API_KEY:
        logger.warning("COURSE_API_KEY not configured - course lookups will fail")

    if not config.POSTGRES_URL:
        logger.warning("POSTGRES_URL not configured - game endpoints will not work")
        return

    _game_store = await get_game_store(config.POSTGRES_URL, _course_client)
    logger.info("Game store initialized")

    if config.REDIS_URL:
        _outbox = await _init_outbox()

    _session_manager = SessionManager(
        _game_store,
        outbox=_outbox,
        history_limit=config.HISTORY_LIMIT,
        min_players=config.game_defaults.min_players,
        course_query_min_length=config.COURSE_QUERY_MIN_LENGTH,
    )
    set_session_manager(_session_manager)
    set_stats_service(StatsService(_game_store))
    logger.info("Session manager initialized")

    if _outbox is not None:
        _outbox_flush_task = asyncio.create_task(
            _periodic_outbox_flush(_session_manager, config.OUTBOX_FLUSH_SECONDS)
        )
        logger.info("Outbox flush task started")


async def _shutdown_services():
    """Gracefully shut down all services."""
    global _session_manager, _outbox

    if _outbox_flush_task:
        _outbox_flush_task.cancel()
        try:
            await _outbox_flush_task
        except asyncio.CancelledError:
            pass
        logger.info("Outbox flush task stopped")

    if _session_manager:
        unfinished = len(_session_manager.active_sessions())
        if unfinished:
            logger.warning(f"Shutting down with {unfinished} games in progress")
        set_session_manager(None)
        set_stats_service(None)
        _session_manager = None

    if _outbox:
        await _outbox.close()
        _outbox = None
        logger.info("Redis connection closed")

    await close_game_store()

    if _course_client:
        await _course_client.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for async service initialization."""
    try:
        await _init_services()
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}")
        raise

    set_health_dependencies(
        db_pool=_game_store.pool if _game_store else None,
        redis_client=_outbox.redis if _outbox else None,
        session_manager=_session_manager,
    )

    logger.info(f"Scramble server started (environment={config.ENVIRONMENT})")

    yield

    logger.info("Shutdown initiated...")
    await _shutdown_services()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Scramble Tracker",
    debug=config.DEBUG,
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestContextMiddleware)

app.include_router(games_router)
app.include_router(drafts_router)
app.include_router(courses_router)
app.include_router(stats_router)
app.include_router(health_router)


def run():
    """Run the server using uvicorn."""
    import uvicorn

    logger.info(f"Starting Scramble server on {config.HOST}:{config.PORT}")
    logger.info(f"Debug mode: {config.DEBUG}")

    uvicorn.run(
        "main:app",
        host=config.HOST,
        port=config.PORT,
        reload=config.DEBUG,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
