"""
Inquiry Desk - Main Application
===============================

Inquiry routing and operator scoring service.

Modules:
- Intake: Deduplicate and score scraped forum threads, admit the relevant ones
- Workforce: Operator pool, least-recently-assigned balancing, leaderboard
- Lifecycle: Assignment deadlines, escalation sweep, backlog rebalance
- Scoring: Reply scoring and operator aggregates

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Database, pipeline config, webhook, scheduler
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from inquiry_desk.config import settings
from inquiry_desk.core import ApplicationException, ConfigurationException

# Infrastructure
from inquiry_desk.infrastructure.database import (
    close_database,
    create_tables,
    get_session_context,
    init_database,
)
from inquiry_desk.infrastructure.pipeline import PipelineConfigManager
from inquiry_desk.lifecycle.application import EscalationSweeper, LifecycleService
from inquiry_desk.lifecycle.infrastructure import EscalationNotifier, SweepScheduler
from inquiry_desk.shared.config import IPipelineConfigProvider, StaticConfigProvider
from inquiry_desk.shared.infrastructure.unit_of_work import SQLAlchemyUnitOfWork

# Module Routers
from inquiry_desk.intake.interfaces import intake_router
from inquiry_desk.lifecycle.interfaces import activity_router, inquiry_router, lifecycle_router
from inquiry_desk.scoring.interfaces import scoring_router
from inquiry_desk.workforce.interfaces import workforce_router

# Middleware and Logging
from inquiry_desk.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from inquiry_desk.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)


async def run_scheduled_sweep(
    config_provider: IPipelineConfigProvider,
    notifier: Optional[EscalationNotifier] = None
) -> None:
    """
    One background cycle: escalation sweep, then backlog rebalance.

    Notifications go out only after the cycle has committed.
    """
    async with get_session_context() as session:
        uow = SQLAlchemyUnitOfWork(session)
        lifecycle = LifecycleService(uow, config_provider)
        sweep_report = await EscalationSweeper(uow, lifecycle, config_provider).sweep()
        rebalance_report = await lifecycle.rebalance()
        await uow.commit()

    if notifier is not None:
        if sweep_report.notices:
            await notifier.notify(sweep_report.notices)
        if rebalance_report.waiting:
            await notifier.notify_backlog(rebalance_report.waiting)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database
    3. Create database tables
    4. Load pipeline configuration and watch it for changes
    5. Create the escalation notifier
    6. Start the sweep scheduler

    SHUTDOWN:
    1. Stop sweep scheduler
    2. Stop config watcher
    3. Close webhook client
    4. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Inquiry Desk", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()

    # Create tables (for development - use migrations in production)
    # If the database is not available the server still starts and
    # database-dependent endpoints fail
    logger.info("Creating database tables")
    try:
        await create_tables()
    except Exception as e:
        logger.warning(f"Database not available - running in degraded mode: {e}")

    logger.info("Loading pipeline configuration")
    config_manager = PipelineConfigManager()
    try:
        config_manager.load(settings.pipeline_config_path)
        config_manager.start_watching()
        app.state.config_manager = config_manager
    except ConfigurationException as e:
        logger.error(f"Pipeline config invalid, falling back to defaults: {e.message}")
        config_manager = None
        app.state.config_manager = StaticConfigProvider()

    notifier = EscalationNotifier(
        settings.escalation_webhook_url,
        channel=settings.escalation_channel,
        timeout_seconds=settings.escalation_webhook_timeout_seconds
    )
    if not notifier.enabled:
        logger.info("Escalation webhook not configured - notifications disabled")
    app.state.notifier = notifier

    scheduler: Optional[SweepScheduler] = None
    if settings.sweep_interval_seconds > 0:
        provider = app.state.config_manager

        async def sweep_job():
            """Background escalation sweep."""
            try:
                await run_scheduled_sweep(provider, notifier)
            except ApplicationException as e:
                logger.error("Scheduled sweep failed", extra={"error": e.message})

        scheduler = SweepScheduler(interval_seconds=settings.sweep_interval_seconds)
        await scheduler.start(sweep_job)
    app.state.scheduler = scheduler

    logger.info("Inquiry Desk started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Inquiry Desk")

    if scheduler:
        await scheduler.stop()

    if config_manager:
        config_manager.stop_watching()

    await notifier.close()

    await close_database()

    logger.info("Inquiry Desk shutdown complete")


def create_app() -> FastAPI:
    """Build the FastAPI application with middleware and routers."""
    application = FastAPI(
        title="Inquiry Desk API",
        description="""
    ## Inquiry Routing and Operator Scoring

    Admits relevant forum threads as inquiries, hands them to operators in
    least-recently-assigned order, escalates them when a deadline passes and
    scores every reply.

    ---

    ### Intake
    - `POST /intake/candidates` - Ingest a batch of scraped threads
    - `POST /intake/assess` - Dry-run relevance scoring

    ### Lifecycle
    - `POST /lifecycle/sweep` - Escalate overdue inquiries
    - `POST /lifecycle/rebalance` - Assign the backlog
    - `POST /inquiries/{id}/assign` - Manual (re)assignment
    - `GET /inquiries`, `GET /inquiries/stats`, `GET /inquiries/{id}`,
      `GET /inquiries/{id}/activity`, `GET /activity/recent`

    ### Scoring
    - `POST /replies` - Submit and score a reply
    - `PATCH /replies/{id}/outcome` - Revise the outcome component
    - `GET /inquiries/{id}/replies`, `GET /operators/{id}/replies`

    ### Workforce
    - `GET /operators`, `POST /operators`, `GET /operators/{id}`
    - `PATCH /operators/{id}/active` - Join or leave the pool
    - `GET /operators/leaderboard`, `GET /operators/workload`
    - `POST /operators/{id}/recompute` - Rebuild aggregates from replies

    ---

    ### Configuration

    Relevance vocabulary, bandwidth per priority, escalation limits and
    scoring weights are read from `pipeline_config.yaml` and reloaded when
    the file changes.
    """,
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    # === CORS Middleware ===
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # === Custom Middleware (from shared) ===
    application.add_middleware(LoggingMiddleware)
    application.add_middleware(CorrelationIDMiddleware)
    application.add_exception_handler(ApplicationException, application_exception_handler)
    application.add_exception_handler(Exception, global_exception_handler)

    application.state.settings = settings

    # === Include Module Routers ===
    application.include_router(intake_router)
    application.include_router(lifecycle_router)
    application.include_router(inquiry_router)
    application.include_router(activity_router)
    application.include_router(scoring_router)
    application.include_router(workforce_router)

    # === Health Check Endpoint ===

    @application.get("/health", tags=["Health"], responses={
        200: {
            "description": "Service is healthy",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "version": "1.0.0",
                        "environment": "development",
                        "checks": {
                            "pipeline_config": "loaded",
                            "sweep_scheduler": "running",
                            "escalation_webhook": "configured"
                        }
                    }
                }
            }
        }
    })
    async def health_check(request: Request):
        """
        Health check endpoint for load balancers and orchestrators.

        Reports pipeline config, scheduler and webhook state.
        """
        state = request.app.state
        scheduler = getattr(state, "scheduler", None)
        notifier = getattr(state, "notifier", None)
        config_manager = getattr(state, "config_manager", None)

        checks = {
            "pipeline_config": "loaded" if isinstance(config_manager, PipelineConfigManager) else "defaults",
            "sweep_scheduler": "running" if scheduler and scheduler.is_running else "stopped",
            "escalation_webhook": "configured" if notifier and notifier.enabled else "not_configured",
        }

        return {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
            "checks": checks
        }

    @application.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "service": "Inquiry Desk",
            "version": settings.app_version,
            "architecture": "Clean Architecture / Modular Monolith",
            "docs": "/docs",
            "health": "/health",
            "modules": {
                "intake": {"prefix": "/intake"},
                "lifecycle": {"prefix": "/lifecycle", "resources": ["/inquiries", "/activity"]},
                "scoring": {"prefix": "/replies"},
                "workforce": {"prefix": "/operators"}
            }
        }

    return application


app = create_app()


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "inquiry_desk.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
