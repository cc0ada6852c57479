"""FastAPI application factory for the decision engine.

The lifespan builds one `EngineContainer` per process (unless one is
injected, as tests do), stores it on `app.state.container` and closes it at
shutdown. When the engine config enables `run_scheduler` the phase transition worker
also runs inside the API process.

Run:
    uvicorn decision_engine.api.main:app
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from structlog import get_logger

from decision_engine import __version__
from decision_engine.api.middleware.request_context import RequestContextMiddleware
from decision_engine.api.routes.health import router as health_router
from decision_engine.api.routes.instances import router as instances_router
from decision_engine.api.routes.invites import router as invites_router
from decision_engine.api.routes.metrics import router as metrics_router
from decision_engine.api.routes.proposals import router as proposals_router
from decision_engine.api.routes.results import router as results_router
from decision_engine.api.routes.scheduler import router as scheduler_router
from decision_engine.api.routes.templates import router as templates_router
from decision_engine.api.routes.voting import router as voting_router
from decision_engine.bootstrap.container import EngineContainer
from decision_engine.infrastructure.observability import configure_structlog
from decision_engine.workers.phase_transition_worker import PhaseTransitionWorker

logger = get_logger(__name__)


def create_app(container: EngineContainer | None = None) -> FastAPI:
    """Build the API application.

    Args:
        container: Pre-built container. When given, the app uses it as is
            and leaves closing it to the caller.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = container is None
        engine = container or EngineContainer.from_environment()
        if owned:
            configure_structlog(engine.config.environment)
        app.state.container = engine

        worker: PhaseTransitionWorker | None = None
        if engine.config.run_scheduler:
            worker = PhaseTransitionWorker(
                engine.phase_transition_service,
                interval_seconds=engine.config.transition_interval_seconds,
            )
            await worker.start()

        logger.info("decision_api_started", version=__version__)
        try:
            yield
        finally:
            if worker is not None:
                await worker.stop()
            if owned:
                await engine.aclose()
            app.state.container = None
            logger.info("decision_api_stopped")

    app = FastAPI(
        title="Decision Engine API",
        description="Participatory decision-making processes: phases, proposals, voting, results",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(RequestContextMiddleware)

    app.include_router(health_router)
    app.include_router(metrics_router)
    app.include_router(templates_router)
    app.include_router(instances_router)
    app.include_router(proposals_router)
    app.include_router(voting_router)
    app.include_router(results_router)
    app.include_router(invites_router)
    app.include_router(scheduler_router)
    return app


app = create_app()
