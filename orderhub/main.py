import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from orderhub.core.config import CORS_ORIGINS, DATABASE_URL
from orderhub.core.database import Base, engine
from orderhub.core.errors import InvalidTransition, OrderFlowError
from orderhub.core.logging_setup import configure_logging
from orderhub.core.startup_checks import ensure_migrations_applied, validate_database_environment
from orderhub.middleware.observability import ObservabilityMiddleware
import orderhub.models  # noqa: F401  models must be registered before create_all
from orderhub.routers.activities import router as activities_router
from orderhub.routers.automation import router as automation_router
from orderhub.routers.commands import router as commands_router
from orderhub.routers.internal_metrics import router as internal_metrics_router
from orderhub.routers.menu import router as menu_router
from orderhub.routers.orders import router as orders_router
from orderhub.routers.webhooks import router as webhooks_router
from orderhub.services.container import Container, build_container

configure_logging()

logger = logging.getLogger(__name__)
STARTUP_PREFIX = "[STARTUP]"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini")))


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        if DATABASE_URL.startswith("sqlite"):
            Base.metadata.create_all(bind=engine)
        else:
            ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
    except Exception:
        logger.exception("%s ERROR startup failed", STARTUP_PREFIX)
        raise


async def order_flow_error_handler(_: Request, exc: OrderFlowError) -> JSONResponse:
    body = {"error": exc.code, "detail": exc.message}
    if isinstance(exc, InvalidTransition):
        body["current"] = exc.current
        body["requested"] = exc.requested
    return JSONResponse(status_code=exc.status_code, content=body)


def create_app(container: Container | None = None, *, run_startup_tasks: bool = True) -> FastAPI:
    container = container or build_container()

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if run_startup_tasks:
            _startup_tasks()
        container.dispatcher.start()
        yield
        container.dispatcher.stop()

    app = FastAPI(
        title="OrderHub API",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(ObservabilityMiddleware)
    app.add_exception_handler(OrderFlowError, order_flow_error_handler)

    app.include_router(orders_router)
    app.include_router(menu_router)
    app.include_router(commands_router)
    app.include_router(webhooks_router)
    app.include_router(automation_router)
    app.include_router(activities_router)
    app.include_router(internal_metrics_router)

    @app.get("/")
    def root():
        return {"status": "ok"}

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    return app


app = create_app()
