import logging

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from app.api.counters import router as counters_router
from app.api.projects import router as projects_router
from app.container import configure_container
from app.db import SessionLocal
from app.errors import register_error_handlers
from app.logging import configure_logging
from app.observability import ObservabilityMiddleware
from app.telemetry import setup_otel

logger = logging.getLogger(__name__)

app = FastAPI(title="project_management API")

configure_logging()
setup_otel(app)
app.add_middleware(ObservabilityMiddleware)
register_error_handlers(app)
container = configure_container(SessionLocal)


def _include_api_router(router, dependencies=None):
    app.include_router(router, dependencies=dependencies)
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(counters_router)
_include_api_router(projects_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.head("/health")
def head_health():
    return Response(status_code=200)


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


@app.on_event("startup")
def _seed_counters():
    db = container.db_session_factory()
    try:
        container.counters_service().seed_defaults(db)
    except Exception:
        # Counters are still created lazily on first allocation.
        logger.warning("counter_seed_failed", exc_info=True)
    finally:
        db.close()
