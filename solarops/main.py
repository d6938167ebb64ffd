import os

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from .config import settings
from .db import Base, engine
from .logging import setup_logging, RequestIdMiddleware
from .services.errors import SolarOpsError
from .routes.audit import router as audit_router
from .routes.commissions import router as commissions_router
from .routes.customers import router as customers_router
from .routes.employees import router as employees_router
from .routes.files import router as files_router
from .routes.integrations import router as integrations_router
from .routes.payroll import router as payroll_router
from .routes.photos import router as photos_router
from .routes.subcontract import router as subcontract_router
from .routes.tickets import router as tickets_router
from .routes.time_clock import router as time_clock_router


logger = structlog.get_logger(__name__)


async def solarops_error_handler(request: Request, exc: SolarOpsError):
    logger.info("request_rejected", path=request.url.path, error=exc.message, error_type=type(exc).__name__)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    app.add_exception_handler(SolarOpsError, solarops_error_handler)

    # Routers
    app.include_router(payroll_router)
    app.include_router(commissions_router)
    app.include_router(tickets_router)
    app.include_router(photos_router)
    app.include_router(time_clock_router)
    app.include_router(subcontract_router)
    app.include_router(customers_router)
    app.include_router(employees_router)
    app.include_router(integrations_router)
    app.include_router(audit_router)
    app.include_router(files_router)

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.on_event("startup")
    def _startup():
        if settings.database_url.startswith("sqlite:///"):
            db_dir = os.path.dirname(settings.database_url[len("sqlite:///"):])
            if db_dir:
                os.makedirs(db_dir, exist_ok=True)
        if settings.storage_provider == "local":
            os.makedirs(settings.local_storage_dir, exist_ok=True)
        if settings.auto_create_db:
            Base.metadata.create_all(bind=engine)
            logger.info("tables_verified", tables=len(Base.metadata.tables))

    return app


app = create_app()
