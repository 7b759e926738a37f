"""
Patent Search Backend API
"""
from dotenv import load_dotenv
load_dotenv()

import logging
import sys
from pathlib import Path

from alembic import command
from alembic.config import Config

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True,
)

logger = logging.getLogger(__name__)

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from patent_search.api.routes import artifacts, chat_sessions, cron, dev, rate_limit, users, valyu_auth, valyu_proxy
from patent_search.core.config import log_environment_status, settings
from patent_search.core.errors import ConfigurationError, ServiceError, ValidationError
from patent_search.db.base import Base
from patent_search.db.session import SQLALCHEMY_DATABASE_URL, engine
from patent_search.services.valyu_oauth import MISSING_PARAMETERS_MESSAGE
# Import all models to ensure they're registered with Base
import patent_search.models  # noqa: F401


def run_migrations() -> None:
    """Run Alembic migrations on startup. Fails startup if they fail."""
    project_root = Path(__file__).resolve().parent.parent
    alembic_ini = project_root / "alembic.ini"
    if not alembic_ini.exists():
        logger.warning("alembic.ini not found, skipping Alembic migrations")
        return
    try:
        alembic_cfg = Config(str(alembic_ini))
        alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))
        alembic_cfg.set_main_option("sqlalchemy.url", SQLALCHEMY_DATABASE_URL)
        alembic_cfg.attributes["configure_logger"] = False
        command.upgrade(alembic_cfg, "head")
        logger.info("Alembic migrations completed successfully")
    except Exception as e:
        logger.exception("Alembic migration failed: %s", e)
        raise


TOKEN_EXCHANGE_PATH = "/api/auth/valyu/token"

app = FastAPI(title="Patent Search")


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if isinstance(exc, ConfigurationError):
        logger.error("Configuration error on %s: %s", request.url.path, exc.description)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = [".".join(str(part) for part in e.get("loc", ())) for e in exc.errors()]
    logger.info("Rejected malformed request to %s: %s", request.url.path, fields)
    if request.url.path == TOKEN_EXCHANGE_PATH:
        error = ValidationError(MISSING_PARAMETERS_MESSAGE, error="missing_parameters")
    else:
        error = ValidationError("Invalid request body")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "server_error", "error_description": "An unexpected error occurred"},
    )


@app.on_event("startup")
def startup_event():
    """Create tables, then run Alembic migrations on every server restart."""
    log_environment_status(settings)

    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)

    logger.info("Running Alembic migrations...")
    run_migrations()


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(valyu_auth.router, prefix="/api/auth/valyu", tags=["Valyu OAuth"])
app.include_router(rate_limit.router, prefix="/api/rate-limit", tags=["Rate Limit"])
app.include_router(chat_sessions.router, prefix="/api/chat/sessions", tags=["Chat Sessions"])
app.include_router(artifacts.router, prefix="/api", tags=["Artifacts"])
app.include_router(cron.router, prefix="/api/cron", tags=["Cron"])
app.include_router(dev.router, prefix="/api", tags=["Development"])
app.include_router(valyu_proxy.router, prefix="/api", tags=["Valyu Proxy"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])
