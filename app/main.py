# app/main.py

import logging
import os
import subprocess
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from app.core.logging_config import configure_logging
from app.core.config import get_settings
from app.core.security import require_auth
from app.database import async_session
from app.integrations.setup import setup_services
from app.routes import connections, crosslist, health, scheduler as scheduler_routes
from app.routes.webhooks import router as webhook_router
from app.scheduler import create_scheduler, start_scheduler, stop_scheduler

from app import models  # noqa: F401  (registers ORM models)

configure_logging()
logger = logging.getLogger(__name__)


def run_migrations() -> None:
    result = subprocess.run(['alembic', 'upgrade', 'head'], capture_output=True, text=True)
    if result.returncode == 0:
        logger.info("Migrations completed successfully")
        logger.debug(result.stdout)
    else:
        logger.error(f"Migration failed: {result.stderr}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()

    if os.getenv('RUN_MIGRATIONS', 'false').lower() == 'true':
        logger.info("Running database migrations...")
        run_migrations()

    app.state.services = setup_services(async_session, settings)

    create_scheduler(app.state.services.reconciliation, settings)
    if settings.SYNC_SCHEDULE_ENABLED:
        await start_scheduler()

    try:
        yield  # This is where the app runs
    finally:
        await stop_scheduler()


app = FastAPI(
    title="Listing Sync Engine",
    lifespan=lifespan
)

# Add middleware to handle HTTPS behind proxy
@app.middleware("http")
async def proxy_headers_middleware(request: Request, call_next):
    forwarded_proto = request.headers.get("x-forwarded-proto")
    if forwarded_proto == "https":
        request.scope["scheme"] = "https"
    response = await call_next(request)
    return response

# Include routers with authentication
app.include_router(crosslist.router, dependencies=[require_auth()])
app.include_router(connections.router, dependencies=[require_auth()])
app.include_router(scheduler_routes.router)  # Auth enforced per endpoint
app.include_router(webhook_router)  # Webhooks authenticate with a signature instead
app.include_router(health.router)  # Health check should be accessible without auth
