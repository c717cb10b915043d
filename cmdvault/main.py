"""cmdvault - Admin API application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from cmdvault.adapters.redis.client import close_cache_client
from cmdvault.api.admin.router import router as admin_router
from cmdvault.dependencies import get_container
from cmdvault.logging_hardening import setup_logging
from cmdvault.settings import settings

logger = logging.getLogger(__name__)

# Initialize logging redaction filters early
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    container = app.dependency_overrides.get(get_container, get_container)()
    # Touching the key manager provisions version 1 on a fresh install
    version = container.key_manager.active_version()
    logger.info(f"cmdvault ready (active key v{version})")
    if not container.settings.admin_token:
        logger.warning("No admin token configured: admin API is unauthenticated")
    yield
    close_cache_client(container.cache_client)
    logger.info("cmdvault shutting down")


app = FastAPI(title="cmdvault", lifespan=lifespan)
app.include_router(admin_router, prefix="/admin/v1")


@app.get("/health")
async def health():
    return {"status": "ok"}
