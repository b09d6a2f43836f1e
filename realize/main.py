"""Realize Reporter — FastAPI Application Entry Point.

Account lookup, conversion-rule attribution and performance reports for
Realize (Taboola Backstage) advertiser accounts.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from realize.api.account_routes import router as account_router
from realize.api.report_routes import router as report_router
from realize.api.rule_routes import router as rule_router
from realize.config import settings
from realize.core.logging import get_logger
from realize.database import init_db, test_connection
from realize.dependencies import close_services

logger = get_logger("main")

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info("🚀 Realize Reporter starting up...")
    if test_connection():
        init_db()
    else:
        logger.error("❌ Local store NOT reachable — preferences will fail")
    has_credentials = settings.realize_client_id and settings.realize_client_secret
    if not has_credentials and not settings.realize_debug_token:
        logger.warning("No Realize credentials configured; API calls will fail")
    yield
    await close_services()
    logger.info("Realize Reporter shut down")


app = FastAPI(
    title="Realize Reporter",
    description="Look up Realize accounts, pick a conversion rule and pull performance reports as Markdown or XLSX.",
    version=VERSION,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(account_router)
app.include_router(rule_router)
app.include_router(report_router)


@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "realize-reporter",
        "version": VERSION,
    }
