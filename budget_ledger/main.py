"""
Budget Ledger: FastAPI Application.

Entry point for the HTTP service. Logging, exception
handlers and all routers are set up here.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from budget_ledger.config import get_settings
from budget_ledger.exceptions import (
    AppException,
    app_exception_handler,
    generic_exception_handler,
)
from budget_ledger.models import Base
from budget_ledger.models.base import engine
from budget_ledger.api.health import router as health_router
from budget_ledger.api.ledgers import router as ledgers_router
from budget_ledger.api.accounts import router as accounts_router
from budget_ledger.api.transactions import router as transactions_router

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create any missing tables on startup."""
    Base.metadata.create_all(bind=engine)
    logger.info("%s %s started (%s)", settings.APP_NAME,
                settings.APP_VERSION, settings.ENVIRONMENT)
    yield


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Double-entry bookkeeping and envelope budgeting",
    debug=settings.DEBUG,
    lifespan=lifespan,
)

app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Register routers
app.include_router(health_router)
app.include_router(ledgers_router)
app.include_router(accounts_router)
app.include_router(transactions_router)
