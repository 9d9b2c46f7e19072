"""
Retail Ledger FastAPI application.

This is the entry point for the application.
All routers are registered here.
"""

from fastapi import FastAPI

from retail_ledger.config import get_settings
from retail_ledger.logging_config import configure_logging
from retail_ledger.api.health import router as health_router
from retail_ledger.api.accounts import router as accounts_router
from retail_ledger.api.transactions import router as transactions_router
from retail_ledger.api.payments import router as payments_router
from retail_ledger.api.ledger import router as ledger_router
from retail_ledger.api.inventory import router as inventory_router

settings = get_settings()
configure_logging(settings.LOG_LEVEL)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Ledger posting and inventory costing engine",
)

# Register routers
app.include_router(health_router)
app.include_router(accounts_router)
app.include_router(transactions_router)
app.include_router(payments_router)
app.include_router(ledger_router)
app.include_router(inventory_router)
