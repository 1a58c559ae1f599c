"""
Hospital Revenue Ledger: FastAPI application.

This is the entry point for the application.
All routers are registered here.
"""

import logging

from fastapi import FastAPI

from hospital_ledger.config import get_settings
from hospital_ledger.api.health import router as health_router
from hospital_ledger.api.ledger import router as ledger_router
from hospital_ledger.api.revenue import router as revenue_router
from hospital_ledger.api.day_status import router as day_status_router
from hospital_ledger.api.pharmacy import router as pharmacy_router

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Revenue ledger and day-end reconciliation for a hospital",
    debug=settings.DEBUG,
)

# Register routers
app.include_router(health_router)
app.include_router(ledger_router)
app.include_router(revenue_router)
app.include_router(day_status_router)
app.include_router(pharmacy_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "hospital_ledger.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
