from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
import logging

# Import database components
from bizreports.database.database import create_tables

# Import middleware
from bizreports.common.middleware import TenantMiddleware

# Import routers
from bizreports.modules.reports.routers import (
    builder_router as builder_reports_router,
    saved_router as saved_reports_router,
    inventory_router as inventory_reports_router
)

# Import models for table creation
import bizreports.modules.branches.models
import bizreports.modules.categories.models
import bizreports.modules.products.models
import bizreports.modules.sales.models
import bizreports.modules.reservations.models
import bizreports.modules.reports.models

from bizreports.core.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="BizReports API",
    description="Multi-tenant reporting engine built with FastAPI and SQLAlchemy",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None
)

# Add middleware (order matters!)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(TenantMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(builder_reports_router, prefix="/api/v1")
app.include_router(saved_reports_router, prefix="/api/v1")
app.include_router(inventory_reports_router, prefix="/api/v1")


@app.get("/")
async def read_root():
    return {
        "message": "BizReports API is running",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy", "environment": settings.ENVIRONMENT}


@app.on_event("startup")
async def startup_event():
    logger.info("BizReports API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")

    # Create database tables (only for development - no migrations)
    if settings.ENVIRONMENT == "development":
        await create_tables()


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("BizReports API shutting down...")
