"""
FastAPI Application - Variant Engine
Variant generation and inventory ledger service
"""

# Load environment variables from .env file FIRST before any other imports
from dotenv import load_dotenv
load_dotenv()

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError

from variant_engine.core.config import config
from variant_engine.core.errors import (
    ErrorResponse,
    error_response_handler,
    http_exception_handler,
    validation_exception_handler,
)
from variant_engine.core.indexes import create_indexes
from variant_engine.core.logger import logger
from variant_engine.core.telemetry import instrument_app
from variant_engine.db.mongodb import close_mongo_connection, connect_to_mongo, db
from variant_engine.api import health, inventory, variants
from variant_engine.dependencies.services import build_inventory_ledger
from variant_engine.middleware import CorrelationIdMiddleware
from variant_engine.workers import ReservationWorker


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info("Starting Variant Engine...")
    await connect_to_mongo()
    await create_indexes(db)

    worker = None
    if config.reservation_sweep_enabled:
        worker = ReservationWorker(build_inventory_ledger(db))
        worker.start()

    logger.info(
        "Variant Engine started successfully",
        metadata={
            "service_name": config.service_name,
            "version": config.service_version,
            "environment": config.environment,
            "port": config.port
        }
    )

    yield

    # Shutdown
    logger.info("Shutting down Variant Engine...")
    if worker is not None:
        await worker.stop()
    await close_mongo_connection()


app = FastAPI(
    title="Variant Engine",
    description="Variant generation, pricing, SKU allocation and inventory ledger",
    version=config.service_version,
    lifespan=lifespan
)

instrument_app(app)

app.add_exception_handler(ErrorResponse, error_response_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)

app.add_middleware(CorrelationIdMiddleware)

app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(variants.router, prefix="/api", tags=["variants"])
app.include_router(inventory.router, prefix="/api/inventory", tags=["inventory"])
