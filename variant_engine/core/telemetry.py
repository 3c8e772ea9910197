"""
OpenTelemetry Instrumentation for FastAPI

Works alongside Dapr for automatic span creation and trace enrichment.
Dapr handles trace context propagation and OTLP export.
"""

from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.pymongo import PymongoInstrumentor

from variant_engine.core.config import config
from variant_engine.core.logger import logger


def instrument_app(app):
    """
    Instrument FastAPI application with OpenTelemetry for automatic span creation.

    Args:
        app: FastAPI application instance
    """
    if not config.enable_tracing:
        logger.info("Tracing disabled, skipping OpenTelemetry instrumentation")
        return

    try:
        FastAPIInstrumentor.instrument_app(app)
        HTTPXClientInstrumentor().instrument()
        PymongoInstrumentor().instrument()

        logger.info("OpenTelemetry instrumentation complete (trace export handled by Dapr)")

    except Exception as e:
        logger.error("Failed to instrument application", error=e)
