"""
Entrypoint - runs the Variant Engine with uvicorn
"""

from dotenv import load_dotenv
load_dotenv()

import uvicorn

from variant_engine.core.config import config
from variant_engine.core.logger import logger

if __name__ == "__main__":
    logger.info(
        f"Starting {config.service_name} on port {config.port}",
        metadata={
            "service_name": config.service_name,
            "version": config.service_version,
            "environment": config.environment,
            "port": config.port
        }
    )

    uvicorn.run(
        "variant_engine.main:app",
        host=config.host,
        port=config.port,
        reload=config.environment == "development"
    )
