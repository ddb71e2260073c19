#!/usr/bin/env python3
"""
Production startup script for the OrganFlow API
"""
import uvicorn
import os
import sys
from organflow.core.config import settings
from organflow.core.logging import logger

def main():
    """Start the FastAPI application."""

    # Create necessary directories
    os.makedirs("logs", exist_ok=True)
    if not settings.DATABASE_URL:
        os.makedirs(os.path.dirname(settings.SNAPSHOT_FILE) or ".", exist_ok=True)

    logger.info(f"Starting {settings.APP_NAME} Server")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug Mode: {settings.DEBUG}")
    logger.info(f"Storage: {'database' if settings.DATABASE_URL else settings.SNAPSHOT_FILE}")

    # Lifecycle state lives in one process, so a single worker is enforced
    if settings.WORKERS != 1:
        logger.warning(f"WORKERS={settings.WORKERS} ignored; the lifecycle manager requires a single process")

    config = {
        "app": "organflow.main:app",
        "host": settings.HOST,
        "port": settings.PORT,
        "reload": settings.DEBUG,
        "log_level": settings.LOG_LEVEL.lower(),
        "access_log": True,
        "use_colors": settings.DEBUG,
    }

    logger.info(f"Starting server on {config['host']}:{config['port']}")

    try:
        uvicorn.run(**config)
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.error(f"Server error: {e}")
        sys.exit(1)

if __name__ == "__main__":
    main()
