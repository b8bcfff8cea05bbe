#!/usr/bin/env python3
"""
Management commands for the Masjid Finder backend
"""
import asyncio
import sys

import uvicorn

from backend.services.common.config import get_settings
from backend.services.common.database import async_engine, init_models
from backend.services.common.logger import get_logger

logger = get_logger("manage")


async def _init_db() -> None:
    try:
        await init_models()
    finally:
        await async_engine.dispose()


def init_db() -> bool:
    """Create any missing tables"""
    try:
        asyncio.run(_init_db())
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)
        return False
    logger.info("Database initialized")
    return True


def serve(host: str, port: int, workers: int) -> bool:
    """Run the API under uvicorn"""
    settings = get_settings()
    uvicorn.run(
        "backend.services.api_service.main:app",
        host=host,
        port=port,
        workers=workers,
        log_level=settings.log_level.lower()
    )
    return True


def main():
    """Main entry point"""
    import argparse

    settings = get_settings()

    parser = argparse.ArgumentParser(description="Masjid Finder backend management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create database tables")

    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", default=settings.api_host)
    serve_parser.add_argument("--port", type=int, default=settings.api_port)
    serve_parser.add_argument("--workers", type=int, default=settings.api_workers)

    args = parser.parse_args()

    if args.command == "init-db":
        success = init_db()
    else:
        success = serve(args.host, args.port, args.workers)

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
