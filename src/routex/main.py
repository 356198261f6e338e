"""Command-line entry point: serve the routing engine over HTTP."""

import asyncio
import logging

import uvicorn

from routex.api.app import create_app, load_engine
from routex.config import Settings, get_settings

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # quiet per-statement SQL unless explicitly debugging the ledger
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


async def serve(settings: Settings) -> None:
    """Build the engine, then run uvicorn until it receives a stop signal."""
    if settings.dry_run:
        logger.warning("Dry run: simulated backends with the demo route table")
    if not settings.admin_token:
        logger.warning("ROUTEX_ADMIN_TOKEN not set - admin endpoints are open")
    if not settings.api_token:
        logger.warning("ROUTEX_API_TOKEN not set - swap endpoints accept any X-Caller")

    engine = await load_engine()
    logger.info(
        f"Engine {engine.engine_address} ready: {len(engine.store.routes)} routes, "
        f"{len(engine.store.backends)} registered backends, paused={engine.is_paused}"
    )

    server = uvicorn.Server(
        uvicorn.Config(
            create_app(engine),
            host=settings.api_host,
            port=settings.api_port,
            log_level="debug" if settings.debug else "info",
        )
    )
    logger.info(f"Serving routex API on {settings.api_host}:{settings.api_port}")
    await server.serve()
    logger.info("routex stopped")


def main() -> None:
    settings = get_settings()
    configure_logging(settings)
    logger.info(f"Starting routex ({settings.environment})")
    try:
        asyncio.run(serve(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
