import asyncio
from contextlib import asynccontextmanager, suppress
from typing import Optional, Sequence

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import Response
from starlette.exceptions import HTTPException as StarletteHTTPException

import safestore
from safestore.app.gate import client_gate
from safestore.app.handlers import dispatch
from safestore.app.services.retention import RetentionSweeper
from safestore.app.services.storage_manager import BlobStore
from safestore.config import ServerConfig
from safestore.logger_config import setup_logger

logger = setup_logger()

METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "TRACE"]


def create_app(config: ServerConfig) -> FastAPI:
    """Build the server application around a fixed configuration."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await app.state.blob_store.initialize()

        sweeper = RetentionSweeper(config.backup_dir, config.retention_days, config.sweep_interval)
        sweep_task = asyncio.create_task(sweeper.run()) if sweeper.enabled else None
        yield
        if sweep_task is not None:
            sweep_task.cancel()
            with suppress(asyncio.CancelledError):
                await sweep_task

    # No generated docs, every path is served by the dispatcher
    app = FastAPI(
        title=safestore.NAME,
        version=safestore.VERSION,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.config = config
    app.state.blob_store = BlobStore(config.backup_dir)

    app.middleware("http")(client_gate)

    @app.exception_handler(StarletteHTTPException)
    async def empty_status_handler(request: Request, exc: StarletteHTTPException):
        # Methods outside METHODS are refused by the router before dispatch runs
        if exc.status_code == 405:
            return await dispatch(request)
        if exc.status_code == 404:
            return Response(status_code=404)
        return await http_exception_handler(request, exc)

    @app.api_route("/{path:path}", methods=METHODS, include_in_schema=False)
    async def entry(request: Request, path: str):
        return await dispatch(request)

    return app


def run(argv: Optional[Sequence[str]] = None):
    config = ServerConfig.from_args(argv)
    setup_logger(config.log_dir)

    logger.info(f"Starting {safestore.NAME} {safestore.VERSION}...")
    logger.info(f"Backup directory: {config.backup_dir}")
    logger.info(f"Maximum backup size: {config.max_backup_bytes} bytes")
    logger.info(f"Retention: {config.retention_days} days")
    if config.allow_browser:
        logger.warning("Browser mode enabled, user agent check is disabled")
    uvicorn.run(create_app(config), host=config.host, port=config.port)


if __name__ == "__main__":
    run()
