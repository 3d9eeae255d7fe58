from fastapi import HTTPException, Request
from fastapi.responses import PlainTextResponse, Response, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.requests import ClientDisconnect

import safestore
from safestore.app import gate, routing
from safestore.app.routing import Route
from safestore.app.services.storage_manager import BlobStore, PathKind, StorageError
from safestore.app.validators import is_valid_backup_id
from safestore.config import ServerConfig
from safestore.logger_config import setup_logger

logger = setup_logger()

INTERNAL_SERVER_ERROR = "Internal server error"


class ServerConfigPublic(BaseModel):
    """The part of the server configuration that clients may see."""
    model_config = ConfigDict(populate_by_name=True)

    max_backup_bytes: int = Field(alias="maxBackupBytes")
    retention_days: int = Field(alias="retentionDays")

    @classmethod
    def from_config(cls, config: ServerConfig) -> 'ServerConfigPublic':
        return cls(max_backup_bytes=config.max_backup_bytes, retention_days=config.retention_days)


def internal_error():
    return HTTPException(status_code=500, detail=INTERNAL_SERVER_ERROR)


def parse_content_length(value):
    """Parse a Content-Length header value, returning None if it is not a plain number."""
    if value is None or not value.isascii() or not value.isdigit():
        return None
    return int(value)


async def dispatch(request: Request):
    """Route a request to its handler."""
    found = routing.match(request.url.path)
    if found is None:
        return Response(status_code=404)

    method = request.method
    if found.route is Route.INDEX:
        if method == "GET":
            return handle_index()
        return Response(status_code=405)

    if found.route is Route.CONFIG:
        if method == "GET":
            return handle_config(request)
        return Response(status_code=405)

    backup_id = found.params["backupId"]
    if method in ("GET", "HEAD"):
        return await handle_get_backup(request, backup_id)
    if method == "PUT":
        return await handle_put_backup(request, backup_id)
    if method == "DELETE":
        return await handle_delete_backup(request, backup_id)
    return Response(status_code=405)


def handle_index():
    return PlainTextResponse(f"{safestore.NAME} {safestore.VERSION}")


def handle_config(request: Request):
    gate.require_accept_starts_with(request, gate.JSON)
    config = request.app.state.config
    try:
        body = ServerConfigPublic.from_config(config).model_dump_json(by_alias=True)
    except ValueError as e:
        logger.error(f"Could not serialize server config: {e}")
        raise internal_error()
    return Response(content=body, media_type=gate.JSON)


async def handle_get_backup(request: Request, backup_id: str):
    store: BlobStore = request.app.state.blob_store

    # Validate headers
    gate.require_accept_is(request, gate.OCTET_STREAM)

    # Validate params
    if not is_valid_backup_id(backup_id):
        logger.warning(f"Download of backup with invalid id was requested: {backup_id}")
        return Response(status_code=404)

    if not await store.exists(backup_id):
        return Response(status_code=404)

    if request.method == "HEAD":
        return Response(status_code=200, media_type=gate.OCTET_STREAM)

    try:
        chunks, size = await store.open_backup(backup_id)
    except FileNotFoundError:
        # Deleted since the existence check
        return Response(status_code=404)
    except OSError as e:
        logger.error(f"Could not read backup {backup_id}: {e}")
        raise internal_error()

    return StreamingResponse(
        chunks,
        media_type=gate.OCTET_STREAM,
        headers={"content-length": str(size)},
    )


async def handle_put_backup(request: Request, backup_id: str):
    store: BlobStore = request.app.state.blob_store
    config: ServerConfig = request.app.state.config

    # Validate headers
    gate.require_content_type_is(request, gate.OCTET_STREAM)

    # Validate params
    if not is_valid_backup_id(backup_id):
        logger.warning(f"Upload of backup with invalid id was requested: {backup_id}")
        raise HTTPException(status_code=400, detail="Invalid backup ID")

    # Validate backup path
    if await store.path_kind(backup_id) is PathKind.OTHER:
        logger.warning(f"Tried to upload to a backup path that exists but is not a file: {backup_id}")
        raise internal_error()

    # Check the declared size before reading any of the body
    raw_length = request.headers.get("content-length")
    content_length = parse_content_length(raw_length)
    if content_length is None:
        logger.warning(f"Upload request has invalid content-length header: {raw_length!r}")
        raise HTTPException(status_code=400, detail="Invalid or missing content-length header")
    if content_length > config.max_backup_bytes:
        logger.warning(f"Upload request is too large ({content_length} > {config.max_backup_bytes})")
        raise HTTPException(status_code=413, detail="Backup is too large")

    try:
        updated = await store.write(backup_id, request.stream(), max_bytes=content_length)
    except ClientDisconnect:
        logger.warning(f"Client disconnected during upload of backup {backup_id}")
        raise internal_error()
    except (OSError, StorageError) as e:
        logger.error(f"Could not write backup {backup_id}: {e}", exc_info=True)
        raise internal_error()

    if updated:
        logger.info(f"Updated backup {backup_id}")
        return Response(status_code=204)
    logger.info(f"Created backup {backup_id}")
    return Response(status_code=201)


async def handle_delete_backup(request: Request, backup_id: str):
    store: BlobStore = request.app.state.blob_store

    # Validate params
    if not is_valid_backup_id(backup_id):
        logger.warning(f"Deletion of backup with invalid id was requested: {backup_id}")
        raise HTTPException(status_code=400, detail="Invalid backup ID")

    kind = await store.path_kind(backup_id)
    if kind is PathKind.MISSING:
        return Response(status_code=404)
    if kind is PathKind.OTHER:
        logger.warning(f"Tried to delete a backup path that exists but is not a file: {backup_id}")
        raise internal_error()

    try:
        await store.delete(backup_id)
    except OSError as e:
        logger.error(f"Could not delete backup {backup_id}: {e}")
        raise internal_error()

    logger.info(f"Deleted backup {backup_id}")
    return Response(status_code=204)
