"""Header level admission checks."""
from fastapi import HTTPException, Request
from fastapi.responses import Response

from safestore.logger_config import setup_logger

logger = setup_logger()

JSON = "application/json"
OCTET_STREAM = "application/octet-stream"


def has_client_token(request: Request, token: str) -> bool:
    """Check whether the User-Agent header names an accepted backup client."""
    user_agent = request.headers.get("user-agent")
    return user_agent is not None and token in user_agent


async def client_gate(request: Request, call_next):
    """Reject unknown clients before routing, or open up CORS in browser mode."""
    config = request.app.state.config

    if not config.allow_browser:
        if not has_client_token(request, config.client_token):
            logger.warning("Received request without valid user agent")
            return Response(status_code=400)
        return await call_next(request)

    response = await call_next(request)
    response.headers["Access-Control-Allow-Origin"] = "*"
    return response


def require_accept_starts_with(request: Request, prefix: str):
    accept = request.headers.get("accept")
    if accept is None or not accept.startswith(prefix):
        logger.warning("Received request without valid accept header")
        raise HTTPException(status_code=400, detail="Invalid accept header")


def require_accept_is(request: Request, expected: str):
    if request.headers.get("accept") != expected:
        logger.warning("Received request without valid accept header")
        raise HTTPException(status_code=400, detail="Invalid accept header")


def require_content_type_is(request: Request, expected: str):
    if request.headers.get("content-type") != expected:
        logger.warning("Received request without valid content-type header")
        raise HTTPException(status_code=400, detail="Invalid content-type header")
