"""Middleware for request tagging and fault containment."""

from uuid import uuid4

from aiohttp import web
from aiohttp.typedefs import Handler

from atc_relay.relay_service.keys import REQUEST_ID_HEADER
from atc_relay.shared.logging import get_logger

logger = get_logger(__name__)


@web.middleware
async def request_context_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Attach a request id and turn unexpected handler failures into a 500."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())

    # Attach request_id to the request for handlers to use
    request["request_id"] = request_id

    logger.debug(f"{request.method} {request.path} assigned request id {request_id}")

    try:
        response = await handler(request)
    except web.HTTPException:
        raise
    except Exception as exc:
        logger.exception(f"Request {request_id} failed due to unexpected error: {exc}")
        response = web.Response(text="Relay error", status=500)

    if not response.prepared:
        response.headers.setdefault(REQUEST_ID_HEADER, request_id)

    return response
