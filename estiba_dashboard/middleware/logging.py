import time
import uuid
import structlog
from fastapi import Request

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"


async def logging_middleware(request: Request, call_next):
    """Tag every log line of a request with its id and log one summary line at the end."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, path=request.url.path)
    start_time = time.perf_counter()

    try:
        response = await call_next(request)
    except Exception:
        logger.exception("request_failed", method=request.method)
        raise

    response.headers[REQUEST_ID_HEADER] = request_id
    logger.info(
        "request_completed",
        method=request.method,
        query=str(request.url.query) or None,
        status_code=response.status_code,
        duration_ms=round((time.perf_counter() - start_time) * 1000, 2)
    )
    return response
