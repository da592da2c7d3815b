"""
Middleware for request tracking and logging.
"""
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from structlog.contextvars import bind_contextvars, clear_contextvars

from paylink.logging_config import get_logger

logger = get_logger(__name__)


async def request_id_middleware(request: Request, call_next: Callable) -> Response:
    """
    Bind a request id (and Razorpay's event id on webhooks) to the structlog
    context so every log line of a request can be correlated.
    """
    request_id = request.headers.get('X-Request-ID', str(uuid.uuid4()))

    clear_contextvars()
    bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )
    event_id = request.headers.get('X-Razorpay-Event-Id')
    if event_id:
        bind_contextvars(razorpay_event_id=event_id)

    request.state.request_id = request_id
    start_time = time.time()
    logger.info("request_started")

    try:
        response = await call_next(request)
        logger.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )
        response.headers['X-Request-ID'] = request_id
        return response
    except Exception as exc:
        logger.error(
            "request_failed",
            exc_info=exc,
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )
        raise
    finally:
        clear_contextvars()
