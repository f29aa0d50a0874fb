"""
Logging setup and request logging middleware.

- configure_logging(level): one basicConfig call for the API and the worker.
- request_logging_middleware: adds X-Request-ID header (UUID4) to each
  response and request.state; logs method, path, status, latency and request-id.
"""
import logging
import time
import uuid
from typing import Callable

from starlette.requests import Request

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("air_alert.request")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # httpx logs every request at INFO; the scheduler already logs per subscriber
    logging.getLogger("httpx").setLevel(logging.WARNING)


async def request_logging_middleware(request: Request, call_next: Callable):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    start = time.time()
    response = await call_next(request)
    latency = (time.time() - start) * 1000.0
    response.headers["X-Request-ID"] = request_id
    logger.info(
        "[request] id=%s method=%s path=%s status=%s latency_ms=%.2f",
        request_id, request.method, request.url.path, response.status_code, latency,
    )
    return response
