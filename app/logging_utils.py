import logging
import sys
import time
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from pythonjsonlogger import jsonlogger

from app.context import LOGGER_KEY_REQUEST_ID, request_context_from
from app.metrics import record_http_request


# Correlation id of the current request, for records logged outside the bound logger
request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter to ensure ISO-8601 timestamps and request_id."""

    def add_fields(self, log_record, record, message_dict):
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)
        if not log_record.get('ts'):
            log_record['ts'] = datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z'
        log_record['level'] = record.levelname

        if LOGGER_KEY_REQUEST_ID not in log_record:
            req_id = request_id_ctx.get()
            if req_id:
                log_record[LOGGER_KEY_REQUEST_ID] = req_id


def setup_logging(log_level: str = "INFO"):
    """
    Setup structured JSON logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logger = logging.getLogger()
    logger.setLevel(log_level.upper())

    # Remove existing handlers
    logger.handlers = []

    json_handler = logging.StreamHandler(sys.stdout)
    json_handler.setFormatter(CustomJsonFormatter('%(ts)s %(level)s %(name)s %(message)s'))

    logger.addHandler(json_handler)

    # Route Uvicorn loggers through the same JSON handler
    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(logger_name)
        uvicorn_logger.handlers = []
        uvicorn_logger.addHandler(json_handler)
        uvicorn_logger.propagate = False

    # Disable uvicorn.access logger since the middleware logs every request
    logging.getLogger("uvicorn.access").disabled = True

    return logger


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Attach a RequestContext to every inbound request.

    The context carries the correlation id (taken from the `requestid` header
    or generated), the operation (request URI), user agent, client IP, a
    logger bound with those fields and a snapshot of the tracing headers.
    Handlers read it with the `get_request_context` dependency.

    After the response is produced one completion line is logged with:
    - method, path, status
    - latency_ms: request processing time in milliseconds
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        context = request_context_from(request)
        request.state.request_context = context

        token = request_id_ctx.set(context.correlation_id)
        start_time = time.time()

        try:
            response = await call_next(request)

            latency_seconds = time.time() - start_time

            # Route template keeps the label cardinality bounded
            route = request.scope.get("route")
            path = getattr(route, "path", request.url.path)

            if request.url.path != "/metrics":
                record_http_request(
                    method=request.method,
                    path=path,
                    status=response.status_code,
                    latency_seconds=latency_seconds
                )

            log_data = {
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "latency_ms": round(latency_seconds * 1000, 2),
            }

            if response.status_code >= 500:
                context.logger.error("Request completed", extra=log_data)
            elif response.status_code >= 400:
                context.logger.warning("Request completed", extra=log_data)
            else:
                context.logger.info("Request completed", extra=log_data)

            return response
        finally:
            request_id_ctx.reset(token)
