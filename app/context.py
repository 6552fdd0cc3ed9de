"""
Per-request context: correlation id, request metadata, bound logger and
the snapshot of tracing headers.

A RequestContext is built by RequestContextMiddleware for every inbound
request and handed explicitly to the service layer.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional

from fastapi import Request


# Request header keys
HEADER_KEY_REQUEST_ID = "requestid"
HEADER_KEY_USER_AGENT = "User-Agent"
HEADER_KEY_USER_IP = "X-Forwarded-For"

# Bound logger field keys
LOGGER_KEY_REQUEST_ID = "request_id"
LOGGER_KEY_OPERATION = "operation"
LOGGER_KEY_USER_AGENT = "user_agent"
LOGGER_KEY_USER_IP = "user_ip"

# Headers captured for propagation to outbound calls
PROPAGATION_HEADERS = (
    "x-request-id",
    "x-b3-traceid",
    "x-b3-spanid",
    "x-b3-parentspanid",
    "x-b3-sampled",
    "x-b3-flags",
    "x-ot-span-context",
    "User-Agent",
    "X-Forwarded-For",
    "requestid",
)

REQUEST_LOGGER_NAME = "app.requests"


class ContextLogger(logging.LoggerAdapter):
    """LoggerAdapter that merges its bound fields into every record's extra."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


@dataclass
class RequestContext:
    correlation_id: str
    logger: ContextLogger
    operation: str = ""
    user_agent: str = ""
    user_ip: str = ""
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def fields(self) -> Dict[str, str]:
        """Fields bound to the logger."""
        return dict(self.logger.extra)

    def propagation_headers(self) -> Dict[str, str]:
        """Captured headers with a value, ready to forward to an outbound call."""
        return {name: value for name, value in self.headers.items() if value}


def _add_logger_param(fields: Dict[str, str], key: str, value: Optional[str]) -> None:
    if value:
        fields[key] = value


def new_request_context(
    correlation_id: Optional[str] = None,
    operation: str = "",
    user_agent: str = "",
    user_ip: str = "",
    headers: Optional[Dict[str, str]] = None,
    logger_name: str = REQUEST_LOGGER_NAME,
) -> RequestContext:
    """
    Build a RequestContext, generating a correlation id when none is given.

    Only non-empty values end up as logger fields.
    """
    if not correlation_id:
        correlation_id = str(uuid.uuid4())

    fields: Dict[str, str] = {}
    _add_logger_param(fields, LOGGER_KEY_REQUEST_ID, correlation_id)
    _add_logger_param(fields, LOGGER_KEY_OPERATION, operation)
    _add_logger_param(fields, LOGGER_KEY_USER_AGENT, user_agent)
    _add_logger_param(fields, LOGGER_KEY_USER_IP, user_ip)

    return RequestContext(
        correlation_id=correlation_id,
        logger=ContextLogger(logging.getLogger(logger_name), fields),
        operation=operation,
        user_agent=user_agent,
        user_ip=user_ip,
        headers=dict(headers or {}),
    )


def raw_request_uri(request: Request) -> str:
    """Request target as sent by the client: undecoded path plus query string."""
    raw_path = request.scope.get("raw_path")
    if raw_path:
        # some servers include the query in raw_path
        path = raw_path.split(b"?", 1)[0].decode("latin-1")
    else:
        path = request.url.path

    query = request.scope.get("query_string", b"").decode("latin-1")
    if query:
        return f"{path}?{query}"
    return path


def request_context_from(request: Request) -> RequestContext:
    """Extract correlation id, metadata and tracing headers from a request."""
    operation = raw_request_uri(request)

    return new_request_context(
        correlation_id=request.headers.get(HEADER_KEY_REQUEST_ID, ""),
        operation=operation,
        user_agent=request.headers.get(HEADER_KEY_USER_AGENT, ""),
        user_ip=request.headers.get(HEADER_KEY_USER_IP, ""),
        headers={name: request.headers.get(name, "") for name in PROPAGATION_HEADERS},
    )


def get_request_context(request: Request) -> RequestContext:
    """FastAPI dependency returning the context attached by the middleware."""
    return request.state.request_context
