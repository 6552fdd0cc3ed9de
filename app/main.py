import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, Path, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from app.config import settings
from app.context import RequestContext, get_request_context
from app.errors import MessageError, classify_error
from app.logging_utils import setup_logging, RequestContextMiddleware
from app.metrics import get_metrics, get_metrics_content_type
from app.schemas import MessageRequest, MessageResponse
from app.service import MessageService
from app.storage import MessageRepository, check_db_health, get_db, init_db


# Setup structured JSON logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    - Startup: create database tables
    """
    init_db()
    yield


app = FastAPI(
    title="Message Service",
    description="CRUD microservice over a single message resource",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestContextMiddleware)


# =============================================================================
# Dependencies
# =============================================================================

def get_message_repository(db: Session = Depends(get_db)) -> MessageRepository:
    return MessageRepository(db)


def get_message_service(
    repository: MessageRepository = Depends(get_message_repository),
) -> MessageService:
    return MessageService(repository)


# Ids are 64-bit signed integers written as plain decimal digits
INT64_MIN = -2**63
INT64_MAX = 2**63 - 1


def parse_message_id(
    message_id: str = Path(..., pattern=r"^[+-]?[0-9]+$"),
) -> int:
    """Path id as a 64-bit integer; anything else is a validation error (400)."""
    value = int(message_id)
    if not INT64_MIN <= value <= INT64_MAX:
        raise RequestValidationError([{
            "type": "value_error",
            "loc": ("path", "message_id"),
            "msg": f"Value out of range for a 64-bit integer: {message_id}",
            "input": message_id,
        }])
    return value


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(MessageError)
async def handle_message_error(_request: Request, exc: MessageError) -> PlainTextResponse:
    """Classified failure: the error code is the whole body."""
    return PlainTextResponse(str(exc), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(_request: Request, exc: RequestValidationError) -> PlainTextResponse:
    """Malformed id or body: 400 with the parse failure message."""
    detail = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', '')}"
        for error in exc.errors()
    )
    logger.warning(f"Rejected malformed request: {detail}")
    return PlainTextResponse(detail, status_code=status.HTTP_400_BAD_REQUEST)


@app.exception_handler(Exception)
async def handle_unexpected(_request: Request, exc: Exception) -> PlainTextResponse:
    """Recover from any unhandled error. Never exposes internals."""
    logger.exception(f"Unhandled error: {type(exc).__name__}")
    error = classify_error(exc)
    return PlainTextResponse(str(error), status_code=error.status_code)


# =============================================================================
# Health Check Routes
# =============================================================================

@app.get("/health")
async def health() -> Response:
    """Liveness probe - always returns an empty 200 once the app is running."""
    return Response(status_code=status.HTTP_200_OK)


@app.get("/readiness")
def readiness() -> Response:
    """
    Readiness probe - empty 200 when the database is reachable and the
    message table exists, empty 503 otherwise.
    """
    if not check_db_health():
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)


# =============================================================================
# Message Routes
# =============================================================================

router = APIRouter(prefix=settings.API_PREFIX)


@router.post("/message", status_code=status.HTTP_201_CREATED, response_model=MessageResponse)
def save_message(
    payload: MessageRequest,
    ctx: RequestContext = Depends(get_request_context),
    service: MessageService = Depends(get_message_service),
) -> MessageResponse:
    """Create a message. Returns 201 with the stored message."""
    result = service.save_message(ctx, payload.text)
    return MessageResponse.model_validate(result)


@router.get("/message/{message_id}", response_model=MessageResponse)
def get_message(
    message_id: int = Depends(parse_message_id),
    ctx: RequestContext = Depends(get_request_context),
    service: MessageService = Depends(get_message_service),
) -> MessageResponse:
    result = service.get_message_by_id(ctx, message_id)
    return MessageResponse.model_validate(result)


@router.put("/message/{message_id}", response_model=MessageResponse)
def edit_message(
    payload: MessageRequest,
    message_id: int = Depends(parse_message_id),
    ctx: RequestContext = Depends(get_request_context),
    service: MessageService = Depends(get_message_service),
) -> MessageResponse:
    """
    Partial update: only `text` can change, and an empty or absent text
    leaves the message as it is.
    """
    result = service.update_message_by_id(ctx, message_id, payload.text)
    return MessageResponse.model_validate(result)


@router.delete("/message/{message_id}")
def delete_message(
    message_id: int = Depends(parse_message_id),
    ctx: RequestContext = Depends(get_request_context),
    service: MessageService = Depends(get_message_service),
) -> Response:
    """Soft delete. Returns 200 with an empty body."""
    service.delete_message_by_id(ctx, message_id)
    return Response(status_code=status.HTTP_200_OK)


app.include_router(router)


# =============================================================================
# Metrics Route
# =============================================================================

@app.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus-style metrics."""
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
