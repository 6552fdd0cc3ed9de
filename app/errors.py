"""
Error classification for persistence failures.

Every failure coming out of the repository is mapped to a MessageError
carrying a stable error code and HTTP status. The error code is the only
thing a client ever sees; the original failure is kept for server-side logs.
"""

from typing import Optional

from fastapi import status
from sqlalchemy.exc import NoResultFound


ERROR_NAMESPACE = "message-service"

MESSAGE_NOT_FOUND = "message-not-found"
UNEXPECTED_ERROR = "unexpected-error"


class MessageError(Exception):
    """
    Classified failure of a message operation.

    Attributes:
        error_code: Machine-readable code, e.g. "error.message-service.message-not-found"
        cause: The underlying failure (never serialized to clients)
        status_code: HTTP status to answer with
    """

    def __init__(self, error_code: str, cause: Optional[BaseException], status_code: int):
        super().__init__(error_code)
        self.error_code = error_code
        self.cause = cause
        self.status_code = status_code

    def __str__(self) -> str:
        return self.error_code

    @property
    def kind(self) -> str:
        """Last segment of the error code (message-not-found / unexpected-error)."""
        return self.error_code.rsplit(".", 1)[-1]


def error_code(kind: str, namespace: str = ERROR_NAMESPACE) -> str:
    return f"error.{namespace}.{kind}"


def is_not_found(failure: BaseException) -> bool:
    """True if the failure is the store's "no matching row" signal."""
    return isinstance(failure, NoResultFound)


def classify_error(failure: BaseException, namespace: str = ERROR_NAMESPACE) -> MessageError:
    """
    Map a repository failure to a MessageError.

    "No matching row" becomes message-not-found / 404, anything else
    becomes unexpected-error / 500. The result depends only on the kind of
    failure, never on its message.
    """
    if is_not_found(failure):
        return MessageError(
            error_code=error_code(MESSAGE_NOT_FOUND, namespace),
            cause=failure,
            status_code=status.HTTP_404_NOT_FOUND,
        )
    return MessageError(
        error_code=error_code(UNEXPECTED_ERROR, namespace),
        cause=failure,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
