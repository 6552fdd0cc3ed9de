"""
Message service.

Orchestrates the repository calls for the four message operations. Every
repository failure is logged through the request's bound logger and raised
again as a classified MessageError.
"""

from datetime import datetime, timezone
from typing import Optional

from app.context import RequestContext
from app.errors import MessageError, classify_error
from app.metrics import record_message_operation
from app.models import Message, MessageStatus
from app.storage import MessageRepository


class MessageService:
    """Message operations on top of an injected MessageRepository."""

    def __init__(self, repository: MessageRepository):
        self.repository = repository

    def _fail(self, ctx: RequestContext, operation: str, description: str, failure: Exception) -> MessageError:
        ctx.logger.error(f"{operation}.error: {description}: {failure}", exc_info=failure)
        error = classify_error(failure)
        record_message_operation(operation, error.kind)
        return error

    def save_message(self, ctx: RequestContext, text: Optional[str]) -> Message:
        """Persist a new message. The id is assigned by the store, status is CREATED."""
        ctx.logger.info("save_message.start")

        message = Message(id=None, text=text or "", status=MessageStatus.CREATED)
        try:
            result = self.repository.save(message)
        except Exception as e:
            raise self._fail(ctx, "save_message", "error saving message", e) from e

        record_message_operation("save_message", "ok")
        ctx.logger.info("save_message.end")
        return result

    def get_message_by_id(self, ctx: RequestContext, message_id: int) -> Message:
        ctx.logger.info("get_message_by_id.start")

        try:
            result = self.repository.get(message_id)
        except Exception as e:
            raise self._fail(ctx, "get_message_by_id", f"error getting message with id = {message_id}", e) from e

        record_message_operation("get_message_by_id", "ok")
        ctx.logger.info("get_message_by_id.end")
        return result

    def update_message_by_id(self, ctx: RequestContext, message_id: int, text: Optional[str]) -> Message:
        """
        Replace the text of a message.

        An empty or missing text leaves the message untouched, including its
        update timestamp.
        """
        ctx.logger.info("update_message_by_id.start")

        try:
            original = self.repository.get(message_id)
        except Exception as e:
            raise self._fail(ctx, "update_message_by_id", f"error getting message with id = {message_id}", e) from e

        if text:
            original.text = text
            original.updated_at = datetime.now(timezone.utc)

        try:
            result = self.repository.update(original)
        except Exception as e:
            raise self._fail(ctx, "update_message_by_id", f"error updating message with id = {message_id}", e) from e

        record_message_operation("update_message_by_id", "ok")
        ctx.logger.info("update_message_by_id.end")
        return result

    def delete_message_by_id(self, ctx: RequestContext, message_id: int) -> None:
        """Soft delete: the message is kept with status DELETED."""
        ctx.logger.info("delete_message_by_id.start")

        try:
            original = self.repository.get(message_id)
        except Exception as e:
            raise self._fail(ctx, "delete_message_by_id", f"error getting message with id = {message_id}", e) from e

        original.status = MessageStatus.DELETED
        original.updated_at = datetime.now(timezone.utc)

        try:
            self.repository.update(original)
        except Exception as e:
            raise self._fail(ctx, "delete_message_by_id", f"error deleting message with id = {message_id}", e) from e

        record_message_operation("delete_message_by_id", "ok")
        ctx.logger.info("delete_message_by_id.end")
