"""
SQLAlchemy ORM models for database tables.

This module contains database table definitions using SQLAlchemy.
For Pydantic request/response schemas, see schemas.py.
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum, Integer, Text

from app.storage import Base


class MessageStatus(str, enum.Enum):
    CREATED = "CREATED"
    DELETED = "DELETED"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Message(Base):
    """
    SQLAlchemy model for stored messages.

    Table: message
    Primary Key: id (assigned by the database)

    Messages are never removed; deletion sets status to DELETED.
    created_at / updated_at are not exposed to clients.
    """
    __tablename__ = "message"

    id = Column(Integer, primary_key=True, autoincrement=True)
    text = Column(Text, nullable=False, default="")
    status = Column(
        Enum(MessageStatus, name="message_status", native_enum=False, length=16),
        nullable=False,
        default=MessageStatus.CREATED,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self) -> str:
        return f"Message(id={self.id!r}, text={self.text!r}, status={self.status!r})"
