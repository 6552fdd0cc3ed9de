"""
Pydantic schemas for request/response validation.

This module contains:
- Request model for message create/update bodies
- Response model for a single message
"""

from typing import Optional

from pydantic import BaseModel, Field

from app.models import MessageStatus


# =============================================================================
# Pydantic Request Models
# =============================================================================

class MessageRequest(BaseModel):
    """
    Body of POST /message and PUT /message/{id}.

    Only `text` is writable; `id` and `status` sent by a client are ignored.
    On update an absent or empty text leaves the stored text unchanged.
    """
    text: Optional[str] = Field(None, description="Message text content")

    model_config = {
        "extra": "ignore",
        "json_schema_extra": {
            "examples": [{"text": "Hello"}]
        }
    }


# =============================================================================
# Pydantic Response Models
# =============================================================================

class MessageResponse(BaseModel):
    """Response model for a single message. Timestamps are not exposed."""
    id: int = Field(..., description="Server-assigned message identifier")
    text: str = Field(..., description="Message content")
    status: MessageStatus = Field(..., description="CREATED or DELETED")

    model_config = {
        "from_attributes": True,  # Allow creating from ORM objects
    }
