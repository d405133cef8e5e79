# src/botcipher/schemas/message.py
"""Chat message Pydantic schemas."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    """Normalized view of one ledger record."""

    id: str
    content: str
    encrypted_value: int = 0
    timestamp: int
    is_user: bool
    is_verified: bool = False
    decrypted_value: int | None = None

    model_config = ConfigDict(frozen=True)


class ChatStats(BaseModel):
    """Aggregate statistics derived from the current message set."""

    total_messages: int = 0
    encrypted_messages: int = 0
    verified_messages: int = 0
    average_timestamp: float = 0.0

    model_config = ConfigDict(frozen=True)


class MessageSnapshot(BaseModel):
    """Messages and their statistics, published together."""

    messages: tuple[ChatMessage, ...] = ()
    stats: ChatStats = Field(default_factory=ChatStats)

    model_config = ConfigDict(frozen=True)


class MessageCreate(BaseModel):
    """Schema for composing a new encrypted message."""

    content: str = Field(..., description="Plain text shown alongside the encrypted value")
    # Any JSON value; the orchestrator coerces it.
    value: Any = Field(
        default="",
        description="Integer to encrypt; anything unparsable is sent as zero",
    )


class MessageCreated(BaseModel):
    """Schema returned after a message was submitted."""

    id: str | None


class DecryptedValue(BaseModel):
    """Schema returned after a decryption request."""

    id: str
    value: int | None
