# src/botcipher/schemas/__init__.py
"""Pydantic schemas for request/response validation."""

from .message import (
    ChatMessage,
    ChatStats,
    DecryptedValue,
    MessageCreate,
    MessageCreated,
    MessageSnapshot,
)
from .status import StatusKind, TransactionStatus

__all__ = [
    "ChatMessage",
    "ChatStats",
    "DecryptedValue",
    "MessageCreate",
    "MessageCreated",
    "MessageSnapshot",
    "StatusKind",
    "TransactionStatus",
]
