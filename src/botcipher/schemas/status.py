# src/botcipher/schemas/status.py
"""Transaction status schemas."""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class StatusKind(str, Enum):
    """Kinds of transaction status notifications."""

    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class TransactionStatus(BaseModel):
    """The single notification slot shown to the presentation layer."""

    visible: bool = False
    status: StatusKind = StatusKind.PENDING
    message: str = ""

    model_config = ConfigDict(frozen=True, use_enum_values=False)
