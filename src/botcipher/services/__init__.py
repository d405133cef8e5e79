# src/botcipher/services/__init__.py
"""Business logic services for the BotCipher client."""

from .ledger import LedgerClient, LedgerRecord, LedgerStore
from .orchestrator import MessageOrchestrator
from .relayer import RelayerClient
from .repository import MessageRepository
from .session import WalletSession
from .status import TransactionStatusChannel

__all__ = [
    "LedgerClient",
    "LedgerRecord",
    "LedgerStore",
    "MessageOrchestrator",
    "MessageRepository",
    "RelayerClient",
    "TransactionStatusChannel",
    "WalletSession",
]
