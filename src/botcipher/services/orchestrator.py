"""Encrypted message lifecycle orchestration.

This module provides the MessageOrchestrator class that drives every
user-facing operation against the ledger:

- Message creation: encrypt, submit, await finality, schedule a bot reply
- Decryption: short-circuit already disclosed records, otherwise run the
  reveal protocol and publish the disclosed value on-chain
- Repository refreshes and availability checks

Every outcome is reported through the transaction status channel; no
remote failure propagates to the caller.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Callable, Coroutine
from typing import Any

from botcipher.core.errors import AlreadyVerifiedRace, LoadError, NotConnectedError
from botcipher.core.settings import settings
from botcipher.schemas.message import MessageSnapshot
from botcipher.services.ledger import FinalityReceipt, LedgerStore
from botcipher.services.relayer import DecryptionVerifier, EncryptionClient
from botcipher.services.repository import MessageRepository
from botcipher.services.session import WalletSession
from botcipher.services.status import TransactionStatusChannel

logger = logging.getLogger(__name__)

BOT_RESPONSES: tuple[str, ...] = (
    "I understand your encrypted input!",
    "Processing your secure message...",
    "FHE computation completed successfully",
    "Your privacy is protected with homomorphic encryption",
    "AI response generated from encrypted data",
)

MESSAGE_TYPE_DISCRIMINANT = 0
USER_REJECTED_MARKER = "user rejected transaction"
ALREADY_VERIFIED_MARKER = "Data already verified"

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_value(raw_value: object) -> int:
    """Parse user input into a non-negative integer.

    Leading digits are honoured (``"12abc"`` is 12). Anything else,
    including negative numbers, becomes 0.
    """
    if isinstance(raw_value, bool):
        return 0
    if isinstance(raw_value, int):
        return max(raw_value, 0)
    match = _LEADING_INT.match(str(raw_value if raw_value is not None else ""))
    if not match:
        return 0
    return max(int(match.group(1)), 0)


def bot_response(value: int) -> str:
    """Return the canned reply for a message carrying ``value``."""
    return BOT_RESPONSES[(value + 1) % len(BOT_RESPONSES)]


class MessageOrchestrator:
    """Drives message creation and decryption across the three trust boundaries."""

    def __init__(
        self,
        ledger: LedgerStore,
        encryption: EncryptionClient,
        verifier: DecryptionVerifier,
        *,
        repository: MessageRepository | None = None,
        status: TransactionStatusChannel | None = None,
        contract_address: str | None = None,
        bot_delay_seconds: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ledger = ledger
        self.encryption = encryption
        self.verifier = verifier
        self.repository = repository or MessageRepository(ledger)
        self.status = status or TransactionStatusChannel()
        self.contract_address = contract_address or settings.contract_address
        self._bot_delay = (
            settings.bot_response_delay_seconds
            if bot_delay_seconds is None
            else bot_delay_seconds
        )
        self._clock = clock
        self._background: set[asyncio.Task[None]] = set()

    def _new_id(self, prefix: str) -> str:
        return f"{prefix}-{int(self._clock() * 1000)}"

    # --- Session-level helpers -------------------------------------------------------
    async def initialize_encryption(self, session: WalletSession) -> bool:
        """Initialize the encryption engine once a wallet is connected."""
        if not session.is_connected or self.encryption.is_initialized:
            return self.encryption.is_initialized

        try:
            await self.encryption.initialize()
        except Exception as exc:
            logger.error("Encryption engine initialization failed: %s", exc, exc_info=True)
            self.status.error("FHE initialization failed")
            return False
        return True

    async def refresh(self, session: WalletSession) -> MessageSnapshot | None:
        """Rebuild the repository view, reporting load failures."""
        if not session.is_connected:
            return None

        try:
            return await self.repository.refresh(session.active_identity)
        except LoadError as exc:
            logger.warning("Message refresh failed: %s", exc)
            self.status.error("Failed to load data")
            return None

    async def check_availability(self) -> bool:
        """Ask the ledger whether the FHE system is ready."""
        try:
            available = await self.ledger.is_available()
        except Exception as exc:
            logger.warning("Availability check failed: %s", exc)
            self.status.error("Availability check failed")
            return False

        if available:
            self.status.success("FHE System is available and ready!")
        return bool(available)

    # --- Message creation ------------------------------------------------------------
    async def create_message(
        self, content: str, raw_value: object, session: WalletSession
    ) -> str | None:
        """Encrypt ``raw_value`` and submit it with ``content`` as a new message.

        Args:
            content: Human-readable text stored alongside the ciphertext
            raw_value: User input for the encrypted integer
            session: Current wallet session

        Returns:
            The new message id once its transaction settled, otherwise None
        """
        try:
            identity = session.require_identity()
        except NotConnectedError as exc:
            self.status.error(str(exc))
            return None

        self.status.pending("Encrypting message with FHE...")

        try:
            value = parse_value(raw_value)
            message_id = self._new_id(settings.message_id_prefix)

            encrypted = await self.encryption.encrypt(self.contract_address, identity, value)

            tx = await self.ledger.create_record(
                message_id,
                content,
                encrypted.ciphertext,
                encrypted.proof,
                value,
                MESSAGE_TYPE_DISCRIMINANT,
                settings.message_label,
            )

            self.status.pending("Waiting for transaction confirmation...")
            await tx.wait()
        except Exception as exc:
            text = str(exc) or "Unknown error"
            if USER_REJECTED_MARKER in text:
                self.status.error("Transaction rejected by user")
            else:
                self.status.error(f"Submission failed: {text}")
            return None

        logger.info("Message %s settled", message_id)
        self.status.success("Message encrypted successfully!")
        await self.refresh(session)

        self._spawn(self._bot_response_later(message_id, value, session))
        return message_id

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def wait_for_background(self) -> None:
        """Wait until every scheduled bot response has finished."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def _bot_response_later(
        self, original_id: str, user_value: int, session: WalletSession
    ) -> None:
        await asyncio.sleep(self._bot_delay)
        try:
            await self._add_bot_response(original_id, user_value, session)
        except Exception as exc:
            logger.warning("Failed to add bot response to %s: %s", original_id, exc)

    async def _add_bot_response(
        self, original_id: str, user_value: int, session: WalletSession
    ) -> None:
        if not session.is_connected or not session.active_identity:
            return

        reply = bot_response(user_value)
        bot_value = user_value + 1
        bot_id = self._new_id(settings.bot_id_prefix)

        encrypted = await self.encryption.encrypt(
            self.contract_address, session.active_identity, bot_value
        )
        tx = await self.ledger.create_record(
            bot_id,
            reply,
            encrypted.ciphertext,
            encrypted.proof,
            bot_value,
            MESSAGE_TYPE_DISCRIMINANT,
            settings.bot_label,
        )
        await tx.wait()
        logger.info("Bot response %s settled for %s", bot_id, original_id)
        await self.repository.refresh(session.active_identity)

    # --- Decryption ------------------------------------------------------------------
    async def decrypt_message(self, message_id: str, session: WalletSession) -> int | None:
        """Reveal the plaintext behind ``message_id``.

        Already disclosed records are answered from the ledger without
        running the reveal protocol, so repeated calls are safe.

        Returns:
            The disclosed integer, or None when nothing new was disclosed
        """
        try:
            session.require_identity()
        except NotConnectedError as exc:
            self.status.error(str(exc))
            return None

        try:
            record = await self.ledger.get_record(message_id)
            if record.is_verified:
                self.status.success("Data already verified on-chain")
                return int(record.decrypted_value or 0)

            handle = await self.ledger.get_ciphertext_handle(message_id)

            async def submit_disclosure(encoded: bytes, proof: bytes) -> FinalityReceipt:
                self.status.pending("Verifying decryption on-chain...")
                tx = await self.ledger.submit_disclosure(message_id, encoded, proof)
                return await tx.wait()

            result = await self.verifier.verify(
                [handle], self.contract_address, submit_disclosure
            )
            clear_value = int(result.clear_values[handle])
        except Exception as exc:
            text = str(exc) or "Unknown error"
            if isinstance(exc, AlreadyVerifiedRace) or ALREADY_VERIFIED_MARKER in text:
                logger.info("Message %s was verified concurrently", message_id)
                self.status.success("Data is already verified on-chain")
                await self.refresh(session)
                return None
            self.status.error(f"Decryption failed: {text}")
            return None

        await self.refresh(session)
        self.status.success("Message decrypted successfully!")
        return clear_value
