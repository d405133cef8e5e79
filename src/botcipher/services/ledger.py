"""Ledger store boundary and its JSON-RPC gateway adapter.

The ledger keeps one record per chat message. Reads are plain queries;
writes return a pending transaction whose ``wait()`` resolves to a finality
receipt once the ledger has committed it.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from botcipher.core.errors import (
    AlreadyVerifiedRace,
    GatewayRejectedError,
    LedgerQueryError,
    LedgerUnavailableError,
    SubmissionFailure,
)
from botcipher.core.settings import settings
from botcipher.services.transport import GatewayConfig, GatewayTransport

logger = logging.getLogger(__name__)

ALREADY_VERIFIED_MARKER = "already verified"
TX_STATUS_SUCCESS = 1


@dataclass(frozen=True)
class LedgerRecord:
    """Raw record as stored on the ledger."""

    name: str
    timestamp: int
    creator: str
    is_verified: bool
    decrypted_value: int


@dataclass(frozen=True)
class FinalityReceipt:
    """Confirmation that a transaction was committed."""

    tx_hash: str
    block_number: int | None = None
    status: int = TX_STATUS_SUCCESS


class PendingTransaction(Protocol):
    """A submitted write that has not necessarily settled yet."""

    tx_hash: str

    async def wait(self) -> FinalityReceipt: ...


class LedgerStore(Protocol):
    """Read and write operations the core needs from the ledger."""

    async def list_identifiers(self) -> Sequence[str]: ...

    async def get_record(self, message_id: str) -> LedgerRecord: ...

    async def get_ciphertext_handle(self, message_id: str) -> str: ...

    async def is_available(self) -> bool: ...

    async def create_record(
        self,
        message_id: str,
        name: str,
        ciphertext: bytes,
        proof: bytes,
        clear_value: int,
        type_discriminant: int,
        label: str,
    ) -> PendingTransaction: ...

    async def submit_disclosure(
        self,
        message_id: str,
        encoded_clear_values: bytes,
        proof: bytes,
    ) -> PendingTransaction: ...


def extract_error(payload: dict[str, Any] | None, fallback: str = "unknown error") -> str:
    """Return a readable message from a JSON-RPC error object."""
    if not payload:
        return fallback
    err = payload.get("error", fallback)
    if isinstance(err, dict):
        message = err.get("message") or fallback
        data = err.get("data")
        if isinstance(data, str) and data and data not in message:
            return f"{message}: {data}"
        return str(message)
    return str(err)


def _hex(data: bytes) -> str:
    return "0x" + data.hex()


def load_ledger_config() -> GatewayConfig:
    """Build the ledger gateway configuration from global settings."""

    return GatewayConfig(
        base_url=settings.ledger_rpc_url,
        timeout_seconds=float(settings.ledger_http_timeout_seconds),
        instance_id=settings.gateway_instance_id,
        shared_secret=settings.gateway_shared_secret,
        audience=settings.gateway_audience,
        token_ttl_seconds=settings.gateway_token_ttl_seconds,
    )


class RpcPendingTransaction:
    """Pending transaction that polls the gateway for its receipt."""

    def __init__(
        self,
        client: LedgerClient,
        tx_hash: str,
        *,
        poll_interval: float,
        timeout: float,
    ) -> None:
        self.tx_hash = tx_hash
        self._client = client
        self._poll_interval = poll_interval
        self._timeout = timeout

    async def wait(self) -> FinalityReceipt:
        deadline = time.monotonic() + self._timeout
        while True:
            receipt = await self._client.call("chat_getTransactionReceipt", [self.tx_hash])
            if receipt:
                status = int(receipt.get("status", TX_STATUS_SUCCESS))
                if status != TX_STATUS_SUCCESS:
                    reason = receipt.get("revertReason") or "transaction reverted"
                    raise _submission_error(str(reason))
                block = receipt.get("blockNumber")
                logger.info("Transaction %s settled in block %s", self.tx_hash, block)
                return FinalityReceipt(
                    tx_hash=self.tx_hash,
                    block_number=int(block) if block is not None else None,
                    status=status,
                )
            if time.monotonic() >= deadline:
                raise SubmissionFailure(f"Timed out waiting for transaction {self.tx_hash}")
            await asyncio.sleep(self._poll_interval)


def _submission_error(message: str) -> SubmissionFailure:
    if ALREADY_VERIFIED_MARKER in message.lower():
        return AlreadyVerifiedRace(message)
    return SubmissionFailure(message)


class LedgerClient:
    """JSON-RPC adapter implementing :class:`LedgerStore` over a gateway."""

    def __init__(
        self,
        contract_address: str | None = None,
        *,
        transport: GatewayTransport | None = None,
        poll_interval: float | None = None,
        receipt_timeout: float | None = None,
    ) -> None:
        self.contract_address = contract_address or settings.contract_address
        self.transport = transport or GatewayTransport(
            load_ledger_config(),
            name="ledger gateway",
            error_cls=LedgerUnavailableError,
        )
        self._poll_interval = (
            settings.ledger_receipt_poll_interval_seconds
            if poll_interval is None
            else poll_interval
        )
        self._receipt_timeout = (
            settings.ledger_receipt_timeout_seconds
            if receipt_timeout is None
            else receipt_timeout
        )
        self._ids = itertools.count(1)

    async def call(self, method: str, params: list[Any]) -> Any:
        """Invoke one JSON-RPC method and return its result."""
        envelope = {"jsonrpc": "2.0", "method": method, "params": params, "id": next(self._ids)}
        try:
            payload = await self.transport.send("POST", "/", envelope)
        except GatewayRejectedError as exc:
            body = exc.payload if isinstance(exc.payload, dict) else None
            raise LedgerQueryError(extract_error(body, fallback=str(exc))) from exc

        if not isinstance(payload, dict):
            raise LedgerQueryError(f"Invalid JSON-RPC response for {method}")
        if "error" in payload:
            raise LedgerQueryError(extract_error(payload))
        return payload.get("result")

    async def _send(self, method: str, params: list[Any]) -> RpcPendingTransaction:
        try:
            tx_hash = await self.call(method, params)
        except LedgerQueryError as exc:
            raise _submission_error(str(exc)) from exc
        logger.debug("Submitted %s as %s", method, tx_hash)
        return RpcPendingTransaction(
            self,
            str(tx_hash),
            poll_interval=self._poll_interval,
            timeout=self._receipt_timeout,
        )

    async def list_identifiers(self) -> list[str]:
        result = await self.call("chat_listMessageIds", [self.contract_address])
        return [str(item) for item in result or []]

    async def get_record(self, message_id: str) -> LedgerRecord:
        result = await self.call("chat_getMessage", [self.contract_address, message_id])
        if not result:
            raise LedgerQueryError(f"Message {message_id} not found")
        return LedgerRecord(
            name=str(result.get("name", "")),
            timestamp=int(result.get("timestamp", 0)),
            creator=str(result.get("creator", "")),
            is_verified=bool(result.get("isVerified", False)),
            decrypted_value=int(result.get("decryptedValue") or 0),
        )

    async def get_ciphertext_handle(self, message_id: str) -> str:
        result = await self.call("chat_getEncryptedValue", [self.contract_address, message_id])
        if not result:
            raise LedgerQueryError(f"No ciphertext handle for {message_id}")
        return str(result)

    async def is_available(self) -> bool:
        return bool(await self.call("chat_isAvailable", [self.contract_address]))

    async def create_record(
        self,
        message_id: str,
        name: str,
        ciphertext: bytes,
        proof: bytes,
        clear_value: int,
        type_discriminant: int,
        label: str,
    ) -> RpcPendingTransaction:
        return await self._send(
            "chat_createMessage",
            [
                self.contract_address,
                {
                    "id": message_id,
                    "name": name,
                    "ciphertext": _hex(ciphertext),
                    "proof": _hex(proof),
                    "clearValue": clear_value,
                    "typeDiscriminant": type_discriminant,
                    "label": label,
                },
            ],
        )

    async def submit_disclosure(
        self,
        message_id: str,
        encoded_clear_values: bytes,
        proof: bytes,
    ) -> RpcPendingTransaction:
        return await self._send(
            "chat_verifyDecryption",
            [
                self.contract_address,
                message_id,
                _hex(encoded_clear_values),
                _hex(proof),
            ],
        )

    async def close(self) -> None:
        await self.transport.close()


class _LedgerClientSingleton:
    """Singleton wrapper for LedgerClient."""

    _instance: LedgerClient | None = None

    @classmethod
    def get_instance(cls) -> LedgerClient:
        """Get or create the singleton LedgerClient instance."""
        if cls._instance is None:
            cls._instance = LedgerClient()
        return cls._instance


def get_ledger_client() -> LedgerClient:
    """Return a singleton ledger client instance."""
    return _LedgerClientSingleton.get_instance()
