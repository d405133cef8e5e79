"""Encryption client and decryption verifier backed by an FHE relayer.

The relayer holds the network's public encryption key material and runs
the public decryption protocol. Both boundaries are expressed as protocols
so the orchestrator can be driven by any engine.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from botcipher.core.errors import (
    EncryptionFailure,
    GatewayRejectedError,
    ServiceUnavailableError,
    VerificationFailure,
)
from botcipher.core.settings import settings
from botcipher.services.ledger import FinalityReceipt
from botcipher.services.transport import GatewayConfig, GatewayTransport

logger = logging.getLogger(__name__)

_IDENTITY_PATTERN = re.compile(r"^0x[0-9a-fA-F]+$")

DisclosureSubmitter = Callable[[bytes, bytes], Awaitable[FinalityReceipt]]

# Unreachable, refused, or answered with a body of the wrong shape.
_RELAYER_FAULTS = (ServiceUnavailableError, GatewayRejectedError, ValueError, AttributeError)


@dataclass(frozen=True)
class EncryptedInput:
    """Ciphertext payload plus the proof that it is well formed."""

    ciphertext: bytes
    proof: bytes


@dataclass(frozen=True)
class DecryptionResult:
    """Outcome of a completed reveal protocol."""

    clear_values: Mapping[str, int]
    encoded_clear_values: bytes = b""
    proof: bytes = b""
    receipt: FinalityReceipt | None = field(default=None, compare=False)


class EncryptionClient(Protocol):
    """Client-side encryption of plaintext integers."""

    @property
    def is_initialized(self) -> bool: ...

    async def initialize(self) -> None: ...

    async def encrypt(self, contract_address: str, identity: str, value: int) -> EncryptedInput: ...


class DecryptionVerifier(Protocol):
    """Interactive reveal protocol for on-chain ciphertext handles."""

    async def verify(
        self,
        handles: Sequence[str],
        contract_address: str,
        submit_disclosure: DisclosureSubmitter,
    ) -> DecryptionResult: ...


def validate_identity(identity: str) -> str:
    """Return the identity unchanged if it looks like an account address."""
    if not identity or not _IDENTITY_PATTERN.match(identity):
        raise EncryptionFailure(f"Invalid identity: {identity!r}")
    return identity


def _decode_hex(data: str | None) -> bytes:
    if not data:
        return b""
    cleaned = data[2:] if data.startswith("0x") else data
    try:
        return bytes.fromhex(cleaned)
    except ValueError as err:
        raise ValueError(f"Invalid hex encoding: {err}") from err


def load_relayer_config() -> GatewayConfig:
    """Build the relayer configuration from global settings."""

    return GatewayConfig(
        base_url=settings.relayer_base_url,
        timeout_seconds=float(settings.relayer_http_timeout_seconds),
        instance_id=settings.gateway_instance_id,
        shared_secret=settings.gateway_shared_secret,
        audience=settings.gateway_audience,
        token_ttl_seconds=settings.gateway_token_ttl_seconds,
    )


class RelayerClient:
    """HTTP relayer implementing both :class:`EncryptionClient` and
    :class:`DecryptionVerifier`."""

    def __init__(self, transport: GatewayTransport | None = None) -> None:
        self.transport = transport or GatewayTransport(
            load_relayer_config(),
            name="relayer",
        )
        self._public_key_id: str | None = None

    @property
    def is_initialized(self) -> bool:
        return self._public_key_id is not None

    async def initialize(self) -> None:
        """Fetch the network public key reference used for encryption."""
        if self.is_initialized:
            return

        body = await self.transport.send("GET", "/v1/keyurl")
        key_id = body.get("publicKeyId") if isinstance(body, dict) else None
        if not key_id:
            raise ServiceUnavailableError("Relayer did not return a public key id")
        self._public_key_id = str(key_id)
        logger.info("Encryption context initialized with key %s", self._public_key_id)

    async def encrypt(self, contract_address: str, identity: str, value: int) -> EncryptedInput:
        validate_identity(identity)
        if not self.is_initialized:
            raise EncryptionFailure("Encryption context is not initialized")
        if value < 0:
            raise EncryptionFailure(f"Cannot encrypt negative value {value}")

        try:
            body = await self.transport.send(
                "POST",
                "/v1/input-proof",
                {
                    "contractAddress": contract_address,
                    "userAddress": identity,
                    "value": value,
                    "publicKeyId": self._public_key_id,
                },
            )
            return EncryptedInput(
                ciphertext=_decode_hex(body.get("ciphertext")),
                proof=_decode_hex(body.get("proof")),
            )
        except _RELAYER_FAULTS as exc:
            raise EncryptionFailure(f"Encryption failed: {exc}") from exc

    async def verify(
        self,
        handles: Sequence[str],
        contract_address: str,
        submit_disclosure: DisclosureSubmitter,
    ) -> DecryptionResult:
        try:
            body = await self.transport.send(
                "POST",
                "/v1/public-decrypt",
                {"handles": list(handles), "contractAddress": contract_address},
            )
            clear_values = {
                str(handle): int(value)
                for handle, value in (body.get("clearValues") or {}).items()
            }
            encoded = _decode_hex(body.get("abiEncodedClearValues"))
            proof = _decode_hex(body.get("decryptionProof"))
        except _RELAYER_FAULTS + (TypeError,) as exc:
            raise VerificationFailure(f"Public decryption failed: {exc}") from exc

        missing = [handle for handle in handles if handle not in clear_values]
        if missing:
            raise VerificationFailure(f"Relayer returned no clear value for {missing}")

        receipt = await submit_disclosure(encoded, proof)
        return DecryptionResult(
            clear_values=clear_values,
            encoded_clear_values=encoded,
            proof=proof,
            receipt=receipt,
        )

    async def close(self) -> None:
        await self.transport.close()


class _RelayerClientSingleton:
    """Singleton wrapper for RelayerClient."""

    _instance: RelayerClient | None = None

    @classmethod
    def get_instance(cls) -> RelayerClient:
        """Get or create the singleton RelayerClient instance."""
        if cls._instance is None:
            cls._instance = RelayerClient()
        return cls._instance


def get_relayer_client() -> RelayerClient:
    """Return a singleton relayer client instance."""
    return _RelayerClientSingleton.get_instance()
