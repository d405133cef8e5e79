"""Tests for the relayer-backed encryption client and decryption verifier."""

import json

import httpx
import pytest

from botcipher.core.errors import AlreadyVerifiedRace, EncryptionFailure, VerificationFailure
from botcipher.services.ledger import FinalityReceipt
from botcipher.services.relayer import RelayerClient, validate_identity
from botcipher.services.transport import GatewayConfig, GatewayTransport

CONTRACT = "0xc0de"
IDENTITY = "0x00000000000000000000000000000000000000ab"


class Relayer:
    def __init__(self) -> None:
        self.requests: list[tuple[str, dict | None]] = []
        self.refuse_proofs = False
        self.decrypt_payload = {
            "clearValues": {"0xh1": "42"},
            "abiEncodedClearValues": "0x2a",
            "decryptionProof": "0xbeef",
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.url.path, body))
        if request.url.path == "/v1/keyurl":
            return httpx.Response(200, json={"publicKeyId": "key-1"})
        if request.url.path == "/v1/input-proof":
            if self.refuse_proofs:
                return httpx.Response(400, json={"message": "value out of range"})
            return httpx.Response(200, json={"ciphertext": "0x0a0b", "proof": "0x0c"})
        if request.url.path == "/v1/public-decrypt":
            return httpx.Response(200, json=self.decrypt_payload)
        return httpx.Response(404)


@pytest.fixture
def relayer():
    return Relayer()


@pytest.fixture
def client(relayer):
    return RelayerClient(
        GatewayTransport(
            GatewayConfig(base_url="http://relayer.test", timeout_seconds=1.0, instance_id="t"),
            name="relayer",
            transport=httpx.MockTransport(relayer),
        )
    )


def test_validate_identity():
    assert validate_identity(IDENTITY) == IDENTITY
    for bad in ("", "abc", "0x", "0xZZ"):
        with pytest.raises(EncryptionFailure):
            validate_identity(bad)


@pytest.mark.asyncio
async def test_encrypt_requires_initialization(client, relayer):
    with pytest.raises(EncryptionFailure, match="not initialized"):
        await client.encrypt(CONTRACT, IDENTITY, 5)
    assert relayer.requests == []


@pytest.mark.asyncio
async def test_encrypt_rejects_malformed_identity(client):
    await client.initialize()

    with pytest.raises(EncryptionFailure, match="Invalid identity"):
        await client.encrypt(CONTRACT, "alice", 5)


@pytest.mark.asyncio
async def test_encrypt_returns_ciphertext_and_proof(client, relayer):
    await client.initialize()
    await client.initialize()

    encrypted = await client.encrypt(CONTRACT, IDENTITY, 5)

    assert encrypted.ciphertext == b"\x0a\x0b"
    assert encrypted.proof == b"\x0c"
    paths = [path for path, _ in relayer.requests]
    assert paths == ["/v1/keyurl", "/v1/input-proof"]
    assert relayer.requests[1][1] == {
        "contractAddress": CONTRACT,
        "userAddress": IDENTITY,
        "value": 5,
        "publicKeyId": "key-1",
    }


@pytest.mark.asyncio
async def test_verify_submits_disclosure_and_returns_values(client):
    submitted = []

    async def submit(encoded: bytes, proof: bytes) -> FinalityReceipt:
        submitted.append((encoded, proof))
        return FinalityReceipt(tx_hash="0xtx")

    result = await client.verify(["0xh1"], CONTRACT, submit)

    assert result.clear_values == {"0xh1": 42}
    assert submitted == [(b"\x2a", b"\xbe\xef")]
    assert result.receipt == FinalityReceipt(tx_hash="0xtx")


@pytest.mark.asyncio
async def test_verify_missing_handle_fails_before_disclosure(client, relayer):
    relayer.decrypt_payload = {"clearValues": {}, "abiEncodedClearValues": "0x", "decryptionProof": "0x"}
    submit_calls = []

    async def submit(encoded: bytes, proof: bytes) -> FinalityReceipt:
        submit_calls.append(encoded)
        return FinalityReceipt(tx_hash="0xtx")

    with pytest.raises(VerificationFailure):
        await client.verify(["0xh1"], CONTRACT, submit)
    assert submit_calls == []


@pytest.mark.asyncio
async def test_verify_propagates_disclosure_race(client):
    async def submit(encoded: bytes, proof: bytes) -> FinalityReceipt:
        raise AlreadyVerifiedRace("Data already verified")

    with pytest.raises(AlreadyVerifiedRace):
        await client.verify(["0xh1"], CONTRACT, submit)


@pytest.mark.asyncio
async def test_refused_input_proof_is_an_encryption_failure(client, relayer):
    relayer.refuse_proofs = True
    await client.initialize()

    with pytest.raises(EncryptionFailure, match=r"rejected POST /v1/input-proof \(400\)") as exc_info:
        await client.encrypt(CONTRACT, IDENTITY, 5)

    assert exc_info.value.__cause__.payload == {"message": "value out of range"}
    assert not client.transport.breaker.tripped
    assert client.transport.stats.rejected == 1
