"""Exception taxonomy for the encrypted message lifecycle."""

from __future__ import annotations


class BotCipherError(RuntimeError):
    """Base exception raised for message lifecycle failures."""


class NotConnectedError(BotCipherError):
    """Raised when no wallet session or identity is available."""


class EncryptionFailure(BotCipherError):
    """Raised when the encryption client cannot produce a ciphertext.

    Malformed identities and an uninitialized encryption context both end
    up here, with distinct messages.
    """


class SubmissionFailure(BotCipherError):
    """Raised when a ledger write is rejected, reverted or never settles.

    User-rejected signing prompts are reported through this class too; the
    orchestrator distinguishes them by the error text.
    """


class AlreadyVerifiedRace(SubmissionFailure):
    """Raised when a disclosure targets a record another actor already verified."""


class VerificationFailure(BotCipherError):
    """Raised when the decryption verifier fails or its disclosure is rejected."""


class LoadError(BotCipherError):
    """Raised when the repository cannot rebuild its view from the ledger."""


class ServiceUnavailableError(BotCipherError):
    """Raised when a remote gateway cannot be reached or is disabled."""


class LedgerUnavailableError(ServiceUnavailableError):
    """Raised when the ledger gateway cannot be reached or is disabled."""


class LedgerQueryError(BotCipherError):
    """Raised when the ledger answers a read with an error."""


class GatewayRejectedError(BotCipherError):
    """Raised when a reachable gateway refuses a request with a 4xx answer.

    ``payload`` holds the decoded JSON body when the gateway sent one.
    """

    def __init__(self, message: str, *, status_code: int, payload: object = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload
