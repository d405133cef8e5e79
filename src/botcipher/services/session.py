"""Wallet session boundary."""

from __future__ import annotations

from dataclasses import dataclass

from botcipher.core.errors import NotConnectedError


@dataclass(frozen=True)
class WalletSession:
    """Snapshot of the connected wallet, as seen by the core."""

    active_identity: str | None = None
    is_connected: bool = False

    @classmethod
    def for_identity(cls, identity: str | None) -> WalletSession:
        """Return a connected session for ``identity``, or a disconnected one."""
        if not identity:
            return cls()
        return cls(active_identity=identity, is_connected=True)

    def require_identity(self) -> str:
        """Return the active identity or raise :class:`NotConnectedError`."""
        if not self.is_connected or not self.active_identity:
            raise NotConnectedError("Please connect wallet first")
        return self.active_identity
