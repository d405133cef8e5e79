"""Shared API dependencies for sessions, the orchestrator and busy guards."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from botcipher.services.ledger import get_ledger_client
from botcipher.services.orchestrator import MessageOrchestrator
from botcipher.services.relayer import get_relayer_client
from botcipher.services.session import WalletSession


class OperationGuard:
    """Tracks in-flight operations so one actor cannot start the same one twice."""

    def __init__(self) -> None:
        self._busy: set[tuple[str, str]] = set()

    def is_busy(self, operation: str, actor: str) -> bool:
        return (operation, actor.lower()) in self._busy

    @asynccontextmanager
    async def claim(self, operation: str, actor: str | None) -> AsyncIterator[None]:
        """Hold the busy flag for ``operation`` while the block runs.

        Raises:
            HTTPException: 409 if the actor already runs this operation
        """
        key = (operation, (actor or "").lower())
        if key in self._busy:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"A {operation} request is already in progress",
            )
        self._busy.add(key)
        try:
            yield
        finally:
            self._busy.discard(key)


class _OrchestratorSingleton:
    """Singleton wrapper for MessageOrchestrator and its guard."""

    _instance: MessageOrchestrator | None = None
    _guard: OperationGuard | None = None

    @classmethod
    def get_instance(cls) -> MessageOrchestrator:
        """Get or create the singleton orchestrator wired to the remote gateways."""
        if cls._instance is None:
            relayer = get_relayer_client()
            cls._instance = MessageOrchestrator(get_ledger_client(), relayer, relayer)
        return cls._instance

    @classmethod
    def get_guard(cls) -> OperationGuard:
        if cls._guard is None:
            cls._guard = OperationGuard()
        return cls._guard


def get_orchestrator() -> MessageOrchestrator:
    """Return the shared message orchestrator."""
    return _OrchestratorSingleton.get_instance()


def get_operation_guard() -> OperationGuard:
    """Return the shared busy guard."""
    return _OrchestratorSingleton.get_guard()


def get_wallet_session(
    x_wallet_address: Annotated[str | None, Header()] = None,
) -> WalletSession:
    """Build the wallet session from the ``X-Wallet-Address`` header."""
    identity = x_wallet_address.strip() if x_wallet_address else None
    return WalletSession.for_identity(identity)


OrchestratorDep = Annotated[MessageOrchestrator, Depends(get_orchestrator)]
GuardDep = Annotated[OperationGuard, Depends(get_operation_guard)]
SessionDep = Annotated[WalletSession, Depends(get_wallet_session)]
