# src/botcipher/api/v1/endpoints/messages.py
"""Encrypted chat message endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from botcipher.api.v1.dependencies import GuardDep, OrchestratorDep, SessionDep
from botcipher.schemas.message import (
    DecryptedValue,
    MessageCreate,
    MessageCreated,
    MessageSnapshot,
)

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("/", response_model=MessageSnapshot)
async def list_messages(
    orchestrator: OrchestratorDep,
    session: SessionDep,
) -> MessageSnapshot:
    """Return all messages and their statistics for the connected wallet."""
    if not session.is_connected:
        return MessageSnapshot()

    snapshot = await orchestrator.refresh(session)
    return snapshot if snapshot is not None else orchestrator.repository.snapshot


@router.post("/", response_model=MessageCreated)
async def create_message(
    message_data: MessageCreate,
    orchestrator: OrchestratorDep,
    session: SessionDep,
    guard: GuardDep,
) -> MessageCreated:
    """Encrypt and submit a message; progress is reported on the status channel."""
    async with guard.claim("create", session.active_identity):
        if session.is_connected and not await orchestrator.initialize_encryption(session):
            return MessageCreated(id=None)
        message_id = await orchestrator.create_message(
            message_data.content, message_data.value, session
        )
    return MessageCreated(id=message_id)


@router.post("/{message_id}/decrypt", response_model=DecryptedValue)
async def decrypt_message(
    message_id: str,
    orchestrator: OrchestratorDep,
    session: SessionDep,
    guard: GuardDep,
) -> DecryptedValue:
    """Reveal the integer behind a message, publishing the disclosure on-chain."""
    async with guard.claim("decrypt", session.active_identity):
        value = await orchestrator.decrypt_message(message_id, session)
    return DecryptedValue(id=message_id, value=value)
