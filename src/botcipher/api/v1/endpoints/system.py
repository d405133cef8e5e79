"""System, status and health endpoints for the BotCipher API."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from botcipher.api.v1.dependencies import OrchestratorDep
from botcipher.core.settings import settings
from botcipher.schemas.status import TransactionStatus
from botcipher.services.ledger import get_ledger_client
from botcipher.services.relayer import get_relayer_client

router = APIRouter(prefix="/system", tags=["system"])
status_router = APIRouter(prefix="/status", tags=["status"])


@status_router.get("/", response_model=TransactionStatus)
async def get_transaction_status(orchestrator: OrchestratorDep) -> TransactionStatus:
    """Return the current transaction status slot."""
    return orchestrator.status.current


@router.get("/config")
async def get_public_config() -> dict[str, object]:
    """Return a sanitized snapshot of public runtime configuration.

    Excludes secrets and gateway URLs.
    """
    return {
        "app": {"name": settings.app_name, "version": settings.app_version},
        "contract_address": settings.contract_address,
        "status": {
            "success_clear_seconds": settings.status_success_clear_seconds,
            "error_clear_seconds": settings.status_error_clear_seconds,
        },
        "bot_response_delay_seconds": settings.bot_response_delay_seconds,
        "ledger_enabled": settings.ledger_enabled,
        "relayer_enabled": settings.relayer_enabled,
    }


@router.get("/availability")
async def check_availability(orchestrator: OrchestratorDep) -> dict[str, bool]:
    """Ask the ledger whether the FHE system is ready."""
    return {"available": await orchestrator.check_availability()}


@router.get("/health")
async def gateway_health() -> dict[str, Any]:
    """Report health, breaker state and outcome counters for both gateways."""
    return {
        "ledger": await get_ledger_client().transport.health(),
        "relayer": await get_relayer_client().transport.health(),
    }
