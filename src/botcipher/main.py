# src/botcipher/main.py
"""Main entry point for the BotCipher HTTP surface."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from botcipher.api.v1 import messages_router, status_router, system_router
from botcipher.api.v1.dependencies import get_orchestrator
from botcipher.core.settings import settings
from botcipher.services.ledger import get_ledger_client
from botcipher.services.relayer import get_relayer_client

app = FastAPI(
    title="BotCipher API",
    description="Encrypted chat with an on-chain FHE message store",
    version=settings.app_version,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

app.include_router(messages_router, prefix="/api/v1")
app.include_router(status_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await get_orchestrator().wait_for_background()
    await get_ledger_client().close()
    await get_relayer_client().close()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("botcipher.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
