"""Application settings and configuration.

This module defines all configuration options for the BotCipher client.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="BotCipher", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")

    # Target contract holding the encrypted chat records
    contract_address: str = Field(
        default="0x0000000000000000000000000000000000000000",
        alias="BOTCIPHER_CONTRACT_ADDRESS",
    )

    # Ledger gateway (JSON-RPC) settings
    ledger_rpc_url: str | None = Field(default=None, alias="BOTCIPHER_LEDGER_RPC_URL")
    ledger_http_timeout_seconds: float = Field(
        default=10.0,
        alias="BOTCIPHER_LEDGER_HTTP_TIMEOUT_SECONDS",
    )
    ledger_receipt_poll_interval_seconds: float = Field(
        default=1.0,
        alias="BOTCIPHER_LEDGER_RECEIPT_POLL_INTERVAL_SECONDS",
    )
    ledger_receipt_timeout_seconds: float = Field(
        default=120.0,
        alias="BOTCIPHER_LEDGER_RECEIPT_TIMEOUT_SECONDS",
    )

    # Encryption / decryption relayer settings
    relayer_base_url: str | None = Field(default=None, alias="BOTCIPHER_RELAYER_URL")
    relayer_http_timeout_seconds: float = Field(
        default=30.0,
        alias="BOTCIPHER_RELAYER_HTTP_TIMEOUT_SECONDS",
    )

    # Bearer auth shared by both gateways
    gateway_instance_id: str = Field(default="botcipher-local", alias="BOTCIPHER_INSTANCE_ID")
    gateway_shared_secret: str | None = Field(default=None, alias="BOTCIPHER_GATEWAY_SECRET")
    gateway_audience: str = Field(default="botcipher-gateway", alias="BOTCIPHER_GATEWAY_AUD")
    gateway_token_ttl_seconds: int = Field(default=300, alias="BOTCIPHER_GATEWAY_TOKEN_TTL")

    # Transaction status auto-dismiss timing
    status_success_clear_seconds: float = Field(default=2.0, alias="STATUS_SUCCESS_CLEAR_SECONDS")
    status_error_clear_seconds: float = Field(default=3.0, alias="STATUS_ERROR_CLEAR_SECONDS")

    # Message creation
    bot_response_delay_seconds: float = Field(default=1.0, alias="BOT_RESPONSE_DELAY_SECONDS")
    message_id_prefix: str = Field(default="msg", alias="MESSAGE_ID_PREFIX")
    bot_id_prefix: str = Field(default="bot", alias="BOT_ID_PREFIX")
    message_label: str = Field(default="Encrypted Chat Message", alias="MESSAGE_LABEL")
    bot_label: str = Field(default="AI Bot Response", alias="BOT_LABEL")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def ledger_enabled(self) -> bool:
        """Return True when a ledger gateway URL is configured."""
        return bool(self.ledger_rpc_url)

    @property
    def relayer_enabled(self) -> bool:
        """Return True when an encryption relayer URL is configured."""
        return bool(self.relayer_base_url)


settings = Settings()
