"""Configuration management using Pydantic Settings"""

from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Ledger / payment processor
    circle_api_key: str | None = None
    circle_api_base_url: str = "https://api-sandbox.circle.com"
    deposit_chain: str = "BASE"

    # Ramp provider
    cdp_api_key_name: str | None = None
    cdp_api_key_secret: str | None = None
    cdp_token_url: str = "https://api.developer.coinbase.com/onramp/v1/token"
    cdp_project_id: str | None = None  # appId for fallback (non-session) URLs
    app_url: str = "http://localhost:3000"
    onramp_redirect_url: str | None = None
    offramp_redirect_url: str | None = None
    # Extra origins (scheme://host) a client-supplied redirectUrl may point at, JSON list in env
    redirect_allowed_origins: list[str] = []

    # Text generation backend
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.5-flash"

    # Wallet / paymaster
    wallet_rpc_url: str | None = None
    paymaster_service_url: str | None = None
    chain_id: int = 84532  # Base Sepolia
    usdc_contract_address: str = "0x036CbD53842c5426634e7929541eC2318f3dCF7e"

    # Orchestration
    min_transfer_amount: Decimal = Decimal("10")
    require_confirmation: bool = False

    # Service
    service_name: str = "flowsend-gateway"
    log_level: str = "INFO"

    # HTTP Client
    http_timeout_seconds: float = 10.0

    @property
    def resolved_onramp_redirect_url(self) -> str:
        return self.onramp_redirect_url or f"{self.app_url.rstrip('/')}/onramp/success"

    @property
    def resolved_offramp_redirect_url(self) -> str:
        return self.offramp_redirect_url or f"{self.app_url.rstrip('/')}/offramp/success"

    @property
    def allowed_redirect_origins(self) -> list[str]:
        return [self.app_url, *self.redirect_allowed_origins]


settings = Settings()
