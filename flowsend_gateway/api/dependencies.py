"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Request

from flowsend_gateway.config import Settings, settings
from flowsend_gateway.domain.conversation import ConversationResponder
from flowsend_gateway.domain.intent import IntentClassifier
from flowsend_gateway.domain.orchestrator import ActionOrchestrator
from flowsend_gateway.domain.ramp import RampSessionService, RampUrlBuilder
from flowsend_gateway.infrastructure.clients.ledger import LedgerClient
from flowsend_gateway.infrastructure.clients.text_generation import GeminiTextGenerator
from flowsend_gateway.infrastructure.clients.token_issuer import CredentialIssuer
from flowsend_gateway.infrastructure.clients.wallet import PaymasterClient, WalletRpcClient


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_settings() -> Settings:
    """Process-wide configuration, resolved once at startup"""
    return settings


def get_ledger_client(config: Settings = Depends(get_settings)) -> LedgerClient:
    """Provide ledger API client instance"""
    return LedgerClient(
        api_key=config.circle_api_key,
        base_url=config.circle_api_base_url,
        timeout=config.http_timeout_seconds,
    )


def get_credential_issuer(config: Settings = Depends(get_settings)) -> CredentialIssuer:
    """Provide session token issuer instance"""
    return CredentialIssuer(
        key_name=config.cdp_api_key_name,
        private_key=config.cdp_api_key_secret,
        token_url=config.cdp_token_url,
        timeout=config.http_timeout_seconds,
    )


def get_ramp_builder(config: Settings = Depends(get_settings)) -> RampUrlBuilder:
    return RampUrlBuilder(
        app_id=config.cdp_project_id,
        onramp_redirect_url=config.resolved_onramp_redirect_url,
        offramp_redirect_url=config.resolved_offramp_redirect_url,
        min_amount=config.min_transfer_amount,
        allowed_redirect_origins=config.allowed_redirect_origins,
    )


def get_ramp_service(
    issuer: CredentialIssuer = Depends(get_credential_issuer),
    builder: RampUrlBuilder = Depends(get_ramp_builder),
) -> RampSessionService:
    return RampSessionService(issuer, builder)


def get_text_generator(config: Settings = Depends(get_settings)) -> GeminiTextGenerator:
    """Provide text generation backend instance"""
    return GeminiTextGenerator(api_key=config.gemini_api_key, model=config.gemini_model)


def get_intent_classifier(generator: GeminiTextGenerator = Depends(get_text_generator)) -> IntentClassifier:
    return IntentClassifier(generator)


def get_conversation_responder(generator: GeminiTextGenerator = Depends(get_text_generator)) -> ConversationResponder:
    return ConversationResponder(generator)


def get_orchestrator(
    ledger: LedgerClient = Depends(get_ledger_client),
    ramp_service: RampSessionService = Depends(get_ramp_service),
    config: Settings = Depends(get_settings),
) -> ActionOrchestrator:
    return ActionOrchestrator(
        ledger=ledger,
        ramp_service=ramp_service,
        min_amount=config.min_transfer_amount,
        require_confirmation=config.require_confirmation,
        deposit_chain=config.deposit_chain,
    )


def get_wallet_rpc_client(config: Settings = Depends(get_settings)) -> WalletRpcClient:
    return WalletRpcClient(config.wallet_rpc_url, timeout=config.http_timeout_seconds)


def get_paymaster_client(config: Settings = Depends(get_settings)) -> PaymasterClient:
    return PaymasterClient(config.paymaster_service_url, timeout=config.http_timeout_seconds)
