"""Pytest fixtures for testing"""

from typing import Callable, List, Optional, Sequence

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from fastapi import FastAPI
from fastapi.testclient import TestClient

from flowsend_gateway.api.dependencies import (
    get_credential_issuer,
    get_ledger_client,
    get_settings,
    get_text_generator,
)
from flowsend_gateway.api.main import create_app
from flowsend_gateway.config import Settings
from flowsend_gateway.domain.models import ConversationTurn
from flowsend_gateway.infrastructure.clients.ledger import LedgerClient
from flowsend_gateway.infrastructure.clients.token_issuer import CredentialIssuer
from mock_services.ledger_server.main import create_app as create_mock_ledger

LEDGER_API_KEY = "test-key"
LEDGER_BASE_URL = "http://ledger.test"
TOKEN_URL = "https://api.ramp.test/onramp/v1/token"


class FakeTextGenerator:
    """Scripted stand-in for the Gemini backend"""

    def __init__(self, classification: str = '{"type": "none", "params": {}}', reply_text: str = "Hello there!"):
        self.classification = classification
        self.reply_text = reply_text
        self.prompts: List[str] = []
        self.replies: List[tuple] = []
        self.is_configured = True

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.classification

    async def reply(self, system_prompt: str, history: Sequence[ConversationTurn], message: str) -> str:
        self.replies.append((system_prompt, list(history), message))
        return self.reply_text


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        circle_api_key=LEDGER_API_KEY,
        circle_api_base_url=LEDGER_BASE_URL,
        cdp_api_key_name="organizations/org-1/apiKeys/key-1",
        cdp_api_key_secret="unused",
        cdp_token_url=TOKEN_URL,
        cdp_project_id="app-123",
        app_url="https://flowsend.test",
        gemini_api_key=None,
        wallet_rpc_url=None,
        paymaster_service_url=None,
    )


@pytest.fixture
def ec_private_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def ec_private_pem(ec_private_key: ec.EllipticCurvePrivateKey) -> str:
    return ec_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture
def token_responses() -> dict:
    """Mutable response the mock token endpoint answers with"""
    return {"status": 200, "json": {"token": "sess-token-abc", "channel_id": "chan-1"}}


@pytest.fixture
def token_requests() -> list:
    return []


@pytest.fixture
def token_transport(token_responses: dict, token_requests: list) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        token_requests.append(request)
        return httpx.Response(token_responses["status"], json=token_responses["json"])

    return httpx.MockTransport(handler)


@pytest.fixture
def issuer_factory(ec_private_pem: str, token_transport: httpx.MockTransport) -> Callable[..., CredentialIssuer]:
    def factory(transport: Optional[httpx.AsyncBaseTransport] = None, **overrides) -> CredentialIssuer:
        kwargs = {
            "key_name": "organizations/org-1/apiKeys/key-1",
            "private_key": ec_private_pem,
            "token_url": TOKEN_URL,
            "transport": transport or token_transport,
        }
        kwargs.update(overrides)
        return CredentialIssuer(**kwargs)

    return factory


@pytest.fixture
def mock_ledger_app() -> FastAPI:
    """Fresh in-memory ledger per test"""
    return create_mock_ledger(api_key=LEDGER_API_KEY)


@pytest.fixture
def ledger_client(mock_ledger_app: FastAPI) -> LedgerClient:
    return LedgerClient(
        api_key=LEDGER_API_KEY,
        base_url=LEDGER_BASE_URL,
        transport=httpx.ASGITransport(app=mock_ledger_app),
    )


@pytest.fixture
def fake_generator() -> FakeTextGenerator:
    return FakeTextGenerator()


@pytest.fixture
def app(
    test_settings: Settings,
    ledger_client: LedgerClient,
    issuer_factory: Callable[..., CredentialIssuer],
    fake_generator: FakeTextGenerator,
) -> FastAPI:
    app = create_app()
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_ledger_client] = lambda: ledger_client
    app.dependency_overrides[get_credential_issuer] = lambda: issuer_factory()
    app.dependency_overrides[get_text_generator] = lambda: fake_generator
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create FastAPI test client wired to the mock ledger and token endpoint"""
    return TestClient(app)
