"""Integration tests for API endpoints"""

import json

import pytest
from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs, urlsplit
from fastapi.testclient import TestClient

WALLET = "0x1111111111111111111111111111111111111111"


def classified(action_type: str, **params) -> str:
    return json.dumps({"type": action_type, "params": params})


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert "X-Request-ID" in response.headers


def test_request_id_propagated(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    client.post("/v1/onramp", json={"amount": 20, "userAddress": WALLET})
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "flowsend_ramp_url_total" in response.text
    assert "http_request_duration_seconds" in response.text


def test_chat_deposit_scenario(client: TestClient, fake_generator):
    """deposit 100 usdc with a connected wallet executes one transfer"""
    fake_generator.classification = classified("deposit_usdc", amount=100)

    response = client.post(
        "/v1/chat",
        json={"messages": [{"role": "user", "content": "deposit 100 usdc"}], "walletAddress": WALLET},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["action"] == "deposit_usdc"
    assert data["state"] == "succeeded"
    assert "100" in data["reply"]
    assert data["reference_id"]
    assert data["reference_id"] in data["reply"]


def test_chat_withdraw_without_bank_accounts(client: TestClient, fake_generator, mock_ledger_app):
    fake_generator.classification = classified("withdraw_usdc", amount=50)

    response = client.post(
        "/v1/chat",
        json={"messages": [{"role": "user", "content": "withdraw 50 USDC"}], "walletAddress": WALLET},
    )

    assert response.status_code == 200
    assert "add a bank account" in response.json()["reply"]
    assert mock_ledger_app.state.ledger.payouts == {}


def test_chat_general_reply_when_no_intent(client: TestClient, fake_generator):
    fake_generator.reply_text = "DeFi stands for decentralized finance."

    response = client.post(
        "/v1/chat",
        json={
            "messages": [
                {"role": "user", "content": "hi"},
                {"role": "assistant", "content": "Hello!"},
                {"role": "user", "content": "what is defi?"},
            ]
        },
    )

    assert response.status_code == 200
    assert response.json() == {
        "reply": "DeFi stands for decentralized finance.",
        "action": "none",
        "state": None,
        "executed": False,
        "reference_id": None,
        "requires_confirmation": False,
        "pending_action": None,
        "data": {},
    }
    system_prompt, history, message = fake_generator.replies[0]
    assert message == "what is defi?"
    assert [turn.content for turn in history] == ["hi", "Hello!"]
    assert "has not connected their wallet" in system_prompt


def test_chat_missing_messages(client: TestClient):
    response = client.post("/v1/chat", json={"walletAddress": WALLET})
    assert response.status_code == 400


def test_chat_without_text_backend_is_not_configured(client: TestClient, fake_generator):
    fake_generator.is_configured = False

    response = client.post("/v1/chat", json={"messages": [{"role": "user", "content": "hi"}]})

    assert response.status_code == 503
    assert response.json()["detail"]["error"] == "not_configured"


def test_chat_confirm_executes_action_directly(client: TestClient, fake_generator):
    response = client.post(
        "/v1/chat",
        json={
            "confirm": True,
            "action": {"type": "deposit_usdc", "params": {"amount": "25"}},
            "walletAddress": WALLET,
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["executed"] is True
    assert data["state"] == "succeeded"
    assert fake_generator.prompts == []


def test_chat_confirm_unknown_action(client: TestClient):
    response = client.post("/v1/chat", json={"confirm": True, "action": {"type": "launch_rocket"}})
    assert response.status_code == 400


@patch("flowsend_gateway.infrastructure.clients.ledger.LedgerClient.create_payout")
def test_chat_withdraw_with_account_calls_payout_once(mock_payout: AsyncMock, client: TestClient, fake_generator):
    from flowsend_gateway.domain.models import Payout

    mock_payout.return_value = Payout(id="po-1", status="pending", amount="50.00")
    fake_generator.classification = classified("withdraw_usdc", amount=50, bankAccountId="acct-9")

    response = client.post(
        "/v1/chat",
        json={"messages": [{"role": "user", "content": "withdraw 50 to acct-9"}], "walletAddress": WALLET},
        headers={"Idempotency-Key": "idem-1"},
    )

    assert response.status_code == 200
    assert "Payout ID: po-1" in response.json()["reply"]
    mock_payout.assert_awaited_once()
    assert mock_payout.await_args.kwargs["idempotency_key"] == "idem-1"


def test_session_token_endpoint(client: TestClient):
    response = client.post("/v1/session", json={"addresses": [{"address": WALLET, "blockchains": ["base"]}]})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["token"] == "sess-token-abc"
    assert data["channel_id"] == "chan-1"


def test_session_token_upstream_failure(client: TestClient, token_responses):
    token_responses["status"] = 403
    token_responses["json"] = {"message": "Forbidden"}

    response = client.post("/v1/session", json={"addresses": [{"address": WALLET}]})

    assert response.status_code == 502
    assert response.json()["detail"]["message"] == "Forbidden"


def test_session_token_requires_addresses(client: TestClient):
    assert client.post("/v1/session", json={"addresses": []}).status_code == 400


def test_onramp_secure_url(client: TestClient):
    response = client.post("/v1/onramp", json={"amount": "100", "userAddress": WALLET})

    assert response.status_code == 200
    data = response.json()
    assert data["mode"] == "secure"
    assert data["session_token"] is True
    assert data["expires_in"] == 120
    params = parse_qs(urlsplit(data["url"]).query)
    assert params["sessionToken"] == ["sess-token-abc"]
    assert params["presetFiatAmount"] == ["100"]
    assert params["redirectUrl"] == ["https://flowsend.test/onramp/success"]


def test_onramp_fallback_when_issuance_fails(client: TestClient, token_responses):
    token_responses["status"] = 500
    token_responses["json"] = {"error": "internal"}

    response = client.post("/v1/onramp", json={"amount": 50, "userAddress": WALLET})

    assert response.status_code == 200
    data = response.json()
    assert data["mode"] == "fallback"
    params = parse_qs(urlsplit(data["url"]).query)
    assert params["appId"] == ["app-123"]
    assert json.loads(params["addresses"][0]) == {WALLET: ["base"]}
    assert params["partnerUserId"] == [WALLET]


def test_onramp_amount_5_rejected_without_issuance(client: TestClient, token_requests):
    response = client.post("/v1/onramp", json={"amount": "5", "userAddress": WALLET})

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid amount. Minimum $10 required."
    assert token_requests == []


def test_onramp_foreign_redirect_rejected(client: TestClient, token_requests):
    response = client.post(
        "/v1/onramp", json={"amount": 50, "userAddress": WALLET, "redirectUrl": "https://evil.example/steal"}
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Redirect URL is not allowed"
    assert token_requests == []


def test_onramp_same_origin_redirect_kept(client: TestClient):
    response = client.post(
        "/v1/onramp", json={"amount": 50, "userAddress": WALLET, "redirectUrl": "https://flowsend.test/done"}
    )

    assert response.status_code == 200
    assert response.json()["redirect_url"] == "https://flowsend.test/done"
    assert parse_qs(urlsplit(response.json()["url"]).query)["redirectUrl"] == ["https://flowsend.test/done"]


@pytest.mark.parametrize("body", [{"amount": 20}, {"userAddress": WALLET}])
def test_onramp_missing_params(client: TestClient, body):
    assert client.post("/v1/onramp", json=body).status_code == 400


def test_offramp_url(client: TestClient):
    response = client.post("/v1/offramp", json={"amount": 40, "userAddress": WALLET, "cashoutMethod": "ACH_BANK_ACCOUNT"})

    assert response.status_code == 200
    data = response.json()
    assert data["url"].startswith("https://pay.coinbase.com/v3/sell/input?")
    assert data["redirect_url"] == "https://flowsend.test/offramp/success"


def test_sponsorship_with_reported_capabilities(client: TestClient):
    """No paymaster URL configured: reported support is not enough to be eligible"""
    response = client.post(
        "/v1/sponsorship/check",
        json={
            "sender": WALLET,
            "recipient": "0x" + "2" * 40,
            "amount": "10",
            "capabilities": {"0x14a34": {"paymasterService": {"supported": True}}},
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["eligible"] is False
    assert data["reason"].startswith("Sponsorship check failed")


def test_sponsorship_without_wallet_rpc_reports_reason(client: TestClient):
    response = client.post(
        "/v1/sponsorship/check",
        json={"sender": WALLET, "recipient": "0x" + "2" * 40, "amount": "10"},
    )

    assert response.status_code == 200
    assert response.json() == {"eligible": False, "reason": "Wallet RPC URL is not configured"}


@pytest.mark.parametrize(
    "capabilities",
    [
        {"84532": {"paymasterService": True}},
        {"84532": {"paymasterService": "yes"}},
        {"84532": True},
        {"84532": ["paymasterService"]},
    ],
)
def test_sponsorship_malformed_reported_capabilities(client: TestClient, capabilities):
    response = client.post(
        "/v1/sponsorship/check",
        json={"sender": WALLET, "recipient": "0x" + "2" * 40, "amount": "10", "capabilities": capabilities},
    )

    assert response.status_code == 200
    assert response.json() == {"eligible": False, "reason": "Paymaster service not supported by this wallet"}
