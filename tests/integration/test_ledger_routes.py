"""Integration tests for the /v1/ledger passthrough endpoints"""

from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient

from flowsend_gateway.api.dependencies import get_ledger_client
from flowsend_gateway.infrastructure.clients.ledger import LedgerClient

WALLET = "0x1111111111111111111111111111111111111111"
BANK_ACCOUNT = {
    "accountNumber": "000123456789",
    "routingNumber": "121000248",
    "accountHolderName": "Jane Doe",
    "bankName": "Mock Bank",
    "address": {"line1": "1 Main St", "city": "Boston", "state": "MA", "postalCode": "02110", "country": "US"},
}


def add_bank_account(client: TestClient) -> str:
    response = client.post("/v1/ledger/bank-accounts", json=BANK_ACCOUNT)
    assert response.status_code == 200
    return response.json()["bank_account"]["id"]


def test_connection_check(client: TestClient):
    response = client.get("/v1/ledger/test")
    assert response.status_code == 200
    assert response.json()["success"] is True


def test_create_and_list_bank_accounts(client: TestClient):
    account_id = add_bank_account(client)

    response = client.get("/v1/ledger/bank-accounts", headers={"X-Wallet-Address": WALLET})

    assert response.status_code == 200
    accounts = response.json()["bank_accounts"]
    assert accounts[0]["id"] == account_id
    assert accounts[0]["billing_name"] == "Jane Doe"
    assert accounts[0]["account_number_last4"] == "6789"


def test_withdraw_and_get_payout(client: TestClient):
    account_id = add_bank_account(client)

    response = client.post("/v1/ledger/withdraw", json={"amount": "50", "bankAccountId": account_id})

    assert response.status_code == 200
    payout = response.json()["payout"]
    assert payout["amount"] == "50.00"

    fetched = client.get(f"/v1/ledger/withdraw/{payout['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["payout"]["id"] == payout["id"]


def test_withdraw_below_minimum_rejected_before_ledger_call(client: TestClient):
    with patch.object(LedgerClient, "create_payout", new_callable=AsyncMock) as mock_payout:
        response = client.post("/v1/ledger/withdraw", json={"amount": 5, "bankAccountId": "acct-1"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid amount. Minimum $10 required."
    mock_payout.assert_not_awaited()


def test_withdraw_replayed_idempotency_key_conflicts(client: TestClient, mock_ledger_app):
    account_id = add_bank_account(client)
    body = {"amount": 20, "bankAccountId": account_id}

    first = client.post("/v1/ledger/withdraw", json=body, headers={"Idempotency-Key": "same-key"})
    second = client.post("/v1/ledger/withdraw", json=body, headers={"Idempotency-Key": "same-key"})

    assert first.status_code == 200
    assert second.status_code == 502
    assert second.json()["detail"]["message"] == "Duplicate idempotency key"
    assert len(mock_ledger_app.state.ledger.payouts) == 1


def test_unknown_payout_is_404(client: TestClient):
    assert client.get("/v1/ledger/withdraw/does-not-exist").status_code == 404


def test_transfer_to_wallet(client: TestClient, mock_ledger_app):
    response = client.post("/v1/ledger/deposit/transfer-to-wallet", json={"amount": 100, "userAddress": WALLET})

    assert response.status_code == 200
    data = response.json()
    assert data["transfer"]["amount"] == "100.00"
    assert "100 USDC" in data["message"]
    assert mock_ledger_app.state.ledger.recipients[0]["address"] == WALLET


def test_transfer_to_wallet_requires_address(client: TestClient):
    response = client.post("/v1/ledger/deposit/transfer-to-wallet", json={"amount": 100})
    assert response.status_code == 400


def test_deposit_addresses(client: TestClient):
    created = client.post("/v1/ledger/deposit-addresses", json={"currency": "USD", "chain": "BASE"})
    listed = client.get("/v1/ledger/deposit-addresses")

    assert created.status_code == 200
    assert listed.json()["addresses"] == [created.json()["address"]]


def test_wire_instructions(client: TestClient):
    account_id = add_bank_account(client)

    response = client.get("/v1/ledger/wire-instructions", params={"bankAccountId": account_id})

    assert response.status_code == 200
    assert response.json()["instructions"]["currency"] == "USD"


def test_ledger_not_configured(app, client: TestClient):
    app.dependency_overrides[get_ledger_client] = lambda: LedgerClient(None, "http://ledger.test")

    response = client.get("/v1/ledger/bank-accounts")

    assert response.status_code == 503
    assert response.json()["detail"]["error"] == "not_configured"
