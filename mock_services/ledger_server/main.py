"""In-memory stand-in for the ledger API used in local development and tests"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse

PREFIX = "/v1/businessAccount"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"code": status_code, "message": message})


class LedgerState:
    def __init__(self):
        self.bank_accounts: List[Dict[str, Any]] = []
        self.payouts: Dict[str, Dict[str, Any]] = {}
        self.transfers: Dict[str, Dict[str, Any]] = {}
        self.recipients: List[Dict[str, Any]] = []
        self.deposit_addresses: List[Dict[str, Any]] = []
        self.idempotency_keys: set = set()

    def claim(self, key: Optional[str]) -> Optional[JSONResponse]:
        """Reserve an idempotency key; a repeated key is a conflict"""
        if not key:
            return _error(400, "idempotencyKey is required")
        if key in self.idempotency_keys:
            return _error(409, "Duplicate idempotency key")
        self.idempotency_keys.add(key)
        return None


def create_app(api_key: str = "test-key") -> FastAPI:
    """Build a mock ledger with fresh state"""
    app = FastAPI(title="Mock Ledger Server", version="1.0.0")
    state = LedgerState()
    app.state.ledger = state

    @app.middleware("http")
    async def require_bearer(request: Request, call_next):
        if request.url.path != "/health" and request.headers.get("Authorization") != f"Bearer {api_key}":
            return _error(401, "Invalid API key")
        return await call_next(request)

    @app.get("/health")
    def health(): return {"status": "ok"}

    @app.get("/v1/configuration")
    def configuration():
        return {"data": {"payments": {"masterWalletId": "1000000001"}}}

    @app.get(f"{PREFIX}/banks/wires")
    def list_bank_accounts(x_wallet_address: Optional[str] = Header(None)):
        return {"data": state.bank_accounts}

    @app.post(f"{PREFIX}/banks/wires")
    async def create_bank_account(request: Request):
        body = await request.json()
        conflict = state.claim(body.get("idempotencyKey"))
        if conflict:
            return conflict
        if not body.get("accountNumber") or not body.get("routingNumber"):
            return _error(400, "Invalid bank account details")
        account = {
            "id": str(uuid.uuid4()),
            "status": "pending",
            "description": f"{body.get('bankAddress', {}).get('bankName', 'Bank')} ****{body['accountNumber'][-4:]}",
            "accountNumber": body["accountNumber"],
            "billingDetails": body.get("billingDetails", {}),
            "createDate": _now(),
        }
        state.bank_accounts.append(account)
        return {"data": account}

    @app.get(f"{PREFIX}/banks/wires/{{bank_account_id}}/instructions")
    def wire_instructions(bank_account_id: str, currency: str = "USD"):
        if not any(a["id"] == bank_account_id for a in state.bank_accounts):
            return _error(404, "Bank account not found")
        return {
            "data": {
                "trackingRef": f"CIR{bank_account_id[:8].upper()}",
                "currency": currency,
                "beneficiaryBank": {"name": "MOCK BANK", "routingNumber": "121000248", "accountNumber": "999999999"},
            }
        }

    @app.post(f"{PREFIX}/payouts")
    async def create_payout(request: Request):
        body = await request.json()
        conflict = state.claim(body.get("idempotencyKey"))
        if conflict:
            return conflict
        destination = body.get("destination") or {}
        if not any(a["id"] == destination.get("id") for a in state.bank_accounts):
            return _error(400, "Destination bank account not found")
        payout = {
            "id": str(uuid.uuid4()),
            "status": "pending",
            "destination": destination,
            "amount": body.get("amount"),
            "createDate": _now(),
        }
        state.payouts[payout["id"]] = payout
        return {"data": payout}

    @app.get(f"{PREFIX}/payouts/{{payout_id}}")
    def get_payout(payout_id: str):
        payout = state.payouts.get(payout_id)
        if not payout:
            return _error(404, "Payout not found")
        return {"data": payout}

    @app.get(f"{PREFIX}/wallets/addresses/recipient")
    def list_recipients():
        return {"data": state.recipients}

    @app.post(f"{PREFIX}/wallets/addresses/recipient")
    async def create_recipient(request: Request):
        body = await request.json()
        conflict = state.claim(body.get("idempotencyKey"))
        if conflict:
            return conflict
        recipient = {
            "id": str(uuid.uuid4()),
            "address": body.get("address"),
            "chain": body.get("chain"),
            "currency": body.get("currency", "USD"),
            "description": body.get("description"),
            "status": "active",
        }
        state.recipients.append(recipient)
        return {"data": recipient}

    @app.post(f"{PREFIX}/transfers")
    async def create_transfer(request: Request):
        body = await request.json()
        conflict = state.claim(body.get("idempotencyKey"))
        if conflict:
            return conflict
        destination = body.get("destination") or {}
        if not any(r["id"] == destination.get("addressId") for r in state.recipients):
            return _error(400, "Recipient address not found")
        transfer = {
            "id": str(uuid.uuid4()),
            "status": "pending",
            "destination": destination,
            "amount": body.get("amount"),
            "createDate": _now(),
        }
        state.transfers[transfer["id"]] = transfer
        return {"data": transfer}

    @app.get(f"{PREFIX}/wallets/addresses/deposit")
    def list_deposit_addresses():
        return {"data": state.deposit_addresses}

    @app.post(f"{PREFIX}/wallets/addresses/deposit")
    async def create_deposit_address(request: Request):
        body = await request.json()
        conflict = state.claim(body.get("idempotencyKey"))
        if conflict:
            return conflict
        address = {
            "address": "0x" + uuid.uuid4().hex + uuid.uuid4().hex[:8],
            "currency": body.get("currency", "USD"),
            "chain": body.get("chain", "BASE"),
        }
        state.deposit_addresses.append(address)
        return {"data": address}

    return app


app = create_app()
