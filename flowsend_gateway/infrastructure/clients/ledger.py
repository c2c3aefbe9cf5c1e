"""Ledger / payment processor HTTP client (Circle Mint style API)"""

import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

from flowsend_gateway.domain.exceptions import ConfigurationError, LedgerAPIError
from flowsend_gateway.domain.models import BankAccount, BlockchainAddress, Payout, RecipientAddress, Transfer
from flowsend_gateway.infrastructure.observability.metrics import ledger_failure_counter, ledger_latency_histogram
from flowsend_gateway.utils.amounts import format_ledger_amount

logger = logging.getLogger(__name__)

BANK_ACCOUNTS_PATH = "/v1/businessAccount/banks/wires"
PAYOUTS_PATH = "/v1/businessAccount/payouts"
TRANSFERS_PATH = "/v1/businessAccount/transfers"
RECIPIENT_ADDRESSES_PATH = "/v1/businessAccount/wallets/addresses/recipient"
DEPOSIT_ADDRESSES_PATH = "/v1/businessAccount/wallets/addresses/deposit"


def new_idempotency_key() -> str:
    return str(uuid.uuid4())


def extract_error_message(response: httpx.Response) -> str:
    """Pull the provider's own error text out of a failed response"""
    fallback = f"Ledger API error: {response.status_code}"
    text = response.text
    try:
        body = response.json()
    except ValueError:
        return text or fallback
    if isinstance(body, dict):
        return body.get("message") or body.get("error") or fallback
    return text or fallback


class LedgerClient:
    """
    Client for the external ledger / payment processor.

    Every creation call carries an idempotency key. Pass the same key to
    repeat a request safely; omit it to get a fresh one. Nothing is retried
    here: a failed call surfaces as LedgerAPIError.
    """

    def __init__(
        self,
        api_key: str | None,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key.strip() if api_key else None
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Issue one request and return the `data` member of the response body"""
        if not self.is_configured:
            raise ConfigurationError("Ledger API key is not configured")

        request_headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
        }
        if headers:
            request_headers.update(headers)

        logger.info("Ledger API request", extra={"operation": operation, "method": method, "path": path})

        async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
            try:
                with ledger_latency_histogram.labels(operation=operation).time():
                    response = await client.request(method, path, json=json, params=params, headers=request_headers)
                response.raise_for_status()
                body = response.json()
            except httpx.TimeoutException as e:
                ledger_failure_counter.labels(operation=operation).inc()
                raise LedgerAPIError(f"Ledger API timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                ledger_failure_counter.labels(operation=operation).inc()
                message = extract_error_message(e.response)
                logger.warning(
                    "Ledger API error",
                    extra={"operation": operation, "status": e.response.status_code, "error": message},
                )
                raise LedgerAPIError(message, status_code=e.response.status_code) from e
            except httpx.RequestError as e:
                ledger_failure_counter.labels(operation=operation).inc()
                raise LedgerAPIError(f"Ledger API unreachable: {e}") from e
            except ValueError as e:
                ledger_failure_counter.labels(operation=operation).inc()
                raise LedgerAPIError(f"Invalid response from ledger: {e}") from e

        if isinstance(body, dict):
            return body.get("data")
        return body

    async def get_configuration(self) -> Dict[str, Any]:
        """Connectivity check"""
        return await self._request("GET", "/v1/configuration", "get_configuration") or {}

    async def list_bank_accounts(self, address: str | None = None) -> List[BankAccount]:
        """List wire bank accounts, keyed by the caller's wallet address when known"""
        headers = {"X-Wallet-Address": address} if address else None
        data = await self._request("GET", BANK_ACCOUNTS_PATH, "list_bank_accounts", headers=headers)
        try:
            return [_parse_bank_account(raw) for raw in data or []]
        except (KeyError, TypeError) as e:
            raise LedgerAPIError(f"Invalid bank account data from ledger: {e}") from e

    async def create_bank_account(
        self,
        account_number: str,
        routing_number: str,
        holder_name: str,
        address: Dict[str, str],
        bank_name: str | None = None,
        idempotency_key: str | None = None,
    ) -> BankAccount:
        district = address.get("state") or address.get("district")
        country = address.get("country") or "US"
        body = {
            "idempotencyKey": idempotency_key or new_idempotency_key(),
            "accountNumber": account_number,
            "routingNumber": routing_number,
            "billingDetails": {
                "name": holder_name,
                "line1": address.get("line1"),
                "city": address.get("city"),
                "district": district,
                "postalCode": address.get("postalCode"),
                "country": country,
            },
            "bankAddress": {
                "bankName": bank_name or "Bank",
                "city": address.get("city"),
                "country": country,
                "line1": address.get("line1"),
                "district": district,
            },
        }
        data = await self._request("POST", BANK_ACCOUNTS_PATH, "create_bank_account", json=body)
        try:
            return _parse_bank_account(data)
        except (KeyError, TypeError) as e:
            raise LedgerAPIError(f"Invalid bank account data from ledger: {e}") from e

    async def get_wire_instructions(self, bank_account_id: str, currency: str = "USD") -> Dict[str, Any]:
        return await self._request(
            "GET",
            f"{BANK_ACCOUNTS_PATH}/{bank_account_id}/instructions",
            "get_wire_instructions",
            params={"currency": currency},
        ) or {}

    async def create_payout(
        self,
        amount: Decimal,
        bank_account_id: str,
        beneficiary_email: str | None = None,
        idempotency_key: str | None = None,
    ) -> Payout:
        """Withdraw to a previously registered bank account"""
        body: Dict[str, Any] = {
            "idempotencyKey": idempotency_key or new_idempotency_key(),
            "destination": {"type": "wire", "id": bank_account_id},
            "amount": {"amount": format_ledger_amount(amount), "currency": "USD"},
        }
        if beneficiary_email:
            body["metadata"] = {"beneficiaryEmail": beneficiary_email}
        data = await self._request("POST", PAYOUTS_PATH, "create_payout", json=body)
        return _parse_payout(data)

    async def get_payout(self, payout_id: str) -> Payout:
        data = await self._request("GET", f"{PAYOUTS_PATH}/{payout_id}", "get_payout")
        return _parse_payout(data)

    async def list_recipient_addresses(self) -> List[RecipientAddress]:
        data = await self._request("GET", RECIPIENT_ADDRESSES_PATH, "list_recipient_addresses")
        try:
            return [_parse_recipient(raw) for raw in data or []]
        except (KeyError, TypeError) as e:
            raise LedgerAPIError(f"Invalid recipient address data from ledger: {e}") from e

    async def create_recipient_address(
        self,
        address: str,
        chain: str,
        currency: str = "USD",
        description: str | None = None,
        idempotency_key: str | None = None,
    ) -> RecipientAddress:
        body = {
            "idempotencyKey": idempotency_key or new_idempotency_key(),
            "address": address,
            "chain": chain,
            "currency": currency,
            "description": description or f"Wallet: {address}",
        }
        data = await self._request("POST", RECIPIENT_ADDRESSES_PATH, "create_recipient_address", json=body)
        try:
            return _parse_recipient(data)
        except (KeyError, TypeError) as e:
            raise LedgerAPIError("Failed to create recipient address") from e

    async def create_transfer(self, address_id: str, amount: Decimal, idempotency_key: str | None = None) -> Transfer:
        """Transfer to a verified recipient address"""
        body = {
            "idempotencyKey": idempotency_key or new_idempotency_key(),
            "destination": {"type": "verified_blockchain", "addressId": address_id},
            "amount": {"amount": format_ledger_amount(amount), "currency": "USD"},
        }
        data = await self._request("POST", TRANSFERS_PATH, "create_transfer", json=body)
        try:
            return Transfer(
                id=data["id"],
                status=data.get("status"),
                amount=(data.get("amount") or {}).get("amount"),
            )
        except (KeyError, TypeError) as e:
            raise LedgerAPIError(f"Invalid transfer data from ledger: {e}") from e

    async def create_blockchain_address(
        self, currency: str, chain: str, idempotency_key: str | None = None
    ) -> BlockchainAddress:
        body = {
            "idempotencyKey": idempotency_key or new_idempotency_key(),
            "currency": currency,
            "chain": chain,
        }
        data = await self._request("POST", DEPOSIT_ADDRESSES_PATH, "create_blockchain_address", json=body)
        try:
            return BlockchainAddress(address=data["address"], currency=data.get("currency"), chain=data.get("chain"))
        except (KeyError, TypeError) as e:
            raise LedgerAPIError(f"Invalid deposit address data from ledger: {e}") from e

    async def list_blockchain_addresses(self) -> List[BlockchainAddress]:
        data = await self._request("GET", DEPOSIT_ADDRESSES_PATH, "list_blockchain_addresses")
        return [
            BlockchainAddress(address=raw["address"], currency=raw.get("currency"), chain=raw.get("chain"))
            for raw in data or []
            if raw.get("address")
        ]


def _parse_bank_account(raw: Dict[str, Any]) -> BankAccount:
    billing = raw.get("billingDetails") or {}
    account_number = raw.get("accountNumber") or ""
    return BankAccount(
        id=raw["id"],
        billing_name=billing.get("name") or "Bank Account",
        account_number_last4=account_number[-4:] if account_number else "****",
        status=raw.get("status"),
        description=raw.get("description"),
    )


def _parse_payout(data: Any) -> Payout:
    try:
        return Payout(
            id=data["id"],
            status=data.get("status"),
            amount=(data.get("amount") or {}).get("amount"),
        )
    except (KeyError, TypeError) as e:
        raise LedgerAPIError(f"Invalid payout data from ledger: {e}") from e


def _parse_recipient(raw: Dict[str, Any]) -> RecipientAddress:
    return RecipientAddress(
        id=raw["id"],
        address=raw["address"],
        chain=raw.get("chain", ""),
        currency=raw.get("currency"),
        description=raw.get("description"),
    )
