"""Ledger passthrough endpoints - bank accounts, withdrawals, deposits, addresses"""

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request

from flowsend_gateway.api.dependencies import get_ledger_client, get_request_id, get_settings
from flowsend_gateway.api.errors import not_configured, upstream_failed
from flowsend_gateway.api.v1.schemas import (
    BankAccountResponse,
    BankAccountSchema,
    BankAccountsResponse,
    CreateBankAccountRequest,
    DepositAddressesResponse,
    DepositAddressRequest,
    DepositAddressResponse,
    DepositAddressSchema,
    PayoutResponse,
    PayoutSchema,
    TransferResponse,
    TransferToWalletRequest,
    WithdrawRequest,
)
from flowsend_gateway.config import Settings
from flowsend_gateway.domain.exceptions import ConfigurationError, LedgerAPIError, MinimumAmountError
from flowsend_gateway.domain.transfers import transfer_to_wallet
from flowsend_gateway.infrastructure.clients.ledger import LedgerClient
from flowsend_gateway.utils.amounts import format_amount, parse_amount

router = APIRouter(prefix="/ledger")

NOT_CONFIGURED = "Ledger API not configured"


def _require_configured(ledger: LedgerClient) -> None:
    if not ledger.is_configured:
        raise not_configured(NOT_CONFIGURED)


def _validated_amount(raw, config: Settings):
    """Parse an amount and enforce the minimum before any ledger call"""
    amount = parse_amount(raw)
    if amount is None or amount < config.min_transfer_amount:
        raise HTTPException(status_code=400, detail=str(MinimumAmountError(format_amount(config.min_transfer_amount))))
    return amount


@router.get("/test")
async def test_connection(ledger: LedgerClient = Depends(get_ledger_client)):
    """Verify ledger credentials with a configuration lookup"""
    _require_configured(ledger)
    try:
        configuration = await ledger.get_configuration()
    except LedgerAPIError as e:
        raise upstream_failed(str(e))
    return {"success": True, "message": "Ledger API connection successful", "config": configuration}


@router.get("/bank-accounts", response_model=BankAccountsResponse)
async def list_bank_accounts(
    ledger: LedgerClient = Depends(get_ledger_client),
    wallet_address: str | None = Header(None, alias="X-Wallet-Address"),
):
    _require_configured(ledger)
    try:
        accounts = await ledger.list_bank_accounts(wallet_address)
    except LedgerAPIError as e:
        raise upstream_failed(str(e))
    return BankAccountsResponse(bank_accounts=[BankAccountSchema.from_domain(a) for a in accounts])


@router.post("/bank-accounts", response_model=BankAccountResponse)
async def create_bank_account(
    body: CreateBankAccountRequest,
    request: Request,
    ledger: LedgerClient = Depends(get_ledger_client),
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
):
    _require_configured(ledger)
    logging.info("Creating wire bank account", extra={"request_id": get_request_id(request)})
    try:
        account = await ledger.create_bank_account(
            account_number=body.account_number,
            routing_number=body.routing_number,
            holder_name=body.account_holder_name,
            address=body.address.model_dump(by_alias=True),
            bank_name=body.bank_name,
            idempotency_key=idempotency_key,
        )
    except LedgerAPIError as e:
        raise upstream_failed(str(e))
    return BankAccountResponse(bank_account=BankAccountSchema.from_domain(account))


@router.get("/wire-instructions")
async def get_wire_instructions(
    bank_account_id: str = Query(..., alias="bankAccountId", description="Bank account identifier"),
    currency: str = Query("USD"),
    ledger: LedgerClient = Depends(get_ledger_client),
):
    _require_configured(ledger)
    try:
        instructions = await ledger.get_wire_instructions(bank_account_id, currency)
    except LedgerAPIError as e:
        raise upstream_failed(str(e))
    return {"success": True, "instructions": instructions}


@router.post("/withdraw", response_model=PayoutResponse)
async def withdraw(
    body: WithdrawRequest,
    request: Request,
    ledger: LedgerClient = Depends(get_ledger_client),
    config: Settings = Depends(get_settings),
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
):
    """Create a payout to a previously registered bank account"""
    if body.amount in (None, "") or not body.bank_account_id:
        raise HTTPException(status_code=400, detail="Amount and bank account ID are required")
    amount = _validated_amount(body.amount, config)
    _require_configured(ledger)

    try:
        payout = await ledger.create_payout(
            amount,
            body.bank_account_id,
            beneficiary_email=body.beneficiary_email,
            idempotency_key=idempotency_key,
        )
    except LedgerAPIError as e:
        logging.error(f"Withdrawal failed: {e}", extra={"request_id": get_request_id(request)})
        raise upstream_failed(str(e))

    return PayoutResponse(
        payout=PayoutSchema.from_domain(payout),
        message=f"Withdrawal of ${format_amount(amount)} initiated",
    )


@router.get("/withdraw/{payout_id}", response_model=PayoutResponse)
async def get_payout(payout_id: str, ledger: LedgerClient = Depends(get_ledger_client)):
    _require_configured(ledger)
    try:
        payout = await ledger.get_payout(payout_id)
    except LedgerAPIError as e:
        if e.status_code == 404:
            raise HTTPException(status_code=404, detail="Payout not found")
        raise upstream_failed(str(e))
    return PayoutResponse(payout=PayoutSchema.from_domain(payout))


@router.post("/deposit/transfer-to-wallet", response_model=TransferResponse)
async def deposit_to_wallet(
    body: TransferToWalletRequest,
    request: Request,
    ledger: LedgerClient = Depends(get_ledger_client),
    config: Settings = Depends(get_settings),
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
):
    """Transfer USDC from the ledger account to the user's wallet"""
    if body.amount in (None, "") or not body.user_address:
        raise HTTPException(status_code=400, detail="Amount and user address required")
    amount = _validated_amount(body.amount, config)
    _require_configured(ledger)

    try:
        transfer = await transfer_to_wallet(
            ledger, amount, body.user_address, chain=config.deposit_chain, idempotency_key=idempotency_key
        )
    except (LedgerAPIError, ConfigurationError) as e:
        logging.error(f"Transfer to wallet failed: {e}", extra={"request_id": get_request_id(request)})
        raise upstream_failed(str(e))

    return TransferResponse(
        transfer=PayoutSchema.from_domain(transfer),
        message=f"{format_amount(amount)} USDC transferred to verified blockchain address ({config.deposit_chain}).",
    )


@router.get("/deposit-addresses", response_model=DepositAddressesResponse)
async def list_deposit_addresses(ledger: LedgerClient = Depends(get_ledger_client)):
    _require_configured(ledger)
    try:
        addresses = await ledger.list_blockchain_addresses()
    except LedgerAPIError as e:
        raise upstream_failed(str(e))
    return DepositAddressesResponse(
        addresses=[DepositAddressSchema(address=a.address, currency=a.currency, chain=a.chain) for a in addresses]
    )


@router.post("/deposit-addresses", response_model=DepositAddressResponse)
async def create_deposit_address(
    body: DepositAddressRequest,
    ledger: LedgerClient = Depends(get_ledger_client),
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
):
    _require_configured(ledger)
    try:
        address = await ledger.create_blockchain_address(body.currency, body.chain, idempotency_key=idempotency_key)
    except LedgerAPIError as e:
        raise upstream_failed(str(e))
    return DepositAddressResponse(
        address=DepositAddressSchema(address=address.address, currency=address.currency, chain=address.chain)
    )
