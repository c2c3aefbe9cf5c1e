"""Pydantic schemas for API request/response validation"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from flowsend_gateway.domain.models import ActionOutcome, BankAccount, Payout, Transfer


class CamelModel(BaseModel):
    """Accepts both the camelCase wire names and the field names"""

    model_config = ConfigDict(populate_by_name=True)


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str = ""


class ChatRequest(CamelModel):
    """Request body for POST /v1/chat"""

    messages: List[ChatMessage] = Field(default_factory=list)
    wallet_address: Optional[str] = Field(None, alias="walletAddress")
    confirm: bool = False
    action: Optional[Dict[str, Any]] = Field(None, description="Action payload to execute when confirm is true")


class ChatResponse(BaseModel):
    """Response for POST /v1/chat"""

    reply: str
    action: str = "none"
    state: Optional[str] = None
    executed: bool = False
    reference_id: Optional[str] = None
    requires_confirmation: bool = False
    pending_action: Optional[Dict[str, Any]] = None
    data: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_outcome(cls, outcome: ActionOutcome, executed: bool = False) -> "ChatResponse":
        data = {k: v for k, v in outcome.payload.items() if k not in ("action", "requiresConfirmation")}
        return cls(
            reply=outcome.message,
            action=outcome.action.type.value,
            state=outcome.state.value,
            executed=executed,
            reference_id=outcome.reference_id,
            requires_confirmation=outcome.requires_confirmation,
            pending_action=outcome.payload.get("action") if outcome.requires_confirmation else None,
            data=data,
        )


class SessionAddress(BaseModel):
    address: str = Field(..., min_length=1)
    blockchains: List[str] = Field(default_factory=lambda: ["base"])


class SessionTokenRequest(BaseModel):
    """Request body for POST /v1/session"""

    addresses: List[SessionAddress] = Field(default_factory=list)
    assets: Optional[List[str]] = None


class SessionTokenResponse(BaseModel):
    success: bool
    token: str
    channel_id: Optional[str] = None
    expires_at: str


AmountInput = Optional[Union[int, float, str]]


class OnrampRequest(CamelModel):
    """Request body for POST /v1/onramp"""

    amount: AmountInput = None
    user_address: Optional[str] = Field(None, alias="userAddress")
    payment_method: str = Field("ACH_BANK_ACCOUNT", alias="paymentMethod")
    redirect_url: Optional[str] = Field(None, alias="redirectUrl")


class OfframpRequest(CamelModel):
    """Request body for POST /v1/offramp"""

    amount: AmountInput = None
    user_address: Optional[str] = Field(None, alias="userAddress")
    cashout_method: str = Field("ACH_BANK_ACCOUNT", alias="cashoutMethod")
    redirect_url: Optional[str] = Field(None, alias="redirectUrl")


class RampResponse(BaseModel):
    """Response for POST /v1/onramp and /v1/offramp"""

    success: bool = True
    url: str
    mode: str  # secure | fallback
    amount: str
    asset: str
    network: str
    method: Optional[str] = None
    session_token: bool
    redirect_url: Optional[str] = None
    message: str
    expires_in: Optional[int] = None


class BankAccountSchema(BaseModel):
    id: str
    billing_name: str
    account_number_last4: str
    status: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_domain(cls, account: BankAccount) -> "BankAccountSchema":
        return cls(
            id=account.id,
            billing_name=account.billing_name,
            account_number_last4=account.account_number_last4,
            status=account.status,
            description=account.description,
        )


class BankAccountsResponse(BaseModel):
    success: bool = True
    bank_accounts: List[BankAccountSchema]


class BillingAddress(BaseModel):
    line1: str
    city: str
    state: Optional[str] = None
    district: Optional[str] = None
    postal_code: str = Field(..., alias="postalCode")
    country: str = "US"

    model_config = ConfigDict(populate_by_name=True)


class CreateBankAccountRequest(CamelModel):
    account_number: str = Field(..., min_length=1, alias="accountNumber")
    routing_number: str = Field(..., min_length=1, alias="routingNumber")
    account_holder_name: str = Field(..., min_length=1, alias="accountHolderName")
    address: BillingAddress
    bank_name: Optional[str] = Field(None, alias="bankName")


class BankAccountResponse(BaseModel):
    success: bool = True
    bank_account: BankAccountSchema


class WithdrawRequest(CamelModel):
    amount: AmountInput = None
    bank_account_id: Optional[str] = Field(None, alias="bankAccountId")
    beneficiary_email: Optional[str] = Field(None, alias="beneficiaryEmail")


class PayoutSchema(BaseModel):
    id: str
    status: Optional[str] = None
    amount: Optional[str] = None

    @classmethod
    def from_domain(cls, payout: Union[Payout, Transfer]) -> "PayoutSchema":
        return cls(id=payout.id, status=payout.status, amount=payout.amount)


class PayoutResponse(BaseModel):
    success: bool = True
    payout: PayoutSchema
    message: Optional[str] = None


class TransferToWalletRequest(CamelModel):
    amount: AmountInput = None
    user_address: Optional[str] = Field(None, alias="userAddress")


class TransferResponse(BaseModel):
    success: bool = True
    transfer: PayoutSchema
    message: str


class DepositAddressRequest(BaseModel):
    currency: str = "USD"
    chain: str = "BASE"


class DepositAddressSchema(BaseModel):
    address: str
    currency: Optional[str] = None
    chain: Optional[str] = None


class DepositAddressResponse(BaseModel):
    success: bool = True
    address: DepositAddressSchema


class DepositAddressesResponse(BaseModel):
    success: bool = True
    addresses: List[DepositAddressSchema]


class SponsorshipRequest(BaseModel):
    """Request body for POST /v1/sponsorship/check"""

    sender: str = Field(..., min_length=1)
    recipient: str = Field(..., min_length=1)
    amount: Union[int, float, str]
    capabilities: Optional[Dict[str, Any]] = Field(
        None, description="Capabilities reported by the user's wallet (wallet_getCapabilities)"
    )


class SponsorshipResponse(BaseModel):
    eligible: bool
    reason: str
