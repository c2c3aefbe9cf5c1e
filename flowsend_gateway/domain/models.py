"""Domain models - pure Python dataclasses representing banking intents and provider entities"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from flowsend_gateway.utils.amounts import format_amount, parse_amount

SESSION_TOKEN_TTL = timedelta(seconds=120)


class ActionType(str, Enum):
    """Closed vocabulary of banking actions"""

    GET_BANK_ACCOUNTS = "get_bank_accounts"
    DEPOSIT = "deposit_usdc"
    WITHDRAW = "withdraw_usdc"
    SEND = "send_usdc"
    BUY = "buy_usdc"
    SELL = "sell_usdc"
    NONE = "none"


# Parameters each action needs before it may execute
REQUIRED_PARAMS: Dict[ActionType, tuple] = {
    ActionType.GET_BANK_ACCOUNTS: (),
    ActionType.DEPOSIT: ("amount",),
    ActionType.WITHDRAW: ("amount", "bank_account_id"),
    ActionType.SEND: ("amount", "recipient_address"),
    ActionType.BUY: ("amount",),
    ActionType.SELL: ("amount",),
    ActionType.NONE: (),
}


@dataclass
class ActionParams:
    """Parameters extracted so far; None means not supplied"""

    amount: Optional[Decimal] = None
    bank_account_id: Optional[str] = None
    recipient_address: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.amount is not None:
            payload["amount"] = format_amount(self.amount)
        if self.bank_account_id:
            payload["bankAccountId"] = self.bank_account_id
        if self.recipient_address:
            payload["recipient_address"] = self.recipient_address
        return payload

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> "ActionParams":
        payload = payload or {}
        bank_account_id = payload.get("bankAccountId") or payload.get("bank_account_id")
        recipient = payload.get("recipient_address") or payload.get("recipientAddress")
        return cls(
            amount=parse_amount(payload.get("amount")),
            bank_account_id=str(bank_account_id).strip() if bank_account_id else None,
            recipient_address=str(recipient).strip() if recipient else None,
        )


@dataclass
class BankingAction:
    """A classified banking intent with whatever parameters are known"""

    type: ActionType
    params: ActionParams = field(default_factory=ActionParams)

    @classmethod
    def none(cls) -> "BankingAction":
        return cls(type=ActionType.NONE)

    def missing_params(self) -> List[str]:
        return [name for name in REQUIRED_PARAMS[self.type] if not getattr(self.params, name)]

    def to_payload(self) -> Dict[str, Any]:
        return {"type": self.type.value, "params": self.params.to_payload()}

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "BankingAction":
        """Parse the wire form; unknown action types raise ValueError"""
        return cls(
            type=ActionType(payload.get("type", ActionType.NONE.value)),
            params=ActionParams.from_payload(payload.get("params")),
        )


@dataclass
class ConversationTurn:
    """Single message of the visible conversation"""

    role: str  # "user" or "assistant"
    content: str


@dataclass
class SessionCredential:
    """Short-lived session token issued by the ramp provider"""

    token: str
    channel_id: Optional[str]
    issued_at: datetime
    expires_at: datetime

    @classmethod
    def issued_now(cls, token: str, channel_id: Optional[str] = None) -> "SessionCredential":
        now = datetime.now(timezone.utc)
        return cls(token=token, channel_id=channel_id, issued_at=now, expires_at=now + SESSION_TOKEN_TTL)

    def __repr__(self) -> str:
        return f"SessionCredential(channel_id={self.channel_id!r}, expires_at={self.expires_at.isoformat()})"


@dataclass
class IssuanceFailure:
    """Session token could not be issued; callers switch to fallback mode"""

    reason: str
    status_code: Optional[int] = None


class RampDirection(str, Enum):
    ONRAMP = "onramp"
    OFFRAMP = "offramp"


class RampMode(str, Enum):
    SECURE = "secure"
    FALLBACK = "fallback"


@dataclass
class RampRequest:
    """Parameters for a hosted buy (onramp) or sell (offramp) session"""

    direction: RampDirection
    fiat_amount: Optional[Decimal]
    user_address: Optional[str]
    asset: str = "USDC"
    network: str = "base"
    method: Optional[str] = "ACH_BANK_ACCOUNT"  # payment method (buy) or cashout method (sell)
    fiat_currency: str = "USD"
    credential: Optional[SessionCredential] = None
    redirect_url: Optional[str] = None


@dataclass
class RampUrl:
    url: str
    mode: RampMode


@dataclass
class SponsorshipDecision:
    """Whether a paymaster would cover the fees of a prospective transfer"""

    eligible: bool
    reason: str


@dataclass
class BankAccount:
    """Wire bank account as reported by the ledger"""

    id: str
    billing_name: str = "Bank Account"
    account_number_last4: str = "****"
    status: Optional[str] = None
    description: Optional[str] = None


@dataclass
class Payout:
    id: str
    status: Optional[str] = None
    amount: Optional[str] = None


@dataclass
class Transfer:
    id: str
    status: Optional[str] = None
    amount: Optional[str] = None


@dataclass
class RecipientAddress:
    """Verified blockchain address registered with the ledger"""

    id: str
    address: str
    chain: str
    currency: Optional[str] = None
    description: Optional[str] = None


@dataclass
class BlockchainAddress:
    address: str
    currency: Optional[str] = None
    chain: Optional[str] = None


class OrchestrationState(str, Enum):
    AWAITING_PARAMS = "awaiting_params"
    READY = "ready"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class ActionOutcome:
    """Single user-facing result of one orchestration pass"""

    action: BankingAction
    state: OrchestrationState
    message: str
    reference_id: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def requires_confirmation(self) -> bool:
        return self.state is OrchestrationState.AWAITING_CONFIRMATION
