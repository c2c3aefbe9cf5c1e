"""Action orchestration - slot filling, confirmation gating and execution of banking actions"""

import logging
from decimal import Decimal
from typing import List, Optional

from flowsend_gateway.domain.exceptions import (
    ConfigurationError,
    InvalidParametersError,
    LedgerAPIError,
    MinimumAmountError,
)
from flowsend_gateway.domain.models import (
    ActionOutcome,
    ActionType,
    BankAccount,
    BankingAction,
    OrchestrationState,
    RampDirection,
    RampRequest,
)
from flowsend_gateway.domain.ramp import RampSessionService
from flowsend_gateway.domain.transfers import transfer_to_wallet
from flowsend_gateway.infrastructure.clients.ledger import LedgerClient
from flowsend_gateway.infrastructure.observability.metrics import record_action
from flowsend_gateway.utils.amounts import format_amount

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "Banking operations are not configured on this server yet. Please try again later."
GENERIC_FAILURE_MESSAGE = "Unknown error occurred"

# Actions that move money and therefore go through the confirmation gate
CONFIRMABLE_ACTIONS = {ActionType.DEPOSIT, ActionType.WITHDRAW}


def format_bank_accounts(accounts: List[BankAccount]) -> str:
    return "\n".join(
        f"{index}. {account.billing_name} (ID: {account.id}) - Account ending in {account.account_number_last4}"
        for index, account in enumerate(accounts, start=1)
    )


class ActionOrchestrator:
    """
    Request-scoped state machine for one classified banking action.

    AwaitingParams -> Ready -> (AwaitingConfirmation) -> Executing -> Succeeded | Failed

    Nothing is kept between requests: a follow-up turn must be classified again
    with the conversation history so that earlier parameters are re-extracted.
    Every external operation is called at most once per pass and `handle`
    never raises.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        ramp_service: Optional[RampSessionService] = None,
        min_amount: Decimal = Decimal("10"),
        require_confirmation: bool = False,
        deposit_chain: str = "BASE",
    ):
        self.ledger = ledger
        self.ramp_service = ramp_service
        self.min_amount = min_amount
        self.require_confirmation = require_confirmation
        self.deposit_chain = deposit_chain

    async def handle(
        self,
        action: BankingAction,
        wallet_address: Optional[str] = None,
        confirmed: bool = False,
        idempotency_key: Optional[str] = None,
    ) -> ActionOutcome:
        try:
            outcome = await self._dispatch(action, wallet_address, confirmed, idempotency_key)
        except InvalidParametersError as e:
            outcome = self._failed(action, str(e))
        except ConfigurationError as e:
            logger.warning("Banking action attempted without configuration", extra={"error": str(e)})
            outcome = self._failed(action, NOT_CONFIGURED_MESSAGE)
        except LedgerAPIError as e:
            outcome = self._failed(action, f"Error: {e}. Please try again.")
        except Exception as e:
            logger.exception("Unexpected error executing banking action", extra={"action": action.type.value})
            outcome = self._failed(action, f"Error: {str(e) or GENERIC_FAILURE_MESSAGE}. Please try again.")

        record_action(action.type.value, outcome.state.value)
        return outcome

    async def _dispatch(
        self,
        action: BankingAction,
        wallet_address: Optional[str],
        confirmed: bool,
        idempotency_key: Optional[str],
    ) -> ActionOutcome:
        if action.type is ActionType.GET_BANK_ACCOUNTS:
            return await self._get_bank_accounts(action, wallet_address)
        if action.type is ActionType.DEPOSIT:
            return await self._deposit(action, wallet_address, confirmed, idempotency_key)
        if action.type is ActionType.WITHDRAW:
            return await self._withdraw(action, wallet_address, confirmed, idempotency_key)
        if action.type is ActionType.SEND:
            return self._send(action, wallet_address)
        if action.type in (ActionType.BUY, ActionType.SELL):
            return await self._ramp(action, wallet_address)
        return ActionOutcome(action=action, state=OrchestrationState.READY, message="")

    # State helpers

    @staticmethod
    def _awaiting(action: BankingAction, message: str, **payload) -> ActionOutcome:
        return ActionOutcome(action=action, state=OrchestrationState.AWAITING_PARAMS, message=message, payload=payload)

    @staticmethod
    def _failed(action: BankingAction, message: str) -> ActionOutcome:
        return ActionOutcome(action=action, state=OrchestrationState.FAILED, message=message)

    @staticmethod
    def _succeeded(action: BankingAction, message: str, reference_id: Optional[str] = None, **payload) -> ActionOutcome:
        return ActionOutcome(
            action=action,
            state=OrchestrationState.SUCCEEDED,
            message=message,
            reference_id=reference_id,
            payload=payload,
        )

    def _check_minimum(self, amount: Decimal) -> None:
        if amount < self.min_amount:
            raise MinimumAmountError(format_amount(self.min_amount))

    def _confirmation_gate(self, action: BankingAction, confirmed: bool, summary: str) -> Optional[ActionOutcome]:
        if not self.require_confirmation or confirmed or action.type not in CONFIRMABLE_ACTIONS:
            return None
        return ActionOutcome(
            action=action,
            state=OrchestrationState.AWAITING_CONFIRMATION,
            message=f"Please confirm: {summary}",
            payload={"requiresConfirmation": True, "action": action.to_payload(), "summary": summary},
        )

    # Transitions

    async def _get_bank_accounts(self, action: BankingAction, wallet_address: Optional[str]) -> ActionOutcome:
        accounts = await self.ledger.list_bank_accounts(wallet_address)
        if not accounts:
            return self._succeeded(
                action,
                "You do not have any bank accounts linked yet. Would you like help adding a bank account?",
            )
        return self._succeeded(
            action,
            "Here are your linked bank accounts:\n\n"
            + format_bank_accounts(accounts)
            + "\n\nYou can use the account ID to deposit or withdraw funds.",
        )

    async def _deposit(
        self,
        action: BankingAction,
        wallet_address: Optional[str],
        confirmed: bool,
        idempotency_key: Optional[str],
    ) -> ActionOutcome:
        if not wallet_address:
            return self._failed(action, "Please connect your wallet first to deposit USDC.")

        amount = action.params.amount
        if amount is None:
            return self._awaiting(
                action,
                "I can help you deposit USDC from your account to your wallet. How much USDC would you like to deposit?",
                missing=["amount"],
            )
        self._check_minimum(amount)

        shown = format_amount(amount)
        gate = self._confirmation_gate(action, confirmed, f"deposit {shown} USDC to wallet {wallet_address}")
        if gate:
            return gate

        try:
            transfer = await transfer_to_wallet(
                self.ledger, amount, wallet_address, chain=self.deposit_chain, idempotency_key=idempotency_key
            )
        except LedgerAPIError as e:
            return self._failed(
                action,
                f"Deposit failed: {e}. Please make sure you have sufficient USD balance in your account.\n\n"
                "You may need to fund your account first via wire transfer. Would you like help with that?",
            )

        return self._succeeded(
            action,
            f"Successfully initiated deposit of {shown} USDC to your wallet!\n\n"
            f"Transaction ID: {transfer.id or 'N/A'}\n\n"
            "The USDC should appear in your wallet shortly.",
            reference_id=transfer.id,
        )

    async def _withdraw(
        self,
        action: BankingAction,
        wallet_address: Optional[str],
        confirmed: bool,
        idempotency_key: Optional[str],
    ) -> ActionOutcome:
        if not wallet_address:
            return self._failed(action, "Please connect your wallet first to withdraw USDC.")

        amount = action.params.amount
        if amount is None:
            return self._awaiting(
                action,
                "I can help you withdraw USDC to your bank account. How much USDC would you like to withdraw?",
                missing=action.missing_params(),
            )
        self._check_minimum(amount)
        shown = format_amount(amount)

        bank_account_id = action.params.bank_account_id
        if not bank_account_id:
            accounts = await self.ledger.list_bank_accounts(wallet_address)
            if not accounts:
                return self._failed(
                    action,
                    "You need to add a bank account first before withdrawing. "
                    "Please go to the 'Withdraw' or 'Deposit' tab to add your bank account details.",
                )
            return self._awaiting(
                action,
                f"Great! I'll help you withdraw {shown} USDC. Which bank account would you like to use?\n\n"
                + format_bank_accounts(accounts)
                + "\n\nPlease tell me the account ID or the account number.",
                missing=["bank_account_id"],
                accounts=[account.id for account in accounts],
            )

        gate = self._confirmation_gate(action, confirmed, f"withdraw {shown} USDC to bank account {bank_account_id}")
        if gate:
            return gate

        try:
            payout = await self.ledger.create_payout(amount, bank_account_id, idempotency_key=idempotency_key)
        except LedgerAPIError as e:
            return self._failed(action, f"Withdrawal failed: {e}. Please make sure you have sufficient USDC balance.")

        return self._succeeded(
            action,
            f"Successfully initiated withdrawal of {shown} USDC to your bank account!\n\n"
            f"Payout ID: {payout.id or 'N/A'}\n\n"
            "The funds should arrive in your bank account within 1-2 business days.",
            reference_id=payout.id,
        )

    def _send(self, action: BankingAction, wallet_address: Optional[str]) -> ActionOutcome:
        amount = action.params.amount
        recipient = action.params.recipient_address
        if amount is None or not recipient:
            return self._awaiting(
                action,
                "To send USDC, I need both the amount and the recipient address. "
                "For example: 'send 10 USDC to 0x123...'",
                missing=action.missing_params(),
            )
        if not wallet_address:
            return self._failed(action, "Please connect your wallet first to send USDC.")

        shown = format_amount(amount)
        # The on-chain transfer is signed and submitted by the user's wallet
        return self._succeeded(
            action,
            f"To send {shown} USDC to {recipient}:\n\n"
            "1. Go to the 'Send' tab above\n"
            f"2. Enter the recipient address: {recipient}\n"
            f"3. Enter the amount: {shown} USDC\n"
            "4. Click 'Send Payment'\n\n"
            "This will be a gasless transaction - you won't need ETH for gas fees!",
            recipient=recipient,
            amount=shown,
        )

    async def _ramp(self, action: BankingAction, wallet_address: Optional[str]) -> ActionOutcome:
        verb = "buy" if action.type is ActionType.BUY else "sell"
        if not wallet_address:
            return self._failed(action, f"Please connect your wallet first to {verb} USDC.")

        amount = action.params.amount
        if amount is None:
            return self._awaiting(action, f"How much USDC would you like to {verb}?", missing=["amount"])

        if self.ramp_service is None:
            raise ConfigurationError("Ramp session service is not configured")

        direction = RampDirection.ONRAMP if action.type is ActionType.BUY else RampDirection.OFFRAMP
        ramp_url = await self.ramp_service.open_session(
            RampRequest(direction=direction, fiat_amount=amount, user_address=wallet_address)
        )
        return self._succeeded(
            action,
            f"Open this link to {verb} {format_amount(amount)} USDC:\n\n{ramp_url.url}",
            url=ramp_url.url,
            mode=ramp_url.mode.value,
        )
