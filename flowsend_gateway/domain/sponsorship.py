"""Paymaster sponsorship eligibility for prospective USDC transfers"""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Dict, Optional, Protocol, Tuple

from flowsend_gateway.domain.models import SponsorshipDecision
from flowsend_gateway.infrastructure.observability.metrics import record_sponsorship
from flowsend_gateway.utils.amounts import encode_erc20_transfer, parse_amount, to_base_units

logger = logging.getLogger(__name__)


class CapabilitySource(Protocol):
    async def get_capabilities(self, address: str) -> Dict[str, Any]: ...


class SponsorshipSource(Protocol):
    async def get_sponsorship(
        self, sender: str, target: str, value: int, call_data: str, chain_id: int
    ) -> Optional[Dict[str, Any]]: ...


def find_chain_capabilities(capabilities: Any, chain_id: int) -> Dict[str, Any]:
    """Wallets key capabilities by decimal or hex chain id; try both"""
    if not isinstance(capabilities, dict):
        return {}
    chain_hex = hex(chain_id)
    for key in (str(chain_id), chain_hex, chain_hex.lower(), chain_hex.upper().replace("0X", "0x")):
        entry = capabilities.get(key)
        if isinstance(entry, dict):
            return entry
    return {}


class SponsorshipChecker:
    """Eligible only when the wallet supports a paymaster and the paymaster agrees to sponsor"""

    def __init__(self, capabilities: CapabilitySource, paymaster: SponsorshipSource, chain_id: int):
        self.capabilities = capabilities
        self.paymaster = paymaster
        self.chain_id = chain_id

    async def check(self, sender: str, target_contract: str, value: int, call_data: str) -> SponsorshipDecision:
        try:
            capabilities = await self.capabilities.get_capabilities(sender)
        except Exception as e:
            logger.warning("Capability probe failed", extra={"sender": sender, "error": str(e)})
            return self._decide(False, str(e))

        chain_capabilities = find_chain_capabilities(capabilities, self.chain_id)
        paymaster_service = chain_capabilities.get("paymasterService")
        if not isinstance(paymaster_service, dict) or paymaster_service.get("supported") is not True:
            return self._decide(False, "Paymaster service not supported by this wallet")

        try:
            sponsorship = await self.paymaster.get_sponsorship(sender, target_contract, value, call_data, self.chain_id)
        except Exception as e:
            logger.warning("Sponsorship request failed", extra={"sender": sender, "error": str(e)})
            return self._decide(False, f"Sponsorship check failed: {e}")

        if sponsorship is None:
            return self._decide(False, "Paymaster declined sponsorship")
        return self._decide(True, "Transaction will be sponsored by paymaster")

    @staticmethod
    def _decide(eligible: bool, reason: str) -> SponsorshipDecision:
        record_sponsorship(eligible)
        return SponsorshipDecision(eligible=eligible, reason=reason)


class SponsorshipTracker:
    """
    Recomputes eligibility for one user's transfer form as its inputs change.

    Each update waits `debounce_seconds` and is tagged with a sequence number.
    A reply is applied only if no newer update was issued meanwhile, so a slow
    stale check can never overwrite a fresher one. Decisions are only served
    for the exact (sender, recipient, amount) tuple they were computed for.
    """

    def __init__(self, checker: SponsorshipChecker, token_contract: str, debounce_seconds: float = 0.5):
        self.checker = checker
        self.token_contract = token_contract
        self.debounce_seconds = debounce_seconds
        self._latest_sequence = 0
        self._current: Optional[Tuple[Tuple[str, str, str], SponsorshipDecision]] = None

    @property
    def latest_sequence(self) -> int:
        return self._latest_sequence

    async def update(self, sender: str, recipient: str, amount: Any) -> Optional[SponsorshipDecision]:
        """Returns the decision, or None when superseded by a newer update"""
        self._latest_sequence += 1
        sequence = self._latest_sequence
        key = (sender, recipient, str(amount))
        self._current = None

        if self.debounce_seconds > 0:
            await asyncio.sleep(self.debounce_seconds)
        if sequence != self._latest_sequence:
            return None

        decision = await evaluate_transfer(self.checker, self.token_contract, sender, recipient, amount)

        if sequence != self._latest_sequence:
            logger.debug("Discarding stale sponsorship result", extra={"sequence": sequence})
            return None
        self._current = (key, decision)
        return decision

    def current(self, sender: str, recipient: str, amount: Any) -> Optional[SponsorshipDecision]:
        if self._current is None:
            return None
        key, decision = self._current
        return decision if key == (sender, recipient, str(amount)) else None


def build_transfer_call(recipient: str, amount: Decimal) -> str:
    """Call data for a USDC transfer of `amount` to `recipient`"""
    return encode_erc20_transfer(recipient, to_base_units(amount))


async def evaluate_transfer(
    checker: SponsorshipChecker, token_contract: str, sender: str, recipient: str, amount: Any
) -> SponsorshipDecision:
    """Validate the form inputs, encode the token transfer and check it"""
    if not sender or not recipient:
        return SponsorshipDecision(eligible=False, reason="Sender and recipient are required")
    parsed = parse_amount(amount)
    if parsed is None:
        return SponsorshipDecision(eligible=False, reason="Invalid amount")
    try:
        call_data = build_transfer_call(recipient, parsed)
    except ValueError as e:
        return SponsorshipDecision(eligible=False, reason=str(e))
    return await checker.check(sender, token_contract, 0, call_data)
