"""Intent classification - maps a user utterance to a banking action"""

import json
import logging
from typing import Any, Dict, Optional, Protocol, Sequence

from flowsend_gateway.domain.models import ActionParams, ActionType, BankingAction, ConversationTurn
from flowsend_gateway.infrastructure.observability.metrics import classifier_fallback_counter

logger = logging.getLogger(__name__)

HISTORY_CONTEXT_TURNS = 6

CLASSIFICATION_PROMPT = """Analyze this user message and determine if it is a banking action request. \
Extract parameters even if incomplete. Respond ONLY with valid JSON of the form \
{{"type": "<action>", "params": {{...}}}}.

Actions: get_bank_accounts, deposit_usdc, withdraw_usdc, send_usdc, buy_usdc, sell_usdc, none.
Parameters: amount (number), bankAccountId (string), recipient_address (string).
Only include parameters that literally appear in the conversation. Never invent an address or account id.
If the message is ambiguous but mentions an amount or an address, pick the closest action with the parameters you found.
Use "none" only when there is no banking signal at all.
{context}
User message: {message}

Examples:
- deposit 100 usdc -> {{"type": "deposit_usdc", "params": {{"amount": 100}}}}
- withdraw 50 USDC -> {{"type": "withdraw_usdc", "params": {{"amount": 50}}}}
- withdraw to account abc123 -> {{"type": "withdraw_usdc", "params": {{"bankAccountId": "abc123"}}}}
- send 10 USDC to 0x123 -> {{"type": "send_usdc", "params": {{"amount": 10, "recipient_address": "0x123"}}}}
- buy 25 USDC with my card -> {{"type": "buy_usdc", "params": {{"amount": 25}}}}
- cash out 40 USDC -> {{"type": "sell_usdc", "params": {{"amount": 40}}}}
- show my bank accounts -> {{"type": "get_bank_accounts", "params": {{}}}}
- what is defi -> {{"type": "none", "params": {{}}}}"""


class TextGenerator(Protocol):
    """Backend that turns a prompt into text"""

    async def generate(self, prompt: str) -> str: ...

    async def reply(self, system_prompt: str, history: Sequence[ConversationTurn], message: str) -> str: ...


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """
    Return the first balanced {...} block in free text that parses as a JSON object.

    Braces inside string literals are ignored. Returns None when no candidate parses.
    """
    start = text.find("{")
    while start != -1:
        end = _matching_brace(text, start)
        if end is None:
            return None
        try:
            parsed = json.loads(text[start : end + 1])
        except ValueError:
            parsed = None
        if isinstance(parsed, dict):
            return parsed
        start = text.find("{", start + 1)
    return None


def _matching_brace(text: str, start: int) -> Optional[int]:
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return None


class IntentClassifier:
    """Classifies utterances through a text-generation backend; failures degrade to no intent"""

    def __init__(self, generator: TextGenerator):
        self.generator = generator

    def build_prompt(self, utterance: str, history: Sequence[ConversationTurn] = ()) -> str:
        context = ""
        recent = list(history)[-HISTORY_CONTEXT_TURNS:]
        if recent:
            lines = "\n".join(f"{turn.role}: {turn.content}" for turn in recent)
            context = f"\nConversation so far:\n{lines}\n"
        return CLASSIFICATION_PROMPT.format(context=context, message=utterance)

    async def classify(self, utterance: str, history: Sequence[ConversationTurn] = ()) -> BankingAction:
        if not utterance.strip():
            return BankingAction.none()

        try:
            text = await self.generator.generate(self.build_prompt(utterance, history))
        except Exception as e:
            classifier_fallback_counter.labels(reason="unavailable").inc()
            logger.warning("Intent classification unavailable", extra={"error": str(e)})
            return BankingAction.none()

        parsed = extract_json_object(text or "")
        if parsed is None:
            classifier_fallback_counter.labels(reason="unparseable").inc()
            logger.info("Classifier response was not JSON", extra={"response": text[:200] if text else ""})
            return BankingAction.none()

        try:
            action = BankingAction.from_payload(parsed)
        except (ValueError, AttributeError, TypeError):
            classifier_fallback_counter.labels(reason="unknown_action").inc()
            logger.info("Classifier returned unknown action", extra={"action": str(parsed.get("type"))})
            return BankingAction.none()

        if action.type is ActionType.NONE:
            return BankingAction.none()

        source_text = " ".join([utterance] + [turn.content for turn in history]).lower()
        action.params = _drop_fabricated_identifiers(action.params, source_text)
        logger.info("Classified banking intent", extra={"action": action.type.value})
        return action


def _drop_fabricated_identifiers(params: ActionParams, source_text: str) -> ActionParams:
    """Identifiers the user never typed are discarded"""
    if params.recipient_address and params.recipient_address.lower() not in source_text:
        params.recipient_address = None
    if params.bank_account_id and params.bank_account_id.lower() not in source_text:
        params.bank_account_id = None
    return params
