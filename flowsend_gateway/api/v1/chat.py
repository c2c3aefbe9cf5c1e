"""POST /v1/chat - conversational banking endpoint"""

import logging
import time

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from flowsend_gateway.api.dependencies import (
    get_conversation_responder,
    get_intent_classifier,
    get_orchestrator,
    get_request_id,
    get_text_generator,
)
from flowsend_gateway.api.errors import not_configured
from flowsend_gateway.api.v1.schemas import ChatRequest, ChatResponse
from flowsend_gateway.domain.conversation import ConversationResponder
from flowsend_gateway.domain.intent import IntentClassifier
from flowsend_gateway.domain.models import ActionType, BankingAction, ConversationTurn
from flowsend_gateway.domain.orchestrator import ActionOrchestrator
from flowsend_gateway.infrastructure.clients.text_generation import GeminiTextGenerator
from flowsend_gateway.infrastructure.observability.logging import log_action_outcome

router = APIRouter()


@router.post("/chat", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    request: Request,
    generator: GeminiTextGenerator = Depends(get_text_generator),
    classifier: IntentClassifier = Depends(get_intent_classifier),
    responder: ConversationResponder = Depends(get_conversation_responder),
    orchestrator: ActionOrchestrator = Depends(get_orchestrator),
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
):
    """
    Handle one chat turn.

    Flow:
    1. Confirm path: `{confirm: true, action}` executes the action directly
    2. Otherwise classify the last user message (earlier turns as context)
    3. Banking intent: run the orchestrator and return its reply
    4. No banking intent: general conversational reply over the visible history
    """
    start_time = time.time()
    request_id = get_request_id(request)

    if body.confirm:
        if not body.action:
            raise HTTPException(status_code=400, detail="Missing 'action' for confirmation")
        try:
            action = BankingAction.from_payload(body.action)
        except (ValueError, AttributeError, TypeError):
            raise HTTPException(status_code=400, detail="Unknown action type")

        outcome = await orchestrator.handle(
            action, body.wallet_address, confirmed=True, idempotency_key=idempotency_key
        )
        log_action_outcome(
            request_id,
            action.type.value,
            outcome.state.value,
            (time.time() - start_time) * 1000,
            wallet_address=body.wallet_address,
            reference_id=outcome.reference_id,
        )
        return ChatResponse.from_outcome(outcome, executed=True)

    if not body.messages:
        raise HTTPException(status_code=400, detail="Missing 'messages' in request body")

    if not generator.is_configured:
        logging.error("Chat requested without text generation backend", extra={"request_id": request_id})
        raise not_configured("GEMINI_API_KEY is required")

    turns = [ConversationTurn(role=m.role, content=m.content) for m in body.messages]
    last_message = turns[-1].content

    action = await classifier.classify(last_message, turns[:-1])

    if action.type is ActionType.NONE:
        reply = await responder.respond(turns, body.wallet_address)
        return ChatResponse(reply=reply)

    outcome = await orchestrator.handle(action, body.wallet_address, idempotency_key=idempotency_key)
    log_action_outcome(
        request_id,
        action.type.value,
        outcome.state.value,
        (time.time() - start_time) * 1000,
        wallet_address=body.wallet_address,
        reference_id=outcome.reference_id,
    )
    return ChatResponse.from_outcome(outcome)
