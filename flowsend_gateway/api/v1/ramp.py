"""Hosted ramp endpoints - POST /v1/session, /v1/onramp, /v1/offramp"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from flowsend_gateway.api.dependencies import get_credential_issuer, get_ramp_service, get_request_id
from flowsend_gateway.api.errors import not_configured, upstream_failed
from flowsend_gateway.api.v1.schemas import (
    OfframpRequest,
    OnrampRequest,
    RampResponse,
    SessionTokenRequest,
    SessionTokenResponse,
)
from flowsend_gateway.domain.exceptions import ConfigurationError, InvalidParametersError, MinimumAmountError
from flowsend_gateway.domain.models import (
    IssuanceFailure,
    RampDirection,
    RampMode,
    RampRequest,
    SESSION_TOKEN_TTL,
)
from flowsend_gateway.domain.ramp import RampSessionService
from flowsend_gateway.infrastructure.clients.token_issuer import CredentialIssuer
from flowsend_gateway.utils.amounts import format_amount, parse_amount

router = APIRouter()


@router.post("/session", response_model=SessionTokenResponse)
async def create_session_token(
    body: SessionTokenRequest,
    issuer: CredentialIssuer = Depends(get_credential_issuer),
):
    """Issue a short-lived session token for the given addresses"""
    if not body.addresses:
        raise HTTPException(status_code=400, detail="At least one address is required")
    if not issuer.is_configured:
        raise not_configured("Ramp API credentials not configured")

    outcome = await issuer.issue([a.model_dump() for a in body.addresses], body.assets)
    if isinstance(outcome, IssuanceFailure):
        raise upstream_failed(outcome.reason)

    return SessionTokenResponse(
        success=True,
        token=outcome.token,
        channel_id=outcome.channel_id,
        expires_at=outcome.expires_at.isoformat(),
    )


async def _open_ramp(
    direction: RampDirection,
    amount,
    user_address: str | None,
    method: str,
    redirect_url: str | None,
    ramp_service: RampSessionService,
    request_id: str,
) -> RampResponse:
    if amount in (None, "") or not user_address:
        raise HTTPException(status_code=400, detail="Missing required parameters: amount and userAddress")

    fiat_amount = parse_amount(amount)
    if fiat_amount is None:
        raise HTTPException(status_code=400, detail=str(MinimumAmountError(format_amount(ramp_service.builder.min_amount))))

    ramp_request = RampRequest(
        direction=direction,
        fiat_amount=fiat_amount,
        user_address=user_address,
        method=method,
        redirect_url=redirect_url,
    )

    try:
        ramp_url = await ramp_service.open_session(ramp_request)
    except InvalidParametersError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ConfigurationError as e:
        logging.error(f"Ramp not configured: {e}", extra={"request_id": request_id})
        raise not_configured(str(e))

    secure = ramp_url.mode is RampMode.SECURE
    shown = format_amount(fiat_amount)
    return RampResponse(
        url=ramp_url.url,
        mode=ramp_url.mode.value,
        amount=shown,
        asset=ramp_request.asset,
        network=ramp_request.network,
        method=method,
        session_token=secure,
        redirect_url=ramp_service.builder.redirect_url_for(ramp_request),
        message=f"{direction.value.capitalize()} URL generated for {shown} {ramp_request.asset} ({ramp_url.mode.value} mode)",
        expires_in=int(SESSION_TOKEN_TTL.total_seconds()) if secure else None,
    )


@router.post("/onramp", response_model=RampResponse)
async def create_onramp(
    body: OnrampRequest,
    request: Request,
    ramp_service: RampSessionService = Depends(get_ramp_service),
):
    """Build a hosted buy session URL (secure when a session token is issued, fallback otherwise)"""
    return await _open_ramp(
        RampDirection.ONRAMP,
        body.amount,
        body.user_address,
        body.payment_method,
        body.redirect_url,
        ramp_service,
        get_request_id(request),
    )


@router.post("/offramp", response_model=RampResponse)
async def create_offramp(
    body: OfframpRequest,
    request: Request,
    ramp_service: RampSessionService = Depends(get_ramp_service),
):
    """Build a hosted sell session URL (secure when a session token is issued, fallback otherwise)"""
    return await _open_ramp(
        RampDirection.OFFRAMP,
        body.amount,
        body.user_address,
        body.cashout_method,
        body.redirect_url,
        ramp_service,
        get_request_id(request),
    )
