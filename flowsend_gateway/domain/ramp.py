"""Hosted onramp/offramp URL construction with secure and fallback modes"""

import json
import logging
from decimal import Decimal
from typing import Iterable, List, Optional, Protocol, Tuple, Union
from urllib.parse import urlencode, urlsplit

from flowsend_gateway.domain.exceptions import ConfigurationError, InvalidParametersError, MinimumAmountError
from flowsend_gateway.domain.models import (
    IssuanceFailure,
    RampDirection,
    RampMode,
    RampRequest,
    RampUrl,
    SessionCredential,
)
from flowsend_gateway.infrastructure.observability.metrics import record_ramp_url
from flowsend_gateway.utils.amounts import format_amount

logger = logging.getLogger(__name__)

ONRAMP_BASE_URL = "https://pay.coinbase.com/buy/select-asset"
OFFRAMP_BASE_URL = "https://pay.coinbase.com/v3/sell/input"
PARTNER_USER_ID_MAX_LENGTH = 49


def url_origin(url: Optional[str]) -> Optional[str]:
    """scheme://host[:port] of an absolute http(s) URL, lowercased; None otherwise"""
    if not url:
        return None
    try:
        parts = urlsplit(url.strip())
        hostname = parts.hostname
    except ValueError:
        return None
    if parts.scheme.lower() not in ("http", "https") or not hostname:
        return None
    return f"{parts.scheme.lower()}://{parts.netloc.lower()}"


class SessionIssuer(Protocol):
    async def issue(
        self, addresses: List[dict], assets: Optional[List[str]] = None
    ) -> Union[SessionCredential, IssuanceFailure]: ...


class RampUrlBuilder:
    """
    Builds hosted ramp session URLs.

    Secure mode appends the session token. Fallback mode is used when no
    usable credential is available and identifies the app by its static id
    with explicit addresses/assets instead. Both modes always carry
    partnerUserId and redirectUrl.
    """

    def __init__(
        self,
        app_id: Optional[str],
        onramp_redirect_url: Optional[str],
        offramp_redirect_url: Optional[str],
        min_amount: Decimal = Decimal("10"),
        allowed_redirect_origins: Iterable[str] = (),
    ):
        self.app_id = app_id
        self.onramp_redirect_url = onramp_redirect_url
        self.offramp_redirect_url = offramp_redirect_url
        self.min_amount = min_amount
        # Configured redirect targets are always allowed
        candidates = [onramp_redirect_url, offramp_redirect_url, *allowed_redirect_origins]
        self.allowed_redirect_origins = {origin for origin in map(url_origin, candidates) if origin}

    def is_allowed_redirect(self, url: str) -> bool:
        return url_origin(url) in self.allowed_redirect_origins

    def validate(self, request: RampRequest) -> None:
        """Reject requests that must never reach the token endpoint"""
        if not request.user_address:
            raise InvalidParametersError("Missing required parameters: amount and userAddress")
        if request.fiat_amount is None:
            raise InvalidParametersError("Missing required parameters: amount and userAddress")
        if request.fiat_amount < self.min_amount:
            raise MinimumAmountError(format_amount(self.min_amount))
        if request.redirect_url and not self.is_allowed_redirect(request.redirect_url):
            logger.warning(
                "Rejected ramp redirect URL", extra={"redirect_origin": url_origin(request.redirect_url)}
            )
            raise InvalidParametersError("Redirect URL is not allowed")

    def redirect_url_for(self, request: RampRequest) -> str:
        default = self.onramp_redirect_url if request.direction is RampDirection.ONRAMP else self.offramp_redirect_url
        redirect_url = default
        if request.redirect_url:
            if not self.is_allowed_redirect(request.redirect_url):
                raise InvalidParametersError("Redirect URL is not allowed")
            redirect_url = request.redirect_url
        if not redirect_url:
            raise ConfigurationError("Ramp redirect URL is not configured")
        return redirect_url

    def build_url(self, request: RampRequest) -> RampUrl:
        self.validate(request)
        redirect_url = self.redirect_url_for(request)
        token = request.credential.token if request.credential else None

        if token:
            mode = RampMode.SECURE
            params: List[Tuple[str, str]] = [("sessionToken", token)]
        else:
            mode = RampMode.FALLBACK
            params = []
            if self.app_id:
                params.append(("appId", self.app_id))
            else:
                logger.warning("Ramp app id is not configured; fallback URL carries no appId")
            params.append(("addresses", json.dumps({request.user_address: [request.network]}, separators=(",", ":"))))
            params.append(("assets", json.dumps([request.asset], separators=(",", ":"))))

        if request.direction is RampDirection.ONRAMP:
            base_url = ONRAMP_BASE_URL
            params.append(("presetFiatAmount", format_amount(request.fiat_amount)))
            params.append(("fiatCurrency", request.fiat_currency))
            params.append(("defaultNetwork", request.network))
            params.append(("defaultAsset", request.asset))
            if request.method:
                params.append(("defaultPaymentMethod", request.method.upper()))
        else:
            base_url = OFFRAMP_BASE_URL
            params.append(("defaultAsset", request.asset))
            params.append(("defaultNetwork", request.network))
            if request.method:
                params.append(("defaultCashoutMethod", request.method.upper()))
            params.append(("presetFiatAmount", format_amount(request.fiat_amount)))

        params.append(("partnerUserId", request.user_address[:PARTNER_USER_ID_MAX_LENGTH]))
        params.append(("redirectUrl", redirect_url))

        record_ramp_url(request.direction.value, mode.value)
        logger.info("Generated ramp URL", extra={"direction": request.direction.value, "mode": mode.value})
        return RampUrl(url=f"{base_url}?{urlencode(params)}", mode=mode)


class RampSessionService:
    """Validates, issues a fresh credential, then builds the URL (falling back on issuance failure)"""

    def __init__(self, issuer: SessionIssuer, builder: RampUrlBuilder):
        self.issuer = issuer
        self.builder = builder

    async def open_session(self, request: RampRequest) -> RampUrl:
        self.builder.validate(request)

        outcome = await self.issuer.issue(
            [{"address": request.user_address, "blockchains": [request.network]}],
            [request.asset],
        )
        if isinstance(outcome, SessionCredential) and outcome.token:
            request.credential = outcome
        else:
            request.credential = None
            reason = outcome.reason if isinstance(outcome, IssuanceFailure) else "empty token"
            logger.warning("Session token unavailable, using fallback mode", extra={"reason": reason})

        return self.builder.build_url(request)
