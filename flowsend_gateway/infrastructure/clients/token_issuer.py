"""Session token issuance for hosted onramp/offramp sessions"""

import logging
import secrets
import time
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlsplit

import httpx
import jwt

from flowsend_gateway.domain.exceptions import ConfigurationError
from flowsend_gateway.domain.models import IssuanceFailure, SessionCredential, SESSION_TOKEN_TTL
from flowsend_gateway.infrastructure.observability.metrics import token_issuance_counter

logger = logging.getLogger(__name__)


class CredentialIssuer:
    """
    Exchanges a self-signed ES256 JWT for a short-lived session token.

    The JWT is valid for 120 seconds and carries a fresh random nonce per call.
    `issue` never raises: every failure comes back as IssuanceFailure so the
    caller can fall back to non-session URLs.
    """

    def __init__(
        self,
        key_name: str | None,
        private_key: str | None,
        token_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.key_name = key_name
        self._private_key = private_key
        self.token_url = token_url
        self.timeout = timeout
        self.transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.key_name and self._private_key)

    def __repr__(self) -> str:
        return f"CredentialIssuer(key_name={self.key_name!r}, token_url={self.token_url!r})"

    @property
    def resource_uri(self) -> str:
        parts = urlsplit(self.token_url)
        return f"POST {parts.netloc}{parts.path}"

    def _signing_key(self) -> str:
        if not self.is_configured:
            raise ConfigurationError("Ramp API credentials not configured")
        key = self._private_key
        if "\\n" in key:
            key = key.replace("\\n", "\n")
        if "-----BEGIN" not in key:
            raise ConfigurationError("Private key must be in PEM format")
        return key

    def build_bearer_token(self, now: int | None = None) -> str:
        """Assemble and sign header.claims.signature"""
        issued_at = int(time.time()) if now is None else now
        claims = {
            "iss": self.key_name,
            "nbf": issued_at,
            "exp": issued_at + int(SESSION_TOKEN_TTL.total_seconds()),
            "sub": self.key_name,
            "uri": self.resource_uri,
        }
        headers = {
            "kid": self.key_name,
            "nonce": secrets.token_hex(16),
            "typ": "JWT",
        }
        return jwt.encode(claims, self._signing_key(), algorithm="ES256", headers=headers)

    async def issue(
        self,
        addresses: List[Dict[str, Any]],
        assets: Optional[List[str]] = None,
    ) -> Union[SessionCredential, IssuanceFailure]:
        """
        Request a session token for the given addresses.

        Args:
            addresses: [{"address": "0x...", "blockchains": ["base"]}, ...]
            assets: Optional asset allow-list, e.g. ["USDC"]
        """
        if not self.is_configured:
            token_issuance_counter.labels(outcome="not_configured").inc()
            return IssuanceFailure(reason="Ramp API credentials not configured")

        try:
            bearer = self.build_bearer_token()
        except (ConfigurationError, ValueError, TypeError, jwt.PyJWTError) as e:
            token_issuance_counter.labels(outcome="failed").inc()
            # exception text may contain key material: log the type only
            logger.error("Session JWT signing failed", extra={"error_type": type(e).__name__})
            return IssuanceFailure(reason=f"JWT generation failed: {type(e).__name__}")

        body: Dict[str, Any] = {"addresses": addresses}
        if assets:
            body["assets"] = assets

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(
                    self.token_url,
                    json=body,
                    headers={"Authorization": f"Bearer {bearer}"},
                )
            except httpx.RequestError as e:
                token_issuance_counter.labels(outcome="failed").inc()
                logger.warning("Token endpoint unreachable", extra={"error": str(e)})
                return IssuanceFailure(reason=f"Token endpoint unreachable: {e}")

        if not response.is_success:
            token_issuance_counter.labels(outcome="failed").inc()
            reason = _error_text(response)
            logger.warning("Token endpoint rejected request", extra={"status": response.status_code, "error": reason})
            return IssuanceFailure(reason=reason, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError:
            data = None
        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            token_issuance_counter.labels(outcome="failed").inc()
            return IssuanceFailure(reason="No token received from token endpoint", status_code=response.status_code)

        token_issuance_counter.labels(outcome="issued").inc()
        logger.info("Session token issued", extra={"address_count": len(addresses)})
        return SessionCredential.issued_now(token, data.get("channel_id"))


def _error_text(response: httpx.Response) -> str:
    fallback = f"Token endpoint failed with status {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        return response.text or fallback
    if isinstance(body, dict):
        return body.get("message") or body.get("error") or fallback
    return fallback
