"""Wallet capability probing and paymaster JSON-RPC clients"""

import itertools
import logging
from typing import Any, Dict, List, Optional

import httpx

from flowsend_gateway.domain.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENTRY_POINT_V06 = "0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789"

_request_ids = itertools.count(1)


class JsonRpcError(Exception):
    """JSON-RPC endpoint answered with an error object"""

    def __init__(self, code: Optional[int], message: str):
        self.code = code
        super().__init__(message)


async def _json_rpc(
    url: str,
    method: str,
    params: List[Any],
    timeout: float,
    transport: httpx.AsyncBaseTransport | None,
) -> Any:
    payload = {"jsonrpc": "2.0", "id": next(_request_ids), "method": method, "params": params}
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        response = await client.post(url, json=payload)
        response.raise_for_status()
        body = response.json()
    if body.get("error"):
        error = body["error"]
        raise JsonRpcError(error.get("code"), error.get("message", "JSON-RPC error"))
    return body.get("result")


class WalletRpcClient:
    """Queries wallet_getCapabilities (EIP-5792) from a wallet RPC endpoint"""

    def __init__(self, rpc_url: str | None, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.transport = transport

    async def get_capabilities(self, address: str) -> Dict[str, Any]:
        if not self.rpc_url:
            raise ConfigurationError("Wallet RPC URL is not configured")
        result = await _json_rpc(self.rpc_url, "wallet_getCapabilities", [address], self.timeout, self.transport)
        return result or {}


class ReportedCapabilities:
    """Capabilities already reported by the user's wallet in the browser"""

    def __init__(self, capabilities: Dict[str, Any]):
        self.capabilities = capabilities

    async def get_capabilities(self, address: str) -> Dict[str, Any]:
        return self.capabilities


class PaymasterClient:
    """Requests sponsorship data from an ERC-7677 paymaster service"""

    def __init__(
        self,
        service_url: str | None,
        entry_point: str = ENTRY_POINT_V06,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.service_url = service_url
        self.entry_point = entry_point
        self.timeout = timeout
        self.transport = transport

    async def get_sponsorship(
        self,
        sender: str,
        target: str,
        value: int,
        call_data: str,
        chain_id: int,
    ) -> Optional[Dict[str, Any]]:
        """
        Ask the paymaster for stub data covering this exact call.

        Returns:
            Paymaster data when the call would be sponsored, None when declined

        Raises:
            ConfigurationError: No paymaster service configured
            httpx.HTTPError: Transport or HTTP failure
        """
        if not self.service_url:
            raise ConfigurationError("Paymaster service URL is not configured")
        user_operation = {
            "sender": sender,
            "nonce": "0x0",
            "callData": call_data,
            "target": target,
            "value": hex(value),
        }
        try:
            result = await _json_rpc(
                self.service_url,
                "pm_getPaymasterStubData",
                [user_operation, self.entry_point, hex(chain_id), {}],
                self.timeout,
                self.transport,
            )
        except JsonRpcError as e:
            logger.info("Paymaster declined sponsorship", extra={"code": e.code, "error": str(e)})
            return None
        return result or None
