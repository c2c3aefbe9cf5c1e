"""POST /v1/sponsorship/check - gas sponsorship eligibility for a USDC transfer"""

from fastapi import APIRouter, Depends

from flowsend_gateway.api.dependencies import get_paymaster_client, get_settings, get_wallet_rpc_client
from flowsend_gateway.api.v1.schemas import SponsorshipRequest, SponsorshipResponse
from flowsend_gateway.config import Settings
from flowsend_gateway.domain.sponsorship import SponsorshipChecker, evaluate_transfer
from flowsend_gateway.infrastructure.clients.wallet import PaymasterClient, ReportedCapabilities, WalletRpcClient

router = APIRouter()


@router.post("/sponsorship/check", response_model=SponsorshipResponse)
async def check_sponsorship(
    body: SponsorshipRequest,
    config: Settings = Depends(get_settings),
    wallet_client: WalletRpcClient = Depends(get_wallet_rpc_client),
    paymaster: PaymasterClient = Depends(get_paymaster_client),
):
    """
    Decide whether a USDC transfer would be fee-free.

    Uses the capabilities the wallet reported with the request when present,
    otherwise probes the configured wallet RPC endpoint. Always answers 200:
    probe failures come back as eligible=false with the reason.
    """
    capabilities = ReportedCapabilities(body.capabilities) if body.capabilities is not None else wallet_client
    checker = SponsorshipChecker(capabilities, paymaster, config.chain_id)
    decision = await evaluate_transfer(checker, config.usdc_contract_address, body.sender, body.recipient, body.amount)
    return SponsorshipResponse(eligible=decision.eligible, reason=decision.reason)
