"""Deposit to a user's wallet through a verified recipient address"""

import logging
from decimal import Decimal
from typing import Optional

from flowsend_gateway.domain.models import Transfer
from flowsend_gateway.infrastructure.clients.ledger import LedgerClient

logger = logging.getLogger(__name__)


async def transfer_to_wallet(
    ledger: LedgerClient,
    amount: Decimal,
    user_address: str,
    chain: str = "BASE",
    idempotency_key: Optional[str] = None,
) -> Transfer:
    """
    Move USDC from the ledger account to `user_address`.

    The address is matched case-insensitively against existing recipient
    addresses on `chain`; a new recipient is registered only if none matches.

    Raises:
        LedgerAPIError: Any ledger call failed
        ConfigurationError: Ledger is not configured
    """
    recipients = await ledger.list_recipient_addresses()
    existing = next(
        (r for r in recipients if r.address.lower() == user_address.lower() and r.chain == chain),
        None,
    )

    if existing:
        address_id = existing.id
    else:
        created = await ledger.create_recipient_address(
            address=user_address,
            chain=chain,
            currency="USD",
            description=f"Base Wallet: {user_address}",
        )
        address_id = created.id
        logger.info("Registered recipient address", extra={"address_id": address_id, "chain": chain})

    return await ledger.create_transfer(address_id, amount, idempotency_key=idempotency_key)
