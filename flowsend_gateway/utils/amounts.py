"""Amount parsing/formatting and ERC-20 call encoding utilities"""

from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Any, Optional

USDC_DECIMALS = 6
ERC20_TRANSFER_SELECTOR = "0xa9059cbb"  # transfer(address,uint256)


def parse_amount(value: Any) -> Optional[Decimal]:
    """Parse a user/model supplied amount; returns None unless it is a positive finite number"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        value = repr(value)
    text = str(value).strip().replace(",", "").lstrip("$")
    if not text:
        return None
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    return amount


def format_amount(amount: Decimal) -> str:
    """Human-readable amount without trailing zeros (100, 12.5)"""
    normalized = amount.normalize()
    return f"{normalized:f}"


def format_ledger_amount(amount: Decimal) -> str:
    """Two-decimal string expected by the ledger API"""
    return f"{amount.quantize(Decimal('0.01'), rounding=ROUND_DOWN):f}"


def to_base_units(amount: Decimal, decimals: int = USDC_DECIMALS) -> int:
    """Convert a token amount to integer base units (USDC has 6 decimals)"""
    scaled = amount.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"Amount {amount} has more than {decimals} decimal places")
    return int(scaled)


def encode_erc20_transfer(recipient: str, amount_base_units: int) -> str:
    """ABI-encode transfer(recipient, amount) call data"""
    address = recipient.lower()
    if address.startswith("0x"):
        address = address[2:]
    if len(address) != 40:
        raise ValueError(f"Invalid recipient address: {recipient}")
    int(address, 16)  # rejects non-hex characters
    if amount_base_units < 0:
        raise ValueError("Amount must not be negative")
    return f"{ERC20_TRANSFER_SELECTOR}{address.rjust(64, '0')}{amount_base_units:064x}"
