# solana_paywall/x402/units.py
"""
Amount conversions between an asset's decimal unit and its smallest unit.

Amounts are handled as decimal.Decimal throughout. Floats are converted
through their shortest string form, so 0.3 stays 0.3 and never becomes
0.299999... before flooring.
"""
from decimal import Context, Decimal, InvalidOperation, ROUND_FLOOR
from typing import Union

from solana_paywall.x402.constants import USDC_DECIMALS

AmountLike = Union[str, int, float, Decimal]


def parse_amount(amount: AmountLike) -> Decimal:
    """
    Parse a human decimal amount.

    Args:
        amount: Amount as str, int, float or Decimal (e.g. "0.01")

    Returns:
        The amount as a Decimal

    Raises:
        ValueError: If the amount is not a finite, non-negative number
    """
    if isinstance(amount, bool):
        raise ValueError(f"Invalid amount: {amount!r}")

    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e

    if not value.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")
    if value < 0:
        raise ValueError(f"Amount must not be negative: {amount!r}")

    return value


def to_smallest_unit(amount: AmountLike, decimals: int = USDC_DECIMALS) -> int:
    """Convert a decimal amount to the asset's smallest unit, flooring any excess precision."""
    value = parse_amount(amount)
    # Wide enough that scaling never rounds before the floor below
    context = Context(prec=max(28, len(value.as_tuple().digits) + decimals))
    value = value.scaleb(decimals, context=context)
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def from_smallest_unit(amount: int, decimals: int = USDC_DECIMALS) -> Decimal:
    """Convert a smallest-unit integer back to the asset's decimal unit."""
    return Decimal(int(amount)) / (Decimal(10) ** decimals)


def network_identifier(network: str) -> str:
    """Render the x402 network name, e.g. "solana-devnet"."""
    return f"solana-{network}"
