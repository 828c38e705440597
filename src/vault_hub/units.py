from __future__ import annotations

from decimal import Decimal, InvalidOperation, localcontext

from .errors import InvalidConfigurationError

# uint256 needs 78 significant digits
UINT256_PRECISION = 78


def parse_units(amount: str | Decimal | int, decimals: int) -> int:
    """Convert a human-readable token amount to integer base units.

    Args:
        amount: Amount expressed in whole tokens, e.g. ``"12.5"``.
        decimals: Decimal precision of the token.

    Returns:
        The amount in base units (``amount * 10**decimals``).

    Raises:
        InvalidConfigurationError: If ``amount`` is not a number or carries
            more fractional digits than the token supports.
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation as e:
        raise InvalidConfigurationError(f"Invalid amount: {amount!r}") from e

    if not value.is_finite():
        raise InvalidConfigurationError(f"Invalid amount: {amount!r}")

    with localcontext() as ctx:
        ctx.prec = UINT256_PRECISION
        scaled = value.scaleb(decimals)
        if scaled != scaled.to_integral_value():
            raise InvalidConfigurationError(
                f"Amount {amount} has more than {decimals} decimal places"
            )
        return int(scaled)


def format_units(raw: int, decimals: int) -> Decimal:
    """Convert integer base units to a Decimal amount of whole tokens."""
    with localcontext() as ctx:
        ctx.prec = UINT256_PRECISION
        return Decimal(raw).scaleb(-decimals)
