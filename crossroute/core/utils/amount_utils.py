from __future__ import annotations

from decimal import Decimal, localcontext

from crossroute.core.errors import InvalidRequest

BPS_DENOMINATOR: int = 10_000
_HUNDRED = Decimal(100)


def _exact_ratio(value: Decimal) -> tuple[int, int]:
    """Numerator and denominator of a finite decimal; no context rounding involved."""
    value = Decimal(value)
    if not value.is_finite():
        raise InvalidRequest(f"Amount must be a finite number, got {value}")
    return value.as_integer_ratio()


def to_base_units(amount: Decimal, decimals: int) -> int:
    """Convert a human amount into integer base units, flooring dust beyond `decimals`."""
    numerator, denominator = _exact_ratio(amount)
    return (numerator * 10 ** int(decimals)) // denominator


def from_base_units(units: int, decimals: int) -> Decimal:
    """Convert integer base units back to a human amount."""
    units = int(units)
    with localcontext() as ctx:
        ctx.prec = max(28, len(str(abs(units))) + 1)
        return Decimal(units).scaleb(-int(decimals))


def bps_of(amount_units: int, bps: int) -> int:
    """Return `amount * bps / 10000` in base units, floored."""
    return (int(amount_units) * int(bps)) // BPS_DENOMINATOR


def protocol_fee(amount: Decimal, bps: int) -> Decimal:
    """Protocol fee on a human amount, kept exact."""
    amount = Decimal(amount)
    with localcontext() as ctx:
        ctx.prec = max(28, len(amount.as_tuple().digits) + len(str(abs(int(bps)))) + 1)
        return (amount * int(bps)).scaleb(-4)


def validate_slippage_percent(slippage_percent: Decimal) -> Decimal:
    value = Decimal(slippage_percent)
    if not value.is_finite() or value < 0 or value > _HUNDRED:
        raise InvalidRequest(f"Slippage percent must be within [0, 100], got {slippage_percent}")
    return value


def compute_min_amount_out(amount_units: int, slippage_percent: Decimal) -> int:
    """
    Minimum acceptable output after slippage, in base units.

    Notes:
        Computed on exact integer ratios and floored, so any positive slippage on a positive
        amount yields a value strictly below `amount_units`, however small the slippage, and
        zero slippage returns `amount_units` unchanged.
    """
    if amount_units < 0:
        raise InvalidRequest("Amount must not be negative")
    numerator, denominator = validate_slippage_percent(slippage_percent).as_integer_ratio()
    scale = 100 * denominator
    return int(amount_units) * (scale - numerator) // scale
