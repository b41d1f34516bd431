"""Exact conversions between native integer token amounts and decimal values.

Raw on-chain amounts are integers scaled by ``10**decimals``. Converting them
with float math loses precision well before 18 decimals, so every conversion
here works on integers (``divmod``) or on ``Decimal`` values built from
strings. Arithmetic on the resulting decimals goes through ``DECIMAL_CONTEXT``,
whose precision is wide enough for any uint256 value with 27 fractional
digits.
"""

from collections.abc import Iterable
from decimal import ROUND_DOWN, Context, Decimal, InvalidOperation

from defi_portfolio_tracker.core.errors import LedgerOverflowError

UINT256_MAX = 2**256 - 1

# 18-decimal fixed point used by the ledger for entry prices
WAD_DECIMALS = 18

# Aave rates are expressed in ray (27 decimals)
RAY_DECIMALS = 27

DECIMAL_CONTEXT = Context(prec=120)


def format_units(raw: int | str, decimals: int) -> str:
    """
    Format a raw integer amount as an exact decimal string.

    Parameters
    ----------
    raw : int | str
        Amount in native units (e.g. wei). Integer strings are accepted.
    decimals : int
        Token decimals

    Returns
    -------
    str
        Human-readable amount without trailing fractional zeros

    Examples
    --------
    >>> format_units(1234567890123456789, 18)
    '1.234567890123456789'
    >>> format_units(1500000, 6)
    '1.5'

    """
    if decimals < 0:
        msg = f"decimals must be non-negative, got {decimals}"
        raise ValueError(msg)

    value = int(raw)
    sign = "-" if value < 0 else ""
    whole, fraction = divmod(abs(value), 10**decimals)

    if decimals == 0 or fraction == 0:
        return f"{sign}{whole}"

    fraction_str = str(fraction).rjust(decimals, "0").rstrip("0")
    return f"{sign}{whole}.{fraction_str}"


def to_decimal(raw: int | str, decimals: int) -> Decimal:
    """Convert a raw integer amount to an exact ``Decimal``."""
    return Decimal(format_units(raw, decimals))


def parse_units(value: str | int | Decimal, decimals: int) -> int:
    """
    Convert a human-readable decimal amount to raw integer units.

    Parameters
    ----------
    value : str | int | Decimal
        Decimal amount such as ``"1.5"``. Scientific notation is accepted.
    decimals : int
        Target decimals

    Returns
    -------
    int
        Amount scaled by ``10**decimals``

    Raises
    ------
    ValueError
        If the value is not a finite number or has more fractional digits
        than ``decimals`` can hold

    """
    if isinstance(value, bool):
        msg = f"Invalid amount: {value!r}"
        raise ValueError(msg)
    if isinstance(value, int):
        return value * 10**decimals

    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation as e:
        msg = f"Invalid amount: {value!r}"
        raise ValueError(msg) from e

    if not number.is_finite():
        msg = f"Invalid amount: {value!r}"
        raise ValueError(msg)

    sign, digits, exponent = number.as_tuple()
    coefficient = int("".join(str(d) for d in digits) or "0")
    shift = exponent + decimals

    if shift >= 0:
        result = coefficient * 10**shift
    else:
        result, remainder = divmod(coefficient, 10**-shift)
        if remainder:
            msg = f"{value} has more than {decimals} decimal places"
            raise ValueError(msg)

    return -result if sign else result


def truncate_units(value: Decimal, decimals: int) -> int:
    """
    Scale a decimal to raw integer units, dropping digits beyond ``decimals``.

    For derived amounts such as pro-rata pool balances, which can carry more
    fractional digits than the token has.

    """
    scaled = DECIMAL_CONTEXT.scaleb(value, decimals)
    return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def fixed_point_product(
    amount: int,
    amount_decimals: int,
    price: int,
    price_decimals: int = WAD_DECIMALS,
) -> Decimal:
    """
    Multiply two fixed-point integers and return the exact decimal product.

    Used to value a ledger position as ``amount x entry_price`` without
    intermediate rounding.

    """
    return to_decimal(amount * price, amount_decimals + price_decimals)


def multiply(a: Decimal, b: Decimal) -> Decimal:
    """Multiply two decimals in the wide context."""
    return DECIMAL_CONTEXT.multiply(a, b)


def divide(a: Decimal, b: Decimal) -> Decimal:
    """Divide two decimals in the wide context."""
    return DECIMAL_CONTEXT.divide(a, b)


def total(values: Iterable[Decimal]) -> Decimal:
    """Sum decimals in the wide context."""
    result = Decimal(0)
    for value in values:
        result = DECIMAL_CONTEXT.add(result, value)
    return result


def ratio_percent(part: int, whole: int) -> Decimal | None:
    """Return ``part / whole * 100`` for raw integers, or None when ``whole`` is zero."""
    if whole == 0:
        return None
    return divide(multiply(Decimal(part), Decimal(100)), Decimal(whole))


def check_uint256(value: int, field: str) -> int:
    """
    Validate that a value fits the ledger's uint256 representation.

    Raises
    ------
    LedgerOverflowError
        If the value is negative or larger than ``2**256 - 1``

    """
    if value < 0 or value > UINT256_MAX:
        msg = f"{field} {value} is not representable as uint256"
        raise LedgerOverflowError(msg)
    return value
