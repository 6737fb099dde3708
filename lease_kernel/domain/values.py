"""
Values -- Fixed-precision money helpers and the ExchangeRate value object.

Responsibility:
    Provides the arithmetic every settlement and allocation computation is
    built on: Decimal coercion, rounding to a fixed scale, percentage tax
    computation, and summation. Monetary totals use scale 2; currency
    conversion rates use scale 4.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every aggregate and engine module.

Invariants enforced:
    - Amounts are always Decimal, never float. ``to_decimal`` rejects float
      input outright instead of converting it.
    - Rounding is ROUND_HALF_UP at an explicit scale. ``round_money`` and
      ``round_rate`` are the only sanctioned rounding functions.

Failure modes:
    - InvalidAmountError on float, non-numeric, NaN or infinite input.
    - InvalidAmountError from ``require_non_negative`` on negative input.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from lease_kernel.exceptions import InvalidAmountError

MONEY_SCALE = 2
RATE_SCALE = 4
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0.00")
_HUNDRED = Decimal("100")


def to_decimal(value: Decimal | int | str, field: str = "amount") -> Decimal:
    """
    Coerce a value to Decimal without passing through binary floating point.

    Preconditions:
        value is a Decimal, int, or numeric string.

    Raises:
        InvalidAmountError: for floats, booleans, non-numeric strings,
            NaN and infinities.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmountError(field, value, "float amounts are not accepted")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise InvalidAmountError(field, value, "not a number") from e
    else:
        raise InvalidAmountError(field, value, f"unsupported type {type(value).__name__}")
    if not result.is_finite():
        raise InvalidAmountError(field, value, "not a finite number")
    return result


def _quantizer(scale: int) -> Decimal:
    return Decimal(1).scaleb(-scale)


def round_money(
    value: Decimal | int | str,
    scale: int = MONEY_SCALE,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to a fixed number of fractional digits.

    Postconditions:
        Returns a Decimal with exactly ``scale`` fractional digits, so two
        calls with the same input are byte-identical when stringified.
    """
    return to_decimal(value).quantize(_quantizer(scale), rounding=rounding)


def round_rate(value: Decimal | int | str) -> Decimal:
    """Round a conversion rate to RATE_SCALE fractional digits."""
    return round_money(value, scale=RATE_SCALE)


def percentage_of(
    amount: Decimal | int | str,
    rate: Decimal | int | str,
    scale: int = MONEY_SCALE,
) -> Decimal:
    """
    Compute ``amount * rate / 100`` rounded to ``scale``.

    Used for every tax computation (invoice tax, charge line tax,
    deduction tax). The division happens in Decimal before rounding.
    """
    amount_d = to_decimal(amount, "amount")
    rate_d = to_decimal(rate, "rate")
    return round_money(amount_d * rate_d / _HUNDRED, scale)


def add(*amounts: Decimal | int | str, scale: int = MONEY_SCALE) -> Decimal:
    """Sum amounts and round the result to ``scale``."""
    return round_money(sum((to_decimal(a) for a in amounts), Decimal("0")), scale)


def sum_amounts(amounts: Iterable[Decimal], scale: int = MONEY_SCALE) -> Decimal:
    """Sum an iterable of amounts; an empty iterable sums to zero."""
    return add(*amounts, scale=scale)


def subtract(
    minuend: Decimal | int | str,
    *subtrahends: Decimal | int | str,
    scale: int = MONEY_SCALE,
) -> Decimal:
    """Subtract every subtrahend from ``minuend`` and round to ``scale``."""
    result = to_decimal(minuend)
    for s in subtrahends:
        result -= to_decimal(s)
    return round_money(result, scale)


def require_non_negative(value: Decimal | int | str, field: str) -> Decimal:
    """
    Coerce ``value`` and ensure it is >= 0.

    Raises:
        InvalidAmountError: if negative (or not a valid amount).
    """
    result = to_decimal(value, field)
    if result < 0:
        raise InvalidAmountError(field, result)
    return result


@dataclass(frozen=True, slots=True)
class ExchangeRate:
    """
    Conversion rate from a foreign currency to the base currency.

    Contract:
        1 unit of ``currency_code`` = ``rate`` units of base currency.
        The rate is held at RATE_SCALE (4) fractional digits.

    Guarantees:
        - Immutable and hashable (frozen dataclass with slots)
        - rate is a positive Decimal rounded to scale 4
        - currency_code is a three-letter uppercase code

    Non-goals:
        - Does NOT store effective dates or triangulate cross rates
    """

    currency_code: str
    rate: Decimal

    def __post_init__(self) -> None:
        code = (self.currency_code or "").upper().strip()
        if len(code) != 3 or not code.isalpha():
            raise ValueError(f"Invalid currency code: {self.currency_code!r}")
        object.__setattr__(self, "currency_code", code)

        rate = round_rate(to_decimal(self.rate, "rate"))
        if rate <= 0:
            raise InvalidAmountError("rate", rate, "exchange rate must be positive")
        object.__setattr__(self, "rate", rate)

    def convert(self, amount: Decimal | int | str) -> Decimal:
        """Convert a foreign amount to base currency, rounded to scale 2."""
        return round_money(to_decimal(amount) * self.rate)

    def __str__(self) -> str:
        return f"{self.currency_code} @ {self.rate}"
