"""Exact conversions between decimal amounts and smallest-unit integers."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal, InvalidOperation, localcontext
from functools import total_ordering

NATIVE_DECIMALS = 18


def to_smallest_unit(
    amount: str | Decimal | int,
    decimals: int = NATIVE_DECIMALS,
    *,
    signed: bool = True,
) -> int:
    """Convert a decimal amount to an integer number of smallest units.

    Args:
        amount: Decimal string (``"1.5"``), ``Decimal`` or whole-unit ``int``.
        decimals: Decimal precision of the currency.
        signed: When False, any negative amount is rejected, including one
            that would truncate to zero.

    Returns:
        The amount expressed in smallest units.

    Notes:
        - Digits beyond ``decimals`` are truncated toward zero, so an amount
          below one smallest unit converts to 0.
        - Floats are rejected; pass the decimal string instead.
    """
    if isinstance(amount, (float, bool)):
        raise TypeError(f"Refusing to convert {type(amount).__name__} {amount!r}")
    if decimals < 0:
        raise ValueError(f"decimals must be non-negative, got {decimals}")

    try:
        value = Decimal(amount.strip() if isinstance(amount, str) else amount)
    except InvalidOperation as e:
        raise ValueError(f"Invalid decimal amount: {amount!r}") from e
    if not value.is_finite():
        raise ValueError(f"Invalid decimal amount: {amount!r}")
    if not signed and value < 0:
        raise ValueError(f"Amount must be non-negative, got {amount!r}")

    with localcontext() as ctx:
        ctx.prec = len(value.as_tuple().digits) + decimals + 32
        scaled = value.scaleb(decimals).to_integral_value(rounding=ROUND_DOWN)
    return int(scaled)


def format_units(value: int, decimals: int = NATIVE_DECIMALS) -> str:
    """Render a smallest-unit integer as a decimal string.

    Always keeps at least one fractional digit (``1`` ether -> ``"1.0"``).
    """
    sign = "-" if value < 0 else ""
    whole, fraction = divmod(abs(value), 10**decimals)
    fraction_str = str(fraction).rjust(decimals, "0").rstrip("0") if decimals else ""
    return f"{sign}{whole}.{fraction_str or '0'}"


@total_ordering
@dataclass(frozen=True, slots=True)
class DecimalAmount:
    """Fixed-point quantity stored as an integer count of smallest units."""

    raw: int
    decimals: int = NATIVE_DECIMALS

    @classmethod
    def from_decimal(
        cls, amount: str | Decimal | int, decimals: int = NATIVE_DECIMALS
    ) -> DecimalAmount:
        return cls(to_smallest_unit(amount, decimals), decimals)

    @classmethod
    def zero(cls, decimals: int = NATIVE_DECIMALS) -> DecimalAmount:
        return cls(0, decimals)

    def _coerce(self, other: object) -> int:
        if not isinstance(other, DecimalAmount):
            raise TypeError(f"Cannot combine DecimalAmount with {type(other).__name__}")
        if other.decimals != self.decimals:
            raise ValueError(
                f"Decimal precision mismatch: {self.decimals} != {other.decimals}"
            )
        return other.raw

    def __add__(self, other: DecimalAmount) -> DecimalAmount:
        return DecimalAmount(self.raw + self._coerce(other), self.decimals)

    def __sub__(self, other: DecimalAmount) -> DecimalAmount:
        return DecimalAmount(self.raw - self._coerce(other), self.decimals)

    def __lt__(self, other: DecimalAmount) -> bool:
        return self.raw < self._coerce(other)

    def __bool__(self) -> bool:
        return self.raw != 0

    def __str__(self) -> str:
        return format_units(self.raw, self.decimals)

    @property
    def is_negative(self) -> bool:
        return self.raw < 0

    def to_decimal(self) -> Decimal:
        return Decimal(self.raw).scaleb(-self.decimals)

    def to_float(self) -> float:
        """Approximate value for display. Never feed this back into arithmetic."""
        return float(self.to_decimal())

    def to_hex(self) -> str:
        """Hex quantity without leading zeros, as used in transaction requests."""
        return hex(self.raw)
