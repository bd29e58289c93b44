"""Session pricing: hourly rate prorated by slot duration."""

from decimal import ROUND_HALF_UP, Decimal

from tutorbook.schemas.scheduling import BookingSlot

CENTS = Decimal("0.01")


def calculate_payment_amount(slot: BookingSlot, hourly_rate: float) -> float:
    """Return the price of `slot` in major currency units, rounded to cents."""
    if hourly_rate < 0:
        raise ValueError("hourly_rate cannot be negative")
    amount = Decimal(str(hourly_rate)) * slot.duration_minutes / 60
    return float(amount.quantize(CENTS, rounding=ROUND_HALF_UP))


def to_minor_units(amount: float) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> float:
    return amount / 100
