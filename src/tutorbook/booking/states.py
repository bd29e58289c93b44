"""Booking flow states. Exactly one of these is current at any time."""

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar

from tutorbook.schemas.scheduling import BookingSlot


class Step(str, Enum):
    SELECT_SLOT = "select-slot"
    PAYMENT = "payment"
    PROCESSING = "processing"
    CLOSED = "closed"


@dataclass(frozen=True)
class SelectSlot:
    """Choosing a slot. `slot` is set while session creation is in flight."""

    step: ClassVar[Step] = Step.SELECT_SLOT

    auth_required: bool = False
    slot: BookingSlot | None = None
    creating_session: bool = False
    error: str | None = None


@dataclass(frozen=True)
class Payment:
    """Session reserved; payment being set up or awaiting confirmation."""

    step: ClassVar[Step] = Step.PAYMENT

    slot: BookingSlot
    session_id: str
    amount: float
    setting_up: bool = True
    client_secret: str | None = None
    is_two_stage_payment: bool = False
    payment_error: str | None = None


@dataclass(frozen=True)
class Processing:
    """Payment confirmed; held briefly before the flow closes."""

    step: ClassVar[Step] = Step.PROCESSING

    slot: BookingSlot
    session_id: str
    amount: float


@dataclass(frozen=True)
class Closed:
    """Flow closed. `last` keeps the previous state on screen until the deferred reset."""

    step: ClassVar[Step] = Step.CLOSED

    last: "SelectSlot | Payment | Processing | None" = None


BookingState = SelectSlot | Payment | Processing | Closed


@dataclass(frozen=True)
class Notice:
    level: str  # "info" | "error"
    message: str
