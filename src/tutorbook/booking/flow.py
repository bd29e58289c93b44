"""Booking session state machine: select-slot -> payment -> processing -> closed.

One `BookingFlow` drives one booking dialog for one tutor. Commands are the
only way to change state; the presentation layer reads derived properties.

Every asynchronous result is checked against the generation captured before
the await. `close()` bumps the generation, so a response that arrives after
the dialog was closed is logged and dropped instead of mutating state.
"""

import asyncio
import logging
from collections.abc import Callable, Coroutine
from dataclasses import replace
from typing import Any

from tutorbook.backend.base import PaymentGateway, SessionRepository
from tutorbook.booking.rate_limiter import RateLimiter
from tutorbook.booking.states import (
    BookingState,
    Closed,
    Notice,
    Payment,
    Processing,
    SelectSlot,
    Step,
)
from tutorbook.config import Settings, get_settings
from tutorbook.errors import SessionConflictError, TutorbookError
from tutorbook.schemas.payment import PaymentSetupRequest
from tutorbook.schemas.scheduling import BookingSlot
from tutorbook.schemas.user import Student, Tutor
from tutorbook.scheduling.pricing import calculate_payment_amount
from tutorbook.scheduling.timeutils import combine

logger = logging.getLogger(__name__)

RATE_LIMITED_MESSAGE = "Please wait a moment before trying again"
CONFLICT_MESSAGE = "That time was just booked by someone else. Please pick another slot."
SESSION_FAILED_MESSAGE = "Failed to set up session. Please try again."
PAYMENT_FAILED_MESSAGE = "Failed to set up payment. Please retry."
MISSING_SESSION_MESSAGE = "Missing session information. Please try again."
UNAVAILABLE_MESSAGE = "That time is not available."
BOOKED_MESSAGE = "Your session has been successfully booked!"

NoticeCallback = Callable[[Notice], None]


class BookingFlow:
    """Single explicit state machine for one booking attempt at a time."""

    def __init__(
        self,
        tutor: Tutor,
        sessions: SessionRepository,
        payments: PaymentGateway,
        *,
        user: Student | None = None,
        settings: Settings | None = None,
        rate_limiter: RateLimiter | None = None,
        on_notice: NoticeCallback | None = None,
        on_close: Callable[[], None] | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._tutor = tutor
        self._sessions = sessions
        self._payments = payments
        self._user = user
        self._hourly_rate = tutor.hourly_rate or settings.default_hourly_rate
        self._processing_delay = settings.processing_close_delay_seconds
        self._reset_delay = settings.reset_delay_seconds
        self._rate_limiter = rate_limiter or RateLimiter(settings.rate_limit_min_interval_seconds)
        self._on_notice = on_notice
        self._on_close = on_close

        self._state: BookingState = SelectSlot()
        self._generation = 0
        self._reset_task: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self.notices: list[Notice] = []

    @property
    def state(self) -> BookingState:
        return self._state

    @property
    def step(self) -> Step:
        return self._state.step

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def user(self) -> Student | None:
        return self._user

    @property
    def auth_required(self) -> bool:
        return isinstance(self._state, SelectSlot) and self._state.auth_required

    def _visible(self) -> BookingState | None:
        # A closed flow keeps showing its last state until the deferred reset runs
        if isinstance(self._state, Closed):
            return self._state.last
        return self._state

    @property
    def selected_slot(self) -> BookingSlot | None:
        visible = self._visible()
        return None if visible is None else visible.slot

    @property
    def session_id(self) -> str | None:
        visible = self._visible()
        return visible.session_id if isinstance(visible, (Payment, Processing)) else None

    @property
    def payment_amount(self) -> float | None:
        visible = self._visible()
        return visible.amount if isinstance(visible, (Payment, Processing)) else None

    @property
    def client_secret(self) -> str | None:
        visible = self._visible()
        return visible.client_secret if isinstance(visible, Payment) else None

    @property
    def payment_error(self) -> str | None:
        visible = self._visible()
        return visible.payment_error if isinstance(visible, Payment) else None

    @property
    def is_two_stage_payment(self) -> bool:
        visible = self._visible()
        return isinstance(visible, Payment) and visible.is_two_stage_payment

    @property
    def is_busy(self) -> bool:
        state = self._state
        if isinstance(state, SelectSlot):
            return state.creating_session
        if isinstance(state, Payment):
            return state.setting_up
        return False

    @property
    def cooldown_remaining(self) -> float:
        return self._rate_limiter.cooldown_remaining()

    def open(self) -> None:
        """(Re)open the dialog. Any pending reset is applied first."""
        self._flush_reset()
        if isinstance(self._state, Closed):
            self._state = SelectSlot()

    def set_user(self, user: Student | None) -> None:
        """Authentication resolved (or lost). The slot must be chosen again."""
        self._user = user
        if user is not None and self.auth_required:
            self._state = SelectSlot()

    async def select_slot(self, slot: BookingSlot) -> None:
        """Reserve `slot`, then set up payment for the new session."""
        state = self._state
        if not isinstance(state, SelectSlot):
            logger.info("Ignoring slot selection during step %s", state.step.value)
            return
        if state.creating_session:
            return
        if not slot.available:
            self._notify("error", UNAVAILABLE_MESSAGE)
            return

        user = self._user
        if user is None:
            self._state = SelectSlot(auth_required=True)
            return

        if not self._rate_limiter.try_acquire():
            self._notify("error", RATE_LIMITED_MESSAGE)
            return

        attempt = self._generation
        amount = calculate_payment_amount(slot, self._hourly_rate)
        self._state = SelectSlot(slot=slot, creating_session=True)

        try:
            session = await self._sessions.create_session(
                user.id,
                self._tutor.id,
                combine(slot.day, slot.start),
                combine(slot.day, slot.end),
            )
        except SessionConflictError:
            if self._is_stale(attempt, "session conflict"):
                return
            logger.info("Slot %s %s for tutor %s was taken", slot.day, slot.start, self._tutor.id)
            self._state = SelectSlot(error=CONFLICT_MESSAGE)
            self._notify("error", CONFLICT_MESSAGE)
            return
        except Exception:
            logger.exception("Session creation failed for tutor %s", self._tutor.id)
            if self._is_stale(attempt, "session failure"):
                return
            self._state = SelectSlot(error=SESSION_FAILED_MESSAGE)
            self._notify("error", SESSION_FAILED_MESSAGE)
            return

        if self._is_stale(attempt, f"session {session.id}"):
            return

        self._state = Payment(slot=slot, session_id=session.id, amount=amount)
        await self._setup_payment(attempt, force_two_stage=False)

    async def retry_payment_setup(self) -> None:
        """Retry payment setup for the existing session in two-stage mode.

        Never creates another session.
        """
        state = self._state
        if not isinstance(state, Payment) or self._user is None:
            self._notify("error", MISSING_SESSION_MESSAGE)
            return
        if state.setting_up:
            return
        if not self._rate_limiter.try_acquire():
            self._notify("error", RATE_LIMITED_MESSAGE)
            return

        attempt = self._generation
        self._state = replace(state, setting_up=True, payment_error=None)
        await self._setup_payment(attempt, force_two_stage=True)

    async def complete_payment(self) -> None:
        """The processor confirmed payment; show processing, then close."""
        state = self._state
        if not isinstance(state, Payment) or state.client_secret is None:
            logger.info("Ignoring payment completion during step %s", state.step.value)
            return

        attempt = self._generation
        self._state = Processing(slot=state.slot, session_id=state.session_id, amount=state.amount)
        self._notify("info", BOOKED_MESSAGE)
        self._spawn(self._close_after_processing(attempt))

    def cancel(self) -> None:
        logger.info("Booking cancelled during step %s", self._state.step.value)
        self.close()

    def close(self) -> None:
        """Close the dialog. In-flight responses from now on are discarded."""
        if isinstance(self._state, Closed):
            return
        self._generation += 1
        self._state = Closed(last=self._state)
        self._schedule_reset()
        if self._on_close is not None:
            self._on_close()

    async def drain(self) -> None:
        """Wait for pending timers (processing delay, deferred reset)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _setup_payment(self, attempt: int, *, force_two_stage: bool) -> None:
        state = self._state
        user = self._user
        if not isinstance(state, Payment):
            logger.info("Skipping payment setup during step %s", state.step.value)
            return
        if user is None:
            # Signed out while the session was being created
            self._state = replace(state, setting_up=False, payment_error=MISSING_SESSION_MESSAGE)
            self._notify("error", MISSING_SESSION_MESSAGE)
            return

        request = PaymentSetupRequest(
            session_id=state.session_id,
            amount=state.amount,
            tutor_id=self._tutor.id,
            student_id=user.id,
            student_email=user.email,
            force_two_stage=force_two_stage,
        )
        try:
            result = await self._payments.setup_payment(request)
        except Exception as e:
            logger.error("Payment setup failed for session %s: %s", state.session_id, e)
            if self._is_stale(attempt, "payment failure"):
                return
            message = e.message if isinstance(e, TutorbookError) else PAYMENT_FAILED_MESSAGE
            self._state = replace(state, setting_up=False, payment_error=message)
            self._notify("error", PAYMENT_FAILED_MESSAGE)
            return

        if self._is_stale(attempt, f"payment setup for session {state.session_id}"):
            return

        self._state = replace(
            state,
            setting_up=False,
            client_secret=result.client_secret,
            is_two_stage_payment=result.is_two_stage_payment,
            payment_error=None,
        )

    async def _close_after_processing(self, attempt: int) -> None:
        await asyncio.sleep(self._processing_delay)
        if self._generation == attempt and isinstance(self._state, Processing):
            self.close()

    def _is_stale(self, attempt: int, what: str) -> bool:
        if attempt != self._generation:
            logger.info("Discarding stale %s (attempt %d, now %d)", what, attempt, self._generation)
            return True
        return False

    def _schedule_reset(self) -> None:
        if self._reset_delay <= 0:
            self._reset()
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No running loop to defer on
            self._reset()
            return
        self._reset_task = self._spawn(self._deferred_reset())

    async def _deferred_reset(self) -> None:
        await asyncio.sleep(self._reset_delay)
        self._reset()

    def _reset(self) -> None:
        self._reset_task = None
        if isinstance(self._state, Closed):
            self._state = Closed()

    def _flush_reset(self) -> None:
        task = self._reset_task
        if task is not None and not task.done():
            task.cancel()
        if task is not None or isinstance(self._state, Closed):
            self._reset()

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _notify(self, level: str, message: str) -> None:
        notice = Notice(level=level, message=message)
        self.notices.append(notice)
        if self._on_notice is not None:
            self._on_notice(notice)
