"""Translate payment processor events into ledger updates, notifications and emails.

Each side effect is attempted independently: a failed notification does not
stop the transaction update, and vice versa. Failures are logged.
"""

import logging
from datetime import datetime
from typing import Any

from tutorbook.backend.base import PaymentLedger, SessionEmailSender
from tutorbook.errors import TutorbookError
from tutorbook.scheduling.pricing import from_minor_units

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"


def _full_name(profile: dict[str, Any]) -> str:
    return f"{profile.get('first_name') or ''} {profile.get('last_name') or ''}".strip()


def session_price(details: dict[str, Any], fallback_amount: float) -> float:
    """Tutor's hourly rate times session length, or the charged amount if no rate is set."""
    hourly_rate = (details.get("tutor") or {}).get("hourly_rate")
    if not hourly_rate or not details.get("start_time") or not details.get("end_time"):
        return fallback_amount
    start = datetime.fromisoformat(details["start_time"])
    end = datetime.fromisoformat(details["end_time"])
    hours = (end - start).total_seconds() / 3600
    return round(float(hourly_rate) * hours, 2)


class PaymentWebhookHandler:
    def __init__(self, ledger: PaymentLedger, emails: SessionEmailSender | None = None) -> None:
        self._ledger = ledger
        self._emails = emails

    async def handle(self, event: dict[str, Any]) -> str:
        """Apply one event. Returns "processed" or "ignored"."""
        event_type = event.get("type", "")
        intent = (event.get("data") or {}).get("object") or {}

        if event_type == PAYMENT_SUCCEEDED:
            logger.info("Payment intent %s succeeded", intent.get("id"))
            await self._on_succeeded(intent)
            return "processed"
        if event_type == PAYMENT_FAILED:
            logger.info("Payment failed for intent %s", intent.get("id"))
            await self._on_failed(intent)
            return "processed"

        logger.info("Unhandled event type %s", event_type)
        return "ignored"

    async def _on_succeeded(self, intent: dict[str, Any]) -> None:
        metadata = intent.get("metadata") or {}
        session_id = metadata.get("sessionId")
        if not session_id:
            logger.warning("Payment intent %s has no sessionId metadata", intent.get("id"))
            return
        amount = from_minor_units(int(intent.get("amount") or 0))

        try:
            await self._ledger.mark_session_paid(session_id)
        except TutorbookError as e:
            logger.error("Error updating session %s: %s", session_id, e)

        try:
            transaction_id = await self._ledger.find_transaction_id_by_intent(intent["id"])
            if transaction_id is not None:
                await self._ledger.set_transaction_status(transaction_id, "completed")
            else:
                logger.warning("No payment transaction for intent %s", intent["id"])
        except TutorbookError as e:
            logger.error("Error updating payment transaction for %s: %s", intent["id"], e)

        notify_meta = {"sessionId": session_id, "amount": amount}
        if metadata.get("tutorId"):
            await self._notify(
                metadata["tutorId"],
                "booking_confirmed",
                "New Booking Confirmed",
                "A new session has been booked and paid for.",
                notify_meta,
            )
        if metadata.get("studentId"):
            await self._notify(
                metadata["studentId"],
                "payment_success",
                "Payment Successful",
                "Your payment for the tutoring session has been processed.",
                notify_meta,
            )

        await self._send_confirmation_emails(session_id, amount)

    async def _on_failed(self, intent: dict[str, Any]) -> None:
        metadata = intent.get("metadata") or {}
        try:
            await self._ledger.fail_transactions_for_intent(intent["id"])
        except TutorbookError as e:
            logger.error("Error updating payment transaction for %s: %s", intent["id"], e)

        if metadata.get("studentId"):
            error = (intent.get("last_payment_error") or {}).get("message") or "Unknown error"
            await self._notify(
                metadata["studentId"],
                "payment_failed",
                "Payment Failed",
                "Your payment for the tutoring session could not be processed.",
                {"sessionId": metadata.get("sessionId"), "error": error},
            )

    async def _notify(
        self,
        user_id: str,
        notification_type: str,
        title: str,
        message: str,
        metadata: dict[str, Any],
    ) -> None:
        try:
            await self._ledger.create_notification(user_id, notification_type, title, message, metadata)
        except TutorbookError as e:
            logger.error("Error creating %s notification for %s: %s", notification_type, user_id, e)

    async def _send_confirmation_emails(self, session_id: str, amount: float) -> None:
        if self._emails is None:
            return
        try:
            details = await self._ledger.get_session_details(session_id)
        except TutorbookError as e:
            logger.error("Error fetching session details for %s: %s", session_id, e)
            return
        if details is None:
            return

        tutor = details.get("tutor") or {}
        student = details.get("student") or {}
        if not tutor.get("email") or not student.get("email"):
            logger.info("Skipping confirmation emails for session %s: missing address", session_id)
            return

        payload = {
            "sessionId": details.get("id", session_id),
            "tutorEmail": tutor["email"],
            "tutorName": _full_name(tutor),
            "studentEmail": student["email"],
            "studentName": _full_name(student),
            "startTime": details.get("start_time"),
            "endTime": details.get("end_time"),
            "location": details.get("location"),
            "notes": details.get("notes"),
            "price": session_price(details, amount),
            "emailType": "confirmation",
        }
        try:
            result = await self._emails.send_session_emails(payload)
            logger.info("Email notification result for session %s: %s", session_id, result)
        except TutorbookError as e:
            logger.error("Error sending confirmation emails for %s: %s", session_id, e)
