"""Payment setup and lookup through the managed payment-intent functions."""

import logging

from tutorbook.backend.base import PaymentGateway
from tutorbook.backend.client import BackendClient
from tutorbook.errors import BackendError, PaymentRateLimitedError, PaymentSetupError
from tutorbook.schemas.payment import (
    PaymentIntentStatus,
    PaymentSetupRequest,
    PaymentSetupResult,
)

logger = logging.getLogger(__name__)

CREATE_PAYMENT_INTENT_FUNCTION = "create-payment-intent"
RETRIEVE_PAYMENT_INTENT_FUNCTION = "retrieve-payment-intent"
RATE_LIMITED_MESSAGE = "Payment processor rate limit exceeded. Please try again in a moment."


class BackendPaymentGateway(PaymentGateway):
    """Creates payment intents and keeps one transaction row per session.

    A retry for the same session reuses its transaction row and passes the
    previous intent id along, so the payment function can cancel or reuse that
    intent instead of leaving a second live one behind.
    """

    def __init__(self, client: BackendClient) -> None:
        self._client = client

    async def setup_payment(self, request: PaymentSetupRequest) -> PaymentSetupResult:
        try:
            existing = await self._client.find_session_transaction(request.session_id)
            if existing is not None:
                transaction_id = str(existing["id"])
                previous_intent_id = existing.get("stripe_payment_intent_id")
            else:
                transaction_id = await self._client.create_payment_transaction(
                    request.session_id, request.student_id, request.tutor_id, request.amount
                )
                previous_intent_id = None

            body = {
                "sessionId": request.session_id,
                "amount": request.amount,
                "tutorId": request.tutor_id,
                "studentId": request.student_id,
                "studentEmail": request.student_email,
                "forceTwoStage": request.force_two_stage,
                "previousPaymentIntentId": previous_intent_id,
            }
            data = await self._client.invoke_function(CREATE_PAYMENT_INTENT_FUNCTION, body)
        except BackendError as e:
            raise PaymentSetupError(f"Payment setup failed: {e.message}") from e

        client_secret = data.get("clientSecret")
        if not client_secret:
            raise PaymentSetupError(data.get("error") or "Payment setup returned no client secret")

        payment_intent_id = data.get("paymentIntentId")
        if payment_intent_id:
            try:
                await self._client.attach_payment_intent(transaction_id, payment_intent_id)
            except BackendError:
                # The intent exists; the webhook can still settle the session
                logger.warning(
                    "Could not attach intent %s to transaction %s",
                    payment_intent_id,
                    transaction_id,
                )

        logger.info(
            "Payment set up: session=%s amount=%.2f two_stage=%s",
            request.session_id,
            request.amount,
            data.get("isTwoStagePayment", request.force_two_stage),
        )
        return PaymentSetupResult(
            client_secret=client_secret,
            amount=request.amount,
            is_two_stage_payment=bool(data.get("isTwoStagePayment", request.force_two_stage)),
            payment_intent_id=payment_intent_id,
        )

    async def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntentStatus:
        if not payment_intent_id:
            raise PaymentSetupError("Missing payment intent ID")
        try:
            data = await self._client.invoke_function(
                RETRIEVE_PAYMENT_INTENT_FUNCTION, {"paymentIntentId": payment_intent_id}
            )
        except BackendError as e:
            if e.status_code == 429:
                logger.warning("Processor rate limit while retrieving intent %s", payment_intent_id)
                raise PaymentRateLimitedError(RATE_LIMITED_MESSAGE) from e
            raise PaymentSetupError(f"Could not retrieve payment intent: {e.message}") from e

        if not data.get("id") or not data.get("status"):
            raise PaymentSetupError(data.get("error") or "Payment intent lookup returned no intent")
        # The function already converts the amount to major units
        return PaymentIntentStatus(
            id=data["id"],
            client_secret=data.get("client_secret"),
            status=data["status"],
            amount=float(data.get("amount") or 0),
        )
