"""Payment processor webhook endpoint."""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from tutorbook.backend.client import BackendClient
from tutorbook.config import Settings, get_settings
from tutorbook.database import get_backend
from tutorbook.errors import SignatureVerificationError
from tutorbook.payments.signature import verify_signature
from tutorbook.payments.webhook import PaymentWebhookHandler
from tutorbook.schemas.payment import WebhookResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

SIGNATURE_HEADER = "payment-signature"


@router.post("/payments", response_model=WebhookResponse)
async def handle_payment_event(
    request: Request,
    backend: BackendClient = Depends(get_backend),
    settings: Settings = Depends(get_settings),
) -> WebhookResponse:
    """Verify the signature, then apply the event to sessions and transactions."""
    payload = await request.body()
    try:
        verify_signature(
            payload,
            request.headers.get(SIGNATURE_HEADER),
            settings.payment_webhook_secret,
            settings.webhook_tolerance_seconds,
        )
    except SignatureVerificationError as e:
        logger.warning("Rejected payment webhook: %s", e.message)
        raise HTTPException(status_code=400, detail=e.message) from e

    try:
        event = json.loads(payload)
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=400, detail="Invalid JSON payload") from e
    if not isinstance(event, dict):
        raise HTTPException(status_code=400, detail="Event must be a JSON object")

    try:
        status = await PaymentWebhookHandler(backend, backend).handle(event)
    except Exception as e:
        logger.exception("Error processing payment webhook")
        raise HTTPException(status_code=500, detail="Internal server error") from e

    return WebhookResponse(event_type=event.get("type", ""), status=status)
