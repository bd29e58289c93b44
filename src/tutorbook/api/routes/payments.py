"""Payment intent lookup, used to resume a payment form after a reload."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from tutorbook.backend.base import PaymentGateway
from tutorbook.database import get_payment_gateway
from tutorbook.errors import PaymentRateLimitedError, PaymentSetupError
from tutorbook.schemas.payment import PaymentIntentStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.get("/intents/{intent_id}", response_model=PaymentIntentStatus)
async def get_payment_intent(
    intent_id: str,
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> PaymentIntentStatus:
    try:
        return await gateway.retrieve_payment_intent(intent_id)
    except PaymentRateLimitedError as e:
        raise HTTPException(status_code=429, detail=e.message) from e
    except PaymentSetupError as e:
        logger.warning("Payment intent %s lookup failed: %s", intent_id, e)
        raise HTTPException(status_code=502, detail=e.message) from e
