from datetime import datetime

from pydantic import BaseModel, Field


class CreatedSession(BaseModel):
    id: str
    status: str = "scheduled"
    start_time: datetime | None = None
    end_time: datetime | None = None


class PaymentSetupRequest(BaseModel):
    session_id: str
    amount: float = Field(gt=0)
    tutor_id: str
    student_id: str
    student_email: str | None = None
    force_two_stage: bool = False


class PaymentSetupResult(BaseModel):
    client_secret: str
    amount: float
    is_two_stage_payment: bool = False
    payment_intent_id: str | None = None


class WebhookResponse(BaseModel):
    received: bool = True
    event_type: str
    status: str = Field(pattern=r"^(processed|ignored)$")


class PaymentIntentStatus(BaseModel):
    """Current processor view of one payment intent. `amount` is in major units."""

    id: str
    client_secret: str | None = None
    status: str
    amount: float
