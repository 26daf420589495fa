"""Pydantic schemas for Stripe webhook events

The envelope models are only ever fed a body whose signature has already been
verified. `PaymentEvent` is the typed result handed to the purchase recorder.
"""
from typing import Any, Dict, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


class StripeEventData(BaseModel):
    model_config = ConfigDict(extra="allow")

    object: Dict[str, Any]


class StripeEventEnvelope(BaseModel):
    """Outer shape shared by every Stripe event"""
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    created: Optional[int] = None
    livemode: Optional[bool] = None
    data: StripeEventData


class CustomerDetails(BaseModel):
    model_config = ConfigDict(extra="allow")

    email: Optional[str] = None


class CheckoutSessionObject(BaseModel):
    """The `data.object` of checkout.session.* events"""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    payment_status: Optional[str] = None
    amount_total: Optional[int] = None
    currency: Optional[str] = None
    client_reference_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    customer_email: Optional[str] = None
    customer_details: Optional[CustomerDetails] = None


class PaymentCompleted(BaseModel):
    """A verified, complete payment for one track"""
    kind: Literal["payment_completed"] = "payment_completed"
    event_id: str
    event_type: str
    transaction_id: str
    buyer_id: str
    track_id: str
    amount: int
    currency: str
    customer_email: Optional[str] = None
    created: Optional[int] = None


class IgnoredEvent(BaseModel):
    """A verified event that requires no action"""
    kind: Literal["ignored"] = "ignored"
    event_id: str
    event_type: str
    reason: str


PaymentEvent = Union[PaymentCompleted, IgnoredEvent]
