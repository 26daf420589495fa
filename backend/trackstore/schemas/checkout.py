"""Pydantic schemas for checkout"""
from pydantic import BaseModel, Field
from typing import Optional


class CheckoutRequest(BaseModel):
    track_id: str = Field(..., min_length=1, max_length=64)


class CheckoutResponse(BaseModel):
    session_id: str
    redirect_url: str


class CheckoutStatusResponse(BaseModel):
    session_id: str
    track_id: Optional[str] = None
    payment_status: Optional[str] = None  # 'paid', 'unpaid', 'no_payment_required'
    purchase_recorded: bool
