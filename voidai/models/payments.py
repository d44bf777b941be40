"""
Payment Data Models

This module contains models related to Stripe plans and checkout.
"""

from typing import List, Optional

from pydantic import BaseModel

from voidai.models.shared import ApiBaseModel, PlanType


class ProductInfo(BaseModel):
    """Plan product information from Stripe."""

    product_id: str
    price_id: str
    name: str
    description: str
    price: int  # Price in cents
    currency: str = "usd"
    plan_type: PlanType
    interval: Optional[str] = None


class PlansResponse(BaseModel):
    plans: List[ProductInfo]


class CheckoutSessionRequest(ApiBaseModel):
    price_id: str
    plan_type: PlanType
    success_url: str
    cancel_url: str


class CheckoutSessionResponse(ApiBaseModel):
    checkout_url: str
    session_id: str


class BillingPortalRequest(ApiBaseModel):
    return_url: Optional[str] = None


class BillingPortalResponse(ApiBaseModel):
    url: str


class StripeConfigResponse(ApiBaseModel):
    publishable_key: str
