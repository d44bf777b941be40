"""
Promo Code Data Models

This module contains models for promotional codes and their redemptions.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from voidai.models.shared import ApiBaseModel, PlanType


class PromoCodeRecord(ApiBaseModel):
    id: str
    code: str
    plan_type: PlanType
    duration_days: int
    max_uses: Optional[int] = None
    current_uses: int = 0
    bonus_credits: int = 0
    is_active: bool = True
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class PromoCodeCreate(ApiBaseModel):
    code: str = Field(..., min_length=3, max_length=64)
    plan_type: PlanType
    duration_days: int = Field(30, gt=0)
    max_uses: Optional[int] = Field(None, gt=0)
    bonus_credits: int = Field(0, ge=0)
    expires_at: Optional[datetime] = None


class PromoCodeUpdate(ApiBaseModel):
    is_active: Optional[bool] = None
    max_uses: Optional[int] = Field(None, gt=0)
    expires_at: Optional[datetime] = None


class RedeemRequest(ApiBaseModel):
    code: str = Field(..., min_length=1, max_length=64)


class RedeemResponse(ApiBaseModel):
    plan_type: PlanType
    plan_expires_at: datetime
    bonus_credits: int
    credits: int
