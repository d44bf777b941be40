"""
Credit Data Models

This module contains models related to credit balances and plan changes.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from voidai.models.shared import ApiBaseModel, PlanType


class CreditBalance(ApiBaseModel):
    """Credit balance snapshot after expiry reversion and daily renewal."""

    user_id: str = Field(..., description="Associated user ID")
    credits: int = Field(..., ge=0, description="Current credit balance")
    plan_type: PlanType = Field(..., description="Plan the balance renews from")
    daily_allotment: int = Field(..., ge=0, description="Credits granted per renewal")
    last_credit_refresh: Optional[datetime] = Field(
        None, description="Last renewal timestamp"
    )
    plan_expires_at: Optional[datetime] = Field(
        None, description="When a promotional plan reverts"
    )


class PlanUpdateRequest(ApiBaseModel):
    """Administrative plan change."""

    plan_type: PlanType
    duration_days: Optional[int] = Field(None, gt=0)
    credits: Optional[int] = Field(None, ge=0)
