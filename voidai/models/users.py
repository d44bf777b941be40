"""
User Data Models

This module contains models related to users, authentication and notification
preferences.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from voidai.models.shared import ApiBaseModel, PlanType


class Token(BaseModel):
    access_token: str
    token_type: str


class TokenData(BaseModel):
    user_id: str | None = None


class UserRecord(ApiBaseModel):
    """User profile as returned by the API (never includes the password hash)."""

    id: str = Field(..., description="Unique user identifier")
    email: str = Field(..., description="User email address")
    username: str = Field(..., description="Username")
    display_name: Optional[str] = Field(None, description="Display name")
    avatar_url: Optional[str] = Field(None, description="Avatar URL")
    bio: Optional[str] = Field(None, description="User bio")
    plan_type: PlanType = Field(PlanType.FREE, description="Current plan tier")
    credits: int = Field(0, ge=0, description="Current credit balance")
    plan_expires_at: Optional[datetime] = Field(
        None, description="When a promotional plan reverts"
    )
    is_owner: bool = Field(False, description="Whether the user is an administrator")
    is_banned: bool = Field(False, description="Whether the account is banned")
    push_notifications_enabled: bool = Field(
        False, description="Whether push notifications are enabled"
    )
    created_at: Optional[datetime] = Field(None, description="Account creation time")


class SignupRequest(ApiBaseModel):
    email: str = Field(..., min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=6, max_length=72)


class ProfileUpdateRequest(ApiBaseModel):
    username: Optional[str] = Field(None, min_length=3, max_length=30)
    display_name: Optional[str] = Field(None, max_length=50)
    avatar_url: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=300)


class NotificationPreferencesRequest(ApiBaseModel):
    """Device token registration for push notifications."""

    fcm_token: Optional[str] = Field(None, description="Firebase device token")
    enabled: bool = Field(..., description="Whether push notifications are enabled")


class DiscordAuthUrlResponse(ApiBaseModel):
    url: str


class BanRequest(ApiBaseModel):
    is_banned: bool


class OwnerRequest(ApiBaseModel):
    is_owner: bool
