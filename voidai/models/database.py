"""
Relational Data Models

This module contains the SQLAlchemy tables backing the application. The API
layer converts rows into the Pydantic models defined alongside this module.

Table Mapping:
- users -> User
- tracks -> Track (one generation task per row, keyed by the provider task id)
- video_jobs -> VideoJob
- promo_codes -> PromoCode
- code_redemptions -> CodeRedemption
"""

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

from voidai.models.shared import PlanType, TaskStatus, utcnow

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(320), nullable=False, unique=True, index=True)
    username = Column(String(64), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=True)
    display_name = Column(String(80), nullable=True)
    avatar_url = Column(Text, nullable=True)
    bio = Column(Text, nullable=True)
    plan_type = Column(String(16), nullable=False, default=PlanType.FREE.value)
    credits = Column(Integer, nullable=False, default=55)
    last_credit_refresh = Column(DateTime, nullable=True, default=utcnow)
    plan_expires_at = Column(DateTime, nullable=True)
    previous_plan_type = Column(String(16), nullable=True)
    is_owner = Column(Boolean, nullable=False, default=False)
    is_banned = Column(Boolean, nullable=False, default=False)
    discord_id = Column(String(32), nullable=True, unique=True)
    stripe_customer_id = Column(String(64), nullable=True, index=True)
    fcm_token = Column(Text, nullable=True)
    push_notifications_enabled = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Track(Base):
    __tablename__ = "tracks"

    id = Column(String(36), primary_key=True, default=_new_id)
    task_id = Column(String(128), nullable=False, unique=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    title = Column(String(120), nullable=False)
    prompt = Column(Text, nullable=True)
    style = Column(Text, nullable=True)
    lyrics = Column(Text, nullable=True)
    model = Column(String(16), nullable=False, default="V4")
    instrumental = Column(Boolean, nullable=False, default=False)
    status = Column(String(16), nullable=False, default=TaskStatus.PENDING.value)
    provider_status = Column(String(64), nullable=True)
    audio_url = Column(Text, nullable=True)
    image_url = Column(Text, nullable=True)
    duration = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)
    is_public = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    completed_at = Column(DateTime, nullable=True)


class VideoJob(Base):
    __tablename__ = "video_jobs"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    track_id = Column(String(36), ForeignKey("tracks.id"), nullable=True, index=True)
    runway_job_id = Column(String(128), nullable=True, unique=True, index=True)
    prompt = Column(Text, nullable=False)
    style = Column(String(32), nullable=True)
    status = Column(String(16), nullable=False, default=TaskStatus.PENDING.value)
    provider_status = Column(String(64), nullable=True)
    video_url = Column(Text, nullable=True)
    thumbnail_url = Column(Text, nullable=True)
    duration = Column(Integer, nullable=True)
    credits_cost = Column(Integer, nullable=False, default=25)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    completed_at = Column(DateTime, nullable=True)


class PromoCode(Base):
    __tablename__ = "promo_codes"

    id = Column(String(36), primary_key=True, default=_new_id)
    code = Column(String(64), nullable=False, unique=True, index=True)
    plan_type = Column(String(16), nullable=False)
    duration_days = Column(Integer, nullable=False, default=30)
    max_uses = Column(Integer, nullable=True)
    current_uses = Column(Integer, nullable=False, default=0)
    bonus_credits = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class CodeRedemption(Base):
    __tablename__ = "code_redemptions"
    __table_args__ = (
        UniqueConstraint("user_id", "promo_code_id", name="uq_redemption_user_code"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    promo_code_id = Column(
        String(36), ForeignKey("promo_codes.id"), nullable=False, index=True
    )
    redeemed_at = Column(DateTime, nullable=False, default=utcnow)


# Model mappings for easy reference
TABLE_MODELS = {
    "users": User,
    "tracks": Track,
    "video_jobs": VideoJob,
    "promo_codes": PromoCode,
    "code_redemptions": CodeRedemption,
}
