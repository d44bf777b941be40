"""
Shared Data Models

This module contains shared Pydantic base classes and enums that are used across
the database layer, the services and the API responses.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how the relational store keeps datetimes."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ApiBaseModel(BaseModel):
    """Base model for all API payloads with common configuration."""

    model_config = ConfigDict(
        # Accept and emit camelCase keys, but allow snake_case field names too
        alias_generator=to_camel,
        populate_by_name=True,
        # Build directly from SQLAlchemy rows
        from_attributes=True,
        # Use enum values instead of names, defaults included
        use_enum_values=True,
        validate_default=True,
    )


# Enums
class PlanType(str, Enum):
    """Subscription plan tiers, in ascending order."""

    FREE = "free"
    RUBY = "ruby"
    PRO = "pro"
    DIAMOND = "diamond"


class TaskStatus(str, Enum):
    """Internal lifecycle status of a generation task."""

    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not TaskStatus.PENDING


class MusicModel(str, Enum):
    """Music generation model variants offered by the provider."""

    V4 = "V4"
    V4_5 = "V4_5"
    V4_5PLUS = "V4_5PLUS"
    V5 = "V5"


class VideoStyle(str, Enum):
    """Visual styles for image-to-video generation."""

    ANIMATED = "animated"
    CINEMATIC = "cinematic"
    ABSTRACT = "abstract"
    REALISTIC = "realistic"
    ARTISTIC = "artistic"


class ErrorResponse(BaseModel):
    """Error body returned for every handled failure."""

    error: str
    message: str
