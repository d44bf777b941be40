"""
Video Data Models

This module contains models for image-to-video jobs derived from a track's
cover image.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from voidai.models.shared import ApiBaseModel, TaskStatus, VideoStyle


class GenerateVideoRequest(ApiBaseModel):
    track_id: str = Field(..., min_length=1)
    prompt: str = Field(..., min_length=1, max_length=500)
    style: Optional[VideoStyle] = None


class VideoJobRecord(ApiBaseModel):
    id: str
    user_id: Optional[str] = None
    track_id: Optional[str] = None
    runway_job_id: Optional[str] = None
    prompt: str
    style: Optional[str] = None
    status: TaskStatus
    provider_status: Optional[str] = None
    video_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    duration: Optional[int] = None
    credits_cost: int
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class GenerateVideoResponse(ApiBaseModel):
    video_job: VideoJobRecord
    credits: int = Field(..., description="Balance left after the debit")
