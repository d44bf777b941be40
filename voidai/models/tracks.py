"""
Track Data Models

This module contains models for music generation requests and the track
records they produce.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from voidai.models.shared import ApiBaseModel, MusicModel, TaskStatus


class GenerateMusicRequest(ApiBaseModel):
    prompt: str = Field(..., min_length=1, max_length=500)
    style: Optional[str] = None
    title: Optional[str] = Field(None, max_length=80)
    lyrics: Optional[str] = Field(None, max_length=5000)
    model: MusicModel = MusicModel.V4
    instrumental: bool = False
    custom_mode: bool = False
    vocal_gender: Optional[str] = Field(None, pattern="^[mf]$")


class GenerateMusicResponse(ApiBaseModel):
    success: bool
    task_id: str
    track_id: str
    credits: int = Field(..., description="Balance left after the debit")


class TrackRecord(ApiBaseModel):
    """A stored generation task."""

    id: str
    task_id: str
    user_id: Optional[str] = None
    title: str
    prompt: Optional[str] = None
    style: Optional[str] = None
    lyrics: Optional[str] = None
    model: str
    instrumental: bool = False
    status: TaskStatus
    provider_status: Optional[str] = None
    audio_url: Optional[str] = None
    image_url: Optional[str] = None
    duration: Optional[int] = None
    error_message: Optional[str] = None
    is_public: bool = True
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class TrackResult(ApiBaseModel):
    """One audio result reported for a task."""

    id: Optional[str] = None
    title: Optional[str] = None
    audio_url: Optional[str] = None
    image_url: Optional[str] = None
    duration: Optional[float] = None


class TaskStatusResponse(ApiBaseModel):
    task_id: str
    status: TaskStatus
    provider_status: Optional[str] = None
    tracks: List[TrackResult] = Field(default_factory=list)
    error_message: Optional[str] = None


class TrackUpdateRequest(ApiBaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=80)
    is_public: Optional[bool] = None


class CallbackAck(ApiBaseModel):
    received: bool = True
