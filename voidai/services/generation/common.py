from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from voidai.models.shared import TaskStatus
from voidai.models.tracks import GenerateMusicRequest

UNTITLED_TRACK = "Untitled Track"

# Substrings that mark a provider status as a failure, e.g. GENERATE_AUDIO_FAILED
FAILURE_MARKERS = ("FAILED", "ERROR")


class GeneratedAsset(BaseModel):
    """One output reported by a provider for a finished task."""

    id: Optional[str] = None
    title: Optional[str] = None
    audio_url: Optional[str] = None
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    duration: Optional[float] = None

    @property
    def rounded_duration(self) -> Optional[int]:
        if self.duration is None:
            return None
        return int(round(self.duration))


class ProviderTaskStatus(BaseModel):
    """A provider status report normalised into the internal lifecycle."""

    task_id: str
    status: TaskStatus
    provider_status: str
    results: List[GeneratedAsset] = Field(default_factory=list)
    error_message: Optional[str] = None

    @property
    def first_result(self) -> Optional[GeneratedAsset]:
        return self.results[0] if self.results else None


def classify_status(
    provider_status: Optional[str],
    success_values: Iterable[str],
    has_results: bool = True,
    failure_markers: Iterable[str] = FAILURE_MARKERS,
) -> TaskStatus:
    """
    Map a raw provider status string onto the internal lifecycle.

    Args:
        provider_status: Status string reported by the provider
        success_values: Exact values that mean the task finished successfully
        has_results: Whether the report carries at least one output
        failure_markers: Substrings that mark the status as a failure

    Returns:
        SUCCESS or FAILED for terminal statuses, PENDING for everything else,
        including values the provider has never reported before
    """
    if not provider_status:
        return TaskStatus.PENDING

    normalised = provider_status.upper()
    if normalised in success_values:
        return TaskStatus.SUCCESS if has_results else TaskStatus.PENDING
    if any(marker in normalised for marker in failure_markers):
        return TaskStatus.FAILED
    return TaskStatus.PENDING


class MusicProviderService(ABC):
    """Abstract base class for music generation providers."""

    @abstractmethod
    async def submit(self, request: GenerateMusicRequest) -> str:
        """Submit a generation job and return the provider task id."""
        pass

    @abstractmethod
    async def fetch_status(self, task_id: str) -> ProviderTaskStatus:
        """Fetch the current status of a submitted job."""
        pass

    @abstractmethod
    def parse_callback(self, payload: Any) -> ProviderTaskStatus:
        """Normalise a webhook delivery into a status report."""
        pass


class VideoProviderService(ABC):
    """Abstract base class for image-to-video providers."""

    @abstractmethod
    async def submit(self, image_url: str, prompt: str, duration: int = 5) -> str:
        """Submit a video job and return the provider job id."""
        pass

    @abstractmethod
    async def fetch_status(self, job_id: str) -> ProviderTaskStatus:
        """Fetch the current status of a submitted video job."""
        pass


def bearer_headers(api_key: str, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }
    if extra:
        headers.update(extra)
    return headers
