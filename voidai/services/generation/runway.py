import logging
from traceback import format_exc
from typing import Any, Dict, Optional

import requests

from config import RUNWAY_API_BASE, RUNWAY_API_KEY
from voidai.models.shared import TaskStatus
from voidai.services.errors import ProviderRejected, ProviderUnavailable
from voidai.services.generation.common import (
    FAILURE_MARKERS,
    GeneratedAsset,
    ProviderTaskStatus,
    VideoProviderService,
    bearer_headers,
    classify_status,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class RunwayVideoClient(VideoProviderService):
    """Runway implementation of the image-to-video provider service."""

    API_VERSION = "2024-11-06"
    MODEL = "gen3a_turbo"
    RATIO = "16:9"

    SUCCESS_VALUES = ("SUCCEEDED",)
    FAILURE_MARKERS = FAILURE_MARKERS + ("CANCEL",)

    def __init__(
        self,
        api_key: Optional[str] = RUNWAY_API_KEY,
        api_base: str = RUNWAY_API_BASE,
        timeout: int = 30,
    ):
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        if not self.api_key:
            logger.error("Video provider API key is not configured")
            raise ProviderUnavailable("Video provider is not configured")

        try:
            response = requests.request(
                method,
                f"{self.api_base}{path}",
                headers=bearer_headers(
                    self.api_key, {"X-Runway-Version": self.API_VERSION}
                ),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            logger.error(f"Video provider request failed: {str(e)}\n{format_exc()}")
            raise ProviderUnavailable(f"Video provider request failed: {str(e)}")

        if response.status_code >= 500:
            logger.error(
                f"Video provider error {response.status_code}: {response.text}"
            )
            raise ProviderUnavailable(
                f"Video provider error: {response.status_code}"
            )
        if not response.ok:
            logger.warning(
                f"Video provider rejected {method} {path} "
                f"({response.status_code}): {response.text}"
            )
            raise ProviderRejected(
                f"Video provider error: {response.status_code}",
                provider_message=response.text,
            )

        try:
            body = response.json()
        except ValueError:
            raise ProviderUnavailable("Video provider returned an invalid response")
        if not isinstance(body, dict):
            raise ProviderUnavailable("Video provider returned an invalid response")
        return body

    async def submit(self, image_url: str, prompt: str, duration: int = 5) -> str:
        """
        Start an image-to-video job from a cover image.

        Args:
            image_url: Source image
            prompt: Motion prompt
            duration: Clip length in seconds

        Returns:
            Provider job id
        """
        body = self._request(
            "POST",
            "/image_to_video",
            json={
                "model": self.MODEL,
                "promptImage": image_url,
                "promptText": prompt,
                "duration": duration,
                "ratio": self.RATIO,
            },
        )
        job_id = body.get("id")
        if not job_id:
            raise ProviderRejected(
                "Video provider did not return a job id", provider_message="missing id"
            )
        logger.info(f"Submitted video job {job_id}")
        return job_id

    async def fetch_status(self, job_id: str) -> ProviderTaskStatus:
        body = self._request("GET", f"/tasks/{job_id}")
        provider_status = body.get("status") or "PENDING"
        output = body.get("output") or []
        results = [GeneratedAsset(video_url=url) for url in output if url]

        status = classify_status(
            provider_status,
            self.SUCCESS_VALUES,
            has_results=bool(results),
            failure_markers=self.FAILURE_MARKERS,
        )
        error_message = None
        if status == TaskStatus.FAILED:
            error_message = body.get("failure") or "Video generation failed"

        return ProviderTaskStatus(
            task_id=body.get("id") or job_id,
            status=status,
            provider_status=provider_status,
            results=results,
            error_message=error_message,
        )


# Global instance
_video_provider: Optional[RunwayVideoClient] = None


def get_video_provider() -> RunwayVideoClient:
    global _video_provider
    if _video_provider is None:
        _video_provider = RunwayVideoClient()
    return _video_provider
