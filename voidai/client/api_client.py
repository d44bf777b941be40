import logging
from typing import Any, Dict, Optional

import requests

from voidai.client.poller import (
    MAX_POLL_ATTEMPTS,
    POLL_INTERVAL_SECONDS,
    PollResult,
    TaskPoller,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class VoidAIClientError(Exception):
    """A request the server refused with a 4xx status."""

    def __init__(self, status_code: int, body: Any):
        self.status_code = status_code
        self.body = body
        error = body.get("error") if isinstance(body, dict) else None
        message = body.get("message") if isinstance(body, dict) else None
        super().__init__(f"{status_code} {error or ''}: {message or body}")

    @property
    def error(self) -> Optional[str]:
        return self.body.get("error") if isinstance(self.body, dict) else None


class VoidAIClient:
    """Thin HTTP client for the Void AI API."""

    def __init__(
        self,
        base_url: str,
        access_token: Optional[str] = None,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def _request(self, method: str, path: str, **kwargs) -> Any:
        response = self.session.request(
            method,
            f"{self.base_url}{path}",
            headers=self._headers(),
            timeout=self.timeout,
            **kwargs,
        )
        if 400 <= response.status_code < 500:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            raise VoidAIClientError(response.status_code, body)
        # 5xx surfaces as requests.HTTPError, which pollers treat as transient
        response.raise_for_status()
        return response.json()

    def login(self, email: str, password: str) -> str:
        response = self.session.post(
            f"{self.base_url}/api/auth/token",
            data={"username": email, "password": password},
            timeout=self.timeout,
        )
        if response.status_code >= 400:
            raise VoidAIClientError(response.status_code, response.json())
        self.access_token = response.json()["access_token"]
        return self.access_token

    def generate(self, prompt: str, **params: Any) -> Dict[str, Any]:
        """Submit a generation; extra params use the API's camelCase names."""
        return self._request("POST", "/api/generate", json={"prompt": prompt, **params})

    def get_task(self, task_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/api/task/{task_id}")

    def generate_video(
        self, track_id: str, prompt: str, style: Optional[str] = None
    ) -> Dict[str, Any]:
        body = {"trackId": track_id, "prompt": prompt}
        if style:
            body["style"] = style
        return self._request("POST", "/api/videos/generate", json=body)

    def get_video(self, video_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/api/videos/{video_id}/status")

    def get_credits(self) -> Dict[str, Any]:
        return self._request("GET", "/api/credits")

    def track_poller(
        self,
        task_id: str,
        interval: float = POLL_INTERVAL_SECONDS,
        max_attempts: int = MAX_POLL_ATTEMPTS,
    ) -> TaskPoller:
        """A poller for a generation task; call `cancel()` on it to stop early."""
        return TaskPoller(
            lambda: self.get_task(task_id), interval=interval, max_attempts=max_attempts
        )

    def wait_for_track(
        self,
        task_id: str,
        interval: float = POLL_INTERVAL_SECONDS,
        max_attempts: int = MAX_POLL_ATTEMPTS,
    ) -> PollResult:
        """Poll a generation task until it finishes or the attempt budget runs out."""
        return self.track_poller(task_id, interval, max_attempts).run()

    def wait_for_video(
        self,
        video_id: str,
        interval: float = POLL_INTERVAL_SECONDS,
        max_attempts: int = MAX_POLL_ATTEMPTS,
    ) -> PollResult:
        return TaskPoller(
            lambda: self.get_video(video_id), interval=interval, max_attempts=max_attempts
        ).run()
