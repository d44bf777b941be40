import logging
import math
from traceback import format_exc
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import requests
from pydantic import ValidationError

from config import CALLBACK_BASE_URL, CALLBACK_SECRET, KIE_API_BASE, KIE_API_KEY
from voidai.models.shared import TaskStatus
from voidai.models.tracks import GenerateMusicRequest
from voidai.services.errors import InvalidInput, ProviderRejected, ProviderUnavailable
from voidai.services.generation.common import (
    UNTITLED_TRACK,
    GeneratedAsset,
    MusicProviderService,
    ProviderTaskStatus,
    bearer_headers,
    classify_status,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

MUSIC_CALLBACK_PATH = "/api/music-callback"


def build_callback_url(
    base_url: str = CALLBACK_BASE_URL, token: Optional[str] = CALLBACK_SECRET
) -> str:
    """Callback URL handed to the provider, carrying the shared token when set."""
    url = f"{base_url.rstrip('/')}{MUSIC_CALLBACK_PATH}"
    if token:
        url = f"{url}?{urlencode({'token': token})}"
    return url


def _pick(item: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = item.get(key)
        if value not in (None, ""):
            return value
    return None


def _to_asset(item: Dict[str, Any]) -> GeneratedAsset:
    # Status polling reports camelCase keys, callbacks report snake_case ones
    duration = _pick(item, "duration")
    return GeneratedAsset(
        id=_pick(item, "id"),
        title=_pick(item, "title"),
        audio_url=_pick(
            item, "audioUrl", "audio_url", "streamAudioUrl", "stream_audio_url"
        ),
        image_url=_pick(item, "imageUrl", "image_url"),
        duration=_to_duration(duration),
    )


def _to_duration(value: Any) -> Optional[float]:
    try:
        duration = float(value)
    except (TypeError, ValueError):
        return None
    return duration if math.isfinite(duration) else None


def _suno_items(data: Dict[str, Any]) -> Optional[List[Any]]:
    """Tracks under `response.sunoData`, or None when that structure is malformed."""
    response = data.get("response")
    if response is None:
        return []
    if not isinstance(response, dict):
        return None
    items = response.get("sunoData")
    if items is None:
        return []
    return items if isinstance(items, list) else None


class KieMusicClient(MusicProviderService):
    """KIE (Suno) implementation of the music provider service."""

    SUCCESS_VALUES = ("SUCCESS",)

    # Callback types sent by the provider as a task progresses
    CALLBACK_STATUSES = {
        "text": TaskStatus.PENDING,
        "first": TaskStatus.PENDING,
        "complete": TaskStatus.SUCCESS,
        "error": TaskStatus.FAILED,
    }

    def __init__(
        self,
        api_key: Optional[str] = KIE_API_KEY,
        api_base: str = KIE_API_BASE,
        callback_url: Optional[str] = None,
        timeout: int = 30,
    ):
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.callback_url = callback_url or build_callback_url()
        self.timeout = timeout

    def _require_key(self) -> str:
        if not self.api_key:
            logger.error("Music provider API key is not configured")
            raise ProviderUnavailable("Music provider is not configured")
        return self.api_key

    def build_payload(self, request: GenerateMusicRequest) -> Dict[str, Any]:
        """Request body for a generation job."""
        payload: Dict[str, Any] = {
            # Custom mode sends the lyrics as the prompt
            "prompt": request.lyrics
            if request.custom_mode and request.lyrics
            else request.prompt,
            "customMode": request.custom_mode,
            "instrumental": request.instrumental,
            "model": request.model,
            "callBackUrl": self.callback_url,
        }
        if request.custom_mode:
            payload["style"] = request.style or request.prompt
            payload["title"] = request.title or UNTITLED_TRACK
            if request.vocal_gender:
                payload["vocalGender"] = request.vocal_gender
        return payload

    def _send(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        api_key = self._require_key()
        url = f"{self.api_base}{path}"
        try:
            response = requests.request(
                method,
                url,
                headers=bearer_headers(api_key),
                timeout=self.timeout,
                **kwargs,
            )
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as e:
            logger.error(f"Music provider request failed: {str(e)}\n{format_exc()}")
            raise ProviderUnavailable(f"Music provider request failed: {str(e)}")
        except ValueError as e:
            logger.error(f"Music provider returned invalid JSON: {str(e)}")
            raise ProviderUnavailable("Music provider returned an invalid response")

        if not isinstance(body, dict) or body.get("code") != 200:
            provider_message = (
                body.get("msg", "") if isinstance(body, dict) else str(body)
            )
            logger.warning(f"Music provider rejected {method} {path}: {provider_message}")
            raise ProviderRejected(
                provider_message or "Music provider rejected the request",
                provider_message=provider_message,
            )
        return body.get("data") or {}

    async def submit(self, request: GenerateMusicRequest) -> str:
        """
        Submit a music generation job.

        Args:
            request: Generation parameters

        Returns:
            Provider task id

        Raises:
            ProviderUnavailable: Key missing, transport error or non-2xx reply
            ProviderRejected: The provider answered with an error code
        """
        data = self._send("POST", "/generate", json=self.build_payload(request))
        task_id = data.get("taskId")
        if not task_id:
            raise ProviderRejected(
                "Music provider did not return a task id",
                provider_message="missing taskId",
            )
        logger.info(f"Submitted music generation task {task_id} ({request.model})")
        return task_id

    async def fetch_status(self, task_id: str) -> ProviderTaskStatus:
        """
        Fetch and normalise the status of a generation task.

        Args:
            task_id: Provider task id

        Returns:
            ProviderTaskStatus; unknown provider statuses map to PENDING
        """
        data = self._send(
            "GET", "/generate/record-info", params={"taskId": task_id}
        )
        provider_status = data.get("status") or "PENDING"
        items = _suno_items(data) or []
        results = [_to_asset(item) for item in items if isinstance(item, dict)]

        status = classify_status(
            provider_status, self.SUCCESS_VALUES, has_results=bool(results)
        )
        error_message = data.get("errorMessage")
        if status == TaskStatus.FAILED and not error_message:
            error_message = "Generation failed"

        return ProviderTaskStatus(
            task_id=data.get("taskId") or task_id,
            status=status,
            provider_status=provider_status,
            results=results,
            error_message=error_message,
        )

    def parse_callback(self, payload: Any) -> ProviderTaskStatus:
        """
        Normalise a provider webhook body.

        Args:
            payload: Decoded JSON body

        Returns:
            ProviderTaskStatus for the task named in the payload

        Raises:
            InvalidInput: The payload is not an object or names no task
        """
        if not isinstance(payload, dict):
            raise InvalidInput("Callback payload must be a JSON object")

        data = payload.get("data")
        if not isinstance(data, dict):
            data = {}

        task_id = _pick(data, "task_id", "taskId") or _pick(
            payload, "taskId", "task_id"
        )
        if not task_id or not isinstance(task_id, str):
            raise InvalidInput("Callback payload has no task id")

        items = data.get("data")
        if not isinstance(items, list):
            items = _suno_items(data)
            if items is None:
                raise InvalidInput("Callback payload has a malformed response")
        try:
            results = [_to_asset(item) for item in items if isinstance(item, dict)]
        except ValidationError:
            raise InvalidInput("Callback payload has malformed track data")

        callback_type = str(_pick(data, "callbackType") or "").lower()
        explicit_status = _pick(data, "status") or _pick(payload, "status")

        if callback_type in self.CALLBACK_STATUSES:
            provider_status = callback_type.upper()
            status = self.CALLBACK_STATUSES[callback_type]
            if status == TaskStatus.SUCCESS and not results:
                status = TaskStatus.PENDING
        elif explicit_status:
            provider_status = str(explicit_status)
            status = classify_status(
                provider_status, self.SUCCESS_VALUES, has_results=bool(results)
            )
        elif payload.get("code") not in (None, 200):
            provider_status = f"ERROR_{payload.get('code')}"
            status = TaskStatus.FAILED
        else:
            provider_status = "UNKNOWN"
            status = TaskStatus.PENDING

        error_message = None
        if status == TaskStatus.FAILED:
            error_message = (
                _pick(data, "errorMessage", "error_message")
                or payload.get("msg")
                or "Generation failed"
            )
            error_message = str(error_message)

        return ProviderTaskStatus(
            task_id=task_id,
            status=status,
            provider_status=provider_status,
            results=results,
            error_message=error_message,
        )


# Global instance
_music_provider: Optional[KieMusicClient] = None


def get_music_provider() -> KieMusicClient:
    global _music_provider
    if _music_provider is None:
        _music_provider = KieMusicClient()
    return _music_provider
