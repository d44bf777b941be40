from unittest.mock import MagicMock, patch

import pytest
import requests

from voidai.models.shared import TaskStatus
from voidai.models.tracks import GenerateMusicRequest
from voidai.services.errors import InvalidInput, ProviderRejected, ProviderUnavailable
from voidai.services.generation.common import classify_status
from voidai.services.generation.kie import KieMusicClient, build_callback_url


def _response(body, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = body
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(
            f"{status_code} error"
        )
    return response


@pytest.fixture
def kie():
    return KieMusicClient(
        api_key="test-key",
        api_base="https://kie.test/api/v1",
        callback_url="https://voidai.test/api/music-callback?token=abc",
    )


class TestClassifyStatus:
    def test_success_needs_results(self):
        assert classify_status("SUCCESS", ("SUCCESS",)) == TaskStatus.SUCCESS
        assert (
            classify_status("SUCCESS", ("SUCCESS",), has_results=False)
            == TaskStatus.PENDING
        )

    @pytest.mark.parametrize(
        "provider_status",
        ["CREATE_TASK_FAILED", "GENERATE_AUDIO_FAILED", "SENSITIVE_WORD_ERROR"],
    )
    def test_failures(self, provider_status):
        assert classify_status(provider_status, ("SUCCESS",)) == TaskStatus.FAILED

    @pytest.mark.parametrize(
        "provider_status", ["PENDING", "TEXT_SUCCESS", "FIRST_SUCCESS", "BRAND_NEW", None]
    )
    def test_everything_else_is_pending(self, provider_status):
        assert classify_status(provider_status, ("SUCCESS",)) == TaskStatus.PENDING


class TestCallbackUrl:
    def test_carries_token(self):
        assert (
            build_callback_url("https://voidai.test/", "s3cret")
            == "https://voidai.test/api/music-callback?token=s3cret"
        )

    def test_without_token(self):
        assert (
            build_callback_url("https://voidai.test", None)
            == "https://voidai.test/api/music-callback"
        )


class TestSubmit:
    @pytest.mark.asyncio
    async def test_returns_task_id(self, kie):
        body = {"code": 200, "msg": "success", "data": {"taskId": "abc123"}}
        with patch(
            "voidai.services.generation.kie.requests.request",
            return_value=_response(body),
        ) as mock_request:
            task_id = await kie.submit(GenerateMusicRequest(prompt="lofi, rainy"))

        assert task_id == "abc123"
        args, kwargs = mock_request.call_args
        assert args == ("POST", "https://kie.test/api/v1/generate")
        assert kwargs["headers"]["Authorization"] == "Bearer test-key"
        assert kwargs["json"] == {
            "prompt": "lofi, rainy",
            "customMode": False,
            "instrumental": False,
            "model": "V4",
            "callBackUrl": "https://voidai.test/api/music-callback?token=abc",
        }

    def test_custom_mode_payload(self, kie):
        request = GenerateMusicRequest(
            prompt="synthwave",
            lyrics="[Verse]\nneon lights",
            title="Night Drive",
            custom_mode=True,
            vocal_gender="f",
            model="V5",
        )

        payload = kie.build_payload(request)

        assert payload["prompt"] == "[Verse]\nneon lights"
        assert payload["style"] == "synthwave"
        assert payload["title"] == "Night Drive"
        assert payload["vocalGender"] == "f"
        assert payload["model"] == "V5"

    @pytest.mark.asyncio
    async def test_provider_error_code_is_rejection(self, kie):
        body = {"code": 400, "msg": "prompt contains sensitive words"}
        with patch(
            "voidai.services.generation.kie.requests.request",
            return_value=_response(body),
        ):
            with pytest.raises(ProviderRejected) as exc_info:
                await kie.submit(GenerateMusicRequest(prompt="x"))

        assert exc_info.value.status_code == 502
        assert exc_info.value.context["provider_message"] == (
            "prompt contains sensitive words"
        )

    @pytest.mark.asyncio
    async def test_transport_error_is_unavailable(self, kie):
        with patch(
            "voidai.services.generation.kie.requests.request",
            side_effect=requests.ConnectionError("refused"),
        ):
            with pytest.raises(ProviderUnavailable):
                await kie.submit(GenerateMusicRequest(prompt="x"))

    @pytest.mark.asyncio
    async def test_http_error_is_unavailable(self, kie):
        with patch(
            "voidai.services.generation.kie.requests.request",
            return_value=_response({}, status_code=500),
        ):
            with pytest.raises(ProviderUnavailable):
                await kie.submit(GenerateMusicRequest(prompt="x"))

    @pytest.mark.asyncio
    async def test_missing_key_is_unavailable(self):
        client = KieMusicClient(api_key=None, callback_url="http://test")
        with patch("voidai.services.generation.kie.requests.request") as mock_request:
            with pytest.raises(ProviderUnavailable):
                await client.submit(GenerateMusicRequest(prompt="x"))
        mock_request.assert_not_called()


class TestFetchStatus:
    @pytest.mark.asyncio
    async def test_success_with_tracks(self, kie):
        body = {
            "code": 200,
            "data": {
                "taskId": "abc123",
                "status": "SUCCESS",
                "response": {
                    "sunoData": [
                        {
                            "id": "s1",
                            "audioUrl": "https://cdn.test/a.mp3",
                            "imageUrl": "https://cdn.test/a.jpg",
                            "title": "Rain",
                            "duration": 182.6,
                        }
                    ]
                },
            },
        }
        with patch(
            "voidai.services.generation.kie.requests.request",
            return_value=_response(body),
        ) as mock_request:
            report = await kie.fetch_status("abc123")

        assert mock_request.call_args.kwargs["params"] == {"taskId": "abc123"}
        assert report.status == TaskStatus.SUCCESS
        assert report.provider_status == "SUCCESS"
        assert report.first_result.audio_url == "https://cdn.test/a.mp3"
        assert report.first_result.rounded_duration == 183

    @pytest.mark.asyncio
    async def test_intermediate_status_is_pending(self, kie):
        body = {"code": 200, "data": {"taskId": "abc123", "status": "FIRST_SUCCESS"}}
        with patch(
            "voidai.services.generation.kie.requests.request",
            return_value=_response(body),
        ):
            report = await kie.fetch_status("abc123")

        assert report.status == TaskStatus.PENDING
        assert report.provider_status == "FIRST_SUCCESS"

    @pytest.mark.asyncio
    async def test_failure_carries_message(self, kie):
        body = {
            "code": 200,
            "data": {
                "taskId": "abc123",
                "status": "GENERATE_AUDIO_FAILED",
                "errorMessage": "model overloaded",
            },
        }
        with patch(
            "voidai.services.generation.kie.requests.request",
            return_value=_response(body),
        ):
            report = await kie.fetch_status("abc123")

        assert report.status == TaskStatus.FAILED
        assert report.error_message == "model overloaded"


class TestParseCallback:
    def test_complete_callback(self, kie):
        payload = {
            "code": 200,
            "msg": "All generated successfully.",
            "data": {
                "callbackType": "complete",
                "task_id": "abc123",
                "data": [
                    {
                        "id": "s1",
                        "audio_url": "https://cdn.test/a.mp3",
                        "image_url": "https://cdn.test/a.jpg",
                        "title": "Rain",
                        "duration": 59.4,
                    }
                ],
            },
        }

        report = kie.parse_callback(payload)

        assert report.task_id == "abc123"
        assert report.status == TaskStatus.SUCCESS
        assert report.provider_status == "COMPLETE"
        assert report.first_result.image_url == "https://cdn.test/a.jpg"
        assert report.first_result.rounded_duration == 59

    def test_intermediate_callbacks_are_pending(self, kie):
        for callback_type in ("text", "first"):
            report = kie.parse_callback(
                {"data": {"callbackType": callback_type, "task_id": "abc123"}}
            )
            assert report.status == TaskStatus.PENDING

    def test_error_callback(self, kie):
        report = kie.parse_callback(
            {
                "code": 501,
                "msg": "Audio generation failed",
                "data": {"callbackType": "error", "task_id": "abc123"},
            }
        )

        assert report.status == TaskStatus.FAILED
        assert report.error_message == "Audio generation failed"

    def test_error_code_without_callback_type(self, kie):
        report = kie.parse_callback(
            {"code": 531, "msg": "credits exhausted", "data": {"taskId": "abc123"}}
        )

        assert report.status == TaskStatus.FAILED
        assert report.provider_status == "ERROR_531"

    def test_unknown_shape_is_pending(self, kie):
        report = kie.parse_callback({"code": 200, "data": {"task_id": "abc123"}})
        assert report.status == TaskStatus.PENDING

    @pytest.mark.parametrize(
        "payload",
        [
            [],
            "text",
            {"data": {"callbackType": "complete"}},
            {},
            {"code": 200, "data": {"task_id": "abc123", "response": "oops"}},
            {"data": {"task_id": "abc123", "response": {"sunoData": "oops"}}},
            {"data": {"task_id": "abc123", "data": [{"audio_url": {"x": 1}}]}},
        ],
    )
    def test_malformed_payload(self, kie, payload):
        with pytest.raises(InvalidInput):
            kie.parse_callback(payload)

    def test_unreadable_duration_is_dropped(self, kie):
        report = kie.parse_callback(
            {
                "data": {
                    "callbackType": "complete",
                    "task_id": "abc123",
                    "data": [{"audio_url": "https://cdn.test/a.mp3", "duration": "n/a"}],
                }
            }
        )

        assert report.status == TaskStatus.SUCCESS
        assert report.first_result.duration is None
