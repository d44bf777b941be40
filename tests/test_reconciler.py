import asyncio
import threading

import pytest

from voidai.models.database import Track
from voidai.models.shared import TaskStatus
from voidai.models.tracks import GenerateMusicRequest, TrackRecord
from voidai.services.errors import NotFound
from voidai.services.generation.common import GeneratedAsset, ProviderTaskStatus
from voidai.services.tasks.reconciler import TrackReconciler, VideoReconciler
from voidai.services.tasks.track_store import TrackStore, default_title
from voidai.services.tasks.video_store import VideoStore


def success_report(task_id, duration=121.7):
    return ProviderTaskStatus(
        task_id=task_id,
        status=TaskStatus.SUCCESS,
        provider_status="SUCCESS",
        results=[
            GeneratedAsset(
                id="s1",
                audio_url="https://cdn.test/a.mp3",
                image_url="https://cdn.test/a.jpg",
                duration=duration,
            )
        ],
    )


def failed_report(task_id, message="model overloaded"):
    return ProviderTaskStatus(
        task_id=task_id,
        status=TaskStatus.FAILED,
        provider_status="GENERATE_AUDIO_FAILED",
        error_message=message,
    )


@pytest.fixture
def track_store(database_service):
    return TrackStore(database_service)


@pytest.fixture
def reconciler(database_service, track_store, notifier):
    return TrackReconciler(notifier, track_store, database_service=database_service)


@pytest.fixture
def subscriber(make_user):
    return make_user(fcm_token="device-token", push_notifications_enabled=True)


@pytest.fixture
def pending_track(database_service, subscriber):
    with database_service.session() as session:
        track = Track(
            task_id="task-1",
            user_id=subscriber.id,
            title="lofi beats",
            prompt="lofi beats, rain",
            status="PENDING",
        )
        session.add(track)
        session.flush()
        return TrackRecord.model_validate(track)


class TestDefaultTitle:
    def test_explicit_title(self):
        assert default_title(GenerateMusicRequest(prompt="a, b", title=" Mine ")) == "Mine"

    def test_first_prompt_part(self):
        assert default_title(GenerateMusicRequest(prompt="lofi beats, rain")) == "lofi beats"

    def test_untitled(self):
        assert default_title(GenerateMusicRequest(prompt=", rain")) == "Untitled Track"


class TestTrackReconciler:
    @pytest.mark.asyncio
    async def test_success_is_applied(self, reconciler, track_store, pending_track, notifier):
        outcome = await reconciler.apply(success_report("task-1"))

        assert outcome.applied
        assert outcome.notified
        stored = await track_store.get(pending_track.id)
        assert stored.status == "SUCCESS"
        assert stored.audio_url == "https://cdn.test/a.mp3"
        assert stored.image_url == "https://cdn.test/a.jpg"
        assert stored.duration == 122
        assert stored.provider_status == "SUCCESS"
        assert stored.completed_at is not None
        assert len(notifier.sent) == 1
        assert notifier.sent[0]["token"] == "device-token"
        assert notifier.sent[0]["data"]["trackId"] == pending_track.id

    @pytest.mark.asyncio
    async def test_failure_is_applied(self, reconciler, track_store, pending_track, notifier):
        outcome = await reconciler.apply(failed_report("task-1"))

        assert outcome.applied
        stored = await track_store.get(pending_track.id)
        assert stored.status == "FAILED"
        assert stored.error_message == "model overloaded"
        assert stored.audio_url is None
        assert notifier.sent[0]["data"]["type"] == "generation_failed"

    @pytest.mark.asyncio
    async def test_pending_report_is_noop(self, reconciler, track_store, pending_track):
        outcome = await reconciler.apply(
            ProviderTaskStatus(
                task_id="task-1", status=TaskStatus.PENDING, provider_status="TEXT_SUCCESS"
            )
        )

        assert not outcome.applied
        assert outcome.reason == "pending"
        assert (await track_store.get(pending_track.id)).status == "PENDING"

    @pytest.mark.asyncio
    async def test_unknown_task_is_noop(self, reconciler, notifier):
        outcome = await reconciler.apply(success_report("nope"))

        assert not outcome.applied
        assert outcome.reason == "unknown_task"
        assert notifier.sent == []

    @pytest.mark.asyncio
    async def test_repeat_report_is_noop(self, reconciler, pending_track, notifier):
        first = await reconciler.apply(success_report("task-1"))
        second = await reconciler.apply(success_report("task-1"))

        assert first.applied
        assert not second.applied
        assert second.reason == "already_terminal"
        assert len(notifier.sent) == 1

    @pytest.mark.asyncio
    async def test_terminal_state_is_final(self, reconciler, track_store, pending_track):
        await reconciler.apply(failed_report("task-1"))
        outcome = await reconciler.apply(success_report("task-1"))

        assert not outcome.applied
        assert outcome.status == TaskStatus.FAILED
        stored = await track_store.get(pending_track.id)
        assert stored.status == "FAILED"
        assert stored.audio_url is None

    def test_poll_and_callback_race_notifies_once(
        self, reconciler, track_store, pending_track, notifier
    ):
        outcomes = []
        lock = threading.Lock()
        start = threading.Barrier(2)

        def deliver():
            start.wait()
            outcome = asyncio.run(reconciler.apply(success_report("task-1")))
            with lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=deliver) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(o.applied for o in outcomes) == [False, True]
        assert len(notifier.sent) == 1

    @pytest.mark.asyncio
    async def test_no_notification_when_disabled(
        self, reconciler, track_store, make_user, notifier
    ):
        user = make_user(fcm_token="device-token", push_notifications_enabled=False)
        await track_store.create_pending(
            user.id, "task-quiet", GenerateMusicRequest(prompt="ambient")
        )

        outcome = await reconciler.apply(success_report("task-quiet"))

        assert outcome.applied
        assert not outcome.notified
        assert notifier.sent == []

    @pytest.mark.asyncio
    async def test_notification_error_does_not_undo_transition(
        self, reconciler, track_store, pending_track, notifier
    ):
        def explode(*args, **kwargs):
            raise RuntimeError("push service down")

        notifier.notify_track_ready = explode

        outcome = await reconciler.apply(success_report("task-1"))

        assert outcome.applied
        assert not outcome.notified
        assert (await track_store.get(pending_track.id)).status == "SUCCESS"


class TestTrackRefresh:
    @pytest.mark.asyncio
    async def test_pending_task_asks_provider(
        self, reconciler, pending_track, music_provider
    ):
        response, outcome = await reconciler.refresh("task-1", music_provider)

        assert response.status == "PENDING"
        assert response.tracks == []
        assert music_provider.fetches == ["task-1"]
        assert outcome.reason == "pending"

    @pytest.mark.asyncio
    async def test_terminal_report_is_reconciled(
        self, reconciler, pending_track, music_provider
    ):
        music_provider.reports["task-1"] = success_report("task-1", duration=59.5)

        response, outcome = await reconciler.refresh("task-1", music_provider)

        assert outcome.applied
        assert response.status == "SUCCESS"
        assert response.tracks[0].audio_url == "https://cdn.test/a.mp3"
        assert response.tracks[0].duration == 60

    @pytest.mark.asyncio
    async def test_terminal_task_is_answered_from_store(
        self, reconciler, pending_track, music_provider
    ):
        await reconciler.apply(failed_report("task-1"))

        response, outcome = await reconciler.refresh("task-1", music_provider)

        assert outcome is None
        assert response.status == "FAILED"
        assert response.error_message == "model overloaded"
        assert music_provider.fetches == []

    @pytest.mark.asyncio
    async def test_unknown_task(self, reconciler, music_provider):
        with pytest.raises(NotFound):
            await reconciler.refresh("nope", music_provider)


class TestVideoReconciler:
    @pytest.mark.asyncio
    async def test_video_job_lifecycle(
        self, database_service, subscriber, video_provider, notifier
    ):
        video_store = VideoStore(database_service)
        reconciler = VideoReconciler(notifier, video_store, database_service)
        job = await video_store.create_pending(
            user_id=subscriber.id,
            track_id=None,
            runway_job_id="runway-9",
            prompt="slow zoom",
            credits_cost=25,
        )

        pending = await reconciler.refresh(job.id, video_provider)
        assert pending.status == "PENDING"

        video_provider.reports["runway-9"] = ProviderTaskStatus(
            task_id="runway-9",
            status=TaskStatus.SUCCESS,
            provider_status="SUCCEEDED",
            results=[GeneratedAsset(video_url="https://cdn.test/v.mp4")],
        )
        finished = await reconciler.refresh(job.id, video_provider)

        assert finished.status == "SUCCESS"
        assert finished.video_url == "https://cdn.test/v.mp4"
        assert len(notifier.sent) == 1

        again = await reconciler.refresh(job.id, video_provider)
        assert again.status == "SUCCESS"
        assert len(notifier.sent) == 1
