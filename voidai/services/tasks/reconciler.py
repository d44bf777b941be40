"""
Task Reconciliation

Applies provider results to stored tasks. Both the pull path (a client polling
task status) and the push path (a provider callback) funnel into `apply`, which
performs the PENDING -> SUCCESS/FAILED transition at most once per task and
notifies the owner only when it performed the transition itself.
"""

import logging
from traceback import format_exc
from typing import Optional, Tuple

from pydantic import BaseModel

from voidai.models.database import User
from voidai.models.shared import TaskStatus
from voidai.models.tracks import TaskStatusResponse, TrackRecord, TrackResult
from voidai.models.videos import VideoJobRecord
from voidai.services.database import DatabaseService, get_database_service
from voidai.services.errors import NotFound
from voidai.services.generation.common import (
    MusicProviderService,
    ProviderTaskStatus,
    VideoProviderService,
)
from voidai.services.notifications.firebase import NotificationDispatcher
from voidai.services.tasks.track_store import TrackStore
from voidai.services.tasks.video_store import VideoStore

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class ReconcileOutcome(BaseModel):
    """What a call to `apply` did."""

    task_id: str
    status: TaskStatus
    applied: bool
    notified: bool = False
    reason: Optional[str] = None


def _push_target(
    database_service: DatabaseService, user_id: Optional[str]
) -> Optional[str]:
    """Device token of a user who has notifications enabled."""
    if not user_id:
        return None
    with database_service.session() as session:
        user = session.get(User, user_id)
        if user is None or not user.push_notifications_enabled or not user.fcm_token:
            return None
        return user.fcm_token


def track_status_response(track: TrackRecord) -> TaskStatusResponse:
    """Status response built from a stored track, without asking the provider."""
    tracks = []
    if track.status == TaskStatus.SUCCESS.value:
        tracks.append(
            TrackResult(
                id=track.id,
                title=track.title,
                audio_url=track.audio_url,
                image_url=track.image_url,
                duration=track.duration,
            )
        )
    return TaskStatusResponse(
        task_id=track.task_id,
        status=track.status,
        provider_status=track.provider_status,
        tracks=tracks,
        error_message=track.error_message,
    )


class TrackReconciler:
    """Reconciles music generation tasks with provider results."""

    def __init__(
        self,
        notifier: NotificationDispatcher,
        track_store: Optional[TrackStore] = None,
        database_service: Optional[DatabaseService] = None,
    ):
        self.database_service = database_service or get_database_service()
        self.track_store = track_store or TrackStore(self.database_service)
        self.notifier = notifier

    async def apply(self, report: ProviderTaskStatus) -> ReconcileOutcome:
        """
        Apply a provider status report to the stored task.

        Non-terminal reports, unknown task ids and tasks that are already
        terminal are no-ops. Credits are not refunded for failed tasks.

        Args:
            report: Normalised provider status

        Returns:
            ReconcileOutcome describing whether this call changed the task
        """
        task_id = report.task_id
        if not report.status.is_terminal:
            return ReconcileOutcome(
                task_id=task_id, status=report.status, applied=False, reason="pending"
            )

        track = await self.track_store.get_by_task_id(task_id)
        if track is None:
            logger.warning(f"Ignoring {report.status.value} for unknown task {task_id}")
            return ReconcileOutcome(
                task_id=task_id,
                status=report.status,
                applied=False,
                reason="unknown_task",
            )

        applied = await self.track_store.mark_terminal(task_id, report)
        if not applied:
            logger.info(
                f"Task {task_id} already terminal, ignoring {report.status.value}"
            )
            current = await self.track_store.get_by_task_id(task_id)
            return ReconcileOutcome(
                task_id=task_id,
                status=TaskStatus(current.status),
                applied=False,
                reason="already_terminal",
            )

        logger.info(
            f"Task {task_id} moved to {report.status.value} ({report.provider_status})"
        )
        notified = self._notify(track, report.status)
        return ReconcileOutcome(
            task_id=task_id, status=report.status, applied=True, notified=notified
        )

    def _notify(self, track: TrackRecord, status: TaskStatus) -> bool:
        try:
            token = _push_target(self.database_service, track.user_id)
            if token is None:
                return False
            if status == TaskStatus.SUCCESS:
                return self.notifier.notify_track_ready(token, track.title, track.id)
            return self.notifier.notify_generation_failed(token, track.title, track.id)
        except Exception as e:
            logger.error(
                f"Failed to notify owner of task {track.task_id}: {str(e)}\n{format_exc()}"
            )
            return False

    async def refresh(
        self, task_id: str, provider: MusicProviderService
    ) -> Tuple[TaskStatusResponse, Optional[ReconcileOutcome]]:
        """
        Pull path: report a task's status, asking the provider while it is PENDING.

        Args:
            task_id: Provider task id
            provider: Music provider client

        Returns:
            The status response and, if the provider was asked, the outcome of
            applying its report
        """
        track = await self.track_store.get_by_task_id(task_id)
        if track is None:
            raise NotFound(f"Task {task_id} not found")

        if TaskStatus(track.status).is_terminal:
            return track_status_response(track), None

        report = await provider.fetch_status(task_id)
        outcome = await self.apply(report)

        if outcome.applied or outcome.reason == "already_terminal":
            stored = await self.track_store.get_by_task_id(task_id)
            return track_status_response(stored), outcome

        response = TaskStatusResponse(
            task_id=task_id,
            status=TaskStatus.PENDING,
            provider_status=report.provider_status,
            tracks=[],
            error_message=None,
        )
        return response, outcome


class VideoReconciler:
    """Reconciles video jobs with provider results."""

    def __init__(
        self,
        notifier: NotificationDispatcher,
        video_store: Optional[VideoStore] = None,
        database_service: Optional[DatabaseService] = None,
    ):
        self.database_service = database_service or get_database_service()
        self.video_store = video_store or VideoStore(self.database_service)
        self.notifier = notifier

    async def apply(
        self, job: VideoJobRecord, report: ProviderTaskStatus
    ) -> ReconcileOutcome:
        if not report.status.is_terminal:
            return ReconcileOutcome(
                task_id=report.task_id,
                status=report.status,
                applied=False,
                reason="pending",
            )

        applied = await self.video_store.mark_terminal(job.runway_job_id, report)
        if not applied:
            return ReconcileOutcome(
                task_id=report.task_id,
                status=report.status,
                applied=False,
                reason="already_terminal",
            )

        logger.info(f"Video job {job.id} moved to {report.status.value}")
        notified = False
        try:
            token = _push_target(self.database_service, job.user_id)
            if token is not None:
                if report.status == TaskStatus.SUCCESS:
                    notified = self.notifier.notify_video_ready(token, job.id)
                else:
                    notified = self.notifier.notify_video_failed(token, job.id)
        except Exception as e:
            logger.error(
                f"Failed to notify owner of video job {job.id}: {str(e)}\n{format_exc()}"
            )
        return ReconcileOutcome(
            task_id=report.task_id, status=report.status, applied=True, notified=notified
        )

    async def refresh(
        self, video_id: str, provider: VideoProviderService
    ) -> VideoJobRecord:
        """Pull path for a video job; terminal jobs are returned as stored."""
        job = await self.video_store.get(video_id)
        if job is None:
            raise NotFound("Video job not found")
        if TaskStatus(job.status).is_terminal or not job.runway_job_id:
            return job

        report = await provider.fetch_status(job.runway_job_id)
        await self.apply(job, report)
        return await self.video_store.get(video_id)
