"""
Track Store

Persistence for music generation tasks. A track row is created PENDING when a
job is submitted and moves to SUCCESS or FAILED exactly once, through a
conditional update keyed on the provider task id.
"""

import logging
from typing import List, Optional

from sqlalchemy import select, update

from voidai.models.database import Track
from voidai.models.shared import TaskStatus, utcnow
from voidai.models.tracks import GenerateMusicRequest, TrackRecord, TrackUpdateRequest
from voidai.services.database import DatabaseService, get_database_service
from voidai.services.errors import Forbidden, NotFound
from voidai.services.generation.common import UNTITLED_TRACK, ProviderTaskStatus

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def default_title(request: GenerateMusicRequest) -> str:
    """Explicit title, else the first comma-separated part of the prompt."""
    if request.title and request.title.strip():
        return request.title.strip()
    return request.prompt.split(",")[0].strip()[:120] or UNTITLED_TRACK


class TrackStore:
    """Reads and writes generation task rows."""

    def __init__(self, database_service: Optional[DatabaseService] = None):
        self.database_service = database_service or get_database_service()

    async def create_pending(
        self, user_id: Optional[str], task_id: str, request: GenerateMusicRequest
    ) -> TrackRecord:
        """
        Persist a freshly submitted task.

        Args:
            user_id: Owner of the task
            task_id: Provider task id
            request: Parameters the task was submitted with

        Returns:
            The stored PENDING record
        """
        with self.database_service.session() as session:
            track = Track(
                task_id=task_id,
                user_id=user_id,
                title=default_title(request),
                prompt=request.prompt,
                style=request.style,
                lyrics=request.lyrics,
                model=request.model,
                instrumental=request.instrumental,
                status=TaskStatus.PENDING.value,
            )
            session.add(track)
            session.flush()
            record = TrackRecord.model_validate(track)

        logger.info(f"Stored pending track {record.id} for task {task_id}")
        return record

    async def get(self, track_id: str) -> Optional[TrackRecord]:
        with self.database_service.session() as session:
            track = session.get(Track, track_id)
            return TrackRecord.model_validate(track) if track else None

    async def get_by_task_id(self, task_id: str) -> Optional[TrackRecord]:
        with self.database_service.session() as session:
            track = session.execute(
                select(Track).where(Track.task_id == task_id)
            ).scalar_one_or_none()
            return TrackRecord.model_validate(track) if track else None

    async def list_public(self, limit: int = 50, offset: int = 0) -> List[TrackRecord]:
        """Finished public tracks, newest first."""
        with self.database_service.session() as session:
            tracks = session.execute(
                select(Track)
                .where(
                    Track.is_public.is_(True),
                    Track.status == TaskStatus.SUCCESS.value,
                )
                .order_by(Track.created_at.desc())
                .limit(limit)
                .offset(offset)
            ).scalars()
            return [TrackRecord.model_validate(track) for track in tracks]

    async def list_for_user(
        self, user_id: str, limit: int = 50, offset: int = 0
    ) -> List[TrackRecord]:
        with self.database_service.session() as session:
            tracks = session.execute(
                select(Track)
                .where(Track.user_id == user_id)
                .order_by(Track.created_at.desc())
                .limit(limit)
                .offset(offset)
            ).scalars()
            return [TrackRecord.model_validate(track) for track in tracks]

    async def update_details(
        self, track_id: str, user_id: str, request: TrackUpdateRequest
    ) -> TrackRecord:
        """Rename a track or change its visibility; only the owner may do so."""
        with self.database_service.session() as session:
            track = session.get(Track, track_id)
            if track is None:
                raise NotFound("Track not found")
            if track.user_id != user_id:
                raise Forbidden("You do not own this track")

            if request.title is not None:
                track.title = request.title
            if request.is_public is not None:
                track.is_public = request.is_public
            session.flush()
            return TrackRecord.model_validate(track)

    async def mark_terminal(self, task_id: str, report: ProviderTaskStatus) -> bool:
        """
        Apply a terminal status to a PENDING task.

        Args:
            task_id: Provider task id
            report: Terminal status report

        Returns:
            True if this call moved the task out of PENDING, False if the task
            is unknown or was already terminal
        """
        values = {
            "status": report.status.value,
            "provider_status": report.provider_status,
            "completed_at": utcnow(),
        }
        if report.status == TaskStatus.SUCCESS:
            result = report.first_result
            values.update(
                audio_url=result.audio_url if result else None,
                image_url=result.image_url if result else None,
                duration=result.rounded_duration if result else None,
            )
        else:
            values["error_message"] = report.error_message or "Generation failed"

        with self.database_service.session() as session:
            outcome = session.execute(
                update(Track)
                .where(
                    Track.task_id == task_id,
                    Track.status == TaskStatus.PENDING.value,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
        return outcome.rowcount == 1
