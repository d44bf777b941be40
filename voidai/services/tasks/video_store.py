"""
Video Store

Persistence for image-to-video jobs. Rows follow the same lifecycle as tracks:
created PENDING, moved to one terminal state by a guarded update.
"""

import logging
from typing import List, Optional

from sqlalchemy import select, update

from voidai.models.database import VideoJob
from voidai.models.shared import TaskStatus, utcnow
from voidai.models.videos import VideoJobRecord
from voidai.services.database import DatabaseService, get_database_service
from voidai.services.generation.common import ProviderTaskStatus

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class VideoStore:
    """Reads and writes video job rows."""

    def __init__(self, database_service: Optional[DatabaseService] = None):
        self.database_service = database_service or get_database_service()

    async def create_pending(
        self,
        user_id: str,
        track_id: str,
        runway_job_id: str,
        prompt: str,
        credits_cost: int,
        style: Optional[str] = None,
        thumbnail_url: Optional[str] = None,
        duration: Optional[int] = None,
    ) -> VideoJobRecord:
        with self.database_service.session() as session:
            job = VideoJob(
                user_id=user_id,
                track_id=track_id,
                runway_job_id=runway_job_id,
                prompt=prompt,
                style=style,
                status=TaskStatus.PENDING.value,
                thumbnail_url=thumbnail_url,
                duration=duration,
                credits_cost=credits_cost,
            )
            session.add(job)
            session.flush()
            record = VideoJobRecord.model_validate(job)

        logger.info(f"Stored pending video job {record.id} for {runway_job_id}")
        return record

    async def get(self, video_id: str) -> Optional[VideoJobRecord]:
        with self.database_service.session() as session:
            job = session.get(VideoJob, video_id)
            return VideoJobRecord.model_validate(job) if job else None

    async def list_for_user(self, user_id: str) -> List[VideoJobRecord]:
        with self.database_service.session() as session:
            jobs = session.execute(
                select(VideoJob)
                .where(VideoJob.user_id == user_id)
                .order_by(VideoJob.created_at.desc())
            ).scalars()
            return [VideoJobRecord.model_validate(job) for job in jobs]

    async def mark_terminal(
        self, runway_job_id: str, report: ProviderTaskStatus
    ) -> bool:
        """Apply a terminal status to a PENDING job; True if this call did so."""
        values = {
            "status": report.status.value,
            "provider_status": report.provider_status,
            "completed_at": utcnow(),
        }
        if report.status == TaskStatus.SUCCESS:
            result = report.first_result
            values["video_url"] = result.video_url if result else None
        else:
            values["error_message"] = report.error_message or "Video generation failed"

        with self.database_service.session() as session:
            outcome = session.execute(
                update(VideoJob)
                .where(
                    VideoJob.runway_job_id == runway_job_id,
                    VideoJob.status == TaskStatus.PENDING.value,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
        return outcome.rowcount == 1
