import logging
from traceback import format_exc
from typing import Annotated, List

from fastapi import APIRouter, Depends, HTTPException

from voidai.models.database import User
from voidai.models.videos import (
    GenerateVideoRequest,
    GenerateVideoResponse,
    VideoJobRecord,
)
from voidai.server.dependencies import (
    get_credit_manager,
    get_track_store,
    get_video_provider,
    get_video_reconciler,
    get_video_store,
)
from voidai.server.routers.auth_routes import get_current_user
from voidai.services.errors import (
    Forbidden,
    MissingPrerequisite,
    NotFound,
    VoidAIError,
)
from voidai.services.generation.common import VideoProviderService
from voidai.services.payments.credit_manager import CreditManager
from voidai.services.payments.plans import VIDEO_GENERATION_COST
from voidai.services.tasks.reconciler import VideoReconciler
from voidai.services.tasks.track_store import TrackStore
from voidai.services.tasks.video_store import VideoStore

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create a router for video generation operations
video_router = APIRouter()

VIDEO_DURATION_SECONDS = 5


@video_router.post("/generate", response_model=GenerateVideoResponse)
async def generate_video(
    request: GenerateVideoRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    credit_manager: Annotated[CreditManager, Depends(get_credit_manager)],
    provider: Annotated[VideoProviderService, Depends(get_video_provider)],
    track_store: Annotated[TrackStore, Depends(get_track_store)],
    video_store: Annotated[VideoStore, Depends(get_video_store)],
) -> GenerateVideoResponse:
    """
    Start a music video from a track's cover image.

    The track must belong to the caller and have a cover image before any
    credits are taken. A submission the provider refuses is credited back.
    """
    track = await track_store.get(request.track_id)
    if track is None:
        raise NotFound("Track not found")
    if track.user_id != current_user.id:
        raise Forbidden("You do not own this track")
    if not track.image_url:
        raise MissingPrerequisite("Track has no cover image to animate")

    credits = await credit_manager.authorize_and_debit(
        current_user.id, VIDEO_GENERATION_COST
    )

    prompt = request.prompt
    if request.style:
        prompt = f"{request.style} style: {request.prompt}"

    try:
        job_id = await provider.submit(
            track.image_url, prompt, duration=VIDEO_DURATION_SECONDS
        )
    except VoidAIError:
        credits = await credit_manager.credit(current_user.id, VIDEO_GENERATION_COST)
        logger.info(
            f"Refunded {VIDEO_GENERATION_COST} credits to {current_user.id} "
            "after video submit error"
        )
        raise

    try:
        job = await video_store.create_pending(
            user_id=current_user.id,
            track_id=track.id,
            runway_job_id=job_id,
            prompt=request.prompt,
            credits_cost=VIDEO_GENERATION_COST,
            style=request.style,
            thumbnail_url=track.image_url,
            duration=VIDEO_DURATION_SECONDS,
        )
    except Exception as e:
        # The provider job exists but has no row to reconcile into
        logger.error(
            f"Failed to store video job {job_id} for {current_user.id}, refunding: "
            f"{str(e)}\n{format_exc()}"
        )
        await credit_manager.credit(current_user.id, VIDEO_GENERATION_COST)
        if isinstance(e, VoidAIError):
            raise
        raise HTTPException(status_code=500, detail="Failed to store video job")

    return GenerateVideoResponse(video_job=job, credits=credits)


@video_router.get("", response_model=List[VideoJobRecord])
async def list_videos(
    current_user: Annotated[User, Depends(get_current_user)],
    video_store: Annotated[VideoStore, Depends(get_video_store)],
) -> List[VideoJobRecord]:
    """The caller's video jobs, newest first."""
    return await video_store.list_for_user(current_user.id)


@video_router.get("/{video_id}/status", response_model=VideoJobRecord)
async def get_video_status(
    video_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    reconciler: Annotated[VideoReconciler, Depends(get_video_reconciler)],
    provider: Annotated[VideoProviderService, Depends(get_video_provider)],
) -> VideoJobRecord:
    """A video job, refreshed from the provider while it is PENDING."""
    job = await reconciler.video_store.get(video_id)
    if job is None:
        raise NotFound("Video job not found")
    if job.user_id != current_user.id:
        raise Forbidden("You do not own this video")
    return await reconciler.refresh(video_id, provider)
