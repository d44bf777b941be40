import hmac
import logging
from traceback import format_exc
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from config import CALLBACK_SECRET
from voidai.models.database import User
from voidai.models.shared import TaskStatus
from voidai.models.tracks import (
    CallbackAck,
    GenerateMusicRequest,
    GenerateMusicResponse,
    TaskStatusResponse,
    TrackRecord,
)
from voidai.server.dependencies import (
    get_credit_manager,
    get_music_provider,
    get_track_reconciler,
    get_track_store,
)
from voidai.server.routers.auth_routes import get_current_user, get_optional_user
from voidai.services.errors import (
    Forbidden,
    InvalidInput,
    NotFound,
    Unauthorized,
    VoidAIError,
)
from voidai.services.generation.common import MusicProviderService
from voidai.services.payments.credit_manager import CreditManager
from voidai.services.payments.plans import model_cost, plan_allows_model
from voidai.services.tasks.reconciler import TrackReconciler
from voidai.services.tasks.track_store import TrackStore

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create a router for music generation operations
generation_router = APIRouter()


def get_callback_secret() -> Optional[str]:
    return CALLBACK_SECRET


@generation_router.post("/generate", response_model=GenerateMusicResponse)
async def generate_music(
    request: GenerateMusicRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    credit_manager: Annotated[CreditManager, Depends(get_credit_manager)],
    provider: Annotated[MusicProviderService, Depends(get_music_provider)],
    track_store: Annotated[TrackStore, Depends(get_track_store)],
) -> GenerateMusicResponse:
    """
    Submit a music generation job.

    Debits the model's credit cost, submits the job to the provider and stores
    a PENDING track keyed by the provider task id. If the provider refuses the
    job, the debit is credited back.
    """
    balance = await credit_manager.get_balance(current_user.id)
    if not plan_allows_model(balance.plan_type, request.model):
        raise Forbidden(
            f"Model {request.model} is not available on the {balance.plan_type} plan"
        )

    cost = model_cost(request.model)
    credits = await credit_manager.authorize_and_debit(current_user.id, cost)

    try:
        task_id = await provider.submit(request)
    except VoidAIError:
        credits = await credit_manager.credit(current_user.id, cost)
        logger.info(f"Refunded {cost} credits to {current_user.id} after submit error")
        raise

    try:
        track = await track_store.create_pending(current_user.id, task_id, request)
    except Exception as e:
        # The provider job exists but has no row to reconcile into
        logger.error(
            f"Failed to store task {task_id} for {current_user.id}, refunding: "
            f"{str(e)}\n{format_exc()}"
        )
        await credit_manager.credit(current_user.id, cost)
        if isinstance(e, VoidAIError):
            raise
        raise HTTPException(status_code=500, detail="Failed to store generation task")

    return GenerateMusicResponse(
        success=True, task_id=task_id, track_id=track.id, credits=credits
    )


@generation_router.get("/task/{task_id}", response_model=TaskStatusResponse)
async def get_task_status(
    task_id: str,
    reconciler: Annotated[TrackReconciler, Depends(get_track_reconciler)],
    provider: Annotated[MusicProviderService, Depends(get_music_provider)],
) -> TaskStatusResponse:
    """
    Poll a generation task.

    A task that is already terminal is answered from the store; a PENDING task
    is refreshed from the provider and reconciled if the provider reports a
    terminal status.
    """
    response, outcome = await reconciler.refresh(task_id, provider)
    if outcome is not None and outcome.applied:
        logger.info(f"Poll reconciled task {task_id} to {outcome.status.value}")
    return response


@generation_router.post("/music-callback", response_model=CallbackAck)
async def music_callback(
    request: Request,
    reconciler: Annotated[TrackReconciler, Depends(get_track_reconciler)],
    provider: Annotated[MusicProviderService, Depends(get_music_provider)],
    callback_secret: Annotated[Optional[str], Depends(get_callback_secret)],
    token: Optional[str] = None,
) -> CallbackAck:
    """
    Provider webhook.

    Malformed payloads are rejected with 400 and a wrong callback token with
    401. Everything else, including unknown tasks and processing errors, is
    acknowledged so the provider does not retry.
    """
    if callback_secret and not hmac.compare_digest(
        (token or "").encode(), callback_secret.encode()
    ):
        logger.warning("Rejected music callback with an invalid token")
        raise Unauthorized("Invalid callback token")

    try:
        payload = await request.json()
    except ValueError:
        raise InvalidInput("Callback body must be JSON")

    report = provider.parse_callback(payload)

    try:
        outcome = await reconciler.apply(report)
        logger.info(
            f"Callback for task {report.task_id}: {report.provider_status} "
            f"(applied={outcome.applied}, reason={outcome.reason})"
        )
    except Exception as e:
        logger.error(
            f"Failed to process callback for task {report.task_id}: "
            f"{str(e)}\n{format_exc()}"
        )
    return CallbackAck(received=True)


@generation_router.get("/tracks", response_model=List[TrackRecord])
async def list_public_tracks(
    track_store: Annotated[TrackStore, Depends(get_track_store)],
    limit: int = 50,
    offset: int = 0,
) -> List[TrackRecord]:
    """Finished public tracks, newest first."""
    return await track_store.list_public(limit=min(max(limit, 1), 100), offset=offset)


@generation_router.get("/tracks/{track_id}", response_model=TrackRecord)
async def get_track(
    track_id: str,
    track_store: Annotated[TrackStore, Depends(get_track_store)],
    current_user: Annotated[Optional[User], Depends(get_optional_user)],
) -> TrackRecord:
    """A public track, or a private one for its owner."""
    track = await track_store.get(track_id)
    if track is None:
        raise NotFound("Track not found")

    is_owner = current_user is not None and current_user.id == track.user_id
    if not is_owner and not (
        track.is_public and track.status == TaskStatus.SUCCESS.value
    ):
        raise NotFound("Track not found")
    return track
