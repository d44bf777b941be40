import logging
from traceback import format_exc
from typing import Annotated, List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from voidai.models.credits import CreditBalance
from voidai.models.database import User
from voidai.models.promo import RedeemRequest, RedeemResponse
from voidai.models.tracks import TrackRecord, TrackUpdateRequest
from voidai.models.users import (
    NotificationPreferencesRequest,
    ProfileUpdateRequest,
    UserRecord,
)
from voidai.server.dependencies import (
    Database,
    get_credit_manager,
    get_promo_manager,
    get_track_store,
)
from voidai.server.routers.auth_routes import get_current_user
from voidai.services.errors import InvalidInput, NotFound
from voidai.services.payments.credit_manager import CreditManager
from voidai.services.payments.promo_manager import PromoManager
from voidai.services.tasks.track_store import TrackStore

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create a router for user-specific operations
me_router = APIRouter()


@me_router.get("/me/tracks", response_model=List[TrackRecord])
async def get_user_tracks(
    current_user: Annotated[User, Depends(get_current_user)],
    track_store: Annotated[TrackStore, Depends(get_track_store)],
    limit: int = 50,
    offset: int = 0,
) -> List[TrackRecord]:
    """Get all tracks for the current user, including pending and failed ones."""
    return await track_store.list_for_user(
        current_user.id, limit=min(max(limit, 1), 100), offset=offset
    )


@me_router.patch("/me/tracks/{track_id}", response_model=TrackRecord)
async def update_user_track(
    track_id: str,
    request: TrackUpdateRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    track_store: Annotated[TrackStore, Depends(get_track_store)],
) -> TrackRecord:
    """Rename one of the current user's tracks or change its visibility."""
    return await track_store.update_details(track_id, current_user.id, request)


@me_router.patch("/me/profile", response_model=UserRecord)
async def update_profile(
    request: ProfileUpdateRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    database_service: Database,
) -> UserRecord:
    """Update the current user's public profile."""
    updates = request.model_dump(exclude_unset=True)
    try:
        with database_service.session() as session:
            user = session.get(User, current_user.id)
            if user is None:
                raise NotFound("User not found")

            username = updates.get("username")
            if username and username != user.username:
                taken = session.execute(
                    select(func.count())
                    .select_from(User)
                    .where(User.username == username)
                ).scalar_one()
                if taken:
                    raise InvalidInput("Username is already taken")

            for field, value in updates.items():
                setattr(user, field, value)
            session.flush()
            return UserRecord.model_validate(user)
    except IntegrityError:
        raise InvalidInput("Username is already taken")


@me_router.put("/me/notifications", response_model=UserRecord)
async def update_notification_preferences(
    request: NotificationPreferencesRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    database_service: Database,
) -> UserRecord:
    """Register a device token and turn push notifications on or off."""
    if request.enabled and not (request.fcm_token or current_user.fcm_token):
        raise InvalidInput("A device token is required to enable notifications")

    try:
        with database_service.session() as session:
            user = session.get(User, current_user.id)
            if request.fcm_token is not None:
                user.fcm_token = request.fcm_token or None
            user.push_notifications_enabled = request.enabled
            session.flush()
            return UserRecord.model_validate(user)
    except Exception as e:
        logger.error(
            f"Failed to update notifications for {current_user.id}: {str(e)}\n{format_exc()}"
        )
        raise HTTPException(
            status_code=500, detail="Failed to update notification preferences"
        )


@me_router.get("/credits", response_model=CreditBalance)
async def get_user_credits(
    current_user: Annotated[User, Depends(get_current_user)],
    credit_manager: Annotated[CreditManager, Depends(get_credit_manager)],
) -> CreditBalance:
    """Get user's credit balance, renewed if a day has passed."""
    return await credit_manager.get_balance(current_user.id)


@me_router.post("/promo/redeem", response_model=RedeemResponse)
async def redeem_promo_code(
    request: RedeemRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    promo_manager: Annotated[PromoManager, Depends(get_promo_manager)],
) -> RedeemResponse:
    """Redeem a promo code for a temporary plan upgrade and bonus credits."""
    return await promo_manager.redeem(current_user.id, request.code)
