import logging
from typing import Annotated, List

from fastapi import APIRouter, Depends
from sqlalchemy import delete, select, update

from voidai.models.credits import CreditBalance, PlanUpdateRequest
from voidai.models.database import CodeRedemption, Track, User, VideoJob
from voidai.models.promo import PromoCodeCreate, PromoCodeRecord, PromoCodeUpdate
from voidai.models.users import BanRequest, OwnerRequest, UserRecord
from voidai.server.dependencies import Database, get_credit_manager, get_promo_manager
from voidai.server.routers.auth_routes import get_current_owner
from voidai.services.database import DatabaseService
from voidai.services.errors import InvalidInput, NotFound
from voidai.services.payments.credit_manager import CreditManager
from voidai.services.payments.promo_manager import PromoManager

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create a router for administrator operations; every route requires an owner
admin_router = APIRouter(dependencies=[Depends(get_current_owner)])


@admin_router.get("/users", response_model=List[UserRecord])
async def list_users(
    database_service: Database, limit: int = 100, offset: int = 0
) -> List[UserRecord]:
    with database_service.session() as session:
        users = session.execute(
            select(User).order_by(User.created_at.desc()).limit(limit).offset(offset)
        ).scalars()
        return [UserRecord.model_validate(user) for user in users]


def _update_user(database_service: DatabaseService, user_id: str, **values) -> UserRecord:
    with database_service.session() as session:
        result = session.execute(
            update(User)
            .where(User.id == user_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFound(f"User {user_id} not found")
        return UserRecord.model_validate(session.get(User, user_id))


@admin_router.patch("/users/{user_id}/ban", response_model=UserRecord)
async def ban_user(
    user_id: str,
    request: BanRequest,
    owner: Annotated[User, Depends(get_current_owner)],
    database_service: Database,
) -> UserRecord:
    """Ban or unban a user. Banned users are rejected by every authenticated route."""
    if user_id == owner.id:
        raise InvalidInput("You cannot ban yourself")
    user = _update_user(database_service, user_id, is_banned=request.is_banned)
    logger.info(f"Owner {owner.id} set banned={request.is_banned} for user {user_id}")
    return user


@admin_router.patch("/users/{user_id}/owner", response_model=UserRecord)
async def set_user_owner(
    user_id: str,
    request: OwnerRequest,
    owner: Annotated[User, Depends(get_current_owner)],
    database_service: Database,
) -> UserRecord:
    """Grant or revoke administrator rights."""
    if user_id == owner.id and not request.is_owner:
        raise InvalidInput("You cannot remove your own administrator rights")
    user = _update_user(database_service, user_id, is_owner=request.is_owner)
    logger.info(f"Owner {owner.id} set owner={request.is_owner} for user {user_id}")
    return user


@admin_router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    owner: Annotated[User, Depends(get_current_owner)],
    database_service: Database,
):
    """
    Delete a user together with their tracks, video jobs and promo redemptions.

    Promo code use counters are left as they are.
    """
    if user_id == owner.id:
        raise InvalidInput("You cannot delete your own account")

    with database_service.session() as session:
        if session.get(User, user_id) is None:
            raise NotFound(f"User {user_id} not found")

        # Video jobs reference tracks, so they go first
        for table in (VideoJob, Track, CodeRedemption):
            session.execute(
                delete(table)
                .where(table.user_id == user_id)
                .execution_options(synchronize_session=False)
            )
        session.execute(
            delete(User)
            .where(User.id == user_id)
            .execution_options(synchronize_session=False)
        )

    logger.info(f"Owner {owner.id} deleted user {user_id}")
    return {"deleted": True}


@admin_router.patch("/users/{user_id}/plan", response_model=CreditBalance)
async def update_user_plan(
    user_id: str,
    request: PlanUpdateRequest,
    owner: Annotated[User, Depends(get_current_owner)],
    credit_manager: Annotated[CreditManager, Depends(get_credit_manager)],
) -> CreditBalance:
    """Set a user's plan, optionally for a limited number of days."""
    balance = await credit_manager.set_plan(
        user_id,
        request.plan_type,
        credits=request.credits,
        duration_days=request.duration_days,
    )
    logger.info(f"Owner {owner.id} set plan {request.plan_type} for user {user_id}")
    return balance


@admin_router.get("/promo-codes", response_model=List[PromoCodeRecord])
async def list_promo_codes(
    promo_manager: Annotated[PromoManager, Depends(get_promo_manager)],
) -> List[PromoCodeRecord]:
    return await promo_manager.list_codes()


@admin_router.post("/promo-codes", response_model=PromoCodeRecord)
async def create_promo_code(
    request: PromoCodeCreate,
    promo_manager: Annotated[PromoManager, Depends(get_promo_manager)],
) -> PromoCodeRecord:
    return await promo_manager.create_code(request)


@admin_router.patch("/promo-codes/{promo_code_id}", response_model=PromoCodeRecord)
async def update_promo_code(
    promo_code_id: str,
    request: PromoCodeUpdate,
    promo_manager: Annotated[PromoManager, Depends(get_promo_manager)],
) -> PromoCodeRecord:
    """Toggle a promo code or change its limits."""
    return await promo_manager.update_code(promo_code_id, request)


@admin_router.delete("/promo-codes/{promo_code_id}")
async def delete_promo_code(
    promo_code_id: str,
    promo_manager: Annotated[PromoManager, Depends(get_promo_manager)],
):
    await promo_manager.delete_code(promo_code_id)
    return {"deleted": True}
