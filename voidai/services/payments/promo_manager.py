"""
Promo Manager

This module manages promotional codes: redemption into a temporary plan with
bonus credits, and the administrative create/list/toggle/delete operations.
"""

import logging
from datetime import timedelta
from traceback import format_exc
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from voidai.models.database import CodeRedemption, PromoCode, User
from voidai.models.promo import (
    PromoCodeCreate,
    PromoCodeRecord,
    PromoCodeUpdate,
    RedeemResponse,
)
from voidai.models.shared import PlanType, utcnow
from voidai.services.database import DatabaseService, get_database_service
from voidai.services.errors import (
    AlreadyRedeemed,
    CodeExhausted,
    CodeExpired,
    CodeInactive,
    CodeNotFound,
    InvalidInput,
    NotFound,
    VoidAIError,
)
from voidai.services.payments.credit_manager import (
    apply_temporary_plan,
    revert_expired_plan,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def normalise_code(code: str) -> str:
    """Codes are case-insensitive and stored upper-case."""
    return code.strip().upper()


class PromoManager:
    """Manages promotional code redemption and administration."""

    def __init__(self, database_service: Optional[DatabaseService] = None):
        self.database_service = database_service or get_database_service()

    async def redeem(self, user_id: str, code: str) -> RedeemResponse:
        """
        Redeem a promotional code for a user.

        Checks run in order: code exists, is active, has not expired, has uses
        left and has not already been redeemed by this user. Plan change,
        bonus credits, redemption row and use counter are written in one
        transaction.

        Args:
            user_id: Redeeming user
            code: Promo code, any case

        Returns:
            RedeemResponse with the new plan, its expiry and the balance
        """
        now = utcnow()
        normalised = normalise_code(code)
        try:
            with self.database_service.session() as session:
                promo = session.execute(
                    select(PromoCode).where(PromoCode.code == normalised)
                ).scalar_one_or_none()
                if promo is None:
                    raise CodeNotFound()
                if not promo.is_active:
                    raise CodeInactive()
                if promo.expires_at is not None and promo.expires_at <= now:
                    raise CodeExpired()
                if promo.max_uses is not None and promo.current_uses >= promo.max_uses:
                    raise CodeExhausted()

                existing = session.execute(
                    select(CodeRedemption.id).where(
                        CodeRedemption.user_id == user_id,
                        CodeRedemption.promo_code_id == promo.id,
                    )
                ).first()
                if existing is not None:
                    raise AlreadyRedeemed()

                # An expired promo is reverted first so it is not recorded as the
                # plan to restore
                revert_expired_plan(session, user_id, now)
                user = session.get(User, user_id)
                if user is None:
                    raise NotFound(f"User {user_id} not found")

                # Use counter first; a concurrent redeemer may have taken the last use
                uses_guard = [PromoCode.id == promo.id]
                if promo.max_uses is not None:
                    uses_guard.append(PromoCode.current_uses < PromoCode.max_uses)
                result = session.execute(
                    update(PromoCode)
                    .where(*uses_guard)
                    .values(current_uses=PromoCode.current_uses + 1)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    raise CodeExhausted()

                session.add(CodeRedemption(user_id=user_id, promo_code_id=promo.id))
                try:
                    session.flush()
                except IntegrityError:
                    raise AlreadyRedeemed()

                expires_at = now + timedelta(days=promo.duration_days)
                apply_temporary_plan(user, promo.plan_type, expires_at, now)
                session.flush()
                if promo.bonus_credits:
                    session.execute(
                        update(User)
                        .where(User.id == user_id)
                        .values(credits=User.credits + promo.bonus_credits)
                        .execution_options(synchronize_session=False)
                    )
                credits = session.execute(
                    select(User.credits).where(User.id == user_id)
                ).scalar_one()

                response = RedeemResponse(
                    plan_type=user.plan_type,
                    plan_expires_at=expires_at,
                    bonus_credits=promo.bonus_credits,
                    credits=credits,
                )

            logger.info(f"User {user_id} redeemed promo code {normalised}")
            return response

        except VoidAIError:
            raise
        except Exception as e:
            logger.error(
                f"Failed to redeem promo code {normalised} for {user_id}: "
                f"{str(e)}\n{format_exc()}"
            )
            raise HTTPException(status_code=500, detail="Failed to redeem promo code")

    async def create_code(self, request: PromoCodeCreate) -> PromoCodeRecord:
        code = normalise_code(request.code)
        with self.database_service.session() as session:
            duplicate = session.execute(
                select(func.count()).select_from(PromoCode).where(PromoCode.code == code)
            ).scalar_one()
            if duplicate:
                raise InvalidInput(f"Promo code {code} already exists")

            promo = PromoCode(
                code=code,
                plan_type=PlanType(request.plan_type).value,
                duration_days=request.duration_days,
                max_uses=request.max_uses,
                bonus_credits=request.bonus_credits,
                expires_at=request.expires_at,
            )
            session.add(promo)
            session.flush()
            record = PromoCodeRecord.model_validate(promo)

        logger.info(f"Created promo code {code}")
        return record

    async def list_codes(self) -> List[PromoCodeRecord]:
        with self.database_service.session() as session:
            promos = session.execute(
                select(PromoCode).order_by(PromoCode.created_at.desc())
            ).scalars()
            return [PromoCodeRecord.model_validate(promo) for promo in promos]

    async def update_code(
        self, promo_code_id: str, request: PromoCodeUpdate
    ) -> PromoCodeRecord:
        with self.database_service.session() as session:
            promo = session.get(PromoCode, promo_code_id)
            if promo is None:
                raise NotFound("Promo code not found")

            for field, value in request.model_dump(exclude_unset=True).items():
                setattr(promo, field, value)
            session.flush()
            return PromoCodeRecord.model_validate(promo)

    async def delete_code(self, promo_code_id: str) -> None:
        with self.database_service.session() as session:
            promo = session.get(PromoCode, promo_code_id)
            if promo is None:
                raise NotFound("Promo code not found")
            session.execute(
                CodeRedemption.__table__.delete().where(
                    CodeRedemption.promo_code_id == promo_code_id
                )
            )
            session.delete(promo)
        logger.info(f"Deleted promo code {promo_code_id}")
