"""
Credit Manager

This module manages user credit balances: daily plan renewal, promotional plan
expiry, the guarded debit that authorizes a generation, and plan changes coming
from billing or administration.
"""

import logging
from datetime import datetime, timedelta
from traceback import format_exc
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from voidai.models.credits import CreditBalance
from voidai.models.database import User
from voidai.models.shared import PlanType, utcnow
from voidai.services.database import DatabaseService, get_database_service
from voidai.services.errors import (
    InsufficientCredits,
    InvalidInput,
    NotFound,
    VoidAIError,
)
from voidai.services.payments.plans import CREDIT_REFRESH_INTERVAL, daily_credits

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def revert_expired_plan(session: Session, user_id: str, now: datetime) -> bool:
    """
    Revert a promotional plan whose expiry has passed.

    The balance is left as is; the next renewal grants the reverted plan's
    allotment.

    Returns:
        True if this call performed the reversion
    """
    result = session.execute(
        update(User)
        .where(
            User.id == user_id,
            User.plan_expires_at.is_not(None),
            User.plan_expires_at <= now,
        )
        # plan_type must be computed from previous_plan_type before it is cleared
        .ordered_values(
            (
                User.plan_type,
                func.coalesce(User.previous_plan_type, PlanType.FREE.value),
            ),
            (User.previous_plan_type, None),
            (User.plan_expires_at, None),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        logger.info(f"Promotional plan expired for user {user_id}")
        return True
    return False


def renew_if_stale(session: Session, user_id: str, now: datetime) -> bool:
    """
    Reset the balance to the plan allotment when the last renewal is too old.

    The update is guarded on the previously read refresh timestamp, so when
    two requests race only one of them renews.

    Returns:
        True if this call performed the renewal
    """
    row = session.execute(
        select(User.plan_type, User.last_credit_refresh).where(User.id == user_id)
    ).one_or_none()
    if row is None:
        raise NotFound(f"User {user_id} not found")

    plan_type, last_refresh = row
    if last_refresh is not None and now - last_refresh <= CREDIT_REFRESH_INTERVAL:
        return False

    if last_refresh is None:
        guard = User.last_credit_refresh.is_(None)
    else:
        guard = User.last_credit_refresh == last_refresh

    result = session.execute(
        update(User)
        .where(User.id == user_id, guard)
        .values(credits=daily_credits(plan_type), last_credit_refresh=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        logger.info(
            f"Renewed daily credits for user {user_id} on plan {plan_type}: "
            f"{daily_credits(plan_type)}"
        )
        return True
    return False


def apply_temporary_plan(
    user: User, plan_type: str, expires_at: datetime, now: datetime
) -> None:
    """
    Move a user onto a plan until `expires_at`.

    A user already on an un-expired temporary plan keeps the plan recorded
    before that one, so expiry always restores the user's own plan.
    """
    on_temporary_plan = (
        user.plan_expires_at is not None and user.plan_expires_at > now
    )
    if not on_temporary_plan:
        user.previous_plan_type = user.plan_type
    user.plan_type = plan_type
    user.plan_expires_at = expires_at


def _to_balance(user: User) -> CreditBalance:
    return CreditBalance(
        user_id=user.id,
        credits=user.credits,
        plan_type=user.plan_type,
        daily_allotment=daily_credits(user.plan_type),
        last_credit_refresh=user.last_credit_refresh,
        plan_expires_at=user.plan_expires_at,
    )


class CreditManager:
    """Manages user credit balances and plan-driven renewals."""

    def __init__(self, database_service: Optional[DatabaseService] = None):
        self.database_service = database_service or get_database_service()

    def _read_credits(self, session: Session, user_id: str) -> int:
        credits = session.execute(
            select(User.credits).where(User.id == user_id)
        ).scalar_one_or_none()
        if credits is None:
            raise NotFound(f"User {user_id} not found")
        return credits

    def _settle(self, session: Session, user_id: str, now: datetime) -> None:
        # Reversion first, so renewal uses the plan the user is actually on
        revert_expired_plan(session, user_id, now)
        renew_if_stale(session, user_id, now)

    async def authorize_and_debit(self, user_id: str, cost: int) -> int:
        """
        Debit credits for a generation.

        Args:
            user_id: User to charge
            cost: Number of credits to take

        Returns:
            Balance left after the debit

        Raises:
            NotFound: Unknown user
            InsufficientCredits: The balance does not cover the cost
        """
        if cost < 0:
            raise InvalidInput("Cost must not be negative")

        now = utcnow()
        with self.database_service.session() as session:
            self._settle(session, user_id, now)

            result = session.execute(
                update(User)
                .where(User.id == user_id, User.credits >= cost)
                .values(credits=User.credits - cost)
                .execution_options(synchronize_session=False)
            )
            balance = self._read_credits(session, user_id)

        if result.rowcount == 0:
            logger.info(
                f"Insufficient credits for user {user_id}: need {cost}, have {balance}"
            )
            raise InsufficientCredits(required=cost, available=balance)

        logger.info(f"Debited {cost} credits from user {user_id}, balance {balance}")
        return balance

    async def credit(self, user_id: str, amount: int) -> int:
        """
        Add credits to a user's balance.

        Args:
            user_id: User to credit
            amount: Number of credits to add

        Returns:
            New balance
        """
        with self.database_service.session() as session:
            result = session.execute(
                update(User)
                .where(User.id == user_id)
                .values(credits=User.credits + amount)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFound(f"User {user_id} not found")
            balance = self._read_credits(session, user_id)

        logger.info(f"Credited {amount} credits to user {user_id}, balance {balance}")
        return balance

    async def get_balance(self, user_id: str) -> CreditBalance:
        """Current balance after applying plan expiry and daily renewal."""
        now = utcnow()
        try:
            with self.database_service.session() as session:
                self._settle(session, user_id, now)
                user = session.get(User, user_id)
                return _to_balance(user)
        except VoidAIError:
            raise
        except Exception as e:
            logger.error(
                f"Failed to get credit balance for {user_id}: {str(e)}\n{format_exc()}"
            )
            raise HTTPException(
                status_code=500, detail=f"Failed to retrieve credits: {str(e)}"
            )

    async def set_plan(
        self,
        user_id: str,
        plan_type: PlanType,
        credits: Optional[int] = None,
        duration_days: Optional[int] = None,
    ) -> CreditBalance:
        """
        Move a user onto a plan and reset the balance.

        Args:
            user_id: User to update
            plan_type: New plan tier
            credits: Balance to set, defaults to the plan allotment
            duration_days: Make the plan temporary, reverting after this many days

        Returns:
            The resulting balance
        """
        plan_value = PlanType(plan_type).value
        now = utcnow()
        with self.database_service.session() as session:
            if duration_days:
                revert_expired_plan(session, user_id, now)
            user = session.get(User, user_id)
            if user is None:
                raise NotFound(f"User {user_id} not found")

            if duration_days:
                apply_temporary_plan(
                    user, plan_value, now + timedelta(days=duration_days), now
                )
            else:
                user.plan_type = plan_value
                user.plan_expires_at = None
                user.previous_plan_type = None

            user.credits = credits if credits is not None else daily_credits(plan_value)
            user.last_credit_refresh = now
            session.flush()

            balance = _to_balance(user)

        logger.info(f"Set plan {plan_value} for user {user_id}")
        return balance
