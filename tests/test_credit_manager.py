import asyncio
import threading
from datetime import timedelta

import pytest

from voidai.models.shared import utcnow
from voidai.services.errors import InsufficientCredits, NotFound
from voidai.services.payments.credit_manager import CreditManager
from voidai.services.payments.plans import (
    daily_credits,
    model_cost,
    plan_allows_model,
)


@pytest.fixture
def credit_manager(database_service):
    return CreditManager(database_service)


class TestPlanCatalogue:
    def test_daily_allotments(self):
        assert daily_credits("free") == 55
        assert daily_credits("ruby") == 2500
        assert daily_credits("pro") == 5000
        assert daily_credits("diamond") == 999999

    def test_unknown_plan_falls_back_to_free(self):
        assert daily_credits("platinum") == 55

    def test_model_costs(self):
        assert [model_cost(m) for m in ("V4", "V4_5", "V4_5PLUS", "V5")] == [2, 3, 4, 5]

    def test_model_gating(self):
        assert plan_allows_model("free", "V4")
        assert not plan_allows_model("free", "V4_5")
        assert plan_allows_model("ruby", "V4_5")
        assert not plan_allows_model("ruby", "V5")
        assert plan_allows_model("diamond", "V5")


class TestAuthorizeAndDebit:
    @pytest.mark.asyncio
    async def test_debit_reduces_balance(self, credit_manager, make_user, load_user):
        user = make_user(credits=10)

        balance = await credit_manager.authorize_and_debit(user.id, 4)

        assert balance == 6
        assert load_user(user.id).credits == 6

    @pytest.mark.asyncio
    async def test_insufficient_credits_leaves_balance(
        self, credit_manager, make_user, load_user
    ):
        user = make_user(credits=3)

        with pytest.raises(InsufficientCredits) as exc_info:
            await credit_manager.authorize_and_debit(user.id, 5)

        assert exc_info.value.status_code == 402
        assert exc_info.value.context == {"required": 5, "available": 3}
        assert load_user(user.id).credits == 3

    @pytest.mark.asyncio
    async def test_exact_balance_can_be_spent(self, credit_manager, make_user):
        user = make_user(credits=5)
        assert await credit_manager.authorize_and_debit(user.id, 5) == 0

    @pytest.mark.asyncio
    async def test_second_debit_sees_first(self, credit_manager, make_user):
        user = make_user(credits=3)

        await credit_manager.authorize_and_debit(user.id, 2)
        with pytest.raises(InsufficientCredits):
            await credit_manager.authorize_and_debit(user.id, 2)

    def test_concurrent_debits_never_overdraw(
        self, credit_manager, make_user, load_user
    ):
        user = make_user(credits=5)
        outcomes = []
        lock = threading.Lock()

        def debit():
            try:
                asyncio.run(credit_manager.authorize_and_debit(user.id, 2))
                result = "ok"
            except InsufficientCredits:
                result = "insufficient"
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=debit) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count("ok") == 2
        assert outcomes.count("insufficient") == 3
        assert load_user(user.id).credits == 1

    @pytest.mark.asyncio
    async def test_unknown_user(self, credit_manager):
        with pytest.raises(NotFound):
            await credit_manager.authorize_and_debit("missing", 1)

    @pytest.mark.asyncio
    async def test_stale_balance_renews_before_debit(
        self, credit_manager, make_user
    ):
        user = make_user(
            plan_type="ruby",
            credits=0,
            last_credit_refresh=utcnow() - timedelta(hours=25),
        )

        balance = await credit_manager.authorize_and_debit(user.id, 2)

        assert balance == 2498


class TestRenewal:
    @pytest.mark.asyncio
    async def test_renews_after_a_day(self, credit_manager, make_user):
        user = make_user(
            plan_type="ruby",
            credits=12,
            last_credit_refresh=utcnow() - timedelta(hours=25),
        )

        balance = await credit_manager.get_balance(user.id)

        assert balance.credits == 2500
        assert balance.daily_allotment == 2500
        assert utcnow() - balance.last_credit_refresh < timedelta(minutes=1)

    @pytest.mark.asyncio
    async def test_no_renewal_within_a_day(self, credit_manager, make_user):
        user = make_user(
            plan_type="ruby",
            credits=12,
            last_credit_refresh=utcnow() - timedelta(hours=23),
        )

        balance = await credit_manager.get_balance(user.id)

        assert balance.credits == 12

    @pytest.mark.asyncio
    async def test_missing_refresh_timestamp_renews(self, credit_manager, make_user):
        user = make_user(credits=0)
        with credit_manager.database_service.session() as session:
            session.get(type(user), user.id).last_credit_refresh = None

        balance = await credit_manager.get_balance(user.id)

        assert balance.credits == 55

    @pytest.mark.asyncio
    async def test_renewal_happens_once(self, credit_manager, make_user):
        user = make_user(
            plan_type="pro",
            credits=0,
            last_credit_refresh=utcnow() - timedelta(days=2),
        )

        await credit_manager.get_balance(user.id)
        await credit_manager.authorize_and_debit(user.id, 5)
        balance = await credit_manager.get_balance(user.id)

        assert balance.credits == 4995


class TestPlanExpiry:
    @pytest.mark.asyncio
    async def test_expired_promo_plan_reverts(self, credit_manager, make_user):
        user = make_user(
            plan_type="pro",
            previous_plan_type="ruby",
            plan_expires_at=utcnow() - timedelta(minutes=1),
            credits=40,
        )

        balance = await credit_manager.get_balance(user.id)

        assert balance.plan_type == "ruby"
        assert balance.plan_expires_at is None
        assert balance.credits == 40

    @pytest.mark.asyncio
    async def test_reverts_to_free_without_previous_plan(
        self, credit_manager, make_user
    ):
        user = make_user(
            plan_type="diamond", plan_expires_at=utcnow() - timedelta(days=1)
        )

        balance = await credit_manager.get_balance(user.id)

        assert balance.plan_type == "free"

    @pytest.mark.asyncio
    async def test_reversion_applies_before_renewal(self, credit_manager, make_user):
        user = make_user(
            plan_type="diamond",
            previous_plan_type="free",
            plan_expires_at=utcnow() - timedelta(hours=1),
            credits=900000,
            last_credit_refresh=utcnow() - timedelta(hours=30),
        )

        balance = await credit_manager.get_balance(user.id)

        assert balance.plan_type == "free"
        assert balance.credits == 55

    @pytest.mark.asyncio
    async def test_unexpired_plan_is_kept(self, credit_manager, make_user):
        user = make_user(
            plan_type="pro",
            previous_plan_type="free",
            plan_expires_at=utcnow() + timedelta(days=3),
        )

        balance = await credit_manager.get_balance(user.id)

        assert balance.plan_type == "pro"
        assert balance.plan_expires_at is not None


class TestSetPlan:
    @pytest.mark.asyncio
    async def test_permanent_plan_resets_balance(
        self, credit_manager, make_user, load_user
    ):
        user = make_user(credits=3)

        balance = await credit_manager.set_plan(user.id, "pro")

        assert balance.plan_type == "pro"
        assert balance.credits == 5000
        assert load_user(user.id).plan_expires_at is None

    @pytest.mark.asyncio
    async def test_temporary_plan_records_previous(
        self, credit_manager, make_user, load_user
    ):
        user = make_user(plan_type="ruby")

        balance = await credit_manager.set_plan(user.id, "diamond", duration_days=7)

        stored = load_user(user.id)
        assert balance.plan_type == "diamond"
        assert stored.previous_plan_type == "ruby"
        assert stored.plan_expires_at > utcnow() + timedelta(days=6)

    @pytest.mark.asyncio
    async def test_temporary_plan_after_expired_one(
        self, credit_manager, make_user, load_user
    ):
        user = make_user(
            plan_type="pro",
            previous_plan_type="ruby",
            plan_expires_at=utcnow() - timedelta(hours=1),
        )

        await credit_manager.set_plan(user.id, "diamond", duration_days=3)

        stored = load_user(user.id)
        assert stored.plan_type == "diamond"
        assert stored.previous_plan_type == "ruby"

    @pytest.mark.asyncio
    async def test_explicit_credits(self, credit_manager, make_user):
        user = make_user()
        balance = await credit_manager.set_plan(user.id, "ruby", credits=100)
        assert balance.credits == 100

    @pytest.mark.asyncio
    async def test_credit_adds_to_balance(self, credit_manager, make_user):
        user = make_user(credits=10)
        assert await credit_manager.credit(user.id, 25) == 35

    @pytest.mark.asyncio
    async def test_unknown_user(self, credit_manager):
        with pytest.raises(NotFound):
            await credit_manager.set_plan("missing", "pro")
