"""
Plan Catalogue

Daily credit allotments per plan tier, per-model generation costs and the
minimum tier each model requires.
"""

from datetime import timedelta
from typing import Dict

from voidai.models.shared import MusicModel, PlanType

# Every tier renews its allotment once a day
CREDIT_REFRESH_INTERVAL = timedelta(hours=24)

DAILY_CREDITS: Dict[str, int] = {
    PlanType.FREE.value: 55,
    PlanType.RUBY.value: 2500,
    PlanType.PRO.value: 5000,
    PlanType.DIAMOND.value: 999999,
}

PLAN_ORDER = [PlanType.FREE, PlanType.RUBY, PlanType.PRO, PlanType.DIAMOND]

MODEL_COSTS: Dict[str, int] = {
    MusicModel.V4.value: 2,
    MusicModel.V4_5.value: 3,
    MusicModel.V4_5PLUS.value: 4,
    MusicModel.V5.value: 5,
}

MODEL_MIN_PLAN: Dict[str, PlanType] = {
    MusicModel.V4.value: PlanType.FREE,
    MusicModel.V4_5.value: PlanType.RUBY,
    MusicModel.V4_5PLUS.value: PlanType.PRO,
    MusicModel.V5.value: PlanType.PRO,
}

VIDEO_GENERATION_COST = 25


def _value(item) -> str:
    return item.value if hasattr(item, "value") else str(item)


def daily_credits(plan_type) -> int:
    return DAILY_CREDITS.get(_value(plan_type), DAILY_CREDITS[PlanType.FREE.value])


def model_cost(model) -> int:
    return MODEL_COSTS[_value(model)]


def plan_rank(plan_type) -> int:
    try:
        return PLAN_ORDER.index(PlanType(_value(plan_type)))
    except ValueError:
        return 0


def plan_allows_model(plan_type, model) -> bool:
    """Whether a plan tier may use a model; diamond unlocks every model."""
    return plan_rank(plan_type) >= plan_rank(MODEL_MIN_PLAN[_value(model)])
