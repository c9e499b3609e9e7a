"""Program Mixing - One Week of Blended Sessions.

Pipeline:
1. weight templates and aggregate their selection policies
2. build weekly demand and slot requests
3. allocate slot requests to training days within the recovery budget
4. pick an exercise for every granted slot via scored softmax

The output is one week of base sessions (one per training day); the
generation service replicates it across weeks and applies week rules.
"""

from dataclasses import dataclass, field

from loguru import logger

from liftplan.planning.compiler.demand_allocator import (
    aggregate_policy,
    allocate_slots_to_days,
    build_slot_requests,
    build_weekly_demand,
    compute_weekly_budget,
    weight_templates,
)
from liftplan.planning.compiler.softmax_selector import SelectionContext, select_exercise_for_slot
from liftplan.planning.constraints.equipment import expand_equipment_profile
from liftplan.planning.constraints.injuries import map_injuries_to_muscles
from liftplan.planning.schema.catalog import Catalog
from liftplan.planning.schema.request import GenerationRequest, PoolPreference
from liftplan.planning.schema.session import ResolvedSlot
from liftplan.planning.schema.template import MixingTemplate, SelectionPolicy

DEFAULT_FOCUS = "Training"


@dataclass
class MixedDay:
    template_id: int
    focus: str
    slots: list[ResolvedSlot] = field(default_factory=list)


@dataclass
class MixingWeek:
    days: list[MixedDay]
    removed_slots: int
    decisions: list[str]
    policy: SelectionPolicy
    budget: float


def compile_mixing_week(
    templates: dict[int, MixingTemplate],
    request: GenerationRequest,
    catalog: Catalog,
    seed: str,
    *,
    pool_preferences: list[PoolPreference] | None = None,
) -> MixingWeek:
    """Compile one week of blended sessions.

    Args:
        templates: Mixing templates keyed by template id
        request: Generation request (weights, fatigue, equipment, injuries)
        catalog: Exercise catalog
        seed: Mixing seed
        pool_preferences: Preference override (defaults to the request's)

    Returns:
        MixingWeek with one MixedDay per training day

    Raises:
        MixingInputError: If no selected template is available
    """
    weighted = weight_templates(templates, request)
    policy = aggregate_policy(weighted)
    budget = compute_weekly_budget(request)
    demand = build_weekly_demand(weighted)
    requests = build_slot_requests(weighted, seed)
    allocation = allocate_slots_to_days(requests, demand, budget, request.days_per_week)

    preferences = pool_preferences if pool_preferences is not None else request.pool_preferences
    context = SelectionContext(
        exercises=catalog.exercises,
        available_equipment=expand_equipment_profile([str(item) for item in request.equipment_profile or []]),
        injury_map=map_injuries_to_muscles(request.injuries, catalog.muscle_groups),
        preferences={preference.pool_key: preference for preference in preferences},
        policy=policy,
        demand=demand,
        muscle_slug_by_id={muscle.id: muscle.slug.strip().lower() for muscle in catalog.muscle_groups},
        seed=seed,
    )

    first_goal = next(iter(weighted[0].template.weekly_goals.movement_patterns), DEFAULT_FOCUS)
    removed = allocation.removed_slots
    decisions: list[str] = []
    days: list[MixedDay] = []
    for day_plan in allocation.day_plans:
        focus = day_plan.slots[0].request.movement_pattern if day_plan.slots else first_goal
        template_id = day_plan.slots[0].request.template_id if day_plan.slots else weighted[0].template_id
        day = MixedDay(template_id=template_id, focus=focus)
        for slot_plan in day_plan.slots:
            decision = select_exercise_for_slot(slot_plan, context)
            day.slots.append(decision.slot)
            if slot_plan.skip_reason is None and decision.chosen is None:
                removed += 1
            if slot_plan.skip_reason is None:
                decisions.append(decision.describe())
        days.append(day)

    logger.info(
        "mixing: week compiled",
        templates=[entry.template_id for entry in weighted],
        budget=round(budget, 2),
        removed_slots=removed,
        top_k=policy.top_k,
    )
    return MixingWeek(days=days, removed_slots=removed, decisions=decisions, policy=policy, budget=budget)
