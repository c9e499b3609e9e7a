"""Weekly Demand Allocator - Math Core.

Distributes weekly set volume across training days for blended
(program-mixing) templates. Recovery cost (sets x cost per set) is the
currency; the weekly budget comes from the fatigue profile.

This is a greedy heuristic, not an optimizer: slot requests are granted
highest priority first, each on the currently least-loaded day.
"""

import math
from dataclasses import dataclass, field

from loguru import logger

from liftplan.config.settings import settings
from liftplan.planning.errors import MixingInputError
from liftplan.planning.rounding import mean, round_half_up
from liftplan.planning.schema.request import GenerationRequest
from liftplan.planning.schema.template import MixingTemplate, SelectionPolicy, SlotConstraints
from liftplan.planning.seed import SeededRandom

RECOVERY_BUDGET_SKIP = "recovery_budget"


@dataclass(frozen=True)
class WeightedTemplate:
    template_id: int
    template: MixingTemplate
    weight: float


@dataclass
class DemandEntry:
    target: float
    priority: float
    remaining: float


@dataclass
class WeeklyDemand:
    movement: dict[str, DemandEntry] = field(default_factory=dict)
    muscles: dict[str, DemandEntry] = field(default_factory=dict)


@dataclass(frozen=True)
class SlotRequest:
    """One slot blueprint scaled by its program weight."""

    template_id: int
    slot_key: str
    movement_pattern: str
    sets: int
    priority: float
    reps_hint: tuple[float, float]
    rpe_hint: tuple[float, float]
    recovery_cost_per_set: float
    pool_key: str | None = None
    required: bool = False
    constraints: SlotConstraints | None = None


@dataclass
class DaySlotPlan:
    request: SlotRequest
    sets: int
    skip_reason: str | None = None


@dataclass
class DayPlan:
    slots: list[DaySlotPlan] = field(default_factory=list)
    recovery: float = 0.0


@dataclass
class Allocation:
    day_plans: list[DayPlan]
    removed_slots: int = 0


def _normalize_key(value: str) -> str:
    return value.strip().lower()


def weight_templates(
    templates: dict[int, MixingTemplate],
    request: GenerationRequest,
) -> list[WeightedTemplate]:
    """Pair each selected mixing template with its effective weight.

    Raises:
        MixingInputError: If no template is selected
    """
    weighted = [
        WeightedTemplate(
            template_id=program.template_id,
            template=templates[program.template_id],
            weight=(
                program.weight_override
                if program.weight_override is not None
                else templates[program.template_id].program_weight_default
            ),
        )
        for program in request.selected_programs
        if program.template_id in templates
    ]
    if not weighted:
        raise MixingInputError()
    return weighted


def aggregate_policy(weighted: list[WeightedTemplate]) -> SelectionPolicy:
    """Weight-average the selection policies of the blended templates."""
    if not weighted:
        raise MixingInputError()

    total = sum(entry.weight for entry in weighted) or 1.0
    top_k = sum(entry.template.selection_policy.top_k * entry.weight for entry in weighted) / total
    temperature = sum(entry.template.selection_policy.softmax_temperature * entry.weight for entry in weighted) / total
    novelty = sum(entry.template.selection_policy.novelty_decay * entry.weight for entry in weighted) / total
    return SelectionPolicy(
        top_k=max(1, round_half_up(top_k)),
        softmax_temperature=temperature,
        novelty_decay=novelty,
    )


def compute_weekly_budget(request: GenerationRequest) -> float:
    """Weekly recovery budget for the request.

    base[fatigue] x max(1, days / 3) x (session minutes / 60)
    """
    base = settings.fatigue_budget(str(request.fatigue_profile))
    time_factor = request.max_session_minutes / 60
    return base * max(1.0, request.days_per_week / 3) * time_factor


def build_weekly_demand(weighted: list[WeightedTemplate]) -> WeeklyDemand:
    """Aggregate weekly set targets per movement pattern and muscle group."""
    demand = WeeklyDemand()
    for entry in weighted:
        goals = entry.template.weekly_goals
        for bucket, source in ((demand.movement, goals.movement_patterns), (demand.muscles, goals.muscle_groups)):
            for key, goal in source.items():
                normalized = _normalize_key(key)
                target = goal.sets * entry.weight
                existing = bucket.get(normalized)
                if existing is None:
                    bucket[normalized] = DemandEntry(target=target, priority=goal.priority, remaining=target)
                    continue
                existing.target += target
                existing.remaining += target
                existing.priority = mean([existing.priority, goal.priority])
    return demand


def build_slot_requests(weighted: list[WeightedTemplate], seed: str) -> list[SlotRequest]:
    """Scale slot blueprints by program weight with a seeded 0/+1 set jitter."""
    rng = SeededRandom(seed)
    requests: list[SlotRequest] = []
    for entry in weighted:
        for blueprint in entry.template.slot_blueprints:
            average_sets = round_half_up((blueprint.min_sets + blueprint.max_sets) / 2)
            weighted_sets = round_half_up(average_sets * entry.weight)
            sets = min(blueprint.max_sets, max(blueprint.min_sets, weighted_sets))
            jitter = rng.integer(f"{entry.template_id}_{blueprint.slot_key}", 0, 1)
            requests.append(
                SlotRequest(
                    template_id=entry.template_id,
                    slot_key=f"{entry.template_id}_{blueprint.slot_key}",
                    movement_pattern=blueprint.movement_pattern,
                    sets=min(blueprint.max_sets, sets + jitter),
                    priority=blueprint.priority * entry.weight,
                    reps_hint=blueprint.reps_hint,
                    rpe_hint=blueprint.rpe_hint,
                    recovery_cost_per_set=blueprint.recovery_cost_per_set,
                    pool_key=blueprint.pool_key,
                    required=blueprint.required,
                    constraints=blueprint.constraints,
                )
            )
    return requests


def allocate_slots_to_days(
    requests: list[SlotRequest],
    demand: WeeklyDemand,
    budget: float,
    day_count: int,
) -> Allocation:
    """Greedily assign slot requests to days.

    Granted sets are capped by the remaining weekly recovery budget divided
    by the per-set cost, and by the remaining demand for the movement
    pattern. Demand is decremented by what was actually granted.

    Args:
        requests: Slot requests
        demand: Weekly demand (mutated in place)
        budget: Weekly recovery budget
        day_count: Number of training days

    Returns:
        Allocation with per-day slot plans and the removed-slot count
    """
    day_plans = [DayPlan() for _ in range(max(day_count, 1))]
    removed = 0

    for request in sorted(requests, key=lambda item: -item.priority):
        best_index = 0
        for index, plan in enumerate(day_plans):
            if plan.recovery < day_plans[best_index].recovery:
                best_index = index
        day_plan = day_plans[best_index]

        cost = request.recovery_cost_per_set
        remaining_budget = max(0.0, budget - sum(plan.recovery for plan in day_plans))
        allowed = min(request.sets, math.floor(remaining_budget / cost)) if remaining_budget >= cost else 0

        demand_entry = demand.movement.get(_normalize_key(request.movement_pattern))
        demand_remaining = demand_entry.remaining if demand_entry is not None else request.sets
        granted = max(0, math.floor(min(allowed, demand_remaining)))

        if granted <= 0:
            if request.required:
                removed += 1
                day_plan.slots.append(DaySlotPlan(request=request, sets=0, skip_reason=RECOVERY_BUDGET_SKIP))
                logger.info(
                    "demand_allocator: required slot unfunded",
                    slot_key=request.slot_key,
                    remaining_budget=remaining_budget,
                )
            else:
                logger.debug("demand_allocator: optional slot dropped", slot_key=request.slot_key)
            continue

        if demand_entry is not None:
            demand_entry.remaining = max(0.0, demand_entry.remaining - granted)

        day_plan.slots.append(DaySlotPlan(request=request, sets=granted))
        day_plan.recovery += granted * cost
        logger.debug(
            "demand_allocator: granted sets",
            slot_key=request.slot_key,
            day_index=best_index,
            sets=granted,
        )

    return Allocation(day_plans=day_plans, removed_slots=removed)
