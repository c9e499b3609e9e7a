"""Scored Softmax Exercise Selection (program-mixing path).

Candidates for a granted slot are scored by

    priority x (1 + movement coverage + mean muscle coverage)
    - usage x novelty_decay
    + seeded noise

and the top-K are sampled through a softmax with a seeded roll. A pinned
preference is honoured only if it made the top-K.
"""

import math
from dataclasses import dataclass, field

from loguru import logger

from liftplan.config.settings import settings
from liftplan.planning.compiler.demand_allocator import DaySlotPlan, WeeklyDemand
from liftplan.planning.constraints.equipment import is_equipment_compatible, normalize_equipment
from liftplan.planning.constraints.injuries import violates_contraindication
from liftplan.planning.rounding import mean, round_half_up, round_to_tenth
from liftplan.planning.schema.catalog import Exercise
from liftplan.planning.schema.request import PoolPreference
from liftplan.planning.schema.session import ResolvedSlot
from liftplan.planning.schema.template import SelectionPolicy
from liftplan.planning.seed import SeededRandom


@dataclass(frozen=True)
class ScoredCandidate:
    exercise: Exercise
    score: float


@dataclass
class SelectionContext:
    """Per-week selection state. `usage` grows as exercises are picked."""

    exercises: list[Exercise]
    available_equipment: set[str] | None
    injury_map: dict[int, int]
    preferences: dict[str, PoolPreference]
    policy: SelectionPolicy
    demand: WeeklyDemand
    muscle_slug_by_id: dict[int, str]
    seed: str
    usage: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class SlotDecision:
    slot: ResolvedSlot
    chosen: ScoredCandidate | None
    candidates: list[ScoredCandidate]

    def describe(self) -> str:
        """Decision log line, e.g. 'slot:1_squat -> Back Squat [Back Squat:2.41, ...]'."""
        name = self.chosen.exercise.canonical_name if self.chosen else "none"
        listing = ", ".join(
            f"{candidate.exercise.canonical_name}:{round(candidate.score, 3)}" for candidate in self.candidates
        )
        return f"slot:{self.slot.slot_key} -> {name} [{listing}]"


def _norm(value: str | None) -> str:
    return (value or "").strip().lower()


def _usage_key(exercise: Exercise) -> str:
    return str(exercise.id) if exercise.id is not None else exercise.canonical_name


def coverage_score(remaining: float, target: float, priority: float) -> float:
    if target <= 0:
        return 0.0
    return (remaining / target) * priority


def filter_candidates(plan: DaySlotPlan, context: SelectionContext) -> list[Exercise]:
    """Movement pattern, equipment, injury, banned names, and slot constraints."""
    request = plan.request
    preference = context.preferences.get(request.pool_key or request.movement_pattern)
    banned = {_norm(name) for name in preference.banned} if preference else set()
    avoid_tags = {_norm(tag) for tag in request.constraints.avoid_tags} if request.constraints else set()
    require_equipment = (
        {normalize_equipment(item) for item in request.constraints.require_equipment} if request.constraints else set()
    )

    candidates: list[Exercise] = []
    for exercise in context.exercises:
        if _norm(exercise.movement_pattern) != _norm(request.movement_pattern):
            continue
        if not is_equipment_compatible(exercise, context.available_equipment):
            continue
        if violates_contraindication(exercise, context.injury_map):
            continue
        if _norm(exercise.canonical_name) in banned:
            continue
        if avoid_tags and avoid_tags & {_norm(tag) for tag in exercise.tags}:
            continue
        if require_equipment and not require_equipment <= {normalize_equipment(item) for item in exercise.equipment}:
            continue
        candidates.append(exercise)
    return candidates


def score_candidates(plan: DaySlotPlan, candidates: list[Exercise], context: SelectionContext) -> list[ScoredCandidate]:
    request = plan.request
    rng = SeededRandom(context.seed)
    movement = context.demand.movement.get(_norm(request.movement_pattern))
    movement_coverage = (
        coverage_score(movement.remaining, movement.target, movement.priority)
        if movement is not None
        else coverage_score(request.sets, request.sets, 1.0)
    )

    scored: list[ScoredCandidate] = []
    for exercise in candidates:
        muscle_scores: list[float] = []
        for muscle_id in exercise.muscle_group_ids:
            slug = context.muscle_slug_by_id.get(muscle_id)
            entry = context.demand.muscles.get(slug) if slug else None
            muscle_scores.append(coverage_score(entry.remaining, entry.target, entry.priority) if entry else 0.0)

        novelty_penalty = context.usage.get(_usage_key(exercise), 0) * context.policy.novelty_decay
        base = request.priority * (1 + movement_coverage + mean(muscle_scores)) - novelty_penalty
        noise = rng.next(f"{request.slot_key}_{exercise.id}") * settings.selection_noise_scale
        scored.append(ScoredCandidate(exercise=exercise, score=base + noise))
    return scored


def softmax_pick(candidates: list[ScoredCandidate], temperature: float, rng: SeededRandom) -> ScoredCandidate:
    """Sample one candidate with a seeded roll over softmax weights."""
    safe_temperature = max(settings.softmax_min_temperature, temperature)
    peak = max(candidate.score for candidate in candidates)
    weights = [math.exp((candidate.score - peak) / safe_temperature) for candidate in candidates]
    total = sum(weights) or 1.0
    roll = rng.next("softmax_" + "_".join(str(candidate.exercise.id) for candidate in candidates))

    cumulative = 0.0
    for candidate, weight in zip(candidates, weights):
        cumulative += weight / total
        if roll <= cumulative:
            return candidate
    return candidates[-1]


def _skipped(plan: DaySlotPlan, reason: str) -> ResolvedSlot:
    request = plan.request
    placeholder = request.pool_key or request.movement_pattern
    return ResolvedSlot(
        slot_key=request.slot_key,
        pool_key=placeholder,
        exercise_name=placeholder,
        movement_pattern=request.movement_pattern,
        sets=plan.sets,
        optional=not request.required,
        skip_reason=reason,
    )


def select_exercise_for_slot(plan: DaySlotPlan, context: SelectionContext) -> SlotDecision:
    """Select a concrete exercise for a granted slot.

    Args:
        plan: Day slot plan from the allocator
        context: Selection context (usage counts are updated on pick)

    Returns:
        SlotDecision with the resolved slot and the scored top-K
    """
    request = plan.request
    if plan.skip_reason is not None:
        return SlotDecision(slot=_skipped(plan, plan.skip_reason), chosen=None, candidates=[])

    candidates = filter_candidates(plan, context)
    if not candidates:
        logger.info("softmax_selector: no candidate", slot_key=request.slot_key, pattern=request.movement_pattern)
        return SlotDecision(slot=_skipped(plan, "no_candidate"), chosen=None, candidates=[])

    scored = sorted(score_candidates(plan, candidates, context), key=lambda item: -item.score)
    top = scored[: max(1, context.policy.top_k)]

    preference = context.preferences.get(request.pool_key or request.movement_pattern)
    pinned = None
    if preference is not None and preference.pinned:
        pinned = next((item for item in top if _norm(item.exercise.canonical_name) == _norm(preference.pinned)), None)

    chosen = pinned or softmax_pick(
        top,
        context.policy.softmax_temperature,
        SeededRandom(context.seed).derive(request.slot_key),
    )
    key = _usage_key(chosen.exercise)
    context.usage[key] = context.usage.get(key, 0) + 1

    exercise = chosen.exercise
    slot = ResolvedSlot(
        slot_key=request.slot_key,
        pool_key=request.pool_key or request.movement_pattern,
        exercise_id=exercise.id,
        exercise_name=exercise.canonical_name,
        movement_pattern=exercise.movement_pattern,
        primary_muscle_group_id=exercise.primary_muscle_group_id,
        secondary_muscle_group_ids=list(exercise.secondary_muscle_group_ids),
        tags=list(exercise.tags),
        sets=plan.sets,
        reps=round_half_up(mean(list(request.reps_hint))),
        rpe=round_to_tenth(mean(list(request.rpe_hint))),
        optional=not request.required,
    )
    logger.debug(
        "softmax_selector: picked exercise",
        slot_key=request.slot_key,
        exercise=exercise.canonical_name,
        pinned=pinned is not None,
    )
    return SlotDecision(slot=slot, chosen=chosen, candidates=top)
