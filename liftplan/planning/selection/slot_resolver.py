"""Slot Resolution (pool-based templates).

Binds each SlotDescriptor to a concrete exercise. Filters are applied to
the slot's pool in order:

1. equipment compatible with the user's expanded equipment
2. no triggered contraindication
3. banned names removed; a surviving pinned name is selected outright
4. every slot tag present (else <pool>_tag_mismatch)
5. at least one target muscle trained (else <pool>_muscle_mismatch)
6. ordered by preferred names, pool default names, then alphabetically;
   a seeded index picks the exercise

Fallback pools are tried in order, with the banned and pinned names of
every pool in the chain merged. Resolution never raises: an unmet
slot becomes a ResolvedSlot carrying a skip_reason and counts as removed.
"""

from dataclasses import dataclass, field

from loguru import logger

from liftplan.config.settings import settings
from liftplan.planning.constraints.equipment import (
    expand_equipment_profile,
    is_equipment_compatible,
    normalize_equipment,
)
from liftplan.planning.constraints.injuries import map_injuries_to_muscles, violates_contraindication
from liftplan.planning.schema.catalog import Catalog, Exercise
from liftplan.planning.schema.request import Injury, PoolPreference, WeakPointSelection
from liftplan.planning.schema.session import ResolvedSlot
from liftplan.planning.schema.template import ExercisePool, PoolBasedTemplate, SlotDescriptor
from liftplan.planning.seed import SeededRandom
from liftplan.planning.selection.pool_index import build_pool_index, normalize_name
from liftplan.planning.selection.weak_point import (
    HOLD_EXERCISE_NAME,
    HOLD_SKIP_REASON,
    resolve_weak_point_selection,
    should_hold_weak_point,
    weak_point_pool_key,
    weak_point_preferred_names,
)


@dataclass
class ResolutionContext:
    """Everything slot resolution needs, built once per generation call."""

    pools: dict[str, ExercisePool]
    pool_index: dict[str, list[Exercise]]
    exercises: list[Exercise]
    available_equipment: set[str] | None
    injury_map: dict[int, int]
    preferences: dict[str, PoolPreference]
    muscle_slug_to_id: dict[str, int]
    random: SeededRandom


@dataclass(frozen=True)
class SlotResolution:
    slot: ResolvedSlot
    removed: int = 0


@dataclass
class ResolvedSession:
    session_key: str
    focus: str
    label: str
    slots: list[ResolvedSlot] = field(default_factory=list)
    removed: int = 0


def build_resolution_context(
    template: PoolBasedTemplate,
    catalog: Catalog,
    *,
    injuries: list[Injury],
    equipment_profile: list[str] | None,
    pool_preferences: list[PoolPreference],
    seed: str,
) -> ResolutionContext:
    slug_to_id: dict[str, int] = {}
    for muscle in catalog.muscle_groups:
        slug_to_id[normalize_name(muscle.slug)] = muscle.id
        slug_to_id.setdefault(normalize_name(muscle.name), muscle.id)

    return ResolutionContext(
        pools={pool.pool_key: pool for pool in template.pools},
        pool_index=build_pool_index(template.pools, catalog.exercises),
        exercises=catalog.exercises,
        available_equipment=expand_equipment_profile(equipment_profile),
        injury_map=map_injuries_to_muscles(injuries, catalog.muscle_groups),
        preferences={preference.pool_key: preference for preference in pool_preferences},
        muscle_slug_to_id=slug_to_id,
        random=SeededRandom(seed),
    )


def order_candidates(
    candidates: list[Exercise],
    preferred_names: list[str],
    default_names: list[str],
) -> list[Exercise]:
    """Order by preferred-name index, then pool default index, then name."""
    preferred = [normalize_name(name) for name in preferred_names]
    defaults = [normalize_name(name) for name in default_names]

    def sort_key(exercise: Exercise) -> tuple[int, int, str]:
        name = normalize_name(exercise.canonical_name)
        preferred_index = preferred.index(name) if name in preferred else len(preferred)
        default_index = defaults.index(name) if name in defaults else len(defaults)
        return preferred_index, default_index, exercise.canonical_name

    return sorted(candidates, key=sort_key)


def _skipped_slot(
    descriptor: SlotDescriptor,
    pool_key: str,
    reason: str,
    *,
    exercise_name: str | None = None,
    optional: bool | None = None,
) -> ResolvedSlot:
    return ResolvedSlot(
        slot_key=descriptor.slot_key,
        pool_key=pool_key,
        exercise_id=None,
        exercise_name=exercise_name or pool_key,
        movement_pattern=descriptor.movement_pattern,
        tags=list(descriptor.tags),
        sets=descriptor.sets,
        reps=descriptor.reps,
        rir=descriptor.rir,
        rpe=descriptor.rpe,
        optional=descriptor.optional if optional is None else optional,
        skip_reason=reason,
    )


def _bound_slot(descriptor: SlotDescriptor, pool_key: str, exercise: Exercise) -> ResolvedSlot:
    return ResolvedSlot(
        slot_key=descriptor.slot_key,
        pool_key=pool_key,
        exercise_id=exercise.id,
        exercise_name=exercise.canonical_name,
        movement_pattern=exercise.movement_pattern,
        primary_muscle_group_id=exercise.primary_muscle_group_id,
        secondary_muscle_group_ids=list(exercise.secondary_muscle_group_ids),
        tags=list(exercise.tags),
        sets=descriptor.sets,
        reps=descriptor.reps,
        rir=descriptor.rir,
        rpe=descriptor.rpe,
        optional=descriptor.optional,
    )


def _filter_candidates(
    descriptor: SlotDescriptor,
    base: list[Exercise],
    context: ResolutionContext,
    preference: PoolPreference | None,
    reason_prefix: str,
) -> tuple[list[Exercise], Exercise | None, str | None]:
    """Run filters 1-5. Returns (survivors, pinned exercise, failure reason)."""
    candidates = [
        exercise for exercise in base if is_equipment_compatible(exercise, context.available_equipment)
    ]
    if descriptor.equipment:
        required = {normalize_equipment(item) for item in descriptor.equipment}
        candidates = [
            exercise
            for exercise in candidates
            if required & {normalize_equipment(item) for item in exercise.equipment}
        ]
    candidates = [
        exercise for exercise in candidates if not violates_contraindication(exercise, context.injury_map)
    ]

    if preference is not None:
        banned = {normalize_name(name) for name in preference.banned}
        candidates = [exercise for exercise in candidates if normalize_name(exercise.canonical_name) not in banned]
        if preference.pinned:
            pinned_name = normalize_name(preference.pinned)
            for exercise in candidates:
                if normalize_name(exercise.canonical_name) == pinned_name:
                    return [exercise], exercise, None

    if descriptor.tags:
        wanted_tags = [normalize_name(tag) for tag in descriptor.tags]
        tagged = [
            exercise
            for exercise in candidates
            if all(tag in {normalize_name(t) for t in exercise.tags} for tag in wanted_tags)
        ]
        if not tagged:
            return [], None, f"{reason_prefix}_tag_mismatch"
        candidates = tagged

    target_ids = {
        context.muscle_slug_to_id[normalize_name(slug)]
        for slug in descriptor.target_muscles
        if normalize_name(slug) in context.muscle_slug_to_id
    }
    if target_ids:
        trained = [exercise for exercise in candidates if target_ids & set(exercise.muscle_group_ids)]
        if not trained:
            return [], None, f"{reason_prefix}_muscle_mismatch"
        candidates = trained

    if not candidates:
        return [], None, f"{reason_prefix}_empty"
    return candidates, None, None


def _chain_preference(chain: list[ExercisePool], preferences: dict[str, PoolPreference]) -> PoolPreference | None:
    """Merge the preferences of every pool in a fallback chain.

    Banned names apply on every attempt, whichever pool they were recorded
    under. The first pinned name along the chain wins.
    """
    found = [preferences[pool.pool_key] for pool in chain if pool.pool_key in preferences]
    if not found:
        return None
    banned: list[str] = []
    for preference in found:
        for name in preference.banned:
            if name not in banned:
                banned.append(name)
    pinned = next((preference.pinned for preference in found if preference.pinned), None)
    return PoolPreference(pool_key=chain[0].pool_key, pinned=pinned, banned=banned)


def _pick(
    descriptor: SlotDescriptor,
    pool_key: str,
    candidates: list[Exercise],
    preferred_names: list[str],
    default_names: list[str],
    context: ResolutionContext,
) -> Exercise:
    ordered = order_candidates(candidates, preferred_names, default_names)
    return ordered[context.random.index(f"{descriptor.slot_key}_{pool_key}", len(ordered))]


def resolve_slot(
    descriptor: SlotDescriptor,
    context: ResolutionContext,
    *,
    pool_key: str | None = None,
    preferred_names: list[str] | None = None,
) -> SlotResolution:
    """Resolve one slot to an exercise or a skip reason.

    Args:
        descriptor: Slot to resolve
        context: Per-call resolution context
        pool_key: Pool to draw from (overrides descriptor.pool_key, used for weak points)
        preferred_names: Exercise names to favour, in priority order

    Returns:
        SlotResolution with the resolved slot and the removed-slot count
    """
    preferred_names = preferred_names or []
    primary_key = pool_key or descriptor.pool_key

    if primary_key is None:
        pattern = descriptor.movement_pattern or ""
        base = [exercise for exercise in context.exercises if exercise.movement_pattern == pattern]
        if not base:
            logger.debug("slot_resolver: no candidate for movement pattern", slot_key=descriptor.slot_key, pattern=pattern)
            return SlotResolution(slot=_skipped_slot(descriptor, pattern, "no_candidate"), removed=1)
        candidates, pinned, reason = _filter_candidates(descriptor, base, context, None, pattern)
        if reason is not None:
            return SlotResolution(slot=_skipped_slot(descriptor, pattern, reason), removed=1)
        chosen = pinned or _pick(descriptor, pattern, candidates, preferred_names, [], context)
        return SlotResolution(slot=_bound_slot(descriptor, pattern, chosen))

    pool = context.pools.get(primary_key)
    if pool is None:
        logger.debug("slot_resolver: pool not found", slot_key=descriptor.slot_key, pool_key=primary_key)
        return SlotResolution(slot=_skipped_slot(descriptor, primary_key, "no_pool"), removed=1)

    chain = [pool] + [context.pools[key] for key in pool.fallback_pool_keys if key in context.pools]
    preference = _chain_preference(chain, context.preferences)

    last_reason: str | None = None
    for attempt in chain:
        base = context.pool_index.get(attempt.pool_key, [])
        candidates, pinned, reason = _filter_candidates(descriptor, base, context, preference, attempt.pool_key)
        if reason is not None:
            last_reason = reason
            logger.debug(
                "slot_resolver: pool exhausted",
                slot_key=descriptor.slot_key,
                pool_key=attempt.pool_key,
                reason=reason,
            )
            continue
        chosen = pinned or _pick(
            descriptor, attempt.pool_key, candidates, preferred_names, attempt.default_exercise_names, context
        )
        return SlotResolution(slot=_bound_slot(descriptor, attempt.pool_key, chosen))

    skip_reason = last_reason or "no_match"
    logger.info("slot_resolver: slot skipped", slot_key=descriptor.slot_key, pool_key=pool.pool_key, reason=skip_reason)
    return SlotResolution(slot=_skipped_slot(descriptor, pool.pool_key, skip_reason), removed=1)


def resolve_template_sessions(
    template: PoolBasedTemplate,
    context: ResolutionContext,
    *,
    injuries: list[Injury],
    weak_point_selection: WeakPointSelection | None,
) -> tuple[list[ResolvedSession], int]:
    """Resolve every slot of every template session.

    Args:
        template: Pool-based template
        context: Resolution context for this generation call
        injuries: Reported injuries (weak point hold check)
        weak_point_selection: User's weak point choice, if any

    Returns:
        Tuple of (resolved sessions, total removed slots)
    """
    selection = resolve_weak_point_selection(template, weak_point_selection)
    focus_pool = weak_point_pool_key(template, selection.focus)

    sessions: list[ResolvedSession] = []
    removed = 0
    for session in template.sessions:
        resolved = ResolvedSession(
            session_key=session.session_key,
            focus=session.focus,
            label=session.label or session.focus,
        )
        for descriptor in session.slots:
            pool_key = descriptor.pool_key
            preferred: list[str] = []
            if descriptor.is_weak_point:
                if focus_pool in context.pools:
                    pool_key = focus_pool
                preferred = weak_point_preferred_names(descriptor, selection)

            if should_hold_weak_point(descriptor, selection, injuries, settings.weak_point_hold_severity):
                logger.debug("slot_resolver: weak point held", slot_key=descriptor.slot_key, focus=selection.focus)
                resolved.slots.append(
                    _skipped_slot(
                        descriptor,
                        pool_key or focus_pool,
                        HOLD_SKIP_REASON,
                        exercise_name=HOLD_EXERCISE_NAME,
                        optional=True,
                    )
                )
                resolved.removed += 1
                continue

            resolution = resolve_slot(descriptor, context, pool_key=pool_key, preferred_names=preferred)
            resolved.slots.append(resolution.slot)
            resolved.removed += resolution.removed

        removed += resolved.removed
        sessions.append(resolved)

    return sessions, removed
