"""Week-over-Week Adaptation.

One adaptation call advances the program by one week:

1. extend the performance cache with new samples (carry-forward)
2. derive auto-regulation against the previously planned week
3. detect a fatigue spike from weekly set totals
4. pick the next week rule, forcing a deload on a fatigue spike
5. ban exercises that caused pain in their pool
6. regenerate exactly one week and apply rule + auto-regulation

adapt_next_week is pure. apply_adaptation folds its result into a new
ActiveProgramSnapshot for the caller to persist.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone

from loguru import logger

from liftplan.config.settings import settings
from liftplan.planning.errors import AdaptationError
from liftplan.planning.generate import build_schedule, mixing_templates, select_templates
from liftplan.planning.logging import log_adaptation_failure
from liftplan.planning.rules.week_rules import apply_week_rules
from liftplan.planning.schedule.composer import start_of_week
from liftplan.planning.schema.catalog import Catalog
from liftplan.planning.schema.program import (
    ActiveProgramSnapshot,
    AutoRegulationAdjustment,
    PerformanceCacheEntry,
    PerformanceSample,
    SeedStrategy,
)
from liftplan.planning.schema.request import PoolPreference
from liftplan.planning.schema.session import PlannedSession, ResolvedSlot, SessionPlan, exercise_key
from liftplan.planning.schema.template import WeekRule
from liftplan.planning.seed import derive_mixing_seed

PAINFUL_LABEL = "painful"


@dataclass(frozen=True)
class FatigueWeek:
    week: date
    sets: int


@dataclass
class AdaptationResult:
    """Everything one adaptation step produced."""

    week_cursor: int
    next_week_rule: WeekRule
    fatigue_flag: bool
    auto_regulation: dict[str, AutoRegulationAdjustment]
    performance_cache: dict[str, PerformanceCacheEntry]
    pool_preferences: list[PoolPreference]
    substitutions: list[PoolPreference]
    schedule: list[PlannedSession]
    session_plans: list[SessionPlan]
    week_key: date
    decisions: list[str] = field(default_factory=list)


def build_performance_cache(
    samples: list[PerformanceSample],
    previous: dict[str, PerformanceCacheEntry] | None = None,
) -> dict[str, PerformanceCacheEntry]:
    """Extend the rolling performance cache.

    Samples are folded in session-date order. A field missing from a
    sample keeps its previous value; the sample count always increments.
    """
    cache = dict(previous or {})
    for sample in sorted(samples, key=lambda item: item.session_date):
        prior = cache.get(sample.exercise_key, PerformanceCacheEntry())
        cache[sample.exercise_key] = PerformanceCacheEntry(
            avg_rpe=sample.avg_rpe if sample.avg_rpe is not None else prior.avg_rpe,
            avg_rir=sample.avg_rir if sample.avg_rir is not None else prior.avg_rir,
            pain=sample.pain if sample.pain is not None else prior.pain,
            last_session=sample.session_date,
            samples=prior.samples + 1,
        )
    return cache


def _slots_by_key(plans: list[SessionPlan]) -> dict[str, ResolvedSlot]:
    return {exercise_key(plan.program_session_key, slot.slot_key): slot for plan in plans for slot in plan.slots}


def derive_auto_regulation(
    plans: list[SessionPlan],
    samples: list[PerformanceSample],
) -> dict[str, AutoRegulationAdjustment]:
    """Compare logged RPE with planned RPE per exercise key.

    Overshoot (logged > planned + threshold) backs off; undershoot
    (logged < planned - threshold) pushes harder. The dead zone between
    produces no adjustment.

    Args:
        plans: Session plans the samples were logged against
        samples: Performance samples

    Returns:
        Dictionary exercise_key -> AutoRegulationAdjustment
    """
    planned = _slots_by_key(plans)
    adjustments: dict[str, AutoRegulationAdjustment] = {}
    for sample in samples:
        target = planned.get(sample.exercise_key)
        if target is None or target.rpe is None or sample.avg_rpe is None:
            continue
        delta = sample.avg_rpe - target.rpe
        if delta > settings.autoreg_overshoot_threshold:
            adjustments[sample.exercise_key] = AutoRegulationAdjustment(
                rpe_delta=-settings.autoreg_rpe_step, reason="overshoot"
            )
        elif delta < -settings.autoreg_undershoot_threshold:
            adjustments[sample.exercise_key] = AutoRegulationAdjustment(
                rpe_delta=settings.autoreg_rpe_step, reason="undershoot"
            )
    return adjustments


def build_fatigue_history(samples: list[PerformanceSample]) -> list[FatigueWeek]:
    """Weekly logged set totals keyed by Monday, oldest first."""
    totals: dict[date, int] = {}
    for sample in samples:
        week = start_of_week(sample.session_date)
        totals[week] = totals.get(week, 0) + sample.sets
    return [FatigueWeek(week=week, sets=totals[week]) for week in sorted(totals)]


def fatigue_flag(history: list[FatigueWeek]) -> bool:
    """True when the latest week's sets exceed the prior average by the spike ratio.

    Requires at least two weeks of history and a positive prior average.
    """
    if len(history) < 2:
        return False
    ordered = sorted(history, key=lambda entry: entry.week)
    latest = ordered[-1]
    prior = ordered[:-1]
    average = sum(entry.sets for entry in prior) / len(prior)
    if average <= 0:
        return False
    return latest.sets > average * settings.fatigue_spike_ratio


def pain_bans(
    samples: list[PerformanceSample],
    plans: list[SessionPlan],
) -> list[PoolPreference]:
    """Ban the exercise that occupied a painful slot, in that slot's pool."""
    planned = _slots_by_key(plans)
    banned: dict[str, list[str]] = {}
    for sample in samples:
        if sample.pain is None or sample.pain < settings.pain_ban_threshold:
            continue
        slot = planned.get(sample.exercise_key)
        if slot is None or slot.is_skipped or not slot.pool_key:
            logger.debug("adaptation: painful sample has no planned slot", exercise_key=sample.exercise_key)
            continue
        names = banned.setdefault(slot.pool_key, [])
        if slot.exercise_name not in names:
            names.append(slot.exercise_name)
    return [PoolPreference(pool_key=pool_key, banned=names, label=PAINFUL_LABEL) for pool_key, names in banned.items()]


def merge_pool_preferences(existing: list[PoolPreference], bans: list[PoolPreference]) -> list[PoolPreference]:
    """Merge ban preferences into existing ones, one preference per pool.

    A pinned exercise that becomes banned is unpinned.
    """
    merged = {preference.pool_key: preference.model_copy(deep=True) for preference in existing}
    for ban in bans:
        current = merged.get(ban.pool_key)
        if current is None:
            merged[ban.pool_key] = ban.model_copy(deep=True)
            continue
        names = list(current.banned) + [name for name in ban.banned if name not in current.banned]
        pinned = current.pinned if current.pinned not in names else None
        merged[ban.pool_key] = current.model_copy(update={"banned": names, "pinned": pinned, "label": ban.label})
    return list(merged.values())


def rekey_auto_regulation(
    adjustments: dict[str, AutoRegulationAdjustment],
    previous_plans: list[SessionPlan],
    next_plans: list[SessionPlan],
) -> dict[str, AutoRegulationAdjustment]:
    """Carry adjustments from last week's plans onto next week's by position.

    The i-th session of the previous week maps onto the i-th session of
    the next week; slots are matched by slot_key.
    """
    rekeyed: dict[str, AutoRegulationAdjustment] = {}
    for previous, upcoming in zip(previous_plans, next_plans):
        for slot in previous.slots:
            adjustment = adjustments.get(exercise_key(previous.program_session_key, slot.slot_key))
            if adjustment is not None:
                rekeyed[exercise_key(upcoming.program_session_key, slot.slot_key)] = adjustment
    return rekeyed


def _previous_week_plans(snapshot: ActiveProgramSnapshot) -> list[SessionPlan]:
    current = [plan for plan in snapshot.session_plans if plan.week_offset == snapshot.week_cursor]
    return current or list(snapshot.session_plans)


def adapt_next_week(
    snapshot: ActiveProgramSnapshot | None,
    raw_templates: Mapping[int, object],
    catalog: Catalog,
    samples: list[PerformanceSample],
    *,
    today: date,
    fatigue_history: list[FatigueWeek] | None = None,
) -> AdaptationResult:
    """Run one adaptation step.

    Args:
        snapshot: Active program (None when the user has none)
        raw_templates: Templates keyed by id (raw or normalized)
        catalog: Exercise catalog
        samples: Performance samples logged since the last step
        today: Adaptation date (bounds the performance lookback)
        fatigue_history: Weekly set totals (defaults to one built from samples)

    Returns:
        AdaptationResult for the next week

    Raises:
        AdaptationError: If there is no active program or its template is missing
        TemplateValidationError: If the stored template no longer validates
    """
    if snapshot is None:
        err = AdaptationError.no_active_program()
        log_adaptation_failure(err, {"operation": "adapt"})
        raise err

    missing = [template_id for template_id in snapshot.template_ids if template_id not in raw_templates]
    if missing:
        err = AdaptationError.template_missing(missing[0])
        log_adaptation_failure(err, {"operation": "adapt", "plan_id": snapshot.plan_id})
        raise err

    request = snapshot.to_request()
    templates = select_templates(request, raw_templates)

    lookback_start = today - timedelta(days=settings.performance_lookback_days)
    recent = [sample for sample in samples if sample.session_date >= lookback_start]
    previous_plans = _previous_week_plans(snapshot)

    bans = pain_bans(recent, snapshot.session_plans)
    preferences = merge_pool_preferences(snapshot.pool_preferences, bans)
    request = request.model_copy(update={"pool_preferences": preferences})

    week_cursor = snapshot.week_cursor + 1
    seed = snapshot.seed
    if snapshot.seed_strategy == SeedStrategy.MIXING_V1:
        week_start = snapshot.start_week_key + timedelta(days=7 * week_cursor)
        salts = [template.seed_salt for template in (mixing_templates(templates) or {}).values() if template.seed_salt]
        seed = derive_mixing_seed(request, start_of_week(week_start), salts)

    generated = build_schedule(
        request,
        templates,
        catalog,
        seed,
        today=today,
        start_week_key=snapshot.start_week_key,
        start_week=week_cursor,
        weeks_to_build=1,
        apply_rules=False,
        pool_preference_override=preferences,
        plan_id=snapshot.plan_id,
    )

    rule = generated.week_rules[min(week_cursor, len(generated.week_rules) - 1)]
    history = fatigue_history if fatigue_history is not None else build_fatigue_history(recent)
    fatigued = fatigue_flag(history)
    if fatigued:
        rule = rule.model_copy(
            update={
                "deload": True,
                "volume_multiplier": (rule.volume_multiplier or 1.0) * settings.fatigue_deload_volume_factor,
            }
        )
        logger.info("adaptation: fatigue spike detected", plan_id=snapshot.plan_id, week_cursor=week_cursor)

    auto_regulation = derive_auto_regulation(previous_plans, recent)
    rekeyed = rekey_auto_regulation(auto_regulation, previous_plans, generated.session_plans)
    session_plans = apply_week_rules(generated.session_plans, rule, rekeyed)

    decisions = [
        f"Auto-reg slots: {len(auto_regulation)}",
        "Inserted soft deload from fatigue flag" if fatigued else "No fatigue deload",
    ]
    for ban in bans:
        decisions.append(f"Banned painful {', '.join(ban.banned)} in pool {ban.pool_key}")
    decisions.append(f"Week cursor advanced to {week_cursor}")

    logger.info(
        "adaptation: week regenerated",
        plan_id=snapshot.plan_id,
        week_cursor=week_cursor,
        auto_regulated=len(auto_regulation),
        pain_bans=len(bans),
    )
    return AdaptationResult(
        week_cursor=week_cursor,
        next_week_rule=rule,
        fatigue_flag=fatigued,
        auto_regulation=rekeyed,
        performance_cache=build_performance_cache(recent, snapshot.performance_cache),
        pool_preferences=preferences,
        substitutions=bans,
        schedule=generated.schedule,
        session_plans=session_plans,
        week_key=generated.week_key,
        decisions=decisions,
    )


def apply_adaptation(
    snapshot: ActiveProgramSnapshot,
    result: AdaptationResult,
    *,
    adapted_at: datetime | None = None,
) -> ActiveProgramSnapshot:
    """Fold an adaptation result into a new snapshot.

    The regenerated week replaces any sessions previously planned for
    that week; other weeks are kept.
    """
    cursor = result.week_cursor
    week_rules = [rule for rule in snapshot.week_rules if rule.week != result.next_week_rule.week]
    week_rules.append(result.next_week_rule)
    week_rules.sort(key=lambda rule: rule.week)

    schedule = [entry for entry in snapshot.schedule if entry.week != cursor] + result.schedule
    schedule.sort(key=lambda entry: (entry.date, entry.program_session_key))
    session_plans = [plan for plan in snapshot.session_plans if plan.week_offset != cursor] + result.session_plans
    session_plans.sort(key=lambda plan: plan.week_offset)

    return snapshot.model_copy(
        update={
            "week_cursor": cursor,
            "week_rules": week_rules,
            "performance_cache": result.performance_cache,
            "pool_preferences": result.pool_preferences,
            "week_key": result.week_key,
            "schedule": schedule,
            "session_plans": session_plans,
            "decisions_log": [*snapshot.decisions_log, *result.decisions],
            "last_adaptation_at": adapted_at or datetime.now(timezone.utc),
        }
    )
