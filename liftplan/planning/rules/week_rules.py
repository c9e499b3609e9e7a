"""Week Rule Engine.

Expands a template's progression (phases, flat week rules, or nothing)
into exactly one WeekRule per week, and applies a rule to resolved
session plans. Every transform appends a tag to the slot's
applied_rules so the output can be audited.

Order of transforms per slot:
1. volume multiplier
2. deload (sets x deload factor, RPE capped at the ceiling)
3. RPE floor
4. RPE ceiling
5. auto-regulation (sets scale, RPE delta clamped to [5, 10])
"""

from liftplan.config.settings import settings
from liftplan.planning.rounding import round_half_up
from liftplan.planning.schema.program import AutoRegulationAdjustment
from liftplan.planning.schema.session import ResolvedSlot, SessionPlan, exercise_key
from liftplan.planning.schema.template import Phase, WeekRule

DELOAD_CYCLE_WEEKS = 5
DEFAULT_RPE_CEILING = 9.0
DEFAULT_RPE_FLOOR = 6.0
DEFAULT_DELOAD_VOLUME = 0.75
AUTO_RPE_MIN = 5.0
AUTO_RPE_MAX = 10.0


def _fmt(value: float) -> str:
    return f"{value:g}"


def _phase_rules(phases: list[Phase]) -> list[WeekRule]:
    rules: list[WeekRule] = []
    cursor = 0
    for phase in phases:
        overrides = {rule.week: rule for rule in phase.rules}
        for index in range(phase.weeks):
            override = overrides.get(index + 1)
            is_deload_week = phase.deload_after is not None and index + 1 == phase.deload_after
            default_ceiling = settings.default_deload_rpe_ceiling if is_deload_week else DEFAULT_RPE_CEILING
            rules.append(
                WeekRule(
                    week=cursor + index + 1,
                    volume_multiplier=(
                        override.volume_multiplier
                        if override is not None and override.volume_multiplier is not None
                        else 1.0
                    ),
                    rpe_ceiling=(
                        override.rpe_ceiling if override is not None and override.rpe_ceiling is not None else default_ceiling
                    ),
                    rpe_floor=(
                        override.rpe_floor if override is not None and override.rpe_floor is not None else DEFAULT_RPE_FLOOR
                    ),
                    deload=override.deload if override is not None else False,
                    note=override.note if override is not None and override.note else phase.key,
                )
            )
        cursor += phase.weeks
    return rules


def _default_rules(total_weeks: int) -> list[WeekRule]:
    rules: list[WeekRule] = []
    for index in range(total_weeks):
        deload = index % DELOAD_CYCLE_WEEKS == DELOAD_CYCLE_WEEKS - 1
        rules.append(
            WeekRule(
                week=index + 1,
                volume_multiplier=DEFAULT_DELOAD_VOLUME if deload else 1.0,
                rpe_ceiling=settings.default_deload_rpe_ceiling if deload else DEFAULT_RPE_CEILING,
                rpe_floor=DEFAULT_RPE_FLOOR,
                deload=deload,
            )
        )
    return rules


def expand_week_rules(
    total_weeks: int,
    *,
    phases: list[Phase] | None = None,
    week_rules: list[WeekRule] | None = None,
) -> list[WeekRule]:
    """Expand a progression into exactly `total_weeks` rules.

    Phases take precedence over flat week rules; with neither, weeks 1-4
    are full volume and every fifth week is a deload. A declared list
    shorter than needed repeats its last rule with the week renumbered.

    Args:
        total_weeks: Number of weeks to cover
        phases: Template phases
        week_rules: Flat template week rules

    Returns:
        List of WeekRule, one per week, numbered from 1
    """
    total_weeks = max(1, total_weeks)
    rules = _phase_rules(phases or [])
    if not rules and week_rules:
        rules = [rule.model_copy() for rule in week_rules]
    if not rules:
        rules = _default_rules(total_weeks)

    while len(rules) < total_weeks:
        rules.append(rules[-1].model_copy(update={"week": len(rules) + 1}))
    return rules[:total_weeks]


def apply_week_rule_to_slot(
    slot: ResolvedSlot,
    rule: WeekRule,
    adjustment: AutoRegulationAdjustment | None = None,
) -> ResolvedSlot:
    """Apply one week rule (and an optional auto-regulation) to a slot."""
    applied: list[str] = []
    sets = slot.sets
    rpe = slot.rpe

    if rule.volume_multiplier and sets:
        sets = max(1, round_half_up(sets * rule.volume_multiplier))
        applied.append(f"volume_x{_fmt(rule.volume_multiplier)}")

    if rule.deload and sets:
        sets = max(1, round_half_up(sets * settings.deload_set_factor))
        if rpe is not None:
            ceiling = rule.rpe_ceiling if rule.rpe_ceiling is not None else settings.default_deload_rpe_ceiling
            rpe = min(rpe, ceiling)
        applied.append("deload")

    if rpe is not None and rule.rpe_floor is not None:
        rpe = max(rpe, rule.rpe_floor)
        applied.append(f"rpe_floor_{_fmt(rule.rpe_floor)}")

    if rpe is not None and rule.rpe_ceiling is not None:
        rpe = min(rpe, rule.rpe_ceiling)
        applied.append(f"rpe_cap_{_fmt(rule.rpe_ceiling)}")

    if adjustment is not None:
        if adjustment.sets_scale is not None and sets:
            sets = max(1, round_half_up(sets * adjustment.sets_scale))
            applied.append(f"auto_sets_x{_fmt(adjustment.sets_scale)}")
        if adjustment.rpe_delta and rpe is not None:
            rpe = min(AUTO_RPE_MAX, max(AUTO_RPE_MIN, rpe + adjustment.rpe_delta))
            applied.append(f"auto_rpe_{'up' if adjustment.rpe_delta > 0 else 'down'}")

    return slot.model_copy(
        update={
            "sets": sets,
            "rpe": rpe,
            "applied_rules": applied if applied else list(slot.applied_rules),
        }
    )


def apply_week_rules(
    session_plans: list[SessionPlan],
    rule: WeekRule,
    auto_regulation: dict[str, AutoRegulationAdjustment] | None = None,
) -> list[SessionPlan]:
    """Apply a week rule to every slot of every plan.

    Args:
        session_plans: Plans of one week
        rule: Week rule to apply
        auto_regulation: Adjustments keyed by "<program_session_key>_<slot_key>"

    Returns:
        New session plans; the inputs are not modified
    """
    auto_regulation = auto_regulation or {}
    adjusted: list[SessionPlan] = []
    for plan in session_plans:
        slots = [
            apply_week_rule_to_slot(slot, rule, auto_regulation.get(exercise_key(plan.program_session_key, slot.slot_key)))
            for slot in plan.slots
        ]
        adjusted.append(plan.model_copy(update={"slots": slots}))
    return adjusted
