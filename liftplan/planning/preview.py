"""Preview Builder.

Summarizes the first week of a generated program for the wizard: weekly sets per
region, a 0-100 recovery load score, and warnings.
"""

from liftplan.config.settings import settings
from liftplan.planning.rounding import round_half_up
from liftplan.planning.schema.catalog import MuscleGroup
from liftplan.planning.schema.program import PreviewResult, PreviewWarning, WeeklySets
from liftplan.planning.schema.request import GenerationRequest
from liftplan.planning.schema.session import SessionPlan

DEFAULT_GROUP = "Training"
SETS_LOAD_FACTOR = 2.8
DAY_LOAD_FACTOR = 6
REMOVED_SLOT_LOAD = 3
MAX_RECOVERY_LOAD = 100


def summarize_weekly_sets(
    session_plans: list[SessionPlan],
    muscle_groups: list[MuscleGroup],
    week: int = 0,
) -> list[WeeklySets]:
    """Sum one week's sets of resolved slots by primary-muscle region."""
    region_by_id = {muscle.id: muscle.region for muscle in muscle_groups if muscle.region}
    totals: dict[str, int] = {}
    for plan in session_plans:
        if plan.week_offset != week:
            continue
        for slot in plan.slots:
            if slot.is_skipped:
                continue
            group = None
            if slot.primary_muscle_group_id is not None:
                group = region_by_id.get(slot.primary_muscle_group_id)
            group = group or slot.movement_pattern or DEFAULT_GROUP
            totals[group] = totals.get(group, 0) + (slot.sets or 0)
    return [WeeklySets(muscle_group=group, sets=sets) for group, sets in totals.items()]


def recovery_load_score(total_sets: int, request: GenerationRequest, removed_slots: int) -> int:
    """Heuristic 0-100 recovery load for a week."""
    days = max(request.days_per_week, 1)
    time_factor = request.max_session_minutes / 60
    volume_score = total_sets * time_factor / days * SETS_LOAD_FACTOR
    raw = volume_score + days * DAY_LOAD_FACTOR + removed_slots * REMOVED_SLOT_LOAD
    multiplier = settings.recovery_load_multiplier(str(request.fatigue_profile))
    return min(MAX_RECOVERY_LOAD, round_half_up(raw * multiplier))


def build_preview(
    session_plans: list[SessionPlan],
    muscle_groups: list[MuscleGroup],
    request: GenerationRequest,
    removed_slots: int,
    seed: str,
    *,
    week: int = 0,
) -> PreviewResult:
    """Build the preview contract.

    Args:
        session_plans: Generated plans
        muscle_groups: Catalog muscle groups (for regions)
        request: Generation request
        removed_slots: Slots removed by constraints or budget
        seed: Generation seed
        week: Week to summarize (the first generated week)

    Returns:
        PreviewResult
    """
    weekly_sets = summarize_weekly_sets(session_plans, muscle_groups, week)
    total_sets = sum(entry.sets for entry in weekly_sets)
    recovery_load = recovery_load_score(total_sets, request, removed_slots)
    profile = str(request.fatigue_profile)

    warnings: list[PreviewWarning] = []
    under_target = sum(1 for entry in weekly_sets if entry.sets < settings.under_target_sets)
    if under_target > 0:
        warnings.append(PreviewWarning(type="under_target", message=f"{under_target} muscle groups under target"))
    if recovery_load > settings.recovery_load_threshold(profile):
        warnings.append(
            PreviewWarning(type="recovery_load", message=f"Recovery load high for {profile} fatigue profile")
        )
    if removed_slots > 0:
        warnings.append(
            PreviewWarning(type="injury_reduction", message=f"Injury constraints removed {removed_slots} slots")
        )

    return PreviewResult(
        seed=seed,
        weekly_sets=weekly_sets,
        recovery_load=recovery_load,
        warnings=warnings,
        removed_slots=removed_slots,
    )
