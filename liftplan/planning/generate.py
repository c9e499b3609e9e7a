"""Program Generation Service.

Entry points:
- generate_schedule: one template (or one blend of mixing templates) ->
  session plans, calendar schedule, week rules, preview
- generate_program: request + raw templates -> ActiveProgramSnapshot
- preview_program: request + raw templates -> PreviewResult

Every entry point is pure: inputs in, fresh outputs back. The caller
loads templates and the catalog and persists whatever is returned.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from loguru import logger

from liftplan.config.settings import settings
from liftplan.planning.compiler.mixing import compile_mixing_week
from liftplan.planning.errors import ProgramConflictError, TemplateValidationError
from liftplan.planning.logging import log_template_validation_failure
from liftplan.planning.normalize import normalize_templates
from liftplan.planning.preview import build_preview
from liftplan.planning.rules.week_rules import apply_week_rules, expand_week_rules
from liftplan.planning.schedule.composer import compose_schedule, derive_week_key, pick_training_days, start_of_week
from liftplan.planning.schema.catalog import Catalog
from liftplan.planning.schema.program import ActiveProgramSnapshot, PreviewResult, SeedStrategy
from liftplan.planning.schema.request import GenerationRequest, PoolPreference, Weekday
from liftplan.planning.schema.session import PlannedSession, ResolvedSlot, SessionPlan
from liftplan.planning.schema.template import (
    LegacyTemplate,
    MixingTemplate,
    PoolBasedTemplate,
    ProgramTemplate,
    WeekRule,
)
from liftplan.planning.seed import derive_mixing_seed, derive_plan_id, derive_seed
from liftplan.planning.selection.slot_resolver import build_resolution_context, resolve_template_sessions


@dataclass
class BaseSession:
    """One session of the repeating week before keys and rules are applied."""

    template_id: int
    session_key: str | None
    focus: str
    label: str | None
    slots: list[ResolvedSlot] = field(default_factory=list)


@dataclass
class GenerateScheduleResult:
    seed: str
    plan_id: str
    week_key: date
    session_plans: list[SessionPlan]
    schedule: list[PlannedSession]
    week_rules: list[WeekRule]
    preview: PreviewResult
    removed_slots: int
    decisions: list[str] = field(default_factory=list)


def _pool_based_sessions(
    template: PoolBasedTemplate,
    template_id: int,
    catalog: Catalog,
    request: GenerationRequest,
    seed: str,
    preferences: list[PoolPreference],
) -> tuple[list[BaseSession], int, list[str]]:
    context = build_resolution_context(
        template,
        catalog,
        injuries=request.injuries,
        equipment_profile=[str(item) for item in request.equipment_profile or []],
        pool_preferences=preferences,
        seed=seed,
    )
    resolved, removed = resolve_template_sessions(
        template,
        context,
        injuries=request.injuries,
        weak_point_selection=request.weak_point_selection,
    )
    sessions = [
        BaseSession(
            template_id=template_id,
            session_key=session.session_key,
            focus=session.focus,
            label=session.label,
            slots=session.slots,
        )
        for session in resolved
    ]
    return sessions, removed, []


def _legacy_sessions(template: LegacyTemplate, template_id: int) -> tuple[list[BaseSession], int, list[str]]:
    sessions = [
        BaseSession(
            template_id=template_id,
            session_key=session.program_session_key,
            focus=session.focus,
            label=session.label,
            slots=list(session.slots),
        )
        for session in template.sessions
    ]
    removed = sum(1 for session in sessions for slot in session.slots if slot.is_skipped)
    return sessions, removed, []


def _mixing_sessions(
    templates: dict[int, MixingTemplate],
    catalog: Catalog,
    request: GenerationRequest,
    seed: str,
    preferences: list[PoolPreference],
) -> tuple[list[BaseSession], int, list[str]]:
    week = compile_mixing_week(templates, request, catalog, seed, pool_preferences=preferences)
    sessions = [
        BaseSession(template_id=day.template_id, session_key=None, focus=day.focus, label=None, slots=day.slots)
        for day in week.days
    ]
    return sessions, week.removed_slots, week.decisions


def _session_key(kind: str, base: BaseSession, *, week: int, day: Weekday, day_index: int, running: int, seed: str) -> str:
    if kind == "pool_based":
        return f"{base.session_key}_w{week + 1}_{day.value.lower()}_{seed[:6]}"
    if kind == "mixing":
        return f"mix_{day_index + 1}_w{week + 1}_{seed[:6]}"
    if base.session_key:
        return f"{base.session_key}_w{week + 1}"
    return f"plan_{base.template_id}_{running}_{day.value.lower()}_{seed[:6]}"


def _session_label(kind: str, base: BaseSession, day: Weekday) -> str:
    if kind == "pool_based":
        return f"{base.label or base.focus} - {day.value}"
    if kind == "mixing":
        return f"{day.value} {base.focus}"
    return base.label or f"{day.value} Session"


def _expand_weeks(
    kind: str,
    bases: list[BaseSession],
    training_days: list[Weekday],
    *,
    start_week: int,
    weeks: int,
    seed: str,
) -> list[SessionPlan]:
    plans: list[SessionPlan] = []
    if not bases:
        return plans
    for week in range(start_week, start_week + weeks):
        for day_index, day in enumerate(training_days):
            base = bases[day_index % len(bases)]
            running = week * len(training_days) + day_index + 1
            plans.append(
                SessionPlan(
                    template_id=base.template_id,
                    program_session_key=_session_key(
                        kind, base, week=week, day=day, day_index=day_index, running=running, seed=seed
                    ),
                    focus=base.focus,
                    label=_session_label(kind, base, day),
                    week_offset=week,
                    slots=[slot.model_copy(update={"applied_rules": []}, deep=True) for slot in base.slots],
                )
            )
    return plans


def _progression_source(templates: list[ProgramTemplate]) -> ProgramTemplate:
    return next((template for template in templates if template.phases or template.week_rules), templates[0])


def generate_mixing_schedule(
    templates: dict[int, MixingTemplate],
    catalog: Catalog,
    request: GenerationRequest,
    seed: str,
    *,
    today: date,
    start_week_key: date | None = None,
    start_week: int = 0,
    weeks_to_build: int | None = None,
    apply_rules: bool = True,
    pool_preference_override: list[PoolPreference] | None = None,
    plan_id: str | None = None,
) -> GenerateScheduleResult:
    """Generate a schedule from a blend of mixing templates."""
    return _generate(
        "mixing",
        dict(templates),
        catalog,
        request,
        seed,
        today=today,
        start_week_key=start_week_key,
        start_week=start_week,
        weeks_to_build=weeks_to_build,
        apply_rules=apply_rules,
        pool_preference_override=pool_preference_override,
        plan_id=plan_id,
    )


def generate_schedule(
    template: ProgramTemplate,
    template_id: int,
    catalog: Catalog,
    request: GenerationRequest,
    seed: str,
    *,
    today: date,
    start_week_key: date | None = None,
    start_week: int = 0,
    weeks_to_build: int | None = None,
    apply_rules: bool = True,
    pool_preference_override: list[PoolPreference] | None = None,
    plan_id: str | None = None,
) -> GenerateScheduleResult:
    """Generate session plans and a calendar schedule from one template.

    Args:
        template: Normalized template
        template_id: Catalog id of the template
        catalog: Exercise catalog
        request: Generation request
        seed: Seed driving every selection
        today: Generation date (first day of week 0 unless start_week_key is given)
        start_week_key: First day of week 0 (e.g., the program's original start)
        start_week: First week (0-based) to build
        weeks_to_build: Number of weeks to build (defaults to the template's weeks)
        apply_rules: Whether to apply the expanded week rules
        pool_preference_override: Preferences to use instead of the request's
        plan_id: Plan id to reuse (defaults to one derived from the seed)

    Returns:
        GenerateScheduleResult
    """
    return _generate(
        template.kind,
        {template_id: template},
        catalog,
        request,
        seed,
        today=today,
        start_week_key=start_week_key,
        start_week=start_week,
        weeks_to_build=weeks_to_build,
        apply_rules=apply_rules,
        pool_preference_override=pool_preference_override,
        plan_id=plan_id,
    )


def _generate(
    kind: str,
    templates: dict[int, ProgramTemplate],
    catalog: Catalog,
    request: GenerationRequest,
    seed: str,
    *,
    today: date,
    start_week_key: date | None,
    start_week: int,
    weeks_to_build: int | None,
    apply_rules: bool,
    pool_preference_override: list[PoolPreference] | None,
    plan_id: str | None,
) -> GenerateScheduleResult:
    preferences = pool_preference_override if pool_preference_override is not None else request.pool_preferences
    template_id, template = next(iter(templates.items()))

    if kind == "mixing":
        bases, removed, decisions = _mixing_sessions(templates, catalog, request, seed, preferences)
    elif isinstance(template, PoolBasedTemplate):
        bases, removed, decisions = _pool_based_sessions(template, template_id, catalog, request, seed, preferences)
    else:
        bases, removed, decisions = _legacy_sessions(template, template_id)

    progression = _progression_source(list(templates.values()))
    weeks = weeks_to_build or max((t.weeks or settings.default_weeks) for t in templates.values())
    week_rules = expand_week_rules(start_week + weeks, phases=progression.phases, week_rules=progression.week_rules)
    training_days = pick_training_days(request.preferred_days, request.days_per_week)

    plans = _expand_weeks(kind, bases, training_days, start_week=start_week, weeks=weeks, seed=seed)
    if apply_rules:
        plans = [
            apply_week_rules([plan], week_rules[min(plan.week_offset, len(week_rules) - 1)])[0] for plan in plans
        ]

    anchor = start_week_key or today
    schedule = compose_schedule(plans, training_days, anchor)
    preview = build_preview(plans, catalog.muscle_groups, request, removed, seed, week=start_week)

    logger.info(
        "generate: schedule built",
        kind=kind,
        templates=list(templates),
        weeks=weeks,
        start_week=start_week,
        sessions=len(plans),
        removed_slots=removed,
    )
    return GenerateScheduleResult(
        seed=seed,
        plan_id=plan_id or derive_plan_id(seed),
        week_key=derive_week_key(schedule, anchor),
        session_plans=plans,
        schedule=schedule,
        week_rules=week_rules,
        preview=preview,
        removed_slots=removed,
        decisions=[
            f"Week rules applied: {len(week_rules)}",
            f"Training days: {', '.join(day.value for day in training_days)}",
            *decisions,
        ],
    )


def select_templates(
    request: GenerationRequest,
    raw_templates: Mapping[int, object],
) -> dict[int, ProgramTemplate]:
    """Normalize the templates selected by the request.

    Raises:
        TemplateValidationError: If a selected template is missing or malformed
    """
    missing = [template_id for template_id in request.template_ids if template_id not in raw_templates]
    if missing:
        raise TemplateValidationError([f"Template {template_id} template: not found" for template_id in missing])
    normalized = normalize_templates([raw_templates[template_id] for template_id in request.template_ids])
    return dict(zip(request.template_ids, normalized))


def mixing_templates(templates: dict[int, ProgramTemplate]) -> dict[int, MixingTemplate] | None:
    """Return the templates as a mixing blend, or None unless every one is a mixing template."""
    mixing = {template_id: template for template_id, template in templates.items() if isinstance(template, MixingTemplate)}
    if len(mixing) != len(templates):
        return None
    return mixing


def derive_program_seed(
    request: GenerationRequest,
    templates: dict[int, ProgramTemplate],
    week_key: date,
) -> tuple[str, SeedStrategy]:
    """Seed for a program: weekly mixing seed for blends, static seed otherwise."""
    mixing = mixing_templates(templates)
    if mixing is not None:
        salts = [template.seed_salt for template in mixing.values() if template.seed_salt]
        return derive_mixing_seed(request, start_of_week(week_key), salts), SeedStrategy.MIXING_V1
    return derive_seed(request), SeedStrategy.STATIC


def build_schedule(
    request: GenerationRequest,
    templates: dict[int, ProgramTemplate],
    catalog: Catalog,
    seed: str,
    *,
    today: date,
    start_week_key: date | None = None,
    start_week: int = 0,
    weeks_to_build: int | None = None,
    apply_rules: bool = True,
    pool_preference_override: list[PoolPreference] | None = None,
    plan_id: str | None = None,
) -> GenerateScheduleResult:
    """Dispatch to the mixing blend or to the first selected template."""
    options = {
        "today": today,
        "start_week_key": start_week_key,
        "start_week": start_week,
        "weeks_to_build": weeks_to_build,
        "apply_rules": apply_rules,
        "pool_preference_override": pool_preference_override,
        "plan_id": plan_id,
    }
    mixing = mixing_templates(templates)
    if mixing is not None:
        return generate_mixing_schedule(mixing, catalog, request, seed, **options)
    template_id, template = next(iter(templates.items()))
    return generate_schedule(template, template_id, catalog, request, seed, **options)


def _build(
    request: GenerationRequest,
    templates: dict[int, ProgramTemplate],
    catalog: Catalog,
    today: date,
) -> tuple[GenerateScheduleResult, SeedStrategy]:
    seed, strategy = derive_program_seed(request, templates, today)
    return build_schedule(request, templates, catalog, seed, today=today), strategy


def generate_program(
    request: GenerationRequest,
    raw_templates: Mapping[int, object],
    catalog: Catalog,
    *,
    today: date,
    existing: ActiveProgramSnapshot | None = None,
    generated_at: datetime | None = None,
) -> ActiveProgramSnapshot:
    """Generate a new active program.

    Args:
        request: Validated generation request
        raw_templates: Raw (or normalized) templates keyed by template id
        catalog: Exercise catalog
        today: Generation date
        existing: Current active program, if any
        generated_at: Timestamp to record (defaults to now, UTC)

    Returns:
        ActiveProgramSnapshot

    Raises:
        ProgramConflictError: If an active program exists and overwrite is not confirmed
        TemplateValidationError: If any selected template is missing or malformed
    """
    if existing is not None and not request.confirm_overwrite:
        logger.warning("generate: overwrite not confirmed", user_id=str(request.user_id), plan_id=existing.plan_id)
        raise ProgramConflictError(existing.plan_id)

    try:
        templates = select_templates(request, raw_templates)
    except TemplateValidationError as err:
        log_template_validation_failure(err, {"user_id": str(request.user_id), "operation": "generate"})
        raise

    result, strategy = _build(request, templates, catalog, today)

    decisions = [
        f"Templates: {', '.join(str(template_id) for template_id in request.template_ids)}",
        f"Days per week: {request.days_per_week}",
        f"Preferred days: {', '.join(day.value for day in request.preferred_days or []) or 'auto-assigned'}",
        f"Fatigue profile: {request.fatigue_profile.value}",
    ]
    if request.weak_point_selection is not None:
        decisions.append(f"Weak point focus: {request.weak_point_selection.focus}")
    decisions.extend(result.decisions)

    logger.info(
        "generate: program created",
        user_id=str(request.user_id),
        plan_id=result.plan_id,
        seed=result.seed,
        seed_strategy=strategy.value,
    )
    return ActiveProgramSnapshot(
        user_id=request.user_id,
        selected_programs=request.selected_programs,
        seed=result.seed,
        seed_strategy=strategy,
        plan_id=result.plan_id,
        generated_at=generated_at or datetime.now(timezone.utc),
        start_week_key=today,
        week_key=result.week_key,
        injuries=request.injuries,
        fatigue_profile=request.fatigue_profile,
        equipment_profile=request.equipment_profile,
        days_per_week=request.days_per_week,
        max_session_minutes=request.max_session_minutes,
        preferred_days=request.preferred_days,
        pool_preferences=request.pool_preferences,
        weak_point_selection=request.weak_point_selection,
        preview=result.preview,
        schedule=result.schedule,
        session_plans=result.session_plans,
        week_rules=result.week_rules,
        decisions_log=decisions,
    )


def preview_program(
    request: GenerationRequest,
    raw_templates: Mapping[int, object],
    catalog: Catalog,
    *,
    today: date,
) -> PreviewResult:
    """Compute the preview contract without creating a program."""
    try:
        templates = select_templates(request, raw_templates)
    except TemplateValidationError as err:
        log_template_validation_failure(err, {"user_id": str(request.user_id), "operation": "preview"})
        raise
    result, _ = _build(request, templates, catalog, today)
    return result.preview
