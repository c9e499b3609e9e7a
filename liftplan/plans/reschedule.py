"""Missed-Session Reschedule and Program Restart.

Both operations are pure: the caller supplies its stored sessions as
SessionRecords and persists the snapshot and records that come back.

- auto_reschedule: past sessions that were never completed are marked
  missed and moved to the next free training day
- restart_program: regenerate from the Monday of today, soft (rest of
  the week only) or hard (the whole week and schedule)
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Literal

from loguru import logger

from liftplan.config.settings import settings
from liftplan.planning.errors import AdaptationError
from liftplan.planning.generate import build_schedule, derive_program_seed, select_templates
from liftplan.planning.logging import log_adaptation_failure
from liftplan.planning.schedule.composer import WEEKDAY_INDEX, pick_training_days, start_of_week
from liftplan.planning.schema.catalog import Catalog
from liftplan.planning.schema.program import ActiveProgramSnapshot, SeedStrategy, SessionRecord, SessionStatus
from liftplan.planning.schema.request import Weekday
from liftplan.planning.seed import derive_plan_id, derive_reshuffled_seed

RESCHEDULE_HORIZON_DAYS = 42

RestartMode = Literal["soft", "hard"]


@dataclass
class RescheduleResult:
    snapshot: ActiveProgramSnapshot
    sessions: list[SessionRecord] = field(default_factory=list)
    missed: int = 0
    rescheduled: int = 0
    created: int = 0
    restart_required: bool = False
    restart_reason: str | None = None


def next_training_date(start: date, training_days: list[Weekday], blocked: set[date]) -> date:
    """First training day on or after start that is not blocked.

    Searches a six-week horizon and falls back to start itself.
    """
    allowed = {WEEKDAY_INDEX[day] for day in training_days}
    for offset in range(RESCHEDULE_HORIZON_DAYS):
        candidate = start + timedelta(days=offset)
        if candidate.weekday() in allowed and candidate not in blocked:
            return candidate
    return start


def _upsert(records: list[SessionRecord], additions: list[SessionRecord]) -> list[SessionRecord]:
    merged = {(record.session_date, record.program_session_key): record for record in records}
    for record in additions:
        merged[(record.session_date, record.program_session_key)] = record
    return sorted(merged.values(), key=lambda record: (record.session_date, record.program_session_key or ""))


def auto_reschedule(
    snapshot: ActiveProgramSnapshot,
    sessions: list[SessionRecord],
    *,
    today: date,
    threshold: int | None = None,
) -> RescheduleResult:
    """Move missed sessions forward.

    A session dated before today whose status is planned, skipped or unset
    counts as missed: it is marked missed with its inconsistency score
    incremented, and a planned copy is created on the next training day
    that no upcoming planned or completed session occupies.

    Args:
        snapshot: Active program
        sessions: Stored sessions of the user
        today: Reschedule date
        threshold: Missed sessions in the current week that require a restart

    Returns:
        RescheduleResult with the updated snapshot and session records
    """
    threshold = threshold or settings.missed_session_restart_threshold
    training_days = pick_training_days(snapshot.preferred_days, snapshot.days_per_week)
    open_statuses = {SessionStatus.PLANNED, SessionStatus.SKIPPED, None}

    blocked = {
        record.session_date
        for record in sessions
        if record.session_date >= today and record.status in (SessionStatus.PLANNED, SessionStatus.COMPLETED)
    }
    missed = sorted(
        (record for record in sessions if record.session_date < today and record.status in open_statuses),
        key=lambda record: record.session_date,
    )

    schedule = list(snapshot.schedule)
    position = {entry.program_session_key: index for index, entry in enumerate(schedule)}
    updated: list[SessionRecord] = []
    created: list[SessionRecord] = []
    for record in missed:
        key = record.program_session_key or f"auto_{record.session_date:%Y%m%d}"
        next_date = next_training_date(today, training_days, blocked)
        blocked.add(next_date)
        score = record.inconsistency_score + 1

        updated.append(
            record.model_copy(update={"status": SessionStatus.MISSED, "inconsistency_score": score, "reschedule_flag": True})
        )
        created.append(
            SessionRecord(
                session_date=next_date,
                status=SessionStatus.PLANNED,
                program_session_key=key,
                inconsistency_score=score,
                reschedule_flag=True,
            )
        )
        if key in position:
            schedule[position[key]] = schedule[position[key]].model_copy(update={"date": next_date})

    week_start = snapshot.week_key
    week_end = week_start + timedelta(days=6)
    missed_keys = {(record.session_date, record.program_session_key) for record in missed}
    already_missed = sum(
        1
        for record in sessions
        if record.status == SessionStatus.MISSED
        and week_start <= record.session_date <= week_end
        and (record.session_date, record.program_session_key) not in missed_keys
    )
    newly_missed = sum(1 for record in missed if week_start <= record.session_date <= week_end)
    missed_this_week = already_missed + newly_missed
    restart_required = missed_this_week >= threshold

    result_snapshot = snapshot.model_copy(
        update={
            "schedule": schedule,
            "decisions_log": [
                *snapshot.decisions_log,
                f"Auto-rescheduled {len(created)} session(s) on {today.isoformat()}",
            ],
        }
    )
    logger.info(
        "reschedule: missed sessions moved",
        plan_id=snapshot.plan_id,
        missed=len(missed),
        missed_this_week=missed_this_week,
        restart_required=restart_required,
    )
    return RescheduleResult(
        snapshot=result_snapshot,
        sessions=_upsert(_upsert(sessions, updated), created),
        missed=len(missed),
        rescheduled=len(created),
        created=len(created),
        restart_required=restart_required,
        restart_reason=f"Missed {missed_this_week} session(s) this week" if restart_required else None,
    )


def restart_program(
    snapshot: ActiveProgramSnapshot | None,
    raw_templates: Mapping[int, object],
    catalog: Catalog,
    *,
    mode: RestartMode,
    today: date,
    reshuffle: bool = False,
    sessions: list[SessionRecord] | None = None,
) -> RescheduleResult:
    """Restart the active program from the Monday of today.

    Soft restarts skip the remaining planned sessions of this week and
    recreate only today through Sunday; hard restarts skip every planned
    session of the week and recreate the whole schedule.

    Args:
        snapshot: Active program (None when the user has none)
        raw_templates: Templates keyed by id (raw or normalized)
        catalog: Exercise catalog
        mode: "soft" or "hard"
        today: Restart date
        reshuffle: Derive a new seed from the restart counter
        sessions: Stored sessions of the user

    Returns:
        RescheduleResult with the regenerated snapshot and session records

    Raises:
        AdaptationError: If there is no active program or its template is missing
    """
    if snapshot is None:
        err = AdaptationError.no_active_program()
        log_adaptation_failure(err, {"operation": "restart", "mode": mode})
        raise err

    missing = [template_id for template_id in snapshot.template_ids if template_id not in raw_templates]
    if missing:
        err = AdaptationError.template_missing(missing[0])
        log_adaptation_failure(err, {"operation": "restart", "plan_id": snapshot.plan_id})
        raise err

    sessions = sessions or []
    request = snapshot.to_request()
    templates = select_templates(request, raw_templates)
    week_start = start_of_week(today)
    week_end = week_start + timedelta(days=6)

    counter = snapshot.restart_counter + 1
    if reshuffle:
        seed, strategy = derive_reshuffled_seed(snapshot.seed, counter), SeedStrategy.RESHUFFLE
    elif snapshot.seed_strategy == SeedStrategy.MIXING_V1:
        seed, strategy = derive_program_seed(request, templates, week_start)
    else:
        seed, strategy = snapshot.seed, snapshot.seed_strategy
    plan_id = derive_plan_id(seed, counter)

    generated = build_schedule(
        request,
        templates,
        catalog,
        seed,
        today=today,
        start_week_key=week_start,
        plan_id=plan_id,
    )

    if mode == "soft":
        targets = [entry for entry in generated.schedule if today <= entry.date <= week_end]
    else:
        targets = list(generated.schedule)

    open_statuses = {SessionStatus.PLANNED, None}
    skipped = [
        record.model_copy(
            update={
                "status": SessionStatus.SKIPPED,
                "inconsistency_score": record.inconsistency_score + 1,
                "reschedule_flag": True,
            }
        )
        for record in sessions
        if week_start <= record.session_date <= week_end
        and record.status in open_statuses
        and (mode == "hard" or record.session_date >= today)
    ]
    created = [
        SessionRecord(
            session_date=entry.date,
            status=SessionStatus.PLANNED,
            program_session_key=entry.program_session_key,
            reschedule_flag=mode == "hard",
        )
        for entry in targets
    ]

    decision = f"{mode.capitalize()} restart on {today.isoformat()}{' (reshuffled)' if reshuffle else ''}"
    result_snapshot = snapshot.model_copy(
        update={
            "seed": seed,
            "seed_strategy": strategy,
            "plan_id": plan_id,
            "restart_counter": counter,
            "start_week_key": week_start,
            "week_key": generated.week_key,
            "week_cursor": 0,
            "schedule": generated.schedule,
            "session_plans": generated.session_plans,
            "week_rules": generated.week_rules,
            "preview": generated.preview,
            "decisions_log": [*snapshot.decisions_log, decision],
        }
    )
    logger.info(
        "reschedule: program restarted",
        mode=mode,
        reshuffle=reshuffle,
        plan_id=plan_id,
        restart_counter=counter,
        skipped=len(skipped),
        created=len(created),
    )
    return RescheduleResult(
        snapshot=result_snapshot,
        sessions=_upsert(_upsert(sessions, skipped), created),
        missed=0,
        rescheduled=len(skipped),
        created=len(created),
    )
