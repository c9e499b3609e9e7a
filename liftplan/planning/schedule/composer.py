"""Schedule Composer.

Maps week-relative SessionPlans onto calendar dates. Week w covers the
seven days starting at anchor + 7*w, where the anchor is the first day
of week 0 (the generation date, or a Monday after a restart). Each plan
lands on the occurrence of its training day inside its week's window.
"""

from datetime import date, timedelta

from liftplan.planning.schema.request import Weekday
from liftplan.planning.schema.session import PlannedSession, SessionPlan

FALLBACK_DAY_ORDER: list[Weekday] = [
    Weekday.MON,
    Weekday.WED,
    Weekday.FRI,
    Weekday.TUE,
    Weekday.THU,
    Weekday.SAT,
    Weekday.SUN,
]

WEEKDAY_INDEX: dict[Weekday, int] = {day: index for index, day in enumerate(Weekday)}


def pick_training_days(preferred: list[Weekday] | None, count: int) -> list[Weekday]:
    """Preferred days first, then the fallback order, deduplicated and truncated."""
    days: list[Weekday] = []
    for day in [*(preferred or []), *FALLBACK_DAY_ORDER]:
        weekday = Weekday(day)
        if weekday not in days:
            days.append(weekday)
        if len(days) >= count:
            break
    return days


def start_of_week(value: date) -> date:
    """Monday of the week containing value."""
    return value - timedelta(days=value.weekday())


def date_in_window(anchor: date, week: int, day: Weekday) -> date:
    window_start = anchor + timedelta(days=7 * week)
    offset = (WEEKDAY_INDEX[day] - window_start.weekday()) % 7
    return window_start + timedelta(days=offset)


def compose_schedule(
    session_plans: list[SessionPlan],
    training_days: list[Weekday],
    anchor: date,
) -> list[PlannedSession]:
    """Bind session plans to dates.

    Within each week, the i-th plan is assigned training_days[i % len(training_days)].

    Args:
        session_plans: Plans, with week_offset set
        training_days: Ordered training days
        anchor: First day of week 0

    Returns:
        Planned sessions in plan order
    """
    if not training_days:
        return []

    position_in_week: dict[int, int] = {}
    schedule: list[PlannedSession] = []
    for plan in session_plans:
        index = position_in_week.get(plan.week_offset, 0)
        position_in_week[plan.week_offset] = index + 1
        day = training_days[index % len(training_days)]
        schedule.append(
            PlannedSession(
                date=date_in_window(anchor, plan.week_offset, day),
                label=plan.label,
                program_session_key=plan.program_session_key,
                template_id=plan.template_id,
                focus=plan.focus,
                week=plan.week_offset,
            )
        )
    return schedule


def derive_week_key(schedule: list[PlannedSession], fallback: date) -> date:
    """Monday of the earliest scheduled date (or of the fallback when empty)."""
    if not schedule:
        return start_of_week(fallback)
    return start_of_week(min(session.date for session in schedule))
