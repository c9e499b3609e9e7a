"""ResolvedSlot, SessionPlan & PlannedSession - Engine Output.

A ResolvedSlot is a slot bound to a concrete exercise, or carrying a
skip_reason that explains the omission. It is never silently empty.
"""

from datetime import date

from pydantic import BaseModel, Field, model_validator


class ResolvedSlot(BaseModel):
    """Slot descriptor bound to a concrete exercise.

    Attributes:
        slot_key: Slot identifier within the session
        pool_key: Pool the exercise was drawn from (or the requested pool when skipped)
        exercise_id: Catalog id of the chosen exercise (None when skipped)
        exercise_name: Chosen exercise name (placeholder when skipped)
        movement_pattern: Movement pattern of the exercise or the request
        primary_muscle_group_id: Primary muscle of the chosen exercise
        secondary_muscle_group_ids: Secondary muscles of the chosen exercise
        tags: Exercise tags
        sets: Target sets
        reps: Target reps (number or range string)
        rir: Target reps in reserve
        rpe: Target RPE
        optional: Whether the slot may be dropped without penalty
        skip_reason: Why no exercise was selected (None when resolved)
        applied_rules: Audit trail of week-rule and auto-regulation transforms
    """

    slot_key: str
    pool_key: str = ""
    exercise_id: int | None = None
    exercise_name: str = ""
    movement_pattern: str | None = None
    primary_muscle_group_id: int | None = None
    secondary_muscle_group_ids: list[int] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    sets: int | None = None
    reps: int | str | None = None
    rir: float | None = None
    rpe: float | None = None
    optional: bool = False
    skip_reason: str | None = None
    applied_rules: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_resolved_or_skipped(self) -> "ResolvedSlot":
        if self.skip_reason is None and not self.exercise_name:
            raise ValueError(f"slot {self.slot_key} has neither an exercise nor a skip_reason")
        return self

    @property
    def muscle_group_ids(self) -> list[int]:
        primary = [self.primary_muscle_group_id] if self.primary_muscle_group_id is not None else []
        return primary + list(self.secondary_muscle_group_ids)

    @property
    def is_skipped(self) -> bool:
        return self.skip_reason is not None


class SessionPlan(BaseModel):
    """One training day, relative to week 0."""

    template_id: int
    program_session_key: str
    focus: str
    label: str
    week_offset: int = 0
    slots: list[ResolvedSlot] = Field(default_factory=list)


class PlannedSession(BaseModel):
    """A SessionPlan bound to a calendar date."""

    date: date
    label: str
    program_session_key: str
    template_id: int
    focus: str
    week: int = 0


def exercise_key(program_session_key: str, slot_key: str) -> str:
    """Key used to join logged performance back to a planned slot."""
    return f"{program_session_key}_{slot_key}"
