"""Active Program State - Durable Snapshot.

ActiveProgramSnapshot is created on generation, mutated (by copy) on
adaptation and reschedule, and superseded on restart or regeneration.
The engine never persists it; the caller stores whatever it returns.
"""

from datetime import date, datetime
from enum import StrEnum
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from liftplan.planning.schema.request import (
    EquipmentOption,
    FatigueProfile,
    GenerationRequest,
    Injury,
    PoolPreference,
    SelectedProgram,
    WeakPointSelection,
    Weekday,
)
from liftplan.planning.schema.session import PlannedSession, SessionPlan
from liftplan.planning.schema.template import WeekRule


class SeedStrategy(StrEnum):
    STATIC = "static"
    RESHUFFLE = "reshuffle"
    MIXING_V1 = "mixing_v1"


class SessionStatus(StrEnum):
    PLANNED = "planned"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    MISSED = "missed"


class PerformanceSample(BaseModel):
    """Logged sets for one exercise in one session, aggregated."""

    exercise_key: str
    avg_rpe: float | None = None
    avg_rir: float | None = None
    pain: float | None = None
    sets: int = Field(0, ge=0)
    session_date: date


class PerformanceCacheEntry(BaseModel):
    avg_rpe: float | None = None
    avg_rir: float | None = None
    pain: float | None = None
    last_session: date | None = None
    samples: int = 0


class AutoRegulationAdjustment(BaseModel):
    """Per-exercise regulation delta applied after week-rule clamps."""

    rpe_delta: float = 0
    sets_scale: float | None = None
    reason: str | None = None


class PreviewWarning(BaseModel):
    type: Literal["under_target", "recovery_load", "injury_reduction"]
    message: str


class WeeklySets(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    muscle_group: str = Field(..., alias="muscleGroup")
    sets: int


class PreviewResult(BaseModel):
    """Preview contract. Serialize with by_alias=True for the camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    seed: str
    weekly_sets: list[WeeklySets] = Field(default_factory=list, alias="weeklySets")
    recovery_load: int = Field(..., ge=0, le=100, alias="recoveryLoad")
    warnings: list[PreviewWarning] = Field(default_factory=list)
    removed_slots: int = Field(0, ge=0, alias="removedSlots")


class SessionRecord(BaseModel):
    """A stored training session as seen by the reschedule operations.

    Attributes:
        session_date: Calendar date the session is (or was) scheduled for
        status: Lifecycle status (None means never touched)
        program_session_key: Link back to the planned session
        inconsistency_score: Running count of missed-session events
        reschedule_flag: Set when a reschedule or restart touched the session
    """

    session_date: date
    status: SessionStatus | None = None
    program_session_key: str | None = None
    inconsistency_score: int = 0
    reschedule_flag: bool = False


class ActiveProgramSnapshot(BaseModel):
    """Durable state of one user's current program run.

    Attributes:
        user_id: Owner of the program
        selected_programs: Templates (and weights) the program was built from
        seed: Seed driving every selection in this run
        seed_strategy: How the seed was derived (static, reshuffle, mixing_v1)
        plan_id: Identifier of the generated plan
        generated_at: When the snapshot was produced
        restart_counter: Number of soft/hard restarts so far
        start_week_key: First day of week 0 (generation date, or the Monday after a restart)
        week_key: Monday of the earliest session in the current schedule
        preview: Preview contract computed at generation time
        schedule: Calendar-bound sessions
        session_plans: Resolved session plans backing the schedule
        week_rules: Week rules applied so far (expanded table at generation)
        week_cursor: Number of adaptation steps performed
        performance_cache: Rolling exercise_key -> performance memory
        decisions_log: Human-readable audit trail
    """

    user_id: UUID
    selected_programs: list[SelectedProgram] = Field(..., min_length=1)
    seed: str
    seed_strategy: SeedStrategy = SeedStrategy.STATIC
    plan_id: str
    generated_at: datetime
    restart_counter: int = Field(0, ge=0)
    start_week_key: date
    week_key: date

    injuries: list[Injury] = Field(default_factory=list)
    fatigue_profile: FatigueProfile
    equipment_profile: list[EquipmentOption] | None = None
    days_per_week: int = Field(..., ge=2, le=5)
    max_session_minutes: int = Field(60, ge=20, le=180)
    preferred_days: list[Weekday] | None = None
    pool_preferences: list[PoolPreference] = Field(default_factory=list)
    weak_point_selection: WeakPointSelection | None = None

    preview: PreviewResult | None = None
    schedule: list[PlannedSession] = Field(default_factory=list)
    session_plans: list[SessionPlan] = Field(default_factory=list)
    week_rules: list[WeekRule] = Field(default_factory=list)
    week_cursor: int = Field(0, ge=0)
    performance_cache: dict[str, PerformanceCacheEntry] = Field(default_factory=dict)
    decisions_log: list[str] = Field(default_factory=list)
    last_adaptation_at: datetime | None = None

    @property
    def template_ids(self) -> list[int]:
        return [program.template_id for program in self.selected_programs]

    def to_request(self) -> GenerationRequest:
        """Rebuild the generation request this snapshot was produced from."""
        return GenerationRequest(
            user_id=self.user_id,
            injuries=self.injuries,
            fatigue_profile=self.fatigue_profile,
            equipment_profile=self.equipment_profile,
            selected_programs=self.selected_programs,
            days_per_week=self.days_per_week,
            max_session_minutes=self.max_session_minutes,
            preferred_days=self.preferred_days,
            pool_preferences=self.pool_preferences,
            weak_point_selection=self.weak_point_selection,
            confirm_overwrite=True,
        )
