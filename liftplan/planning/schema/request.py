"""GenerationRequest - Input Contract.

This is the validated generation request coming from the wizard layer.
Range checks live here so that the engine itself only sees well-formed input.
"""

from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, Field

from liftplan.config.settings import settings


class FatigueProfile(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class EquipmentOption(StrEnum):
    BARBELL = "barbell"
    DUMBBELL = "dumbbell"
    CABLES = "cables"
    MACHINES = "machines"
    HOME_GYM = "home-gym"


class Weekday(StrEnum):
    MON = "Mon"
    TUE = "Tue"
    WED = "Wed"
    THU = "Thu"
    FRI = "Fri"
    SAT = "Sat"
    SUN = "Sun"


class Injury(BaseModel):
    id: str | None = None
    name: str = Field(..., min_length=1)
    severity: int = Field(..., ge=1, le=5)
    notes: str | None = Field(None, max_length=200)


class SelectedProgram(BaseModel):
    template_id: int = Field(..., gt=0)
    weight_override: float | None = Field(None, ge=0.5, le=2)


class PoolPreference(BaseModel):
    """Per-pool user preference.

    Attributes:
        pool_key: Pool (or slot blueprint pool) this preference applies to
        pinned: Exercise name to select outright when it survives filtering
        banned: Exercise names that must never be selected
        label: Why the preference exists (e.g., "painful" for adaptation bans)
    """

    pool_key: str
    pinned: str | None = None
    banned: list[str] = Field(default_factory=list)
    label: str | None = None


class WeakPointSelection(BaseModel):
    focus: str
    option1: str | None = None
    option2: str | None = None


class GenerationRequest(BaseModel):
    """Complete generation request.

    Attributes:
        user_id: User identity (UUID)
        injuries: Reported injuries with severity 1-5
        fatigue_profile: Fatigue tolerance (low, medium, high)
        equipment_profile: Available equipment categories (None = unrestricted)
        selected_programs: Templates to build from, with optional weights
        days_per_week: Training days per week (2-5)
        max_session_minutes: Session length cap in minutes (20-180)
        preferred_days: Preferred training days, in priority order
        pool_preferences: Pinned/banned exercises per pool
        weak_point_selection: Optional weak point focus
        confirm_overwrite: Allow replacing an existing active program
    """

    user_id: UUID
    injuries: list[Injury] = Field(default_factory=list)
    fatigue_profile: FatigueProfile
    equipment_profile: list[EquipmentOption] | None = None
    selected_programs: list[SelectedProgram] = Field(..., min_length=1)
    days_per_week: int = Field(..., ge=2, le=5)
    max_session_minutes: int = Field(default_factory=lambda: settings.default_session_minutes, ge=20, le=180)
    preferred_days: list[Weekday] | None = None
    pool_preferences: list[PoolPreference] = Field(default_factory=list)
    weak_point_selection: WeakPointSelection | None = None
    confirm_overwrite: bool = False

    @property
    def template_ids(self) -> list[int]:
        return [program.template_id for program in self.selected_programs]
