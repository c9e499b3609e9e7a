"""Program Templates - Tagged Variants.

The normalizer classifies a raw template payload into exactly one of
these variants. Downstream code dispatches on the variant type and never
re-inspects the raw payload shape.

Variants:
- PoolBasedTemplate: pools + slot-driven sessions + weak point menu
- MixingTemplate: weekly set-volume goals + slot blueprints + selection policy
- LegacyTemplate: pre-resolved sessions with static slots
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from liftplan.config.settings import settings
from liftplan.planning.schema.session import ResolvedSlot


class WeekRule(BaseModel):
    """One week's progression policy."""

    week: int = Field(..., ge=1)
    volume_multiplier: float | None = Field(None, gt=0)
    rpe_floor: float | None = Field(None, ge=1, le=10)
    rpe_ceiling: float | None = Field(None, ge=1, le=10)
    deload: bool = False
    note: str | None = None


class Phase(BaseModel):
    """Block of weeks sharing a progression intent.

    Attributes:
        key: Phase name (used as the default week note)
        weeks: Number of weeks in the phase
        deload_after: 1-based week inside the phase that gets the deload RPE ceiling
        rules: Optional per-week overrides, keyed by 1-based week inside the phase
    """

    key: str
    weeks: int = Field(..., ge=1)
    deload_after: int | None = Field(None, ge=1)
    rules: list[WeekRule] = Field(default_factory=list)


class _ProgressionFields(BaseModel):
    weeks: int | None = Field(None, ge=1)
    phases: list[Phase] = Field(default_factory=list)
    week_rules: list[WeekRule] = Field(default_factory=list)


# ---- Pool-based variant ----


class PoolSelectionQuery(BaseModel):
    movement_pattern: str = Field(..., min_length=1)
    equipment: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class ExercisePool(BaseModel):
    pool_key: str = Field(..., min_length=1)
    selection_query: PoolSelectionQuery
    fallback_pool_keys: list[str] = Field(default_factory=list)
    default_exercise_names: list[str] = Field(default_factory=list)


class SlotDescriptor(BaseModel):
    """Abstract exercise requirement inside a session template."""

    slot_key: str = Field(..., min_length=1)
    pool_key: str | None = None
    movement_pattern: str | None = None
    target_muscles: list[str] = Field(default_factory=list)
    equipment: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    sets: int | None = Field(None, ge=1)
    reps: int | str | None = None
    rir: float | None = None
    rpe: float | None = Field(None, ge=1, le=10)
    optional: bool = False
    required: bool = False

    @model_validator(mode="after")
    def check_pool_or_pattern(self) -> "SlotDescriptor":
        if not self.pool_key and not self.movement_pattern:
            raise ValueError("slot requires pool_key or movement_pattern")
        return self

    @property
    def is_weak_point(self) -> bool:
        return self.slot_key.startswith("weak_point")


class TemplateSession(BaseModel):
    session_key: str = Field(..., min_length=1)
    focus: str = Field(..., min_length=1)
    label: str | None = None
    archetype: str | None = None
    slots: list[SlotDescriptor] = Field(..., min_length=1)


class PoolBasedTemplate(_ProgressionFields):
    kind: Literal["pool_based"] = "pool_based"
    engine_version: Literal["1"] = "1"
    template_type: str | None = None
    pools: list[ExercisePool] = Field(..., min_length=1)
    sessions: list[TemplateSession] = Field(..., min_length=1)
    weak_points: dict[str, list[str]] = Field(default_factory=dict)
    weak_point_pools: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_pool_references(self) -> "PoolBasedTemplate":
        known = {pool.pool_key for pool in self.pools}
        dangling = sorted(
            {key for pool in self.pools for key in pool.fallback_pool_keys if key not in known}
        )
        if dangling:
            raise ValueError(f"fallback_pool_keys reference unknown pools: {dangling}")
        return self


# ---- Program-mixing variant ----


class SelectionPolicy(BaseModel):
    top_k: int = Field(default_factory=lambda: settings.default_top_k, ge=1)
    softmax_temperature: float = Field(default_factory=lambda: settings.default_softmax_temperature, gt=0)
    novelty_decay: float = Field(default_factory=lambda: settings.default_novelty_decay, ge=0, le=1)


class WeeklyGoal(BaseModel):
    sets: float = Field(..., gt=0)
    priority: float = Field(1, gt=0)


class WeeklyGoals(BaseModel):
    movement_patterns: dict[str, WeeklyGoal] = Field(default_factory=dict)
    muscle_groups: dict[str, WeeklyGoal] = Field(default_factory=dict)


class SlotConstraints(BaseModel):
    avoid_tags: list[str] = Field(default_factory=list)
    require_equipment: list[str] = Field(default_factory=list)


class SlotBlueprint(BaseModel):
    """Reusable slot definition of a mixing template."""

    slot_key: str = Field(..., min_length=1)
    movement_pattern: str = Field(..., min_length=1)
    target_muscles: list[str] = Field(default_factory=list)
    priority: float = Field(1, gt=0)
    min_sets: int = Field(3, ge=1)
    max_sets: int = Field(3, ge=1)
    reps_hint: tuple[float, float] = (6, 10)
    rpe_hint: tuple[float, float] = (6, 9)
    recovery_cost_per_set: float = Field(default_factory=lambda: settings.default_recovery_cost_per_set, gt=0)
    pool_key: str | None = None
    required: bool = False
    constraints: SlotConstraints | None = None

    @model_validator(mode="after")
    def check_set_bounds(self) -> "SlotBlueprint":
        if self.min_sets > self.max_sets:
            raise ValueError(f"min_sets ({self.min_sets}) exceeds max_sets ({self.max_sets})")
        return self


class MixingTemplate(_ProgressionFields):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["mixing"] = "mixing"
    engine_version: Literal["1"] = "1"
    template_type: Literal["program"] = "program"
    canonical_name: str = Field("Template", min_length=1)
    tags: list[str] = Field(default_factory=list)
    seed_salt: str | None = None
    program_weight_default: float = Field(1, gt=0)
    selection_policy: SelectionPolicy = Field(default_factory=SelectionPolicy)
    weekly_goals: WeeklyGoals = Field(default_factory=WeeklyGoals)
    slot_blueprints: list[SlotBlueprint] = Field(..., min_length=1)


# ---- Legacy variant ----


class LegacySession(BaseModel):
    program_session_key: str | None = None
    focus: str = "Training"
    label: str | None = None
    slots: list[ResolvedSlot] = Field(default_factory=list)


class LegacyTemplate(_ProgressionFields):
    kind: Literal["legacy"] = "legacy"
    template_type: str | None = None
    sessions: list[LegacySession] = Field(..., min_length=1)


ProgramTemplate = PoolBasedTemplate | MixingTemplate | LegacyTemplate
