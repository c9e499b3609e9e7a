"""Exercise catalog - read-only lookup data.

The catalog is supplied by the calling layer for every invocation.
Nothing in the engine mutates it or caches it between calls.
"""

from pydantic import BaseModel, Field


class MuscleGroup(BaseModel):
    id: int
    name: str
    slug: str
    region: str | None = None


class ContraindicationRule(BaseModel):
    """Injury gate attached to an exercise.

    Attributes:
        muscle_group_ids: Muscles this rule protects
        replace_severity_min: Severity at which the exercise should be swapped out
        avoid_severity_min: Severity at which the exercise must be avoided
    """

    muscle_group_ids: list[int] = Field(default_factory=list)
    replace_severity_min: int = 4
    avoid_severity_min: int = 5


class Exercise(BaseModel):
    id: int | None = None
    canonical_name: str
    movement_pattern: str | None = None
    equipment: list[str] = Field(default_factory=list)
    primary_muscle_group_id: int | None = None
    secondary_muscle_group_ids: list[int] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    contraindications: list[ContraindicationRule] = Field(default_factory=list)

    @property
    def muscle_group_ids(self) -> list[int]:
        primary = [self.primary_muscle_group_id] if self.primary_muscle_group_id is not None else []
        return primary + list(self.secondary_muscle_group_ids)


class Catalog(BaseModel):
    """Exercises and muscle groups loaded by the caller."""

    exercises: list[Exercise] = Field(default_factory=list)
    muscle_groups: list[MuscleGroup] = Field(default_factory=list)
