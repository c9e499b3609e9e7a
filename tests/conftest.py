"""Root conftest for all tests.

Shared catalog and template fixtures. The catalog is small enough that
every selection outcome in the tests can be reasoned about by hand.
"""

from collections.abc import Callable
from uuid import UUID

import pytest
from loguru import logger

from liftplan.planning.schema.catalog import Catalog, ContraindicationRule, Exercise, MuscleGroup
from liftplan.planning.schema.request import GenerationRequest, SelectedProgram

USER_ID = UUID("805f6d98-c1eb-4fef-8531-410fd4879979")

POOL_TEMPLATE_ID = 1
MIXING_TEMPLATE_ID = 2
LEGACY_TEMPLATE_ID = 3
MIXING_TEMPLATE_B_ID = 4


@pytest.fixture(autouse=True)
def silence_loguru():
    """Keep engine log lines out of the pytest output."""
    logger.remove()
    yield


def create_test_exercise(
    exercise_id: int,
    name: str,
    pattern: str,
    equipment: list[str],
    primary: int,
    secondary: list[int] | None = None,
    tags: list[str] | None = None,
    contraindications: list[ContraindicationRule] | None = None,
) -> Exercise:
    """Helper to create catalog exercises."""
    return Exercise(
        id=exercise_id,
        canonical_name=name,
        movement_pattern=pattern,
        equipment=equipment,
        primary_muscle_group_id=primary,
        secondary_muscle_group_ids=secondary or [],
        tags=tags or [],
        contraindications=contraindications or [],
    )


@pytest.fixture
def muscle_groups() -> list[MuscleGroup]:
    return [
        MuscleGroup(id=1, name="Quads", slug="quads", region="Legs"),
        MuscleGroup(id=2, name="Hamstrings", slug="hamstrings", region="Legs"),
        MuscleGroup(id=3, name="Glutes", slug="glutes", region="Legs"),
        MuscleGroup(id=4, name="Chest", slug="chest", region="Chest"),
        MuscleGroup(id=5, name="Lats", slug="lats", region="Back"),
        MuscleGroup(id=6, name="Delts", slug="delts", region="Shoulders"),
        MuscleGroup(id=7, name="Triceps", slug="triceps", region="Arms"),
        MuscleGroup(id=8, name="Biceps", slug="biceps", region="Arms"),
        MuscleGroup(id=9, name="Lower Back", slug="lower-back", region="Back"),
    ]


@pytest.fixture
def exercises() -> list[Exercise]:
    knee_rule = ContraindicationRule(muscle_group_ids=[1], replace_severity_min=4, avoid_severity_min=5)
    return [
        create_test_exercise(1, "Back Squat", "squat", ["barbell"], 1, [3], ["compound"], [knee_rule]),
        create_test_exercise(2, "Front Squat", "squat", ["barbell"], 1, [], ["compound"]),
        create_test_exercise(3, "Goblet Squat", "squat", ["dumbbell"], 1, [3], ["compound"]),
        create_test_exercise(4, "Leg Press", "squat", ["machine"], 1),
        create_test_exercise(5, "Romanian Deadlift", "hinge", ["barbell"], 2, [3, 9], ["compound"]),
        create_test_exercise(6, "Hip Thrust", "hinge", ["barbell"], 3, [], ["isolation"]),
        create_test_exercise(7, "Bench Press", "horizontal_press", ["barbell"], 4, [7, 6], ["compound"]),
        create_test_exercise(8, "Incline DB Press", "horizontal_press", ["dumbbell"], 4, [6], ["compound"]),
        create_test_exercise(9, "Flat DB Press", "horizontal_press", ["dumbbell"], 4, [], ["compound"]),
        create_test_exercise(10, "Neutral-Grip Pullup", "vertical_pull", ["bodyweight"], 5, [8], ["compound"]),
        create_test_exercise(11, "Half-Kneeling 1-Arm Lat Pulldown", "vertical_pull", ["cable"], 5, [], ["isolation"]),
        create_test_exercise(12, "Lat Pulldown", "vertical_pull", ["machine", "cable"], 5, [], ["compound"]),
        create_test_exercise(13, "DB Lateral Raise", "lateral_raise", ["dumbbell"], 6, [], ["isolation"]),
        create_test_exercise(14, "Triceps Pushdown", "elbow_extension", ["cable"], 7, [], ["isolation"]),
    ]


@pytest.fixture
def catalog(exercises: list[Exercise], muscle_groups: list[MuscleGroup]) -> Catalog:
    return Catalog(exercises=exercises, muscle_groups=muscle_groups)


@pytest.fixture
def pool_template_payload() -> dict:
    return {
        "engine_version": "1",
        "weeks": 4,
        "pools": [
            {
                "pool_key": "squat_quad",
                "selection_query": {"movement_pattern": "squat", "tags": ["compound"]},
                "fallback_pool_keys": ["squat_any"],
                "default_exercise_names": ["Back Squat", "Front Squat"],
            },
            {"pool_key": "squat_any", "selection_query": {"movement_pattern": "squat"}},
            {
                "pool_key": "hinge_hamstring",
                "selection_query": {"movement_pattern": "hinge"},
                "default_exercise_names": ["Romanian Deadlift"],
            },
            {
                "pool_key": "hpress_chest",
                "selection_query": {"movement_pattern": "horizontal_press"},
                "default_exercise_names": ["Bench Press"],
            },
            {
                "pool_key": "vpull_lats",
                "selection_query": {"movement_pattern": "vertical_pull"},
                "default_exercise_names": ["Lat Pulldown"],
            },
            {"pool_key": "delts_iso", "selection_query": {"movement_pattern": "lateral_raise"}},
        ],
        "sessions": [
            {
                "session_key": "lower_a",
                "focus": "Lower",
                "label": "Lower A",
                "slots": [
                    {"slot_key": "squat", "pool_key": "squat_quad", "sets": 4, "reps": "6-8", "rpe": 8},
                    {"slot_key": "hinge", "pool_key": "hinge_hamstring", "sets": 3, "reps": 8, "rpe": 7.5},
                    {"slot_key": "weak_point_1", "pool_key": "vpull_lats", "sets": 3, "reps": 12, "rpe": 8},
                ],
            },
            {
                "session_key": "upper_a",
                "focus": "Upper",
                "slots": [
                    {"slot_key": "press", "pool_key": "hpress_chest", "sets": 4, "reps": 8, "rpe": 8},
                    {"slot_key": "pull", "pool_key": "vpull_lats", "sets": 4, "reps": 10, "rpe": 8},
                    {"slot_key": "weak_point_2", "pool_key": "vpull_lats", "sets": 2, "reps": 15, "rpe": 8},
                ],
            },
        ],
    }


@pytest.fixture
def mixing_template_payload() -> dict:
    return {
        "template_type": "program",
        "canonical_name": "Hypertrophy Blend",
        "seed_salt": "blend",
        "weekly_goals": {
            "movement_patterns": {
                "squat": {"sets": 8, "priority": 2},
                "horizontal_press": {"sets": 8},
                "vertical_pull": {"sets": 8},
            },
            "muscle_groups": {"quads": {"sets": 8}},
        },
        "slot_blueprints": [
            {"slot_key": "squat", "movement_pattern": "squat", "priority": 2, "min_sets": 3, "max_sets": 4, "required": True},
            {"slot_key": "press", "movement_pattern": "horizontal_press", "min_sets": 3, "max_sets": 4},
            {"slot_key": "pull", "movement_pattern": "vertical_pull", "min_sets": 3, "max_sets": 4},
        ],
    }


@pytest.fixture
def mixing_template_b_payload() -> dict:
    return {
        "template_type": "program",
        "canonical_name": "Posterior Chain",
        "program_weight_default": 0.5,
        "selection_policy": {"top_k": 2, "softmax_temperature": 0.5, "novelty_decay": 0.1},
        "weekly_goals": {"movement_patterns": {"hinge": {"sets": 6}}},
        "slot_blueprints": [
            {"slot_key": "hinge", "movement_pattern": "hinge", "min_sets": 2, "max_sets": 4},
        ],
    }


@pytest.fixture
def legacy_template_payload() -> dict:
    return {
        "weeks": 2,
        "sessions": [
            {
                "program_session_key": "full_body",
                "focus": "Full Body",
                "label": "Full Body",
                "slots": [
                    {"slot_key": "squat", "exercise_name": "Back Squat", "exercise_id": 1, "sets": 3, "reps": 5, "rpe": 8},
                    {"slot_key": "carry", "exercise_name": "carry", "skip_reason": "no_candidate"},
                ],
            }
        ],
    }


@pytest.fixture
def raw_templates(
    pool_template_payload: dict,
    mixing_template_payload: dict,
    legacy_template_payload: dict,
    mixing_template_b_payload: dict,
) -> dict[int, object]:
    return {
        POOL_TEMPLATE_ID: pool_template_payload,
        MIXING_TEMPLATE_ID: mixing_template_payload,
        LEGACY_TEMPLATE_ID: legacy_template_payload,
        MIXING_TEMPLATE_B_ID: mixing_template_b_payload,
    }


@pytest.fixture
def build_request() -> Callable[..., GenerationRequest]:
    """Factory for generation requests; keyword overrides win."""

    def _build(template_ids: list[int] | None = None, **overrides) -> GenerationRequest:
        payload = {
            "user_id": USER_ID,
            "fatigue_profile": "medium",
            "selected_programs": [
                SelectedProgram(template_id=template_id) for template_id in (template_ids or [POOL_TEMPLATE_ID])
            ],
            "days_per_week": 3,
            "max_session_minutes": 60,
        }
        payload.update(overrides)
        return GenerationRequest(**payload)

    return _build
