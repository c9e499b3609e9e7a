"""Preview builder tests."""

from liftplan.planning.preview import build_preview, recovery_load_score, summarize_weekly_sets
from liftplan.planning.schema.session import ResolvedSlot, SessionPlan


def create_test_plan(week: int, slots: list[ResolvedSlot]) -> SessionPlan:
    return SessionPlan(
        template_id=1, program_session_key=f"full_body_w{week + 1}", focus="Full Body", label="Full Body", week_offset=week, slots=slots
    )


def create_test_plans() -> list[SessionPlan]:
    week_one = [
        ResolvedSlot(slot_key="squat", exercise_name="Back Squat", exercise_id=1, primary_muscle_group_id=1, sets=4),
        ResolvedSlot(slot_key="press", exercise_name="Bench Press", exercise_id=7, primary_muscle_group_id=4, sets=12),
        ResolvedSlot(slot_key="row", exercise_name="row", skip_reason="no_candidate", sets=3),
        ResolvedSlot(slot_key="carry", exercise_name="Farmer Carry", movement_pattern="carry", sets=3),
    ]
    week_two = [ResolvedSlot(slot_key="squat", exercise_name="Back Squat", primary_muscle_group_id=1, sets=10)]
    return [create_test_plan(0, week_one), create_test_plan(1, week_two)]


def test_weekly_sets_group_by_region(muscle_groups):
    """Test region grouping, skipped slots ignored, pattern used without a muscle."""
    weekly = summarize_weekly_sets(create_test_plans(), muscle_groups)
    assert [(entry.muscle_group, entry.sets) for entry in weekly] == [("Legs", 4), ("Chest", 12), ("carry", 3)]

    second_week = summarize_weekly_sets(create_test_plans(), muscle_groups, week=1)
    assert [(entry.muscle_group, entry.sets) for entry in second_week] == [("Legs", 10)]


def test_recovery_load_score_scales_with_fatigue(build_request):
    """Test 30 sets over 3 one-hour days with one removed slot."""
    assert recovery_load_score(30, build_request(), 1) == 49
    assert recovery_load_score(30, build_request(fatigue_profile="high"), 1) == 54
    assert recovery_load_score(30, build_request(fatigue_profile="low"), 1) == 44
    assert recovery_load_score(400, build_request(), 0) == 100


def test_build_preview_warnings(build_request, muscle_groups):
    preview = build_preview(create_test_plans(), muscle_groups, build_request(), 2, "abc123")
    assert preview.seed == "abc123"
    assert preview.recovery_load == 42
    assert preview.removed_slots == 2
    assert [(warning.type, warning.message) for warning in preview.warnings] == [
        ("under_target", "2 muscle groups under target"),
        ("injury_reduction", "Injury constraints removed 2 slots"),
    ]


def test_high_recovery_load_warning(build_request, muscle_groups):
    plans = [
        create_test_plan(
            0, [ResolvedSlot(slot_key="squat", exercise_name="Back Squat", primary_muscle_group_id=1, sets=200)]
        )
    ]
    preview = build_preview(plans, muscle_groups, build_request(fatigue_profile="low"), 0, "abc123")
    assert preview.recovery_load == 100
    assert [warning.type for warning in preview.warnings] == ["recovery_load"]
    assert preview.warnings[0].message == "Recovery load high for low fatigue profile"


def test_preview_serializes_camel_case(build_request, muscle_groups):
    payload = build_preview(create_test_plans(), muscle_groups, build_request(), 0, "abc123").model_dump(by_alias=True)
    assert set(payload) == {"seed", "weeklySets", "recoveryLoad", "warnings", "removedSlots"}
    assert payload["weeklySets"][0] == {"muscleGroup": "Legs", "sets": 4}
