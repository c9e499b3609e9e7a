"""Softmax selection and program-mixing week tests."""

import pytest

from liftplan.planning.compiler.demand_allocator import (
    DaySlotPlan,
    SlotRequest,
    WeeklyDemand,
)
from liftplan.planning.compiler.mixing import compile_mixing_week
from liftplan.planning.compiler.softmax_selector import (
    ScoredCandidate,
    SelectionContext,
    filter_candidates,
    select_exercise_for_slot,
    softmax_pick,
)
from liftplan.planning.errors import MixingInputError
from liftplan.planning.normalize import normalize_templates
from liftplan.planning.schema.request import PoolPreference
from liftplan.planning.schema.template import SelectionPolicy, SlotConstraints
from liftplan.planning.seed import SeededRandom


def create_test_plan(pattern: str = "squat", sets: int = 4, constraints: SlotConstraints | None = None) -> DaySlotPlan:
    """Helper to create a granted day slot."""
    request = SlotRequest(
        template_id=2,
        slot_key=f"2_{pattern}",
        movement_pattern=pattern,
        sets=sets,
        priority=1.0,
        reps_hint=(8, 12),
        rpe_hint=(7, 8.5),
        recovery_cost_per_set=2.5,
        constraints=constraints,
    )
    return DaySlotPlan(request=request, sets=sets)


def create_test_context(catalog, *, preferences=None, equipment=None, top_k=6) -> SelectionContext:
    return SelectionContext(
        exercises=catalog.exercises,
        available_equipment=equipment,
        injury_map={},
        preferences={preference.pool_key: preference for preference in preferences or []},
        policy=SelectionPolicy(top_k=top_k),
        demand=WeeklyDemand(),
        muscle_slug_by_id={muscle.id: muscle.slug for muscle in catalog.muscle_groups},
        seed="mix-seed",
    )


@pytest.fixture
def mixing_templates(mixing_template_payload, mixing_template_b_payload):
    first, second = normalize_templates([mixing_template_payload, mixing_template_b_payload])
    return {2: first, 4: second}


def test_filter_candidates_applies_constraints(catalog):
    """Test pattern, banned, avoid_tags and require_equipment filters."""
    context = create_test_context(catalog, preferences=[PoolPreference(pool_key="squat", banned=["Back Squat"])])
    names = [exercise.canonical_name for exercise in filter_candidates(create_test_plan(), context)]
    assert names == ["Front Squat", "Goblet Squat", "Leg Press"]

    constrained = create_test_plan(constraints=SlotConstraints(avoid_tags=["compound"]))
    assert [exercise.canonical_name for exercise in filter_candidates(constrained, context)] == ["Leg Press"]

    dumbbell_only = create_test_plan(constraints=SlotConstraints(require_equipment=["Dumbbells"]))
    assert [exercise.canonical_name for exercise in filter_candidates(dumbbell_only, context)] == ["Goblet Squat"]


def test_softmax_pick_is_seeded(exercises):
    candidates = [ScoredCandidate(exercise=exercise, score=1.0 + index) for index, exercise in enumerate(exercises[:4])]
    first = softmax_pick(candidates, 0.9, SeededRandom("roll"))
    second = softmax_pick(candidates, 0.9, SeededRandom("roll"))
    assert first == second
    assert softmax_pick(candidates[:1], 0.9, SeededRandom("roll")) == candidates[0]


def test_select_fills_reps_and_rpe_from_hints(catalog):
    """Test reps = round(mean(8, 12)) and rpe = mean(7, 8.5) to a tenth."""
    context = create_test_context(catalog)
    decision = select_exercise_for_slot(create_test_plan(), context)
    assert decision.chosen is not None
    assert decision.slot.reps == 10
    assert decision.slot.rpe == pytest.approx(7.8)
    assert decision.slot.sets == 4
    assert decision.slot.pool_key == "squat"
    assert decision.slot.optional is True
    assert context.usage == {str(decision.chosen.exercise.id): 1}
    assert decision.describe().startswith(f"slot:2_squat -> {decision.slot.exercise_name} [")


def test_pinned_honoured_inside_top_k(catalog):
    context = create_test_context(catalog, preferences=[PoolPreference(pool_key="squat", pinned="Leg Press")])
    decision = select_exercise_for_slot(create_test_plan(), context)
    assert decision.slot.exercise_name == "Leg Press"


def test_no_candidate_becomes_skip(catalog):
    decision = select_exercise_for_slot(create_test_plan(pattern="carry"), create_test_context(catalog))
    assert decision.chosen is None
    assert decision.slot.skip_reason == "no_candidate"
    assert decision.slot.exercise_name == "carry"


def test_compile_mixing_week_is_deterministic(mixing_templates, build_request, catalog):
    request = build_request(template_ids=[2])
    first = compile_mixing_week({2: mixing_templates[2]}, request, catalog, "week-seed")
    second = compile_mixing_week({2: mixing_templates[2]}, request, catalog, "week-seed")

    assert len(first.days) == 3
    assert [[slot.model_dump() for slot in day.slots] for day in first.days] == [
        [slot.model_dump() for slot in day.slots] for day in second.days
    ]
    assert [day.focus for day in first.days] == ["squat", "horizontal_press", "vertical_pull"]
    assert first.removed_slots == 0
    assert len(first.decisions) == 3


def test_compile_mixing_week_respects_bans(mixing_templates, build_request, catalog):
    """Test that banning every squat but Goblet Squat leaves only Goblet Squat."""
    request = build_request(template_ids=[2])
    bans = [PoolPreference(pool_key="squat", banned=["Back Squat", "Front Squat", "Leg Press"])]
    week = compile_mixing_week({2: mixing_templates[2]}, request, catalog, "week-seed", pool_preferences=bans)
    squat = week.days[0].slots[0]
    assert squat.exercise_name == "Goblet Squat"


def test_compile_mixing_week_counts_unfilled_slots(mixing_templates, build_request, catalog):
    """Test that a granted slot with no surviving candidate is counted as removed."""
    request = build_request(template_ids=[2], equipment_profile=["machines", "dumbbell"])
    bans = [PoolPreference(pool_key="squat", banned=["Leg Press", "Goblet Squat"])]
    week = compile_mixing_week({2: mixing_templates[2]}, request, catalog, "week-seed", pool_preferences=bans)
    assert week.days[0].slots[0].skip_reason == "no_candidate"
    assert week.removed_slots == 1


def test_compile_mixing_week_without_templates(build_request, catalog):
    with pytest.raises(MixingInputError):
        compile_mixing_week({}, build_request(template_ids=[2]), catalog, "week-seed")
