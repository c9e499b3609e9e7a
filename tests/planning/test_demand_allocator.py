"""Weekly demand allocator tests (program-mixing path)."""

import pytest

from liftplan.planning.compiler.demand_allocator import (
    RECOVERY_BUDGET_SKIP,
    SlotRequest,
    aggregate_policy,
    allocate_slots_to_days,
    build_slot_requests,
    build_weekly_demand,
    compute_weekly_budget,
    weight_templates,
)
from liftplan.planning.errors import MixingInputError
from liftplan.planning.normalize import normalize_templates
from liftplan.planning.schema.request import SelectedProgram


def create_test_request(slot_key: str, pattern: str, sets: int, priority: float, required: bool = False) -> SlotRequest:
    """Helper to create slot requests at 2.5 recovery per set."""
    return SlotRequest(
        template_id=1,
        slot_key=slot_key,
        movement_pattern=pattern,
        sets=sets,
        priority=priority,
        reps_hint=(6, 10),
        rpe_hint=(6, 9),
        recovery_cost_per_set=2.5,
        required=required,
    )


@pytest.fixture
def mixing_templates(mixing_template_payload, mixing_template_b_payload):
    first, second = normalize_templates([mixing_template_payload, mixing_template_b_payload])
    return {2: first, 4: second}


def test_weight_templates_uses_override_then_default(mixing_templates, build_request):
    request = build_request(template_ids=[2, 4])
    request.selected_programs[0] = SelectedProgram(template_id=2, weight_override=1.5)
    weighted = weight_templates(mixing_templates, request)
    assert [(entry.template_id, entry.weight) for entry in weighted] == [(2, 1.5), (4, 0.5)]


def test_weight_templates_without_templates_raises(build_request):
    with pytest.raises(MixingInputError) as exc_info:
        weight_templates({}, build_request(template_ids=[2]))
    assert exc_info.value.code == "NO_TEMPLATES"


def test_aggregate_policy_is_weighted(mixing_templates, build_request):
    """Test top_k = round((6 x 1 + 2 x 0.5) / 1.5) and weighted temperature."""
    weighted = weight_templates(mixing_templates, build_request(template_ids=[2, 4]))
    policy = aggregate_policy(weighted)
    assert policy.top_k == 5
    assert policy.softmax_temperature == pytest.approx((0.9 + 0.25) / 1.5)
    assert policy.novelty_decay == pytest.approx((0.35 + 0.05) / 1.5)


def test_weekly_budget(build_request):
    assert compute_weekly_budget(build_request()) == pytest.approx(90)
    assert compute_weekly_budget(build_request(fatigue_profile="low", days_per_week=2)) == pytest.approx(70)
    high = build_request(fatigue_profile="high", days_per_week=5, max_session_minutes=90)
    assert compute_weekly_budget(high) == pytest.approx(110 * 5 / 3 * 1.5)


def test_weekly_demand_aggregates_by_weight(mixing_templates, build_request):
    weighted = weight_templates(mixing_templates, build_request(template_ids=[2, 4]))
    demand = build_weekly_demand(weighted)
    assert demand.movement["squat"].target == 8
    assert demand.movement["squat"].priority == 2
    assert demand.movement["hinge"].target == pytest.approx(3)
    assert demand.muscles["quads"].remaining == 8


def test_slot_requests_scale_and_jitter(mixing_templates, build_request):
    """Test that sets stay within blueprint bounds and keys are prefixed."""
    weighted = weight_templates(mixing_templates, build_request(template_ids=[2, 4]))
    requests = build_slot_requests(weighted, "seed-a")
    assert [request.slot_key for request in requests] == ["2_squat", "2_press", "2_pull", "4_hinge"]
    assert all(request.sets == 4 for request in requests[:3])
    assert 2 <= requests[3].sets <= 3
    assert requests[0].required is True
    assert requests[3].priority == pytest.approx(0.5)
    assert build_slot_requests(weighted, "seed-a") == requests


def test_allocation_spreads_to_least_loaded_day(mixing_templates, build_request):
    weighted = weight_templates(mixing_templates, build_request(template_ids=[2]))
    demand = build_weekly_demand(weighted)
    requests = build_slot_requests(weighted, "seed-a")
    allocation = allocate_slots_to_days(requests, demand, 90, 3)

    assert allocation.removed_slots == 0
    assert [[slot.request.slot_key for slot in day.slots] for day in allocation.day_plans] == [
        ["2_squat"],
        ["2_press"],
        ["2_pull"],
    ]
    assert demand.movement["squat"].remaining == 4
    assert allocation.day_plans[0].recovery == pytest.approx(10)


def test_exhausted_budget_skips_required_and_drops_optional():
    """Test that unfunded required slots are recorded and optional ones vanish."""
    requests = [
        create_test_request("a", "squat", 4, 3.0),
        create_test_request("b", "hinge", 3, 2.0, required=True),
        create_test_request("c", "row", 3, 1.0),
    ]
    demand = build_weekly_demand([])
    allocation = allocate_slots_to_days(requests, demand, 10, 2)

    slots = [slot for day in allocation.day_plans for slot in day.slots]
    assert allocation.removed_slots == 1
    assert [(slot.request.slot_key, slot.sets, slot.skip_reason) for slot in slots] == [
        ("a", 4, None),
        ("b", 0, RECOVERY_BUDGET_SKIP),
    ]


def test_partial_budget_floors_granted_sets():
    requests = [create_test_request("a", "squat", 4, 1.0)]
    allocation = allocate_slots_to_days(requests, build_weekly_demand([]), 8, 2)
    assert allocation.day_plans[0].slots[0].sets == 3


def test_demand_caps_granted_sets(mixing_templates, build_request):
    weighted = weight_templates(mixing_templates, build_request(template_ids=[2]))
    demand = build_weekly_demand(weighted)
    demand.movement["squat"].remaining = 2
    requests = [create_test_request("squat", "squat", 4, 5.0)]
    allocation = allocate_slots_to_days(requests, demand, 90, 3)
    assert allocation.day_plans[0].slots[0].sets == 2
    assert demand.movement["squat"].remaining == 0
