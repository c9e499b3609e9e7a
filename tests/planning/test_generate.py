"""Program generation service tests."""

import re
from datetime import date, datetime, timezone

import pytest

from liftplan.planning.errors import ProgramConflictError, TemplateValidationError
from liftplan.planning.generate import generate_program, mixing_templates, preview_program, select_templates
from liftplan.planning.schema.program import SeedStrategy
from liftplan.planning.schema.request import Weekday

TODAY = date(2026, 1, 5)
GENERATED_AT = datetime(2026, 1, 5, 8, 0, tzinfo=timezone.utc)


def generate(build_request, raw_templates, catalog, **overrides):
    """Helper to generate a program on the fixed test date."""
    template_ids = overrides.pop("template_ids", None)
    existing = overrides.pop("existing", None)
    request = build_request(template_ids=template_ids, **overrides)
    return generate_program(request, raw_templates, catalog, today=TODAY, existing=existing, generated_at=GENERATED_AT)


def test_pool_based_program(build_request, raw_templates, catalog):
    """Test keys, labels, dates, and week rules of a pool-based program."""
    snapshot = generate(build_request, raw_templates, catalog)
    prefix = snapshot.seed[:6]

    assert snapshot.seed_strategy == SeedStrategy.STATIC
    assert re.fullmatch(r"[0-9a-f]{12}", snapshot.seed)
    assert re.fullmatch(r"[0-9a-f]{32}", snapshot.plan_id)
    assert len(snapshot.session_plans) == 12
    assert [plan.program_session_key for plan in snapshot.session_plans[:3]] == [
        f"lower_a_w1_mon_{prefix}",
        f"upper_a_w1_wed_{prefix}",
        f"lower_a_w1_fri_{prefix}",
    ]
    assert [plan.label for plan in snapshot.session_plans[:2]] == ["Lower A - Mon", "Upper - Wed"]
    assert [session.date for session in snapshot.schedule[:3]] == [date(2026, 1, 5), date(2026, 1, 7), date(2026, 1, 9)]
    assert snapshot.schedule[-1].date == date(2026, 1, 30)
    assert snapshot.start_week_key == TODAY
    assert snapshot.week_key == date(2026, 1, 5)
    assert len(snapshot.week_rules) == 4
    assert snapshot.week_cursor == 0
    assert snapshot.session_plans[0].slots[0].applied_rules == ["volume_x1", "rpe_floor_6", "rpe_cap_9"]


def test_generation_is_deterministic(build_request, raw_templates, catalog):
    first = generate(build_request, raw_templates, catalog)
    second = generate(build_request, raw_templates, catalog)
    assert first.model_dump() == second.model_dump()


def test_decisions_log(build_request, raw_templates, catalog):
    snapshot = generate(build_request, raw_templates, catalog)
    assert snapshot.decisions_log[:6] == [
        "Templates: 1",
        "Days per week: 3",
        "Preferred days: auto-assigned",
        "Fatigue profile: medium",
        "Week rules applied: 4",
        "Training days: Mon, Wed, Fri",
    ]

    preferred = generate(
        build_request, raw_templates, catalog, preferred_days=[Weekday.TUE, Weekday.THU], weak_point_selection={"focus": "delts"}
    )
    assert "Preferred days: Tue, Thu" in preferred.decisions_log
    assert "Weak point focus: delts" in preferred.decisions_log
    assert "Training days: Tue, Thu, Mon" in preferred.decisions_log


def test_existing_program_requires_confirmation(build_request, raw_templates, catalog):
    existing = generate(build_request, raw_templates, catalog)
    with pytest.raises(ProgramConflictError) as exc_info:
        generate(build_request, raw_templates, catalog, existing=existing)
    assert exc_info.value.code == "PROGRAM_EXISTS"

    replaced = generate(build_request, raw_templates, catalog, existing=existing, confirm_overwrite=True)
    assert replaced.plan_id == existing.plan_id


def test_missing_template(build_request, raw_templates, catalog):
    with pytest.raises(TemplateValidationError) as exc_info:
        generate(build_request, raw_templates, catalog, template_ids=[99])
    assert exc_info.value.details == ["Template 99 template: not found"]


def test_mixing_program(build_request, raw_templates, catalog):
    snapshot = generate(build_request, raw_templates, catalog, template_ids=[2])
    assert snapshot.seed_strategy == SeedStrategy.MIXING_V1
    assert re.fullmatch(r"[0-9a-f]{16}", snapshot.seed)
    assert len(snapshot.session_plans) == 12
    assert snapshot.session_plans[0].program_session_key.startswith("mix_1_w1_")
    assert snapshot.session_plans[0].label == "Mon squat"
    assert any(entry.startswith("slot:2_squat -> ") for entry in snapshot.decisions_log)


def test_blend_and_mixed_kinds(build_request, raw_templates, catalog):
    """Test that a blend needs every template to be a mixing template."""
    blend = select_templates(build_request(template_ids=[2, 4]), raw_templates)
    assert mixing_templates(blend) is not None
    assert generate(build_request, raw_templates, catalog, template_ids=[2, 4]).seed_strategy == SeedStrategy.MIXING_V1

    mixed = select_templates(build_request(template_ids=[1, 2]), raw_templates)
    assert mixing_templates(mixed) is None
    snapshot = generate(build_request, raw_templates, catalog, template_ids=[1, 2])
    assert snapshot.seed_strategy == SeedStrategy.STATIC
    assert snapshot.session_plans[0].template_id == 1


def test_legacy_program(build_request, raw_templates, catalog):
    snapshot = generate(build_request, raw_templates, catalog, template_ids=[3])
    assert len(snapshot.session_plans) == 6
    assert snapshot.session_plans[0].program_session_key == "full_body_w1"
    assert snapshot.session_plans[3].program_session_key == "full_body_w2"
    assert snapshot.session_plans[0].label == "Full Body"
    assert snapshot.preview.removed_slots == 1


def test_preview_matches_generation(build_request, raw_templates, catalog):
    request = build_request()
    preview = preview_program(request, raw_templates, catalog, today=TODAY)
    snapshot = generate_program(request, raw_templates, catalog, today=TODAY, generated_at=GENERATED_AT)
    assert preview == snapshot.preview
    assert "weeklySets" in preview.model_dump(by_alias=True)
