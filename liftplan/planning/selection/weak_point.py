"""Weak Point Menu.

A weak point is a muscle focus the user wants extra work for. Templates
reserve slots named weak_point_1 / weak_point_2 which draw from the
focus pool and prefer the user's chosen options.
"""

from liftplan.planning.constraints.injuries import max_injury_severity
from liftplan.planning.schema.request import Injury, WeakPointSelection
from liftplan.planning.schema.template import PoolBasedTemplate, SlotDescriptor

DEFAULT_FOCUS = "lats"

WEAK_POINT_PRESETS: dict[str, tuple[str, str]] = {
    "lats": ("Neutral-Grip Pullup", "Half-Kneeling 1-Arm Lat Pulldown"),
    "delts": ("DB Lateral Raise", "Arnold Press"),
    "chest": ("Incline DB Press", "Flat DB Press"),
    "glutes": ("Hip Thrust", "DB Bulgarian Split Squat"),
    "triceps": ("Triceps Pushdown", "DB Triceps Extension"),
}

WEAK_POINT_POOLS: dict[str, str] = {
    "delts": "delts_iso",
    "chest": "hpress_chest",
    "glutes": "hinge_hamstring",
    "triceps": "triceps",
}
DEFAULT_WEAK_POINT_POOL = "vpull_lats"

HOLD_EXERCISE_NAME = "weak_point_hold"
HOLD_SKIP_REASON = "recovery_hold"


def resolve_weak_point_selection(
    template: PoolBasedTemplate,
    selection: WeakPointSelection | None,
) -> WeakPointSelection:
    """Fill in the weak point focus and options.

    Options come from the user's selection first, then the template's
    weak_points menu for the focus, then the built-in preset.
    """
    if selection is not None and selection.focus and selection.option1:
        return selection

    focus = selection.focus if selection is not None else next(iter(template.weak_points), DEFAULT_FOCUS)
    template_options = template.weak_points.get(focus, [])
    preset = WEAK_POINT_PRESETS.get(focus, WEAK_POINT_PRESETS[DEFAULT_FOCUS])

    option1 = selection.option1 if selection is not None else None
    option2 = selection.option2 if selection is not None else None
    return WeakPointSelection(
        focus=focus,
        option1=option1 or (template_options[0] if len(template_options) > 0 else preset[0]),
        option2=option2 or (template_options[1] if len(template_options) > 1 else preset[1]),
    )


def weak_point_pool_key(template: PoolBasedTemplate, focus: str) -> str:
    if focus in template.weak_point_pools:
        return template.weak_point_pools[focus]
    return WEAK_POINT_POOLS.get(focus, DEFAULT_WEAK_POINT_POOL)


def weak_point_preferred_names(slot: SlotDescriptor, selection: WeakPointSelection) -> list[str]:
    if slot.slot_key.endswith("1") and selection.option1:
        return [selection.option1]
    if slot.slot_key.endswith("2") and selection.option2:
        return [selection.option2]
    return []


def should_hold_weak_point(
    slot: SlotDescriptor,
    selection: WeakPointSelection,
    injuries: list[Injury],
    hold_severity: int,
) -> bool:
    """Second weak point option is held back under injury or when unset."""
    if not (slot.is_weak_point and slot.slot_key.endswith("2")):
        return False
    if not selection.option2:
        return True
    return max_injury_severity(injuries) >= hold_severity
