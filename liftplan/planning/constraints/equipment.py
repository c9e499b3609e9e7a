"""Equipment Profile Expansion.

The user's equipment profile is a set of coarse categories. Exercises
list concrete equipment names. Both sides are normalized to the same
vocabulary before comparing.

An empty (or missing) profile means the user did not restrict equipment.
"""

import re

from liftplan.planning.schema.catalog import Exercise

BODYWEIGHT = "bodyweight"

PROFILE_EQUIPMENT: dict[str, set[str]] = {
    "barbell": {"barbell"},
    "dumbbell": {"dumbbell"},
    "cables": {"cable"},
    "machines": {"machine"},
    "home-gym": {"barbell", "dumbbell", BODYWEIGHT},
}


def normalize_equipment(name: str) -> str:
    """Normalize an equipment name (e.g., "Cables" -> "cable")."""
    normalized = re.sub(r"\s+", "_", name.strip().lower())
    if normalized.endswith("s") and len(normalized) > 1:
        normalized = normalized[:-1]
    return normalized


def expand_equipment_profile(profile: list[str] | None) -> set[str] | None:
    """Expand profile categories into concrete equipment names.

    Args:
        profile: Equipment categories selected by the user

    Returns:
        Set of normalized equipment names, always including bodyweight,
        or None when the profile is unrestricted
    """
    if not profile:
        return None

    available = {BODYWEIGHT}
    for item in profile:
        key = str(item).strip().lower()
        available |= PROFILE_EQUIPMENT.get(key, {normalize_equipment(key)})
    return available


def is_equipment_compatible(exercise: Exercise, available: set[str] | None) -> bool:
    if available is None:
        return True
    equipment = {normalize_equipment(item) for item in exercise.equipment}
    if not equipment:
        return True
    return bool(equipment & available)
