"""Injury to Muscle Mapping and Contraindication Checks.

Injuries are free-text names. They are mapped to catalog muscle groups by
slug/name containment and a keyword table; each muscle keeps the highest
severity reported against it.
"""

from loguru import logger

from liftplan.planning.schema.catalog import Exercise, MuscleGroup
from liftplan.planning.schema.request import Injury

INJURY_KEYWORDS: dict[str, list[str]] = {
    "knee": ["quads", "hamstrings", "calves"],
    "quad": ["quads"],
    "hamstring": ["hamstrings"],
    "hip": ["glutes", "adductors", "abductors", "hip-flexors"],
    "back": ["lower-back", "spinal-erectors", "upper-back", "lats"],
    "shoulder": ["delts", "traps", "rotator-cuff", "upper-back"],
    "elbow": ["biceps", "triceps", "forearms"],
    "wrist": ["forearms"],
    "ankle": ["calves"],
    "foot": ["calves"],
    "chest": ["chest"],
    "rib": ["chest"],
    "neck": ["traps", "upper-back"],
}


def _matching_muscles(injury_name: str, muscle_groups: list[MuscleGroup]) -> set[int]:
    name = injury_name.strip().lower()
    matched: set[int] = set()

    for muscle in muscle_groups:
        slug = muscle.slug.lower()
        label = muscle.name.lower()
        if slug in name or label in name:
            matched.add(muscle.id)

    by_slug = {muscle.slug.lower(): muscle.id for muscle in muscle_groups}
    for keyword, slugs in INJURY_KEYWORDS.items():
        if keyword not in name:
            continue
        for slug in slugs:
            if slug in by_slug:
                matched.add(by_slug[slug])
    return matched


def map_injuries_to_muscles(injuries: list[Injury], muscle_groups: list[MuscleGroup]) -> dict[int, int]:
    """Map injuries to muscle ids.

    Args:
        injuries: Reported injuries
        muscle_groups: Catalog muscle groups

    Returns:
        Dictionary muscle_group_id -> highest injury severity
    """
    severities: dict[int, int] = {}
    for injury in injuries:
        matched = _matching_muscles(injury.name, muscle_groups)
        if not matched:
            logger.debug("injuries: no muscle group matched", injury=injury.name)
        for muscle_id in matched:
            severities[muscle_id] = max(severities.get(muscle_id, 0), injury.severity)
    return severities


def violates_contraindication(exercise: Exercise, injury_map: dict[int, int]) -> bool:
    """Check whether any contraindication rule on the exercise is triggered.

    A rule triggers when the injury severity for any of its muscles meets
    or exceeds either its replace or its avoid threshold.
    """
    for rule in exercise.contraindications:
        for muscle_id in rule.muscle_group_ids:
            severity = injury_map.get(muscle_id)
            if severity is None:
                continue
            if severity >= rule.replace_severity_min or severity >= rule.avoid_severity_min:
                return True
    return False


def max_injury_severity(injuries: list[Injury]) -> int:
    return max((injury.severity for injury in injuries), default=0)
