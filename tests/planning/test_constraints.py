"""Equipment and injury constraint tests."""

from liftplan.planning.constraints.equipment import (
    expand_equipment_profile,
    is_equipment_compatible,
    normalize_equipment,
)
from liftplan.planning.constraints.injuries import (
    map_injuries_to_muscles,
    max_injury_severity,
    violates_contraindication,
)
from liftplan.planning.schema.request import Injury


def test_normalize_equipment():
    assert normalize_equipment("Cables") == "cable"
    assert normalize_equipment("  Resistance   Bands ") == "resistance_band"
    assert normalize_equipment("barbell") == "barbell"


def test_expand_equipment_profile():
    """Test profile categories expand to concrete equipment plus bodyweight."""
    assert expand_equipment_profile(None) is None
    assert expand_equipment_profile([]) is None
    assert expand_equipment_profile(["barbell"]) == {"bodyweight", "barbell"}
    assert expand_equipment_profile(["cables", "machines"]) == {"bodyweight", "cable", "machine"}
    assert expand_equipment_profile(["home-gym"]) == {"bodyweight", "barbell", "dumbbell"}
    assert expand_equipment_profile(["Kettlebells"]) == {"bodyweight", "kettlebell"}


def test_equipment_compatibility(exercises):
    by_name = {exercise.canonical_name: exercise for exercise in exercises}
    available = expand_equipment_profile(["barbell"])

    assert is_equipment_compatible(by_name["Back Squat"], available)
    assert is_equipment_compatible(by_name["Neutral-Grip Pullup"], available)
    assert not is_equipment_compatible(by_name["Goblet Squat"], available)
    assert is_equipment_compatible(by_name["Goblet Squat"], None)
    assert is_equipment_compatible(by_name["Lat Pulldown"], expand_equipment_profile(["cables"]))


def test_injuries_map_to_muscles_with_max_severity(muscle_groups):
    """Test keyword and slug matching keeps the highest severity per muscle."""
    injuries = [Injury(name="Left knee pain", severity=3), Injury(name="quad strain", severity=5)]
    mapping = map_injuries_to_muscles(injuries, muscle_groups)
    assert mapping[1] == 5
    assert mapping[2] == 3
    assert 4 not in mapping


def test_injury_matches_muscle_name(muscle_groups):
    mapping = map_injuries_to_muscles([Injury(name="Lower Back tightness", severity=2)], muscle_groups)
    assert mapping == {5: 2, 9: 2}


def test_unmatched_injury_maps_nothing(muscle_groups):
    assert map_injuries_to_muscles([Injury(name="headache", severity=2)], muscle_groups) == {}


def test_contraindication_thresholds(exercises):
    back_squat = next(exercise for exercise in exercises if exercise.canonical_name == "Back Squat")
    assert not violates_contraindication(back_squat, {})
    assert not violates_contraindication(back_squat, {1: 3})
    assert violates_contraindication(back_squat, {1: 4})
    assert violates_contraindication(back_squat, {1: 5})
    assert not violates_contraindication(back_squat, {2: 5})


def test_max_injury_severity():
    assert max_injury_severity([]) == 0
    assert max_injury_severity([Injury(name="a", severity=2), Injury(name="b", severity=4)]) == 4
