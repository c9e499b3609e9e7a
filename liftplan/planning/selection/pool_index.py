"""Pool Exercise Index.

Resolves each pool's selection query against the catalog once per
generation call. The index is owned by the call; nothing is cached
between invocations.
"""

from liftplan.planning.constraints.equipment import normalize_equipment
from liftplan.planning.schema.catalog import Exercise
from liftplan.planning.schema.template import ExercisePool


def normalize_name(value: str) -> str:
    return value.strip().lower()


def matches_pool_query(exercise: Exercise, pool: ExercisePool) -> bool:
    """Check an exercise against a pool's selection query.

    The movement pattern must match exactly, every query tag must be
    present, and when the query lists equipment the exercise must share
    at least one item.
    """
    query = pool.selection_query
    if exercise.movement_pattern != query.movement_pattern:
        return False

    exercise_tags = {normalize_name(tag) for tag in exercise.tags}
    if not all(normalize_name(tag) in exercise_tags for tag in query.tags):
        return False

    if query.equipment:
        wanted = {normalize_equipment(item) for item in query.equipment}
        owned = {normalize_equipment(item) for item in exercise.equipment}
        if not wanted & owned:
            return False
    return True


def build_pool_index(pools: list[ExercisePool], exercises: list[Exercise]) -> dict[str, list[Exercise]]:
    """Map pool_key -> catalog exercises matching the pool's query."""
    return {
        pool.pool_key: [exercise for exercise in exercises if matches_pool_query(exercise, pool)]
        for pool in pools
    }
