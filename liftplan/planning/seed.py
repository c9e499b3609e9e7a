"""Seed Derivation and Seeded Pseudo-Randomness.

The seed is the only source of variation in the engine. Every "random"
choice (index pick, jitter, softmax roll, tie-break noise) goes through
SeededRandom, so swapping the hash changes selection everywhere at once
or nowhere.

No wall-clock or host randomness is read here.
"""

import hashlib
import json
from dataclasses import dataclass
from datetime import date

from liftplan.planning.schema.request import GenerationRequest, Injury

RAW_HEX_DIGITS = 8
UNIT_RESOLUTION = 10000


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class SeededRandom:
    """Deterministic keyed PRNG.

    The same (seed, key) pair always produces the same value. Distinct keys
    give independent-looking draws.
    """

    seed: str

    def raw(self, key: str) -> int:
        return int(_sha256(f"{self.seed}:{key}")[:RAW_HEX_DIGITS], 16)

    def next(self, key: str) -> float:
        """Return a value in [0, 1) for the key."""
        return (self.raw(key) % UNIT_RESOLUTION) / UNIT_RESOLUTION

    def index(self, key: str, size: int) -> int:
        """Return an index into a sequence of the given size."""
        if size <= 0:
            raise ValueError("size must be positive")
        return self.raw(key) % size

    def integer(self, key: str, low: int, high: int) -> int:
        """Return an integer in [low, high], both inclusive."""
        if high < low:
            raise ValueError(f"empty range [{low}, {high}]")
        return int(self.next(key) * (high - low + 1)) + low

    def derive(self, suffix: str) -> "SeededRandom":
        return SeededRandom(f"{self.seed}_{suffix}")


def _stable_json(payload: object) -> str:
    return json.dumps(payload, separators=(",", ":"), sort_keys=False)


def derive_seed(request: GenerationRequest, template_ids: list[int] | None = None) -> str:
    """Derive the static generation seed.

    Args:
        request: Generation request
        template_ids: Template ids to hash (defaults to the request's selection)

    Returns:
        12 hex characters
    """
    payload = {
        "user": str(request.user_id),
        "templates": template_ids if template_ids is not None else request.template_ids,
        "days": request.days_per_week,
        "fatigue": str(request.fatigue_profile),
        "preferred_days": [str(day) for day in request.preferred_days or []],
        "equipment": [str(item) for item in request.equipment_profile or []],
    }
    return _sha256(_stable_json(payload))[:12]


def derive_injury_fingerprint(injuries: list[Injury]) -> str:
    """Fingerprint of the injury list, independent of its order."""
    normalized = sorted(
        ({"name": injury.name, "severity": injury.severity} for injury in injuries),
        key=lambda item: item["name"],
    )
    return _sha256(_stable_json(normalized))[:10]


def derive_mixing_seed(
    request: GenerationRequest,
    week_key: date,
    seed_salts: list[str] | None = None,
) -> str:
    """Derive the weekly seed used by the program-mixing path.

    Args:
        request: Generation request
        week_key: Monday of the week being generated
        seed_salts: Optional per-template salts

    Returns:
        16 hex characters
    """
    parts = [
        str(request.user_id),
        week_key.isoformat(),
        str(request.fatigue_profile),
        ",".join(str(template_id) for template_id in sorted(request.template_ids)),
        derive_injury_fingerprint(request.injuries),
        "|".join(sorted(salt for salt in seed_salts or [] if salt)),
    ]
    return _sha256("|".join(parts))[:16]


def derive_plan_id(seed: str, restart_counter: int = 0) -> str:
    """Plan identifier for a seed; restarts get their own id."""
    source = seed if restart_counter == 0 else f"{seed}:restart:{restart_counter}"
    return _sha256(source)[:32]


def derive_reshuffled_seed(seed: str, counter: int) -> str:
    return _sha256(f"{seed}:{counter}")[:12]
