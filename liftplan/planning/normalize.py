"""Template Normalizer.

Classifies raw template payloads into exactly one tagged variant:

- pools                   -> PoolBasedTemplate
- slot_blueprints         -> MixingTemplate
- sessions (no pools)     -> LegacyTemplate

Validation is batch-wide: every failing field of every template is
collected before a single TemplateValidationError is raised. A template
is never partially accepted.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from loguru import logger
from pydantic import BaseModel, ValidationError

from liftplan.planning.errors import TemplateValidationError
from liftplan.planning.schema.template import (
    LegacyTemplate,
    MixingTemplate,
    PoolBasedTemplate,
    ProgramTemplate,
)

SUPPORTED_ENGINE_VERSION = "1"


def classify_template(raw: Mapping[str, Any]) -> type[BaseModel] | None:
    """Pick the variant model for a raw payload by its structural markers."""
    if raw.get("pools") is not None:
        return PoolBasedTemplate
    if raw.get("slot_blueprints") is not None:
        return MixingTemplate
    if raw.get("sessions") is not None:
        return LegacyTemplate
    return None


def _format_errors(index: int, exc: ValidationError) -> list[str]:
    details: list[str] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "template"
        details.append(f"Template[{index}] {location}: {error['msg']}")
    return details


def _validate_one(index: int, raw: object) -> tuple[ProgramTemplate | None, list[str]]:
    if isinstance(raw, (PoolBasedTemplate, MixingTemplate, LegacyTemplate)):
        return raw, []
    if not isinstance(raw, Mapping):
        return None, [f"Template[{index}] template: expected an object, got {type(raw).__name__}"]

    details: list[str] = []
    payload = dict(raw)
    payload.pop("kind", None)
    version = payload.pop("engine_version", None)
    if version is not None:
        if str(version) == SUPPORTED_ENGINE_VERSION:
            payload["engine_version"] = str(version)
        else:
            details.append(f"Template[{index}] engine_version: unsupported version {version!r}")

    model = classify_template(raw)
    if model is None:
        details.append(
            f"Template[{index}] template: unrecognized shape "
            "(expected pools, slot_blueprints, or sessions)"
        )
        return None, details

    try:
        template = model.model_validate(payload)
    except ValidationError as exc:
        return None, details + _format_errors(index, exc)
    if details:
        return None, details
    return template, []


def normalize_template(raw: object, index: int = 0) -> ProgramTemplate:
    """Normalize a single raw template.

    Args:
        raw: Untyped template payload (or an already-normalized template)
        index: Position used in error messages

    Returns:
        Tagged template variant

    Raises:
        TemplateValidationError: If the payload is malformed
    """
    template, details = _validate_one(index, raw)
    if details or template is None:
        raise TemplateValidationError(details)
    return template


def normalize_templates(raws: Sequence[object]) -> list[ProgramTemplate]:
    """Normalize a batch of raw templates.

    Args:
        raws: Untyped template payloads

    Returns:
        Tagged template variants in input order

    Raises:
        TemplateValidationError: Enumerating every failure across the batch
    """
    normalized: list[ProgramTemplate] = []
    details: list[str] = []
    for index, raw in enumerate(raws):
        template, errors = _validate_one(index, raw)
        if errors:
            details.extend(errors)
        elif template is not None:
            normalized.append(template)

    if details:
        logger.warning(
            f"normalize: rejected template batch with {len(details)} failure(s)",
            templates=len(raws),
        )
        raise TemplateValidationError(details)

    logger.debug(
        "normalize: template batch accepted",
        kinds=[template.kind for template in normalized],
    )
    return normalized
