"""Template file loader.

Reads raw template payloads from YAML or JSON files. Accepted layouts:

- a mapping of template id -> template payload
- a list of rows shaped like {"id": 12, "template_json": {...}}
- a directory of files, each holding one such row

Payloads are returned raw; normalize_templates does the validation.
"""

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from liftplan.planning.errors import TemplateValidationError

TEMPLATE_SUFFIXES = {".yaml", ".yml", ".json"}


def _parse_file(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix == ".json":
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise TemplateValidationError([f"Template file {path.name}: {e}"]) from e


def _row_to_entry(row: object, source: str) -> tuple[int, object]:
    if not isinstance(row, Mapping) or "id" not in row:
        raise TemplateValidationError([f"Template file {source}: rows need an 'id' and a 'template_json'"])
    payload = row.get("template_json", row.get("template"))
    if payload is None:
        raise TemplateValidationError([f"Template file {source}: row {row['id']} has no template_json"])
    return int(row["id"]), payload


def _entries(document: object, source: str) -> dict[int, object]:
    if isinstance(document, list):
        return dict(_row_to_entry(row, source) for row in document)
    if isinstance(document, Mapping):
        if "id" in document and ("template_json" in document or "template" in document):
            template_id, payload = _row_to_entry(document, source)
            return {template_id: payload}
        try:
            return {int(key): value for key, value in document.items()}
        except ValueError as e:
            raise TemplateValidationError([f"Template file {source}: template ids must be integers"]) from e
    raise TemplateValidationError([f"Template file {source}: expected a mapping or a list"])


def load_templates(path: Path) -> dict[int, object]:
    """Load raw templates keyed by id from a file or a directory.

    Args:
        path: YAML/JSON file, or directory of YAML/JSON files

    Returns:
        Dictionary template_id -> raw payload

    Raises:
        TemplateValidationError: If a file cannot be parsed or has no usable ids
    """
    if path.is_dir():
        templates: dict[int, object] = {}
        for file_path in sorted(path.iterdir()):
            if file_path.suffix not in TEMPLATE_SUFFIXES:
                continue
            templates.update(_entries(_parse_file(file_path), file_path.name))
        logger.info("template_loader: directory loaded", path=str(path), templates=len(templates))
        return templates

    templates = _entries(_parse_file(path), path.name)
    logger.debug("template_loader: file loaded", path=str(path), templates=len(templates))
    return templates
