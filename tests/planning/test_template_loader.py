"""Template file loader tests."""

import json

import pytest
import yaml

from liftplan.planning.errors import TemplateValidationError
from liftplan.planning.normalize import normalize_templates
from liftplan.planning.template_loader import load_templates


def test_load_yaml_mapping(tmp_path, pool_template_payload, mixing_template_payload):
    path = tmp_path / "templates.yaml"
    path.write_text(yaml.safe_dump({1: pool_template_payload, 2: mixing_template_payload}), encoding="utf-8")

    templates = load_templates(path)
    assert sorted(templates) == [1, 2]
    assert [template.kind for template in normalize_templates(list(templates.values()))] == ["pool_based", "mixing"]


def test_load_json_rows(tmp_path, legacy_template_payload):
    """Test the exported-table layout: rows with id and template_json."""
    path = tmp_path / "templates.json"
    path.write_text(json.dumps([{"id": 3, "template_json": legacy_template_payload}]), encoding="utf-8")
    assert load_templates(path) == {3: legacy_template_payload}


def test_load_directory_skips_other_files(tmp_path, pool_template_payload, legacy_template_payload):
    (tmp_path / "a.yml").write_text(yaml.safe_dump({"id": 1, "template": pool_template_payload}), encoding="utf-8")
    (tmp_path / "b.json").write_text(json.dumps({"id": 3, "template_json": legacy_template_payload}), encoding="utf-8")
    (tmp_path / "notes.txt").write_text("not a template", encoding="utf-8")

    templates = load_templates(tmp_path)
    assert sorted(templates) == [1, 3]
    assert templates[3] == legacy_template_payload


def test_malformed_files_raise(tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(TemplateValidationError) as exc_info:
        load_templates(broken)
    assert exc_info.value.details[0].startswith("Template file broken.json: ")

    bad_ids = tmp_path / "ids.yaml"
    bad_ids.write_text("squat: {}\n", encoding="utf-8")
    with pytest.raises(TemplateValidationError) as exc_info:
        load_templates(bad_ids)
    assert exc_info.value.details == ["Template file ids.yaml: template ids must be integers"]

    missing = tmp_path / "rows.yaml"
    missing.write_text("- id: 5\n", encoding="utf-8")
    with pytest.raises(TemplateValidationError) as exc_info:
        load_templates(missing)
    assert exc_info.value.details == ["Template file rows.yaml: row 5 has no template_json"]
