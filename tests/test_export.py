"""
Tests for program export.

Covers:
- JSON export and re-import
- Markdown report contents
- File naming and format validation
"""

import json

import pytest

from periodization.export import (
    export_program_json,
    export_program_markdown,
    load_program_from_file,
    save_program_export,
)
from periodization.schemas import TemplateDecision


def test_json_export_is_serializable(sample_program):
    data = export_program_json(sample_program)

    assert data["id"] == sample_program.id
    assert data["goal"] == "hypertrophy"
    assert data["mesocycles"][0]["microcycles"][0]["sessions"][0]["exercises"][0]["reps"] == "8-12"
    json.dumps(data)


def test_markdown_export(sample_program, catalog):
    markdown = export_program_markdown(sample_program, catalog)

    assert markdown.startswith("# Spring Hypertrophy")
    assert "**Total Weeks:** 7" in markdown
    assert "| Hypertrophy | 4 |" in markdown
    assert "## Accumulation" in markdown
    assert "### Week 2 (deload)" in markdown
    assert "#### Mon - Upper A" in markdown
    assert "1. **Bench Press**: 4 x 8-12, @ 80 kg, RIR 2, rest 90s" in markdown


def test_markdown_without_catalog_uses_ids(sample_program):
    markdown = export_program_markdown(sample_program)

    assert "**bench-press**" in markdown


def test_markdown_includes_decisions(sample_program):
    decision = TemplateDecision(
        decision_point="Periodization Model",
        input_factors=["goal=hypertrophy"],
        reasoning="Block periodization suits an intermediate lifter.",
        outcome="block",
    )

    markdown = export_program_markdown(sample_program, decisions=[decision])

    assert "## Generation Decisions" in markdown
    assert "### Decision 1: Periodization Model" in markdown


def test_save_and_reload_json(sample_program, tmp_path):
    filepath = save_program_export(sample_program, tmp_path, format="json")

    assert filepath.name == "program_spring_hypertrophy.json"
    reloaded = load_program_from_file(filepath)
    assert reloaded.id == sample_program.id
    assert reloaded.count_entities() == sample_program.count_entities()


def test_save_markdown(sample_program, tmp_path, catalog):
    filepath = save_program_export(sample_program, tmp_path / "exports", format="markdown", catalog=catalog)

    assert filepath.suffix == ".md"
    assert "Bench Press" in filepath.read_text()


def test_unsupported_format(sample_program, tmp_path):
    with pytest.raises(ValueError, match="Unsupported format"):
        save_program_export(sample_program, tmp_path, format="pdf")


def test_load_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_program_from_file(tmp_path / "missing.json")

    broken = tmp_path / "broken.json"
    broken.write_text(json.dumps({"name": "No owner"}))
    with pytest.raises(ValueError, match="Invalid program file"):
        load_program_from_file(broken)
