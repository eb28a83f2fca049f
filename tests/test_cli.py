"""
Tests for the command-line interface.

Covers:
- Catalog listing
- Generating and saving a template program
- Listing, checking and exporting stored programs
- Error exit codes
"""

import pytest
from typer.testing import CliRunner

from periodization.cli import app

runner = CliRunner()


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'cli.db'}"


def _generate(database_url, *extra):
    return runner.invoke(
        app,
        [
            "generate",
            "--owner", "user-1",
            "--level", "elite",
            "--goal", "sport_specific",
            "--name", "Season",
            "--database-url", database_url,
            *extra,
        ],
    )


def _saved_program_id(output):
    line = next(line for line in output.splitlines() if "Program saved:" in line)
    return line.split("Program saved:")[1].split()[0]


def test_catalog_lists_exercises():
    result = runner.invoke(app, ["catalog", "--difficulty", "beginner"])

    assert result.exit_code == 0
    assert "Exercise Catalog" in result.output


def test_generate_saves_program(database_url):
    result = _generate(database_url)

    assert result.exit_code == 0, result.output
    assert "Program saved:" in result.output

    listing = runner.invoke(app, ["list", "--owner", "user-1", "--database-url", database_url])
    assert listing.exit_code == 0
    assert "Programs of user-1" in listing.output


def test_check_and_export_stored_program(database_url, tmp_path):
    program_id = _saved_program_id(_generate(database_url).output)

    checked = runner.invoke(app, ["check", program_id, "--owner", "user-1", "--database-url", database_url])
    assert checked.exit_code == 0, checked.output
    assert "Program is complete" in checked.output

    exported = runner.invoke(
        app,
        [
            "export", program_id,
            "--owner", "user-1",
            "--format", "markdown",
            "--output-dir", str(tmp_path / "plans"),
            "--database-url", database_url,
        ],
    )
    assert exported.exit_code == 0, exported.output
    assert (tmp_path / "plans" / "program_season.md").exists()


def test_other_owner_is_denied(database_url):
    program_id = _saved_program_id(_generate(database_url).output)

    result = runner.invoke(app, ["show", program_id, "--owner", "user-2", "--database-url", database_url])

    assert result.exit_code == 1
    assert "Forbidden" in result.output


def test_invalid_frequency_fails(database_url):
    result = _generate(database_url, "--frequency", "9")

    assert result.exit_code == 1
    assert "Frequency must be between" in result.output
