"""
Program export to JSON and Markdown.

Exports let a coach review a complete program outside the application and
re-import it later (JSON only).
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

from periodization.catalog import ExerciseCatalog
from periodization.errors import NotFoundError
from periodization.schemas import PeriodizationProgram, PeriodizedExercise, TemplateDecision

logger = logging.getLogger(__name__)

WEEKDAYS = {1: "Mon", 2: "Tue", 3: "Wed", 4: "Thu", 5: "Fri", 6: "Sat", 7: "Sun"}


def export_program_json(program: PeriodizationProgram) -> dict:
    """
    Export program to JSON-serializable dictionary.

    Returns:
        Dictionary representation of the full program tree
    """
    return program.model_dump(mode="json")


def _exercise_name(exercise: PeriodizedExercise, catalog: Optional[ExerciseCatalog]) -> str:
    if catalog is None:
        return exercise.exercise_id
    try:
        return catalog.get(exercise.exercise_id).name
    except NotFoundError:
        return f"{exercise.exercise_id} (not in catalog)"


def _prescription(exercise: PeriodizedExercise) -> str:
    parts = [f"{exercise.sets} x {exercise.reps}"]
    if exercise.load is not None:
        parts.append(f"@ {exercise.load:g} kg")
    if exercise.rir is not None:
        parts.append(f"RIR {exercise.rir:g}")
    if exercise.rpe is not None:
        parts.append(f"RPE {exercise.rpe:g}")
    if exercise.tempo:
        parts.append(f"tempo {exercise.tempo}")
    parts.append(f"rest {exercise.rest_seconds}s")
    return ", ".join(parts)


def export_program_markdown(
    program: PeriodizationProgram,
    catalog: Optional[ExerciseCatalog] = None,
    decisions: Optional[List[TemplateDecision]] = None,
) -> str:
    """
    Export program to human-readable Markdown format.

    Args:
        program: Program to export
        catalog: Used to show exercise names instead of catalog ids
        decisions: Template decisions to append, when the program was generated

    Returns:
        Markdown-formatted program report
    """
    lines = []

    # Header
    lines.append(f"# {program.name}")
    lines.append("")
    if program.description:
        lines.append(program.description)
        lines.append("")
    lines.append(f"**Type:** {program.periodization_type.value}")
    lines.append(f"**Goal:** {program.goal.value}")
    lines.append(f"**Level:** {program.training_level.value}")
    lines.append(f"**Frequency:** {program.frequency} sessions/week")
    if program.start_date:
        end = f" to {program.end_date.isoformat()}" if program.end_date else ""
        lines.append(f"**Dates:** {program.start_date.isoformat()}{end}")
    lines.append(f"**Total Weeks:** {program.total_weeks()}")
    lines.append("")
    lines.append("---")
    lines.append("")

    # Phase breakdown
    lines.append("## Phase Breakdown")
    lines.append("")
    if not program.mesocycles:
        lines.append("*No mesocycles planned*")
    else:
        lines.append("| Phase | Weeks |")
        lines.append("|-------|-------|")
        for phase, weeks in program.phase_breakdown().items():
            lines.append(f"| {phase.replace('_', ' ').title()} | {weeks} |")
    lines.append("")
    lines.append("---")
    lines.append("")

    # Mesocycles
    for mesocycle in program.mesocycles:
        title = mesocycle.name or f"Mesocycle {mesocycle.position + 1}"
        lines.append(f"## {title}")
        lines.append("")
        lines.append(
            f"- **Phase:** {mesocycle.phase.value} ({mesocycle.duration_weeks} weeks)"
        )
        lines.append(
            f"- **Volume / Intensity:** {mesocycle.volume_level}/10, {mesocycle.intensity_level}/10"
        )
        if mesocycle.deload_strategy:
            strategy = mesocycle.deload_strategy
            lines.append(
                f"- **Deload:** {strategy.type.value}, volume -{strategy.volume_reduction:g}%, "
                f"intensity -{strategy.intensity_reduction:g}%, {strategy.duration_days} days"
            )
        lines.append("")

        for microcycle in mesocycle.microcycles:
            deload = " (deload)" if microcycle.is_deload else ""
            lines.append(f"### Week {microcycle.week_number}{deload}")
            lines.append("")
            lines.append(
                f"Volume x{microcycle.volume_multiplier:g}, intensity x{microcycle.intensity_multiplier:g}"
            )
            lines.append("")

            for session in sorted(microcycle.sessions, key=lambda s: s.day_of_week):
                name = f" - {session.name}" if session.name else ""
                lines.append(f"#### {WEEKDAYS[session.day_of_week]}{name}")
                if session.focus:
                    lines.append(f"*Focus: {', '.join(session.focus)}*")
                lines.append("")
                for exercise in session.exercises:
                    lines.append(
                        f"{exercise.exercise_order + 1}. **{_exercise_name(exercise, catalog)}**: "
                        f"{_prescription(exercise)}"
                    )
                lines.append("")

        lines.append("---")
        lines.append("")

    # Template decisions (if available)
    if decisions:
        lines.append("## Generation Decisions")
        lines.append("")
        for i, decision in enumerate(decisions, 1):
            lines.append(f"### Decision {i}: {decision.decision_point}")
            lines.append("")
            lines.append(f"**Input Factors:** {', '.join(decision.input_factors)}")
            lines.append("")
            lines.append(f"**Reasoning:** {decision.reasoning}")
            lines.append("")
            lines.append(f"**Outcome:** {decision.outcome}")
            lines.append("")

    return "\n".join(lines)


def save_program_export(
    program: PeriodizationProgram,
    output_dir: Path,
    format: str = "json",
    catalog: Optional[ExerciseCatalog] = None,
) -> Path:
    """
    Save program to file in specified format.

    Args:
        program: Program to export
        output_dir: Directory to save the file in
        format: Output format ("json" or "markdown")
        catalog: Exercise catalog for Markdown exercise names

    Returns:
        Path to saved file

    Raises:
        ValueError: If format is not supported
    """
    if format not in ("json", "markdown"):
        raise ValueError(f"Unsupported format: {format}. Use 'json' or 'markdown'")

    output_dir.mkdir(parents=True, exist_ok=True)
    safe_name = "".join(c if c.isalnum() else "_" for c in program.name.lower()).strip("_")
    stem = f"program_{safe_name or program.id}"

    if format == "json":
        filepath = output_dir / f"{stem}.json"
        with open(filepath, "w") as f:
            json.dump(export_program_json(program), f, indent=2, default=str)
    else:
        filepath = output_dir / f"{stem}.md"
        with open(filepath, "w") as f:
            f.write(export_program_markdown(program, catalog))

    logger.info("Exported program %s to %s", program.id, filepath)
    return filepath


def load_program_from_file(filepath: Path) -> PeriodizationProgram:
    """
    Load a program from a JSON export.

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If the JSON is not a valid program
    """
    if not filepath.exists():
        raise FileNotFoundError(f"Program file not found: {filepath}")

    with open(filepath, "r") as f:
        data = json.load(f)

    try:
        program = PeriodizationProgram(**data)
    except Exception as e:
        raise ValueError(f"Invalid program file: {e}")

    return program
