"""
Command-line interface for the periodization planner.

Provides commands for:
- Database initialization
- Exercise catalog browsing
- Template program generation
- Program inspection, export and completeness checks
"""

from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from periodization.builder import ProgramBuilder
from periodization.catalog import ExerciseCatalog
from periodization.config import configure_logging, get_settings
from periodization.database import init_database
from periodization.errors import PeriodizationError
from periodization.export import export_program_markdown, save_program_export
from periodization.repository import ProgramRepository
from periodization.schemas import (
    Difficulty,
    PeriodizationProgram,
    TemplateDecision,
    TrainingGoal,
    TrainingLevel,
)
from periodization.templates import ProgramTemplateGenerator, get_config
from periodization.techniques import TechniqueLibrary

# Initialize Typer app and Rich console
app = typer.Typer(help="Periodization Planner - build, store and review periodized training programs")
console = Console()


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Logging level (defaults to PERIODIZATION_LOG_LEVEL)"
    ),
):
    configure_logging(log_level)


# ===== HELPERS =====


def _open_db(database_url: Optional[str]):
    settings = get_settings()
    return init_database(database_url or settings.DATABASE_URL, settings.SQL_ECHO)


def _load_catalog() -> ExerciseCatalog:
    try:
        return ExerciseCatalog.from_file(get_settings().catalog_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]✗ Failed to load exercise catalog: {e}[/red]")
        raise typer.Exit(1)


def _fail(error: PeriodizationError):
    console.print(f"[red]✗ {error.error_type}: {error.message}[/red]")
    raise typer.Exit(1)


# ===== DISPLAY HELPER FUNCTIONS =====


def _display_program_summary(program: PeriodizationProgram):
    """
    Display program metadata and phase breakdown.

    Args:
        program: PeriodizationProgram to summarize
    """
    counts = program.count_entities()
    content = [
        f"[bold]{program.name}[/bold]",
        f"ID: [cyan]{program.id}[/cyan] (version {program.version})",
        f"Type: {program.periodization_type.value} | Goal: {program.goal.value} | "
        f"Level: {program.training_level.value}",
        f"Frequency: {program.frequency} sessions/week | Total: {program.total_weeks()} weeks",
        f"{counts['mesocycles']} mesocycles, {counts['microcycles']} weeks, "
        f"{counts['sessions']} sessions, {counts['exercises']} exercises",
    ]
    console.print(Panel("\n".join(content), title="Program", border_style="cyan"))

    console.print("\n[bold]Phase Distribution:[/bold]")
    for phase, weeks in program.phase_breakdown().items():
        console.print(f"  {phase}: {weeks} weeks")


def _display_mesocycles(program: PeriodizationProgram, catalog: ExerciseCatalog, detailed: bool = False):
    table = Table(title="Mesocycles", box=box.ROUNDED)
    table.add_column("#", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Phase")
    table.add_column("Weeks", justify="right")
    table.add_column("Vol/Int", justify="center")
    table.add_column("Deload")
    table.add_column("Weekly Sets", justify="right", style="yellow")

    for mesocycle in program.mesocycles:
        weekly = mesocycle.weekly_sets()
        table.add_row(
            str(mesocycle.position),
            mesocycle.name or "-",
            mesocycle.phase.value,
            f"{len(mesocycle.microcycles)}/{mesocycle.duration_weeks}",
            f"{mesocycle.volume_level}/{mesocycle.intensity_level}",
            mesocycle.deload_strategy.type.value if mesocycle.deload_strategy else "-",
            " ".join(str(weekly[w]) for w in sorted(weekly)),
        )
    console.print(table)

    if detailed and program.mesocycles and program.mesocycles[0].microcycles:
        first_week = program.mesocycles[0].microcycles[0]
        console.print(f"\n[bold]Sample Week {first_week.week_number}:[/bold]")
        for session in first_week.sessions:
            console.print(f"  Day {session.day_of_week}: {session.name or ', '.join(session.focus)}")
            for exercise in session.exercises:
                name = catalog.get(exercise.exercise_id).name if exercise.exercise_id in catalog else exercise.exercise_id
                console.print(f"    {name}: {exercise.sets} x {exercise.reps}")


def _display_decisions(decisions: List[TemplateDecision]):
    console.print("\n[bold]Generation Decisions:[/bold]")
    for i, decision in enumerate(decisions, 1):
        console.print(f"  {i}. [cyan]{decision.decision_point}[/cyan]: {decision.outcome}")


def _display_warnings(warnings: List[str]):
    if not warnings:
        console.print("\n[green]✓ Program is complete[/green]")
        return
    console.print(f"\n[bold yellow]Warnings ({len(warnings)}):[/bold yellow]")
    for warning in warnings:
        console.print(f"  • {warning}")


# ===== COMMANDS =====


@app.command("init-db")
def init_db(
    database_url: Optional[str] = typer.Option(None, "--database-url", help="SQLAlchemy database URL"),
):
    """Create all tables in the configured database."""
    db = _open_db(database_url)
    db.close()
    console.print(f"✓ Database ready: [cyan]{database_url or get_settings().DATABASE_URL}[/cyan]")


@app.command()
def catalog(
    muscle: Optional[str] = typer.Option(None, "--muscle", "-m", help="Filter by muscle group"),
    equipment: Optional[str] = typer.Option(None, "--equipment", "-e", help="Filter by equipment"),
    difficulty: Optional[Difficulty] = typer.Option(None, "--difficulty", "-d", help="Filter by difficulty"),
):
    """List exercises in the catalog."""
    exercise_catalog = _load_catalog()
    exercises = exercise_catalog.search(muscle_group=muscle, equipment=equipment, difficulty=difficulty)

    table = Table(title=f"Exercise Catalog ({len(exercises)} of {len(exercise_catalog)})", box=box.ROUNDED)
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Muscle Groups")
    table.add_column("Equipment")
    table.add_column("Difficulty", justify="center")

    for exercise in exercises:
        table.add_row(
            exercise.id,
            exercise.name,
            ", ".join(exercise.muscle_groups),
            ", ".join(exercise.equipment) or "-",
            exercise.difficulty.value,
        )
    console.print(table)


@app.command()
def generate(
    owner: str = typer.Option(..., "--owner", "-o", help="Owner user id"),
    level: TrainingLevel = typer.Option(..., "--level", "-l", help="Training level"),
    goal: TrainingGoal = typer.Option(..., "--goal", "-g", help="Training goal"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Program name"),
    frequency: Optional[int] = typer.Option(None, "--frequency", "-f", help="Sessions per week"),
    start: Optional[datetime] = typer.Option(None, "--start", formats=["%Y-%m-%d"], help="Start date"),
    save: bool = typer.Option(True, "--save/--no-save", help="Persist the program"),
    export_format: Optional[str] = typer.Option(
        None, "--export", help="Also export to plans/ (json or markdown)"
    ),
    database_url: Optional[str] = typer.Option(None, "--database-url", help="SQLAlchemy database URL"),
):
    """
    Generate a complete program from the recommended template.

    Workflow:
    1. Look up the configuration for the level and goal
    2. Generate mesocycles, weeks, sessions and exercises
    3. Display summary and decisions
    4. Save and optionally export
    """
    console.print("\n[bold cyan]Program Template Generator[/bold cyan]\n")

    exercise_catalog = _load_catalog()
    config = get_config(level, goal)
    console.print(
        f"✓ Template: [green]{config.periodization_type.value}[/green], "
        f"{len(config.phases)} blocks of {config.mesocycle_weeks} weeks"
    )

    db = _open_db(database_url) if save else None
    try:
        lookup = TechniqueLibrary(db).lookup_for(owner) if db is not None else None
        generator = ProgramTemplateGenerator(ProgramBuilder(exercise_catalog, lookup))
        program = generator.generate(
            owner_id=owner,
            name=name or f"{level.value.title()} {goal.value.replace('_', ' ').title()}",
            level=level,
            goal=goal,
            frequency=frequency,
            start_date=start.date() if start else None,
        )

        _display_program_summary(program)
        _display_mesocycles(program, exercise_catalog, detailed=True)
        _display_decisions(generator.template_decisions)
        for warning in generator.warnings:
            console.print(f"[yellow]⚠ {warning}[/yellow]")

        if db is not None:
            program = ProgramRepository(db).save_program(program)
            console.print(f"\n✓ Program saved: [cyan]{program.id}[/cyan] (version {program.version})")
    except PeriodizationError as e:
        _fail(e)
    finally:
        if db is not None:
            db.close()

    if export_format:
        try:
            path = save_program_export(program, Path("plans"), export_format, exercise_catalog)
        except ValueError as e:
            console.print(f"[red]✗ {e}[/red]")
            raise typer.Exit(1)
        console.print(f"✓ Exported: [cyan]{path}[/cyan]")

    console.print()


@app.command("list")
def list_programs(
    owner: str = typer.Option(..., "--owner", "-o", help="Owner user id"),
    database_url: Optional[str] = typer.Option(None, "--database-url", help="SQLAlchemy database URL"),
):
    """List stored programs of a user."""
    db = _open_db(database_url)
    try:
        summaries = ProgramRepository(db).list_programs(owner)
    except PeriodizationError as e:
        _fail(e)
    finally:
        db.close()

    table = Table(title=f"Programs of {owner}", box=box.ROUNDED)
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Goal")
    table.add_column("Weeks", justify="right")
    table.add_column("Active", justify="center")
    for summary in summaries:
        table.add_row(
            summary.id,
            summary.name,
            summary.periodization_type.value,
            summary.goal.value,
            str(summary.total_weeks),
            "✓" if summary.is_active else "",
        )
    console.print(table)


@app.command()
def show(
    program_id: str = typer.Argument(..., help="Program id"),
    owner: str = typer.Option(..., "--owner", "-o", help="Owner user id"),
    markdown: bool = typer.Option(False, "--markdown", help="Print the full Markdown export"),
    database_url: Optional[str] = typer.Option(None, "--database-url", help="SQLAlchemy database URL"),
):
    """Show a stored program."""
    exercise_catalog = _load_catalog()
    db = _open_db(database_url)
    try:
        program = ProgramRepository(db).load_program(program_id, owner)
    except PeriodizationError as e:
        _fail(e)
    finally:
        db.close()

    if markdown:
        console.print(export_program_markdown(program, exercise_catalog))
        return
    _display_program_summary(program)
    _display_mesocycles(program, exercise_catalog, detailed=True)


@app.command()
def export(
    program_id: str = typer.Argument(..., help="Program id"),
    owner: str = typer.Option(..., "--owner", "-o", help="Owner user id"),
    format: str = typer.Option("json", "--format", "-f", help="Output format (json or markdown)"),
    output_dir: Path = typer.Option(Path("plans"), "--output-dir", help="Directory for the export"),
    database_url: Optional[str] = typer.Option(None, "--database-url", help="SQLAlchemy database URL"),
):
    """Export a stored program to JSON or Markdown."""
    exercise_catalog = _load_catalog()
    db = _open_db(database_url)
    try:
        program = ProgramRepository(db).load_program(program_id, owner)
    except PeriodizationError as e:
        _fail(e)
    finally:
        db.close()

    try:
        path = save_program_export(program, output_dir, format, exercise_catalog)
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(1)
    console.print(f"✓ Program exported: [cyan]{path}[/cyan]")


@app.command()
def check(
    program_id: str = typer.Argument(..., help="Program id"),
    owner: str = typer.Option(..., "--owner", "-o", help="Owner user id"),
    database_url: Optional[str] = typer.Option(None, "--database-url", help="SQLAlchemy database URL"),
):
    """Validate a stored program and report incomplete parts."""
    exercise_catalog = _load_catalog()
    db = _open_db(database_url)
    try:
        program = ProgramRepository(db).load_program(program_id, owner)
        builder = ProgramBuilder(exercise_catalog, TechniqueLibrary(db).lookup_for(owner))
        builder.validate(program)
        warnings = builder.check_completeness(program)
    except PeriodizationError as e:
        _fail(e)
    finally:
        db.close()

    console.print(f"✓ [green]{program.name}[/green] passes structural validation")
    _display_warnings(warnings)


if __name__ == "__main__":
    app()
