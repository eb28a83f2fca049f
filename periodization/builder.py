"""
Program builder: assembles and validates the periodization tree in memory.

All operations mutate the in-memory tree only. Nothing is written to storage
until the program is handed to ProgramRepository.save_program.
"""

import logging
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from periodization.catalog import ExerciseCatalog
from periodization.errors import ConflictError, NotFoundError, ValidationError
from periodization.schemas import (
    DeloadStrategy,
    Mesocycle,
    Microcycle,
    PeriodizationProgram,
    PeriodizationType,
    PeriodizedExercise,
    PeriodizedSession,
    SpecialTechnique,
    TrainingGoal,
    TrainingLevel,
    TrainingPhase,
    new_id,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)
TechniqueLookup = Callable[[str], SpecialTechnique]

# Fields callers may edit through update_program
EDITABLE_PROGRAM_FIELDS = {
    "name",
    "description",
    "periodization_type",
    "goal",
    "training_level",
    "frequency",
    "start_date",
    "end_date",
    "is_active",
}


def build_model(model_cls: Type[ModelT], **data: Any) -> ModelT:
    """
    Construct a pydantic model, converting schema errors into ValidationError.

    Raises:
        ValidationError: If any field fails validation
    """
    try:
        return model_cls(**data)
    except PydanticValidationError as e:
        errors = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        summary = "; ".join(f"{err['field'] or model_cls.__name__}: {err['message']}" for err in errors)
        raise ValidationError(
            f"Invalid {model_cls.__name__}: {summary}",
            details={"errors": errors},
        )


def validate_structure(program: PeriodizationProgram) -> None:
    """
    Enforce the hard structural invariants of a program tree.

    - mesocycle positions are unique within the program
    - microcycle week numbers are unique and within duration_weeks
    - ids are unique across the whole tree

    Raises:
        ConflictError: On position, week number or id collisions
        ValidationError: On week numbers beyond the mesocycle duration
    """
    positions = [m.position for m in program.mesocycles]
    duplicates = sorted({p for p in positions if positions.count(p) > 1})
    if duplicates:
        raise ConflictError(
            f"Duplicate mesocycle positions in program '{program.name}': {duplicates}",
            details={"positions": duplicates},
        )

    for mesocycle in program.mesocycles:
        weeks = [mc.week_number for mc in mesocycle.microcycles]
        duplicate_weeks = sorted({w for w in weeks if weeks.count(w) > 1})
        if duplicate_weeks:
            raise ConflictError(
                f"Duplicate week numbers in mesocycle at position {mesocycle.position}: {duplicate_weeks}",
                details={"mesocycle_id": mesocycle.id, "weeks": duplicate_weeks},
            )
        beyond = [w for w in weeks if w > mesocycle.duration_weeks]
        if beyond:
            raise ValidationError(
                f"Week numbers {beyond} exceed mesocycle duration of {mesocycle.duration_weeks} weeks",
                details={"mesocycle_id": mesocycle.id, "weeks": beyond},
            )

    seen: Dict[str, str] = {}
    for kind, node_id in _iter_node_ids(program):
        if node_id in seen:
            raise ConflictError(
                f"Id '{node_id}' is used by both a {seen[node_id]} and a {kind}",
                details={"id": node_id},
            )
        seen[node_id] = kind


def _iter_node_ids(program: PeriodizationProgram) -> Iterable[tuple]:
    yield "program", program.id
    for mesocycle in program.mesocycles:
        yield "mesocycle", mesocycle.id
        for microcycle in mesocycle.microcycles:
            yield "microcycle", microcycle.id
            for session in microcycle.sessions:
                yield "session", session.id
                for exercise in session.exercises:
                    yield "exercise", exercise.id
                for technique in session.techniques:
                    yield "technique", technique.id


class ProgramBuilder:
    """
    Builds Program trees and enforces their invariants before persistence.

    Validation always happens before the tree is touched, so a failed call
    leaves the program exactly as it was.
    """

    def __init__(
        self,
        catalog: ExerciseCatalog,
        technique_lookup: Optional[TechniqueLookup] = None,
    ):
        """
        Initialize the builder.

        Args:
            catalog: Exercise catalog used to resolve exercise references
            technique_lookup: Optional resolver for shared technique templates.
                Must return the technique or raise NotFoundError.
        """
        self.catalog = catalog
        self.technique_lookup = technique_lookup

    # ------------------------------------------------------------------
    # Program
    # ------------------------------------------------------------------

    def create_program(
        self,
        owner_id: str,
        name: str,
        periodization_type: Union[PeriodizationType, str],
        goal: Union[TrainingGoal, str],
        training_level: Union[TrainingLevel, str],
        frequency: int,
        description: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> PeriodizationProgram:
        """
        Create an empty program owned by ``owner_id``.

        Raises:
            ValidationError: If owner or name is empty, frequency is outside
                [1, 7], an enum value is unknown, or start_date > end_date
        """
        if not owner_id or not str(owner_id).strip():
            raise ValidationError("Program owner is required")
        if not name or not name.strip():
            raise ValidationError("Program name cannot be empty")
        if not isinstance(frequency, int) or isinstance(frequency, bool) or not 1 <= frequency <= 7:
            raise ValidationError(
                f"Frequency must be between 1 and 7 sessions per week, got {frequency}",
                details={"frequency": frequency},
            )

        program = build_model(
            PeriodizationProgram,
            user_id=owner_id,
            name=name,
            description=description,
            periodization_type=periodization_type,
            goal=goal,
            training_level=training_level,
            frequency=frequency,
            start_date=start_date,
            end_date=end_date,
        )
        logger.debug("Created program %s for user %s", program.id, owner_id)
        return program

    def update_program(self, program: PeriodizationProgram, **fields: Any) -> PeriodizationProgram:
        """
        Edit program metadata in place.

        Raises:
            ValidationError: If a field is not editable or the result is invalid
        """
        forbidden = set(fields) - EDITABLE_PROGRAM_FIELDS
        if forbidden:
            raise ValidationError(
                f"Fields cannot be edited: {sorted(forbidden)}",
                details={"fields": sorted(forbidden)},
            )

        data = program.model_dump(exclude={"mesocycles"})
        data.update(fields)
        validated = build_model(PeriodizationProgram, **data)
        for key in fields:
            setattr(program, key, getattr(validated, key))
        return program

    # ------------------------------------------------------------------
    # Mesocycles
    # ------------------------------------------------------------------

    def add_mesocycle(
        self,
        program: PeriodizationProgram,
        phase: Union[TrainingPhase, str],
        duration_weeks: int,
        position: Optional[int] = None,
        name: Optional[str] = None,
        volume_level: int = 5,
        intensity_level: int = 5,
        includes_deload: bool = False,
        deload_strategy: Optional[Union[DeloadStrategy, Mapping[str, Any]]] = None,
        **extra: Any,
    ) -> Mesocycle:
        """
        Add a training block to the program.

        Args:
            program: Program receiving the block
            phase: Dominant training phase
            duration_weeks: Block length (2-8 weeks)
            position: Order within program; appended after the last block if omitted
            name: Optional block name
            volume_level: Volume scale (1-10)
            intensity_level: Intensity scale (1-10)
            includes_deload: Whether the block ends with a deload
            deload_strategy: Required when includes_deload is true
            **extra: Other Mesocycle fields (progression patterns, notes)

        Returns:
            The new Mesocycle, already attached to the program

        Raises:
            ConflictError: If position is already used in this program
            ValidationError: If any field is invalid
        """
        used_positions = {m.position for m in program.mesocycles}
        if position is None:
            position = max(used_positions) + 1 if used_positions else 0
        elif position in used_positions:
            raise ConflictError(
                f"Position {position} is already used by another mesocycle",
                details={"program_id": program.id, "position": position},
            )

        if isinstance(deload_strategy, Mapping):
            deload_strategy = build_model(DeloadStrategy, **deload_strategy)

        mesocycle = build_model(
            Mesocycle,
            phase=phase,
            duration_weeks=duration_weeks,
            position=position,
            name=name,
            volume_level=volume_level,
            intensity_level=intensity_level,
            includes_deload=includes_deload,
            deload_strategy=deload_strategy,
            **extra,
        )

        program.mesocycles.append(mesocycle)
        program.mesocycles.sort(key=lambda m: m.position)
        return mesocycle

    def reorder_mesocycles(self, program: PeriodizationProgram, ordered_ids: List[str]) -> None:
        """
        Rewrite mesocycle positions to 0..n-1 following ``ordered_ids``.

        Raises:
            ValidationError: If ``ordered_ids`` is not a permutation of the program's mesocycles
        """
        current = {m.id: m for m in program.mesocycles}
        if sorted(ordered_ids) != sorted(current):
            raise ValidationError(
                "Reorder must list every mesocycle of the program exactly once",
                details={"expected": sorted(current), "received": list(ordered_ids)},
            )
        for position, mesocycle_id in enumerate(ordered_ids):
            current[mesocycle_id].position = position
        program.mesocycles.sort(key=lambda m: m.position)

    def remove_mesocycle(self, program: PeriodizationProgram, mesocycle_id: str) -> Mesocycle:
        mesocycle = program.find_mesocycle(mesocycle_id)
        if mesocycle is None:
            raise NotFoundError(
                f"Mesocycle '{mesocycle_id}' not found in program",
                details={"program_id": program.id, "mesocycle_id": mesocycle_id},
            )
        program.mesocycles.remove(mesocycle)
        return mesocycle

    # ------------------------------------------------------------------
    # Microcycles, sessions, exercises
    # ------------------------------------------------------------------

    def add_microcycle(
        self,
        mesocycle: Mesocycle,
        week_number: Optional[int] = None,
        volume_multiplier: float = 1.0,
        intensity_multiplier: float = 1.0,
        is_deload: bool = False,
        notes: Optional[str] = None,
    ) -> Microcycle:
        """
        Add a training week to a mesocycle.

        Raises:
            ValidationError: If week_number is not an integer in [1, duration_weeks]
            ConflictError: If the week number already exists in the mesocycle
        """
        used_weeks = {mc.week_number for mc in mesocycle.microcycles}
        if week_number is None:
            week_number = max(used_weeks) + 1 if used_weeks else 1

        if (
            not isinstance(week_number, int)
            or isinstance(week_number, bool)
            or not 1 <= week_number <= mesocycle.duration_weeks
        ):
            raise ValidationError(
                f"Week {week_number!r} is outside the mesocycle's {mesocycle.duration_weeks} weeks",
                details={"mesocycle_id": mesocycle.id, "week_number": week_number},
            )
        if week_number in used_weeks:
            raise ConflictError(
                f"Week {week_number} already exists in this mesocycle",
                details={"mesocycle_id": mesocycle.id, "week_number": week_number},
            )

        microcycle = build_model(
            Microcycle,
            week_number=week_number,
            volume_multiplier=volume_multiplier,
            intensity_multiplier=intensity_multiplier,
            is_deload=is_deload,
            notes=notes,
        )
        mesocycle.microcycles.append(microcycle)
        mesocycle.microcycles.sort(key=lambda mc: mc.week_number)
        return microcycle

    def add_session(
        self,
        microcycle: Microcycle,
        day_of_week: int,
        focus: Optional[List[str]] = None,
        name: Optional[str] = None,
        rpe_target: Optional[float] = None,
        rir_target: Optional[float] = None,
        notes: Optional[str] = None,
    ) -> PeriodizedSession:
        """
        Add a session to a week. Several sessions may share a day (AM/PM splits).

        Raises:
            ValidationError: If day_of_week is outside [1, 7]
        """
        if (
            not isinstance(day_of_week, int)
            or isinstance(day_of_week, bool)
            or not 1 <= day_of_week <= 7
        ):
            raise ValidationError(
                f"day_of_week must be between 1 (Monday) and 7 (Sunday), got {day_of_week}",
                details={"day_of_week": day_of_week},
            )

        session = build_model(
            PeriodizedSession,
            day_of_week=day_of_week,
            focus=list(focus or []),
            name=name,
            rpe_target=rpe_target,
            rir_target=rir_target,
            notes=notes,
        )
        microcycle.sessions.append(session)
        return session

    def add_exercise(
        self,
        session: PeriodizedSession,
        catalog_exercise_id: str,
        prescription: Optional[Mapping[str, Any]] = None,
    ) -> PeriodizedExercise:
        """
        Prescribe a catalog exercise inside a session.

        Args:
            session: Session receiving the exercise
            catalog_exercise_id: Exercise catalog id
            prescription: sets, reps, rir/rpe, load, rest_seconds, tempo,
                superset_group_id, special_technique_id, exercise_order, notes

        Returns:
            The new PeriodizedExercise

        Raises:
            NotFoundError: If the catalog id or special technique does not resolve
            ValidationError: If the prescription is invalid
        """
        self.catalog.get(catalog_exercise_id)

        fields = dict(prescription or {})
        technique_id = fields.get("special_technique_id")
        if technique_id:
            self.resolve_technique(session, technique_id)

        if fields.get("exercise_order") is None:
            fields["exercise_order"] = (
                max(e.exercise_order for e in session.exercises) + 1 if session.exercises else 0
            )

        exercise = build_model(PeriodizedExercise, exercise_id=catalog_exercise_id, **fields)
        session.exercises.append(exercise)
        session.exercises.sort(key=lambda e: e.exercise_order)
        return exercise

    def attach_technique(
        self, session: PeriodizedSession, technique: Union[SpecialTechnique, Mapping[str, Any]]
    ) -> SpecialTechnique:
        """
        Add a session-specific technique so exercises can reference it.

        Shared templates are copied under a new id, so the template itself
        stays independent of the session.
        """
        if isinstance(technique, Mapping):
            technique = build_model(SpecialTechnique, **technique)
        if technique.is_template:
            technique = technique.model_copy(update={"id": new_id(), "is_template": False})
        if any(t.id == technique.id for t in session.techniques):
            raise ConflictError(
                f"Technique '{technique.id}' is already attached to this session",
                details={"technique_id": technique.id},
            )
        session.techniques.append(technique)
        return technique

    def resolve_technique(self, session: PeriodizedSession, technique_id: str) -> SpecialTechnique:
        """
        Resolve a technique reference from the session, then shared templates.

        Raises:
            NotFoundError: If the reference is dangling
        """
        for technique in session.techniques:
            if technique.id == technique_id:
                return technique
        if self.technique_lookup is not None:
            return self.technique_lookup(technique_id)
        raise NotFoundError(
            f"Special technique '{technique_id}' not found",
            details={"special_technique_id": technique_id},
        )

    # ------------------------------------------------------------------
    # Whole-tree checks
    # ------------------------------------------------------------------

    def validate(self, program: PeriodizationProgram) -> None:
        """
        Validate a complete tree, e.g. one received from a client.

        Runs the structural checks and resolves every weak reference.

        Raises:
            ConflictError, ValidationError: On structural violations
            NotFoundError: On dangling catalog or technique references
        """
        validate_structure(program)
        self.check_references(program.iter_sessions())

    def check_references(self, sessions: Iterable[PeriodizedSession]) -> None:
        """
        Resolve catalog and technique references of prescribed exercises.

        Raises:
            NotFoundError: On the first dangling reference
        """
        for session in sessions:
            for exercise in session.exercises:
                self.catalog.get(exercise.exercise_id)
                if exercise.special_technique_id:
                    self.resolve_technique(session, exercise.special_technique_id)

    def check_completeness(self, program: PeriodizationProgram) -> List[str]:
        """
        Report soft invariants that may be violated while a program is being edited.

        Returns:
            List of warning messages (empty when the tree is fully populated)
        """
        warnings = []

        if not program.mesocycles:
            warnings.append(f"Program '{program.name}' has no mesocycles")

        for mesocycle in program.mesocycles:
            label = mesocycle.name or f"Mesocycle {mesocycle.position}"
            if len(mesocycle.microcycles) != mesocycle.duration_weeks:
                warnings.append(
                    f"{label}: {len(mesocycle.microcycles)} of {mesocycle.duration_weeks} weeks populated"
                )
            deload_weeks = [mc for mc in mesocycle.microcycles if mc.is_deload]
            if mesocycle.includes_deload and mesocycle.microcycles and not deload_weeks:
                warnings.append(f"{label}: includes_deload is set but no week is marked as deload")
            if deload_weeks and not mesocycle.includes_deload:
                warnings.append(f"{label}: has deload weeks but includes_deload is not set")

            for microcycle in mesocycle.microcycles:
                if not microcycle.sessions:
                    warnings.append(f"{label}, week {microcycle.week_number}: no sessions")
                elif len({s.day_of_week for s in microcycle.sessions}) > program.frequency:
                    warnings.append(
                        f"{label}, week {microcycle.week_number}: trains on more days "
                        f"than the program frequency of {program.frequency}"
                    )
                for session in microcycle.sessions:
                    if not session.exercises:
                        warnings.append(
                            f"{label}, week {microcycle.week_number}, day {session.day_of_week}: no exercises"
                        )

        for warning in warnings:
            logger.warning("Program %s: %s", program.id, warning)
        return warnings
