"""
Persistence adapter for periodization programs.

Programs are stored normalized (one table per hierarchy level). Saving a
program diffs the incoming tree against the stored rows: unchanged ids are
updated in place, new ids inserted and missing ids deleted. Single subtrees
(one mesocycle, one exercise) can be saved without touching the rest.

Lost updates are detected with the ``version`` column: a save must carry the
version it was loaded with, and every successful write increments it.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Type

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from periodization.builder import validate_structure
from periodization.database import (
    MesocycleRecord,
    MicrocycleRecord,
    ObjectiveAssociationRecord,
    ProgramRecord,
    SessionExerciseRecord,
    SessionRecord,
    SpecialTechniqueRecord,
    utcnow,
)
from periodization.errors import (
    ConflictError,
    NotFoundError,
    PeriodizationError,
    PermissionDeniedError,
    StorageError,
)
from periodization.schemas import (
    EntityType,
    Mesocycle,
    Microcycle,
    PeriodizationProgram,
    PeriodizedExercise,
    PeriodizedSession,
    ProgramSummary,
    SpecialTechnique,
)

logger = logging.getLogger(__name__)


@contextmanager
def storage_guard(db: Session, operation: str, **context: Any) -> Iterator[None]:
    """
    Roll back on any failure and convert store errors into StorageError.

    Domain errors propagate unchanged; SQLAlchemy errors are logged with
    full context and re-raised without store details.
    """
    try:
        yield
    except PeriodizationError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Storage failure during %s %s", operation, context, exc_info=True)
        raise StorageError(cause=e, details={"operation": operation}) from e


# ============================================================================
# Model <-> record mapping
# ============================================================================

def _apply_program(record: ProgramRecord, program: PeriodizationProgram) -> None:
    record.user_id = program.user_id
    record.name = program.name
    record.description = program.description
    record.periodization_type = program.periodization_type.value
    record.goal = program.goal.value
    record.training_level = program.training_level.value
    record.frequency = program.frequency
    record.start_date = program.start_date
    record.end_date = program.end_date
    record.is_active = program.is_active


def _apply_mesocycle(record: MesocycleRecord, mesocycle: Mesocycle) -> None:
    record.name = mesocycle.name
    record.phase = mesocycle.phase.value
    record.duration_weeks = mesocycle.duration_weeks
    record.position = mesocycle.position
    record.volume_level = mesocycle.volume_level
    record.intensity_level = mesocycle.intensity_level
    record.volume_progression = mesocycle.volume_progression.value
    record.intensity_progression = mesocycle.intensity_progression.value
    record.includes_deload = mesocycle.includes_deload
    record.deload_strategy = (
        mesocycle.deload_strategy.model_dump(mode="json") if mesocycle.deload_strategy else None
    )
    record.notes = mesocycle.notes


def _apply_microcycle(record: MicrocycleRecord, microcycle: Microcycle) -> None:
    record.week_number = microcycle.week_number
    record.volume_multiplier = microcycle.volume_multiplier
    record.intensity_multiplier = microcycle.intensity_multiplier
    record.is_deload = microcycle.is_deload
    record.notes = microcycle.notes


def _apply_session(record: SessionRecord, session: PeriodizedSession, sort_index: int) -> None:
    record.sort_index = sort_index
    record.name = session.name
    record.day_of_week = session.day_of_week
    record.focus = list(session.focus)
    record.rpe_target = session.rpe_target
    record.rir_target = session.rir_target
    record.notes = session.notes


def _apply_exercise(record: SessionExerciseRecord, exercise: PeriodizedExercise) -> None:
    record.exercise_id = exercise.exercise_id
    record.sets = exercise.sets
    record.reps = exercise.reps
    record.rir = exercise.rir
    record.rpe = exercise.rpe
    record.load = exercise.load
    record.rest_seconds = exercise.rest_seconds
    record.tempo = exercise.tempo
    record.superset_group_id = exercise.superset_group_id
    record.exercise_order = exercise.exercise_order
    record.special_technique_id = exercise.special_technique_id
    record.notes = exercise.notes


def _apply_technique(record: SpecialTechniqueRecord, technique: SpecialTechnique) -> None:
    record.user_id = technique.user_id
    record.name = technique.name
    record.type = technique.type.value
    record.description = technique.description
    record.parameters = dict(technique.parameters)
    record.is_template = technique.is_template


def technique_from_record(record: SpecialTechniqueRecord) -> SpecialTechnique:
    return SpecialTechnique(
        id=record.id,
        user_id=record.user_id,
        name=record.name,
        type=record.type,
        description=record.description,
        parameters=record.parameters or {},
        is_template=record.is_template,
    )


def _exercise_from_record(record: SessionExerciseRecord) -> PeriodizedExercise:
    return PeriodizedExercise(
        id=record.id,
        exercise_id=record.exercise_id,
        sets=record.sets,
        reps=record.reps,
        rir=record.rir,
        rpe=record.rpe,
        load=record.load,
        rest_seconds=record.rest_seconds,
        tempo=record.tempo,
        superset_group_id=record.superset_group_id,
        exercise_order=record.exercise_order,
        special_technique_id=record.special_technique_id,
        notes=record.notes,
    )


def _session_from_record(record: SessionRecord) -> PeriodizedSession:
    return PeriodizedSession(
        id=record.id,
        name=record.name,
        day_of_week=record.day_of_week,
        focus=list(record.focus or []),
        rpe_target=record.rpe_target,
        rir_target=record.rir_target,
        exercises=[_exercise_from_record(e) for e in record.exercises],
        techniques=[technique_from_record(t) for t in record.techniques],
        notes=record.notes,
    )


def _microcycle_from_record(record: MicrocycleRecord) -> Microcycle:
    return Microcycle(
        id=record.id,
        week_number=record.week_number,
        volume_multiplier=record.volume_multiplier,
        intensity_multiplier=record.intensity_multiplier,
        is_deload=record.is_deload,
        sessions=[_session_from_record(s) for s in record.sessions],
        notes=record.notes,
    )


def _mesocycle_from_record(record: MesocycleRecord) -> Mesocycle:
    return Mesocycle(
        id=record.id,
        name=record.name,
        phase=record.phase,
        duration_weeks=record.duration_weeks,
        position=record.position,
        volume_level=record.volume_level,
        intensity_level=record.intensity_level,
        volume_progression=record.volume_progression,
        intensity_progression=record.intensity_progression,
        includes_deload=record.includes_deload,
        deload_strategy=record.deload_strategy,
        microcycles=[_microcycle_from_record(mc) for mc in record.microcycles],
        notes=record.notes,
    )


def program_from_record(record: ProgramRecord) -> PeriodizationProgram:
    """Rebuild the full program tree from its stored rows."""
    return PeriodizationProgram(
        id=record.id,
        user_id=record.user_id,
        name=record.name,
        description=record.description,
        periodization_type=record.periodization_type,
        goal=record.goal,
        training_level=record.training_level,
        frequency=record.frequency,
        start_date=record.start_date,
        end_date=record.end_date,
        is_active=record.is_active,
        mesocycles=[
            _mesocycle_from_record(m) for m in sorted(record.mesocycles, key=lambda m: m.position)
        ],
        version=record.version,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _iter_tree_ids(mesocycles: Iterable[Mesocycle]) -> Iterator[Tuple[Type, str]]:
    for mesocycle in mesocycles:
        yield MesocycleRecord, mesocycle.id
        for microcycle in mesocycle.microcycles:
            yield MicrocycleRecord, microcycle.id
            for session in microcycle.sessions:
                yield SessionRecord, session.id
                for exercise in session.exercises:
                    yield SessionExerciseRecord, exercise.id
                for technique in session.techniques:
                    yield SpecialTechniqueRecord, technique.id


class _RecordIndex:
    """Stored rows of a (sub)tree by record class and id, consumed while syncing."""

    def __init__(self) -> None:
        self._records: Dict[Type, Dict[str, Any]] = {}

    @classmethod
    def from_mesocycles(cls, mesocycles: Iterable[MesocycleRecord]) -> "_RecordIndex":
        index = cls()
        for mesocycle in mesocycles:
            index.add(mesocycle)
            for microcycle in mesocycle.microcycles:
                index.add(microcycle)
                for session in microcycle.sessions:
                    index.add(session)
                    for exercise in session.exercises:
                        index.add(exercise)
                    for technique in session.techniques:
                        index.add(technique)
        return index

    def add(self, record: Any) -> None:
        self._records.setdefault(type(record), {})[record.id] = record

    def __contains__(self, key: Tuple[Type, str]) -> bool:
        record_cls, record_id = key
        return record_id in self._records.get(record_cls, {})

    def take(self, record_cls: Type, record_id: str) -> Any:
        """Return the stored row for reuse, or a fresh one for a new id."""
        record = self._records.get(record_cls, {}).pop(record_id, None)
        if record is None:
            record = record_cls(id=record_id)
        return record

    def leftover_nodes(self) -> Dict[EntityType, List[str]]:
        """Ids of hierarchy nodes never taken, i.e. removed by the sync."""
        return {
            entity_type: list(self._records.get(record_cls, {}))
            for entity_type, record_cls in _NODE_RECORDS.items()
        }


_NODE_RECORDS = {
    EntityType.MESOCYCLE: MesocycleRecord,
    EntityType.MICROCYCLE: MicrocycleRecord,
    EntityType.SESSION: SessionRecord,
}


# ============================================================================
# Repository
# ============================================================================

class ProgramRepository:
    """
    Reads and writes program trees with owner checks on every operation.

    Writes are never retried: a StorageError on save means the caller
    should reload and decide.
    """

    def __init__(self, db: Session):
        """
        Initialize repository.

        Args:
            db: SQLAlchemy session; the repository commits its own writes
        """
        self.db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _get_owned(self, program_id: str, owner_id: str) -> ProgramRecord:
        record = self.db.get(ProgramRecord, program_id)
        if record is None:
            raise NotFoundError(
                f"Program '{program_id}' not found", details={"program_id": program_id}
            )
        if record.user_id != owner_id:
            logger.warning("User %s denied access to program %s", owner_id, program_id)
            raise PermissionDeniedError(
                "You do not have access to this program", details={"program_id": program_id}
            )
        return record

    def load_program(self, program_id: str, owner_id: str) -> PeriodizationProgram:
        """
        Load a complete program tree.

        Raises:
            NotFoundError: If no program has this id
            PermissionDeniedError: If the program belongs to another user
            StorageError: If the store fails
        """
        with storage_guard(self.db, "load_program", program_id=program_id):
            record = self._get_owned(program_id, owner_id)
            try:
                return program_from_record(record)
            except PydanticValidationError as e:
                logger.error("Stored program %s failed validation: %s", program_id, e)
                raise StorageError(
                    "Stored program data is corrupted", cause=e, details={"program_id": program_id}
                ) from e

    def list_programs(self, owner_id: str, active_only: bool = False) -> List[ProgramSummary]:
        with storage_guard(self.db, "list_programs", owner_id=owner_id):
            query = select(ProgramRecord).where(ProgramRecord.user_id == owner_id)
            if active_only:
                query = query.where(ProgramRecord.is_active.is_(True))
            records = self.db.scalars(query.order_by(ProgramRecord.updated_at.desc())).all()

            return [
                ProgramSummary(
                    id=record.id,
                    name=record.name,
                    periodization_type=record.periodization_type,
                    goal=record.goal,
                    training_level=record.training_level,
                    frequency=record.frequency,
                    is_active=record.is_active,
                    mesocycle_count=len(record.mesocycles),
                    total_weeks=sum(m.duration_weeks for m in record.mesocycles),
                    version=record.version,
                    updated_at=record.updated_at,
                )
                for record in records
            ]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save_program(self, program: PeriodizationProgram) -> PeriodizationProgram:
        """
        Upsert a complete program tree keyed by ``program.id``.

        Args:
            program: Program tree; ``version`` must match the stored version
                when the program already exists

        Returns:
            The persisted program with its new version and timestamps

        Raises:
            ConflictError: On structural collisions, a stale version, or an
                id already used outside this program
            PermissionDeniedError: If the stored program has another owner
            StorageError: If the store fails
        """
        validate_structure(program)

        with storage_guard(self.db, "save_program", program_id=program.id):
            record = self.db.get(ProgramRecord, program.id)

            if record is None:
                record = ProgramRecord(id=program.id, version=0, created_at=utcnow())
                index = _RecordIndex()
                is_new = True
            else:
                if record.user_id != program.user_id:
                    logger.warning(
                        "User %s attempted to overwrite program %s", program.user_id, program.id
                    )
                    raise PermissionDeniedError(
                        "You do not have access to this program", details={"program_id": program.id}
                    )
                self._check_version(record, program.version)
                index = _RecordIndex.from_mesocycles(record.mesocycles)
                is_new = False

            self._check_new_ids(index, program.mesocycles)

            _apply_program(record, program)
            record.mesocycles = [self._sync_mesocycle(index, m) for m in program.mesocycles]
            self._delete_associations(index.leftover_nodes())
            self._touch(record)
            if is_new:
                self.db.add(record)
            self.db.commit()

            logger.info(
                "%s program %s (version %d, %s)",
                "Created" if is_new else "Updated",
                record.id,
                record.version,
                program.count_entities(),
            )
            return program_from_record(record)

    def save_mesocycle(
        self,
        program_id: str,
        owner_id: str,
        mesocycle: Mesocycle,
        expected_version: Optional[int] = None,
    ) -> PeriodizationProgram:
        """
        Insert or replace a single mesocycle subtree, leaving siblings untouched.

        Raises:
            NotFoundError, PermissionDeniedError: As for load_program
            ConflictError: On position collision, duplicate weeks, stale
                ``expected_version`` or foreign ids
            ValidationError: On weeks beyond the mesocycle duration
            StorageError: If the store fails
        """
        with storage_guard(self.db, "save_mesocycle", program_id=program_id, mesocycle_id=mesocycle.id):
            record = self._get_owned(program_id, owner_id)
            if expected_version is not None:
                self._check_version(record, expected_version)

            siblings = [m for m in record.mesocycles if m.id != mesocycle.id]
            if any(m.position == mesocycle.position for m in siblings):
                raise ConflictError(
                    f"Position {mesocycle.position} is already used by another mesocycle",
                    details={"program_id": program_id, "position": mesocycle.position},
                )

            # Structural checks on the subtree alone
            current = program_from_record(record)
            current.mesocycles = [m for m in current.mesocycles if m.id != mesocycle.id] + [mesocycle]
            validate_structure(current)

            existing = [m for m in record.mesocycles if m.id == mesocycle.id]
            index = _RecordIndex.from_mesocycles(existing)
            self._check_new_ids(index, [mesocycle])

            updated = self._sync_mesocycle(index, mesocycle)
            record.mesocycles = sorted(siblings + [updated], key=lambda m: m.position)
            self._delete_associations(index.leftover_nodes())
            self._touch(record)
            self.db.commit()

            logger.info("Saved mesocycle %s of program %s (version %d)", mesocycle.id, program_id, record.version)
            return program_from_record(record)

    def update_exercise(
        self,
        program_id: str,
        owner_id: str,
        exercise: PeriodizedExercise,
        expected_version: Optional[int] = None,
    ) -> PeriodizationProgram:
        """
        Update one prescribed exercise row in place.

        Raises:
            NotFoundError: If the program or the exercise within it does not exist
            PermissionDeniedError: If the program belongs to another user
            ConflictError: On a stale ``expected_version``
            StorageError: If the store fails
        """
        with storage_guard(self.db, "update_exercise", program_id=program_id, exercise_id=exercise.id):
            record = self._get_owned(program_id, owner_id)
            if expected_version is not None:
                self._check_version(record, expected_version)

            index = _RecordIndex.from_mesocycles(record.mesocycles)
            if (SessionExerciseRecord, exercise.id) not in index:
                raise NotFoundError(
                    f"Exercise '{exercise.id}' not found in program",
                    details={"program_id": program_id, "exercise_id": exercise.id},
                )

            _apply_exercise(index.take(SessionExerciseRecord, exercise.id), exercise)
            self._touch(record)
            self.db.commit()
            return program_from_record(record)

    def delete_program(self, program_id: str, owner_id: str) -> None:
        """
        Delete a program, every node under it and objective associations to those nodes.

        Raises:
            NotFoundError, PermissionDeniedError: As for load_program
            StorageError: If the store fails
        """
        with storage_guard(self.db, "delete_program", program_id=program_id):
            record = self._get_owned(program_id, owner_id)
            self._delete_associations(program_from_record(record).node_ids())
            self.db.delete(record)
            self.db.commit()
            logger.info("Deleted program %s for user %s", program_id, owner_id)

    def node_exists(self, entity_type: EntityType, entity_id: str, owner_id: str) -> bool:
        """Whether a hierarchy node exists inside one of ``owner_id``'s programs."""
        joins = {
            EntityType.PROGRAM: select(ProgramRecord.id).where(ProgramRecord.id == entity_id),
            EntityType.MESOCYCLE: select(MesocycleRecord.id)
            .join(ProgramRecord)
            .where(MesocycleRecord.id == entity_id),
            EntityType.MICROCYCLE: select(MicrocycleRecord.id)
            .join(MesocycleRecord)
            .join(ProgramRecord)
            .where(MicrocycleRecord.id == entity_id),
            EntityType.SESSION: select(SessionRecord.id)
            .join(MicrocycleRecord)
            .join(MesocycleRecord)
            .join(ProgramRecord)
            .where(SessionRecord.id == entity_id),
        }
        query = joins[entity_type].where(ProgramRecord.user_id == owner_id)
        with storage_guard(self.db, "node_exists", entity_type=entity_type.value, entity_id=entity_id):
            return self.db.scalar(query) is not None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_version(self, record: ProgramRecord, version: int) -> None:
        if record.version != version:
            raise ConflictError(
                f"Program was modified by another client (stored version {record.version}, "
                f"received {version}). Reload and retry.",
                details={"program_id": record.id, "stored_version": record.version, "version": version},
            )

    def _check_new_ids(self, index: _RecordIndex, mesocycles: Iterable[Mesocycle]) -> None:
        """Reject new nodes whose id already belongs to a row outside this tree."""
        new_ids: Dict[Type, List[str]] = {}
        for record_cls, node_id in _iter_tree_ids(mesocycles):
            if (record_cls, node_id) not in index:
                new_ids.setdefault(record_cls, []).append(node_id)

        for record_cls, ids in new_ids.items():
            taken = self.db.scalars(select(record_cls.id).where(record_cls.id.in_(ids))).all()
            if taken:
                raise ConflictError(
                    f"Ids already in use outside this program: {sorted(taken)}",
                    details={"ids": sorted(taken)},
                )

    def _delete_associations(self, node_ids: Dict[EntityType, List[str]]) -> None:
        """Drop objective associations pointing at nodes that no longer exist."""
        for entity_type, ids in node_ids.items():
            if ids:
                result = self.db.execute(
                    delete(ObjectiveAssociationRecord).where(
                        ObjectiveAssociationRecord.entity_type == entity_type.value,
                        ObjectiveAssociationRecord.entity_id.in_(ids),
                    )
                )
                if result.rowcount:
                    logger.info(
                        "Removed %d associations to deleted %s nodes", result.rowcount, entity_type.value
                    )

    def _touch(self, record: ProgramRecord) -> None:
        record.version = (record.version or 0) + 1
        record.updated_at = utcnow()

    def _sync_mesocycle(self, index: _RecordIndex, mesocycle: Mesocycle) -> MesocycleRecord:
        record = index.take(MesocycleRecord, mesocycle.id)
        _apply_mesocycle(record, mesocycle)
        record.microcycles = [self._sync_microcycle(index, mc) for mc in mesocycle.microcycles]
        return record

    def _sync_microcycle(self, index: _RecordIndex, microcycle: Microcycle) -> MicrocycleRecord:
        record = index.take(MicrocycleRecord, microcycle.id)
        _apply_microcycle(record, microcycle)
        record.sessions = [
            self._sync_session(index, session, sort_index)
            for sort_index, session in enumerate(microcycle.sessions)
        ]
        return record

    def _sync_session(
        self, index: _RecordIndex, session: PeriodizedSession, sort_index: int
    ) -> SessionRecord:
        record = index.take(SessionRecord, session.id)
        _apply_session(record, session, sort_index)

        exercises = []
        for exercise in session.exercises:
            exercise_record = index.take(SessionExerciseRecord, exercise.id)
            _apply_exercise(exercise_record, exercise)
            exercises.append(exercise_record)
        record.exercises = exercises

        techniques = []
        for technique in session.techniques:
            technique_record = index.take(SpecialTechniqueRecord, technique.id)
            _apply_technique(technique_record, technique)
            techniques.append(technique_record)
        record.techniques = techniques
        return record
