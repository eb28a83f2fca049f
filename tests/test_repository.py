"""
Tests for program persistence.

Covers:
- Full-tree round trip through the normalized tables
- Ownership checks (not found vs. permission denied)
- Optimistic version checks on full and partial saves
- Partial saves of one mesocycle and one exercise
- Delete cascades, including objective associations
"""

import pytest
from sqlalchemy import func, select, text
from sqlalchemy.exc import OperationalError

from periodization.database import (
    MicrocycleRecord,
    ObjectiveAssociationRecord,
    SessionExerciseRecord,
    SessionRecord,
    get_session_factory,
)
from periodization.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    ValidationError,
)
from periodization.repository import ProgramRepository, storage_guard
from periodization.schemas import EntityType, Mesocycle, TrainingPhase

OWNER = "user-1"
OTHER_USER = "user-2"


def _count(db, record_cls):
    return db.scalar(select(func.count()).select_from(record_cls))


def test_save_and_load_round_trip(repository, sample_program, engine):
    saved = repository.save_program(sample_program)

    assert saved.version == 1
    assert saved.created_at is not None

    fresh_db = get_session_factory(engine)()
    try:
        loaded = ProgramRepository(fresh_db).load_program(sample_program.id, OWNER)
    finally:
        fresh_db.close()

    assert loaded.version == 1
    assert loaded.name == "Spring Hypertrophy"
    assert [m.name for m in loaded.mesocycles] == ["Accumulation", "Intensification"]

    week_1 = loaded.mesocycles[0].microcycles[0]
    bench = week_1.sessions[0].exercises[0]
    assert bench.exercise_id == "bench-press"
    assert bench.sets == 4
    assert bench.reps == "8-12"
    assert bench.load == 80
    assert week_1.sessions[1].exercises[0].tempo == "3-1-X-0"

    deload = loaded.mesocycles[0].microcycles[1]
    assert deload.is_deload
    assert deload.volume_multiplier == 0.5
    assert loaded.mesocycles[0].deload_strategy.volume_reduction == 50


def test_load_missing_program(repository):
    with pytest.raises(NotFoundError):
        repository.load_program("does-not-exist", OWNER)


def test_load_other_users_program(repository, sample_program):
    repository.save_program(sample_program)

    with pytest.raises(PermissionDeniedError):
        repository.load_program(sample_program.id, OTHER_USER)


def test_other_user_cannot_overwrite(repository, sample_program):
    saved = repository.save_program(sample_program)
    hijacked = saved.model_copy(update={"user_id": OTHER_USER})

    with pytest.raises(PermissionDeniedError):
        repository.save_program(hijacked)

    assert repository.load_program(sample_program.id, OWNER).user_id == OWNER


def test_stale_version_is_rejected(repository, sample_program):
    first = repository.save_program(sample_program)
    second_client = first.model_copy(deep=True)

    first.name = "Edited by client A"
    assert repository.save_program(first).version == 2

    second_client.name = "Edited by client B"
    with pytest.raises(ConflictError, match="modified by another client"):
        repository.save_program(second_client)

    assert repository.load_program(sample_program.id, OWNER).name == "Edited by client A"


def test_save_removes_deleted_nodes_and_keeps_ids(repository, sample_program, db):
    saved = repository.save_program(sample_program)
    hypertrophy = saved.mesocycles[0]
    kept_session_id = hypertrophy.microcycles[0].sessions[0].id

    hypertrophy.microcycles = hypertrophy.microcycles[:1]
    hypertrophy.microcycles[0].sessions[0].exercises[0].sets = 6
    updated = repository.save_program(saved)

    assert len(updated.mesocycles[0].microcycles) == 1
    assert updated.mesocycles[0].microcycles[0].sessions[0].id == kept_session_id
    assert updated.mesocycles[0].microcycles[0].sessions[0].exercises[0].sets == 6
    assert _count(db, MicrocycleRecord) == 1
    assert _count(db, SessionRecord) == 2
    assert _count(db, SessionExerciseRecord) == 3


def test_save_rejects_duplicate_positions(repository, sample_program):
    sample_program.mesocycles[1].position = 0

    with pytest.raises(ConflictError):
        repository.save_program(sample_program)

    with pytest.raises(NotFoundError):
        repository.load_program(sample_program.id, OWNER)


def test_list_programs_is_scoped_to_owner(repository, sample_program, builder):
    repository.save_program(sample_program)
    other = builder.create_program(
        owner_id=OTHER_USER,
        name="Someone else's",
        periodization_type="linear",
        goal="power",
        training_level="elite",
        frequency=5,
    )
    repository.save_program(other)

    summaries = repository.list_programs(OWNER)

    assert [s.id for s in summaries] == [sample_program.id]
    assert summaries[0].mesocycle_count == 2
    assert summaries[0].total_weeks == 7


def test_save_mesocycle_leaves_siblings_untouched(repository, sample_program):
    saved = repository.save_program(sample_program)
    strength = saved.mesocycles[1].model_copy(deep=True)
    strength.volume_level = 3
    strength.microcycles = []

    updated = repository.save_mesocycle(saved.id, OWNER, strength, expected_version=saved.version)

    assert updated.version == saved.version + 1
    assert updated.mesocycles[1].volume_level == 3
    assert updated.mesocycles[0].model_dump() == saved.mesocycles[0].model_dump()


def test_save_mesocycle_appends_new_block(repository, sample_program):
    saved = repository.save_program(sample_program)
    peaking = Mesocycle(phase=TrainingPhase.POWER, duration_weeks=2, position=2, name="Peaking")

    updated = repository.save_mesocycle(saved.id, OWNER, peaking)

    assert [m.name for m in updated.mesocycles] == ["Accumulation", "Intensification", "Peaking"]


def test_save_mesocycle_checks_version_and_position(repository, sample_program):
    saved = repository.save_program(sample_program)
    clash = Mesocycle(phase=TrainingPhase.POWER, duration_weeks=2, position=0)

    with pytest.raises(ConflictError, match="Position 0"):
        repository.save_mesocycle(saved.id, OWNER, clash)
    with pytest.raises(ConflictError, match="modified by another client"):
        repository.save_mesocycle(saved.id, OWNER, saved.mesocycles[1], expected_version=0)


def test_save_mesocycle_validates_week_numbers(repository, sample_program):
    saved = repository.save_program(sample_program)
    hypertrophy = saved.mesocycles[0]
    hypertrophy.duration_weeks = 2
    hypertrophy.microcycles[1].week_number = 3

    with pytest.raises(ValidationError, match="exceed"):
        repository.save_mesocycle(saved.id, OWNER, hypertrophy)


def test_update_exercise_in_place(repository, sample_program):
    saved = repository.save_program(sample_program)
    bench = saved.mesocycles[0].microcycles[0].sessions[0].exercises[0]
    bench.sets = 5
    bench.load = 85

    updated = repository.update_exercise(saved.id, OWNER, bench, expected_version=1)

    stored = updated.mesocycles[0].microcycles[0].sessions[0].exercises[0]
    assert (stored.sets, stored.load) == (5, 85)
    assert updated.version == 2


def test_update_unknown_exercise(repository, sample_program):
    saved = repository.save_program(sample_program)
    stray = saved.mesocycles[0].microcycles[0].sessions[0].exercises[0].model_copy(update={"id": "nope"})

    with pytest.raises(NotFoundError, match="not found in program"):
        repository.update_exercise(saved.id, OWNER, stray)


def test_delete_program_cascades_to_associations(repository, tracker, sample_program, db):
    saved = repository.save_program(sample_program)
    objective = tracker.create_objective(OWNER, "strength", target_value=120, name="Bench 120")
    session_id = saved.mesocycles[0].microcycles[0].sessions[0].id
    tracker.associate(objective.id, OWNER, EntityType.PROGRAM, saved.id)
    tracker.associate(objective.id, OWNER, EntityType.SESSION, session_id)

    repository.delete_program(saved.id, OWNER)

    with pytest.raises(NotFoundError):
        repository.load_program(saved.id, OWNER)
    assert _count(db, SessionExerciseRecord) == 0
    assert _count(db, ObjectiveAssociationRecord) == 0
    assert tracker.get_objective(objective.id, OWNER).name == "Bench 120"


def test_removing_nodes_drops_their_associations(repository, tracker, sample_program, db):
    saved = repository.save_program(sample_program)
    objective = tracker.create_objective(OWNER, "strength", target_value=150, name="Squat 150")
    strength_id = saved.mesocycles[1].id
    tracker.associate(objective.id, OWNER, EntityType.PROGRAM, saved.id)
    tracker.associate(objective.id, OWNER, EntityType.MESOCYCLE, strength_id)

    saved.mesocycles = saved.mesocycles[:1]
    repository.save_program(saved)

    assert not repository.node_exists(EntityType.MESOCYCLE, strength_id, OWNER)
    assert tracker.associations_for(EntityType.MESOCYCLE, strength_id, OWNER) == []
    assert len(tracker.associations_for(EntityType.PROGRAM, saved.id, OWNER)) == 1
    assert _count(db, ObjectiveAssociationRecord) == 1


def test_save_mesocycle_drops_associations_of_removed_weeks(repository, tracker, sample_program, db):
    saved = repository.save_program(sample_program)
    objective = tracker.create_objective(OWNER, "hypertrophy", target_value=40, name="Arms 40cm")
    hypertrophy = saved.mesocycles[0]
    kept_session_id = hypertrophy.microcycles[0].sessions[0].id
    deload_week_id = hypertrophy.microcycles[1].id
    deload_session_id = hypertrophy.microcycles[1].sessions[0].id
    tracker.associate(objective.id, OWNER, EntityType.SESSION, kept_session_id)
    tracker.associate(objective.id, OWNER, EntityType.MICROCYCLE, deload_week_id)
    tracker.associate(objective.id, OWNER, EntityType.SESSION, deload_session_id)

    hypertrophy.microcycles = hypertrophy.microcycles[:1]
    repository.save_mesocycle(saved.id, OWNER, hypertrophy, expected_version=saved.version)

    assert tracker.associations_for(EntityType.MICROCYCLE, deload_week_id, OWNER) == []
    assert tracker.associations_for(EntityType.SESSION, deload_session_id, OWNER) == []
    assert len(tracker.associations_for(EntityType.SESSION, kept_session_id, OWNER)) == 1
    assert _count(db, ObjectiveAssociationRecord) == 1


def test_delete_requires_ownership(repository, sample_program):
    repository.save_program(sample_program)

    with pytest.raises(PermissionDeniedError):
        repository.delete_program(sample_program.id, OTHER_USER)


def test_node_exists_is_scoped_to_owner(repository, sample_program):
    saved = repository.save_program(sample_program)
    microcycle_id = saved.mesocycles[0].microcycles[0].id

    assert repository.node_exists(EntityType.MICROCYCLE, microcycle_id, OWNER)
    assert not repository.node_exists(EntityType.MICROCYCLE, microcycle_id, OTHER_USER)
    assert not repository.node_exists(EntityType.SESSION, microcycle_id, OWNER)


def test_store_failures_become_storage_errors(db):
    with pytest.raises(StorageError) as exc_info:
        with storage_guard(db, "raw_query"):
            db.execute(text("SELECT * FROM missing_table"))

    assert isinstance(exc_info.value.cause, OperationalError)
    assert "missing_table" not in exc_info.value.message
