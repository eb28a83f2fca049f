"""
Tests for the program builder.

Covers:
- Program creation and metadata edits
- Mesocycle positions, reordering and removal
- Week numbers, session days and exercise prescriptions
- Catalog and special technique reference resolution
- Whole-tree validation and completeness warnings
"""

import pytest

from periodization.builder import ProgramBuilder, validate_structure
from periodization.errors import ConflictError, NotFoundError, ValidationError
from periodization.schemas import SpecialTechnique, TechniqueType, TrainingPhase

OWNER = "user-1"


def _program(builder, **overrides):
    fields = dict(
        owner_id=OWNER,
        name="Test Program",
        periodization_type="block",
        goal="strength",
        training_level="intermediate",
        frequency=4,
    )
    fields.update(overrides)
    return builder.create_program(**fields)


# ============================================================================
# Programs
# ============================================================================

def test_create_program_starts_empty(builder):
    program = _program(builder)

    assert program.user_id == OWNER
    assert program.mesocycles == []
    assert program.version == 0


@pytest.mark.parametrize("frequency", [0, 8, True])
def test_create_program_rejects_invalid_frequency(builder, frequency):
    with pytest.raises(ValidationError, match="Frequency"):
        _program(builder, frequency=frequency)


def test_create_program_requires_owner_and_name(builder):
    with pytest.raises(ValidationError, match="owner"):
        _program(builder, owner_id="")
    with pytest.raises(ValidationError, match="name"):
        _program(builder, name="  ")


def test_create_program_rejects_unknown_goal(builder):
    with pytest.raises(ValidationError) as exc_info:
        _program(builder, goal="get-huge")

    assert exc_info.value.details["errors"][0]["field"] == "goal"


def test_update_program_edits_metadata_only(builder, sample_program):
    builder.update_program(sample_program, name="Renamed", frequency=4)
    assert sample_program.name == "Renamed"
    assert sample_program.frequency == 4

    with pytest.raises(ValidationError, match="cannot be edited"):
        builder.update_program(sample_program, user_id="someone-else")

    with pytest.raises(ValidationError):
        builder.update_program(sample_program, frequency=9)
    assert sample_program.frequency == 4


# ============================================================================
# Mesocycles
# ============================================================================

def test_mesocycles_are_appended_in_position_order(builder):
    program = _program(builder)
    first = builder.add_mesocycle(program, phase="hypertrophy", duration_weeks=4)
    second = builder.add_mesocycle(program, phase="strength", duration_weeks=3)

    assert (first.position, second.position) == (0, 1)
    assert [m.id for m in program.mesocycles] == [first.id, second.id]


def test_duplicate_position_is_a_conflict_and_leaves_program_unchanged(builder):
    program = _program(builder)
    builder.add_mesocycle(program, phase="hypertrophy", duration_weeks=4, position=0)

    with pytest.raises(ConflictError, match="Position 0"):
        builder.add_mesocycle(program, phase="strength", duration_weeks=4, position=0)

    assert len(program.mesocycles) == 1


def test_deload_strategy_required_with_deload(builder):
    program = _program(builder)

    with pytest.raises(ValidationError, match="deload_strategy"):
        builder.add_mesocycle(program, phase="strength", duration_weeks=4, includes_deload=True)

    mesocycle = builder.add_mesocycle(
        program,
        phase="strength",
        duration_weeks=4,
        includes_deload=True,
        deload_strategy={"type": "intensity", "intensity_reduction": 15},
    )
    assert mesocycle.deload_strategy.intensity_reduction == 15


def test_reorder_mesocycles(builder, sample_program):
    ids = [m.id for m in sample_program.mesocycles]

    builder.reorder_mesocycles(sample_program, list(reversed(ids)))

    assert [m.id for m in sample_program.mesocycles] == list(reversed(ids))
    assert [m.position for m in sample_program.mesocycles] == [0, 1]

    with pytest.raises(ValidationError, match="exactly once"):
        builder.reorder_mesocycles(sample_program, ids[:1])


def test_remove_mesocycle(builder, sample_program):
    strength = sample_program.mesocycles[1]

    removed = builder.remove_mesocycle(sample_program, strength.id)

    assert removed.phase == TrainingPhase.STRENGTH
    assert len(sample_program.mesocycles) == 1
    with pytest.raises(NotFoundError):
        builder.remove_mesocycle(sample_program, strength.id)


# ============================================================================
# Microcycles, sessions, exercises
# ============================================================================

def test_week_numbers_are_unique_and_bounded(builder):
    program = _program(builder)
    mesocycle = builder.add_mesocycle(program, phase="hypertrophy", duration_weeks=3)

    assert builder.add_microcycle(mesocycle).week_number == 1
    assert builder.add_microcycle(mesocycle).week_number == 2

    with pytest.raises(ConflictError, match="Week 2"):
        builder.add_microcycle(mesocycle, week_number=2)
    with pytest.raises(ValidationError, match="outside"):
        builder.add_microcycle(mesocycle, week_number=4)
    assert len(mesocycle.microcycles) == 2


@pytest.mark.parametrize("week", ["2", True, 1.5])
def test_week_number_must_be_an_integer(builder, week):
    program = _program(builder)
    mesocycle = builder.add_mesocycle(program, phase="hypertrophy", duration_weeks=3)

    with pytest.raises(ValidationError, match="outside"):
        builder.add_microcycle(mesocycle, week_number=week)
    assert mesocycle.microcycles == []


@pytest.mark.parametrize("day", [0, 8, True, "1", 1.0])
def test_session_day_must_be_a_weekday(builder, day):
    program = _program(builder)
    microcycle = builder.add_microcycle(builder.add_mesocycle(program, phase="strength", duration_weeks=2))

    with pytest.raises(ValidationError, match="day_of_week"):
        builder.add_session(microcycle, day_of_week=day)


def test_sessions_may_share_a_day(builder):
    program = _program(builder)
    microcycle = builder.add_microcycle(builder.add_mesocycle(program, phase="strength", duration_weeks=2))

    builder.add_session(microcycle, day_of_week=2, name="AM")
    builder.add_session(microcycle, day_of_week=2, name="PM")

    assert [s.name for s in microcycle.sessions] == ["AM", "PM"]


def test_add_exercise_requires_catalog_entry(builder, sample_program):
    session = sample_program.mesocycles[0].microcycles[0].sessions[0]
    before = len(session.exercises)

    with pytest.raises(NotFoundError, match="not found in catalog"):
        builder.add_exercise(session, "underwater-basket-weaving", {"sets": 3, "reps": "10"})

    assert len(session.exercises) == before


def test_add_exercise_assigns_order(builder, sample_program):
    session = sample_program.mesocycles[0].microcycles[0].sessions[0]

    exercise = builder.add_exercise(session, "face-pull", {"sets": 3, "reps": "15-20"})

    assert exercise.exercise_order == 2
    assert session.exercises[-1].id == exercise.id


def test_add_exercise_rejects_invalid_prescription(builder, sample_program):
    session = sample_program.mesocycles[0].microcycles[0].sessions[0]

    with pytest.raises(ValidationError) as exc_info:
        builder.add_exercise(session, "bench-press", {"sets": 0, "reps": "8"})

    assert exc_info.value.details["errors"][0]["field"] == "sets"


def test_session_technique_can_be_referenced(builder, sample_program):
    session = sample_program.mesocycles[0].microcycles[0].sessions[0]
    technique = builder.attach_technique(
        session, {"name": "Rest-pause", "type": TechniqueType.REST_PAUSE, "parameters": {"mini_sets": 2}}
    )

    exercise = builder.add_exercise(
        session, "lateral-raise", {"sets": 2, "reps": "12-15", "special_technique_id": technique.id}
    )

    assert exercise.special_technique_id == technique.id
    with pytest.raises(NotFoundError, match="Special technique"):
        builder.add_exercise(session, "lateral-raise", {"sets": 2, "reps": "12", "special_technique_id": "nope"})


def test_attached_template_is_copied(builder, sample_program):
    session = sample_program.mesocycles[0].microcycles[0].sessions[0]
    template = SpecialTechnique(name="Drop set", type=TechniqueType.DROP_SET, is_template=True, user_id=OWNER)

    attached = builder.attach_technique(session, template)

    assert attached.id != template.id
    assert not attached.is_template


def test_technique_lookup_resolves_shared_templates(catalog, sample_program):
    template = SpecialTechnique(name="Myo-reps", type=TechniqueType.MYO_REPS, is_template=True, user_id=OWNER)

    def lookup(technique_id):
        if technique_id == template.id:
            return template
        raise NotFoundError(f"Special technique '{technique_id}' not found")

    builder = ProgramBuilder(catalog, technique_lookup=lookup)
    session = sample_program.mesocycles[0].microcycles[0].sessions[0]

    exercise = builder.add_exercise(
        session, "leg-curl", {"sets": 1, "reps": "20", "special_technique_id": template.id}
    )
    assert exercise.special_technique_id == template.id


# ============================================================================
# Whole-tree checks
# ============================================================================

def test_validate_accepts_sample_program(builder, sample_program):
    builder.validate(sample_program)


def test_validate_detects_duplicate_positions(builder, sample_program):
    sample_program.mesocycles[1].position = sample_program.mesocycles[0].position

    with pytest.raises(ConflictError, match="Duplicate mesocycle positions"):
        builder.validate(sample_program)


def test_validate_detects_duplicate_weeks(sample_program):
    weeks = sample_program.mesocycles[0].microcycles
    weeks[1].week_number = weeks[0].week_number

    with pytest.raises(ConflictError, match="Duplicate week numbers"):
        validate_structure(sample_program)


def test_validate_detects_dangling_catalog_reference(builder, sample_program):
    exercise = sample_program.mesocycles[0].microcycles[0].sessions[0].exercises[0]
    exercise.exercise_id = "no-such-lift"

    with pytest.raises(NotFoundError, match="no-such-lift"):
        builder.validate(sample_program)


def test_check_completeness_reports_soft_invariants(builder, sample_program):
    warnings = builder.check_completeness(sample_program)

    assert any("Accumulation: 2 of 4 weeks" in w for w in warnings)
    assert any("Intensification: 0 of 3 weeks" in w for w in warnings)


def test_check_completeness_empty_program(builder):
    program = _program(builder)

    assert builder.check_completeness(program) == ["Program 'Test Program' has no mesocycles"]
