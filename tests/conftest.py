"""Shared fixtures: exercise catalog, in-memory database and a sample program."""

import pytest

from periodization.builder import ProgramBuilder
from periodization.catalog import ExerciseCatalog
from periodization.database import Base, create_database_engine, get_session_factory
from periodization.objectives import ObjectiveTracker
from periodization.repository import ProgramRepository
from periodization.schemas import (
    DeloadType,
    PeriodizationType,
    TrainingGoal,
    TrainingLevel,
    TrainingPhase,
)

OWNER = "user-1"
OTHER_USER = "user-2"


@pytest.fixture
def catalog():
    """Exercise catalog shipped with the package."""
    return ExerciseCatalog.default()


@pytest.fixture
def builder(catalog):
    return ProgramBuilder(catalog)


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = create_database_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = get_session_factory(engine)()
    yield session
    session.close()


@pytest.fixture
def repository(db):
    return ProgramRepository(db)


@pytest.fixture
def tracker(db, repository):
    return ObjectiveTracker(db, repository)


@pytest.fixture
def sample_program(builder):
    """
    Two-block program: a 4-week hypertrophy block with two populated weeks
    (the second a deload) and an empty 3-week strength block.
    """
    program = builder.create_program(
        owner_id=OWNER,
        name="Spring Hypertrophy",
        periodization_type=PeriodizationType.BLOCK,
        goal=TrainingGoal.HYPERTROPHY,
        training_level=TrainingLevel.INTERMEDIATE,
        frequency=3,
    )
    hypertrophy = builder.add_mesocycle(
        program,
        phase=TrainingPhase.HYPERTROPHY,
        duration_weeks=4,
        name="Accumulation",
        includes_deload=True,
        deload_strategy={"type": DeloadType.VOLUME, "volume_reduction": 50},
    )
    builder.add_mesocycle(program, phase=TrainingPhase.STRENGTH, duration_weeks=3, name="Intensification")

    week_1 = builder.add_microcycle(hypertrophy, week_number=1)
    monday = builder.add_session(week_1, day_of_week=1, focus=["chest", "back"], name="Upper A")
    builder.add_exercise(monday, "bench-press", {"sets": 4, "reps": "8-12", "rir": 2, "load": 80})
    builder.add_exercise(monday, "barbell-row", {"sets": 3, "reps": "10", "rest_seconds": 120})
    thursday = builder.add_session(week_1, day_of_week=4, focus=["legs"], name="Lower A")
    builder.add_exercise(thursday, "back-squat", {"sets": 5, "reps": "5", "tempo": "3-1-X-0"})

    week_2 = builder.add_microcycle(hypertrophy, week_number=2, volume_multiplier=0.5, is_deload=True)
    deload_day = builder.add_session(week_2, day_of_week=1, name="Deload Upper")
    builder.add_exercise(deload_day, "bench-press", {"sets": 2, "reps": "8-12", "rir": 4})

    return program
