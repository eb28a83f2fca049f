"""
Tests for template-based program generation.

Covers:
- Configuration lookup for every level/goal pair
- Block structure, deload weeks and progressive multipliers
- Frequency defaults, warnings and validation
- Generated programs pass whole-tree validation
"""

from datetime import date, timedelta

import pytest

from periodization.errors import ValidationError
from periodization.schemas import (
    DeloadTiming,
    DeloadType,
    PeriodizationType,
    TrainingGoal,
    TrainingLevel,
    TrainingPhase,
)
from periodization.templates import (
    DELOAD_STRATEGIES,
    PERIODIZATION_CONFIGS,
    WEEKLY_SPLITS,
    ProgramTemplateGenerator,
    get_config,
)

OWNER = "user-1"


@pytest.fixture
def generator(builder):
    return ProgramTemplateGenerator(builder)


def test_every_level_and_goal_has_a_config():
    for level in TrainingLevel:
        for goal in TrainingGoal:
            config = get_config(level, goal)
            low, high = config.frequency_range
            assert 1 <= low <= high <= 7
            assert low <= config.default_frequency() <= high


def test_get_config_rejects_unknown_values():
    with pytest.raises(ValidationError):
        get_config("beginner", "strength")
    with pytest.raises(ValidationError):
        get_config("advanced", "flexibility")


def test_intermediate_strength_program(generator):
    program = generator.generate(OWNER, "Strength Block", "intermediate", "strength")
    config = PERIODIZATION_CONFIGS[TrainingLevel.INTERMEDIATE][TrainingGoal.STRENGTH]

    assert program.periodization_type == PeriodizationType.BLOCK
    assert program.frequency == config.default_frequency()
    assert [m.phase for m in program.mesocycles] == config.phases
    assert [m.position for m in program.mesocycles] == list(range(len(config.phases)))
    assert program.total_weeks() == config.mesocycle_weeks * len(config.phases)

    first_block = program.mesocycles[0]
    assert first_block.phase == TrainingPhase.HYPERTROPHY
    assert len(first_block.microcycles) == first_block.duration_weeks
    assert [mc.is_deload for mc in first_block.microcycles] == [False] * 5 + [True]
    assert all(len(mc.sessions) == program.frequency for mc in first_block.microcycles)


def test_every_level_and_goal_has_a_deload_strategy():
    for level in TrainingLevel:
        for goal in TrainingGoal:
            strategy = DELOAD_STRATEGIES[level][goal]
            assert strategy.duration_days == 7
            if level == TrainingLevel.INTERMEDIATE:
                assert strategy.timing == DeloadTiming.PLANNED
            else:
                assert strategy.timing == DeloadTiming.AUTOREGULATED


def test_combined_deload_reduces_volume_and_intensity(generator):
    program = generator.generate(OWNER, "Ramp", "intermediate", "hypertrophy", frequency=4)
    block = program.mesocycles[0]
    load_weeks = [mc for mc in block.microcycles if not mc.is_deload]
    deload = block.microcycles[-1]

    multipliers = [mc.volume_multiplier for mc in load_weeks]
    assert multipliers == sorted(multipliers)
    assert multipliers[0] == 1.0
    assert deload.volume_multiplier == 0.7
    assert deload.intensity_multiplier == 0.85

    assert block.deload_strategy.type == DeloadType.COMBINED
    assert load_weeks[0].total_sets() > deload.total_sets()

    main_lift = deload.sessions[0].exercises[0]
    assert main_lift.exercise_id == "bench-press"
    assert main_lift.sets == 3


def test_intensity_deload_raises_rir(generator):
    program = generator.generate(OWNER, "Strength Block", "intermediate", "strength")
    block = program.mesocycles[0]
    first_week, deload = block.microcycles[0], block.microcycles[-1]

    assert block.deload_strategy.type == DeloadType.INTENSITY
    assert deload.volume_multiplier == 1.0
    assert deload.intensity_multiplier == 0.8
    assert deload.sessions[0].exercises[0].sets == first_week.sessions[0].exercises[0].sets
    assert deload.sessions[0].exercises[0].rir == first_week.sessions[0].exercises[0].rir + 2


def test_frequency_deload_drops_training_days(generator):
    program = generator.generate(OWNER, "Base Building", "intermediate", "endurance")
    block = program.mesocycles[0]
    first_week, deload = block.microcycles[0], block.microcycles[-1]

    assert program.frequency == 5
    assert block.deload_strategy.type == DeloadType.FREQUENCY
    assert block.deload_strategy.frequency_reduction == 1
    assert block.deload_strategy.volume_reduction == 0
    assert deload.is_deload
    assert deload.volume_multiplier == 1.0
    assert len(first_week.sessions) == 5
    assert [s.day_of_week for s in deload.sessions] == [1, 2, 3, 5]
    assert deload.sessions[0].exercises[0].sets == first_week.sessions[0].exercises[0].sets


def test_elite_endurance_deload_removes_three_days(generator):
    program = generator.generate(OWNER, "Volume Season", "elite", "endurance")
    deload = program.mesocycles[0].microcycles[-1]

    assert program.frequency == 7
    assert program.mesocycles[0].deload_strategy.timing == DeloadTiming.AUTOREGULATED
    assert len(deload.sessions) == 4


def test_generated_programs_are_valid(builder, generator):
    for level in TrainingLevel:
        for goal in TrainingGoal:
            program = generator.generate(OWNER, f"{level.value} {goal.value}", level, goal)
            builder.validate(program)
            assert builder.check_completeness(program) == []


def test_split_follows_frequency(generator):
    program = generator.generate(OWNER, "Three Days", "intermediate", "general_fitness", frequency=3)
    week = program.mesocycles[0].microcycles[0]

    assert [(s.day_of_week, s.name) for s in week.sessions] == WEEKLY_SPLITS[3]


def test_frequency_outside_recommended_range_warns(generator):
    program = generator.generate(OWNER, "Busy Schedule", "intermediate", "strength", frequency=2)

    assert program.frequency == 2
    assert len(generator.warnings) == 1
    assert "outside the recommended range" in generator.warnings[0]


@pytest.mark.parametrize("frequency", [0, 8])
def test_invalid_frequency_is_rejected(generator, frequency):
    with pytest.raises(ValidationError, match="Frequency"):
        generator.generate(OWNER, "Invalid", "intermediate", "strength", frequency=frequency)


def test_end_date_is_derived_from_blocks(generator):
    start = date(2025, 1, 6)

    program = generator.generate(OWNER, "Dated", "elite", "power", start_date=start)

    assert program.start_date == start
    assert program.end_date == start + timedelta(weeks=program.total_weeks()) - timedelta(days=1)


def test_decisions_are_recorded_and_reset(generator):
    generator.generate(OWNER, "First", "intermediate", "strength", frequency=2)
    points = {d.decision_point for d in generator.template_decisions}

    assert points == {
        "Periodization Model",
        "Training Frequency and Split",
        "Deload Strategy",
        "Block Structure",
    }

    generator.generate(OWNER, "Second", "advanced", "hypertrophy")
    assert len(generator.template_decisions) == 4
    assert generator.warnings == []
