"""
Template-based program generation.

Builds a complete program tree from a training level and goal:
- Periodization type, block length and deload cadence from PERIODIZATION_CONFIGS
- One mesocycle per phase in the configured phase sequence
- Load weeks with ramping volume/intensity multipliers, then a deload week
  shaped by the DELOAD_STRATEGIES entry for the level and goal
- A weekly split chosen from the training frequency, filled with catalog exercises
- Every choice documented as a TemplateDecision
"""

import logging
from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field

from periodization.builder import ProgramBuilder
from periodization.errors import ValidationError
from periodization.schemas import (
    DeloadStrategy,
    DeloadTiming,
    DeloadType,
    Mesocycle,
    Microcycle,
    PeriodizationProgram,
    PeriodizationType,
    PeriodizedSession,
    ProgressionPattern,
    TemplateDecision,
    TrainingGoal,
    TrainingLevel,
    TrainingPhase,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Configuration Tables
# ============================================================================

class PeriodizationConfig(BaseModel):
    """Recommended program parameters for one (level, goal) pair."""

    periodization_type: PeriodizationType
    mesocycle_weeks: int = Field(..., ge=2, le=8, description="Block length, deload week included")
    deload_frequency: int = Field(..., ge=2, description="Deload every N weeks")
    volume_range: Tuple[int, int] = Field(..., description="Weekly sets per muscle group")
    intensity_range: Tuple[int, int] = Field(..., description="Percent of 1RM")
    frequency_range: Tuple[int, int] = Field(..., description="Sessions per week")
    phases: List[TrainingPhase] = Field(..., min_length=1, description="Block phases in order")

    def default_frequency(self) -> int:
        low, high = self.frequency_range
        return (low + high + 1) // 2


H, S, P, E = (
    TrainingPhase.HYPERTROPHY,
    TrainingPhase.STRENGTH,
    TrainingPhase.POWER,
    TrainingPhase.ENDURANCE,
)


def _config(type_, weeks, volume, intensity, frequency, phases):
    return PeriodizationConfig(
        periodization_type=type_,
        mesocycle_weeks=weeks,
        deload_frequency=weeks,
        volume_range=volume,
        intensity_range=intensity,
        frequency_range=frequency,
        phases=phases,
    )


BLOCK = PeriodizationType.BLOCK
CONJUGATE = PeriodizationType.CONJUGATE
UNDULATING = PeriodizationType.UNDULATING

PERIODIZATION_CONFIGS: Dict[TrainingLevel, Dict[TrainingGoal, PeriodizationConfig]] = {
    TrainingLevel.INTERMEDIATE: {
        TrainingGoal.STRENGTH: _config(BLOCK, 6, (12, 18), (75, 90), (4, 5), [H, S, S, P]),
        TrainingGoal.HYPERTROPHY: _config(UNDULATING, 6, (14, 22), (65, 85), (4, 6), [H, H, S, H]),
        TrainingGoal.ENDURANCE: _config(UNDULATING, 5, (18, 30), (55, 75), (4, 6), [H, E, E]),
        TrainingGoal.POWER: _config(CONJUGATE, 4, (10, 16), (70, 95), (4, 5), [S, P, P]),
        TrainingGoal.WEIGHT_LOSS: _config(UNDULATING, 5, (15, 25), (65, 80), (4, 6), [H, E, H, E]),
        TrainingGoal.BODY_RECOMPOSITION: _config(UNDULATING, 6, (12, 20), (70, 85), (4, 5), [H, S, H, S]),
        TrainingGoal.GENERAL_FITNESS: _config(UNDULATING, 5, (12, 18), (65, 80), (4, 5), [H, E, S]),
        TrainingGoal.SPORT_SPECIFIC: _config(BLOCK, 4, (10, 18), (70, 90), (3, 5), [H, S, P]),
    },
    TrainingLevel.ADVANCED: {
        TrainingGoal.STRENGTH: _config(CONJUGATE, 4, (12, 20), (75, 95), (4, 6), [H, S, P]),
        TrainingGoal.HYPERTROPHY: _config(UNDULATING, 5, (16, 25), (65, 85), (5, 6), [H, S, H, H]),
        TrainingGoal.ENDURANCE: _config(BLOCK, 4, (20, 35), (60, 80), (5, 7), [H, E, E]),
        TrainingGoal.POWER: _config(BLOCK, 4, (8, 16), (80, 97), (4, 6), [S, P, P]),
        TrainingGoal.WEIGHT_LOSS: _config(UNDULATING, 4, (18, 30), (70, 85), (5, 6), [H, H, E]),
        TrainingGoal.BODY_RECOMPOSITION: _config(UNDULATING, 5, (15, 25), (70, 90), (5, 6), [H, S, H, H]),
        TrainingGoal.GENERAL_FITNESS: _config(UNDULATING, 4, (14, 22), (65, 85), (4, 6), [H, E, S]),
        TrainingGoal.SPORT_SPECIFIC: _config(CONJUGATE, 3, (10, 20), (75, 95), (4, 6), [S, P]),
    },
    TrainingLevel.ELITE: {
        TrainingGoal.STRENGTH: _config(CONJUGATE, 3, (15, 25), (80, 100), (5, 7), [H, S]),
        TrainingGoal.HYPERTROPHY: _config(UNDULATING, 4, (18, 30), (70, 90), (5, 7), [H, H, H]),
        TrainingGoal.ENDURANCE: _config(BLOCK, 3, (25, 40), (65, 85), (6, 7), [E, E]),
        TrainingGoal.POWER: _config(BLOCK, 3, (10, 18), (85, 100), (5, 6), [S, P]),
        TrainingGoal.WEIGHT_LOSS: _config(UNDULATING, 3, (20, 35), (75, 90), (6, 7), [H, E]),
        TrainingGoal.BODY_RECOMPOSITION: _config(UNDULATING, 4, (18, 28), (75, 95), (5, 7), [H, S, H]),
        TrainingGoal.GENERAL_FITNESS: _config(UNDULATING, 3, (15, 25), (70, 90), (5, 6), [H, E]),
        TrainingGoal.SPORT_SPECIFIC: _config(CONJUGATE, 2, (12, 22), (80, 100), (5, 7), [P]),
    },
}

# Volume/intensity level (1-10) of a block by phase
PHASE_LEVELS: Dict[TrainingPhase, Tuple[int, int]] = {
    TrainingPhase.HYPERTROPHY: (8, 6),
    TrainingPhase.STRENGTH: (6, 8),
    TrainingPhase.POWER: (4, 9),
    TrainingPhase.ENDURANCE: (9, 4),
}

# (sets, reps, rir, rest_seconds, tempo) for the main lift and for accessories
PHASE_PRESCRIPTIONS: Dict[TrainingPhase, Dict[str, dict]] = {
    TrainingPhase.HYPERTROPHY: {
        "main": {"sets": 4, "reps": "8-12", "rir": 2, "rest_seconds": 120, "tempo": "3-1-2-0"},
        "accessory": {"sets": 3, "reps": "10-15", "rir": 2, "rest_seconds": 90},
    },
    TrainingPhase.STRENGTH: {
        "main": {"sets": 5, "reps": "3-5", "rir": 1, "rest_seconds": 240, "tempo": "2-1-X-0"},
        "accessory": {"sets": 3, "reps": "6-8", "rir": 2, "rest_seconds": 150},
    },
    TrainingPhase.POWER: {
        "main": {"sets": 5, "reps": "2-3", "rir": 3, "rest_seconds": 240, "tempo": "1-0-X-0"},
        "accessory": {"sets": 3, "reps": "5", "rir": 3, "rest_seconds": 120},
    },
    TrainingPhase.ENDURANCE: {
        "main": {"sets": 3, "reps": "15-20", "rir": 3, "rest_seconds": 60},
        "accessory": {"sets": 2, "reps": "15-20", "rir": 3, "rest_seconds": 45},
    },
}

# Session templates: name -> (focus tags, catalog exercise ids, main lift first)
SESSION_TEMPLATES: Dict[str, Tuple[List[str], List[str]]] = {
    "Full Body A": (["legs", "chest", "back"], ["back-squat", "bench-press", "barbell-row", "plank"]),
    "Full Body B": (["posterior-chain", "shoulders", "back"], ["deadlift", "overhead-press", "pull-up", "walking-lunge"]),
    "Full Body C": (["legs", "chest", "back"], ["front-squat", "incline-dumbbell-press", "lat-pulldown", "hip-thrust"]),
    "Upper": (["chest", "back", "shoulders", "arms"], ["bench-press", "barbell-row", "overhead-press", "pull-up", "triceps-pushdown", "barbell-curl"]),
    "Lower": (["quads", "hamstrings", "glutes", "calves"], ["back-squat", "romanian-deadlift", "leg-press", "leg-curl", "standing-calf-raise"]),
    "Push": (["chest", "shoulders", "triceps"], ["bench-press", "overhead-press", "incline-dumbbell-press", "dips", "lateral-raise", "triceps-pushdown"]),
    "Pull": (["back", "biceps", "rear-delts"], ["deadlift", "barbell-row", "pull-up", "face-pull", "barbell-curl"]),
    "Legs": (["quads", "hamstrings", "glutes", "calves"], ["back-squat", "romanian-deadlift", "walking-lunge", "leg-curl", "standing-calf-raise"]),
    "Conditioning": (["conditioning", "core"], ["kettlebell-swing", "rowing-erg", "box-jump", "plank"]),
}

# Weekly split and training days (Monday=1) by frequency
WEEKLY_SPLITS: Dict[int, List[Tuple[int, str]]] = {
    1: [(1, "Full Body A")],
    2: [(1, "Full Body A"), (4, "Full Body B")],
    3: [(1, "Full Body A"), (3, "Full Body B"), (5, "Full Body C")],
    4: [(1, "Upper"), (2, "Lower"), (4, "Upper"), (5, "Lower")],
    5: [(1, "Upper"), (2, "Lower"), (3, "Push"), (5, "Pull"), (6, "Legs")],
    6: [(1, "Push"), (2, "Pull"), (3, "Legs"), (4, "Push"), (5, "Pull"), (6, "Legs")],
    7: [(1, "Push"), (2, "Pull"), (3, "Legs"), (4, "Conditioning"), (5, "Push"), (6, "Pull"), (7, "Legs")],
}


def _deload(type_, volume=0, intensity=0, frequency=0, timing=DeloadTiming.PLANNED):
    return DeloadStrategy(
        type=type_,
        volume_reduction=volume,
        intensity_reduction=intensity,
        frequency_reduction=frequency,
        duration_days=7,
        timing=timing,
    )


INTENSITY, FREQUENCY, COMBINED = (
    DeloadType.INTENSITY,
    DeloadType.FREQUENCY,
    DeloadType.COMBINED,
)
AUTO = DeloadTiming.AUTOREGULATED

# Deload week by level and goal: (type, volume %, intensity %, training days removed)
DELOAD_STRATEGIES: Dict[TrainingLevel, Dict[TrainingGoal, DeloadStrategy]] = {
    TrainingLevel.INTERMEDIATE: {
        TrainingGoal.STRENGTH: _deload(INTENSITY, intensity=20),
        TrainingGoal.HYPERTROPHY: _deload(COMBINED, 30, 15),
        TrainingGoal.ENDURANCE: _deload(FREQUENCY, frequency=1),
        TrainingGoal.POWER: _deload(INTENSITY, intensity=25),
        TrainingGoal.WEIGHT_LOSS: _deload(COMBINED, 20, 10),
        TrainingGoal.BODY_RECOMPOSITION: _deload(COMBINED, 30, 15),
        TrainingGoal.GENERAL_FITNESS: _deload(COMBINED, 30, 10),
        TrainingGoal.SPORT_SPECIFIC: _deload(COMBINED, 30, 20),
    },
    TrainingLevel.ADVANCED: {
        TrainingGoal.STRENGTH: _deload(COMBINED, 40, 20, timing=AUTO),
        TrainingGoal.HYPERTROPHY: _deload(COMBINED, 50, 15, timing=AUTO),
        TrainingGoal.ENDURANCE: _deload(FREQUENCY, frequency=2, timing=AUTO),
        TrainingGoal.POWER: _deload(COMBINED, 50, 30, timing=AUTO),
        TrainingGoal.WEIGHT_LOSS: _deload(COMBINED, 30, 15, timing=AUTO),
        TrainingGoal.BODY_RECOMPOSITION: _deload(COMBINED, 40, 20, timing=AUTO),
        TrainingGoal.GENERAL_FITNESS: _deload(COMBINED, 40, 15, timing=AUTO),
        TrainingGoal.SPORT_SPECIFIC: _deload(COMBINED, 40, 25, timing=AUTO),
    },
    TrainingLevel.ELITE: {
        TrainingGoal.STRENGTH: _deload(COMBINED, 60, 30, 1, timing=AUTO),
        TrainingGoal.HYPERTROPHY: _deload(COMBINED, 70, 20, 1, timing=AUTO),
        TrainingGoal.ENDURANCE: _deload(FREQUENCY, frequency=3, timing=AUTO),
        TrainingGoal.POWER: _deload(COMBINED, 70, 40, 1, timing=AUTO),
        TrainingGoal.WEIGHT_LOSS: _deload(COMBINED, 50, 20, 1, timing=AUTO),
        TrainingGoal.BODY_RECOMPOSITION: _deload(COMBINED, 60, 25, 1, timing=AUTO),
        TrainingGoal.GENERAL_FITNESS: _deload(COMBINED, 50, 20, 1, timing=AUTO),
        TrainingGoal.SPORT_SPECIFIC: _deload(COMBINED, 60, 30, 1, timing=AUTO),
    },
}

VOLUME_STEP = 0.05  # Weekly volume increase across load weeks
INTENSITY_STEP = 0.025  # Weekly intensity increase across load weeks


def get_config(level: Union[TrainingLevel, str], goal: Union[TrainingGoal, str]) -> PeriodizationConfig:
    """
    Raises:
        ValidationError: If level or goal is not a known value
    """
    try:
        level = TrainingLevel(level)
        goal = TrainingGoal(goal)
    except ValueError as e:
        raise ValidationError(str(e), details={"level": str(level), "goal": str(goal)})
    return PERIODIZATION_CONFIGS[level][goal]


# ============================================================================
# Generator
# ============================================================================

class ProgramTemplateGenerator:
    """
    Generates complete programs from the recommended configuration of a
    training level and goal.

    Decisions are recorded in ``template_decisions`` and non-fatal concerns
    (such as a frequency outside the recommended range) in ``warnings``;
    both are reset on every call to ``generate``.
    """

    def __init__(self, builder: ProgramBuilder):
        self.builder = builder
        self.template_decisions: List[TemplateDecision] = []
        self.warnings: List[str] = []

    def generate(
        self,
        owner_id: str,
        name: str,
        level: Union[TrainingLevel, str],
        goal: Union[TrainingGoal, str],
        frequency: Optional[int] = None,
        start_date: Optional[date] = None,
        description: Optional[str] = None,
    ) -> PeriodizationProgram:
        """
        Generate a fully populated program.

        Args:
            owner_id: Program owner
            name: Program name
            level: Training level
            goal: Primary training goal
            frequency: Sessions per week; the middle of the recommended range if omitted
            start_date: Optional start date; the end date is derived from the block lengths
            description: Optional description

        Returns:
            PeriodizationProgram with every week, session and exercise populated

        Raises:
            ValidationError: On unknown level/goal, frequency outside [1, 7] or empty name/owner
            NotFoundError: If a session template references an exercise missing from the catalog
        """
        self.template_decisions = []
        self.warnings = []

        config = get_config(level, goal)
        level, goal = TrainingLevel(level), TrainingGoal(goal)
        frequency = self._determine_frequency(config, frequency)

        end_date = None
        if start_date is not None:
            end_date = start_date + timedelta(weeks=config.mesocycle_weeks * len(config.phases), days=-1)

        program = self.builder.create_program(
            owner_id=owner_id,
            name=name,
            periodization_type=config.periodization_type,
            goal=goal,
            training_level=level,
            frequency=frequency,
            description=description
            or f"{config.periodization_type.value.capitalize()} periodization for "
            f"{level.value} lifters training for {goal.value.replace('_', ' ')}",
            start_date=start_date,
            end_date=end_date,
        )

        self.template_decisions.append(
            TemplateDecision(
                decision_point="Periodization Model",
                input_factors=[f"training_level={level.value}", f"goal={goal.value}"],
                reasoning=f"{config.periodization_type.value.capitalize()} periodization is the "
                f"recommended model for {level.value} lifters pursuing {goal.value}. "
                f"Target weekly volume is {config.volume_range[0]}-{config.volume_range[1]} sets "
                f"per muscle group at {config.intensity_range[0]}-{config.intensity_range[1]}% 1RM.",
                outcome=config.periodization_type.value,
            )
        )

        deload = self._deload_strategy(config, level, goal)
        for phase in config.phases:
            self._build_mesocycle(program, config, phase, deload)

        self.template_decisions.append(
            TemplateDecision(
                decision_point="Block Structure",
                input_factors=[
                    f"phases={[p.value for p in config.phases]}",
                    f"mesocycle_weeks={config.mesocycle_weeks}",
                    f"deload_frequency={config.deload_frequency}",
                ],
                reasoning=f"Each phase becomes a {config.mesocycle_weeks}-week block: "
                f"{config.mesocycle_weeks - 1} load week(s) with progressive overload, "
                f"then a {deload.type.value} deload to dissipate accumulated fatigue.",
                outcome=f"{len(program.mesocycles)} mesocycles, {program.total_weeks()} weeks",
            )
        )

        logger.info(
            "Generated %s/%s template program %s with %d mesocycles",
            level.value,
            goal.value,
            program.id,
            len(program.mesocycles),
        )
        return program

    def _determine_frequency(self, config: PeriodizationConfig, frequency: Optional[int]) -> int:
        low, high = config.frequency_range
        if frequency is None:
            frequency = config.default_frequency()
            reasoning = f"No frequency requested; using the middle of the recommended {low}-{high} days."
        elif not isinstance(frequency, int) or isinstance(frequency, bool) or frequency not in WEEKLY_SPLITS:
            raise ValidationError(
                f"Frequency must be between 1 and 7 sessions per week, got {frequency}",
                details={"frequency": frequency},
            )
        elif low <= frequency <= high:
            reasoning = f"Requested frequency is within the recommended {low}-{high} days."
        else:
            reasoning = f"Requested frequency is outside the recommended {low}-{high} days; honoring it."
            self.warnings.append(
                f"Frequency {frequency} is outside the recommended range of {low}-{high} sessions per week"
            )

        split = ", ".join(f"day {day}: {template}" for day, template in WEEKLY_SPLITS[frequency])
        self.template_decisions.append(
            TemplateDecision(
                decision_point="Training Frequency and Split",
                input_factors=[f"frequency={frequency}", f"recommended_range={low}-{high}"],
                reasoning=reasoning,
                outcome=split,
            )
        )
        return frequency

    def _deload_strategy(
        self, config: PeriodizationConfig, level: TrainingLevel, goal: TrainingGoal
    ) -> DeloadStrategy:
        strategy = DELOAD_STRATEGIES[level][goal].model_copy()
        reductions = [
            f"volume by {strategy.volume_reduction:.0f}%",
            f"intensity by {strategy.intensity_reduction:.0f}%",
        ]
        if strategy.frequency_reduction:
            reductions.append(f"training days by {strategy.frequency_reduction}")
        self.template_decisions.append(
            TemplateDecision(
                decision_point="Deload Strategy",
                input_factors=[f"training_level={level.value}", f"goal={goal.value}"],
                reasoning=f"{strategy.timing.value.capitalize()} {strategy.type.value} deload in the "
                f"final week of every block, reducing {', '.join(reductions)}.",
                outcome=f"{strategy.type.value} deload every {config.deload_frequency} weeks",
            )
        )
        return strategy

    def _build_mesocycle(
        self,
        program: PeriodizationProgram,
        config: PeriodizationConfig,
        phase: TrainingPhase,
        deload: DeloadStrategy,
    ) -> Mesocycle:
        volume_level, intensity_level = PHASE_LEVELS[phase]
        includes_deload = config.deload_frequency <= config.mesocycle_weeks
        mesocycle = self.builder.add_mesocycle(
            program,
            phase=phase,
            duration_weeks=config.mesocycle_weeks,
            name=f"{phase.value.capitalize()} block {len(program.mesocycles) + 1}",
            volume_level=volume_level,
            intensity_level=intensity_level,
            includes_deload=includes_deload,
            deload_strategy=deload if includes_deload else None,
            volume_progression=ProgressionPattern.ASCENDING,
            intensity_progression=ProgressionPattern.ASCENDING,
        )

        load_weeks = config.mesocycle_weeks - 1 if includes_deload else config.mesocycle_weeks
        for week in range(load_weeks):
            microcycle = self.builder.add_microcycle(
                mesocycle,
                volume_multiplier=round(1.0 + VOLUME_STEP * week, 3),
                intensity_multiplier=round(1.0 + INTENSITY_STEP * week, 3),
                notes=f"Load week {week + 1} of {load_weeks}",
            )
            self._populate_week(program, microcycle, phase, microcycle.volume_multiplier)

        if includes_deload:
            microcycle = self.builder.add_microcycle(
                mesocycle,
                volume_multiplier=round(1.0 - deload.volume_reduction / 100, 3),
                intensity_multiplier=round(1.0 - deload.intensity_reduction / 100, 3),
                is_deload=True,
                notes="Deload week: reduce stress to allow recovery",
            )
            self._populate_week(program, microcycle, phase, microcycle.volume_multiplier, deload)

        return mesocycle

    def _populate_week(
        self,
        program: PeriodizationProgram,
        microcycle: Microcycle,
        phase: TrainingPhase,
        volume_multiplier: float,
        deload: Optional[DeloadStrategy] = None,
    ) -> None:
        split = WEEKLY_SPLITS[program.frequency]
        if deload is not None and deload.frequency_reduction:
            split = split[: max(1, len(split) - deload.frequency_reduction)]

        for day, template_name in split:
            focus, exercise_ids = SESSION_TEMPLATES[template_name]
            session = self.builder.add_session(
                microcycle,
                day_of_week=day,
                focus=focus,
                name=template_name,
                rir_target=PHASE_PRESCRIPTIONS[phase]["main"]["rir"] + (2 if deload else 0),
            )
            self._prescribe(session, exercise_ids, phase, volume_multiplier, deload)

    def _prescribe(
        self,
        session: PeriodizedSession,
        exercise_ids: List[str],
        phase: TrainingPhase,
        volume_multiplier: float,
        deload: Optional[DeloadStrategy],
    ) -> None:
        for index, exercise_id in enumerate(exercise_ids):
            prescription = dict(PHASE_PRESCRIPTIONS[phase]["main" if index == 0 else "accessory"])
            prescription["sets"] = max(1, int(prescription["sets"] * volume_multiplier + 0.5))
            if deload is not None and deload.intensity_reduction:
                prescription["rir"] = min(10, prescription["rir"] + 2)
            self.builder.add_exercise(session, exercise_id, prescription)
