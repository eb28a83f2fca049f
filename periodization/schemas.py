"""
Pydantic models for the periodization data model.

This module defines the core data structures for:
- Periodization programs: Program -> Mesocycle -> Microcycle -> Session -> Exercise
- Deload strategies and special techniques attached to the hierarchy
- Training objectives and their associations to hierarchy nodes
- Exercise catalog entries referenced (never owned) by prescribed exercises
"""

import re
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator


def new_id() -> str:
    """Generate an opaque entity identifier."""
    return str(uuid4())


# ============================================================================
# Enumerations
# ============================================================================

class PeriodizationType(str, Enum):
    """Macro strategy governing how volume and intensity change over time."""
    LINEAR = "linear"
    UNDULATING = "undulating"
    BLOCK = "block"
    CONJUGATE = "conjugate"
    DUP = "dup"  # Daily undulating
    WUP = "wup"  # Weekly undulating


class TrainingGoal(str, Enum):
    """Primary goal of a program."""
    STRENGTH = "strength"
    HYPERTROPHY = "hypertrophy"
    ENDURANCE = "endurance"
    POWER = "power"
    WEIGHT_LOSS = "weight_loss"
    BODY_RECOMPOSITION = "body_recomposition"
    GENERAL_FITNESS = "general_fitness"
    SPORT_SPECIFIC = "sport_specific"


class TrainingLevel(str, Enum):
    """Training age of the program owner."""
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    ELITE = "elite"


class TrainingPhase(str, Enum):
    """Dominant adaptation targeted by a mesocycle."""
    HYPERTROPHY = "hypertrophy"
    STRENGTH = "strength"
    POWER = "power"
    ENDURANCE = "endurance"
    DELOAD = "deload"


class ProgressionPattern(str, Enum):
    """How volume or intensity moves across the weeks of a mesocycle."""
    ASCENDING = "ascending"
    DESCENDING = "descending"
    WAVE = "wave"
    STEP = "step"
    CONSTANT = "constant"


class DeloadType(str, Enum):
    """Which training variable a deload reduces."""
    VOLUME = "volume"
    INTENSITY = "intensity"
    FREQUENCY = "frequency"
    COMBINED = "combined"


class DeloadTiming(str, Enum):
    """When a deload is triggered."""
    PLANNED = "planned"
    AUTOREGULATED = "autoregulated"
    REACTIVE = "reactive"


class TechniqueType(str, Enum):
    """Intensification techniques applied to a prescribed exercise."""
    REST_PAUSE = "rest_pause"
    DROP_SET = "drop_set"
    CLUSTER_SET = "cluster_set"
    SUPERSET = "superset"
    GIANT_SET = "giant_set"
    MYO_REPS = "myo_reps"
    MECHANICAL_DROP_SET = "mechanical_drop_set"


class ObjectiveCategory(str, Enum):
    """Kind of measurable objective."""
    STRENGTH = "strength"
    HYPERTROPHY = "hypertrophy"
    ENDURANCE = "endurance"
    POWER = "power"
    SKILL = "skill"
    BODY_COMPOSITION = "body_composition"  # lower is better


DESCENDING_CATEGORIES = frozenset({ObjectiveCategory.BODY_COMPOSITION})


class ObjectivePriority(str, Enum):
    """Weight of an objective for a given hierarchy node."""
    PRIMARY = "primary"
    SECONDARY = "secondary"
    TERTIARY = "tertiary"


class ObjectiveStatus(str, Enum):
    """Objective lifecycle: active -> achieved | abandoned."""
    ACTIVE = "active"
    ACHIEVED = "achieved"
    ABANDONED = "abandoned"


class EntityType(str, Enum):
    """Hierarchy levels an objective can be associated with."""
    PROGRAM = "program"
    MESOCYCLE = "mesocycle"
    MICROCYCLE = "microcycle"
    SESSION = "session"


class Difficulty(str, Enum):
    """Exercise catalog difficulty."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


# ============================================================================
# Exercise Catalog
# ============================================================================

class ExerciseDefinition(BaseModel):
    """Reference entry in the exercise catalog."""

    id: str = Field(..., min_length=1, description="Catalog identifier (e.g., 'bench-press')")
    name: str = Field(..., min_length=1, description="Display name")
    muscle_groups: List[str] = Field(
        default_factory=list, description="Primary and secondary muscle groups"
    )
    equipment: List[str] = Field(default_factory=list, description="Required equipment")
    difficulty: Difficulty = Field(
        default=Difficulty.INTERMEDIATE, description="Technical difficulty"
    )
    category: Optional[str] = Field(
        None, description="Movement category (compound, isolation, ...)"
    )


# ============================================================================
# Special Techniques and Deload Strategy
# ============================================================================

class SpecialTechnique(BaseModel):
    """
    Intensification technique (drop sets, rest-pause, ...).

    Either a shared template owned by a user (``is_template=True``) or a
    session-specific instance.
    """

    id: str = Field(default_factory=new_id, description="Technique identifier")
    user_id: Optional[str] = Field(None, description="Owner of a shared template")
    name: str = Field(..., min_length=1, description="Display name")
    type: TechniqueType = Field(..., description="Technique kind")
    description: Optional[str] = Field(None, description="How to perform the technique")
    parameters: Dict[str, Any] = Field(
        default_factory=dict, description="Technique parameters (mini sets, drops, rest...)"
    )
    is_template: bool = Field(default=False, description="Shared reusable template")


class DeloadStrategy(BaseModel):
    """How a mesocycle's deload week reduces training stress."""

    type: DeloadType = Field(..., description="Variable that is reduced")
    volume_reduction: float = Field(
        default=0.0, ge=0, le=100, description="Volume reduction (percent)"
    )
    intensity_reduction: float = Field(
        default=0.0, ge=0, le=100, description="Intensity reduction (percent)"
    )
    frequency_reduction: int = Field(
        default=0, ge=0, le=6, description="Training days removed"
    )
    duration_days: int = Field(default=7, ge=1, le=14, description="Deload length in days")
    timing: DeloadTiming = Field(default=DeloadTiming.PLANNED, description="Trigger")
    notes: Optional[str] = Field(None, description="Coach notes")

    @model_validator(mode="after")
    def validate_reduction_matches_type(self):
        """A deload has to reduce the variable it is named after."""
        if self.type == DeloadType.VOLUME and self.volume_reduction <= 0:
            raise ValueError("Volume deload requires volume_reduction > 0")
        if self.type == DeloadType.INTENSITY and self.intensity_reduction <= 0:
            raise ValueError("Intensity deload requires intensity_reduction > 0")
        if self.type == DeloadType.FREQUENCY and self.frequency_reduction <= 0:
            raise ValueError("Frequency deload requires frequency_reduction > 0")
        return self


# ============================================================================
# Program Hierarchy
# ============================================================================

REPS_PATTERN = re.compile(r"^\d+(\s*-\s*\d+)?$")
TEMPO_PATTERN = re.compile(r"^[0-9X](-?[0-9X]){3}$")


class PeriodizedExercise(BaseModel):
    """One prescribed instance of a catalog exercise inside a session."""

    id: str = Field(default_factory=new_id, description="Exercise instance identifier")
    exercise_id: str = Field(..., min_length=1, description="Catalog exercise reference")
    sets: int = Field(..., ge=1, le=20, description="Working sets")
    reps: str = Field(..., description="Reps or rep range, e.g. '8' or '8-12'")
    rir: Optional[float] = Field(None, ge=0, le=10, description="Reps in reserve")
    rpe: Optional[float] = Field(None, ge=1, le=10, description="Rate of perceived exertion")
    load: Optional[float] = Field(None, ge=0, description="Absolute load (kg)")
    rest_seconds: int = Field(default=90, ge=0, le=900, description="Rest between sets")
    tempo: Optional[str] = Field(None, description="Four-part tempo, e.g. '3-1-2-0'")
    superset_group_id: Optional[str] = Field(
        None, description="Exercises sharing this id are performed as a cluster"
    )
    exercise_order: int = Field(default=0, ge=0, description="Execution order in session")
    special_technique_id: Optional[str] = Field(
        None, description="Special technique reference"
    )
    notes: Optional[str] = Field(None, description="Coaching cues")

    @field_validator("reps")
    @classmethod
    def validate_reps(cls, v: str) -> str:
        """Reps are a count ('8') or an ascending range ('8-12')."""
        v = v.strip()
        if v.upper() == "AMRAP":
            return "AMRAP"
        if not REPS_PATTERN.match(v):
            raise ValueError(f"Invalid reps '{v}'. Use a number, a range like '8-12', or 'AMRAP'")
        if "-" in v:
            low, high = (int(part) for part in v.split("-"))
            if low < 1 or low > high:
                raise ValueError(f"Invalid rep range '{v}'")
            return f"{low}-{high}"
        if int(v) < 1:
            raise ValueError("Reps must be at least 1")
        return v

    @field_validator("tempo")
    @classmethod
    def validate_tempo(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().upper()
        if not TEMPO_PATTERN.match(v):
            raise ValueError(f"Invalid tempo '{v}'. Expected four parts, e.g. '3-1-2-0'")
        return v

    def rep_bounds(self) -> Optional[tuple]:
        """Return (low, high) reps, or None for AMRAP."""
        if self.reps == "AMRAP":
            return None
        if "-" in self.reps:
            low, high = self.reps.split("-")
            return int(low), int(high)
        return int(self.reps), int(self.reps)


class PeriodizedSession(BaseModel):
    """A training day inside a microcycle."""

    id: str = Field(default_factory=new_id, description="Session identifier")
    name: Optional[str] = Field(None, description="Session name (e.g., 'Upper A')")
    day_of_week: int = Field(..., ge=1, le=7, description="Day of week, Monday=1")
    focus: List[str] = Field(
        default_factory=list, description="Muscle group or modality tags"
    )
    rpe_target: Optional[float] = Field(None, ge=1, le=10, description="Target RPE")
    rir_target: Optional[float] = Field(None, ge=0, le=10, description="Target RIR")
    exercises: List[PeriodizedExercise] = Field(
        default_factory=list, description="Prescribed exercises, ordered by exercise_order"
    )
    techniques: List[SpecialTechnique] = Field(
        default_factory=list, description="Session-specific special techniques"
    )
    notes: Optional[str] = Field(None, description="Session notes")

    def total_sets(self) -> int:
        return sum(exercise.sets for exercise in self.exercises)


class Microcycle(BaseModel):
    """One training week inside a mesocycle."""

    id: str = Field(default_factory=new_id, description="Microcycle identifier")
    week_number: int = Field(..., ge=1, description="Week within the mesocycle (1-based)")
    volume_multiplier: float = Field(
        default=1.0, gt=0, le=3.0, description="Volume relative to mesocycle baseline"
    )
    intensity_multiplier: float = Field(
        default=1.0, gt=0, le=3.0, description="Intensity relative to mesocycle baseline"
    )
    is_deload: bool = Field(default=False, description="Planned recovery week")
    sessions: List[PeriodizedSession] = Field(
        default_factory=list, description="Training sessions of this week"
    )
    notes: Optional[str] = Field(None, description="Week notes")

    def total_sets(self) -> int:
        return sum(session.total_sets() for session in self.sessions)


class Mesocycle(BaseModel):
    """
    Multi-week training block with a single dominant phase.

    The number of microcycles should equal ``duration_weeks`` once the block
    is fully populated; partial population is allowed while editing.
    """

    id: str = Field(default_factory=new_id, description="Mesocycle identifier")
    name: Optional[str] = Field(None, description="Block name")
    phase: TrainingPhase = Field(..., description="Dominant training phase")
    duration_weeks: int = Field(..., ge=2, le=8, description="Block length in weeks")
    position: int = Field(default=0, ge=0, description="Order within the program")
    volume_level: int = Field(default=5, ge=1, le=10, description="Volume scale (1-10)")
    intensity_level: int = Field(default=5, ge=1, le=10, description="Intensity scale (1-10)")
    volume_progression: ProgressionPattern = Field(
        default=ProgressionPattern.ASCENDING, description="Volume progression across weeks"
    )
    intensity_progression: ProgressionPattern = Field(
        default=ProgressionPattern.ASCENDING, description="Intensity progression across weeks"
    )
    includes_deload: bool = Field(default=False, description="Block ends with a deload")
    deload_strategy: Optional[DeloadStrategy] = Field(
        None, description="Required when includes_deload is true"
    )
    microcycles: List[Microcycle] = Field(
        default_factory=list, description="Weeks of this block, ordered by week_number"
    )
    notes: Optional[str] = Field(None, description="Block notes")

    @model_validator(mode="after")
    def validate_deload_strategy(self):
        """A block that includes a deload must say how it deloads."""
        if self.includes_deload and self.deload_strategy is None:
            raise ValueError("deload_strategy is required when includes_deload is true")
        return self

    def weekly_sets(self) -> Dict[int, int]:
        """Total prescribed sets per week number."""
        return {
            microcycle.week_number: microcycle.total_sets()
            for microcycle in self.microcycles
        }


class PeriodizationProgram(BaseModel):
    """
    Root of the hierarchy, owned by a single user.

    ``version`` is the optimistic-lock counter: 0 for a program that has
    never been persisted, incremented by every successful save.
    """

    id: str = Field(default_factory=new_id, description="Program identifier")
    user_id: str = Field(..., min_length=1, description="Owner")
    name: str = Field(..., min_length=1, description="Program name")
    description: Optional[str] = Field(None, description="Program description")
    periodization_type: PeriodizationType = Field(..., description="Macro strategy")
    goal: TrainingGoal = Field(..., description="Primary training goal")
    training_level: TrainingLevel = Field(..., description="Owner training level")
    frequency: int = Field(..., ge=1, le=7, description="Sessions per week")
    start_date: Optional[date] = Field(None, description="Program start")
    end_date: Optional[date] = Field(None, description="Program end")
    is_active: bool = Field(default=True, description="Currently followed program")
    mesocycles: List[Mesocycle] = Field(
        default_factory=list, description="Training blocks, ordered by position"
    )
    version: int = Field(default=0, ge=0, description="Optimistic-lock version")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Program name cannot be blank")
        return v.strip()

    @model_validator(mode="after")
    def validate_dates(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError(
                f"start_date ({self.start_date}) must not be after end_date ({self.end_date})"
            )
        return self

    def total_weeks(self) -> int:
        return sum(mesocycle.duration_weeks for mesocycle in self.mesocycles)

    def phase_breakdown(self) -> Dict[str, int]:
        """
        Get the number of planned weeks in each training phase.

        Returns:
            Dictionary mapping phase names to week counts.
        """
        phase_counts: Dict[str, int] = {}
        for mesocycle in self.mesocycles:
            phase_name = mesocycle.phase.value
            phase_counts[phase_name] = phase_counts.get(phase_name, 0) + mesocycle.duration_weeks
        return phase_counts

    def iter_sessions(self) -> Iterator[PeriodizedSession]:
        for mesocycle in self.mesocycles:
            for microcycle in mesocycle.microcycles:
                yield from microcycle.sessions

    def count_entities(self) -> Dict[str, int]:
        """Entity counts at every level of the tree."""
        microcycles = [mc for meso in self.mesocycles for mc in meso.microcycles]
        sessions = list(self.iter_sessions())
        return {
            "mesocycles": len(self.mesocycles),
            "microcycles": len(microcycles),
            "sessions": len(sessions),
            "exercises": sum(len(s.exercises) for s in sessions),
            "techniques": sum(len(s.techniques) for s in sessions),
        }

    def find_mesocycle(self, mesocycle_id: str) -> Optional[Mesocycle]:
        return next((m for m in self.mesocycles if m.id == mesocycle_id), None)

    def node_ids(self) -> Dict[EntityType, List[str]]:
        """Ids of every hierarchy node an objective can be associated with."""
        microcycles = [mc for meso in self.mesocycles for mc in meso.microcycles]
        return {
            EntityType.PROGRAM: [self.id],
            EntityType.MESOCYCLE: [m.id for m in self.mesocycles],
            EntityType.MICROCYCLE: [mc.id for mc in microcycles],
            EntityType.SESSION: [s.id for s in self.iter_sessions()],
        }


class ProgramSummary(BaseModel):
    """Program metadata without the nested tree, for listings."""

    id: str
    name: str
    periodization_type: PeriodizationType
    goal: TrainingGoal
    training_level: TrainingLevel
    frequency: int
    is_active: bool
    mesocycle_count: int = Field(..., ge=0)
    total_weeks: int = Field(..., ge=0)
    version: int
    updated_at: Optional[datetime] = None


# ============================================================================
# Training Objectives
# ============================================================================

class TrainingObjective(BaseModel):
    """
    Measurable objective owned by a user, independent of any program.

    ``is_achieved`` mirrors ``status == achieved``; either may be supplied
    and the other is derived.
    """

    id: str = Field(default_factory=new_id, description="Objective identifier")
    user_id: str = Field(..., min_length=1, description="Owner")
    name: str = Field(..., min_length=1, description="Objective name")
    description: Optional[str] = Field(None, description="Details")
    category: ObjectiveCategory = Field(..., description="Objective category")
    target_value: float = Field(..., description="Value that achieves the objective")
    current_value: Optional[float] = Field(None, description="Latest measured value")
    units: Optional[str] = Field(None, description="Measurement units (kg, reps, %...)")
    deadline: Optional[date] = Field(None, description="Target date")
    measurement_protocol: Optional[str] = Field(None, description="How progress is measured")
    status: ObjectiveStatus = Field(default=ObjectiveStatus.ACTIVE, description="Lifecycle")
    is_achieved: bool = Field(default=False, description="Objective reached")
    achieved_at: Optional[datetime] = Field(None, description="When it was reached")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def sync_achievement(self):
        if self.status == ObjectiveStatus.ACHIEVED:
            self.is_achieved = True
        elif self.is_achieved and self.status == ObjectiveStatus.ACTIVE:
            self.status = ObjectiveStatus.ACHIEVED
        elif self.status == ObjectiveStatus.ABANDONED:
            self.is_achieved = False
        return self

    @property
    def is_descending(self) -> bool:
        return self.category in DESCENDING_CATEGORIES

    def meets_target(self, value: float) -> bool:
        """Whether ``value`` reaches the target in this category's direction."""
        if self.is_descending:
            return value <= self.target_value
        return value >= self.target_value


class ObjectiveAssociation(BaseModel):
    """Link between an objective and one node of the program hierarchy."""

    id: str = Field(default_factory=new_id, description="Association identifier")
    objective_id: str = Field(..., min_length=1, description="Associated objective")
    entity_type: EntityType = Field(..., description="Hierarchy level")
    entity_id: str = Field(..., min_length=1, description="Hierarchy node id")
    priority: ObjectivePriority = Field(
        default=ObjectivePriority.PRIMARY, description="Priority for this node"
    )
    expected_progress: Optional[float] = Field(
        None, ge=0, le=100, description="Expected progress contributed by this node (percent)"
    )


# ============================================================================
# Template Generation
# ============================================================================

class TemplateDecision(BaseModel):
    """
    Documents a choice made while generating a program from a template.
    """

    decision_point: str = Field(..., min_length=5, description="The decision that was made")
    input_factors: List[str] = Field(
        ..., min_length=1, description="Factors that influenced this decision"
    )
    reasoning: str = Field(..., min_length=10, description="Why this decision was made")
    outcome: str = Field(..., min_length=3, description="The resulting choice")
