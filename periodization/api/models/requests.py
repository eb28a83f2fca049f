"""
API Request Models

Pydantic models for API request validation.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from periodization.schemas import (
    EntityType,
    Mesocycle,
    ObjectiveCategory,
    ObjectivePriority,
    PeriodizationType,
    PeriodizedExercise,
    TechniqueType,
    TrainingGoal,
    TrainingLevel,
)


class ProgramCreateRequest(BaseModel):
    """Request model for creating a program, optionally with its full tree."""

    name: str = Field(..., description="Program name")
    description: Optional[str] = Field(None, description="Program description")
    periodization_type: PeriodizationType = Field(..., description="Macro strategy")
    goal: TrainingGoal = Field(..., description="Primary training goal")
    training_level: TrainingLevel = Field(..., description="Owner training level")
    frequency: int = Field(..., description="Sessions per week (1-7)")
    start_date: Optional[date] = Field(None, description="Program start")
    end_date: Optional[date] = Field(None, description="Program end")
    mesocycles: List[Mesocycle] = Field(default_factory=list, description="Initial training blocks")


class ProgramUpdateRequest(BaseModel):
    """Request model for saving a complete program tree."""

    name: str = Field(..., description="Program name")
    description: Optional[str] = Field(None, description="Program description")
    periodization_type: PeriodizationType = Field(..., description="Macro strategy")
    goal: TrainingGoal = Field(..., description="Primary training goal")
    training_level: TrainingLevel = Field(..., description="Owner training level")
    frequency: int = Field(..., description="Sessions per week (1-7)")
    start_date: Optional[date] = Field(None, description="Program start")
    end_date: Optional[date] = Field(None, description="Program end")
    is_active: bool = Field(default=True, description="Currently followed program")
    mesocycles: List[Mesocycle] = Field(default_factory=list, description="Training blocks")
    version: int = Field(..., ge=0, description="Version the client loaded (lost-update check)")


class MesocycleSaveRequest(BaseModel):
    """Request model for saving a single mesocycle subtree."""

    mesocycle: Mesocycle = Field(..., description="Mesocycle with its weeks and sessions")
    expected_version: Optional[int] = Field(
        None, ge=0, description="Program version the client loaded"
    )


class TemplateProgramRequest(BaseModel):
    """Request model for generating a program from the recommended template."""

    name: str = Field(..., description="Program name")
    training_level: TrainingLevel = Field(..., description="Training level")
    goal: TrainingGoal = Field(..., description="Primary training goal")
    frequency: Optional[int] = Field(
        None, description="Sessions per week; the recommended default if omitted"
    )
    start_date: Optional[date] = Field(None, description="Program start")


class ObjectiveCreateRequest(BaseModel):
    """Request model for creating a training objective."""

    category: ObjectiveCategory = Field(..., description="Objective category")
    target_value: float = Field(..., description="Value that achieves the objective")
    name: Optional[str] = Field(None, description="Objective name")
    description: Optional[str] = Field(None, description="Details")
    units: Optional[str] = Field(None, description="Measurement units")
    current_value: Optional[float] = Field(None, description="Baseline measurement")
    deadline: Optional[date] = Field(None, description="Target date")
    measurement_protocol: Optional[str] = Field(None, description="How progress is measured")


class ProgressUpdateRequest(BaseModel):
    """Request model for recording objective progress."""

    current_value: float = Field(..., description="Latest measured value")


class AssociationRequest(BaseModel):
    """Request model for associating an objective with a hierarchy node."""

    entity_type: EntityType = Field(..., description="Hierarchy level")
    entity_id: str = Field(..., description="Hierarchy node id")
    priority: ObjectivePriority = Field(
        default=ObjectivePriority.PRIMARY, description="Priority for this node"
    )
    expected_progress: Optional[float] = Field(
        None, description="Expected progress contributed by this node (percent)"
    )


class ExerciseUpdateRequest(BaseModel):
    """Request model for updating one prescribed exercise in place."""

    exercise: PeriodizedExercise = Field(..., description="Exercise with its stored id")
    expected_version: Optional[int] = Field(
        None, ge=0, description="Program version the client loaded"
    )


class TechniqueTemplateRequest(BaseModel):
    """Request model for saving a special technique template."""

    id: Optional[str] = Field(None, description="Existing template id to overwrite")
    name: str = Field(..., description="Display name")
    type: TechniqueType = Field(..., description="Technique kind")
    description: Optional[str] = Field(None, description="How to perform the technique")
    parameters: Dict[str, Any] = Field(
        default_factory=dict, description="Overrides of the type's default parameters"
    )
