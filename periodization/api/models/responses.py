"""
API Response Models

Every response uses the ``{data, error}`` envelope: exactly one of the two
is set.
"""

from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

from periodization.schemas import (
    ExerciseDefinition,
    PeriodizationProgram,
    ProgramSummary,
    TemplateDecision,
    TrainingObjective,
)

T = TypeVar("T")


class ErrorBody(BaseModel):
    """Error payload of a failed request."""

    error: str = Field(..., description="Error type (e.g., 'Not Found')")
    message: str = Field(..., description="Human-readable message")
    details: Dict[str, Any] = Field(default_factory=dict, description="Structured context")


class Envelope(BaseModel, Generic[T]):
    """Response envelope."""

    data: Optional[T] = Field(None, description="Payload on success")
    error: Optional[ErrorBody] = Field(None, description="Error on failure")


class CatalogListResponse(BaseModel):
    """Response for GET /api/catalog/exercises."""

    exercises: List[ExerciseDefinition] = Field(..., description="Matching exercises")
    count: int = Field(..., description="Number of matching exercises")


class ProgramListResponse(BaseModel):
    """Response for GET /api/programs."""

    programs: List[ProgramSummary] = Field(..., description="Caller's programs")
    count: int = Field(..., description="Total number of programs")


class TemplateProgramResponse(BaseModel):
    """Response for POST /api/programs/from-template."""

    program: PeriodizationProgram = Field(..., description="Generated and saved program")
    decisions: List[TemplateDecision] = Field(..., description="Generation decisions")
    warnings: List[str] = Field(default_factory=list, description="Non-fatal concerns")


class ProgramCheckResponse(BaseModel):
    """Response for GET /api/programs/{id}/check."""

    program_id: str
    complete: bool = Field(..., description="No soft invariant is violated")
    warnings: List[str] = Field(default_factory=list, description="Soft invariant warnings")


class ObjectiveListResponse(BaseModel):
    """Response for GET /api/objectives."""

    objectives: List[TrainingObjective] = Field(..., description="Caller's objectives")
    count: int = Field(..., description="Total number of objectives")
