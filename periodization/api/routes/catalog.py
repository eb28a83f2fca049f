"""
Exercise Catalog API Routes

Read-only endpoints for the exercise catalog.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from periodization.api.dependencies import get_catalog, get_current_user_id
from periodization.api.models.responses import CatalogListResponse, Envelope
from periodization.catalog import ExerciseCatalog
from periodization.schemas import Difficulty, ExerciseDefinition

router = APIRouter()


@router.get("/catalog/exercises", response_model=Envelope[CatalogListResponse])
def list_exercises(
    muscle_group: Optional[str] = None,
    equipment: Optional[str] = None,
    difficulty: Optional[Difficulty] = None,
    user_id: str = Depends(get_current_user_id),
    catalog: ExerciseCatalog = Depends(get_catalog),
) -> Envelope[CatalogListResponse]:
    """List catalog exercises, optionally filtered."""
    exercises = catalog.search(muscle_group=muscle_group, equipment=equipment, difficulty=difficulty)
    return Envelope(data=CatalogListResponse(exercises=exercises, count=len(exercises)))


@router.get("/catalog/exercises/{exercise_id}", response_model=Envelope[ExerciseDefinition])
def get_exercise(
    exercise_id: str,
    user_id: str = Depends(get_current_user_id),
    catalog: ExerciseCatalog = Depends(get_catalog),
) -> Envelope[ExerciseDefinition]:
    """
    Get one catalog exercise.

    Raises:
        NotFoundError: If the exercise is not in the catalog (404)
    """
    return Envelope(data=catalog.get(exercise_id))
