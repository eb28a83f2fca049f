"""
Exercise catalog lookup.

The catalog is a flat reference list of exercise definitions. Prescribed
exercises only hold a catalog id; the builder resolves it here and raises
NotFoundError on dangling references.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from periodization.config import DEFAULT_CATALOG_PATH
from periodization.errors import NotFoundError
from periodization.schemas import Difficulty, ExerciseDefinition

logger = logging.getLogger(__name__)


class ExerciseCatalog:
    """In-memory exercise catalog indexed by id."""

    def __init__(self, exercises: Iterable[ExerciseDefinition]):
        self._exercises: Dict[str, ExerciseDefinition] = {}
        for exercise in exercises:
            if exercise.id in self._exercises:
                raise ValueError(f"Duplicate exercise id in catalog: {exercise.id}")
            self._exercises[exercise.id] = exercise

    @classmethod
    def from_file(cls, catalog_path: Path) -> "ExerciseCatalog":
        """
        Load catalog from a JSON file.

        Args:
            catalog_path: Path to a JSON list of exercise definitions

        Returns:
            ExerciseCatalog instance

        Raises:
            FileNotFoundError: If the catalog file doesn't exist
            ValueError: If the catalog JSON is invalid
        """
        if not catalog_path.exists():
            raise FileNotFoundError(f"Exercise catalog not found: {catalog_path}")

        with open(catalog_path, "r") as f:
            data = json.load(f)

        try:
            exercises = [ExerciseDefinition(**item) for item in data]
        except Exception as e:
            raise ValueError(f"Invalid exercise catalog: {e}")

        logger.info("Loaded %d exercises from %s", len(exercises), catalog_path)
        return cls(exercises)

    @classmethod
    def default(cls) -> "ExerciseCatalog":
        """Load the catalog shipped with the package."""
        return cls.from_file(DEFAULT_CATALOG_PATH)

    def get(self, exercise_id: str) -> ExerciseDefinition:
        try:
            return self._exercises[exercise_id]
        except KeyError:
            raise NotFoundError(
                f"Exercise '{exercise_id}' not found in catalog",
                details={"exercise_id": exercise_id},
            )

    def exists(self, exercise_id: str) -> bool:
        return exercise_id in self._exercises

    def search(
        self,
        muscle_group: Optional[str] = None,
        equipment: Optional[str] = None,
        difficulty: Optional[Difficulty] = None,
    ) -> List[ExerciseDefinition]:
        """Filter the catalog; every given filter must match."""
        results = []
        for exercise in self._exercises.values():
            if muscle_group and muscle_group.lower() not in (m.lower() for m in exercise.muscle_groups):
                continue
            if equipment and equipment.lower() not in (e.lower() for e in exercise.equipment):
                continue
            if difficulty and exercise.difficulty != difficulty:
                continue
            results.append(exercise)
        return sorted(results, key=lambda e: e.name)

    def all(self) -> List[ExerciseDefinition]:
        return sorted(self._exercises.values(), key=lambda e: e.name)

    def __contains__(self, exercise_id: object) -> bool:
        return exercise_id in self._exercises

    def __len__(self) -> int:
        return len(self._exercises)
