"""
Special technique templates.

Users save configured techniques (rest-pause, drop sets, clusters...) as
reusable templates. Prescribed exercises reference them by id, and the
builder resolves those references through ``TechniqueLibrary.lookup_for``.
"""

import logging
from typing import Any, Dict, List, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from periodization.builder import build_model
from periodization.database import SpecialTechniqueRecord
from periodization.errors import NotFoundError, PermissionDeniedError, ValidationError
from periodization.repository import storage_guard, technique_from_record
from periodization.schemas import SpecialTechnique, TechniqueType

logger = logging.getLogger(__name__)

DEFAULT_PARAMETERS: Dict[TechniqueType, Dict[str, Any]] = {
    TechniqueType.REST_PAUSE: {
        "initial_reps": 8,
        "mini_sets": 3,
        "rest_seconds": 15,
        "rep_reduction": 2,
    },
    TechniqueType.DROP_SET: {
        "drops": 3,
        "weight_reduction_percent": 20,
        "reps_per_drop": 8,
    },
    TechniqueType.CLUSTER_SET: {
        "reps_per_cluster": 3,
        "clusters": 4,
        "intra_cluster_rest_seconds": 15,
        "inter_cluster_rest_seconds": 90,
    },
    TechniqueType.SUPERSET: {
        "exercises": 2,
        "rest_between_exercises_seconds": 0,
        "rest_after_seconds": 90,
    },
    TechniqueType.GIANT_SET: {
        "exercises": 4,
        "rest_between_exercises_seconds": 0,
        "rest_after_seconds": 120,
    },
    TechniqueType.MYO_REPS: {
        "activation_set_reps": 12,
        "mini_sets": 4,
        "reps_per_mini_set": 5,
        "rest_seconds": 10,
    },
    TechniqueType.MECHANICAL_DROP_SET: {
        "variations": 3,
        "mechanical_advantage": "decreasing",
        "rest_between_variations_seconds": 10,
    },
}


def default_parameters(technique_type: Union[TechniqueType, str]) -> Dict[str, Any]:
    """Starting parameters for a technique type (a fresh copy)."""
    try:
        technique_type = TechniqueType(technique_type)
    except ValueError:
        raise ValidationError(f"Unknown technique type: {technique_type}")
    return dict(DEFAULT_PARAMETERS[technique_type])


class TechniqueLibrary:
    """Stores and resolves a user's shared technique templates."""

    def __init__(self, db: Session):
        self.db = db

    def save_template(self, owner_id: str, technique: SpecialTechnique) -> SpecialTechnique:
        """
        Save ``technique`` as a shared template owned by ``owner_id``.

        Missing parameters are filled from the type's defaults.

        Raises:
            PermissionDeniedError: If a template with this id belongs to another user
            StorageError: If the store fails
        """
        parameters = default_parameters(technique.type)
        parameters.update(technique.parameters)
        template = build_model(
            SpecialTechnique,
            **{**technique.model_dump(), "user_id": owner_id, "parameters": parameters, "is_template": True},
        )

        with storage_guard(self.db, "save_template", technique_id=template.id):
            record = self.db.get(SpecialTechniqueRecord, template.id)
            if record is None:
                record = SpecialTechniqueRecord(id=template.id)
                self.db.add(record)
            elif record.user_id != owner_id or not record.is_template:
                raise PermissionDeniedError(
                    "You do not have access to this technique", details={"technique_id": template.id}
                )

            record.user_id = owner_id
            record.name = template.name
            record.type = template.type.value
            record.description = template.description
            record.parameters = template.parameters
            record.is_template = True
            self.db.commit()

        logger.info("Saved technique template %s (%s) for user %s", template.id, template.type.value, owner_id)
        return template

    def list_templates(self, owner_id: str) -> List[SpecialTechnique]:
        with storage_guard(self.db, "list_templates", owner_id=owner_id):
            records = self.db.scalars(
                select(SpecialTechniqueRecord)
                .where(
                    SpecialTechniqueRecord.user_id == owner_id,
                    SpecialTechniqueRecord.is_template.is_(True),
                    SpecialTechniqueRecord.session_id.is_(None),
                )
                .order_by(SpecialTechniqueRecord.name)
            ).all()
            return [technique_from_record(r) for r in records]

    def get(self, technique_id: str, owner_id: str) -> SpecialTechnique:
        """
        Raises:
            NotFoundError: If no template has this id
            PermissionDeniedError: If the template belongs to another user
        """
        with storage_guard(self.db, "get_template", technique_id=technique_id):
            record = self.db.get(SpecialTechniqueRecord, technique_id)
            if record is None or not record.is_template or record.session_id is not None:
                raise NotFoundError(
                    f"Special technique '{technique_id}' not found",
                    details={"special_technique_id": technique_id},
                )
            if record.user_id != owner_id:
                raise PermissionDeniedError(
                    "You do not have access to this technique", details={"technique_id": technique_id}
                )
            return technique_from_record(record)

    def lookup_for(self, owner_id: str):
        """Resolver bound to one owner, for ProgramBuilder(technique_lookup=...)."""
        return lambda technique_id: self.get(technique_id, owner_id)
