"""
Training objective tracking.

Objectives are owned by a user independently of any program and are linked
to program, mesocycle, microcycle or session nodes through associations.

Lifecycle::

    active --(progress reaches target)--> achieved
    active --(abandon)------------------> abandoned

Achieved and abandoned are terminal; only deletion removes them.

Achievement direction depends on the category: body_composition objectives
(e.g. body fat percentage) are achieved when the measured value falls to or
below the target, every other category when it reaches or exceeds it.
"""

import logging
from datetime import date
from typing import List, Optional, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from periodization.builder import build_model
from periodization.database import ObjectiveAssociationRecord, TrainingObjectiveRecord, utcnow
from periodization.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from periodization.repository import ProgramRepository, storage_guard
from periodization.schemas import (
    EntityType,
    ObjectiveAssociation,
    ObjectiveCategory,
    ObjectivePriority,
    ObjectiveStatus,
    TrainingObjective,
    new_id,
)

logger = logging.getLogger(__name__)


def _objective_from_record(record: TrainingObjectiveRecord) -> TrainingObjective:
    return TrainingObjective(
        id=record.id,
        user_id=record.user_id,
        name=record.name,
        description=record.description,
        category=record.category,
        target_value=record.target_value,
        current_value=record.current_value,
        units=record.units,
        deadline=record.deadline,
        measurement_protocol=record.measurement_protocol,
        status=record.status,
        achieved_at=record.achieved_at,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _association_from_record(record: ObjectiveAssociationRecord) -> ObjectiveAssociation:
    return ObjectiveAssociation(
        id=record.id,
        objective_id=record.objective_id,
        entity_type=record.entity_type,
        entity_id=record.entity_id,
        priority=record.priority,
        expected_progress=record.expected_progress,
    )


def _parse_enum(enum_cls, value, field: str):
    """
    Raises:
        ValidationError: If value is not a member of enum_cls
    """
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Unknown {field}: {value}", details={field: str(value)})


class ObjectiveTracker:
    """
    Manages objectives and their associations to hierarchy nodes.

    Every operation takes the caller's ``owner_id`` explicitly and checks it
    against the stored owner before reading or writing.
    """

    def __init__(self, db: Session, programs: Optional[ProgramRepository] = None):
        """
        Initialize tracker.

        Args:
            db: SQLAlchemy session
            programs: Repository used to check that associated nodes exist
        """
        self.db = db
        self.programs = programs or ProgramRepository(db)

    # ------------------------------------------------------------------
    # Objectives
    # ------------------------------------------------------------------

    def create_objective(
        self,
        owner_id: str,
        category: Union[ObjectiveCategory, str],
        target_value: float,
        deadline: Optional[date] = None,
        name: Optional[str] = None,
        description: Optional[str] = None,
        units: Optional[str] = None,
        current_value: Optional[float] = None,
        measurement_protocol: Optional[str] = None,
    ) -> TrainingObjective:
        """
        Create an active objective.

        An objective created with a current value that already meets the
        target starts out achieved.

        Raises:
            ValidationError: If the owner is empty or a field is invalid
            StorageError: If the store fails
        """
        if not owner_id or not str(owner_id).strip():
            raise ValidationError("Objective owner is required")

        objective = build_model(
            TrainingObjective,
            user_id=owner_id,
            name=name or f"{getattr(category, 'value', category)} objective".replace("_", " ").capitalize(),
            description=description,
            category=category,
            target_value=target_value,
            current_value=current_value,
            units=units,
            deadline=deadline,
            measurement_protocol=measurement_protocol,
        )
        if current_value is not None and objective.meets_target(current_value):
            objective.status = ObjectiveStatus.ACHIEVED
            objective.is_achieved = True
            objective.achieved_at = utcnow()

        with storage_guard(self.db, "create_objective", owner_id=owner_id):
            now = utcnow()
            record = TrainingObjectiveRecord(
                id=objective.id,
                user_id=owner_id,
                name=objective.name,
                description=objective.description,
                category=objective.category.value,
                target_value=objective.target_value,
                current_value=objective.current_value,
                units=objective.units,
                deadline=objective.deadline,
                measurement_protocol=objective.measurement_protocol,
                status=objective.status.value,
                achieved_at=objective.achieved_at,
                created_at=now,
                updated_at=now,
            )
            self.db.add(record)
            self.db.commit()

        logger.info("Created %s objective %s for user %s", objective.category.value, objective.id, owner_id)
        return _objective_from_record(record)

    def _get_owned(self, objective_id: str, owner_id: str) -> TrainingObjectiveRecord:
        record = self.db.get(TrainingObjectiveRecord, objective_id)
        if record is None:
            raise NotFoundError(
                f"Objective '{objective_id}' not found", details={"objective_id": objective_id}
            )
        if record.user_id != owner_id:
            logger.warning("User %s denied access to objective %s", owner_id, objective_id)
            raise PermissionDeniedError(
                "You do not have access to this objective", details={"objective_id": objective_id}
            )
        return record

    def get_objective(self, objective_id: str, owner_id: str) -> TrainingObjective:
        with storage_guard(self.db, "get_objective", objective_id=objective_id):
            return _objective_from_record(self._get_owned(objective_id, owner_id))

    def list_objectives(
        self, owner_id: str, status: Optional[Union[ObjectiveStatus, str]] = None
    ) -> List[TrainingObjective]:
        if status is not None:
            status = _parse_enum(ObjectiveStatus, status, "status")
        with storage_guard(self.db, "list_objectives", owner_id=owner_id):
            query = select(TrainingObjectiveRecord).where(TrainingObjectiveRecord.user_id == owner_id)
            if status is not None:
                query = query.where(TrainingObjectiveRecord.status == status.value)
            records = self.db.scalars(query.order_by(TrainingObjectiveRecord.created_at)).all()
            return [_objective_from_record(r) for r in records]

    def update_progress(self, objective_id: str, owner_id: str, current_value: float) -> TrainingObjective:
        """
        Record a new measurement and mark the objective achieved when it meets the target.

        Raises:
            NotFoundError, PermissionDeniedError: If the objective is missing or not owned
            ConflictError: If the objective is already achieved or abandoned
            StorageError: If the store fails
        """
        with storage_guard(self.db, "update_progress", objective_id=objective_id):
            record = self._get_owned(objective_id, owner_id)
            if record.status != ObjectiveStatus.ACTIVE.value:
                raise ConflictError(
                    f"Objective is {record.status}; progress can only be recorded on active objectives",
                    details={"objective_id": objective_id, "status": record.status},
                )

            objective = _objective_from_record(record)
            now = utcnow()
            record.current_value = current_value
            record.updated_at = now
            if objective.meets_target(current_value):
                record.status = ObjectiveStatus.ACHIEVED.value
                record.achieved_at = now
                logger.info("Objective %s achieved (%s vs target %s)", objective_id, current_value, record.target_value)
            self.db.commit()
            return _objective_from_record(record)

    def abandon(self, objective_id: str, owner_id: str) -> TrainingObjective:
        """
        Raises:
            ConflictError: If the objective is already achieved or abandoned
        """
        with storage_guard(self.db, "abandon_objective", objective_id=objective_id):
            record = self._get_owned(objective_id, owner_id)
            if record.status != ObjectiveStatus.ACTIVE.value:
                raise ConflictError(
                    f"Objective is {record.status} and cannot be abandoned",
                    details={"objective_id": objective_id, "status": record.status},
                )
            record.status = ObjectiveStatus.ABANDONED.value
            record.updated_at = utcnow()
            self.db.commit()
            logger.info("Objective %s abandoned by user %s", objective_id, owner_id)
            return _objective_from_record(record)

    def delete_objective(self, objective_id: str, owner_id: str) -> None:
        with storage_guard(self.db, "delete_objective", objective_id=objective_id):
            record = self._get_owned(objective_id, owner_id)
            self.db.delete(record)
            self.db.commit()
            logger.info("Deleted objective %s", objective_id)

    # ------------------------------------------------------------------
    # Associations
    # ------------------------------------------------------------------

    def associate(
        self,
        objective_id: str,
        owner_id: str,
        entity_type: Union[EntityType, str],
        entity_id: str,
        priority: Union[ObjectivePriority, str] = ObjectivePriority.PRIMARY,
        expected_progress: Optional[float] = None,
        allow_update: bool = True,
    ) -> ObjectiveAssociation:
        """
        Associate an objective with a hierarchy node.

        At most one association exists per (objective, entity_type, entity_id).
        Associating the same node again updates priority and expected
        progress instead of creating a duplicate.

        Args:
            allow_update: When False, an existing association raises ConflictError

        Raises:
            NotFoundError: If the objective or the node does not exist
            PermissionDeniedError: If the objective is not owned by ``owner_id``
            ConflictError: If the objective is abandoned, or the association
                exists and ``allow_update`` is False
            ValidationError: On an unknown entity type or priority
            StorageError: If the store fails
        """
        association = build_model(
            ObjectiveAssociation,
            objective_id=objective_id,
            entity_type=entity_type,
            entity_id=entity_id,
            priority=priority,
            expected_progress=expected_progress,
        )

        with storage_guard(self.db, "associate", objective_id=objective_id, entity_id=entity_id):
            objective = self._get_owned(objective_id, owner_id)
            if objective.status == ObjectiveStatus.ABANDONED.value:
                raise ConflictError(
                    "Abandoned objectives cannot be associated", details={"objective_id": objective_id}
                )
            if not self.programs.node_exists(association.entity_type, entity_id, owner_id):
                raise NotFoundError(
                    f"{association.entity_type.value.capitalize()} '{entity_id}' not found",
                    details={"entity_type": association.entity_type.value, "entity_id": entity_id},
                )

            record = self.db.scalar(
                select(ObjectiveAssociationRecord).where(
                    ObjectiveAssociationRecord.objective_id == objective_id,
                    ObjectiveAssociationRecord.entity_type == association.entity_type.value,
                    ObjectiveAssociationRecord.entity_id == entity_id,
                )
            )
            if record is not None:
                if not allow_update:
                    raise ConflictError(
                        "Objective is already associated with this node",
                        details={"association_id": record.id},
                    )
                record.priority = association.priority.value
                if expected_progress is not None:
                    record.expected_progress = expected_progress
            else:
                record = ObjectiveAssociationRecord(
                    id=new_id(),
                    objective_id=objective_id,
                    entity_type=association.entity_type.value,
                    entity_id=entity_id,
                    priority=association.priority.value,
                    expected_progress=expected_progress,
                )
                self.db.add(record)
            self.db.commit()
            return _association_from_record(record)

    def dissociate(self, association_id: str, owner_id: str) -> None:
        with storage_guard(self.db, "dissociate", association_id=association_id):
            record = self.db.get(ObjectiveAssociationRecord, association_id)
            if record is None:
                raise NotFoundError(
                    f"Association '{association_id}' not found", details={"association_id": association_id}
                )
            self._get_owned(record.objective_id, owner_id)
            self.db.delete(record)
            self.db.commit()

    def associations_for_objective(self, objective_id: str, owner_id: str) -> List[ObjectiveAssociation]:
        with storage_guard(self.db, "associations_for_objective", objective_id=objective_id):
            self._get_owned(objective_id, owner_id)
            records = self.db.scalars(
                select(ObjectiveAssociationRecord)
                .where(ObjectiveAssociationRecord.objective_id == objective_id)
                .order_by(ObjectiveAssociationRecord.created_at)
            ).all()
            return [_association_from_record(r) for r in records]

    def associations_for(
        self, entity_type: Union[EntityType, str], entity_id: str, owner_id: str
    ) -> List[ObjectiveAssociation]:
        """Associations of ``owner_id``'s objectives to one node, primary first."""
        entity_type = _parse_enum(EntityType, entity_type, "entity_type")
        order = {p.value: i for i, p in enumerate(ObjectivePriority)}
        with storage_guard(self.db, "associations_for", entity_id=entity_id):
            records = self.db.scalars(
                select(ObjectiveAssociationRecord)
                .join(TrainingObjectiveRecord)
                .where(
                    ObjectiveAssociationRecord.entity_type == entity_type.value,
                    ObjectiveAssociationRecord.entity_id == entity_id,
                    TrainingObjectiveRecord.user_id == owner_id,
                )
            ).all()
            return [
                _association_from_record(r)
                for r in sorted(records, key=lambda r: order.get(r.priority, len(order)))
            ]
