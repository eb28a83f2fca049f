"""
Objectives API Routes

Endpoints for training objectives, their progress and their associations
to program nodes.
"""

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status

from periodization.api.dependencies import get_current_user_id, get_tracker
from periodization.api.models.requests import (
    AssociationRequest,
    ObjectiveCreateRequest,
    ProgressUpdateRequest,
)
from periodization.api.models.responses import Envelope, ObjectiveListResponse
from periodization.objectives import ObjectiveTracker
from periodization.schemas import EntityType, ObjectiveAssociation, ObjectiveStatus, TrainingObjective

router = APIRouter()


@router.post(
    "/objectives",
    response_model=Envelope[TrainingObjective],
    status_code=status.HTTP_201_CREATED,
)
def create_objective(
    request: ObjectiveCreateRequest,
    user_id: str = Depends(get_current_user_id),
    tracker: ObjectiveTracker = Depends(get_tracker),
) -> Envelope[TrainingObjective]:
    objective = tracker.create_objective(owner_id=user_id, **request.model_dump())
    return Envelope(data=objective)


@router.get("/objectives", response_model=Envelope[ObjectiveListResponse])
def list_objectives(
    status_filter: Optional[ObjectiveStatus] = Query(None, alias="status"),
    user_id: str = Depends(get_current_user_id),
    tracker: ObjectiveTracker = Depends(get_tracker),
) -> Envelope[ObjectiveListResponse]:
    objectives = tracker.list_objectives(user_id, status=status_filter)
    return Envelope(data=ObjectiveListResponse(objectives=objectives, count=len(objectives)))


@router.get("/objectives/{objective_id}", response_model=Envelope[TrainingObjective])
def get_objective(
    objective_id: str,
    user_id: str = Depends(get_current_user_id),
    tracker: ObjectiveTracker = Depends(get_tracker),
) -> Envelope[TrainingObjective]:
    return Envelope(data=tracker.get_objective(objective_id, user_id))


@router.post("/objectives/{objective_id}/progress", response_model=Envelope[TrainingObjective])
def update_progress(
    objective_id: str,
    request: ProgressUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    tracker: ObjectiveTracker = Depends(get_tracker),
) -> Envelope[TrainingObjective]:
    """
    Record a measurement.

    The objective becomes achieved once the value meets the target; progress
    on an achieved or abandoned objective is rejected with 409.
    """
    return Envelope(data=tracker.update_progress(objective_id, user_id, request.current_value))


@router.post("/objectives/{objective_id}/abandon", response_model=Envelope[TrainingObjective])
def abandon_objective(
    objective_id: str,
    user_id: str = Depends(get_current_user_id),
    tracker: ObjectiveTracker = Depends(get_tracker),
) -> Envelope[TrainingObjective]:
    return Envelope(data=tracker.abandon(objective_id, user_id))


@router.delete("/objectives/{objective_id}", response_model=Envelope[Dict[str, str]])
def delete_objective(
    objective_id: str,
    user_id: str = Depends(get_current_user_id),
    tracker: ObjectiveTracker = Depends(get_tracker),
) -> Envelope[Dict[str, str]]:
    tracker.delete_objective(objective_id, user_id)
    return Envelope(data={"deleted": objective_id})


@router.post(
    "/objectives/{objective_id}/associations",
    response_model=Envelope[ObjectiveAssociation],
)
def associate_objective(
    objective_id: str,
    request: AssociationRequest,
    user_id: str = Depends(get_current_user_id),
    tracker: ObjectiveTracker = Depends(get_tracker),
) -> Envelope[ObjectiveAssociation]:
    """
    Associate the objective with a program, mesocycle, microcycle or session.

    Repeating the call for the same node updates its priority.
    """
    association = tracker.associate(
        objective_id,
        user_id,
        entity_type=request.entity_type,
        entity_id=request.entity_id,
        priority=request.priority,
        expected_progress=request.expected_progress,
    )
    return Envelope(data=association)


@router.get(
    "/objectives/{objective_id}/associations",
    response_model=Envelope[List[ObjectiveAssociation]],
)
def list_associations(
    objective_id: str,
    user_id: str = Depends(get_current_user_id),
    tracker: ObjectiveTracker = Depends(get_tracker),
) -> Envelope[List[ObjectiveAssociation]]:
    return Envelope(data=tracker.associations_for_objective(objective_id, user_id))


@router.delete("/associations/{association_id}", response_model=Envelope[Dict[str, str]])
def dissociate(
    association_id: str,
    user_id: str = Depends(get_current_user_id),
    tracker: ObjectiveTracker = Depends(get_tracker),
) -> Envelope[Dict[str, str]]:
    tracker.dissociate(association_id, user_id)
    return Envelope(data={"deleted": association_id})


@router.get(
    "/nodes/{entity_type}/{entity_id}/objectives",
    response_model=Envelope[List[ObjectiveAssociation]],
)
def objectives_for_node(
    entity_type: EntityType,
    entity_id: str,
    user_id: str = Depends(get_current_user_id),
    tracker: ObjectiveTracker = Depends(get_tracker),
) -> Envelope[List[ObjectiveAssociation]]:
    """Objective associations of one program node, primary first."""
    return Envelope(data=tracker.associations_for(entity_type, entity_id, user_id))
