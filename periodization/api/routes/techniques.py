"""
Special Techniques API Routes

Endpoints for the caller's reusable technique templates.
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from periodization.api.dependencies import get_current_user_id, get_db
from periodization.api.models.requests import TechniqueTemplateRequest
from periodization.api.models.responses import Envelope
from periodization.builder import build_model
from periodization.schemas import SpecialTechnique
from periodization.techniques import TechniqueLibrary

router = APIRouter()


@router.get("/techniques", response_model=Envelope[List[SpecialTechnique]])
def list_templates(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Envelope[List[SpecialTechnique]]:
    return Envelope(data=TechniqueLibrary(db).list_templates(user_id))


@router.post(
    "/techniques",
    response_model=Envelope[SpecialTechnique],
    status_code=status.HTTP_201_CREATED,
)
def save_template(
    request: TechniqueTemplateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Envelope[SpecialTechnique]:
    """Save a template; parameters not given take the type's defaults."""
    data = request.model_dump(exclude_none=True)
    technique = build_model(SpecialTechnique, user_id=user_id, is_template=True, **data)
    return Envelope(data=TechniqueLibrary(db).save_template(user_id, technique))


@router.get("/techniques/{technique_id}", response_model=Envelope[SpecialTechnique])
def get_template(
    technique_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Envelope[SpecialTechnique]:
    return Envelope(data=TechniqueLibrary(db).get(technique_id, user_id))
