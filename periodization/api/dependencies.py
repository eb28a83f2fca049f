"""
Shared FastAPI dependencies.

The authenticated principal is resolved by the upstream auth provider and
forwarded as an opaque user id in the configured header (X-User-Id by
default). Every route receives it explicitly through get_current_user_id.
"""

from functools import lru_cache
from typing import Iterator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from periodization.builder import ProgramBuilder
from periodization.catalog import ExerciseCatalog
from periodization.config import get_settings
from periodization.database import get_engine, get_session_factory
from periodization.objectives import ObjectiveTracker
from periodization.repository import ProgramRepository
from periodization.techniques import TechniqueLibrary


def get_db() -> Iterator[Session]:
    """Yield a request-scoped database session."""
    settings = get_settings()
    SessionFactory = get_session_factory(get_engine(settings.DATABASE_URL, settings.SQL_ECHO))
    db = SessionFactory()
    try:
        yield db
    finally:
        db.close()


def get_current_user_id(request: Request) -> str:
    """
    Read the caller's user id from the auth header.

    Raises:
        HTTPException: 401 if the header is missing or blank
    """
    header = get_settings().USER_HEADER
    user_id = request.headers.get(header, "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {header} header",
        )
    return user_id


@lru_cache()
def get_catalog() -> ExerciseCatalog:
    return ExerciseCatalog.from_file(get_settings().catalog_path)


def get_repository(db: Session = Depends(get_db)) -> ProgramRepository:
    return ProgramRepository(db)


def get_tracker(db: Session = Depends(get_db)) -> ObjectiveTracker:
    return ObjectiveTracker(db)


def get_builder(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    catalog: ExerciseCatalog = Depends(get_catalog),
) -> ProgramBuilder:
    """Builder that resolves technique templates from the caller's library."""
    return ProgramBuilder(catalog, TechniqueLibrary(db).lookup_for(user_id))
