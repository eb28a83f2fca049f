"""
Programs API Routes

Endpoints for creating, saving, loading and deleting program trees.
"""

from typing import Dict

from fastapi import APIRouter, Depends, status

from periodization.api.dependencies import (
    get_builder,
    get_current_user_id,
    get_repository,
)
from periodization.api.models.requests import (
    ExerciseUpdateRequest,
    MesocycleSaveRequest,
    ProgramCreateRequest,
    ProgramUpdateRequest,
    TemplateProgramRequest,
)
from periodization.api.models.responses import (
    Envelope,
    ProgramCheckResponse,
    ProgramListResponse,
    TemplateProgramResponse,
)
from periodization.builder import ProgramBuilder, build_model
from periodization.errors import NotFoundError, ValidationError
from periodization.repository import ProgramRepository
from periodization.schemas import PeriodizationProgram
from periodization.templates import ProgramTemplateGenerator

router = APIRouter()


@router.post(
    "/programs",
    response_model=Envelope[PeriodizationProgram],
    status_code=status.HTTP_201_CREATED,
)
def create_program(
    request: ProgramCreateRequest,
    user_id: str = Depends(get_current_user_id),
    builder: ProgramBuilder = Depends(get_builder),
    repository: ProgramRepository = Depends(get_repository),
) -> Envelope[PeriodizationProgram]:
    """
    Create a program owned by the caller.

    The request may carry an initial tree of mesocycles; it is validated
    (positions, week numbers, catalog references) before anything is stored.
    """
    program = builder.create_program(
        owner_id=user_id,
        name=request.name,
        periodization_type=request.periodization_type,
        goal=request.goal,
        training_level=request.training_level,
        frequency=request.frequency,
        description=request.description,
        start_date=request.start_date,
        end_date=request.end_date,
    )
    program.mesocycles = sorted(request.mesocycles, key=lambda m: m.position)
    builder.validate(program)
    return Envelope(data=repository.save_program(program))


@router.get("/programs", response_model=Envelope[ProgramListResponse])
def list_programs(
    active_only: bool = False,
    user_id: str = Depends(get_current_user_id),
    repository: ProgramRepository = Depends(get_repository),
) -> Envelope[ProgramListResponse]:
    """List the caller's programs without their trees."""
    programs = repository.list_programs(user_id, active_only=active_only)
    return Envelope(data=ProgramListResponse(programs=programs, count=len(programs)))


@router.post(
    "/programs/from-template",
    response_model=Envelope[TemplateProgramResponse],
    status_code=status.HTTP_201_CREATED,
)
def create_program_from_template(
    request: TemplateProgramRequest,
    user_id: str = Depends(get_current_user_id),
    builder: ProgramBuilder = Depends(get_builder),
    repository: ProgramRepository = Depends(get_repository),
) -> Envelope[TemplateProgramResponse]:
    """
    Generate, save and return a program from the recommended template
    for the requested training level and goal.
    """
    generator = ProgramTemplateGenerator(builder)
    program = generator.generate(
        owner_id=user_id,
        name=request.name,
        level=request.training_level,
        goal=request.goal,
        frequency=request.frequency,
        start_date=request.start_date,
    )
    saved = repository.save_program(program)
    return Envelope(
        data=TemplateProgramResponse(
            program=saved,
            decisions=generator.template_decisions,
            warnings=generator.warnings,
        )
    )


@router.get("/programs/{program_id}", response_model=Envelope[PeriodizationProgram])
def get_program(
    program_id: str,
    user_id: str = Depends(get_current_user_id),
    repository: ProgramRepository = Depends(get_repository),
) -> Envelope[PeriodizationProgram]:
    return Envelope(data=repository.load_program(program_id, user_id))


@router.put("/programs/{program_id}", response_model=Envelope[PeriodizationProgram])
def save_program(
    program_id: str,
    request: ProgramUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    builder: ProgramBuilder = Depends(get_builder),
    repository: ProgramRepository = Depends(get_repository),
) -> Envelope[PeriodizationProgram]:
    """
    Save a complete program tree.

    ``version`` must be the version the client loaded; a concurrent save in
    between is reported as 409 Conflict instead of being overwritten.
    """
    program = build_model(
        PeriodizationProgram,
        id=program_id,
        user_id=user_id,
        **request.model_dump(),
    )
    builder.validate(program)
    return Envelope(data=repository.save_program(program))


@router.delete("/programs/{program_id}", response_model=Envelope[Dict[str, str]])
def delete_program(
    program_id: str,
    user_id: str = Depends(get_current_user_id),
    repository: ProgramRepository = Depends(get_repository),
) -> Envelope[Dict[str, str]]:
    """Delete a program, its whole tree and objective associations to it."""
    repository.delete_program(program_id, user_id)
    return Envelope(data={"deleted": program_id})


@router.put(
    "/programs/{program_id}/mesocycles/{mesocycle_id}",
    response_model=Envelope[PeriodizationProgram],
)
def save_mesocycle(
    program_id: str,
    mesocycle_id: str,
    request: MesocycleSaveRequest,
    user_id: str = Depends(get_current_user_id),
    builder: ProgramBuilder = Depends(get_builder),
    repository: ProgramRepository = Depends(get_repository),
) -> Envelope[PeriodizationProgram]:
    """Insert or replace one mesocycle without rewriting the rest of the program."""
    mesocycle = request.mesocycle
    if mesocycle.id != mesocycle_id:
        raise ValidationError(
            "Mesocycle id in the body does not match the URL",
            details={"mesocycle_id": mesocycle_id, "body_id": mesocycle.id},
        )
    builder.check_references(
        session for microcycle in mesocycle.microcycles for session in microcycle.sessions
    )
    program = repository.save_mesocycle(
        program_id, user_id, mesocycle, expected_version=request.expected_version
    )
    return Envelope(data=program)


@router.put(
    "/programs/{program_id}/exercises/{exercise_id}",
    response_model=Envelope[PeriodizationProgram],
)
def update_exercise(
    program_id: str,
    exercise_id: str,
    request: ExerciseUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    builder: ProgramBuilder = Depends(get_builder),
    repository: ProgramRepository = Depends(get_repository),
) -> Envelope[PeriodizationProgram]:
    """Update one prescribed exercise (sets, reps, load...) in place."""
    exercise = request.exercise
    if exercise.id != exercise_id:
        raise ValidationError(
            "Exercise id in the body does not match the URL",
            details={"exercise_id": exercise_id, "body_id": exercise.id},
        )

    current = repository.load_program(program_id, user_id)
    session = next(
        (s for s in current.iter_sessions() if any(e.id == exercise_id for e in s.exercises)),
        None,
    )
    if session is None:
        raise NotFoundError(
            f"Exercise '{exercise_id}' not found in program",
            details={"program_id": program_id, "exercise_id": exercise_id},
        )
    session.exercises = [exercise if e.id == exercise_id else e for e in session.exercises]
    builder.check_references([session])

    program = repository.update_exercise(
        program_id, user_id, exercise, expected_version=request.expected_version
    )
    return Envelope(data=program)


@router.get("/programs/{program_id}/check", response_model=Envelope[ProgramCheckResponse])
def check_program(
    program_id: str,
    user_id: str = Depends(get_current_user_id),
    builder: ProgramBuilder = Depends(get_builder),
    repository: ProgramRepository = Depends(get_repository),
) -> Envelope[ProgramCheckResponse]:
    """Report soft invariants (missing weeks, empty sessions) of a stored program."""
    program = repository.load_program(program_id, user_id)
    warnings = builder.check_completeness(program)
    return Envelope(
        data=ProgramCheckResponse(program_id=program_id, complete=not warnings, warnings=warnings)
    )
