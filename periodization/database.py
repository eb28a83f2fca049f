"""
SQLAlchemy Database Models for the Periodization Service

Provides normalized persistent storage, one table per hierarchy level:
- Programs, mesocycles, microcycles, sessions and prescribed exercises
- Special techniques (shared templates and session-specific instances)
- Training objectives and their associations to hierarchy nodes

Children reference their parent by id and are deleted with it, so any
subtree can be updated without rewriting the whole program.
"""

from datetime import datetime, timezone
from functools import lru_cache
from typing import Iterator

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ProgramRecord(Base):
    """
    Root of a periodization program.

    Attributes:
        id: Opaque program id (UUID string)
        user_id: Owner; every read and write is checked against it
        version: Optimistic-lock counter, incremented by every save
        mesocycles: Training blocks ordered by position
    """

    __tablename__ = "programs"

    id = Column(String(36), primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    periodization_type = Column(String, nullable=False)
    goal = Column(String, nullable=False)
    training_level = Column(String, nullable=False)
    frequency = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    version = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    mesocycles = relationship(
        "MesocycleRecord",
        back_populates="program",
        cascade="all, delete-orphan",
        order_by="MesocycleRecord.position",
    )

    def __repr__(self):
        return f"<ProgramRecord(id='{self.id}', name='{self.name}', version={self.version})>"


class MesocycleRecord(Base):
    """
    Multi-week training block.

    Position uniqueness is validated before writing rather than by a
    database constraint, so reorders can swap positions in one flush.
    """

    __tablename__ = "mesocycles"

    id = Column(String(36), primary_key=True)
    program_id = Column(
        String(36), ForeignKey("programs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String, nullable=True)
    phase = Column(String, nullable=False)
    duration_weeks = Column(Integer, nullable=False)
    position = Column(Integer, nullable=False)
    volume_level = Column(Integer, nullable=False)
    intensity_level = Column(Integer, nullable=False)
    volume_progression = Column(String, nullable=False)
    intensity_progression = Column(String, nullable=False)
    includes_deload = Column(Boolean, default=False, nullable=False)
    deload_strategy = Column(JSON, nullable=True)
    notes = Column(String, nullable=True)

    # Relationships
    program = relationship("ProgramRecord", back_populates="mesocycles")
    microcycles = relationship(
        "MicrocycleRecord",
        back_populates="mesocycle",
        cascade="all, delete-orphan",
        order_by="MicrocycleRecord.week_number",
    )

    def __repr__(self):
        return f"<MesocycleRecord(position={self.position}, phase='{self.phase}', weeks={self.duration_weeks})>"


class MicrocycleRecord(Base):
    """One training week within a mesocycle."""

    __tablename__ = "microcycles"

    id = Column(String(36), primary_key=True)
    mesocycle_id = Column(
        String(36), ForeignKey("mesocycles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    week_number = Column(Integer, nullable=False)
    volume_multiplier = Column(Float, nullable=False)
    intensity_multiplier = Column(Float, nullable=False)
    is_deload = Column(Boolean, default=False, nullable=False)
    notes = Column(String, nullable=True)

    # Relationships
    mesocycle = relationship("MesocycleRecord", back_populates="microcycles")
    sessions = relationship(
        "SessionRecord",
        back_populates="microcycle",
        cascade="all, delete-orphan",
        order_by="SessionRecord.sort_index",
    )

    def __repr__(self):
        return f"<MicrocycleRecord(week={self.week_number}, deload={self.is_deload})>"


class SessionRecord(Base):
    """
    Training session within a week.

    Attributes:
        day_of_week: 1 (Monday) to 7 (Sunday); several sessions may share a day
        sort_index: Position of the session in the week's session list
        focus: List of muscle-group or modality tags
    """

    __tablename__ = "training_sessions"

    id = Column(String(36), primary_key=True)
    microcycle_id = Column(
        String(36), ForeignKey("microcycles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sort_index = Column(Integer, default=0, nullable=False)
    name = Column(String, nullable=True)
    day_of_week = Column(Integer, nullable=False)
    focus = Column(JSON, nullable=False, default=list)
    rpe_target = Column(Float, nullable=True)
    rir_target = Column(Float, nullable=True)
    notes = Column(String, nullable=True)

    # Relationships
    microcycle = relationship("MicrocycleRecord", back_populates="sessions")
    exercises = relationship(
        "SessionExerciseRecord",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SessionExerciseRecord.exercise_order",
    )
    techniques = relationship(
        "SpecialTechniqueRecord",
        back_populates="session",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<SessionRecord(day={self.day_of_week}, name='{self.name}')>"


class SessionExerciseRecord(Base):
    """
    Prescribed exercise within a session.

    ``exercise_id`` and ``special_technique_id`` are weak references resolved
    by lookup; they are not foreign keys.
    """

    __tablename__ = "session_exercises"

    id = Column(String(36), primary_key=True)
    session_id = Column(
        String(36), ForeignKey("training_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    exercise_id = Column(String, nullable=False, index=True)
    sets = Column(Integer, nullable=False)
    reps = Column(String, nullable=False)
    rir = Column(Float, nullable=True)
    rpe = Column(Float, nullable=True)
    load = Column(Float, nullable=True)
    rest_seconds = Column(Integer, nullable=False)
    tempo = Column(String, nullable=True)
    superset_group_id = Column(String, nullable=True)
    exercise_order = Column(Integer, nullable=False)
    special_technique_id = Column(String, nullable=True)
    notes = Column(String, nullable=True)

    # Relationships
    session = relationship("SessionRecord", back_populates="exercises")

    def __repr__(self):
        return f"<SessionExerciseRecord(exercise='{self.exercise_id}', sets={self.sets}, reps='{self.reps}')>"


class SpecialTechniqueRecord(Base):
    """
    Special technique, either a shared template (session_id is null,
    is_template true) or an instance attached to one session.
    """

    __tablename__ = "special_techniques"

    id = Column(String(36), primary_key=True)
    user_id = Column(String, nullable=True, index=True)
    session_id = Column(
        String(36), ForeignKey("training_sessions.id", ondelete="CASCADE"), nullable=True, index=True
    )
    name = Column(String, nullable=False)
    type = Column(String, nullable=False)
    description = Column(String, nullable=True)
    parameters = Column(JSON, nullable=False, default=dict)
    is_template = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    session = relationship("SessionRecord", back_populates="techniques")

    def __repr__(self):
        return f"<SpecialTechniqueRecord(name='{self.name}', type='{self.type}', template={self.is_template})>"


class TrainingObjectiveRecord(Base):
    """
    Measurable objective owned by a user, independent of any program.

    Attributes:
        status: 'active', 'achieved' or 'abandoned'
        achieved_at: Set once when the objective first reaches its target
    """

    __tablename__ = "training_objectives"

    id = Column(String(36), primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    category = Column(String, nullable=False)
    target_value = Column(Float, nullable=False)
    current_value = Column(Float, nullable=True)
    units = Column(String, nullable=True)
    deadline = Column(Date, nullable=True)
    measurement_protocol = Column(String, nullable=True)
    status = Column(String, default="active", nullable=False, index=True)
    achieved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    associations = relationship(
        "ObjectiveAssociationRecord",
        back_populates="objective",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<TrainingObjectiveRecord(id='{self.id}', category='{self.category}', status='{self.status}')>"


class ObjectiveAssociationRecord(Base):
    """Link between an objective and a program, mesocycle, microcycle or session."""

    __tablename__ = "objective_associations"
    __table_args__ = (
        UniqueConstraint("objective_id", "entity_type", "entity_id", name="uq_objective_entity"),
    )

    id = Column(String(36), primary_key=True)
    objective_id = Column(
        String(36), ForeignKey("training_objectives.id", ondelete="CASCADE"), nullable=False, index=True
    )
    entity_type = Column(String, nullable=False)
    entity_id = Column(String(36), nullable=False, index=True)
    priority = Column(String, nullable=False)
    expected_progress = Column(Float, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    objective = relationship("TrainingObjectiveRecord", back_populates="associations")

    def __repr__(self):
        return (
            f"<ObjectiveAssociationRecord(objective='{self.objective_id}', "
            f"{self.entity_type}='{self.entity_id}', priority='{self.priority}')>"
        )


# Database connection and session management

def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_database_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create a new SQLAlchemy engine with foreign keys enforced on SQLite.

    Args:
        database_url: Database connection string (default: SQLite file)
        echo: Log emitted SQL

    Returns:
        SQLAlchemy Engine instance
    """
    kwargs = {"echo": echo}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise each checkout gets an empty database
            kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, **kwargs)
    if database_url.startswith("sqlite"):
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


@lru_cache()
def get_engine(database_url: str = "sqlite:///periodization.db", echo: bool = False) -> Engine:
    """Create (or reuse) the process-wide engine for a database URL."""
    return create_database_engine(database_url, echo)


def get_session_factory(engine: Engine) -> sessionmaker:
    """
    Create session factory.

    Args:
        engine: SQLAlchemy Engine instance

    Returns:
        Session factory (sessionmaker)
    """
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def init_database(database_url: str = "sqlite:///periodization.db", echo: bool = False) -> Session:
    """
    Initialize database and create all tables.

    Args:
        database_url: Database connection string
        echo: Log emitted SQL

    Returns:
        SQLAlchemy Session instance
    """
    engine = get_engine(database_url, echo)
    Base.metadata.create_all(engine)
    SessionFactory = get_session_factory(engine)
    return SessionFactory()


def get_db_session(database_url: str = "sqlite:///periodization.db") -> Iterator[Session]:
    """
    Yield a database session and close it afterwards.

    Yields:
        SQLAlchemy Session instance

    Usage:
        @app.get("/endpoint")
        def endpoint(db: Session = Depends(get_db)):
            ...
    """
    engine = get_engine(database_url)
    SessionFactory = get_session_factory(engine)
    db = SessionFactory()
    try:
        yield db
    finally:
        db.close()
