import os
from pathlib import Path
from typing import Generator

from dotenv import load_dotenv
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./tournament.db")

_is_sqlite = DATABASE_URL.startswith("sqlite")
_connect_args = {"check_same_thread": False} if _is_sqlite else {}
_echo = os.getenv("SQL_ECHO", "false").lower() in ("true", "1", "yes")

if _is_sqlite and ":memory:" not in DATABASE_URL:
    db_path = DATABASE_URL.replace("sqlite:///", "", 1)
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

engine: Engine = create_engine(
    DATABASE_URL,
    echo=_echo,
    connect_args=_connect_args,
)


def get_session() -> Generator[Session, None, None]:
    """Get database session"""
    with Session(engine) as session:
        yield session


def import_all_models() -> None:
    """Register every table with SQLModel metadata"""
    from tournament_draws.models.court import Court  # noqa: F401
    from tournament_draws.models.court_assignment import CourtAssignment  # noqa: F401
    from tournament_draws.models.division import Division  # noqa: F401
    from tournament_draws.models.draw import Draw  # noqa: F401
    from tournament_draws.models.entry import Entry  # noqa: F401
    from tournament_draws.models.match import Match  # noqa: F401
    from tournament_draws.models.match_conflict import MatchConflict  # noqa: F401
    from tournament_draws.models.participant import Participant  # noqa: F401
    from tournament_draws.models.standing import Standing  # noqa: F401
    from tournament_draws.models.team import Team, TeamMember  # noqa: F401
    from tournament_draws.models.tournament import Tournament  # noqa: F401


def init_db() -> None:
    """Initialize database - create all tables"""
    import_all_models()
    SQLModel.metadata.create_all(engine)
