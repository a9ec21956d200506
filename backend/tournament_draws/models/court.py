from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tournament_draws.models.tournament import Tournament


class Court(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "name", name="uq_court_tournament_name"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    name: str  # e.g. "C1", "Court 3"
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    tournament: "Tournament" = Relationship(back_populates="courts")
