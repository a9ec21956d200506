from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tournament_draws.models.entry import Entry
    from tournament_draws.models.tournament import Tournament

FORMAT_SWISS = "swiss"
FORMAT_MEXICANO = "mexicano"
FORMAT_GROUPS_KNOCKOUT = "groups_knockout"

PLAY_MODE_SINGLES = "singles"
PLAY_MODE_DOUBLES = "doubles"


class Division(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    sport: str  # "badminton" | "squash" | "pickleball" | "padel"
    name: str
    play_mode: str = Field(default=PLAY_MODE_SINGLES)
    format: str = Field(default=FORMAT_SWISS)
    draw_size: int
    # Format rules, e.g. {"swiss_rounds": 5, "swiss_qualifiers": 8}
    rules_json: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    is_published: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    tournament: "Tournament" = Relationship(back_populates="divisions")
    entries: List["Entry"] = Relationship(back_populates="division")
