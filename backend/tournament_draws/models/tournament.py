from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tournament_draws.models.court import Court
    from tournament_draws.models.division import Division

DEFAULT_REST_WINDOW_MINUTES = 15


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    venue: str
    timezone: str = Field(default="UTC")
    status: str = Field(default="draft")  # "draft" | "active" | "paused" | "completed" | "cancelled"
    # Minimum minutes a participant must rest between matches
    rest_window_minutes: int = Field(default=DEFAULT_REST_WINDOW_MINUTES)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    courts: List["Court"] = Relationship(back_populates="tournament")
    divisions: List["Division"] = Relationship(back_populates="tournament")
