from datetime import datetime
from typing import List, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel


class Team(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    division_id: int = Field(foreign_key="division.id", index=True)
    name: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Membership is fixed once the team is registered
    members: List["TeamMember"] = Relationship(back_populates="team")


class TeamMember(SQLModel, table=True):
    __tablename__ = "teammember"
    __table_args__ = (SAUniqueConstraint("team_id", "participant_id", name="uq_team_member"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    team_id: int = Field(foreign_key="team.id", index=True)
    participant_id: int = Field(foreign_key="participant.id")

    team: Team = Relationship(back_populates="members")
