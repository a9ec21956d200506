from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tournament_draws.models.division import Division

ENTRY_ACTIVE = "active"
ENTRY_WITHDRAWN = "withdrawn"
ENTRY_LATE_ADD = "late_add"
ENTRY_STATUSES = (ENTRY_ACTIVE, ENTRY_WITHDRAWN, ENTRY_LATE_ADD)

# Statuses that take part in rounds 2+ and in standings
PARTICIPATING_STATUSES = (ENTRY_ACTIVE, ENTRY_LATE_ADD)


class Entry(SQLModel, table=True):
    __table_args__ = (
        CheckConstraint(
            "(participant_id IS NOT NULL AND team_id IS NULL) OR (participant_id IS NULL AND team_id IS NOT NULL)",
            name="ck_entry_participant_xor_team",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    division_id: int = Field(foreign_key="division.id", index=True)
    participant_id: Optional[int] = Field(default=None, foreign_key="participant.id")
    team_id: Optional[int] = Field(default=None, foreign_key="team.id")
    seed: Optional[int] = Field(default=None)  # 1-based, uniqueness not enforced
    status: str = Field(default=ENTRY_ACTIVE)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    division: "Division" = Relationship(back_populates="entries")

    @classmethod
    def register(
        cls,
        division_id: int,
        participant_id: Optional[int] = None,
        team_id: Optional[int] = None,
        seed: Optional[int] = None,
        status: str = ENTRY_ACTIVE,
    ) -> "Entry":
        """Build a validated entry for either one participant or one team."""
        if (participant_id is None) == (team_id is None):
            raise ValueError("An entry needs exactly one of participant_id or team_id")
        if seed is not None and seed < 1:
            raise ValueError(f"seed must be a positive integer, got {seed}")
        if status not in ENTRY_STATUSES:
            raise ValueError(f"Invalid entry status: {status}")
        return cls(
            division_id=division_id,
            participant_id=participant_id,
            team_id=team_id,
            seed=seed,
            status=status,
        )
