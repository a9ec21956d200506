from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Index, text
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, SQLModel

PHASE_SWISS = "swiss"
PHASE_KNOCKOUT = "knockout"

STATUS_SCHEDULED = "scheduled"
STATUS_READY = "ready"
STATUS_ON_COURT = "on_court"
STATUS_PENDING_SIGNOFF = "pending_signoff"
STATUS_COMPLETED = "completed"
STATUS_WALKOVER = "walkover"

TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_WALKOVER)
# A match in one of these statuses holds its court
COURT_OCCUPYING_STATUSES = (STATUS_SCHEDULED, STATUS_READY, STATUS_ON_COURT, STATUS_PENDING_SIGNOFF)

SIDE_A = "A"
SIDE_B = "B"

_OCCUPYING_SQL = "court_id IS NOT NULL AND status IN ('scheduled', 'ready', 'on_court', 'pending_signoff')"


class Match(SQLModel, table=True):
    __table_args__ = (
        SAUniqueConstraint("division_id", "phase", "round", "sequence", name="uq_match_division_position"),
        # One court-occupying match per court, enforced by the database
        Index(
            "uq_match_active_court",
            "court_id",
            unique=True,
            sqlite_where=text(_OCCUPYING_SQL),
            postgresql_where=text(_OCCUPYING_SQL),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    division_id: int = Field(foreign_key="division.id", index=True)
    phase: str = Field(default=PHASE_SWISS)  # "swiss" | "knockout"
    round: int
    sequence: int  # 1-based order within the round

    side_a_entry_id: Optional[int] = Field(default=None, foreign_key="entry.id")
    side_b_entry_id: Optional[int] = Field(default=None, foreign_key="entry.id")  # null in a bye

    status: str = Field(default=STATUS_SCHEDULED)
    winner_side: Optional[str] = Field(default=None)  # "A" | "B"
    # {"games": [{"score_a": 21, "score_b": 15}], "total_points_a": .., "total_points_b": .., "live_score": ..}
    score_json: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))

    court_id: Optional[int] = Field(default=None, foreign_key="court.id", index=True)

    # Knockout advancement: winner of this match fills next_match_side of next_match_id
    next_match_id: Optional[int] = Field(default=None, foreign_key="match.id")
    next_match_side: Optional[str] = Field(default=None)

    assigned_at: Optional[datetime] = Field(default=None)
    assigned_by: Optional[str] = Field(default=None)
    started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)  # actual end time, never set for byes
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_bye(self) -> bool:
        return self.side_a_entry_id is not None and self.side_b_entry_id is None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def entry_ids(self):
        return [e for e in (self.side_a_entry_id, self.side_b_entry_id) if e is not None]

    def winner_entry_id(self) -> Optional[int]:
        if self.winner_side == SIDE_A:
            return self.side_a_entry_id
        if self.winner_side == SIDE_B:
            return self.side_b_entry_id
        return None
