from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel


class MatchConflict(SQLModel, table=True):
    """A detected conflict that an operator chose to override"""

    __tablename__ = "matchconflict"

    id: Optional[int] = Field(default=None, primary_key=True)
    match_id: int = Field(foreign_key="match.id", index=True)
    conflict_type: str  # "player_overlap" | "rest_violation" | "court_unavailable"
    severity: str  # "warning" | "error"
    details_json: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    override_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
