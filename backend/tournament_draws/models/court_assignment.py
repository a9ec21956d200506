from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class CourtAssignment(SQLModel, table=True):
    """Audit log of court assignments and unassignments"""

    __tablename__ = "courtassignment"

    id: Optional[int] = Field(default=None, primary_key=True)
    match_id: int = Field(foreign_key="match.id", index=True)
    court_id: int = Field(foreign_key="court.id", index=True)
    assigned_by: Optional[str] = None
    assigned_at: datetime = Field(default_factory=datetime.utcnow)
    unassigned_at: Optional[datetime] = None
    notes: Optional[str] = None  # override reason when conflicts were overridden
