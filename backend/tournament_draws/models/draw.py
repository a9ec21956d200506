from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel


class Draw(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    division_id: int = Field(foreign_key="division.id", unique=True, index=True)
    type: str = Field(default="swiss")
    current_round: int = Field(default=1)
    total_rounds: int
    qualifiers: int = Field(default=0)
    phase: str = Field(default="swiss")  # "swiss" | "knockout" | "complete"
    # Entry ids that already received a bye, oldest first
    bye_history: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    knockout_rounds: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})
