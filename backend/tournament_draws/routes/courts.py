"""
Court endpoints: conflict preview, assignment with override, and clearing a court.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlmodel import Session

from tournament_draws.database import get_session
from tournament_draws.models.court import Court
from tournament_draws.models.division import Division
from tournament_draws.models.match import Match
from tournament_draws.models.tournament import Tournament
from tournament_draws.routes.draws import MatchView, raise_http
from tournament_draws.services.conflict_detector import check_assignment_conflicts
from tournament_draws.services.court_assignment import assign_match_to_court, clear_court
from tournament_draws.services.errors import PreconditionError

router = APIRouter()


class ConflictItem(BaseModel):
    type: str
    severity: str
    detail: str
    participant_id: Optional[int] = None
    other_match_id: Optional[int] = None
    court_name: Optional[str] = None
    remaining_minutes: Optional[int] = None


class ConflictCheckResponse(BaseModel):
    match_id: int
    court_id: int
    has_errors: bool
    has_warnings: bool
    conflicts: List[ConflictItem]


class AssignRequest(BaseModel):
    court_id: int
    override: bool = False
    override_reason: Optional[str] = None
    assigned_by: Optional[str] = None


class AssignResponse(BaseModel):
    assigned: bool
    message: str
    conflicts: List[ConflictItem]
    match: Optional[MatchView] = None


def load_tournament_match(session: Session, tournament_id: int, match_id: int) -> Match:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    match = session.get(Match, match_id)
    if not match:
        raise HTTPException(status_code=404, detail="Match not found")
    division = session.get(Division, match.division_id)
    if not division or division.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail="Match not found")
    return match


@router.get(
    "/tournaments/{tournament_id}/matches/{match_id}/conflicts",
    response_model=ConflictCheckResponse,
)
def get_match_conflicts(
    tournament_id: int,
    match_id: int,
    court_id: int = Query(...),
    session: Session = Depends(get_session),
):
    """Preview conflicts for putting a match on a court. Read only."""
    load_tournament_match(session, tournament_id, match_id)
    conflicts = check_assignment_conflicts(session, match_id, court_id, tournament_id)
    return ConflictCheckResponse(
        match_id=match_id,
        court_id=court_id,
        has_errors=any(c.is_blocking for c in conflicts),
        has_warnings=any(not c.is_blocking for c in conflicts),
        conflicts=[ConflictItem(**c.to_dict()) for c in conflicts],
    )


@router.post(
    "/tournaments/{tournament_id}/matches/{match_id}/assign",
    response_model=AssignResponse,
)
def assign_match(
    tournament_id: int,
    match_id: int,
    payload: AssignRequest,
    session: Session = Depends(get_session),
):
    """
    Assign a match to a court.

    Returns assigned=false with the conflict list when errors are present or
    warnings were not overridden with a reason.
    """
    match = load_tournament_match(session, tournament_id, match_id)
    try:
        outcome = assign_match_to_court(
            session,
            match,
            payload.court_id,
            tournament_id,
            override=payload.override,
            override_reason=payload.override_reason,
            assigned_by=payload.assigned_by,
        )
    except (LookupError, PreconditionError) as e:
        raise_http(e)

    return AssignResponse(
        assigned=outcome.assigned,
        message=outcome.message,
        conflicts=[ConflictItem(**c.to_dict()) for c in outcome.conflicts],
        match=MatchView.model_validate(match) if outcome.assigned else None,
    )


@router.post("/tournaments/{tournament_id}/courts/{court_id}/clear", response_model=MatchView)
def clear_court_endpoint(tournament_id: int, court_id: int, session: Session = Depends(get_session)):
    court = session.get(Court, court_id)
    if not court or court.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail="Court not found")
    try:
        match = clear_court(session, court_id)
    except PreconditionError as e:
        raise_http(e)
    return MatchView.model_validate(match)
