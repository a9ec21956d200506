"""
Match runtime: start, score, sign-off and walkover.
When a knockout match finishes, the winner fills the linked next match.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session

from tournament_draws.database import get_session
from tournament_draws.models.division import Division
from tournament_draws.models.tournament import Tournament
from tournament_draws.routes.courts import load_tournament_match
from tournament_draws.routes.draws import MatchView, raise_http
from tournament_draws.services import match_lifecycle
from tournament_draws.services.errors import PreconditionError
from tournament_draws.services.score_payload import GameScore

router = APIRouter()


class GameScoreIn(BaseModel):
    score_a: int
    score_b: int


class ScoreSubmission(BaseModel):
    games: List[GameScoreIn]
    winner_side: Optional[str] = None


class WalkoverRequest(BaseModel):
    winner_side: str


class MatchResultResponse(BaseModel):
    match: MatchView
    advanced_count: int = 0


@router.post("/tournaments/{tournament_id}/matches/{match_id}/start", response_model=MatchView)
def start_match(tournament_id: int, match_id: int, session: Session = Depends(get_session)):
    match = load_tournament_match(session, tournament_id, match_id)
    try:
        match_lifecycle.start_match(session, match)
    except PreconditionError as e:
        raise_http(e)
    return MatchView.model_validate(match)


@router.post("/tournaments/{tournament_id}/matches/{match_id}/score", response_model=MatchView)
def submit_score(
    tournament_id: int,
    match_id: int,
    payload: ScoreSubmission,
    session: Session = Depends(get_session),
):
    """Record game scores; the match waits for sign-off."""
    match = load_tournament_match(session, tournament_id, match_id)
    games = [GameScore(score_a=g.score_a, score_b=g.score_b) for g in payload.games]
    try:
        match_lifecycle.submit_score(session, match, games, winner_side=payload.winner_side)
    except PreconditionError as e:
        raise_http(e)
    return MatchView.model_validate(match)


@router.post("/tournaments/{tournament_id}/matches/{match_id}/approve", response_model=MatchResultResponse)
def approve_match(tournament_id: int, match_id: int, session: Session = Depends(get_session)):
    match = load_tournament_match(session, tournament_id, match_id)
    try:
        advanced = match_lifecycle.approve_match(session, match)
    except PreconditionError as e:
        raise_http(e)
    session.refresh(match)
    return MatchResultResponse(match=MatchView.model_validate(match), advanced_count=advanced)


@router.post("/tournaments/{tournament_id}/matches/{match_id}/reject", response_model=MatchView)
def reject_match(tournament_id: int, match_id: int, session: Session = Depends(get_session)):
    """Send a submitted result back; the match returns to on_court."""
    match = load_tournament_match(session, tournament_id, match_id)
    try:
        match_lifecycle.reject_match(session, match)
    except PreconditionError as e:
        raise_http(e)
    return MatchView.model_validate(match)


@router.post("/tournaments/{tournament_id}/matches/{match_id}/walkover", response_model=MatchResultResponse)
def walkover_match(
    tournament_id: int,
    match_id: int,
    payload: WalkoverRequest,
    session: Session = Depends(get_session),
):
    match = load_tournament_match(session, tournament_id, match_id)
    try:
        advanced = match_lifecycle.record_walkover(session, match, payload.winner_side)
    except PreconditionError as e:
        raise_http(e)
    session.refresh(match)
    return MatchResultResponse(match=MatchView.model_validate(match), advanced_count=advanced)


@router.post("/tournaments/{tournament_id}/divisions/{division_id}/resolve-advancement")
def resolve_advancement(tournament_id: int, division_id: int, session: Session = Depends(get_session)):
    """
    Re-apply knockout advancement for every finished match of a division.

    Idempotent: slots that are already filled are left alone. Useful after
    results were entered out of order or an advancement step was interrupted.
    """
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    division = session.get(Division, division_id)
    if not division or division.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail="Division not found")
    advanced = match_lifecycle.resolve_all_advancements(session, division_id)
    return {"division_id": division_id, "advanced_count": advanced}
