"""
Draw endpoints: Swiss round generation, knockout build, standings and bracket views.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlmodel import Session, select

from tournament_draws.database import get_session
from tournament_draws.models.match import PHASE_KNOCKOUT, PHASE_SWISS, Match
from tournament_draws.models.standing import Standing
from tournament_draws.services import draw_service
from tournament_draws.services.draw_state import DrawState, is_round_complete
from tournament_draws.services.errors import ConfigurationError, PairingFailure, PreconditionError
from tournament_draws.services.knockout_bracket import knockout_round_label
from tournament_draws.services.standings_engine import calculate_standings

router = APIRouter()


class MatchView(BaseModel):
    id: int
    phase: str
    round: int
    sequence: int
    side_a_entry_id: Optional[int] = None
    side_b_entry_id: Optional[int] = None
    status: str
    winner_side: Optional[str] = None
    score_json: Optional[Dict[str, Any]] = None
    court_id: Optional[int] = None
    next_match_id: Optional[int] = None
    next_match_side: Optional[str] = None

    class Config:
        from_attributes = True


class DrawStateView(BaseModel):
    division_id: int
    phase: str
    current_round: int
    total_rounds: int
    qualifiers: int
    knockout_rounds: int
    bye_history: List[int]
    current_round_complete: bool


class DrawStepResponse(BaseModel):
    draw: DrawStateView
    round: int
    matches: List[MatchView]
    byes: List[int] = []
    rematches: List[List[int]] = []


class DrawDetailResponse(BaseModel):
    draw: DrawStateView
    matches: List[MatchView]


class StandingView(BaseModel):
    entry_id: int
    rank: int
    wins: int
    losses: int
    points_for: int
    points_against: int
    point_diff: int
    tiebreak: Dict[str, Any] = {}


class StandingsResponse(BaseModel):
    division_id: int
    round: int
    standings: List[StandingView]


class KnockoutRoundView(BaseModel):
    round: int
    label: str
    matches: List[MatchView]


class KnockoutResponse(BaseModel):
    division_id: int
    total_rounds: int
    rounds: List[KnockoutRoundView]


def raise_http(exc: Exception) -> None:
    """Translate service exceptions to HTTP errors."""
    if isinstance(exc, LookupError):
        raise HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, PairingFailure):
        raise HTTPException(status_code=422, detail={"message": str(exc), "entry_ids": exc.entry_ids})
    if isinstance(exc, ConfigurationError):
        raise HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, PreconditionError):
        raise HTTPException(status_code=409, detail=str(exc))
    raise exc


def _state_view(state: DrawState, matches: List[Match]) -> DrawStateView:
    swiss = [m for m in matches if m.phase == PHASE_SWISS]
    return DrawStateView(
        division_id=state.division_id,
        phase=state.phase,
        current_round=state.current_round,
        total_rounds=state.total_rounds,
        qualifiers=state.qualifiers,
        knockout_rounds=state.knockout_rounds,
        bye_history=list(state.bye_history),
        current_round_complete=is_round_complete(swiss, state.current_round),
    )


def _step_response(session: Session, result: draw_service.DrawResult) -> DrawStepResponse:
    all_matches = draw_service.division_matches(session, result.state.division_id)
    return DrawStepResponse(
        draw=_state_view(result.state, all_matches),
        round=result.round_number,
        matches=[MatchView.model_validate(m) for m in result.matches],
        byes=result.byes,
        rematches=[list(pair) for pair in result.rematches],
    )


@router.post("/divisions/{division_id}/draw", response_model=DrawStepResponse, status_code=201)
def generate_draw(division_id: int, session: Session = Depends(get_session)):
    """Generate Swiss round 1. Fails with 409 if the division already has matches."""
    try:
        result = draw_service.generate_round1(session, division_id)
    except (LookupError, ConfigurationError, PreconditionError) as e:
        raise_http(e)
    return _step_response(session, result)


@router.get("/divisions/{division_id}/draw", response_model=DrawDetailResponse)
def get_draw(division_id: int, session: Session = Depends(get_session)):
    try:
        draw_service.get_division(session, division_id)
    except LookupError as e:
        raise_http(e)
    draw = draw_service.get_draw(session, division_id)
    if draw is None:
        raise HTTPException(status_code=404, detail="No draw exists for this division")
    matches = draw_service.division_matches(session, division_id)
    return DrawDetailResponse(
        draw=_state_view(DrawState.from_record(draw), matches),
        matches=[MatchView.model_validate(m) for m in matches],
    )


@router.post("/divisions/{division_id}/draw/next-round", response_model=DrawStepResponse, status_code=201)
def next_round(division_id: int, session: Session = Depends(get_session)):
    """Pair the next Swiss round once every match of the current round is finished."""
    try:
        result = draw_service.generate_next_round(session, division_id)
    except (LookupError, PreconditionError, PairingFailure) as e:
        raise_http(e)
    return _step_response(session, result)


@router.post("/divisions/{division_id}/draw/knockout", response_model=DrawStepResponse, status_code=201)
def build_knockout(division_id: int, session: Session = Depends(get_session)):
    try:
        result = draw_service.build_knockout(session, division_id)
    except (LookupError, ConfigurationError, PreconditionError) as e:
        raise_http(e)
    return _step_response(session, result)


@router.delete("/divisions/{division_id}/draw")
def delete_draw(division_id: int, session: Session = Depends(get_session)):
    """Delete every match, standings snapshot and the draw state of a division."""
    try:
        deleted = draw_service.reset_draw(session, division_id)
    except LookupError as e:
        raise_http(e)
    return {"division_id": division_id, "deleted_matches": deleted}


@router.get("/divisions/{division_id}/standings", response_model=StandingsResponse)
def get_standings(
    division_id: int,
    round: Optional[int] = Query(default=None, ge=1),
    session: Session = Depends(get_session),
):
    """
    Standings through a round (default: the current round).

    Served from the stored snapshot when one exists, otherwise computed.
    """
    try:
        draw_service.get_division(session, division_id)
    except LookupError as e:
        raise_http(e)

    if round is None:
        draw = draw_service.get_draw(session, division_id)
        if draw is None:
            raise HTTPException(status_code=404, detail="No draw exists for this division")
        round = draw.current_round

    snapshot = session.exec(
        select(Standing)
        .where(Standing.division_id == division_id, Standing.round == round)
        .order_by(Standing.rank)
    ).all()
    if snapshot:
        rows = [
            StandingView(
                entry_id=s.entry_id,
                rank=s.rank,
                wins=s.wins,
                losses=s.losses,
                points_for=s.points_for,
                points_against=s.points_against,
                point_diff=s.points_for - s.points_against,
                tiebreak=s.tiebreak_json or {},
            )
            for s in snapshot
        ]
    else:
        rows = [
            StandingView(
                entry_id=r.entry_id,
                rank=r.rank,
                wins=r.wins,
                losses=r.losses,
                points_for=r.points_for,
                points_against=r.points_against,
                point_diff=r.point_diff,
                tiebreak=r.tiebreak_json(),
            )
            for r in calculate_standings(session, division_id, round)
        ]
    return StandingsResponse(division_id=division_id, round=round, standings=rows)


@router.get("/divisions/{division_id}/knockout", response_model=KnockoutResponse)
def get_knockout(division_id: int, session: Session = Depends(get_session)):
    try:
        draw_service.get_division(session, division_id)
    except LookupError as e:
        raise_http(e)
    matches = draw_service.division_matches(session, division_id, PHASE_KNOCKOUT)
    if not matches:
        raise HTTPException(status_code=404, detail="No knockout bracket for this division")

    total_rounds = max(m.round for m in matches)
    rounds: List[KnockoutRoundView] = []
    for r in range(1, total_rounds + 1):
        rounds.append(
            KnockoutRoundView(
                round=r,
                label=knockout_round_label(r, total_rounds),
                matches=[MatchView.model_validate(m) for m in matches if m.round == r],
            )
        )
    return KnockoutResponse(division_id=division_id, total_rounds=total_rounds, rounds=rounds)
