"""
Match lifecycle: status transitions, score submission and knockout advancement.

  scheduled -> ready -> on_court -> pending_signoff -> completed
                                         |
                                         +-> on_court (rejected sign-off)

walkover is reachable from every non-terminal status. A bye is created
completed. completed and walkover are terminal.

Approval of a swiss match refreshes the standings snapshot of its round.
Completion of a knockout match (approval or walkover) advances the winner
into the linked next match; completing the last one finishes the draw.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlmodel import Session, select

from tournament_draws.models.draw import Draw
from tournament_draws.models.match import (
    PHASE_KNOCKOUT,
    PHASE_SWISS,
    SIDE_A,
    SIDE_B,
    STATUS_COMPLETED,
    STATUS_ON_COURT,
    STATUS_PENDING_SIGNOFF,
    STATUS_READY,
    STATUS_SCHEDULED,
    STATUS_WALKOVER,
    Match,
)
from tournament_draws.services.draw_state import DrawState
from tournament_draws.services.errors import PreconditionError
from tournament_draws.services.score_payload import (
    GameScore,
    build_score_payload,
    bye_payload,
    derive_winner_side,
    walkover_payload,
)
from tournament_draws.services.standings_engine import calculate_standings, save_standings_snapshot

logger = logging.getLogger(__name__)

VALID_TRANSITIONS: Dict[str, List[str]] = {
    STATUS_SCHEDULED: [STATUS_READY, STATUS_WALKOVER],
    STATUS_READY: [STATUS_SCHEDULED, STATUS_ON_COURT, STATUS_WALKOVER],
    STATUS_ON_COURT: [STATUS_PENDING_SIGNOFF, STATUS_WALKOVER],
    STATUS_PENDING_SIGNOFF: [STATUS_COMPLETED, STATUS_ON_COURT, STATUS_WALKOVER],
    STATUS_COMPLETED: [],
    STATUS_WALKOVER: [],
}


def is_valid_transition(current: str, new: str) -> bool:
    return new in VALID_TRANSITIONS.get(current, [])


def require_transition(match: Match, new: str) -> None:
    if not is_valid_transition(match.status, new):
        raise PreconditionError(f"Cannot move match {match.id} from '{match.status}' to '{new}'")


def new_bye_match(division_id: int, round_number: int, sequence: int, entry_id: int, phase: str = PHASE_SWISS) -> Match:
    """A bye: side B empty, completed at creation with side A the winner and a 0-0 score."""
    return Match(
        division_id=division_id,
        phase=phase,
        round=round_number,
        sequence=sequence,
        side_a_entry_id=entry_id,
        side_b_entry_id=None,
        status=STATUS_COMPLETED,
        winner_side=SIDE_A,
        score_json=bye_payload(),
    )


def sides_resolved(match: Match) -> bool:
    return match.side_a_entry_id is not None and match.side_b_entry_id is not None


def start_match(session: Session, match: Match) -> Match:
    """ready -> on_court; records the actual start time."""
    require_transition(match, STATUS_ON_COURT)
    match.status = STATUS_ON_COURT
    match.started_at = datetime.utcnow()
    session.add(match)
    session.commit()
    session.refresh(match)
    return match


def submit_score(
    session: Session,
    match: Match,
    games: Sequence[GameScore],
    winner_side: Optional[str] = None,
) -> Match:
    """on_court -> pending_signoff with the recorded games."""
    require_transition(match, STATUS_PENDING_SIGNOFF)
    try:
        payload = build_score_payload(games)
    except ValueError as exc:
        raise PreconditionError(str(exc)) from exc

    if winner_side is None:
        winner_side = derive_winner_side(games)
        if winner_side is None:
            raise PreconditionError("Games are level; winner_side must be given")
    if winner_side not in (SIDE_A, SIDE_B):
        raise PreconditionError(f"Invalid winner side: {winner_side}")

    match.score_json = payload
    match.winner_side = winner_side
    match.status = STATUS_PENDING_SIGNOFF
    session.add(match)
    session.commit()
    session.refresh(match)
    return match


def reject_match(session: Session, match: Match) -> Match:
    """pending_signoff -> on_court; the submitted result is discarded."""
    if match.status != STATUS_PENDING_SIGNOFF:
        raise PreconditionError(f"Match {match.id} is '{match.status}', expected '{STATUS_PENDING_SIGNOFF}'")
    match.status = STATUS_ON_COURT
    match.winner_side = None
    if match.score_json:
        match.score_json = {**match.score_json, "games": [], "total_points_a": 0, "total_points_b": 0}
    session.add(match)
    session.commit()
    session.refresh(match)
    return match


def approve_match(session: Session, match: Match) -> int:
    """
    pending_signoff -> completed.

    Returns the number of downstream slots filled by knockout advancement.
    """
    if match.status != STATUS_PENDING_SIGNOFF:
        raise PreconditionError(f"Match {match.id} is '{match.status}', expected '{STATUS_PENDING_SIGNOFF}'")
    match.status = STATUS_COMPLETED
    match.completed_at = datetime.utcnow()
    session.add(match)
    session.commit()
    session.refresh(match)
    return _after_result(session, match)


def record_walkover(session: Session, match: Match, winner_side: str) -> int:
    """Forfeit from any non-terminal status. Counts as a result with no points."""
    require_transition(match, STATUS_WALKOVER)
    if not sides_resolved(match):
        raise PreconditionError("Both sides must be known to record a walkover")
    if winner_side not in (SIDE_A, SIDE_B):
        raise PreconditionError(f"Invalid winner side: {winner_side}")
    match.status = STATUS_WALKOVER
    match.winner_side = winner_side
    match.score_json = walkover_payload()
    match.completed_at = datetime.utcnow()
    session.add(match)
    session.commit()
    session.refresh(match)
    logger.info("Walkover recorded for match %d, side %s advances", match.id, winner_side)
    return _after_result(session, match)


def _after_result(session: Session, match: Match) -> int:
    if match.phase == PHASE_SWISS:
        standings = calculate_standings(session, match.division_id, match.round)
        if standings:
            save_standings_snapshot(session, match.division_id, match.round, standings)
        return 0
    advanced = apply_knockout_advancement(session, match)
    if match.next_match_id is None:
        _finish_draw(session, match.division_id)
    return advanced


def apply_knockout_advancement(session: Session, match: Match) -> int:
    """
    Put the winner of a finished knockout match into its next match.

    Only fills an empty slot (or one already holding the same entry), so
    calling it twice leaves the same state. Returns slots updated (0 or 1).
    """
    if match.phase != PHASE_KNOCKOUT or not match.is_terminal:
        return 0
    winner_id = match.winner_entry_id()
    if winner_id is None or match.next_match_id is None or match.next_match_side is None:
        return 0

    down = session.get(Match, match.next_match_id)
    if down is None:
        return 0

    field_name = "side_a_entry_id" if match.next_match_side == SIDE_A else "side_b_entry_id"
    current = getattr(down, field_name)
    if current is not None:
        return 0
    setattr(down, field_name, winner_id)
    session.add(down)
    session.commit()
    logger.info(
        "Advanced entry %d from match %d into match %d side %s",
        winner_id,
        match.id,
        down.id,
        match.next_match_side,
    )
    return 1


def resolve_all_advancements(session: Session, division_id: int) -> int:
    """Re-apply advancement for every finished knockout match, in bracket order."""
    finished = session.exec(
        select(Match)
        .where(
            Match.division_id == division_id,
            Match.phase == PHASE_KNOCKOUT,
            Match.status.in_((STATUS_COMPLETED, STATUS_WALKOVER)),
        )
        .order_by(Match.round, Match.sequence)
    ).all()
    return sum(apply_knockout_advancement(session, m) for m in finished)


def _finish_draw(session: Session, division_id: int) -> None:
    draw = session.exec(select(Draw).where(Draw.division_id == division_id)).first()
    if draw is None:
        return
    state = DrawState.from_record(draw).complete()
    state.apply_to(draw)
    session.add(draw)
    session.commit()
    logger.info("Draw for division %d complete", division_id)
