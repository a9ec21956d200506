"""Match lifecycle: transitions, sign-off, walkovers and knockout advancement."""
import pytest
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
from tournament_draws.models.standing import Standing
from tournament_draws.services.court_assignment import assign_match_to_court
from tournament_draws.services.draw_service import persist_bracket
from tournament_draws.services.draw_state import DRAW_PHASE_COMPLETE, DrawState
from tournament_draws.services.errors import PreconditionError
from tournament_draws.services.knockout_bracket import Qualifier, build_knockout_bracket
from tournament_draws.services.match_lifecycle import (
    apply_knockout_advancement,
    approve_match,
    is_valid_transition,
    record_walkover,
    reject_match,
    resolve_all_advancements,
    start_match,
    submit_score,
)
from tournament_draws.services.score_payload import GameScore
from tests.factories import make_courts, make_division, make_tournament


def test_transition_table():
    assert is_valid_transition(STATUS_SCHEDULED, STATUS_READY)
    assert is_valid_transition(STATUS_READY, STATUS_ON_COURT)
    assert is_valid_transition(STATUS_ON_COURT, STATUS_PENDING_SIGNOFF)
    assert is_valid_transition(STATUS_PENDING_SIGNOFF, STATUS_COMPLETED)
    assert is_valid_transition(STATUS_PENDING_SIGNOFF, STATUS_ON_COURT)
    assert is_valid_transition(STATUS_SCHEDULED, STATUS_WALKOVER)
    assert not is_valid_transition(STATUS_SCHEDULED, STATUS_ON_COURT)
    assert not is_valid_transition(STATUS_COMPLETED, STATUS_ON_COURT)
    assert not is_valid_transition(STATUS_WALKOVER, STATUS_COMPLETED)


@pytest.fixture
def swiss_match(session: Session):
    tournament = make_tournament(session)
    courts = make_courts(session, tournament, 1)
    division = make_division(session, tournament, entry_count=2)
    match = Match(division_id=division.id, phase=PHASE_SWISS, round=1, sequence=1, side_a_entry_id=1, side_b_entry_id=2)
    session.add(match)
    session.commit()
    session.refresh(match)
    assign_match_to_court(session, match, courts[0].id, tournament.id)
    return match


def test_full_lifecycle_writes_standings(session: Session, swiss_match: Match):
    start_match(session, swiss_match)
    assert swiss_match.status == STATUS_ON_COURT
    assert swiss_match.started_at is not None

    submit_score(session, swiss_match, [GameScore(21, 17), GameScore(19, 21), GameScore(21, 12)])
    assert swiss_match.status == STATUS_PENDING_SIGNOFF
    assert swiss_match.winner_side == SIDE_A
    assert swiss_match.score_json["total_points_a"] == 61

    assert approve_match(session, swiss_match) == 0
    assert swiss_match.status == STATUS_COMPLETED
    assert swiss_match.completed_at is not None

    rows = session.exec(select(Standing).where(Standing.round == 1).order_by(Standing.rank)).all()
    assert [(s.entry_id, s.wins, s.points_for, s.points_against) for s in rows] == [(1, 1, 61, 50), (2, 0, 50, 61)]


def test_reject_sends_match_back_on_court(session: Session, swiss_match: Match):
    start_match(session, swiss_match)
    submit_score(session, swiss_match, [GameScore(15, 21)])

    reject_match(session, swiss_match)

    assert swiss_match.status == STATUS_ON_COURT
    assert swiss_match.winner_side is None
    assert swiss_match.score_json["games"] == []


def test_level_games_need_explicit_winner(session: Session, swiss_match: Match):
    start_match(session, swiss_match)
    with pytest.raises(PreconditionError, match="winner_side"):
        submit_score(session, swiss_match, [GameScore(21, 15), GameScore(15, 21)])

    submit_score(session, swiss_match, [GameScore(21, 15), GameScore(15, 21)], winner_side=SIDE_B)
    assert swiss_match.winner_side == SIDE_B


def test_cannot_start_before_assignment_or_after_result(session: Session):
    tournament = make_tournament(session)
    division = make_division(session, tournament, entry_count=2)
    match = Match(division_id=division.id, phase=PHASE_SWISS, round=1, sequence=1, side_a_entry_id=1, side_b_entry_id=2)
    session.add(match)
    session.commit()

    with pytest.raises(PreconditionError):
        start_match(session, match)

    record_walkover(session, match, SIDE_B)
    assert match.status == STATUS_WALKOVER
    assert match.winner_side == SIDE_B
    with pytest.raises(PreconditionError):
        record_walkover(session, match, SIDE_A)


def test_approve_requires_pending_signoff(session: Session, swiss_match: Match):
    assert swiss_match.status == STATUS_READY
    with pytest.raises(PreconditionError):
        approve_match(session, swiss_match)


# ----------------------------------------------------------------------------
# Knockout advancement
# ----------------------------------------------------------------------------

@pytest.fixture
def four_bracket(session: Session):
    """Persisted 4-entry bracket (entries 1..4 seeded by id) with its draw row."""
    tournament = make_tournament(session)
    division = make_division(session, tournament, entry_count=4)
    bracket = build_knockout_bracket(division.id, [Qualifier(entry_id=i, rank=i) for i in range(1, 5)])
    matches = persist_bracket(session, bracket)
    draw = DrawState(division_id=division.id, total_rounds=3, current_round=3).enter_knockout(2).to_record()
    session.add(draw)
    session.commit()
    by_position = {(m.round, m.sequence): m for m in matches}
    for m in matches:
        session.refresh(m)
    return division, by_position


def test_semi_final_winners_fill_the_final(session: Session, four_bracket):
    division, matches = four_bracket
    semi1, semi2, final = matches[(1, 1)], matches[(1, 2)], matches[(2, 1)]
    assert (semi1.side_a_entry_id, semi1.side_b_entry_id) == (1, 4)
    assert (semi2.side_a_entry_id, semi2.side_b_entry_id) == (2, 3)
    assert (semi1.next_match_id, semi1.next_match_side) == (final.id, SIDE_A)
    assert (semi2.next_match_id, semi2.next_match_side) == (final.id, SIDE_B)

    assert record_walkover(session, semi1, SIDE_B) == 1
    assert record_walkover(session, semi2, SIDE_A) == 1

    session.refresh(final)
    assert (final.side_a_entry_id, final.side_b_entry_id) == (4, 2)


def test_advancement_is_idempotent(session: Session, four_bracket):
    _, matches = four_bracket
    semi1, final = matches[(1, 1)], matches[(2, 1)]
    record_walkover(session, semi1, SIDE_A)

    assert apply_knockout_advancement(session, semi1) == 0
    assert resolve_all_advancements(session, semi1.division_id) == 0
    session.refresh(final)
    assert final.side_a_entry_id == 1
    assert final.side_b_entry_id is None


def test_final_result_completes_the_draw(session: Session, four_bracket):
    division, matches = four_bracket
    record_walkover(session, matches[(1, 1)], SIDE_A)
    record_walkover(session, matches[(1, 2)], SIDE_A)
    final = matches[(2, 1)]
    session.refresh(final)

    assert record_walkover(session, final, SIDE_A) == 0

    draw = session.exec(select(Draw).where(Draw.division_id == division.id)).one()
    assert draw.phase == DRAW_PHASE_COMPLETE
    assert final.phase == PHASE_KNOCKOUT
