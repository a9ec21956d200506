"""Court assignment: blocking errors, overridable warnings, audit rows and court clearing."""
import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, select

from tournament_draws.models.court_assignment import CourtAssignment
from tournament_draws.models.match import (
    PHASE_KNOCKOUT,
    PHASE_SWISS,
    SIDE_A,
    STATUS_COMPLETED,
    STATUS_ON_COURT,
    STATUS_PENDING_SIGNOFF,
    STATUS_READY,
    STATUS_SCHEDULED,
    Match,
)
from tournament_draws.models.match_conflict import MatchConflict
from tournament_draws.services import court_assignment
from tournament_draws.services.court_assignment import assign_match_to_court, clear_court
from tournament_draws.services.errors import PreconditionError
from tests.factories import make_courts, make_division, make_tournament, utc


@pytest.fixture
def venue(session: Session):
    """Tournament with two courts and a four-entry division."""
    tournament = make_tournament(session, rest_window_minutes=15)
    courts = make_courts(session, tournament, 2)
    division = make_division(session, tournament, entry_count=4)
    return tournament, courts, division


def _match(session, division_id, sequence, a, b, phase=PHASE_SWISS, **fields):
    match = Match(
        division_id=division_id,
        phase=phase,
        round=1,
        sequence=sequence,
        side_a_entry_id=a,
        side_b_entry_id=b,
        **fields,
    )
    session.add(match)
    session.commit()
    session.refresh(match)
    return match


def test_clean_assignment_puts_match_on_court(session: Session, venue):
    tournament, (court1, _), division = venue
    match = _match(session, division.id, 1, 1, 2)

    outcome = assign_match_to_court(session, match, court1.id, tournament.id, assigned_by="desk")

    assert outcome.assigned is True
    assert outcome.conflicts == []
    assert match.status == STATUS_READY
    assert match.court_id == court1.id
    assert match.assigned_by == "desk"
    log = session.exec(select(CourtAssignment).where(CourtAssignment.match_id == match.id)).one()
    assert log.court_id == court1.id
    assert log.unassigned_at is None


def test_errors_block_even_with_override(session: Session, venue):
    tournament, (court1, court2), division = venue
    _match(session, division.id, 1, 1, 2, status=STATUS_READY, court_id=court1.id)
    proposed = _match(session, division.id, 2, 1, 3)

    outcome = assign_match_to_court(
        session, proposed, court2.id, tournament.id, override=True, override_reason="desk call"
    )

    assert outcome.assigned is False
    assert len(outcome.errors) == 1
    assert "Player 1 is already assigned to Court 1" in outcome.message
    session.refresh(proposed)
    assert proposed.court_id is None
    assert proposed.status == STATUS_SCHEDULED


def test_rest_warning_needs_override_and_reason(session: Session, venue):
    tournament, (court1, _), division = venue
    _match(
        session, division.id, 1, 1, 2,
        status=STATUS_COMPLETED, winner_side=SIDE_A, completed_at=utc(10, 0),
    )
    proposed = _match(session, division.id, 2, 1, 3)

    refused = assign_match_to_court(session, proposed, court1.id, tournament.id, now=utc(10, 10))
    assert refused.assigned is False
    assert [c.remaining_minutes for c in refused.warnings] == [5]

    no_reason = assign_match_to_court(session, proposed, court1.id, tournament.id, override=True, now=utc(10, 10))
    assert no_reason.assigned is False
    assert no_reason.message == "An override reason is required"

    accepted = assign_match_to_court(
        session,
        proposed,
        court1.id,
        tournament.id,
        override=True,
        override_reason="Player agreed to start early",
        assigned_by="referee",
        now=utc(10, 10),
    )
    assert accepted.assigned is True
    assert proposed.court_id == court1.id

    logged = session.exec(select(MatchConflict).where(MatchConflict.match_id == proposed.id)).all()
    assert len(logged) == 1
    assert logged[0].conflict_type == "rest_violation"
    assert logged[0].override_reason == "Player agreed to start early"
    assert logged[0].resolved_by == "referee"


def test_unresolved_knockout_match_cannot_be_assigned(session: Session, venue):
    tournament, (court1, _), division = venue
    waiting = _match(session, division.id, 1, 1, None, phase=PHASE_KNOCKOUT)

    with pytest.raises(PreconditionError):
        assign_match_to_court(session, waiting, court1.id, tournament.id)


def test_second_writer_on_same_court_is_rejected_by_index(session: Session, venue, monkeypatch):
    tournament, (court1, _), division = venue
    _match(session, division.id, 1, 1, 2, status=STATUS_READY, court_id=court1.id)
    racer = _match(session, division.id, 2, 3, 4)
    # the racer's conflict check ran before the first assignment committed
    monkeypatch.setattr(court_assignment, "check_assignment_conflicts", lambda *args, **kwargs: [])

    with pytest.raises(PreconditionError, match="concurrently"):
        assign_match_to_court(session, racer, court1.id, tournament.id)

    session.refresh(racer)
    assert racer.court_id is None


def test_assignment_scoped_to_another_tournament_is_refused(session: Session, venue):
    tournament, (court1, court2), division = venue
    other = make_tournament(session)
    make_courts(session, other, 1)
    _match(session, division.id, 1, 1, 2, status=STATUS_ON_COURT, court_id=court1.id)
    proposed = _match(session, division.id, 2, 1, 3)

    with pytest.raises(PreconditionError, match="not part of tournament"):
        assign_match_to_court(session, proposed, court2.id, other.id)

    session.refresh(proposed)
    assert proposed.status == STATUS_SCHEDULED
    assert proposed.court_id is None
    assert session.exec(select(CourtAssignment).where(CourtAssignment.match_id == proposed.id)).all() == []


def test_assignment_to_missing_tournament_is_lookup_error(session: Session, venue):
    _, (court1, _), division = venue
    match = _match(session, division.id, 1, 1, 2)

    with pytest.raises(LookupError):
        assign_match_to_court(session, match, court1.id, 9999)
    assert match.court_id is None


class _HeldFlagLock:
    def __init__(self):
        self.held = False

    def __enter__(self):
        self.held = True
        return self

    def __exit__(self, *exc):
        self.held = False
        return False


def test_clear_court_reads_the_match_under_the_court_lock(session: Session, venue, monkeypatch):
    _, (court1, _), division = venue
    _match(session, division.id, 1, 1, 2, status=STATUS_ON_COURT, court_id=court1.id)
    lock = _HeldFlagLock()
    monkeypatch.setattr(court_assignment, "court_lock", lambda court_id: lock)
    held_during_reads = []
    real_exec = session.exec

    def recording_exec(*args, **kwargs):
        held_during_reads.append(lock.held)
        return real_exec(*args, **kwargs)

    monkeypatch.setattr(session, "exec", recording_exec)

    with pytest.raises(PreconditionError, match="in progress"):
        clear_court(session, court1.id)
    assert held_during_reads and all(held_during_reads)


def test_clear_court_returns_match_to_scheduled(session: Session, venue):
    tournament, (court1, _), division = venue
    match = _match(session, division.id, 1, 1, 2)
    assign_match_to_court(session, match, court1.id, tournament.id)

    cleared = clear_court(session, court1.id)

    assert cleared.id == match.id
    assert cleared.status == STATUS_SCHEDULED
    assert cleared.court_id is None
    log = session.exec(select(CourtAssignment).where(CourtAssignment.match_id == match.id)).one()
    assert log.unassigned_at is not None


@pytest.mark.parametrize("status", [STATUS_ON_COURT, STATUS_PENDING_SIGNOFF])
def test_clear_court_refuses_match_in_play(session: Session, venue, status):
    _, (court1, _), division = venue
    _match(session, division.id, 1, 1, 2, status=status, court_id=court1.id)

    with pytest.raises(PreconditionError):
        clear_court(session, court1.id)


def test_clear_empty_court_is_precondition_error(session: Session, venue):
    _, (court1, _), _ = venue
    with pytest.raises(PreconditionError, match="No match"):
        clear_court(session, court1.id)


# ----------------------------------------------------------------------------
# Endpoints
# ----------------------------------------------------------------------------

def test_conflicts_endpoint_lists_overlap(client: TestClient, session: Session, venue):
    tournament, (court1, court2), division = venue
    _match(session, division.id, 1, 1, 2, status=STATUS_READY, court_id=court1.id)
    proposed = _match(session, division.id, 2, 1, 3)

    response = client.get(
        f"/api/tournaments/{tournament.id}/matches/{proposed.id}/conflicts",
        params={"court_id": court2.id},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["has_errors"] is True
    assert data["has_warnings"] is False
    assert [c["type"] for c in data["conflicts"]] == ["player_overlap"]


def test_assign_endpoint_and_clear(client: TestClient, session: Session, venue):
    tournament, (court1, _), division = venue
    match = _match(session, division.id, 1, 1, 2)

    response = client.post(
        f"/api/tournaments/{tournament.id}/matches/{match.id}/assign",
        json={"court_id": court1.id, "assigned_by": "desk"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["assigned"] is True
    assert data["match"]["status"] == STATUS_READY
    assert data["match"]["court_id"] == court1.id

    response = client.post(f"/api/tournaments/{tournament.id}/courts/{court1.id}/clear")
    assert response.status_code == 200
    assert response.json()["status"] == STATUS_SCHEDULED


def test_clear_endpoint_conflict_when_match_in_progress(client: TestClient, session: Session, venue):
    tournament, (court1, _), division = venue
    _match(session, division.id, 1, 1, 2, status=STATUS_ON_COURT, court_id=court1.id)

    response = client.post(f"/api/tournaments/{tournament.id}/courts/{court1.id}/clear")
    assert response.status_code == 409
    assert "in progress" in response.json()["detail"]


def test_match_from_other_tournament_is_404(client: TestClient, session: Session, venue):
    _, (court1, _), division = venue
    other = make_tournament(session)
    match = _match(session, division.id, 1, 1, 2)

    response = client.post(
        f"/api/tournaments/{other.id}/matches/{match.id}/assign",
        json={"court_id": court1.id},
    )
    assert response.status_code == 404
