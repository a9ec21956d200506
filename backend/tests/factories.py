"""Row builders shared by the API and service tests."""
from datetime import datetime
from typing import List, Optional

from sqlmodel import Session

from tournament_draws.models.court import Court
from tournament_draws.models.division import Division
from tournament_draws.models.entry import Entry
from tournament_draws.models.participant import Participant
from tournament_draws.models.tournament import Tournament


def make_tournament(session: Session, rest_window_minutes: int = 15) -> Tournament:
    tournament = Tournament(name="Spring Open", venue="Main Hall", rest_window_minutes=rest_window_minutes)
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


def make_courts(session: Session, tournament: Tournament, count: int = 2) -> List[Court]:
    courts = [Court(tournament_id=tournament.id, name=f"Court {i}") for i in range(1, count + 1)]
    for c in courts:
        session.add(c)
    session.commit()
    for c in courts:
        session.refresh(c)
    return courts


def make_division(
    session: Session,
    tournament: Tournament,
    entry_count: int = 8,
    rounds: int = 3,
    qualifiers: int = 0,
    draw_size: Optional[int] = None,
    seeded: bool = True,
) -> Division:
    """Swiss singles division with one participant per entry, seeds 1..n in id order."""
    division = Division(
        tournament_id=tournament.id,
        sport="badminton",
        name="Open Singles",
        draw_size=draw_size or max(entry_count, 2),
        rules_json={"swiss_rounds": rounds, "swiss_qualifiers": qualifiers},
    )
    session.add(division)
    session.commit()
    session.refresh(division)

    for i in range(1, entry_count + 1):
        participant = Participant(display_name=f"Player {i}")
        session.add(participant)
        session.commit()
        session.refresh(participant)
        session.add(
            Entry.register(
                division_id=division.id,
                participant_id=participant.id,
                seed=i if seeded else None,
            )
        )
    session.commit()
    return division


def utc(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 5, 2, hour, minute)
