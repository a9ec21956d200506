"""
Court Conflict Detector

Checks a proposed (match, court) assignment without mutating anything:

- court_unavailable (error): court inactive, outside the tournament, or
  already holding a court-occupying match
- player_overlap (error): a participant of the match is committed to another
  match that is scheduled on a court, ready or on court
- rest_violation (warning): a participant finished a match less than the
  tournament rest window ago

Entries resolve to participants (singles) or team members (doubles). The
resolver loads every entry and team member of a batch in two queries so a
match can be compared against many others without per-pair lookups.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Set

from sqlmodel import Session, select

from tournament_draws.models.court import Court
from tournament_draws.models.division import Division
from tournament_draws.models.entry import Entry
from tournament_draws.models.match import (
    COURT_OCCUPYING_STATUSES,
    STATUS_COMPLETED,
    STATUS_ON_COURT,
    STATUS_READY,
    STATUS_SCHEDULED,
    Match,
)
from tournament_draws.models.participant import Participant
from tournament_draws.models.team import TeamMember
from tournament_draws.models.tournament import Tournament
from tournament_draws.services.errors import PreconditionError

CONFLICT_PLAYER_OVERLAP = "player_overlap"
CONFLICT_REST_VIOLATION = "rest_violation"
CONFLICT_COURT_UNAVAILABLE = "court_unavailable"

SEVERITY_WARNING = "warning"
SEVERITY_ERROR = "error"

# Statuses in which a match commits its players
PLAYER_COMMITTED_STATUSES = (STATUS_SCHEDULED, STATUS_READY, STATUS_ON_COURT)


@dataclass
class Conflict:
    type: str
    severity: str
    detail: str
    participant_id: Optional[int] = None
    other_match_id: Optional[int] = None
    court_name: Optional[str] = None
    remaining_minutes: Optional[int] = None

    @property
    def is_blocking(self) -> bool:
        return self.severity == SEVERITY_ERROR

    def to_dict(self) -> Dict:
        return {
            "type": self.type,
            "severity": self.severity,
            "detail": self.detail,
            "participant_id": self.participant_id,
            "other_match_id": self.other_match_id,
            "court_name": self.court_name,
            "remaining_minutes": self.remaining_minutes,
        }


class ParticipantResolver:
    """Entry id -> participant ids, from pre-fetched entry and team member rows."""

    def __init__(self, entries: Iterable[Entry], team_members: Mapping[int, Sequence[int]]):
        self._by_entry: Dict[int, FrozenSet[int]] = {}
        for entry in entries:
            if entry.participant_id is not None:
                self._by_entry[entry.id] = frozenset([entry.participant_id])
            elif entry.team_id is not None:
                self._by_entry[entry.id] = frozenset(team_members.get(entry.team_id, ()))
            else:
                self._by_entry[entry.id] = frozenset()

    @classmethod
    def load(cls, session: Session, entry_ids: Iterable[int]) -> "ParticipantResolver":
        ids = {e for e in entry_ids if e is not None}
        if not ids:
            return cls([], {})
        entries = session.exec(select(Entry).where(Entry.id.in_(ids))).all()
        team_ids = {e.team_id for e in entries if e.team_id is not None}
        members: Dict[int, List[int]] = {}
        if team_ids:
            for member in session.exec(select(TeamMember).where(TeamMember.team_id.in_(team_ids))).all():
                members.setdefault(member.team_id, []).append(member.participant_id)
        return cls(entries, members)

    def resolve(self, entry_id: Optional[int]) -> FrozenSet[int]:
        if entry_id is None:
            return frozenset()
        return self._by_entry.get(entry_id, frozenset())

    def match_participants(self, match: Match) -> FrozenSet[int]:
        return self.resolve(match.side_a_entry_id) | self.resolve(match.side_b_entry_id)


def _name(names: Mapping[int, str], participant_id: int) -> str:
    return names.get(participant_id) or "A player"


def detect_conflicts(
    match: Match,
    court: Optional[Court],
    tournament_id: int,
    active_matches: Sequence[Match],
    recent_matches: Sequence[Match],
    resolver: ParticipantResolver,
    rest_window_minutes: int,
    now: datetime,
    court_names: Optional[Mapping[int, str]] = None,
    participant_names: Optional[Mapping[int, str]] = None,
) -> List[Conflict]:
    """
    Pure conflict check over pre-loaded matches.

    Args:
        match: Match being assigned
        court: Target court (None if it does not exist)
        tournament_id: Tournament the assignment belongs to
        active_matches: Other tournament matches that may hold a court or players
        recent_matches: Other tournament matches that finished inside the rest window
        resolver: Participant resolver covering every entry above
        rest_window_minutes: Tournament rest window
        now: Reference time for rest calculations
    """
    court_names = court_names or {}
    participant_names = participant_names or {}
    conflicts: List[Conflict] = []

    if court is None or court.tournament_id != tournament_id:
        conflicts.append(
            Conflict(
                type=CONFLICT_COURT_UNAVAILABLE,
                severity=SEVERITY_ERROR,
                detail="Court does not belong to this tournament",
            )
        )
    else:
        if not court.is_active:
            conflicts.append(
                Conflict(
                    type=CONFLICT_COURT_UNAVAILABLE,
                    severity=SEVERITY_ERROR,
                    detail=f"{court.name} is not active",
                    court_name=court.name,
                )
            )
        for other in active_matches:
            if other.id == match.id or other.court_id != court.id:
                continue
            if other.status in COURT_OCCUPYING_STATUSES:
                conflicts.append(
                    Conflict(
                        type=CONFLICT_COURT_UNAVAILABLE,
                        severity=SEVERITY_ERROR,
                        detail=f"{court.name} is already hosting match {other.id}",
                        other_match_id=other.id,
                        court_name=court.name,
                    )
                )

    players = resolver.match_participants(match)
    if not players:
        return conflicts

    for other in active_matches:
        if other.id == match.id or other.status not in PLAYER_COMMITTED_STATUSES:
            continue
        if other.status == STATUS_SCHEDULED and other.court_id is None:
            continue
        other_court = court_names.get(other.court_id) if other.court_id is not None else None
        for participant_id in sorted(players & resolver.match_participants(other)):
            conflicts.append(
                Conflict(
                    type=CONFLICT_PLAYER_OVERLAP,
                    severity=SEVERITY_ERROR,
                    detail=(
                        f"{_name(participant_names, participant_id)} is already assigned to "
                        f"{other_court or 'another court'}"
                    ),
                    participant_id=participant_id,
                    other_match_id=other.id,
                    court_name=other_court,
                )
            )

    for recent in recent_matches:
        if recent.id == match.id or recent.status != STATUS_COMPLETED or recent.completed_at is None:
            continue
        elapsed = (now - recent.completed_at).total_seconds() / 60
        if elapsed >= rest_window_minutes:
            continue
        remaining = math.ceil(rest_window_minutes - elapsed)
        for participant_id in sorted(players & resolver.match_participants(recent)):
            conflicts.append(
                Conflict(
                    type=CONFLICT_REST_VIOLATION,
                    severity=SEVERITY_WARNING,
                    detail=(
                        f"{_name(participant_names, participant_id)} finished a match "
                        f"{math.floor(elapsed)} minutes ago (needs {remaining} more minutes rest)"
                    ),
                    participant_id=participant_id,
                    other_match_id=recent.id,
                    remaining_minutes=remaining,
                )
            )

    return conflicts


def check_assignment_conflicts(
    session: Session,
    match_id: int,
    court_id: int,
    tournament_id: int,
    now: Optional[datetime] = None,
) -> List[Conflict]:
    """
    Load everything the detector needs for one proposed assignment and run it.

    Raises:
        LookupError: match or tournament not found
        PreconditionError: the match belongs to another tournament
    """
    now = now or datetime.utcnow()
    match = session.get(Match, match_id)
    if match is None:
        raise LookupError(f"Match {match_id} not found")
    tournament = session.get(Tournament, tournament_id)
    if tournament is None:
        raise LookupError(f"Tournament {tournament_id} not found")

    division_ids = list(session.exec(select(Division.id).where(Division.tournament_id == tournament_id)).all())
    if match.division_id not in division_ids:
        raise PreconditionError(f"Match {match_id} is not part of tournament {tournament_id}")

    court = session.get(Court, court_id)
    rest_window = tournament.rest_window_minutes
    cutoff = now - timedelta(minutes=rest_window)

    active_matches = session.exec(
        select(Match).where(
            Match.division_id.in_(division_ids),
            Match.id != match_id,
            Match.status.in_(COURT_OCCUPYING_STATUSES),
        )
    ).all()
    recent_matches = session.exec(
        select(Match).where(
            Match.division_id.in_(division_ids),
            Match.id != match_id,
            Match.status == STATUS_COMPLETED,
            Match.completed_at.is_not(None),
            Match.completed_at >= cutoff,
        )
    ).all()

    entry_ids: Set[int] = set(match.entry_ids())
    for m in list(active_matches) + list(recent_matches):
        entry_ids.update(m.entry_ids())
    resolver = ParticipantResolver.load(session, entry_ids)

    court_names = {
        c.id: c.name for c in session.exec(select(Court).where(Court.tournament_id == tournament_id)).all()
    }
    players = resolver.match_participants(match)
    participant_names = {}
    if players:
        participant_names = {
            p.id: p.display_name
            for p in session.exec(select(Participant).where(Participant.id.in_(players))).all()
        }

    return detect_conflicts(
        match=match,
        court=court,
        tournament_id=tournament_id,
        active_matches=active_matches,
        recent_matches=recent_matches,
        resolver=resolver,
        rest_window_minutes=rest_window,
        now=now,
        court_names=court_names,
        participant_names=participant_names,
    )
