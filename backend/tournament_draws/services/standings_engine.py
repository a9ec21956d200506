"""
Standings Engine

Computes Swiss standings for a division from completed and walkover matches.

Ranking order:
  1. wins (desc)
  2. point differential (desc)
  3. points for (desc)
  4. entry id (asc) - deterministic fallback so the order is total

Byes count as a win with a 0-0 contribution. Walkovers count as a win/loss
with no points. Head-to-head results are recorded in the tiebreak payload
for display but do not take part in the ordering.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from sqlmodel import Session, select

from tournament_draws.models.entry import PARTICIPATING_STATUSES, Entry
from tournament_draws.models.match import PHASE_SWISS, SIDE_A, SIDE_B, TERMINAL_STATUSES, Match
from tournament_draws.models.standing import Standing
from tournament_draws.services.score_payload import point_totals

logger = logging.getLogger(__name__)


@dataclass
class StandingRow:
    entry_id: int
    wins: int = 0
    losses: int = 0
    points_for: int = 0
    points_against: int = 0
    h2h_results: Dict[int, str] = field(default_factory=dict)  # opponent entry id -> "W" | "L"
    rank: int = 0

    @property
    def point_diff(self) -> int:
        return self.points_for - self.points_against

    def tiebreak_json(self) -> Dict:
        return {
            "point_diff": self.point_diff,
            "h2h_results": {str(k): v for k, v in self.h2h_results.items()},
        }


def ranking_key(row: StandingRow):
    return (-row.wins, -row.point_diff, -row.points_for, row.entry_id)


def sort_by_tiebreaks(rows: Iterable[StandingRow]) -> List[StandingRow]:
    """Sort rows by the tiebreak hierarchy and assign ranks 1..n."""
    ranked = sorted(rows, key=ranking_key)
    for i, row in enumerate(ranked):
        row.rank = i + 1
    return ranked


def compute_standings(
    entry_ids: Iterable[int],
    matches: Sequence[Match],
    through_round: int,
) -> List[StandingRow]:
    """
    Pure standings calculation.

    Args:
        entry_ids: Entries that must appear (even with no results)
        matches: Candidate matches; only terminal swiss matches up to through_round count
        through_round: Last round to include

    Returns:
        Ranked rows, or an empty list if no counted match exists.
    """
    counted = [
        m
        for m in matches
        if m.phase == PHASE_SWISS and m.round <= through_round and m.status in TERMINAL_STATUSES
    ]
    if not counted:
        return []

    rows: Dict[int, StandingRow] = {eid: StandingRow(entry_id=eid) for eid in entry_ids}
    included = set(rows)

    for match in sorted(counted, key=lambda m: (m.round, m.sequence)):
        side_a = match.side_a_entry_id
        side_b = match.side_b_entry_id
        if side_a is None:
            continue

        row_a = rows.get(side_a) if side_a in included else None
        row_b = rows.get(side_b) if side_b is not None and side_b in included else None

        if match.winner_side == SIDE_A:
            if row_a:
                row_a.wins += 1
            if row_b:
                row_b.losses += 1
        elif match.winner_side == SIDE_B:
            if row_b:
                row_b.wins += 1
            if row_a:
                row_a.losses += 1

        if side_b is not None and match.winner_side in (SIDE_A, SIDE_B):
            a_result = "W" if match.winner_side == SIDE_A else "L"
            if row_a:
                row_a.h2h_results[side_b] = a_result
            if row_b:
                row_b.h2h_results[side_a] = "L" if a_result == "W" else "W"

        totals = point_totals(match.score_json) if side_b is not None else None
        if totals:
            points_a, points_b = totals
            if row_a:
                row_a.points_for += points_a
                row_a.points_against += points_b
            if row_b:
                row_b.points_for += points_b
                row_b.points_against += points_a

    return sort_by_tiebreaks(rows.values())


def select_qualifiers(standings: Sequence[StandingRow], count: int) -> List[StandingRow]:
    """Top `count` rows; their rank doubles as the knockout seed."""
    return list(standings[:count])


def participating_entry_ids(session: Session, division_id: int) -> List[int]:
    return list(
        session.exec(
            select(Entry.id)
            .where(Entry.division_id == division_id, Entry.status.in_(PARTICIPATING_STATUSES))
            .order_by(Entry.id)
        ).all()
    )


def calculate_standings(session: Session, division_id: int, as_of_round: int) -> List[StandingRow]:
    """Ranked standings for a division through `as_of_round`. Read only."""
    matches = session.exec(
        select(Match).where(
            Match.division_id == division_id,
            Match.phase == PHASE_SWISS,
            Match.round <= as_of_round,
            Match.status.in_(TERMINAL_STATUSES),
        )
    ).all()
    if not matches:
        return []
    return compute_standings(participating_entry_ids(session, division_id), matches, as_of_round)


def save_standings_snapshot(
    session: Session,
    division_id: int,
    round_number: int,
    standings: Sequence[StandingRow],
    *,
    commit: bool = True,
) -> int:
    """Upsert one Standing row per entry for (division, round). Returns rows written."""
    existing = {
        s.entry_id: s
        for s in session.exec(
            select(Standing).where(Standing.division_id == division_id, Standing.round == round_number)
        ).all()
    }
    now = datetime.utcnow()
    for row in standings:
        record: Optional[Standing] = existing.pop(row.entry_id, None)
        if record is None:
            record = Standing(division_id=division_id, entry_id=row.entry_id, round=round_number, rank=row.rank)
        record.rank = row.rank
        record.wins = row.wins
        record.losses = row.losses
        record.points_for = row.points_for
        record.points_against = row.points_against
        record.tiebreak_json = row.tiebreak_json()
        record.updated_at = now
        session.add(record)

    # Entries no longer participating drop out of the snapshot
    for stale in existing.values():
        session.delete(stale)

    if commit:
        session.commit()
    logger.debug("Saved %d standings rows for division %d round %d", len(standings), division_id, round_number)
    return len(standings)
