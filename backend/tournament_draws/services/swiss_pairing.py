"""
Swiss Pairing Engine

Round 1 - seed fold: entries sorted by seed (unseeded last, by entry id),
seed i plays seed n-1-i. With an odd count the middle entry, which has no
mirror partner in the fold, receives the bye.

Round 2+ - score brackets: entries grouped by win count in standings order.
Inside a bracket the top entry plays the lowest entry it has not met yet;
an odd entry out floats to the top of the next bracket down. Byes go to the
lowest-ranked entry without a previous bye.

Everything in this module is pure: inputs in, pairings out.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from tournament_draws.models.entry import ENTRY_ACTIVE, Entry
from tournament_draws.services.draw_sizes import is_power_of_two
from tournament_draws.services.errors import ConfigurationError, PairingFailure
from tournament_draws.services.standings_engine import StandingRow

logger = logging.getLogger(__name__)

MIN_SWISS_ROUNDS = 3
MAX_SWISS_ROUNDS = 10


@dataclass
class Pairing:
    sequence: int
    side_a_entry_id: int
    side_b_entry_id: Optional[int]  # None = bye

    @property
    def is_bye(self) -> bool:
        return self.side_b_entry_id is None


@dataclass
class RoundPairings:
    pairings: List[Pairing]
    bye_entry_ids: List[int] = field(default_factory=list)
    # Pairs that had already met, allowed only because their bracket had no alternative
    rematches: List[Tuple[int, int]] = field(default_factory=list)
    repeat_bye: bool = False


def validate_swiss_config(rounds: int, qualifiers: int, entry_count: int) -> None:
    """Raise ConfigurationError if the Swiss configuration cannot be drawn."""
    if rounds < MIN_SWISS_ROUNDS:
        raise ConfigurationError(f"Swiss requires minimum {MIN_SWISS_ROUNDS} rounds")
    if rounds > MAX_SWISS_ROUNDS:
        raise ConfigurationError(f"Maximum {MAX_SWISS_ROUNDS} Swiss rounds allowed")
    if qualifiers < 0:
        raise ConfigurationError("Qualifier count cannot be negative")
    if qualifiers > 0:
        if qualifiers % 2 != 0 or not is_power_of_two(qualifiers):
            raise ConfigurationError(
                f"Qualifiers must be an even power of 2 for a knockout bracket, got {qualifiers}"
            )
        if qualifiers > entry_count:
            raise ConfigurationError(
                f"Cannot have {qualifiers} qualifiers with only {entry_count} entries"
            )


def recommended_swiss_rounds(entry_count: int) -> int:
    if entry_count <= 8:
        return 3
    if entry_count <= 16:
        return 4
    if entry_count <= 32:
        return 5
    if entry_count <= 64:
        return 6
    return 7


def auto_assign_seeds(entries: Sequence[Entry]) -> List[Tuple[Entry, int]]:
    """
    Give unseeded entries the lowest unused seed numbers, in entry id order.

    Returns (entry, new_seed) for each entry that received a seed. Entries are
    mutated in place; the caller persists them.
    """
    used = {e.seed for e in entries if e.seed is not None}
    next_seed = 1
    assigned: List[Tuple[Entry, int]] = []
    for entry in sorted((e for e in entries if e.seed is None), key=lambda e: e.id or 0):
        while next_seed in used:
            next_seed += 1
        entry.seed = next_seed
        used.add(next_seed)
        assigned.append((entry, next_seed))
        next_seed += 1
    return assigned


def seed_order(entries: Iterable[Entry]) -> List[Entry]:
    """Seed ascending, unseeded last; entry id breaks ties."""
    return sorted(
        entries,
        key=lambda e: (e.seed is None, e.seed if e.seed is not None else 0, e.id or 0),
    )


def generate_round1_pairings(entries: Sequence[Entry]) -> RoundPairings:
    """Fold pairing of active entries: index i vs index n-1-i."""
    ordered = seed_order(e for e in entries if e.status == ENTRY_ACTIVE)
    n = len(ordered)
    pair_count = n // 2

    pairings = [
        Pairing(sequence=i + 1, side_a_entry_id=ordered[i].id, side_b_entry_id=ordered[n - 1 - i].id)
        for i in range(pair_count)
    ]
    byes: List[int] = []
    if n % 2 == 1:
        bye_entry = ordered[pair_count]
        pairings.append(Pairing(sequence=pair_count + 1, side_a_entry_id=bye_entry.id, side_b_entry_id=None))
        byes.append(bye_entry.id)

    return RoundPairings(pairings=pairings, bye_entry_ids=byes)


def pair_key(a: int, b: int) -> FrozenSet[int]:
    return frozenset((a, b))


def choose_bye(ranked_ids: Sequence[int], bye_history: Iterable[int]) -> Tuple[int, bool]:
    """Lowest-ranked entry without a previous bye; (entry_id, is_repeat)."""
    had_bye = set(bye_history)
    for entry_id in reversed(ranked_ids):
        if entry_id not in had_bye:
            return entry_id, False
    return ranked_ids[-1], True


def score_brackets(standings: Sequence[StandingRow], exclude: Iterable[int] = ()) -> List[List[int]]:
    """Group entry ids by win count, highest first, standings order inside each bracket."""
    skipped = set(exclude)
    brackets: List[List[int]] = []
    current_wins: Optional[int] = None
    for row in standings:
        if row.entry_id in skipped:
            continue
        if row.wins != current_wins:
            brackets.append([])
            current_wins = row.wins
        brackets[-1].append(row.entry_id)
    return brackets


def _pair_bracket(
    bracket: List[int],
    played: Set[FrozenSet[int]],
) -> Tuple[List[Tuple[int, int]], Optional[int], List[Tuple[int, int]]]:
    """
    Pair one bracket. The bracket list is consumed.

    Returns (pairs, leftover_entry, rematches).
    """
    pairs: List[Tuple[int, int]] = []
    rematches: List[Tuple[int, int]] = []
    while len(bracket) >= 2:
        top = bracket.pop(0)
        opponent_index = None
        for idx in range(len(bracket) - 1, -1, -1):
            if pair_key(top, bracket[idx]) not in played:
                opponent_index = idx
                break
        if opponent_index is None:
            opponent_index = len(bracket) - 1
            rematches.append((top, bracket[opponent_index]))
        pairs.append((top, bracket.pop(opponent_index)))
    leftover = bracket.pop() if bracket else None
    return pairs, leftover, rematches


def generate_next_round_pairings(
    standings: Sequence[StandingRow],
    pairing_history: Iterable[Iterable[int]],
    bye_history: Sequence[int],
) -> RoundPairings:
    """
    Score-bracket pairings for round 2 onwards.

    Args:
        standings: Ranked rows of every entry to pair (rank order)
        pairing_history: Prior pairs (any iterable of two entry ids)
        bye_history: Entries that already had a bye

    Raises:
        PairingFailure: an entry is left without an opponent or a bye
    """
    ranked_ids = [row.entry_id for row in standings]
    if len(ranked_ids) < 2:
        raise PairingFailure("At least 2 entries are needed to pair a round", ranked_ids)

    played: Set[FrozenSet[int]] = {frozenset(p) for p in pairing_history}

    bye_entry: Optional[int] = None
    repeat_bye = False
    if len(ranked_ids) % 2 == 1:
        bye_entry, repeat_bye = choose_bye(ranked_ids, bye_history)
        if repeat_bye:
            logger.warning("Every entry has had a bye; entry %d receives a repeat bye", bye_entry)

    brackets = score_brackets(standings, exclude=[bye_entry] if bye_entry is not None else [])

    pairs: List[Tuple[int, int]] = []
    rematches: List[Tuple[int, int]] = []
    floater: Optional[int] = None
    for bracket in brackets:
        owned = list(bracket)
        if floater is not None:
            owned.insert(0, floater)
            floater = None
        bracket_pairs, floater, bracket_rematches = _pair_bracket(owned, played)
        pairs.extend(bracket_pairs)
        rematches.extend(bracket_rematches)

    if floater is not None:
        raise PairingFailure(
            f"Entry {floater} could not be paired: no lower bracket left to float into",
            [floater],
        )

    for a, b in rematches:
        logger.warning("Rematch between entries %d and %d: no other opponent left in bracket", a, b)

    pairings = [
        Pairing(sequence=i + 1, side_a_entry_id=a, side_b_entry_id=b) for i, (a, b) in enumerate(pairs)
    ]
    byes: List[int] = []
    if bye_entry is not None:
        pairings.append(Pairing(sequence=len(pairings) + 1, side_a_entry_id=bye_entry, side_b_entry_id=None))
        byes.append(bye_entry)

    return RoundPairings(pairings=pairings, bye_entry_ids=byes, rematches=rematches, repeat_bye=repeat_bye)
