"""
Knockout Bracket Builder

Single-elimination bracket from Swiss qualifiers, seeded so the top seeds
meet as late as possible:
  2-entry -> [1, 2]
  4-entry -> [1, 4, 2, 3]
  8-entry -> [1, 8, 4, 5, 2, 7, 3, 6]

The bracket is built in two passes. Pass one creates every slot keyed by its
(round, sequence) position and records which position each winner feeds.
Pass two, once the matches have concrete ids, resolves those keys to ids.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from tournament_draws.models.match import SIDE_A, SIDE_B
from tournament_draws.services.draw_sizes import is_power_of_two
from tournament_draws.services.errors import ConfigurationError

PositionKey = Tuple[int, int]  # (round, sequence)


@dataclass
class Qualifier:
    entry_id: int
    rank: int  # 1-based rank from Swiss standings = knockout seed


@dataclass
class BracketSlot:
    round: int
    sequence: int
    side_a_entry_id: Optional[int] = None
    side_b_entry_id: Optional[int] = None
    seed_a: Optional[int] = None
    seed_b: Optional[int] = None

    @property
    def key(self) -> PositionKey:
        return (self.round, self.sequence)


@dataclass
class AdvancementLink:
    source: PositionKey
    target: PositionKey
    side: str  # side of the target match the winner fills


@dataclass
class KnockoutBracket:
    division_id: int
    size: int
    total_rounds: int
    slots: List[BracketSlot]
    links: List[AdvancementLink]

    def slot(self, round_number: int, sequence: int) -> BracketSlot:
        for s in self.slots:
            if s.round == round_number and s.sequence == sequence:
                return s
        raise KeyError((round_number, sequence))


def bracket_seed_positions(size: int) -> List[int]:
    """Seed numbers in bracket order; consecutive pairs meet in round 1."""
    if not is_power_of_two(size) or size < 2:
        raise ConfigurationError(f"Bracket size must be a power of 2, got {size}")
    seeds = [1]
    while len(seeds) < size:
        next_size = len(seeds) * 2
        expanded: List[int] = []
        for s in seeds:
            expanded.append(s)
            expanded.append(next_size + 1 - s)
        seeds = expanded
    return seeds


def bracket_rounds(size: int) -> int:
    return size.bit_length() - 1


def next_position(round_number: int, sequence: int) -> Tuple[PositionKey, str]:
    """Where the winner of (round, sequence) goes, and which side it fills."""
    next_sequence = (sequence + 1) // 2
    side = SIDE_A if sequence % 2 == 1 else SIDE_B
    return (round_number + 1, next_sequence), side


def build_knockout_bracket(division_id: int, qualifiers: Sequence[Qualifier]) -> KnockoutBracket:
    """
    Build every slot of the bracket plus the winner links between slots.

    Raises:
        ConfigurationError: qualifier count is not a power of 2 or ranks are not 1..N
    """
    size = len(qualifiers)
    if size < 2 or not is_power_of_two(size):
        raise ConfigurationError(f"Qualifier count must be a power of 2, got {size}")

    by_rank: Dict[int, int] = {q.rank: q.entry_id for q in qualifiers}
    if sorted(by_rank) != list(range(1, size + 1)):
        raise ConfigurationError("Qualifier ranks must be exactly 1..N")

    total_rounds = bracket_rounds(size)
    positions = bracket_seed_positions(size)

    slots: List[BracketSlot] = []
    for i in range(0, size, 2):
        seed_a, seed_b = positions[i], positions[i + 1]
        slots.append(
            BracketSlot(
                round=1,
                sequence=i // 2 + 1,
                side_a_entry_id=by_rank[seed_a],
                side_b_entry_id=by_rank[seed_b],
                seed_a=seed_a,
                seed_b=seed_b,
            )
        )

    for round_number in range(2, total_rounds + 1):
        for sequence in range(1, size // (2 ** round_number) + 1):
            slots.append(BracketSlot(round=round_number, sequence=sequence))

    links: List[AdvancementLink] = []
    for s in slots:
        if s.round < total_rounds:
            target, side = next_position(s.round, s.sequence)
            links.append(AdvancementLink(source=s.key, target=target, side=side))

    return KnockoutBracket(
        division_id=division_id,
        size=size,
        total_rounds=total_rounds,
        slots=slots,
        links=links,
    )


def resolve_advancement_links(
    links: Sequence[AdvancementLink],
    match_ids: Mapping[PositionKey, int],
) -> Dict[int, Tuple[int, str]]:
    """Map source match id -> (next match id, side) once ids exist."""
    resolved: Dict[int, Tuple[int, str]] = {}
    for link in links:
        if link.source not in match_ids or link.target not in match_ids:
            raise KeyError(f"Unresolved bracket position {link.source} -> {link.target}")
        resolved[match_ids[link.source]] = (match_ids[link.target], link.side)
    return resolved


def knockout_round_label(round_number: int, total_rounds: int) -> str:
    rounds_from_end = total_rounds - round_number
    if rounds_from_end == 0:
        return "Final"
    if rounds_from_end == 1:
        return "Semi-Final"
    if rounds_from_end == 2:
        return "Quarter-Final"
    return f"Round of {2 ** (rounds_from_end + 1)}"
