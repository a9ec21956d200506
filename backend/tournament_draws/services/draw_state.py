"""
Per-division draw progress, passed into and returned from each draw step.

The Draw table row is the persisted form; DrawState is the value the
engine works with. Each transition returns a new state and leaves the old
one untouched, so a failed step never leaves half-advanced progress.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, List, Sequence

from tournament_draws.models.draw import Draw
from tournament_draws.models.match import Match

DRAW_PHASE_SWISS = "swiss"
DRAW_PHASE_KNOCKOUT = "knockout"
DRAW_PHASE_COMPLETE = "complete"


@dataclass(frozen=True)
class DrawState:
    division_id: int
    total_rounds: int
    qualifiers: int = 0
    current_round: int = 1
    phase: str = DRAW_PHASE_SWISS
    bye_history: tuple = field(default_factory=tuple)
    knockout_rounds: int = 0

    @classmethod
    def start(cls, division_id: int, total_rounds: int, qualifiers: int, round1_byes: Iterable[int]) -> "DrawState":
        return cls(
            division_id=division_id,
            total_rounds=total_rounds,
            qualifiers=qualifiers,
            current_round=1,
            bye_history=tuple(round1_byes),
        )

    @classmethod
    def from_record(cls, draw: Draw) -> "DrawState":
        return cls(
            division_id=draw.division_id,
            total_rounds=draw.total_rounds,
            qualifiers=draw.qualifiers,
            current_round=draw.current_round,
            phase=draw.phase,
            bye_history=tuple(draw.bye_history or ()),
            knockout_rounds=draw.knockout_rounds,
        )

    def apply_to(self, draw: Draw) -> Draw:
        draw.total_rounds = self.total_rounds
        draw.qualifiers = self.qualifiers
        draw.current_round = self.current_round
        draw.phase = self.phase
        draw.bye_history = list(self.bye_history)
        draw.knockout_rounds = self.knockout_rounds
        return draw

    def to_record(self) -> Draw:
        return self.apply_to(Draw(division_id=self.division_id, total_rounds=self.total_rounds))

    @property
    def swiss_rounds_remaining(self) -> int:
        return self.total_rounds - self.current_round

    def advance_round(self, byes: Sequence[int]) -> "DrawState":
        return replace(self, current_round=self.current_round + 1, bye_history=self.bye_history + tuple(byes))

    def enter_knockout(self, knockout_rounds: int) -> "DrawState":
        return replace(self, phase=DRAW_PHASE_KNOCKOUT, knockout_rounds=knockout_rounds)

    def complete(self) -> "DrawState":
        return replace(self, phase=DRAW_PHASE_COMPLETE)


def is_round_complete(matches: Iterable[Match], round_number: int) -> bool:
    """Every match of the round is terminal (and the round has matches)."""
    in_round: List[Match] = [m for m in matches if m.round == round_number]
    return bool(in_round) and all(m.is_terminal for m in in_round)


def is_phase_complete(matches: Iterable[Match], total_rounds: int) -> bool:
    """Rounds 1..total_rounds all exist and are complete."""
    pool = list(matches)
    return all(is_round_complete(pool, r) for r in range(1, total_rounds + 1))
