"""
Draw orchestration for a division.

Binds the pairing engine, the standings calculator and the bracket builder
to persisted state:

- generate_round1: validate config, auto-seed, round 1 fold pairing
- generate_next_round: standings -> score-bracket pairing for round N+1
- build_knockout: top N of final standings -> seeded bracket
- reset_draw: delete every match and the draw state

Each operation validates before writing and commits once at the end; any
failure rolls the session back so no partial round is stored.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from sqlalchemy import delete, update
from sqlmodel import Session, select

from tournament_draws.models.court_assignment import CourtAssignment
from tournament_draws.models.division import FORMAT_SWISS, Division
from tournament_draws.models.draw import Draw
from tournament_draws.models.entry import ENTRY_ACTIVE, Entry
from tournament_draws.models.match import PHASE_KNOCKOUT, PHASE_SWISS, STATUS_SCHEDULED, Match
from tournament_draws.models.match_conflict import MatchConflict
from tournament_draws.models.standing import Standing
from tournament_draws.services.draw_state import (
    DRAW_PHASE_SWISS,
    DrawState,
    is_phase_complete,
    is_round_complete,
)
from tournament_draws.services.errors import ConfigurationError, PreconditionError
from tournament_draws.services.knockout_bracket import (
    KnockoutBracket,
    Qualifier,
    build_knockout_bracket,
    resolve_advancement_links,
)
from tournament_draws.services.match_lifecycle import new_bye_match
from tournament_draws.services.standings_engine import (
    calculate_standings,
    save_standings_snapshot,
    select_qualifiers,
)
from tournament_draws.services.swiss_pairing import (
    RoundPairings,
    auto_assign_seeds,
    generate_next_round_pairings,
    generate_round1_pairings,
    validate_swiss_config,
)

logger = logging.getLogger(__name__)

DEFAULT_SWISS_ROUNDS = 5


@dataclass
class DrawResult:
    state: DrawState
    matches: List[Match]
    round_number: int
    byes: List[int] = field(default_factory=list)
    rematches: List[Tuple[int, int]] = field(default_factory=list)


def swiss_config(division: Division) -> Tuple[int, int]:
    rules = division.rules_json or {}
    rounds = rules.get("swiss_rounds", DEFAULT_SWISS_ROUNDS)
    qualifiers = rules.get("swiss_qualifiers", 0)
    try:
        return int(rounds), int(qualifiers)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid swiss rules: {rules}") from exc


def get_division(session: Session, division_id: int) -> Division:
    division = session.get(Division, division_id)
    if division is None:
        raise LookupError(f"Division {division_id} not found")
    return division


def get_draw(session: Session, division_id: int) -> Optional[Draw]:
    return session.exec(select(Draw).where(Draw.division_id == division_id)).first()


def division_matches(session: Session, division_id: int, phase: Optional[str] = None) -> List[Match]:
    query = select(Match).where(Match.division_id == division_id)
    if phase is not None:
        query = query.where(Match.phase == phase)
    return list(session.exec(query.order_by(Match.phase, Match.round, Match.sequence)).all())


def pairing_history(matches: List[Match]) -> Set[frozenset]:
    """Every pair that has met in a swiss round so far."""
    return {
        frozenset((m.side_a_entry_id, m.side_b_entry_id))
        for m in matches
        if m.phase == PHASE_SWISS and m.side_a_entry_id is not None and m.side_b_entry_id is not None
    }


def _matches_from_pairings(division_id: int, round_number: int, round_pairings: RoundPairings) -> List[Match]:
    matches: List[Match] = []
    for p in round_pairings.pairings:
        if p.is_bye:
            matches.append(new_bye_match(division_id, round_number, p.sequence, p.side_a_entry_id))
        else:
            matches.append(
                Match(
                    division_id=division_id,
                    phase=PHASE_SWISS,
                    round=round_number,
                    sequence=p.sequence,
                    side_a_entry_id=p.side_a_entry_id,
                    side_b_entry_id=p.side_b_entry_id,
                    status=STATUS_SCHEDULED,
                )
            )
    return matches


def _persist(session: Session, objects) -> None:
    try:
        for obj in objects:
            session.add(obj)
        session.commit()
    except Exception:
        session.rollback()
        raise


def generate_round1(session: Session, division_id: int) -> DrawResult:
    """
    Generate round 1 of a Swiss draw.

    Raises:
        ConfigurationError: unsupported format, bad round/qualifier count, draw size exceeded
        PreconditionError: matches already exist for the division
    """
    division = get_division(session, division_id)
    if division.format != FORMAT_SWISS:
        raise ConfigurationError(f"Format '{division.format}' is not supported for draw generation")

    existing = session.exec(select(Match.id).where(Match.division_id == division_id).limit(1)).first()
    if existing is not None or get_draw(session, division_id) is not None:
        raise PreconditionError("Draw already generated for this division. Delete existing matches first.")

    entries = list(
        session.exec(
            select(Entry).where(Entry.division_id == division_id, Entry.status == ENTRY_ACTIVE).order_by(Entry.id)
        ).all()
    )
    if len(entries) < 2:
        raise ConfigurationError("Need at least 2 active entries to generate a draw")
    if division.draw_size and len(entries) > division.draw_size:
        raise ConfigurationError(
            f"Division draw size is {division.draw_size} but {len(entries)} entries are active"
        )

    rounds, qualifiers = swiss_config(division)
    validate_swiss_config(rounds, qualifiers, len(entries))

    seeded = auto_assign_seeds(entries)
    round_pairings = generate_round1_pairings(entries)
    matches = _matches_from_pairings(division_id, 1, round_pairings)
    state = DrawState.start(division_id, rounds, qualifiers, round_pairings.bye_entry_ids)

    division.is_published = True
    _persist(session, [*(e for e, _ in seeded), *matches, state.to_record(), division])
    for m in matches:
        session.refresh(m)

    logger.info(
        "Generated round 1 for division %d: %d matches, %d auto-seeded, byes=%s",
        division_id,
        len(matches),
        len(seeded),
        round_pairings.bye_entry_ids,
    )
    return DrawResult(state=state, matches=matches, round_number=1, byes=round_pairings.bye_entry_ids)


def generate_next_round(session: Session, division_id: int) -> DrawResult:
    """
    Pair the next Swiss round from the standings of the current one.

    Raises:
        PreconditionError: no draw, not in swiss phase, round incomplete, or no rounds left
        PairingFailure: an entry could not be placed
    """
    get_division(session, division_id)
    draw = get_draw(session, division_id)
    if draw is None:
        raise PreconditionError("No draw exists for this division")
    state = DrawState.from_record(draw)
    if state.phase != DRAW_PHASE_SWISS:
        raise PreconditionError(f"Draw is in the '{state.phase}' phase; no more Swiss rounds")
    if state.swiss_rounds_remaining <= 0:
        raise PreconditionError(f"All {state.total_rounds} Swiss rounds have been generated")

    swiss = division_matches(session, division_id, PHASE_SWISS)
    if not is_round_complete(swiss, state.current_round):
        raise PreconditionError(f"Round {state.current_round} is incomplete")

    standings = calculate_standings(session, division_id, state.current_round)
    round_pairings = generate_next_round_pairings(standings, pairing_history(swiss), state.bye_history)

    next_round = state.current_round + 1
    matches = _matches_from_pairings(division_id, next_round, round_pairings)
    new_state = state.advance_round(round_pairings.bye_entry_ids)

    try:
        save_standings_snapshot(session, division_id, state.current_round, standings, commit=False)
    except Exception:
        session.rollback()
        raise
    _persist(session, [*matches, new_state.apply_to(draw)])
    for m in matches:
        session.refresh(m)

    logger.info(
        "Generated round %d for division %d: %d matches, byes=%s, rematches=%d",
        next_round,
        division_id,
        len(matches),
        round_pairings.bye_entry_ids,
        len(round_pairings.rematches),
    )
    return DrawResult(
        state=new_state,
        matches=matches,
        round_number=next_round,
        byes=round_pairings.bye_entry_ids,
        rematches=round_pairings.rematches,
    )


def persist_bracket(session: Session, bracket: KnockoutBracket) -> List[Match]:
    """Insert every bracket slot, then resolve winner links to match ids."""
    by_key: Dict[Tuple[int, int], Match] = {}
    for slot in bracket.slots:
        match = Match(
            division_id=bracket.division_id,
            phase=PHASE_KNOCKOUT,
            round=slot.round,
            sequence=slot.sequence,
            side_a_entry_id=slot.side_a_entry_id,
            side_b_entry_id=slot.side_b_entry_id,
            status=STATUS_SCHEDULED,
        )
        session.add(match)
        by_key[slot.key] = match
    session.flush()

    links = resolve_advancement_links(bracket.links, {key: m.id for key, m in by_key.items()})
    for match in by_key.values():
        if match.id in links:
            match.next_match_id, match.next_match_side = links[match.id]
            session.add(match)
    return list(by_key.values())


def build_knockout(session: Session, division_id: int) -> DrawResult:
    """
    Seed the knockout bracket from final Swiss standings.

    Raises:
        PreconditionError: no draw, Swiss rounds unfinished, or bracket already built
        ConfigurationError: no qualifiers configured or qualifier count not a power of 2
    """
    get_division(session, division_id)
    draw = get_draw(session, division_id)
    if draw is None:
        raise PreconditionError("No draw exists for this division")
    state = DrawState.from_record(draw)
    if state.qualifiers <= 0:
        raise ConfigurationError("No qualifiers configured for this division")

    existing = session.exec(
        select(Match.id).where(Match.division_id == division_id, Match.phase == PHASE_KNOCKOUT).limit(1)
    ).first()
    if existing is not None or state.phase != DRAW_PHASE_SWISS:
        raise PreconditionError("Knockout bracket already built for this division")

    swiss = division_matches(session, division_id, PHASE_SWISS)
    if state.current_round < state.total_rounds or not is_phase_complete(swiss, state.total_rounds):
        raise PreconditionError("All Swiss rounds must be complete before building the knockout bracket")

    standings = calculate_standings(session, division_id, state.total_rounds)
    top = select_qualifiers(standings, state.qualifiers)
    if len(top) < state.qualifiers:
        raise ConfigurationError(
            f"Only {len(top)} entries in standings for {state.qualifiers} qualifier places"
        )
    qualifiers = [Qualifier(entry_id=row.entry_id, rank=row.rank) for row in top]
    bracket = build_knockout_bracket(division_id, qualifiers)

    try:
        matches = persist_bracket(session, bracket)
        save_standings_snapshot(session, division_id, state.total_rounds, standings, commit=False)
        new_state = state.enter_knockout(bracket.total_rounds)
        session.add(new_state.apply_to(draw))
        session.commit()
    except Exception:
        session.rollback()
        raise
    for m in matches:
        session.refresh(m)

    logger.info(
        "Built %d-entry knockout bracket for division %d (%d rounds)",
        bracket.size,
        division_id,
        bracket.total_rounds,
    )
    return DrawResult(state=new_state, matches=matches, round_number=1)


def reset_draw(session: Session, division_id: int) -> int:
    """Delete every match, standings row and the draw state. Returns matches deleted."""
    division = get_division(session, division_id)
    match_ids = list(session.exec(select(Match.id).where(Match.division_id == division_id)).all())
    try:
        if match_ids:
            session.execute(update(Match).where(Match.id.in_(match_ids)).values(next_match_id=None))
            session.execute(delete(MatchConflict).where(MatchConflict.match_id.in_(match_ids)))
            session.execute(delete(CourtAssignment).where(CourtAssignment.match_id.in_(match_ids)))
            session.execute(delete(Match).where(Match.id.in_(match_ids)))
        session.execute(delete(Standing).where(Standing.division_id == division_id))
        session.execute(delete(Draw).where(Draw.division_id == division_id))
        division.is_published = False
        session.add(division)
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.expire_all()
    logger.info("Reset draw for division %d: %d matches deleted", division_id, len(match_ids))
    return len(match_ids)
