"""
Court assignment: conflict check + assignment as one serialized step per court.

Two callers assigning different matches to the same court must not both
succeed. Inside one process a per-court lock covers the whole
check-then-assign sequence; across processes the partial unique index
uq_match_active_court rejects the second writer, which surfaces here as a
PreconditionError.

Error-severity conflicts always block. Warning-severity conflicts block
unless the caller overrides with a reason; each overridden warning is
recorded as a MatchConflict row.
"""
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from tournament_draws.models.court_assignment import CourtAssignment
from tournament_draws.models.match import (
    STATUS_ON_COURT,
    STATUS_PENDING_SIGNOFF,
    STATUS_READY,
    STATUS_SCHEDULED,
    Match,
)
from tournament_draws.models.match_conflict import MatchConflict
from tournament_draws.services.conflict_detector import Conflict, check_assignment_conflicts
from tournament_draws.services.errors import PreconditionError
from tournament_draws.services.match_lifecycle import require_transition, sides_resolved

logger = logging.getLogger(__name__)

_locks_guard = threading.Lock()
_court_locks: Dict[int, threading.Lock] = {}


def court_lock(court_id: int) -> threading.Lock:
    with _locks_guard:
        lock = _court_locks.get(court_id)
        if lock is None:
            lock = threading.Lock()
            _court_locks[court_id] = lock
        return lock


@dataclass
class AssignmentOutcome:
    assigned: bool
    conflicts: List[Conflict] = field(default_factory=list)
    message: str = ""

    @property
    def errors(self) -> List[Conflict]:
        return [c for c in self.conflicts if c.is_blocking]

    @property
    def warnings(self) -> List[Conflict]:
        return [c for c in self.conflicts if not c.is_blocking]


def assign_match_to_court(
    session: Session,
    match: Match,
    court_id: int,
    tournament_id: int,
    override: bool = False,
    override_reason: Optional[str] = None,
    assigned_by: Optional[str] = None,
    now: Optional[datetime] = None,
) -> AssignmentOutcome:
    """
    Check conflicts and, if allowed, put the match on the court (status ready).

    Raises:
        LookupError: match or tournament not found
        PreconditionError: match not assignable or outside the tournament, or the court was taken concurrently
    """
    require_transition(match, STATUS_READY)
    if not sides_resolved(match):
        raise PreconditionError("Both sides must be known before the match can go on court")

    with court_lock(court_id):
        conflicts = check_assignment_conflicts(session, match.id, court_id, tournament_id, now=now)

        errors = [c for c in conflicts if c.is_blocking]
        if errors:
            return AssignmentOutcome(
                assigned=False,
                conflicts=conflicts,
                message="; ".join(c.detail for c in errors),
            )

        if conflicts and not override:
            return AssignmentOutcome(
                assigned=False,
                conflicts=conflicts,
                message="Conflicts need an override to proceed",
            )
        if conflicts and not (override_reason and override_reason.strip()):
            return AssignmentOutcome(
                assigned=False,
                conflicts=conflicts,
                message="An override reason is required",
            )

        stamp = now or datetime.utcnow()
        match.court_id = court_id
        match.status = STATUS_READY
        match.assigned_at = stamp
        match.assigned_by = assigned_by
        session.add(match)
        session.add(
            CourtAssignment(
                match_id=match.id,
                court_id=court_id,
                assigned_by=assigned_by,
                assigned_at=stamp,
                notes=override_reason if conflicts else None,
            )
        )
        for c in conflicts:
            session.add(
                MatchConflict(
                    match_id=match.id,
                    conflict_type=c.type,
                    severity=c.severity,
                    details_json=c.to_dict(),
                    resolved_at=stamp,
                    resolved_by=assigned_by,
                    override_reason=override_reason,
                )
            )
        try:
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise PreconditionError(f"Court {court_id} was assigned to another match concurrently") from exc
        session.refresh(match)

    if conflicts:
        logger.warning(
            "Match %d assigned to court %d overriding %d warning(s): %s",
            match.id,
            court_id,
            len(conflicts),
            override_reason,
        )
    else:
        logger.info("Match %d assigned to court %d", match.id, court_id)
    return AssignmentOutcome(assigned=True, conflicts=conflicts, message="Match assigned to court")


def clear_court(session: Session, court_id: int) -> Match:
    """
    Take the waiting match off a court (back to scheduled).

    Raises:
        PreconditionError: no match on the court, or it is in play / awaiting sign-off
    """
    with court_lock(court_id):
        match = session.exec(
            select(Match).where(
                Match.court_id == court_id,
                Match.status.in_((STATUS_SCHEDULED, STATUS_READY, STATUS_ON_COURT, STATUS_PENDING_SIGNOFF)),
            )
        ).first()
        if match is None:
            raise PreconditionError("No match found on this court")
        if match.status == STATUS_ON_COURT:
            raise PreconditionError("Cannot clear court: match is in progress. Complete or walkover the match first.")
        if match.status == STATUS_PENDING_SIGNOFF:
            raise PreconditionError("Cannot clear court: match is pending sign-off. Approve or reject the match first.")

        match.court_id = None
        match.status = STATUS_SCHEDULED
        match.assigned_at = None
        match.assigned_by = None
        session.add(match)
        open_logs = session.exec(
            select(CourtAssignment).where(
                CourtAssignment.match_id == match.id,
                CourtAssignment.unassigned_at.is_(None),
            )
        ).all()
        now = datetime.utcnow()
        for log in open_logs:
            log.unassigned_at = now
            session.add(log)
        session.commit()
        session.refresh(match)

    logger.info("Court %d cleared (match %d back to scheduled)", court_id, match.id)
    return match
