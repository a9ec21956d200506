# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from tournament_draws.models import (  # noqa: F401
    Court,
    CourtAssignment,
    Division,
    Draw,
    Entry,
    Match,
    MatchConflict,
    Participant,
    Standing,
    Team,
    TeamMember,
    Tournament,
)
