from tournament_draws.models.court import Court
from tournament_draws.models.court_assignment import CourtAssignment
from tournament_draws.models.division import Division
from tournament_draws.models.draw import Draw
from tournament_draws.models.entry import Entry
from tournament_draws.models.match import Match
from tournament_draws.models.match_conflict import MatchConflict
from tournament_draws.models.participant import Participant
from tournament_draws.models.standing import Standing
from tournament_draws.models.team import Team, TeamMember
from tournament_draws.models.tournament import Tournament

__all__ = [
    "Tournament",
    "Court",
    "Division",
    "Participant",
    "Team",
    "TeamMember",
    "Entry",
    "Match",
    "Draw",
    "Standing",
    "CourtAssignment",
    "MatchConflict",
]
