"""
Match score payloads stored in Match.score_json.

  {"games": [{"score_a": 21, "score_b": 17}, ...],
   "total_points_a": 42, "total_points_b": 35,
   "live_score": None}

Byes and walkovers carry an empty game list with zero totals and a
"bye" / "walkover" flag so standings count the result but no points.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from tournament_draws.models.match import SIDE_A, SIDE_B


@dataclass
class GameScore:
    score_a: int
    score_b: int


def build_score_payload(games: Sequence[GameScore]) -> Dict[str, Any]:
    """Payload for a played match. Requires at least one game, no negative scores."""
    if not games:
        raise ValueError("At least one game score is required")
    for game in games:
        if game.score_a < 0 or game.score_b < 0:
            raise ValueError("Game scores cannot be negative")
    return {
        "games": [{"score_a": g.score_a, "score_b": g.score_b} for g in games],
        "total_points_a": sum(g.score_a for g in games),
        "total_points_b": sum(g.score_b for g in games),
        "live_score": None,
    }


def bye_payload() -> Dict[str, Any]:
    return {"games": [], "total_points_a": 0, "total_points_b": 0, "live_score": None, "bye": True}


def walkover_payload() -> Dict[str, Any]:
    return {"games": [], "total_points_a": 0, "total_points_b": 0, "live_score": None, "walkover": True}


def games_won(games: Sequence[GameScore]) -> Tuple[int, int]:
    a = sum(1 for g in games if g.score_a > g.score_b)
    b = sum(1 for g in games if g.score_b > g.score_a)
    return a, b


def derive_winner_side(games: Sequence[GameScore]) -> Optional[str]:
    """Side that won more games, or None on a level count."""
    a, b = games_won(games)
    if a > b:
        return SIDE_A
    if b > a:
        return SIDE_B
    return None


def point_totals(score_json: Optional[Dict[str, Any]]) -> Optional[Tuple[int, int]]:
    """(points_a, points_b) for a played match; None for byes, walkovers and empty payloads."""
    if not score_json:
        return None
    if score_json.get("bye") or score_json.get("walkover"):
        return None
    games: List[Dict[str, Any]] = score_json.get("games") or []
    if not games:
        return None
    points_a = score_json.get("total_points_a")
    points_b = score_json.get("total_points_b")
    if points_a is None or points_b is None:
        points_a = sum(int(g.get("score_a", 0)) for g in games)
        points_b = sum(int(g.get("score_b", 0)) for g in games)
    return int(points_a), int(points_b)
