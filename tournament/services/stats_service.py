"""
Player statistics accumulation.
Folds single match results into a player's running statistics.
"""

import copy
from typing import Dict, List, Optional, Tuple

from tournament.database.models import Match, MatchPlayer, Player, empty_category_stats
from tournament.utils.constants import CATEGORIES
from tournament.utils.datetime_utils import isoformat


# ============================================================================
# Helper Functions
# ============================================================================

def points_for_position(total_players: int, final_position: int) -> int:
    """
    Tournament points for a finishing position.

    Last place earns 0, each place above it earns one more:
    a 4-player match awards 3, 2, 1, 0.
    """
    if final_position < 1 or final_position > total_players:
        raise ValueError(
            f"Final position {final_position} is outside 1..{total_players}"
        )
    return total_players - final_position


# ============================================================================
# PlayerStats Class
# ============================================================================

class PlayerStats:
    """Cumulative statistics of a single player, detached from the ORM row."""

    def __init__(
        self,
        matches: int = 0,
        wins: int = 0,
        points: int = 0,
        category_stats: Optional[Dict[str, Dict[str, float]]] = None,
    ):
        self.matches = matches
        self.wins = wins
        self.points = points
        self.category_stats = copy.deepcopy(category_stats) if category_stats else empty_category_stats()

    @classmethod
    def from_player(cls, player: Player) -> "PlayerStats":
        return cls(
            matches=player.matches or 0,
            wins=player.wins or 0,
            points=player.points or 0,
            category_stats=player.category_stats,
        )

    def apply_to(self, player: Player) -> None:
        """Copy these statistics onto a Player row (assigns new objects so JSON changes are tracked)."""
        player.matches = self.matches
        player.wins = self.wins
        player.points = self.points
        player.category_stats = copy.deepcopy(self.category_stats)

    @property
    def losses(self) -> int:
        return self.matches - self.wins

    def __eq__(self, other) -> bool:
        if not isinstance(other, PlayerStats):
            return NotImplemented
        return (
            self.matches == other.matches
            and self.wins == other.wins
            and self.points == other.points
            and self.category_stats == other.category_stats
        )

    def __repr__(self) -> str:
        return f"PlayerStats(matches={self.matches}, wins={self.wins}, points={self.points})"


def accumulate_match(
    stats: PlayerStats,
    scores: Dict[str, int],
    final_position: int,
    total_players: int,
) -> PlayerStats:
    """
    Fold one match outcome into a player's statistics.

    The input is left untouched; a new PlayerStats is returned.

    For each category, a worst of 0 means nothing has been recorded yet,
    so the first score sets worst. The average is maintained incrementally
    as (old_average * (matches - 1) + score) / matches.

    Args:
        stats: Statistics before the match
        scores: Category name -> score for this match
        final_position: Finishing position (1 = winner)
        total_players: Number of participants in the match

    Returns:
        Statistics after the match
    """
    points = points_for_position(total_players, final_position)

    updated = PlayerStats(
        matches=stats.matches + 1,
        wins=stats.wins,
        points=stats.points,
        category_stats=stats.category_stats,
    )

    for category in CATEGORIES:
        score = scores[category]
        category_stats = updated.category_stats[category]
        if category_stats["worst"] == 0 or score < category_stats["worst"]:
            category_stats["worst"] = score
        if score > category_stats["best"]:
            category_stats["best"] = score
        previous_total = category_stats["average"] * (updated.matches - 1)
        category_stats["average"] = (previous_total + score) / updated.matches

    updated.points += points
    if final_position == 1:
        updated.wins += 1

    # wins can never exceed matches
    if updated.wins > updated.matches:
        updated.wins = updated.matches

    return updated


# ============================================================================
# Match history
# ============================================================================

def history_entry(match: Match, participant: MatchPlayer) -> Dict:
    """Compact summary of a match from one participant's point of view."""
    return {
        "matchId": match.id,
        "date": isoformat(match.date),
        "map": match.map,
        "duration": match.formatted_duration,
        "position": participant.final_position,
        "totalPlayers": match.total_players,
        "scores": participant.scores,
        "totalScore": participant.total_score,
        "opponents": [
            p.player_name for p in match.participants if p.player_id != participant.player_id
        ],
    }


def replay_matches(player_id: str, matches: List[Match]) -> Tuple[PlayerStats, List[Dict]]:
    """
    Rebuild a player's statistics and history from scratch.

    Args:
        player_id: Player whose results to fold
        matches: Completed matches in recording order, oldest first

    Returns:
        Tuple of (PlayerStats, match history most recent first)
    """
    stats = PlayerStats()
    history: List[Dict] = []
    for match in matches:
        participant = next((p for p in match.participants if p.player_id == player_id), None)
        if participant is None:
            continue
        stats = accumulate_match(
            stats, participant.scores, participant.final_position, match.total_players
        )
        history.insert(0, history_entry(match, participant))
    return stats, history
