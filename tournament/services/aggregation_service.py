"""
Aggregation service.

Read-side tournament views computed on demand from stored players and
matches: leaderboards, category leaders, map statistics, recent activity
and the tournament summary. Nothing here writes to the store.
"""

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tournament.database import store
from tournament.database.models import Match, MatchStatus, Player, PlayerStatus
from tournament.services.errors import store_errors
from tournament.services.match_service import serialize_match
from tournament.utils.constants import CATEGORIES
from tournament.utils.datetime_utils import ensure_aware, isoformat

logger = logging.getLogger(__name__)


def _ratio_percent(wins: int, matches: int) -> str:
    if not matches:
        return "0.0"
    return f"{wins / matches * 100:.1f}"


# ============================================================================
# Global leaderboard
# ============================================================================

def leaderboard_key(player: Player):
    """Points desc, wins desc, matches asc (fewer matches ranks higher), then id."""
    return (-(player.points or 0), -(player.wins or 0), player.matches or 0, player.id)


def rank_players(players: Iterable[Player]) -> List[Player]:
    return sorted(players, key=leaderboard_key)


async def _active_players(session: AsyncSession) -> List[Player]:
    return await store.find_many(session, Player, filters={"status": PlayerStatus.ACTIVE})


def leaderboard_entry(rank: int, player: Player) -> Dict:
    return {
        "rank": rank,
        "playerId": player.id,
        "name": player.name,
        "avatar": player.avatar or "",
        "points": player.points,
        "wins": player.wins,
        "matches": player.matches,
        "winRatio": player.win_ratio,
    }


@store_errors("leaderboard")
async def get_leaderboard(session: AsyncSession, limit: int = 50) -> List[Dict]:
    """Active players in ranking order."""
    ranked = rank_players(await _active_players(session))[: max(int(limit), 0)]
    return [leaderboard_entry(rank, player) for rank, player in enumerate(ranked, start=1)]


@store_errors("leaderboard")
async def get_detailed_leaderboard(session: AsyncSession, limit: int = 50) -> List[Dict]:
    """Global leaderboard with losses, total average and per-category averages."""
    ranked = rank_players(await _active_players(session))[: max(int(limit), 0)]
    entries = []
    for rank, player in enumerate(ranked, start=1):
        entry = leaderboard_entry(rank, player)
        entry["losses"] = player.losses
        entry["totalAverage"] = player.total_average
        entry["categoryAverages"] = {
            category: player.category_stats[category]["average"] for category in CATEGORIES
        }
        entries.append(entry)
    return entries


# ============================================================================
# Phase leaderboard
# ============================================================================

def build_phase_leaderboard(matches: Iterable[Match], limit: int = 50) -> List[Dict]:
    """
    Fold the completed matches of a phase into per-player standings.

    Players are ranked by points desc, then wins desc, then player id.
    Names are taken from the first match a player appears in.
    """
    standings: Dict[str, Dict] = {}
    for match in matches:
        if match.status != MatchStatus.COMPLETED:
            continue
        for participant in match.participants:
            entry = standings.setdefault(
                participant.player_id,
                {
                    "playerId": participant.player_id,
                    "playerName": participant.player_name,
                    "matches": 0,
                    "wins": 0,
                    "points": 0,
                    "totalScore": 0,
                },
            )
            entry["matches"] += 1
            entry["points"] += participant.points_earned
            entry["totalScore"] += participant.total_score
            if participant.final_position == 1:
                entry["wins"] += 1

    ordered = sorted(standings.values(), key=lambda e: (-e["points"], -e["wins"], e["playerId"]))
    leaderboard = []
    for rank, entry in enumerate(ordered[: max(int(limit), 0)], start=1):
        leaderboard.append({
            **entry,
            "rank": rank,
            "winRatio": _ratio_percent(entry["wins"], entry["matches"]),
            "avgScore": round(entry["totalScore"] / entry["matches"]) if entry["matches"] else 0,
        })
    return leaderboard


@store_errors("phase_leaderboard")
async def get_phase_leaderboard(session: AsyncSession, phase_id: str, limit: int = 50) -> List[Dict]:
    """Standings of one phase. A phase without matches has an empty leaderboard."""
    matches = await store.find_many(
        session,
        Match,
        filters={"phase_id": phase_id, "status": MatchStatus.COMPLETED},
        sort=[("date", "asc"), ("created_at", "asc")],
    )
    return build_phase_leaderboard(matches, limit)


# ============================================================================
# Summary building blocks
# ============================================================================

def category_leaders(players: Iterable[Player]) -> Dict[str, Optional[Dict]]:
    """
    Player with the highest best score in each category.

    Ties go to the lowest player id; a category only has no leader when
    there are no players at all.
    """
    players = list(players)
    leaders: Dict[str, Optional[Dict]] = {}
    for category in CATEGORIES:
        leader = None
        for player in sorted(players, key=lambda p: p.id):
            if leader is None or player.category_stats[category]["best"] > leader.category_stats[category]["best"]:
                leader = player
        leaders[category] = (
            {
                "playerId": leader.id,
                "name": leader.name,
                "value": leader.category_stats[category]["best"],
            }
            if leader is not None
            else None
        )
    return leaders


def best_ratio_player(players: Iterable[Player]) -> Optional[Dict]:
    """Player with the highest wins/matches among those who played; ties to the lowest id."""
    candidates = [p for p in players if p.matches and p.matches > 0]
    if not candidates:
        return None
    best = min(candidates, key=lambda p: (-(p.wins / p.matches), p.id))
    return {"playerId": best.id, "name": best.name, "ratio": _ratio_percent(best.wins, best.matches)}


def match_duration_stats(matches: List[Match]) -> Dict:
    """Count plus longest, shortest and mean duration of completed matches."""
    if not matches:
        return {"totalMatches": 0, "longestMatch": None, "shortestMatch": None, "averageDuration": 0}
    # max/min keep the first occurrence, so ties go to the earliest recorded match
    ordered = sorted(matches, key=lambda m: (ensure_aware(m.date), ensure_aware(m.created_at)))
    longest = max(ordered, key=lambda m: m.duration)
    shortest = min(ordered, key=lambda m: m.duration)
    return {
        "totalMatches": len(matches),
        "longestMatch": serialize_match(longest),
        "shortestMatch": serialize_match(shortest),
        "averageDuration": sum(m.duration for m in matches) / len(matches),
    }


async def _completed_matches(session: AsyncSession) -> List[Match]:
    return await store.find_many(session, Match, filters={"status": MatchStatus.COMPLETED})


@store_errors("tournament_summary")
async def get_tournament_summary(session: AsyncSession) -> Dict:
    """
    Composite tournament view.

    Returns:
        Dict with totalPlayers, totalMatches, leader, bestRatioPlayer,
        bestInCategories and matchStats
    """
    players = await _active_players(session)
    matches = await _completed_matches(session)

    ranked = rank_players(players)
    leader = None
    if ranked:
        top = ranked[0]
        leader = {
            "playerId": top.id,
            "name": top.name,
            "points": top.points,
            "wins": top.wins,
            "matches": top.matches,
        }

    return {
        "totalPlayers": len(players),
        "totalMatches": len(matches),
        "leader": leader,
        "bestRatioPlayer": best_ratio_player(players),
        "bestInCategories": category_leaders(players),
        "matchStats": match_duration_stats(matches),
    }


# ============================================================================
# Maps and activity
# ============================================================================

def compute_map_stats(matches: Iterable[Match]) -> List[Dict]:
    """
    Group completed matches by map.

    avgScore is the mean over matches of each match's mean total score.
    Sorted by number of matches desc, then map name.
    """
    grouped: Dict[str, Dict] = {}
    for match in matches:
        if match.status != MatchStatus.COMPLETED:
            continue
        group = grouped.setdefault(match.map, {"count": 0, "duration": 0, "score": 0.0})
        group["count"] += 1
        group["duration"] += match.duration
        group["score"] += match.match_stats["averageScore"]

    stats = [
        {
            "map": name,
            "totalMatches": group["count"],
            "avgDuration": round(group["duration"] / group["count"]),
            "avgScore": round(group["score"] / group["count"]),
        }
        for name, group in grouped.items()
    ]
    stats.sort(key=lambda s: (-s["totalMatches"], s["map"]))
    return stats


@store_errors("map_stats")
async def get_map_stats(session: AsyncSession) -> List[Dict]:
    return compute_map_stats(await _completed_matches(session))


def activity_entry(match: Match) -> Dict:
    return {
        "type": "match",
        "date": isoformat(match.date),
        "description": f"Match on {match.map} - Winner: {match.winner_player_name}",
        "details": {
            "map": match.map,
            "duration": match.formatted_duration,
            "players": match.total_players,
            "winner": match.winner_player_name,
        },
    }


@store_errors("recent_activity")
async def get_recent_activity(session: AsyncSession, limit: int = 10) -> List[Dict]:
    """Most recently recorded completed matches, newest first."""
    matches = await store.find_many(
        session,
        Match,
        filters={"status": MatchStatus.COMPLETED},
        sort=[("created_at", "desc")],
        limit=max(int(limit), 1),
    )
    return [activity_entry(m) for m in matches]
