#!/usr/bin/env python3
"""
Import legacy tournament data from JSON files into the database.

players file: {"players": [{"id", "name", "avatar", "matches", "wins", "points",
               "joinDate", "favoriteStrategy", "favoriteCivilization", "status",
               "categoryStats", "matchHistory"}, ...]}
matches file: [{"date", "duration", "map", "gameMode",
               "players": [{"id", "name", "scores", "totalScore", "position",
                            "pointsEarned"}, ...]}, ...]

Player statistics are copied as-is unless --recompute is given, in which
case they are rebuilt from the imported matches.

Usage:
    python scripts/import_data.py <players_json> [--matches <matches_json>] [--replace] [--recompute]

Example:
    python scripts/import_data.py data/data.json --matches data/matches-history.json --recompute
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from datetime import datetime
from typing import Dict, List, Optional

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from sqlalchemy import delete  # noqa: E402

from tournament.database import store  # noqa: E402
from tournament.database.db import AsyncSessionLocal, init_database  # noqa: E402
from tournament.database.models import (  # noqa: E402
    GameMode,
    Match,
    MatchPlayer,
    MatchStatus,
    Player,
    PlayerStatus,
    empty_category_stats,
)
from tournament.services import match_service, phase_service  # noqa: E402
from tournament.services.stats_service import points_for_position  # noqa: E402
from tournament.utils.datetime_utils import ensure_aware, utcnow  # noqa: E402

logger = logging.getLogger("import_data")

EMPTY_SCORES = {"military": 0, "economy": 0, "technology": 0, "society": 0}


def load_json(path: str):
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def parse_date(value: Optional[str]) -> datetime:
    """Parse an ISO date or datetime as UTC; missing values mean now."""
    if not value:
        return utcnow()
    return ensure_aware(datetime.fromisoformat(value.replace("Z", "+00:00")))


def build_player(data: Dict) -> Player:
    join_date = data.get("joinDate") or utcnow().date().isoformat()
    return Player(
        id=str(data["id"]).lower(),
        name=data.get("name") or data["id"],
        avatar=data.get("avatar") or "",
        matches=data.get("matches") or 0,
        wins=data.get("wins") or 0,
        points=data.get("points") or 0,
        join_date=join_date[:10],
        favorite_strategy=data.get("favoriteStrategy") or "none",
        favorite_civilization=data.get("favoriteCivilization") or "none",
        status=PlayerStatus(data.get("status") or "active"),
        category_stats=data.get("categoryStats") or empty_category_stats(),
        match_history=data.get("matchHistory") or [],
    )


def build_match(data: Dict, phase_id: str) -> Optional[Match]:
    """Legacy matches with fewer than four players are skipped."""
    entries = data.get("players") or []
    if len(entries) < 4:
        return None
    total_players = len(entries)
    participants = []
    for entry in entries:
        position = entry.get("position") or 1
        scores = {**EMPTY_SCORES, **(entry.get("scores") or {})}
        participants.append(
            MatchPlayer(
                player_id=str(entry["id"]).lower(),
                player_name=entry.get("name") or "Unknown",
                total_score=entry.get("totalScore") or sum(scores.values()),
                final_position=position,
                points_earned=entry.get("pointsEarned", points_for_position(total_players, position)),
                **scores,
            )
        )
    winner = next((p for p in participants if p.final_position == 1), None)
    played = parse_date(data.get("date"))
    # replays fold matches in recording order; keep the legacy chronology
    return Match(
        phase_id=data.get("phaseId") or phase_id,
        date=played,
        created_at=played,
        duration=data.get("duration") or 45,
        map=data.get("map") or "Arabia",
        game_mode=GameMode(data.get("gameMode") or "FFA"),
        total_players=total_players,
        participants=participants,
        winner_player_id=winner.player_id if winner else None,
        winner_player_name=winner.player_name if winner else None,
        status=MatchStatus.COMPLETED,
        created_by="import",
    )


async def import_data(players_file: str, matches_file: Optional[str], replace: bool, recompute: bool):
    await init_database()
    players_data: List[Dict] = load_json(players_file).get("players", [])
    matches_data: List[Dict] = load_json(matches_file) if matches_file else []
    print(f"📊 Found {len(players_data)} players, {len(matches_data)} matches")

    async with AsyncSessionLocal() as session:
        if replace:
            await session.execute(delete(MatchPlayer))
            await session.execute(delete(Match))
            await session.execute(delete(Player))
            print("🧹 Existing players and matches removed")

        for data in players_data:
            await session.merge(build_player(data))
        await session.flush()
        print(f"✅ {len(players_data)} players imported")

        phase_id = await phase_service.get_current_phase_id(session)
        imported = 0
        for data in matches_data:
            match = build_match(data, phase_id)
            if match is None:
                print(f"   ⚠️  Skipping match on {data.get('date')}: fewer than 4 players")
                continue
            session.add(match)
            imported += 1
        await session.flush()
        print(f"✅ {imported} matches imported")

        if recompute:
            player_ids = [str(p["id"]).lower() for p in players_data]
            rebuilt = await match_service.recompute_player_stats(session, player_ids)
            print(f"🔄 Rebuilt statistics for {len(rebuilt)} players")

        await session.commit()
        print(f"\n📈 Import complete: {await store.count(session, Player)} players, "
              f"{await store.count(session, Match)} matches")


def main():
    parser = argparse.ArgumentParser(description="Import legacy tournament JSON data")
    parser.add_argument("players_file", help="JSON file with a top-level 'players' list")
    parser.add_argument("--matches", dest="matches_file", help="JSON file with a list of matches")
    parser.add_argument("--replace", action="store_true", help="Delete existing players and matches first")
    parser.add_argument("--recompute", action="store_true", help="Rebuild player stats from the imported matches")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    try:
        asyncio.run(import_data(args.players_file, args.matches_file, args.replace, args.recompute))
    except (OSError, ValueError, KeyError) as e:
        print(f"❌ Import failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
