"""
Unit tests for the statistics accumulator.
"""
import random
from datetime import datetime

import pytest
import pytz

from tournament.database.models import Match, MatchPlayer, MatchStatus
from tournament.services.stats_service import (
    PlayerStats,
    accumulate_match,
    history_entry,
    points_for_position,
    replay_matches,
)
from tournament.utils.constants import CATEGORIES


def scores_of(value):
    return {category: value for category in CATEGORIES}


@pytest.mark.parametrize(
    "total, position, expected",
    [(4, 1, 3), (4, 2, 2), (4, 3, 1), (4, 4, 0), (8, 1, 7), (8, 8, 0)],
)
def test_points_for_position(total, position, expected):
    assert points_for_position(total, position) == expected


@pytest.mark.parametrize("position", [0, 5])
def test_points_for_position_out_of_range(position):
    with pytest.raises(ValueError):
        points_for_position(4, position)


def test_first_match_sets_all_category_values():
    stats = accumulate_match(PlayerStats(), scores_of(25), final_position=1, total_players=4)

    assert stats.matches == 1
    assert stats.wins == 1
    assert stats.points == 3
    for category in CATEGORIES:
        assert stats.category_stats[category] == {"worst": 25, "average": 25, "best": 25}


def test_accumulate_does_not_mutate_input():
    before = PlayerStats()
    accumulate_match(before, scores_of(10), final_position=2, total_players=4)
    assert before == PlayerStats()


def test_non_winner_gets_no_win():
    stats = accumulate_match(PlayerStats(), scores_of(10), final_position=4, total_players=4)
    assert stats.wins == 0
    assert stats.points == 0
    assert stats.losses == 1


def test_extrema_and_average_over_two_matches():
    stats = accumulate_match(PlayerStats(), scores_of(30), final_position=2, total_players=4)
    stats = accumulate_match(stats, scores_of(10), final_position=1, total_players=6)

    military = stats.category_stats["military"]
    assert military["worst"] == 10
    assert military["best"] == 30
    assert military["average"] == pytest.approx(20)
    assert stats.points == 2 + 5
    assert stats.wins == 1


def test_zero_score_keeps_worst_sentinel_open():
    """A 0 leaves worst at 0, so the next score sets it."""
    stats = accumulate_match(PlayerStats(), scores_of(0), final_position=3, total_players=4)
    stats = accumulate_match(stats, scores_of(12), final_position=3, total_players=4)
    assert stats.category_stats["economy"]["worst"] == 12
    assert stats.category_stats["economy"]["average"] == pytest.approx(6)


def test_running_average_matches_arithmetic_mean():
    rng = random.Random(7)
    stats = PlayerStats()
    recorded = {category: [] for category in CATEGORIES}

    for _ in range(60):
        total_players = rng.randint(4, 8)
        scores = {category: rng.randint(1, 500) for category in CATEGORIES}
        for category, value in scores.items():
            recorded[category].append(value)
        stats = accumulate_match(stats, scores, rng.randint(1, total_players), total_players)

        assert stats.wins <= stats.matches

    for category in CATEGORIES:
        values = recorded[category]
        assert stats.category_stats[category]["average"] == pytest.approx(sum(values) / len(values))
        assert stats.category_stats[category]["best"] == max(values)
        assert stats.category_stats[category]["worst"] == min(values)
    assert stats.matches == 60


def test_wins_clamped_to_matches():
    stats = PlayerStats(matches=2, wins=5)
    stats = accumulate_match(stats, scores_of(10), final_position=1, total_players=4)
    assert stats.wins == stats.matches == 3


def _match(match_id, day, entries):
    participants = [
        MatchPlayer(
            player_id=player_id,
            player_name=player_id.capitalize(),
            total_score=value * 4,
            final_position=position,
            points_earned=len(entries) - position,
            **scores_of(value),
        )
        for player_id, position, value in entries
    ]
    return Match(
        id=match_id,
        phase_id="fase1",
        date=datetime(2025, 2, day, tzinfo=pytz.UTC),
        duration=40,
        map="Arabia",
        total_players=len(entries),
        participants=participants,
        status=MatchStatus.COMPLETED,
    )


def test_history_entry_lists_opponents():
    match = _match("m1", 1, [("alice", 1, 30), ("bob", 2, 20), ("carol", 3, 10), ("dave", 4, 5)])
    entry = history_entry(match, match.participants[1])

    assert entry["matchId"] == "m1"
    assert entry["position"] == 2
    assert entry["totalPlayers"] == 4
    assert entry["duration"] == "40 min"
    assert entry["totalScore"] == 80
    assert entry["opponents"] == ["Alice", "Carol", "Dave"]


def test_replay_matches_equals_incremental_accumulation():
    matches = [
        _match("m1", 1, [("alice", 1, 30), ("bob", 2, 20), ("carol", 3, 10), ("dave", 4, 5)]),
        _match("m2", 2, [("bob", 1, 40), ("alice", 2, 15), ("carol", 3, 10), ("dave", 4, 5)]),
        _match("m3", 3, [("carol", 1, 40), ("bob", 2, 15), ("erin", 3, 10), ("dave", 4, 5)]),
    ]
    stats, history = replay_matches("alice", matches)

    expected = accumulate_match(PlayerStats(), scores_of(30), 1, 4)
    expected = accumulate_match(expected, scores_of(15), 2, 4)
    assert stats == expected
    assert [entry["matchId"] for entry in history] == ["m2", "m1"]
