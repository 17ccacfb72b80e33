"""
Constants used across the tournament statistics system.
"""

import os

# Score categories recorded for every participant of every match
CATEGORIES = ("military", "economy", "technology", "society")

# Match submission bounds
MIN_PLAYERS = 4
MAX_PLAYERS = 8
MIN_DURATION = 10  # minutes
MAX_DURATION = 300  # minutes

# Player profile bounds
PLAYER_ID_MIN_LENGTH = 3
PLAYER_ID_MAX_LENGTH = 30
PLAYER_NAME_MIN_LENGTH = 2
PLAYER_NAME_MAX_LENGTH = 50
FAVORITE_STRATEGY_MAX_LENGTH = 100
FAVORITE_CIVILIZATION_MAX_LENGTH = 50

# Phase used when a submission names none and no phase is active
DEFAULT_PHASE_ID = os.getenv("DEFAULT_PHASE_ID", "fase1")

# Number of history entries returned with player stats
RECENT_MATCHES_LIMIT = 10
