"""
Match submission validation.

Pure checks run before anything is written: field constraints, score
totals, and finishing positions. Player existence is checked by the match
service because it needs the store.
"""

import logging
from typing import Any, Dict, Union

import pydantic

from tournament.models.schemas import CreateMatchRequest
from tournament.services.errors import ValidationError
from tournament.utils.constants import CATEGORIES

logger = logging.getLogger(__name__)


def _schema_error(exc: pydantic.ValidationError) -> ValidationError:
    """Convert the first pydantic error into a field-level rejection."""
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or None
    message = first.get("msg", "Invalid match data")
    return ValidationError(f"Invalid match data: {field}: {message}" if field else message, field=field)


def parse_submission(submission: Union[CreateMatchRequest, Dict[str, Any]]) -> CreateMatchRequest:
    """Apply field-level constraints (ranges, lengths, enums)."""
    if isinstance(submission, CreateMatchRequest):
        return submission
    try:
        return CreateMatchRequest.model_validate(submission)
    except pydantic.ValidationError as e:
        raise _schema_error(e) from e


def check_score_totals(request: CreateMatchRequest) -> None:
    """Every participant's total must equal the sum of their category scores."""
    for index, participant in enumerate(request.players):
        expected = sum(getattr(participant.scores, category) for category in CATEGORIES)
        if participant.total_score != expected:
            raise ValidationError(
                f"The total score of {participant.player_name} ({participant.total_score}) "
                f"does not match the sum of their scores ({expected})",
                field=f"players.{index}.totalScore",
                context={"playerName": participant.player_name},
            )


def check_positions_unique(request: CreateMatchRequest) -> None:
    positions = [p.final_position for p in request.players]
    if len(positions) != len(set(positions)):
        raise ValidationError("Final positions must be unique", field="players.finalPosition")


def check_positions_consecutive(request: CreateMatchRequest) -> None:
    """Sorted positions must be exactly 1..N."""
    positions = sorted(p.final_position for p in request.players)
    if positions != list(range(1, len(positions) + 1)):
        raise ValidationError(
            f"Final positions must be consecutive from 1 to {len(positions)}",
            field="players.finalPosition",
        )


def check_players_distinct(request: CreateMatchRequest) -> None:
    player_ids = [p.player_id.lower() for p in request.players]
    if len(player_ids) != len(set(player_ids)):
        raise ValidationError("A player cannot appear twice in the same match", field="players.playerId")


def validate_match_submission(
    submission: Union[CreateMatchRequest, Dict[str, Any]]
) -> CreateMatchRequest:
    """
    Validate a candidate match submission.

    Checks run in order and the first failure is raised:
        1. Field constraints (duration, map, game mode, 4-8 participants, ...)
        2. totalScore equals the sum of the four category scores
        3. finalPosition values are pairwise unique
        4. finalPosition values are exactly 1..N
        5. No player appears twice

    Args:
        submission: CreateMatchRequest or raw dict from the caller

    Returns:
        The parsed CreateMatchRequest when accepted

    Raises:
        ValidationError: describing the first rejected rule
    """
    request = parse_submission(submission)
    try:
        check_score_totals(request)
        check_positions_unique(request)
        check_positions_consecutive(request)
        check_players_distinct(request)
    except ValidationError as e:
        logger.warning(f"Rejected match submission on {request.map}: {e.detail}")
        raise
    return request
