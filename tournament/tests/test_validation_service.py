"""
Tests for match submission validation.
"""
import pytest

from tournament.models.schemas import CreateMatchRequest
from tournament.services import validation_service
from tournament.services.errors import ValidationError


def test_valid_submission_is_accepted(match_payload):
    request = validation_service.validate_match_submission(match_payload())
    assert isinstance(request, CreateMatchRequest)
    assert [p.final_position for p in request.players] == [1, 2, 3, 4]
    assert request.created_by == "admin"


def test_already_parsed_request_passes_through(match_payload):
    request = CreateMatchRequest.model_validate(match_payload())
    assert validation_service.validate_match_submission(request) is request


def test_score_total_mismatch_names_player(match_payload):
    payload = match_payload(scores=[10, 10, 10, 10])
    payload["players"][2]["totalScore"] = 50  # scores sum to 40

    with pytest.raises(ValidationError) as exc_info:
        validation_service.validate_match_submission(payload)

    error = exc_info.value
    assert "Carol" in error.detail
    assert error.field == "players.2.totalScore"
    assert error.context["playerName"] == "Carol"
    assert error.status_code == 400


def test_duplicate_positions_rejected(match_payload):
    with pytest.raises(ValidationError) as exc_info:
        validation_service.validate_match_submission(match_payload(positions=(1, 1, 3, 4)))
    assert "unique" in exc_info.value.detail


def test_positions_with_gap_rejected(match_payload):
    with pytest.raises(ValidationError) as exc_info:
        validation_service.validate_match_submission(match_payload(positions=(1, 2, 3, 5)))
    assert "consecutive" in exc_info.value.detail


def test_positions_not_starting_at_one_rejected(match_payload):
    with pytest.raises(ValidationError):
        validation_service.validate_match_submission(match_payload(positions=(2, 3, 4, 5)))


def test_score_check_runs_before_position_check(match_payload):
    payload = match_payload(positions=(1, 1, 3, 4))
    payload["players"][0]["totalScore"] = 1
    with pytest.raises(ValidationError) as exc_info:
        validation_service.validate_match_submission(payload)
    assert exc_info.value.field == "players.0.totalScore"


def test_same_player_twice_rejected(match_payload):
    payload = match_payload(player_ids=("alice", "bob", "ALICE", "dave"))
    with pytest.raises(ValidationError) as exc_info:
        validation_service.validate_match_submission(payload)
    assert exc_info.value.field == "players.playerId"


@pytest.mark.parametrize(
    "override, field",
    [
        ({"duration": 5}, "duration"),
        ({"duration": 301}, "duration"),
        ({"map": " "}, "map"),
        ({"gameMode": "Regicide"}, "gameMode"),
    ],
)
def test_field_constraints(match_payload, override, field):
    with pytest.raises(ValidationError) as exc_info:
        validation_service.validate_match_submission(match_payload(**override))
    assert exc_info.value.field == field


def test_too_few_players(match_payload):
    payload = match_payload()
    payload["players"] = payload["players"][:3]
    with pytest.raises(ValidationError) as exc_info:
        validation_service.validate_match_submission(payload)
    assert exc_info.value.field == "players"


def test_negative_category_score_rejected(match_payload):
    payload = match_payload()
    payload["players"][0]["scores"]["military"] = -1
    with pytest.raises(ValidationError) as exc_info:
        validation_service.validate_match_submission(payload)
    assert exc_info.value.field == "players.0.scores.military"


@pytest.mark.parametrize(
    "path, value, field",
    [
        (("finalPosition",), True, "players.1.finalPosition"),
        (("totalScore",), "120", "players.1.totalScore"),
        (("scores", "economy"), False, "players.1.scores.economy"),
        (("scores", "society"), "30", "players.1.scores.society"),
    ],
)
def test_booleans_and_numeric_strings_rejected(match_payload, path, value, field):
    payload = match_payload()
    target = payload["players"][1]
    for key in path[:-1]:
        target = target[key]
    target[path[-1]] = value
    with pytest.raises(ValidationError) as exc_info:
        validation_service.validate_match_submission(payload)
    assert exc_info.value.field == field


def test_eight_players_accepted(match_payload):
    ids = tuple(f"player{i}" for i in range(8))
    payload = match_payload(
        positions=tuple(range(1, 9)), player_ids=ids, scores=[8, 7, 6, 5, 4, 3, 2, 1]
    )
    request = validation_service.validate_match_submission(payload)
    assert len(request.players) == 8
