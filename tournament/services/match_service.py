"""
Match service layer.

Match ingestion: validate a submission, persist the match and fold the
result into every participant's statistics. The match insert and all
player updates share one transaction, so a failure part-way leaves no
partial state behind; the raised PersistenceError still reports how far
the sequence got.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple, Union, Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from tournament.database import store
from tournament.database.models import Match, MatchPlayer, MatchStatus, Player
from tournament.models.schemas import CreateMatchRequest, UpdateMatchRequest
from tournament.services import phase_service, stats_service, validation_service
from tournament.services.errors import (
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
    store_errors,
)
from tournament.utils.datetime_utils import isoformat
from tournament.utils.pagination import page_window

logger = logging.getLogger(__name__)

# API sort keys -> Match columns
MATCH_SORT_FIELDS = {
    "date": "date",
    "duration": "duration",
    "map": "map",
    "createdAt": "created_at",
    "totalPlayers": "total_players",
}


def serialize_participant(participant: MatchPlayer) -> Dict:
    return {
        "playerId": participant.player_id,
        "playerName": participant.player_name,
        "scores": participant.scores,
        "totalScore": participant.total_score,
        "finalPosition": participant.final_position,
        "pointsEarned": participant.points_earned,
    }


def serialize_match(match: Match) -> Dict:
    """Convert a Match row (with participants) to its API representation."""
    return {
        "id": match.id,
        "phaseId": match.phase_id,
        "date": isoformat(match.date),
        "duration": match.duration,
        "formattedDuration": match.formatted_duration,
        "map": match.map,
        "gameMode": match.game_mode.value if match.game_mode else None,
        "totalPlayers": match.total_players,
        "players": [serialize_participant(p) for p in match.participants],
        "winner": {
            "playerId": match.winner_player_id,
            "playerName": match.winner_player_name,
        },
        "status": match.status.value if match.status else None,
        "notes": match.notes,
        "adminNotes": match.admin_notes,
        "createdBy": match.created_by,
        "matchStats": match.match_stats,
        "createdAt": isoformat(match.created_at),
        "updatedAt": isoformat(match.updated_at),
    }


async def get_match_model(session: AsyncSession, match_id: str) -> Match:
    match = await store.find_by_id(session, Match, match_id)
    if match is None:
        raise NotFoundError(f"Match '{match_id}' not found", {"matchId": match_id})
    return match


async def _resolve_phase_id(session: AsyncSession, requested: Optional[str]) -> str:
    """An explicitly named phase must exist; otherwise use the current phase."""
    if requested:
        phase = await phase_service.get_phase_model(session, requested)
        return phase.phase_id
    return await phase_service.get_current_phase_id(session)


async def _load_participants(session: AsyncSession, request: CreateMatchRequest) -> Dict[str, Player]:
    """Resolve every participant id against the store, rejecting unknown ones."""
    player_ids = [p.player_id.lower() for p in request.players]
    players = await store.find_many(session, Player, filters={"id": player_ids})
    found = {player.id: player for player in players}
    missing = [player_id for player_id in player_ids if player_id not in found]
    if missing:
        logger.warning(f"Rejected match submission: unknown players {missing}")
        raise ValidationError(
            f"{len(missing)} of {len(player_ids)} players do not exist",
            field="players",
            context={"missingPlayers": missing},
        )
    return found


def build_match(request: CreateMatchRequest, phase_id: str) -> Match:
    """Create the Match row with points earned and the winner snapshot."""
    total_players = len(request.players)
    participants = [
        MatchPlayer(
            player_id=p.player_id.lower(),
            player_name=p.player_name,
            military=p.scores.military,
            economy=p.scores.economy,
            technology=p.scores.technology,
            society=p.scores.society,
            total_score=p.total_score,
            final_position=p.final_position,
            points_earned=stats_service.points_for_position(total_players, p.final_position),
        )
        for p in request.players
    ]
    winner = next(p for p in participants if p.final_position == 1)

    return Match(
        phase_id=phase_id,
        date=request.date,
        duration=request.duration,
        map=request.map,
        game_mode=request.game_mode,
        total_players=total_players,
        participants=participants,
        winner_player_id=winner.player_id,
        winner_player_name=winner.player_name,
        status=MatchStatus.COMPLETED,
        notes=request.notes,
        admin_notes=request.admin_notes,
        created_by=request.created_by,
    )


def _player_update(player: Player, participant: MatchPlayer) -> Dict:
    return {
        "playerId": player.id,
        "matches": player.matches,
        "wins": player.wins,
        "points": player.points,
        "pointsEarned": participant.points_earned,
        "categoryStats": player.category_stats,
    }


async def create_match(
    session: AsyncSession,
    submission: Union[CreateMatchRequest, Dict[str, Any]],
) -> Dict:
    """
    Record a finished match and update every participant's statistics.

    Steps:
        a. validate the submission
        b. resolve all participant ids (reject if any is unknown)
        c. compute points earned and the winner snapshot
        d. insert the match
        e. per participant: fold the result into their stats, prepend a
           history entry, write the player
    then commit once.

    Args:
        session: Database session
        submission: CreateMatchRequest or raw dict

    Returns:
        {"match": match dict, "playerUpdates": [per-player stats after the match]}

    Raises:
        ValidationError: rejected submission (nothing written)
        NotFoundError: named phase does not exist
        ConflictError: a participant changed concurrently (rolled back)
        PersistenceError: store failure (rolled back), with stage and progress
    """
    request = validation_service.validate_match_submission(submission)

    stage = "resolve_players"
    progress: Dict[str, Any] = {"matchId": None, "playersUpdated": []}
    player_updates: List[Dict] = []
    try:
        players = await _load_participants(session, request)
        stage = "resolve_phase"
        phase_id = await _resolve_phase_id(session, request.phase_id)

        stage = "match_insert"
        match = await store.upsert(session, build_match(request, phase_id))
        progress["matchId"] = match.id

        stage = "player_update"
        for participant in match.participants:
            player = players[participant.player_id]
            stats = stats_service.accumulate_match(
                stats_service.PlayerStats.from_player(player),
                participant.scores,
                participant.final_position,
                match.total_players,
            )
            stats.apply_to(player)
            player.match_history = [stats_service.history_entry(match, participant)] + list(
                player.match_history or []
            )
            await store.upsert(session, player)
            progress["playersUpdated"].append(player.id)
            player_updates.append(_player_update(player, participant))

        stage = "commit"
        await session.commit()
    except StaleDataError as e:
        await session.rollback()
        logger.warning(f"Concurrent update while recording match on {request.map}: {e}")
        raise ConflictError(
            "A participant was updated concurrently; the match was not recorded, retry the submission",
            {"stage": stage, "progress": progress},
        ) from e
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(
            f"Failed to record match at stage {stage} (progress {progress}): {e}", exc_info=True
        )
        raise PersistenceError(
            f"Could not record match: store failure during {stage}; all changes were rolled back",
            stage=stage,
            progress=progress,
        ) from e

    logger.info(
        f"Recorded match {match.id} on {match.map} ({match.total_players} players, "
        f"winner {match.winner_player_id})"
    )
    return {"match": serialize_match(match), "playerUpdates": player_updates}


@store_errors("match_lookup")
async def get_match(session: AsyncSession, match_id: str) -> Dict:
    """Get a single match."""
    return serialize_match(await get_match_model(session, match_id))


def _match_ids_for_player(player_id: str):
    return select(MatchPlayer.match_id).where(MatchPlayer.player_id == player_id.lower())


@store_errors("match_query")
async def list_matches(
    session: AsyncSession,
    status: Optional[str] = MatchStatus.COMPLETED.value,
    player_id: Optional[str] = None,
    map_name: Optional[str] = None,
    phase_id: Optional[str] = None,
    sort_by: str = "date",
    order: str = "desc",
    limit: int = 20,
    page: int = 1,
) -> Tuple[List[Dict], int]:
    """
    List matches with filters, sorting and pagination.

    Args:
        session: Database session
        status: Match status to include (None for all)
        player_id: Only matches this player took part in
        map_name: Case-insensitive substring of the map name
        phase_id: Only matches of this phase
        sort_by: date, duration, map, createdAt or totalPlayers
        order: asc or desc
        limit: Page size
        page: 1-based page number

    Returns:
        Tuple of (match dicts, total matching matches)
    """
    if sort_by not in MATCH_SORT_FIELDS:
        raise ValidationError(f"Cannot sort matches by '{sort_by}'", field="sortBy")
    direction = "asc" if order == "asc" else "desc"

    filters: Dict[str, Any] = {}
    if status:
        try:
            filters["status"] = MatchStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown match status '{status}'", field="status") from None
    if phase_id:
        filters["phase_id"] = phase_id

    clauses = []
    if player_id:
        clauses.append(Match.id.in_(_match_ids_for_player(player_id)))
    if map_name:
        clauses.append(Match.map.ilike(f"%{map_name}%"))

    limit, offset = page_window(page, limit)
    matches = await store.find_many(
        session,
        Match,
        filters=filters,
        sort=[(MATCH_SORT_FIELDS[sort_by], direction), ("created_at", direction)],
        limit=limit,
        offset=offset,
        extra_clauses=clauses,
    )
    total = await store.count(session, Match, filters=filters, extra_clauses=clauses)
    return [serialize_match(m) for m in matches], total


async def get_player_matches(
    session: AsyncSession, player_id: str, limit: int = 10, page: int = 1
) -> Tuple[List[Dict], int]:
    """Completed matches a player took part in, newest first."""
    return await list_matches(
        session,
        status=MatchStatus.COMPLETED.value,
        player_id=player_id,
        sort_by="date",
        order="desc",
        limit=limit,
        page=page,
    )


async def completed_matches_for_player(session: AsyncSession, player_id: str) -> List[Match]:
    """
    All completed matches of a player in the order they were recorded.

    This is the order ingestion folds them in, so a replay rebuilds the
    same statistics and the same most-recent-first history.
    """
    return await store.find_many(
        session,
        Match,
        filters={"status": MatchStatus.COMPLETED},
        sort=[("created_at", "asc"), ("id", "asc")],
        extra_clauses=[Match.id.in_(_match_ids_for_player(player_id))],
    )


async def recompute_player_stats(session: AsyncSession, player_ids: Iterable[str]) -> List[str]:
    """
    Rebuild statistics and history of the given players from their
    remaining completed matches. Does not commit.

    Players that no longer exist are skipped.

    Returns:
        Ids of the players that were rewritten
    """
    rewritten = []
    for player_id in player_ids:
        player = await store.find_by_id(session, Player, player_id)
        if player is None:
            continue
        matches = await completed_matches_for_player(session, player_id)
        stats, history = stats_service.replay_matches(player_id, matches)
        stats.apply_to(player)
        player.match_history = history
        await store.upsert(session, player)
        rewritten.append(player_id)
    return rewritten


@store_errors("match_update")
async def update_match(session: AsyncSession, match_id: str, request: UpdateMatchRequest) -> Dict:
    """
    Administrative edit of a match: status, notes and admin notes.

    Moving a match into or out of ``completed`` recomputes its
    participants' statistics so they only reflect completed matches.
    """
    match = await get_match_model(session, match_id)
    changes = request.model_dump(exclude_unset=True)

    was_completed = match.status == MatchStatus.COMPLETED
    if changes.get("status") is not None:
        match.status = changes["status"]
    if "notes" in changes:
        match.notes = changes["notes"]
    if "admin_notes" in changes:
        match.admin_notes = changes["admin_notes"]
    counts_changed = was_completed != (match.status == MatchStatus.COMPLETED)

    stage = "match_update"
    progress: Dict[str, Any] = {"matchId": match.id, "playersUpdated": []}
    try:
        await store.upsert(session, match)
        if counts_changed:
            stage = "player_update"
            progress["playersUpdated"] = await recompute_player_stats(session, match.player_ids)
        stage = "commit"
        await session.commit()
    except StaleDataError as e:
        await session.rollback()
        raise ConflictError(
            "A participant was updated concurrently; retry the edit", {"stage": stage}
        ) from e
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to update match {match_id} at stage {stage}: {e}", exc_info=True)
        raise PersistenceError(
            f"Could not update match '{match_id}'", stage=stage, progress=progress
        ) from e

    if counts_changed:
        logger.info(f"Match {match_id} is now {match.status.value}; recomputed {progress['playersUpdated']}")
    return serialize_match(match)


@store_errors("match_delete")
async def delete_match(session: AsyncSession, match_id: str) -> Dict:
    """
    Delete a match and reverse its effect on player statistics.

    Participants of a completed match have their statistics and history
    rebuilt from their remaining completed matches.

    Returns:
        {"matchId": ..., "recomputedPlayers": [...]}
    """
    match = await get_match_model(session, match_id)
    was_completed = match.status == MatchStatus.COMPLETED
    player_ids = match.player_ids

    stage = "match_delete"
    progress: Dict[str, Any] = {"matchId": match_id, "playersUpdated": []}
    try:
        await store.delete(session, Match, match_id)
        if was_completed:
            stage = "player_update"
            progress["playersUpdated"] = await recompute_player_stats(session, player_ids)
        stage = "commit"
        await session.commit()
    except StaleDataError as e:
        await session.rollback()
        raise ConflictError(
            "A participant was updated concurrently; retry the deletion", {"stage": stage}
        ) from e
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to delete match {match_id} at stage {stage}: {e}", exc_info=True)
        raise PersistenceError(
            f"Could not delete match '{match_id}'", stage=stage, progress=progress
        ) from e

    logger.info(f"Deleted match {match_id}; recomputed {progress['playersUpdated']}")
    return {"matchId": match_id, "recomputedPlayers": progress["playersUpdated"]}
