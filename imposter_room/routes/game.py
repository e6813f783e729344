import logging

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect

from imposter_room.config import settings
from imposter_room.errors import GameError, RoomCodeTaken
from imposter_room.game_manager import GameManager, change_event
from imposter_room.rules import normalize_room_code
from imposter_room.schemas import (
    CreateGameRequest,
    CreateGameResponse,
    JoinGameRequest,
    JoinGameResponse,
    NewRoundRequest,
    PlayerRequest,
    StartGameRequest,
    VoteRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()
game_manager = GameManager()


def _http_error(e: GameError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


@router.websocket("/ws/games/{room_code}/{player_id}")
async def websocket_endpoint_for_game_updates(websocket: WebSocket, room_code: str, player_id: str):
    """WebSocket endpoint for players to subscribe to game updates."""
    room_code = normalize_room_code(room_code)
    await game_manager.connect(websocket, room_code, player_id)
    try:
        await game_manager.send_current_state(websocket, room_code, player_id)

        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_json({"event": "pong"})
            elif data == "refresh":
                # Full refetch for clients that suspect they missed a change
                await game_manager.send_current_state(websocket, room_code, player_id)
            else:
                logger.debug(f"📨 Ignoring message from {player_id}: {data}")

    except WebSocketDisconnect:
        game_manager.disconnect(room_code, player_id)


@router.post("/create_game", response_model=CreateGameResponse)
async def create_game(req: CreateGameRequest):
    created = None
    for _ in range(settings.ROOM_CODE_ATTEMPTS):
        try:
            created = game_manager.create_game(req.host_name)
            break
        except RoomCodeTaken:
            continue
        except GameError as e:
            raise _http_error(e)
    if created is None:
        raise HTTPException(status_code=503, detail="Failed to create game, please retry")

    return CreateGameResponse(
        room_code=created.room_code,
        game_id=created.game_id,
        host_id=created.host_id,
        player_id=created.player_id,
        status="waiting",
    )


@router.post("/join_game", response_model=JoinGameResponse)
async def join_game(req: JoinGameRequest):
    try:
        player = game_manager.join_game(req.room_code, req.player_name)
    except GameError as e:
        raise _http_error(e)

    room_code = normalize_room_code(req.room_code)
    # Notify everyone via WebSocket that a new player joined
    await game_manager.publish_player(room_code, player, "insert", "player_joined")

    return JoinGameResponse(
        room_code=room_code,
        game_id=player.game_id,
        player_id=player.player_id,
        status="waiting",
    )


@router.get("/games/{room_code}")
async def get_game(room_code: str):
    game = game_manager.get_game(room_code)
    if not game:
        raise HTTPException(status_code=404, detail="Game not found")
    return game_manager.public_state(game)


@router.get("/games/{room_code}/players/{player_id}")
async def get_my_player(room_code: str, player_id: str):
    """Re-identify the caller's own seat; includes the caller's role once a round is on."""
    try:
        player = game_manager.get_player(room_code, player_id)
    except GameError as e:
        raise _http_error(e)

    response = {"player": player.to_dict()}
    game = game_manager.get_game(room_code)
    if game and game.status == "playing":
        response["round"] = game_manager.private_view(game, player)
    return response


@router.post("/start_game/{room_code}")
async def start_game(room_code: str, req: StartGameRequest):
    room_code = normalize_room_code(room_code)
    await game_manager.broadcast(room_code, {"event": "round_transition", "phase": "started"})
    try:
        game = game_manager.start_game(room_code, req.total_rounds, actor_id=req.player_id)
    except GameError as e:
        await game_manager.broadcast(room_code, {"event": "round_transition", "phase": "aborted"})
        raise _http_error(e)

    await game_manager.publish_game(game, event="game_started")
    await game_manager.send_roles(game)
    await game_manager.broadcast(room_code, {"event": "round_transition", "phase": "finished"})

    return {
        "message": "Game started!",
        "room_code": game.room_code,
        "status": game.status.value,
        "current_round": game.current_round,
        "total_rounds": game.total_rounds,
        "player_count": len(game.players),
    }


@router.post("/games/{room_code}/new_round")
async def start_new_round(room_code: str, req: NewRoundRequest):
    """
    Start the next round with the same players.
    Keeps scores; deals a new word and imposter and resets votes.
    """
    room_code = normalize_room_code(room_code)
    await game_manager.broadcast(room_code, {"event": "round_transition", "phase": "started"})
    try:
        game = game_manager.start_new_round(room_code, actor_id=req.player_id, expected_round=req.expected_round)
    except GameError as e:
        await game_manager.broadcast(room_code, {"event": "round_transition", "phase": "aborted"})
        raise _http_error(e)

    await game_manager.publish_game(game, event="round_started")
    await game_manager.send_roles(game)
    await game_manager.broadcast(room_code, {"event": "round_transition", "phase": "finished"})

    return {
        "message": "A new round has begun!",
        "current_round": game.current_round,
        "total_rounds": game.total_rounds,
    }


@router.post("/games/{room_code}/vote")
async def vote(room_code: str, req: VoteRequest):
    """
    A player votes for another player they suspect is the imposter.
    Each player can vote once per round.
    """
    try:
        result = game_manager.cast_vote(room_code, req.voter_id, req.target_id)
    except GameError as e:
        raise _http_error(e)

    # Both rows changed: the target's count and the voter's has_voted
    changed = [result.target] if result.voter.player_id == result.target.player_id else [result.target, result.voter]
    for player in changed:
        await game_manager.broadcast(
            result.game.room_code,
            change_event("vote_update", "update", "players", player.to_dict(hide_role=True)),
        )

    return {
        "message": f"{result.voter.name} voted for {result.target.name}",
        "current_votes": result.vote_counts,
        "all_voted": result.all_voted,
    }


@router.post("/games/{room_code}/reveal")
async def reveal_results(room_code: str, req: PlayerRequest):
    try:
        outcome = game_manager.reveal_results(room_code, actor_id=req.player_id)
    except GameError as e:
        raise _http_error(e)

    if not outcome.already_revealed:
        game = game_manager.get_game(room_code)
        if game:
            await game_manager.publish_game(game, event="results_revealed")
            await game_manager.broadcast(game.room_code, {"event": "reveal", **outcome.to_dict()})

    return outcome.to_dict()


@router.post("/games/{room_code}/end")
async def end_game(room_code: str, req: PlayerRequest):
    """
    Ends the game completely and notifies all connected players.
    """
    try:
        game = game_manager.end_game(room_code, actor_id=req.player_id)
    except GameError as e:
        raise _http_error(e)

    await game_manager.publish_game(game, event="game_ended")
    return {
        "message": "The game has ended. Thanks for playing!",
        "scores": {p.name: p.score for p in game.players},
    }


@router.post("/games/{room_code}/leave")
async def leave_game(room_code: str, req: PlayerRequest):
    room_code = normalize_room_code(room_code)
    try:
        player = game_manager.leave_game(room_code, req.player_id)
    except GameError as e:
        raise _http_error(e)

    await game_manager.publish_player(room_code, player, "delete", "player_left")
    game_manager.disconnect(room_code, player.player_id)
    return {"message": f"{player.name} left the game"}
