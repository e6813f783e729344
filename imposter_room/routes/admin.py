import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from imposter_room.config import settings
from imposter_room.errors import NotFound
from imposter_room.routes.game import game_manager

router = APIRouter(prefix="/admin")


def require_admin(x_admin_token: Optional[str] = Header(default=None)):
    """Admin endpoints answer 404 while no token is configured, 403 on a wrong token."""
    if not settings.ADMIN_TOKEN:
        raise HTTPException(status_code=404, detail="Not found")
    if not x_admin_token or not secrets.compare_digest(x_admin_token, settings.ADMIN_TOKEN):
        raise HTTPException(status_code=403, detail="Access denied")


@router.get("/games", dependencies=[Depends(require_admin)])
async def list_games():
    """Games still waiting or in progress."""
    return game_manager.list_active_games()


@router.get("/games/{game_id}", dependencies=[Depends(require_admin)])
async def game_details(game_id: str):
    try:
        game = game_manager.get_game_details(game_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    return game.to_dict()


@router.delete("/games/{game_id}", dependencies=[Depends(require_admin)])
async def delete_game(game_id: str):
    try:
        game = game_manager.delete_game(game_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=e.message)

    await game_manager.broadcast(game.room_code, {"event": "game_deleted", "room_code": game.room_code})
    return {"message": f"Game {game.room_code} deleted"}
