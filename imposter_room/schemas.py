from pydantic import BaseModel, Field
from typing import Optional


class CreateGameRequest(BaseModel):
    host_name: str = Field(min_length=1, max_length=20)


class CreateGameResponse(BaseModel):
    room_code: str
    game_id: str
    host_id: str
    player_id: str
    status: str


class JoinGameRequest(BaseModel):
    room_code: str = Field(min_length=1, max_length=8)
    player_name: str = Field(min_length=1, max_length=20)


class JoinGameResponse(BaseModel):
    room_code: str
    game_id: str
    player_id: str
    status: str


class PlayerRequest(BaseModel):
    """Any action taken by one player; for host-only actions this must be the host."""
    player_id: str


class StartGameRequest(PlayerRequest):
    total_rounds: Optional[int] = Field(default=None, ge=1)


class NewRoundRequest(PlayerRequest):
    expected_round: Optional[int] = Field(default=None, ge=1)


class VoteRequest(BaseModel):
    voter_id: str
    target_id: str
