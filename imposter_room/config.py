# imposter_room/config.py
from typing import List, Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings, read from the environment or a .env file."""

    APP_NAME: str = "Imposter"
    VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    CORS_ORIGINS: List[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./imposter_room.db"

    # Rooms
    ROOM_CODE_ALPHABET: str = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"  # no 0/O, 1/I
    ROOM_CODE_LENGTH: int = 4
    ROOM_CODE_ATTEMPTS: int = 5
    MAX_NAME_LENGTH: int = 20

    # Rounds
    MIN_PLAYERS: int = 3
    DEFAULT_TOTAL_ROUNDS: int = 3
    MAX_TOTAL_ROUNDS: int = 10

    # Scoring
    PLAYERS_WIN_POINTS: int = 10
    IMPOSTER_WIN_POINTS: int = 20

    # Vote policy
    ALLOW_SELF_VOTE: bool = True
    ALLOW_VOTE_FOR_ELIMINATED: bool = True

    # Admin surface is disabled while unset
    ADMIN_TOKEN: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
