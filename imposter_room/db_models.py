# imposter_room/db_models.py
from sqlalchemy import Column, String, Integer, Boolean, ForeignKey, DateTime, Index, JSON, text
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import uuid
from imposter_room.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


def _new_id():
    return str(uuid.uuid4())


class DBGame(Base):
    """
    Represents a game room in the database.
    Maps to the 'games' table.
    """
    __tablename__ = "games"

    id = Column(String(36), primary_key=True, default=_new_id)
    room_code = Column(String(8), nullable=False, index=True)
    status = Column(String(20), default="waiting", nullable=False)
    secret_word = Column(String(50), nullable=True)
    category = Column(String(50), nullable=True)
    host_id = Column(String(36), nullable=False)
    total_rounds = Column(Integer, default=3, nullable=False)
    current_round = Column(Integer, default=1, nullable=False)
    used_words = Column(JSON, default=list, nullable=False)
    results_revealed = Column(Boolean, default=False, nullable=False)
    # Bumped by every state transition; compare-and-set token
    version = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    # Relationship: One game has many players
    players = relationship(
        "DBPlayer",
        back_populates="game",
        cascade="all, delete-orphan",
        order_by="DBPlayer.created_at",
    )

    # Room codes only need to be unique while a game is still live
    __table_args__ = (
        Index(
            "uq_games_live_room_code",
            "room_code",
            unique=True,
            sqlite_where=text("status != 'finished'"),
            postgresql_where=text("status != 'finished'"),
        ),
    )


class DBPlayer(Base):
    """
    Represents a player in the database.
    Maps to the 'players' table.
    """
    __tablename__ = "players"

    id = Column(String(36), primary_key=True, default=_new_id)
    game_id = Column(String(36), ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(20), nullable=False)
    is_imposter = Column(Boolean, default=False, nullable=False)
    is_eliminated = Column(Boolean, default=False, nullable=False)
    votes = Column(Integer, default=0, nullable=False)
    has_voted = Column(Boolean, default=False, nullable=False)
    score = Column(Integer, default=0, nullable=False)
    turn_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    # Relationship: Player belongs to one game
    game = relationship("DBGame", back_populates="players")
