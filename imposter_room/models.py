# imposter_room/models.py
from typing import Dict, List, Optional
from enum import Enum


class GameStatus(str, Enum):
    WAITING = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"


def _iso(dt):
    return dt.isoformat() if dt is not None else None


class Player:
    """
    In-memory representation of a player row.
    Rules and API responses work on these, never on live ORM rows.
    """
    def __init__(
        self,
        player_id: str,
        game_id: str,
        name: str,
        is_imposter: bool = False,
        is_eliminated: bool = False,
        votes: int = 0,
        has_voted: bool = False,
        score: int = 0,
        turn_order: int = 0,
        created_at=None,
    ):
        self.player_id = player_id
        self.game_id = game_id
        self.name = name
        self.is_imposter = is_imposter
        self.is_eliminated = is_eliminated
        self.votes = votes
        self.has_voted = has_voted
        self.score = score
        self.turn_order = turn_order
        self.created_at = created_at

    @classmethod
    def from_db(cls, db_player) -> "Player":
        return cls(
            player_id=db_player.id,
            game_id=db_player.game_id,
            name=db_player.name,
            is_imposter=bool(db_player.is_imposter),
            is_eliminated=bool(db_player.is_eliminated),
            votes=db_player.votes or 0,
            has_voted=bool(db_player.has_voted),
            score=db_player.score or 0,
            turn_order=db_player.turn_order or 0,
            created_at=db_player.created_at,
        )

    def to_dict(self, hide_role: bool = False):
        """Convert player to dictionary for API responses"""
        return {
            "id": self.player_id,
            "game_id": self.game_id,
            "name": self.name,
            "is_imposter": False if hide_role else self.is_imposter,
            "is_eliminated": self.is_eliminated,
            "votes": self.votes,
            "has_voted": self.has_voted,
            "score": self.score,
            "turn_order": self.turn_order,
            "created_at": _iso(self.created_at),
        }


class Game:
    """
    In-memory snapshot of a game row and its players (in join order).
    """
    def __init__(
        self,
        game_id: str,
        room_code: str,
        host_id: str,
        status: GameStatus = GameStatus.WAITING,
        secret_word: Optional[str] = None,
        category: Optional[str] = None,
        total_rounds: int = 3,
        current_round: int = 1,
        used_words: Optional[List[str]] = None,
        results_revealed: bool = False,
        version: int = 0,
        created_at=None,
        updated_at=None,
        players: Optional[List[Player]] = None,
    ):
        self.game_id = game_id
        self.room_code = room_code
        self.host_id = host_id
        self.status = GameStatus(status)
        self.secret_word = secret_word
        self.category = category
        self.total_rounds = total_rounds
        self.current_round = current_round
        self.used_words = list(used_words or [])
        self.results_revealed = results_revealed
        self.version = version
        self.created_at = created_at
        self.updated_at = updated_at
        self.players: List[Player] = list(players or [])

    @classmethod
    def from_db(cls, db_game, db_players) -> "Game":
        return cls(
            game_id=db_game.id,
            room_code=db_game.room_code,
            host_id=db_game.host_id,
            status=db_game.status,
            secret_word=db_game.secret_word,
            category=db_game.category,
            total_rounds=db_game.total_rounds,
            current_round=db_game.current_round,
            used_words=db_game.used_words,
            results_revealed=bool(db_game.results_revealed),
            version=db_game.version,
            created_at=db_game.created_at,
            updated_at=db_game.updated_at,
            players=[Player.from_db(p) for p in db_players],
        )

    @property
    def imposter(self) -> Optional[Player]:
        return next((p for p in self.players if p.is_imposter), None)

    def get_player(self, player_id: str) -> Optional[Player]:
        return next((p for p in self.players if p.player_id == player_id), None)

    def to_record(self, public: bool = False):
        """The games row as a change-event record. Public records leave out the secret word."""
        return {
            "id": self.game_id,
            "room_code": self.room_code,
            "status": self.status.value,
            "secret_word": None if public else self.secret_word,
            "category": self.category,
            "host_id": self.host_id,
            "total_rounds": self.total_rounds,
            "current_round": self.current_round,
            "used_words": [] if public else list(self.used_words),
            "results_revealed": self.results_revealed,
            "version": self.version,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def to_dict(self, public: bool = False, host_player_id: Optional[str] = None):
        """Convert game to dictionary for API responses"""
        # Roles stay hidden from the room until the round is revealed
        hide_roles = public and not (self.results_revealed or self.status == GameStatus.FINISHED)
        data = self.to_record(public=public)
        data["players"] = [p.to_dict(hide_role=hide_roles) for p in self.players]
        data["player_count"] = len(self.players)
        data["host_player_id"] = host_player_id
        return data


class CreatedGame:
    """What the room creator gets back: the code to share and the ids to keep."""
    def __init__(self, room_code: str, game_id: str, host_id: str, player_id: Optional[str] = None):
        self.room_code = room_code
        self.game_id = game_id
        self.host_id = host_id
        self.player_id = player_id


class RevealOutcome:
    """
    Result of revealing a round: who the imposter was, who the room voted out,
    who won, and the points each player received.
    """
    def __init__(
        self,
        round_number: int,
        imposter: Optional[Player],
        most_voted: Optional[Player],
        players_win: bool,
        awarded: Dict[str, int],
        scores: Dict[str, int],
        already_revealed: bool = False,
    ):
        self.round_number = round_number
        self.imposter = imposter
        self.most_voted = most_voted
        self.players_win = players_win
        self.awarded = awarded
        self.scores = scores
        self.already_revealed = already_revealed

    def to_dict(self):
        return {
            "round": self.round_number,
            "imposter_id": self.imposter.player_id if self.imposter else None,
            "imposter_name": self.imposter.name if self.imposter else None,
            "most_voted_id": self.most_voted.player_id if self.most_voted else None,
            "most_voted_name": self.most_voted.name if self.most_voted else None,
            "players_win": self.players_win,
            "awarded": dict(self.awarded),
            "scores": dict(self.scores),
            "already_revealed": self.already_revealed,
        }


class VoteResult:
    """A recorded vote and the game state right after it."""
    def __init__(self, game: Game, voter: Player, target: Player, all_voted: bool = False):
        self.game = game
        self.voter = voter
        self.target = target
        self.all_voted = all_voted

    @property
    def vote_counts(self) -> Dict[str, int]:
        return {p.player_id: p.votes for p in self.game.players}
