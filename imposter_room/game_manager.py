# imposter_room/game_manager.py
import logging
import random
import threading
import uuid
from contextlib import contextmanager
from typing import Dict, List, Optional

from fastapi import WebSocket
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from imposter_room import rules
from imposter_room.config import Settings, settings as app_settings
from imposter_room.database import SessionLocal
from imposter_room.db_models import DBGame, DBPlayer
from imposter_room.errors import (
    AlreadyStarted,
    AlreadyVoted,
    GameError,
    InsufficientPlayers,
    InvalidName,
    InvalidTransition,
    NotFound,
    NotHost,
    RoomCodeTaken,
    StoreUnavailable,
    TransitionConflict,
    VoteNotAllowed,
)
from imposter_room.models import CreatedGame, Game, GameStatus, Player, RevealOutcome, VoteResult
from imposter_room.words import select_word

logger = logging.getLogger(__name__)


def change_event(event: str, change_type: str, table: str, record) -> dict:
    """A change notification as pushed to every socket in a room."""
    return {"event": event, "type": change_type, "table": table, "record": record}


class GameManager:
    """
    Single authority for every room served by this process.

    Mutations for one room run one at a time under that room's lock, each in
    a single transaction. Game-row transitions are compare-and-set on the row
    version, so player resets and the status flip land together or not at all.
    """

    def __init__(self, session_factory=None, settings: Settings = None, rng: random.Random = None):
        self.session_factory = session_factory or SessionLocal
        self.settings = settings or app_settings
        self.rng = rng or random.Random()
        # WebSocket connections stay in memory (can't be stored in DB!)
        self.connections: Dict[str, Dict[str, WebSocket]] = {}  # room_code -> {player_id: WebSocket}
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _get_db(self) -> Session:
        """Get a new database session"""
        return self.session_factory()

    @contextmanager
    def _session(self):
        """Session scope that rolls back on any error and reports store failures as StoreUnavailable."""
        db = self._get_db()
        try:
            yield db
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"❌ Store error: {e}")
            raise StoreUnavailable() from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _room_lock(self, room_code: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(room_code, threading.Lock())

    def _release_room_lock(self, room_code: str):
        """Forget a room's lock once its game can no longer change."""
        with self._locks_guard:
            self._locks.pop(room_code, None)

    # ------------------------------
    # Loading helpers
    # ------------------------------
    def _find_game_row(self, db: Session, room_code: str) -> DBGame:
        """The live game for a code, or the latest finished one if none is live."""
        code = rules.normalize_room_code(room_code)
        db_game = db.query(DBGame).filter(
            DBGame.room_code == code,
            DBGame.status != GameStatus.FINISHED.value,
        ).first()
        if db_game is None:
            db_game = db.query(DBGame).filter(
                DBGame.room_code == code
            ).order_by(DBGame.created_at.desc()).first()
        if db_game is None:
            raise NotFound(f"Game {code} not found")
        return db_game

    def _player_rows(self, db: Session, game_id: str) -> List[DBPlayer]:
        return db.query(DBPlayer).filter(
            DBPlayer.game_id == game_id
        ).order_by(DBPlayer.created_at, DBPlayer.id).all()

    def _load(self, db: Session, room_code: str) -> Game:
        db_game = self._find_game_row(db, room_code)
        return Game.from_db(db_game, self._player_rows(db, db_game.id))

    def _load_by_id(self, db: Session, game_id: str) -> Game:
        db_game = db.query(DBGame).filter(DBGame.id == game_id).first()
        if db_game is None:
            raise NotFound(f"Game {game_id} not found")
        return Game.from_db(db_game, self._player_rows(db, game_id))

    def _transition(self, db: Session, game: Game, values: dict):
        """Apply ``values`` to the game row only if nobody moved it since ``game`` was read."""
        values = dict(values, version=game.version + 1)
        updated = db.query(DBGame).filter(
            DBGame.id == game.game_id,
            DBGame.version == game.version,
        ).update(values, synchronize_session=False)
        if updated != 1:
            raise TransitionConflict()

    def _check_host(self, game: Game, actor_id: Optional[str]):
        if actor_id is None:
            return
        if rules.resolve_host(game.host_id, game.players) != actor_id:
            raise NotHost()

    def _clean_name(self, name: Optional[str]) -> str:
        name = (name or "").strip()
        if not name:
            raise InvalidName("Please enter your name")
        if len(name) > self.settings.MAX_NAME_LENGTH:
            raise InvalidName(f"Name must be at most {self.settings.MAX_NAME_LENGTH} characters")
        return name

    # ------------------------------
    # Room / Lobby
    # ------------------------------
    def generate_room_code(self) -> str:
        return rules.generate_room_code(
            self.rng, self.settings.ROOM_CODE_ALPHABET, self.settings.ROOM_CODE_LENGTH
        )

    def create_game(self, host_name: Optional[str] = None, room_code: Optional[str] = None) -> CreatedGame:
        """
        Create a waiting game under a fresh room code.

        With ``host_name`` the creator's player row is inserted too, under the
        host id, so the creator is the host from the start. A code already
        held by a live game raises RoomCodeTaken; the caller retries with a
        new code.
        """
        name = self._clean_name(host_name) if host_name is not None else None
        code = rules.normalize_room_code(room_code) if room_code else self.generate_room_code()
        game_id = str(uuid.uuid4())
        host_id = str(uuid.uuid4())

        with self._session() as db:
            try:
                db.add(DBGame(
                    id=game_id,
                    room_code=code,
                    host_id=host_id,
                    status=GameStatus.WAITING.value,
                    total_rounds=self.settings.DEFAULT_TOTAL_ROUNDS,
                    current_round=1,
                    used_words=[],
                    results_revealed=False,
                    version=0,
                ))
                if name is not None:
                    # The game row has to exist before the player's foreign key
                    db.flush()
                    db.add(DBPlayer(id=host_id, game_id=game_id, name=name))
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.warning(f"⚠️ Room code {code} already in use")
                raise RoomCodeTaken(f"Room code {code} already in use")

        logger.info(f"✅ Game {code} created")
        return CreatedGame(
            room_code=code,
            game_id=game_id,
            host_id=host_id,
            player_id=host_id if name is not None else None,
        )

    def join_game(self, room_code: str, player_name: str) -> Player:
        """Add a player to a waiting game. Returns the new player."""
        name = self._clean_name(player_name)
        code = rules.normalize_room_code(room_code)

        with self._room_lock(code), self._session() as db:
            db_game = self._find_game_row(db, code)
            if db_game.status != GameStatus.WAITING.value:
                raise AlreadyStarted()

            db_player = DBPlayer(id=str(uuid.uuid4()), game_id=db_game.id, name=name)
            db.add(db_player)
            db.commit()
            db.refresh(db_player)
            player = Player.from_db(db_player)

        logger.info(f"✅ Player {name} joined game {code}")
        return player

    def leave_game(self, room_code: str, player_id: str) -> Player:
        """
        Delete a player's row. Votes that player cast stay counted on their
        targets; votes they received leave with them.
        """
        code = rules.normalize_room_code(room_code)
        with self._room_lock(code), self._session() as db:
            db_game = self._find_game_row(db, code)
            db_player = db.query(DBPlayer).filter(
                DBPlayer.id == player_id,
                DBPlayer.game_id == db_game.id,
            ).first()
            if db_player is None:
                raise NotFound("Player not found")
            player = Player.from_db(db_player)
            db.delete(db_player)
            db.commit()

        logger.info(f"👋 Player {player.name} left game {code}")
        return player

    def get_game(self, room_code: str) -> Optional[Game]:
        """
        Load a game from the database and return as in-memory object.
        """
        try:
            with self._session() as db:
                return self._load(db, room_code)
        except NotFound:
            return None

    def get_player(self, room_code: str, player_id: str) -> Player:
        """Find the caller's own seat again, e.g. after a page reload."""
        game = self.get_game(room_code)
        if game is None:
            raise NotFound()
        player = game.get_player(player_id)
        if player is None:
            raise NotFound("Player not found")
        return player

    def resolve_host(self, room_code: str) -> Optional[str]:
        game = self.get_game(room_code)
        if game is None:
            raise NotFound()
        return rules.resolve_host(game.host_id, game.players)

    # ------------------------------
    # Rounds
    # ------------------------------
    def _deal_round(self, db: Session, game: Game, reset_scores: bool) -> dict:
        """
        Pick the word and the imposter and reset every player for a fresh round.
        Returns the game-row values that go with it.
        """
        category, word, used_words = select_word(game.used_words, self.rng)
        imposter = rules.pick_imposter(game.players, self.rng)
        turn_order = rules.assign_turn_order(game.players) if reset_scores else None

        for player in game.players:
            values = {
                "is_imposter": player.player_id == imposter.player_id,
                "is_eliminated": False,
                "votes": 0,
                "has_voted": False,
            }
            if reset_scores:
                values["score"] = 0
                values["turn_order"] = turn_order[player.player_id]
            db.query(DBPlayer).filter(DBPlayer.id == player.player_id).update(
                values, synchronize_session=False
            )

        logger.debug(f"🎲 Game {game.room_code}: {category} word dealt, imposter {imposter.name}")
        return {
            "secret_word": word,
            "category": category,
            "used_words": used_words,
            "results_revealed": False,
        }

    def start_game(self, room_code: str, total_rounds: Optional[int] = None, actor_id: Optional[str] = None) -> Game:
        """Start the game and update database"""
        total_rounds = total_rounds or self.settings.DEFAULT_TOTAL_ROUNDS
        if not 1 <= total_rounds <= self.settings.MAX_TOTAL_ROUNDS:
            raise GameError(f"Rounds must be between 1 and {self.settings.MAX_TOTAL_ROUNDS}")

        code = rules.normalize_room_code(room_code)
        with self._room_lock(code), self._session() as db:
            game = self._load(db, code)
            if game.status == GameStatus.FINISHED:
                raise InvalidTransition("Game has ended")
            if game.status != GameStatus.WAITING:
                raise AlreadyStarted()
            self._check_host(game, actor_id)
            if len(game.players) < self.settings.MIN_PLAYERS:
                raise InsufficientPlayers(f"At least {self.settings.MIN_PLAYERS} players required")

            values = self._deal_round(db, game, reset_scores=True)
            values.update({
                "status": GameStatus.PLAYING.value,
                "total_rounds": total_rounds,
                "current_round": 1,
            })
            self._transition(db, game, values)
            db.commit()
            game = self._load_by_id(db, game.game_id)

        logger.info(f"✅ Game {code} started ({total_rounds} rounds, {len(game.players)} players)")
        return game

    def start_new_round(self, room_code: str, actor_id: Optional[str] = None, expected_round: Optional[int] = None) -> Game:
        """
        Advance to the next round. ``expected_round`` is the round the caller
        saw; if the game already moved past it the call is rejected instead of
        advancing twice.
        """
        code = rules.normalize_room_code(room_code)
        with self._room_lock(code), self._session() as db:
            game = self._load(db, code)
            if game.status != GameStatus.PLAYING:
                raise InvalidTransition("Game is not in progress")
            if expected_round is not None and expected_round != game.current_round:
                raise TransitionConflict(f"Game is already on round {game.current_round}")
            if game.current_round >= game.total_rounds:
                raise InvalidTransition("No rounds left")
            self._check_host(game, actor_id)
            if len(game.players) < self.settings.MIN_PLAYERS:
                raise InsufficientPlayers(f"At least {self.settings.MIN_PLAYERS} players required")

            values = self._deal_round(db, game, reset_scores=False)
            values["current_round"] = game.current_round + 1
            self._transition(db, game, values)
            db.commit()
            game = self._load_by_id(db, game.game_id)

        logger.info(f"🔁 Game {code} round {game.current_round}/{game.total_rounds} started")
        return game

    def end_game(self, room_code: str, actor_id: Optional[str] = None) -> Game:
        """Finish the game. Terminal: nothing else is accepted afterwards."""
        code = rules.normalize_room_code(room_code)
        with self._room_lock(code), self._session() as db:
            game = self._load(db, code)
            if game.status == GameStatus.FINISHED:
                raise InvalidTransition("Game has already ended")
            self._check_host(game, actor_id)

            self._transition(db, game, {"status": GameStatus.FINISHED.value})
            db.commit()
            game = self._load_by_id(db, game.game_id)

        self._release_room_lock(code)
        logger.info(f"🏁 Game {code} ended")
        return game

    # ------------------------------
    # Voting & Scoring
    # ------------------------------
    def cast_vote(self, room_code: str, voter_id: str, target_id: str) -> VoteResult:
        """One vote per player per round, added to the target's count."""
        code = rules.normalize_room_code(room_code)
        with self._room_lock(code), self._session() as db:
            game = self._load(db, code)
            if game.status != GameStatus.PLAYING:
                raise InvalidTransition("Game is not in progress")
            if game.results_revealed:
                raise InvalidTransition("Voting is closed for this round")

            voter = game.get_player(voter_id)
            target = game.get_player(target_id)
            if voter is None or target is None:
                raise NotFound("Player not found")
            if voter.has_voted:
                raise AlreadyVoted()
            if voter_id == target_id and not self.settings.ALLOW_SELF_VOTE:
                raise VoteNotAllowed("You can't vote for yourself")
            if target.is_eliminated and not self.settings.ALLOW_VOTE_FOR_ELIMINATED:
                raise VoteNotAllowed(f"{target.name} is already eliminated")

            # Flip has_voted only if still unset, so a concurrent duplicate can't count twice
            claimed = db.query(DBPlayer).filter(
                DBPlayer.id == voter_id,
                DBPlayer.has_voted.is_(False),
            ).update({"has_voted": True}, synchronize_session=False)
            if claimed != 1:
                raise AlreadyVoted()
            db.query(DBPlayer).filter(DBPlayer.id == target_id).update(
                {"votes": DBPlayer.votes + 1}, synchronize_session=False
            )
            db.commit()
            game = self._load_by_id(db, game.game_id)

        logger.info(f"🗳️ {voter.name} voted for {target.name} in game {code}")
        return VoteResult(
            game=game,
            voter=game.get_player(voter_id),
            target=game.get_player(target_id),
            all_voted=rules.all_voted(game.players),
        )

    def _replay_outcome(self, game: Game) -> RevealOutcome:
        imposter = game.imposter
        voted_out = rules.most_voted(game.players, include_eliminated=True)
        awarded = rules.score_round(
            game.players, imposter, voted_out,
            self.settings.PLAYERS_WIN_POINTS, self.settings.IMPOSTER_WIN_POINTS,
        )
        return RevealOutcome(
            round_number=game.current_round,
            imposter=imposter,
            most_voted=voted_out,
            players_win=rules.players_win(imposter, voted_out),
            awarded=awarded,
            scores={p.player_id: p.score for p in game.players},
            already_revealed=True,
        )

    def reveal_results(self, room_code: str, actor_id: Optional[str] = None) -> RevealOutcome:
        """
        Reveal the imposter, eliminate the most-voted player and award points.

        Does not wait for every vote. Revealing an already revealed round
        returns the same outcome without awarding anything again.
        """
        code = rules.normalize_room_code(room_code)
        with self._room_lock(code), self._session() as db:
            game = self._load(db, code)
            if game.status != GameStatus.PLAYING:
                raise InvalidTransition("Game is not in progress")
            self._check_host(game, actor_id)
            if game.results_revealed:
                logger.info(f"ℹ️ Round {game.current_round} of game {code} already revealed")
                return self._replay_outcome(game)

            if not rules.all_voted(game.players):
                logger.warning(f"⚠️ Revealing game {code} before everyone voted")

            imposter = game.imposter
            voted_out = rules.most_voted(game.players)
            awarded = rules.score_round(
                game.players, imposter, voted_out,
                self.settings.PLAYERS_WIN_POINTS, self.settings.IMPOSTER_WIN_POINTS,
            )

            for player_id, points in awarded.items():
                db.query(DBPlayer).filter(DBPlayer.id == player_id).update(
                    {"score": DBPlayer.score + points}, synchronize_session=False
                )
            if voted_out is not None:
                db.query(DBPlayer).filter(DBPlayer.id == voted_out.player_id).update(
                    {"is_eliminated": True}, synchronize_session=False
                )
            self._transition(db, game, {"results_revealed": True})
            db.commit()
            game = self._load_by_id(db, game.game_id)

        outcome = RevealOutcome(
            round_number=game.current_round,
            imposter=game.get_player(imposter.player_id) if imposter else None,
            most_voted=game.get_player(voted_out.player_id) if voted_out else None,
            players_win=rules.players_win(imposter, voted_out),
            awarded=awarded,
            scores={p.player_id: p.score for p in game.players},
        )
        if outcome.players_win:
            logger.info(f"🎉 Game {code} round {game.current_round}: imposter caught")
        else:
            logger.info(f"🕵️ Game {code} round {game.current_round}: imposter escaped")
        return outcome

    # ------------------------------
    # Admin
    # ------------------------------
    def list_active_games(self) -> List[dict]:
        """Waiting and playing games, newest first, with player count and imposter name."""
        with self._session() as db:
            db_games = db.query(DBGame).filter(
                DBGame.status.in_([GameStatus.WAITING.value, GameStatus.PLAYING.value])
            ).order_by(DBGame.created_at.desc()).all()
            summaries = []
            for db_game in db_games:
                game = Game.from_db(db_game, self._player_rows(db, db_game.id))
                imposter = game.imposter
                summary = game.to_record()
                summary["player_count"] = len(game.players)
                summary["imposter_name"] = imposter.name if imposter else None
                summaries.append(summary)
            return summaries

    def get_game_details(self, game_id: str) -> Game:
        with self._session() as db:
            return self._load_by_id(db, game_id)

    def delete_game(self, game_id: str) -> Game:
        """Delete a game row; its players go with it."""
        with self._session() as db:
            db_game = db.query(DBGame).filter(DBGame.id == game_id).first()
            if db_game is None:
                raise NotFound(f"Game {game_id} not found")
            game = Game.from_db(db_game, self._player_rows(db, game_id))
            db.delete(db_game)
            db.commit()

        self._release_room_lock(game.room_code)
        logger.info(f"🗑️ Game {game.room_code} deleted")
        return game

    # ------------------------------
    # WebSocket Management (STAYS IN MEMORY)
    # ------------------------------
    async def connect(self, websocket: WebSocket, room_code: str, player_id: str):
        """Add a websocket connection to a specific player within a game."""
        await websocket.accept()
        self.connections.setdefault(room_code, {})[player_id] = websocket
        logger.info(f"🟢 {player_id} connected to game {room_code}")

    def disconnect(self, room_code: str, player_id: str):
        """Remove a player's websocket connection."""
        room = self.connections.get(room_code)
        if room and player_id in room:
            del room[player_id]
            logger.info(f"🔴 {player_id} disconnected from {room_code}")
            if not room:
                del self.connections[room_code]

    async def send_to_player(self, room_code: str, player_id: str, message: dict):
        """Send a message to a specific player"""
        websocket = self.connections.get(room_code, {}).get(player_id)
        if websocket is None:
            logger.debug(f"⚠️ Player {player_id} not connected to game {room_code}")
            return

        try:
            await websocket.send_json(message)
        except Exception as e:
            logger.warning(f"❌ Failed to send to {player_id}: {e}")
            self.disconnect(room_code, player_id)

    async def broadcast(self, room_code: str, message: dict):
        """Send a message to all players in a game"""
        room = self.connections.get(room_code)
        if not room:
            logger.debug(f"⚠️ No players connected to game {room_code}")
            return

        dead_connections = []
        for player_id, websocket in list(room.items()):
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.warning(f"❌ Failed to broadcast to {player_id}: {e}")
                dead_connections.append(player_id)

        for player_id in dead_connections:
            self.disconnect(room_code, player_id)

    # ------------------------------
    # Change notifications
    # ------------------------------
    def private_view(self, game: Game, player: Player) -> dict:
        """What one player is allowed to know about the current round."""
        return {
            "event": "your_word",
            "round": game.current_round,
            "category": game.category,
            "is_imposter": player.is_imposter,
            "secret_word": None if player.is_imposter else game.secret_word,
        }

    def public_state(self, game: Game) -> dict:
        return game.to_dict(public=True, host_player_id=rules.resolve_host(game.host_id, game.players))

    async def send_current_state(self, websocket: WebSocket, room_code: str, player_id: Optional[str] = None):
        """Send a full snapshot of the room, plus the caller's own role when a round is on."""
        game = self.get_game(room_code)
        if game is None:
            await websocket.send_json({"event": "error", "detail": "Game not found"})
            return

        await websocket.send_json({"event": "current_state", "game": self.public_state(game)})
        player = game.get_player(player_id) if player_id else None
        if player is not None and game.status == GameStatus.PLAYING:
            await websocket.send_json(self.private_view(game, player))

    async def publish_game(self, game: Game, event: str = "game_updated"):
        """Push the game row and every player row to the room."""
        state = self.public_state(game)
        players = state.pop("players")
        await self.broadcast(game.room_code, change_event(event, "update", "games", state))
        await self.broadcast(game.room_code, change_event("players_updated", "update", "players", players))

    async def publish_player(self, room_code: str, player: Player, change_type: str, event: str):
        await self.broadcast(room_code, change_event(event, change_type, "players", player.to_dict(hide_role=True)))

    async def send_roles(self, game: Game):
        """Tell each player privately whether they are the imposter, and the word if not."""
        for player in game.players:
            await self.send_to_player(game.room_code, player.player_id, self.private_view(game, player))
