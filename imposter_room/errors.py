# imposter_room/errors.py


class GameError(ValueError):
    """Base class for every recoverable game error. Carries the HTTP status the API answers with."""

    status_code = 400

    def __init__(self, message: str = None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class NotFound(GameError):
    """Game not found"""
    status_code = 404


class AlreadyStarted(GameError):
    """Game already started"""
    status_code = 409


class InsufficientPlayers(GameError):
    """Not enough players to start"""
    status_code = 400


class AlreadyVoted(GameError):
    """Player has already voted this round"""
    status_code = 409


class StoreUnavailable(GameError):
    """Game store is unavailable, please retry"""
    status_code = 503


class RoomCodeTaken(GameError):
    """Room code already in use"""
    status_code = 409


class InvalidTransition(GameError):
    """Operation not allowed in the current game state"""
    status_code = 409


class TransitionConflict(GameError):
    """Game changed since it was read, refresh and retry"""
    status_code = 409


class NotHost(GameError):
    """Only the host can do that"""
    status_code = 403


class VoteNotAllowed(GameError):
    """Vote not allowed"""
    status_code = 400


class InvalidName(GameError):
    """Invalid player name"""
    status_code = 422
