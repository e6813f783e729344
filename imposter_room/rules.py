# imposter_room/rules.py
"""
Pure game rules. Nothing here touches the database; the game manager feeds
these functions in-memory players (always in join order) and persists what
they decide.
"""
import random
from typing import Dict, Optional, Sequence

from imposter_room.models import Player


def generate_room_code(rng: random.Random, alphabet: str, length: int) -> str:
    return "".join(rng.choice(alphabet) for _ in range(length))


def normalize_room_code(room_code: str) -> str:
    return (room_code or "").strip().upper()


def resolve_host(host_id: Optional[str], players: Sequence[Player]) -> Optional[str]:
    """
    The effective host: ``host_id`` if a player row still carries that id,
    otherwise the earliest-joined player. None for an empty room.
    """
    if not players:
        return None
    if any(p.player_id == host_id for p in players):
        return host_id
    return players[0].player_id


def assign_turn_order(players: Sequence[Player]) -> Dict[str, int]:
    return {p.player_id: i for i, p in enumerate(players)}


def pick_imposter(players: Sequence[Player], rng: random.Random) -> Player:
    return rng.choice(list(players))


def most_voted(players: Sequence[Player], include_eliminated: bool = False) -> Optional[Player]:
    """
    The non-eliminated player holding the most votes.

    Ties go to the lowest turn order, then the lowest player id, so a round
    with no votes at all still names the first player in turn order. Returns
    None only when there is no candidate. ``include_eliminated`` is for
    replaying a round whose reveal already eliminated the winner of the vote.
    """
    candidates = [p for p in players if include_eliminated or not p.is_eliminated]
    if not candidates:
        return None
    return min(candidates, key=lambda p: (-p.votes, p.turn_order, p.player_id))


def players_win(imposter: Optional[Player], voted_out: Optional[Player]) -> bool:
    return imposter is not None and voted_out is not None and voted_out.player_id == imposter.player_id


def score_round(
    players: Sequence[Player],
    imposter: Optional[Player],
    voted_out: Optional[Player],
    players_win_points: int = 10,
    imposter_win_points: int = 20,
) -> Dict[str, int]:
    """
    Points awarded for one round, keyed by player id.

    If the room caught the imposter every other player gets
    ``players_win_points`` (eliminated players included); otherwise the
    imposter alone gets ``imposter_win_points``.
    """
    if imposter is None:
        return {}
    if players_win(imposter, voted_out):
        return {p.player_id: players_win_points for p in players if p.player_id != imposter.player_id}
    return {imposter.player_id: imposter_win_points}


def all_voted(players: Sequence[Player]) -> bool:
    """Whether every non-eliminated player has cast a vote this round."""
    return all(p.has_voted for p in players if not p.is_eliminated)

