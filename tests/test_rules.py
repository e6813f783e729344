import random

from imposter_room import rules
from imposter_room.models import Player


def make_players(*votes, eliminated=()):
    return [
        Player(player_id=f"p{i}", game_id="g", name=f"P{i}", votes=v, turn_order=i, is_eliminated=i in eliminated)
        for i, v in enumerate(votes)
    ]


def test_room_code_uses_only_the_given_alphabet():
    alphabet = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
    code = rules.generate_room_code(random.Random(5), alphabet, 4)

    assert len(code) == 4
    assert set(code) <= set(alphabet)


def test_normalize_room_code():
    assert rules.normalize_room_code(" abcd ") == "ABCD"
    assert rules.normalize_room_code(None) == ""


def test_resolve_host_prefers_matching_player():
    players = make_players(0, 0, 0)
    assert rules.resolve_host("p1", players) == "p1"


def test_resolve_host_falls_back_to_earliest_joined():
    players = make_players(0, 0, 0)
    assert rules.resolve_host("someone-else", players) == "p0"
    assert rules.resolve_host("p0", []) is None


def test_turn_order_follows_join_order():
    players = make_players(0, 0, 0)
    assert rules.assign_turn_order(players) == {"p0": 0, "p1": 1, "p2": 2}


def test_most_voted_breaks_ties_by_turn_order():
    players = make_players(1, 2, 2)
    assert rules.most_voted(players).player_id == "p1"


def test_most_voted_skips_eliminated_players():
    players = make_players(3, 1, 0, eliminated=(0,))
    assert rules.most_voted(players).player_id == "p1"
    assert rules.most_voted(players, include_eliminated=True).player_id == "p0"


def test_zero_vote_round_falls_to_first_in_turn_order():
    assert rules.most_voted(make_players(0, 0, 0)).player_id == "p0"


def test_most_voted_is_none_without_candidates():
    assert rules.most_voted([]) is None
    assert rules.most_voted(make_players(2, 1, eliminated=(0, 1))) is None


def test_caught_imposter_pays_everyone_else():
    players = make_players(0, 2, 1, eliminated=(2,))
    imposter = players[1]

    awarded = rules.score_round(players, imposter, players[1])

    assert awarded == {"p0": 10, "p2": 10}


def test_escaped_imposter_takes_the_points():
    players = make_players(2, 1, 0)
    imposter = players[1]

    assert rules.score_round(players, imposter, players[0]) == {"p1": 20}
    assert rules.score_round(players, imposter, None) == {"p1": 20}
    assert rules.score_round(players, None, players[0]) == {}


def test_all_voted_ignores_eliminated_players():
    players = make_players(0, 0, 0, eliminated=(2,))
    players[0].has_voted = True
    assert not rules.all_voted(players)
    players[1].has_voted = True
    assert rules.all_voted(players)
