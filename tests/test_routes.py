from imposter_room.config import settings


def create_room(client, host="Alice", others=("Bob", "Cara")):
    created = client.post("/create_game", json={"host_name": host}).json()
    player_ids = [created["player_id"]]
    for name in others:
        joined = client.post("/join_game", json={"room_code": created["room_code"].lower(), "player_name": name})
        assert joined.status_code == 200
        player_ids.append(joined.json()["player_id"])
    return created["room_code"], player_ids


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_create_and_join(client):
    room_code, player_ids = create_room(client)

    state = client.get(f"/games/{room_code}").json()

    assert state["status"] == "waiting"
    assert state["player_count"] == 3
    assert state["host_player_id"] == player_ids[0]
    assert [p["name"] for p in state["players"]] == ["Alice", "Bob", "Cara"]


def test_join_errors(client):
    assert client.post("/join_game", json={"room_code": "ZZZZ", "player_name": "Bob"}).status_code == 404
    assert client.post("/join_game", json={"room_code": "ZZZZ", "player_name": "x" * 21}).status_code == 422


def test_unknown_seat_is_not_found(client):
    room_code, player_ids = create_room(client)
    assert client.get(f"/games/{room_code}/players/nobody").status_code == 404
    assert client.get(f"/games/ZZZZ/players/{player_ids[0]}").status_code == 404
    assert client.get(f"/games/{room_code.lower()}/players/{player_ids[1]}").json()["player"]["name"] == "Bob"


def test_start_game_flow(client):
    room_code, player_ids = create_room(client, others=("Bob",))

    response = client.post(f"/start_game/{room_code}", json={"player_id": player_ids[0]})
    assert response.status_code == 400

    client.post("/join_game", json={"room_code": room_code, "player_name": "Cara"})
    response = client.post(f"/start_game/{room_code}", json={"player_id": player_ids[1]})
    assert response.status_code == 403

    response = client.post(f"/start_game/{room_code}", json={"player_id": player_ids[0], "total_rounds": 3})
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "playing"
    assert body["current_round"] == 1

    late = client.post("/join_game", json={"room_code": room_code, "player_name": "Dan"})
    assert late.status_code == 409


def test_public_state_hides_the_round_secrets(client):
    room_code, player_ids = create_room(client)
    client.post(f"/start_game/{room_code}", json={"player_id": player_ids[0]})

    state = client.get(f"/games/{room_code}").json()

    assert state["secret_word"] is None
    assert state["category"] is not None
    assert not any(p["is_imposter"] for p in state["players"])

    views = [client.get(f"/games/{room_code}/players/{pid}").json() for pid in player_ids]
    imposters = [v for v in views if v["round"]["is_imposter"]]
    assert len(imposters) == 1
    assert imposters[0]["round"]["secret_word"] is None
    assert all(v["round"]["secret_word"] for v in views if not v["round"]["is_imposter"])


def test_vote_and_reveal_over_http(client):
    room_code, player_ids = create_room(client)
    client.post(f"/start_game/{room_code}", json={"player_id": player_ids[0]})
    views = {pid: client.get(f"/games/{room_code}/players/{pid}").json() for pid in player_ids}
    imposter_id = next(pid for pid, v in views.items() if v["round"]["is_imposter"])

    for voter in player_ids:
        response = client.post(f"/games/{room_code}/vote", json={"voter_id": voter, "target_id": imposter_id})
        assert response.status_code == 200
    assert response.json()["all_voted"] is True

    again = client.post(f"/games/{room_code}/vote", json={"voter_id": player_ids[0], "target_id": imposter_id})
    assert again.status_code == 409

    outcome = client.post(f"/games/{room_code}/reveal", json={"player_id": player_ids[0]}).json()
    assert outcome["players_win"] is True
    assert outcome["imposter_id"] == imposter_id
    assert outcome["scores"][imposter_id] == 0
    assert all(outcome["scores"][pid] == 10 for pid in player_ids if pid != imposter_id)

    state = client.get(f"/games/{room_code}").json()
    assert state["results_revealed"] is True
    assert [p["is_imposter"] for p in state["players"]].count(True) == 1


def test_new_round_and_end(client):
    room_code, player_ids = create_room(client)
    client.post(f"/start_game/{room_code}", json={"player_id": player_ids[0], "total_rounds": 2})

    response = client.post(f"/games/{room_code}/new_round", json={"player_id": player_ids[0], "expected_round": 1})
    assert response.json()["current_round"] == 2

    response = client.post(f"/games/{room_code}/new_round", json={"player_id": player_ids[0]})
    assert response.status_code == 409

    response = client.post(f"/games/{room_code}/end", json={"player_id": player_ids[0]})
    assert response.status_code == 200
    assert client.get(f"/games/{room_code}").json()["status"] == "finished"

    vote = client.post(f"/games/{room_code}/vote", json={"voter_id": player_ids[1], "target_id": player_ids[2]})
    assert vote.status_code == 409


def test_leave_game(client):
    room_code, player_ids = create_room(client)

    response = client.post(f"/games/{room_code}/leave", json={"player_id": player_ids[0]})
    assert response.status_code == 200

    state = client.get(f"/games/{room_code}").json()
    assert state["player_count"] == 2
    assert state["host_player_id"] == player_ids[1]


def test_websocket_gets_snapshot_and_changes(client):
    room_code, player_ids = create_room(client, others=("Bob",))

    with client.websocket_connect(f"/ws/games/{room_code}/{player_ids[0]}") as ws:
        snapshot = ws.receive_json()
        assert snapshot["event"] == "current_state"
        assert snapshot["game"]["room_code"] == room_code

        client.post("/join_game", json={"room_code": room_code, "player_name": "Cara"})
        joined = ws.receive_json()
        assert joined["event"] == "player_joined"
        assert joined["type"] == "insert"
        assert joined["table"] == "players"
        assert joined["record"]["name"] == "Cara"

        ws.send_text("ping")
        assert ws.receive_json() == {"event": "pong"}


def test_vote_pushes_voter_and_target_rows(client):
    room_code, player_ids = create_room(client)
    client.post(f"/start_game/{room_code}", json={"player_id": player_ids[0]})

    with client.websocket_connect(f"/ws/games/{room_code}/{player_ids[0]}") as ws:
        assert ws.receive_json()["event"] == "current_state"
        assert ws.receive_json()["event"] == "your_word"

        response = client.post(f"/games/{room_code}/vote", json={"voter_id": player_ids[1], "target_id": player_ids[2]})
        assert response.status_code == 200

        updates = [ws.receive_json(), ws.receive_json()]
        assert [u["event"] for u in updates] == ["vote_update", "vote_update"]
        records = {u["record"]["id"]: u["record"] for u in updates}
        assert records[player_ids[1]]["has_voted"] is True
        assert records[player_ids[2]]["votes"] == 1
        assert all(r["is_imposter"] is False for r in records.values())


def test_admin_requires_token(client, monkeypatch):
    room_code, _ = create_room(client)
    assert client.get("/admin/games").status_code == 404

    monkeypatch.setattr(settings, "ADMIN_TOKEN", "s3cret")
    assert client.get("/admin/games", headers={"X-Admin-Token": "wrong"}).status_code == 403

    games = client.get("/admin/games", headers={"X-Admin-Token": "s3cret"}).json()
    assert [g["room_code"] for g in games] == [room_code]

    game_id = games[0]["id"]
    details = client.get(f"/admin/games/{game_id}", headers={"X-Admin-Token": "s3cret"}).json()
    assert details["player_count"] == 3

    deleted = client.delete(f"/admin/games/{game_id}", headers={"X-Admin-Token": "s3cret"})
    assert deleted.status_code == 200
    assert client.get(f"/games/{room_code}").status_code == 404
