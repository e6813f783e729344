import os

# Must be set before the app modules build their engine
os.environ["DATABASE_URL"] = "sqlite://"

import random

import pytest
from fastapi.testclient import TestClient

from imposter_room import db_models  # noqa: F401
from imposter_room.database import Base, engine
from imposter_room.game_manager import GameManager
from imposter_room.main import app
from imposter_room.routes import game as game_routes


@pytest.fixture(autouse=True)
def fresh_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def manager():
    return GameManager(rng=random.Random(1234))


@pytest.fixture
def client():
    game_routes.game_manager.connections.clear()
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def room(manager):
    """A waiting room with the host and two more players, in join order."""
    created = manager.create_game("Alice")
    bob = manager.join_game(created.room_code, "Bob")
    cara = manager.join_game(created.room_code, "Cara")
    return created.room_code, [created.player_id, bob.player_id, cara.player_id]


@pytest.fixture
def started(manager, room):
    room_code, player_ids = room
    game = manager.start_game(room_code, total_rounds=3, actor_id=player_ids[0])
    return game, player_ids
