import os
import random
import sys
import pytest

# Ensure the backend root (containing the `titleparty` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from titleparty import create_app, db, socketio
from titleparty.catalog import seed_catalog
from titleparty.services.games import GameContext, GameSettings
from titleparty.services.games import dealer, state_machine, tally


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    HAND_SIZE = 8
    RELOAD_HAND_SIZE = 5
    FREE_WORD_MAX_LENGTH = 4
    MIN_PLAYERS = 3
    MAX_PLAYERS_LIMIT = 6
    ROUND_DURATION_SEC = 180


class FakeClock:
    def __init__(self, start=1_700_000_000.0):
        self.current = start

    def __call__(self):
        return self.current

    def advance(self, seconds):
        self.current += seconds


def build_app(config_class):
    application = create_app(config_class)
    with application.app_context():
        # Ensure models are imported so tables are created
        import titleparty.models  # noqa: F401
        db.create_all()
        seed_catalog(db.session)
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def flask_app():
    yield from build_app(TestConfig)


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def notifications():
    return []


@pytest.fixture()
def ctx(flask_app, clock, notifications):
    return GameContext(
        session=db.session,
        settings=GameSettings.from_config(flask_app.config),
        rng=random.Random(1234),
        clock=clock,
        notifier=lambda room_code, record: notifications.append((room_code, record)),
        logger=flask_app.logger,
    )


@pytest.fixture()
def new_room(ctx):
    """Factory: a waiting room with ``seats`` players, host first."""
    def _make(seats=3, total_rounds=2, max_players=6):
        room, host = state_machine.create_room(ctx, 'Host', max_players, total_rounds)
        players = [host]
        for i in range(1, seats):
            _, p = state_machine.join_room(ctx, room.room_code, f'Player{i}')
            players.append(p)
        return room, players
    return _make


@pytest.fixture()
def to_playing(ctx):
    """Drive a room from waiting (or results) through to playing."""
    def _drive(room):
        host_id = room.host_id
        if room.status.value == 'waiting':
            state_machine.start_game(ctx, room, host_id)
        elif room.status.value == 'results':
            state_machine.next_round(ctx, room, host_id)
        state_machine.begin_countdown(ctx, room)
        state_machine.begin_playing(ctx, room)
        return room
    return _drive


@pytest.fixture()
def playing_room(new_room, to_playing):
    room, players = new_room(3)
    to_playing(room)
    return room, players


@pytest.fixture()
def submit_for(ctx):
    """Submit a title using the first two cards of the player's hand."""
    def _submit(room, player, free_word='cat', word_order=(1, 3, 2)):
        c1, c2 = dealer.hand_card_ids(ctx, player.id)[:2]
        return tally.submit(ctx, room, player, room.current_round, c1, c2, free_word, list(word_order))
    return _submit
