import os
import sys
import time
import pytest

# Ensure the backend root (containing the `hotseat` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from hotseat import create_app, db, socketio
from hotseat.errors import ScoringError
from hotseat.services.games.scorer import ScoreResult


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    MIN_PLAYERS = 2
    DEFAULT_TOTAL_ROUNDS = 3
    MAX_TOTAL_ROUNDS = 10
    DEFAULT_TIME_LIMIT_SEC = 60
    ROOM_TTL_HOURS = 6
    SCENARIOS_PER_TURN = 4
    SCORER_BASE_URL = 'https://scorer.test'
    SCORER_MODEL = 'test-model'
    SCORER_API_KEY = 'test-key'
    SCORING_TIMEOUT_SEC = 0.5
    SCORING_MAX_WORKERS = 4
    DISCONNECT_GRACE_SEC = 0
    RANDOM_SEED = None
    LOG_LEVEL = 'DEBUG'


class ScriptedChooser:
    """Deterministic chooser: takes scripted picks in order, else the first option."""

    def __init__(self):
        self.script = []
        self.calls = []

    def choose(self, options):
        options = list(options)
        if not options:
            raise ValueError('Cannot choose from an empty sequence')
        self.calls.append(options)
        while self.script:
            pick = self.script.pop(0)
            if pick in options:
                return pick
        return options[0]

    def sample(self, options, k):
        return list(options)[:k]


class FakeScorer:
    """Scores by answer text. ``slow`` texts outlive the coordinator deadline, ``broken`` ones raise."""

    def __init__(self):
        self.scores = {}
        self.slow = set()
        self.broken = set()
        self.calls = []
        self.default = 7

    def score(self, category, scenario_text, context, answer_text):
        self.calls.append(answer_text)
        if answer_text in self.slow:
            time.sleep(2.0)
        if answer_text in self.broken:
            raise ScoringError('Malformed scoring response')
        return ScoreResult(self.scores.get(answer_text, self.default), f'Feedback for {answer_text}')


@pytest.fixture()
def chooser():
    return ScriptedChooser()


@pytest.fixture()
def scorer():
    return FakeScorer()


@pytest.fixture()
def flask_app(chooser, scorer):
    application = create_app(TestConfig)
    application.extensions['hotseat.chooser'] = chooser
    application.extensions['hotseat.scorer'] = scorer
    with application.app_context():
        # Ensure models are imported so tables are created
        import hotseat.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


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
def make_room(client):
    """Create a room with the given nicknames; the first one hosts."""
    def _make(*nicknames, total_rounds=1):
        res = client.post('/api/rooms', json={'nickname': nicknames[0], 'total_rounds': total_rounds})
        assert res.status_code == 201
        data = res.get_json()
        room = data['room']
        players = [data['player']]
        for name in nicknames[1:]:
            res = client.post('/api/rooms/join', json={'room_code': room['room_code'], 'nickname': name})
            assert res.status_code == 201
            players.append(res.get_json()['player'])
        return room, players
    return _make
