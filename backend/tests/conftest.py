import os
import sys
import pytest

# Ensure the backend root (containing the `gamenight` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)
if CURRENT_DIR not in sys.path:
    sys.path.insert(0, CURRENT_DIR)

from gamenight import create_app, db, socketio
from fakes import FakeClock, InMemoryPromptStore, RecordingAudit


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4
    DEFAULT_PROMPT_DURATION_SEC = 30
    MAX_PROMPT_DURATION_SEC = 900
    MIN_GAME_CODE_LENGTH = 4
    SPORTSDATAIO_API_KEY = ''
    SPORTSDATAIO_LIVE_BASE_URL = 'https://api.sportsdata.test'
    SPORTSDATAIO_REPLAY_BASE_URL = 'https://replay.sportsdata.test'
    SPORTSDATAIO_TIMEOUT_SEC = 2


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def flask_app(clock):
    application = create_app(TestConfig)
    application.config['PROMPT_CLOCK'] = clock
    with application.app_context():
        # Ensure models are imported so tables are created
        import gamenight.models  # noqa: F401
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
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


def register(client, username, password='password'):
    res = client.post('/register', json={'username': username, 'password': password})
    assert res.status_code == 201
    return res.get_json()['user']


@pytest.fixture()
def host_client(flask_app):
    """A logged-in host with a bar and an active game night (code HOOPS)."""
    c = flask_app.test_client()
    register(c, 'host1')
    bar = c.post('/api/host/bars', json={'name': 'The Corner'}).get_json()
    night = c.post('/api/host/game-nights', json={
        'bar_id': bar['id'],
        'title': 'Finals Watch',
        'code': 'hoops',
    }).get_json()
    c.bar = bar
    c.night = night
    return c


@pytest.fixture()
def store():
    return InMemoryPromptStore()


@pytest.fixture()
def audit():
    return RecordingAudit()
