import os
import sys
import pytest

# Ensure the project root (containing the `gamepanel` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from gamepanel import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    ROUND_HISTORY_LIMIT = 20
    ADMIN_ACTIONS_LIMIT = 50
    CORS_ORIGINS = ['http://localhost:5173']


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import gamepanel.models  # noqa: F401
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
def make_participant(flask_app):
    from gamepanel.services.roster import create_participant

    def _make(roll, team=None, status='Alive', **overrides):
        payload = {
            'name': f'Player {roll}',
            'rollNumber': roll,
            'email': f'{roll}@example.com',
            'college': 'ABC University',
            'branch': 'Computer Science',
            'year': '2024',
            'degree': 'B.Tech',
            'team': team,
            'status': status,
        }
        payload.update(overrides)
        return create_participant(payload)

    return _make
