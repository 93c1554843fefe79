import os
import random
import sys
from datetime import datetime, timedelta

import pytest
from flask import g

# Ensure the backend root (containing the `tugquiz` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from tugquiz import create_app, db, socketio
from tugquiz.models import User
from tugquiz.services import GameServices
from tugquiz.services.broadcast import RecordingBroadcaster
from tugquiz.services.games.rules import GameRules
from tugquiz.services.store import SessionStore


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4
    LOG_LEVEL = 'WARNING'
    CORS_ORIGINS = ['http://localhost:5173']
    SOCKETIO_NAMESPACE = '/ws'
    MIN_QUESTIONS = 3
    SESSION_CODE_LENGTH = 6
    ANSWER_UNIQUENESS = 'participant'
    ENFORCE_QUESTION_DEADLINE = False
    QUESTION_DEADLINE_GRACE_SEC = 2


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 5, 9, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)


def question(text='What is 2 + 2?', answers=None, correct=0, points=1, **extra):
    data = {
        'text': text,
        'answers': answers or ['4', '5', '6', '7'],
        'correctAnswer': correct,
        'points': points,
    }
    data.update(extra)
    return data


def session_payload(questions=None, **settings):
    return {
        'name': 'Fractions warm-up',
        'subject': 'matematica',
        'grade': 5,
        'settings': settings,
        'questions': questions if questions is not None else [
            question('Q1', correct=0, points=1),
            question('Q2', correct=1, points=2),
            question('Q3', correct=2, points=3),
        ],
    }


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)

    # Requests and socket events reuse the app context pushed below, so g
    # outlives them
    @application.teardown_request
    def _forget_cached_user(exc):
        g.pop('_login_user', None)

    with application.app_context():
        # Ensure models are imported so tables are created
        import tugquiz.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def make_user(flask_app):
    counter = {'n': 0}

    def _make(role='student', name=None, email=None, password='password'):
        counter['n'] += 1
        user = User(
            email=email or f'{role}{counter["n"]}@example.com',
            name=name or f'{role.title()} {counter["n"]}',
            role=role,
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture()
def login_client(flask_app):
    """Return a fresh HTTP client logged in as ``user``."""
    def _login(user, password='password'):
        test_client = flask_app.test_client()
        res = test_client.post('/api/auth/login', json={'email': user.email, 'password': password})
        assert res.status_code == 200, res.get_json()
        return test_client

    return _login


@pytest.fixture()
def recorder():
    return RecordingBroadcaster()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def rules():
    return GameRules()


@pytest.fixture()
def services(flask_app, recorder, clock, rules):
    return GameServices(
        store=SessionStore(db.session),
        broadcaster=recorder,
        rules=rules,
        clock=clock,
        rng=random.Random(7),
    )


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


@pytest.fixture()
def socket_for(flask_app):
    """Connect a /ws client that shares the cookies of an HTTP test client."""
    opened = []

    def _connect(http_client):
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=http_client,
            namespace='/ws'
        )
        test_client.get_received('/ws')
        opened.append(test_client)
        return test_client

    yield _connect
    for test_client in opened:
        if test_client.is_connected('/ws'):
            test_client.disconnect(namespace='/ws')
