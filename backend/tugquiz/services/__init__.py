"""Wiring between the Flask app and the game services.

``init_services`` builds one ``GameServices`` per app and keeps it in
``app.extensions``; request handlers fetch it with ``get_services()``.
"""

from flask import current_app

from tugquiz.models import utcnow
from .broadcast import SocketIOBroadcaster
from .store import SessionStore
from .games.lifecycle import SessionLifecycle
from .games.queries import SessionQueries
from .games.rules import GameRules
from .games.scoring import AnswerAdjudicator

EXTENSION_KEY = 'tugquiz'


class GameServices:
    def __init__(self, store, broadcaster, rules=None, clock=utcnow, rng=None):
        self.store = store
        self.broadcaster = broadcaster
        self.rules = rules or GameRules()
        self.lifecycle = SessionLifecycle(store, broadcaster, self.rules, clock=clock, rng=rng)
        self.scoring = AnswerAdjudicator(store, broadcaster, self.rules, clock=clock)
        self.queries = SessionQueries(store)


def init_services(app, db, socketio):
    services = GameServices(
        store=SessionStore(db.session),
        broadcaster=SocketIOBroadcaster(socketio, namespace=app.config.get('SOCKETIO_NAMESPACE', '/ws')),
        rules=GameRules.from_config(app.config),
    )
    app.extensions[EXTENSION_KEY] = services
    return services


def get_services():
    return current_app.extensions[EXTENSION_KEY]
