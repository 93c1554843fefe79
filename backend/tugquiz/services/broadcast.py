"""Per-session broadcast channel.

Services mutate first and publish afterwards; the channel only ever sees
events for committed changes. Delivery is best-effort and at-most-once: a
client that reconnects fetches the state snapshot instead of a replay.
"""

import logging

logger = logging.getLogger(__name__)

SESSION_STARTED = 'session-started'
QUESTION_UPDATE = 'question-update'
SCORE_UPDATE = 'score-update'
ANSWER_RESULT = 'answer-result'
PARTICIPANT_JOINED = 'participant-joined'
PARTICIPANT_LEFT = 'participant-left'
SESSION_PAUSED = 'session-paused'
SESSION_RESUMED = 'session-resumed'
SESSION_ENDED = 'session-ended'


def room_for(session_id):
    return f"session:{session_id}"


class Broadcaster:
    def emit(self, session_id, event, payload):
        raise NotImplementedError

    def publish(self, session_id, events):
        for event, payload in events:
            try:
                self.emit(session_id, event, payload)
            except Exception:
                # The mutation is already committed; a lost event is recovered
                # by the client's next state query.
                logger.exception(f"[broadcast-failed] session={session_id} event={event}")


class SocketIOBroadcaster(Broadcaster):
    def __init__(self, socketio, namespace='/ws'):
        self.socketio = socketio
        self.namespace = namespace

    def emit(self, session_id, event, payload):
        self.socketio.emit(event, payload, to=room_for(session_id), namespace=self.namespace)
        logger.debug(f"[broadcast] session={session_id} event={event}")


class RecordingBroadcaster(Broadcaster):
    """Keeps emitted events in memory instead of sending them."""

    def __init__(self):
        self.events = []

    def emit(self, session_id, event, payload):
        self.events.append((session_id, event, payload))

    def names(self, session_id=None):
        return [e for sid, e, _ in self.events if session_id is None or sid == session_id]

    def payloads(self, event):
        return [p for _, e, p in self.events if e == event]

    def clear(self):
        self.events = []
