"""Session lifecycle: creation, joining and the teacher-driven state machine.

    draft -> waiting -> started <-> paused
      started, paused -> ended (terminal)

Every operation validates against the locked session before touching it,
commits, and only then publishes its events.
"""

import logging
import random
from datetime import timedelta

from sqlalchemy.exc import IntegrityError

from tugquiz.errors import AuthorizationError, NotFoundError, StateConflictError
from tugquiz.models import Participant, Question, QuizSession, epoch, generate_session_code, isoformat, utcnow
from tugquiz.services import broadcast
from . import payloads
from .rules import GameRules
from .teams import assign_team
from .validation import normalize_code, validate_session_payload

logger = logging.getLogger(__name__)

TRANSITIONS = {
    'draft': ('waiting', 'started'),
    'waiting': ('started',),
    'started': ('paused', 'ended'),
    'paused': ('started', 'ended'),
    'ended': (),
}
JOINABLE_STATUSES = ('waiting', 'started')
TEACHER_ROLES = ('teacher', 'admin')
CODE_ATTEMPTS = 5


def can_transition(current, target):
    return target in TRANSITIONS.get(current, ())


class SessionLifecycle:
    def __init__(self, store, broadcaster, rules=None, clock=utcnow, rng=None):
        self.store = store
        self.broadcaster = broadcaster
        self.rules = rules or GameRules()
        self.clock = clock
        self.rng = rng or random.Random()

    # ---- helpers ----

    def _owned_session(self, session, requester_id):
        if session is None or session.teacher_id != requester_id:
            raise NotFoundError('Session not found or not authorized', reason='NotFoundOrUnauthorized')
        return session

    def _transition(self, session, target):
        if not can_transition(session.status, target):
            raise StateConflictError(
                f'Cannot move session from {session.status} to {target}',
                reason='InvalidTransition',
            )
        session.status = target

    def _arm_deadline(self, session, now):
        session.question_deadline = epoch(now + timedelta(seconds=session.time_per_question))

    def _publish(self, session_id, events):
        self.broadcaster.publish(session_id, events)

    # ---- operations ----

    def create(self, teacher_id, data):
        teacher = self.store.get_user(teacher_id)
        if teacher is None or teacher.role not in TEACHER_ROLES:
            raise AuthorizationError('Only teachers can create sessions', reason='NotATeacher')
        fields = validate_session_payload(data, min_questions=self.rules.min_questions)
        question_fields = fields.pop('questions')

        for attempt in range(CODE_ATTEMPTS):
            code = generate_session_code(self.store.code_exists, length=self.rules.code_length, rng=self.rng)
            session = QuizSession(code=code, teacher_id=teacher.id, **fields)
            for order, qf in enumerate(question_fields):
                question = Question(
                    text=qf['text'],
                    correct_answer=qf['correct_answer'],
                    explanation=qf['explanation'],
                    difficulty=qf['difficulty'],
                    points=qf['points'],
                    order=order,
                )
                question.options = qf['answers']
                session.questions.append(question)
            try:
                self.store.save_new(session)
            except IntegrityError:
                # Another session claimed the code between check and insert
                logger.warning(f"[create-retry] code={code} attempt={attempt + 1}")
                continue
            logger.info(f"[create] session={session.id} code={code} teacher={teacher.id} questions={len(question_fields)}")
            return session
        raise StateConflictError('Could not allocate a unique session code', reason='ConcurrentModification')

    def open(self, session_id, requester_id):
        with self.store.transaction(session_id) as session:
            self._owned_session(session, requester_id)
            self._transition(session, 'waiting')
            result = session.to_dict()
        logger.info(f"[open] session={session_id}")
        return result

    def start(self, session_id, requester_id):
        with self.store.transaction(session_id) as session:
            self._owned_session(session, requester_id)
            if session.status not in ('draft', 'waiting'):
                raise StateConflictError(
                    f'Cannot start a session that is {session.status}',
                    reason='InvalidTransition',
                )
            if session.total_questions < self.rules.min_questions:
                raise StateConflictError(
                    f'Session must have at least {self.rules.min_questions} questions',
                    reason='NotEnoughQuestions',
                )
            now = self.clock()
            self._transition(session, 'started')
            session.start_time = now
            first = session.questions[0]
            session.current_question_id = first.id
            self._arm_deadline(session, now)
            events = [
                (broadcast.SESSION_STARTED, payloads.session_started(session)),
                (broadcast.QUESTION_UPDATE, payloads.question_update(session, first)),
            ]
            result = {
                'sessionId': session.id,
                'status': session.status,
                'startTime': isoformat(session.start_time),
                'question': first.to_dict(),
                'questionNumber': 1,
                'totalQuestions': session.total_questions,
            }
        logger.info(f"[start] session={session_id} questions={result['totalQuestions']}")
        self._publish(session_id, events)
        return result

    def advance_question(self, session_id, requester_id):
        with self.store.transaction(session_id) as session:
            self._owned_session(session, requester_id)
            if session.status != 'started':
                raise StateConflictError(
                    f'Cannot advance a session that is {session.status}',
                    reason='SessionNotActive',
                )
            idx = session.question_index(session.current_question_id)
            if idx == -1 or idx >= session.total_questions - 1:
                raise StateConflictError('No more questions', reason='NoMoreQuestions')
            nxt = session.questions[idx + 1]
            session.current_question_id = nxt.id
            self._arm_deadline(session, self.clock())
            payload = payloads.question_update(session, nxt)
            events = [(broadcast.QUESTION_UPDATE, payload)]
        logger.info(f"[advance] session={session_id} question={payload['questionNumber']}/{payload['totalQuestions']}")
        self._publish(session_id, events)
        return payload

    def pause(self, session_id, requester_id):
        with self.store.transaction(session_id) as session:
            self._owned_session(session, requester_id)
            if session.status != 'started':
                raise StateConflictError(
                    f'Cannot pause a session that is {session.status}',
                    reason='InvalidTransition',
                )
            self._transition(session, 'paused')
            session.question_deadline = None
            payload = {'sessionId': session.id, 'status': session.status}
            events = [(broadcast.SESSION_PAUSED, payload)]
        logger.info(f"[pause] session={session_id}")
        self._publish(session_id, events)
        return payload

    def resume(self, session_id, requester_id):
        with self.store.transaction(session_id) as session:
            self._owned_session(session, requester_id)
            if session.status != 'paused':
                raise StateConflictError(
                    f'Cannot resume a session that is {session.status}',
                    reason='InvalidTransition',
                )
            self._transition(session, 'started')
            # The paused question gets a full timer again
            self._arm_deadline(session, self.clock())
            current = session.current_question
            payload = {
                'sessionId': session.id,
                'status': session.status,
                'questionNumber': session.question_index(current.id) + 1 if current else None,
                'deadline': session.question_deadline,
            }
            events = [(broadcast.SESSION_RESUMED, payload)]
        logger.info(f"[resume] session={session_id}")
        self._publish(session_id, events)
        return payload

    def end(self, session_id, requester_id):
        with self.store.transaction(session_id) as session:
            self._owned_session(session, requester_id)
            if session.status not in ('started', 'paused'):
                # Also keeps a retried End from propagating stats twice
                raise StateConflictError(
                    f'Cannot end a session that is {session.status}',
                    reason='InvalidTransition',
                )
            self._transition(session, 'ended')
            session.end_time = self.clock()
            session.question_deadline = None
            winner = session.winner
            self._propagate_stats(session, winner)
            payload = payloads.session_ended(session)
            events = [(broadcast.SESSION_ENDED, payload)]
        logger.info(f"[end] session={session_id} scores={payload['scores']} winner={winner}")
        self._publish(session_id, events)
        return payload

    def _propagate_stats(self, session, winner):
        question_count = session.total_questions
        for participant in session.participants:
            user = participant.user
            if user is None:
                continue
            user.record_game(
                question_count=question_count,
                correct_answers=participant.correct_answers,
                score=participant.score,
                won=(winner != 'draw' and participant.team == winner),
            )

    # ---- participants ----

    def join(self, code, user_id):
        code = normalize_code(code)
        found = self.store.get_by_code(code)
        if found is None:
            raise NotFoundError('Session not found', reason='SessionNotFound')
        user = self.store.get_user(user_id)
        if user is None:
            raise NotFoundError('User not found', reason='UserNotFound')
        session_id = found.id
        events = []
        with self.store.transaction(session_id) as session:
            if session is None:
                raise NotFoundError('Session not found', reason='SessionNotFound')
            if session.status not in JOINABLE_STATUSES:
                raise StateConflictError(
                    f'Session is {session.status} and cannot be joined',
                    reason='SessionNotJoinable',
                )
            participant = session.participant_for(user_id)
            rejoined = participant is not None
            if participant is not None:
                if not participant.is_active:
                    if not session.allow_rejoin:
                        raise StateConflictError('Rejoining is disabled for this session', reason='RejoinNotAllowed')
                    participant.is_active = True
                    events.append((broadcast.PARTICIPANT_JOINED, {
                        'userId': user_id,
                        'team': participant.team,
                        'totalParticipants': len(session.participants),
                        'rejoined': True,
                    }))
            else:
                # Existing members, active or not, already hold a seat
                if len(session.participants) >= session.max_players:
                    raise StateConflictError('Session is full', reason='SessionFull')
                team = assign_team(session.team_counts(), session.team_assignment, self.rng)
                participant = Participant(user=user, team=team)
                session.participants.append(participant)
                self.store.flush()
                events.append((broadcast.PARTICIPANT_JOINED, {
                    'userId': user_id,
                    'team': team,
                    'totalParticipants': len(session.participants),
                }))
            result = {
                'team': participant.team,
                'rejoined': rejoined,
                'session': session.to_dict(),
            }
        logger.info(f"[join] session={session_id} user={user_id} team={result['team']} rejoined={rejoined}")
        self._publish(session_id, events)
        return result

    def leave(self, session_id, user_id):
        events = []
        with self.store.transaction(session_id) as session:
            if session is None:
                raise NotFoundError('Session not found', reason='SessionNotFound')
            if session.status == 'ended':
                raise StateConflictError('Session has ended', reason='SessionNotActive')
            participant = session.participant_for(user_id)
            if participant is None:
                raise AuthorizationError('You are not a participant in this session', reason='NotAParticipant')
            if participant.is_active:
                participant.is_active = False
                events.append((broadcast.PARTICIPANT_LEFT, {
                    'userId': user_id,
                    'team': participant.team,
                    'activeParticipants': session.active_participant_count,
                }))
            result = {'team': participant.team, 'isActive': participant.is_active}
        logger.info(f"[leave] session={session_id} user={user_id}")
        self._publish(session_id, events)
        return result
