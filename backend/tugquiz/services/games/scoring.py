import logging

from tugquiz.errors import AuthorizationError, NotFoundError, StateConflictError, ValidationError
from tugquiz.models import Answer, HistoryEntry, epoch, utcnow
from tugquiz.services import broadcast
from . import payloads
from .rules import GameRules
from .validation import parse_answer_index, parse_id

logger = logging.getLogger(__name__)


class AnswerAdjudicator:
    """Accepts, scores and records answers to the current question.

    All checks run against the locked session first; the participant,
    team aggregate and history counters then change in one commit, so the
    team scores always equal the sum of their members' scores.
    """

    def __init__(self, store, broadcaster, rules=None, clock=utcnow):
        self.store = store
        self.broadcaster = broadcaster
        self.rules = rules or GameRules()
        self.clock = clock

    def _deadline_passed(self, session):
        if session.question_deadline is None:
            return False
        return epoch(self.clock()) > session.question_deadline + self.rules.deadline_grace_sec

    def _already_answered(self, participant, question, entry):
        if self.rules.answer_uniqueness == 'team':
            # Legacy rule: the first answer from a team closes the question for that team
            return entry is not None and entry.total_for(participant.team) > 0
        return self.store.has_answered(participant.id, question.id)

    def submit_answer(self, session_id, user_id, question_id, answer_index):
        question_id = parse_id(question_id, 'questionId')
        answer_index = parse_answer_index(answer_index)

        with self.store.transaction(session_id) as session:
            if session is None:
                raise NotFoundError('Session not found', reason='SessionNotFound')
            if session.status != 'started':
                raise StateConflictError(
                    f'Session is {session.status}, answers are not accepted',
                    reason='SessionNotActive',
                )
            participant = session.participant_for(user_id)
            if participant is None or not participant.is_active:
                raise AuthorizationError('You are not a participant in this session', reason='NotAParticipant')
            question = session.current_question
            if question is None or question.id != question_id:
                raise StateConflictError('This question is not current', reason='NotCurrentQuestion')
            if self.rules.enforce_deadline and self._deadline_passed(session):
                raise StateConflictError('Time is up for this question', reason='QuestionClosed')
            if answer_index >= len(question.options):
                raise ValidationError(
                    'answerIndex is out of range for this question',
                    details=[{'field': 'answerIndex', 'message': 'Invalid answer index'}],
                )
            entry = session.history_for(question.id)
            if self._already_answered(participant, question, entry):
                raise StateConflictError('Already answered this question', reason='AlreadyAnswered')

            is_correct = question.is_correct(answer_index)
            points = question.points if is_correct else 0

            participant.score += points
            if is_correct:
                participant.correct_answers += 1
            session.add_team_points(participant.team, points)
            if entry is None:
                entry = HistoryEntry(question_id=question.id)
                session.history.append(entry)
            entry.record(participant.team, is_correct)
            self.store.add(Answer(
                session_id=session.id,
                question_id=question.id,
                participant_id=participant.id,
                answer_index=answer_index,
                is_correct=is_correct,
                points=points,
                submitted_at=self.clock(),
            ))

            events = [
                (broadcast.SCORE_UPDATE, payloads.score_update(session)),
                (broadcast.ANSWER_RESULT, {
                    'userId': user_id,
                    'questionId': question.id,
                    'isCorrect': is_correct,
                    'points': points,
                    'team': participant.team,
                }),
            ]
            result = {
                'isCorrect': is_correct,
                'points': points,
                'team': participant.team,
                'teamScore': session.team_score(participant.team),
                'participantScore': participant.score,
            }
        logger.info(
            f"[answer] session={session_id} user={user_id} question={question_id} "
            f"correct={is_correct} points={points}"
        )
        self.broadcaster.publish(session_id, events)
        return result
