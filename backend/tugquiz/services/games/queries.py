"""Read-only views of a session: state snapshot, leaderboard and listings.

Reads take no session lock; they see the last committed state.
"""

from tugquiz.errors import AuthorizationError, NotFoundError
from tugquiz.models import TEAMS


class SessionQueries:
    def __init__(self, store):
        self.store = store

    def _session(self, session_id):
        session = self.store.get(session_id)
        if session is None:
            raise NotFoundError('Session not found', reason='SessionNotFound')
        return session

    def state(self, session_id, requester_id):
        """Full snapshot used by clients that (re)connect mid-game."""
        session = self._session(session_id)
        is_teacher = session.teacher_id == requester_id
        participant = session.participant_for(requester_id)
        current = session.current_question

        summary = session.to_dict()
        summary['currentQuestion'] = current.to_dict(include_answer=is_teacher) if current else None
        summary['questionNumber'] = session.question_index(current.id) + 1 if current else None
        summary['questionDeadline'] = session.question_deadline

        me = None
        if participant is not None:
            me = {
                'team': participant.team,
                'score': participant.score,
                'correctAnswers': participant.correct_answers,
                'isActive': participant.is_active,
                'answeredCurrent': bool(current) and self.store.has_answered(participant.id, current.id),
            }

        teams = {}
        for team in TEAMS:
            members = [p for p in session.participants if p.team == team]
            teams[team] = {
                'score': session.team_score(team),
                'participants': [
                    {
                        'userId': p.user_id,
                        'name': p.user.display_name if p.user else None,
                        'avatar': p.user.avatar if p.user else None,
                        'score': p.score,
                        'isActive': p.is_active,
                    }
                    for p in members
                ],
            }

        return {
            'session': summary,
            'participant': me,
            'isTeacher': is_teacher,
            'teams': teams,
            'history': [entry.to_dict() for entry in session.history],
        }

    def leaderboard(self, session_id, requester_id):
        session = self._session(session_id)
        if (
            not session.show_leaderboard
            and session.teacher_id != requester_id
            and session.status != 'ended'
        ):
            raise AuthorizationError('The leaderboard is hidden for this session', reason='LeaderboardHidden')
        answered = self.store.answer_counts(session.id)
        # participants are kept in join order; sorted() is stable so ties keep it
        ranked = sorted(
            (p for p in session.participants if p.is_active),
            key=lambda p: p.score,
            reverse=True,
        )
        return [
            {
                'rank': idx + 1,
                'userId': p.user_id,
                'name': p.user.display_name if p.user else None,
                'avatar': p.user.avatar if p.user else None,
                'team': p.team,
                'score': p.score,
                'correctAnswers': p.correct_answers,
                'questionsAnswered': answered.get(p.id, 0),
            }
            for idx, p in enumerate(ranked)
        ]

    def public_question(self, session_id, question_id):
        session = self._session(session_id)
        for question in session.questions:
            if question.id == question_id:
                return question.to_dict()
        raise NotFoundError('Question not found', reason='QuestionNotFound')

    def by_code(self, code):
        session = self.store.get_by_code(code)
        if session is None:
            raise NotFoundError('Session not found', reason='SessionNotFound')
        data = session.to_dict(include_questions=session.status != 'draft')
        data['teacher'] = session.teacher.to_dict() if session.teacher else None
        data['participants'] = [p.to_dict() for p in session.participants]
        return data

    def list_for_teacher(self, teacher_id, status=None, page=1, limit=10):
        sessions, total = self.store.list_for_teacher(teacher_id, status=status, page=page, limit=limit)
        return {
            'sessions': [s.to_dict() for s in sessions],
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'pages': (total + limit - 1) // limit if limit else 0,
            },
        }
