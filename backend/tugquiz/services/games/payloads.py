"""Wire payloads for broadcast events.

Field names here are part of the client contract.
"""

from tugquiz.models import TEAMS, isoformat


def question_update(session, question):
    return {
        'question': question.to_dict(),
        'questionNumber': session.question_index(question.id) + 1,
        'totalQuestions': session.total_questions,
        'timePerQuestion': session.time_per_question,
        'deadline': session.question_deadline,
    }


def score_update(session):
    counts = session.team_counts()
    return {
        'scores': session.scores,
        'teamScores': {
            team: {'score': session.team_score(team), 'participants': counts[team]}
            for team in TEAMS
        },
    }


def session_started(session):
    return {
        'sessionId': session.id,
        'startTime': isoformat(session.start_time),
        'totalQuestions': session.total_questions,
    }


def session_ended(session):
    return {
        'sessionId': session.id,
        'endTime': isoformat(session.end_time),
        'scores': session.scores,
        'winner': session.winner,
    }
