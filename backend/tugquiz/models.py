from tugquiz import db, bcrypt
from flask_login import UserMixin
from datetime import datetime, timezone
import json
import string
import random

ROLES = ('student', 'teacher', 'admin')
TEAMS = ('red', 'blue')
SESSION_STATUSES = ('draft', 'waiting', 'started', 'paused', 'ended')
TEAM_ASSIGNMENT_MODES = ('auto', 'random', 'manual')
DIFFICULTIES = ('easy', 'medium', 'hard')


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat(value):
    return value.isoformat() + 'Z' if value else None


def epoch(value):
    return value.replace(tzinfo=timezone.utc).timestamp() if value else None


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    name = db.Column(db.String(80), nullable=False)
    role = db.Column(db.String(16), nullable=False, default='student')
    password_hash = db.Column(db.String(128), nullable=True)
    avatar = db.Column(db.String(256), nullable=True)
    # Aggregate stats, only touched when a session ends
    total_games = db.Column(db.Integer, nullable=False, default=0)
    total_questions = db.Column(db.Integer, nullable=False, default=0)
    correct_answers = db.Column(db.Integer, nullable=False, default=0)
    average_score = db.Column(db.Float, nullable=False, default=0.0)
    wins = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_login = db.Column(db.DateTime, nullable=True)

    def __init__(self, **kwargs):
        kwargs.setdefault('role', 'student')
        for column in ('total_games', 'total_questions', 'correct_answers', 'wins'):
            kwargs.setdefault(column, 0)
        kwargs.setdefault('average_score', 0.0)
        super(User, self).__init__(**kwargs)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        if not self.password_hash:
            return False
        return bcrypt.check_password_hash(self.password_hash, password)

    @property
    def display_name(self):
        return self.name or self.email.split('@')[0]

    def record_game(self, question_count, correct_answers, score, won):
        """Fold one finished session into the running stats."""
        self.total_games += 1
        self.total_questions += question_count
        self.correct_answers += correct_answers
        # Running mean over every game played so far
        self.average_score = (
            self.average_score * (self.total_games - 1) + score
        ) / self.total_games
        if won:
            self.wins += 1

    def stats_dict(self):
        return {
            'totalGames': self.total_games,
            'totalQuestions': self.total_questions,
            'correctAnswers': self.correct_answers,
            'averageScore': self.average_score,
            'wins': self.wins,
        }

    def to_dict(self, include_stats=False):
        data = {
            'id': self.id,
            'email': self.email,
            'name': self.display_name,
            'role': self.role,
            'avatar': self.avatar,
        }
        if include_stats:
            data['stats'] = self.stats_dict()
        return data


def generate_session_code(exists, length=6, rng=random):
    """Generate a join code that ``exists`` reports as unused."""
    alphabet = string.ascii_uppercase + string.digits
    while True:
        code = ''.join(rng.choices(alphabet, k=length))
        if not exists(code):
            return code


class QuizSession(db.Model):
    __tablename__ = 'quiz_session'
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(12), unique=True, nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)
    subject = db.Column(db.String(64), nullable=False)
    grade = db.Column(db.Integer, nullable=True)
    teacher_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default='draft', index=True)  # draft, waiting, started, paused, ended
    # Settings
    time_per_question = db.Column(db.Integer, nullable=False, default=20)
    max_players = db.Column(db.Integer, nullable=False, default=50)
    team_assignment = db.Column(db.String(16), nullable=False, default='auto')
    show_leaderboard = db.Column(db.Boolean, nullable=False, default=True)
    allow_rejoin = db.Column(db.Boolean, nullable=False, default=True)
    current_question_id = db.Column(
        db.Integer,
        db.ForeignKey('question.id', name='fk_quiz_session_current_question_id', use_alter=True),
        nullable=True,
    )
    # Team aggregates, maintained incrementally alongside participant scores
    red_score = db.Column(db.Integer, nullable=False, default=0)
    blue_score = db.Column(db.Integer, nullable=False, default=0)
    start_time = db.Column(db.DateTime, nullable=True)
    end_time = db.Column(db.DateTime, nullable=True)
    # Epoch seconds; clients render countdowns from it
    question_deadline = db.Column(db.Float, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version}

    teacher = db.relationship('User')
    questions = db.relationship(
        'Question',
        foreign_keys='Question.session_id',
        back_populates='session',
        order_by='Question.order',
        cascade='all, delete-orphan',
    )
    participants = db.relationship(
        'Participant',
        back_populates='session',
        order_by='Participant.id',
        cascade='all, delete-orphan',
    )
    history = db.relationship(
        'HistoryEntry',
        back_populates='session',
        order_by='HistoryEntry.id',
        cascade='all, delete-orphan',
    )

    def __init__(self, **kwargs):
        kwargs.setdefault('status', 'draft')
        kwargs.setdefault('red_score', 0)
        kwargs.setdefault('blue_score', 0)
        super(QuizSession, self).__init__(**kwargs)

    @property
    def current_question(self):
        if self.current_question_id is None:
            return None
        for question in self.questions:
            if question.id == self.current_question_id:
                return question
        return None

    @property
    def total_questions(self):
        return len(self.questions)

    def question_index(self, question_id):
        for idx, question in enumerate(self.questions):
            if question.id == question_id:
                return idx
        return -1

    @property
    def scores(self):
        return {'red': self.red_score, 'blue': self.blue_score}

    def add_team_points(self, team, points):
        if team == 'red':
            self.red_score += points
        else:
            self.blue_score += points

    def team_score(self, team):
        return self.red_score if team == 'red' else self.blue_score

    @property
    def winner(self):
        if self.red_score > self.blue_score:
            return 'red'
        if self.blue_score > self.red_score:
            return 'blue'
        return 'draw'

    def participant_for(self, user_id):
        for participant in self.participants:
            if participant.user_id == user_id:
                return participant
        return None

    def team_counts(self):
        counts = {team: 0 for team in TEAMS}
        for participant in self.participants:
            counts[participant.team] += 1
        return counts

    @property
    def active_participant_count(self):
        return sum(1 for p in self.participants if p.is_active)

    def history_for(self, question_id):
        for entry in self.history:
            if entry.question_id == question_id:
                return entry
        return None

    def settings_dict(self):
        return {
            'timePerQuestion': self.time_per_question,
            'maxPlayers': self.max_players,
            'teamAssignment': self.team_assignment,
            'showLeaderboard': self.show_leaderboard,
            'allowRejoin': self.allow_rejoin,
        }

    def to_dict(self, include_questions=False):
        data = {
            'id': self.id,
            'code': self.code,
            'name': self.name,
            'description': self.description,
            'subject': self.subject,
            'grade': self.grade,
            'teacherId': self.teacher_id,
            'status': self.status,
            'settings': self.settings_dict(),
            'scores': self.scores,
            'totalQuestions': self.total_questions,
            'currentQuestionId': self.current_question_id,
            'totalParticipants': len(self.participants),
            'activeParticipants': self.active_participant_count,
            'startTime': isoformat(self.start_time),
            'endTime': isoformat(self.end_time),
            'createdAt': isoformat(self.created_at),
        }
        if include_questions:
            data['questions'] = [q.to_dict() for q in self.questions]
        return data


class Question(db.Model):
    __tablename__ = 'question'
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('quiz_session.id'), nullable=False, index=True)
    text = db.Column(db.Text, nullable=False)
    answers = db.Column(db.Text, nullable=False)  # JSON-encoded list of 2-4 options
    correct_answer = db.Column(db.Integer, nullable=False)
    explanation = db.Column(db.Text, nullable=True)
    difficulty = db.Column(db.String(16), nullable=False, default='medium')
    points = db.Column(db.Integer, nullable=False, default=1)
    order = db.Column(db.Integer, nullable=False, default=0)

    session = db.relationship('QuizSession', foreign_keys=[session_id], back_populates='questions')

    @property
    def options(self):
        return json.loads(self.answers) if self.answers else []

    @options.setter
    def options(self, value):
        self.answers = json.dumps(list(value))

    def is_correct(self, answer_index):
        return answer_index == self.correct_answer

    def to_dict(self, include_answer=False):
        data = {
            'id': self.id,
            'text': self.text,
            'answers': self.options,
            'points': self.points,
            'difficulty': self.difficulty,
            'order': self.order,
        }
        if include_answer:
            data['correctAnswer'] = self.correct_answer
            data['explanation'] = self.explanation
        return data


class Participant(db.Model):
    __tablename__ = 'participant'
    __table_args__ = (db.UniqueConstraint('session_id', 'user_id', name='uq_participant_session_user'),)
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('quiz_session.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    team = db.Column(db.String(8), nullable=False)  # red, blue
    joined_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    score = db.Column(db.Integer, nullable=False, default=0)
    correct_answers = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    session = db.relationship('QuizSession', back_populates='participants')
    user = db.relationship('User')

    def __init__(self, **kwargs):
        kwargs.setdefault('score', 0)
        kwargs.setdefault('correct_answers', 0)
        kwargs.setdefault('is_active', True)
        kwargs.setdefault('joined_at', utcnow())
        super(Participant, self).__init__(**kwargs)

    def to_dict(self):
        return {
            'userId': self.user_id,
            'name': self.user.display_name if self.user else None,
            'avatar': self.user.avatar if self.user else None,
            'team': self.team,
            'score': self.score,
            'correctAnswers': self.correct_answers,
            'isActive': self.is_active,
            'joinedAt': isoformat(self.joined_at),
        }


class HistoryEntry(db.Model):
    """Per-question answer tally for each team."""
    __tablename__ = 'game_history'
    __table_args__ = (db.UniqueConstraint('session_id', 'question_id', name='uq_game_history_session_question'),)
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('quiz_session.id'), nullable=False, index=True)
    question_id = db.Column(db.Integer, db.ForeignKey('question.id'), nullable=False)
    timestamp = db.Column(db.DateTime, nullable=False, default=utcnow)
    red_correct = db.Column(db.Integer, nullable=False, default=0)
    red_total = db.Column(db.Integer, nullable=False, default=0)
    blue_correct = db.Column(db.Integer, nullable=False, default=0)
    blue_total = db.Column(db.Integer, nullable=False, default=0)

    session = db.relationship('QuizSession', back_populates='history')

    def __init__(self, **kwargs):
        for column in ('red_correct', 'red_total', 'blue_correct', 'blue_total'):
            kwargs.setdefault(column, 0)
        kwargs.setdefault('timestamp', utcnow())
        super(HistoryEntry, self).__init__(**kwargs)

    def total_for(self, team):
        return self.red_total if team == 'red' else self.blue_total

    def record(self, team, is_correct):
        if team == 'red':
            self.red_total += 1
            if is_correct:
                self.red_correct += 1
        else:
            self.blue_total += 1
            if is_correct:
                self.blue_correct += 1

    def to_dict(self):
        return {
            'questionId': self.question_id,
            'timestamp': isoformat(self.timestamp),
            'redAnswers': {'correct': self.red_correct, 'total': self.red_total},
            'blueAnswers': {'correct': self.blue_correct, 'total': self.blue_total},
        }


class Answer(db.Model):
    """One accepted submission; a participant has at most one per question."""
    __tablename__ = 'answer'
    __table_args__ = (db.UniqueConstraint('participant_id', 'question_id', name='uq_answer_participant_question'),)
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('quiz_session.id'), nullable=False, index=True)
    question_id = db.Column(db.Integer, db.ForeignKey('question.id'), nullable=False)
    participant_id = db.Column(db.Integer, db.ForeignKey('participant.id'), nullable=False)
    answer_index = db.Column(db.Integer, nullable=False)
    is_correct = db.Column(db.Boolean, nullable=False)
    points = db.Column(db.Integer, nullable=False, default=0)
    submitted_at = db.Column(db.DateTime, nullable=False, default=utcnow)
