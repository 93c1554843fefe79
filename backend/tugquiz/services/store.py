"""Session store: the durable record behind every game operation.

The store is handed to the game services explicitly so they can run
against any SQLAlchemy session (the Flask-SQLAlchemy scoped session in the
app, the same one in tests). Writers go through ``transaction()`` which
serializes mutations per session and commits or rolls back as one unit.
"""

import logging
import threading
import weakref
from contextlib import contextmanager

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from tugquiz.errors import StateConflictError, StoreUnavailableError
from tugquiz.models import Answer, QuizSession, User, utcnow

logger = logging.getLogger(__name__)


class _SessionLock:
    """A plain mutex that can be weakly referenced."""

    def __init__(self):
        self._lock = threading.Lock()

    def __enter__(self):
        self._lock.acquire()
        return self

    def __exit__(self, *exc):
        self._lock.release()


class SessionLocks:
    """One mutex per session id; different sessions never contend.

    Entries live only while some writer holds a reference to the lock, so
    idle and ended sessions do not accumulate.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = weakref.WeakValueDictionary()

    def get(self, session_id):
        with self._guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = _SessionLock()
                self._locks[session_id] = lock
            return lock

    def __len__(self):
        return len(self._locks)


class SessionStore:
    def __init__(self, db_session, locks=None):
        self.db_session = db_session
        self.locks = locks or SessionLocks()

    # ---- reads ----

    def get(self, session_id):
        return self.db_session.get(QuizSession, session_id)

    def get_by_code(self, code):
        return self.db_session.execute(
            select(QuizSession).filter_by(code=code)
        ).scalar_one_or_none()

    def code_exists(self, code):
        return self.db_session.execute(
            select(QuizSession.id).filter_by(code=code)
        ).first() is not None

    def get_user(self, user_id):
        return self.db_session.get(User, user_id)

    def has_answered(self, participant_id, question_id):
        return self.db_session.execute(
            select(Answer.id).filter_by(participant_id=participant_id, question_id=question_id)
        ).first() is not None

    def answer_counts(self, session_id):
        """Map participant id -> number of accepted answers in the session."""
        rows = self.db_session.execute(
            select(Answer.participant_id, func.count(Answer.id))
            .filter_by(session_id=session_id)
            .group_by(Answer.participant_id)
        ).all()
        return {participant_id: count for participant_id, count in rows}

    def list_for_teacher(self, teacher_id, status=None, page=1, limit=10):
        query = select(QuizSession).filter_by(teacher_id=teacher_id)
        count_query = select(func.count(QuizSession.id)).filter_by(teacher_id=teacher_id)
        if status:
            query = query.filter_by(status=status)
            count_query = count_query.filter_by(status=status)
        total = self.db_session.execute(count_query).scalar_one()
        sessions = self.db_session.execute(
            query.order_by(QuizSession.created_at.desc(), QuizSession.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()
        return sessions, total

    # ---- writes ----

    def add(self, obj):
        self.db_session.add(obj)

    def flush(self):
        self.db_session.flush()

    def save_new(self, obj):
        """Insert a new aggregate in its own commit."""
        try:
            self.db_session.add(obj)
            self.db_session.commit()
        except OperationalError as exc:
            self.db_session.rollback()
            raise StoreUnavailableError('Session store unavailable') from exc
        except Exception:
            self.db_session.rollback()
            raise
        return obj

    @contextmanager
    def transaction(self, session_id):
        """Yield the locked session row (or None) and commit on clean exit.

        Only one writer per session id runs at a time in this process; the
        row is also read FOR UPDATE and its version column is bumped, so a
        writer in another process that raced us fails on commit instead of
        silently overwriting the aggregates.
        """
        with self.locks.get(session_id):
            # Drop anything cached before the lock was taken
            self.db_session.expire_all()
            try:
                session = self.db_session.execute(
                    select(QuizSession)
                    .filter_by(id=session_id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                ).scalar_one_or_none()
                yield session
                if session is not None:
                    session.updated_at = utcnow()
                self.db_session.commit()
            except (StaleDataError, IntegrityError) as exc:
                self.db_session.rollback()
                logger.warning(f"[store-conflict] session={session_id} {exc.__class__.__name__}")
                raise StateConflictError(
                    'Session was modified concurrently, retry the request',
                    reason='ConcurrentModification',
                ) from exc
            except OperationalError as exc:
                self.db_session.rollback()
                logger.error(f"[store-unavailable] session={session_id} {exc}")
                raise StoreUnavailableError('Session store unavailable') from exc
            except Exception:
                self.db_session.rollback()
                raise
