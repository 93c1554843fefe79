import gc
import threading
import time

import pytest
from sqlalchemy import update

from conftest import session_payload
from tugquiz import db
from tugquiz.errors import StateConflictError
from tugquiz.models import QuizSession
from tugquiz.services.store import SessionLocks


def test_locks_are_per_session():
    locks = SessionLocks()
    first, second = locks.get(1), locks.get(2)
    assert locks.get(1) is first
    assert first is not second
    assert len(locks) == 2


def test_unused_locks_are_released():
    locks = SessionLocks()
    held = locks.get(1)
    for session_id in range(2, 50):
        with locks.get(session_id):
            pass
    gc.collect()
    assert len(locks) == 1
    assert locks.get(1) is held


def test_transactions_do_not_grow_the_lock_registry(services, make_user):
    teacher = make_user('teacher')
    session = services.lifecycle.create(teacher.id, session_payload())
    services.lifecycle.open(session.id, teacher.id)
    services.lifecycle.start(session.id, teacher.id)
    services.lifecycle.end(session.id, teacher.id)
    gc.collect()
    assert len(services.store.locks) == 0


def test_lock_serializes_read_modify_write():
    locks = SessionLocks()
    state = {'value': 0}

    def bump():
        for _ in range(50):
            with locks.get(7):
                current = state['value']
                time.sleep(0)
                state['value'] = current + 1

    workers = [threading.Thread(target=bump) for _ in range(4)]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join()
    assert state['value'] == 200


def test_transaction_rolls_back_on_error(services, make_user):
    teacher = make_user('teacher')
    session = services.lifecycle.create(teacher.id, session_payload())

    with pytest.raises(RuntimeError):
        with services.store.transaction(session.id) as locked:
            locked.red_score = 99
            locked.status = 'started'
            raise RuntimeError('boom')

    stored = db.session.get(QuizSession, session.id)
    assert stored.red_score == 0
    assert stored.status == 'draft'


def test_transaction_bumps_version(services, make_user):
    teacher = make_user('teacher')
    session = services.lifecycle.create(teacher.id, session_payload())
    before = db.session.get(QuizSession, session.id).version

    services.lifecycle.open(session.id, teacher.id)

    assert db.session.get(QuizSession, session.id).version == before + 1


def test_concurrent_writer_is_detected(services, make_user):
    teacher = make_user('teacher')
    session = services.lifecycle.create(teacher.id, session_payload())

    with pytest.raises(StateConflictError) as exc_info:
        with services.store.transaction(session.id) as locked:
            # Simulate another process committing in between read and write
            db.session.execute(
                update(QuizSession)
                .where(QuizSession.id == session.id)
                .values(version=QuizSession.version + 1)
                .execution_options(synchronize_session=False)
            )
            locked.blue_score = 5
    assert exc_info.value.reason == 'ConcurrentModification'
    assert db.session.get(QuizSession, session.id).blue_score == 0


def test_missing_session_yields_none(services):
    with services.store.transaction(424242) as locked:
        assert locked is None
