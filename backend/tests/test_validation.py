import pytest

from conftest import question, session_payload
from tugquiz.errors import ValidationError
from tugquiz.services.games.validation import (
    normalize_code,
    parse_answer_index,
    parse_id,
    validate_session_payload,
)


def _fields(exc_info):
    return {d['field'] for d in exc_info.value.details}


def test_valid_payload_is_cleaned_with_defaults():
    cleaned = validate_session_payload(session_payload())
    assert cleaned['name'] == 'Fractions warm-up'
    assert cleaned['time_per_question'] == 20
    assert cleaned['max_players'] == 50
    assert cleaned['team_assignment'] == 'auto'
    assert cleaned['show_leaderboard'] is True
    assert cleaned['allow_rejoin'] is True
    assert [q['points'] for q in cleaned['questions']] == [1, 2, 3]
    assert cleaned['questions'][0]['difficulty'] == 'medium'


def test_requires_three_questions():
    payload = session_payload(questions=[question(), question()])
    with pytest.raises(ValidationError) as exc_info:
        validate_session_payload(payload)
    assert 'questions' in _fields(exc_info)


def test_reports_every_bad_question_field():
    payload = session_payload(questions=[
        question(text='  '),
        question(answers=['only one']),
        question(correct=4),
        question(points=9, difficulty='impossible'),
    ])
    with pytest.raises(ValidationError) as exc_info:
        validate_session_payload(payload)
    fields = _fields(exc_info)
    assert 'questions[0].text' in fields
    assert 'questions[1].answers' in fields
    assert 'questions[2].correctAnswer' in fields
    assert 'questions[3].points' in fields
    assert 'questions[3].difficulty' in fields


def test_settings_ranges():
    payload = session_payload(timePerQuestion=2, maxPlayers=101, teamAssignment='alphabetical', allowRejoin='yes')
    with pytest.raises(ValidationError) as exc_info:
        validate_session_payload(payload)
    assert _fields(exc_info) == {
        'settings.timePerQuestion',
        'settings.maxPlayers',
        'settings.teamAssignment',
        'settings.allowRejoin',
    }


def test_missing_name_and_subject():
    payload = session_payload()
    payload['name'] = ''
    del payload['subject']
    with pytest.raises(ValidationError) as exc_info:
        validate_session_payload(payload)
    assert {'name', 'subject'} <= _fields(exc_info)


def test_non_object_body():
    with pytest.raises(ValidationError):
        validate_session_payload(None)


def test_id_and_index_parsing():
    assert parse_id(5, 'questionId') == 5
    assert parse_id('12', 'questionId') == 12
    for bad in (None, 0, -3, 'abc', True, 1.5):
        with pytest.raises(ValidationError):
            parse_id(bad, 'questionId')
    assert parse_answer_index(0) == 0
    for bad in (None, -1, '1', True):
        with pytest.raises(ValidationError):
            parse_answer_index(bad)


def test_normalize_code():
    assert normalize_code(' ab12cd ') == 'AB12CD'
    with pytest.raises(ValidationError):
        normalize_code('')
