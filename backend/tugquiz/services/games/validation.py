"""Input validation for session creation and game requests.

Each validator either returns cleaned values or raises ``ValidationError``
carrying one ``{field, message}`` item per problem found, so a client can
fix everything in one round trip.
"""

from tugquiz.errors import ValidationError
from tugquiz.models import DIFFICULTIES, TEAM_ASSIGNMENT_MODES


def _err(field, message):
    return {'field': field, 'message': message}


def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


def _clean_str(value):
    return value.strip() if isinstance(value, str) else ''


def _int_setting(source, key, low, high, default, errors, prefix=''):
    value = source.get(key)
    if value is None:
        return default
    if not _is_int(value) or not low <= value <= high:
        errors.append(_err(prefix + key, f'Must be an integer between {low} and {high}'))
        return default
    return value


def _bool_setting(source, key, default, errors, prefix=''):
    value = source.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        errors.append(_err(prefix + key, 'Must be a boolean'))
        return default
    return value


def validate_question(data, field, errors):
    if not isinstance(data, dict):
        errors.append(_err(field, 'Question must be an object'))
        return None
    text = _clean_str(data.get('text'))
    if not text:
        errors.append(_err(f'{field}.text', 'Question text is required'))

    answers = data.get('answers')
    options = []
    if not isinstance(answers, list) or not 2 <= len(answers) <= 4:
        errors.append(_err(f'{field}.answers', 'Between 2 and 4 answers are required'))
    else:
        options = [_clean_str(a) for a in answers]
        if not all(options):
            errors.append(_err(f'{field}.answers', 'Answers must be non-empty strings'))

    correct = data.get('correctAnswer')
    if not _is_int(correct) or not options or not 0 <= correct < len(options):
        errors.append(_err(f'{field}.correctAnswer', 'Must index one of the answers'))

    points = _int_setting(data, 'points', 1, 5, 1, errors, prefix=f'{field}.')

    difficulty = data.get('difficulty') or 'medium'
    if difficulty not in DIFFICULTIES:
        errors.append(_err(f'{field}.difficulty', f'Must be one of {", ".join(DIFFICULTIES)}'))

    return {
        'text': text,
        'answers': options,
        'correct_answer': correct,
        'explanation': _clean_str(data.get('explanation')) or None,
        'difficulty': difficulty,
        'points': points,
    }


def validate_session_payload(data, min_questions=3):
    """Validate a create-session body and return model-ready fields."""
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    errors = []

    name = _clean_str(data.get('name'))
    if not name:
        errors.append(_err('name', 'Name is required'))
    subject = _clean_str(data.get('subject'))
    if not subject:
        errors.append(_err('subject', 'Subject is required'))

    grade = data.get('grade')
    if grade is not None and (not _is_int(grade) or not 1 <= grade <= 12):
        errors.append(_err('grade', 'Must be an integer between 1 and 12'))
        grade = None

    settings = data.get('settings') or {}
    if not isinstance(settings, dict):
        errors.append(_err('settings', 'Settings must be an object'))
        settings = {}
    time_per_question = _int_setting(settings, 'timePerQuestion', 5, 60, 20, errors, prefix='settings.')
    max_players = _int_setting(settings, 'maxPlayers', 2, 100, 50, errors, prefix='settings.')
    team_assignment = settings.get('teamAssignment') or 'auto'
    if team_assignment not in TEAM_ASSIGNMENT_MODES:
        errors.append(_err('settings.teamAssignment', f'Must be one of {", ".join(TEAM_ASSIGNMENT_MODES)}'))
    show_leaderboard = _bool_setting(settings, 'showLeaderboard', True, errors, prefix='settings.')
    allow_rejoin = _bool_setting(settings, 'allowRejoin', True, errors, prefix='settings.')

    questions = data.get('questions')
    cleaned_questions = []
    if not isinstance(questions, list) or len(questions) < min_questions:
        errors.append(_err('questions', f'At least {min_questions} questions are required'))
    else:
        for idx, question in enumerate(questions):
            cleaned_questions.append(validate_question(question, f'questions[{idx}]', errors))

    if errors:
        raise ValidationError('Invalid session payload', details=errors)

    return {
        'name': name,
        'description': _clean_str(data.get('description')) or None,
        'subject': subject,
        'grade': grade,
        'time_per_question': time_per_question,
        'max_players': max_players,
        'team_assignment': team_assignment,
        'show_leaderboard': show_leaderboard,
        'allow_rejoin': allow_rejoin,
        'questions': cleaned_questions,
    }


def parse_id(value, field):
    """Accept an integer id, or its decimal string form."""
    if _is_int(value) and value > 0:
        return value
    if isinstance(value, str) and value.strip().isdigit() and int(value) > 0:
        return int(value)
    raise ValidationError(f'{field} must be a positive integer id', details=[_err(field, 'Invalid id')])


def parse_answer_index(value):
    if not _is_int(value) or value < 0:
        raise ValidationError(
            'answerIndex must be a non-negative integer',
            details=[_err('answerIndex', 'Invalid answer index')],
        )
    return value


def normalize_code(value):
    code = _clean_str(value).upper()
    if not code:
        raise ValidationError('Session code is required', details=[_err('code', 'Code is required')])
    return code
