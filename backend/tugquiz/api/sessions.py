from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from tugquiz.auth import roles_required
from tugquiz.errors import ValidationError
from tugquiz.models import SESSION_STATUSES
from tugquiz.services import get_services
from tugquiz.services.games.validation import normalize_code

sessions = Blueprint('sessions', __name__)

TEACHER_ROLES = ('teacher', 'admin')


def _int_arg(name, default, low, high):
    raw = request.args.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f'{name} must be an integer')
    return max(low, min(high, value))


@sessions.route('', methods=['POST'])
@login_required
@roles_required(*TEACHER_ROLES)
def create_session():
    data = request.get_json(silent=True)
    session = get_services().lifecycle.create(current_user.id, data)
    return jsonify({
        'success': True,
        'code': session.code,
        'sessionId': session.id,
        'session': session.to_dict(),
    }), 201


@sessions.route('', methods=['GET'])
@login_required
@roles_required(*TEACHER_ROLES)
def list_sessions():
    status = request.args.get('status') or None
    if status is not None and status not in SESSION_STATUSES:
        raise ValidationError(f'status must be one of {", ".join(SESSION_STATUSES)}')
    page = _int_arg('page', 1, 1, 10000)
    limit = _int_arg('limit', 10, 1, 100)
    listing = get_services().queries.list_for_teacher(current_user.id, status=status, page=page, limit=limit)
    return jsonify({'success': True, **listing})


@sessions.route('/code/<string:code>', methods=['GET'])
@login_required
def get_session_by_code(code):
    session = get_services().queries.by_code(normalize_code(code))
    return jsonify({'success': True, 'session': session})


@sessions.route('/join', methods=['POST'])
@login_required
def join_session():
    data = request.get_json(silent=True) or {}
    joined = get_services().lifecycle.join(data.get('code'), current_user.id)
    message = 'Rejoined session' if joined['rejoined'] else 'Joined session successfully'
    return jsonify({'success': True, 'message': message, **joined})


@sessions.route('/<int:session_id>/leave', methods=['POST'])
@login_required
def leave_session(session_id):
    left = get_services().lifecycle.leave(session_id, current_user.id)
    return jsonify({'success': True, **left})


@sessions.route('/<int:session_id>/open', methods=['POST'])
@login_required
@roles_required(*TEACHER_ROLES)
def open_session(session_id):
    session = get_services().lifecycle.open(session_id, current_user.id)
    return jsonify({'success': True, 'session': session})


@sessions.route('/<int:session_id>/start', methods=['POST'])
@login_required
@roles_required(*TEACHER_ROLES)
def start_session(session_id):
    started = get_services().lifecycle.start(session_id, current_user.id)
    return jsonify({'success': True, 'message': 'Session started successfully', **started})


@sessions.route('/<int:session_id>/pause', methods=['POST'])
@login_required
@roles_required(*TEACHER_ROLES)
def pause_session(session_id):
    paused = get_services().lifecycle.pause(session_id, current_user.id)
    return jsonify({'success': True, **paused})


@sessions.route('/<int:session_id>/resume', methods=['POST'])
@login_required
@roles_required(*TEACHER_ROLES)
def resume_session(session_id):
    resumed = get_services().lifecycle.resume(session_id, current_user.id)
    return jsonify({'success': True, **resumed})


@sessions.route('/<int:session_id>/end', methods=['POST'])
@login_required
@roles_required(*TEACHER_ROLES)
def end_session(session_id):
    ended = get_services().lifecycle.end(session_id, current_user.id)
    return jsonify({'success': True, 'message': 'Session ended successfully', **ended})


@sessions.route('/<int:session_id>/leaderboard', methods=['GET'])
@login_required
def get_leaderboard(session_id):
    leaderboard = get_services().queries.leaderboard(session_id, current_user.id)
    return jsonify({'success': True, 'leaderboard': leaderboard})
