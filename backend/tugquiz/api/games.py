from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from tugquiz.auth import roles_required
from tugquiz.services import get_services

games = Blueprint('games', __name__)


@games.route('/<int:session_id>/answer', methods=['POST'])
@login_required
def submit_answer(session_id):
    data = request.get_json(silent=True) or {}
    result = get_services().scoring.submit_answer(
        session_id,
        current_user.id,
        data.get('questionId'),
        data.get('answerIndex'),
    )
    return jsonify({'success': True, **result})


@games.route('/<int:session_id>/state', methods=['GET'])
@login_required
def get_game_state(session_id):
    state = get_services().queries.state(session_id, current_user.id)
    return jsonify({'success': True, 'gameState': state})


@games.route('/<int:session_id>/question/<int:question_id>', methods=['GET'])
@login_required
def get_question(session_id, question_id):
    question = get_services().queries.public_question(session_id, question_id)
    return jsonify({'success': True, 'question': question})


@games.route('/<int:session_id>/next-question', methods=['POST'])
@login_required
@roles_required('teacher', 'admin')
def next_question(session_id):
    advanced = get_services().lifecycle.advance_question(session_id, current_user.id)
    return jsonify({'success': True, 'message': 'Next question loaded', **advanced})
