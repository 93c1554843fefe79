from flask import Blueprint, request, jsonify, current_app
from flask_login import login_user, logout_user, login_required, current_user
from tugquiz import db
from tugquiz.errors import StateConflictError, ValidationError
from tugquiz.models import User, utcnow

main = Blueprint('main', __name__)

REGISTERABLE_ROLES = ('student', 'teacher')


@main.route('/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    name = (data.get('name') or '').strip()
    role = data.get('role') or 'student'

    errors = []
    if '@' not in email:
        errors.append({'field': 'email', 'message': 'A valid email is required'})
    if len(password) < 6:
        errors.append({'field': 'password', 'message': 'Password must be at least 6 characters'})
    if not name:
        errors.append({'field': 'name', 'message': 'Name is required'})
    if role not in REGISTERABLE_ROLES:
        errors.append({'field': 'role', 'message': 'Role must be student or teacher'})
    if errors:
        raise ValidationError('Invalid registration', details=errors)

    if User.query.filter_by(email=email).first():
        raise StateConflictError('Email already registered', reason='EmailTaken')

    user = User(email=email, name=name, role=role)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    login_user(user)
    current_app.logger.info(f"[register] user={user.id} role={role}")
    return jsonify({'success': True, 'user': user.to_dict()}), 201


@main.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    user = User.query.filter_by(email=email).first()
    if user and user.check_password(data.get('password') or ''):
        user.last_login = utcnow()
        db.session.commit()
        login_user(user, remember=True)
        return jsonify({'success': True, 'user': user.to_dict()})
    return jsonify({'success': False, 'error': 'InvalidCredentials', 'message': 'Invalid email or password'}), 401


@main.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify({'success': True, 'user': current_user.to_dict(include_stats=True)})


@main.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True})
