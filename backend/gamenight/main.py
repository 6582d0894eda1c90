from flask import Blueprint, request, jsonify, current_app
from flask_login import login_user, logout_user, login_required, current_user
from gamenight import db
from gamenight.errors import ValidationError
from gamenight.models import User

main = Blueprint('main', __name__)


def _preflight():
    return jsonify({'status': 'ok'}), 200


def _credentials():
    data = request.get_json(silent=True) or {}
    return (data.get('username') or '').strip(), data.get('password') or ''


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the game night server!'})


@main.route('/login', methods=['POST', 'OPTIONS'])
def login():
    if request.method == 'OPTIONS':
        return _preflight()
    username, password = _credentials()
    user = User.query.filter_by(username=username).first()
    if user and user.check_password(password):
        login_user(user, remember=True)
        current_app.logger.info(f"[auth] login user={user.id}")
        return jsonify({"success": True, "user": user.to_dict()})
    current_app.logger.info(f"[auth] login rejected username={username!r}")
    return jsonify({"success": False, "message": "Invalid credentials"}), 401


@main.route('/register', methods=['POST', 'OPTIONS'])
def register():
    """Create a host account and sign it in."""
    if request.method == 'OPTIONS':
        return _preflight()
    username, password = _credentials()
    if not username or not password:
        raise ValidationError('Username and password required')
    if User.query.filter_by(username=username).first():
        raise ValidationError('Username already exists')

    host_user = User(username=username)
    host_user.set_password(password)
    db.session.add(host_user)
    db.session.commit()
    login_user(host_user)
    current_app.logger.info(f"[auth] register user={host_user.id}")
    return jsonify({"success": True, "user": host_user.to_dict()}), 201


@main.route('/check_login', methods=['GET', 'OPTIONS'])
def check_login():
    if request.method == 'OPTIONS':
        return _preflight()

    @login_required
    def protected_check():
        return jsonify({"success": True, "user": current_user.to_dict()})

    return protected_check()


@main.route('/logout', methods=['POST', 'OPTIONS'])
@login_required
def logout():
    logout_user()
    return jsonify({"success": True})
