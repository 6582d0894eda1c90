from gamenight import db, bcrypt
from flask_login import UserMixin
from datetime import datetime, timezone
import re
import random
import string


def _utcnow():
    return datetime.now(timezone.utc)


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
        }


class Bar(db.Model):
    __tablename__ = 'bar'
    id = db.Column(db.Integer, primary_key=True)
    owner_user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    def to_dict(self):
        return {'id': self.id, 'name': self.name}


def normalize_game_code(value):
    """Upper-case and strip everything but A-Z0-9."""
    return re.sub(r'[^A-Z0-9]', '', (value or '').strip().upper())


def generate_game_code(length=4):
    """Generate a unique, short join code."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if not GameNight.query.filter_by(code=code).first():
            return code


class GameNight(db.Model):
    __tablename__ = 'game_night'
    id = db.Column(db.Integer, primary_key=True)
    bar_id = db.Column(db.Integer, db.ForeignKey('bar.id'), nullable=False)
    owner_user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    code = db.Column(db.String(16), unique=True, nullable=False, index=True)
    title = db.Column(db.String(128), nullable=True)
    sport = db.Column(db.String(16), nullable=False, default='NBA')
    sportsdataio_game_id = db.Column(db.Integer, nullable=True)
    status = db.Column(db.String(16), nullable=False, default='active')  # active, ended
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    ended_at = db.Column(db.DateTime(timezone=True), nullable=True)

    bar = db.relationship('Bar')
    patrons = db.relationship('Patron', back_populates='game_night', lazy='dynamic')
    prompts = db.relationship('Prompt', back_populates='game_night', lazy='dynamic')

    def __init__(self, **kwargs):
        super(GameNight, self).__init__(**kwargs)
        if not self.code:
            self.code = generate_game_code()

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'title': self.title,
            'sport': self.sport,
            'sportsdataio_game_id': self.sportsdataio_game_id,
            'status': self.status,
            'ended_at': self.ended_at.isoformat() if self.ended_at else None,
        }


class Patron(db.Model):
    __tablename__ = 'patron'
    id = db.Column(db.Integer, primary_key=True)
    game_night_id = db.Column(db.Integer, db.ForeignKey('game_night.id'), nullable=False, index=True)
    nickname = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    game_night = db.relationship('GameNight', back_populates='patrons')

    def to_dict(self):
        return {
            'id': self.id,
            'game_night_id': self.game_night_id,
            'nickname': self.nickname,
        }


class Prompt(db.Model):
    __tablename__ = 'prompt'
    id = db.Column(db.Integer, primary_key=True)
    game_night_id = db.Column(db.Integer, db.ForeignKey('game_night.id'), nullable=False, index=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    kind = db.Column(db.String(32), nullable=False)  # multiple_choice, over_under
    question = db.Column(db.Text, nullable=False)
    over_under_line = db.Column(db.Float, nullable=True)
    state = db.Column(db.String(16), nullable=False, default='draft')  # draft, open, locked, resolved, void
    opens_at = db.Column(db.DateTime(timezone=True), nullable=True)
    locks_at = db.Column(db.DateTime(timezone=True), nullable=True)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    game_night = db.relationship('GameNight', back_populates='prompts')
    options = db.relationship('PromptOption', backref='prompt', order_by='PromptOption.id')

    __table_args__ = (
        db.CheckConstraint(
            '(opens_at IS NULL AND locks_at IS NULL) OR '
            '(opens_at IS NOT NULL AND locks_at IS NOT NULL AND locks_at > opens_at)',
            name='ck_prompt_window',
        ),
    )


class PromptOption(db.Model):
    __tablename__ = 'prompt_option'
    id = db.Column(db.Integer, primary_key=True)
    prompt_id = db.Column(db.Integer, db.ForeignKey('prompt.id'), nullable=False, index=True)
    label = db.Column(db.String(128), nullable=False)

    def to_dict(self):
        return {'id': self.id, 'label': self.label}


class Submission(db.Model):
    __tablename__ = 'submission'
    id = db.Column(db.Integer, primary_key=True)
    prompt_id = db.Column(db.Integer, db.ForeignKey('prompt.id'), nullable=False, index=True)
    patron_id = db.Column(db.Integer, db.ForeignKey('patron.id'), nullable=False)
    option_id = db.Column(db.Integer, db.ForeignKey('prompt_option.id'), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    __table_args__ = (
        db.UniqueConstraint('prompt_id', 'patron_id', name='uq_submission_prompt_patron'),
    )


class PromptResolution(db.Model):
    __tablename__ = 'prompt_resolution'
    id = db.Column(db.Integer, primary_key=True)
    prompt_id = db.Column(db.Integer, db.ForeignKey('prompt.id'), nullable=False, unique=True)
    correct_option_id = db.Column(db.Integer, db.ForeignKey('prompt_option.id'), nullable=False)
    resolved_by_user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)


class PromptScore(db.Model):
    __tablename__ = 'prompt_score'
    id = db.Column(db.Integer, primary_key=True)
    prompt_id = db.Column(db.Integer, db.ForeignKey('prompt.id'), nullable=False, index=True)
    game_night_id = db.Column(db.Integer, db.ForeignKey('game_night.id'), nullable=False, index=True)
    patron_id = db.Column(db.Integer, db.ForeignKey('patron.id'), nullable=False)
    points = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(32), nullable=False)  # correct_speed, incorrect

    __table_args__ = (
        db.UniqueConstraint('prompt_id', 'patron_id', name='uq_prompt_score_prompt_patron'),
    )


class AnalyticEvent(db.Model):
    __tablename__ = 'analytic_event'
    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(64), nullable=False, index=True)
    user_id = db.Column(db.Integer, nullable=True)
    game_night_id = db.Column(db.Integer, nullable=True, index=True)
    payload = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
