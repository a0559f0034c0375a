from mrandmrs import db
from mrandmrs.auth import normalize_email
from mrandmrs.services.games.lifecycle import GameStatus, Role
from datetime import datetime, timezone
from enum import Enum
import json
import secrets
import uuid


class PaymentTier(str, Enum):
    NONE = 'none'
    BASIC = 'basic'
    PREMIUM = 'premium'


class PaymentStatus(str, Enum):
    UNPAID = 'unpaid'
    PAID = 'paid'


class QuestionType(str, Enum):
    FREE_TEXT = 'free_text'
    SINGLE_CHOICE = 'single_choice'
    MULTI_CHOICE = 'multi_choice'
    BOOLEAN = 'boolean'


CHOICE_TYPES = frozenset({QuestionType.SINGLE_CHOICE, QuestionType.MULTI_CHOICE})


class Correctness(str, Enum):
    UNMARKED = 'unmarked'
    CORRECT = 'correct'
    INCORRECT = 'incorrect'


class MediaKind(str, Enum):
    IMAGE = 'image'
    VIDEO = 'video'


def utcnow():
    """Naive UTC timestamp, as stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _isoformat(value):
    return value.isoformat() if value else None


def generate_access_code(alphabet, length=6):
    """Generate a unique access code drawn from ``alphabet``."""
    while True:
        code = ''.join(secrets.choice(alphabet) for _ in range(length))
        if not Game.query.filter_by(access_code=code).first():
            return code


class Game(db.Model):
    __tablename__ = 'game'
    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    creator_id = db.Column(db.String(128), nullable=False, index=True)
    interviewed_name = db.Column(db.String(128), nullable=True)
    interviewed_email = db.Column(db.String(255), nullable=False, index=True)
    interviewed_user_id = db.Column(db.String(128), nullable=True)
    playing_name = db.Column(db.String(128), nullable=True)
    playing_email = db.Column(db.String(255), nullable=True, index=True)
    playing_user_id = db.Column(db.String(128), nullable=True)
    name = db.Column(db.String(255), nullable=False, default='')
    occasion = db.Column(db.String(255), nullable=True)
    payment_tier = db.Column(db.String(16), nullable=False, default=PaymentTier.NONE.value)
    payment_status = db.Column(db.String(16), nullable=False, default=PaymentStatus.UNPAID.value)
    paid_at = db.Column(db.DateTime, nullable=True)
    status = db.Column(db.String(32), nullable=False, default=GameStatus.IN_CREATION.value, index=True)
    access_code = db.Column(db.String(16), unique=True, index=True, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    questions = db.relationship(
        'Question', back_populates='game', order_by='Question.order_position',
        cascade='all, delete-orphan',
    )

    @property
    def is_premium(self):
        return self.payment_tier == PaymentTier.PREMIUM.value

    def roles_for(self, actor):
        """Roles ``actor`` holds on this game (possibly several, possibly none)."""
        roles = set()
        if actor is None:
            return frozenset()
        if actor.id == self.creator_id:
            roles.add(Role.CREATOR)
        email = normalize_email(getattr(actor, 'email', None))
        if email and email == normalize_email(self.interviewed_email):
            roles.add(Role.INTERVIEWED_PARTNER)
        if email and self.playing_email and email == normalize_email(self.playing_email):
            roles.add(Role.PLAYING_PARTNER)
        return frozenset(roles)

    def to_dict(self, include_code=False):
        payload = {
            'id': self.id,
            'creator_id': self.creator_id,
            'interviewed_partner': {
                'name': self.interviewed_name,
                'email': self.interviewed_email,
            },
            'playing_partner': {
                'name': self.playing_name,
                'email': self.playing_email,
            } if self.playing_email else None,
            'name': self.name,
            'occasion': self.occasion,
            'payment_tier': self.payment_tier,
            'payment_status': self.payment_status,
            'status': self.status,
            'question_count': len(self.questions),
            'created_at': _isoformat(self.created_at),
            'updated_at': _isoformat(self.updated_at),
        }
        if include_code:
            payload['access_code'] = self.access_code
        return payload


class Question(db.Model):
    __tablename__ = 'question'
    __table_args__ = (
        db.UniqueConstraint('game_id', 'order_position', name='uq_question_game_position'),
    )
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.String(36), db.ForeignKey('game.id'), nullable=False, index=True)
    text = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(32), nullable=False, default=QuestionType.FREE_TEXT.value)
    order_position = db.Column(db.Integer, nullable=False)
    options_json = db.Column(db.Text, nullable=True)  # JSON-encoded list of option strings
    allow_multiple = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    game = db.relationship('Game', back_populates='questions')
    answers = db.relationship('Answer', back_populates='question', lazy='dynamic')

    @property
    def options(self):
        return json.loads(self.options_json) if self.options_json else []

    @options.setter
    def options(self, value):
        self.options_json = json.dumps(list(value)) if value else None

    @property
    def question_type(self):
        return QuestionType(self.type)

    @property
    def is_multi_select(self):
        return self.question_type == QuestionType.MULTI_CHOICE and self.allow_multiple

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'text': self.text,
            'type': self.type,
            'order_position': self.order_position,
            'options': self.options if self.question_type in CHOICE_TYPES else None,
            'allow_multiple': bool(self.allow_multiple),
        }


class Answer(db.Model):
    __tablename__ = 'answer'
    # id doubles as the monotonic tie-breaker for rows sharing a timestamp
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    question_id = db.Column(db.Integer, db.ForeignKey('question.id'), nullable=False, index=True)
    value = db.Column(db.Text, nullable=False, default='')
    media_url = db.Column(db.Text, nullable=True)
    media_kind = db.Column(db.String(16), nullable=True)
    correctness = db.Column(db.String(16), nullable=False, default=Correctness.UNMARKED.value)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    question = db.relationship('Question', back_populates='answers')

    @property
    def media(self):
        if not self.media_url:
            return None
        return {'url': self.media_url, 'kind': self.media_kind}

    @property
    def is_reviewed(self):
        return self.correctness != Correctness.UNMARKED.value

    def to_dict(self):
        return {
            'id': self.id,
            'question_id': self.question_id,
            'value': self.value,
            'media': self.media,
            'correctness': self.correctness,
            'created_at': _isoformat(self.created_at),
        }
