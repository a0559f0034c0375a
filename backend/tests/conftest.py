import os
import sys
import pytest

# Ensure the backend root (containing the `mrandmrs` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from mrandmrs import create_app, db
from mrandmrs.auth import Actor
from mrandmrs.services.gateways import ChargeResult, Notifier, PaymentGateway


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = 'DEBUG'
    AUTH_USER_ID_HEADER = 'X-User-Id'
    AUTH_EMAIL_HEADER = 'X-User-Email'
    AUTH_NAME_HEADER = 'X-User-Name'
    ACCESS_CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
    ACCESS_CODE_LENGTH = 6
    TIER_PRICES_CENTS = {'basic': 299, 'premium': 499}
    PAYMENT_CURRENCY = 'usd'
    PAYMENT_GATEWAY = 'local'
    NOTIFIER = 'log'
    MEDIA_STORE = 'local'
    MEDIA_BASE_URL = 'https://media.example.com/'
    GATEWAY_TIMEOUT_SEC = 1
    APP_URL = 'https://play.example.com'


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import mrandmrs.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client():
    # No app context stays pushed: each request gets its own, so the
    # identity headers are loaded afresh on every call
    application = create_app(TestConfig)
    with application.app_context():
        import mrandmrs.models  # noqa: F401
        db.create_all()
    yield application.test_client()
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def creator():
    return Actor('u-creator', 'casey@example.com', name='Casey')


@pytest.fixture()
def interviewed():
    return Actor('u-sam', 'Sam@Example.com', name='Sam')


@pytest.fixture()
def playing():
    return Actor('u-pat', 'pat@example.com', name='Pat')


@pytest.fixture()
def stranger():
    return Actor('u-eve', 'eve@example.com', name='Eve')


def auth_headers(actor):
    headers = {'X-User-Id': actor.id, 'X-User-Email': actor.email}
    if actor.name:
        headers['X-User-Name'] = actor.name
    return headers


@pytest.fixture()
def headers():
    return auth_headers


GAME_DATA = {
    'name': 'Our anniversary',
    'occasion': 'Anniversary',
    'interviewed_partner': {'name': 'Sam', 'email': 'sam@example.com'},
    'playing_partner': {'name': 'Pat', 'email': 'pat@example.com'},
    'questions': [
        {'text': 'Where did we first meet?', 'type': 'free_text'},
        {'text': 'Do I snore?', 'type': 'boolean'},
    ],
}


@pytest.fixture()
def game_data():
    return {
        **GAME_DATA,
        'questions': [dict(q) for q in GAME_DATA['questions']],
    }


@pytest.fixture()
def draft_game(flask_app, creator, game_data):
    """A game still being composed, with two questions."""
    from mrandmrs.services.games.records import create_game
    return create_game(creator, game_data)


@pytest.fixture()
def published_game(draft_game, creator):
    """A basic-tier game that has been paid for (ready_to_play)."""
    from mrandmrs.services.games.records import publish
    return publish(draft_game.id, creator, 'basic')


@pytest.fixture()
def premium_game(draft_game, creator):
    from mrandmrs.services.games.records import publish
    return publish(draft_game.id, creator, 'premium')


class DecliningPaymentGateway(PaymentGateway):
    def __init__(self):
        self.charges = []

    def charge(self, tier, amount_cents, game_id):
        self.charges.append((tier, amount_cents, game_id))
        return ChargeResult(success=False, message='Card declined', reference='card_declined')


class RecordingPaymentGateway(PaymentGateway):
    def __init__(self):
        self.charges = []

    def charge(self, tier, amount_cents, game_id):
        self.charges.append((tier, amount_cents, game_id))
        return ChargeResult(success=True, reference=f"ch_{len(self.charges)}")


class RecordingNotifier(Notifier):
    def __init__(self):
        self.sent = []

    def send_invite(self, invitation):
        self.sent.append(invitation)


class RejectingMediaStore:
    def upload_completed(self, url, kind):
        return False


@pytest.fixture()
def declining_payment():
    return DecliningPaymentGateway()


@pytest.fixture()
def recording_payment():
    return RecordingPaymentGateway()


@pytest.fixture()
def notifier(flask_app):
    """Replaces the app's notifier so invitations can be inspected."""
    recorder = RecordingNotifier()
    flask_app.extensions['gateways'].notifier = recorder
    return recorder


@pytest.fixture()
def rejecting_media():
    return RejectingMediaStore()
