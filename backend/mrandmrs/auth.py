from flask import current_app
from flask_login import UserMixin


def normalize_email(email):
    return (email or '').strip().lower()


class Actor(UserMixin):
    """The caller of a game operation, as reported by the auth provider."""

    def __init__(self, user_id, email, name=None):
        self.id = str(user_id)
        self.email = normalize_email(email)
        self.name = name

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
        }

    def __repr__(self):
        return f"<Actor {self.id} {self.email}>"


def load_actor_from_request(request):
    """Flask-Login request loader: trust the identity headers set upstream."""
    cfg = current_app.config
    user_id = request.headers.get(cfg.get('AUTH_USER_ID_HEADER', 'X-User-Id'))
    email = request.headers.get(cfg.get('AUTH_EMAIL_HEADER', 'X-User-Email'))
    if not user_id or not email:
        return None
    name = request.headers.get(cfg.get('AUTH_NAME_HEADER', 'X-User-Name'))
    return Actor(user_id, email, name=name)
