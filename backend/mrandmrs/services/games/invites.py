from urllib.parse import urlencode

from flask import current_app
from sqlalchemy import update

from mrandmrs import db
from mrandmrs.errors import InvalidGame, NotFound, PreconditionFailed, Unauthorized
from mrandmrs.models import Game, generate_access_code, utcnow
from mrandmrs.services.gateways import Invitation, get_gateways
from .lifecycle import INVITE_STATUSES, GameStatus, Role, require_role, require_status
from .records import get_game


def ensure_access_code(game_id) -> str:
    """Return the game's access code, minting it on first use.

    Safe to call repeatedly: once set the code never changes, and
    concurrent callers converge on whichever code was written first. Codes
    are only minted for published games, which are already at least
    ready_to_play; the status is never touched here.
    """
    game = get_game(game_id)
    if game.access_code:
        return game.access_code

    if GameStatus(game.status) == GameStatus.IN_CREATION:
        raise PreconditionFailed('Publish and pay for the game before inviting anyone')

    cfg = current_app.config
    code = generate_access_code(cfg['ACCESS_CODE_ALPHABET'], int(cfg.get('ACCESS_CODE_LENGTH', 6)))
    stmt = (
        update(Game)
        .where(Game.id == game.id, Game.access_code.is_(None))
        .values(access_code=code, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    minted = db.session.execute(stmt).rowcount == 1
    db.session.commit()
    db.session.expire(game)
    if minted:
        current_app.logger.info(f"[access-code] game={game_id} minted")
    return game.access_code


def invite_link(game_id, access_code) -> str:
    base = current_app.config.get('APP_URL', '').rstrip('/')
    return f"{base}/join?{urlencode({'code': access_code, 'gameId': game_id})}"


def send_invite(game_id, actor, notifier=None) -> Invitation:
    """Hand the invitation for the interviewed partner to the notifier.

    Re-sending reuses the existing code. A notifier failure is reported to
    the caller and leaves the game untouched.
    """
    game = get_game(game_id)
    require_role(game.roles_for(actor), [Role.CREATOR], 'send invitations')
    require_status(game.status, INVITE_STATUSES, 'send invitations')
    code = ensure_access_code(game.id)
    invitation = Invitation(
        game_id=game.id,
        access_code=code,
        email=game.interviewed_email,
        name=game.interviewed_name,
        game_name=game.name,
        creator_name=actor.name or 'A friend',
        link=invite_link(game.id, code),
    )
    notifier = notifier or get_gateways().notifier
    notifier.send_invite(invitation)
    current_app.logger.info(f"[invite] game={game.id} to={invitation.email}")
    return invitation


def join_game(actor, access_code) -> Game:
    """Bind the invited partner's account to the game behind ``access_code``."""
    if access_code is not None and not isinstance(access_code, str):
        raise InvalidGame('Access code must be a string')
    code = (access_code or '').strip().upper()
    game = Game.query.filter_by(access_code=code).first() if code else None
    if not game:
        raise NotFound('Access code', code)
    roles = game.roles_for(actor)
    if not roles & {Role.INTERVIEWED_PARTNER, Role.PLAYING_PARTNER}:
        raise Unauthorized('This invitation was sent to a different e-mail address')
    if GameStatus(game.status) != GameStatus.COMPLETED:
        if Role.INTERVIEWED_PARTNER in roles and game.interviewed_user_id != actor.id:
            game.interviewed_user_id = actor.id
        if Role.PLAYING_PARTNER in roles and game.playing_user_id != actor.id:
            game.playing_user_id = actor.id
        db.session.commit()
    current_app.logger.info(f"[join] game={game.id} user={actor.id}")
    return game
