"""Game record operations and status transitions.

Every status change goes through ``compare_and_set_status``: an UPDATE
conditioned on the status read when the decision was made. A lost race
surfaces as ``PreconditionFailed``; nothing retries on the caller's behalf.
"""
import re
from typing import Iterable, List

from flask import current_app
from sqlalchemy import or_, update

from mrandmrs import db
from mrandmrs.auth import normalize_email
from mrandmrs.errors import InvalidGame, NotFound, PreconditionFailed, Unauthorized, UpstreamFailure
from mrandmrs.models import Game, PaymentStatus, PaymentTier, utcnow
from .lifecycle import Action, GameStatus, Role, decide, require_role, require_status

EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
PAYABLE_TIERS = (PaymentTier.BASIC, PaymentTier.PREMIUM)


def get_game(game_id) -> Game:
    game = db.session.get(Game, game_id) if game_id else None
    if not game:
        raise NotFound('Game', game_id)
    return game


def get_game_for(game_id, actor) -> Game:
    """Fetch a game the caller takes part in (any role)."""
    game = get_game(game_id)
    if not game.roles_for(actor):
        raise Unauthorized('You are not a party to this game')
    return game


def lock_status(game: Game, allowed: Iterable[GameStatus], what: str) -> None:
    """Re-check the status with a conditional write on the game row.

    Runs inside the caller's transaction, before its own writes, so those
    writes cannot commit once a concurrent transition has moved the game
    out of ``allowed``.
    """
    allowed = list(allowed)
    require_status(game.status, allowed, what)
    stmt = (
        update(Game)
        .where(Game.id == game.id, Game.status.in_([s.value for s in allowed]))
        .values(updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if db.session.execute(stmt).rowcount != 1:
        db.session.rollback()
        raise PreconditionFailed(f"Game {game.id} changed status concurrently; cannot {what}")


def compare_and_set_status(game: Game, expected: GameStatus, new: GameStatus, **values) -> None:
    stmt = (
        update(Game)
        .where(Game.id == game.id, Game.status == expected.value)
        .values(status=new.value, updated_at=utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    if db.session.execute(stmt).rowcount != 1:
        db.session.rollback()
        raise PreconditionFailed(
            f"Game {game.id} is no longer {expected.value}; re-fetch before retrying"
        )
    db.session.expire(game)
    current_app.logger.info(f"[transition] game={game.id} {expected.value} -> {new.value}")


def transition(game: Game, actor, action: Action, **values) -> GameStatus:
    """Decide and apply ``action``; the caller commits."""
    current = GameStatus(game.status)
    target = decide(current, game.roles_for(actor), action)
    compare_and_set_status(game, current, target, **values)
    return target


def _text_field(data, key, label):
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise InvalidGame(f"{label} must be a string")
    return (value or '').strip()


def _clean_party(data, label, required):
    data = data or {}
    if not isinstance(data, dict):
        raise InvalidGame(f"{label} must be an object with name and email")
    email = normalize_email(_text_field(data, 'email', f"{label} email"))
    name = _text_field(data, 'name', f"{label} name") or None
    if not email:
        if required:
            raise InvalidGame(f"{label} email is required")
        return None, None
    if not EMAIL_RE.match(email):
        raise InvalidGame(f"{label} email is invalid")
    return name, email


def _apply_metadata(game: Game, data: dict, creating: bool) -> None:
    if not isinstance(data, dict):
        raise InvalidGame('Game details must be an object')
    if creating or 'name' in data:
        name = _text_field(data, 'name', 'Game name')
        if not name:
            raise InvalidGame('Game name is required')
        game.name = name
    if 'occasion' in data:
        game.occasion = _text_field(data, 'occasion', 'Occasion') or None
    if creating or 'interviewed_partner' in data:
        game.interviewed_name, game.interviewed_email = _clean_party(
            data.get('interviewed_partner'), 'Interviewed partner', required=True)
    if 'playing_partner' in data:
        game.playing_name, game.playing_email = _clean_party(
            data.get('playing_partner'), 'Playing partner', required=False)


def create_game(actor, data: dict) -> Game:
    """Start composing a new game, optionally with its first questions."""
    from .questions import new_question

    data = data or {}
    game = Game(creator_id=actor.id)
    _apply_metadata(game, data, creating=True)
    definitions = data.get('questions') or []
    if not isinstance(definitions, list):
        raise InvalidGame('Questions must be a list')
    for position, definition in enumerate(definitions, start=1):
        game.questions.append(new_question(definition, position))
    db.session.add(game)
    db.session.commit()
    current_app.logger.info(f"[create] game={game.id} creator={actor.id} questions={len(game.questions)}")
    return game


def update_game(game_id, actor, data: dict) -> Game:
    game = get_game(game_id)
    require_role(game.roles_for(actor), [Role.CREATOR], 'edit the game')
    lock_status(game, [GameStatus.IN_CREATION], 'edit the game')
    try:
        _apply_metadata(game, data or {}, creating=False)
    except InvalidGame:
        db.session.rollback()
        raise
    db.session.commit()
    return game


def list_games(actor) -> List[dict]:
    """Dashboard: games the caller created or was invited to, newest first."""
    filters = [Game.creator_id == actor.id]
    if actor.email:
        filters.append(Game.interviewed_email == actor.email)
        filters.append(Game.playing_email == actor.email)
    games = Game.query.filter(or_(*filters)).order_by(Game.created_at.desc()).all()
    items = []
    for game in games:
        payload = game.to_dict()
        payload['roles'] = sorted(r.value for r in game.roles_for(actor))
        items.append(payload)
    return items


def _parse_tier(tier) -> PaymentTier:
    try:
        parsed = PaymentTier(tier)
    except ValueError:
        raise InvalidGame(f"Unknown payment tier: {tier}")
    if parsed not in PAYABLE_TIERS:
        raise InvalidGame('Choose the basic or premium tier to publish')
    return parsed


def publish(game_id, actor, tier, payment=None) -> Game:
    """Charge for ``tier`` and move the game to ready_to_play.

    The status only changes after the gateway reports success; a decline
    or a gateway error leaves the game in_creation.
    """
    from mrandmrs.services.gateways import get_gateways

    game = get_game(game_id)
    decide(game.status, game.roles_for(actor), Action.PUBLISH)
    tier = _parse_tier(tier)
    if not game.questions:
        raise PreconditionFailed('Add at least one question before publishing')

    amount = int(current_app.config['TIER_PRICES_CENTS'][tier.value])
    payment = payment or get_gateways().payment
    current_app.logger.info(f"[publish] game={game.id} tier={tier.value} amount={amount} charging")
    result = payment.charge(tier.value, amount, game.id)
    if not result.success:
        current_app.logger.warning(f"[publish] game={game.id} payment declined: {result.message}")
        raise UpstreamFailure('payment', result.message or 'Payment declined', code=result.reference)

    try:
        transition(
            game, actor, Action.PUBLISH,
            payment_tier=tier.value,
            payment_status=PaymentStatus.PAID.value,
            paid_at=utcnow(),
        )
    except PreconditionFailed:
        current_app.logger.error(
            f"[publish] game={game_id} charged (ref={result.reference}) but status changed concurrently"
        )
        raise
    db.session.commit()
    return game


def reveal_results(game_id, actor) -> Game:
    game = get_game(game_id)
    transition(game, actor, Action.REVEAL_RESULTS)
    db.session.commit()
    return game


def complete_game(game_id, actor) -> Game:
    game = get_game(game_id)
    transition(game, actor, Action.COMPLETE)
    db.session.commit()
    current_app.logger.info(f"[complete] game={game.id}")
    return game
