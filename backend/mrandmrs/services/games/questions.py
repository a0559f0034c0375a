from typing import List

from flask import current_app
from sqlalchemy import func

from mrandmrs import db
from mrandmrs.errors import InvalidQuestion, LastQuestionError, NotFound, Unauthorized
from mrandmrs.models import CHOICE_TYPES, Question, QuestionType
from .lifecycle import GameStatus, Role, can_view_question_list, require_role
from .answer_values import SEPARATOR as OPTION_SEPARATOR
from .records import get_game, lock_status


def _clean_definition(definition):
    """Validate a question definition; returns (text, type, options, allow_multiple)."""
    if not isinstance(definition, dict):
        raise InvalidQuestion('Question must be an object')
    text = definition.get('text')
    if text is not None and not isinstance(text, str):
        raise InvalidQuestion('Question text must be a string')
    text = (text or '').strip()
    if not text:
        raise InvalidQuestion('Question text is required')
    try:
        qtype = QuestionType(definition.get('type') or QuestionType.FREE_TEXT.value)
    except ValueError:
        raise InvalidQuestion(f"Unknown question type: {definition.get('type')}")

    raw_options = definition.get('options') or []
    if qtype not in CHOICE_TYPES:
        if raw_options:
            raise InvalidQuestion('Options are only allowed for choice questions')
        return text, qtype, [], False

    if not isinstance(raw_options, (list, tuple)):
        raise InvalidQuestion('Options must be a list of strings')
    options = []
    for option in raw_options:
        if not isinstance(option, str) or not option.strip():
            raise InvalidQuestion('Options must be non-empty strings')
        option = option.strip()
        if OPTION_SEPARATOR in option:
            raise InvalidQuestion(f"Options may not contain '{OPTION_SEPARATOR}'")
        if option in options:
            raise InvalidQuestion(f"Duplicate option: {option}")
        options.append(option)
    if len(options) < 2:
        raise InvalidQuestion('Choice questions need at least two options')
    allow_multiple = qtype == QuestionType.MULTI_CHOICE and bool(definition.get('allow_multiple'))
    return text, qtype, options, allow_multiple


def new_question(definition, position) -> Question:
    text, qtype, options, allow_multiple = _clean_definition(definition)
    question = Question(
        text=text,
        type=qtype.value,
        order_position=position,
        allow_multiple=allow_multiple,
    )
    question.options = options
    return question


def ordered_questions(game) -> List[Question]:
    return (
        Question.query.filter_by(game_id=game.id)
        .order_by(Question.order_position.asc())
        .all()
    )


def get_question(game, question_id) -> Question:
    question = Question.query.filter_by(id=question_id, game_id=game.id).first()
    if not question:
        raise NotFound('Question', question_id)
    return question


def add_question(game_id, actor, definition) -> Question:
    game = get_game(game_id)
    # Validate before taking the row lock so a bad definition writes nothing
    require_role(game.roles_for(actor), [Role.CREATOR], 'add questions')
    _clean_definition(definition)
    lock_status(game, [GameStatus.IN_CREATION], 'add questions')
    last = db.session.query(func.max(Question.order_position)).filter(Question.game_id == game.id).scalar()
    question = new_question(definition, (last or 0) + 1)
    question.game_id = game.id
    db.session.add(question)
    db.session.commit()
    current_app.logger.info(f"[question-add] game={game.id} question={question.id} position={question.order_position}")
    return question


def update_question(game_id, actor, question_id, definition) -> Question:
    game = get_game(game_id)
    require_role(game.roles_for(actor), [Role.CREATOR], 'edit questions')
    question = get_question(game, question_id)
    text, qtype, options, allow_multiple = _clean_definition(definition)
    lock_status(game, [GameStatus.IN_CREATION], 'edit questions')
    question.text = text
    question.type = qtype.value
    question.options = options
    question.allow_multiple = allow_multiple
    db.session.commit()
    return question


def remove_question(game_id, actor, question_id) -> None:
    game = get_game(game_id)
    require_role(game.roles_for(actor), [Role.CREATOR], 'remove questions')
    question = get_question(game, question_id)
    lock_status(game, [GameStatus.IN_CREATION], 'remove questions')
    remaining = Question.query.filter(Question.game_id == game.id, Question.id != question.id).count()
    if remaining < 1:
        db.session.rollback()
        raise LastQuestionError(question_id)
    # Drafts saved against the question go with it
    for answer in question.answers.all():
        db.session.delete(answer)
    db.session.delete(question)
    db.session.commit()
    current_app.logger.info(f"[question-remove] game={game.id} question={question_id}")


def list_questions(game_id, actor) -> List[Question]:
    """Full question list, subject to the visibility rule."""
    game = get_game(game_id)
    roles = game.roles_for(actor)
    if not roles:
        raise Unauthorized('You are not a party to this game')
    if not can_view_question_list(game.status, roles):
        if Role.INTERVIEWED_PARTNER in roles:
            raise Unauthorized('Questions are revealed one at a time while answering')
        raise Unauthorized('Questions are not visible until the game is published')
    return ordered_questions(game)
