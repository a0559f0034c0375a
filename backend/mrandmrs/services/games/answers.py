"""Answer store and the submission protocol.

Answers are append-only: every save inserts a new row and the
authoritative answer for a question is the row ``resolve`` returns (the
latest ``created_at``, ties broken by the row id). Results, review and
scoring must read through ``resolve`` rather than scanning rows.
"""
from datetime import timedelta
from typing import List, Optional

from flask import current_app
from sqlalchemy import func

from mrandmrs import db
from mrandmrs.errors import NotFound, PreconditionFailed, ValidationFailed
from mrandmrs.models import Answer, Correctness, MediaKind, Question, utcnow
from . import answer_values
from .lifecycle import ANSWER_WRITE_STATUSES, Action, GameStatus, Role, decide, require_role, require_status
from .questions import get_question, ordered_questions
from .records import get_game, lock_status, transition


def resolve(question_id) -> Optional[Answer]:
    return (
        Answer.query.filter_by(question_id=question_id)
        .order_by(Answer.created_at.desc(), Answer.id.desc())
        .first()
    )


def _next_timestamp(question_id):
    """Current time, nudged past the latest row of the same question."""
    now = utcnow()
    latest = db.session.query(func.max(Answer.created_at)).filter(Answer.question_id == question_id).scalar()
    if latest is not None and now <= latest:
        now = latest + timedelta(microseconds=1)
    return now


def append_answer(question, value, media=None, created_at=None) -> Answer:
    """Insert a new answer row; the caller commits."""
    answer = Answer(
        question_id=question.id,
        value=value if value is not None else '',
        created_at=created_at or _next_timestamp(question.id),
    )
    if media:
        answer.media_url = media['url']
        answer.media_kind = media['kind']
    db.session.add(answer)
    return answer


def answer_payload(question, answer) -> Optional[dict]:
    if answer is None:
        return None
    payload = answer.to_dict()
    decoded = answer_values.decode(question, answer.value)
    payload['value'] = decoded.to_json() if decoded is not None else answer.value
    payload['raw_value'] = answer.value
    return payload


def _clean_media(game, media, media_store=None) -> Optional[dict]:
    if not media:
        return None
    if not game.is_premium:
        raise PreconditionFailed('Photo and video answers need a premium game')
    if not isinstance(media, dict) or not isinstance(media.get('url'), str) or not media['url']:
        raise PreconditionFailed('Media must include the uploaded file url')
    try:
        kind = MediaKind(media.get('kind'))
    except ValueError:
        raise PreconditionFailed(f"Unknown media kind: {media.get('kind')}")
    if media_store is None:
        from mrandmrs.services.gateways import get_gateways
        media_store = get_gateways().media
    if not media_store.upload_completed(media['url'], kind.value):
        raise PreconditionFailed('Media upload has not completed')
    return {'url': media['url'], 'kind': kind.value}


def _split_submission(raw):
    if isinstance(raw, dict) and ('value' in raw or 'media' in raw):
        return raw.get('value'), raw.get('media')
    return raw, None


def save_draft(game_id, actor, question_id, raw_value, media=None, advance=False, media_store=None) -> Answer:
    """Store an answer row for one question.

    The first save on a ready_to_play game starts it (ready_to_play ->
    playing). With ``advance`` the answer must satisfy its question's rule,
    as when moving to the next page of the guided flow.
    """
    game = get_game(game_id)
    require_role(game.roles_for(actor), [Role.INTERVIEWED_PARTNER], 'answer questions')
    require_status(game.status, ANSWER_WRITE_STATUSES, 'save answers')
    question = get_question(game, question_id)
    media = _clean_media(game, media, media_store)
    value = answer_values.encode_raw(question, raw_value)
    if advance:
        reason = answer_values.validate(question, value, has_media=bool(media), premium=game.is_premium)
        if reason:
            raise ValidationFailed([(question.id, reason)])

    if GameStatus(game.status) == GameStatus.READY_TO_PLAY:
        transition(game, actor, Action.OPEN_FIRST_QUESTION)
    lock_status(game, [GameStatus.PLAYING], 'save answers')
    answer = append_answer(question, value, media)
    db.session.commit()
    current_app.logger.info(f"[answer-save] game={game.id} question={question.id} answer={answer.id}")
    return answer


def submit_final(game_id, actor, answers, media_store=None) -> List[Answer]:
    """Validate the whole answer set and move the game to answered.

    Each question is checked against the submitted value, or its resolved
    draft when the submission leaves it out. Any failure raises
    ``ValidationFailed`` before anything is written.
    """
    game = get_game(game_id)
    decide(game.status, game.roles_for(actor), Action.SUBMIT_ANSWERS)
    answers = answers if isinstance(answers, dict) else {}
    questions = ordered_questions(game)
    by_id = {q.id: q for q in questions}

    failures = []
    submitted = {}
    for key, raw in answers.items():
        try:
            qid = int(key)
        except (TypeError, ValueError):
            failures.append((key, 'Unknown question'))
            continue
        if qid not in by_id:
            failures.append((qid, 'Unknown question'))
            continue
        submitted[qid] = raw

    pending = []
    for question in questions:
        if question.id in submitted:
            raw_value, raw_media = _split_submission(submitted[question.id])
            media = _clean_media(game, raw_media, media_store)
            value = answer_values.encode_raw(question, raw_value)
            pending.append((question, value, media))
            has_media = bool(media)
        else:
            current = resolve(question.id)
            value = current.value if current else None
            has_media = bool(current and current.media_url)
        reason = answer_values.validate(question, value, has_media=has_media, premium=game.is_premium)
        if reason:
            failures.append((question.id, reason))

    if failures:
        current_app.logger.info(f"[submit] game={game.id} rejected failures={len(failures)}")
        raise ValidationFailed(failures)

    transition(game, actor, Action.SUBMIT_ANSWERS)
    rows = [append_answer(question, value, media) for question, value, media in pending]
    db.session.commit()
    current_app.logger.info(f"[submit] game={game_id} answered rows={len(rows)}")
    return rows


def mark_correctness(game_id, actor, answer_id, correct: bool) -> Answer:
    game = get_game(game_id)
    require_role(game.roles_for(actor), [Role.CREATOR], 'review answers')
    answer = (
        Answer.query.join(Question)
        .filter(Answer.id == answer_id, Question.game_id == game.id)
        .first()
    )
    if not answer:
        raise NotFound('Answer', answer_id)
    lock_status(game, [GameStatus.ANSWERED], 'review answers')
    current = resolve(answer.question_id)
    if current is None or current.id != answer.id:
        db.session.rollback()
        raise PreconditionFailed('This answer has been superseded by a later one')
    answer.correctness = (Correctness.CORRECT if correct else Correctness.INCORRECT).value
    db.session.commit()
    current_app.logger.info(f"[review] game={game.id} answer={answer.id} correctness={answer.correctness}")
    return answer


def _first_unanswered(questions, game) -> int:
    for index, question in enumerate(questions):
        current = resolve(question.id)
        value = current.value if current else None
        has_media = bool(current and current.media_url)
        if answer_values.validate(question, value, has_media=has_media, premium=game.is_premium):
            return index
    return len(questions)


def _guided_payload(game, index) -> dict:
    questions = ordered_questions(game)
    if index < 0 or index >= len(questions):
        raise NotFound('Question', f"#{index}")
    if index > _first_unanswered(questions, game):
        raise PreconditionFailed('Answer the earlier questions first')
    question = questions[index]
    return {
        'index': index,
        'total': len(questions),
        'is_last': index == len(questions) - 1,
        'question': question.to_dict(),
        'answer': answer_payload(question, resolve(question.id)),
    }


def start_answering(game_id, actor) -> dict:
    """Open the first question, starting the game if it is ready_to_play."""
    game = get_game(game_id)
    require_role(game.roles_for(actor), [Role.INTERVIEWED_PARTNER], 'answer questions')
    if GameStatus(game.status) == GameStatus.READY_TO_PLAY:
        transition(game, actor, Action.OPEN_FIRST_QUESTION)
        db.session.commit()
    else:
        require_status(game.status, [GameStatus.PLAYING], 'answer questions')
    return _guided_payload(game, 0)


def guided_question(game_id, actor, index) -> dict:
    game = get_game(game_id)
    require_role(game.roles_for(actor), [Role.INTERVIEWED_PARTNER], 'answer questions')
    require_status(game.status, [GameStatus.PLAYING], 'answer questions')
    return _guided_payload(game, index)
