from typing import Tuple

from mrandmrs.errors import PreconditionFailed, Unauthorized
from mrandmrs.models import Correctness
from .answers import answer_payload, resolve
from .lifecycle import at_least, results_floor
from .questions import ordered_questions
from .records import get_game


def score_game(game) -> Tuple[int, int]:
    """Return (correct_count, total_count) for the game's resolved answers.

    Only reviewed answers count towards the total: questions the creator
    never marked, or that were never answered, are left out rather than
    counted as incorrect.
    """
    correct = 0
    total = 0
    for question in ordered_questions(game):
        answer = resolve(question.id)
        if answer is None or not answer.is_reviewed:
            continue
        total += 1
        if answer.correctness == Correctness.CORRECT.value:
            correct += 1
    return correct, total


def score(game_id) -> Tuple[int, int]:
    return score_game(get_game(game_id))


def game_results(game_id, actor) -> dict:
    """Questions with their authoritative answers, plus the score."""
    game = get_game(game_id)
    roles = game.roles_for(actor)
    floor = results_floor(roles)
    if floor is None:
        raise Unauthorized('You are not a party to this game')
    if not at_least(game.status, floor):
        raise PreconditionFailed(f"Results are not available while the game is {game.status}")

    items = []
    for question in ordered_questions(game):
        answer = resolve(question.id)
        payload = question.to_dict()
        payload['answer'] = answer_payload(question, answer)
        items.append(payload)

    correct, total = score_game(game)
    return {
        'game': game.to_dict(),
        'questions': items,
        'score': {
            'correct': correct,
            'total': total,
            'question_count': len(items),
            'match_percentage': round(correct * 100.0 / total, 1) if total else 0.0,
        },
    }
