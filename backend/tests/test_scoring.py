import pytest

from mrandmrs.errors import PreconditionFailed, Unauthorized
from mrandmrs.services.games import answers
from mrandmrs.services.games.records import complete_game, create_game, get_game, publish, reveal_results
from mrandmrs.services.games.scoring import game_results, score

FIVE_QUESTIONS = [
    {'text': 'Where did we first meet?', 'type': 'free_text'},
    {'text': 'Do I snore?', 'type': 'boolean'},
    {'text': 'Coffee or tea?', 'type': 'single_choice', 'options': ['Coffee', 'Tea']},
    {'text': 'Pick my hobbies', 'type': 'multi_choice', 'options': ['Golf', 'Chess', 'Yoga'],
     'allow_multiple': True},
    {'text': 'Dream holiday?', 'type': 'free_text'},
]


@pytest.fixture()
def answered_game(flask_app, creator, interviewed, game_data):
    game_data['questions'] = FIVE_QUESTIONS
    game = create_game(creator, game_data)
    publish(game.id, creator, 'basic')
    q = [question.id for question in game.questions]
    answers.save_draft(game.id, interviewed, q[0], 'At a wedding')
    answers.submit_final(game.id, interviewed, {
        str(q[1]): True,
        str(q[2]): 'Tea',
        str(q[3]): ['Yoga', 'Golf'],
        str(q[4]): 'Japan',
    })
    return game


def _resolved(game):
    return [answers.resolve(q.id) for q in get_game(game.id).questions]


def test_unreviewed_game_scores_zero_of_zero(answered_game):
    assert score(answered_game.id) == (0, 0)


@pytest.mark.parametrize('marks, expected', [
    ((True, True), (2, 2)),
    ((True, False), (1, 2)),
    ((False, False), (0, 2)),
])
def test_only_reviewed_answers_count(answered_game, creator, marks, expected):
    rows = _resolved(answered_game)
    for answer, correct in zip(rows[1:3], marks):
        answers.mark_correctness(answered_game.id, creator, answer.id, correct)
    assert score(answered_game.id) == expected


def test_single_mark_scores_one_of_one(answered_game, creator):
    from mrandmrs.models import Answer
    first = get_game(answered_game.id).questions[0]
    rows = Answer.query.filter_by(question_id=first.id).all()
    assert len(rows) == 1
    answers.mark_correctness(answered_game.id, creator, rows[0].id, True)
    assert score(answered_game.id) == (1, 1)


def test_results_projection_for_creator(answered_game, creator):
    rows = _resolved(answered_game)
    answers.mark_correctness(answered_game.id, creator, rows[1].id, True)
    answers.mark_correctness(answered_game.id, creator, rows[2].id, False)
    answers.mark_correctness(answered_game.id, creator, rows[3].id, True)

    results = game_results(answered_game.id, creator)
    assert results['score'] == {
        'correct': 2,
        'total': 3,
        'question_count': 5,
        'match_percentage': 66.7,
    }
    values = [item['answer']['value'] for item in results['questions']]
    assert values == ['At a wedding', True, 'Tea', ['Golf', 'Yoga'], 'Japan']
    assert 'access_code' not in results['game']


def test_results_visibility_follows_status(answered_game, creator, interviewed, playing, stranger):
    with pytest.raises(Unauthorized):
        game_results(answered_game.id, stranger)
    with pytest.raises(PreconditionFailed):
        game_results(answered_game.id, playing)
    with pytest.raises(PreconditionFailed):
        game_results(answered_game.id, interviewed)

    reveal_results(answered_game.id, creator)
    assert game_results(answered_game.id, playing)['score']['question_count'] == 5
    with pytest.raises(PreconditionFailed):
        game_results(answered_game.id, interviewed)

    complete_game(answered_game.id, creator)
    assert game_results(answered_game.id, interviewed)['game']['status'] == 'completed'


def test_marking_closes_once_revealed(answered_game, creator):
    rows = _resolved(answered_game)
    reveal_results(answered_game.id, creator)
    with pytest.raises(PreconditionFailed):
        answers.mark_correctness(answered_game.id, creator, rows[1].id, True)


def test_results_hidden_before_answers_are_in(published_game, creator):
    with pytest.raises(PreconditionFailed):
        game_results(published_game.id, creator)
