from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from mrandmrs.errors import InvalidGame
from mrandmrs.services.games import answers as answer_store
from mrandmrs.services.games import invites, questions, records
from mrandmrs.services.games.lifecycle import Role
from mrandmrs.services.games.scoring import game_results


games = Blueprint('games', __name__)


def _actor():
    return current_user._get_current_object()


def _game_payload(game, actor):
    roles = game.roles_for(actor)
    payload = game.to_dict(include_code=Role.CREATOR in roles)
    payload['roles'] = sorted(r.value for r in roles)
    return payload


@games.route('', methods=['GET'])
@login_required
def list_games():
    return jsonify(records.list_games(_actor()))


@games.route('/create', methods=['POST'])
@login_required
def create_game():
    data = request.get_json(silent=True) or {}
    game = records.create_game(_actor(), data)
    return jsonify(_game_payload(game, _actor())), 201


@games.route('/join', methods=['POST'])
@login_required
def join_game():
    data = request.get_json(silent=True) or {}
    game = invites.join_game(_actor(), data.get('access_code'))
    return jsonify(_game_payload(game, _actor()))


@games.route('/<string:game_id>', methods=['GET'])
@login_required
def get_game(game_id):
    game = records.get_game_for(game_id, _actor())
    return jsonify(_game_payload(game, _actor()))


@games.route('/<string:game_id>', methods=['PATCH'])
@login_required
def update_game(game_id):
    data = request.get_json(silent=True) or {}
    game = records.update_game(game_id, _actor(), data)
    return jsonify(_game_payload(game, _actor()))


@games.route('/<string:game_id>/questions', methods=['GET'])
@login_required
def list_questions(game_id):
    return jsonify([q.to_dict() for q in questions.list_questions(game_id, _actor())])


@games.route('/<string:game_id>/questions', methods=['POST'])
@login_required
def add_question(game_id):
    data = request.get_json(silent=True) or {}
    question = questions.add_question(game_id, _actor(), data)
    return jsonify(question.to_dict()), 201


@games.route('/<string:game_id>/questions/<int:question_id>', methods=['PUT'])
@login_required
def update_question(game_id, question_id):
    data = request.get_json(silent=True) or {}
    question = questions.update_question(game_id, _actor(), question_id, data)
    return jsonify(question.to_dict())


@games.route('/<string:game_id>/questions/<int:question_id>', methods=['DELETE'])
@login_required
def remove_question(game_id, question_id):
    questions.remove_question(game_id, _actor(), question_id)
    return jsonify({'message': 'Question removed'})


@games.route('/<string:game_id>/publish', methods=['POST'])
@login_required
def publish_game(game_id):
    data = request.get_json(silent=True) or {}
    game = records.publish(game_id, _actor(), data.get('tier'))
    return jsonify(_game_payload(game, _actor()))


@games.route('/<string:game_id>/invite', methods=['POST'])
@login_required
def send_invite(game_id):
    invitation = invites.send_invite(game_id, _actor())
    return jsonify({
        'message': 'Invitation sent',
        'access_code': invitation.access_code,
        'link': invitation.link,
    })


@games.route('/<string:game_id>/play/start', methods=['POST'])
@login_required
def start_answering(game_id):
    return jsonify(answer_store.start_answering(game_id, _actor()))


@games.route('/<string:game_id>/play/questions/<int:index>', methods=['GET'])
@login_required
def guided_question(game_id, index):
    return jsonify(answer_store.guided_question(game_id, _actor(), index))


@games.route('/<string:game_id>/questions/<int:question_id>/answers', methods=['POST'])
@login_required
def save_answer(game_id, question_id):
    data = request.get_json(silent=True) or {}
    answer = answer_store.save_draft(
        game_id, _actor(), question_id,
        data.get('value'),
        media=data.get('media'),
        advance=bool(data.get('advance')),
    )
    return jsonify(answer_store.answer_payload(answer.question, answer)), 201


@games.route('/<string:game_id>/submit', methods=['POST'])
@login_required
def submit_answers(game_id):
    data = request.get_json(silent=True) or {}
    rows = answer_store.submit_final(game_id, _actor(), data.get('answers') or {})
    game = records.get_game(game_id)
    return jsonify({'status': game.status, 'saved': len(rows)})


@games.route('/<string:game_id>/results', methods=['GET'])
@login_required
def get_results(game_id):
    return jsonify(game_results(game_id, _actor()))


@games.route('/<string:game_id>/answers/<int:answer_id>/correctness', methods=['PUT'])
@login_required
def mark_answer(game_id, answer_id):
    data = request.get_json(silent=True) or {}
    correct = data.get('correct')
    if not isinstance(correct, bool):
        raise InvalidGame("'correct' must be true or false")
    answer = answer_store.mark_correctness(game_id, _actor(), answer_id, correct)
    return jsonify(answer_store.answer_payload(answer.question, answer))


@games.route('/<string:game_id>/reveal', methods=['POST'])
@login_required
def reveal_results(game_id):
    game = records.reveal_results(game_id, _actor())
    return jsonify(_game_payload(game, _actor()))


@games.route('/<string:game_id>/complete', methods=['POST'])
@login_required
def complete_game(game_id):
    game = records.complete_game(game_id, _actor())
    return jsonify(_game_payload(game, _actor()))
