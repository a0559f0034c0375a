import pytest

from mrandmrs import db
from mrandmrs.errors import InvalidGame, NotFound, PreconditionFailed, Unauthorized, UpstreamFailure
from mrandmrs.models import Game
from mrandmrs.services.games.lifecycle import GameStatus
from mrandmrs.services.games import records


def test_create_game_starts_in_creation(draft_game, creator):
    assert draft_game.status == GameStatus.IN_CREATION.value
    assert draft_game.creator_id == creator.id
    assert draft_game.payment_tier == 'none'
    assert draft_game.payment_status == 'unpaid'
    assert draft_game.access_code is None
    assert [q.order_position for q in draft_game.questions] == [1, 2]


def test_create_game_requires_interviewed_email(flask_app, creator):
    with pytest.raises(InvalidGame):
        records.create_game(creator, {'name': 'No partner'})
    with pytest.raises(InvalidGame):
        records.create_game(creator, {
            'name': 'Bad partner',
            'interviewed_partner': {'email': 'not-an-email'},
        })
    assert Game.query.count() == 0


def test_create_game_with_bad_question_writes_nothing(flask_app, creator, game_data):
    from mrandmrs.errors import InvalidQuestion
    game_data['questions'].append({'text': 'Pick one', 'type': 'single_choice', 'options': ['Only']})
    with pytest.raises(InvalidQuestion):
        records.create_game(creator, game_data)
    db.session.rollback()
    assert Game.query.count() == 0


def test_roles_match_email_case_insensitively(draft_game, creator, interviewed, playing, stranger):
    from mrandmrs.services.games.lifecycle import Role
    assert draft_game.roles_for(creator) == {Role.CREATOR}
    assert draft_game.roles_for(interviewed) == {Role.INTERVIEWED_PARTNER}
    assert draft_game.roles_for(playing) == {Role.PLAYING_PARTNER}
    assert draft_game.roles_for(stranger) == frozenset()


def test_get_game_for_rejects_outsiders(draft_game, stranger, interviewed):
    with pytest.raises(Unauthorized):
        records.get_game_for(draft_game.id, stranger)
    assert records.get_game_for(draft_game.id, interviewed).id == draft_game.id
    with pytest.raises(NotFound):
        records.get_game('missing')


def test_update_game_only_while_composing(draft_game, creator, interviewed):
    game = records.update_game(draft_game.id, creator, {'name': 'Renamed', 'occasion': ''})
    assert game.name == 'Renamed'
    assert game.occasion is None
    with pytest.raises(Unauthorized):
        records.update_game(draft_game.id, interviewed, {'name': 'Mine now'})
    with pytest.raises(InvalidGame):
        records.update_game(draft_game.id, creator, {'name': '  '})
    assert records.get_game(draft_game.id).name == 'Renamed'

    records.publish(draft_game.id, creator, 'basic')
    with pytest.raises(PreconditionFailed):
        records.update_game(draft_game.id, creator, {'name': 'Too late'})


def test_list_games_covers_every_role(draft_game, creator, interviewed, playing, stranger):
    assert [g['id'] for g in records.list_games(creator)] == [draft_game.id]
    listed = records.list_games(interviewed)
    assert listed[0]['roles'] == ['interviewed_partner']
    assert 'access_code' not in listed[0]
    assert records.list_games(playing)[0]['roles'] == ['playing_partner']
    assert records.list_games(stranger) == []


def test_publish_charges_tier_price_and_moves_to_ready(draft_game, creator, recording_payment):
    game = records.publish(draft_game.id, creator, 'premium', payment=recording_payment)
    assert recording_payment.charges == [('premium', 499, draft_game.id)]
    assert game.status == GameStatus.READY_TO_PLAY.value
    assert game.payment_tier == 'premium'
    assert game.payment_status == 'paid'
    assert game.paid_at is not None
    assert game.is_premium


def test_declined_payment_leaves_game_in_creation(draft_game, creator, declining_payment):
    with pytest.raises(UpstreamFailure) as excinfo:
        records.publish(draft_game.id, creator, 'basic', payment=declining_payment)
    assert excinfo.value.collaborator == 'payment'
    assert 'Card declined' in excinfo.value.message
    assert excinfo.value.to_dict()['code'] == 'card_declined'
    game = records.get_game(draft_game.id)
    assert game.status == GameStatus.IN_CREATION.value
    assert game.payment_status == 'unpaid'


def test_publish_guards(draft_game, creator, interviewed, recording_payment):
    with pytest.raises(Unauthorized):
        records.publish(draft_game.id, interviewed, 'basic', payment=recording_payment)
    with pytest.raises(InvalidGame):
        records.publish(draft_game.id, creator, 'none', payment=recording_payment)
    with pytest.raises(InvalidGame):
        records.publish(draft_game.id, creator, 'gold', payment=recording_payment)
    assert recording_payment.charges == []

    records.publish(draft_game.id, creator, 'basic', payment=recording_payment)
    with pytest.raises(PreconditionFailed):
        records.publish(draft_game.id, creator, 'basic', payment=recording_payment)
    assert len(recording_payment.charges) == 1


def test_publish_requires_a_question(flask_app, creator, game_data, recording_payment):
    game_data['questions'] = []
    game = records.create_game(creator, game_data)
    with pytest.raises(PreconditionFailed):
        records.publish(game.id, creator, 'basic', payment=recording_payment)
    assert recording_payment.charges == []


def test_status_swap_fails_when_status_moved(draft_game):
    records.compare_and_set_status(draft_game, GameStatus.IN_CREATION, GameStatus.READY_TO_PLAY)
    db.session.commit()
    with pytest.raises(PreconditionFailed):
        records.compare_and_set_status(draft_game, GameStatus.IN_CREATION, GameStatus.READY_TO_PLAY)
    assert records.get_game(draft_game.id).status == GameStatus.READY_TO_PLAY.value


def test_reveal_and_complete_need_answered_game(published_game, creator):
    with pytest.raises(PreconditionFailed):
        records.reveal_results(published_game.id, creator)
    with pytest.raises(PreconditionFailed):
        records.complete_game(published_game.id, creator)


@pytest.mark.parametrize('data', [
    {'name': 'Typed', 'interviewed_partner': {'email': 5}},
    {'name': 'Typed', 'interviewed_partner': {'email': 'sam@example.com', 'name': ['Sam']}},
    {'name': 42, 'interviewed_partner': {'email': 'sam@example.com'}},
    {'name': 'Typed', 'occasion': {'kind': 'wedding'}, 'interviewed_partner': {'email': 'sam@example.com'}},
    {'name': 'Typed', 'interviewed_partner': {'email': 'sam@example.com'}, 'questions': 'Do I snore?'},
    ['not', 'an', 'object'],
])
def test_non_string_metadata_is_invalid(flask_app, creator, data):
    with pytest.raises(InvalidGame):
        records.create_game(creator, data)
    assert Game.query.count() == 0


def test_update_rejects_non_string_fields(draft_game, creator):
    with pytest.raises(InvalidGame):
        records.update_game(draft_game.id, creator, {'playing_partner': {'email': 7}})
    assert records.get_game(draft_game.id).playing_email == 'pat@example.com'
