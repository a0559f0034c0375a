"""
Game lifecycle state machine.

Pure decision logic: given the current status, the roles the caller holds
on the game and the action requested, decide whether the action is allowed
and which status it leads to. Nothing here touches the database; the
records service applies the decision with a compare-and-swap write.

    in_creation -> ready_to_play -> playing -> answered -> results_revealed -> completed
                                                     \\________________________/
"""

from enum import Enum
from typing import Iterable, FrozenSet

from mrandmrs.errors import PreconditionFailed, Unauthorized


class GameStatus(str, Enum):
    IN_CREATION = 'in_creation'
    READY_TO_PLAY = 'ready_to_play'
    PLAYING = 'playing'
    ANSWERED = 'answered'
    RESULTS_REVEALED = 'results_revealed'
    COMPLETED = 'completed'


class Role(str, Enum):
    CREATOR = 'creator'
    INTERVIEWED_PARTNER = 'interviewed_partner'
    PLAYING_PARTNER = 'playing_partner'


class Action(str, Enum):
    PUBLISH = 'publish'
    OPEN_FIRST_QUESTION = 'open_first_question'
    SUBMIT_ANSWERS = 'submit_answers'
    REVEAL_RESULTS = 'reveal_results'
    COMPLETE = 'complete'


STATUS_ORDER = (
    GameStatus.IN_CREATION,
    GameStatus.READY_TO_PLAY,
    GameStatus.PLAYING,
    GameStatus.ANSWERED,
    GameStatus.RESULTS_REVEALED,
    GameStatus.COMPLETED,
)

# Role required for each action, whatever the status
ACTION_ROLES = {
    Action.PUBLISH: Role.CREATOR,
    Action.OPEN_FIRST_QUESTION: Role.INTERVIEWED_PARTNER,
    Action.SUBMIT_ANSWERS: Role.INTERVIEWED_PARTNER,
    Action.REVEAL_RESULTS: Role.CREATOR,
    Action.COMPLETE: Role.CREATOR,
}

# Valid transitions: {current_status: {action: next_status}}
TRANSITIONS = {
    GameStatus.IN_CREATION: {
        Action.PUBLISH: GameStatus.READY_TO_PLAY,
    },
    GameStatus.READY_TO_PLAY: {
        Action.OPEN_FIRST_QUESTION: GameStatus.PLAYING,
    },
    GameStatus.PLAYING: {
        Action.SUBMIT_ANSWERS: GameStatus.ANSWERED,
    },
    GameStatus.ANSWERED: {
        Action.REVEAL_RESULTS: GameStatus.RESULTS_REVEALED,
        Action.COMPLETE: GameStatus.COMPLETED,
    },
    GameStatus.RESULTS_REVEALED: {
        Action.COMPLETE: GameStatus.COMPLETED,
    },
    GameStatus.COMPLETED: {},
}

# Statuses in which the interviewed partner may write answers
ANSWER_WRITE_STATUSES = frozenset({GameStatus.READY_TO_PLAY, GameStatus.PLAYING})
# Statuses in which the creator may re-send the invitation
INVITE_STATUSES = frozenset({GameStatus.READY_TO_PLAY, GameStatus.PLAYING})


def rank(status) -> int:
    return STATUS_ORDER.index(GameStatus(status))


def at_least(status, floor) -> bool:
    return rank(status) >= rank(floor)


def is_forward(current, target) -> bool:
    return rank(target) > rank(current)


def can_transition(status, action: Action) -> bool:
    return action in TRANSITIONS.get(GameStatus(status), {})


def decide(status, roles: Iterable[Role], action: Action) -> GameStatus:
    """Return the status ``action`` leads to, or raise.

    The role is checked first: a caller without the required role gets
    ``Unauthorized`` regardless of status. A caller with the role but in
    the wrong status gets ``PreconditionFailed``.
    """
    status = GameStatus(status)
    required = ACTION_ROLES[action]
    if required not in set(roles):
        raise Unauthorized(f"Only the {required.value} may {action.value.replace('_', ' ')}")
    if not can_transition(status, action):
        raise PreconditionFailed(
            f"Cannot {action.value.replace('_', ' ')} while the game is {status.value}"
        )
    return TRANSITIONS[status][action]


def require_role(roles: Iterable[Role], allowed: Iterable[Role], what: str) -> None:
    if not set(roles) & set(allowed):
        names = ' or '.join(sorted(r.value for r in allowed))
        raise Unauthorized(f"Only the {names} may {what}")


def require_status(status, allowed: Iterable[GameStatus], what: str) -> None:
    status = GameStatus(status)
    if status not in set(allowed):
        raise PreconditionFailed(f"Cannot {what} while the game is {status.value}")


def can_edit_questions(status) -> bool:
    return GameStatus(status) == GameStatus.IN_CREATION


def can_view_question_list(status, roles: FrozenSet[Role]) -> bool:
    """Full question list projection.

    The interviewed partner only ever sees questions through the guided
    answer flow, unless they also created the game.
    """
    if Role.CREATOR in roles:
        return True
    if Role.PLAYING_PARTNER in roles:
        return GameStatus(status) != GameStatus.IN_CREATION
    return False


def results_floor(roles: FrozenSet[Role]):
    """Earliest status at which a caller may read the results, or None."""
    if Role.CREATOR in roles:
        return GameStatus.ANSWERED
    if Role.PLAYING_PARTNER in roles:
        return GameStatus.RESULTS_REVEALED
    if Role.INTERVIEWED_PARTNER in roles:
        return GameStatus.COMPLETED
    return None
