"""
mrandmrs.errors: game error hierarchy
=====================================

Every failure the game core reports is one of these exceptions. Each one
carries an HTTP status and a ``to_dict()`` payload so the web layer can
return it as JSON without inspecting the error further.
"""

from __future__ import annotations
from typing import Any, Dict, Iterable, List, Optional, Tuple


class GameError(Exception):
    """Base exception for all game errors."""

    status_code = 400
    kind = 'game_error'

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {'error': self.message, 'kind': self.kind}


class NotFound(GameError):
    """A game, question or answer id is unknown."""

    status_code = 404
    kind = 'not_found'

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class Unauthorized(GameError):
    """The caller's role does not allow the action."""

    status_code = 403
    kind = 'unauthorized'


class PreconditionFailed(GameError):
    """A guard or a compare-and-swap on the game status failed."""

    status_code = 409
    kind = 'precondition_failed'


class InvalidQuestion(GameError):
    status_code = 400
    kind = 'invalid_question'


class InvalidGame(GameError):
    """Game metadata is malformed (for example a missing partner e-mail)."""

    status_code = 400
    kind = 'invalid_game'


class LastQuestionError(GameError):
    status_code = 409
    kind = 'last_question'

    def __init__(self, question_id: int):
        self.question_id = question_id
        super().__init__(f"Question {question_id} is the last question of the game and cannot be removed")


class ValidationFailed(GameError):
    """One or more answers fail their type-specific rule."""

    status_code = 422
    kind = 'validation_failed'

    def __init__(self, failures: Iterable[Tuple[int, str]]):
        self.failures: List[Tuple[int, str]] = list(failures)
        ids = ', '.join(str(qid) for qid, _ in self.failures)
        super().__init__(f"Answers failed validation for question(s): {ids}")

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload['failures'] = [
            {'question_id': qid, 'reason': reason} for qid, reason in self.failures
        ]
        return payload


class UpstreamFailure(GameError):
    """A collaborator (payment, notifier, media store) reported an error."""

    status_code = 502
    kind = 'upstream_failure'

    def __init__(self, collaborator: str, message: str, code: Optional[str] = None):
        self.collaborator = collaborator
        self.upstream_message = message
        self.code = code
        super().__init__(f"{collaborator}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload['collaborator'] = self.collaborator
        if self.code:
            payload['code'] = self.code
        return payload
