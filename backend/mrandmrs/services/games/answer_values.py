"""Answer values and the required-answer rules.

Answers are stored as one string column. The encoding is only known at
the storage boundary: ``encode_raw`` turns client input into the stored
string and ``decode`` turns a stored string back into a typed value for
the question it belongs to.

    free_text      raw text
    boolean        "true" / "false"
    single_choice  the option
    multi_choice   options joined with ","  (single option unless allow_multiple)
"""
from dataclasses import dataclass
from typing import FrozenSet, Optional, Union

from mrandmrs.models import QuestionType

SEPARATOR = ','


@dataclass(frozen=True)
class TextAnswer:
    text: str

    def encode(self) -> str:
        return self.text

    def to_json(self):
        return self.text


@dataclass(frozen=True)
class BoolAnswer:
    value: bool

    def encode(self) -> str:
        return 'true' if self.value else 'false'

    def to_json(self):
        return self.value


@dataclass(frozen=True)
class ChoiceAnswer:
    option: str

    def encode(self) -> str:
        return self.option

    def to_json(self):
        return self.option


@dataclass(frozen=True)
class MultiChoiceAnswer:
    options: FrozenSet[str]

    def encode(self) -> str:
        return SEPARATOR.join(sorted(self.options))

    def to_json(self):
        return sorted(self.options)


AnswerValue = Union[TextAnswer, BoolAnswer, ChoiceAnswer, MultiChoiceAnswer]


def split_options(value: str):
    return [part.strip() for part in (value or '').split(SEPARATOR) if part.strip()]


def encode_raw(question, raw) -> str:
    """Encode client input (string, bool or list) as the stored string.

    Input that does not fit the question type is encoded as-is and left
    for ``validate`` to reject.
    """
    if raw is None:
        return ''
    if isinstance(raw, bool):
        return BoolAnswer(raw).encode()
    if isinstance(raw, (list, tuple, set, frozenset)):
        parts = [str(p).strip() for p in raw if str(p).strip()]
        if question.is_multi_select:
            return MultiChoiceAnswer(frozenset(parts)).encode()
        return SEPARATOR.join(parts)
    return str(raw)


def decode(question, value: Optional[str]) -> Optional[AnswerValue]:
    """Typed view of a stored value, or None when it does not decode."""
    if value is None:
        return None
    qtype = question.question_type
    if qtype == QuestionType.FREE_TEXT:
        return TextAnswer(value)
    if qtype == QuestionType.BOOLEAN:
        if value in ('true', 'false'):
            return BoolAnswer(value == 'true')
        return None
    if question.is_multi_select:
        parts = split_options(value)
        return MultiChoiceAnswer(frozenset(parts)) if parts else None
    return ChoiceAnswer(value) if value else None


def validate(question, value: Optional[str], has_media: bool = False, premium: bool = False) -> Optional[str]:
    """Return the reason ``value`` does not answer ``question``, or None."""
    qtype = question.question_type
    value = value if value is not None else ''
    if qtype == QuestionType.FREE_TEXT:
        if value.strip():
            return None
        if premium and has_media:
            return None
        return 'An answer is required'
    if qtype == QuestionType.BOOLEAN:
        if value in ('true', 'false'):
            return None
        return "Answer must be 'true' or 'false'"
    options = question.options
    if question.is_multi_select:
        parts = split_options(value)
        if not parts:
            return 'Select at least one option'
        unknown = [p for p in parts if p not in options]
        if unknown:
            return f"Unknown option(s): {', '.join(unknown)}"
        return None
    if not value:
        return 'Select one option'
    if value not in options:
        return 'Answer must be one of the options'
    return None
