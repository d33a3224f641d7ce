"""
Answer codec — the only place answers are flattened to, and re-inflated
from, the single persisted ``Answer.value`` string.

Domain form:
    SingleValue(text)       text / textarea / dropdown answers
    MultiValue(values)      checkbox answers, order as submitted

Storage form:
    ""                      unanswered (the row is deleted, never stored)
    "<text>"                single value, verbatim, no JSON quoting
    '["A", "Other: x"]'     JSON array of strings

Decoding is tolerant: anything that does not parse as a JSON array of
strings is a literal single value, so legacy rows and free text such as
``"42"`` or ``"[draft]"`` come back unchanged. A single-valued type never
stores a one-element array, so for those questions ``'["a"]'`` is literal
text as well.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Union

from app.models.questionnaire import MULTI_VALUE_TYPES, OTHER_OPTION

OTHER_PREFIX = f"{OTHER_OPTION}: "


@dataclass(frozen=True)
class SingleValue:
    text: str

    @property
    def is_empty(self) -> bool:
        return self.text == ""

    def as_list(self) -> list[str]:
        return [] if self.is_empty else [self.text]


@dataclass(frozen=True)
class MultiValue:
    values: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return len(self.values) == 0

    def as_list(self) -> list[str]:
        return list(self.values)


AnswerValue = Union[SingleValue, MultiValue]

EMPTY = SingleValue("")


# ── Wire -> domain ──────────────────────────────────────────────────────────


def build_value(
    raw_values: list[str],
    *,
    question_type: str,
    options: list[str] | None = None,
    other_text: str | None = None,
) -> AnswerValue:
    """Normalise the raw submitted values of one question into an AnswerValue.

    - Empty strings are dropped (an unticked checkbox group submits nothing).
    - Companion "Other" text is honoured only when the option list offers
      ``"Other"``; it replaces a selected ``"Other"`` element in place, or is
      appended when ``"Other"`` was not ticked.
    - Multi-valued question types always yield a MultiValue; single-valued
      types yield a MultiValue only when two or more values arrive.
    """
    values = [str(v) for v in raw_values if v is not None and str(v) != ""]
    other = (other_text or "").strip()
    multi = question_type in MULTI_VALUE_TYPES

    if other and OTHER_OPTION in (options or []):
        companion = f"{OTHER_PREFIX}{other}"
        if multi or len(values) > 1:
            if OTHER_OPTION in values:
                values[values.index(OTHER_OPTION)] = companion
            else:
                values.append(companion)
        else:
            values = [companion]

    if multi or len(values) > 1:
        return MultiValue(tuple(values))
    if not values:
        return EMPTY
    return SingleValue(values[0])


# ── Domain <-> storage ──────────────────────────────────────────────────────


def encode_answer(value: AnswerValue) -> str:
    """Flatten an AnswerValue to the persisted string ("" means unanswered)."""
    if value.is_empty:
        return ""
    if isinstance(value, MultiValue):
        return json.dumps(list(value.values), ensure_ascii=False)
    return value.text


def _parse_string_array(raw: str) -> list[str] | None:
    if not raw.startswith("["):
        return None
    try:
        parsed = json.loads(raw)
    except (ValueError, TypeError):
        return None
    if not isinstance(parsed, list) or not all(isinstance(v, str) for v in parsed):
        return None
    return parsed


def decode_answer(raw: str | None, *, multi: bool = False) -> AnswerValue:
    """Re-inflate a persisted string.

    ``multi=True`` (the question is multi-valued) turns a legacy plain-string
    row into a one-element MultiValue so checkbox state can be restored.
    With ``multi=False`` a one-element array is the literal text typed.
    """
    if raw is None or raw == "":
        return MultiValue() if multi else EMPTY
    items = _parse_string_array(raw)
    if items is not None and (multi or len(items) != 1):
        return MultiValue(tuple(items))
    if multi:
        return MultiValue((raw,))
    return SingleValue(raw)


def encode_submission(
    raw_values: list[str],
    *,
    question_type: str,
    options: list[str] | None = None,
    other_text: str | None = None,
) -> str:
    """Shortcut: raw form values straight to the storage string."""
    return encode_answer(
        build_value(raw_values, question_type=question_type, options=options, other_text=other_text)
    )


# ── Presentation helpers ────────────────────────────────────────────────────


def split_other(item: str) -> tuple[str, str | None]:
    """``"Other: foo"`` -> ``("Other", "foo")``; anything else -> ``(item, None)``."""
    if item.startswith(OTHER_PREFIX):
        return OTHER_OPTION, item[len(OTHER_PREFIX):]
    return item, None


def field_state(raw: str | None, *, multi: bool = False) -> dict:
    """Form-control state for re-populating a question.

    Returns ``{"selected": [...], "other_text": str | None}``. Items carrying
    the ``"Other: "`` prefix are reported as the literal ``"Other"`` option
    plus the companion text.
    """
    selected: list[str] = []
    other_text = None
    for item in decode_answer(raw, multi=multi).as_list():
        option, companion = split_other(item)
        if companion is not None:
            other_text = companion
        selected.append(option)
    return {"selected": selected, "other_text": other_text}


def display_text(value: AnswerValue, placeholder: str = "—") -> str:
    """Human-readable answer; multi-value answers are comma-joined."""
    if value.is_empty:
        return placeholder
    if isinstance(value, MultiValue):
        return ", ".join(value.values)
    return value.text
