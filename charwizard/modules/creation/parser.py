from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Union

_LEAD_MARKERS = re.compile(r"^(?:[-*•・]\s*)+")
_OPTION_RE = re.compile(r"^(?:選択肢|option)\s*(?P<number>\d+)\s*[:：]\s*(?P<text>.*)$", re.IGNORECASE)
_COMMENT_RE = re.compile(r"^(?:コメント|comment)\s*[:：]\s*(?P<text>.*)$", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class OptionLine:
    number: int
    text: str


@dataclass(frozen=True, slots=True)
class CommentLine:
    text: str


@dataclass(frozen=True, slots=True)
class OtherLine:
    text: str


ParsedLine = Union[OptionLine, CommentLine, OtherLine]


@dataclass(slots=True)
class ChoiceProposal:
    options: list[str] = field(default_factory=list)
    comment: str = ""


def _strip_decorations(text: str) -> str:
    cleaned = _LEAD_MARKERS.sub("", text.strip())
    return cleaned.replace("**", "").replace("__", "").strip()


def classify_line(line: str) -> ParsedLine:
    raw = str(line or "").strip()
    cleaned = _strip_decorations(raw)

    option = _OPTION_RE.match(cleaned)
    if option:
        return OptionLine(number=int(option.group("number")), text=option.group("text").strip())

    comment = _COMMENT_RE.match(cleaned)
    if comment:
        return CommentLine(text=comment.group("text").strip())

    return OtherLine(text=raw)


def parse_choice_response(raw_text: str | None) -> ChoiceProposal:
    """Fold model output into options (input order) and the last comment line.

    Never raises; unrecognised lines are ignored and short lists are not padded.
    """
    proposal = ChoiceProposal()
    for line in str(raw_text or "").splitlines():
        if not line.strip():
            continue
        parsed = classify_line(line)
        if isinstance(parsed, OptionLine):
            if parsed.text:
                proposal.options.append(parsed.text)
        elif isinstance(parsed, CommentLine):
            proposal.comment = parsed.text
    return proposal
