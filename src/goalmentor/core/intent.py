"""
Intent classification for chat turns.

Maps a raw message to a keyword intent (completed / couldn't / adjust) and,
while a completion is awaiting confirmation, to a yes/no vote. Pure table
lookups: no model calls, no side effects, never raises.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple

from ..content.phrases import (
    ADJUST_PHRASES,
    AFFIRMATIVE_PHRASES,
    COMPLETED_PHRASES,
    COULDNT_PHRASES,
    NEGATIVE_PHRASES,
    PhraseRule,
)
from .session import PendingCompletion


class Keyword(str, Enum):
    NONE = "none"
    COMPLETED = "completed"
    COULDNT = "couldnt"
    ADJUST = "adjust"


class Confirmation(str, Enum):
    NONE = "none"
    YES = "yes"
    NO = "no"


@dataclass(frozen=True)
class IntentResult:
    keyword: Keyword = Keyword.NONE
    confirmation: Confirmation = Confirmation.NONE


# Tested in this order; first match wins
KEYWORD_TABLE: Tuple[Tuple[Keyword, Dict[str, PhraseRule]], ...] = (
    (Keyword.COMPLETED, COMPLETED_PHRASES),
    (Keyword.COULDNT, COULDNT_PHRASES),
    (Keyword.ADJUST, ADJUST_PHRASES),
)


def normalize_message(message: str) -> str:
    """Lowercase, trim, straighten apostrophes and drop trailing . or !"""
    text = (message or "").lower().strip()
    text = text.replace("’", "'").replace("‘", "'")
    return text.rstrip(".!").strip()


def detect_keyword(message: str) -> Keyword:
    text = normalize_message(message)
    if not text:
        return Keyword.NONE
    for keyword, rules in KEYWORD_TABLE:
        if any(rule.matches(text) for rule in rules.values()):
            return keyword
    return Keyword.NONE


def _starts_with_word(text: str, phrase: str) -> bool:
    return re.match(rf"{re.escape(phrase)}(?!\w)", text) is not None


def _any_phrase(text: str, tables: Dict[str, Tuple[str, ...]]) -> bool:
    phrases: Iterable[str] = (p for table in tables.values() for p in table)
    return any(_starts_with_word(text, p) for p in phrases)


def detect_confirmation(message: str) -> Confirmation:
    text = normalize_message(message)
    if not text:
        return Confirmation.NONE
    # Negatives first: "no" must not be read as part of a longer yes-phrase
    if _any_phrase(text, NEGATIVE_PHRASES):
        return Confirmation.NO
    if _any_phrase(text, AFFIRMATIVE_PHRASES):
        return Confirmation.YES
    return Confirmation.NONE


def classify(message: str, pending: Optional[PendingCompletion] = None) -> IntentResult:
    """Classify one user message; confirmation is only read while a completion is pending."""
    confirmation = detect_confirmation(message) if pending is not None else Confirmation.NONE
    return IntentResult(keyword=detect_keyword(message), confirmation=confirmation)
