"""
Intent Classifier - Deterministic reply intent matching

Classifies a reply to an outstanding question before any extraction runs.

Rules (first match wins):
1. Skip phrase            -> SKIP
2. Clarification request  -> CLARIFY
3. Yes/no phrase          -> AFFIRMATIVE / NEGATIVE
   (only when the outstanding question is yes/no or a confirmation)
4. >= 3 words, no '?'     -> ANSWER
5. Otherwise              -> UNCLEAR (caller asks the language port)

Design principles:
- Pure function of (reply, question kind), no I/O
- The language port is consulted by the caller, never from here
"""

import logging
import re
from enum import Enum
from typing import Optional

from complaint_intake.utils.intent_patterns import (
    AFFIRMATIVE_PHRASES,
    CLARIFY_FULL_MATCH_ONLY,
    CLARIFY_PHRASES,
    NEGATIVE_PHRASES,
    SHORT_REPLY_WORDS,
    SKIP_FULL_MATCH_ONLY,
    SKIP_PHRASES,
    YES_NO_LEADING_WORDS,
)

logger = logging.getLogger(__name__)


class UserIntent(str, Enum):
    """Intent of a reply to an outstanding question"""
    ANSWER = "ANSWER"
    SKIP = "SKIP"
    CLARIFY = "CLARIFY"
    AFFIRMATIVE = "AFFIRMATIVE"
    NEGATIVE = "NEGATIVE"
    UNCLEAR = "UNCLEAR"


# The only intents the language port may return for an UNCLEAR reply
PORT_INTENTS = {UserIntent.ANSWER, UserIntent.CLARIFY, UserIntent.SKIP}

# Question kinds for which yes/no phrases are meaningful
YES_NO_QUESTION_KINDS = {"yes_no", "confirmation"}

MIN_ANSWER_WORDS = 3


def normalize_reply(reply: str) -> str:
    """
    Lowercase, drop apostrophes, collapse whitespace, trim edge punctuation.

    Examples:
        >>> normalize_reply("  I Don’t know. ")
        'i dont know'
    """
    text = (reply or "").lower()
    text = text.replace("’", "").replace("'", "")
    text = re.sub(r"\s+", " ", text).strip()
    return text.strip(" .!,;:")


def _phrase_span(text: str, phrase: str):
    match = re.search(rf"(?<![\w/]){re.escape(phrase)}(?![\w/])", text)
    return match.span() if match else None


def _contains(text: str, phrase: str) -> bool:
    return _phrase_span(text, phrase) is not None


def _word_count(text: str) -> int:
    return len(text.split())


def _matches_skip(text: str) -> bool:
    if text in SKIP_PHRASES:
        return True
    if _word_count(text) > SHORT_REPLY_WORDS:
        return False

    clarify_spans = [
        span for span in (
            _phrase_span(text, clarify)
            for clarify in CLARIFY_PHRASES
            if clarify not in CLARIFY_FULL_MATCH_ONLY
        )
        if span is not None
    ]

    for phrase in SKIP_PHRASES:
        if phrase in SKIP_FULL_MATCH_ONLY:
            continue
        span = _phrase_span(text, phrase)
        if span is None:
            continue
        # "not sure what you mean" is a clarification, not a skip
        shadowed = any(start < span[1] and span[0] < end for start, end in clarify_spans)
        if not shadowed:
            return True
    return False


def _matches_clarify(text: str) -> bool:
    if text.rstrip("?").strip() in CLARIFY_PHRASES:
        return True
    # Long statements ("I don't understand why I was charged ...") are answers
    if _word_count(text) > SHORT_REPLY_WORDS and not text.endswith("?"):
        return False
    return any(
        _contains(text, phrase)
        for phrase in CLARIFY_PHRASES
        if phrase not in CLARIFY_FULL_MATCH_ONLY
    )


def _matches_yes_no(text: str, phrases) -> bool:
    if text in phrases:
        return True
    if _word_count(text) > YES_NO_LEADING_WORDS:
        return False
    # Leading phrase followed by more words ("yes, please call me")
    return any(
        re.match(rf"{re.escape(phrase)}(?![\w])", text) is not None
        for phrase in phrases
    )


def classify_intent(reply: str, question_kind: Optional[str] = None) -> UserIntent:
    """
    Classify a reply to the outstanding question.

    Args:
        reply: Raw user reply
        question_kind: QuestionKind value of the outstanding question
            ('free_text', 'choice', 'yes_no', 'confirmation')

    Returns:
        UserIntent: SKIP, CLARIFY, AFFIRMATIVE, NEGATIVE, ANSWER or UNCLEAR
    """
    text = normalize_reply(reply)

    if not text:
        return UserIntent.UNCLEAR

    if _matches_skip(text):
        intent = UserIntent.SKIP
    elif _matches_clarify(text):
        intent = UserIntent.CLARIFY
    elif question_kind in YES_NO_QUESTION_KINDS and _matches_yes_no(text, NEGATIVE_PHRASES):
        intent = UserIntent.NEGATIVE
    elif question_kind in YES_NO_QUESTION_KINDS and _matches_yes_no(text, AFFIRMATIVE_PHRASES):
        intent = UserIntent.AFFIRMATIVE
    elif _word_count(text) >= MIN_ANSWER_WORDS and "?" not in reply:
        intent = UserIntent.ANSWER
    else:
        intent = UserIntent.UNCLEAR

    logger.debug(f"Intent for {reply!r} (kind={question_kind}): {intent.value}")
    return intent


def parse_port_intent(value) -> Optional[UserIntent]:
    """
    Validate an intent label returned by the language port.

    Returns:
        UserIntent if value is one of ANSWER/CLARIFY/SKIP, else None
    """
    if value is None:
        return None
    label = str(value).strip().upper()
    for intent in PORT_INTENTS:
        if intent.value == label:
            return intent
    return None
