"""
Response Validator - Extraction and two-tier validation of a reply

Responsibilities:
- Normalize enumerated and yes/no replies deterministically
- Reject impossible dates, negative amounts, malformed emails (deterministic tier)
- Extract free-text values through the language port
- Flag contradiction / vagueness / invalidity through the port (contextual tier)
- Decide retry policy (guidance on second failure, force-skip at the ceiling)

Design principles:
- Cheapest first: deterministic checks run before any port call
- Validator never mutates DialogueState; it returns a ValidationOutcome and
  the orchestrator commits (so a value is written whole or not at all)
- Port access goes through a caller-supplied call_port(operation, *args)
  that returns None on failure or timeout

Outcome contract:
    ACCEPTED  -> value holds the normalized value
    REJECTED  -> message holds the re-ask text; value may hold the candidate
    UNKNOWN   -> reply carries no usable value for the field
"""

import calendar
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from complaint_intake.config import (
    ATTEMPT_CEILING,
    FUTURE_DATE_TOLERANCE_DAYS,
    MAX_VALID_YEAR,
)
from complaint_intake.core.language_port import EXTRACTION_UNKNOWN, ValidityJudgement
from complaint_intake.core.record_model import (
    FIELD_BILLING_AMOUNT,
    FIELD_CONTACT_EMAIL,
    FIELD_DATE,
    FIELD_IMPACT,
    ENUM_FIELDS,
    YES_NO_FIELDS,
    summarize_known_fields,
)
from complaint_intake.utils.field_mappings import standardize_boolean, standardize_enum_value

logger = logging.getLogger(__name__)


class ValidationStatus(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    UNKNOWN = "unknown"


TIER_DETERMINISTIC = "deterministic"
TIER_CONTEXTUAL = "contextual"
TIER_EXTRACTION = "extraction"


@dataclass(frozen=True)
class ValidationOutcome:
    """
    Result of validating one reply for one field

    Attributes:
        status: ValidationStatus
        value: Normalized value (ACCEPTED) or rejected candidate (REJECTED)
        message: Re-ask text for REJECTED outcomes
        reason: Short rejection reason ('invalid_day', 'contradiction', ...)
        tier: Which tier decided ('deterministic', 'contextual', 'extraction')
    """
    status: ValidationStatus
    value: Any = None
    message: Optional[str] = None
    reason: Optional[str] = None
    tier: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.status == ValidationStatus.ACCEPTED


# ========================
# Deterministic tier
# ========================

MONTHS = {
    'january': 1, 'jan': 1,
    'february': 2, 'feb': 2,
    'march': 3, 'mar': 3,
    'april': 4, 'apr': 4,
    'may': 5,
    'june': 6, 'jun': 6,
    'july': 7, 'jul': 7,
    'august': 8, 'aug': 8,
    'september': 9, 'sept': 9, 'sep': 9,
    'october': 10, 'oct': 10,
    'november': 11, 'nov': 11,
    'december': 12, 'dec': 12,
}

# February allows 29 regardless of year
MONTH_MAX_DAYS = {
    1: 31, 2: 29, 3: 31, 4: 30, 5: 31, 6: 30,
    7: 31, 8: 31, 9: 30, 10: 31, 11: 30, 12: 31,
}

_MONTH_RE = "|".join(sorted(MONTHS, key=len, reverse=True))
_DAY_MONTH_RE = re.compile(rf"\b(\d{{1,3}})(?:st|nd|rd|th)?\s*(?:of\s+)?({_MONTH_RE})\.?\b(?:,?\s*(\d{{4}}))?")
_MONTH_DAY_RE = re.compile(rf"\b({_MONTH_RE})\.?\s+(\d{{1,3}})(?:st|nd|rd|th)?\b(?:,?\s*(\d{{4}}))?")
_MONTH_YEAR_RE = re.compile(rf"\b({_MONTH_RE})\.?,?\s+(\d{{4}})\b")
_ISO_DATE_RE = re.compile(r"\b(\d{4})[/\-.](\d{1,2})[/\-.](\d{1,2})(?!\d)")
_NUMERIC_DATE_RE = re.compile(r"\b(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2}|\d{4})\b")
# A minus sign counts only when it leads the first number ("-50", "$-50", "- $20")
_LEADING_MINUS_RE = re.compile(r"(?<![\w])-\s*(?:\$|s\$|sgd)?\s*$", re.IGNORECASE)
_NEGATIVE_WORD_RE = re.compile(r"\bnegative\b", re.IGNORECASE)
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _parse_date_parts(text: str):
    """Return (day, month, year) found in text; any part may be None"""
    lowered = text.lower()

    match = _DAY_MONTH_RE.search(lowered)
    if match:
        year = int(match.group(3)) if match.group(3) else None
        return int(match.group(1)), MONTHS[match.group(2)], year

    match = _MONTH_DAY_RE.search(lowered)
    if match:
        year = int(match.group(3)) if match.group(3) else None
        return int(match.group(2)), MONTHS[match.group(1)], year

    match = _MONTH_YEAR_RE.search(lowered)
    if match:
        return None, MONTHS[match.group(1)], int(match.group(2))

    match = _ISO_DATE_RE.search(lowered)
    if match:
        year, month, day = int(match.group(1)), int(match.group(2)), int(match.group(3))
        return day, month if 1 <= month <= 12 else None, year

    match = _NUMERIC_DATE_RE.search(lowered)
    if match:
        day, month, year = int(match.group(1)), int(match.group(2)), int(match.group(3))
        if month > 12 and day <= 12:
            day, month = month, day
        if year < 100:
            year += 2000
        return day, month if 1 <= month <= 12 else None, year

    return None, None, None


def validate_date(text: str, today: Optional[date] = None) -> Optional[str]:
    """
    Check a date reply for impossible values.

    Args:
        text: Reply or extracted date text
        today: Reference date (defaults to today)

    Returns:
        str: Error message if invalid, None if acceptable (or no date found)

    Examples:
        >>> validate_date("32 Jan 2025", date(2025, 7, 1)) is not None
        True
        >>> validate_date("24 Jun 2025", date(2025, 7, 1)) is None
        True
    """
    if not text:
        return None
    today = today or date.today()

    day, month, year = _parse_date_parts(text)
    if year is not None and year > MAX_VALID_YEAR:
        return f"I'm sorry, the year {year} seems incorrect. Could you double-check and provide the date again?"
    if day is None:
        return None

    if day < 1 or day > 31:
        return (
            f"I'm sorry, \"{day}\" doesn't look like a valid day - days go from 1 to 31. "
            f"Could you try again with the correct date? (For example: \"June 24\" or \"24 Jun 2025\")"
        )

    if month is not None and day > MONTH_MAX_DAYS[month]:
        month_name = calendar.month_name[month]
        return (
            f"I'm sorry, {month_name} only has {MONTH_MAX_DAYS[month]} days. "
            f"Could you try again with the correct date?"
        )

    if month is not None and year is not None:
        try:
            event_date = date(year, month, day)
        except ValueError:
            # 29 Feb in a non-leap year is tolerated
            return None
        if (event_date - today).days > FUTURE_DATE_TOLERANCE_DAYS:
            return (
                "I'm sorry, that date seems to be in the future. "
                "Could you share when this actually happened?"
            )

    return None


def validate_amount(text: str) -> Optional[str]:
    """
    Check an amount reply.

    Returns:
        str: Error message if negative, None otherwise

    Examples:
        >>> validate_amount("-50") is not None
        True
        >>> validate_amount("120") is None
        True
    """
    if not text:
        return None
    first_number = re.search(r"\d", text)
    leading = text[:first_number.start()] if first_number else ""
    if _LEADING_MINUS_RE.search(leading) or _NEGATIVE_WORD_RE.search(text):
        return "I'm sorry, the amount can't be negative. Could you provide the billing amount again?"
    return None


def validate_email(text: str) -> Optional[str]:
    if text and _EMAIL_RE.match(text.strip()):
        return None
    return "That doesn't look like a complete email address. Could you type it again (for example name@example.com)?"


# ========================
# Validator
# ========================

class ResponseValidator:
    """Two-tier reply validator with retry policy"""

    def __init__(self, attempt_ceiling: int = ATTEMPT_CEILING,
                 clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            attempt_ceiling: Asks per field before force-skip
            clock: Returns the current datetime (injectable for tests)
        """
        self.attempt_ceiling = attempt_ceiling
        self.clock = clock or datetime.now
        logger.info(f"Response Validator initialized (ceiling={attempt_ceiling})")

    # ========================
    # Retry policy
    # ========================

    def should_force_skip(self, attempts: int) -> bool:
        """Field has been asked attempt_ceiling times and failed again"""
        return attempts >= self.attempt_ceiling

    def needs_fallback_guidance(self, attempts: int) -> bool:
        """Second failed attempt: re-ask comes with guidance"""
        return attempts == 2

    # ========================
    # Tiers
    # ========================

    def check_deterministic(self, field_path: str, text: str) -> Optional[ValidationOutcome]:
        """
        Run the deterministic checks for a field.

        Returns:
            ValidationOutcome (REJECTED) if a check fails, else None
        """
        if field_path == FIELD_DATE:
            error = validate_date(text, self.clock().date())
            if error:
                return ValidationOutcome(ValidationStatus.REJECTED, value=text, message=error,
                                         reason="invalid_date", tier=TIER_DETERMINISTIC)
        elif field_path == FIELD_BILLING_AMOUNT:
            error = validate_amount(text)
            if error:
                return ValidationOutcome(ValidationStatus.REJECTED, value=text, message=error,
                                         reason="negative_amount", tier=TIER_DETERMINISTIC)
        return None

    def normalize(self, field_path: str, text: str):
        """
        Deterministic normalization for enumerated and yes/no fields.

        Returns:
            Canonical value, or None when the reply does not map
        """
        if field_path in ENUM_FIELDS:
            return standardize_enum_value(field_path, text)
        if field_path in YES_NO_FIELDS:
            return standardize_boolean(text)
        return None

    # ========================
    # Public API
    # ========================

    def validate(self, field_path: str, reply: str, question: str, record: Dict[str, Any],
                 call_port: Callable[..., Any], contextual: bool = True,
                 check_raw_reply: bool = True) -> ValidationOutcome:
        """
        Turn a reply into a validated value for field_path.

        Args:
            field_path: Field the question targeted
            reply: Raw user reply
            question: Question text the reply answers
            record: Current record (for contextual judgement)
            call_port: call_port(operation, *args) -> result or None on failure
            contextual: Run the port's validity judgement for free-text fields
            check_raw_reply: Run deterministic checks on the raw reply before
                extraction (off for multi-part bundled replies)

        Returns:
            ValidationOutcome
        """
        text = (reply or "").strip()

        if field_path in ENUM_FIELDS or field_path in YES_NO_FIELDS:
            return self._validate_mapped(field_path, text, question, call_port)

        if check_raw_reply:
            rejected = self.check_deterministic(field_path, text)
            if rejected:
                logger.debug(f"{field_path}: deterministic rejection ({rejected.reason})")
                return rejected

        extracted = call_port('extract_value', question, field_path, text)
        if extracted is None or str(extracted).strip().upper() == EXTRACTION_UNKNOWN:
            logger.debug(f"{field_path}: extraction returned no value")
            return ValidationOutcome(ValidationStatus.UNKNOWN, tier=TIER_EXTRACTION)
        value = str(extracted).strip()

        rejected = self.check_deterministic(field_path, value)
        if rejected:
            return rejected

        if field_path == FIELD_CONTACT_EMAIL:
            error = validate_email(value)
            if error:
                return ValidationOutcome(ValidationStatus.REJECTED, value=value, message=error,
                                         reason="invalid_email", tier=TIER_DETERMINISTIC)

        if contextual:
            judgement = call_port('judge_validity', question, text, self._judge_context(field_path, record))
            if isinstance(judgement, ValidityJudgement) and judgement.flagged:
                logger.debug(f"{field_path}: contextual rejection ({judgement.reason})")
                return ValidationOutcome(
                    ValidationStatus.REJECTED, value=value,
                    message=judgement.clarification_text,
                    reason=judgement.reason, tier=TIER_CONTEXTUAL,
                )

        return ValidationOutcome(ValidationStatus.ACCEPTED, value=value, tier=TIER_EXTRACTION)

    def _validate_mapped(self, field_path: str, text: str, question: str,
                         call_port: Callable[..., Any]) -> ValidationOutcome:
        value = self.normalize(field_path, text)
        if value is not None:
            return ValidationOutcome(ValidationStatus.ACCEPTED, value=value, tier=TIER_DETERMINISTIC)

        # Unmatched: let the port interpret, then map again
        extracted = call_port('extract_value', question, field_path, text)
        if extracted is None or str(extracted).strip().upper() == EXTRACTION_UNKNOWN:
            return ValidationOutcome(ValidationStatus.UNKNOWN, tier=TIER_EXTRACTION)
        extracted = str(extracted).strip()

        value = self.normalize(field_path, extracted)
        if value is not None:
            return ValidationOutcome(ValidationStatus.ACCEPTED, value=value, tier=TIER_EXTRACTION)

        if field_path in YES_NO_FIELDS:
            return ValidationOutcome(ValidationStatus.UNKNOWN, tier=TIER_EXTRACTION)

        # Free text passes through unchanged
        value = [extracted] if field_path == FIELD_IMPACT else extracted
        return ValidationOutcome(ValidationStatus.ACCEPTED, value=value, tier=TIER_EXTRACTION)

    def _judge_context(self, field_path: str, record: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'field_path': field_path,
            'domain': record.get('domain'),
            'subcategory': record.get('subcategory'),
            'description': record.get('description', ''),
            'known_fields': summarize_known_fields(record),
        }
