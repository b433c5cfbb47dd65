"""
Language Understanding Port - Contract for the natural-language service

Responsibilities:
- Define the request/response contract the dialogue core depends on
- Define result types (Classification, ValidityJudgement)
- Provide the deterministic keyword classifier used when classify() fails

Contract (all calls request/response, all may raise):
    classify(text, context)                       -> Classification
    select_missing_fields(record, known_summary)  -> list of field paths
    generate_question(field_path, context)        -> str
    extract_value(question, field_path, reply)    -> str or EXTRACTION_UNKNOWN
    judge_validity(question, reply, context)      -> ValidityJudgement
    classify_intent(question, reply)              -> 'ANSWER' | 'CLARIFY' | 'SKIP'

Implementations raise PortError for malformed output. Callers treat any
exception (including timeouts) as "no new information".
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from complaint_intake.core.record_model import (
    DOMAIN_FOR_SUBCATEGORY,
    Subcategory,
)

logger = logging.getLogger(__name__)

# Token returned by extract_value when the reply holds no usable value
EXTRACTION_UNKNOWN = "UNKNOWN"


class PortError(Exception):
    """Language port returned output that does not satisfy the contract"""


@dataclass(frozen=True)
class Classification:
    """
    Result of classifying the opening complaint

    Attributes:
        domain: Domain value, or None if the message holds no complaint
        subcategory: Subcategory value (None when domain is None)
        description: Short summary of the complaint
        extracted_fields: Details already mentioned, keyed by
            eventDate/location/typeOfCare/amount/insuranceStatus/
            medicationName/staffRole/impact
        source: 'port' or 'keyword'
    """
    domain: Optional[str]
    subcategory: Optional[str]
    description: str = ""
    extracted_fields: Dict[str, Any] = field(default_factory=dict)
    source: str = "port"

    @property
    def is_complaint(self) -> bool:
        return self.domain is not None and self.subcategory is not None


@dataclass(frozen=True)
class ValidityJudgement:
    """Contextual validity verdict for a reply"""
    contradiction: bool = False
    vague: bool = False
    invalid: bool = False
    clarification_text: Optional[str] = None

    @property
    def flagged(self) -> bool:
        return self.contradiction or self.vague or self.invalid

    @property
    def reason(self) -> Optional[str]:
        if self.contradiction:
            return "contradiction"
        if self.invalid:
            return "invalid"
        if self.vague:
            return "vague"
        return None


class LanguageUnderstandingPort(ABC):
    """Abstract natural-language capability injected into the dialogue core"""

    @abstractmethod
    def classify(self, text: str, context: Optional[Dict[str, Any]] = None) -> Classification:
        ...

    @abstractmethod
    def select_missing_fields(self, record: Dict[str, Any], known_field_summary: str) -> List[str]:
        ...

    @abstractmethod
    def generate_question(self, field_path: str, context: Dict[str, Any]) -> str:
        ...

    @abstractmethod
    def extract_value(self, question: str, field_path: str, reply: str) -> str:
        ...

    @abstractmethod
    def judge_validity(self, question: str, reply: str, record_context: Dict[str, Any]) -> ValidityJudgement:
        ...

    @abstractmethod
    def classify_intent(self, question: str, reply: str) -> str:
        ...


# ========================
# Keyword classification fallback
# ========================

# Checked in order; first subcategory with a hit wins
SUBCATEGORY_KEYWORDS = [
    (Subcategory.SAFETY, r"\b(fell|fall|fallen|injur\w*|unsafe|infection|wrong patient|bed ?sore|harm\w*|neglect\w*)\b"),
    (Subcategory.MEDICATION, r"\b(medication|medicine|drug|prescription|prescribed|dose|dosage|pill|tablet|pharmacy)\b"),
    (Subcategory.DIAGNOSIS, r"\b(diagnos\w*|misdiagnos\w*|test results?|missed the)\b"),
    (Subcategory.PROCEDURE, r"\b(surgery|operation|procedure|biopsy|scope|injection)\b"),
    (Subcategory.FOLLOW_UP, r"\b(follow[- ]?up|no one called|never called back|discharge)\b"),
    (Subcategory.BILLING, r"\b(bill|billing|billed|charge\w*|payment|invoice|insurance|refund|overcharged|price)\b"),
    (Subcategory.WAIT_TIME, r"\b(wait\w*|queue\w*|delay\w*|hours?|took so long)\b"),
    (Subcategory.APPOINTMENT, r"\b(appointment|schedul\w*|reschedul\w*|cancel\w*|booking|booked)\b"),
    (Subcategory.FACILITIES, r"\b(toilet|restroom|parking|signage|sign|lift|elevator|dirty|clean\w*|air ?con\w*|canteen|facilit\w*)\b"),
    (Subcategory.ADMIN_PROCESS, r"\b(form|paperwork|registration|admin\w*|records?|referral|letter)\b"),
    (Subcategory.ATTITUDE, r"\b(rude|attitude|impolite|arrogant|dismissive|shouted|yelled)\b"),
    (Subcategory.RESPECT, r"\b(disrespect\w*|privacy|dignity|discriminat\w*|ignored)\b"),
    (Subcategory.COMMUNICATION, r"\b(explain\w*|communicat\w*|didn'?t tell|did not tell|informed|language)\b"),
    (Subcategory.PROFESSIONALISM, r"\b(unprofessional|professional\w*|on (his|her|their) phone|late)\b"),
]


def keyword_classify(text: str) -> Optional[Classification]:
    """
    Deterministic fallback classifier.

    Args:
        text: Complaint narrative

    Returns:
        Classification with source='keyword', or None if nothing matched

    Examples:
        >>> keyword_classify("I was billed twice for my scan").subcategory
        'BILLING'
    """
    lowered = (text or "").lower()

    for subcategory, pattern in SUBCATEGORY_KEYWORDS:
        if re.search(pattern, lowered):
            domain = DOMAIN_FOR_SUBCATEGORY[subcategory.value]
            logger.info(f"Keyword classification: {domain}/{subcategory.value}")
            return Classification(
                domain=domain,
                subcategory=subcategory.value,
                description=text.strip(),
                extracted_fields={},
                source="keyword",
            )

    logger.info("Keyword classification found no match")
    return None
