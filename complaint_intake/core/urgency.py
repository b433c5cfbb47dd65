"""
Urgency scoring - deterministic rule table applied at finalization

Score = domain base + subcategory weight + impact weights
        + service weight + high-bill bonus

    score >= HIGH_THRESHOLD   -> HIGH
    score >= MEDIUM_THRESHOLD -> MEDIUM
    otherwise                 -> LOW

Unknown or absent values contribute nothing.
"""

import logging
import re
from typing import Any, Dict, Tuple

from complaint_intake.config import HIGH_BILL_THRESHOLD
from complaint_intake.core.record_model import (
    FIELD_BILLING_AMOUNT,
    FIELD_IMPACT,
    FIELD_TYPE_OF_CARE,
    UrgencyLevel,
    get_field,
    is_known,
)

logger = logging.getLogger(__name__)

HIGH_THRESHOLD = 5
MEDIUM_THRESHOLD = 2

DOMAIN_BASE = {
    'CLINICAL': 2,
    'RELATIONSHIP': 1,
    'MANAGEMENT': 0,
}

SUBCATEGORY_WEIGHTS = {
    'SAFETY': 3,
    'MEDICATION': 2,
    'DIAGNOSIS': 1,
    'PROCEDURE': 1,
    'FOLLOW_UP': 1,
}

IMPACT_WEIGHTS = {
    'Safety risk or harm': 3,
    'Physical symptoms worsened or new symptoms': 2,
    'Treatment delay or missed care': 1,
    'Financial cost or unexpected charges': 1,
    'Emotional stress or anxiety': 1,
}

SERVICE_WEIGHTS = {
    'Emergency Department': 1,
    'Inpatient Ward': 1,
    'Dialysis': 1,
    'Surgery': 1,
}


def parse_amount(value: Any):
    """
    Pull a number out of an amount string ("$1,200.50" -> 1200.5)

    Returns:
        float or None if no number found
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    match = re.search(r"\d[\d,]*(?:\.\d+)?", str(value or ""))
    if not match:
        return None
    return float(match.group(0).replace(",", ""))


def score_urgency(record: Dict[str, Any]) -> Tuple[int, Dict[str, int]]:
    """
    Score a finished record.

    Args:
        record: Complaint record

    Returns:
        tuple: (total score, breakdown by rule)
    """
    breakdown = {
        'domain': DOMAIN_BASE.get(record.get('domain'), 0),
        'subcategory': SUBCATEGORY_WEIGHTS.get(record.get('subcategory'), 0),
        'impact': 0,
        'service': 0,
        'billing': 0,
    }

    if is_known(record, FIELD_IMPACT):
        impacts = get_field(record, FIELD_IMPACT)
        if isinstance(impacts, str):
            impacts = [impacts]
        breakdown['impact'] = sum(IMPACT_WEIGHTS.get(item, 0) for item in impacts)

    if is_known(record, FIELD_TYPE_OF_CARE):
        breakdown['service'] = SERVICE_WEIGHTS.get(get_field(record, FIELD_TYPE_OF_CARE), 0)

    if is_known(record, FIELD_BILLING_AMOUNT):
        amount = parse_amount(get_field(record, FIELD_BILLING_AMOUNT))
        if amount is not None and amount >= HIGH_BILL_THRESHOLD:
            breakdown['billing'] = 1

    return sum(breakdown.values()), breakdown


def compute_urgency(record: Dict[str, Any]) -> str:
    """Map a record to an UrgencyLevel value"""
    score, breakdown = score_urgency(record)

    if score >= HIGH_THRESHOLD:
        level = UrgencyLevel.HIGH
    elif score >= MEDIUM_THRESHOLD:
        level = UrgencyLevel.MEDIUM
    else:
        level = UrgencyLevel.LOW

    logger.info(f"Urgency {level.value} (score={score}, breakdown={breakdown})")
    return level.value
