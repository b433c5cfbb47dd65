"""
Record Model - Partial structured complaint and field-path addressing

Responsibilities:
- Define the complaint taxonomy (domain, subcategory, urgency)
- Define the addressable field paths and their display labels
- Read and write values at dotted field paths
- Distinguish absent (never asked) from unknown (asked, declined)

Design principles:
- Record is a plain JSON-serializable dict (no behaviour attached)
- Dumb container: no validation or relevance logic lives here
- Absent means the key does not exist; unknown is the UNKNOWN sentinel

Record layout:
    {
        'domain': 'MANAGEMENT',
        'subcategory': 'BILLING',
        'description': 'Charged twice for my scan [Amount billed: 120]',
        'event': {'date': '24 Jun 2025', 'location': 'Block 3'},
        'typeOfCare': 'Radiology/Imaging',
        'billing': {'amount': '120', 'insuranceStatus': 'Private insurance'},
        'impact': ['Financial cost or unexpected charges'],
        'contactDetails': {'wantsContact': False},
        'urgencyLevel': 'LOW',
        'needsHumanInvestigation': True
    }
"""

import logging
from enum import Enum
from typing import Any, Dict

logger = logging.getLogger(__name__)

# Sentinel for "asked and explicitly declined/unanswerable"
UNKNOWN = "unknown"


# ========================
# Taxonomy
# ========================

class Domain(str, Enum):
    """Top-level complaint domain"""
    CLINICAL = "CLINICAL"
    MANAGEMENT = "MANAGEMENT"
    RELATIONSHIP = "RELATIONSHIP"


class Subcategory(str, Enum):
    """Complaint subcategory (each belongs to exactly one domain)"""
    # Management
    WAIT_TIME = "WAIT_TIME"
    BILLING = "BILLING"
    APPOINTMENT = "APPOINTMENT"
    FACILITIES = "FACILITIES"
    ADMIN_PROCESS = "ADMIN_PROCESS"

    # Relationship
    COMMUNICATION = "COMMUNICATION"
    ATTITUDE = "ATTITUDE"
    RESPECT = "RESPECT"
    PROFESSIONALISM = "PROFESSIONALISM"

    # Clinical
    MEDICATION = "MEDICATION"
    DIAGNOSIS = "DIAGNOSIS"
    PROCEDURE = "PROCEDURE"
    SAFETY = "SAFETY"
    FOLLOW_UP = "FOLLOW_UP"


class UrgencyLevel(str, Enum):
    """Coarse urgency assigned at finalization"""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


SUBCATEGORIES_BY_DOMAIN = {
    Domain.MANAGEMENT: (
        Subcategory.WAIT_TIME,
        Subcategory.BILLING,
        Subcategory.APPOINTMENT,
        Subcategory.FACILITIES,
        Subcategory.ADMIN_PROCESS,
    ),
    Domain.RELATIONSHIP: (
        Subcategory.COMMUNICATION,
        Subcategory.ATTITUDE,
        Subcategory.RESPECT,
        Subcategory.PROFESSIONALISM,
    ),
    Domain.CLINICAL: (
        Subcategory.MEDICATION,
        Subcategory.DIAGNOSIS,
        Subcategory.PROCEDURE,
        Subcategory.SAFETY,
        Subcategory.FOLLOW_UP,
    ),
}

DOMAIN_FOR_SUBCATEGORY = {
    subcategory.value: domain.value
    for domain, subcategories in SUBCATEGORIES_BY_DOMAIN.items()
    for subcategory in subcategories
}

VALID_DOMAINS = {domain.value for domain in Domain}
VALID_SUBCATEGORIES = {subcategory.value for subcategory in Subcategory}


# ========================
# Field paths
# ========================

FIELD_DATE = "event.date"
FIELD_LOCATION = "event.location"
FIELD_TYPE_OF_CARE = "typeOfCare"
FIELD_BILLING_AMOUNT = "billing.amount"
FIELD_INSURANCE_STATUS = "billing.insuranceStatus"
FIELD_MEDICATION_NAME = "medication.name"
FIELD_PEOPLE_ROLE = "people.role"
FIELD_IMPACT = "impact"
FIELD_WANTS_CONTACT = "contactDetails.wantsContact"
FIELD_CONTACT_NAME = "contactDetails.name"
FIELD_CONTACT_EMAIL = "contactDetails.email"
FIELD_IS_PATIENT = "contactDetails.isPatient"

SITUATIONAL_FIELDS = (
    FIELD_IMPACT,
    FIELD_DATE,
    FIELD_LOCATION,
    FIELD_TYPE_OF_CARE,
    FIELD_BILLING_AMOUNT,
    FIELD_INSURANCE_STATUS,
    FIELD_MEDICATION_NAME,
    FIELD_PEOPLE_ROLE,
)

CONTACT_FIELDS = (
    FIELD_WANTS_CONTACT,
    FIELD_CONTACT_NAME,
    FIELD_CONTACT_EMAIL,
    FIELD_IS_PATIENT,
)

ALL_FIELD_PATHS = SITUATIONAL_FIELDS + CONTACT_FIELDS

# Fields answered from a numbered options list
ENUM_FIELDS = {FIELD_TYPE_OF_CARE, FIELD_IMPACT, FIELD_INSURANCE_STATUS}

# Fields answered yes or no
YES_NO_FIELDS = {FIELD_WANTS_CONTACT, FIELD_IS_PATIENT}

FIELD_LABELS = {
    FIELD_DATE: "Date of event",
    FIELD_LOCATION: "Location",
    FIELD_TYPE_OF_CARE: "Type of care",
    FIELD_BILLING_AMOUNT: "Amount billed",
    FIELD_INSURANCE_STATUS: "Insurance status",
    FIELD_MEDICATION_NAME: "Medication",
    FIELD_PEOPLE_ROLE: "Staff role",
    FIELD_IMPACT: "Impact",
    FIELD_WANTS_CONTACT: "Wants contact",
    FIELD_CONTACT_NAME: "Contact name",
    FIELD_CONTACT_EMAIL: "Contact email",
    FIELD_IS_PATIENT: "Is the patient",
}


def get_field_label(field_path: str) -> str:
    """Human-readable label for a field path (falls back to the path)"""
    return FIELD_LABELS.get(field_path, field_path)


def is_valid_field_path(field_path: str) -> bool:
    return field_path in ALL_FIELD_PATHS


# ========================
# Record construction
# ========================

def new_record(description: str = "") -> Dict[str, Any]:
    """
    Create an empty complaint record

    Args:
        description: Initial free-text narrative

    Returns:
        dict: Record with no classification and no fields
    """
    return {
        'domain': None,
        'subcategory': None,
        'description': description,
        'urgencyLevel': None,
        'needsHumanInvestigation': False,
    }


def deep_copy(obj: Any) -> Any:
    """
    Create deep copy of nested dict/list structure.

    Args:
        obj: Object to copy (dict, list, or primitive)

    Returns:
        Deep copy of object
    """
    if isinstance(obj, dict):
        return {k: deep_copy(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [deep_copy(item) for item in obj]
    else:
        return obj


# ========================
# Field-path access
# ========================

_MISSING = object()


def _lookup(record: Dict[str, Any], field_path: str) -> Any:
    container = record
    parts = field_path.split('.')
    for part in parts[:-1]:
        if not isinstance(container.get(part), dict):
            return _MISSING
        container = container[part]
    return container.get(parts[-1], _MISSING)


def get_field(record: Dict[str, Any], field_path: str, default: Any = None) -> Any:
    """
    Get value at a dotted field path.

    Args:
        record: Complaint record
        field_path: Dotted path (e.g. 'billing.amount')
        default: Returned when the path is absent

    Returns:
        Stored value (deep copy) or default

    Example:
        amount = get_field(record, 'billing.amount')
    """
    value = _lookup(record, field_path)
    if value is _MISSING:
        return default
    return deep_copy(value)


def set_field(record: Dict[str, Any], field_path: str, value: Any) -> None:
    """
    Set value at a dotted field path, creating parent containers.

    Args:
        record: Complaint record (modified in place)
        field_path: Dotted path (e.g. 'contactDetails.email')
        value: Value to store (UNKNOWN marks a declined field)

    Raises:
        TypeError: If an intermediate path segment holds a non-dict value
    """
    parts = field_path.split('.')
    container = record
    for part in parts[:-1]:
        if part not in container or container[part] is None:
            container[part] = {}
        if not isinstance(container[part], dict):
            raise TypeError(f"Cannot set {field_path}: {part} is not an object")
        container = container[part]

    container[parts[-1]] = value
    logger.debug(f"Record: {field_path} = {value!r}")


def is_absent(record: Dict[str, Any], field_path: str) -> bool:
    """True if the field was never set"""
    value = _lookup(record, field_path)
    return value is _MISSING or value is None


def is_unknown(record: Dict[str, Any], field_path: str) -> bool:
    """True if the field holds the UNKNOWN sentinel"""
    return _lookup(record, field_path) == UNKNOWN


def is_known(record: Dict[str, Any], field_path: str) -> bool:
    """True if the field holds a real value (present, not unknown, not empty)"""
    if is_absent(record, field_path) or is_unknown(record, field_path):
        return False
    value = _lookup(record, field_path)
    if isinstance(value, (list, str)) and len(value) == 0:
        return False
    return True


def is_resolved(record: Dict[str, Any], field_path: str) -> bool:
    """True if the field is known or explicitly unknown"""
    return is_known(record, field_path) or is_unknown(record, field_path)


def append_description(record: Dict[str, Any], annotation: str) -> None:
    """Append a bracketed annotation to the free-text description"""
    description = record.get('description') or ""
    separator = " " if description else ""
    record['description'] = f"{description}{separator}[{annotation}]"


def format_value(value: Any) -> str:
    """Render a stored value for annotations and summaries"""
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, list):
        return ", ".join(str(item) for item in value)
    return str(value)


def summarize_known_fields(record: Dict[str, Any]) -> str:
    """
    Summarize the fields already resolved, one per line.

    Used as the known-field summary handed to the language port so it does
    not suggest fields the record already holds.

    Returns:
        str: Lines like '- Date of event: 24 Jun 2025', or '(none)'
    """
    lines = []
    for field_path in ALL_FIELD_PATHS:
        if is_resolved(record, field_path):
            value = _lookup(record, field_path)
            lines.append(f"- {get_field_label(field_path)}: {format_value(value)}")
    return "\n".join(lines) if lines else "(none)"

