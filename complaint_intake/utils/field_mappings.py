"""
Field value mappings for normalization

Maps user replies for enumerated fields to canonical values.
Used by the Response Validator (deterministic tier) and the Question
Composer (numbered options lists).

Matching order for a reply:
1. Leading integer -> option by 1-based index
2. Exact synonym match
3. Substring match (word-bounded, longest synonym first)
Unmatched text is returned as None so the caller can pass it through.
"""

import re
from typing import Dict, List, Optional, Sequence

from complaint_intake.core.record_model import (
    FIELD_IMPACT,
    FIELD_INSURANCE_STATUS,
    FIELD_TYPE_OF_CARE,
)


# ========================
# Canonical option lists (display order = numbering)
# ========================

TYPE_OF_CARE_OPTIONS = [
    'Emergency Department',
    'Specialist Clinic',
    'Surgery',
    'Endoscopy',
    'Dialysis',
    'Laboratory/Blood Test',
    'Radiology/Imaging',
    'Pharmacy',
    'Inpatient Ward',
    'Other',
]

IMPACT_OPTIONS = [
    'Physical symptoms worsened or new symptoms',
    'Emotional stress or anxiety',
    'Financial cost or unexpected charges',
    'Treatment delay or missed care',
    'Daily life affected (work/school/family)',
    'Safety risk or harm',
    'Other',
]

INSURANCE_STATUS_OPTIONS = [
    'Employer insurance',
    'Government coverage',
    'Private insurance',
    'No insurance',
    'Unknown or unsure',
]


# ========================
# Synonym tables
# ========================

TYPE_OF_CARE_MAP = {
    # Emergency
    'emergency': 'Emergency Department',
    'emergency department': 'Emergency Department',
    'emergency room': 'Emergency Department',
    'a&e': 'Emergency Department',
    'a and e': 'Emergency Department',
    'er': 'Emergency Department',
    'ed': 'Emergency Department',
    'casualty': 'Emergency Department',

    # Specialist / outpatient
    'specialist': 'Specialist Clinic',
    'specialist clinic': 'Specialist Clinic',
    'clinic': 'Specialist Clinic',
    'outpatient': 'Specialist Clinic',
    'consultation': 'Specialist Clinic',
    'soc': 'Specialist Clinic',

    # Surgery
    'surgery': 'Surgery',
    'operation': 'Surgery',
    'day surgery': 'Surgery',
    'surgical': 'Surgery',
    'operating theatre': 'Surgery',

    'endoscopy': 'Endoscopy',
    'scope': 'Endoscopy',
    'colonoscopy': 'Endoscopy',
    'gastroscopy': 'Endoscopy',

    'dialysis': 'Dialysis',
    'haemodialysis': 'Dialysis',
    'hemodialysis': 'Dialysis',

    # Diagnostics
    'lab': 'Laboratory/Blood Test',
    'laboratory': 'Laboratory/Blood Test',
    'blood test': 'Laboratory/Blood Test',
    'blood draw': 'Laboratory/Blood Test',
    'phlebotomy': 'Laboratory/Blood Test',
    'radiology': 'Radiology/Imaging',
    'imaging': 'Radiology/Imaging',
    'x-ray': 'Radiology/Imaging',
    'xray': 'Radiology/Imaging',
    'scan': 'Radiology/Imaging',
    'mri': 'Radiology/Imaging',
    'ct': 'Radiology/Imaging',
    'ultrasound': 'Radiology/Imaging',

    'pharmacy': 'Pharmacy',
    'pharmacist': 'Pharmacy',
    'dispensary': 'Pharmacy',

    'ward': 'Inpatient Ward',
    'inpatient': 'Inpatient Ward',
    'admitted': 'Inpatient Ward',
    'admission': 'Inpatient Ward',

    'other': 'Other',
}

IMPACT_MAP = {
    # Physical
    'physical': 'Physical symptoms worsened or new symptoms',
    'symptoms': 'Physical symptoms worsened or new symptoms',
    'pain': 'Physical symptoms worsened or new symptoms',
    'worse': 'Physical symptoms worsened or new symptoms',
    'worsened': 'Physical symptoms worsened or new symptoms',
    'sick': 'Physical symptoms worsened or new symptoms',
    'health': 'Physical symptoms worsened or new symptoms',

    # Emotional
    'emotional': 'Emotional stress or anxiety',
    'stress': 'Emotional stress or anxiety',
    'stressed': 'Emotional stress or anxiety',
    'anxiety': 'Emotional stress or anxiety',
    'anxious': 'Emotional stress or anxiety',
    'upset': 'Emotional stress or anxiety',
    'frustrated': 'Emotional stress or anxiety',
    'humiliated': 'Emotional stress or anxiety',
    'worried': 'Emotional stress or anxiety',

    # Financial
    'financial': 'Financial cost or unexpected charges',
    'money': 'Financial cost or unexpected charges',
    'cost': 'Financial cost or unexpected charges',
    'charges': 'Financial cost or unexpected charges',
    'overcharged': 'Financial cost or unexpected charges',
    'expensive': 'Financial cost or unexpected charges',

    # Delay
    'delay': 'Treatment delay or missed care',
    'delayed': 'Treatment delay or missed care',
    'missed': 'Treatment delay or missed care',
    'missed care': 'Treatment delay or missed care',
    'missed appointment': 'Treatment delay or missed care',
    'postponed': 'Treatment delay or missed care',

    # Daily life
    'daily life': 'Daily life affected (work/school/family)',
    'work': 'Daily life affected (work/school/family)',
    'job': 'Daily life affected (work/school/family)',
    'school': 'Daily life affected (work/school/family)',
    'family': 'Daily life affected (work/school/family)',
    'time off': 'Daily life affected (work/school/family)',

    # Safety
    'safety': 'Safety risk or harm',
    'unsafe': 'Safety risk or harm',
    'harm': 'Safety risk or harm',
    'harmed': 'Safety risk or harm',
    'injury': 'Safety risk or harm',
    'injured': 'Safety risk or harm',
    'danger': 'Safety risk or harm',
    'dangerous': 'Safety risk or harm',

    'other': 'Other',
}

INSURANCE_STATUS_MAP = {
    'employer': 'Employer insurance',
    'company': 'Employer insurance',
    'work insurance': 'Employer insurance',
    'corporate': 'Employer insurance',

    'government': 'Government coverage',
    'medisave': 'Government coverage',
    'medishield': 'Government coverage',
    'medifund': 'Government coverage',
    'subsidy': 'Government coverage',
    'subsidised': 'Government coverage',
    'subsidized': 'Government coverage',

    'private': 'Private insurance',
    'private insurance': 'Private insurance',
    'integrated shield': 'Private insurance',
    'insured': 'Private insurance',

    'no insurance': 'No insurance',
    'uninsured': 'No insurance',
    'self pay': 'No insurance',
    'self-pay': 'No insurance',
    'out of pocket': 'No insurance',
    'none': 'No insurance',

    'unsure': 'Unknown or unsure',
    'not sure': 'Unknown or unsure',
    'unknown': 'Unknown or unsure',
}

# Boolean mappings (yes/no responses)
BOOLEAN_MAP = {
    # True
    'yes': True,
    'yeah': True,
    'yep': True,
    'yup': True,
    'y': True,
    'sure': True,
    'ok': True,
    'okay': True,
    'please': True,
    'yes please': True,
    'of course': True,
    'correct': True,
    'true': True,
    'i am': True,
    "i'm the patient": True,
    'i am the patient': True,
    'me': True,

    # False
    'no': False,
    'nope': False,
    'nah': False,
    'n': False,
    'no thanks': False,
    'no thank you': False,
    'not needed': False,
    'false': False,
    'someone else': False,
    'on behalf': False,
    'family member': False,
}

# Field name -> (options, synonym table)
ENUM_TABLES = {
    FIELD_TYPE_OF_CARE: (TYPE_OF_CARE_OPTIONS, TYPE_OF_CARE_MAP),
    FIELD_IMPACT: (IMPACT_OPTIONS, IMPACT_MAP),
    FIELD_INSURANCE_STATUS: (INSURANCE_STATUS_OPTIONS, INSURANCE_STATUS_MAP),
}


def _normalize(text: str) -> str:
    return re.sub(r"\s+", " ", text.lower().strip()).strip(" .!,;")


def _contains_phrase(text: str, phrase: str) -> bool:
    return re.search(rf"(?<![\w]){re.escape(phrase)}(?![\w])", text) is not None


def get_options(field_name: str) -> Optional[List[str]]:
    """Numbered option list for an enumerated field (None if not enumerated)"""
    table = ENUM_TABLES.get(field_name)
    return list(table[0]) if table else None


def map_to_canonical(text: str, options: Sequence[str], synonyms: Dict[str, str]) -> Optional[str]:
    """
    Map a reply to a single canonical option

    Args:
        text: Raw reply (e.g. "2", "the ER", "specialist clinic")
        options: Canonical options in display order
        synonyms: Synonym -> canonical table

    Returns:
        str: Canonical option, or None if nothing matched

    Examples:
        >>> map_to_canonical("1", TYPE_OF_CARE_OPTIONS, TYPE_OF_CARE_MAP)
        'Emergency Department'
        >>> map_to_canonical("went to the A&E", TYPE_OF_CARE_OPTIONS, TYPE_OF_CARE_MAP)
        'Emergency Department'
    """
    if not text:
        return None

    normalized = _normalize(text)

    # A standalone leading integer ("2", "2.", "2 - emergency") selects by index
    number_match = re.match(r"^(\d{1,2})(?=\s*(?:[.):\-]|$))", normalized)
    if number_match:
        index = int(number_match.group(1)) - 1
        if 0 <= index < len(options):
            return options[index]

    # Exact canonical or synonym match
    for option in options:
        if normalized == option.lower():
            return option
    if normalized in synonyms:
        return synonyms[normalized]

    # Substring match, longest phrase first so "day surgery" beats "surgery"
    for option in sorted(options, key=len, reverse=True):
        if _contains_phrase(normalized, option.lower()):
            return option
    for phrase in sorted(synonyms, key=len, reverse=True):
        if _contains_phrase(normalized, phrase):
            return synonyms[phrase]

    # Reply contained inside a canonical name ("blood" -> "Laboratory/Blood Test")
    if len(normalized) >= 4:
        for option in options:
            if normalized in option.lower():
                return option

    return None


def map_all_to_canonical(text: str, options: Sequence[str], synonyms: Dict[str, str]) -> List[str]:
    """
    Map a reply to every canonical option it mentions (multi-select)

    Accepts several indices ("1 and 3", "2, 4") and several synonyms
    ("stress and I missed work"). Result keeps option order, no duplicates.

    Returns:
        list: Canonical options (empty if nothing matched)
    """
    if not text:
        return []

    normalized = _normalize(text)
    found = set()

    # Indices count only as a bare list ("1, 3") or a leading choice ("2 - stress")
    if re.fullmatch(r"\d{1,2}(\s*(,|and|&)?\s*\d{1,2})*", normalized):
        numbers = re.findall(r"\d{1,2}", normalized)
    else:
        numbers = re.findall(r"^(\d{1,2})(?=\s*(?:[.):\-]|$))", normalized)

    for number in numbers:
        index = int(number) - 1
        if 0 <= index < len(options):
            found.add(options[index])

    for option in options:
        if _contains_phrase(normalized, option.lower()):
            found.add(option)
    for phrase, canonical in synonyms.items():
        if _contains_phrase(normalized, phrase):
            found.add(canonical)

    return [option for option in options if option in found]


def standardize_enum_value(field_name: str, raw_value: str):
    """
    Standardize a reply for an enumerated field

    Args:
        field_name: Enumerated field path
        raw_value: Reply or extracted text

    Returns:
        str | list | None: Canonical value (list for impact), None if unmatched
    """
    if field_name not in ENUM_TABLES:
        return None

    options, synonyms = ENUM_TABLES[field_name]

    if field_name == FIELD_IMPACT:
        matched = map_all_to_canonical(raw_value, options, synonyms)
        return matched or None

    return map_to_canonical(raw_value, options, synonyms)


def standardize_boolean(raw_value) -> Optional[bool]:
    """
    Map a yes/no style reply to a boolean

    Returns:
        bool: Mapped value, or None if the reply is not a recognisable yes/no
    """
    if isinstance(raw_value, bool):
        return raw_value
    if raw_value is None:
        return None

    normalized = _normalize(str(raw_value))
    if normalized in BOOLEAN_MAP:
        return BOOLEAN_MAP[normalized]

    # "yes, please call me" / "no, that's fine"
    first_word = normalized.split(" ", 1)[0].strip(",")
    if first_word in ('yes', 'yeah', 'yep', 'sure'):
        return True
    if first_word in ('no', 'nope', 'nah'):
        return False

    for phrase in sorted(BOOLEAN_MAP, key=len, reverse=True):
        if len(phrase) > 3 and _contains_phrase(normalized, phrase):
            return BOOLEAN_MAP[phrase]

    return None


def render_options(options: Sequence[str]) -> str:
    """Render a numbered options list, one per line"""
    return "\n".join(f"{number}. {option}" for number, option in enumerate(options, start=1))
