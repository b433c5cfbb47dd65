"""
Prompt Builder - Intake prompts for the HuggingFace language port

Responsibilities:
- Build one prompt per port operation (classify, select fields,
  generate question, extract value, judge validity, classify intent)
- Embed the taxonomy and field vocabulary so output can be checked

NOT responsible for:
- Model-specific formatting (PromptFormatter)
- Parsing model output (HuggingFaceLanguagePort)

Design principles:
- Fail-fast validation (no partial builds)
- Deterministic text for a given input
"""

import logging
from typing import Any, Dict, List

from complaint_intake.core.record_model import (
    SUBCATEGORIES_BY_DOMAIN,
    get_field_label,
)

logger = logging.getLogger(__name__)


class PromptBuildError(Exception):
    """Raised when a prompt cannot be built from the given inputs"""
    pass


FIELD_PURPOSES = {
    "event.date": "when the incident happened",
    "event.location": "where in the hospital it happened (ward, clinic, building)",
    "typeOfCare": "which service or department was involved",
    "billing.amount": "the amount on the bill",
    "billing.insuranceStatus": "how the care was paid for or insured",
    "medication.name": "the name of the medication involved",
    "people.role": "the role of the staff member involved (nurse, doctor, receptionist)",
    "impact": "how the incident affected the patient",
    "contactDetails.wantsContact": "whether they want the hospital to contact them",
    "contactDetails.name": "the complainant's name",
    "contactDetails.email": "the complainant's email address",
    "contactDetails.isPatient": "whether the complainant is the patient",
}


def _require(value: Any, name: str) -> None:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise PromptBuildError(f"Cannot build prompt: {name} is empty")


def _taxonomy_block() -> str:
    lines = []
    for domain, subcategories in SUBCATEGORIES_BY_DOMAIN.items():
        names = ", ".join(s.value for s in subcategories)
        lines.append(f"{domain.value}: {names}")
    return "\n".join(lines)


def build_classification_prompt(text: str, hospital_name: str = "") -> str:
    """
    Prompt for classify(): domain, subcategory, summary, mentioned details.

    Args:
        text: Opening complaint narrative
        hospital_name: Hospital the complaint is about

    Returns:
        str: Prompt text

    Raises:
        PromptBuildError: If text is empty
    """
    _require(text, "complaint text")
    hospital_line = f"Hospital: {hospital_name}\n\n" if hospital_name else ""

    return f"""Classify this patient complaint and extract details already mentioned.

{hospital_line}Domains and subcategories:
{_taxonomy_block()}

Complaint:
"{text.strip()}"

If the message is only a greeting or does not describe any problem, use null for domain and subcategory.

Respond ONLY with JSON:
{{
  "domain": "CLINICAL" | "MANAGEMENT" | "RELATIONSHIP" | null,
  "subcategory": "<subcategory from the list>" | null,
  "description": "<one sentence summary>",
  "extractedFields": {{
    "eventDate": "<if a date was mentioned>",
    "location": "<if a place was mentioned>",
    "typeOfCare": "<if a service or department was mentioned>",
    "amount": "<if an amount was mentioned>",
    "insuranceStatus": "<if insurance was mentioned>",
    "medicationName": "<if a medication was mentioned>",
    "staffRole": "<if a staff role was mentioned>",
    "impact": "<if the effect on the patient was mentioned>"
  }}
}}

Only include extractedFields that were explicitly mentioned."""


def build_missing_fields_prompt(record: Dict[str, Any], known_field_summary: str,
                                candidate_fields: List[str]) -> str:
    """
    Prompt for select_missing_fields(): which candidate fields are still needed.

    Raises:
        PromptBuildError: If the record is unclassified or no candidates given
    """
    _require(record.get('subcategory'), "subcategory")
    if not candidate_fields:
        raise PromptBuildError("Cannot build prompt: no candidate fields")

    candidates = "\n".join(
        f'- "{path}": {FIELD_PURPOSES.get(path, get_field_label(path))}'
        for path in candidate_fields
    )

    return f"""Decide which details are still genuinely needed to handle this hospital complaint.

Complaint type: {record['subcategory']} ({record.get('domain')})
Complaint: "{record.get('description', '')}"

Already collected:
{known_field_summary}

Candidate fields:
{candidates}

Rules:
- Only include a field if it is NOT already clear from the complaint or the collected details
- Be selective: a detailed, specific complaint may need nothing more
- Use only field names from the candidate list

Respond ONLY with a JSON array, e.g. ["event.date", "impact"] or []."""


def build_question_prompt(field_path: str, context: Dict[str, Any]) -> str:
    """Prompt for generate_question(): one short empathetic question."""
    _require(field_path, "field_path")

    purpose = FIELD_PURPOSES.get(field_path, get_field_label(field_path))
    return f"""Write ONE short, caring question (10-15 words) for a hospital complaint intake.

Complaint type: {context.get('subcategory', 'unknown')}
Complaint: "{context.get('description', '')}"
Information needed: {purpose}

Examples:
- "When did this happen?"
- "Which department or service was this in?"
- "Who did you speak with about this?"

Respond with ONLY the question."""


def build_extraction_prompt(question: str, field_path: str, reply: str) -> str:
    """Prompt for extract_value(): the value for one field, or UNKNOWN."""
    _require(question, "question")
    _require(field_path, "field_path")
    _require(reply, "reply")

    purpose = FIELD_PURPOSES.get(field_path, get_field_label(field_path))
    return f"""Extract one value from a patient's reply.

Question asked: "{question}"
Field to extract: {field_path} ({purpose})
Reply: "{reply}"

If the reply does not contain this information, respond with UNKNOWN.
Respond ONLY with the extracted value, nothing else."""


def build_validity_prompt(question: str, reply: str, record_context: Dict[str, Any]) -> str:
    """Prompt for judge_validity(): contradiction, vagueness, invalidity."""
    _require(question, "question")
    _require(reply, "reply")

    field_path = record_context.get('field_path', '')
    purpose = FIELD_PURPOSES.get(field_path, field_path or "the question asked")

    return f"""Check whether a patient's answer fits the question in a hospital complaint intake.

Question: "{question}"
Answer: "{reply}"
Information wanted: {purpose}
Complaint type: {record_context.get('subcategory', 'unknown')}

Checks:
1. contradiction: the answer gives the wrong kind of information (a date when a place was asked)
2. vague: the answer is too unspecific to be useful ("it was bad" for impact)
3. invalid: the answer is impossible or gibberish
Uncertain but specific answers ("a nurse I think", "around March") are fine.

Respond ONLY with JSON:
{{"contradiction": true|false, "vague": true|false, "invalid": true|false, "clarificationQuestion": "<follow-up question or null>"}}"""


def build_intent_prompt(question: str, reply: str) -> str:
    """Prompt for classify_intent(): ANSWER, CLARIFY or SKIP."""
    _require(question, "question")

    return f"""A patient replied to a question during a hospital complaint intake.

Question: "{question}"
Reply: "{reply}"

Is the reply:
- ANSWER: an answer to the question
- CLARIFY: asking what the question means
- SKIP: declining or unable to answer ("I don't know", "not applicable")

Respond with ONLY one word: ANSWER, CLARIFY or SKIP"""
