"""
Clarification Template Registry

User-facing text for the intake dialogue.

Template groups:
- Message templates (MessageTemplateID): restate prompts, skip/correction
  acknowledgements, closing messages. Placeholders use {name} format.
- Per-field tables: fallback question text, bundled bullet text,
  clarification explanations, second-failure guidance.
- Empathy openers keyed by subcategory for the bundled first question.
"""

from enum import Enum
from typing import Dict

from complaint_intake.core.record_model import (
    FIELD_BILLING_AMOUNT,
    FIELD_CONTACT_EMAIL,
    FIELD_CONTACT_NAME,
    FIELD_DATE,
    FIELD_IMPACT,
    FIELD_INSURANCE_STATUS,
    FIELD_IS_PATIENT,
    FIELD_LOCATION,
    FIELD_MEDICATION_NAME,
    FIELD_PEOPLE_ROLE,
    FIELD_TYPE_OF_CARE,
    FIELD_WANTS_CONTACT,
    Subcategory,
)


class MessageTemplateID(str, Enum):
    """
    Template identifiers for non-field messages.

    Naming convention: <PURPOSE>
    """
    RESTATE_COMPLAINT = "restate_complaint"
    VAGUE_COMPLAINT = "vague_complaint"
    SKIP_ACK = "skip_ack"
    CORRECTION_REQUEST = "correction_request"
    DONT_KNOW_AFFORDANCE = "dont_know_affordance"
    BUNDLED_QUESTION = "bundled_question"
    CHOICE_QUESTION = "choice_question"
    CLOSING_WITH_CONTACT = "closing_with_contact"
    CLOSING_WITHOUT_CONTACT = "closing_without_contact"
    ALREADY_SUBMITTED = "already_submitted"


TEMPLATE_TEXT: Dict[MessageTemplateID, str] = {
    MessageTemplateID.RESTATE_COMPLAINT: (
        "I'm having trouble understanding your complaint. "
        "Could you provide more details about what happened?"
    ),
    MessageTemplateID.VAGUE_COMPLAINT: (
        "Thank you for reaching out. To help us look into this, please describe what happened "
        "in one message. It helps to include:\n\n"
        "• When it happened\n"
        "• The service or department (e.g. Emergency, Specialist Clinic, Pharmacy, Ward)\n"
        "• Who was involved (doctor, nurse, receptionist)\n"
        "• What went wrong\n"
        "• How it affected you"
    ),
    MessageTemplateID.SKIP_ACK: "No worries, we'll skip that and move on.",
    MessageTemplateID.CORRECTION_REQUEST: "Thanks for letting me know. Could you share the correct details?",
    MessageTemplateID.DONT_KNOW_AFFORDANCE: "(If you don't know, just say so.)",
    MessageTemplateID.BUNDLED_QUESTION: (
        "{empathy} To help us investigate and respond, could you share:\n\n"
        "{bullets}\n\n"
        "Share what you remember - approximate details are fine. If you don't know something, just say so."
    ),
    MessageTemplateID.CHOICE_QUESTION: (
        "{question}\n\n{options}\n\n"
        "You can reply with the number, a few words, or say you don't know."
    ),
    MessageTemplateID.CLOSING_WITH_CONTACT: (
        "Thank you for sharing this with us. Your complaint has been recorded under reference "
        "{reference} and will be reviewed by our {team} team. As requested, someone will contact "
        "you about the outcome."
    ),
    MessageTemplateID.CLOSING_WITHOUT_CONTACT: (
        "Thank you for sharing this with us. Your complaint has been recorded under reference "
        "{reference} and will be reviewed by our {team} team. Your feedback helps us improve care "
        "at {hospital}."
    ),
    MessageTemplateID.ALREADY_SUBMITTED: (
        "Your complaint has already been submitted under reference {reference}. "
        "Please start a new conversation to raise another concern."
    ),
}


# Single-field question text (used when the language port cannot generate one)
FIELD_QUESTIONS: Dict[str, str] = {
    FIELD_DATE: "When did this happen?",
    FIELD_LOCATION: "Where in the hospital did this happen?",
    FIELD_TYPE_OF_CARE: "Which service or department was this?",
    FIELD_BILLING_AMOUNT: "What was the amount you were charged?",
    FIELD_INSURANCE_STATUS: "How was this care covered?",
    FIELD_MEDICATION_NAME: "Which medication was involved?",
    FIELD_PEOPLE_ROLE: "Who was involved? Their role is enough (for example nurse, doctor or receptionist).",
    FIELD_IMPACT: "How did this affect you?",
    FIELD_WANTS_CONTACT: "Would you like our team to contact you about this? (Yes/No)",
    FIELD_CONTACT_NAME: "What name should we use when we contact you?",
    FIELD_CONTACT_EMAIL: "What email address can we reach you at?",
    FIELD_IS_PATIENT: "Are you the patient? (Yes/No)",
}

# Bullet text inside the bundled first question
BUNDLE_BULLETS: Dict[str, str] = {
    FIELD_DATE: "When did this happen?",
    FIELD_LOCATION: "Where exactly did this occur?",
    FIELD_TYPE_OF_CARE: "Which department or service? (Emergency, Clinic, Ward, etc.)",
    FIELD_PEOPLE_ROLE: "Who was involved? (role or name if known)",
    FIELD_MEDICATION_NAME: "Which medication was involved?",
    FIELD_BILLING_AMOUNT: "What was the amount charged?",
    FIELD_INSURANCE_STATUS: "How the care was covered (insurance, government, self-pay)",
    FIELD_IMPACT: "How did this affect you?",
    FIELD_WANTS_CONTACT: "Would you like us to contact you? (Yes/No)",
    FIELD_CONTACT_NAME: "Your name",
    FIELD_CONTACT_EMAIL: "Your email address",
    FIELD_IS_PATIENT: "Are you the patient? (Yes/No)",
}

# Explanations returned when the user asks what a question means
FIELD_EXPLANATIONS: Dict[str, str] = {
    FIELD_DATE: (
        "I'm asking when this happened, such as the date of your visit or when the issue occurred. "
        "You can say it however is easiest, like \"yesterday\", \"June 24\" or \"last Tuesday\"."
    ),
    FIELD_LOCATION: "I'm asking where this happened. You can name the department, ward, clinic or area of the hospital.",
    FIELD_TYPE_OF_CARE: (
        "I'm asking which service or department you visited. You can reply with the number "
        "or the name of the service. A best guess is fine."
    ),
    FIELD_BILLING_AMOUNT: (
        "I'm asking about the dollar amount on your bill or charge. "
        "If you don't have the bill handy, an approximate amount is fine."
    ),
    FIELD_INSURANCE_STATUS: (
        "I'm asking how this care was paid for, for example employer insurance, government "
        "coverage, private insurance, or no insurance."
    ),
    FIELD_MEDICATION_NAME: (
        "I'm asking for the name of the medication involved. If you don't remember the exact name, "
        "you can describe it (like \"the blood pressure pill\")."
    ),
    FIELD_PEOPLE_ROLE: (
        "I'm asking who you were dealing with, for example a doctor, nurse, receptionist or "
        "billing staff. Just describe them in your own words."
    ),
    FIELD_IMPACT: (
        "I'm asking how this situation affected you. For example, did it cause pain, stress, "
        "extra cost, delayed treatment or time off work?"
    ),
    FIELD_WANTS_CONTACT: (
        "I'm asking if you'd like our team to follow up with you about this complaint. "
        "It's fine if you prefer not to be contacted."
    ),
    FIELD_CONTACT_NAME: "I'm asking what name we should have on file. Your first and last name is fine.",
    FIELD_CONTACT_EMAIL: "I'm asking for an email address we can use to follow up with you.",
    FIELD_IS_PATIENT: "I'm asking whether you are the patient, or submitting this on behalf of someone else.",
}

# Guidance appended on the second failed attempt for a field
FALLBACK_GUIDANCE: Dict[str, str] = {
    FIELD_PEOPLE_ROLE: (
        "If you don't know their name, you can describe them (like 'nurse at registration') "
        "or just say 'nurse' or 'doctor'. If you really don't know, just say 'unsure'."
    ),
    FIELD_DATE: (
        "An approximate time is fine (like 'yesterday afternoon' or 'last week'). "
        "If you can't remember, just say 'unsure'."
    ),
    FIELD_LOCATION: (
        "You can describe it generally (like 'emergency room' or 'ward 5'). "
        "If you're not sure, just say 'unsure'."
    ),
}

DEFAULT_FALLBACK_GUIDANCE = "Approximate is fine. If you're not sure or don't have this information, just say 'unsure'."

EMPATHY_OPENERS: Dict[str, str] = {
    Subcategory.ATTITUDE: "I'm sorry you experienced that.",
    Subcategory.COMMUNICATION: "I'm sorry you experienced that.",
    Subcategory.RESPECT: "I'm sorry you were made to feel that way.",
    Subcategory.PROFESSIONALISM: "I'm sorry you experienced that.",
    Subcategory.MEDICATION: "I'm sorry to hear about this medication concern.",
    Subcategory.WAIT_TIME: "I understand waiting can be frustrating.",
    Subcategory.BILLING: "I understand billing concerns can be stressful.",
    Subcategory.APPOINTMENT: "I'm sorry about the issue with your appointment.",
    Subcategory.FACILITIES: "I'm sorry about the facility issue you experienced.",
    Subcategory.ADMIN_PROCESS: "I'm sorry this process was difficult.",
    Subcategory.DIAGNOSIS: "I'm sorry to hear about your concern with your diagnosis.",
    Subcategory.PROCEDURE: "I'm sorry to hear about your experience with this procedure.",
    Subcategory.SAFETY: "I'm very sorry this happened. Your safety matters to us.",
    Subcategory.FOLLOW_UP: "I'm sorry you didn't get the follow-up you needed.",
}

DEFAULT_EMPATHY = "I'm sorry this happened."


def get_template_text(template_id: str) -> str:
    """
    Get template text for a template ID.

    Args:
        template_id: MessageTemplateID (or its string value)

    Returns:
        str: Template text with {placeholders}

    Raises:
        ValueError: If template_id is not a known MessageTemplateID
    """
    return TEMPLATE_TEXT[MessageTemplateID(template_id)]


def render_template(template_id: str, **values) -> str:
    """Render a message template with its placeholders filled"""
    return get_template_text(template_id).format(**values)


def get_field_question(field_path: str) -> str:
    return FIELD_QUESTIONS.get(field_path, f"Could you tell me the {field_path}?")


def get_bundle_bullet(field_path: str) -> str:
    return BUNDLE_BULLETS.get(field_path, get_field_question(field_path))


def get_field_explanation(field_path: str) -> str:
    return FIELD_EXPLANATIONS.get(field_path, "I'm asking for a bit more detail so our team can look into this.")


def get_fallback_guidance(field_path: str) -> str:
    return FALLBACK_GUIDANCE.get(field_path, DEFAULT_FALLBACK_GUIDANCE)


def get_empathy_opener(subcategory) -> str:
    if subcategory is None:
        return DEFAULT_EMPATHY
    try:
        return EMPATHY_OPENERS[Subcategory(subcategory)]
    except ValueError:
        return DEFAULT_EMPATHY
