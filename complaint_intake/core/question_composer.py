"""
Question Composer - Turns the next missing field into user-facing text

Strategies:
- Bundled opener: first question of a conversation; empathy line keyed by
  subcategory plus up to MAX_BUNDLED_QUESTIONS bullet sub-questions
- Enumerated fields: numbered options list
- Yes/no fields: direct yes/no prompt
- Free-text fields: port-generated (or templated) short question with an
  explicit "if you don't know, say so" affordance

Every emission goes through DialogueState.record_question(), which bumps
the field's attempt counter and sets the outstanding question. Explanations
(CLARIFY) re-ask without consuming an attempt.

The composer never calls the language port itself: the orchestrator fetches
generated text (bounded by its timeout) and passes it in.
"""

import logging
import re
from typing import Optional

from complaint_intake.config import MAX_BUNDLED_QUESTIONS
from complaint_intake.core.dialogue_state import DialogueState, QuestionKind
from complaint_intake.core.record_model import ENUM_FIELDS, YES_NO_FIELDS
from complaint_intake.utils.clarification_templates import (
    MessageTemplateID,
    get_bundle_bullet,
    get_empathy_opener,
    get_fallback_guidance,
    get_field_explanation,
    get_field_question,
    get_template_text,
    render_template,
)
from complaint_intake.utils.field_mappings import get_options, render_options

logger = logging.getLogger(__name__)

CONFIRMATION_PATTERN = re.compile(
    r"just to confirm|is (this|that) (correct|right)|please confirm|"
    r"(can|could) you confirm|did you mean|do you mean",
    re.IGNORECASE,
)

DONT_KNOW_PATTERN = re.compile(r"(don'?t|do not) know|not sure|unsure", re.IGNORECASE)

MAX_GENERATED_CHARS = 160


def field_question_kind(field_path: str) -> str:
    """QuestionKind value for a field's own question"""
    if field_path in ENUM_FIELDS:
        return QuestionKind.CHOICE.value
    if field_path in YES_NO_FIELDS:
        return QuestionKind.YES_NO.value
    return QuestionKind.FREE_TEXT.value


def is_confirmation_prompt(text: str) -> bool:
    return bool(text) and CONFIRMATION_PATTERN.search(text) is not None


class QuestionComposer:
    """Builds question text and registers it on the dialogue state"""

    def __init__(self, max_bundled: int = MAX_BUNDLED_QUESTIONS):
        self.max_bundled = max_bundled
        logger.info(f"Question Composer initialized (max_bundled={max_bundled})")

    # ========================
    # Strategy selection
    # ========================

    def needs_generation(self, state: DialogueState) -> bool:
        """True if the next question is free text that the port may phrase"""
        if not state.missing_fields or self.is_bundled_turn(state):
            return False
        return field_question_kind(state.missing_fields[0]) == QuestionKind.FREE_TEXT.value

    def is_bundled_turn(self, state: DialogueState) -> bool:
        """The first question of a conversation is bundled"""
        return not state.asked_fields and bool(state.missing_fields)

    # ========================
    # Emission
    # ========================

    def compose_next(self, state: DialogueState, generated_question: Optional[str] = None) -> str:
        """
        Emit the question for the head of missing_fields.

        Args:
            state: Dialogue state (modified: attempt counter, current question)
            generated_question: Port-generated text for free-text fields

        Returns:
            str: Question text

        Raises:
            ValueError: If there is nothing left to ask
        """
        if not state.missing_fields:
            raise ValueError("compose_next called with no missing fields")

        if self.is_bundled_turn(state):
            return self._compose_bundled(state)

        field_path = state.missing_fields[0]
        text = self._field_question_text(field_path, generated_question)
        state.record_question(field_path, text, field_question_kind(field_path))
        return text

    def compose_reask(self, state: DialogueState, clarification_text: Optional[str] = None,
                      with_guidance: bool = False) -> str:
        """
        Re-ask the outstanding field after a failed validation.

        Args:
            state: Dialogue state with an outstanding field
            clarification_text: Message explaining what was wrong
            with_guidance: Append fallback guidance (second failed attempt)

        Returns:
            str: Re-ask text
        """
        field_path = state.current_field
        lead = clarification_text or f"I want to make sure I have this right. {get_field_question(field_path)}"

        parts = [lead]
        kind = field_question_kind(field_path)

        if is_confirmation_prompt(lead):
            kind = QuestionKind.CONFIRMATION.value
        elif kind == QuestionKind.CHOICE.value and clarification_text:
            parts.append(render_options(get_options(field_path)))

        if with_guidance:
            parts.append(get_fallback_guidance(field_path))

        text = "\n\n".join(parts)
        state.record_question(field_path, text, kind)
        return text

    def compose_correction(self, state: DialogueState) -> str:
        """Ask for corrected details after the user rejects a confirmation"""
        field_path = state.current_field
        text = get_template_text(MessageTemplateID.CORRECTION_REQUEST)

        options = get_options(field_path)
        if options:
            text = f"{text}\n\n{render_options(options)}"

        state.record_question(field_path, text, field_question_kind(field_path))
        return text

    def compose_explanation(self, state: DialogueState) -> str:
        """
        Explain the outstanding question and repeat it.

        Does not consume an attempt; the outstanding question is unchanged.
        """
        field_path = state.current_field
        explanation = get_field_explanation(field_path)
        question = state.current_question or get_field_question(field_path)

        state.record_question(
            field_path, question, state.question_kind or field_question_kind(field_path),
            bundled_fields=state.bundled_fields, count_attempt=False
        )
        return f"{explanation}\n\n{question}"

    # ========================
    # Text builders
    # ========================

    def _compose_bundled(self, state: DialogueState) -> str:
        fields = state.missing_fields[:self.max_bundled]
        lead = fields[0]
        empathy = get_empathy_opener(state.record.get('subcategory'))

        if len(fields) == 1:
            text = f"{empathy} {self._field_question_text(lead, None)}"
            state.record_question(lead, text, field_question_kind(lead))
            return text

        bullets = "\n".join(f"• {get_bundle_bullet(f)}" for f in fields)
        text = render_template(MessageTemplateID.BUNDLED_QUESTION, empathy=empathy, bullets=bullets)
        state.record_question(lead, text, QuestionKind.FREE_TEXT.value, bundled_fields=fields)
        logger.debug(f"Bundled opener covering {fields}")
        return text

    def _field_question_text(self, field_path: str, generated_question: Optional[str]) -> str:
        kind = field_question_kind(field_path)

        if kind == QuestionKind.CHOICE.value:
            return render_template(
                MessageTemplateID.CHOICE_QUESTION,
                question=get_field_question(field_path),
                options=render_options(get_options(field_path)),
            )

        if kind == QuestionKind.YES_NO.value:
            return get_field_question(field_path)

        question = self._clean_generated(generated_question) or get_field_question(field_path)
        return self._with_affordance(question)

    def _clean_generated(self, text: Optional[str]) -> Optional[str]:
        if not text:
            return None
        text = text.strip().strip('"\'').strip()
        if not text or len(text) > MAX_GENERATED_CHARS:
            return None
        if not text.endswith("?"):
            text = text.rstrip(".!") + "?"
        return text

    def _with_affordance(self, question: str) -> str:
        if DONT_KNOW_PATTERN.search(question):
            return question
        return f"{question} {get_template_text(MessageTemplateID.DONT_KNOW_AFFORDANCE)}"
