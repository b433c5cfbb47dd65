"""
Unit tests for the Question Composer
"""

import pytest

from complaint_intake.core.dialogue_state import DialogueState, QuestionKind
from complaint_intake.core.question_composer import (
    QuestionComposer,
    field_question_kind,
    is_confirmation_prompt,
)
from complaint_intake.core.record_model import (
    FIELD_DATE,
    FIELD_IMPACT,
    FIELD_LOCATION,
    FIELD_PEOPLE_ROLE,
    FIELD_TYPE_OF_CARE,
    FIELD_WANTS_CONTACT,
)
from complaint_intake.utils.clarification_templates import (
    FALLBACK_GUIDANCE,
    FIELD_EXPLANATIONS,
)


@pytest.fixture
def composer():
    return QuestionComposer()


@pytest.fixture
def state():
    s = DialogueState.new("sess0001")
    s.record['domain'] = "MANAGEMENT"
    s.record['subcategory'] = "WAIT_TIME"
    return s


def already_asked(state, field_path=FIELD_IMPACT):
    """Put the state past its opening question"""
    state.asked_fields.append(field_path)
    state.field_attempts[field_path] = 1


# ========== Kind Tests ==========

def test_field_question_kind():
    assert field_question_kind(FIELD_TYPE_OF_CARE) == QuestionKind.CHOICE.value
    assert field_question_kind(FIELD_WANTS_CONTACT) == QuestionKind.YES_NO.value
    assert field_question_kind(FIELD_DATE) == QuestionKind.FREE_TEXT.value


@pytest.mark.parametrize("text,expected", [
    ("Just to confirm, was it 3 June?", True),
    ("Is that correct?", True),
    ("When did this happen?", False),
    ("", False),
])
def test_is_confirmation_prompt(text, expected):
    assert is_confirmation_prompt(text) is expected


# ========== Bundled Opener Tests ==========

class TestBundledOpener:

    def test_first_question_is_bundled(self, composer, state):
        state.missing_fields = [FIELD_IMPACT, FIELD_DATE, FIELD_LOCATION, FIELD_TYPE_OF_CARE]

        text = composer.compose_next(state)

        assert text.startswith("I understand waiting can be frustrating.")
        assert text.count("•") == 4
        assert state.bundled_fields == [FIELD_IMPACT, FIELD_DATE, FIELD_LOCATION, FIELD_TYPE_OF_CARE]
        assert state.current_field == FIELD_IMPACT
        assert state.question_kind == QuestionKind.FREE_TEXT.value

    def test_bundle_capped(self, state):
        composer = QuestionComposer(max_bundled=3)
        state.missing_fields = [FIELD_IMPACT, FIELD_DATE, FIELD_LOCATION, FIELD_TYPE_OF_CARE]

        text = composer.compose_next(state)

        assert text.count("•") == 3
        assert FIELD_TYPE_OF_CARE not in state.bundled_fields

    def test_only_lead_field_consumes_attempt(self, composer, state):
        state.missing_fields = [FIELD_IMPACT, FIELD_DATE]
        composer.compose_next(state)

        assert state.get_attempts(FIELD_IMPACT) == 1
        assert state.get_attempts(FIELD_DATE) == 0
        assert state.questions_asked == 1

    def test_single_field_opener_has_no_bullets(self, composer, state):
        state.missing_fields = [FIELD_WANTS_CONTACT]

        text = composer.compose_next(state)

        assert "•" not in text
        assert state.question_kind == QuestionKind.YES_NO.value
        assert state.bundled_fields == []

    def test_opener_never_generated(self, composer, state):
        state.missing_fields = [FIELD_DATE, FIELD_LOCATION]
        assert not composer.needs_generation(state)


# ========== Single Question Tests ==========

class TestSingleQuestions:

    def test_choice_question_lists_options(self, composer, state):
        already_asked(state)
        state.missing_fields = [FIELD_TYPE_OF_CARE]

        text = composer.compose_next(state)

        assert "1. Emergency Department" in text
        assert "10. Other" in text
        assert state.question_kind == QuestionKind.CHOICE.value

    def test_yes_no_question(self, composer, state):
        already_asked(state)
        state.missing_fields = [FIELD_WANTS_CONTACT]

        text = composer.compose_next(state)

        assert "(Yes/No)" in text
        assert state.question_kind == QuestionKind.YES_NO.value

    def test_free_text_uses_generated_question(self, composer, state):
        already_asked(state)
        state.missing_fields = [FIELD_DATE]
        assert composer.needs_generation(state)

        text = composer.compose_next(state, "  \"Which day did you visit the emergency department\"  ")

        assert text.startswith("Which day did you visit the emergency department?")
        assert text.endswith("(If you don't know, just say so.)")

    def test_free_text_falls_back_to_template(self, composer, state):
        already_asked(state)
        state.missing_fields = [FIELD_DATE]

        text = composer.compose_next(state, None)

        assert text.startswith("When did this happen?")

    def test_overlong_generation_rejected(self, composer, state):
        already_asked(state)
        state.missing_fields = [FIELD_DATE]

        text = composer.compose_next(state, "x" * 400)

        assert text.startswith("When did this happen?")

    def test_affordance_not_duplicated(self, composer, state):
        already_asked(state)
        state.missing_fields = [FIELD_DATE]

        text = composer.compose_next(state, "When was this, if you know?")
        assert "just say so" in text

        state.missing_fields = [FIELD_LOCATION]
        text = composer.compose_next(state, "Where was this? It's fine if you don't know.")
        assert "just say so" not in text

    def test_empty_missing_fields_raises(self, composer, state):
        with pytest.raises(ValueError):
            composer.compose_next(state)


# ========== Re-ask Tests ==========

class TestReask:

    def test_reask_consumes_attempt(self, composer, state):
        already_asked(state, FIELD_DATE)
        state.record_question(FIELD_DATE, "When?", QuestionKind.FREE_TEXT.value)

        composer.compose_reask(state, "That date looks wrong. When was it?")

        assert state.get_attempts(FIELD_DATE) == 3

    def test_reask_with_guidance(self, composer, state):
        state.record_question(FIELD_PEOPLE_ROLE, "Who?", QuestionKind.FREE_TEXT.value)

        text = composer.compose_reask(state, "Could you tell me who it was?", with_guidance=True)

        assert text.endswith(FALLBACK_GUIDANCE[FIELD_PEOPLE_ROLE])

    def test_confirmation_reask_sets_kind(self, composer, state):
        state.record_question(FIELD_DATE, "When?", QuestionKind.FREE_TEXT.value)

        composer.compose_reask(state, "Just to confirm, did this happen on 3 June?")

        assert state.question_kind == QuestionKind.CONFIRMATION.value

    def test_choice_reask_repeats_options(self, composer, state):
        state.record_question(FIELD_TYPE_OF_CARE, "Which?", QuestionKind.CHOICE.value)

        text = composer.compose_reask(state, "I couldn't match that to a service.")

        assert "1. Emergency Department" in text

    def test_correction(self, composer, state):
        state.record_question(FIELD_DATE, "Just to confirm, 3 June?", QuestionKind.CONFIRMATION.value)

        text = composer.compose_correction(state)

        assert text.startswith("Thanks for letting me know.")
        assert state.question_kind == QuestionKind.FREE_TEXT.value
        assert state.get_attempts(FIELD_DATE) == 2


# ========== Explanation Tests ==========

class TestExplanation:

    def test_explanation_repeats_question_without_attempt(self, composer, state):
        state.record_question(FIELD_DATE, "When did this happen?", QuestionKind.FREE_TEXT.value)

        text = composer.compose_explanation(state)

        assert text == f"{FIELD_EXPLANATIONS[FIELD_DATE]}\n\nWhen did this happen?"
        assert state.get_attempts(FIELD_DATE) == 1
        assert state.current_question == "When did this happen?"

    def test_explanation_keeps_bundle(self, composer, state):
        state.missing_fields = [FIELD_IMPACT, FIELD_DATE]
        composer.compose_next(state)

        composer.compose_explanation(state)

        assert state.bundled_fields == [FIELD_IMPACT, FIELD_DATE]
