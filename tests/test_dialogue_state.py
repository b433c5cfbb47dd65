"""
Unit tests for DialogueState

Tests question bookkeeping, atomic commit/skip and snapshot round-trip
"""

import json

import pytest

from complaint_intake.config import SKIPPED_ATTEMPTS
from complaint_intake.core.dialogue_state import DialoguePhase, DialogueState, QuestionKind
from complaint_intake.core.record_model import (
    FIELD_DATE,
    FIELD_IMPACT,
    FIELD_LOCATION,
    UNKNOWN,
    get_field,
)


@pytest.fixture
def state():
    s = DialogueState.new("abc12345")
    s.record['description'] = "Waited five hours"
    s.record['subcategory'] = "WAIT_TIME"
    s.missing_fields = [FIELD_IMPACT, FIELD_DATE, FIELD_LOCATION]
    return s


class TestConstruction:

    def test_new_state_defaults(self):
        s = DialogueState.new()
        assert len(s.session_id) == 8
        assert s.phase == DialoguePhase.AWAITING_CLASSIFICATION.value
        assert s.current_question is None
        assert s.is_complete is False
        assert s.questions_asked == 0

    def test_copy_is_independent(self, state):
        clone = state.copy()
        clone.record['description'] = "changed"
        clone.missing_fields.pop()
        assert state.record['description'] == "Waited five hours"
        assert len(state.missing_fields) == 3


class TestQuestionBookkeeping:

    def test_record_question_increments_attempts(self, state):
        state.record_question(FIELD_DATE, "When did this happen?", QuestionKind.FREE_TEXT.value)
        assert state.get_attempts(FIELD_DATE) == 1
        assert state.current_field == FIELD_DATE
        assert state.current_question == "When did this happen?"

        state.record_question(FIELD_DATE, "When exactly?", QuestionKind.FREE_TEXT.value)
        assert state.get_attempts(FIELD_DATE) == 2
        assert state.asked_fields == [FIELD_DATE]
        assert state.questions_asked == 1

    def test_uncounted_question_keeps_attempts(self, state):
        state.record_question(FIELD_DATE, "When did this happen?", QuestionKind.FREE_TEXT.value)
        state.record_question(FIELD_DATE, "When did this happen?", QuestionKind.FREE_TEXT.value,
                              count_attempt=False)
        assert state.get_attempts(FIELD_DATE) == 1

    def test_bundled_fields_recorded(self, state):
        state.record_question(FIELD_IMPACT, "bundle", QuestionKind.FREE_TEXT.value,
                              bundled_fields=[FIELD_IMPACT, FIELD_DATE])
        assert state.bundled_fields == [FIELD_IMPACT, FIELD_DATE]
        # Only the lead field counts towards the budget
        assert state.asked_fields == [FIELD_IMPACT]

    def test_clear_question(self, state):
        state.record_question(FIELD_DATE, "When?", QuestionKind.CONFIRMATION.value)
        state.pending_value = "June"
        state.clear_question()
        assert state.current_question is None
        assert state.current_field is None
        assert state.question_kind is None
        assert state.pending_value is None


class TestFieldUpdates:

    def test_commit_value_is_atomic(self, state):
        state.record_question(FIELD_DATE, "When?", QuestionKind.FREE_TEXT.value)
        state.commit_value(FIELD_DATE, "24 Jun 2025")

        assert get_field(state.record, FIELD_DATE) == "24 Jun 2025"
        assert FIELD_DATE not in state.missing_fields
        assert state.get_attempts(FIELD_DATE) == 0
        assert state.record['description'].endswith("[Date of event: 24 Jun 2025]")

    def test_commit_without_annotation(self, state):
        state.commit_value(FIELD_LOCATION, "Ward 5", annotate=False)
        assert state.record['description'] == "Waited five hours"

    def test_commit_does_not_touch_previous_record_object(self, state):
        before = state.record
        state.commit_value(FIELD_DATE, "yesterday")
        assert get_field(before, FIELD_DATE) is None

    def test_mark_skipped(self, state):
        state.mark_skipped(FIELD_IMPACT)
        assert get_field(state.record, FIELD_IMPACT) == UNKNOWN
        assert FIELD_IMPACT not in state.missing_fields
        assert state.get_attempts(FIELD_IMPACT) == SKIPPED_ATTEMPTS

    def test_advance_past_leaves_record(self, state):
        state.advance_past(FIELD_LOCATION)
        assert FIELD_LOCATION not in state.missing_fields
        assert get_field(state.record, FIELD_LOCATION) is None

    def test_defer_returns_field_to_pool(self, state):
        state.record_question(FIELD_IMPACT, "How?", QuestionKind.CHOICE.value)
        state.defer(FIELD_IMPACT)

        assert state.get_attempts(FIELD_IMPACT) == 0
        assert FIELD_IMPACT in state.missing_fields
        assert get_field(state.record, FIELD_IMPACT) is None


class TestSnapshot:

    def test_round_trip(self, state):
        state.record_question(FIELD_DATE, "When?", QuestionKind.FREE_TEXT.value)
        state.add_transcript_turn('user', "hello")

        snapshot = state.to_snapshot()
        json.dumps(snapshot)
        restored = DialogueState.from_snapshot(snapshot)

        assert restored == state
        assert restored.record is not state.record

    def test_rejects_non_dict(self):
        with pytest.raises(ValueError):
            DialogueState.from_snapshot(["not", "a", "dict"])

    def test_rejects_missing_session_id(self, state):
        snapshot = state.to_snapshot()
        snapshot['session_id'] = ""
        with pytest.raises(ValueError):
            DialogueState.from_snapshot(snapshot)

    def test_rejects_unknown_phase(self, state):
        snapshot = state.to_snapshot()
        snapshot['phase'] = "interrogating"
        with pytest.raises(ValueError):
            DialogueState.from_snapshot(snapshot)

    def test_rejects_unexpected_keys(self, state):
        snapshot = state.to_snapshot()
        snapshot['visit_id'] = 1
        with pytest.raises(ValueError):
            DialogueState.from_snapshot(snapshot)
