"""
Unit tests for ConversationMetrics
"""

import json

import pytest

from complaint_intake.core.dialogue_state import DialogueState
from complaint_intake.core.record_model import FIELD_DATE, FIELD_LOCATION
from complaint_intake.metrics import ConversationMetrics, has_valid_outcome


@pytest.fixture
def metrics(tmp_path):
    return ConversationMetrics(tmp_path / "nested" / "metrics.ndjson")


@pytest.fixture
def finished_state():
    state = DialogueState.new("abcd1234")
    state.record['subcategory'] = "WAIT_TIME"
    state.record['urgencyLevel'] = "MEDIUM"
    state.add_transcript_turn('user', "I waited five hours")
    state.add_transcript_turn('assistant', "When did this happen?")
    state.add_transcript_turn('user', "Yesterday")
    state.add_transcript_turn('assistant', "Thank you.")
    state.asked_fields = [FIELD_DATE]
    state.is_complete = True
    return state


class TestRecordConversation:

    def test_entry_fields(self, metrics, finished_state):
        entry = metrics.record_conversation(finished_state, 812.44)

        assert entry['sessionId'] == "abcd1234"
        assert entry['isComplete'] is True
        assert entry['hadValidOutcome'] is True
        assert entry['complaintType'] == "WAIT_TIME"
        assert entry['urgency'] == "MEDIUM"
        assert entry['totalLatencyMs'] == 812.4
        assert entry['totalUtterances'] == 4
        assert entry['userUtterances'] == 2
        assert entry['botUtterances'] == 2
        assert entry['missingFieldsAtEnd'] == 0
        assert entry['questionsAsked'] == 1

    def test_appends_one_line(self, metrics, finished_state):
        entry = metrics.record_conversation(finished_state, 10.0)

        lines = metrics.file_path.read_text(encoding='utf-8').splitlines()
        assert len(lines) == 1
        assert json.loads(lines[0]) == entry

    def test_abandoned_unclassified_conversation(self, metrics):
        state = DialogueState.new()
        state.add_transcript_turn('user', "hello")

        entry = metrics.record_conversation(state, 5.0)

        assert entry['isComplete'] is False
        assert entry['hadValidOutcome'] is False
        assert entry['complaintType'] is None


class TestSnapshot:

    def test_empty(self, metrics):
        snapshot = metrics.snapshot()
        assert snapshot['totalConversations'] == 0
        assert snapshot['completionRate'] == 0.0

    def test_aggregates(self, metrics, finished_state):
        metrics.record_conversation(finished_state, 100.0)

        abandoned = DialogueState.new()
        abandoned.record['subcategory'] = "WAIT_TIME"
        abandoned.missing_fields = [FIELD_DATE, FIELD_LOCATION]
        abandoned.add_transcript_turn('user', "I waited")
        abandoned.add_transcript_turn('assistant', "When?")
        metrics.record_conversation(abandoned, 300.0)

        snapshot = metrics.snapshot()

        assert snapshot['totalConversations'] == 2
        assert snapshot['completionRate'] == 50.0
        assert snapshot['validOutcomeRate'] == 100.0
        assert snapshot['avgLatencyMs'] == 200.0
        assert snapshot['avgUtterancesPerTask'] == 3.0
        assert snapshot['avgQuestionsAsked'] == 0.5

    def test_malformed_lines_skipped(self, metrics, finished_state):
        metrics.record_conversation(finished_state, 50.0)
        with open(metrics.file_path, 'a', encoding='utf-8') as f:
            f.write("{broken\n")

        assert metrics.snapshot()['totalConversations'] == 1


@pytest.mark.parametrize("is_complete,missing,provided,expected", [
    (True, 5, False, True),
    (False, 2, True, True),
    (False, 3, True, False),
    (False, 0, False, False),
])
def test_has_valid_outcome(is_complete, missing, provided, expected):
    assert has_valid_outcome(is_complete, missing, provided) is expected
