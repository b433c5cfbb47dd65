"""
Unit tests for HuggingFaceLanguagePort

Uses a mock client returning canned model output; no model is loaded.
"""

import json
from unittest.mock import Mock

import pytest

from complaint_intake.core.hf_language_port import HuggingFaceLanguagePort
from complaint_intake.core.language_port import EXTRACTION_UNKNOWN, PortError
from complaint_intake.core.record_model import (
    FIELD_DATE,
    FIELD_IMPACT,
    FIELD_LOCATION,
    new_record,
)


class MockHFClient:
    """Mock HuggingFace client for testing"""

    def __init__(self, response="", loaded=True):
        self.response = response
        self.loaded = loaded
        self.prompts = []
        self.kwargs = []

    def is_loaded(self):
        return self.loaded

    def generate(self, prompt, max_tokens=128, temperature=0.3):
        self.prompts.append(prompt)
        return self.response

    def generate_json(self, prompt, max_tokens=256, temperature=0.0, **kwargs):
        self.prompts.append(prompt)
        self.kwargs.append(kwargs)
        return self.response


def make_port(response):
    client = MockHFClient(response)
    return HuggingFaceLanguagePort(client, hospital_name="Test General"), client


# ========== Initialization Tests ==========

class TestInitialization:

    def test_missing_methods(self):
        with pytest.raises(TypeError):
            HuggingFaceLanguagePort(Mock(spec=[]))

        partial_client = Mock(spec=['is_loaded', 'generate'])
        with pytest.raises(TypeError):
            HuggingFaceLanguagePort(partial_client)

    def test_model_not_loaded(self):
        client = Mock()
        client.is_loaded.return_value = False
        with pytest.raises(RuntimeError):
            HuggingFaceLanguagePort(client)


# ========== classify Tests ==========

class TestClassify:

    def test_valid_classification(self):
        port, client = make_port(json.dumps({
            'domain': "management",
            'subcategory': "WAIT_TIME",
            'description': "Waited five hours in the ED",
            'extractedFields': {'typeOfCare': "ED", 'location': "", 'bogus': "x"},
        }))

        result = port.classify("I waited five hours in the ED")

        assert result.domain == "MANAGEMENT"
        assert result.subcategory == "WAIT_TIME"
        assert result.extracted_fields == {'typeOfCare': "ED"}
        assert result.source == "port"
        assert "Test General" in client.prompts[0]

    def test_domain_corrected_from_subcategory(self):
        port, _ = make_port(json.dumps({'domain': "CLINICAL", 'subcategory': "BILLING"}))
        assert port.classify("billed twice").domain == "MANAGEMENT"

    def test_no_complaint(self):
        port, _ = make_port(json.dumps({'domain': None, 'subcategory': None}))
        result = port.classify("hello")
        assert not result.is_complaint

    @pytest.mark.parametrize("response", [
        "not json at all",
        json.dumps(["WAIT_TIME"]),
        json.dumps({'domain': "MANAGEMENT", 'subcategory': "PARKING"}),
        json.dumps({'domain': "MANAGEMENT", 'subcategory': "BILLING", 'extractedFields': "amount"}),
    ])
    def test_malformed_output_raises(self, response):
        port, _ = make_port(response)
        with pytest.raises(PortError):
            port.classify("something happened")


# ========== select_missing_fields Tests ==========

class TestSelectMissingFields:

    @pytest.fixture
    def record(self):
        record = new_record("waited five hours")
        record['domain'] = "MANAGEMENT"
        record['subcategory'] = "WAIT_TIME"
        return record

    def test_filters_unknown_and_duplicate_fields(self, record):
        port, client = make_port(json.dumps([FIELD_DATE, "billing.currency", FIELD_DATE, FIELD_IMPACT]))

        fields = port.select_missing_fields(record, "(none)")

        assert fields == [FIELD_DATE, FIELD_IMPACT]
        assert client.kwargs[0] == {'expect': "array"}

    def test_object_output_raises(self, record):
        port, _ = make_port(json.dumps({'fields': [FIELD_DATE]}))
        with pytest.raises(PortError):
            port.select_missing_fields(record, "(none)")


# ========== Text Operation Tests ==========

class TestTextOperations:

    def test_generate_question_first_line(self):
        port, _ = make_port('\n"When did you visit the clinic?"\nExtra text')
        assert port.generate_question(FIELD_DATE, {'subcategory': "WAIT_TIME"}) == "When did you visit the clinic?"

    def test_generate_question_empty_raises(self):
        port, _ = make_port("   ")
        with pytest.raises(PortError):
            port.generate_question(FIELD_DATE, {})

    def test_generate_question_too_long_raises(self):
        port, _ = make_port("why " * 80)
        with pytest.raises(PortError):
            port.generate_question(FIELD_DATE, {})

    @pytest.mark.parametrize("response,expected", [
        ("Value: Ward 5", "Ward 5"),
        ("UNKNOWN.", EXTRACTION_UNKNOWN),
        ("", EXTRACTION_UNKNOWN),
    ])
    def test_extract_value(self, response, expected):
        port, _ = make_port(response)
        assert port.extract_value("Where?", FIELD_LOCATION, "it was ward 5") == expected

    def test_classify_intent(self):
        port, _ = make_port("clarify.")
        assert port.classify_intent("Where?", "what?") == "CLARIFY"

    def test_classify_intent_without_label_raises(self):
        port, _ = make_port("I think they are answering")
        with pytest.raises(PortError):
            port.classify_intent("Where?", "ward 5")


# ========== judge_validity Tests ==========

class TestJudgeValidity:

    def test_flags_parsed(self):
        port, _ = make_port(json.dumps({
            'contradiction': False, 'vague': "true", 'invalid': None,
            'clarificationQuestion': " Which ward was it? ",
        }))

        judgement = port.judge_validity("Where?", "upstairs", {'field_path': FIELD_LOCATION})

        assert judgement.vague
        assert not judgement.invalid
        assert judgement.clarification_text == "Which ward was it?"

    def test_non_boolean_flag_raises(self):
        port, _ = make_port(json.dumps({'contradiction': "sometimes"}))
        with pytest.raises(PortError):
            port.judge_validity("Where?", "upstairs", {})
