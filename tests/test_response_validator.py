"""
Unit tests for the Response Validator

Deterministic checks run against a fixed clock; port access is a
recording fake so tests never touch a model.
"""

from datetime import date, datetime

import pytest

from complaint_intake.core.language_port import EXTRACTION_UNKNOWN, ValidityJudgement
from complaint_intake.core.record_model import (
    FIELD_BILLING_AMOUNT,
    FIELD_CONTACT_EMAIL,
    FIELD_DATE,
    FIELD_IMPACT,
    FIELD_LOCATION,
    FIELD_TYPE_OF_CARE,
    FIELD_WANTS_CONTACT,
    new_record,
)
from complaint_intake.core.response_validator import (
    TIER_CONTEXTUAL,
    TIER_DETERMINISTIC,
    TIER_EXTRACTION,
    ResponseValidator,
    ValidationStatus,
    validate_amount,
    validate_date,
    validate_email,
)

TODAY = date(2025, 7, 1)


class RecordingPort:
    """call_port stand-in returning canned results per operation"""

    def __init__(self, **responses):
        self.responses = responses
        self.calls = []

    def __call__(self, operation, *args):
        self.calls.append(operation)
        return self.responses.get(operation)


@pytest.fixture
def validator():
    return ResponseValidator(clock=lambda: datetime(2025, 7, 1, 12, 0))


@pytest.fixture
def record():
    r = new_record("I waited five hours")
    r['domain'] = "MANAGEMENT"
    r['subcategory'] = "WAIT_TIME"
    return r


# ========== Date Validation Tests ==========

class TestValidateDate:

    @pytest.mark.parametrize("text", [
        "32 Jan 2025",
        "30 Feb 2024",
        "31 April",
        "11 Jul 2025",
        "3 March 2099",
        "0 June",
        "2025-07-11",
        "2025/07/11",
        "March 2099",
    ])
    def test_invalid_dates(self, text):
        assert validate_date(text, TODAY) is not None

    @pytest.mark.parametrize("text", [
        "24 Jun 2025",
        "June 24",
        "2 Jul 2025",
        "29 Feb 2025",
        "yesterday afternoon",
        "24/06/2025",
        "2025-06-24",
        "at 2100 hours on 3 June 2025",
        "",
    ])
    def test_valid_dates(self, text):
        assert validate_date(text, TODAY) is None

    def test_month_name_in_message(self):
        assert "February only has 29 days" in validate_date("30 Feb 2024", TODAY)


# ========== Amount / Email Tests ==========

class TestValidateAmount:

    @pytest.mark.parametrize("text", ["-50", "$-50", "- $20", "negative 20 dollars"])
    def test_negative(self, text):
        assert validate_amount(text) is not None

    @pytest.mark.parametrize("text", [
        "120", "$1,200.50", "about 300 dollars", "S$45",
        "between 50 - 60 dollars", "50-60", "ward 3-b charged $80",
    ])
    def test_valid(self, text):
        assert validate_amount(text) is None


def test_validate_email():
    assert validate_email("mei.ling@example.com") is None
    assert validate_email("mei.ling at example") is not None
    assert validate_email("") is not None


# ========== Retry Policy Tests ==========

class TestRetryPolicy:

    def test_force_skip_at_ceiling(self, validator):
        assert not validator.should_force_skip(2)
        assert validator.should_force_skip(3)

    def test_guidance_on_second_failure(self, validator):
        assert not validator.needs_fallback_guidance(1)
        assert validator.needs_fallback_guidance(2)
        assert not validator.needs_fallback_guidance(3)


# ========== Free Text Validation Tests ==========

class TestFreeText:

    def test_accepted(self, validator, record):
        port = RecordingPort(extract_value="24 June 2025", judge_validity=ValidityJudgement())

        outcome = validator.validate(FIELD_DATE, "It was on 24 June 2025", "When?", record, port)

        assert outcome.status == ValidationStatus.ACCEPTED
        assert outcome.value == "24 June 2025"
        assert port.calls == ['extract_value', 'judge_validity']

    def test_deterministic_rejection_skips_port(self, validator, record):
        port = RecordingPort(extract_value="32 Jan 2025")

        outcome = validator.validate(FIELD_DATE, "32 Jan 2025", "When?", record, port)

        assert outcome.status == ValidationStatus.REJECTED
        assert outcome.tier == TIER_DETERMINISTIC
        assert outcome.reason == "invalid_date"
        assert port.calls == []

    def test_extracted_value_checked(self, validator, record):
        port = RecordingPort(extract_value="-40")

        outcome = validator.validate(FIELD_BILLING_AMOUNT, "they said minus forty", "How much?", record, port)

        assert outcome.status == ValidationStatus.REJECTED
        assert outcome.reason == "negative_amount"

    def test_extracted_iso_date_in_future(self, validator, record):
        port = RecordingPort(extract_value="2025-07-11")

        outcome = validator.validate(FIELD_DATE, "next friday I think", "When?", record, port)

        assert outcome.status == ValidationStatus.REJECTED
        assert outcome.reason == "invalid_date"
        assert "future" in outcome.message

    def test_extraction_unknown(self, validator, record):
        port = RecordingPort(extract_value=EXTRACTION_UNKNOWN)

        outcome = validator.validate(FIELD_LOCATION, "somewhere", "Where?", record, port)

        assert outcome.status == ValidationStatus.UNKNOWN
        assert outcome.tier == TIER_EXTRACTION

    def test_port_failure_is_unknown(self, validator, record):
        port = RecordingPort()

        outcome = validator.validate(FIELD_LOCATION, "the main lobby", "Where?", record, port)

        assert outcome.status == ValidationStatus.UNKNOWN

    def test_contextual_rejection_keeps_candidate(self, validator, record):
        judgement = ValidityJudgement(vague=True, clarification_text="Just to confirm, was it the main lobby?")
        port = RecordingPort(extract_value="lobby", judge_validity=judgement)

        outcome = validator.validate(FIELD_LOCATION, "the lobby", "Where?", record, port)

        assert outcome.status == ValidationStatus.REJECTED
        assert outcome.tier == TIER_CONTEXTUAL
        assert outcome.reason == "vague"
        assert outcome.value == "lobby"
        assert outcome.message == "Just to confirm, was it the main lobby?"

    def test_judge_failure_accepts(self, validator, record):
        port = RecordingPort(extract_value="Ward 5")

        outcome = validator.validate(FIELD_LOCATION, "Ward 5", "Where?", record, port)

        assert outcome.accepted

    def test_non_contextual_skips_judge(self, validator, record):
        port = RecordingPort(extract_value="Ward 5", judge_validity=ValidityJudgement(invalid=True))

        outcome = validator.validate(FIELD_LOCATION, "Ward 5", "Where?", record, port, contextual=False)

        assert outcome.accepted
        assert 'judge_validity' not in port.calls

    def test_raw_check_off_for_bundled_reply(self, validator, record):
        # "40 jun" in the raw reply would fail the day check
        port = RecordingPort(extract_value="3 June 2025")

        outcome = validator.validate(FIELD_DATE, "40 jun people waiting, I came on 3 June 2025",
                                     "Bundle", record, port, contextual=False, check_raw_reply=False)

        assert outcome.accepted
        assert outcome.value == "3 June 2025"

    def test_invalid_email(self, validator, record):
        port = RecordingPort(extract_value="mei at example")

        outcome = validator.validate(FIELD_CONTACT_EMAIL, "mei at example", "Email?", record, port)

        assert outcome.status == ValidationStatus.REJECTED
        assert outcome.reason == "invalid_email"


# ========== Mapped Field Tests ==========

class TestMappedFields:

    def test_enum_mapped_without_port(self, validator, record):
        port = RecordingPort()

        outcome = validator.validate(FIELD_TYPE_OF_CARE, "1", "Which service?", record, port)

        assert outcome.value == "Emergency Department"
        assert outcome.tier == TIER_DETERMINISTIC
        assert port.calls == []

    def test_enum_mapped_after_extraction(self, validator, record):
        port = RecordingPort(extract_value="radiology")

        outcome = validator.validate(FIELD_TYPE_OF_CARE, "the place with the big machines", "Which?", record, port)

        assert outcome.value == "Radiology/Imaging"
        assert outcome.tier == TIER_EXTRACTION

    def test_enum_free_text_passes_through(self, validator, record):
        port = RecordingPort(extract_value="hydrotherapy pool")

        outcome = validator.validate(FIELD_TYPE_OF_CARE, "the hydrotherapy pool", "Which?", record, port)

        assert outcome.accepted
        assert outcome.value == "hydrotherapy pool"

    def test_impact_free_text_wrapped_in_list(self, validator, record):
        port = RecordingPort()

        outcome = validator.validate(FIELD_IMPACT, "I missed my flight home", "How?", record, port)

        # "missed" maps deterministically before the port is asked
        assert outcome.value == ["Treatment delay or missed care"]
        assert port.calls == []

        port = RecordingPort(extract_value="lost a bus seat")
        outcome = validator.validate(FIELD_IMPACT, "lost my seat on the bus", "How?", record, port)
        assert outcome.value == ["lost a bus seat"]

    def test_boolean(self, validator, record):
        port = RecordingPort()
        outcome = validator.validate(FIELD_WANTS_CONTACT, "yes please", "Contact?", record, port)
        assert outcome.value is True

    def test_boolean_unmapped_is_unknown(self, validator, record):
        port = RecordingPort(extract_value="maybe later")
        outcome = validator.validate(FIELD_WANTS_CONTACT, "maybe later", "Contact?", record, port)
        assert outcome.status == ValidationStatus.UNKNOWN
