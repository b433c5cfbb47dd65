"""
Unit tests for urgency scoring
"""

import pytest

from complaint_intake.core.record_model import (
    FIELD_BILLING_AMOUNT,
    FIELD_IMPACT,
    FIELD_TYPE_OF_CARE,
    UNKNOWN,
    new_record,
    set_field,
)
from complaint_intake.core.urgency import compute_urgency, parse_amount, score_urgency


def make_record(domain, subcategory, **fields):
    record = new_record("complaint")
    record['domain'] = domain
    record['subcategory'] = subcategory
    for field_path, value in fields.items():
        set_field(record, field_path, value)
    return record


class TestComputeUrgency:

    def test_safety_with_harm_is_high(self):
        record = make_record("CLINICAL", "SAFETY")
        set_field(record, FIELD_IMPACT, ["Safety risk or harm"])
        assert compute_urgency(record) == "HIGH"

    def test_bare_management_complaint_is_low(self):
        assert compute_urgency(make_record("MANAGEMENT", "FACILITIES")) == "LOW"

    def test_wait_in_emergency_with_stress_is_medium(self):
        record = make_record("MANAGEMENT", "WAIT_TIME")
        set_field(record, FIELD_TYPE_OF_CARE, "Emergency Department")
        set_field(record, FIELD_IMPACT, ["Emotional stress or anxiety"])
        assert compute_urgency(record) == "MEDIUM"

    def test_unknown_values_contribute_nothing(self):
        record = make_record("MANAGEMENT", "BILLING")
        set_field(record, FIELD_IMPACT, UNKNOWN)
        set_field(record, FIELD_BILLING_AMOUNT, UNKNOWN)
        score, breakdown = score_urgency(record)
        assert score == 0
        assert breakdown['impact'] == 0
        assert breakdown['billing'] == 0

    def test_high_bill_bonus(self):
        record = make_record("MANAGEMENT", "BILLING")
        set_field(record, FIELD_BILLING_AMOUNT, "$1,200")
        set_field(record, FIELD_IMPACT, ["Financial cost or unexpected charges"])

        score, breakdown = score_urgency(record)

        assert breakdown['billing'] == 1
        assert score == 2
        assert compute_urgency(record) == "MEDIUM"

    def test_free_text_impact_scores_zero(self):
        record = make_record("RELATIONSHIP", "ATTITUDE")
        set_field(record, FIELD_IMPACT, ["lost a bus seat"])
        assert score_urgency(record) == (1, {
            'domain': 1, 'subcategory': 0, 'impact': 0, 'service': 0, 'billing': 0,
        })

    def test_unclassified_record(self):
        assert compute_urgency(new_record("hello")) == "LOW"


@pytest.mark.parametrize("value,expected", [
    ("$1,200.50", 1200.5),
    ("about 300 dollars", 300.0),
    (45, 45.0),
    ("no idea", None),
    (None, None),
])
def test_parse_amount(value, expected):
    assert parse_amount(value) == expected
