"""
Unit tests for ComplaintPersistence
"""

import json

import pytest

from complaint_intake.persistence import ComplaintPersistence, read_ndjson


@pytest.fixture
def persistence(tmp_path):
    return ComplaintPersistence(tmp_path / "nested" / "complaints.ndjson")


@pytest.fixture
def record():
    return {
        'domain': "MANAGEMENT",
        'subcategory': "WAIT_TIME",
        'description': "Waited five hours [Impact: Emotional stress or anxiety]",
        'urgencyLevel': "MEDIUM",
        'needsHumanInvestigation': True,
        'impact': ["Emotional stress or anxiety"],
    }


def test_creates_parent_directory(persistence):
    assert persistence.file_path.parent.is_dir()


def test_save_appends_one_line(persistence, record):
    transcript = [{'role': "user", 'content': "I waited five hours", 'timestamp': "t0"}]

    entry = persistence.save_complaint("abcd1234", record, transcript, submitted_at="2025-07-01T12:00:00+00:00")

    lines = persistence.file_path.read_text(encoding='utf-8').splitlines()
    assert len(lines) == 1
    assert json.loads(lines[0]) == entry
    assert entry['sessionId'] == "abcd1234"
    assert entry['urgency'] == "MEDIUM"
    assert entry['description'].startswith("Waited five hours")
    assert entry['transcript'] == transcript


def test_read_back_in_order(persistence, record):
    persistence.save_complaint("first", record, [])
    persistence.save_complaint("second", record, [])

    assert [e['sessionId'] for e in read_ndjson(persistence.file_path)] == ["first", "second"]


def test_submitted_at_defaults_to_now(persistence, record):
    entry = persistence.save_complaint("abcd1234", record, [])
    assert entry['submittedAt'].endswith("+00:00")


def test_empty_session_id_rejected(persistence, record):
    with pytest.raises(ValueError):
        persistence.save_complaint("", record, [])


def test_malformed_lines_skipped(persistence, record):
    persistence.save_complaint("good", record, [])
    with open(persistence.file_path, 'a', encoding='utf-8') as f:
        f.write("{not json\n\n")

    entries = read_ndjson(persistence.file_path)

    assert [e['sessionId'] for e in entries] == ["good"]


def test_read_without_file(tmp_path):
    assert read_ndjson(tmp_path / "none.ndjson") == []


def test_non_ascii_preserved(persistence, record):
    record['description'] = "Le médecin était impoli"
    persistence.save_complaint("abcd1234", record, [])
    assert "médecin" in persistence.file_path.read_text(encoding='utf-8')
