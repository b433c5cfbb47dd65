"""
Finished complaint persistence.

Append-only NDJSON file: one JSON object per submitted complaint.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from complaint_intake.config import COMPLAINTS_FILE
from complaint_intake.utils.helpers import utc_timestamp

logger = logging.getLogger(__name__)


def append_ndjson(file_path: Path, entry: Dict[str, Any]) -> None:
    """Append one JSON object as a single line"""
    with open(file_path, 'a', encoding='utf-8') as f:
        f.write(json.dumps(entry, ensure_ascii=False) + "\n")


def read_ndjson(file_path: Path) -> List[Dict[str, Any]]:
    """
    Read every entry of an NDJSON file.

    Malformed lines are logged and skipped; a missing file reads as empty.

    Returns:
        list: Entries in file order
    """
    file_path = Path(file_path)
    if not file_path.exists():
        return []

    entries = []
    with open(file_path, 'r', encoding='utf-8') as f:
        for line_number, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError as e:
                logger.error(f"Skipping malformed line {line_number} in {file_path}: {e}")

    return entries


class ComplaintPersistence:
    """
    Persistence sink for finished (or abandoned) complaints.

    Layout:
        outputs/complaints.ndjson
            {"sessionId": ..., "submittedAt": ..., "record": {...}, ...}
            {"sessionId": ..., ...}

    Design:
    - Append-only (never rewrite earlier lines)
    - One line per complaint
    """

    def __init__(self, file_path: str = COMPLAINTS_FILE):
        """
        Initialize persistence layer.

        Args:
            file_path: NDJSON file to append to (parent directory is created)
        """
        self.file_path = Path(file_path)
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"ComplaintPersistence initialized: {self.file_path}")

    def save_complaint(self, session_id: str, record: Dict[str, Any],
                       transcript: List[Dict[str, Any]],
                       submitted_at: Optional[str] = None) -> Dict[str, Any]:
        """
        Append a complaint.

        Args:
            session_id: Session identifier (complaint reference)
            record: Complaint record
            transcript: Conversation turns
            submitted_at: ISO timestamp (defaults to now, UTC)

        Returns:
            dict: The entry written

        Raises:
            ValueError: If session_id is empty
        """
        if not session_id:
            raise ValueError("session_id is required")

        entry = {
            'sessionId': session_id,
            'submittedAt': submitted_at or utc_timestamp(),
            'description': record.get('description', ''),
            'urgency': record.get('urgencyLevel'),
            'record': record,
            'transcript': transcript,
        }

        append_ndjson(self.file_path, entry)

        logger.info(f"Saved complaint {session_id} (urgency={entry['urgency']})")
        return entry
