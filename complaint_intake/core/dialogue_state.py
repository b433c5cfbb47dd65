"""
Dialogue State - Per-conversation value object

Holds everything the orchestrator needs to resume a conversation:
the partial record, transcript, outstanding fields, attempt counters
and the outstanding question. Serializable to/from a JSON-safe snapshot.

Rules:
- One DialogueState per session, never shared across sessions
- DialogueManager works on a copy each turn (input state is never mutated)
- Field updates go through commit_value()/mark_skipped() so the value,
  the missing-field list and the attempt counter always change together
"""

import copy
import logging
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from complaint_intake.config import SKIPPED_ATTEMPTS
from complaint_intake.core.record_model import (
    UNKNOWN,
    append_description,
    format_value,
    get_field_label,
    new_record,
    set_field,
)
from complaint_intake.utils.helpers import generate_session_id

logger = logging.getLogger(__name__)


class DialoguePhase(str, Enum):
    """
    Orchestrator state machine phases.

    AWAITING_CLASSIFICATION:
        Initial. The next message is the complaint narrative.
    COLLECTING:
        Relevance -> question -> interpret -> extract/validate loop.
    FINALIZING:
        Urgency scoring and closing message (transient, within one turn).
    DONE:
        Terminal. Record frozen.
    """
    AWAITING_CLASSIFICATION = "awaiting_classification"
    COLLECTING = "collecting"
    FINALIZING = "finalizing"
    DONE = "done"


VALID_PHASES = {phase.value for phase in DialoguePhase}


class QuestionKind(str, Enum):
    """How the outstanding question expects to be answered"""
    FREE_TEXT = "free_text"
    CHOICE = "choice"
    YES_NO = "yes_no"
    CONFIRMATION = "confirmation"


VALID_QUESTION_KINDS = {kind.value for kind in QuestionKind}


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class DialogueState:
    """
    Conversation state for one complaint session

    Attributes:
        session_id: Session identifier (also the complaint reference)
        phase: Current DialoguePhase value
        record: Partial complaint record (see record_model)
        transcript: List of {'role', 'content', 'timestamp'} turns
        missing_fields: Ordered outstanding field paths
        current_question: Text of the outstanding question (None if none)
        current_field: Field path the outstanding question targets
        question_kind: QuestionKind value of the outstanding question
        bundled_fields: Fields covered by the opening bundled question
        pending_value: Candidate value held while a confirmation is outstanding
        field_attempts: Field path -> times asked since last commit
        asked_fields: Distinct field paths asked so far (question budget)
        is_complete: Terminal flag (monotonic)
        needs_more_info: The current reply must be answered before progressing
        turn_count: Number of user turns processed
        created_at: ISO timestamp of session creation
    """
    session_id: str
    phase: str = DialoguePhase.AWAITING_CLASSIFICATION.value
    record: Dict[str, Any] = field(default_factory=new_record)
    transcript: List[Dict[str, Any]] = field(default_factory=list)
    missing_fields: List[str] = field(default_factory=list)
    current_question: Optional[str] = None
    current_field: Optional[str] = None
    question_kind: Optional[str] = None
    bundled_fields: List[str] = field(default_factory=list)
    pending_value: Any = None
    field_attempts: Dict[str, int] = field(default_factory=dict)
    asked_fields: List[str] = field(default_factory=list)
    is_complete: bool = False
    needs_more_info: bool = False
    turn_count: int = 0
    created_at: str = field(default_factory=_utc_now_iso)

    # ========================
    # Construction / serialization
    # ========================

    @classmethod
    def new(cls, session_id: Optional[str] = None) -> "DialogueState":
        """Create state for a new session (classification not yet run)"""
        return cls(session_id=session_id or generate_session_id())

    def copy(self) -> "DialogueState":
        return copy.deepcopy(self)

    def to_snapshot(self) -> Dict[str, Any]:
        """
        Serialize to JSON-safe dict (deep copy).

        Returns:
            dict: Snapshot suitable for json.dump
        """
        return {f.name: copy.deepcopy(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any]) -> "DialogueState":
        """
        Restore from a snapshot produced by to_snapshot().

        Args:
            data: Snapshot dict

        Returns:
            DialogueState: Independent copy

        Raises:
            ValueError: If the snapshot is malformed
        """
        if not isinstance(data, dict):
            raise ValueError(f"Snapshot must be a dict, got {type(data).__name__}")
        if not data.get('session_id'):
            raise ValueError("Snapshot missing session_id")

        known = {f.name for f in fields(cls)}
        unexpected = set(data) - known
        if unexpected:
            raise ValueError(f"Snapshot has unexpected keys: {sorted(unexpected)}")

        phase = data.get('phase', DialoguePhase.AWAITING_CLASSIFICATION.value)
        if phase not in VALID_PHASES:
            raise ValueError(f"Invalid phase in snapshot: {phase}")

        kind = data.get('question_kind')
        if kind is not None and kind not in VALID_QUESTION_KINDS:
            raise ValueError(f"Invalid question_kind in snapshot: {kind}")

        return cls(**copy.deepcopy(data))

    # ========================
    # Transcript
    # ========================

    def add_transcript_turn(self, role: str, content: str) -> None:
        self.transcript.append({
            'role': role,
            'content': content,
            'timestamp': _utc_now_iso(),
        })

    # ========================
    # Question bookkeeping
    # ========================

    def get_attempts(self, field_path: str) -> int:
        return self.field_attempts.get(field_path, 0)

    @property
    def questions_asked(self) -> int:
        """Distinct fields asked so far in the conversation"""
        return len(self.asked_fields)

    def record_question(self, field_path: str, text: str, kind: str,
                        bundled_fields: Optional[List[str]] = None,
                        count_attempt: bool = True) -> None:
        """
        Register an emitted question as outstanding.

        Args:
            field_path: Field the question targets
            text: Question text shown to the user
            kind: QuestionKind value
            bundled_fields: Extra fields covered by a bundled question
            count_attempt: False for explanations that re-ask without
                consuming an attempt
        """
        if count_attempt:
            self.field_attempts[field_path] = self.get_attempts(field_path) + 1
            if field_path not in self.asked_fields:
                self.asked_fields.append(field_path)

        self.current_question = text
        self.current_field = field_path
        self.question_kind = kind
        self.bundled_fields = list(bundled_fields or [])

    def clear_question(self) -> None:
        self.current_question = None
        self.current_field = None
        self.question_kind = None
        self.bundled_fields = []
        self.pending_value = None

    # ========================
    # Field updates (atomic)
    # ========================

    def commit_value(self, field_path: str, value: Any, annotate: bool = True) -> None:
        """
        Commit a validated value.

        Writes the record, removes the field from missing_fields and resets
        its attempt counter in one step.
        """
        record = copy.deepcopy(self.record)
        set_field(record, field_path, value)
        if annotate:
            append_description(record, f"{get_field_label(field_path)}: {format_value(value)}")

        self.record = record
        self.missing_fields = [f for f in self.missing_fields if f != field_path]
        self.field_attempts[field_path] = 0
        self.pending_value = None
        logger.debug(f"Committed {field_path} = {value!r}")

    def mark_skipped(self, field_path: str) -> None:
        """Store UNKNOWN and permanently suppress the field"""
        record = copy.deepcopy(self.record)
        set_field(record, field_path, UNKNOWN)

        self.record = record
        self.missing_fields = [f for f in self.missing_fields if f != field_path]
        self.field_attempts[field_path] = SKIPPED_ATTEMPTS
        self.pending_value = None
        logger.debug(f"Skipped {field_path}")

    def advance_past(self, field_path: str) -> None:
        """Drop a field from missing_fields without touching the record"""
        self.missing_fields = [f for f in self.missing_fields if f != field_path]
        self.pending_value = None

    def defer(self, field_path: str) -> None:
        """Leave the field absent and return it to the pool of fields to ask"""
        self.field_attempts[field_path] = 0
        self.pending_value = None
        logger.debug(f"Deferred {field_path}")
