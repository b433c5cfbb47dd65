"""
Conversation metrics.

Append-only NDJSON file: one line per conversation (finished or ended
early) with its outcome, utterance counts, questions asked and the time
spent processing turns. snapshot() aggregates the file.
"""

import logging
from pathlib import Path
from typing import Any, Dict

from complaint_intake.config import METRICS_FILE
from complaint_intake.persistence import append_ndjson, read_ndjson
from complaint_intake.utils.helpers import utc_timestamp

logger = logging.getLogger(__name__)

# Outstanding fields tolerated for an unfinished conversation to still count
MAX_MISSING_FOR_VALID_OUTCOME = 2


def has_valid_outcome(is_complete: bool, missing_fields: int, user_provided_info: bool) -> bool:
    """
    A conversation has a valid outcome when it finished, or when the user
    described a complaint and at most two fields were still outstanding.
    """
    return is_complete or (user_provided_info and missing_fields <= MAX_MISSING_FOR_VALID_OUTCOME)


class ConversationMetrics:
    """
    Metrics sink, one entry per conversation.

    Layout:
        outputs/metrics.ndjson
            {"sessionId": ..., "isComplete": true, "totalLatencyMs": 812.4, ...}
    """

    def __init__(self, file_path: str = METRICS_FILE):
        self.file_path = Path(file_path)
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"ConversationMetrics initialized: {self.file_path}")

    def record_conversation(self, state, total_latency_ms: float) -> Dict[str, Any]:
        """
        Append the metric entry for a conversation.

        Args:
            state: Final DialogueState (complete or abandoned)
            total_latency_ms: Time spent in handle_turn() across the conversation

        Returns:
            dict: The entry written
        """
        roles = [turn['role'] for turn in state.transcript]
        user_utterances = roles.count('user')
        missing = len(state.missing_fields)
        classified = state.record.get('subcategory') is not None

        entry = {
            'sessionId': state.session_id,
            'timestamp': utc_timestamp(),
            'isComplete': state.is_complete,
            'hadValidOutcome': has_valid_outcome(state.is_complete, missing, classified),
            'complaintType': state.record.get('subcategory'),
            'urgency': state.record.get('urgencyLevel'),
            'totalLatencyMs': round(total_latency_ms, 1),
            'totalUtterances': len(roles),
            'userUtterances': user_utterances,
            'botUtterances': len(roles) - user_utterances,
            'missingFieldsAtEnd': missing,
            'questionsAsked': state.questions_asked,
        }

        append_ndjson(self.file_path, entry)

        logger.info(
            f"Recorded metrics for {state.session_id}: valid={entry['hadValidOutcome']} "
            f"latency={entry['totalLatencyMs']}ms utterances={entry['totalUtterances']}"
        )
        return entry

    def snapshot(self) -> Dict[str, Any]:
        """
        Aggregate every recorded conversation.

        Returns:
            dict: totalConversations, completionRate and validOutcomeRate
                (percent), avgLatencyMs, avgUtterancesPerTask, avgQuestionsAsked
        """
        entries = read_ndjson(self.file_path)
        total = len(entries)
        if total == 0:
            return {
                'totalConversations': 0,
                'completionRate': 0.0,
                'validOutcomeRate': 0.0,
                'avgLatencyMs': 0.0,
                'avgUtterancesPerTask': 0.0,
                'avgQuestionsAsked': 0.0,
            }

        def average(key):
            return sum(entry.get(key, 0) for entry in entries) / total

        return {
            'totalConversations': total,
            'completionRate': 100.0 * sum(1 for e in entries if e.get('isComplete')) / total,
            'validOutcomeRate': 100.0 * sum(1 for e in entries if e.get('hadValidOutcome')) / total,
            'avgLatencyMs': average('totalLatencyMs'),
            'avgUtterancesPerTask': average('totalUtterances'),
            'avgQuestionsAsked': average('questionsAsked'),
        }
