"""
Dialogue Manager - Complaint intake orchestration (Functional Core)

Responsibilities:
- Drive the AWAITING_CLASSIFICATION -> COLLECTING -> FINALIZING -> DONE
  state machine one user turn at a time
- Route each reply through intent classification, then skip / clarify /
  confirmation handling or extraction and validation
- Recompute missing fields after every turn and ask the next question
- Finalize: urgency score, investigation flag, closing message
- Guard every language port call (timeout, exception, malformed output)

Design principles:
- Ephemeral per turn: state comes in, a new state goes out, the input is
  never mutated
- Thin orchestration layer (decisions live in the relevance engine,
  composer and validator)
- Every failure path moves the conversation forward
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from complaint_intake.config import HOSPITAL_CONFIG, PORT_TIMEOUT_SECONDS
from complaint_intake.core.dialogue_state import DialoguePhase, DialogueState, QuestionKind
from complaint_intake.core.intent_classifier import UserIntent, classify_intent, parse_port_intent
from complaint_intake.core.language_port import (
    Classification,
    ValidityJudgement,
    keyword_classify,
)
from complaint_intake.core.record_model import (
    ALL_FIELD_PATHS,
    FIELD_BILLING_AMOUNT,
    FIELD_DATE,
    FIELD_IMPACT,
    FIELD_INSURANCE_STATUS,
    FIELD_LOCATION,
    FIELD_MEDICATION_NAME,
    FIELD_PEOPLE_ROLE,
    FIELD_TYPE_OF_CARE,
    FIELD_WANTS_CONTACT,
    ENUM_FIELDS,
    deep_copy,
    get_field,
    is_known,
    new_record,
    summarize_known_fields,
)
from complaint_intake.core.response_validator import ValidationStatus, TIER_CONTEXTUAL
from complaint_intake.core.urgency import compute_urgency
from complaint_intake.utils.clarification_templates import (
    MessageTemplateID,
    get_template_text,
    render_template,
)
from complaint_intake.utils.field_mappings import standardize_enum_value
from complaint_intake.utils.helpers import format_reference_number

logger = logging.getLogger(__name__)


# Classification extracted_fields key -> record field path
EXTRACTED_FIELD_MAP = {
    'eventDate': FIELD_DATE,
    'location': FIELD_LOCATION,
    'typeOfCare': FIELD_TYPE_OF_CARE,
    'amount': FIELD_BILLING_AMOUNT,
    'insuranceStatus': FIELD_INSURANCE_STATUS,
    'medicationName': FIELD_MEDICATION_NAME,
    'staffRole': FIELD_PEOPLE_ROLE,
    'impact': FIELD_IMPACT,
}

# Expected result type per port operation; anything else counts as malformed
PORT_RESULT_TYPES = {
    'classify': Classification,
    'select_missing_fields': list,
    'generate_question': str,
    'extract_value': str,
    'judge_validity': ValidityJudgement,
    'classify_intent': str,
}


@dataclass
class TurnResult:
    """
    Result of processing a single turn

    Attributes:
        system_output: Text to show user (question or message)
        state: New dialogue state (independent of the input state)
        debug: Debug information (intent, validation, port calls, errors)
        turn_metadata: Turn-level metadata (phase, turn_count, budget use)
        is_complete: Whether the complaint has been finalized
        needs_more_info: The reply must be answered before the record progresses
        urgency: Urgency level once complete, else None
    """
    system_output: str
    state: DialogueState
    debug: Dict[str, Any]
    turn_metadata: Dict[str, Any]
    is_complete: bool
    needs_more_info: bool
    urgency: Optional[str] = None

    @property
    def state_snapshot(self) -> Dict[str, Any]:
        return self.state.to_snapshot()


class DialogueManager:
    """
    Orchestrates a complaint intake conversation

    Functional core design:
    - Collaborators cached (all stateless)
    - handle_turn() transforms state; the only per-session bookkeeping
      here is a timed-out port call that is still running
    """

    PORT_OPERATIONS = tuple(PORT_RESULT_TYPES)

    def __init__(self, language_port, relevance_engine, composer, validator,
                 port_timeout: Optional[float] = PORT_TIMEOUT_SECONDS,
                 hospital_config: Optional[Dict[str, str]] = None):
        """
        Initialize Dialogue Manager with collaborator instances

        Args:
            language_port: LanguageUnderstandingPort implementation
            relevance_engine: FieldRelevanceEngine instance
            composer: QuestionComposer instance
            validator: ResponseValidator instance
            port_timeout: Seconds before a port call counts as failed
                (None waits indefinitely)
            hospital_config: Overrides HOSPITAL_CONFIG (name, feedback_team)

        Raises:
            TypeError: If any collaborator is missing a required method
        """
        self._validate_modules(language_port, relevance_engine, composer, validator)

        self.port = language_port
        self.engine = relevance_engine
        self.composer = composer
        self.validator = validator
        self.port_timeout = port_timeout
        self.hospital = dict(HOSPITAL_CONFIG, **(hospital_config or {}))

        self._executor = None
        if port_timeout is not None:
            self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="language-port")

        # session_id -> timed-out port call still running on a worker
        self._abandoned = {}
        self._abandoned_lock = threading.Lock()

        logger.info(f"Dialogue Manager initialized (port_timeout={port_timeout})")

    def _validate_modules(self, language_port, relevance_engine, composer, validator):
        """Validate module interfaces"""
        required = [
            (language_port, 'language_port', self.PORT_OPERATIONS),
            (relevance_engine, 'relevance_engine',
             ('compute_missing_fields', 'is_contact_requirement_satisfied',
              'is_budget_exhausted')),
            (composer, 'composer',
             ('compose_next', 'compose_reask', 'compose_correction',
              'compose_explanation', 'needs_generation')),
            (validator, 'validator',
             ('validate', 'check_deterministic', 'should_force_skip',
              'needs_fallback_guidance')),
        ]
        for module, name, methods in required:
            for method in methods:
                if not callable(getattr(module, method, None)):
                    raise TypeError(f"{name} must have callable {method}() method")

    def close(self) -> None:
        """Release the port worker threads"""
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

    # ========================
    # Public API
    # ========================

    def handle_turn(self, user_input: str,
                    state: Optional[Union[DialogueState, Dict[str, Any]]] = None) -> TurnResult:
        """
        Process one user turn

        Args:
            user_input: Raw user text
            state: Previous DialogueState (or its snapshot); None starts a
                new session

        Returns:
            TurnResult: Output text plus the new state

        Raises:
            TypeError: If user_input is not a string
            ValueError: If a snapshot is malformed
        """
        if not isinstance(user_input, str):
            raise TypeError(f"user_input must be str, got {type(user_input).__name__}")

        if state is None:
            state = DialogueState.new()
        elif isinstance(state, dict):
            state = DialogueState.from_snapshot(state)
        else:
            state = state.copy()

        debug = {'session_id': state.session_id, 'phase_before': state.phase, 'port_calls': [], 'errors': []}

        # Finished complaints are frozen
        if state.is_complete or state.phase == DialoguePhase.DONE.value:
            output = render_template(
                MessageTemplateID.ALREADY_SUBMITTED,
                reference=format_reference_number(state.session_id),
            )
            return self._build_turn_result(output, state, debug)

        text = user_input.strip()
        state.turn_count += 1
        state.needs_more_info = False

        if not text:
            output = self._handle_empty_input(state)
        else:
            state.add_transcript_turn('user', text)
            if state.phase == DialoguePhase.AWAITING_CLASSIFICATION.value:
                output = self._handle_classification(state, text, debug)
            else:
                output = self._handle_reply(state, text, debug)

        state.add_transcript_turn('assistant', output)
        return self._build_turn_result(output, state, debug)

    # ========================
    # Phase: AWAITING_CLASSIFICATION
    # ========================

    def _handle_classification(self, state: DialogueState, text: str, debug: Dict[str, Any]) -> str:
        """Classify the opening complaint and ask the first question"""
        classification = self._call_port('classify', debug, text, {'hospital': self.hospital['name']})

        if classification is None:
            logger.warning("Classification unavailable, using keyword heuristic")
            classification = keyword_classify(text)
            if classification is None:
                debug['classification'] = None
                state.needs_more_info = True
                return get_template_text(MessageTemplateID.RESTATE_COMPLAINT)

        debug['classification'] = {
            'domain': classification.domain,
            'subcategory': classification.subcategory,
            'source': classification.source,
        }

        if not classification.is_complaint:
            logger.info("Opening message too vague to classify")
            state.needs_more_info = True
            return get_template_text(MessageTemplateID.VAGUE_COMPLAINT)

        record = new_record(classification.description or text)
        record['domain'] = classification.domain
        record['subcategory'] = classification.subcategory
        state.record = record

        self._apply_extracted_fields(state, classification.extracted_fields, debug)

        state.phase = DialoguePhase.COLLECTING.value
        logger.info(
            f"Session {state.session_id} classified as "
            f"{classification.domain}/{classification.subcategory} ({classification.source})"
        )
        return self._advance(state, debug)

    def _apply_extracted_fields(self, state: DialogueState, extracted: Dict[str, Any],
                                debug: Dict[str, Any]) -> None:
        """Write details the narrative already gave, normalized, without annotation"""
        prefilled = []

        for key, value in (extracted or {}).items():
            field_path = EXTRACTED_FIELD_MAP.get(key)
            if field_path is None or value in (None, "", []):
                continue

            if field_path in ENUM_FIELDS:
                raw = ", ".join(str(v) for v in value) if isinstance(value, list) else str(value)
                normalized = standardize_enum_value(field_path, raw)
                if normalized is None:
                    normalized = [raw] if field_path == FIELD_IMPACT else raw
            else:
                normalized = str(value).strip()
                if not normalized or self.validator.check_deterministic(field_path, normalized):
                    logger.debug(f"Dropping pre-filled {field_path}: {value!r}")
                    continue

            state.commit_value(field_path, normalized, annotate=False)
            prefilled.append(field_path)

        if prefilled:
            debug['prefilled'] = prefilled

    # ========================
    # Phase: COLLECTING
    # ========================

    def _handle_reply(self, state: DialogueState, text: str, debug: Dict[str, Any]) -> str:
        """Interpret a reply to the outstanding question"""
        field_path = state.current_field
        if field_path is None:
            return self._advance(state, debug)

        intent = classify_intent(text, state.question_kind)
        if intent == UserIntent.UNCLEAR:
            label = self._call_port('classify_intent', debug, state.current_question, text)
            intent = parse_port_intent(label) or UserIntent.ANSWER
            debug['intent_source'] = 'port' if label is not None else 'default'
        debug['intent'] = intent.value
        logger.debug(f"{field_path}: intent {intent.value}")

        if intent == UserIntent.SKIP:
            return self._handle_skip(state, debug)

        if intent == UserIntent.CLARIFY:
            state.needs_more_info = True
            return self.composer.compose_explanation(state)

        if intent in (UserIntent.AFFIRMATIVE, UserIntent.NEGATIVE):
            if state.question_kind == QuestionKind.CONFIRMATION.value:
                return self._handle_confirmation(state, intent, debug)
            state.commit_value(field_path, intent == UserIntent.AFFIRMATIVE)
            state.clear_question()
            return self._advance(state, debug)

        if state.bundled_fields:
            return self._handle_bundled_answer(state, text, debug)
        return self._handle_answer(state, text, debug)

    def _handle_skip(self, state: DialogueState, debug: Dict[str, Any]) -> str:
        fields = state.bundled_fields or [state.current_field]
        for field_path in fields:
            state.mark_skipped(field_path)
        debug['skipped'] = list(fields)

        state.clear_question()
        return self._advance(state, debug, prefix=get_template_text(MessageTemplateID.SKIP_ACK))

    def _handle_confirmation(self, state: DialogueState, intent: UserIntent,
                             debug: Dict[str, Any]) -> str:
        field_path = state.current_field

        if intent == UserIntent.AFFIRMATIVE:
            if state.pending_value is not None:
                state.commit_value(field_path, state.pending_value)
            else:
                state.advance_past(field_path)
            state.clear_question()
            return self._advance(state, debug)

        attempts = state.get_attempts(field_path)
        if self.validator.should_force_skip(attempts):
            return self._force_skip(state, field_path, debug)

        state.pending_value = None
        state.needs_more_info = True
        return self.composer.compose_correction(state)

    def _handle_answer(self, state: DialogueState, text: str, debug: Dict[str, Any]) -> str:
        field_path = state.current_field
        outcome = self.validator.validate(
            field_path, text, state.current_question, state.record,
            self._port_caller(debug),
        )
        debug['validation'] = {field_path: self._describe_outcome(outcome)}

        if outcome.status == ValidationStatus.ACCEPTED:
            state.commit_value(field_path, outcome.value)
            state.clear_question()
            return self._advance(state, debug)

        if outcome.status == ValidationStatus.UNKNOWN:
            state.mark_skipped(field_path)
            state.clear_question()
            return self._advance(state, debug)

        return self._handle_rejection(state, outcome, debug)

    def _handle_bundled_answer(self, state: DialogueState, text: str, debug: Dict[str, Any]) -> str:
        """
        Extract every field covered by the bundled opener from one reply

        Every field is committed when accepted. A field the reply does not
        cover stays absent so it can be asked on its own; only an explicit
        SKIP stores unknown. A rejected lead field is re-asked.
        """
        lead = state.current_field
        call_port = self._port_caller(debug)
        outcomes = {}

        for field_path in state.bundled_fields:
            outcomes[field_path] = self.validator.validate(
                field_path, text, state.current_question, state.record, call_port,
                contextual=False, check_raw_reply=False,
            )
        debug['validation'] = {f: self._describe_outcome(o) for f, o in outcomes.items()}

        for field_path, outcome in outcomes.items():
            if field_path != lead and outcome.status == ValidationStatus.ACCEPTED:
                state.commit_value(field_path, outcome.value)

        lead_outcome = outcomes[lead]
        if lead_outcome.status == ValidationStatus.ACCEPTED:
            state.commit_value(lead, lead_outcome.value)
        elif lead_outcome.status == ValidationStatus.UNKNOWN:
            state.defer(lead)
            debug['deferred'] = lead
        else:
            return self._handle_rejection(state, lead_outcome, debug)

        state.clear_question()
        return self._advance(state, debug)

    def _handle_rejection(self, state: DialogueState, outcome, debug: Dict[str, Any]) -> str:
        """Re-ask a field that failed validation, or force-skip it at the ceiling"""
        field_path = state.current_field
        attempts = state.get_attempts(field_path)

        if self.validator.should_force_skip(attempts):
            return self._force_skip(state, field_path, debug)

        state.pending_value = outcome.value if outcome.tier == TIER_CONTEXTUAL else None
        state.needs_more_info = True
        return self.composer.compose_reask(
            state, outcome.message,
            with_guidance=self.validator.needs_fallback_guidance(attempts),
        )

    def _force_skip(self, state: DialogueState, field_path: str, debug: Dict[str, Any]) -> str:
        logger.warning(f"Force-skipping {field_path} after {state.get_attempts(field_path)} attempts")
        debug['force_skipped'] = field_path
        state.mark_skipped(field_path)
        state.clear_question()
        return self._advance(state, debug)

    def _handle_empty_input(self, state: DialogueState) -> str:
        state.needs_more_info = True
        if state.current_question:
            return state.current_question
        return get_template_text(MessageTemplateID.RESTATE_COMPLAINT)

    # ========================
    # Next question / finalization
    # ========================

    def _advance(self, state: DialogueState, debug: Dict[str, Any], prefix: Optional[str] = None) -> str:
        """Recompute missing fields and ask the next one, or finalize"""
        suggestions = None
        if not self.engine.is_budget_exhausted(state.questions_asked):
            suggestions = self._call_port(
                'select_missing_fields', debug, state.record, summarize_known_fields(state.record)
            )
            if suggestions is None:
                logger.warning("Missing-field selection unavailable, finalizing")
                return self._join(prefix, self._finalize(state, debug))

        missing = self.engine.compute_missing_fields(
            state.record, state.field_attempts, state.questions_asked, suggestions
        )
        state.missing_fields = missing
        debug['missing_fields'] = list(missing)

        if not missing:
            return self._join(prefix, self._finalize(state, debug))

        generated = None
        if self.composer.needs_generation(state):
            generated = self._call_port('generate_question', debug, missing[0], self._question_context(state))

        question = self.composer.compose_next(state, generated)
        return self._join(prefix, question)

    def _finalize(self, state: DialogueState, debug: Dict[str, Any]) -> str:
        """FINALIZING -> DONE: urgency, investigation flag, closing message"""
        state.phase = DialoguePhase.FINALIZING.value

        if not self.engine.is_contact_requirement_satisfied(state.record):
            logger.warning(f"Session {state.session_id} finalizing with contact details unresolved")

        record = deep_copy(state.record)
        record['urgencyLevel'] = compute_urgency(record)
        record['needsHumanInvestigation'] = True
        state.record = record

        state.clear_question()
        state.missing_fields = []
        state.is_complete = True
        state.phase = DialoguePhase.DONE.value
        debug['finalized'] = True

        logger.info(
            f"Session {state.session_id} complete: {record.get('subcategory')}, "
            f"urgency {record['urgencyLevel']}, {state.questions_asked} questions"
        )

        reference = format_reference_number(state.session_id)
        if get_field(record, FIELD_WANTS_CONTACT) is True:
            return render_template(
                MessageTemplateID.CLOSING_WITH_CONTACT,
                reference=reference, team=self.hospital['feedback_team'],
            )
        return render_template(
            MessageTemplateID.CLOSING_WITHOUT_CONTACT,
            reference=reference, team=self.hospital['feedback_team'], hospital=self.hospital['name'],
        )

    # ========================
    # Port access
    # ========================

    def _call_port(self, operation: str, debug: Dict[str, Any], *args):
        """
        Call a port operation with timeout and result-type checks

        Returns:
            Port result, or None on exception, timeout or malformed result
        """
        method = getattr(self.port, operation)
        session_id = debug.get('session_id')
        debug['port_calls'].append(operation)

        try:
            if self._executor is None:
                result = method(*args)
            else:
                if self._session_busy(session_id):
                    logger.warning(f"Port call {operation} refused: earlier call for session {session_id} still running")
                    debug['errors'].append({'operation': operation, 'error': 'busy'})
                    return None
                future = self._executor.submit(method, *args)
                try:
                    result = future.result(timeout=self.port_timeout)
                except FuturesTimeoutError:
                    if not future.cancel():
                        self._hold_session(session_id, future)
                    logger.warning(f"Port call {operation} timed out after {self.port_timeout}s")
                    debug['errors'].append({'operation': operation, 'error': 'timeout'})
                    return None
        except Exception as e:
            logger.error(f"Port call {operation} failed: {e}")
            debug['errors'].append({'operation': operation, 'error': str(e)})
            return None

        expected = PORT_RESULT_TYPES[operation]
        if not isinstance(result, expected):
            logger.error(f"Port call {operation} returned {type(result).__name__}, expected {expected.__name__}")
            debug['errors'].append({'operation': operation, 'error': 'malformed result'})
            return None

        return result

    def _session_busy(self, session_id: str) -> bool:
        """True while a timed-out call for this session is still executing"""
        with self._abandoned_lock:
            future = self._abandoned.get(session_id)
            if future is None:
                return False
            if future.done():
                del self._abandoned[session_id]
                return False
            return True

    def _hold_session(self, session_id: str, future) -> None:
        with self._abandoned_lock:
            self._abandoned[session_id] = future
        future.add_done_callback(lambda done: self._release_session(session_id, done))

    def _release_session(self, session_id: str, future) -> None:
        with self._abandoned_lock:
            if self._abandoned.get(session_id) is future:
                del self._abandoned[session_id]

    def _port_caller(self, debug: Dict[str, Any]):
        """call_port(operation, *args) bound to this turn's debug dict"""
        def call_port(operation, *args):
            return self._call_port(operation, debug, *args)
        return call_port

    def _question_context(self, state: DialogueState) -> Dict[str, Any]:
        record = state.record
        return {
            'domain': record.get('domain'),
            'subcategory': record.get('subcategory'),
            'description': record.get('description', ''),
            'known_fields': summarize_known_fields(record),
            'hospital': self.hospital['name'],
        }

    # ========================
    # Result building
    # ========================

    @staticmethod
    def _join(prefix: Optional[str], text: str) -> str:
        return f"{prefix}\n\n{text}" if prefix else text

    @staticmethod
    def _describe_outcome(outcome) -> Dict[str, Any]:
        return {
            'status': outcome.status.value,
            'value': outcome.value,
            'reason': outcome.reason,
            'tier': outcome.tier,
        }

    def _build_turn_result(self, output: str, state: DialogueState, debug: Dict[str, Any]) -> TurnResult:
        turn_metadata = {
            'session_id': state.session_id,
            'turn_count': state.turn_count,
            'phase': state.phase,
            'current_field': state.current_field,
            'questions_asked': state.questions_asked,
            'missing_fields': list(state.missing_fields),
            'known_fields': [f for f in ALL_FIELD_PATHS if is_known(state.record, f)],
        }
        return TurnResult(
            system_output=output,
            state=state,
            debug=debug,
            turn_metadata=turn_metadata,
            is_complete=state.is_complete,
            needs_more_info=state.needs_more_info,
            urgency=state.record.get('urgencyLevel') if state.is_complete else None,
        )
