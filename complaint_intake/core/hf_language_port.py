"""
HuggingFace Language Port - LanguageUnderstandingPort over a local LLM

Responsibilities:
- Build prompts (prompt_builder), call the HuggingFace client
- Parse and check model output against the port contract
- Raise PortError for anything malformed (caller falls back)

Design principles:
- Stateless (safe to share across sessions)
- Client is duck-typed (is_loaded/generate/generate_json) so tests can mock it
- No retries here: one call per operation, the dialogue core owns fallbacks
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from complaint_intake.config import HOSPITAL_CONFIG
from complaint_intake.core.language_port import (
    EXTRACTION_UNKNOWN,
    Classification,
    LanguageUnderstandingPort,
    PortError,
    ValidityJudgement,
)
from complaint_intake.core.record_model import (
    DOMAIN_FOR_SUBCATEGORY,
    SITUATIONAL_FIELDS,
    VALID_DOMAINS,
    VALID_SUBCATEGORIES,
    is_resolved,
    is_valid_field_path,
)
from complaint_intake.utils import prompt_builder

logger = logging.getLogger(__name__)

EXTRACTED_FIELD_KEYS = {
    'eventDate', 'location', 'typeOfCare', 'amount',
    'insuranceStatus', 'medicationName', 'staffRole', 'impact',
}

MAX_QUESTION_CHARS = 200


class HuggingFaceLanguagePort(LanguageUnderstandingPort):
    """Language port backed by a HuggingFaceClient"""

    def __init__(self, hf_client, temperature: float = 0.0, max_tokens: int = 256,
                 hospital_name: Optional[str] = None) -> None:
        """
        Initialize port with a model client

        Args:
            hf_client: Client exposing is_loaded(), generate(), generate_json()
            temperature: Sampling temperature for JSON calls
            max_tokens: Maximum tokens for JSON calls
            hospital_name: Hospital named in classification prompts

        Raises:
            TypeError: If client is missing a required method
            RuntimeError: If the model is not loaded
        """
        for method in ('is_loaded', 'generate', 'generate_json'):
            if not callable(getattr(hf_client, method, None)):
                raise TypeError(f"hf_client must have callable {method}() method")

        if not hf_client.is_loaded():
            raise RuntimeError("HuggingFace model not loaded")

        self.hf_client = hf_client
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.hospital_name = hospital_name or HOSPITAL_CONFIG['name']

        logger.info("HuggingFace language port initialized")

    # ========================
    # Helpers
    # ========================

    def _load_json(self, raw: str, expected_type: type, operation: str):
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            raise PortError(f"{operation}: invalid JSON ({e}): {raw!r:.200}")
        if not isinstance(data, expected_type):
            raise PortError(f"{operation}: expected {expected_type.__name__}, got {type(data).__name__}")
        return data

    @staticmethod
    def _first_line(text: str) -> str:
        for line in (text or "").splitlines():
            line = line.strip()
            if line:
                return line
        return ""

    @staticmethod
    def _as_bool(value: Any, key: str) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ('true', 'false'):
            return value.strip().lower() == 'true'
        if value is None:
            return False
        raise PortError(f"judge_validity: {key} is not a boolean: {value!r}")

    # ========================
    # Port operations
    # ========================

    def classify(self, text: str, context: Optional[Dict[str, Any]] = None) -> Classification:
        prompt = prompt_builder.build_classification_prompt(text, self.hospital_name)
        raw = self.hf_client.generate_json(prompt, max_tokens=self.max_tokens, temperature=self.temperature)
        data = self._load_json(raw, dict, "classify")

        domain = data.get('domain')
        subcategory = data.get('subcategory')

        if domain is None and subcategory is None:
            return Classification(domain=None, subcategory=None, description=str(data.get('description') or ""))

        domain = str(domain or "").strip().upper()
        subcategory = str(subcategory or "").strip().upper()

        if subcategory not in VALID_SUBCATEGORIES:
            raise PortError(f"classify: unknown subcategory {subcategory!r}")
        if domain not in VALID_DOMAINS or DOMAIN_FOR_SUBCATEGORY[subcategory] != domain:
            # Subcategory is the more specific signal
            logger.warning(f"classify: domain {domain!r} does not own {subcategory}, correcting")
            domain = DOMAIN_FOR_SUBCATEGORY[subcategory]

        extracted = data.get('extractedFields') or {}
        if not isinstance(extracted, dict):
            raise PortError("classify: extractedFields is not an object")

        extracted_fields = {
            key: value for key, value in extracted.items()
            if key in EXTRACTED_FIELD_KEYS and value not in (None, "", [])
        }
        unexpected = set(extracted) - EXTRACTED_FIELD_KEYS
        if unexpected:
            logger.debug(f"classify: ignoring unexpected extracted keys {sorted(unexpected)}")

        return Classification(
            domain=domain,
            subcategory=subcategory,
            description=str(data.get('description') or text).strip(),
            extracted_fields=extracted_fields,
        )

    def select_missing_fields(self, record: Dict[str, Any], known_field_summary: str) -> List[str]:
        candidates = [path for path in SITUATIONAL_FIELDS if not is_resolved(record, path)]
        if not candidates:
            return []

        prompt = prompt_builder.build_missing_fields_prompt(record, known_field_summary, candidates)
        raw = self.hf_client.generate_json(
            prompt, max_tokens=self.max_tokens, temperature=self.temperature, expect="array"
        )
        data = self._load_json(raw, list, "select_missing_fields")

        fields = []
        for item in data:
            if not isinstance(item, str) or not is_valid_field_path(item):
                logger.debug(f"select_missing_fields: dropping unknown field {item!r}")
                continue
            if item not in fields:
                fields.append(item)
        return fields

    def generate_question(self, field_path: str, context: Dict[str, Any]) -> str:
        prompt = prompt_builder.build_question_prompt(field_path, context)
        raw = self.hf_client.generate(prompt, max_tokens=48, temperature=0.3)

        question = self._first_line(raw).strip('"\' ')
        if not question:
            raise PortError("generate_question: empty output")
        if len(question) > MAX_QUESTION_CHARS:
            raise PortError(f"generate_question: output too long ({len(question)} chars)")
        return question

    def extract_value(self, question: str, field_path: str, reply: str) -> str:
        prompt = prompt_builder.build_extraction_prompt(question, field_path, reply)
        raw = self.hf_client.generate(prompt, max_tokens=48, temperature=0.0)

        value = self._first_line(raw).strip('"\' ')
        value = re.sub(r"^(value|answer|extracted value)\s*:\s*", "", value, flags=re.IGNORECASE)
        if not value or value.upper().rstrip('.') == EXTRACTION_UNKNOWN:
            return EXTRACTION_UNKNOWN
        return value

    def judge_validity(self, question: str, reply: str, record_context: Dict[str, Any]) -> ValidityJudgement:
        prompt = prompt_builder.build_validity_prompt(question, reply, record_context)
        raw = self.hf_client.generate_json(prompt, max_tokens=self.max_tokens, temperature=self.temperature)
        data = self._load_json(raw, dict, "judge_validity")

        clarification = data.get('clarificationQuestion')
        if clarification is not None and not isinstance(clarification, str):
            raise PortError("judge_validity: clarificationQuestion is not a string")

        return ValidityJudgement(
            contradiction=self._as_bool(data.get('contradiction'), 'contradiction'),
            vague=self._as_bool(data.get('vague'), 'vague'),
            invalid=self._as_bool(data.get('invalid'), 'invalid'),
            clarification_text=(clarification or "").strip() or None,
        )

    def classify_intent(self, question: str, reply: str) -> str:
        prompt = prompt_builder.build_intent_prompt(question, reply)
        raw = self.hf_client.generate(prompt, max_tokens=4, temperature=0.0)

        match = re.search(r"\b(ANSWER|CLARIFY|SKIP)\b", (raw or "").upper())
        if not match:
            raise PortError(f"classify_intent: no intent label in {raw!r:.100}")
        return match.group(1)
