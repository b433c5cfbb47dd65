"""
Field Relevance Engine - Decides which fields still need asking

Responsibilities:
- Order candidate fields by priority (impact, context, category details)
- Apply category exclusion, already-known exclusion, attempt suppression
- Gate contact fields behind the wants-contact opt-in
- Enforce the conversation-wide question budget

Design principles:
- Stateless: all state comes from parameters
- Deterministic: same input always produces same output
- Rules live in data/field_rules.json, validated on initialization
- The language port's suggestions narrow the situational pool; the engine
  never calls the port itself
"""

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from complaint_intake.config import ATTEMPT_CEILING, QUESTION_BUDGET
from complaint_intake.core.record_model import (
    ALL_FIELD_PATHS,
    SITUATIONAL_FIELDS,
    VALID_SUBCATEGORIES,
    get_field,
    is_known,
    is_resolved,
    is_unknown,
)

logger = logging.getLogger(__name__)

DEFAULT_RULESET_PATH = Path(__file__).resolve().parent.parent / "data" / "field_rules.json"


class FieldRelevanceEngine:
    """
    Stateless missing-field calculator.

    Filters, in order:
    1. Category exclusion (subcategory -> never relevant fields)
    2. Already-known exclusion (value present and not unknown)
    3. Attempt suppression (asked >= 1 time: soft, >= ceiling: hard)
    """

    def __init__(self, ruleset_path: Optional[str] = None,
                 question_budget: int = QUESTION_BUDGET,
                 attempt_ceiling: int = ATTEMPT_CEILING):
        """
        Initialize engine with field rules.

        Args:
            ruleset_path: Path to field_rules.json (defaults to the bundled rules)
            question_budget: Maximum distinct fields asked per conversation
            attempt_ceiling: Attempt count at which a field is hard-suppressed

        Raises:
            FileNotFoundError: If ruleset doesn't exist
            ValueError: If ruleset is missing keys or names unknown fields
        """
        self.ruleset_path = Path(ruleset_path) if ruleset_path else DEFAULT_RULESET_PATH

        if not self.ruleset_path.exists():
            raise FileNotFoundError(f"Field rules not found: {self.ruleset_path}")

        with open(self.ruleset_path, 'r') as f:
            self.ruleset = json.load(f)

        self._validate_ruleset()

        self.priority_order: List[str] = self.ruleset['priority_order']
        self.baseline_fields: Dict[str, List[str]] = self.ruleset['baseline_fields']
        self.exclusions: Dict[str, List[str]] = self.ruleset['exclusions']

        contact = self.ruleset['contact']
        self.opt_in_field: str = contact['opt_in_field']
        self.required_when_opted_in: List[str] = contact['required_when_opted_in']
        self.optional_when_opted_in: List[str] = contact.get('optional_when_opted_in', [])

        self.question_budget = question_budget
        self.attempt_ceiling = attempt_ceiling

        logger.info(
            f"Field Relevance Engine initialized ({len(self.baseline_fields)} subcategories, "
            f"budget={question_budget}, ceiling={attempt_ceiling})"
        )

    # =========================================================================
    # Public API
    # =========================================================================

    def compute_missing_fields(self, record: dict, field_attempts: Dict[str, int],
                               questions_asked: int,
                               suggested_fields: Optional[Iterable[str]] = None) -> List[str]:
        """
        Compute the ordered list of fields still to ask.

        Args:
            record: Current complaint record (must be classified)
            field_attempts: Field path -> attempt count
            questions_asked: Distinct fields asked so far in the conversation
            suggested_fields: Situational fields the language port considers
                still needed. None means use the subcategory baseline.

        Returns:
            list: Ordered field paths. Empty when nothing is left or the
                question budget is spent.
        """
        remaining_budget = self.question_budget - questions_asked
        if remaining_budget <= 0:
            logger.warning(f"Question budget exhausted ({questions_asked}/{self.question_budget})")
            return []

        subcategory = record.get('subcategory')
        if subcategory not in VALID_SUBCATEGORIES:
            logger.warning(f"Cannot compute missing fields for subcategory {subcategory!r}")
            return []

        situational = self._filter(
            self.get_situational_candidates(subcategory, suggested_fields),
            subcategory, record, field_attempts
        )

        if situational:
            missing = situational
        else:
            missing = self._filter(self.get_contact_candidates(record), subcategory, record, field_attempts)

        if len(missing) > remaining_budget:
            logger.debug(f"Truncating {len(missing)} missing fields to remaining budget {remaining_budget}")
            missing = missing[:remaining_budget]

        logger.debug(f"Missing fields for {subcategory}: {missing}")
        return missing

    def get_situational_candidates(self, subcategory: str,
                                   suggested_fields: Optional[Iterable[str]] = None) -> List[str]:
        """Situational fields in priority order (before filtering)"""
        if suggested_fields is None:
            pool = set(self.baseline_fields.get(subcategory, []))
        else:
            pool = {f for f in suggested_fields if f in SITUATIONAL_FIELDS}
        return [f for f in self.priority_order if f in pool]

    def get_contact_candidates(self, record: dict) -> List[str]:
        """
        Contact fields gated on the wants-contact decision.

        - No decision yet      -> ask the opt-in question
        - Opted in (True)      -> name, email (+ optional fields)
        - Opted out / unknown  -> nothing
        """
        if not is_resolved(record, self.opt_in_field):
            return [self.opt_in_field]

        if get_field(record, self.opt_in_field) is True:
            return list(self.required_when_opted_in) + list(self.optional_when_opted_in)

        return []

    def is_contact_requirement_satisfied(self, record: dict) -> bool:
        """True once the opt-in is decided and, if opted in, name/email are resolved"""
        if not is_resolved(record, self.opt_in_field):
            return False
        if get_field(record, self.opt_in_field) is True:
            return all(is_resolved(record, f) for f in self.required_when_opted_in)
        return True

    def is_budget_exhausted(self, questions_asked: int) -> bool:
        return questions_asked >= self.question_budget

    def is_hard_suppressed(self, field_attempts: Dict[str, int], field_path: str) -> bool:
        return field_attempts.get(field_path, 0) >= self.attempt_ceiling

    def get_exclusions(self, subcategory: str) -> List[str]:
        return list(self.exclusions.get(subcategory, []))

    # =========================================================================
    # Filters
    # =========================================================================

    def _filter(self, candidates: List[str], subcategory: str, record: dict,
                field_attempts: Dict[str, int]) -> List[str]:
        excluded = set(self.get_exclusions(subcategory))
        result = []

        for field_path in candidates:
            # 1. Category exclusion
            if field_path in excluded:
                continue

            # 2. Already known (unknown is never re-selected either)
            if is_known(record, field_path) or is_unknown(record, field_path):
                continue

            # 3. Attempt suppression (soft >= 1, hard >= ceiling)
            if field_attempts.get(field_path, 0) >= 1:
                continue

            if field_path not in result:
                result.append(field_path)

        return result

    # =========================================================================
    # Validation
    # =========================================================================

    def _validate_ruleset(self) -> None:
        """Fail fast on missing keys or unknown field/subcategory names"""
        required_keys = {'priority_order', 'contact', 'baseline_fields', 'exclusions'}
        missing_keys = required_keys - set(self.ruleset)
        if missing_keys:
            raise ValueError(f"Field rules missing required keys: {sorted(missing_keys)}")

        for field_path in self.ruleset['priority_order']:
            if field_path not in SITUATIONAL_FIELDS:
                raise ValueError(f"priority_order names unknown situational field: {field_path}")

        contact = self.ruleset['contact']
        if 'opt_in_field' not in contact or 'required_when_opted_in' not in contact:
            raise ValueError("contact rules need opt_in_field and required_when_opted_in")
        contact_fields = [contact['opt_in_field']] + contact['required_when_opted_in'] \
            + contact.get('optional_when_opted_in', [])
        for field_path in contact_fields:
            if field_path not in ALL_FIELD_PATHS:
                raise ValueError(f"contact rules name unknown field: {field_path}")

        for table_name in ('baseline_fields', 'exclusions'):
            table = self.ruleset[table_name]
            for subcategory, field_paths in table.items():
                if subcategory not in VALID_SUBCATEGORIES:
                    raise ValueError(f"{table_name} names unknown subcategory: {subcategory}")
                for field_path in field_paths:
                    if field_path not in ALL_FIELD_PATHS:
                        raise ValueError(f"{table_name}[{subcategory}] names unknown field: {field_path}")

        missing_baselines = VALID_SUBCATEGORIES - set(self.ruleset['baseline_fields'])
        if missing_baselines:
            raise ValueError(f"baseline_fields missing subcategories: {sorted(missing_baselines)}")
