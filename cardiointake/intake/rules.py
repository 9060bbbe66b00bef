# cardiointake/intake/rules.py
from __future__ import annotations

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from cardiointake.intake.errors import RuleTableError

logger = logging.getLogger(__name__)


class SymptomRule(BaseModel):
    """
    Follow-up questions for one symptom, grouped by section.

    Sections and questions keep the order they have in the source data.
    Both are read-only once the rule is built.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    symptom: str = Field(..., min_length=1)
    follow_up_sections: Mapping[str, Tuple[str, ...]] = Field(
        ..., validation_alias="follow_up_questions"
    )

    @field_validator("follow_up_sections")
    @classmethod
    def _questions_not_blank(
        cls, sections: Mapping[str, Tuple[str, ...]]
    ) -> Mapping[str, Tuple[str, ...]]:
        for section, questions in sections.items():
            if not section.strip():
                raise ValueError("section names must not be blank")
            for question in questions:
                if not question.strip():
                    raise ValueError(f"blank question in section {section!r}")
        return MappingProxyType(dict(sections))


class RuleTable:
    """
    Read-only symptom -> follow-up rule lookup, built once at startup.
    """

    def __init__(self, rules: Iterable[SymptomRule]):
        self._rules: Tuple[SymptomRule, ...] = tuple(rules)
        by_symptom: Dict[str, SymptomRule] = {}
        for rule in self._rules:
            if rule.symptom in by_symptom:
                raise RuleTableError(f"Duplicate symptom in rule table: {rule.symptom!r}")
            by_symptom[rule.symptom] = rule
        self._by_symptom = by_symptom

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, symptom: object) -> bool:
        return symptom in self._by_symptom

    def lookup(self, symptom: str) -> Optional[SymptomRule]:
        return self._by_symptom.get(symptom)

    def list_symptoms(self) -> List[str]:
        return [rule.symptom for rule in self._rules]

    @classmethod
    def from_data(cls, data: object) -> "RuleTable":
        """
        Build a table from already-parsed JSON:
          [{"symptom": ..., "follow_up_questions": {section: [question, ...]}}, ...]
        """
        if not isinstance(data, list):
            raise RuleTableError("Rule table must be a JSON array of symptom rules")

        rules: List[SymptomRule] = []
        for index, item in enumerate(data):
            try:
                rules.append(SymptomRule.model_validate(item))
            except ValidationError as e:
                raise RuleTableError(f"Malformed symptom rule at index {index}: {e}") from e
        return cls(rules)


def load_rule_table(path: Path | str) -> RuleTable:
    """
    Load the rule table from a JSON file. Any problem is fatal.
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise RuleTableError(f"Cannot read rule table {path}: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise RuleTableError(f"Rule table {path} is not valid JSON: {e}") from e

    table = RuleTable.from_data(data)
    logger.info("Loaded %d symptom rules from %s", len(table), path)
    return table
