# cardiointake/intake/aggregator.py
from __future__ import annotations

from typing import Dict, List, Sequence

from pydantic import BaseModel, Field

from cardiointake.intake.errors import InvalidRequest
from cardiointake.intake.rules import RuleTable


class FollowUpSection(BaseModel):
    section: str
    questions: List[str] = Field(default_factory=list)


class FollowUpForm(BaseModel):
    """
    Follow-up questionnaire for one session, grouped by section.
    """

    sections: List[FollowUpSection] = Field(default_factory=list)

    def questions(self) -> List[str]:
        """
        Every question of the form, in display order, each listed once.
        """
        seen: Dict[str, None] = {}
        for section in self.sections:
            for question in section.questions:
                seen.setdefault(question, None)
        return list(seen)


def aggregate(rule_table: RuleTable, selected_symptoms: Sequence[str]) -> FollowUpForm:
    """
    Merge the follow-up questions of every selected symptom into one form.

    - symptoms are visited in the order given, sections in rule order
    - a question already present in a section is not added again
    - symptoms without a rule contribute nothing
    """
    if not selected_symptoms:
        raise InvalidRequest("Symptoms must be a non-empty list.", field="symptoms")

    # dicts double as ordered sets: first occurrence keeps its position
    merged: Dict[str, Dict[str, None]] = {}
    for symptom in selected_symptoms:
        rule = rule_table.lookup(symptom)
        if rule is None:
            continue
        for section, questions in rule.follow_up_sections.items():
            bucket = merged.setdefault(section, {})
            for question in questions:
                bucket.setdefault(question, None)

    return FollowUpForm(
        sections=[
            FollowUpSection(section=section, questions=list(questions))
            for section, questions in merged.items()
        ]
    )


def render_outline(form: FollowUpForm) -> str:
    """
    Plain-text outline of the form, used as context for the intro narration:

      <section>:
      - question
    """
    parts: List[str] = []
    for section in form.sections:
        lines = [f"{section.section}:"] + [f"- {q}" for q in section.questions]
        parts.append("\n".join(lines))
    return "\n\n".join(parts)
