# cardiointake/intake/machine.py
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel

from cardiointake.intake.aggregator import FollowUpForm, aggregate, render_outline
from cardiointake.intake.errors import InvalidRequest, InvalidTransition, SessionClosed
from cardiointake.intake.normalizer import IntakeRecord, normalize
from cardiointake.intake.rules import RuleTable
from cardiointake.intake.stages import IntakeStep
from cardiointake.intake.state import IntakeSession

if TYPE_CHECKING:
    from cardiointake.llm.narration import Narrator
    from cardiointake.services.sink import IntakeSink

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_plausible_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value))


class GreetingPayload(BaseModel):
    greeting: str


class DetailsPayload(BaseModel):
    symptoms: List[str]


class FollowUpPayload(BaseModel):
    intro: str
    symptoms: List[str]
    follow_up: FollowUpForm


class SubmissionPayload(BaseModel):
    success: bool
    persisted: bool
    msg: str
    record: IntakeRecord


class IntakeStateMachine:
    """
    Drives one intake session through its fixed sequence of steps:

      greeting -> collect_details -> symptom_selection -> follow_up -> submitted

    Each transition takes a session plus the step's request fields and
    returns (new_session, payload for the next step). A rejected request
    raises an IntakeError and the given session is left as it was.
    """

    def __init__(
        self,
        rule_table: RuleTable,
        narrator: Narrator,
        sink: IntakeSink,
        sink_timeout: float = 15.0,
    ):
        self.rule_table = rule_table
        self.narrator = narrator
        self.sink = sink
        self.sink_timeout = sink_timeout

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def greet(self, session: IntakeSession) -> Tuple[IntakeSession, GreetingPayload]:
        self._require_step(session, IntakeStep.GREETING)

        greeting = await self.narrator.greeting()
        new_session = self._advance(session, IntakeStep.COLLECT_DETAILS)
        return new_session, GreetingPayload(greeting=greeting)

    async def submit_details(
        self,
        session: IntakeSession,
        name: Optional[str],
        email: Optional[str],
    ) -> Tuple[IntakeSession, DetailsPayload]:
        self._require_step(session, IntakeStep.COLLECT_DETAILS)

        name = (name or "").strip()
        email = (email or "").strip()
        if not name:
            raise InvalidRequest("Please provide your full name.", field="name")
        if not is_plausible_email(email):
            raise InvalidRequest("Please provide a valid email address.", field="email")

        new_session = self._advance(
            session,
            IntakeStep.SYMPTOM_SELECTION,
            patient_name=name,
            patient_email=email,
        )
        return new_session, DetailsPayload(symptoms=self.rule_table.list_symptoms())

    async def select_symptoms(
        self,
        session: IntakeSession,
        symptoms: Optional[Sequence[str]],
    ) -> Tuple[IntakeSession, FollowUpPayload]:
        self._require_step(session, IntakeStep.SYMPTOM_SELECTION)

        selected = list(symptoms or [])
        form = aggregate(self.rule_table, selected)
        unknown = [s for s in selected if s not in self.rule_table]
        if unknown:
            logger.info("Session %s: ignoring symptoms without rules: %s", session.id, unknown)

        intro = await self.narrator.follow_up_intro(render_outline(form))
        new_session = self._advance(
            session,
            IntakeStep.FOLLOW_UP,
            selected_symptoms=selected,
            follow_up_form=form,
            responses={},
        )
        return new_session, FollowUpPayload(intro=intro, symptoms=selected, follow_up=form)

    async def submit_responses(
        self,
        session: IntakeSession,
        responses: Optional[Mapping[str, Optional[str]]],
    ) -> Tuple[IntakeSession, SubmissionPayload]:
        self._require_step(session, IntakeStep.FOLLOW_UP)

        merged = {**session.responses, **dict(responses or {})}
        form = session.follow_up_form or FollowUpForm()
        missing = [q for q in form.questions() if q not in merged]
        if missing:
            raise InvalidRequest(
                f"Missing answers for {len(missing)} question(s): {', '.join(missing)}",
                field="responses",
            )

        answered = replace(session, responses=merged)
        # SubmissionRetry propagates; the caller keeps the follow_up session
        record = normalize(answered)

        persisted = await self._hand_off(session.id, record)
        new_session = self._advance(answered, IntakeStep.SUBMITTED)
        msg = "Form submitted and doctor notified." if persisted else "Form submitted."
        return new_session, SubmissionPayload(success=True, persisted=persisted, msg=msg, record=record)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_step(self, session: IntakeSession, expected: IntakeStep) -> None:
        if session.is_closed:
            raise SessionClosed("This intake has already been submitted.")
        if session.step != expected:
            logger.info(
                "Session %s: rejected %s request at step %s",
                session.id, expected.value, session.step.value,
            )
            raise InvalidTransition(
                f"Session is at step '{session.step.value}', not '{expected.value}'."
            )

    def _advance(self, session: IntakeSession, step: IntakeStep, **changes) -> IntakeSession:
        logger.info("Session %s: %s -> %s", session.id, session.step.value, step.value)
        return replace(
            session,
            step=step,
            updated_at=datetime.now(timezone.utc),
            **changes,
        )

    async def _hand_off(self, session_id: str, record: IntakeRecord) -> bool:
        """
        Give the record to the sink. Its outcome is logged, never raised.
        """
        try:
            persisted = await asyncio.wait_for(self.sink.commit(record), timeout=self.sink_timeout)
        except asyncio.TimeoutError:
            logger.error("Session %s: sink timed out after %.1fs", session_id, self.sink_timeout)
            return False
        except Exception:
            logger.exception("Session %s: sink failed", session_id)
            return False

        if not persisted:
            logger.error("Session %s: intake record was not persisted", session_id)
        return persisted
