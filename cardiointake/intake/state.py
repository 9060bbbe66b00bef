# cardiointake/intake/state.py
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from cardiointake.intake.aggregator import FollowUpForm
from cardiointake.intake.stages import IntakeStep


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_session_id() -> str:
    return str(uuid.uuid4())


@dataclass
class IntakeSession:
    """
    In-memory state of one patient's intake conversation.

    Only the state machine produces new versions of a session; each
    transition returns a fresh copy and never edits the one it was given.
    """

    id: str = field(default_factory=_new_session_id)
    step: IntakeStep = IntakeStep.GREETING

    patient_name: Optional[str] = None
    patient_email: Optional[str] = None
    selected_symptoms: List[str] = field(default_factory=list)
    follow_up_form: Optional[FollowUpForm] = None

    # question -> raw answer as the patient sent it (may be blank or None)
    responses: Dict[str, Optional[str]] = field(default_factory=dict)

    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @property
    def is_closed(self) -> bool:
        return self.step == IntakeStep.SUBMITTED
