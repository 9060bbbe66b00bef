# cardiointake/intake/normalizer.py
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError

from cardiointake.intake.errors import SubmissionRetry
from cardiointake.intake.state import IntakeSession

NOT_ANSWERED = "Not Answered"

# WhatsApp rejects message bodies longer than this
PLAIN_TEXT_LIMIT = 1600
# Telegram sendMessage limit
HTML_TEXT_LIMIT = 4096


class IntakeRecord(BaseModel):
    """
    Finalized intake, as persisted and sent out to notification channels.
    Holds raw text; escaping happens only when rendering for a transport.
    """

    name: str
    email: str
    symptoms: List[str] = Field(default_factory=list)
    responses: Dict[str, str] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def normalize_responses(
    questions: Sequence[str],
    responses: Mapping[str, Optional[str]],
) -> Dict[str, Optional[str]]:
    """
    Restrict `responses` to `questions` and replace blank answers with the
    sentinel. Non-empty answers pass through untouched.
    """
    normalized: Dict[str, Optional[str]] = {}
    for question in questions:
        answer = responses.get(question)
        normalized[question] = NOT_ANSWERED if answer is None or answer == "" else answer
    return normalized


def normalize(session: IntakeSession) -> IntakeRecord:
    questions = session.follow_up_form.questions() if session.follow_up_form else []
    try:
        return IntakeRecord(
            name=session.patient_name,
            email=session.patient_email,
            symptoms=list(session.selected_symptoms),
            responses=normalize_responses(questions, session.responses),
        )
    except ValidationError as e:
        raise SubmissionRetry(
            f"Could not build the intake record, please submit again: {e.error_count()} invalid field(s)"
        ) from e


def escape_markup(text: str) -> str:
    # & first, otherwise the entities produced for < and > get mangled
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def render_html(record: IntakeRecord, limit: int = HTML_TEXT_LIMIT) -> str:
    """
    Telegram (parse_mode=HTML) rendering of a record.

    Responses that would push the message past `limit` are left out whole,
    so no tag is ever cut in half, and a note says how many were dropped.
    """
    header = "\n".join([
        "<b>New Cardiology Intake</b>",
        "--------------------------------------",
        "<b>Patient Details</b>",
        f"<b>Name:</b> {escape_markup(record.name)}",
        f"<b>Email:</b> {escape_markup(record.email)}",
        "",
        "<b>Symptoms</b>",
        f"- {escape_markup(', '.join(record.symptoms))}",
        "--------------------------------------",
        "<b>Follow-up Responses</b>",
        "",
    ]) + "\n"

    blocks = [
        f"<b>{escape_markup(question)}</b>\n{escape_markup(answer)}\n\n"
        for question, answer in record.responses.items()
    ]

    text = header
    for index, block in enumerate(blocks):
        remaining = len(blocks) - index
        note = f"<i>... {remaining} more response(s) omitted</i>"
        fits_with_room_for_note = len(text) + len(block) + len(note) <= limit
        is_last_and_fits = remaining == 1 and len(text) + len(block) <= limit
        if not (fits_with_room_for_note or is_last_and_fits):
            return (text + note)[:limit]
        text += block
    return text.rstrip("\n") + "\n"


def render_plain(record: IntakeRecord, limit: int = PLAIN_TEXT_LIMIT) -> str:
    text = (
        "New Cardiology Intake:\n\n"
        f"Name: {record.name}\n"
        f"Email: {record.email}\n\n"
        f"Symptoms: {', '.join(record.symptoms)}\n\n"
        f"Responses: {json.dumps(record.responses, indent=2, ensure_ascii=False)}"
    )
    return text[:limit]
