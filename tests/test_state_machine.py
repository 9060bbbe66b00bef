"""
Test the intake step sequence:
greeting -> collect_details -> symptom_selection -> follow_up -> submitted
"""

import asyncio

import pytest

from cardiointake.intake.aggregator import FollowUpForm, FollowUpSection
from cardiointake.intake.errors import (
    CollaboratorUnavailable,
    InvalidRequest,
    InvalidTransition,
    SessionClosed,
    SubmissionRetry,
)
from cardiointake.intake.machine import IntakeStateMachine, is_plausible_email
from cardiointake.intake.normalizer import NOT_ANSWERED
from cardiointake.intake.stages import IntakeStep
from cardiointake.intake.state import IntakeSession
from cardiointake.llm.narration import FOLLOW_UP_FALLBACK, GREETING_FALLBACK
from tests.conftest import RecordingSink, make_narrator


def run(coro):
    return asyncio.run(coro)


def _at_follow_up(machine, symptoms=("Chest Pain", "Shortness of Breath")):
    session = IntakeSession()
    session, _ = run(machine.greet(session))
    session, _ = run(machine.submit_details(session, "Ada Lovelace", "ada@example.com"))
    session, _ = run(machine.select_symptoms(session, list(symptoms)))
    return session


def test_full_walkthrough(machine, sink):
    session = IntakeSession()
    assert session.step == IntakeStep.GREETING

    session, greeting = run(machine.greet(session))
    assert session.step == IntakeStep.COLLECT_DETAILS
    assert greeting.greeting == GREETING_FALLBACK

    session, details = run(machine.submit_details(session, " Ada Lovelace ", "ada@example.com"))
    assert session.step == IntakeStep.SYMPTOM_SELECTION
    assert session.patient_name == "Ada Lovelace"
    assert details.symptoms == ["Chest Pain", "Shortness of Breath", "Palpitations"]

    session, follow_up = run(machine.select_symptoms(session, ["Chest Pain", "Shortness of Breath"]))
    assert session.step == IntakeStep.FOLLOW_UP
    assert follow_up.intro == FOLLOW_UP_FALLBACK
    assert follow_up.follow_up.questions() == [
        "Pain duration?",
        "Pain triggers?",
        "At rest or exertion?",
    ]

    session, receipt = run(
        machine.submit_responses(
            session,
            {"Pain duration?": "10 minutes", "Pain triggers?": "", "At rest or exertion?": None},
        )
    )
    assert session.step == IntakeStep.SUBMITTED
    assert receipt.success and receipt.persisted
    assert sink.records == [receipt.record]
    assert receipt.record.responses == {
        "Pain duration?": "10 minutes",
        "Pain triggers?": NOT_ANSWERED,
        "At rest or exertion?": NOT_ANSWERED,
    }


def test_transitions_do_not_mutate_their_input(machine):
    session = IntakeSession()
    new_session, _ = run(machine.greet(session))
    assert session.step == IntakeStep.GREETING
    assert new_session is not session
    assert new_session.id == session.id


@pytest.mark.parametrize(
    "name, email, field",
    [
        ("", "ada@example.com", "name"),
        ("   ", "ada@example.com", "name"),
        (None, "ada@example.com", "name"),
        ("Ada", "", "email"),
        ("Ada", "not-an-email", "email"),
        ("Ada", "ada@example", "email"),
        ("Ada", None, "email"),
    ],
)
def test_details_validation(machine, name, email, field):
    session, _ = run(machine.greet(IntakeSession()))

    with pytest.raises(InvalidRequest) as exc_info:
        run(machine.submit_details(session, name, email))

    assert exc_info.value.field == field
    assert session.step == IntakeStep.COLLECT_DETAILS


def test_email_plausibility():
    assert is_plausible_email("a.b+c@clinic.example.org")
    assert not is_plausible_email("a b@clinic.org")
    assert not is_plausible_email("@clinic.org")


def test_empty_symptom_selection_keeps_session_in_place(machine):
    session = IntakeSession()
    session, _ = run(machine.greet(session))
    session, _ = run(machine.submit_details(session, "Ada", "ada@example.com"))

    with pytest.raises(InvalidRequest) as exc_info:
        run(machine.select_symptoms(session, []))

    assert exc_info.value.field == "symptoms"
    assert session.step == IntakeStep.SYMPTOM_SELECTION
    assert session.follow_up_form is None


def test_unknown_symptoms_only_still_reach_follow_up(machine, sink):
    session = _at_follow_up(machine, symptoms=["Unknown Symptom"])
    assert session.follow_up_form.sections == []

    session, receipt = run(machine.submit_responses(session, {}))
    assert session.step == IntakeStep.SUBMITTED
    assert receipt.record.responses == {}


def test_steps_cannot_be_skipped(machine):
    session = IntakeSession()
    session, _ = run(machine.greet(session))
    session, _ = run(machine.submit_details(session, "Ada", "ada@example.com"))
    assert session.step == IntakeStep.SYMPTOM_SELECTION

    with pytest.raises(InvalidTransition):
        run(machine.submit_responses(session, {"Pain duration?": "1h"}))
    with pytest.raises(InvalidTransition):
        run(machine.greet(session))
    with pytest.raises(InvalidTransition):
        run(machine.submit_details(session, "Ada", "ada@example.com"))


def test_follow_up_cannot_go_back_to_symptom_selection(machine):
    session = _at_follow_up(machine)
    with pytest.raises(InvalidTransition):
        run(machine.select_symptoms(session, ["Palpitations"]))


def test_submit_requires_every_question(machine, sink):
    session = _at_follow_up(machine)

    with pytest.raises(InvalidRequest) as exc_info:
        run(machine.submit_responses(session, {"Pain duration?": "1h", "Pain triggers?": "stairs"}))

    assert exc_info.value.field == "responses"
    assert "At rest or exertion?" in exc_info.value.message
    assert session.step == IntakeStep.FOLLOW_UP
    assert sink.records == []


def test_blank_answer_on_single_question_form_is_submitted(machine):
    session = IntakeSession(
        step=IntakeStep.FOLLOW_UP,
        patient_name="Ada",
        patient_email="ada@example.com",
        selected_symptoms=["Chest Pain"],
        follow_up_form=FollowUpForm(
            sections=[FollowUpSection(section="Cardiac History", questions=["Pain duration?"])]
        ),
        responses={"Pain duration?": ""},
    )

    session, receipt = run(machine.submit_responses(session, None))

    assert session.step == IntakeStep.SUBMITTED
    assert receipt.record.responses == {"Pain duration?": NOT_ANSWERED}


def test_submitted_session_is_closed(machine):
    session = _at_follow_up(machine)
    session, _ = run(
        machine.submit_responses(
            session,
            {"Pain duration?": "", "Pain triggers?": "", "At rest or exertion?": ""},
        )
    )

    with pytest.raises(SessionClosed):
        run(machine.submit_responses(session, {}))
    with pytest.raises(SessionClosed):
        run(machine.greet(session))


def test_malformed_record_keeps_follow_up(machine, sink):
    session = _at_follow_up(machine)

    with pytest.raises(SubmissionRetry):
        run(
            machine.submit_responses(
                session,
                {"Pain duration?": 5, "Pain triggers?": "", "At rest or exertion?": ""},
            )
        )

    assert session.step == IntakeStep.FOLLOW_UP
    assert sink.records == []


@pytest.mark.parametrize(
    "failing_sink",
    [
        RecordingSink(result=False),
        RecordingSink(error=CollaboratorUnavailable("database down")),
        RecordingSink(error=RuntimeError("boom")),
        RecordingSink(delay=0.5),
    ],
)
def test_sink_failure_does_not_block_submission(rule_table, offline_narrator, failing_sink):
    machine = IntakeStateMachine(rule_table, offline_narrator, failing_sink, sink_timeout=0.05)
    session = _at_follow_up(machine, symptoms=["Chest Pain"])

    session, receipt = run(
        machine.submit_responses(session, {"Pain duration?": "1h", "Pain triggers?": "stairs"})
    )

    assert session.step == IntakeStep.SUBMITTED
    assert receipt.success is True
    assert receipt.persisted is False
    assert receipt.msg == "Form submitted."


def test_narration_is_used_when_available(rule_table, sink):
    machine = IntakeStateMachine(rule_table, make_narrator(reply="  Hi there!  "), sink)

    session, greeting = run(machine.greet(IntakeSession()))
    assert greeting.greeting == "Hi there!"


def test_narration_failure_falls_back(rule_table, sink):
    machine = IntakeStateMachine(
        rule_table, make_narrator(error=ConnectionError("no network")), sink
    )

    session, greeting = run(machine.greet(IntakeSession()))
    session, _ = run(machine.submit_details(session, "Ada", "ada@example.com"))
    session, follow_up = run(machine.select_symptoms(session, ["Chest Pain"]))

    assert greeting.greeting == GREETING_FALLBACK
    assert follow_up.intro == FOLLOW_UP_FALLBACK
    assert session.step == IntakeStep.FOLLOW_UP
