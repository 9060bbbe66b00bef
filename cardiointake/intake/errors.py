# cardiointake/intake/errors.py
from __future__ import annotations

from typing import Optional


class IntakeError(Exception):
    """
    Base class for conditions reported back to the caller of an intake step.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequest(IntakeError):
    """
    A required field is missing or malformed. The session is left unchanged.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InvalidTransition(InvalidRequest):
    """
    The request does not belong to the session's current step.
    """

    def __init__(self, message: str):
        super().__init__(message, field="step")


class SessionClosed(IntakeError):
    """
    The session has already been submitted and accepts no further requests.
    """


class SubmissionRetry(IntakeError):
    """
    The record could not be built from the collected answers; try again.
    """


class UnknownSession(IntakeError):
    """
    No live session exists for the given id.
    """


class CollaboratorUnavailable(IntakeError):
    """
    An external collaborator (narration, persistence, notification) failed.
    Always recovered locally.
    """


class RuleTableError(RuntimeError):
    """
    The symptom rule table could not be loaded. Fatal at startup.
    """
