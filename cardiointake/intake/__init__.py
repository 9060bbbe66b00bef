# cardiointake/intake/__init__.py
from .aggregator import FollowUpForm, FollowUpSection, aggregate
from .errors import (
    IntakeError,
    InvalidRequest,
    InvalidTransition,
    SessionClosed,
    SubmissionRetry,
    UnknownSession,
    CollaboratorUnavailable,
    RuleTableError,
)
from .machine import IntakeStateMachine
from .normalizer import NOT_ANSWERED, IntakeRecord, normalize
from .rules import RuleTable, SymptomRule, load_rule_table
from .stages import IntakeStep
from .state import IntakeSession

__all__ = [
    "FollowUpForm",
    "FollowUpSection",
    "aggregate",
    "IntakeError",
    "InvalidRequest",
    "InvalidTransition",
    "SessionClosed",
    "SubmissionRetry",
    "UnknownSession",
    "CollaboratorUnavailable",
    "RuleTableError",
    "IntakeStateMachine",
    "NOT_ANSWERED",
    "IntakeRecord",
    "normalize",
    "RuleTable",
    "SymptomRule",
    "load_rule_table",
    "IntakeStep",
    "IntakeSession",
]
