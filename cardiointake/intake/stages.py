# cardiointake/intake/stages.py
from enum import Enum


class IntakeStep(str, Enum):
    GREETING = "greeting"
    COLLECT_DETAILS = "collect_details"
    SYMPTOM_SELECTION = "symptom_selection"
    FOLLOW_UP = "follow_up"
    SUBMITTED = "submitted"
