"""
Shared fixtures for the intake tests.

Nothing here talks to a real model, database or messaging provider.
"""

import asyncio

import pytest

from cardiointake.intake.machine import IntakeStateMachine
from cardiointake.intake.rules import RuleTable
from cardiointake.llm.client import LLMClient
from cardiointake.llm.narration import NarrationService, Narrator
from cardiointake.services.sink import IntakeSink


CARDIO_RULES = [
    {
        "symptom": "Chest Pain",
        "follow_up_questions": {
            "Cardiac History": ["Pain duration?", "Pain triggers?"],
        },
    },
    {
        "symptom": "Shortness of Breath",
        "follow_up_questions": {
            "Cardiac History": ["Pain duration?", "At rest or exertion?"],
        },
    },
    {
        "symptom": "Palpitations",
        "follow_up_questions": {
            "Rhythm": ["Racing or skipping?"],
            "Cardiac History": ["Pain triggers?", "Any fainting?"],
        },
    },
]


class ScriptedLLMClient(LLMClient):
    """Returns canned replies, or raises if told to fail."""

    def __init__(self, reply="Hello from the model", error=None, delay=0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls = []

    async def chat(self, messages, temperature=0.2, model=None):
        self.calls.append(messages)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply


class RecordingSink(IntakeSink):
    """Keeps every committed record; can be told to fail."""

    def __init__(self, result=True, error=None, delay=0.0):
        self.result = result
        self.error = error
        self.delay = delay
        self.records = []

    async def commit(self, record):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.records.append(record)
        return self.result


@pytest.fixture
def rule_table():
    return RuleTable.from_data(CARDIO_RULES)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def offline_narrator():
    return Narrator(service=None)


@pytest.fixture
def machine(rule_table, offline_narrator, sink):
    return IntakeStateMachine(rule_table, offline_narrator, sink, sink_timeout=1.0)


def make_narrator(**client_kwargs):
    return Narrator(NarrationService(ScriptedLLMClient(**client_kwargs)), timeout=0.5)
