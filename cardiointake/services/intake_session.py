# cardiointake/services/intake_session.py
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Dict, Mapping, Optional, Sequence, Tuple

from cardiointake.intake.errors import SessionClosed, UnknownSession
from cardiointake.intake.machine import (
    DetailsPayload,
    FollowUpPayload,
    GreetingPayload,
    IntakeStateMachine,
    SubmissionPayload,
)
from cardiointake.intake.state import IntakeSession

logger = logging.getLogger(__name__)


class SessionStore:
    """
    In-memory store of live intake sessions.

    Each session id has its own lock so that only one request at a time
    can move a given session forward.
    """

    def __init__(self, max_age: Optional[timedelta] = None):
        self.max_age = max_age
        self._sessions: Dict[str, IntakeSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        # submitted session id -> submission time
        self._closed: Dict[str, datetime] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def add(self, session: IntakeSession) -> None:
        if self.max_age is not None:
            self.purge_stale(self.max_age)
        self._sessions[session.id] = session
        self._locks[session.id] = asyncio.Lock()

    def get(self, session_id: str) -> IntakeSession:
        session = self._sessions.get(session_id)
        if session is None:
            self._raise_missing(session_id)
        return session

    def save(self, session: IntakeSession) -> None:
        if session.id not in self._sessions:
            self._raise_missing(session.id)
        self._sessions[session.id] = session

    def close(self, session_id: str) -> None:
        """
        Forget a submitted session but remember that it was submitted.
        """
        self.discard(session_id)
        self._closed[session_id] = datetime.now(timezone.utc)

    def discard(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._locks.pop(session_id, None)

    @asynccontextmanager
    async def locked(self, session_id: str) -> AsyncIterator[IntakeSession]:
        lock = self._locks.get(session_id)
        if lock is None:
            self._raise_missing(session_id)
        async with lock:
            # re-read under the lock: a previous holder may have replaced it
            yield self.get(session_id)

    def purge_stale(self, max_age: timedelta, now: Optional[datetime] = None) -> int:
        """
        Drop sessions that have not moved for longer than `max_age`.
        Sessions currently being advanced are left alone.
        """
        now = now or datetime.now(timezone.utc)
        stale = [
            sid
            for sid, session in self._sessions.items()
            if now - session.updated_at > max_age and not self._locks[sid].locked()
        ]
        for sid in stale:
            self.discard(sid)
        for sid, closed_at in list(self._closed.items()):
            if now - closed_at > max_age:
                del self._closed[sid]
        if stale:
            logger.info("Purged %d stale intake session(s)", len(stale))
        return len(stale)

    def _raise_missing(self, session_id: str) -> None:
        if session_id in self._closed:
            raise SessionClosed("This intake has already been submitted.")
        raise UnknownSession("Intake session not found. Start a new intake session.")


class IntakeSessionService:
    """
    Service that coordinates:
      - creating and looking up live sessions
      - running each request through the IntakeStateMachine
      - dropping sessions once they are submitted
    """

    def __init__(self, machine: IntakeStateMachine, store: Optional[SessionStore] = None):
        self.machine = machine
        self.store = store or SessionStore()

    def list_symptoms(self):
        return self.machine.rule_table.list_symptoms()

    def get_session(self, session_id: str) -> IntakeSession:
        return self.store.get(session_id)

    async def start_session(self) -> Tuple[IntakeSession, GreetingPayload]:
        """
        Create a session on first contact and greet the patient.
        """
        session = IntakeSession()
        self.store.add(session)
        async with self.store.locked(session.id) as current:
            session, payload = await self.machine.greet(current)
            self.store.save(session)
        return session, payload

    async def submit_details(
        self, session_id: str, name: Optional[str], email: Optional[str]
    ) -> Tuple[IntakeSession, DetailsPayload]:
        async with self.store.locked(session_id) as current:
            session, payload = await self.machine.submit_details(current, name, email)
            self.store.save(session)
        return session, payload

    async def select_symptoms(
        self, session_id: str, symptoms: Optional[Sequence[str]]
    ) -> Tuple[IntakeSession, FollowUpPayload]:
        async with self.store.locked(session_id) as current:
            session, payload = await self.machine.select_symptoms(current, symptoms)
            self.store.save(session)
        return session, payload

    async def submit_responses(
        self, session_id: str, responses: Optional[Mapping[str, Optional[str]]]
    ) -> Tuple[IntakeSession, SubmissionPayload]:
        async with self.store.locked(session_id) as current:
            session, payload = await self.machine.submit_responses(current, responses)
            self.store.save(session)
        # the record has been handed to the sink; nothing more to keep
        self.store.close(session_id)
        return session, payload
