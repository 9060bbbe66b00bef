# cardiointake/services/sink.py
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import httpx
from sqlalchemy.orm import sessionmaker

from cardiointake.db import SessionLocal, db_session
from cardiointake.intake.errors import CollaboratorUnavailable
from cardiointake.intake.normalizer import (
    IntakeRecord,
    HTML_TEXT_LIMIT,
    PLAIN_TEXT_LIMIT,
    render_html,
    render_plain,
)
from cardiointake.models import PatientIntake

logger = logging.getLogger(__name__)


class IntakeRepository:
    """
    Writes intake records to the patient_intake table.
    """

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self.session_factory = session_factory

    def save(self, record: IntakeRecord) -> int:
        with db_session(self.session_factory) as session:
            row = PatientIntake(
                name=record.name,
                email=record.email,
                symptoms=list(record.symptoms),
                responses=dict(record.responses),
                created_at=record.created_at,
            )
            session.add(row)
            session.flush()  # to get row.id
            return row.id

    def get(self, intake_id: int) -> Optional[PatientIntake]:
        session = self.session_factory()
        try:
            return session.get(PatientIntake, intake_id)
        finally:
            session.close()


class Notifier(ABC):
    name: str = "notifier"

    @abstractmethod
    async def send(self, record: IntakeRecord) -> None:
        """
        Deliver the record. Raises CollaboratorUnavailable on failure.
        """
        ...


class TelegramNotifier(Notifier):
    """
    Posts an HTML-formatted summary to a Telegram chat via the Bot API.
    """

    name = "telegram"
    API_BASE = "https://api.telegram.org"

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.client = client
        self.timeout = timeout

    async def send(self, record: IntakeRecord) -> None:
        url = f"{self.API_BASE}/bot{self.bot_token}/sendMessage"
        payload = {
            "chat_id": self.chat_id,
            "text": render_html(record, limit=HTML_TEXT_LIMIT),
            "parse_mode": "HTML",
        }
        try:
            if self.client is not None:
                response = await self.client.post(url, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, json=payload)
        except httpx.HTTPError as e:
            raise CollaboratorUnavailable(f"Telegram request failed: {e}") from e

        if response.status_code >= 400:
            raise CollaboratorUnavailable(
                f"Telegram returned HTTP {response.status_code}: {response.text.strip()}"
            )


class WhatsAppNotifier(Notifier):
    """
    Sends a plain-text summary to the doctor's WhatsApp number via Twilio.
    """

    name = "whatsapp"

    def __init__(self, account_sid: str, auth_token: str, from_number: str, to_number: str, client=None):
        self.from_number = from_number
        self.to_number = to_number
        if client is None:
            from twilio.rest import Client

            client = Client(account_sid, auth_token)
        self.client = client

    def _create_message(self, body: str):
        return self.client.messages.create(
            body=body,
            from_=self.from_number,
            to=self.to_number,
        )

    async def send(self, record: IntakeRecord) -> None:
        body = render_plain(record, limit=PLAIN_TEXT_LIMIT)
        try:
            # twilio's REST client is blocking
            await asyncio.to_thread(self._create_message, body)
        except Exception as e:
            raise CollaboratorUnavailable(f"Twilio message failed: {e}") from e


class IntakeSink(ABC):
    @abstractmethod
    async def commit(self, record: IntakeRecord) -> bool:
        """
        Store the record and notify. Returns False if the record was not stored.
        """
        ...


class PersistAndNotifySink(IntakeSink):
    """
    Persists the record first, then notifies every configured channel
    concurrently. A failing channel is logged and does not affect the others.
    """

    def __init__(self, repository: IntakeRepository, notifiers: Sequence[Notifier] = ()):
        self.repository = repository
        self.notifiers: List[Notifier] = list(notifiers)

    async def commit(self, record: IntakeRecord) -> bool:
        try:
            intake_id = await asyncio.to_thread(self.repository.save, record)
        except Exception:
            logger.exception("Failed to persist intake for %s", record.email)
            return False
        logger.info("Stored intake #%s for %s", intake_id, record.email)

        await self.notify(record)
        return True

    async def notify(self, record: IntakeRecord) -> None:
        if not self.notifiers:
            return
        results = await asyncio.gather(
            *(notifier.send(record) for notifier in self.notifiers),
            return_exceptions=True,
        )
        for notifier, result in zip(self.notifiers, results):
            if isinstance(result, BaseException):
                logger.error("%s notification failed: %s", notifier.name, result)
            else:
                logger.info("%s notification sent", notifier.name)
