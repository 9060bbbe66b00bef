# cardiointake/api/dependencies.py
from __future__ import annotations

import logging
from datetime import timedelta
from functools import lru_cache
from typing import List

from cardiointake.config import Settings, get_settings
from cardiointake.intake.machine import IntakeStateMachine
from cardiointake.intake.rules import RuleTable, load_rule_table
from cardiointake.llm import NarrationService, Narrator, OpenAILLMClient
from cardiointake.services import (
    IntakeRepository,
    IntakeSessionService,
    Notifier,
    PersistAndNotifySink,
    SessionStore,
    TelegramNotifier,
    WhatsAppNotifier,
)

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_rule_table() -> RuleTable:
    return load_rule_table(get_settings().rules_path)


def build_narrator(settings: Settings) -> Narrator:
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY not set; patient-facing text will use fixed wording.")
        return Narrator(service=None, timeout=settings.narration_timeout_seconds)
    service = NarrationService(OpenAILLMClient(model=settings.llm_model))
    return Narrator(service=service, timeout=settings.narration_timeout_seconds)


def build_notifiers(settings: Settings) -> List[Notifier]:
    notifiers: List[Notifier] = []
    if settings.telegram_bot_token and settings.telegram_chat_id:
        notifiers.append(TelegramNotifier(settings.telegram_bot_token, settings.telegram_chat_id))
    else:
        logger.warning("Telegram not configured; skipping Telegram notifications.")

    twilio_fields = (
        settings.twilio_account_sid,
        settings.twilio_auth_token,
        settings.twilio_whatsapp_from,
        settings.doctor_phone_number,
    )
    if all(twilio_fields):
        notifiers.append(WhatsAppNotifier(*twilio_fields))
    else:
        logger.warning("Twilio not configured; skipping WhatsApp notifications.")
    return notifiers


@lru_cache(maxsize=1)
def get_narrator() -> Narrator:
    return build_narrator(get_settings())


@lru_cache(maxsize=1)
def get_intake_service() -> IntakeSessionService:
    settings = get_settings()
    sink = PersistAndNotifySink(IntakeRepository(), build_notifiers(settings))
    machine = IntakeStateMachine(
        rule_table=get_rule_table(),
        narrator=get_narrator(),
        sink=sink,
        sink_timeout=settings.sink_timeout_seconds,
    )
    store = SessionStore(max_age=timedelta(minutes=settings.session_max_age_minutes))
    return IntakeSessionService(machine, store)
