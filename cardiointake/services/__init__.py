# cardiointake/services/__init__.py
from .intake_session import IntakeSessionService, SessionStore
from .sink import (
    IntakeRepository,
    IntakeSink,
    Notifier,
    PersistAndNotifySink,
    TelegramNotifier,
    WhatsAppNotifier,
)

__all__ = [
    "IntakeSessionService",
    "SessionStore",
    "IntakeRepository",
    "IntakeSink",
    "Notifier",
    "PersistAndNotifySink",
    "TelegramNotifier",
    "WhatsAppNotifier",
]
