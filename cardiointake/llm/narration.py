# cardiointake/llm/narration.py
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from cardiointake.intake.errors import CollaboratorUnavailable
from cardiointake.llm.client import LLMClient

logger = logging.getLogger(__name__)


GREETING_PROMPT = (
    "You are a medical chatbot assistant for a heart clinic. Greet the patient warmly, "
    "then politely ask for their full name and email address. "
    "Do not ask about symptoms yet and do not give any medical advice."
)
GREETING_CONTEXT = "The patient has started the chat."
GREETING_FALLBACK = (
    "Welcome to the Cardiology Clinic assistant. To get started, "
    "please provide your full name and email address."
)

FOLLOW_UP_PROMPT = (
    "You are an assistant talking to a cardiology patient. Gently explain that you'll ask "
    "a few questions about their symptoms, assure them this is routine, and guide them through. "
    "Do not invent new questions, only provide this reassurance and explain the sections."
)
FOLLOW_UP_FALLBACK = (
    "Thank you. Now, please answer the following questions regarding your symptoms."
)

CHAT_PROMPT = (
    "You are a friendly medical chat assistant for a cardiology clinic. Never make up "
    "medical questions; only use casual conversation or clarifications between intake steps."
)
CHAT_FALLBACK = "Thank you! Let's proceed."


class NarrationService:
    """
    Turns a system prompt plus context into patient-facing text.
    Raises CollaboratorUnavailable when the model cannot be reached.
    """

    def __init__(self, llm_client: LLMClient, temperature: float = 0.4):
        self.llm_client = llm_client
        self.temperature = temperature

    async def generate(self, system_prompt: str, context: str) -> str:
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": context},
        ]
        try:
            return await self.llm_client.chat(messages, temperature=self.temperature)
        except Exception as e:
            raise CollaboratorUnavailable(f"Narration model call failed: {e}") from e


class Narrator:
    """
    Wraps a NarrationService so every call yields usable text.

    The caller names a fallback for each call site; it is returned when no
    service is configured, the call fails or times out, or the model replies
    with nothing.
    """

    def __init__(self, service: Optional[NarrationService] = None, timeout: float = 8.0):
        self.service = service
        self.timeout = timeout

    async def narrate(self, system_prompt: str, context: str, fallback: str) -> str:
        if self.service is None:
            return fallback

        try:
            text = await asyncio.wait_for(
                self.service.generate(system_prompt, context), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Narration timed out after %.1fs, using fallback", self.timeout)
            return fallback
        except CollaboratorUnavailable as e:
            logger.warning("%s; using fallback", e)
            return fallback

        text = (text or "").strip()
        return text or fallback

    async def greeting(self) -> str:
        return await self.narrate(GREETING_PROMPT, GREETING_CONTEXT, GREETING_FALLBACK)

    async def follow_up_intro(self, outline: str) -> str:
        return await self.narrate(FOLLOW_UP_PROMPT, outline, FOLLOW_UP_FALLBACK)

    async def chat_reply(self, message: str) -> str:
        return await self.narrate(CHAT_PROMPT, message, CHAT_FALLBACK)
