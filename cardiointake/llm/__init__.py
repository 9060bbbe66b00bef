# cardiointake/llm/__init__.py
from .client import LLMClient, OpenAILLMClient
from .narration import NarrationService, Narrator

__all__ = ["LLMClient", "OpenAILLMClient", "NarrationService", "Narrator"]
