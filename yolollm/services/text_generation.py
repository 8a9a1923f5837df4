"""
Text generation service for chat replies and story events.
"""

from typing import List, Optional

from ..models.core import ChatMessage, EffectiveSettings, GenerateReplyConstraints, TextGenRequest
from ..utils.prompts import apply_system_override, load_prompt_safely
from .base import LLMServiceBase


class TextGenService(LLMServiceBase):
    """Generate replies through the configured OpenAI-compatible endpoint."""

    _reply_system_prompt: Optional[str] = None

    @property
    def max_window_tokens(self) -> int:
        return self._settings.max_window_tokens if self._settings else 0

    @property
    def max_tokens(self) -> int:
        return self._settings.max_new_tokens if self._settings else 0

    @property
    def max_memory_tokens(self) -> int:
        return self._settings.max_memory_tokens if self._settings else 0

    def on_initialized(self, settings: EffectiveSettings) -> None:
        self._reply_system_prompt = load_prompt_safely(settings.reply_system_prompt_path, 'reply')

    async def generate_reply(self, messages: List[ChatMessage], max_new_tokens: int = 0) -> str:
        """Generate a reply or story continuation with the reply system prompt prepended.

        Args:
            messages: Prompt messages built by the host
            max_new_tokens: Requested cap, 0 for the configured one

        Returns:
            Completion text
        """
        constraints = self.get_constraints(max_new_tokens)
        request = TextGenRequest(messages=list(messages), max_new_tokens=constraints.max_new_tokens)
        return await self.generate(apply_system_override(request, self._reply_system_prompt))

    def get_constraints(self, max_new_tokens: int = 0) -> GenerateReplyConstraints:
        """Token limits the host should respect when building a reply prompt."""
        settings = self.settings
        if max_new_tokens > 0:
            max_new_tokens = min(max_new_tokens, settings.max_new_tokens)
        else:
            max_new_tokens = settings.max_new_tokens

        if settings.max_memory_tokens > 0 and settings.max_window_tokens > 0:
            memory_ratio = settings.max_memory_tokens / settings.max_window_tokens
        else:
            memory_ratio = 0.25

        return GenerateReplyConstraints(max_input_tokens=settings.max_window_tokens,
                                        max_new_tokens=max_new_tokens,
                                        max_memory_tokens_ratio=memory_ratio)
