"""
OpenAI-compatible chat completions client.
"""

from typing import Any, Dict, Optional, Tuple

import httpx

from ..models.core import ROLE_ASSISTANT, ROLE_SYSTEM, ROLE_USER, ChatMessage, EffectiveSettings, TextGenRequest
from .config import LLMConfig
from .config import config as app_config
from .logging_config import get_logger

logger = get_logger(__name__)

_KNOWN_ROLES = (ROLE_SYSTEM, ROLE_ASSISTANT, ROLE_USER)


class LLMClientError(Exception):
    """Custom exception for LLM transport errors."""
    pass


class LLMConfigurationError(LLMClientError):
    """Raised when the client is missing required settings such as the API key."""
    pass


class OpenAICompatibleLLM:
    """Async client for any endpoint speaking the chat completions protocol.

    One request returns one completion; there is no streaming and no retry.
    """

    def __init__(self,
                 settings: EffectiveSettings,
                 config: Optional[LLMConfig] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize the LLM client.

        Args:
            settings: Resolved settings for the owning service
            config: Transport timeouts, uses the application config if None
            transport: Optional httpx transport (used by tests)
        """
        self.settings = settings
        self.config = config or app_config.llm
        self._transport = transport
        self._timeout = httpx.Timeout(self.config.request_timeout, connect=self.config.connect_timeout)

        logger.info(f'Initialized LLM client for {settings.base_url} with model: {settings.model}')

    def build_payload(self, request: TextGenRequest) -> Tuple[Dict[str, Any], int]:
        """Build the JSON body and the max_tokens actually requested.

        max_new_tokens falls back to the reply cap and is clamped to the larger
        of the reply and summary caps.
        """
        upper_bound = max(self.settings.max_new_tokens, self.settings.max_summary_tokens)
        desired = request.max_new_tokens if request.max_new_tokens > 0 else self.settings.max_new_tokens
        max_tokens = min(desired, upper_bound)

        payload: Dict[str, Any] = {
            'model': self.settings.model,
            'temperature': self.settings.temperature,
            'max_tokens': max_tokens,
            'messages': [self._to_wire(m) for m in request.messages],
        }
        if request.stop:
            payload['stop'] = list(request.stop)
        return payload, max_tokens

    async def generate(self, request: TextGenRequest) -> str:
        """
        Send one completion request.

        Args:
            request: Messages, token budget and stop strings

        Returns:
            Trimmed completion text, empty if the response had no choices

        Raises:
            LLMConfigurationError: If the API key is empty
            LLMClientError: If the request fails or the response is not JSON
        """
        api_key = (self.settings.api_key or '').strip()
        if not api_key:
            logger.error('LLM ApiKey is empty; check module configuration.')
            raise LLMConfigurationError('LLM ApiKey is empty.')

        payload, max_tokens = self.build_payload(request)
        headers = {'Authorization': f'Bearer {api_key}'}
        logger.debug(f'Sending LLM request to {self.settings.base_url} with max_tokens={max_tokens}')

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                response = await client.post(self.settings.base_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f'LLM request to {self.settings.base_url} failed: {e}')
            raise LLMClientError(f'LLM request failed: {e}')

        if response.is_error:
            logger.error(f'LLM call failed: {response.status_code} {response.reason_phrase} {response.text}')
            raise LLMClientError(f'LLM call failed with status {response.status_code}')

        try:
            data = response.json()
        except ValueError as e:
            raise LLMClientError(f'LLM response is not valid JSON: {e}')

        choices = data.get('choices') if isinstance(data, dict) else None
        if not choices:
            logger.warning('LLM response missing choices, returning empty string')
            return ''

        message = choices[0].get('message') or {}
        return (message.get('content') or '').strip()

    async def health_check(self) -> bool:
        """
        Perform a health check on the LLM endpoint.

        Returns:
            True if service is healthy, False otherwise
        """
        try:
            request = TextGenRequest(messages=[
                ChatMessage(role=ROLE_SYSTEM, content="You are a helpful assistant. Respond with just 'OK'."),
                ChatMessage(role=ROLE_USER, content='Hi')
            ],
                                     max_new_tokens=10)
            response = await self.generate(request)
            return len(response.strip()) > 0

        except LLMClientError as e:
            logger.error(f'LLM health check failed: {e}')
            return False

    @staticmethod
    def _to_wire(message: ChatMessage) -> Dict[str, str]:
        role = message.role if message.role in _KNOWN_ROLES else ROLE_USER
        return {'role': role, 'content': message.content}
