"""
Shared initialization for the text generation and summarization services.
"""

from typing import Any, Mapping, Optional

import httpx

from ..models.core import EffectiveSettings, TextGenRequest
from ..utils.config import AppConfig
from ..utils.config import config as default_config
from ..utils.encryption import create_encryption_provider
from ..utils.llm_client import OpenAICompatibleLLM
from ..utils.logging_config import get_logger
from .settings import load_module_settings, resolve_settings

logger = get_logger(__name__)


class ServiceNotInitializedError(Exception):
    """Raised when a request reaches a service before initialize() ran."""
    pass


class LLMServiceBase:
    """Settings resolution and LLM client wiring common to all services.

    initialize() must complete before any request path runs and must not be
    called concurrently with requests.
    """

    def __init__(self,
                 module_settings: Optional[Mapping[str, Any]] = None,
                 service_settings: Optional[Mapping[str, Any]] = None,
                 app_config: Optional[AppConfig] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            module_settings: Module-wide tier, read from YOLOLLM_* variables if None
            service_settings: Per-service overrides
            app_config: Application config, uses the global config if None
            transport: Optional httpx transport handed to the LLM client
        """
        self.app_config = app_config or default_config
        self.module_settings = module_settings
        self.service_settings = service_settings or {}
        self._transport = transport
        self._settings: Optional[EffectiveSettings] = None
        self._client: Optional[OpenAICompatibleLLM] = None

    @property
    def settings(self) -> EffectiveSettings:
        if self._settings is None:
            raise ServiceNotInitializedError(f'{type(self).__name__} not initialized')
        return self._settings

    @property
    def client(self) -> OpenAICompatibleLLM:
        if self._client is None:
            raise ServiceNotInitializedError(f'{type(self).__name__} not initialized')
        return self._client

    @property
    def is_initialized(self) -> bool:
        return self._settings is not None

    def initialize(self) -> EffectiveSettings:
        """Resolve settings and build the LLM client; call again after a reload-worthy change."""
        module_settings = self.module_settings if self.module_settings is not None else load_module_settings()
        encryption = create_encryption_provider(self.app_config.security.encryption_key)
        self._settings = resolve_settings(module_settings,
                                          self.service_settings,
                                          decrypt=encryption.decrypt if encryption else None)
        self._client = OpenAICompatibleLLM(self._settings, self.app_config.llm, transport=self._transport)
        self.on_initialized(self._settings)
        logger.info(f'Initialized {type(self).__name__} with model: {self._settings.model}')
        return self._settings

    def on_initialized(self, settings: EffectiveSettings) -> None:
        """Hook for subclasses to load prompts once settings are known."""
        pass

    async def generate(self, request: TextGenRequest) -> str:
        return await self.client.generate(request)
