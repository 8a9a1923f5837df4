"""
Summarization service: conversation digests, memory extraction and graph extraction.
"""

import asyncio
import time
from typing import Any, List, Mapping, Optional

import httpx

from ..models.core import (ROLE_SYSTEM, ROLE_USER, ChatMessage, ConversationContext, EffectiveSettings,
                           MemoryExtractResult, MemoryMergeResult, TextGenRequest)
from ..utils.config import AppConfig
from ..utils.logging_config import get_logger
from ..utils.prompts import apply_system_override, apply_token_cap, format_transcript, load_prompt_safely
from ..utils.timestamp_utils import elapsed_ms
from .base import LLMServiceBase
from .graph_extraction import GraphExtractionService
from .graph_inbox import GraphInboxWriter, format_graph_line
from .graph_mailbox import PendingGraphMailbox
from .memory_parsing import parse_memory_extract_result

logger = get_logger(__name__)

DEFAULT_SUMMARY_INSTRUCTION = 'Summarize the following conversation. Keep names, decisions and facts that matter later.'

SUMMARIZE_TEXT_INSTRUCTION = 'Summarize the following text.'

DEFAULT_MEMORY_INSTRUCTION = """Extract the facts from the conversation that are worth remembering long term.
Write one short, self-contained statement per line inside a <memories> block:
<memories>
1; statement
2; statement
</memories>"""


class SummarizationService(LLMServiceBase):
    """Summarize conversations and extract memories and graph updates."""

    def __init__(self,
                 module_settings: Optional[Mapping[str, Any]] = None,
                 service_settings: Optional[Mapping[str, Any]] = None,
                 app_config: Optional[AppConfig] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 graph_mailbox: Optional[PendingGraphMailbox] = None):
        """
        Args:
            module_settings: Module-wide tier, read from YOLOLLM_* variables if None
            service_settings: Per-service overrides
            app_config: Application config, uses the global config if None
            transport: Optional httpx transport handed to the LLM client
            graph_mailbox: Optional hand-off of graph updates to extract_memories
        """
        super().__init__(module_settings, service_settings, app_config, transport)
        self.graph_mailbox = graph_mailbox
        self.graph_extraction: Optional[GraphExtractionService] = None
        self._summary_prompt: Optional[str] = None
        self._memory_extraction_prompt: Optional[str] = None

    @property
    def summarization_digest_ratio(self) -> float:
        return self._settings.summarization_digest_ratio if self._settings else 0.3

    @property
    def summarization_trigger_messages_buffer(self) -> float:
        return self._settings.summarization_trigger_messages_buffer if self._settings else 2

    @property
    def token_window(self) -> int:
        return self._settings.max_window_tokens if self._settings else 0

    @property
    def max_summary_length(self) -> int:
        return self._settings.max_summary_tokens if self._settings else 0

    @property
    def keep_last_messages(self) -> int:
        return self._settings.keep_last_messages if self._settings else 0

    def on_initialized(self, settings: EffectiveSettings) -> None:
        self._summary_prompt = load_prompt_safely(settings.summary_prompt_path, 'summary')
        self._memory_extraction_prompt = load_prompt_safely(settings.memory_extraction_prompt_path, 'memory-extraction')
        self.graph_extraction = None
        if settings.enable_graph_extraction:
            self.graph_extraction = GraphExtractionService(
                self.client,
                settings,
                GraphInboxWriter(self.app_config.graph_inbox.directory),
                prompt_template=load_prompt_safely(settings.graph_extraction_prompt_path, 'graph-extraction'),
                mailbox=self.graph_mailbox)

    async def summarize(self,
                        context: ConversationContext,
                        messages: List[ChatMessage],
                        request: Optional[TextGenRequest] = None) -> str:
        """Summarize messages and, when enabled, extract a graph update alongside.

        Args:
            context: Conversation identity
            messages: Messages to summarize
            request: Summarization prompt built by the host, a default one if None

        Returns:
            Summary text

        Raises:
            LLMClientError: If the summary call fails, after cancelling the graph
                extraction; graph extraction itself never raises
        """
        settings = self.settings
        started = time.perf_counter()
        if settings.log_lifecycle_events:
            logger.info(f'[YoloLLM] Summarize start chatId={context.chat_id} sessionId={context.session_id} '
                        f'messages={len(messages)} tokenWindow={self.token_window} '
                        f'maxSummaryTokens={self.max_summary_length}')

        request = request or self._default_request(DEFAULT_SUMMARY_INSTRUCTION, messages)
        request = apply_token_cap(apply_system_override(request, self._summary_prompt), settings.max_summary_tokens)

        if self.graph_extraction is not None:
            graph_task = asyncio.ensure_future(self.graph_extraction.extract(context, messages))
            try:
                result = await self.generate(request)
            except BaseException:
                # A failed summary leaves no graph update behind
                graph_task.cancel()
                await asyncio.gather(graph_task, return_exceptions=True)
                raise
            await graph_task
        else:
            result = await self.generate(request)

        if settings.log_lifecycle_events:
            logger.info(f'[YoloLLM] Summarize done chatId={context.chat_id} chars={len(result)} ms={elapsed_ms(started)}')
        return result

    async def summarize_text(self, prompt: str) -> str:
        """Summarize free text with a fixed instruction."""
        request = TextGenRequest(messages=[
            ChatMessage(role=ROLE_SYSTEM, content=SUMMARIZE_TEXT_INSTRUCTION),
            ChatMessage(role=ROLE_USER, content=prompt)
        ],
                                 max_new_tokens=self.settings.max_summary_tokens)
        return await self.generate(request)

    async def extract_memories(self,
                               context: ConversationContext,
                               messages: List[ChatMessage],
                               request: Optional[TextGenRequest] = None) -> List[MemoryExtractResult]:
        """Extract discrete memory facts from messages.

        Args:
            context: Conversation identity
            messages: Messages to extract from
            request: Memory extraction prompt built by the host, a default one if None

        Returns:
            Ordered facts; a pending graph update for the chat is appended as a GRAPH_JSON line
        """
        settings = self.settings
        started = time.perf_counter()
        if settings.log_lifecycle_events:
            logger.info(f'[YoloLLM] ExtractMemories start chatId={context.chat_id} sessionId={context.session_id} '
                        f'messages={len(messages)} maxSummaryTokens={self.max_summary_length}')

        request = request or self._default_request(DEFAULT_MEMORY_INSTRUCTION, messages)
        request = apply_token_cap(apply_system_override(request, self._memory_extraction_prompt),
                                  settings.max_summary_tokens)
        text = await self.generate(request)
        extracted = parse_memory_extract_result(text)

        if self.graph_mailbox is not None:
            pending = self.graph_mailbox.take(context.chat_id)
            if pending is not None:
                extracted.append(MemoryExtractResult(index=len(extracted), text=format_graph_line(pending)))

        if settings.log_lifecycle_events:
            logger.info(f'[YoloLLM] ExtractMemories done chatId={context.chat_id} extracted={len(extracted)} '
                        f'ms={elapsed_ms(started)}')
        return extracted

    async def merge_memories(self, context: ConversationContext, memories: List[MemoryExtractResult]) -> MemoryMergeResult:
        """Merging is not supported; memories are kept as extracted."""
        return MemoryMergeResult.empty()

    @staticmethod
    def _default_request(instruction: str, messages: List[ChatMessage]) -> TextGenRequest:
        return TextGenRequest(messages=[
            ChatMessage(role=ROLE_SYSTEM, content=instruction),
            ChatMessage(role=ROLE_USER, content=format_transcript(messages))
        ])
