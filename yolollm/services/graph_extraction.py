"""
Graph Extraction Service running a dedicated LLM call per summarization.
"""

import asyncio
import time
from typing import List, Optional

from ..models.core import ROLE_USER, ChatMessage, ConversationContext, EffectiveSettings, GraphUpdate, TextGenRequest
from ..utils.json_utils import strip_code_fences
from ..utils.llm_client import OpenAICompatibleLLM
from ..utils.logging_config import get_logger
from ..utils.prompts import format_transcript, render_graph_prompt
from ..utils.timestamp_utils import elapsed_ms
from .graph_inbox import GraphInboxWriter
from .graph_mailbox import PendingGraphMailbox
from .graph_payload import extract_graph_update

logger = get_logger(__name__)

DEFAULT_GRAPH_EXTRACTION_PROMPT = """
You are a knowledge graph extraction system. Read the conversation and extract the
entities and relations it establishes or changes.

Known participants: {{existingEntities}}

Return a single JSON object with this exact format:
```json
{
  "entities": [
    {"name": "entity name", "type": "person|place|organization|object|concept|event", "summary": "short description"}
  ],
  "relations": [
    {"source": "entity name", "target": "entity name", "relation": "relationship label"}
  ]
}
```

Reuse the known participant names exactly. Only extract facts that are stated in the
conversation. Return {"entities": [], "relations": []} if nothing changed.

Conversation:
{{messages}}
"""


class GraphExtractionService:
    """Extract a graph delta from conversation messages and hand it to the inbox."""

    def __init__(self,
                 llm: OpenAICompatibleLLM,
                 settings: EffectiveSettings,
                 inbox: GraphInboxWriter,
                 prompt_template: Optional[str] = None,
                 mailbox: Optional[PendingGraphMailbox] = None):
        """
        Initialize the graph extraction service.

        Args:
            llm: Client used for the extraction call
            settings: Resolved settings of the owning service
            inbox: Writer for accepted updates
            prompt_template: Template with {{existingEntities}} and {{messages}}, built-in default if None
            mailbox: Optional hand-off to the next memory extraction call
        """
        self.llm = llm
        self.settings = settings
        self.inbox = inbox
        self.prompt_template = prompt_template or DEFAULT_GRAPH_EXTRACTION_PROMPT
        self.mailbox = mailbox

    def build_request(self, context: ConversationContext, messages: List[ChatMessage]) -> TextGenRequest:
        prompt = render_graph_prompt(self.prompt_template, ', '.join(context.participant_names()),
                                     format_transcript(messages))
        return TextGenRequest(messages=[ChatMessage(role=ROLE_USER, content=prompt.strip())],
                              max_new_tokens=self.settings.max_summary_tokens)

    async def extract(self, context: ConversationContext, messages: List[ChatMessage]) -> Optional[GraphUpdate]:
        """Run the extraction call and persist an accepted update.

        Never raises: LLM failures, unusable output, write failures and
        cancellation all end as "no graph update".

        Args:
            context: Conversation identity for the update's metadata
            messages: Messages being summarized

        Returns:
            The accepted GraphUpdate, or None
        """
        log_lifecycle = self.settings.log_lifecycle_events
        started = time.perf_counter()
        if log_lifecycle:
            logger.info(f'[YoloLLM] GraphExtraction start chatId={context.chat_id} sessionId={context.session_id} '
                        f'messages={len(messages)}')

        try:
            text = await self.llm.generate(self.build_request(context, messages))
            result = extract_graph_update(strip_code_fences(text), context)
            if not result.accepted:
                if log_lifecycle:
                    logger.info(f'[YoloLLM] GraphExtraction rejected chatId={context.chat_id} '
                                f'reason={result.reason.value} chars={len(text)}')
                return None

            update = result.update
            written = await self.inbox.write_update(update)
            if self.mailbox is not None:
                self.mailbox.offer(context.chat_id, update)

            if log_lifecycle:
                logger.info(f'[YoloLLM] GraphExtraction done chatId={context.chat_id} entities={len(update.entities)} '
                            f'relations={len(update.relations)} written={written} ms={elapsed_ms(started)}')
            return update

        except asyncio.CancelledError:
            logger.debug(f'Graph extraction cancelled for chat {context.chat_id}')
            return None
        except Exception as e:
            logger.warning(f'Graph extraction failed for chat {context.chat_id}: {e}')
            return None
