"""
MCP Interface Layer using fastmcp for agent orchestration.
"""
from typing import Any, Dict, List, Optional, Tuple

from fastmcp import FastMCP

from yolollm.models.core import ROLE_USER, ChatMessage, ConversationContext, Participant
from yolollm.services.graph_inbox import GraphInboxWriter
from yolollm.services.graph_payload import extract_graph_update
from yolollm.services.summarization import SummarizationService
from yolollm.utils.config import config
from yolollm.utils.health_check import get_health_status
from yolollm.utils.json_utils import strip_code_fences
from yolollm.utils.llm_client import LLMClientError
from yolollm.utils.logging_config import get_logger

logger = get_logger(__name__)

# Initialize FastMCP application
mcp = FastMCP('YoloLLM')
summarization_service = SummarizationService()
summarization_service.initialize()


def _context(chat_id: str, session_id: Optional[str], user_name: Optional[str],
             characters: Optional[List[str]]) -> ConversationContext:
    return ConversationContext(chat_id=chat_id,
                               session_id=session_id or chat_id,
                               user=Participant(id='user', name=user_name or 'User', role='user'),
                               characters=[Participant(id=name, name=name) for name in characters or []])


@mcp.tool()
async def summarize_text(text: str) -> str:
    """Summarize a block of text.

    Args:
        text: Text to summarize

    Returns:
        Summary
    """
    if not text or not text.strip():
        return ''

    try:
        return await summarization_service.summarize_text(text)
    except LLMClientError as e:
        logger.error(f'LLM error in MCP summarize_text: {e}')
        raise Exception(f'Summarization failed: {e}')


@mcp.tool()
async def extract_memories(chat_id: str, conversation: str, user_name: Optional[str] = None) -> List[Tuple[int, str]]:
    """Extract long-term memory facts from a conversation transcript.

    Args:
        chat_id: Conversation ID
        conversation: Transcript text
        user_name: Name of the user in the transcript

    Returns:
        List of tuples (index, fact)
    """
    if not chat_id or not chat_id.strip():
        raise ValueError('Chat ID is required')

    context = _context(chat_id, None, user_name, None)
    try:
        memories = await summarization_service.extract_memories(context,
                                                                [ChatMessage(role=ROLE_USER, content=conversation)])
    except LLMClientError as e:
        logger.error(f'LLM error in MCP extract_memories: {e}')
        raise Exception(f'Memory extraction failed: {e}')

    logger.debug(f'MCP extract_memories returned {len(memories)} memories for chat {chat_id}')
    return [(memory.index, memory.text) for memory in memories]


@mcp.tool()
async def extract_graph(chat_id: str,
                        response: str,
                        session_id: Optional[str] = None,
                        user_name: Optional[str] = None,
                        characters: Optional[List[str]] = None) -> Dict[str, Any]:
    """Parse a graph extraction response and write it to the graph inbox.

    Args:
        chat_id: Conversation ID
        response: Raw model response to parse
        session_id: Session ID (defaults to chat_id)
        user_name: Name of the user
        characters: Names of participating characters

    Returns:
        {'accepted': bool, 'reason': str|None, 'written': bool}
    """
    if not chat_id or not chat_id.strip():
        raise ValueError('Chat ID is required')

    result = extract_graph_update(strip_code_fences(response or ''), _context(chat_id, session_id, user_name, characters))
    if not result.accepted:
        return {'accepted': False, 'reason': result.reason.value, 'written': False}

    written = await GraphInboxWriter(config.graph_inbox.directory).write_update(result.update)
    return {'accepted': True, 'reason': None, 'written': written}


@mcp.tool()
async def health() -> Dict[str, Any]:
    """Report LLM endpoint and graph inbox health."""
    return await get_health_status(summarization_service.client)


if __name__ == '__main__':
    transport = config.mcp.transport
    host = config.mcp.host
    port = config.mcp.port
    if transport == 'stdio':
        mcp.run(transport=transport)
    else:
        mcp.run(transport=transport, host=host, port=port)
