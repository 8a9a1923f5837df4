"""
Prompt loading and request shaping helpers.
"""

import os
import re
from typing import List, Optional

from ..models.core import ROLE_SYSTEM, ChatMessage, TextGenRequest
from .logging_config import get_logger

logger = get_logger(__name__)

_GRAPH_PROMPT_TOKEN = re.compile(r'\{\{\s*(existingEntities|messages)\s*\}\}')


def load_prompt_safely(path: Optional[str], label: str) -> Optional[str]:
    """Read an optional prompt override file.

    A missing or unreadable file only logs a warning, so a bad path never
    stops a service from initializing.

    Args:
        path: File path, or None/blank for no override
        label: Prompt name used in log messages

    Returns:
        File content, or None
    """
    if not path or not path.strip():
        return None
    try:
        if not os.path.isfile(path):
            logger.warning(f'Configured {label} prompt path not found: {path}')
            return None
        with open(path, 'r', encoding='utf-8') as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f'Failed to load {label} prompt from {path}: {e}')
        return None


def render_graph_prompt(template: str, existing_entities: str, messages: str) -> str:
    """Substitute {{existingEntities}} and {{messages}} in a graph prompt template.

    Both tokens are replaced in a single pass, so substituted text is never
    rendered again.
    """
    values = {'existingEntities': existing_entities, 'messages': messages}
    return _GRAPH_PROMPT_TOKEN.sub(lambda match: values[match.group(1)], template)


def format_transcript(messages: List[ChatMessage]) -> str:
    """Render messages as 'Speaker:\\ncontent' blocks separated by blank lines."""
    blocks = []
    for msg in messages:
        if not msg.content or not msg.content.strip():
            continue
        speaker = msg.name or msg.role.capitalize()
        blocks.append(f'{speaker}:\n{msg.content.strip()}')
    return '\n\n'.join(blocks)


def apply_system_override(request: TextGenRequest, system_prompt: Optional[str]) -> TextGenRequest:
    """Return a copy of request with system_prompt prepended as a system message."""
    if not system_prompt or not system_prompt.strip():
        return request
    return TextGenRequest(messages=[ChatMessage(role=ROLE_SYSTEM, content=system_prompt), *request.messages],
                          max_new_tokens=request.max_new_tokens,
                          stop=list(request.stop))


def apply_token_cap(request: TextGenRequest, cap: int) -> TextGenRequest:
    """Return a copy of request whose max_new_tokens does not exceed cap."""
    max_tokens = min(request.max_new_tokens, cap) if request.max_new_tokens > 0 else cap
    return TextGenRequest(messages=list(request.messages), max_new_tokens=max_tokens, stop=list(request.stop))
