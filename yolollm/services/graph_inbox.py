"""
Durable hand-off of graph updates to the graph memory inbox.
"""

import asyncio
import json
import os
import re
import tempfile
import uuid
from typing import Optional

from ..models.core import GraphUpdate
from ..utils.logging_config import get_logger
from ..utils.timestamp_utils import to_utc_compact_str

logger = get_logger(__name__)

GRAPH_JSON_MARKER = 'GRAPH_JSON:'

_UNSAFE_FILENAME_CHARS = re.compile(r'[^A-Za-z0-9._-]')


def format_graph_line(update: GraphUpdate) -> str:
    """Serialize an update as a single GRAPH_JSON carrier line."""
    return f'{GRAPH_JSON_MARKER} {json.dumps(update.to_dict(), ensure_ascii=False, separators=(",", ":"))}'


class GraphInboxWriter:
    """Write one file per accepted graph update, never exposing partial files."""

    def __init__(self, directory: str):
        """
        Initialize the inbox writer.

        Args:
            directory: Inbox directory, created on first write
        """
        self.directory = directory

    def build_file_name(self, conversation_id: str, timestamp: Optional[str] = None) -> str:
        safe_id = _UNSAFE_FILENAME_CHARS.sub('_', conversation_id or 'unknown')
        return f'graph_{safe_id}_{timestamp or to_utc_compact_str()}_{uuid.uuid4().hex[:8]}.txt'

    def write_sync(self, conversation_id: str, payload: str) -> Optional[str]:
        """Atomically write payload into the inbox.

        Returns:
            Final file path, or None if the write failed
        """
        tmp_path = None
        try:
            os.makedirs(self.directory, exist_ok=True)
            final_path = os.path.join(self.directory, self.build_file_name(conversation_id))

            # Temp file lives in the inbox so the rename stays on one filesystem
            with tempfile.NamedTemporaryFile(mode='w', encoding='utf-8', dir=self.directory, prefix='.graph_',
                                             suffix='.tmp', delete=False) as tmp_file:
                tmp_path = tmp_file.name
                tmp_file.write(payload)
                tmp_file.flush()
                os.fsync(tmp_file.fileno())

            os.replace(tmp_path, final_path)
            tmp_path = None
            logger.debug(f'Wrote graph update for chat {conversation_id} to {final_path}')
            return final_path

        except OSError as e:
            logger.error(f'Failed to write graph update for chat {conversation_id} to {self.directory}: {e}')
            return None
        finally:
            if tmp_path and os.path.exists(tmp_path):
                try:
                    os.remove(tmp_path)
                except OSError as e:
                    logger.warning(f'Failed to remove temporary graph file {tmp_path}: {e}')

    async def write(self, conversation_id: str, payload: str) -> bool:
        """Write payload without blocking the event loop.

        Returns:
            True on success, False if the write failed (already logged)
        """
        return await asyncio.to_thread(self.write_sync, conversation_id, payload) is not None

    async def write_update(self, update: GraphUpdate) -> bool:
        """Persist an accepted graph update as a GRAPH_JSON inbox file."""
        return await self.write(update.meta.chat_id, format_graph_line(update))
