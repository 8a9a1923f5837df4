"""
Health check utilities for the application.
"""

import os
import tempfile
from typing import Any, Dict, Optional

from .config import AppConfig
from .config import config as default_config
from .llm_client import OpenAICompatibleLLM
from .logging_config import get_logger

logger = get_logger(__name__)


async def check_health(llm: OpenAICompatibleLLM, app_config: Optional[AppConfig] = None) -> bool:
    """Check the health of all system components.

    Returns:
        True if all components are healthy, False otherwise
    """
    health_status = await get_health_status(llm, app_config)

    all_healthy = all(status.get('healthy', False) for status in health_status.values())
    if all_healthy:
        logger.info('All system components are healthy')
    else:
        logger.warning('Some system components are unhealthy')
    return all_healthy


async def get_health_status(llm: OpenAICompatibleLLM, app_config: Optional[AppConfig] = None) -> Dict[str, Any]:
    """Get detailed health status of all components.

    Returns:
        Dictionary with health status of each component
    """
    app_config = app_config or default_config
    health_status = {}

    llm_healthy = await llm.health_check()
    health_status['llm'] = {'healthy': llm_healthy, 'service': 'OpenAI-compatible LLM', 'model': llm.settings.model}

    inbox_dir = app_config.graph_inbox.directory
    try:
        os.makedirs(inbox_dir, exist_ok=True)
        with tempfile.TemporaryFile(dir=inbox_dir):
            pass
        health_status['graph_inbox'] = {'healthy': True, 'service': 'Graph inbox', 'directory': inbox_dir}
    except OSError as e:
        health_status['graph_inbox'] = {'healthy': False, 'service': 'Graph inbox', 'error': str(e)}

    return health_status
