"""
Configuration management for the LLM endpoint and application settings.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

# Prefix for module-wide settings taken from the environment, e.g. YOLOLLM_TEMPERATURE
MODULE_ENV_PREFIX = 'YOLOLLM_'


@dataclass
class LLMConfig:
    """Configuration for the OpenAI-compatible HTTP transport."""
    request_timeout: float
    connect_timeout: float


@dataclass
class GraphInboxConfig:
    """Configuration for the graph memory inbox."""
    directory: str


@dataclass
class SecurityConfig:
    """Configuration for at-rest secrets."""
    encryption_key: Optional[str]


@dataclass
class MCPConfig:
    """Configuration for MCP interface."""
    transport: str
    host: str
    port: int


@dataclass
class AppConfig:
    """Main application configuration."""
    environment: str
    log_level: str
    llm: LLMConfig
    graph_inbox: GraphInboxConfig
    security: SecurityConfig
    mcp: MCPConfig


def load_config() -> AppConfig:
    """Load configuration from environment variables with defaults."""
    environment = os.getenv('ENVIRONMENT', 'development')

    llm_config = LLMConfig(request_timeout=float(os.getenv('LLM_REQUEST_TIMEOUT', '120')),
                           connect_timeout=float(os.getenv('LLM_CONNECT_TIMEOUT', '10')))

    graph_inbox_config = GraphInboxConfig(directory=os.getenv('GRAPH_INBOX_DIR', os.path.join('Data', 'GraphMemory', 'Inbox')))

    security_config = SecurityConfig(encryption_key=os.getenv('LOCAL_ENCRYPTION_KEY') or None)

    mcp_config = MCPConfig(transport=os.getenv('MCP_TRANSPORT', 'sse'),
                           host=os.getenv('MCP_HOST', '127.0.0.1'),
                           port=int(os.getenv('MCP_PORT', '8000')))

    return AppConfig(environment=environment,
                     log_level=os.getenv('LOG_LEVEL', 'INFO'),
                     llm=llm_config,
                     graph_inbox=graph_inbox_config,
                     security=security_config,
                     mcp=mcp_config)


# Global configuration instance
config = load_config()
