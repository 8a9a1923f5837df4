"""
Shared fixtures for YoloLLM tests.
"""

import json

import httpx
import pytest

from yolollm.models.core import ConversationContext, EffectiveSettings, Participant
from yolollm.utils.config import AppConfig, GraphInboxConfig, LLMConfig, MCPConfig, SecurityConfig


@pytest.fixture
def context():
    """Conversation with one user and two characters."""
    return ConversationContext(chat_id='chat-1',
                               session_id='session-1',
                               user=Participant(id='u1', name='Bob', role='user'),
                               characters=[
                                   Participant(id='c1', name='Alice', role='character', scenario_role='innkeeper'),
                                   Participant(id='c2', name='Carol', role='character')
                               ])


@pytest.fixture
def app_config(tmp_path):
    """Application config writing the graph inbox under tmp_path."""
    return AppConfig(environment='test',
                     log_level='DEBUG',
                     llm=LLMConfig(request_timeout=5.0, connect_timeout=1.0),
                     graph_inbox=GraphInboxConfig(directory=str(tmp_path / 'inbox')),
                     security=SecurityConfig(encryption_key=None),
                     mcp=MCPConfig(transport='stdio', host='127.0.0.1', port=8000))


@pytest.fixture
def make_settings():
    """Factory for EffectiveSettings with sensible test values."""

    def _make(**overrides):
        values = dict(api_key='test-key',
                      base_url='http://llm.test/v1/chat/completions',
                      model='test-model',
                      temperature=0.5,
                      max_new_tokens=256,
                      max_window_tokens=4096,
                      max_memory_tokens=1024,
                      max_summary_tokens=128,
                      summarization_digest_ratio=0.35,
                      summarization_trigger_messages_buffer=2.0,
                      keep_last_messages=4,
                      reply_system_prompt_path=None,
                      summary_prompt_path=None,
                      memory_extraction_prompt_path=None,
                      enable_graph_extraction=True,
                      graph_extraction_prompt_path=None,
                      log_lifecycle_events=True)
        values.update(overrides)
        return EffectiveSettings(**values)

    return _make


def completion(content):
    """Build a chat completions response body."""
    return {'choices': [{'index': 0, 'message': {'role': 'assistant', 'content': content}}]}


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps the JSON body of every request."""

    def __init__(self, responder):
        self.requests = []

        def handler(request):
            body = json.loads(request.content)
            self.requests.append((request, body))
            return responder(body)

        super().__init__(handler)
