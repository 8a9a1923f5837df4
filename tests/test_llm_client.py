"""
Tests for the OpenAI-compatible LLM client.
"""

import httpx
import pytest

from conftest import RecordingTransport, completion
from yolollm.models.core import ChatMessage, TextGenRequest
from yolollm.utils.config import LLMConfig
from yolollm.utils.llm_client import LLMClientError, LLMConfigurationError, OpenAICompatibleLLM

LLM_CONFIG = LLMConfig(request_timeout=5.0, connect_timeout=1.0)


def make_client(settings, responder):
    transport = RecordingTransport(responder)
    return OpenAICompatibleLLM(settings, LLM_CONFIG, transport=transport), transport


class TestBuildPayload:

    def test_defaults_to_reply_cap(self, make_settings):
        client = OpenAICompatibleLLM(make_settings(max_new_tokens=256, max_summary_tokens=128), LLM_CONFIG)
        payload, max_tokens = client.build_payload(TextGenRequest(messages=[ChatMessage('user', 'hi')]))
        assert max_tokens == 256
        assert payload == {
            'model': 'test-model',
            'temperature': 0.5,
            'max_tokens': 256,
            'messages': [{'role': 'user', 'content': 'hi'}],
        }

    def test_request_clamped_to_larger_cap(self, make_settings):
        client = OpenAICompatibleLLM(make_settings(max_new_tokens=256, max_summary_tokens=600), LLM_CONFIG)
        _, max_tokens = client.build_payload(TextGenRequest(messages=[], max_new_tokens=5000))
        assert max_tokens == 600

    def test_stop_strings_and_unknown_roles(self, make_settings):
        client = OpenAICompatibleLLM(make_settings(), LLM_CONFIG)
        request = TextGenRequest(messages=[ChatMessage('narrator', 'x', name='Storyteller')], stop=['\nUser:'])
        payload, _ = client.build_payload(request)
        assert payload['messages'] == [{'role': 'user', 'content': 'x'}]
        assert payload['stop'] == ['\nUser:']


class TestGenerate:

    @pytest.mark.asyncio
    async def test_returns_trimmed_content(self, make_settings):
        client, transport = make_client(make_settings(), lambda body: httpx.Response(200, json=completion('  Hello!  ')))

        result = await client.generate(TextGenRequest(messages=[ChatMessage('user', 'hi')]))

        assert result == 'Hello!'
        request, _ = transport.requests[0]
        assert request.headers['Authorization'] == 'Bearer test-key'
        assert str(request.url) == 'http://llm.test/v1/chat/completions'

    @pytest.mark.asyncio
    async def test_missing_choices_returns_empty(self, make_settings):
        client, _ = make_client(make_settings(), lambda body: httpx.Response(200, json={'choices': []}))
        assert await client.generate(TextGenRequest(messages=[])) == ''

    @pytest.mark.asyncio
    async def test_http_error_raises(self, make_settings):
        client, _ = make_client(make_settings(), lambda body: httpx.Response(401, json={'error': 'bad key'}))
        with pytest.raises(LLMClientError):
            await client.generate(TextGenRequest(messages=[]))

    @pytest.mark.asyncio
    async def test_non_json_body_raises(self, make_settings):
        client, _ = make_client(make_settings(), lambda body: httpx.Response(200, text='<html>'))
        with pytest.raises(LLMClientError):
            await client.generate(TextGenRequest(messages=[]))

    @pytest.mark.asyncio
    @pytest.mark.parametrize('api_key', ['', '   '])
    async def test_empty_api_key_is_configuration_error(self, make_settings, api_key):
        client, transport = make_client(make_settings(api_key=api_key), lambda body: httpx.Response(200, json=completion('x')))
        with pytest.raises(LLMConfigurationError):
            await client.generate(TextGenRequest(messages=[]))
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_health_check(self, make_settings):
        client, _ = make_client(make_settings(), lambda body: httpx.Response(200, json=completion('OK')))
        assert await client.health_check() is True

        failing, _ = make_client(make_settings(), lambda body: httpx.Response(500, text='down'))
        assert await failing.health_check() is False
