"""Tests for the OpenAI-compatible chat model client."""

import json

import httpx
import pytest

from knowledge_base.infrastructure.llm import OpenAIChatModel
from knowledge_base.modules.common.exceptions import InvalidInput, ProviderUnavailable

BASE_URL = "http://chat.test/v1"


def make_model(handler) -> OpenAIChatModel:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE_URL)
    return OpenAIChatModel(model="test-model", base_url=BASE_URL, client=client)


class TestOpenAIChatModel:
    @pytest.mark.asyncio
    async def test_complete_returns_first_choice(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": "Hello"}}]})

        model = make_model(handler)
        reply = await model.complete([{"role": "user", "content": "Hi"}])

        assert reply == "Hello"
        assert seen["path"] == "/v1/chat/completions"
        assert seen["body"]["model"] == "test-model"
        assert seen["body"]["messages"] == [{"role": "user", "content": "Hi"}]
        assert seen["body"]["stream"] is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [429, 500, 503])
    async def test_server_side_failures_are_unavailable(self, status):
        model = make_model(lambda request: httpx.Response(status, text="busy"))
        with pytest.raises(ProviderUnavailable):
            await model.complete([{"role": "user", "content": "Hi"}])

    @pytest.mark.asyncio
    async def test_rejected_request_is_invalid_input(self):
        model = make_model(lambda request: httpx.Response(400, text="context too long"))
        with pytest.raises(InvalidInput):
            await model.complete([{"role": "user", "content": "Hi"}])

    @pytest.mark.asyncio
    async def test_malformed_body_is_unavailable(self):
        model = make_model(lambda request: httpx.Response(200, json={"choices": []}))
        with pytest.raises(ProviderUnavailable):
            await model.complete([{"role": "user", "content": "Hi"}])

    @pytest.mark.asyncio
    async def test_unreachable_model_is_unavailable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(ProviderUnavailable):
            await make_model(handler).complete([{"role": "user", "content": "Hi"}])
