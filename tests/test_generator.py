import json

import httpx
import pytest

from core.config import Settings
from core.errors import GenerationError
from core.services.generator import ChatCompletionGenerator
from core.services.prompt_assembler import GenerationRequest

REQUEST = GenerationRequest(prompt="Write a plan. Return JSON.", inputs={})


def _generator(handler, api_key="sk-test"):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return ChatCompletionGenerator(
        api_url="https://llm.example.com/v1/",
        api_key=api_key,
        model="coach-model",
        temperature=0.2,
        max_tokens=1000,
        client=client,
    )


def _completion(content):
    return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": content}}]})


def test_generate_posts_chat_completion():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return _completion('{"phases": []}')

    assert _generator(handler).generate(REQUEST) == '{"phases": []}'
    assert seen["url"] == "https://llm.example.com/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    body = seen["body"]
    assert body["model"] == "coach-model"
    assert body["response_format"] == {"type": "json_object"}
    assert body["max_tokens"] == 1000
    assert [m["role"] for m in body["messages"]] == ["system", "user"]
    assert body["messages"][1]["content"] == REQUEST.prompt


def test_missing_api_key():
    with pytest.raises(GenerationError):
        _generator(lambda r: _completion("{}"), api_key="").generate(REQUEST)


def test_http_error_status():
    with pytest.raises(GenerationError) as exc:
        _generator(lambda r: httpx.Response(503, json={"error": "busy"})).generate(REQUEST)
    assert "503" in exc.value.message


def test_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(GenerationError):
        _generator(handler).generate(REQUEST)


def test_transport_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(GenerationError):
        _generator(handler).generate(REQUEST)


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"choices": []}),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"choices": [{"message": {"content": ""}}]}),
    ],
)
def test_unusable_body(response):
    with pytest.raises(GenerationError):
        _generator(lambda r: response).generate(REQUEST)


def test_from_settings():
    settings = Settings(
        database_url="sqlite://",
        generator_api_url="https://llm.example.com/v1",
        generator_api_key="key",
        generator_model="m",
        generator_max_tokens=123,
    )
    gen = ChatCompletionGenerator.from_settings(settings)
    try:
        assert gen.api_url == "https://llm.example.com/v1"
        assert gen.model == "m"
        assert gen.max_tokens == 123
    finally:
        gen.close()
