import json

import httpx
import pytest

from pitchai.backend.config import Settings
from pitchai.backend.errors import GenerationError, TransientGenerationError
from pitchai.backend.llm_gateway import ChatCompletionGateway


def make_settings(**overrides):
    values = dict(
        llm_api_key="test-key",
        llm_base_url="https://llm.example.com/v1/",
        llm_model="default-model",
        llm_timeout_seconds=5.0,
        max_retries=0,
        retry_backoff_seconds=0.0,
        storage_bucket="",
        storage_dir="data/uploads",
        stt_language="en-US",
        database_url="",
        frontend_origins=(),
    )
    values.update(overrides)
    return Settings(**values)


def make_gateway(handler, **overrides):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return ChatCompletionGateway(make_settings(**overrides), client=client)


def completion(content):
    return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": content}}]})


def test_generate_text_posts_chat_completion():
    seen = []

    def handler(request):
        seen.append(request)
        return completion("  Clarity: 8  ")

    gateway = make_gateway(handler)
    assert gateway.generate_text("Analyze this", "gpt-test", 300) == "Clarity: 8"

    request = seen[0]
    assert str(request.url) == "https://llm.example.com/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer test-key"
    body = json.loads(request.content)
    assert body["model"] == "gpt-test"
    assert body["max_tokens"] == 300
    assert body["messages"][-1] == {"role": "user", "content": "Analyze this"}


def test_generate_text_falls_back_to_default_model():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return completion("ok")

    make_gateway(handler).generate_text("prompt")
    assert seen[0]["model"] == "default-model"


def test_generate_text_accepts_content_parts():
    def handler(request):
        return completion([{"type": "text", "text": "part one"}, {"type": "text", "text": "part two"}])

    assert make_gateway(handler).generate_text("prompt") == "part one\npart two"


def test_missing_api_key_raises_generation_error():
    gateway = make_gateway(lambda request: completion("unused"), llm_api_key="")
    with pytest.raises(GenerationError):
        gateway.generate_text("prompt")


def test_provider_error_status_raises_generation_error():
    def handler(request):
        return httpx.Response(500, json={"error": {"message": "overloaded"}})

    with pytest.raises(GenerationError) as excinfo:
        make_gateway(handler).generate_text("prompt")
    assert "overloaded" in str(excinfo.value)


def test_retries_without_temperature_when_unsupported():
    payloads = []

    def handler(request):
        payload = json.loads(request.content)
        payloads.append(payload)
        if "temperature" in payload:
            return httpx.Response(
                400,
                json={"error": {"message": "temperature does not support 0.3, only the default (1) value"}},
            )
        return completion("done")

    assert make_gateway(handler).generate_text("prompt") == "done"
    assert len(payloads) == 2
    assert "temperature" not in payloads[1]


def test_empty_choices_and_empty_content_raise():
    with pytest.raises(GenerationError):
        make_gateway(lambda request: httpx.Response(200, json={"choices": []})).generate_text("prompt")
    with pytest.raises(GenerationError):
        make_gateway(lambda request: completion("   ")).generate_text("prompt")
    with pytest.raises(GenerationError):
        make_gateway(lambda request: httpx.Response(200, text="<html>")).generate_text("prompt")


def test_transport_error_is_mapped():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(GenerationError):
        make_gateway(handler).generate_text("prompt")


def test_configured_retries_repeat_failed_calls():
    attempts = []

    def handler(request):
        attempts.append(1)
        if len(attempts) < 3:
            return httpx.Response(503, json={"error": {"message": "busy"}})
        return completion("finally")

    gateway = make_gateway(handler, max_retries=2)
    assert gateway.generate_text("prompt") == "finally"
    assert len(attempts) == 3


def test_empty_prompt_is_rejected():
    with pytest.raises(GenerationError):
        make_gateway(lambda request: completion("unused")).generate_text("   ")


def test_client_errors_are_not_retried():
    attempts = []

    def handler(request):
        attempts.append(1)
        return httpx.Response(400, json={"error": {"message": "bad model"}})

    with pytest.raises(GenerationError) as excinfo:
        make_gateway(handler, max_retries=2).generate_text("prompt")
    assert not isinstance(excinfo.value, TransientGenerationError)
    assert len(attempts) == 1


def test_rate_limit_is_retried():
    attempts = []

    def handler(request):
        attempts.append(1)
        if len(attempts) == 1:
            return httpx.Response(429, json={"error": {"message": "slow down"}})
        return completion("after wait")

    assert make_gateway(handler, max_retries=1).generate_text("prompt") == "after wait"
    assert len(attempts) == 2


def test_malformed_success_body_is_not_retried():
    attempts = []

    def handler(request):
        attempts.append(1)
        return httpx.Response(200, json={"choices": []})

    with pytest.raises(GenerationError):
        make_gateway(handler, max_retries=2).generate_text("prompt")
    assert len(attempts) == 1


def test_missing_api_key_is_not_retried():
    attempts = []

    def handler(request):
        attempts.append(1)
        return completion("unused")

    with pytest.raises(GenerationError):
        make_gateway(handler, llm_api_key="", max_retries=2).generate_text("prompt")
    assert attempts == []
