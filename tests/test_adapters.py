"""Tests for backend adapters: request building, normalization and the factory."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from cogs.autoreply.adapters import (
    CloudflareAdapter,
    CustomAdapter,
    GroqAdapter,
    OllamaAdapter,
    OpenAIAdapter,
    create_adapter,
    decode_parameter_value,
    extract_content,
)
from cogs.autoreply.adapters.base import ACKNOWLEDGEMENT
from cogs.autoreply.core.config import BackendConfig, SamplingParameters
from cogs.autoreply.core.exceptions import ConfigurationException, ProviderException


def _entry(kind: str, url: str = "", model: str = "test-model") -> BackendConfig:
    return BackendConfig(name=f"{kind}-1", kind=kind, url=url, api_key="secret", model=model)


# ---------------------------------------------------------------------------
# Parameter decoding
# ---------------------------------------------------------------------------

class TestDecodeParameterValue:
    def test_json_object(self):
        assert decode_parameter_value('{type: "json_object",}') == {"type": "json_object"}

    def test_boolean_literal(self):
        assert decode_parameter_value("True") is True
        assert decode_parameter_value("false") is False

    def test_numbers(self):
        assert decode_parameter_value("40") == 40
        assert decode_parameter_value("0.25") == 0.25

    def test_plain_string(self):
        assert decode_parameter_value(" hello world ") == "hello world"

    def test_other_parameters_override_fixed_ones(self):
        params = SamplingParameters(other_parameters=[("temperature", "0.2"), ("seed", "7")])
        adapter = OpenAIAdapter(_entry("openai"), params)
        body = adapter.build_request([], params)
        assert body["temperature"] == 0.2
        assert body["seed"] == 7


# ---------------------------------------------------------------------------
# Multimodal content
# ---------------------------------------------------------------------------

class TestExtractContent:
    def test_splits_text_and_images(self):
        parts = extract_content('look <img src="https://x/a.png" /> here', "high")
        assert parts == [
            {"type": "text", "text": "look "},
            {"type": "image_url", "image_url": {"url": "https://x/a.png", "detail": "high"}},
            {"type": "text", "text": " here"},
        ]

    def test_base64_wins_over_src(self):
        parts = extract_content('<img src="https://x/a.png" base64="data:image/png;base64,AAA" />', "low")
        assert parts[0]["image_url"]["url"] == "data:image/png;base64,AAA"

    def test_text_without_markers(self):
        assert extract_content("plain", "low") == [{"type": "text", "text": "plain"}]

    def test_native_multimodal_messages(self):
        params = SamplingParameters(multimodal="native")
        adapter = OpenAIAdapter(_entry("openai"), params)
        messages = adapter.create_messages("sys", 'hi <img src="u" />', params)
        assert messages[1]["content"] == [{"type": "text", "text": ACKNOWLEDGEMENT}]
        assert messages[2]["content"][1]["type"] == "image_url"


# ---------------------------------------------------------------------------
# Message layout and call
# ---------------------------------------------------------------------------

class TestBaseAdapter:
    def test_message_layout(self):
        params = SamplingParameters()
        adapter = OpenAIAdapter(_entry("openai"), params)
        history = [{"role": "assistant", "content": "{}"}]
        messages = adapter.create_messages("sys", "conversation", params, history)
        assert [m["role"] for m in messages] == ["system", "assistant", "user", "assistant"]
        assert messages[1]["content"] == ACKNOWLEDGEMENT

    def test_stop_only_when_set(self):
        adapter = OpenAIAdapter(_entry("openai"), SamplingParameters())
        assert "stop" not in adapter.build_request([], SamplingParameters())
        assert adapter.build_request([], SamplingParameters(stop=["\n\n"]))["stop"] == ["\n\n"]

    @pytest.mark.asyncio
    async def test_call_normalizes_response(self):
        adapter = OpenAIAdapter(_entry("openai"), SamplingParameters())
        adapter._send = AsyncMock(return_value={
            "choices": [{"message": {"content": '{"status": "skip"}'}}],
            "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
        })
        response = await adapter.call("sys", "user")
        assert response.content == '{"status": "skip"}'
        assert response.usage.total_tokens == 15
        body = adapter._send.call_args.args[0]
        assert body["model"] == "test-model"

    @pytest.mark.asyncio
    async def test_malformed_envelope_is_provider_error(self):
        adapter = OpenAIAdapter(_entry("openai"), SamplingParameters())
        adapter._send = AsyncMock(return_value={"error": "overloaded"})
        with pytest.raises(ProviderException):
            await adapter.call("sys", "user")


# ---------------------------------------------------------------------------
# Vendor specifics
# ---------------------------------------------------------------------------

class TestVendors:
    def test_openai_endpoint(self):
        assert OpenAIAdapter(_entry("openai", "https://api.example.com/v1/"), SamplingParameters()).endpoint == \
            "https://api.example.com/v1/chat/completions"
        assert OpenAIAdapter(_entry("openai"), SamplingParameters()).endpoint.endswith("/chat/completions")

    def test_custom_uses_url_as_is(self):
        adapter = CustomAdapter(_entry("custom", "https://llm.local/generate"), SamplingParameters())
        assert adapter.endpoint == "https://llm.local/generate"

    def test_cloudflare_has_no_usage(self):
        adapter = CloudflareAdapter(_entry("cloudflare", "https://cf/ai/run"), SamplingParameters())
        response = adapter.normalize({"result": {"response": "hi"}, "success": True})
        assert response.content == "hi"
        assert response.usage is None
        assert adapter.provides_usage is False
        assert "model" not in adapter.build_request([], SamplingParameters())

    def test_ollama_options_and_usage(self):
        params = SamplingParameters(max_tokens=128, other_parameters=[("num_ctx", "8192")])
        adapter = OllamaAdapter(_entry("ollama"), params)
        body = adapter.build_request([], params)
        assert body["stream"] is False
        assert body["options"]["num_predict"] == 128
        assert body["options"]["num_ctx"] == 8192

        response = adapter.normalize({"message": {"content": "ok"}, "prompt_eval_count": 3, "eval_count": 4})
        assert response.content == "ok"
        assert response.usage.total_tokens == 7

    def test_groq_normalize(self):
        adapter = GroqAdapter(_entry("groq"), SamplingParameters())
        raw = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="hey"))],
            usage=SimpleNamespace(prompt_tokens=1, completion_tokens=2, total_tokens=3),
        )
        response = adapter.normalize(raw)
        assert response.content == "hey"
        assert response.usage.completion_tokens == 2

    @pytest.mark.asyncio
    async def test_groq_call_uses_sdk(self):
        adapter = GroqAdapter(_entry("groq"), SamplingParameters())
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="hey"))],
            usage=None,
        ))
        adapter._client = client
        response = await adapter.call("sys", "user")
        assert response.content == "hey"
        assert client.chat.completions.create.call_args.kwargs["model"] == "test-model"

    def test_groq_unknown_parameters_go_to_extra_body(self):
        params = SamplingParameters(other_parameters=[("repetition_penalty", "1.1"), ("seed", "7")])
        adapter = GroqAdapter(_entry("groq"), params)
        body = adapter.build_request([], params)
        assert body["extra_body"] == {"repetition_penalty": 1.1}
        assert "repetition_penalty" not in body
        assert body["seed"] == 7

    @pytest.mark.asyncio
    async def test_groq_rejected_call_is_provider_error(self):
        adapter = GroqAdapter(_entry("groq"), SamplingParameters())
        client = MagicMock()
        client.chat.completions.create = AsyncMock(side_effect=TypeError("unexpected keyword argument"))
        adapter._client = client
        with pytest.raises(ProviderException):
            await adapter.call("sys", "user")


class TestFactory:
    @pytest.mark.parametrize("kind,cls", [
        ("openai", OpenAIAdapter),
        ("custom", CustomAdapter),
        ("cloudflare", CloudflareAdapter),
        ("ollama", OllamaAdapter),
        ("groq", GroqAdapter),
    ])
    def test_known_kinds(self, kind, cls):
        assert type(create_adapter(_entry(kind), SamplingParameters())) is cls

    def test_unknown_kind_is_configuration_error(self):
        with pytest.raises(ConfigurationException):
            create_adapter(_entry("telepathy"), SamplingParameters())
