"""Tests for oracle adapters."""

import asyncio
import json

import httpx
import pytest

from storyloom.core.errors import ConfigurationError
from storyloom.core.settings import Settings
from storyloom.models.domain import ChatMessage, GenerationRequest, OracleResponse, OutputContract
from storyloom.providers.base import OracleBase
from storyloom.providers.mock import MockOracle, scenes_payload
from storyloom.providers.openai_chat import MAX_DETAIL_CHARS, OpenAIChatOracle


@pytest.fixture
def request_free() -> GenerationRequest:
    return GenerationRequest(
        messages=(ChatMessage(role="user", content="Tell a story."),),
        contract=OutputContract.free_text(),
    )


def completion(content) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def make_oracle(handler) -> OpenAIChatOracle:
    return OpenAIChatOracle(
        api_key="sk-test",
        model="gpt-test",
        base_url="https://oracle.test/v1/",
        transport=httpx.MockTransport(handler),
    )


class TestOracleBase:
    """Test base oracle interface."""

    def test_is_abstract(self):
        """OracleBase cannot be instantiated directly."""
        with pytest.raises(TypeError):
            OracleBase()

    def test_adapters_inherit_from_base(self):
        assert issubclass(OpenAIChatOracle, OracleBase)
        assert issubclass(MockOracle, OracleBase)


class TestOpenAIChatOracleRequest:
    """Outgoing request shape."""

    def test_posts_messages_with_bearer_token(self, request_free):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=completion("Once upon a time"))

        asyncio.run(make_oracle(handler).call(request_free))

        assert captured["url"] == "https://oracle.test/v1/chat/completions"
        assert captured["auth"] == "Bearer sk-test"
        assert captured["body"]["model"] == "gpt-test"
        assert captured["body"]["messages"] == [{"role": "user", "content": "Tell a story."}]
        assert "response_format" not in captured["body"]

    def test_structured_contract_sends_json_schema(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=completion(scenes_payload(3)))

        request = GenerationRequest(
            messages=(ChatMessage(role="user", content="Scenes please."),),
            contract=OutputContract.structured_items(3, sfx_min_items=0),
            unit_count=3,
        )
        asyncio.run(make_oracle(handler).call(request))

        response_format = captured["body"]["response_format"]
        assert response_format["type"] == "json_schema"
        assert response_format["json_schema"]["name"] == "storyboard_scenes"
        scenes = response_format["json_schema"]["schema"]["properties"]["scenes"]
        assert scenes["minItems"] == 3
        assert scenes["maxItems"] == 3
        assert scenes["items"]["properties"]["sfx"]["minItems"] == 0


class TestOpenAIChatOracleResponses:
    """Classification of backend answers."""

    def test_success_returns_content(self, request_free):
        oracle = make_oracle(lambda r: httpx.Response(200, json=completion("Once upon a time")))
        response = asyncio.run(oracle.call(request_free))

        assert response == OracleResponse.success("Once upon a time")

    def test_non_2xx_classified_with_truncated_body(self, request_free):
        body = "x" * (MAX_DETAIL_CHARS + 100)
        oracle = make_oracle(lambda r: httpx.Response(429, text=body))
        response = asyncio.run(oracle.call(request_free))

        assert not response.ok
        assert response.cause == "non-2xx"
        assert response.status_code == 429
        assert len(response.detail) == MAX_DETAIL_CHARS

    def test_transport_error_classified(self, request_free):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        response = asyncio.run(make_oracle(handler).call(request_free))

        assert not response.ok
        assert response.cause == "transport"
        assert "connection refused" in response.detail

    def test_timeout_is_transport(self, request_free):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("read timed out", request=request)

        response = asyncio.run(make_oracle(handler).call(request_free))
        assert response.cause == "transport"

    @pytest.mark.parametrize(
        "payload",
        [
            completion(""),
            completion("   "),
            completion(None),
            {"choices": []},
            {"error": "nothing"},
        ],
    )
    def test_missing_content_is_empty_body(self, request_free, payload):
        oracle = make_oracle(lambda r: httpx.Response(200, json=payload))
        response = asyncio.run(oracle.call(request_free))

        assert response.cause == "empty-body"
        assert response.status_code == 200

    def test_non_json_body_is_empty_body(self, request_free):
        oracle = make_oracle(lambda r: httpx.Response(200, text="<html>"))
        response = asyncio.run(oracle.call(request_free))
        assert response.cause == "empty-body"


class TestOracleFromSettings:
    """Construction from configuration."""

    def test_missing_key_raises_configuration_error(self):
        with pytest.raises(ConfigurationError):
            OpenAIChatOracle.from_settings(Settings(openai_api_key=""))

    def test_settings_applied(self):
        oracle = OpenAIChatOracle.from_settings(
            Settings(openai_api_key="sk-x", model="m", openai_base_url="https://a.test/v1")
        )
        assert oracle.model == "m"
        assert oracle.base_url == "https://a.test/v1"


class TestMockOracle:
    """Scripted oracle."""

    def test_last_reply_repeats(self, request_free):
        oracle = MockOracle(["a", "b"])
        texts = [asyncio.run(oracle.call(request_free)).text for _ in range(3)]
        assert texts == ["a", "b", "b"]
        assert oracle.call_count == 3

    def test_responder_sees_request(self, request_free):
        oracle = MockOracle(lambda req: req.messages[-1].content.upper())
        assert asyncio.run(oracle.call(request_free)).text == "TELL A STORY."

    def test_empty_script_rejected(self):
        with pytest.raises(ValueError):
            MockOracle([])
