"""
测试 OpenAI Provider 的请求构造与响应解析

真实调用的冒烟测试需要设置 OPENAI_API_KEY
"""

import httpx
import openai
import pytest
from openai.types.chat import ChatCompletion, ChatCompletionChunk

from ext.llm.exceptions import LLMAuthError, LLMBadRequestError, LLMRateLimitError, LLMServerError, LLMTransportError
from ext.llm.options import CallOptions, FunctionCallBehaviorEnum, ResponseFormat, ResponseFormatTypeEnum, StreamOption
from ext.llm.providers.openai import OpenAILLMModel, map_openai_error
from ext.llm.types import FunctionDefinition, ImageRef, Message
from tests.conftest import OPENAI_API_KEY, OPENAI_BASE_URL, OPENAI_MODEL_NAME, skip_if_no_api_key

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


@pytest.fixture
def model():
    return OpenAILLMModel(model_name="gpt-4o-mini", api_key="sk-test", max_tokens=512)


def make_completion(message: dict, usage: dict | None = None) -> ChatCompletion:
    return ChatCompletion.model_validate(
        {
            "id": "chatcmpl-1",
            "object": "chat.completion",
            "created": 0,
            "model": "gpt-4o-mini",
            "choices": [{"index": 0, "finish_reason": "stop", "message": {"role": "assistant", **message}}],
            "usage": usage,
        },
    )


class TestConvertMessages:
    """测试消息格式转换"""

    def test_roles(self, model):
        """测试各角色映射"""
        tool_calls = [{"id": "call_1", "type": "function", "function": {"name": "f", "arguments": "{}"}}]
        messages = [
            Message.system("be brief"),
            Message.human("hi"),
            Message.ai("", tool_calls=tool_calls),
            Message.tool("result", id="call_1"),
        ]
        converted = model._convert_messages(messages, CallOptions())

        assert converted == [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": None, "tool_calls": tool_calls},
            {"role": "tool", "content": "result", "tool_call_id": "call_1"},
        ]
        print("✓ 角色映射正确")

    def test_system_is_assistant(self, model):
        converted = model._convert_messages([Message.system("x")], CallOptions(system_is_assistant=True))
        assert converted == [{"role": "assistant", "content": "x"}]

    def test_images(self, model):
        """测试图片消息"""
        message = Message.human_with_images("what is this?", [ImageRef(image_url="https://x/cat.png", detail="low")])
        converted = model._convert_messages([message], CallOptions())

        assert converted[0]["content"] == [
            {"type": "text", "text": "what is this?"},
            {"type": "image_url", "image_url": {"url": "https://x/cat.png", "detail": "low"}},
        ]


class TestBuildKwargs:
    """测试请求参数构造"""

    def test_defaults(self, model):
        kwargs = model._build_kwargs([Message.human("hi")], stream=False)

        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["max_tokens"] == 512
        assert kwargs["stream"] is False
        assert "temperature" not in kwargs
        assert "tools" not in kwargs

    def test_options(self, model):
        """测试调用参数映射"""
        model.add_options(
            CallOptions(
                temperature=0.5,
                stop_words=["END"],
                candidate_count=2,
                functions=[FunctionDefinition(name="search", parameters={"type": "object", "properties": {}})],
                response_format=ResponseFormat(type=ResponseFormatTypeEnum.json_object),
                stream_option=StreamOption(include_usage=True),
            ),
        )
        kwargs = model._build_kwargs([Message.human("hi")], stream=True)

        assert kwargs["temperature"] == 0.5
        assert kwargs["stop"] == ["END"]
        assert kwargs["n"] == 2
        assert kwargs["tools"] == [
            {"type": "function", "function": {"name": "search", "parameters": {"type": "object", "properties": {}}}},
        ]
        assert kwargs["tool_choice"] == "auto"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["stream_options"] == {"include_usage": True}
        print("✓ 调用参数映射正确")

    def test_function_call_none(self, model):
        model.add_options(
            CallOptions(
                functions=[FunctionDefinition(name="search")],
                function_call_behavior=FunctionCallBehaviorEnum.none,
            ),
        )
        assert model._build_kwargs([Message.human("hi")], stream=False)["tool_choice"] == "none"


class TestParseResponse:
    """测试响应解析"""

    def test_text(self, model):
        response = make_completion({"content": "Hello"}, {"prompt_tokens": 3, "completion_tokens": 1, "total_tokens": 4})
        result = model._parse_response(response)

        assert result.generation == "Hello"
        assert result.tokens.total_tokens == 4

    def test_tool_calls(self, model):
        """测试工具调用以 JSON 文本返回"""
        response = make_completion(
            {
                "content": None,
                "tool_calls": [
                    {"id": "call_1", "type": "function", "function": {"name": "search", "arguments": '{"q": "x"}'}},
                ],
            },
        )
        result = model._parse_response(response)

        assert result.generation == (
            '[{"id":"call_1","type":"function","function":{"name":"search","arguments":"{\\"q\\": \\"x\\"}"}}]'
        )
        assert result.tokens is None
        print(f"✓ 工具调用: {result.generation}")

    def test_stream_chunk(self, model):
        chunk = ChatCompletionChunk.model_validate(
            {
                "id": "chatcmpl-1",
                "object": "chat.completion.chunk",
                "created": 0,
                "model": "gpt-4o-mini",
                "choices": [{"index": 0, "delta": {"content": "Hel"}, "finish_reason": None}],
            },
        )
        data = model._parse_stream_chunk(chunk)
        assert data.content == "Hel"
        assert data.tokens is None


class TestErrorMapping:
    """测试 SDK 异常映射"""

    @pytest.mark.parametrize(
        "error_cls, status_code, expected",
        [
            (openai.AuthenticationError, 401, LLMAuthError),
            (openai.RateLimitError, 429, LLMRateLimitError),
            (openai.BadRequestError, 400, LLMBadRequestError),
            (openai.InternalServerError, 500, LLMServerError),
        ],
    )
    def test_status_errors(self, error_cls, status_code, expected):
        error = error_cls("boom", response=httpx.Response(status_code, request=REQUEST), body=None)
        assert isinstance(map_openai_error(error), expected)

    def test_connection_error(self):
        assert isinstance(map_openai_error(openai.APIConnectionError(request=REQUEST)), LLMTransportError)


@skip_if_no_api_key
class TestOpenAISmoke:
    """真实调用冒烟测试"""

    @pytest.mark.asyncio
    async def test_invoke(self):
        model = OpenAILLMModel(
            model_name=OPENAI_MODEL_NAME or "gpt-4o-mini",
            api_key=OPENAI_API_KEY,
            base_url=OPENAI_BASE_URL,
            max_tokens=32,
        )
        answer = await model.ainvoke("Reply with the single word: pong")
        assert answer
        print(f"✓ 回复: {answer}")
