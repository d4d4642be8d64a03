"""
测试 LLM 基类：重试、流式回调与便捷调用
"""

import pytest

from ext.llm.exceptions import (
    LLMCancelledError,
    LLMConfigError,
    LLMRateLimitError,
    LLMServerError,
    LLMTimeoutError,
)
from ext.llm.options import CallOptions, StreamOption
from ext.llm.types import BaseExtraConfig, GenerateResult, Message, TokenUsage
from tests.fakes import ScriptedLLM


class FlakyLLM(ScriptedLLM):
    """前 failures 次调用抛出指定异常"""

    def __init__(self, failures: int, failure: Exception, **kwargs):
        super().__init__(**kwargs)
        self.failures = failures
        self.failure = failure
        self.attempts = 0

    async def _agenerate(self, messages: list[Message], options: CallOptions) -> GenerateResult:
        self.attempts += 1
        if self.attempts <= self.failures:
            raise self.failure
        return await super()._agenerate(messages, options)


@pytest.fixture
def no_sleep(monkeypatch):
    """跳过重试等待，记录延迟"""
    delays: list[float] = []

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    monkeypatch.setattr("ext.llm.base.asyncio.sleep", fake_sleep)
    return delays


class TestRetry:
    """测试重试策略"""

    @pytest.mark.asyncio
    async def test_retry_server_error(self, no_sleep):
        """测试服务端错误重试后成功"""
        llm = FlakyLLM(2, LLMServerError("503"), responses=["recovered"], max_retries=2)

        assert await llm.ainvoke("hi") == "recovered"
        assert llm.attempts == 3
        assert no_sleep == [1.0, 2.0]
        print(f"✓ 重试 {llm.attempts - 1} 次后成功，延迟 {no_sleep}")

    @pytest.mark.asyncio
    async def test_retry_exhausted(self, no_sleep):
        """测试超过重试次数后抛出"""
        llm = FlakyLLM(5, LLMTimeoutError("timeout"), max_retries=1)

        with pytest.raises(LLMTimeoutError):
            await llm.ainvoke("hi")
        assert llm.attempts == 2

    @pytest.mark.asyncio
    async def test_rate_limit_not_retried(self, no_sleep):
        """测试限流错误不重试"""
        llm = FlakyLLM(1, LLMRateLimitError("429"), max_retries=3)

        with pytest.raises(LLMRateLimitError):
            await llm.ainvoke("hi")
        assert llm.attempts == 1
        assert no_sleep == []
        print("✓ 限流错误直接抛出")

    @pytest.mark.parametrize(
        "strategy, expected",
        [
            ("exponential", [1.0, 2.0, 4.0]),
            ("linear", [2.0, 4.0, 6.0]),
            ("constant", [1.0, 1.0, 1.0]),
        ],
    )
    def test_retry_delay(self, strategy, expected):
        llm = ScriptedLLM(extra_config={"requires_auth": False, "retry_strategy": strategy})
        assert [llm.get_retry_delay(attempt) for attempt in (1, 2, 3)] == expected


class TestGenerate:
    """测试生成接口"""

    @pytest.mark.asyncio
    async def test_ainvoke(self):
        llm = ScriptedLLM(["Hello there"])

        assert await llm.ainvoke("Hi") == "Hello there"
        assert llm.last_prompt == [Message.human("Hi")]

    @pytest.mark.asyncio
    async def test_stream_sink(self, token_usage):
        """测试设置回调时走流式并逐块回调"""
        received: list[str] = []

        async def sink(chunk: str) -> None:
            received.append(chunk)

        llm = ScriptedLLM(
            ["one two three"],
            tokens=token_usage,
            options=CallOptions(stream_option=StreamOption(streaming_func=sink)),
        )
        result = await llm.agenerate([Message.human("count")])

        assert result.generation == "one two three"
        assert received == ["one ", "two ", "three"]
        assert result.tokens == TokenUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15)
        print(f"✓ 回调收到 {len(received)} 块")

    @pytest.mark.asyncio
    async def test_stream_sink_cancel(self):
        """测试回调返回 False 时取消生成"""
        received: list[str] = []

        async def sink(chunk: str) -> bool:
            received.append(chunk)
            return False

        llm = ScriptedLLM(["one two three"], options=CallOptions(stream_option=StreamOption(streaming_func=sink)))

        with pytest.raises(LLMCancelledError):
            await llm.agenerate([Message.human("count")])
        assert received == ["one "]

    @pytest.mark.asyncio
    async def test_per_call_stream_sink(self):
        """测试按次传入的回调只对本次调用生效"""
        received: list[str] = []

        async def sink(chunk: str) -> None:
            received.append(chunk)

        llm = ScriptedLLM(["one two"], options=CallOptions(max_tokens=10))
        result = await llm.agenerate(
            [Message.human("count")],
            CallOptions(stream_option=StreamOption(streaming_func=sink)),
        )

        assert result.generation == "one two"
        assert received == ["one ", "two"]
        assert llm.call_options[0].max_tokens == 10
        assert llm.options.stream_option is None

        await llm.agenerate([Message.human("again")])
        assert received == ["one ", "two"]
        print("✓ 回调只作用于传入它的那次调用")

    @pytest.mark.asyncio
    async def test_astream(self):
        llm = ScriptedLLM(["a b"])
        chunks = [data.content async for data in llm.astream([Message.human("x")])]
        assert chunks == ["a ", "b"]

    def test_add_options(self):
        llm = ScriptedLLM(options=CallOptions(temperature=0.1, max_tokens=10))
        llm.add_options(CallOptions(temperature=0.7))

        assert llm.options.temperature == 0.7
        assert llm.options.max_tokens == 10


class TestConfig:
    """测试配置校验"""

    def test_missing_api_key(self):
        """测试需要认证时缺少 api_key"""
        with pytest.raises(LLMConfigError):
            ScriptedLLM(extra_config={})

    def test_extra_config(self):
        """测试 extra_config 转换并忽略未知字段"""
        llm = ScriptedLLM(api_key="sk-test", extra_config={"retry_strategy": "linear", "unknown": 1})

        assert isinstance(llm.extra_config, BaseExtraConfig)
        assert llm.extra_config.retry_strategy == "linear"
        assert llm.extra_config.requires_auth is True
