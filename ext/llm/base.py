"""
LLM 模型泛型基类

提供统一的 agenerate / astream / ainvoke 接口，provider 只需实现 _agenerate 与 _astream
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import aclosing
from typing import Any, Generic, TypeVar
from collections.abc import AsyncIterator, Awaitable, Callable

import httpx
from loguru import logger

from ext.llm.exceptions import (
    LLMCancelledError,
    LLMConfigError,
    LLMServerError,
    LLMTransportError,
)
from ext.llm.options import CallOptions, StreamOption
from ext.llm.types import BaseExtraConfig, GenerateResult, Message, StreamData, messages_to_string
from util.general import truncate_content

ExtraConfigT = TypeVar("ExtraConfigT", bound=BaseExtraConfig)
ResultT = TypeVar("ResultT")


class BaseLLMModel(Generic[ExtraConfigT], ABC):
    """
    LLM 模型抽象基类（泛型）

    类型参数:
        ExtraConfigT: extra_config 的具体类型

    设计原则:
        1. 子类只实现 _agenerate（非流式）与 _astream（流式）
        2. 设置了流式回调时，agenerate 内部走流式并逐块回调
        3. 仅对服务端错误和网络错误重试，限流错误直接抛出
        4. 已注册全局 httpx client 时复用其连接池
    """

    model_type: str = "base"

    extra_config: ExtraConfigT

    def __init__(
        self,
        model_name: str,
        api_key: str | None = None,
        base_url: str | None = None,
        max_tokens: int = 4096,
        max_retries: int = 2,
        timeout: float = 60.0,
        options: CallOptions | None = None,
        extra_config: dict[str, Any] | None = None,
    ):
        """
        初始化 LLM 模型

        Args:
            model_name: 模型名称
            api_key: API密钥
            base_url: API基础URL（为空时使用 SDK 默认地址）
            max_tokens: 默认最大输出token数
            max_retries: 服务端错误/网络错误的最大重试次数
            timeout: 请求超时时间(秒)
            options: 默认调用参数
            extra_config: provider特定配置（dict），内部会转换成具体的 pydantic model
        """
        self.model_name = model_name
        self.api_key = api_key
        self.base_url = base_url
        self.max_tokens = max_tokens
        self.max_retries = max_retries
        self.timeout = timeout
        self.options = options or CallOptions()

        self.extra_config: ExtraConfigT = self._convert_extra_config(extra_config or {})

        self._validate_config()

        logger.info(f"Initialized LLM model: {self.model_type}/{self.model_name}, max_tokens={self.max_tokens}")

    def _validate_config(self) -> None:
        """验证配置"""
        if self.extra_config.requires_auth and not self.api_key:
            logger.error(f"Configuration validation failed: {self.model_type} requires api_key")
            raise LLMConfigError(f"{self.model_type} requires api_key")

    def _get_extra_config_cls(self) -> type[BaseExtraConfig]:
        """
        从泛型参数自动提取 extra_config 类型

        子类通过 `class OpenAILLMModel(BaseLLMModel[OpenAIExtraConfig])` 声明泛型参数

        Returns:
            extra_config 的 pydantic model 类型
        """
        for klass in type(self).__mro__:
            for base in getattr(klass, "__orig_bases__", ()):
                for arg in getattr(base, "__args__", ()):
                    if isinstance(arg, type) and issubclass(arg, BaseExtraConfig):
                        return arg
        return BaseExtraConfig

    def _convert_extra_config(self, extra_config_dict: dict[str, Any]) -> ExtraConfigT:
        extra_config_cls = self._get_extra_config_cls()
        return extra_config_cls.from_dict(extra_config_dict)  # type: ignore

    # ========== 核心抽象方法（必须由子类实现） ==========

    @abstractmethod
    async def _agenerate(self, messages: list[Message], options: CallOptions) -> GenerateResult:
        """
        发起对话请求（非流式）

        Args:
            messages: 消息列表
            options: 本次调用生效的参数

        Returns:
            生成结果
        """
        raise NotImplementedError

    @abstractmethod
    def _astream(self, messages: list[Message], options: CallOptions) -> AsyncIterator[StreamData]:
        """
        发起对话请求（流式）

        Args:
            messages: 消息列表
            options: 本次调用生效的参数

        Yields:
            流式数据块（允许 content 为空的 usage 块）
        """
        raise NotImplementedError

    # ========== 对外接口 ==========

    def resolve_options(self, options: CallOptions | None = None) -> CallOptions:
        """
        计算单次调用的参数：模型自身参数叠加调用方参数，不修改模型

        Args:
            options: 调用方参数

        Returns:
            本次调用生效的参数
        """
        if options is None:
            return self.options
        return self.options.merge_options(options)

    async def agenerate(self, messages: list[Message], options: CallOptions | None = None) -> GenerateResult:
        """
        生成回复

        设置了 stream_option.streaming_func 时，内部以流式请求并逐块回调

        Args:
            messages: 消息列表
            options: 仅对本次调用生效的参数

        Returns:
            生成结果
        """
        logger.debug(f"{self.model_type} generate - model: {self.model_name}, messages: {len(messages)}")

        call_options = self.resolve_options(options)
        stream_option = call_options.stream_option
        if stream_option is not None and stream_option.streaming_func is not None:
            result = await self._agenerate_with_stream_sink(messages, call_options, stream_option)
        else:
            result = await self._with_retry(self._agenerate, messages, call_options)

        logger.debug(
            f"{self.model_type} generate result - generation: {truncate_content(result.generation)}, "
            f"tokens: {result.tokens.total_tokens if result.tokens else None}",
        )
        return result

    async def astream(
        self,
        messages: list[Message],
        options: CallOptions | None = None,
    ) -> AsyncIterator[StreamData]:
        """
        流式生成回复

        Args:
            messages: 消息列表
            options: 仅对本次调用生效的参数

        Yields:
            流式数据块，按到达顺序原样转发
        """
        logger.debug(f"{self.model_type} stream - model: {self.model_name}, messages: {len(messages)}")

        chunk_count = 0
        async with aclosing(self._astream(messages, self.resolve_options(options))) as stream:
            async for data in stream:
                chunk_count += 1
                yield data

        logger.debug(f"{self.model_type} stream completed - total chunks: {chunk_count}")

    async def ainvoke(self, prompt: str, options: CallOptions | None = None) -> str:
        """
        便捷调用：以单条 human 消息发送 prompt

        Args:
            prompt: 提示词
            options: 仅对本次调用生效的参数

        Returns:
            生成的文本
        """
        result = await self.agenerate([Message.human(prompt)], options)
        return result.generation

    def add_options(self, options: CallOptions) -> None:
        """合并模型自身的默认参数（新参数中已设置的字段覆盖旧值）"""
        self.options = self.options.merge_options(options)

    async def _agenerate_with_stream_sink(
        self,
        messages: list[Message],
        options: CallOptions,
        stream_option: StreamOption,
    ) -> GenerateResult:
        chunks: list[str] = []
        tokens = None
        async with aclosing(self._astream(messages, options)) as stream:
            async for data in stream:
                if data.tokens is not None:
                    tokens = data.tokens
                if not data.content:
                    continue
                if not await stream_option.emit(data.content):
                    logger.info(f"{self.model_type} generation cancelled by stream callback")
                    raise LLMCancelledError("Generation cancelled by streaming callback")
                chunks.append(data.content)

        return GenerateResult(generation="".join(chunks), tokens=tokens)

    # ========== 通用工具方法 ==========

    def get_httpx_client(self) -> httpx.AsyncClient | None:
        """获取全局 httpx client，未注册时返回 None"""
        from ext.ext_httpx.main import get_shared_client

        return get_shared_client()

    async def _with_retry(
        self,
        func: Callable[..., Awaitable[ResultT]],
        *args: Any,
    ) -> ResultT:
        """对服务端错误和网络错误按配置重试，其余错误直接抛出"""
        attempt = 0
        while True:
            try:
                return await func(*args)
            except (LLMServerError, LLMTransportError) as e:
                if attempt >= self.max_retries:
                    raise
                attempt += 1
                delay = self.get_retry_delay(attempt)
                logger.warning(
                    f"{self.model_type} request failed, retrying ({attempt}/{self.max_retries}) in {delay}s: {e}",
                )
                await asyncio.sleep(delay)

    def get_retry_delay(self, attempt: int) -> float:
        """获取重试延迟（从 extra_config 读取）"""
        strategy = self.extra_config.retry_strategy
        if strategy == "exponential":
            delay = 2 ** (attempt - 1)
        elif strategy == "linear":
            delay = attempt * 2
        else:  # constant
            delay = 1.0

        return float(delay)

    @staticmethod
    def messages_to_string(messages: list[Message]) -> str:
        return messages_to_string(messages)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"model_name={self.model_name}, "
            f"model_type={self.model_type}, "
            f"max_tokens={self.max_tokens})"
        )


__all__ = [
    "BaseLLMModel",
]
