"""
OpenAI LLM Provider

使用官方 OpenAI SDK 实现，兼容所有 Chat Completions 协议的服务
"""

from typing import Any
from collections.abc import AsyncIterator

import orjson
import openai
from loguru import logger
from openai import AsyncOpenAI

from ext.llm.base import BaseLLMModel
from ext.llm.exceptions import (
    LLMAuthError,
    LLMBadRequestError,
    LLMError,
    LLMInvalidResponseError,
    LLMRateLimitError,
    LLMServerError,
    LLMTimeoutError,
    LLMTransportError,
)
from ext.llm.options import CallOptions, FunctionCallBehaviorEnum
from ext.llm.types import (
    GenerateResult,
    Message,
    MessageTypeEnum,
    OpenAIExtraConfig,
    StreamData,
    TokenUsage,
)
from util.general import truncate_content


def map_openai_error(e: openai.APIError) -> LLMError:
    """将 OpenAI SDK 异常映射为统一的错误种类"""
    if isinstance(e, openai.APITimeoutError):
        return LLMTimeoutError(f"OpenAI request timeout: {e}")
    if isinstance(e, openai.APIConnectionError):
        return LLMTransportError(f"OpenAI connection error: {e}")
    if isinstance(e, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return LLMAuthError(f"OpenAI auth error: {e}")
    if isinstance(e, openai.RateLimitError):
        return LLMRateLimitError(f"OpenAI rate limited: {e}")
    if isinstance(e, openai.APIStatusError):
        if e.status_code >= 500:
            return LLMServerError(f"OpenAI server error: {e}")
        return LLMBadRequestError(f"OpenAI bad request: {e}")
    if isinstance(e, openai.APIResponseValidationError):
        return LLMInvalidResponseError(f"OpenAI invalid response: {e}")
    return LLMError(f"OpenAI API error: {e}")


class OpenAILLMModel(BaseLLMModel[OpenAIExtraConfig]):
    """
    OpenAI LLM Provider

    支持：
    - Chat Completions
    - Streaming（可选返回 usage）
    - Function Calling（工具调用以 JSON 文本作为 generation 返回）
    - Vision
    """

    model_type = "openai"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        logger.debug(f"Initializing OpenAI client - base_url: {self.base_url}, timeout: {self.timeout}")
        # 重试由基类控制，限流错误不重试
        self._client = AsyncOpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            organization=self.extra_config.organization,
            timeout=self.timeout,
            max_retries=0,
            default_headers=self.extra_config.headers or None,
            http_client=self.get_httpx_client(),
        )

    def _convert_messages(self, messages: list[Message], options: CallOptions) -> list[dict[str, Any]]:
        """
        转换消息格式

        Args:
            messages: Message 列表
            options: 调用参数

        Returns:
            OpenAI 格式的消息列表
        """
        converted = []
        for msg in messages:
            if msg.message_type == MessageTypeEnum.system:
                role = "assistant" if options.system_is_assistant else "system"
                converted.append({"role": role, "content": msg.content})

            elif msg.message_type == MessageTypeEnum.human:
                if msg.images:
                    content: list[dict[str, Any]] = [{"type": "text", "text": msg.content}]
                    for image in msg.images:
                        image_url = {"url": image.image_url}
                        if image.detail:
                            image_url["detail"] = image.detail
                        content.append({"type": "image_url", "image_url": image_url})
                    converted.append({"role": "user", "content": content})
                else:
                    converted.append({"role": "user", "content": msg.content})

            elif msg.message_type == MessageTypeEnum.ai:
                converted_msg: dict[str, Any] = {"role": "assistant", "content": msg.content or None}
                if msg.tool_calls:
                    converted_msg["tool_calls"] = msg.tool_calls
                converted.append(converted_msg)

            else:
                converted.append({"role": "tool", "content": msg.content, "tool_call_id": msg.id})

        return converted

    def _build_kwargs(
        self,
        messages: list[Message],
        stream: bool,
        options: CallOptions | None = None,
    ) -> dict[str, Any]:
        options = options or self.options
        kwargs: dict[str, Any] = {
            "model": self.model_name,
            "messages": self._convert_messages(messages, options),
            "max_tokens": options.max_tokens or self.max_tokens,
            "stream": stream,
        }

        optional = {
            "temperature": options.temperature,
            "top_p": options.top_p,
            "stop": options.stop_words,
            "seed": options.seed,
            "n": options.n or options.candidate_count,
            "frequency_penalty": options.frequency_penalty,
            "presence_penalty": options.presence_penalty,
        }
        kwargs.update({k: v for k, v in optional.items() if v is not None})

        if options.functions:
            kwargs["tools"] = [
                {"type": "function", "function": function.model_dump(exclude_none=True)}
                for function in options.functions
            ]
            if options.function_call_behavior == FunctionCallBehaviorEnum.none:
                kwargs["tool_choice"] = "none"
            elif options.tool_choice is not None:
                kwargs["tool_choice"] = options.tool_choice
            else:
                kwargs["tool_choice"] = "auto"

        if options.response_format is not None:
            kwargs["response_format"] = options.response_format.to_dict()

        if stream and options.stream_option is not None and options.stream_option.include_usage:
            kwargs["stream_options"] = {"include_usage": True}

        return kwargs

    async def _agenerate(self, messages: list[Message], options: CallOptions) -> GenerateResult:
        kwargs = self._build_kwargs(messages, stream=False, options=options)
        logger.debug(
            f"OpenAI chat request - model: {kwargs['model']}, messages: {len(kwargs['messages'])}, "
            f"tools: {len(kwargs.get('tools', []))}",
        )

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.APIError as e:
            logger.error(f"OpenAI API error: {e}")
            raise map_openai_error(e) from e

        return self._parse_response(response)

    def _parse_response(self, response) -> GenerateResult:
        """
        解析 OpenAI 响应

        存在工具调用时，generation 为工具调用列表的 JSON 文本

        Args:
            response: OpenAI SDK 响应对象

        Returns:
            统一的 GenerateResult
        """
        if not response.choices:
            logger.error(f"Response has no choices: {response}")
            raise LLMInvalidResponseError("API response has no choices")

        message = response.choices[0].message

        if message.tool_calls:
            tool_calls = [
                {
                    "id": tc.id,
                    "type": tc.type,
                    "function": {"name": tc.function.name, "arguments": tc.function.arguments},
                }
                for tc in message.tool_calls
            ]
            generation = orjson.dumps(tool_calls).decode()
        else:
            generation = message.content or ""

        tokens = None
        if response.usage:
            tokens = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )

        logger.debug(f"OpenAI chat response - content: {truncate_content(generation)}")
        return GenerateResult(generation=generation, tokens=tokens)

    async def _astream(self, messages: list[Message], options: CallOptions) -> AsyncIterator[StreamData]:  # type: ignore
        kwargs = self._build_kwargs(messages, stream=True, options=options)
        logger.debug(f"OpenAI chat stream request - model: {kwargs['model']}, messages: {len(kwargs['messages'])}")

        try:
            stream = await self._client.chat.completions.create(**kwargs)
            async for chunk in stream:
                yield self._parse_stream_chunk(chunk)
        except openai.APIError as e:
            logger.error(f"OpenAI API error in stream: {e}")
            raise map_openai_error(e) from e

    def _parse_stream_chunk(self, chunk) -> StreamData:
        content = ""
        if chunk.choices and chunk.choices[0].delta.content:
            content = chunk.choices[0].delta.content

        tokens = None
        usage = getattr(chunk, "usage", None)
        if usage:
            tokens = TokenUsage(
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
                total_tokens=usage.total_tokens,
            )

        return StreamData(value=chunk.model_dump(), tokens=tokens, content=content)


__all__ = [
    "OpenAILLMModel",
    "map_openai_error",
]
