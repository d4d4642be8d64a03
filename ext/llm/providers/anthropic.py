"""
Anthropic LLM Provider

使用官方 Anthropic SDK 实现（Claude 系列）
"""

from typing import Any
from collections.abc import AsyncIterator

import orjson
import anthropic
from loguru import logger
from anthropic import AsyncAnthropic

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
    AnthropicExtraConfig,
    GenerateResult,
    ImageRef,
    Message,
    MessageTypeEnum,
    StreamData,
    TokenUsage,
)
from util.general import truncate_content


def map_anthropic_error(e: anthropic.APIError) -> LLMError:
    """将 Anthropic SDK 异常映射为统一的错误种类"""
    if isinstance(e, anthropic.APITimeoutError):
        return LLMTimeoutError(f"Anthropic request timeout: {e}")
    if isinstance(e, anthropic.APIConnectionError):
        return LLMTransportError(f"Anthropic connection error: {e}")
    if isinstance(e, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
        return LLMAuthError(f"Anthropic auth error: {e}")
    if isinstance(e, anthropic.RateLimitError):
        return LLMRateLimitError(f"Anthropic rate limited: {e}")
    if isinstance(e, anthropic.APIStatusError):
        if e.status_code >= 500:
            return LLMServerError(f"Anthropic server error: {e}")
        return LLMBadRequestError(f"Anthropic bad request: {e}")
    if isinstance(e, anthropic.APIResponseValidationError):
        return LLMInvalidResponseError(f"Anthropic invalid response: {e}")
    return LLMError(f"Anthropic API error: {e}")


class AnthropicLLMModel(BaseLLMModel[AnthropicExtraConfig]):
    """
    Anthropic Claude LLM Provider

    支持：
    - Messages API（对话）
    - Streaming
    - Tool Use（工具调用转换为 OpenAI 格式的 JSON 文本）
    - Vision
    """

    model_type = "anthropic"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        logger.debug(f"Initializing Anthropic client - base_url: {self.base_url}, timeout: {self.timeout}")
        self._client = AsyncAnthropic(
            api_key=self.api_key,
            base_url=self.base_url,
            timeout=self.timeout,
            max_retries=0,
            default_headers=self.extra_config.headers or None,
            http_client=self.get_httpx_client(),
        )

    @staticmethod
    def _convert_image(image: ImageRef) -> dict[str, Any]:
        url = image.image_url
        if url.startswith("data:") and "," in url:
            header, data = url.split(",", 1)
            media_type = header[len("data:"):].split(";")[0] or "image/jpeg"
            return {"type": "image", "source": {"type": "base64", "media_type": media_type, "data": data}}
        return {"type": "image", "source": {"type": "url", "url": url}}

    def _convert_messages(self, messages: list[Message], options: CallOptions) -> tuple[list[dict], str | None]:
        """
        转换消息格式

        Anthropic 的消息格式与 OpenAI 不同：
        - system 消息独立在 system 参数中
        - 工具结果以 user 角色的 tool_result 块发送

        Args:
            messages: Message 列表
            options: 调用参数

        Returns:
            (messages, system_prompt) 元组
        """
        converted: list[dict[str, Any]] = []
        system_parts: list[str] = []

        for msg in messages:
            if msg.message_type == MessageTypeEnum.system:
                if options.system_is_assistant:
                    converted.append({"role": "assistant", "content": msg.content})
                else:
                    system_parts.append(msg.content)

            elif msg.message_type == MessageTypeEnum.human:
                if msg.images:
                    blocks = [self._convert_image(image) for image in msg.images]
                    blocks.append({"type": "text", "text": msg.content})
                    converted.append({"role": "user", "content": blocks})
                else:
                    converted.append({"role": "user", "content": msg.content})

            elif msg.message_type == MessageTypeEnum.ai:
                if msg.tool_calls:
                    blocks = [{"type": "text", "text": msg.content}] if msg.content else []
                    for tool_call in msg.tool_calls:
                        function = tool_call.get("function", {})
                        arguments = function.get("arguments") or "{}"
                        blocks.append(
                            {
                                "type": "tool_use",
                                "id": tool_call.get("id"),
                                "name": function.get("name"),
                                "input": orjson.loads(arguments) if isinstance(arguments, str) else arguments,
                            },
                        )
                    converted.append({"role": "assistant", "content": blocks})
                else:
                    converted.append({"role": "assistant", "content": msg.content})

            else:
                converted.append(
                    {
                        "role": "user",
                        "content": [{"type": "tool_result", "tool_use_id": msg.id, "content": msg.content}],
                    },
                )

        system_prompt = "\n\n".join(system_parts) if system_parts else None
        return converted, system_prompt

    def _convert_tool_choice(self, options: CallOptions) -> dict[str, Any] | None:
        if options.function_call_behavior == FunctionCallBehaviorEnum.none:
            return {"type": "none"}
        tool_choice = options.tool_choice
        if tool_choice is None:
            return None
        if isinstance(tool_choice, str):
            # auto/any/none
            return {"type": tool_choice}
        return tool_choice

    def _build_kwargs(self, messages: list[Message], options: CallOptions | None = None) -> dict[str, Any]:
        options = options or self.options
        converted, system_prompt = self._convert_messages(messages, options)

        kwargs: dict[str, Any] = {
            "model": self.model_name,
            "messages": converted,
            "max_tokens": options.max_tokens or self.max_tokens,
        }
        if system_prompt:
            kwargs["system"] = system_prompt

        optional = {
            "temperature": options.temperature,
            "top_p": options.top_p,
            "top_k": options.top_k,
            "stop_sequences": options.stop_words,
        }
        kwargs.update({k: v for k, v in optional.items() if v is not None})

        if options.functions:
            kwargs["tools"] = [
                {
                    "name": function.name,
                    "description": function.description or "",
                    "input_schema": function.parameters or {"type": "object", "properties": {}},
                }
                for function in options.functions
            ]
            tool_choice = self._convert_tool_choice(options)
            if tool_choice is not None:
                kwargs["tool_choice"] = tool_choice

        return kwargs

    async def _agenerate(self, messages: list[Message], options: CallOptions) -> GenerateResult:
        kwargs = self._build_kwargs(messages, options)
        logger.debug(
            f"Anthropic chat request - model: {kwargs['model']}, messages: {len(kwargs['messages'])}, "
            f"tools: {len(kwargs.get('tools', []))}",
        )

        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error: {e}")
            raise map_anthropic_error(e) from e

        return self._parse_response(response)

    def _parse_response(self, response) -> GenerateResult:
        """
        解析 Anthropic 响应

        Args:
            response: Anthropic SDK 响应对象

        Returns:
            统一的 GenerateResult
        """
        content = ""
        tool_calls = []
        for block in response.content:
            if block.type == "text":
                content += block.text
            elif block.type == "tool_use":
                tool_calls.append(
                    {
                        "id": block.id,
                        "type": "function",
                        "function": {"name": block.name, "arguments": orjson.dumps(block.input).decode()},
                    },
                )

        generation = orjson.dumps(tool_calls).decode() if tool_calls else content

        tokens = TokenUsage(
            prompt_tokens=response.usage.input_tokens,
            completion_tokens=response.usage.output_tokens,
            total_tokens=response.usage.input_tokens + response.usage.output_tokens,
        )

        logger.debug(f"Anthropic chat response - content: {truncate_content(generation)}")
        return GenerateResult(generation=generation, tokens=tokens)

    async def _astream(self, messages: list[Message], options: CallOptions) -> AsyncIterator[StreamData]:  # type: ignore
        kwargs = self._build_kwargs(messages, options)
        logger.debug(f"Anthropic chat stream request - model: {kwargs['model']}, messages: {len(kwargs['messages'])}")

        prompt_tokens = 0
        completion_tokens = 0
        try:
            stream = await self._client.messages.create(**kwargs, stream=True)
            async for event in stream:
                if event.type == "message_start":
                    prompt_tokens = event.message.usage.input_tokens
                elif event.type == "content_block_delta" and event.delta.type == "text_delta":
                    yield StreamData(value=event.model_dump(), content=event.delta.text)
                elif event.type == "message_delta":
                    completion_tokens = event.usage.output_tokens
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error in stream: {e}")
            raise map_anthropic_error(e) from e

        # 仅携带 usage 的最后一块
        yield StreamData(
            tokens=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
        )


__all__ = [
    "AnthropicLLMModel",
    "map_anthropic_error",
]
