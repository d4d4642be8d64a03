"""
LLM 调用参数

CallOptions 的所有字段均可缺省，由各 provider 自行映射到请求参数
"""

import asyncio
from typing import Any
from collections.abc import Awaitable, Callable

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from core.types import StrEnum
from ext.llm.types import FunctionDefinition

# 返回 False 表示调用方希望终止生成
StreamingFunc = Callable[[str], Awaitable[bool | None]]


class FunctionCallBehaviorEnum(StrEnum):
    """函数调用策略"""

    auto = ("auto", "模型自行决定")
    none = ("none", "禁止调用")


class ResponseFormatTypeEnum(StrEnum):
    """响应格式"""

    text = ("text", "纯文本")
    json_object = ("json_object", "JSON 对象")
    json_schema = ("json_schema", "符合 JSON Schema 的对象")


class ResponseFormat(BaseModel):
    """响应格式约束"""

    type: ResponseFormatTypeEnum = Field(default=ResponseFormatTypeEnum.text, description="格式类型")
    json_schema: dict[str, Any] | None = Field(default=None, description="json_schema 类型时的 schema 定义")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type.value}
        if self.type == ResponseFormatTypeEnum.json_schema and self.json_schema is not None:
            data["json_schema"] = self.json_schema
        return data


class StreamOption(BaseModel):
    """流式回调配置

    回调通过锁串行执行，保证按到达顺序逐块调用
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    streaming_func: StreamingFunc | None = Field(default=None, description="异步回调，参数为每个非空文本块")
    include_usage: bool = Field(default=False, description="是否在流的最后一块返回 usage")

    _lock: asyncio.Lock = PrivateAttr(default_factory=asyncio.Lock)

    async def emit(self, chunk: str) -> bool:
        """调用回调

        Args:
            chunk: 文本块

        Returns:
            是否继续生成
        """
        if self.streaming_func is None:
            return True
        async with self._lock:
            result = await self.streaming_func(chunk)
        return result is not False


class CallOptions(BaseModel):
    """LLM 调用参数"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    candidate_count: int | None = Field(default=None, description="候选数量")
    max_tokens: int | None = Field(default=None, ge=1, description="最大输出token数")
    temperature: float | None = Field(default=None, ge=0.0, le=2.0, description="温度参数")
    stop_words: list[str] | None = Field(default=None, description="停止序列")
    top_k: int | None = Field(default=None, ge=1, description="top-k sampling参数")
    top_p: float | None = Field(default=None, ge=0.0, le=1.0, description="nucleus sampling参数")
    seed: int | None = Field(default=None, description="随机种子")
    min_length: int | None = Field(default=None, description="最小生成长度")
    max_length: int | None = Field(default=None, description="最大生成长度")
    n: int | None = Field(default=None, ge=1, description="生成数量")
    repetition_penalty: float | None = Field(default=None, description="重复惩罚")
    frequency_penalty: float | None = Field(default=None, ge=-2.0, le=2.0, description="频率惩罚")
    presence_penalty: float | None = Field(default=None, ge=-2.0, le=2.0, description="存在惩罚")
    functions: list[FunctionDefinition] | None = Field(default=None, description="可调用的函数列表")
    function_call_behavior: FunctionCallBehaviorEnum | None = Field(default=None, description="函数调用策略")
    tool_choice: str | dict[str, Any] | None = Field(default=None, description="工具选择策略")
    response_format: ResponseFormat | None = Field(default=None, description="响应格式")
    stream_option: StreamOption | None = Field(default=None, description="流式回调配置")
    system_is_assistant: bool | None = Field(default=None, description="是否以 assistant 角色发送 system 消息")

    def merge_options(self, other: "CallOptions") -> "CallOptions":
        """合并参数，other 中已设置的字段覆盖自身

        Args:
            other: 新参数

        Returns:
            合并后的新实例
        """
        update = {
            name: getattr(other, name)
            for name in type(other).model_fields
            if getattr(other, name) is not None
        }
        return self.model_copy(update=update)

    @property
    def streaming_func(self) -> StreamingFunc | None:
        if self.stream_option is None:
            return None
        return self.stream_option.streaming_func


__all__ = [
    "StreamingFunc",
    "FunctionCallBehaviorEnum",
    "ResponseFormatTypeEnum",
    "ResponseFormat",
    "StreamOption",
    "CallOptions",
]
