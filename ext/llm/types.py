"""
LLM 类型定义

定义消息、文档、生成结果、流式数据等统一的 Pydantic 模型
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.types import StrEnum


class MessageTypeEnum(StrEnum):
    """消息角色"""

    system = ("system", "系统消息")
    human = ("human", "用户消息")
    ai = ("ai", "模型消息")
    tool = ("tool", "工具消息")


class ImageRef(BaseModel):
    """图片引用（URL 或 data URI）"""

    model_config = ConfigDict(frozen=True)

    image_url: str = Field(description="图片地址")
    detail: str | None = Field(default=None, description="解析精度（low/high/auto）")


class Message(BaseModel):
    """对话消息

    构造后不可变，工具调用信息以原始 JSON 形式保存
    """

    model_config = ConfigDict(frozen=True)

    content: str = Field(default="", description="消息内容")
    message_type: MessageTypeEnum = Field(description="消息角色")
    id: str | None = Field(default=None, description="消息ID（tool 消息对应的工具调用ID）")
    tool_calls: Any | None = Field(default=None, description="工具调用（原始 JSON）")
    images: list[ImageRef] | None = Field(default=None, description="图片列表")

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(content=content, message_type=MessageTypeEnum.system)

    @classmethod
    def human(cls, content: str) -> "Message":
        return cls(content=content, message_type=MessageTypeEnum.human)

    @classmethod
    def human_with_images(cls, content: str, images: list[ImageRef] | list[str]) -> "Message":
        refs = [image if isinstance(image, ImageRef) else ImageRef(image_url=image) for image in images]
        return cls(content=content, message_type=MessageTypeEnum.human, images=refs)

    @classmethod
    def ai(cls, content: str, tool_calls: Any | None = None) -> "Message":
        return cls(content=content, message_type=MessageTypeEnum.ai, tool_calls=tool_calls)

    @classmethod
    def tool(cls, content: str, id: str | None = None) -> "Message":
        return cls(content=content, message_type=MessageTypeEnum.tool, id=id)

    def __str__(self) -> str:
        return f"{self.message_type.value}: {self.content}"


def messages_to_string(messages: list[Message]) -> str:
    """将消息列表序列化为 ``role: content`` 行"""
    return "\n".join(str(message) for message in messages)


class Document(BaseModel):
    """文档

    score 仅在检索时由向量存储填充
    """

    page_content: str = Field(description="文档内容")
    metadata: dict[str, Any] = Field(default_factory=dict, description="元数据")
    score: float = Field(default=0.0, description="相似度分数")


class FunctionDefinition(BaseModel):
    """函数定义

    用于 Function Calling
    """

    name: str = Field(description="函数名称")
    description: str | None = Field(default=None, description="函数描述")
    parameters: dict[str, Any] | None = Field(default=None, description="函数参数（JSON Schema）")


class ToolDefinition(BaseModel):
    """工具定义

    OpenAI tools 格式
    """

    type: Literal["function"] = Field(default="function", description="工具类型")
    function: FunctionDefinition = Field(description="函数定义")


class ToolCall(BaseModel):
    """工具调用"""

    id: str = Field(description="工具调用ID")
    type: Literal["function"] = Field(default="function", description="工具类型")
    function: dict[str, Any] = Field(description="函数调用信息（name/arguments）")


class TokenUsage(BaseModel):
    """Token 使用统计"""

    prompt_tokens: int = Field(default=0, description="输入token数")
    completion_tokens: int = Field(default=0, description="输出token数")
    total_tokens: int = Field(default=0, description="总token数")

    def add(self, other: "TokenUsage") -> "TokenUsage":
        """原地累加并返回自身"""
        self.prompt_tokens += other.prompt_tokens
        self.completion_tokens += other.completion_tokens
        self.total_tokens += other.total_tokens
        return self

    def sum(self, other: "TokenUsage") -> "TokenUsage":
        """返回两者之和（不修改自身）"""
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return self.sum(other)

    @staticmethod
    def accumulate(total: Optional["TokenUsage"], usage: Optional["TokenUsage"]) -> Optional["TokenUsage"]:
        """累加可能缺失的统计，两者都缺失时返回 None"""
        if usage is None:
            return total
        if total is None:
            return usage.model_copy()
        return total.sum(usage)


class GenerateResult(BaseModel):
    """生成结果"""

    generation: str = Field(default="", description="生成的文本")
    tokens: TokenUsage | None = Field(default=None, description="Token使用统计")


class StreamData(BaseModel):
    """流式数据块

    content 可能为空（例如仅携带 usage 的最后一块）
    """

    value: Any = Field(default=None, description="provider 原始数据")
    tokens: TokenUsage | None = Field(default=None, description="Token使用统计")
    content: str = Field(default="", description="本块文本内容")


class BaseExtraConfig(BaseModel):
    """Provider 特定配置基类

    由 LLMModelConfig.extra_config 字典转换而来
    """

    requires_auth: bool = Field(default=True, description="是否需要认证")
    retry_strategy: Literal["exponential", "linear", "constant"] = Field(
        default="exponential", description="重试策略：exponential/linear/constant",
    )
    headers: dict[str, str] = Field(default_factory=dict, description="额外的HTTP头")

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "BaseExtraConfig":
        """从字典创建实例，忽略未知字段

        Args:
            data: 配置字典

        Returns:
            类型化的实例
        """
        valid_data = {k: v for k, v in (data or {}).items() if k in cls.model_fields}
        return cls.model_validate(valid_data)


class OpenAIExtraConfig(BaseExtraConfig):
    """OpenAI 特定配置

    兼容所有 OpenAI Chat Completions 协议的服务
    """

    organization: str | None = Field(default=None, description="组织ID")


class AnthropicExtraConfig(BaseExtraConfig):
    """Anthropic 特定配置

    system 消息通过独立的 system 参数传递，使用默认配置即可
    """


__all__ = [
    "BaseExtraConfig",
    "OpenAIExtraConfig",
    "AnthropicExtraConfig",
    "MessageTypeEnum",
    "ImageRef",
    "Message",
    "messages_to_string",
    "Document",
    "FunctionDefinition",
    "ToolDefinition",
    "ToolCall",
    "TokenUsage",
    "GenerateResult",
    "StreamData",
]
