"""
LLM 模型抽象层

提供统一的 LLM 接口（agenerate / astream / ainvoke），支持动态切换不同的 LLM 服务提供商。
"""

from ext.llm.base import BaseLLMModel
from ext.llm.factory import LLMModelFactory, LLMModelTypeEnum
from ext.llm.options import (
    CallOptions,
    FunctionCallBehaviorEnum,
    ResponseFormat,
    ResponseFormatTypeEnum,
    StreamOption,
)
from ext.llm.types import (
    Document,
    FunctionDefinition,
    GenerateResult,
    ImageRef,
    Message,
    MessageTypeEnum,
    StreamData,
    TokenUsage,
)
from ext.llm.exceptions import (
    LLMError,
    LLMConfigError,
    LLMModelNotFoundError,
    LLMAuthError,
    LLMRateLimitError,
    LLMBadRequestError,
    LLMServerError,
    LLMTransportError,
    LLMTimeoutError,
    LLMInvalidResponseError,
    LLMContentNotFoundError,
    LLMCancelledError,
)

# 注册内置 providers
import ext.llm.providers  # noqa: F401, E402

__all__ = [
    # 基类
    "BaseLLMModel",
    # 工厂
    "LLMModelFactory",
    "LLMModelTypeEnum",
    # 调用参数
    "CallOptions",
    "FunctionCallBehaviorEnum",
    "ResponseFormat",
    "ResponseFormatTypeEnum",
    "StreamOption",
    # 类型
    "Document",
    "FunctionDefinition",
    "GenerateResult",
    "ImageRef",
    "Message",
    "MessageTypeEnum",
    "StreamData",
    "TokenUsage",
    # 异常
    "LLMError",
    "LLMConfigError",
    "LLMModelNotFoundError",
    "LLMAuthError",
    "LLMRateLimitError",
    "LLMBadRequestError",
    "LLMServerError",
    "LLMTransportError",
    "LLMTimeoutError",
    "LLMInvalidResponseError",
    "LLMContentNotFoundError",
    "LLMCancelledError",
]
