import os
import abc
import enum
from typing import Any, Self, Generic, TypeVar
from pathlib import Path

from pydantic import BaseModel, Field, model_validator

T = TypeVar("T")


class EnvironmentEnum(str, enum.Enum):
    local = "local"
    development = "development"
    test = "test"
    production = "production"


ENVIRONMENT = os.environ.get(
    "environment",  # noqa
    EnvironmentEnum.local.value,
)

BASE_DIR = Path(__file__).resolve().parent.parent


class ProjectConfig(BaseModel):
    unique_code: str = "chainflow"
    debug: bool = False
    environment: EnvironmentEnum = EnvironmentEnum(ENVIRONMENT)
    log_level: str = "INFO"

    @model_validator(mode="after")
    def check_debug_options(self) -> Self:
        assert not (
            self.debug and self.environment == EnvironmentEnum.production
        ), "Production cannot set with debug enabled"
        return self

    @property
    def base_dir(self) -> Path:
        return BASE_DIR


class LLMModelConfig(BaseModel):
    """默认 LLM 模型配置"""

    type: str = Field(default="openai", description="模型提供商类型（openai/anthropic）")
    model_name: str = Field(default="gpt-4o-mini", description="模型名称")
    api_key: str | None = Field(default=None, description="API密钥")
    base_url: str | None = Field(default=None, description="API基础URL，为空时使用SDK默认地址")
    max_tokens: int = Field(default=4096, description="默认最大输出token数")
    max_retries: int = Field(default=2, description="服务端错误/网络错误的最大重试次数（限流不重试）")
    timeout: float = Field(default=60.0, description="请求超时时间(秒)")
    extra_config: dict[str, Any] = Field(default_factory=dict, description="provider特定配置")
    options: dict[str, Any] = Field(default_factory=dict, description="默认调用参数（CallOptions 字段）")


class EmbeddingModelConfig(BaseModel):
    """默认 Embedding 模型配置"""

    model_name: str = Field(default="text-embedding-3-small", description="模型名称")
    dimension: int = Field(default=1536, description="向量维度")
    api_key: str | None = Field(default=None, description="API密钥")
    base_url: str = Field(default="https://api.openai.com/v1", description="API基础URL")
    max_batch_size: int = Field(default=32, description="单次请求最大文本数")
    timeout: float = Field(default=60.0, description="请求超时时间(秒)")
    max_retries: int = Field(default=2, description="最大重试次数")


class AgentConfig(BaseModel):
    """Agent 执行器默认配置"""

    max_iterations: int = Field(default=10, ge=1, description="最大规划次数")
    break_if_error: bool = Field(default=False, description="工具报错时是否终止执行")


class ExtensionConfig(BaseModel): ...


class InstanceExtensionConfig(ExtensionConfig, Generic[T]):

    @property
    @abc.abstractmethod
    def instance(self) -> T: ...


class RegisterExtensionConfig(ExtensionConfig):

    @abc.abstractmethod
    async def register(self) -> None: ...

    @abc.abstractmethod
    async def unregister(self) -> None: ...
