"""
LLM 模型工厂类

根据配置（LLMModelConfig）动态创建 LLM 模型实例
"""

import warnings

from loguru import logger

from config.default import LLMModelConfig
from core.types import StrEnum
from ext.llm.base import BaseLLMModel
from ext.llm.exceptions import LLMModelNotFoundError
from ext.llm.options import CallOptions


class LLMModelTypeEnum(StrEnum):
    """LLM 模型类型"""

    openai = ("openai", "OpenAI")
    anthropic = ("anthropic", "Anthropic")


class LLMModelFactory:
    """LLM 模型工厂类

    使用示例:
        >>> model = LLMModelFactory.create(local_configs.llm)
        >>> chain = LLMChain(prompt, model)
    """

    # 模型类型到实现类的映射
    _models: dict[str, type[BaseLLMModel]] = {}

    @classmethod
    def register(cls, model_type: str, model_class: type[BaseLLMModel]) -> None:
        """注册新的 LLM 模型类型

        Args:
            model_type: 模型类型标识（如 "openai", "anthropic"）
            model_class: 实现 BaseLLMModel 的类
        """
        if model_type in cls._models:
            warnings.warn(f"模型类型 {model_type} 已注册，将被覆盖", stacklevel=2)
        cls._models[str(model_type)] = model_class

    @classmethod
    def has_provider(cls, model_type: str) -> bool:
        return str(model_type) in cls._models

    @classmethod
    def get_registered_model_types(cls) -> list[str]:
        return list(cls._models.keys())

    @classmethod
    def create(cls, config: LLMModelConfig) -> BaseLLMModel:
        """创建 LLM 模型实例

        Args:
            config: LLM 模型配置

        Returns:
            BaseLLMModel 实例

        Raises:
            LLMModelNotFoundError: 不支持的模型类型
            LLMConfigError: 配置错误
        """
        model_cls = cls._models.get(config.type)
        if not model_cls:
            available_types = ", ".join(cls._models.keys())
            raise LLMModelNotFoundError(f"不支持的模型类型: {config.type}, 可用类型: {available_types}")

        logger.debug(f"Creating LLM model - type: {config.type}, model: {config.model_name}")
        return model_cls(
            model_name=config.model_name,
            api_key=config.api_key,
            base_url=config.base_url,
            max_tokens=config.max_tokens,
            max_retries=config.max_retries,
            timeout=config.timeout,
            options=CallOptions.model_validate(config.options),
            extra_config=config.extra_config,
        )

    @classmethod
    def create_default(cls) -> BaseLLMModel:
        """根据 local_configs.llm 创建默认模型"""
        from config.main import local_configs

        return cls.create(local_configs.llm)


__all__ = [
    "LLMModelTypeEnum",
    "LLMModelFactory",
]
