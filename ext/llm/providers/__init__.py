"""
LLM Provider 注册

自动注册所有 LLM providers
"""

from ext.llm.providers.openai import OpenAILLMModel
from ext.llm.providers.anthropic import AnthropicLLMModel

from ext.llm.factory import LLMModelFactory, LLMModelTypeEnum

LLMModelFactory.register(LLMModelTypeEnum.openai.value, OpenAILLMModel)
LLMModelFactory.register(LLMModelTypeEnum.anthropic.value, AnthropicLLMModel)

__all__ = [
    "OpenAILLMModel",
    "AnthropicLLMModel",
]
