"""
Embedding 模型抽象层

提供统一的 embedding 接口，向量存储与检索只依赖 Embedder
"""

from ext.embedding.base import Embedder, EmbeddingModel, EmbeddingResult
from ext.embedding.exceptions import (
    EmbeddingAPIError,
    EmbeddingConfigError,
    EmbeddingError,
    EmbeddingTimeoutError,
)
from ext.embedding.providers import OpenAIEmbedding

__all__ = [
    # 基类
    "Embedder",
    "EmbeddingModel",
    "EmbeddingResult",
    # 实现
    "OpenAIEmbedding",
    # 异常
    "EmbeddingError",
    "EmbeddingConfigError",
    "EmbeddingAPIError",
    "EmbeddingTimeoutError",
]
