"""
向量存储

- VectorStore：写入与相似度检索接口
- InMemoryVectorStore：基于 numpy 的内存实现
- VectorStoreRetriever：供检索对话链使用的适配器
"""

from ext.vectorstore.base import VecStoreOptions, VectorStore
from ext.vectorstore.exceptions import EmbeddingDimensionError, VectorStoreError
from ext.vectorstore.providers import InMemoryVectorStore
from ext.vectorstore.retriever import VectorStoreRetriever

__all__ = [
    "VecStoreOptions",
    "VectorStore",
    "InMemoryVectorStore",
    "VectorStoreRetriever",
    "VectorStoreError",
    "EmbeddingDimensionError",
]
