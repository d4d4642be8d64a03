"""
向量存储抽象
"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ext.embedding.base import Embedder
from ext.llm.types import Document


class VecStoreOptions(BaseModel):
    """向量存储调用参数

    所有字段均为可选，未设置时使用存储自身的默认行为
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name_space: str | None = Field(default=None, description="命名空间，文档按命名空间隔离")
    score_threshold: float | None = Field(default=None, description="最低相似度分数，低于该值的结果被丢弃")
    filters: dict[str, Any] | None = Field(default=None, description="元数据过滤条件（等值匹配）")
    embedder: Embedder | None = Field(default=None, description="覆盖存储默认的 Embedder")


class VectorStore(ABC):
    """向量存储接口"""

    @abstractmethod
    async def aadd_documents(self, docs: list[Document], options: VecStoreOptions | None = None) -> list[str]:
        """
        写入文档

        Args:
            docs: 文档列表
            options: 调用参数

        Returns:
            文档 ID 列表，顺序与输入一致
        """

    @abstractmethod
    async def asimilarity_search(
        self,
        query: str,
        limit: int,
        options: VecStoreOptions | None = None,
    ) -> list[Document]:
        """
        相似度检索

        Args:
            query: 查询文本
            limit: 最大返回数量
            options: 调用参数

        Returns:
            按分数降序排列的文档，score 字段为相似度
        """


__all__ = [
    "VecStoreOptions",
    "VectorStore",
]
