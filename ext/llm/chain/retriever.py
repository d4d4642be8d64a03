"""
Retriever 抽象
"""

from abc import ABC, abstractmethod

from ext.llm.types import Document


class BaseRetriever(ABC):
    """检索器基类

    根据查询文本返回相关文档
    """

    @abstractmethod
    async def aget_relevant_documents(self, query: str) -> list[Document]:
        """检索相关文档

        Args:
            query: 查询文本

        Returns:
            文档列表（按相关性排序）
        """
        raise NotImplementedError


__all__ = [
    "BaseRetriever",
]
