"""
内存向量存储

基于 numpy 的余弦相似度检索，适用于测试与小规模数据
"""

import uuid
from typing import Any

import numpy as np
from loguru import logger

from ext.embedding.base import Embedder
from ext.llm.types import Document
from ext.vectorstore.base import VecStoreOptions, VectorStore
from ext.vectorstore.exceptions import EmbeddingDimensionError, VectorStoreError

DEFAULT_NAME_SPACE = ""


class _Partition:
    """单个命名空间内的数据"""

    def __init__(self):
        self.ids: list[str] = []
        self.documents: list[Document] = []
        self.vectors: np.ndarray | None = None

    @property
    def dimension(self) -> int | None:
        return None if self.vectors is None else self.vectors.shape[1]

    def extend(self, ids: list[str], documents: list[Document], vectors: np.ndarray) -> None:
        if self.vectors is not None and vectors.shape[1] != self.vectors.shape[1]:
            raise EmbeddingDimensionError(self.vectors.shape[1], vectors.shape[1])
        self.ids.extend(ids)
        self.documents.extend(documents)
        self.vectors = vectors if self.vectors is None else np.vstack([self.vectors, vectors])


def cosine_similarity(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """计算查询向量与矩阵每一行的余弦相似度，零向量的相似度为 0"""
    query_norm = np.linalg.norm(query)
    row_norms = np.linalg.norm(matrix, axis=1)
    denominator = row_norms * query_norm
    scores = np.zeros(matrix.shape[0], dtype=float)
    np.divide(matrix @ query, denominator, out=scores, where=denominator > 0)
    return scores


def match_filters(metadata: dict[str, Any], filters: dict[str, Any] | None) -> bool:
    """元数据等值匹配，所有条件都满足才算匹配"""
    if not filters:
        return True
    return all(key in metadata and metadata[key] == value for key, value in filters.items())


class InMemoryVectorStore(VectorStore):
    """内存向量存储

    使用示例:
        >>> store = InMemoryVectorStore(embedder)
        >>> await store.aadd_documents([Document(page_content="Rust is fast")])
        >>> docs = await store.asimilarity_search("fast language", limit=2)
    """

    def __init__(self, embedder: Embedder):
        self.embedder = embedder
        self._partitions: dict[str, _Partition] = {}

    def _resolve(self, options: VecStoreOptions | None) -> tuple[str, Embedder, VecStoreOptions]:
        options = options or VecStoreOptions()
        name_space = options.name_space if options.name_space is not None else DEFAULT_NAME_SPACE
        return name_space, options.embedder or self.embedder, options

    async def aadd_documents(self, docs: list[Document], options: VecStoreOptions | None = None) -> list[str]:
        if not docs:
            return []

        name_space, embedder, _ = self._resolve(options)
        embeddings = await embedder.aembed_documents([doc.page_content for doc in docs])
        if len(embeddings) != len(docs):
            raise VectorStoreError(f"Embedder returned {len(embeddings)} vectors for {len(docs)} documents")

        vectors = np.asarray(embeddings, dtype=float)
        if vectors.ndim != 2:
            raise VectorStoreError("Embeddings must all have the same dimension")

        ids = [uuid.uuid4().hex for _ in docs]
        partition = self._partitions.setdefault(name_space, _Partition())
        partition.extend(ids, [doc.model_copy(deep=True) for doc in docs], vectors)

        logger.debug(f"InMemoryVectorStore added {len(docs)} documents - name_space: {name_space!r}")
        return ids

    async def asimilarity_search(
        self,
        query: str,
        limit: int,
        options: VecStoreOptions | None = None,
    ) -> list[Document]:
        name_space, embedder, options = self._resolve(options)
        partition = self._partitions.get(name_space)
        if limit <= 0 or partition is None or partition.vectors is None:
            return []

        query_vector = np.asarray(await embedder.aembed_query(query), dtype=float)
        if query_vector.shape[0] != partition.dimension:
            raise EmbeddingDimensionError(partition.dimension, query_vector.shape[0])

        scores = cosine_similarity(query_vector, partition.vectors)
        results: list[Document] = []
        # 稳定排序，分数相同时保持写入顺序
        for index in np.argsort(-scores, kind="stable"):
            score = float(scores[index])
            if options.score_threshold is not None and score < options.score_threshold:
                break
            document = partition.documents[index]
            if not match_filters(document.metadata, options.filters):
                continue
            results.append(document.model_copy(update={"score": score}, deep=True))
            if len(results) >= limit:
                break

        logger.debug(
            f"InMemoryVectorStore search - name_space: {name_space!r}, limit: {limit}, hits: {len(results)}",
        )
        return results

    def count(self, name_space: str | None = None) -> int:
        partition = self._partitions.get(name_space if name_space is not None else DEFAULT_NAME_SPACE)
        return 0 if partition is None else len(partition.ids)


__all__ = [
    "DEFAULT_NAME_SPACE",
    "InMemoryVectorStore",
    "cosine_similarity",
    "match_filters",
]
