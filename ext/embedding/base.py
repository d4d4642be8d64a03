"""
Embedding 抽象

- Embedder：向量存储与检索依赖的最小接口
- EmbeddingModel：带自动分批（按条数与 token 预算）的模型基类
"""

from abc import ABC, abstractmethod

from loguru import logger
from pydantic import BaseModel, Field

from ext.embedding.exceptions import EmbeddingAPIError, EmbeddingError


class Embedder(ABC):
    """Embedder 接口"""

    @abstractmethod
    async def aembed_documents(self, texts: list[str]) -> list[list[float]]:
        """批量生成文档向量，顺序与输入一致"""

    @abstractmethod
    async def aembed_query(self, text: str) -> list[float]:
        """生成查询向量"""


class EmbeddingResult(BaseModel):
    """Embedding 结果数据结构"""

    embedding: list[float] = Field(description="向量数据")
    index: int = Field(description="在原始输入中的索引")
    text: str = Field(description="原始文本")
    model: str = Field(default="", description="使用的模型标识")


class EmbeddingModel(Embedder):
    """Embedding 模型抽象基类

    子类只需实现 _embed_batch_impl，分批与结果组装由基类完成
    """

    def __init__(
        self,
        model_name: str,
        dimension: int,
        max_batch_size: int = 32,
        max_token_per_request: int = 8191,
        max_token_per_text: int | None = None,
    ):
        """
        初始化 Embedding 模型

        Args:
            model_name: 模型标识
            dimension: 向量维度
            max_batch_size: 单次请求最大文本数
            max_token_per_request: 单次请求最大 token 数
            max_token_per_text: 单个文本最大 token 数，超过时打印警告日志
        """
        self.model_name = model_name
        self.dimension = dimension
        self.max_batch_size = max_batch_size
        self.max_token_per_request = max_token_per_request
        self.max_token_per_text = max_token_per_text if max_token_per_text is not None else max_token_per_request

        # 粗略估计：4 chars ≈ 1 token
        self._chars_per_token = 4

    @abstractmethod
    async def _embed_batch_impl(self, texts: list[str]) -> list[list[float]]:
        """
        实际执行一批 embedding 请求（由子类实现）

        Raises:
            EmbeddingAPIError: API 调用失败
            EmbeddingTimeoutError: 请求超时
        """
        raise NotImplementedError

    def _estimate_tokens(self, text: str) -> int:
        return (len(text) + self._chars_per_token - 1) // self._chars_per_token

    def _split_by_token_limit(self, texts: list[str], max_tokens: int) -> list[list[str]]:
        """根据 token 预算切分批次，单个超限文本独立成批"""
        batches: list[list[str]] = []
        current_batch: list[str] = []
        current_tokens = 0

        for text in texts:
            text_tokens = self._estimate_tokens(text)

            if text_tokens > max_tokens:
                logger.warning(
                    f"Text tokens ({text_tokens}) exceed the per-request budget ({max_tokens}), "
                    f"sending alone - preview: {text[:100]}",
                )
                if current_batch:
                    batches.append(current_batch)
                    current_batch = []
                    current_tokens = 0
                batches.append([text])
                continue

            if current_tokens + text_tokens > max_tokens:
                batches.append(current_batch)
                current_batch = [text]
                current_tokens = text_tokens
            else:
                current_batch.append(text)
                current_tokens += text_tokens

        if current_batch:
            batches.append(current_batch)
        return batches

    async def embed_batch(
        self,
        texts: list[str],
        batch_size: int | None = None,
        max_tokens: int | None = None,
    ) -> list[EmbeddingResult]:
        """
        批量生成 embedding（自动分批）

        先按 batch_size 切分，再在每批内按 token 预算切分

        Args:
            texts: 文本列表
            batch_size: 每批大小，默认 max_batch_size
            max_tokens: 单批最大 token 数，默认 max_token_per_request

        Returns:
            EmbeddingResult 列表，顺序与输入一致

        Raises:
            EmbeddingAPIError: API 调用失败
            EmbeddingTimeoutError: 请求超时
        """
        if not texts:
            return []

        batch_size = batch_size or self.max_batch_size
        max_tokens = max_tokens or self.max_token_per_request

        batches: list[list[str]] = []
        for start in range(0, len(texts), batch_size):
            batches.extend(self._split_by_token_limit(texts[start:start + batch_size], max_tokens))

        results: list[EmbeddingResult] = []
        for batch in batches:
            for text in batch:
                if self._estimate_tokens(text) > self.max_token_per_text:
                    logger.warning(
                        f"Text exceeds max_token_per_text ({self.max_token_per_text}) - model: {self.model_name}",
                    )

            try:
                embeddings = await self._embed_batch_impl(batch)
            except EmbeddingError:
                raise
            except Exception as e:
                logger.error(f"Batch embedding failed - model: {self.model_name}, error: {e}")
                raise EmbeddingAPIError(f"Batch embedding failed: {e}") from e

            if len(embeddings) != len(batch):
                raise EmbeddingAPIError(f"Expected {len(batch)} embeddings, got {len(embeddings)}")

            for text, embedding in zip(batch, embeddings):
                results.append(
                    EmbeddingResult(embedding=embedding, index=len(results), text=text, model=self.model_name),
                )

        logger.debug(f"Embedded {len(texts)} texts in {len(batches)} batches - model: {self.model_name}")
        return results

    async def embed(self, text: str) -> EmbeddingResult:
        results = await self.embed_batch([text])
        return results[0]

    async def aembed_documents(self, texts: list[str]) -> list[list[float]]:
        return [result.embedding for result in await self.embed_batch(texts)]

    async def aembed_query(self, text: str) -> list[float]:
        return (await self.embed(text)).embedding

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"model_name={self.model_name}, "
            f"dimension={self.dimension}, "
            f"max_batch_size={self.max_batch_size})"
        )


__all__ = [
    "Embedder",
    "EmbeddingResult",
    "EmbeddingModel",
]
