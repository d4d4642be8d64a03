"""
OpenAI Embedding 模型实现

兼容 OpenAI /embeddings 协议的服务均可使用（代理、vLLM、Ollama 等）
"""

import httpx
from loguru import logger

from config.default import EmbeddingModelConfig
from ext.embedding.base import EmbeddingModel
from ext.embedding.exceptions import EmbeddingAPIError, EmbeddingConfigError, EmbeddingTimeoutError
from ext.ext_httpx.main import get_shared_client

# 不重试的状态码：认证失败与限流
NON_RETRYABLE_STATUS_CODES = (401, 403, 429)


class OpenAIEmbedding(EmbeddingModel):
    """OpenAI Embedding 模型

    已注册共享 httpx 客户端时复用其连接池，否则自行创建客户端

    使用示例:
        >>> embedder = OpenAIEmbedding.from_config(local_configs.embedding)
        >>> vector = await embedder.aembed_query("hello")
    """

    DEFAULT_BASE_URL = "https://api.openai.com/v1"

    def __init__(
        self,
        model_name: str,
        dimension: int,
        api_key: str | None,
        base_url: str | None = None,
        max_batch_size: int = 32,
        max_token_per_request: int = 8191,
        timeout: float = 60.0,
        max_retries: int = 2,
        organization: str | None = None,
    ):
        """
        初始化 OpenAI Embedding 模型

        Args:
            model_name: 模型名称，如 "text-embedding-3-small"
            dimension: 向量维度
            api_key: API 密钥（必需）
            base_url: API 基础地址，默认为官方地址
            max_batch_size: 单次请求最大文本数
            max_token_per_request: 单次请求最大 token 数
            timeout: 请求超时时间（秒）
            max_retries: 最大重试次数
            organization: OpenAI organization ID（可选）

        Raises:
            EmbeddingConfigError: 缺少 api_key
        """
        super().__init__(
            model_name=model_name,
            dimension=dimension,
            max_batch_size=max_batch_size,
            max_token_per_request=max_token_per_request,
        )
        if not api_key:
            raise EmbeddingConfigError("Missing required config: api_key")

        self.api_key = api_key
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.organization = organization
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(cls, config: EmbeddingModelConfig) -> "OpenAIEmbedding":
        """根据配置创建模型"""
        return cls(
            model_name=config.model_name,
            dimension=config.dimension,
            api_key=config.api_key,
            base_url=config.base_url,
            max_batch_size=config.max_batch_size,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )

    @property
    def headers(self) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if self.organization:
            headers["OpenAI-Organization"] = self.organization
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        shared = get_shared_client()
        if shared is not None:
            return shared
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def _embed_batch_impl(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        client = self._get_client()
        url = f"{self.base_url}/embeddings"
        payload = {"input": texts, "model": self.model_name}

        for attempt in range(self.max_retries + 1):
            try:
                logger.debug(
                    f"OpenAI embedding request - model: {self.model_name}, "
                    f"texts: {len(texts)}, attempt: {attempt + 1}",
                )
                response = await client.post(url, json=payload, headers=self.headers, timeout=self.timeout)
                response.raise_for_status()
                data = response.json()
                # 服务端可能乱序返回，按 index 还原
                items = sorted(data["data"], key=lambda item: item.get("index", 0))
                return [item["embedding"] for item in items]

            except httpx.TimeoutException as e:
                logger.warning(f"OpenAI embedding timeout (attempt {attempt + 1}): {e}")
                if attempt < self.max_retries:
                    continue
                raise EmbeddingTimeoutError(
                    f"OpenAI API request timeout after {self.max_retries + 1} attempts",
                ) from e

            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                error_text = e.response.text
                logger.error(f"OpenAI embedding API error - status: {status_code}, response: {error_text}")

                if status_code in NON_RETRYABLE_STATUS_CODES or attempt >= self.max_retries:
                    raise EmbeddingAPIError(
                        f"OpenAI API error: {error_text}",
                        status_code=status_code,
                        response_text=error_text,
                    ) from e
                logger.warning(f"Retrying after error (attempt {attempt + 1})")

            except httpx.HTTPError as e:
                logger.error(f"OpenAI embedding transport error: {e}")
                if attempt < self.max_retries:
                    continue
                raise EmbeddingAPIError(f"Transport error: {e}") from e

        raise EmbeddingAPIError(f"Failed after {self.max_retries + 1} attempts")

    async def close(self) -> None:
        """关闭自建的 HTTP 客户端（共享客户端由扩展生命周期管理）"""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def __repr__(self) -> str:
        return (
            f"OpenAIEmbedding("
            f"model_name={self.model_name}, "
            f"dimension={self.dimension}, "
            f"base_url={self.base_url})"
        )


__all__ = [
    "OpenAIEmbedding",
]
