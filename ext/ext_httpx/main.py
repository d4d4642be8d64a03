import httpx
from typing_extensions import override
from config.default import RegisterExtensionConfig, InstanceExtensionConfig
from loguru import logger


class HttpxConfig(RegisterExtensionConfig, InstanceExtensionConfig):
    """httpx 配置类，负责共享 httpx 客户端的生命周期管理

    LLM provider（通过 SDK 的 http_client 参数）与 Embedding provider 共用同一连接池
    """

    _client: httpx.AsyncClient | None = None

    max_connections: int = 200
    max_keepalive_connections: int = 80
    timeout: float = 60.0
    request_from_header: str = ""

    @property
    def instance(self) -> httpx.AsyncClient:
        """获取当前实例的 httpx 客户端"""
        if self._client is None:
            raise RuntimeError("Httpx client not initialized. Make sure register() has been called.")
        return self._client

    @property
    def is_registered(self) -> bool:
        return self._client is not None

    @override
    async def register(self) -> None:
        """初始化 httpx.AsyncClient"""
        if self._client is not None:
            return

        headers = {}
        if self.request_from_header:
            headers["X-Request-From"] = self.request_from_header

        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            limits=httpx.Limits(
                max_connections=self.max_connections,
                max_keepalive_connections=self.max_keepalive_connections,
            ),
            headers=headers,
        )
        logger.info(f"Httpx client initialized - max_connections: {self.max_connections}, timeout: {self.timeout}")

    @override
    async def unregister(self) -> None:
        """关闭 httpx.AsyncClient"""
        if self._client is None:
            return

        try:
            await self._client.aclose()
        except RuntimeError as e:
            if "Event loop is closed" not in str(e):
                raise
            logger.debug("Event loop already closed, skipping httpx client cleanup")
        self._client = None
        logger.info("Httpx client closed")


def get_shared_client() -> httpx.AsyncClient | None:
    """获取已注册的共享客户端，未注册时返回 None（由调用方自行创建）"""
    from config.main import local_configs

    httpx_config = local_configs.extensions.httpx
    return httpx_config.instance if httpx_config.is_registered else None
