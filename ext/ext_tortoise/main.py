from typing_extensions import override

from loguru import logger
from tortoise import Tortoise

from config.default import RegisterExtensionConfig


class TortoiseConfig(RegisterExtensionConfig):
    """关系型数据库连接配置

    仅初始化连接（不注册 ORM 模型），供 SQL 链直接执行查询
    """

    url: str = "sqlite://:memory:"
    connection_name: str = "default"
    timezone: str = "Asia/Shanghai"

    def config_dict(self) -> dict:
        return {
            "connections": {self.connection_name: self.url},
            "apps": {
                self.connection_name: {
                    "models": [],
                    "default_connection": self.connection_name,
                },
            },
            "use_tz": False,
            "timezone": self.timezone,
        }

    @override
    async def register(self) -> None:
        await Tortoise.init(config=self.config_dict())
        logger.info(f"Tortoise connection '{self.connection_name}' initialized")

    @override
    async def unregister(self) -> None:
        await Tortoise.close_connections()
        logger.info(f"Tortoise connection '{self.connection_name}' closed")
