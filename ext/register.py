from pydantic import BaseModel

from ext.ext_httpx.main import HttpxConfig
from ext.ext_tortoise.main import TortoiseConfig


class ExtensionRegistry(BaseModel):
    """
    define here
    """

    httpx: HttpxConfig = HttpxConfig()
    # SQL 链使用的关系型数据库，未配置时不注册
    database: TortoiseConfig | None = None

    async def register_all(self) -> None:
        await self.httpx.register()
        if self.database is not None:
            await self.database.register()

    async def unregister_all(self) -> None:
        if self.database is not None:
            await self.database.unregister()
        await self.httpx.unregister()
