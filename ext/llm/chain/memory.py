"""
Memory 实现

提供对话历史的存储和管理能力

每个 Memory 持有一把 asyncio.Lock（memory.lock），Chain 仅在读取快照或追加消息时短暂持有，
不会跨 LLM 调用持有
"""

import asyncio
from abc import ABC, abstractmethod

from loguru import logger

from ext.llm.types import Message, messages_to_string


class BaseMemory(ABC):
    """Memory 抽象基类

    定义对话历史的存储和检索接口
    """

    def __init__(self):
        self.lock = asyncio.Lock()

    @abstractmethod
    def messages(self) -> list[Message]:
        """返回当前消息列表（副本）"""

    @abstractmethod
    def add_message(self, message: Message) -> None:
        """追加单条消息

        Args:
            message: 对话消息
        """

    @abstractmethod
    def clear(self) -> None:
        """清空记忆"""

    def add_user_message(self, content: str) -> None:
        self.add_message(Message.human(content))

    def add_ai_message(self, content: str) -> None:
        self.add_message(Message.ai(content))

    def to_string(self) -> str:
        """序列化为 ``role: content`` 行"""
        return messages_to_string(self.messages())


class SimpleMemory(BaseMemory):
    """无上限的内存记忆

    适用于短期会话
    """

    def __init__(self, messages: list[Message] | None = None):
        super().__init__()
        self._messages: list[Message] = list(messages or [])

    def messages(self) -> list[Message]:
        return list(self._messages)

    def add_message(self, message: Message) -> None:
        self._messages.append(message)
        logger.debug(f"SimpleMemory add - type: {message.message_type.value}, total: {len(self._messages)}")

    def clear(self) -> None:
        count = len(self._messages)
        self._messages.clear()
        logger.debug(f"SimpleMemory cleared {count} messages")


class WindowBufferMemory(BaseMemory):
    """滑动窗口记忆

    保留最近的 window_size 条消息，已满时先丢弃最早的一条再追加
    """

    def __init__(self, window_size: int = 10):
        """初始化滑动窗口记忆

        Args:
            window_size: 窗口大小（消息条数）
        """
        super().__init__()
        self.window_size = window_size
        self._messages: list[Message] = []

    def messages(self) -> list[Message]:
        return list(self._messages)

    def add_message(self, message: Message) -> None:
        if self._messages and len(self._messages) >= self.window_size:
            dropped = self._messages.pop(0)
            logger.debug(f"WindowBufferMemory evicted oldest message - type: {dropped.message_type.value}")
        self._messages.append(message)

    def clear(self) -> None:
        count = len(self._messages)
        self._messages.clear()
        logger.debug(f"WindowBufferMemory cleared {count} messages")


class DummyMemory(BaseMemory):
    """空记忆，接受写入但不保存任何消息"""

    def messages(self) -> list[Message]:
        return []

    def add_message(self, message: Message) -> None:
        pass

    def clear(self) -> None:
        pass


__all__ = [
    "BaseMemory",
    "SimpleMemory",
    "WindowBufferMemory",
    "DummyMemory",
]
