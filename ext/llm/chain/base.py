"""
Chain 模块基础抽象

定义统一的 Chain 接口：acall / ainvoke / aexecute / astream
"""

from abc import ABC, abstractmethod
from typing import Any, Union
from collections.abc import AsyncIterator

from ext.llm.chain.exceptions import StreamNotSupportedError
from ext.llm.chain.prompt import InputVariables
from ext.llm.types import GenerateResult, StreamData

DEFAULT_OUTPUT_KEY = "output"
DEFAULT_RESULT_KEY = "result"

ChainInput = Union[InputVariables, dict[str, Any]]


class Chain(ABC):
    """Chain 抽象基类

    所有 Chain 组件都需要实现 acall，其余接口均有默认实现：

        chain = LLMChain(prompt, llm) | LLMChain(summary_prompt, llm)
        output = await chain.ainvoke({"input": "..."})
    """

    @abstractmethod
    async def acall(self, input_variables: ChainInput) -> GenerateResult:
        """执行 Chain

        Args:
            input_variables: 输入变量（InputVariables 或普通字典）

        Returns:
            生成结果

        Raises:
            ChainError: 执行失败时抛出
        """
        raise NotImplementedError

    async def ainvoke(self, input_variables: ChainInput) -> str:
        """执行 Chain 并只返回生成文本"""
        result = await self.acall(input_variables)
        return result.generation

    async def aexecute(self, input_variables: ChainInput) -> dict[str, Any]:
        """执行 Chain 并返回输出字典

        Returns:
            {第一个输出键: 生成文本, "result": GenerateResult}
        """
        result = await self.acall(input_variables)
        output_key = self.get_output_keys()[0] if self.get_output_keys() else DEFAULT_OUTPUT_KEY
        return {output_key: result.generation, DEFAULT_RESULT_KEY: result}

    async def astream(self, input_variables: ChainInput) -> AsyncIterator[StreamData]:
        """流式执行

        默认不支持，子类可以覆盖以提供真正的流式输出

        Yields:
            流式数据块
        """
        raise StreamNotSupportedError(self.__class__.__name__)
        yield  # noqa

    def get_input_keys(self) -> list[str]:
        return []

    def get_output_keys(self) -> list[str]:
        return [DEFAULT_OUTPUT_KEY, DEFAULT_RESULT_KEY]

    def __or__(self, other: "Chain") -> "Chain":
        """pipe 操作符支持

        允许使用 | 操作符组合多个 Chain，嵌套的 SequentialChain 会被展开

        Args:
            other: 下一个 Chain

        Returns:
            组合后的 SequentialChain
        """
        from ext.llm.chain.sequential import SequentialChain

        left = self.chains if isinstance(self, SequentialChain) else [self]
        right = other.chains if isinstance(other, SequentialChain) else [other]
        return SequentialChain([*left, *right])


__all__ = [
    "DEFAULT_OUTPUT_KEY",
    "DEFAULT_RESULT_KEY",
    "ChainInput",
    "Chain",
]
