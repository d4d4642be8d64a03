"""
Sequential Chain

将多个 Chain 串联起来，前一个 Chain 的输出作为后续 Chain 的文本变量
"""

from contextlib import aclosing
from typing import Any
from collections.abc import AsyncIterator

from loguru import logger

from ext.llm.chain.base import DEFAULT_OUTPUT_KEY, DEFAULT_RESULT_KEY, Chain, ChainInput
from ext.llm.chain.exceptions import MissingObjectError
from ext.llm.chain.prompt import InputVariables
from ext.llm.types import GenerateResult, StreamData, TokenUsage


def _primary_output_key(chain: Chain) -> str:
    keys = chain.get_output_keys()
    return keys[0] if keys else DEFAULT_OUTPUT_KEY


class SequentialChain(Chain):
    """顺序执行 Chain

    依次执行每个 Chain，将其第一个输出键的值作为文本变量写入后续输入
    """

    def __init__(self, chains: list[Chain]):
        """初始化顺序执行 Chain

        Args:
            chains: Chain 列表，按执行顺序排列

        Raises:
            MissingObjectError: Chain 列表为空
        """
        if not chains:
            raise MissingObjectError("chains")
        self.chains = list(chains)

    async def _run(self, input_variables: InputVariables, chains: list[Chain]) -> tuple[dict[str, Any], TokenUsage | None, GenerateResult | None]:
        outputs: dict[str, Any] = {}
        tokens = None
        last_result = None

        for idx, chain in enumerate(chains):
            logger.debug(f"SequentialChain step {idx + 1}/{len(self.chains)}: {chain.__class__.__name__}")
            output = await chain.aexecute(input_variables)

            key = _primary_output_key(chain)
            value = output.get(key, "")
            text = value if isinstance(value, str) else str(value)
            input_variables.insert_text(key, text)
            outputs[key] = text

            result = output.get(DEFAULT_RESULT_KEY)
            if isinstance(result, GenerateResult):
                tokens = TokenUsage.accumulate(tokens, result.tokens)
                last_result = result

        return outputs, tokens, last_result

    async def aexecute(self, input_variables: ChainInput) -> dict[str, Any]:
        input_variables = InputVariables.coerce(input_variables).copy()
        outputs, tokens, last_result = await self._run(input_variables, self.chains)

        generation = last_result.generation if last_result is not None else ""
        outputs[DEFAULT_RESULT_KEY] = GenerateResult(generation=generation, tokens=tokens)
        logger.debug(f"SequentialChain completed - outputs: {list(outputs)}")
        return outputs

    async def acall(self, input_variables: ChainInput) -> GenerateResult:
        output = await self.aexecute(input_variables)
        return output[DEFAULT_RESULT_KEY]

    async def astream(self, input_variables: ChainInput) -> AsyncIterator[StreamData]:
        """流式执行

        前面的 Chain 以非流式执行，最后一个 Chain 使用流式输出

        Yields:
            最后一个 Chain 的流式数据块
        """
        input_variables = InputVariables.coerce(input_variables).copy()
        await self._run(input_variables, self.chains[:-1])

        last_chain = self.chains[-1]
        logger.debug(f"SequentialChain step {len(self.chains)} (stream): {last_chain.__class__.__name__}")
        async with aclosing(last_chain.astream(input_variables)) as stream:
            async for data in stream:
                yield data

    def get_input_keys(self) -> list[str]:
        """所有 Chain 的输入键，去除由前序 Chain 产生的键"""
        produced: set[str] = set()
        keys: list[str] = []
        for chain in self.chains:
            for key in chain.get_input_keys():
                if key not in produced and key not in keys:
                    keys.append(key)
            produced.add(_primary_output_key(chain))
        return keys

    def get_output_keys(self) -> list[str]:
        keys = [_primary_output_key(chain) for chain in self.chains]
        return [*dict.fromkeys(keys), DEFAULT_RESULT_KEY]


__all__ = [
    "SequentialChain",
]
