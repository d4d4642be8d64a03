"""
Conversational Chain

带对话历史的 LLM Chain：history 由记忆渲染，调用成功后追加本轮对话
"""

from contextlib import aclosing
from collections.abc import AsyncIterator

from loguru import logger

from ext.llm.base import BaseLLMModel
from ext.llm.chain.base import DEFAULT_OUTPUT_KEY, DEFAULT_RESULT_KEY, Chain, ChainInput
from ext.llm.chain.exceptions import MissingInputVariableError
from ext.llm.chain.llm_chain import LLMChain
from ext.llm.chain.memory import BaseMemory, SimpleMemory
from ext.llm.chain.prompt import InputVariables, PromptTemplate
from ext.llm.chain.prompts import DEFAULT_CONVERSATION_TEMPLATE
from ext.llm.types import GenerateResult, Message, StreamData

HISTORY_KEY = "history"
DEFAULT_INPUT_KEY = "input"


class ConversationalChain(Chain):
    """对话 Chain

    使用示例:
        >>> chain = ConversationalChain(llm)
        >>> await chain.ainvoke({"input": "Hi, I'm Luis"})
        >>> await chain.ainvoke({"input": "What's my name?"})
    """

    def __init__(
        self,
        llm: BaseLLMModel,
        memory: BaseMemory | None = None,
        prompt: PromptTemplate | None = None,
        input_key: str = DEFAULT_INPUT_KEY,
        output_key: str = DEFAULT_OUTPUT_KEY,
    ):
        """初始化对话 Chain

        Args:
            llm: LLM 模型
            memory: 记忆，默认为 SimpleMemory
            prompt: Prompt 模板，默认使用 {history} / {input} 的对话模板
            input_key: 用户输入键
            output_key: 输出键
        """
        self.llm_chain = LLMChain(
            prompt or PromptTemplate.from_template(DEFAULT_CONVERSATION_TEMPLATE),
            llm,
            output_key=output_key,
        )
        self.memory = memory if memory is not None else SimpleMemory()
        self.input_key = input_key
        self.output_key = output_key

    @classmethod
    def from_llm(cls, llm: BaseLLMModel, **kwargs) -> "ConversationalChain":
        return cls(llm, **kwargs)

    async def _prepare_inputs(self, input_variables: ChainInput) -> tuple[InputVariables, str]:
        input_variables = InputVariables.coerce(input_variables).copy()
        human_input = input_variables.get_text(self.input_key)
        if human_input is None:
            raise MissingInputVariableError(self.input_key)

        async with self.memory.lock:
            history = self.memory.to_string()
        input_variables.insert_text(HISTORY_KEY, history)
        return input_variables, human_input

    async def _save_turn(self, human_input: str, generation: str) -> None:
        async with self.memory.lock:
            self.memory.add_message(Message.human(human_input))
            self.memory.add_message(Message.ai(generation))

    async def acall(self, input_variables: ChainInput) -> GenerateResult:
        input_variables, human_input = await self._prepare_inputs(input_variables)
        logger.debug(f"ConversationalChain call - input: {human_input[:100]}")

        result = await self.llm_chain.acall(input_variables)
        await self._save_turn(human_input, result.generation)
        return result

    async def astream(self, input_variables: ChainInput) -> AsyncIterator[StreamData]:
        input_variables, human_input = await self._prepare_inputs(input_variables)
        logger.debug(f"ConversationalChain stream - input: {human_input[:100]}")

        chunks: list[str] = []
        async with aclosing(self.llm_chain.astream(input_variables)) as stream:
            async for data in stream:
                chunks.append(data.content)
                yield data

        await self._save_turn(human_input, "".join(chunks))

    def get_input_keys(self) -> list[str]:
        return [self.input_key]

    def get_output_keys(self) -> list[str]:
        return [self.output_key, DEFAULT_RESULT_KEY]


__all__ = [
    "ConversationalChain",
]
