"""
LLM Chain

Prompt 模板 + LLM（+ 可选的输出解析器与记忆）
"""

from contextlib import aclosing
from collections.abc import AsyncIterator

from loguru import logger

from ext.llm.base import BaseLLMModel
from ext.llm.chain.base import DEFAULT_OUTPUT_KEY, DEFAULT_RESULT_KEY, Chain, ChainInput
from ext.llm.chain.exceptions import MissingObjectError
from ext.llm.chain.memory import BaseMemory
from ext.llm.chain.output_parser import BaseOutputParser
from ext.llm.chain.prompt import InputVariables, Prompt, PromptTemplate
from ext.llm.options import CallOptions
from ext.llm.types import GenerateResult, Message, StreamData
from util.general import format_dict_for_log, truncate_content

MEMORY_INPUT_KEY = "input"


class LLMChain(Chain):
    """LLM Chain

    执行顺序：展开占位符 → 渲染 Prompt → 调用 LLM → 解析输出 → 写入记忆
    """

    def __init__(
        self,
        prompt: PromptTemplate | None,
        llm: BaseLLMModel | None,
        output_key: str = DEFAULT_OUTPUT_KEY,
        output_parser: BaseOutputParser | None = None,
        options: CallOptions | None = None,
        memory: BaseMemory | None = None,
    ):
        """初始化 LLM Chain

        Args:
            prompt: Prompt 模板
            llm: LLM 模型
            output_key: 输出键
            output_parser: 输出解析器（可选）
            options: 本链的调用参数，每次调用时叠加在 llm 默认参数之上，不修改 llm（可选）
            memory: 记忆（可选）。输入中存在 "input" 文本时，调用成功后追加 Human/AI 消息

        Raises:
            MissingObjectError: 缺少 prompt 或 llm
        """
        if prompt is None:
            raise MissingObjectError("prompt")
        if llm is None:
            raise MissingObjectError("llm")

        self.prompt = prompt
        self.llm = llm
        self.output_key = output_key
        self.output_parser = output_parser
        self.options = options
        self.memory = memory

    def format_prompt(self, input_variables: InputVariables) -> Prompt:
        """展开占位符并渲染 Prompt

        Raises:
            MissingInputVariableError: 缺少声明的变量
        """
        template = self.prompt.replace_placeholder(input_variables.placeholder_replacements)
        return template.format(input_variables)

    async def acall(self, input_variables: ChainInput) -> GenerateResult:
        input_variables = InputVariables.coerce(input_variables)
        prompt = self.format_prompt(input_variables)

        logger.debug(
            f"LLMChain call - messages: {len(prompt)}, llm: {self.llm.model_type}/{self.llm.model_name}, "
            f"variables: {format_dict_for_log(input_variables.text_replacements)}",
        )
        result = await self.llm.agenerate(prompt.messages, self.options)

        if self.output_parser is not None:
            result = result.model_copy(update={"generation": self.output_parser.parse(result.generation)})

        await self._save_memory(input_variables, result.generation)
        logger.debug(f"LLMChain result - generation: {truncate_content(result.generation)}")
        return result

    async def astream(self, input_variables: ChainInput) -> AsyncIterator[StreamData]:
        """流式执行

        流正常结束后以累积内容写入一次记忆，出错或提前关闭时不写入

        Yields:
            LLM 的流式数据块
        """
        input_variables = InputVariables.coerce(input_variables)
        prompt = self.format_prompt(input_variables)

        logger.debug(f"LLMChain stream - messages: {len(prompt)}")
        chunks: list[str] = []
        async with aclosing(self.llm.astream(prompt.messages, self.options)) as stream:
            async for data in stream:
                chunks.append(data.content)
                yield data

        await self._save_memory(input_variables, "".join(chunks))

    async def _save_memory(self, input_variables: InputVariables, generation: str) -> None:
        if self.memory is None:
            return
        human_input = input_variables.get_text(MEMORY_INPUT_KEY)
        if human_input is None:
            return
        async with self.memory.lock:
            self.memory.add_message(Message.human(human_input))
            self.memory.add_message(Message.ai(generation))

    def get_input_keys(self) -> list[str]:
        return sorted(self.prompt.variables() | self.prompt.placeholders())

    def get_output_keys(self) -> list[str]:
        return [self.output_key, DEFAULT_RESULT_KEY]


__all__ = [
    "LLMChain",
]
