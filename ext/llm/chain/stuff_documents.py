"""
Stuff-Documents Chain

将检索到的文档拼接为一个上下文变量，交给内部的 LLM Chain
"""

from contextlib import aclosing
from collections.abc import AsyncIterator

from loguru import logger

from ext.llm.base import BaseLLMModel
from ext.llm.chain.base import Chain, ChainInput
from ext.llm.chain.exceptions import MissingInputVariableError
from ext.llm.chain.llm_chain import LLMChain
from ext.llm.chain.prompt import InputVariables, PromptTemplate, TemplateFormatEnum
from ext.llm.chain.prompts import DEFAULT_STUFF_QA_TEMPLATE
from ext.llm.options import CallOptions
from ext.llm.types import Document, GenerateResult, StreamData

DEFAULT_INPUT_DOCUMENTS_KEY = "input_documents"
DEFAULT_DOCUMENT_VARIABLE_NAME = "context"
DEFAULT_DOCUMENT_SEPARATOR = "\n\n"


class StuffDocumentsChain(Chain):
    """文档拼接 Chain

    输入中的文档列表（document_replacements[input_key]）以 separator 拼接，
    作为 document_variable_name 变量传入内部 LLM Chain
    """

    def __init__(
        self,
        llm_chain: LLMChain,
        input_key: str = DEFAULT_INPUT_DOCUMENTS_KEY,
        document_variable_name: str = DEFAULT_DOCUMENT_VARIABLE_NAME,
        separator: str = DEFAULT_DOCUMENT_SEPARATOR,
    ):
        self.llm_chain = llm_chain
        self.input_key = input_key
        self.document_variable_name = document_variable_name
        self.separator = separator

    @classmethod
    def load_stuff_qa(
        cls,
        llm: BaseLLMModel,
        prompt: PromptTemplate | None = None,
        options: CallOptions | None = None,
    ) -> "StuffDocumentsChain":
        """创建问答用的文档拼接 Chain

        Args:
            llm: LLM 模型
            prompt: 自定义模板（需包含 context 与 question 变量），默认使用内置问答模板
            options: 调用参数

        Returns:
            StuffDocumentsChain 实例
        """
        prompt = prompt or PromptTemplate.from_template(DEFAULT_STUFF_QA_TEMPLATE, TemplateFormatEnum.jinja2)
        return cls(LLMChain(prompt, llm, options=options))

    def join_documents(self, documents: list[Document]) -> str:
        return self.separator.join(document.page_content for document in documents)

    def _stuff_inputs(self, input_variables: ChainInput) -> InputVariables:
        input_variables = InputVariables.coerce(input_variables)
        documents = input_variables.document_replacements.get(self.input_key)
        if documents is None:
            # 空列表在字典输入中会被识别为消息占位符
            if input_variables.placeholder_replacements.get(self.input_key) == []:
                documents = []
            else:
                raise MissingInputVariableError(self.input_key)

        stuffed = input_variables.copy()
        stuffed.insert_text(self.document_variable_name, self.join_documents(documents))
        logger.debug(f"StuffDocumentsChain stuffed {len(documents)} documents into '{self.document_variable_name}'")
        return stuffed

    async def acall(self, input_variables: ChainInput) -> GenerateResult:
        return await self.llm_chain.acall(self._stuff_inputs(input_variables))

    async def astream(self, input_variables: ChainInput) -> AsyncIterator[StreamData]:
        async with aclosing(self.llm_chain.astream(self._stuff_inputs(input_variables))) as stream:
            async for data in stream:
                yield data

    def get_input_keys(self) -> list[str]:
        keys = [key for key in self.llm_chain.get_input_keys() if key != self.document_variable_name]
        return [self.input_key, *keys]

    def get_output_keys(self) -> list[str]:
        return self.llm_chain.get_output_keys()


__all__ = [
    "DEFAULT_INPUT_DOCUMENTS_KEY",
    "StuffDocumentsChain",
]
