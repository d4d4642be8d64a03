"""
Conversational Retrieval Chain

检索增强的对话流程：改写问题 → 检索 → 拼接文档回答 → 写入记忆
"""

from contextlib import aclosing
from typing import Any
from collections.abc import AsyncIterator

from loguru import logger

from ext.llm.base import BaseLLMModel
from ext.llm.chain.base import DEFAULT_OUTPUT_KEY, DEFAULT_RESULT_KEY, Chain, ChainInput
from ext.llm.chain.condense_question import CHAT_HISTORY_KEY, QUESTION_KEY, CondenseQuestionChain
from ext.llm.chain.exceptions import MissingInputVariableError, MissingObjectError, RetrieverError
from ext.llm.chain.memory import BaseMemory, SimpleMemory
from ext.llm.chain.prompt import InputVariables, PromptTemplate
from ext.llm.chain.retriever import BaseRetriever
from ext.llm.chain.stuff_documents import DEFAULT_INPUT_DOCUMENTS_KEY, StuffDocumentsChain
from ext.llm.types import Document, GenerateResult, Message, StreamData, TokenUsage, messages_to_string
from util.general import truncate_content

SOURCE_DOCUMENTS_KEY = "source_documents"
GENERATED_QUESTION_KEY = "generated_question"


class ConversationalRetrievalChain(Chain):
    """检索对话 Chain

    使用示例:
        >>> chain = ConversationalRetrievalChain.from_llm(llm, retriever)
        >>> output = await chain.aexecute({"question": "How do I make pan con chicharron?"})
        >>> output["output"], output["source_documents"]
    """

    def __init__(
        self,
        retriever: BaseRetriever | None,
        combine_documents_chain: StuffDocumentsChain | None,
        condense_question_chain: Chain | None,
        memory: BaseMemory | None = None,
        input_key: str = QUESTION_KEY,
        output_key: str = DEFAULT_OUTPUT_KEY,
        rephrase_question: bool = True,
        return_source_documents: bool = True,
    ):
        """初始化检索对话 Chain

        Args:
            retriever: 检索器
            combine_documents_chain: 文档拼接回答 Chain
            condense_question_chain: 问题改写 Chain
            memory: 记忆，默认为 SimpleMemory
            input_key: 问题输入键
            output_key: 输出键
            rephrase_question: 存在对话历史时是否改写问题
            return_source_documents: 是否在输出中返回检索到的文档

        Raises:
            MissingObjectError: 缺少必需的组件
        """
        if retriever is None:
            raise MissingObjectError("retriever")
        if combine_documents_chain is None:
            raise MissingObjectError("combine_documents_chain")
        if condense_question_chain is None:
            raise MissingObjectError("condense_question_chain")

        self.retriever = retriever
        self.combine_documents_chain = combine_documents_chain
        self.condense_question_chain = condense_question_chain
        self.memory = memory if memory is not None else SimpleMemory()
        self.input_key = input_key
        self.output_key = output_key
        self.rephrase_question = rephrase_question
        self.return_source_documents = return_source_documents

    @classmethod
    def from_llm(
        cls,
        llm: BaseLLMModel,
        retriever: BaseRetriever,
        qa_prompt: PromptTemplate | None = None,
        condense_prompt: PromptTemplate | None = None,
        **kwargs: Any,
    ) -> "ConversationalRetrievalChain":
        """使用同一个 LLM 创建问答与改写 Chain

        Args:
            llm: LLM 模型
            retriever: 检索器
            qa_prompt: 问答模板（context / question）
            condense_prompt: 改写模板（chat_history / question）
            **kwargs: 其余构造参数

        Returns:
            ConversationalRetrievalChain 实例
        """
        return cls(
            retriever,
            StuffDocumentsChain.load_stuff_qa(llm, prompt=qa_prompt),
            CondenseQuestionChain.from_llm(llm, prompt=condense_prompt),
            **kwargs,
        )

    async def _retrieve(
        self, input_variables: ChainInput,
    ) -> tuple[str, str, list[Document], str | None, TokenUsage | None]:
        """读取历史、决定检索问题并检索

        Returns:
            (原始问题, 检索问题, 文档, 改写后的问题, 改写消耗的 token)
        """
        input_variables = InputVariables.coerce(input_variables)
        question = input_variables.get_text(self.input_key)
        if question is None:
            raise MissingInputVariableError(self.input_key)

        async with self.memory.lock:
            history = self.memory.messages()

        query = question
        generated_question = None
        tokens = None
        if history and self.rephrase_question:
            condense_result = await self.condense_question_chain.acall(
                {CHAT_HISTORY_KEY: messages_to_string(history), QUESTION_KEY: question},
            )
            query = condense_result.generation
            generated_question = query
            tokens = condense_result.tokens
            logger.debug(f"ConversationalRetrievalChain rephrased question: {truncate_content(query)}")

        try:
            documents = await self.retriever.aget_relevant_documents(query)
        except Exception as e:
            logger.error(f"ConversationalRetrievalChain retriever error: {e}")
            raise RetrieverError(str(e)) from e

        logger.debug(f"ConversationalRetrievalChain retrieved {len(documents)} documents")
        return question, query, documents, generated_question, tokens

    def _combine_inputs(self, query: str, documents: list[Document]) -> InputVariables:
        return InputVariables(
            text_replacements={QUESTION_KEY: query},
            document_replacements={DEFAULT_INPUT_DOCUMENTS_KEY: documents},
        )

    async def _save_turn(self, question: str, answer: str) -> None:
        async with self.memory.lock:
            self.memory.add_message(Message.human(question))
            self.memory.add_message(Message.ai(answer))

    async def aexecute(self, input_variables: ChainInput) -> dict[str, Any]:
        question, query, documents, generated_question, tokens = await self._retrieve(input_variables)

        answer = await self.combine_documents_chain.acall(self._combine_inputs(query, documents))
        tokens = TokenUsage.accumulate(tokens, answer.tokens)

        await self._save_turn(question, answer.generation)

        result = GenerateResult(generation=answer.generation, tokens=tokens)
        output: dict[str, Any] = {self.output_key: result.generation, DEFAULT_RESULT_KEY: result}
        if self.return_source_documents:
            output[SOURCE_DOCUMENTS_KEY] = documents
        if generated_question is not None:
            output[GENERATED_QUESTION_KEY] = generated_question
        return output

    async def acall(self, input_variables: ChainInput) -> GenerateResult:
        output = await self.aexecute(input_variables)
        return output[DEFAULT_RESULT_KEY]

    async def astream(self, input_variables: ChainInput) -> AsyncIterator[StreamData]:
        """流式执行

        改写与检索完成后转发回答 Chain 的流，结束后写入一次记忆

        Yields:
            流式数据块
        """
        question, query, documents, _, _ = await self._retrieve(input_variables)

        chunks: list[str] = []
        async with aclosing(self.combine_documents_chain.astream(self._combine_inputs(query, documents))) as stream:
            async for data in stream:
                chunks.append(data.content)
                yield data

        await self._save_turn(question, "".join(chunks))

    def get_input_keys(self) -> list[str]:
        return [self.input_key]

    def get_output_keys(self) -> list[str]:
        keys = [self.output_key, DEFAULT_RESULT_KEY]
        if self.return_source_documents:
            keys.append(SOURCE_DOCUMENTS_KEY)
        if self.rephrase_question:
            keys.append(GENERATED_QUESTION_KEY)
        return keys


__all__ = [
    "SOURCE_DOCUMENTS_KEY",
    "GENERATED_QUESTION_KEY",
    "ConversationalRetrievalChain",
]
