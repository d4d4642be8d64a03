"""
Condense-Question Chain

根据对话历史将追问改写为独立问题
"""

from ext.llm.base import BaseLLMModel
from ext.llm.chain.llm_chain import LLMChain
from ext.llm.chain.prompt import MessageTemplate, PromptTemplate
from ext.llm.chain.prompts import DEFAULT_CONDENSE_QUESTION_TEMPLATE
from ext.llm.options import CallOptions
from ext.llm.types import MessageTypeEnum

CHAT_HISTORY_KEY = "chat_history"
QUESTION_KEY = "question"


class CondenseQuestionChain(LLMChain):
    """问题改写 Chain

    输入：chat_history（字符串形式的对话历史）、question
    输出：改写后的独立问题
    """

    @classmethod
    def from_llm(
        cls,
        llm: BaseLLMModel,
        prompt: PromptTemplate | None = None,
        options: CallOptions | None = None,
    ) -> "CondenseQuestionChain":
        """创建问题改写 Chain

        Args:
            llm: LLM 模型
            prompt: 自定义模板（需包含 chat_history 与 question 变量）
            options: 调用参数

        Returns:
            CondenseQuestionChain 实例
        """
        prompt = prompt or PromptTemplate(
            [MessageTemplate.from_jinja2(MessageTypeEnum.human, DEFAULT_CONDENSE_QUESTION_TEMPLATE)],
        )
        return cls(prompt, llm, options=options)


__all__ = [
    "CHAT_HISTORY_KEY",
    "QUESTION_KEY",
    "CondenseQuestionChain",
]
