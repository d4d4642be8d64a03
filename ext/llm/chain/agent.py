"""
Agent 实现

提供两种 Agent：
- ConversationalAgent：通过 JSON 文本约定调用工具（适用于任意模型）
- OpenAIToolsAgent：使用模型原生的 function calling
"""

import json
from abc import ABC, abstractmethod
from typing import Any

from loguru import logger

from ext.llm.base import BaseLLMModel
from ext.llm.chain.llm_chain import LLMChain
from ext.llm.chain.output_parser import ChatOutputParser
from ext.llm.chain.prompt import (
    InputVariables,
    MessagesPlaceholder,
    MessageTemplate,
    PromptTemplate,
)
from ext.llm.chain.prompts import (
    DEFAULT_INITIAL_PROMPT,
    DEFAULT_SYSTEM_PROMPT,
    FORMAT_INSTRUCTIONS,
    SUFFIX,
    TEMPLATE_TOOL_RESPONSE,
)
from ext.llm.chain.tool import BaseTool
from ext.llm.chain.types import AgentAction, AgentEvent, AgentFinish, AgentStep
from ext.llm.options import CallOptions
from ext.llm.types import Message, MessageTypeEnum, TokenUsage
from util.general import truncate_content

CHAT_HISTORY_KEY = "chat_history"
AGENT_SCRATCHPAD_KEY = "agent_scratchpad"


class BaseAgent(ABC):
    """Agent 抽象基类

    根据已执行的步骤与输入决定下一步动作
    """

    tools: list[BaseTool]

    @abstractmethod
    async def aplan(
        self,
        intermediate_steps: list[AgentStep],
        input_variables: InputVariables,
    ) -> tuple[AgentEvent, TokenUsage | None]:
        """规划下一步

        Args:
            intermediate_steps: 已执行的步骤
            input_variables: 输入变量（包含 input 与 chat_history）

        Returns:
            (AgentEvent, 本次调用的 token 统计)
        """
        raise NotImplementedError

    def get_tools(self) -> list[BaseTool]:
        return list(self.tools)


class ConversationalAgent(BaseAgent):
    """对话 Agent

    Prompt 结构：
        System(prefix)
        MessagesPlaceholder("chat_history")
        Human(suffix + initial_prompt)   # jinja2，包含 {{input}}
        MessagesPlaceholder("agent_scratchpad")
    """

    def __init__(
        self,
        llm: BaseLLMModel,
        tools: list[BaseTool],
        prefix: str = DEFAULT_SYSTEM_PROMPT,
        suffix: str = SUFFIX,
        initial_prompt: str = DEFAULT_INITIAL_PROMPT,
        options: CallOptions | None = None,
    ):
        """初始化对话 Agent

        Args:
            llm: LLM 模型
            tools: 工具列表
            prefix: 系统提示词
            suffix: 响应格式说明与工具描述（jinja2：tools / tool_names / format_instructions）
            initial_prompt: 任务提示（jinja2：input）
            options: 调用参数
        """
        self.tools = list(tools)
        self.output_parser = ChatOutputParser()
        self.chain = LLMChain(self.create_prompt(self.tools, prefix, suffix, initial_prompt), llm, options=options)

    @staticmethod
    def create_prompt(
        tools: list[BaseTool],
        prefix: str = DEFAULT_SYSTEM_PROMPT,
        suffix: str = SUFFIX,
        initial_prompt: str = DEFAULT_INITIAL_PROMPT,
    ) -> PromptTemplate:
        """构建 Agent 的 Prompt 模板

        工具描述以预置变量代入 suffix，不再作为模板解析，input 变量保留给每次调用
        """
        tool_string = "\n".join(f"> {tool.name}: {tool.description}" for tool in tools)
        tool_names = ", ".join(tool.name for tool in tools)

        human_template = MessageTemplate.from_jinja2(MessageTypeEnum.human, suffix + initial_prompt).partial(
            {
                "tools": tool_string,
                "tool_names": tool_names,
                "format_instructions": FORMAT_INSTRUCTIONS.replace("{{tool_names}}", tool_names),
            },
        )

        return PromptTemplate(
            [
                Message.system(prefix),
                MessagesPlaceholder(CHAT_HISTORY_KEY),
                human_template,
                MessagesPlaceholder(AGENT_SCRATCHPAD_KEY),
            ],
        )

    @staticmethod
    def construct_scratchpad(intermediate_steps: list[AgentStep]) -> list[Message]:
        """构建 scratchpad：每一步为 AI(action.log) + Human(工具响应)"""
        tool_response = MessageTemplate.from_jinja2(MessageTypeEnum.human, TEMPLATE_TOOL_RESPONSE)
        messages: list[Message] = []
        for step in intermediate_steps:
            messages.append(Message.ai(step.action.log))
            messages.append(tool_response.format({"observation": step.observation}))
        return messages

    async def aplan(
        self,
        intermediate_steps: list[AgentStep],
        input_variables: InputVariables,
    ) -> tuple[AgentEvent, TokenUsage | None]:
        input_variables = input_variables.copy()
        input_variables.insert_placeholder(AGENT_SCRATCHPAD_KEY, self.construct_scratchpad(intermediate_steps))

        result = await self.chain.acall(input_variables)
        logger.debug(f"ConversationalAgent plan output: {truncate_content(result.generation)}")
        return self.output_parser.parse(result.generation), result.tokens


class OpenAIToolsAgent(BaseAgent):
    """原生工具调用 Agent

    工具定义以 CallOptions.functions 传给模型，模型返回的工具调用（JSON 列表）转换为 AgentAction
    """

    def __init__(
        self,
        llm: BaseLLMModel,
        tools: list[BaseTool],
        prefix: str = DEFAULT_SYSTEM_PROMPT,
        options: CallOptions | None = None,
    ):
        self.tools = list(tools)
        tool_options = CallOptions(functions=[tool.to_definition() for tool in self.tools])
        if options is not None:
            tool_options = tool_options.merge_options(options)
        self.chain = LLMChain(self.create_prompt(prefix), llm, options=tool_options)

    @staticmethod
    def create_prompt(prefix: str = DEFAULT_SYSTEM_PROMPT) -> PromptTemplate:
        return PromptTemplate(
            [
                Message.system(prefix),
                MessagesPlaceholder(CHAT_HISTORY_KEY),
                MessageTemplate.from_jinja2(MessageTypeEnum.human, "{{input}}"),
                MessagesPlaceholder(AGENT_SCRATCHPAD_KEY),
            ],
        )

    @staticmethod
    def _to_tool_call(action: AgentAction) -> dict[str, Any]:
        arguments = action.tool_input if isinstance(action.tool_input, str) else json.dumps(action.tool_input)
        return {"id": action.id, "type": "function", "function": {"name": action.tool, "arguments": arguments}}

    @classmethod
    def construct_scratchpad(cls, intermediate_steps: list[AgentStep]) -> list[Message]:
        """构建 scratchpad：同一轮的工具调用合并为一条 AI 消息，随后是对应的 Tool 消息"""
        messages: list[Message] = []
        idx = 0
        while idx < len(intermediate_steps):
            log = intermediate_steps[idx].action.log
            group: list[AgentStep] = []
            while idx < len(intermediate_steps) and intermediate_steps[idx].action.log == log:
                group.append(intermediate_steps[idx])
                idx += 1

            messages.append(Message.ai("", tool_calls=[cls._to_tool_call(step.action) for step in group]))
            messages.extend(Message.tool(step.observation, id=step.action.id) for step in group)
        return messages

    @staticmethod
    def parse_tool_calls(generation: str) -> AgentEvent:
        """解析模型输出

        JSON 工具调用列表转换为 AgentAction 列表，其余文本（包括元素不是工具调用的 JSON 列表）作为最终回答
        """
        try:
            tool_calls = json.loads(generation)
        except ValueError:
            return AgentFinish(output=generation)

        if not isinstance(tool_calls, list) or not tool_calls:
            return AgentFinish(output=generation)

        actions: list[AgentAction] = []
        for tool_call in tool_calls:
            function = tool_call.get("function") if isinstance(tool_call, dict) else None
            if not isinstance(function, dict) or not function.get("name"):
                logger.warning(f"OpenAIToolsAgent output is not a tool call list, treated as final answer: {tool_call}")
                return AgentFinish(output=generation)
            actions.append(
                AgentAction(
                    tool=function["name"],
                    tool_input=function.get("arguments") or "{}",
                    log=generation,
                    id=tool_call.get("id"),
                ),
            )
        return actions

    async def aplan(
        self,
        intermediate_steps: list[AgentStep],
        input_variables: InputVariables,
    ) -> tuple[AgentEvent, TokenUsage | None]:
        input_variables = input_variables.copy()
        input_variables.insert_placeholder(AGENT_SCRATCHPAD_KEY, self.construct_scratchpad(intermediate_steps))

        result = await self.chain.acall(input_variables)
        logger.debug(f"OpenAIToolsAgent plan output: {truncate_content(result.generation)}")
        return self.parse_tool_calls(result.generation), result.tokens


__all__ = [
    "CHAT_HISTORY_KEY",
    "AGENT_SCRATCHPAD_KEY",
    "BaseAgent",
    "ConversationalAgent",
    "OpenAIToolsAgent",
]
