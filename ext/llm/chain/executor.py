"""
Agent 执行器

循环执行 规划 → 调用工具 → 记录观察，直到 Agent 给出最终回答或达到最大迭代次数
"""

from loguru import logger

from config.default import AgentConfig
from ext.llm.chain.agent import CHAT_HISTORY_KEY, BaseAgent
from ext.llm.chain.base import Chain, ChainInput
from ext.llm.chain.exceptions import MissingInputVariableError, ToolExecutionError, ToolNotFoundError
from ext.llm.chain.memory import BaseMemory
from ext.llm.chain.prompt import InputVariables
from ext.llm.chain.tool import BaseTool
from ext.llm.chain.types import AgentFinish, AgentStep
from ext.llm.types import GenerateResult, Message, TokenUsage
from util.general import truncate_content

INPUT_KEY = "input"
MAX_ITERATIONS_REACHED = "Max iterations reached"


def normalize_tool_name(name: str) -> str:
    return name.strip().lower().replace(" ", "_")


class AgentExecutor(Chain):
    """Agent 执行器

    使用示例:
        >>> agent = ConversationalAgent(llm, [calculator])
        >>> executor = AgentExecutor(agent, memory=SimpleMemory())
        >>> await executor.ainvoke({"input": "What is 5 squared?"})
    """

    def __init__(
        self,
        agent: BaseAgent,
        memory: BaseMemory | None = None,
        max_iterations: int = 10,
        break_if_error: bool = False,
    ):
        """初始化 Agent 执行器

        Args:
            agent: Agent
            memory: 记忆（可选），提供 chat_history 并在结束时写入本轮对话
            max_iterations: 最大规划次数
            break_if_error: 工具出错时是否中止（否则将错误作为观察结果继续）
        """
        self.agent = agent
        self.memory = memory
        self.max_iterations = max_iterations
        self.break_if_error = break_if_error

    @classmethod
    def from_agent(cls, agent: BaseAgent, **kwargs) -> "AgentExecutor":
        return cls(agent, **kwargs)

    @classmethod
    def from_config(
        cls,
        agent: BaseAgent,
        memory: BaseMemory | None = None,
        config: AgentConfig | None = None,
    ) -> "AgentExecutor":
        """根据配置（默认为 local_configs.agent）创建执行器"""
        if config is None:
            from config.main import local_configs

            config = local_configs.agent
        return cls(agent, memory=memory, max_iterations=config.max_iterations, break_if_error=config.break_if_error)

    def get_tool(self, name: str) -> BaseTool:
        """按名称查找工具：先精确匹配，再按规范化名称匹配

        Raises:
            ToolNotFoundError: 工具不存在
        """
        tools = self.agent.get_tools()
        for tool in tools:
            if tool.name == name:
                return tool

        normalized = normalize_tool_name(name)
        for tool in tools:
            if normalize_tool_name(tool.name) == normalized:
                return tool

        raise ToolNotFoundError(name)

    async def acall(self, input_variables: ChainInput) -> GenerateResult:
        input_variables = InputVariables.coerce(input_variables).copy()
        human_input = input_variables.get_text(INPUT_KEY)
        if human_input is None:
            raise MissingInputVariableError(INPUT_KEY)

        history: list[Message] = []
        if self.memory is not None:
            async with self.memory.lock:
                history = self.memory.messages()
        input_variables.insert_placeholder(CHAT_HISTORY_KEY, history)

        steps: list[AgentStep] = []
        tokens = None
        for iteration in range(self.max_iterations):
            logger.debug(f"AgentExecutor iteration {iteration + 1}/{self.max_iterations}")
            event, usage = await self.agent.aplan(steps, input_variables)
            tokens = TokenUsage.accumulate(tokens, usage)

            if isinstance(event, AgentFinish):
                if self.memory is not None:
                    async with self.memory.lock:
                        self.memory.add_message(Message.human(human_input))
                        self.memory.add_message(Message.ai(event.output))
                logger.debug(f"AgentExecutor finished - output: {truncate_content(event.output)}")
                return GenerateResult(generation=event.output, tokens=tokens)

            actions = event if isinstance(event, list) else [event]
            for action in actions:
                tool = self.get_tool(action.tool)
                logger.debug(f"AgentExecutor action - tool: {tool.name}, input: {truncate_content(str(action.tool_input))}")
                try:
                    observation = await tool.acall(action.tool_input)
                except Exception as e:
                    if self.break_if_error:
                        if isinstance(e, ToolExecutionError):
                            raise
                        raise ToolExecutionError(tool.name, e) from e
                    error = e.original_error if isinstance(e, ToolExecutionError) else e
                    logger.warning(f"Tool '{tool.name}' failed, returning error as observation: {error}")
                    observation = f"The tool return the following error: {error}"
                steps.append(AgentStep(action=action, observation=observation))

        logger.warning(f"AgentExecutor stopped after {self.max_iterations} iterations without a final answer")
        return GenerateResult(generation=MAX_ITERATIONS_REACHED, tokens=tokens)

    def get_input_keys(self) -> list[str]:
        return [INPUT_KEY]


__all__ = [
    "MAX_ITERATIONS_REACHED",
    "normalize_tool_name",
    "AgentExecutor",
]
