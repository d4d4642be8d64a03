"""
测试 Agent 与 AgentExecutor
"""

import json

import pytest

from config.default import AgentConfig
from ext.llm.chain import (
    AgentAction,
    AgentExecutor,
    AgentFinish,
    AgentStep,
    ConversationalAgent,
    InputVariables,
    LLMChain,
    PromptTemplate,
    OpenAIToolsAgent,
    SimpleMemory,
    ToolExecutionError,
    ToolNotFoundError,
    tool,
)
from ext.llm.chain.executor import MAX_ITERATIONS_REACHED, normalize_tool_name
from ext.llm.types import Message, MessageTypeEnum, TokenUsage
from tests.fakes import ScriptedLLM

CALL_CALCULATOR = '{"action": "Calculator", "action_input": "?"}'
FINAL_25 = '{"action": "Final Answer", "action_input": "25"}'


@pytest.fixture
def counting_calculator():
    """记录调用次数的计算器"""
    calls: list[str] = []

    @tool(name="Calculator", description="Usefull to make calculations")
    def calculator(expression: str) -> str:
        calls.append(expression)
        return "25"

    calculator.calls = calls
    return calculator


@pytest.fixture
def failing_tool():
    @tool(name="Flaky", description="Always fails")
    def flaky(value: str) -> str:
        raise RuntimeError("service down")

    return flaky


class TestConversationalAgent:
    """测试对话 Agent"""

    def test_prompt_contains_tools(self, counting_calculator):
        """测试工具描述渲染进 Prompt"""
        template = ConversationalAgent.create_prompt([counting_calculator])

        assert template.variables() == {"input"}
        assert template.placeholders() == {"chat_history", "agent_scratchpad"}
        print("✓ Prompt 只保留 input 变量")

    def test_tool_description_kept_literal(self):
        """测试工具描述中的 {{name}} 不会成为模板变量"""

        @tool(name="Greeter", description="Replies with Hello {{name}}")
        def greeter(name: str) -> str:
            return f"Hello {name}"

        template = ConversationalAgent.create_prompt([greeter])
        assert template.variables() == {"input"}

        prompt = template.format(InputVariables.coerce({"input": "greet Ana"}))
        human = prompt.messages[-1]
        assert "> Greeter: Replies with Hello {{name}}" in human.content
        assert "Current Task: greet Ana" in human.content
        print("✓ 工具描述按原文保留")

    def test_scratchpad(self):
        """测试 scratchpad 为 AI(log) + Human(工具响应)"""
        steps = [AgentStep(action=AgentAction(tool="Calculator", tool_input="?", log=CALL_CALCULATOR), observation="25")]
        messages = ConversationalAgent.construct_scratchpad(steps)

        assert messages[0] == Message.ai(CALL_CALCULATOR)
        assert messages[1].message_type == MessageTypeEnum.human
        assert messages[1].content.startswith("TOOL RESPONSE:\n---------------------\n25\n")
        print("✓ scratchpad 格式正确")


class TestAgentExecutor:
    """测试 Agent 执行循环"""

    @pytest.mark.asyncio
    async def test_tool_dispatch(self, counting_calculator):
        """测试调用工具后给出最终回答"""
        llm = ScriptedLLM([CALL_CALCULATOR, FINAL_25])
        executor = AgentExecutor(ConversationalAgent(llm, [counting_calculator]))

        answer = await executor.ainvoke({"input": "What is 5 squared?"})

        assert answer == "25"
        assert counting_calculator.calls == ["?"]
        assert len(llm.calls) == 2

        first_prompt = llm.calls[0]
        assert first_prompt[0].message_type == MessageTypeEnum.system
        assert "> Calculator: Usefull to make calculations" in first_prompt[1].content
        assert "one of [Calculator]" in first_prompt[1].content
        assert "Current Task: What is 5 squared?" in first_prompt[1].content

        second_prompt = llm.calls[1]
        assert second_prompt[-2] == Message.ai(CALL_CALCULATOR)
        assert "TOOL RESPONSE:\n---------------------\n25" in second_prompt[-1].content
        print(f"✓ 最终回答: {answer}，共 {len(llm.calls)} 次规划")

    @pytest.mark.asyncio
    async def test_max_iterations(self, counting_calculator):
        """测试达到最大迭代次数"""
        memory = SimpleMemory()
        llm = ScriptedLLM([CALL_CALCULATOR])
        executor = AgentExecutor(ConversationalAgent(llm, [counting_calculator]), memory=memory, max_iterations=3)

        answer = await executor.ainvoke({"input": "loop forever"})

        assert answer == MAX_ITERATIONS_REACHED
        assert len(llm.calls) == 3
        assert len(counting_calculator.calls) == 3
        assert memory.messages() == []
        print("✓ 迭代次数有界")

    @pytest.mark.asyncio
    async def test_tokens_accumulated(self, counting_calculator):
        """测试 token 累加"""
        llm = ScriptedLLM([CALL_CALCULATOR, FINAL_25], tokens=TokenUsage(prompt_tokens=3, completion_tokens=2, total_tokens=5))
        executor = AgentExecutor(ConversationalAgent(llm, [counting_calculator]))

        result = await executor.acall({"input": "x"})
        assert result.tokens.total_tokens == 10

    @pytest.mark.asyncio
    async def test_memory_and_history(self, counting_calculator):
        """测试结束时写入记忆，下一次调用带上对话历史"""
        memory = SimpleMemory()
        llm = ScriptedLLM([FINAL_25])
        executor = AgentExecutor(ConversationalAgent(llm, [counting_calculator]), memory=memory)

        await executor.ainvoke({"input": "first"})
        assert memory.messages() == [Message.human("first"), Message.ai("25")]

        await executor.ainvoke({"input": "second"})
        prompt = llm.last_prompt
        assert prompt[1] == Message.human("first")
        assert prompt[2] == Message.ai("25")
        print("✓ 对话历史已带入")

    @pytest.mark.asyncio
    async def test_normalized_tool_name(self, counting_calculator):
        """测试工具名大小写与空格不敏感"""
        llm = ScriptedLLM(['{"action": " calculator ", "action_input": "one"}', FINAL_25])
        executor = AgentExecutor(ConversationalAgent(llm, [counting_calculator]))

        assert await executor.ainvoke({"input": "x"}) == "25"
        assert counting_calculator.calls == ["one"]
        assert normalize_tool_name("Web Search") == "web_search"

    @pytest.mark.asyncio
    async def test_tool_not_found(self, counting_calculator):
        """测试工具不存在"""
        llm = ScriptedLLM(['{"action": "Search", "action_input": "x"}'])
        executor = AgentExecutor(ConversationalAgent(llm, [counting_calculator]))

        with pytest.raises(ToolNotFoundError) as exc_info:
            await executor.ainvoke({"input": "x"})
        assert exc_info.value.tool_name == "Search"
        print(f"✓ {exc_info.value}")

    @pytest.mark.asyncio
    async def test_tool_error_as_observation(self, failing_tool):
        """测试工具出错时错误作为观察结果"""
        llm = ScriptedLLM(['{"action": "Flaky", "action_input": "x"}', '{"final_answer": "gave up"}'])
        executor = AgentExecutor(ConversationalAgent(llm, [failing_tool]))

        assert await executor.ainvoke({"input": "x"}) == "gave up"
        assert "The tool return the following error: service down" in llm.last_prompt[-1].content
        print("✓ 工具错误已作为观察结果")

    @pytest.mark.asyncio
    async def test_break_if_error(self, failing_tool):
        """测试工具出错时中止"""
        llm = ScriptedLLM(['{"action": "Flaky", "action_input": "x"}'])
        executor = AgentExecutor.from_config(
            ConversationalAgent(llm, [failing_tool]),
            config=AgentConfig(max_iterations=5, break_if_error=True),
        )

        with pytest.raises(ToolExecutionError):
            await executor.ainvoke({"input": "x"})
        assert executor.max_iterations == 5
        print("✓ 工具出错时中止")


class TestOpenAIToolsAgent:
    """测试原生工具调用 Agent"""

    @staticmethod
    def tool_calls(*calls: tuple[str, str, dict]) -> str:
        return json.dumps(
            [
                {"id": call_id, "type": "function", "function": {"name": name, "arguments": json.dumps(arguments)}}
                for call_id, name, arguments in calls
            ],
        )

    @pytest.mark.asyncio
    async def test_dispatch(self, weather_tool):
        """测试工具调用与 scratchpad"""
        llm = ScriptedLLM(
            [
                self.tool_calls(("call_1", "get_weather", {"location": "Lima"}), ("call_2", "get_weather", {"location": "Cusco"})),
                "Lima is 22 and Cusco is 22",
            ],
        )
        agent = OpenAIToolsAgent(llm, [weather_tool])
        executor = AgentExecutor(agent)

        answer = await executor.ainvoke({"input": "Weather in Lima and Cusco?"})

        assert answer == "Lima is 22 and Cusco is 22"
        assert [function.name for function in llm.call_options[0].functions] == ["get_weather"]
        assert llm.options.functions is None

        prompt = llm.last_prompt
        ai_message = prompt[-3]
        assert ai_message.message_type == MessageTypeEnum.ai
        assert [call["id"] for call in ai_message.tool_calls] == ["call_1", "call_2"]
        assert prompt[-2].message_type == MessageTypeEnum.tool
        assert prompt[-2].id == "call_1"
        assert '"location": "Lima"' in prompt[-2].content
        assert prompt[-1].id == "call_2"
        print(f"✓ 最终回答: {answer}")

    @pytest.mark.asyncio
    async def test_shared_llm_keeps_no_functions(self, weather_tool):
        """测试共享 LLM 的其他链调用时不携带工具定义"""
        llm = ScriptedLLM(["plain answer"])
        plain_chain = LLMChain(PromptTemplate.from_template("{input}"), llm)
        OpenAIToolsAgent(llm, [weather_tool])

        assert await plain_chain.ainvoke({"input": "hi"}) == "plain answer"
        assert llm.options.functions is None
        assert llm.call_options[-1].functions is None
        print("✓ 工具定义只在 Agent 的调用中生效")

    def test_parse_plain_text(self):
        assert OpenAIToolsAgent.parse_tool_calls("just text") == AgentFinish(output="just text")
        assert OpenAIToolsAgent.parse_tool_calls("[]") == AgentFinish(output="[]")

    def test_parse_non_tool_call_list(self):
        """测试元素不是工具调用的 JSON 列表作为最终回答"""
        missing_name = '[{"id": "x", "function": {}}]'
        assert OpenAIToolsAgent.parse_tool_calls(missing_name) == AgentFinish(output=missing_name)
        assert OpenAIToolsAgent.parse_tool_calls('["Lima", "Cusco"]') == AgentFinish(output='["Lima", "Cusco"]')
        print("✓ 非工具调用列表作为最终回答")
