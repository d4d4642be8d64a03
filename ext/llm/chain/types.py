"""
Agent 类型定义
"""

from typing import Any, Union

from pydantic import BaseModel, Field


class AgentAction(BaseModel):
    """Agent 决定调用的工具"""

    tool: str = Field(description="工具名称")
    tool_input: Any = Field(default="", description="工具输入（字符串或 JSON）")
    log: str = Field(default="", description="模型原始输出，写入 scratchpad")
    id: str | None = Field(default=None, description="工具调用ID（原生工具调用时存在）")


class AgentFinish(BaseModel):
    """Agent 给出最终回答"""

    output: str = Field(description="最终回答")


class AgentStep(BaseModel):
    """已执行的一步：动作及其观察结果"""

    action: AgentAction = Field(description="工具调用")
    observation: str = Field(description="工具返回")


AgentEvent = Union[AgentAction, list[AgentAction], AgentFinish]


__all__ = [
    "AgentAction",
    "AgentFinish",
    "AgentStep",
    "AgentEvent",
]
