"""
Chain 模块异常定义

提供 Chain、Prompt、Retriever、Agent、Tool 相关的自定义异常
LLM 调用错误保持原有类型（ext.llm.exceptions）直接向上传播
"""


class ChainError(Exception):
    """Chain 基础异常"""


class MissingInputVariableError(ChainError):
    """缺少必需的输入变量（格式化或调用时）"""

    def __init__(self, variable_name: str):
        self.variable_name = variable_name
        super().__init__(f"Missing input variable: '{variable_name}'")


class MissingObjectError(ChainError):
    """构造 Chain 时缺少必需的组件"""

    def __init__(self, component: str):
        self.component = component
        super().__init__(f"Missing required object: {component}")


class PromptError(ChainError):
    """模板语法或渲染错误"""


class RetrieverError(ChainError):
    """检索器错误，原始错误信息被展开为字符串"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Retriever error: {message}")


class OutputParserError(ChainError):
    """输出解析失败"""


class SerdeError(ChainError):
    """数据结构与预期不符（反序列化失败）"""


class DatabaseError(ChainError):
    """数据库访问错误"""


class StreamNotSupportedError(ChainError):
    """Chain 不支持流式输出"""

    def __init__(self, chain_name: str):
        self.chain_name = chain_name
        super().__init__(f"Stream not supported by {chain_name}")


class AgentError(ChainError):
    """Agent 异常"""


class ToolNotFoundError(AgentError):
    """工具未找到异常"""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Tool '{tool_name}' not found")


class ToolExecutionError(AgentError):
    """工具执行异常"""

    def __init__(self, tool_name: str, error: Exception | str):
        self.tool_name = tool_name
        self.original_error = error
        super().__init__(f"Tool '{tool_name}' execution failed: {error}")


__all__ = [
    "ChainError",
    "MissingInputVariableError",
    "MissingObjectError",
    "PromptError",
    "RetrieverError",
    "OutputParserError",
    "SerdeError",
    "DatabaseError",
    "StreamNotSupportedError",
    "AgentError",
    "ToolNotFoundError",
    "ToolExecutionError",
]
