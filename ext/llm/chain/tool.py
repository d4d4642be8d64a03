"""
Tool 实现和装饰器

提供工具抽象（BaseTool）以及将 Python 函数转换为 Tool 的能力
"""

import inspect
import json
import types
from abc import ABC, abstractmethod
from typing import Any, Union, get_args, get_origin
from collections.abc import Callable

from loguru import logger

from ext.llm.chain.exceptions import ToolExecutionError
from ext.llm.types import FunctionDefinition
from util.general import truncate_content

DEFAULT_TOOL_PARAMETERS: dict[str, Any] = {
    "type": "object",
    "properties": {"input": {"type": "string"}},
    "required": ["input"],
}


class BaseTool(ABC):
    """工具抽象

    子类需要提供 name / description，并实现 arun
    """

    name: str = ""
    description: str = ""

    @property
    def parameters(self) -> dict[str, Any]:
        """参数定义（JSON Schema），默认只有一个字符串参数 input"""
        return DEFAULT_TOOL_PARAMETERS

    @abstractmethod
    async def arun(self, tool_input: Any) -> Any:
        """执行工具

        Args:
            tool_input: 解析后的输入（字符串或 JSON 值）

        Returns:
            工具执行结果
        """
        raise NotImplementedError

    @staticmethod
    def parse_input(tool_input: str) -> Any:
        """解析字符串输入

        - 含字符串字段 input 的 JSON 对象：返回该字段
        - 其他 JSON：返回解码后的值
        - 非 JSON：原样返回
        """
        try:
            value = json.loads(tool_input)
        except ValueError:
            return tool_input

        if isinstance(value, dict) and isinstance(value.get("input"), str):
            return value["input"]
        return value

    async def acall(self, tool_input: str | dict[str, Any]) -> str:
        """调用工具并将结果转为字符串

        Args:
            tool_input: 原始输入

        Returns:
            观察结果文本
        """
        value = self.parse_input(tool_input) if isinstance(tool_input, str) else tool_input
        logger.debug(f"Tool '{self.name}' call - input: {truncate_content(str(value))}")

        result = await self.arun(value)
        observation = result if isinstance(result, str) else json.dumps(result, ensure_ascii=False, default=str)
        logger.debug(f"Tool '{self.name}' result: {truncate_content(observation)}")
        return observation

    def to_definition(self) -> FunctionDefinition:
        """转换为 Function Calling 定义"""
        return FunctionDefinition(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"


class Tool(BaseTool):
    """函数工具

    将同步或异步的 Python 函数封装为 LLM 可调用的工具
    """

    def __init__(
        self,
        func: Callable,
        name: str,
        description: str,
        parameters: dict[str, Any] | None = None,
    ):
        """初始化 Tool

        Args:
            func: 工具函数（可以是同步或异步）
            name: 工具名称
            description: 工具描述
            parameters: 参数定义（JSON Schema），默认从函数签名提取

        Raises:
            ToolExecutionError: 参数定义不是合法的对象 Schema
        """
        parameters = parameters if parameters is not None else extract_parameters_from_signature(func)
        if not validate_json_schema(parameters):
            raise ToolExecutionError(name, "parameters must be an object JSON Schema with properties")

        self.func = func
        self.name = name
        self.description = description
        self._parameters = parameters
        self.is_async = inspect.iscoroutinefunction(func)

    @property
    def parameters(self) -> dict[str, Any]:
        return self._parameters

    def _to_kwargs(self, tool_input: Any) -> dict[str, Any]:
        properties = list(self._parameters.get("properties", {}))

        if isinstance(tool_input, dict):
            # {"input": ...} 交给唯一的参数
            if len(properties) == 1 and properties[0] not in tool_input and list(tool_input) == ["input"]:
                return {properties[0]: tool_input["input"]}
            return dict(tool_input)

        if len(properties) == 1:
            return {properties[0]: tool_input}
        required = self._parameters.get("required", [])
        if len(required) == 1:
            return {required[0]: tool_input}
        raise ToolExecutionError(self.name, f"cannot map a single value to parameters {properties}")

    async def arun(self, tool_input: Any) -> Any:
        kwargs = self._to_kwargs(tool_input)

        required = self._parameters.get("required", [])
        missing_params = [p for p in required if p not in kwargs]
        if missing_params:
            logger.error(f"Tool '{self.name}' missing required parameters: {missing_params}")
            raise ToolExecutionError(self.name, f"missing required parameters: {missing_params}")

        try:
            if self.is_async:
                return await self.func(**kwargs)
            return self.func(**kwargs)
        except ToolExecutionError:
            raise
        except Exception as e:
            logger.error(f"Tool '{self.name}' execution failed: {e}")
            raise ToolExecutionError(self.name, e) from e

    def __repr__(self) -> str:
        return f"Tool(name='{self.name}', description='{self.description}')"


def tool(func: Callable | None = None, *, name: str | None = None, description: str | None = None):
    """装饰器：将函数转换为 Tool

    使用方式：
        @tool
        def calculator(expression: str) -> str:
            \"\"\"Usefull to make calculations\"\"\"
            ...

    或者：
        @tool(name="Calculator", description="Usefull to make calculations")
        async def calculator(expression: str) -> str:
            ...

    Args:
        func: 被装饰的函数
        name: 自定义工具名称（可选，默认使用函数名）
        description: 自定义工具描述（可选，默认使用函数文档字符串）

    Returns:
        Tool 实例或装饰器函数
    """

    def decorator(f: Callable) -> Tool:
        return Tool(
            func=f,
            name=name or f.__name__,
            description=description or (f.__doc__ or "").strip(),
            parameters=extract_parameters_from_signature(f),
        )

    if func is not None:
        return decorator(func)
    return decorator


def extract_parameters_from_signature(func: Callable) -> dict[str, Any]:
    """从函数签名提取参数定义

    Args:
        func: 函数对象

    Returns:
        JSON Schema 格式的参数定义
    """
    properties: dict[str, Any] = {}
    required: list[str] = []

    for param_name, param in inspect.signature(func).parameters.items():
        if param_name == "self" or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue

        annotation = param.annotation if param.annotation is not inspect.Parameter.empty else str
        properties[param_name] = {"type": _get_type_string(annotation)}

        if param.default is inspect.Parameter.empty:
            required.append(param_name)

    return {
        "type": "object",
        "properties": properties,
        "required": required,
    }


def _get_type_string(type_annotation: Any) -> str:
    """将类型注解转换为 JSON Schema 类型字符串"""
    origin = get_origin(type_annotation)

    # Optional[X] / X | None
    if origin is Union or origin is types.UnionType:
        args = [arg for arg in get_args(type_annotation) if arg is not type(None)]
        return _get_type_string(args[0]) if args else "string"

    type_map = {
        str: "string",
        int: "integer",
        float: "number",
        bool: "boolean",
        list: "array",
        dict: "object",
    }
    if type_annotation in type_map:
        return type_map[type_annotation]
    if origin in type_map:
        return type_map[origin]
    return "string"


def validate_json_schema(parameters: dict[str, Any]) -> bool:
    """验证参数定义是否为对象 Schema

    Args:
        parameters: 参数定义

    Returns:
        是否有效
    """
    if not isinstance(parameters, dict):
        return False
    if parameters.get("type") != "object":
        return False
    if not isinstance(parameters.get("properties"), dict):
        return False
    return isinstance(parameters.get("required", []), list)


__all__ = [
    "DEFAULT_TOOL_PARAMETERS",
    "BaseTool",
    "Tool",
    "tool",
    "extract_parameters_from_signature",
    "validate_json_schema",
]
