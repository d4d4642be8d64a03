"""
输出解析器实现

提供将 LLM 输出转换为特定格式的解析器，以及 Agent 输出解析（ChatOutputParser）
"""

import json
import re
from abc import ABC, abstractmethod
from typing import Any

from loguru import logger
from pydantic import BaseModel, ValidationError

from ext.llm.chain.exceptions import OutputParserError
from ext.llm.chain.types import AgentAction, AgentEvent, AgentFinish
from util.general import truncate_content

_JSON_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]+?)\s*```")
_MARKDOWN_BLOCK_PATTERN = re.compile(r"```(?:\w+)?\s*([\s\S]+?)\s*```")
_TRAILING_COMMA_PATTERN = re.compile(r",\s*([}\]])")
_ACTION_PATTERN = re.compile(r'"action"\s*:\s*"((?:[^"\\]|\\.)*)"')
_ACTION_INPUT_PATTERN = re.compile(r'"action_input"\s*:\s*"((?:[^"\\]|\\.)*)"')

FINAL_ANSWER_ACTION = "Final Answer"


def parse_partial_json(text: str) -> Any | None:
    """尽力解析可能不完整的 JSON

    依次尝试：直接解析、去除尾逗号、按未闭合的括号栈逆序补全

    Args:
        text: JSON 文本

    Returns:
        解析结果，无法恢复时返回 None
    """
    try:
        return json.loads(text)
    except ValueError:
        pass

    cleaned = _TRAILING_COMMA_PATTERN.sub(r"\1", text)
    try:
        return json.loads(cleaned)
    except ValueError:
        pass

    stack: list[str] = []
    in_string = False
    escaped = False
    chars: list[str] = []
    for char in cleaned:
        if in_string:
            if char == '"' and not escaped:
                in_string = False
            elif char == "\n" and not escaped:
                char = "\\n"
            elif char == "\\":
                escaped = not escaped
            else:
                escaped = False
        elif char == '"':
            in_string = True
            escaped = False
        elif char == "{":
            stack.append("}")
        elif char == "[":
            stack.append("]")
        elif char in "}]":
            if not stack or stack[-1] != char:
                return None
            stack.pop()
        chars.append(char)

    if in_string:
        chars.append('"')
    candidate = _TRAILING_COMMA_PATTERN.sub(r"\1", "".join(chars) + "".join(reversed(stack)))

    try:
        return json.loads(candidate)
    except ValueError:
        return None


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


class BaseOutputParser(ABC):
    """输出解析器基类

    用于将 LLM 的字符串输出转换为特定格式的字符串
    """

    @abstractmethod
    def parse(self, text: str) -> str:
        """解析文本

        Args:
            text: LLM 输出文本

        Returns:
            解析后的文本

        Raises:
            OutputParserError: 解析失败
        """
        raise NotImplementedError


class StrOutputParser(BaseOutputParser):
    """字符串输出解析器

    返回去除首尾空白的文本
    """

    def parse(self, text: str) -> str:
        return text.strip()


class MarkdownParser(BaseOutputParser):
    """提取第一个 markdown 代码块的内容，没有代码块时返回原文本"""

    def parse(self, text: str) -> str:
        match = _MARKDOWN_BLOCK_PATTERN.search(text)
        if match:
            return match.group(1)
        return text.strip()


class JsonOutputParser(BaseOutputParser):
    """JSON 输出解析器

    提取并校验 LLM 输出中的 JSON，返回紧凑的 JSON 文本
    """

    def __init__(self, pydantic_object: type[BaseModel] | None = None):
        """初始化 JSON 解析器

        Args:
            pydantic_object: 可选的 Pydantic 模型，用于验证输出
        """
        self.pydantic_object = pydantic_object

    def parse(self, text: str) -> str:
        """解析 JSON 文本

        Args:
            text: LLM 输出

        Returns:
            JSON 文本

        Raises:
            OutputParserError: JSON 解析或校验失败
        """
        match = _JSON_BLOCK_PATTERN.search(text)
        json_text = match.group(1) if match else text.strip()

        parsed = parse_partial_json(json_text)
        if parsed is None:
            logger.error(f"JsonOutputParser decode error - input: {truncate_content(text)}")
            raise OutputParserError(f"Failed to parse JSON from output: {truncate_content(text)}")

        if self.pydantic_object is not None:
            try:
                parsed = self.pydantic_object.model_validate(parsed).model_dump(mode="json")
            except ValidationError as e:
                logger.error(f"JsonOutputParser validation error: {e}")
                raise OutputParserError(f"Failed to validate with {self.pydantic_object.__name__}: {e}") from e

        return json.dumps(parsed, ensure_ascii=False)

    def get_format_instructions(self) -> str:
        """获取格式说明"""
        if self.pydantic_object is not None:
            schema = json.dumps(self.pydantic_object.model_json_schema(), ensure_ascii=False)
            return f"Output must be a valid JSON object matching following schema: {schema}"
        return "Output must be a valid JSON object."


class ChatOutputParser:
    """Agent 输出解析器

    支持两种 JSON 形态（可包裹在 ```json 代码块中）：

        {"action": "<工具名或 Final Answer>", "action_input": ...}
        {"final_answer": ...}

    无法识别时将原文本作为最终回答，不会抛出异常
    """

    def parse(self, text: str) -> AgentEvent:
        match = _JSON_BLOCK_PATTERN.search(text)
        json_text = match.group(1) if match else text.strip()

        value = parse_partial_json(json_text)
        if isinstance(value, dict):
            if "action" in value and "action_input" in value:
                action = str(value["action"])
                action_input = value["action_input"]
                if action == FINAL_ANSWER_ACTION:
                    return AgentFinish(output=_stringify(action_input))
                if not isinstance(action_input, (str, dict)):
                    action_input = _stringify(action_input)
                return AgentAction(tool=action, tool_input=action_input, log=json_text)
            if "final_answer" in value:
                return AgentFinish(output=_stringify(value["final_answer"]))

        action_match = _ACTION_PATTERN.search(text)
        input_match = _ACTION_INPUT_PATTERN.search(text)
        if action_match and input_match:
            action = action_match.group(1)
            action_input = input_match.group(1).replace('\\"', '"')
            logger.warning(f"Agent output recovered by pattern match - action: {action}")
            if action == FINAL_ANSWER_ACTION:
                return AgentFinish(output=action_input)
            return AgentAction(tool=action, tool_input=action_input, log=text)

        logger.warning(f"Agent output is not a recognised action, treating as final answer: {truncate_content(text)}")
        return AgentFinish(output=text)

    def get_format_instructions(self) -> str:
        from ext.llm.chain.prompts import FORMAT_INSTRUCTIONS

        return FORMAT_INSTRUCTIONS


__all__ = [
    "FINAL_ANSWER_ACTION",
    "parse_partial_json",
    "BaseOutputParser",
    "StrOutputParser",
    "MarkdownParser",
    "JsonOutputParser",
    "ChatOutputParser",
]
