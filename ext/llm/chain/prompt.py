"""
Prompt Template 实现

支持 f-string（{name}）与 jinja2（{{name}}）两种变量格式，以及消息占位符
"""

import re
from typing import Any, Union

from loguru import logger

from core.types import StrEnum
from ext.llm.chain.exceptions import MissingInputVariableError, PromptError, SerdeError
from ext.llm.types import Document, Message, MessageTypeEnum, messages_to_string


class TemplateFormatEnum(StrEnum):
    """模板变量格式"""

    fstring = ("fstring", "单花括号 {name}")
    jinja2 = ("jinja2", "双花括号 {{name}}")


_VARIABLE_PATTERNS: dict[str, re.Pattern] = {
    TemplateFormatEnum.fstring.value: re.compile(r"\{(\w+)\}"),
    TemplateFormatEnum.jinja2.value: re.compile(r"\{\{\s*(\w+)\s*\}\}"),
}


class InputVariables:
    """输入变量

    - text_replacements: 模板文本变量
    - placeholder_replacements: 消息占位符
    - document_replacements: 文档列表（供 StuffDocumentsChain 等使用，不会被字符串化）
    """

    def __init__(
        self,
        text_replacements: dict[str, str] | None = None,
        placeholder_replacements: dict[str, list[Message]] | None = None,
        document_replacements: dict[str, list[Document]] | None = None,
    ):
        self.text_replacements: dict[str, str] = dict(text_replacements or {})
        self.placeholder_replacements: dict[str, list[Message]] = dict(placeholder_replacements or {})
        self.document_replacements: dict[str, list[Document]] = dict(document_replacements or {})

    @classmethod
    def coerce(cls, value: Union["InputVariables", dict[str, Any], None]) -> "InputVariables":
        """将普通字典按值类型分拣为 InputVariables

        字符串与标量进入 text，消息列表进入 placeholder，文档列表进入 document

        Raises:
            SerdeError: 值类型无法识别
        """
        if isinstance(value, InputVariables):
            return value
        if value is None:
            return cls()

        input_variables = cls()
        for key, item in value.items():
            if isinstance(item, str):
                input_variables.insert_text(key, item)
            elif isinstance(item, (int, float, bool)):
                input_variables.insert_text(key, str(item))
            elif isinstance(item, list) and all(isinstance(i, Message) for i in item):
                # 空列表按消息占位符处理
                input_variables.insert_placeholder(key, item)
            elif isinstance(item, list) and all(isinstance(i, Document) for i in item):
                input_variables.insert_documents(key, item)
            else:
                raise SerdeError(f"Unsupported value for input variable '{key}': {type(item).__name__}")
        return input_variables

    def insert_text(self, key: str, value: str) -> None:
        self.text_replacements[key] = value

    def insert_placeholder(self, key: str, messages: list[Message]) -> None:
        self.placeholder_replacements[key] = list(messages)

    def insert_documents(self, key: str, documents: list[Document]) -> None:
        self.document_replacements[key] = list(documents)

    def get_text(self, key: str) -> str | None:
        return self.text_replacements.get(key)

    def contains_text_key(self, key: str) -> bool:
        return key in self.text_replacements

    def text_keys(self) -> set[str]:
        return set(self.text_replacements)

    def placeholder_keys(self) -> set[str]:
        return set(self.placeholder_replacements)

    def copy(self) -> "InputVariables":
        return InputVariables(
            self.text_replacements,
            self.placeholder_replacements,
            self.document_replacements,
        )

    def __repr__(self) -> str:
        return (
            f"InputVariables(text={list(self.text_replacements)}, "
            f"placeholders={list(self.placeholder_replacements)}, "
            f"documents={list(self.document_replacements)})"
        )


class MessageTemplate:
    """消息模板

    构造时扫描模板文本得到声明的变量，partial 预置的变量不再计入
    """

    def __init__(
        self,
        message_type: MessageTypeEnum,
        template: str,
        template_format: TemplateFormatEnum = TemplateFormatEnum.fstring,
    ):
        if template_format.value not in _VARIABLE_PATTERNS:
            raise PromptError(f"Unsupported template format: {template_format}")
        self.message_type = message_type
        self.template = template
        self.template_format = template_format
        self._pattern = _VARIABLE_PATTERNS[template_format.value]
        # 保持出现顺序去重
        self.variables: list[str] = list(dict.fromkeys(self._pattern.findall(template)))
        self.partial_variables: dict[str, str] = {}

    @classmethod
    def from_fstring(cls, message_type: MessageTypeEnum, template: str) -> "MessageTemplate":
        return cls(message_type, template, TemplateFormatEnum.fstring)

    @classmethod
    def from_jinja2(cls, message_type: MessageTypeEnum, template: str) -> "MessageTemplate":
        return cls(message_type, template, TemplateFormatEnum.jinja2)

    @classmethod
    def human(cls, template: str, template_format: TemplateFormatEnum = TemplateFormatEnum.fstring) -> "MessageTemplate":
        return cls(MessageTypeEnum.human, template, template_format)

    @classmethod
    def system(cls, template: str, template_format: TemplateFormatEnum = TemplateFormatEnum.fstring) -> "MessageTemplate":
        return cls(MessageTypeEnum.system, template, template_format)

    @classmethod
    def ai(cls, template: str, template_format: TemplateFormatEnum = TemplateFormatEnum.fstring) -> "MessageTemplate":
        return cls(MessageTypeEnum.ai, template, template_format)

    def partial(self, text_replacements: dict[str, str]) -> "MessageTemplate":
        """预置部分变量，返回新模板

        预置值与调用时的变量在 format 时一次性代入，其中的 {{name}} 文本保持原样

        Args:
            text_replacements: 预置的文本变量，模板未声明的键被忽略

        Returns:
            新的 MessageTemplate
        """
        template = MessageTemplate(self.message_type, self.template, self.template_format)
        template.partial_variables = {
            **self.partial_variables,
            **{key: value for key, value in text_replacements.items() if key in self.variables},
        }
        template.variables = [variable for variable in self.variables if variable not in template.partial_variables]
        return template

    def format(self, text_replacements: dict[str, str]) -> Message:
        """渲染为消息

        Args:
            text_replacements: 文本变量

        Returns:
            渲染后的消息

        Raises:
            MissingInputVariableError: 缺少声明的变量
        """
        for variable in self.variables:
            if variable not in text_replacements:
                raise MissingInputVariableError(variable)

        # 单次替换，已代入的值不会被再次解析
        replacements = {**text_replacements, **self.partial_variables}
        content = self._pattern.sub(lambda match: replacements[match.group(1)], self.template)
        return Message(content=content, message_type=self.message_type)

    def __repr__(self) -> str:
        return f"MessageTemplate(type={self.message_type.value}, variables={self.variables})"


class MessagesPlaceholder:
    """消息占位符，格式化前由消息列表替换"""

    def __init__(self, variable_name: str):
        self.variable_name = variable_name

    def __repr__(self) -> str:
        return f"MessagesPlaceholder('{self.variable_name}')"


PromptItem = Union[Message, MessageTemplate, MessagesPlaceholder]


class Prompt:
    """渲染完成、可直接发送给 LLM 的消息序列"""

    def __init__(self, messages: list[Message]):
        self.messages = messages

    def to_chat_messages(self) -> list[Message]:
        return list(self.messages)

    def to_string(self) -> str:
        return messages_to_string(self.messages)

    def __len__(self) -> int:
        return len(self.messages)


class PromptTemplate:
    """Prompt 模板

    由字面消息、消息模板、消息占位符按顺序组成
    """

    def __init__(self, items: list[PromptItem]):
        for item in items:
            if not isinstance(item, (Message, MessageTemplate, MessagesPlaceholder)):
                raise PromptError(f"Unsupported prompt item: {type(item).__name__}")
        self.items: list[PromptItem] = list(items)

    @classmethod
    def from_template(
        cls,
        template: str,
        template_format: TemplateFormatEnum = TemplateFormatEnum.fstring,
        message_type: MessageTypeEnum = MessageTypeEnum.human,
    ) -> "PromptTemplate":
        """由单条消息模板创建"""
        return cls([MessageTemplate(message_type, template, template_format)])

    @classmethod
    def from_messages(cls, *items: PromptItem) -> "PromptTemplate":
        return cls(list(items))

    def variables(self) -> set[str]:
        """所有消息模板声明的变量"""
        return {
            variable
            for item in self.items
            if isinstance(item, MessageTemplate)
            for variable in item.variables
        }

    def placeholders(self) -> set[str]:
        """所有占位符名称"""
        return {item.variable_name for item in self.items if isinstance(item, MessagesPlaceholder)}

    def replace_placeholder(self, replacements: dict[str, list[Message]]) -> "PromptTemplate":
        """返回新模板，匹配的占位符被展开为消息，未匹配的保留

        Args:
            replacements: 占位符名称到消息列表的映射

        Returns:
            新的 PromptTemplate
        """
        items: list[PromptItem] = []
        for item in self.items:
            if isinstance(item, MessagesPlaceholder) and item.variable_name in replacements:
                items.extend(replacements[item.variable_name])
            else:
                items.append(item)
        return PromptTemplate(items)

    def format(self, input_variables: InputVariables) -> Prompt:
        """渲染为 Prompt

        未替换的占位符被丢弃

        Args:
            input_variables: 输入变量

        Returns:
            Prompt

        Raises:
            MissingInputVariableError: 缺少声明的变量
        """
        text_replacements = input_variables.text_replacements
        for variable in sorted(self.variables()):
            if variable not in text_replacements:
                logger.debug(f"Prompt format failed - missing variable: {variable}")
                raise MissingInputVariableError(variable)

        messages: list[Message] = []
        for item in self.items:
            if isinstance(item, Message):
                messages.append(item)
            elif isinstance(item, MessageTemplate):
                messages.append(item.format(text_replacements))

        return Prompt(messages)

    def __repr__(self) -> str:
        return f"PromptTemplate(items={self.items})"


__all__ = [
    "TemplateFormatEnum",
    "InputVariables",
    "MessageTemplate",
    "MessagesPlaceholder",
    "PromptItem",
    "Prompt",
    "PromptTemplate",
]
