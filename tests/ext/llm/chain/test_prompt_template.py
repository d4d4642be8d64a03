"""
测试 Prompt Template

变量替换（f-string / jinja2）、缺失变量、占位符展开、字典输入分拣
"""

import pytest

from ext.llm.chain import (
    InputVariables,
    MessagesPlaceholder,
    MessageTemplate,
    MissingInputVariableError,
    PromptError,
    PromptTemplate,
    SerdeError,
    TemplateFormatEnum,
)
from ext.llm.types import Document, Message, MessageTypeEnum


class TestMessageTemplate:
    """测试消息模板"""

    def test_fstring_substitution(self):
        """测试单花括号变量替换"""
        template = PromptTemplate.from_template("Hello {name}!")
        prompt = template.format(InputVariables({"name": "world"}))

        assert len(prompt) == 1
        assert prompt.messages[0].content == "Hello world!"
        assert prompt.messages[0].message_type == MessageTypeEnum.human
        print(f"✓ 渲染结果: {prompt.messages[0].content}")

    def test_missing_variable(self):
        """测试缺少变量时报错并给出变量名"""
        template = PromptTemplate.from_template("Hello {name}!")
        with pytest.raises(MissingInputVariableError) as exc_info:
            template.format(InputVariables())

        assert exc_info.value.variable_name == "name"
        print(f"✓ 缺失变量: {exc_info.value}")

    def test_jinja2_substitution(self):
        """测试双花括号变量替换"""
        template = PromptTemplate.from_template("Hi {{user}}", TemplateFormatEnum.jinja2)
        prompt = template.format(InputVariables({"user": "Alice"}))

        assert prompt.messages[0].content == "Hi Alice"
        print("✓ jinja2 渲染成功")

    def test_jinja2_allows_spaces(self):
        """测试 jinja2 变量两侧允许空格"""
        template = MessageTemplate.human("Hi {{ user }} and {{user}}", TemplateFormatEnum.jinja2)
        assert template.variables == ["user"]
        assert template.format({"user": "Bob"}).content == "Hi Bob and Bob"
        print("✓ jinja2 空格变量渲染成功")

    def test_values_are_not_reparsed(self):
        """测试已代入的值不会被再次解析"""
        template = MessageTemplate.human("{a} then {b}")
        message = template.format({"a": "{b}", "b": "B"})

        assert message.content == "{b} then B"
        print("✓ 单次替换")

    def test_variables_in_order(self):
        """测试变量按出现顺序去重"""
        template = MessageTemplate.system("{b} {a} {b}")
        assert template.variables == ["b", "a"]
        print("✓ 变量顺序正确")

    def test_partial_values_stay_literal(self):
        """测试预置变量从声明中移除，且其值中的 {{name}} 原样保留"""
        template = MessageTemplate.from_jinja2(MessageTypeEnum.human, "{{tools}}\nTask: {{input}}")
        bound = template.partial({"tools": "greet {{name}}", "unused": "x"})

        assert bound.variables == ["input"]
        assert template.variables == ["tools", "input"]
        assert bound.format({"input": "hi"}).content == "greet {{name}}\nTask: hi"
        print("✓ 预置变量按原文代入")


class TestPromptTemplate:
    """测试 Prompt 模板"""

    def test_placeholder_expansion(self):
        """测试占位符展开为消息"""
        history = [Message.human("A"), Message.ai("OK")]
        template = PromptTemplate.from_messages(
            Message.system("You are helpful"),
            MessagesPlaceholder("history"),
            MessageTemplate.human("{input}"),
        )

        variables = InputVariables({"input": "B"}, {"history": history})
        prompt = template.replace_placeholder(variables.placeholder_replacements).format(variables)

        assert [message.content for message in prompt.messages] == ["You are helpful", "A", "OK", "B"]
        assert prompt.messages[1].message_type == MessageTypeEnum.human
        assert prompt.messages[2].message_type == MessageTypeEnum.ai
        print(f"✓ 展开后共 {len(prompt)} 条消息")

    def test_unreplaced_placeholder_dropped(self):
        """测试未替换的占位符在格式化时被丢弃"""
        template = PromptTemplate.from_messages(MessagesPlaceholder("history"), MessageTemplate.human("{input}"))
        prompt = template.format(InputVariables({"input": "hello"}))

        assert prompt.to_chat_messages() == [Message.human("hello")]
        print("✓ 未替换的占位符已丢弃")

    def test_replace_placeholder_returns_new_template(self):
        """测试展开占位符不修改原模板"""
        template = PromptTemplate.from_messages(MessagesPlaceholder("history"))
        expanded = template.replace_placeholder({"history": [Message.human("x")]})

        assert template.placeholders() == {"history"}
        assert expanded.placeholders() == set()
        print("✓ 原模板保持不变")

    def test_formatting_completeness(self):
        """测试变量与占位符齐全时格式化必然成功"""
        template = PromptTemplate.from_messages(
            MessageTemplate.system("{role}"),
            MessagesPlaceholder("history"),
            MessageTemplate.human("{{question}} in {{ lang }}", TemplateFormatEnum.jinja2),
        )
        assert template.variables() == {"role", "question", "lang"}
        assert template.placeholders() == {"history"}

        variables = InputVariables(
            {"role": "tutor", "question": "why", "lang": "es"},
            {"history": []},
        )
        prompt = template.replace_placeholder(variables.placeholder_replacements).format(variables)
        assert prompt.to_string() == "system: tutor\nhuman: why in es"
        print("✓ 格式化完整性成立")

    def test_invalid_item(self):
        """测试不支持的模板项"""
        with pytest.raises(PromptError):
            PromptTemplate(["not a message"])  # type: ignore
        print("✓ 非法模板项被拒绝")


class TestInputVariables:
    """测试输入变量"""

    def test_coerce_dict(self):
        """测试字典按值类型分拣"""
        docs = [Document(page_content="doc")]
        history = [Message.human("hi")]
        variables = InputVariables.coerce({"input": "q", "top_k": 3, "history": history, "docs": docs})

        assert variables.get_text("input") == "q"
        assert variables.get_text("top_k") == "3"
        assert variables.placeholder_replacements["history"] == history
        assert variables.document_replacements["docs"] == docs
        assert variables.text_keys() == {"input", "top_k"}
        assert variables.placeholder_keys() == {"history"}
        print(f"✓ 分拣结果: {variables}")

    def test_coerce_invalid_value(self):
        """测试无法识别的值类型"""
        with pytest.raises(SerdeError):
            InputVariables.coerce({"input": {"nested": "dict"}})
        print("✓ 非法值类型被拒绝")

    def test_copy_is_independent(self):
        """测试副本修改不影响原变量"""
        variables = InputVariables({"a": "1"})
        copied = variables.copy()
        copied.insert_text("b", "2")

        assert not variables.contains_text_key("b")
        assert copied.contains_text_key("a")
        print("✓ 副本独立")
