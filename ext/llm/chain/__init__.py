"""
Chain 模块

提供 LLM 链式调用、检索增强对话、Agent 和工具管理能力

核心特性：
- 统一的 Chain 接口（acall / ainvoke / aexecute / astream）
- Prompt Template（f-string / jinja2，消息占位符）
- Memory 管理（带锁的对话历史）
- LLM / Conversational / StuffDocuments / CondenseQuestion / ConversationalRetrieval / Sequential / SQL Chain
- Tool 定义和执行
- Agent（ConversationalAgent, OpenAIToolsAgent）与 AgentExecutor
- 输出解析器
"""

# 核心基础
from ext.llm.chain.base import DEFAULT_OUTPUT_KEY, DEFAULT_RESULT_KEY, Chain

# Prompt
from ext.llm.chain.prompt import (
    InputVariables,
    MessagesPlaceholder,
    MessageTemplate,
    Prompt,
    PromptTemplate,
    TemplateFormatEnum,
)

# Memory
from ext.llm.chain.memory import (
    BaseMemory,
    DummyMemory,
    SimpleMemory,
    WindowBufferMemory,
)

# Chain
from ext.llm.chain.llm_chain import LLMChain
from ext.llm.chain.conversational import ConversationalChain
from ext.llm.chain.stuff_documents import StuffDocumentsChain
from ext.llm.chain.condense_question import CondenseQuestionChain
from ext.llm.chain.conversational_retrieval import ConversationalRetrievalChain
from ext.llm.chain.sequential import SequentialChain
from ext.llm.chain.sql_database import SQLDatabase, SQLDatabaseChain, TortoiseSQLDatabase

# Retriever
from ext.llm.chain.retriever import BaseRetriever

# Tool
from ext.llm.chain.tool import BaseTool, Tool, tool

# Agent
from ext.llm.chain.types import AgentAction, AgentEvent, AgentFinish, AgentStep
from ext.llm.chain.agent import BaseAgent, ConversationalAgent, OpenAIToolsAgent
from ext.llm.chain.executor import AgentExecutor

# Output Parser
from ext.llm.chain.output_parser import (
    BaseOutputParser,
    ChatOutputParser,
    JsonOutputParser,
    MarkdownParser,
    StrOutputParser,
)

# Exceptions
from ext.llm.chain.exceptions import (
    AgentError,
    ChainError,
    DatabaseError,
    MissingInputVariableError,
    MissingObjectError,
    OutputParserError,
    PromptError,
    RetrieverError,
    SerdeError,
    StreamNotSupportedError,
    ToolExecutionError,
    ToolNotFoundError,
)

__all__ = [
    # 核心
    "DEFAULT_OUTPUT_KEY",
    "DEFAULT_RESULT_KEY",
    "Chain",
    # Prompt
    "InputVariables",
    "MessagesPlaceholder",
    "MessageTemplate",
    "Prompt",
    "PromptTemplate",
    "TemplateFormatEnum",
    # Memory
    "BaseMemory",
    "DummyMemory",
    "SimpleMemory",
    "WindowBufferMemory",
    # Chain
    "LLMChain",
    "ConversationalChain",
    "StuffDocumentsChain",
    "CondenseQuestionChain",
    "ConversationalRetrievalChain",
    "SequentialChain",
    "SQLDatabase",
    "SQLDatabaseChain",
    "TortoiseSQLDatabase",
    # Retriever
    "BaseRetriever",
    # Tool
    "BaseTool",
    "Tool",
    "tool",
    # Agent
    "AgentAction",
    "AgentEvent",
    "AgentFinish",
    "AgentStep",
    "BaseAgent",
    "ConversationalAgent",
    "OpenAIToolsAgent",
    "AgentExecutor",
    # Output Parser
    "BaseOutputParser",
    "ChatOutputParser",
    "JsonOutputParser",
    "MarkdownParser",
    "StrOutputParser",
    # Exceptions
    "AgentError",
    "ChainError",
    "DatabaseError",
    "MissingInputVariableError",
    "MissingObjectError",
    "OutputParserError",
    "PromptError",
    "RetrieverError",
    "SerdeError",
    "StreamNotSupportedError",
    "ToolExecutionError",
    "ToolNotFoundError",
]
