"""
全局 fixtures

测试默认只使用脚本化的替身实现，真实 provider 的冒烟测试需要设置环境变量
"""

import os

import pytest

from core.logger import LogLevelEnum, setup_loguru
from ext.llm.chain import tool
from ext.llm.types import Document, TokenUsage
from tests.fakes import KeywordEmbedder, ScriptedLLM, StaticRetriever

OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL_NAME = os.getenv("OPENAI_MODEL_NAME")

# 跳过测试的条件
skip_if_no_api_key = pytest.mark.skipif(not OPENAI_API_KEY, reason="OPENAI_API_KEY not set in environment")


@pytest.fixture(scope="session", autouse=True)
def setup_logging():
    """测试期间输出 debug 日志"""
    setup_loguru(LogLevelEnum.DEBUG)


@pytest.fixture
def ok_llm():
    """总是返回 OK 的 LLM"""
    return ScriptedLLM(["OK"])


@pytest.fixture
def token_usage():
    return TokenUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15)


@pytest.fixture
def qa_documents():
    """四条固定的问答文档"""
    return [
        Document(
            page_content="Question: Which is the favorite text editor of luis\nAnswer: Nvim",
            metadata={"source": "faq"},
        ),
        Document(
            page_content="Question: How old is Luis\nAnswer: 24",
            metadata={"source": "faq"},
        ),
        Document(
            page_content="Question: Where do luis live\nAnswer: Peru",
            metadata={"source": "faq"},
        ),
        Document(
            page_content="Question: What's his favorite food\nAnswer: Pan con chicharron",
            metadata={"source": "faq"},
        ),
    ]


@pytest.fixture
def qa_retriever(qa_documents):
    return StaticRetriever(qa_documents)


@pytest.fixture
def keyword_embedder():
    return KeywordEmbedder(["rust", "python", "database", "vector"])


@pytest.fixture
def calculator_tool():
    """固定返回 25 的计算器工具"""

    @tool(name="Calculator", description="Usefull to make calculations")
    def calculator(expression: str) -> str:
        return "25"

    return calculator


@pytest.fixture
def weather_tool():
    """示例天气工具"""

    @tool
    async def get_weather(location: str, unit: str = "celsius") -> dict:
        """Get the current weather for a location"""
        return {"location": location, "temperature": 22, "unit": unit}

    return get_weather
