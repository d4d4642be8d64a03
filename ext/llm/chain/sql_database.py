"""
SQL Database Chain

自然语言问题 → 生成 SQL → 执行 → 根据结果回答

数据库访问基于 tortoise-orm 的连接（ext.ext_tortoise 注册）
"""

from abc import ABC, abstractmethod
from typing import Any

from loguru import logger
from tortoise import connections
from tortoise.backends.base.client import BaseDBAsyncClient

from ext.llm.base import BaseLLMModel
from ext.llm.chain.base import DEFAULT_OUTPUT_KEY, DEFAULT_RESULT_KEY, Chain, ChainInput
from ext.llm.chain.exceptions import DatabaseError, MissingInputVariableError
from ext.llm.chain.llm_chain import LLMChain
from ext.llm.chain.output_parser import MarkdownParser
from ext.llm.chain.prompt import InputVariables, PromptTemplate, TemplateFormatEnum
from ext.llm.chain.prompts import DEFAULT_SQL_SUFFIX, DEFAULT_SQL_TEMPLATE
from ext.llm.options import CallOptions
from ext.llm.types import GenerateResult, TokenUsage
from util.general import truncate_content

STOP_WORD = "\nSQLResult:"
QUERY_PREFIX_WITH = "\nSQLQuery:"
SQL_CHAIN_INPUT_KEY_QUERY = "query"
SQL_CHAIN_INPUT_KEY_TABLE_NAMES = "table_names_to_use"


class SQLDatabase(ABC):
    """SQL 数据库抽象"""

    @abstractmethod
    def dialect(self) -> str:
        """SQL 方言（sqlite / postgres / mysql ...）"""

    @abstractmethod
    async def atable_names(self) -> list[str]:
        """所有可用的表名"""

    @abstractmethod
    async def atable_info(self, tables: list[str]) -> str:
        """表结构与示例数据描述

        Args:
            tables: 表名列表，为空时返回所有表
        """

    @abstractmethod
    async def aquery(self, sql: str) -> str:
        """执行 SQL 并以文本形式返回结果"""


def format_rows(rows: list[dict[str, Any]]) -> str:
    """将查询结果格式化为制表符分隔的文本（首行为列名）"""
    if not rows:
        return ""
    columns = list(rows[0])
    lines = ["\t".join(columns)]
    lines.extend("\t".join(str(row.get(column)) for column in columns) for row in rows)
    return "\n".join(lines)


class TortoiseSQLDatabase(SQLDatabase):
    """基于 tortoise-orm 连接的 SQL 数据库

    使用示例:
        >>> await local_configs.extensions.database.register()
        >>> database = TortoiseSQLDatabase("default")
        >>> chain = SQLDatabaseChain.from_llm(llm, database)
    """

    def __init__(self, connection_name: str = "default", sample_rows: int = 3, ignore_tables: list[str] | None = None):
        """初始化

        Args:
            connection_name: tortoise 连接名称
            sample_rows: 表描述中附带的示例行数
            ignore_tables: 不暴露给模型的表
        """
        self.connection_name = connection_name
        self.sample_rows = sample_rows
        self.ignore_tables = set(ignore_tables or [])

    @property
    def connection(self) -> BaseDBAsyncClient:
        return connections.get(self.connection_name)

    def dialect(self) -> str:
        return self.connection.capabilities.dialect

    def _quote(self, name: str) -> str:
        if self.dialect() == "mysql":
            return f"`{name}`"
        return '"' + name.replace('"', '""') + '"'

    async def _execute(self, sql: str) -> list[dict[str, Any]]:
        logger.debug(f"SQL execute - connection: {self.connection_name}, sql: {truncate_content(sql)}")
        try:
            return await self.connection.execute_query_dict(sql)
        except Exception as e:
            logger.error(f"SQL execute error - sql: {truncate_content(sql)}, error: {e}")
            raise DatabaseError(f"Failed to execute query: {e}") from e

    async def atable_names(self) -> list[str]:
        dialect = self.dialect()
        if dialect == "sqlite":
            sql = "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        elif dialect == "mysql":
            sql = (
                "SELECT table_name AS name FROM information_schema.tables "
                "WHERE table_schema = DATABASE() ORDER BY table_name"
            )
        else:
            sql = (
                "SELECT table_name AS name FROM information_schema.tables "
                "WHERE table_schema = current_schema() ORDER BY table_name"
            )
        rows = await self._execute(sql)
        return [row["name"] for row in rows if row["name"] not in self.ignore_tables]

    async def _create_statement(self, table: str) -> str:
        if self.dialect() == "sqlite":
            escaped = table.replace("'", "''")
            rows = await self._execute(f"SELECT sql FROM sqlite_master WHERE type='table' AND name='{escaped}'")
            return rows[0]["sql"] if rows else ""

        escaped = table.replace("'", "''")
        rows = await self._execute(
            "SELECT column_name, data_type FROM information_schema.columns "
            f"WHERE table_name = '{escaped}' ORDER BY ordinal_position",
        )
        columns = ",\n".join(f"\t{row['column_name']} {row['data_type']}" for row in rows)
        return f"CREATE TABLE {table} (\n{columns}\n)"

    async def atable_info(self, tables: list[str]) -> str:
        available = await self.atable_names()
        if tables:
            unknown = [table for table in tables if table not in available]
            if unknown:
                raise DatabaseError(f"Tables not found in database: {unknown}")
            selected = tables
        else:
            selected = available

        infos: list[str] = []
        for table in selected:
            info = await self._create_statement(table)
            if self.sample_rows > 0:
                rows = await self._execute(f"SELECT * FROM {self._quote(table)} LIMIT {self.sample_rows}")
                info += f"\n\n/*\n{self.sample_rows} rows from {table} table:\n{format_rows(rows)}\n*/"
            infos.append(info)
        return "\n\n".join(infos)

    async def aquery(self, sql: str) -> str:
        return format_rows(await self._execute(sql))


class SQLDatabaseChain(Chain):
    """SQL 问答 Chain

    输入：
        query: 自然语言问题（必需）
        table_names_to_use: 逗号分隔的表名（可选）

    流程：
        1. 以 query + "\\nSQLQuery:" 调用 LLM 生成 SQL（遇到 "\\nSQLResult:" 停止）
        2. 执行 SQL
        3. 将 SQL 与结果拼接后再次调用 LLM，取 "Answer:" 之后的内容作为回答
    """

    def __init__(
        self,
        llm_chain: LLMChain,
        database: SQLDatabase,
        top_k: int = 5,
        output_key: str = DEFAULT_OUTPUT_KEY,
    ):
        self.llm_chain = llm_chain
        self.database = database
        self.top_k = top_k
        self.output_key = output_key
        self._sql_parser = MarkdownParser()

    @classmethod
    def from_llm(
        cls,
        llm: BaseLLMModel,
        database: SQLDatabase,
        top_k: int = 5,
        prompt: PromptTemplate | None = None,
        options: CallOptions | None = None,
    ) -> "SQLDatabaseChain":
        """创建 SQL 问答 Chain

        Args:
            llm: LLM 模型
            database: 数据库
            top_k: 查询结果的默认条数上限
            prompt: 自定义模板（jinja2：dialect / top_k / table_info / input）
            options: 调用参数
        """
        prompt = prompt or PromptTemplate.from_template(
            DEFAULT_SQL_TEMPLATE + DEFAULT_SQL_SUFFIX, TemplateFormatEnum.jinja2,
        )
        stop_options = CallOptions(stop_words=[STOP_WORD])
        if options is not None:
            stop_options = stop_options.merge_options(options)
        return cls(LLMChain(prompt, llm, options=stop_options), database, top_k=top_k)

    def _extract_sql(self, generation: str) -> str:
        sql = self._sql_parser.parse(generation)
        return sql.split(STOP_WORD.strip())[0].strip()

    @staticmethod
    def _extract_answer(generation: str) -> str:
        paragraph = generation.strip().split("\n\n")[0]
        parts = paragraph.split("Answer:", 1)
        return (parts[1] if len(parts) > 1 else parts[0]).strip()

    async def acall(self, input_variables: ChainInput) -> GenerateResult:
        input_variables = InputVariables.coerce(input_variables)
        query = input_variables.get_text(SQL_CHAIN_INPUT_KEY_QUERY)
        if query is None:
            raise MissingInputVariableError(SQL_CHAIN_INPUT_KEY_QUERY)

        table_names = input_variables.get_text(SQL_CHAIN_INPUT_KEY_TABLE_NAMES) or ""
        tables = [name.strip() for name in table_names.split(",") if name.strip()]
        table_info = await self.database.atable_info(tables)

        llm_inputs = InputVariables(
            {
                "input": query + QUERY_PREFIX_WITH,
                "top_k": str(self.top_k),
                "dialect": self.database.dialect(),
                "table_info": table_info,
            },
        )
        sql_result = await self.llm_chain.acall(llm_inputs)
        sql = self._extract_sql(sql_result.generation)
        logger.debug(f"SQLDatabaseChain generated sql: {truncate_content(sql)}")

        query_result = await self.database.aquery(sql)

        llm_inputs.insert_text("input", f"{query}{QUERY_PREFIX_WITH}{sql}{STOP_WORD}{query_result}")
        answer_result = await self.llm_chain.acall(llm_inputs)

        return GenerateResult(
            generation=self._extract_answer(answer_result.generation),
            tokens=TokenUsage.accumulate(sql_result.tokens, answer_result.tokens),
        )

    def get_input_keys(self) -> list[str]:
        return [SQL_CHAIN_INPUT_KEY_QUERY, SQL_CHAIN_INPUT_KEY_TABLE_NAMES]

    def get_output_keys(self) -> list[str]:
        return [self.output_key, DEFAULT_RESULT_KEY]


__all__ = [
    "STOP_WORD",
    "QUERY_PREFIX_WITH",
    "SQLDatabase",
    "TortoiseSQLDatabase",
    "SQLDatabaseChain",
    "format_rows",
]
