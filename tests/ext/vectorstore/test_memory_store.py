"""
内存向量存储测试

使用关键词向量（rust / python / database / vector），相似度结果可预测
"""

import pytest

from ext.llm.chain import ConversationalRetrievalChain
from ext.llm.types import Document
from ext.vectorstore import (
    EmbeddingDimensionError,
    InMemoryVectorStore,
    VecStoreOptions,
    VectorStoreError,
    VectorStoreRetriever,
)
from ext.vectorstore.providers.memory import cosine_similarity, match_filters
from tests.fakes import KeywordEmbedder, ScriptedLLM

import numpy as np


@pytest.fixture
def documents():
    return [
        Document(page_content="Rust systems programming", metadata={"lang": "rust"}),
        Document(page_content="Python data scripts", metadata={"lang": "python"}),
        Document(page_content="Python and Rust bindings", metadata={"lang": "mixed"}),
        Document(page_content="Vector database internals", metadata={"lang": "none"}),
    ]


@pytest.fixture
async def store(keyword_embedder, documents):
    vector_store = InMemoryVectorStore(keyword_embedder)
    await vector_store.aadd_documents(documents)
    return vector_store


class TestInMemoryVectorStore:
    """测试写入与检索"""

    @pytest.mark.asyncio
    async def test_add_documents(self, keyword_embedder, documents):
        """测试写入返回唯一 ID"""
        vector_store = InMemoryVectorStore(keyword_embedder)
        ids = await vector_store.aadd_documents(documents)

        assert len(ids) == 4
        assert len(set(ids)) == 4
        assert vector_store.count() == 4
        assert keyword_embedder.document_calls == 1
        assert await vector_store.aadd_documents([]) == []
        print(f"✓ 写入 {len(ids)} 条文档")

    @pytest.mark.asyncio
    async def test_ranking(self, store):
        """测试按相似度降序返回"""
        results = await store.asimilarity_search("rust", limit=2)

        assert [doc.page_content for doc in results] == ["Rust systems programming", "Python and Rust bindings"]
        assert results[0].score == pytest.approx(1.0)
        assert results[1].score == pytest.approx(1 / np.sqrt(2))
        print(f"✓ 分数: {[round(doc.score, 3) for doc in results]}")

    @pytest.mark.asyncio
    async def test_ties_keep_insertion_order(self, store):
        """测试分数相同时保持写入顺序"""
        results = await store.asimilarity_search("hello", limit=4)

        assert [doc.metadata["lang"] for doc in results] == ["rust", "python", "mixed", "none"]
        assert all(doc.score == 0.0 for doc in results)

    @pytest.mark.asyncio
    async def test_score_threshold(self, store):
        results = await store.asimilarity_search("rust", limit=10, options=VecStoreOptions(score_threshold=0.5))
        assert [doc.metadata["lang"] for doc in results] == ["rust", "mixed"]

    @pytest.mark.asyncio
    async def test_filters(self, store):
        """测试元数据过滤"""
        results = await store.asimilarity_search("rust", limit=3, options=VecStoreOptions(filters={"lang": "python"}))

        assert [doc.page_content for doc in results] == ["Python data scripts"]
        assert results[0].score == 0.0

    @pytest.mark.asyncio
    async def test_limit(self, store):
        assert await store.asimilarity_search("rust", limit=0) == []
        assert len(await store.asimilarity_search("rust", limit=100)) == 4

    @pytest.mark.asyncio
    async def test_name_space(self, store, keyword_embedder):
        """测试命名空间隔离"""
        options = VecStoreOptions(name_space="team-a")
        await store.aadd_documents([Document(page_content="Vector search in Rust")], options)

        scoped = await store.asimilarity_search("vector", limit=5, options=options)
        assert [doc.page_content for doc in scoped] == ["Vector search in Rust"]
        assert store.count("team-a") == 1
        assert store.count() == 4
        assert await store.asimilarity_search("x", limit=5, options=VecStoreOptions(name_space="empty")) == []
        print("✓ 命名空间隔离")

    @pytest.mark.asyncio
    async def test_stored_documents_are_copies(self, keyword_embedder):
        """测试写入后修改原文档不影响存储"""
        document = Document(page_content="Rust", metadata={"tag": "a"})
        vector_store = InMemoryVectorStore(keyword_embedder)
        await vector_store.aadd_documents([document])
        document.metadata["tag"] = "b"

        results = await vector_store.asimilarity_search("rust", limit=1)
        assert results[0].metadata == {"tag": "a"}
        assert document.score == 0.0

    @pytest.mark.asyncio
    async def test_embedder_override(self, store):
        """测试通过参数覆盖 Embedder"""
        other = KeywordEmbedder(["data", "python", "rust", "vector"])
        results = await store.asimilarity_search("data", limit=1, options=VecStoreOptions(embedder=other))

        assert other.query_calls == 1
        assert results[0].page_content == "Rust systems programming"

    @pytest.mark.asyncio
    async def test_dimension_mismatch(self, store):
        """测试向量维度不一致"""
        small = KeywordEmbedder(["rust", "python"])

        with pytest.raises(EmbeddingDimensionError) as exc_info:
            await store.asimilarity_search("rust", limit=1, options=VecStoreOptions(embedder=small))
        assert (exc_info.value.expected, exc_info.value.actual) == (4, 2)

        with pytest.raises(EmbeddingDimensionError):
            await store.aadd_documents([Document(page_content="rust")], VecStoreOptions(embedder=small))
        assert store.count() == 4
        print(f"✓ {exc_info.value}")

    @pytest.mark.asyncio
    async def test_embedder_count_mismatch(self, documents):
        class DroppingEmbedder(KeywordEmbedder):
            async def aembed_documents(self, texts: list[str]) -> list[list[float]]:
                return (await super().aembed_documents(texts))[:-1]

        vector_store = InMemoryVectorStore(DroppingEmbedder(["rust"]))
        with pytest.raises(VectorStoreError):
            await vector_store.aadd_documents(documents)


class TestVectorStoreRetriever:
    """测试检索器适配"""

    @pytest.mark.asyncio
    async def test_retrieve(self, store):
        retriever = VectorStoreRetriever(store, num_docs=1, options=VecStoreOptions(filters={"lang": "mixed"}))
        documents = await retriever.aget_relevant_documents("python")

        assert [doc.page_content for doc in documents] == ["Python and Rust bindings"]

    @pytest.mark.asyncio
    async def test_retrieval_chain(self, store):
        """测试与检索对话链组合"""
        llm = ScriptedLLM(["It is a systems language"])
        chain = ConversationalRetrievalChain.from_llm(llm, VectorStoreRetriever(store, num_docs=1))

        result = await chain.acall({"question": "Tell me about rust"})

        assert result.generation == "It is a systems language"
        assert "Rust systems programming" in llm.last_prompt[-1].content
        assert "Python data scripts" not in llm.last_prompt[-1].content
        print(f"✓ 回答: {result.generation}")


def test_cosine_similarity():
    matrix = np.array([[1.0, 0.0], [0.0, 2.0], [0.0, 0.0]])
    scores = cosine_similarity(np.array([1.0, 0.0]), matrix)

    assert scores.tolist() == [1.0, 0.0, 0.0]
    assert cosine_similarity(np.zeros(2), matrix).tolist() == [0.0, 0.0, 0.0]


def test_match_filters():
    assert match_filters({"a": 1}, None)
    assert match_filters({"a": 1, "b": 2}, {"a": 1})
    assert not match_filters({"a": 1}, {"a": 2})
    assert not match_filters({}, {"a": None})
