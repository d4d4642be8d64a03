"""
向量存储检索器
"""

from ext.llm.chain.retriever import BaseRetriever
from ext.llm.types import Document
from ext.vectorstore.base import VecStoreOptions, VectorStore


class VectorStoreRetriever(BaseRetriever):
    """将 VectorStore 适配为 Retriever

    使用示例:
        >>> retriever = VectorStoreRetriever(store, num_docs=4)
        >>> chain = ConversationalRetrievalChain.from_llm(llm, retriever)
    """

    def __init__(self, vstore: VectorStore, num_docs: int = 4, options: VecStoreOptions | None = None):
        self.vstore = vstore
        self.num_docs = num_docs
        self.options = options or VecStoreOptions()

    async def aget_relevant_documents(self, query: str) -> list[Document]:
        return await self.vstore.asimilarity_search(query, self.num_docs, self.options)


__all__ = [
    "VectorStoreRetriever",
]
