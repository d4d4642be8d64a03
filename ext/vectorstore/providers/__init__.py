from ext.vectorstore.providers.memory import InMemoryVectorStore

__all__ = ["InMemoryVectorStore"]
