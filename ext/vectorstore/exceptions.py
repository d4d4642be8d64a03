"""
向量存储异常
"""


class VectorStoreError(Exception):
    """向量存储基础异常"""


class EmbeddingDimensionError(VectorStoreError):
    """向量维度不一致"""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Embedding dimension mismatch: expected {expected}, got {actual}")


__all__ = [
    "VectorStoreError",
    "EmbeddingDimensionError",
]
