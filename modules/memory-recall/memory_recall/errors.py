"""Error types for memory recall."""


class RecallError(Exception):
    """Base class for memory recall errors."""


class DimensionMismatchError(RecallError, ValueError):
    """Two vectors of different length were compared.

    Always a programming error: it is raised, never wrapped in a failed Result.
    """

    def __init__(self, left: int, right: int):
        super().__init__(f"Vector dimensions must match: {left} != {right}")
        self.left = left
        self.right = right


class EmbeddingError(RecallError):
    """The embedding service could not produce a vector."""


class StorageError(RecallError):
    """The memory store could not be read or written."""


class GenerationError(RecallError):
    """The text generation service failed."""
