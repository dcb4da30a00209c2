"""
Errors - Exception taxonomy for the Grey Seal pipeline

- TransientBackendError: embedding/generation/content backends unreachable or timed out
- ValidationError: malformed input that the caller must fix
- StorageError: vector store or repository read/write failure
- DecodeError: malformed message-bus payload
"""


class GreySealError(Exception):
    """Base class for all Grey Seal errors"""
    pass


class TransientBackendError(GreySealError):
    """An external backend was unreachable, timed out or returned garbage (retryable)"""
    pass


class ValidationError(GreySealError):
    """Caller supplied invalid input (not retryable)"""
    pass


class DimensionMismatchError(ValidationError):
    """Vector length does not match the configured dimensionality"""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Vector dimension mismatch: expected {expected}, got {actual}")


class StorageError(GreySealError):
    """Vector store or repository failure (retryable, never swallowed)"""
    pass


class NotFoundError(StorageError):
    """Requested record does not exist"""
    pass


class DecodeError(GreySealError):
    """Message-bus payload could not be decoded into a domain entity"""
    pass


class OperationCancelled(GreySealError):
    """The caller cancelled the operation or its deadline expired"""
    pass


class SecurityError(ValidationError):
    """Custom exception for security violations"""
    pass
