"""Error taxonomy shared by the retrieval, cache and transport layers."""


class NewsRAGError(Exception):
    """Base class for errors raised inside the chat core."""


class EmbeddingUnavailable(NewsRAGError):
    """No embedding could be produced for a text (provider down or misconfigured)."""


class GenerationFailure(NewsRAGError):
    """A generation provider failed to return usable text."""


class CacheUnavailable(NewsRAGError):
    """The durable cache tier cannot be reached."""


class MalformedMessage(NewsRAGError):
    """An inbound WebSocket frame could not be parsed or validated."""


class ConnectionOverload(NewsRAGError):
    """A new connection was refused by admission control."""

    def __init__(self, address: str, reason: str = "Too many connection attempts"):
        super().__init__(f"{reason} from {address}")
        self.address = address
        self.reason = reason


class ServerAtCapacity(ConnectionOverload):
    """The process already serves its maximum number of connections."""

    def __init__(self, address: str):
        super().__init__(address, reason="Server at capacity")


class DimensionMismatch(NewsRAGError, ValueError):
    """Two embedding vectors that must be comparable have different lengths."""

    def __init__(self, expected: int, actual: int):
        super().__init__(f"Embedding dimension mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class RequestTimeout(NewsRAGError, TimeoutError):
    """A client request to the chat API did not complete in time."""

    def __init__(self, message: str = "Request timed out. The server took too long to respond."):
        super().__init__(message)
