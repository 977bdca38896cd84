"""
Network Layer

HTTP client and retry-with-backoff primitive shared by config sync and
event delivery.
"""

from .client import NetworkClient, NOT_MODIFIED
from .retry import RetryingTransport

__all__ = ["NetworkClient", "NOT_MODIFIED", "RetryingTransport"]
