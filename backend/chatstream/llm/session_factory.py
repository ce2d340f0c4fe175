"""
Chat session factory with singleton pattern.

WHAT: Shared StreamingChatSession for the HTTP relay
WHY: Reuse one connection pool across requests instead of one per call
HOW: Lazily created module singleton, closed on shutdown, resettable in tests
"""

from .session import StreamingChatSession
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Singleton instance
_session_instance: StreamingChatSession | None = None


def get_session() -> StreamingChatSession:
    """
    Get the shared chat session.

    Returns:
        StreamingChatSession backed by an owned httpx.AsyncClient
    """
    global _session_instance

    if _session_instance is None:
        _session_instance = StreamingChatSession()
        logger.info("Chat session initialized")

    return _session_instance


async def close_session() -> None:
    """Close and drop the shared session (application shutdown)."""
    global _session_instance

    if _session_instance is not None:
        await _session_instance.close()
        _session_instance = None
        logger.info("Chat session closed")


def reset_session() -> None:
    """Drop the singleton without closing it (useful for testing)."""
    global _session_instance
    _session_instance = None
