"""
Sync package: timer-driven mirroring of agent content from tool servers.
"""

from .content_sync_engine import (
    ContentSyncEngine,
    ContentSource,
    RetryPolicy,
    DEFAULT_CONTENT_SOURCES,
    parse_lines,
    parse_notepad,
)

__all__ = [
    "ContentSyncEngine",
    "ContentSource",
    "RetryPolicy",
    "DEFAULT_CONTENT_SOURCES",
    "parse_lines",
    "parse_notepad",
]
