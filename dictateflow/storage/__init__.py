"""Durable session storage."""

from .session_store import AbstractSessionStore, InMemorySessionStore, FileSessionStore

__all__ = [
    "AbstractSessionStore",
    "InMemorySessionStore",
    "FileSessionStore",
]
