"""Agent memory store."""

from capital_agent.memory.store import MemoryStore

__all__ = ["MemoryStore"]
