"""Agent core module."""

from pincer.agent.context import ContextBuilder
from pincer.agent.loop import AgentLoop

__all__ = ["AgentLoop", "ContextBuilder"]
