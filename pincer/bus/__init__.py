"""Message bus module for decoupled channel-agent communication."""

from pincer.bus.events import (
    ApprovalRequest,
    ApprovalResponse,
    InboundMessage,
    OutboundMessage,
    StreamChunk,
    StreamEnd,
    ToolActivity,
)
from pincer.bus.queue import MessageBus

__all__ = [
    "MessageBus",
    "InboundMessage",
    "OutboundMessage",
    "StreamChunk",
    "StreamEnd",
    "ToolActivity",
    "ApprovalRequest",
    "ApprovalResponse",
]
