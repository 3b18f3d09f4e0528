"""Event types for the message bus."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class InboundMessage:
    """Message received from a channel (web chat, chat bot, cron)."""

    conversation_id: str
    channel: str  # webchat, telegram, cron
    profile: str
    content: str
    role: Literal["user"] = "user"
    sender_id: str = "user"
    id: str = field(default_factory=_new_id)
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: dict[str, Any] = field(default_factory=dict)  # Channel-specific data


@dataclass
class OutboundMessage:
    """Final composed assistant message for one turn (message-complete)."""

    conversation_id: str
    channel: str
    profile: str
    content: str
    role: Literal["assistant"] = "assistant"
    id: str = field(default_factory=_new_id)
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class StreamChunk:
    """Partial assistant output, emitted as soon as the model produces it."""

    conversation_id: str
    channel: str
    chunk: str
    seq: int = 0  # Monotonic per turn


@dataclass
class StreamEnd:
    """Emitted exactly once per turn, before the final OutboundMessage."""

    conversation_id: str
    channel: str


@dataclass
class ToolActivity:
    """Tool invocation lifecycle notice (started / completed)."""

    conversation_id: str
    channel: str
    invocation_id: str
    tool: str
    status: Literal["started", "completed"]
    arguments: dict[str, Any] = field(default_factory=dict)
    result: str | None = None


@dataclass
class ApprovalRequest:
    """Asks an external surface to approve or deny a sensitive tool call."""

    invocation_id: str
    description: str
    conversation_id: str = ""
    channel: str = ""
    timeout_seconds: float = 0.0


@dataclass
class ApprovalResponse:
    """Answer to an ApprovalRequest, may arrive from any channel."""

    invocation_id: str
    approved: bool
    channel: str = ""

