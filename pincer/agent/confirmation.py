"""Human approval handshake for sensitive tool calls."""

import asyncio
from dataclasses import dataclass

from loguru import logger

from pincer.agent.tools.base import InvocationState, ToolContext
from pincer.bus.events import ApprovalRequest, ApprovalResponse
from pincer.bus.queue import MessageBus
from pincer.errors import ApprovalPendingError


@dataclass
class PendingConfirmation:
    invocation_id: str
    future: asyncio.Future
    deadline: float  # event loop time
    timer: asyncio.TimerHandle | None = None
    timed_out: bool = False


class ConfirmationGate:
    """
    Per-invocation approval with a timeout race.

    Each request registers exactly one pending entry and publishes an
    ApprovalRequest. Whichever comes first, an ApprovalResponse or the
    timer, pops the entry and settles it; the loser finds nothing to do.
    All of this runs on the event loop thread, so popping the entry is the
    single point where the race is decided.
    """

    def __init__(
        self,
        bus: MessageBus,
        timeout_seconds: float = 40.0,
        default_on_timeout: bool = False,
    ):
        self.bus = bus
        self.timeout_seconds = timeout_seconds
        self.default_on_timeout = default_on_timeout
        self._pending: dict[str, PendingConfirmation] = {}
        bus.subscribe(ApprovalResponse, self._on_response)

    async def request_approval(
        self,
        invocation_id: str,
        description: str,
        context: ToolContext | None = None,
    ) -> bool:
        """Ask for approval and wait until it is granted, denied or times out."""
        if invocation_id in self._pending:
            raise ApprovalPendingError(f"Approval already pending for invocation {invocation_id}")

        loop = asyncio.get_running_loop()
        entry = PendingConfirmation(
            invocation_id=invocation_id,
            future=loop.create_future(),
            deadline=loop.time() + self.timeout_seconds,
        )
        entry.timer = loop.call_later(self.timeout_seconds, self._expire, invocation_id)
        self._pending[invocation_id] = entry

        invocation = context.invocation if context else None
        if invocation:
            invocation.state = InvocationState.AWAITING_APPROVAL

        try:
            await self.bus.publish(ApprovalRequest(
                invocation_id=invocation_id,
                description=description,
                conversation_id=context.conversation_id if context else "",
                channel=context.channel if context else "",
                timeout_seconds=self.timeout_seconds,
            ))
            approved = await entry.future
        finally:
            # Only reached with the entry still present if we were cancelled.
            if self._pending.get(invocation_id) is entry:
                del self._pending[invocation_id]
                entry.timer.cancel()

        if invocation:
            if entry.timed_out:
                invocation.state = InvocationState.TIMED_OUT
            else:
                invocation.state = InvocationState.APPROVED if approved else InvocationState.DENIED
        return approved

    def resolve(self, invocation_id: str, approved: bool) -> bool:
        """
        Settle a pending request.

        Returns False when nothing is pending under that id, e.g. a response
        arriving after the timeout already denied it.
        """
        entry = self._pending.pop(invocation_id, None)
        if entry is None:
            logger.debug(f"Ignoring approval for {invocation_id}: not pending")
            return False
        entry.timer.cancel()
        if not entry.future.done():
            entry.future.set_result(approved)
        logger.info(f"Invocation {invocation_id} {'approved' if approved else 'denied'}")
        return True

    def _expire(self, invocation_id: str) -> None:
        entry = self._pending.pop(invocation_id, None)
        if entry is None:
            return
        entry.timed_out = True
        if not entry.future.done():
            entry.future.set_result(self.default_on_timeout)
        logger.warning(f"Approval for {invocation_id} timed out after {self.timeout_seconds}s")

    async def _on_response(self, response: ApprovalResponse) -> None:
        self.resolve(response.invocation_id, response.approved)

    def deny_all(self) -> int:
        """Deny every pending request, used on shutdown."""
        ids = list(self._pending)
        for invocation_id in ids:
            self.resolve(invocation_id, False)
        return len(ids)

    def is_pending(self, invocation_id: str) -> bool:
        return invocation_id in self._pending

    @property
    def pending_count(self) -> int:
        return len(self._pending)
