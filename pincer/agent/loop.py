"""Agent loop: the core processing engine."""

import asyncio
import uuid
from dataclasses import dataclass

from loguru import logger

from pincer.agent.context import ContextBuilder
from pincer.agent.fact_extractor import FactExtractor
from pincer.agent.titles import TitleGenerator
from pincer.agent.tools.base import InvocationState, ToolContext, ToolInvocation
from pincer.agent.tools.registry import ToolRegistry
from pincer.bus.events import InboundMessage, OutboundMessage, StreamChunk, StreamEnd, ToolActivity
from pincer.bus.queue import MessageBus
from pincer.config.schema import Config, ProfileConfig
from pincer.errors import ProfileNotFoundError, QuotaExceededError
from pincer.memory.conversations import ConversationStore
from pincer.memory.usage import UsageStore
from pincer.providers.base import (
    LLMProvider,
    StreamDone,
    StreamOptions,
    TextDelta,
    ToolCallRequest,
    Usage,
)

SCHEDULED_CHANNEL = "cron"


@dataclass
class _Turn:
    """Per-turn bookkeeping so every exit path closes the stream exactly once."""
    msg: InboundMessage
    stream_ended: bool = False
    reply: OutboundMessage | None = None
    seq: int = 0


class AgentLoop:
    """
    The agent loop is the core processing engine.

    It:
    1. Receives messages from the bus, one worker per conversation
    2. Checks the profile and its daily token budget
    3. Builds context from persona, recalled facts and history
    4. Streams the model reply, running tool calls in between steps
    5. Persists and publishes the reply, then starts background work

    Turns of one conversation run strictly one after another; different
    conversations run concurrently.
    """

    def __init__(
        self,
        bus: MessageBus,
        provider: LLMProvider,
        config: Config,
        conversations: ConversationStore,
        usage: UsageStore,
        context: ContextBuilder,
        tools: ToolRegistry | None = None,
        fact_extractor: FactExtractor | None = None,
        title_generator: TitleGenerator | None = None,
    ):
        self.bus = bus
        self.provider = provider
        self.config = config
        self.conversations = conversations
        self.usage = usage
        self.context = context
        self.tools = tools or ToolRegistry()

        utility = config.get_profile(config.utility_profile_name())
        if fact_extractor is None and utility is not None:
            fact_extractor = FactExtractor(provider, context.facts, utility)
        if title_generator is None and utility is not None:
            title_generator = TitleGenerator(provider, conversations, utility)
        self.fact_extractor = fact_extractor
        self.title_generator = title_generator

        self._queues: dict[str, asyncio.Queue[InboundMessage]] = {}
        self._workers: dict[str, asyncio.Task] = {}
        self._background: set[asyncio.Task] = set()
        self._running = False

    # ========== Dispatch ==========

    async def run(self) -> None:
        """Run the agent loop, dispatching bus messages to conversation workers."""
        self._running = True
        logger.info("Agent loop started")

        while self._running:
            try:
                msg = await asyncio.wait_for(self.bus.consume_inbound(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            self.submit(msg)

    def stop(self) -> None:
        self._running = False
        logger.info("Agent loop stopping")

    def submit(self, msg: InboundMessage) -> None:
        """Queue a message on its conversation's worker, starting one if idle."""
        queue = self._queues.get(msg.conversation_id)
        if queue is None:
            queue = asyncio.Queue()
            self._queues[msg.conversation_id] = queue
            self._workers[msg.conversation_id] = asyncio.create_task(
                self._worker(msg.conversation_id, queue),
                name=f"conversation:{msg.conversation_id}",
            )
        queue.put_nowait(msg)

    async def _worker(self, conversation_id: str, queue: asyncio.Queue[InboundMessage]) -> None:
        try:
            while True:
                try:
                    msg = queue.get_nowait()
                except asyncio.QueueEmpty:
                    break
                await self.process_message(msg)
        finally:
            # No await between the empty check and this removal, so submit()
            # either sees this queue and it gets drained, or starts a new worker.
            if self._queues.get(conversation_id) is queue:
                del self._queues[conversation_id]
                self._workers.pop(conversation_id, None)

    async def handle_scheduled(self, profile: str, message: str) -> None:
        """Inject a scheduled message as a fresh conversation on the cron channel."""
        self.submit(InboundMessage(
            conversation_id=f"cron-{uuid.uuid4()}",
            channel=SCHEDULED_CHANNEL,
            profile=profile,
            content=message,
            sender_id="scheduler",
        ))

    async def wait_idle(self) -> None:
        """Wait until every conversation worker and background task has finished."""
        while self._workers:
            await asyncio.gather(*list(self._workers.values()), return_exceptions=True)
        await self.drain_background()

    async def drain_background(self) -> None:
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    @property
    def active_conversations(self) -> int:
        return len(self._workers)

    # ========== One turn ==========

    async def process_message(self, msg: InboundMessage) -> OutboundMessage:
        """
        Run one turn end to end.

        Never raises: every failure becomes an assistant-authored reply, and
        exactly one StreamEnd is published before the final message.
        """
        turn = _Turn(msg)
        try:
            profile = self.config.get_profile(msg.profile)
            if profile is None:
                logger.warning(f"Message for unknown profile '{msg.profile}'")
                return await self._reply(turn, f"Error: {ProfileNotFoundError(msg.profile)}")

            check = self.usage.check_limit(msg.profile, profile.max_tokens_per_day)
            if not check.allowed:
                logger.info(f"Profile '{msg.profile}' over daily limit ({check.used})")
                return await self._reply(
                    turn, str(QuotaExceededError(msg.profile, check.used, profile.max_tokens_per_day))
                )

            user_turn = self.conversations.add_message(
                msg.conversation_id, "user", msg.content, msg.profile
            )
            content, usage = await self._generate(turn, profile, user_turn.id)

            await self._end_stream(turn)
            self.conversations.add_message(
                msg.conversation_id, "assistant", content, msg.profile,
                token_count=usage.completion_tokens,
            )
            reply = await self._reply(turn, content)
            self._start_background(msg, content)
            return reply

        except Exception as e:
            logger.exception(f"Error processing message in {msg.conversation_id}")
            if turn.reply is not None:
                return turn.reply
            return await self._reply(turn, f"Sorry, I encountered an error: {e}")

    async def _generate(self, turn: _Turn, profile: ProfileConfig, user_turn_id: str) -> tuple[str, Usage]:
        """Steps from context assembly to stream completion; failures become the reply text."""
        msg = turn.msg
        parts: list[str] = []
        usage = Usage()

        async def execute_tool(call: ToolCallRequest) -> str:
            return await self._execute_tool(msg, call)

        try:
            messages = self.context.build(
                msg.conversation_id,
                msg.content,
                history_limit=profile.max_history_messages,
                system_prompt_override=profile.system_prompt_override,
                exclude_turn_id=user_turn_id,
            )
            options = StreamOptions(
                tools=self.tools.get_definitions() or None,
                temperature=profile.temperature,
                top_p=profile.top_p,
                max_steps=self.config.agents.max_steps,
                max_tokens=profile.max_tokens_per_message,
                tool_executor=execute_tool,
            )

            async for event in self.provider.stream(profile, messages, options):
                if isinstance(event, TextDelta):
                    parts.append(event.text)
                    await self.bus.publish(StreamChunk(
                        conversation_id=msg.conversation_id,
                        channel=msg.channel,
                        chunk=event.text,
                        seq=turn.seq,
                    ))
                    turn.seq += 1
                elif isinstance(event, StreamDone):
                    usage = event.usage
                    self._record_usage(msg.profile, usage)

        except Exception as e:
            logger.error(f"Stream failed for {msg.conversation_id}: {e}")
            return f"Error: {e}", usage

        return "".join(parts), usage

    async def _execute_tool(self, msg: InboundMessage, call: ToolCallRequest) -> str:
        invocation = ToolInvocation(name=call.name, arguments=call.arguments)
        ctx = ToolContext(
            conversation_id=msg.conversation_id,
            channel=msg.channel,
            profile=msg.profile,
            invocation=invocation,
        )
        logger.info(f"Tool call: {call.name}({call.arguments})")
        await self.bus.publish(ToolActivity(
            conversation_id=msg.conversation_id,
            channel=msg.channel,
            invocation_id=invocation.id,
            tool=call.name,
            status="started",
            arguments=call.arguments,
        ))

        result = await self.tools.execute(call.name, call.arguments, ctx)
        if invocation.state in (InvocationState.REQUESTED, InvocationState.APPROVED, InvocationState.EXECUTING):
            invocation.state = InvocationState.COMPLETED

        await self.bus.publish(ToolActivity(
            conversation_id=msg.conversation_id,
            channel=msg.channel,
            invocation_id=invocation.id,
            tool=call.name,
            status="completed",
            arguments=call.arguments,
            result=result,
        ))
        return result

    def _record_usage(self, profile: str, usage: Usage) -> None:
        try:
            self.usage.record(profile, usage.prompt_tokens, usage.completion_tokens)
        except Exception as e:
            logger.warning(f"Failed to record usage for '{profile}': {e}")

    async def _end_stream(self, turn: _Turn) -> None:
        if turn.stream_ended:
            return
        turn.stream_ended = True
        await self.bus.publish(StreamEnd(conversation_id=turn.msg.conversation_id, channel=turn.msg.channel))

    async def _reply(self, turn: _Turn, content: str) -> OutboundMessage:
        await self._end_stream(turn)
        reply = OutboundMessage(
            conversation_id=turn.msg.conversation_id,
            channel=turn.msg.channel,
            profile=turn.msg.profile,
            content=content,
        )
        turn.reply = reply
        await self.bus.publish(reply)
        return reply

    # ========== Background work ==========

    def _start_background(self, msg: InboundMessage, response: str) -> None:
        if self.title_generator and self.conversations.count_messages(msg.conversation_id) <= 2:
            self._spawn(self.title_generator.generate(msg.conversation_id, msg.content, response))
        if self.fact_extractor:
            self._spawn(self.fact_extractor.extract(msg.content, response))

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Background task failed: {task.exception()}")
