"""
Core agent implementation: the tool-calling iteration loop.

For each inbound message the agent:
1. Appends the message to its session and compacts the history if needed
2. Calls the LLM with the history and the registered tool definitions
3. Executes requested tools in order and feeds the results back
4. Stops on the first response without tool calls, or after max_iterations

A session is processed by one task at a time. Tool-call turns are committed
to the session as a whole, so history never holds an unanswered tool call.
"""

import asyncio

import structlog

from ..bus.events import AgentState, EventSink, InboundMessage, OutboundMessage, StateChange
from ..bus.message_bus import MessageBus
from ..config import Settings, get_settings
from ..llm import BaseLLM, LLMMessage, LLMResponse, create_llm
from ..tools import ToolRegistry, create_default_registry
from .compaction import Compactor
from .context import ContextBuilder
from .dispatch import ToolDispatcher
from .session import Session, SessionStore

logger = structlog.get_logger()

DEFAULT_MAX_ITERATIONS = 50
DEFAULT_HISTORY_WINDOW = 50

MAX_ITERATIONS_MESSAGE = (
    "I apologize, but I've reached the maximum number of iterations. "
    "Please try breaking down your request into smaller steps."
)


class Agent:
    """Processes inbound messages through the LLM with tool support."""

    def __init__(
        self,
        llm: BaseLLM,
        tool_registry: ToolRegistry,
        sessions: SessionStore,
        events: EventSink | None = None,
        compactor: Compactor | None = None,
        context: ContextBuilder | None = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        history_window: int = DEFAULT_HISTORY_WINDOW,
    ):
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")

        self.llm = llm
        self.tool_registry = tool_registry
        self.sessions = sessions
        self.events = events
        self.compactor = compactor
        self.context = context or ContextBuilder()
        self.max_iterations = max_iterations
        self.history_window = history_window

        self.dispatcher = ToolDispatcher(tool_registry, events)
        self._session_locks: dict[str, asyncio.Lock] = {}
        self._session_users: dict[str, int] = {}
        self._tasks: set[asyncio.Task] = set()
        self._running = False

    @classmethod
    async def from_settings(
        cls,
        settings: Settings | None = None,
        bus: MessageBus | None = None,
        llm: BaseLLM | None = None,
    ) -> "Agent":
        """Wire an agent from configuration."""
        settings = settings or get_settings()
        llm = llm or create_llm(settings=settings)

        compactor = None
        if settings.enable_compaction:
            compactor = Compactor(llm, settings.get_compaction_policy())

        return cls(
            llm=llm,
            tool_registry=create_default_registry(settings.workspace_dir),
            sessions=await SessionStore.open(settings.database_url),
            events=bus,
            compactor=compactor,
            context=ContextBuilder(settings.workspace_dir, settings.system_prompt),
            max_iterations=settings.max_iterations,
            history_window=settings.history_window,
        )

    def _claim_session(self, session_key: str) -> asyncio.Lock:
        lock = self._session_locks.get(session_key)
        if lock is None:
            lock = asyncio.Lock()
            self._session_locks[session_key] = lock
        self._session_users[session_key] = self._session_users.get(session_key, 0) + 1
        return lock

    def _release_session(self, session_key: str) -> None:
        """Forget an idle session's lock and cached history once no task needs them."""
        remaining = self._session_users[session_key] - 1
        if remaining:
            self._session_users[session_key] = remaining
            return

        del self._session_users[session_key]
        del self._session_locks[session_key]
        self.sessions.evict(session_key)

    async def process_message(self, message: InboundMessage) -> OutboundMessage:
        """Run the tool-calling loop for one inbound message.

        Raises whatever the LLM provider raises; the session history stays
        valid and the processing state is always reset to idle.
        """
        session_key = message.session_key

        lock = self._claim_session(session_key)
        try:
            async with lock:
                self._publish_state(session_key, AgentState.IDLE, AgentState.PROCESSING)
                reason = None
                try:
                    return await self._process(message)
                except Exception as e:
                    reason = str(e) or type(e).__name__
                    raise
                finally:
                    self._publish_state(session_key, AgentState.PROCESSING, AgentState.IDLE, reason)
        finally:
            self._release_session(session_key)

    async def _process(self, message: InboundMessage) -> OutboundMessage:
        session = await self.sessions.get_or_create(message.session_key)
        current = session.add_user_message(message.content, message.media)

        if self.compactor and self.compactor.needs_compaction(session.messages):
            await self.compactor.compact_session(session)
            await self.sessions.save(session)

        # The window includes the current message, which is sent separately
        history = session.get_history(self.history_window + 1)[:-1]
        messages = self.context.build_messages(history, current)
        tools = self.tool_registry.get_definitions() or None

        final_response: LLMResponse | None = None
        iteration = 0
        while iteration < self.max_iterations:
            iteration += 1
            logger.debug(
                "Agent iteration",
                session_key=session.key,
                iteration=iteration,
                max_iterations=self.max_iterations,
            )

            response = await self.llm.generate(messages=messages, tools=tools)

            if not response.has_tool_calls:
                final_response = response
                break

            await self._run_tool_turn(session, messages, response)

        if final_response is None:
            logger.warning(
                "Max iterations reached without completion",
                session_key=session.key,
                max_iterations=self.max_iterations,
            )
            content = MAX_ITERATIONS_MESSAGE
        else:
            content = final_response.content or ""

        session.add_assistant_message(content)
        await self.sessions.save(session)

        logger.info(
            "Message processed",
            session_key=session.key,
            iterations=iteration,
            history=session.message_count,
        )

        return OutboundMessage(
            channel=message.channel,
            chat_id=message.chat_id,
            content=content,
            reply_to=message.metadata.get("message_id"),
        )

    async def _run_tool_turn(
        self, session: Session, messages: list[LLMMessage], response: LLMResponse
    ) -> None:
        """Execute every tool call of a response, then commit the whole turn."""
        assistant = LLMMessage(
            role="assistant",
            content=response.content or "",
            tool_calls=response.tool_calls,
        )
        results = [await self.dispatcher.dispatch(call) for call in response.tool_calls]

        messages.append(assistant)
        messages.extend(results)

        session.add_assistant_message(response.content, response.tool_calls)
        for result in results:
            session.add_tool_result(result.tool_call_id, result.name, result.text)

        await self.sessions.save(session)

    def _publish_state(
        self,
        session_key: str,
        from_state: AgentState,
        to_state: AgentState,
        reason: str | None = None,
    ) -> None:
        if self.events is None:
            return
        self.events.publish_state_event(StateChange(
            session_key=session_key,
            from_state=from_state,
            to_state=to_state,
            reason=reason,
        ))

    async def run(self, bus: MessageBus | None = None) -> None:
        """Consume inbound messages until stopped, one task per message."""
        bus = bus or self.events
        if not isinstance(bus, MessageBus):
            raise ValueError("Agent.run() needs a MessageBus")

        self._running = True
        logger.info("Agent loop starting", model=self.llm.model)

        while self._running:
            try:
                message = await asyncio.wait_for(bus.consume_inbound(), timeout=1.0)
            except asyncio.TimeoutError:
                continue

            task = asyncio.create_task(self._handle(bus, message))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        logger.info("Agent loop stopped")

    async def _handle(self, bus: MessageBus, message: InboundMessage) -> None:
        try:
            response = await self.process_message(message)
        except Exception as e:
            logger.error(
                "Error processing message",
                session_key=message.session_key,
                error=str(e),
            )
            return
        await bus.publish_outbound(response)

    def stop(self) -> None:
        """Stop the loop after the messages in flight finish."""
        self._running = False
        logger.info("Agent loop stopping")

    async def close(self) -> None:
        await self.sessions.close()
