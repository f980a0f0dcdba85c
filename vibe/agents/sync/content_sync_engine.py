"""
Content sync engine mirroring agent-owned remote content.

This module polls the tool servers on a timer for the notepad, task list and
inbox of a single active agent, retries each content kind independently with
bounded exponential backoff, and writes successful results into the agent's
mirrored content fields.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from ..core.enums import AgentProcessingStatus, SyncContentKind, SyncState
from ..core.exceptions import SyncAttemptExhaustedError, ToolNotFoundError
from ..core.models import RuntimeSettings, SyncAttempt, ToolCallResult
from ..coordinator.agent_orchestrator import AgentOrchestrator
from ..registry.agent_registry import AgentRegistry
from ..tools.mcp_server_manager import MCPServerManager
from ..utils.config_validator import ConfigValidator

logger = logging.getLogger(__name__)

T = TypeVar("T")
StateListener = Callable[["ContentSyncEngine"], None]

NOTEPAD_PREFIX = "Notepad contents:\n\n"
EMPTY_NOTEPAD = "Your notepad is empty."
EMPTY_LIST_MARKERS = (
    "Your task list is empty.",
    "Task List is empty",
    "Your inbox is empty.",
    "No messages",
)


def parse_notepad(result: ToolCallResult) -> str:
    """Strip the notepad server's framing from ``notepad_read`` output."""
    text = result.text
    if text.startswith(NOTEPAD_PREFIX):
        return text[len(NOTEPAD_PREFIX):]
    if text.strip() == EMPTY_NOTEPAD:
        return ""
    return text


def parse_lines(result: ToolCallResult) -> List[str]:
    """One item per non-empty line; known "empty" sentinels yield no items."""
    text = result.text.strip()
    if not text or any(text.startswith(marker) for marker in EMPTY_LIST_MARKERS):
        return []
    return [line.strip() for line in text.splitlines() if line.strip()]


@dataclass(frozen=True)
class ContentSource:
    """Where one kind of agent content is fetched from."""
    kind: SyncContentKind
    tool_name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    parser: Callable[[ToolCallResult], Any] = parse_lines


DEFAULT_CONTENT_SOURCES = (
    ContentSource(SyncContentKind.NOTEPAD, "notepad_read", parser=parse_notepad),
    ContentSource(SyncContentKind.TODO, "task_list_list", {"status": "all"}),
    ContentSource(SyncContentKind.INBOX, "directory_check_inbox"),
)


class RetryPolicy:
    """
    Exponential backoff bounded by a total-delay ceiling.

    Delays start at ``base_delay`` and grow by ``multiplier``. A retry is
    only scheduled if the delays spent so far plus the next one stay within
    ``ceiling`` and the attempt's wall-clock deadline allows it.
    """

    def __init__(
        self,
        base_delay: float = 1.0,
        multiplier: float = 2.0,
        ceiling: float = 30.0,
        max_attempts: Optional[int] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic
    ):
        if base_delay <= 0 or ceiling <= 0:
            raise ValueError("base_delay and ceiling must be positive")
        if multiplier < 1:
            raise ValueError("multiplier must be at least 1")
        self.base_delay = base_delay
        self.multiplier = multiplier
        self.ceiling = ceiling
        self.max_attempts = max_attempts
        self._sleep = sleep
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: RuntimeSettings, **kwargs: Any) -> "RetryPolicy":
        return cls(
            base_delay=settings.sync_base_delay_seconds,
            multiplier=settings.sync_backoff_multiplier,
            ceiling=settings.sync_backoff_ceiling_seconds,
            max_attempts=settings.sync_max_attempts,
            **kwargs
        )

    def delay_for(self, attempt: int) -> float:
        """Delay after the ``attempt``-th failure (1-based)."""
        return self.base_delay * (self.multiplier ** (attempt - 1))

    def delays(self) -> List[float]:
        """The full retry schedule when every attempt fails."""
        schedule: List[float] = []
        total = 0.0
        attempt = 1
        while self.max_attempts is None or attempt < self.max_attempts:
            delay = self.delay_for(attempt)
            if total + delay > self.ceiling:
                break
            schedule.append(delay)
            total += delay
            attempt += 1
        return schedule

    def new_attempt(self, agent_id: str, kind: SyncContentKind) -> SyncAttempt:
        return SyncAttempt(agent_id=agent_id, content_kind=kind, deadline=self._clock() + self.ceiling)

    async def run(self, operation: Callable[[], Awaitable[T]], attempt: SyncAttempt) -> T:
        """
        Run ``operation`` until it succeeds or the ceiling is reached.

        Raises:
            SyncAttemptExhaustedError: When no further retry fits
        """
        while True:
            attempt.attempt += 1
            try:
                return await operation()
            except Exception as e:
                attempt.last_error = str(e) or e.__class__.__name__

            delay = self.delay_for(attempt.attempt)
            out_of_attempts = self.max_attempts is not None and attempt.attempt >= self.max_attempts
            if (out_of_attempts
                    or attempt.total_delay + delay > self.ceiling
                    or self._clock() + delay > attempt.deadline):
                raise SyncAttemptExhaustedError(
                    f"Sync of {attempt.content_kind} for agent {attempt.agent_id} gave up after "
                    f"{attempt.attempt} attempts: {attempt.last_error}",
                    agent_id=attempt.agent_id,
                    content_kind=attempt.content_kind.value,
                    attempts=attempt.attempt,
                    total_delay=attempt.total_delay
                )

            attempt.next_delay = delay
            logger.warning(
                f"Sync of {attempt.content_kind} for agent {attempt.agent_id} failed "
                f"(attempt {attempt.attempt}): {attempt.last_error}; retrying in {delay}s"
            )
            await self._sleep(delay)
            attempt.total_delay += delay


class ContentSyncEngine:
    """
    Timer-driven poller for the remote content of one active agent.

    This class handles:
    - A repeating timer scoped to exactly one active agent
    - start / stop / pause / resume / switch lifecycle
    - Independent, retried fetches per content kind
    - Writing successful results into the agent's mirror

    Exhausted retries leave the mirror unchanged: stale content stays
    available instead of being cleared.
    """

    def __init__(
        self,
        server_manager: MCPServerManager,
        agent_registry: AgentRegistry,
        settings: Optional[RuntimeSettings] = None,
        sources: Sequence[ContentSource] = DEFAULT_CONTENT_SOURCES,
        retry_policy: Optional[RetryPolicy] = None
    ):
        self._server_manager = server_manager
        self._agent_registry = agent_registry
        self.settings = settings or RuntimeSettings()
        self._sources = tuple(sources)
        self._retry_policy = retry_policy or RetryPolicy.from_settings(self.settings)
        for problem in ConfigValidator().validate_runtime_settings(self.settings):
            logger.warning(f"Runtime settings: {problem}")

        self._state = SyncState.STOPPED
        self._active_agent_id: Optional[str] = None
        self._task: Optional[asyncio.Task] = None
        self._last_fetch: Dict[str, float] = {}
        self._listeners: List[StateListener] = []

        # Metrics
        self._ticks = 0
        self._successful_fetches = 0
        self._failed_fetches = 0
        self._exhausted_attempts = 0

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def active_agent_id(self) -> Optional[str]:
        return self._active_agent_id

    @property
    def sources(self) -> List[ContentSource]:
        return list(self._sources)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: SyncState) -> None:
        if state == self._state:
            return
        self._state = state
        logger.info(f"Content sync {state} (agent: {self._active_agent_id})")
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"Sync state listener {listener!r} failed: {e}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, agent_id: str) -> None:
        """Start polling for ``agent_id``, replacing any previous target."""
        if self._state == SyncState.RUNNING and agent_id == self._active_agent_id:
            return
        await self._cancel_timer()
        self._active_agent_id = agent_id
        self._task = asyncio.create_task(self._poll_loop(agent_id))
        self._set_state(SyncState.RUNNING)

    async def stop(self) -> None:
        """Stop polling and forget the active agent."""
        await self._cancel_timer()
        self._active_agent_id = None
        self._set_state(SyncState.STOPPED)

    async def pause(self) -> bool:
        """Suspend the timer, keeping the active agent. Only valid while running."""
        if self._state != SyncState.RUNNING:
            logger.debug(f"Ignoring pause while {self._state}")
            return False
        await self._cancel_timer()
        self._set_state(SyncState.PAUSED)
        return True

    async def resume(self) -> bool:
        """Restart the timer for the retained agent. Only valid while paused."""
        if self._state != SyncState.PAUSED or self._active_agent_id is None:
            logger.debug(f"Ignoring resume while {self._state}")
            return False
        agent_id = self._active_agent_id
        self._task = asyncio.create_task(self._poll_loop(agent_id))
        self._set_state(SyncState.RUNNING)
        return True

    async def switch_agent(self, agent_id: Optional[str]) -> None:
        """Retarget the timer; ``None`` stops polling. A paused engine stays paused."""
        if agent_id is None:
            await self.stop()
        elif self._state == SyncState.PAUSED:
            self._active_agent_id = agent_id
            logger.info(f"Content sync target switched to {agent_id} while paused")
        else:
            await self.start(agent_id)

    async def _cancel_timer(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _poll_loop(self, agent_id: str) -> None:
        while True:
            self._ticks += 1
            try:
                await self.fetch_agent_content(agent_id)
            except Exception as e:
                logger.error(f"Content sync tick for agent {agent_id} failed: {e}")
            await asyncio.sleep(self.settings.poll_interval_seconds)

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def fetch_now(self) -> Dict[SyncContentKind, bool]:
        """Fetch the active agent's content immediately, bypassing the refresh window."""
        if self._active_agent_id is None:
            return {}
        return await self.fetch_agent_content(self._active_agent_id, force=True)

    def should_skip_fetch(self, agent_id: str) -> bool:
        window = self.settings.min_refresh_interval_seconds
        last = self._last_fetch.get(agent_id)
        return window > 0 and last is not None and time.monotonic() - last < window

    async def fetch_agent_content(self, agent_id: str, force: bool = False) -> Dict[SyncContentKind, bool]:
        """
        Fetch every content kind for one agent.

        Kinds are fetched concurrently and independently; one failing kind
        does not affect the others.

        Returns:
            Mapping of content kind to whether its mirror was updated

        Raises:
            AgentNotFoundError: If the agent is not registered
        """
        agent = self._agent_registry.require(agent_id)
        if not force and self.should_skip_fetch(agent_id):
            logger.debug(f"Skipping content fetch for {agent_id}: refreshed recently")
            return {}

        outcomes = await asyncio.gather(*(self._sync_source(agent, source) for source in self._sources))
        results = {source.kind: ok for source, ok in zip(self._sources, outcomes)}
        if any(results.values()):
            self._last_fetch[agent_id] = time.monotonic()
        return results

    async def _sync_source(self, agent: AgentOrchestrator, source: ContentSource) -> bool:
        if self._server_manager.find_server_for_tool(source.tool_name) is None:
            logger.debug(f"No server exposes {source.tool_name}; {source.kind} not synced")
            return False

        async def fetch() -> ToolCallResult:
            server_name = self._server_manager.find_server_for_tool(source.tool_name)
            if server_name is None:
                raise ToolNotFoundError(source.tool_name)
            result = await self._server_manager.call_tool(server_name, source.tool_name, dict(source.arguments))
            return result.raise_for_error()

        attempt = self._retry_policy.new_attempt(agent.id, source.kind)
        try:
            result = await self._retry_policy.run(fetch, attempt)
        except SyncAttemptExhaustedError as e:
            self._exhausted_attempts += 1
            self._failed_fetches += 1
            logger.error(str(e))
            if agent.status.status != AgentProcessingStatus.PROCESSING:
                agent.status.set_error_status(e.message)
            return False

        try:
            value = source.parser(result)
        except Exception as e:
            self._failed_fetches += 1
            logger.error(f"Could not parse {source.kind} for agent {agent.id}: {e}")
            return False

        agent.apply_synced_content(source.kind, value)
        self._successful_fetches += 1
        logger.debug(f"Synced {source.kind} for agent {agent.id} after {attempt.attempt} attempts")
        return True

    def get_metrics(self) -> Dict[str, Any]:
        """Get engine metrics."""
        return {
            "state": self._state.value,
            "active_agent_id": self._active_agent_id,
            "ticks": self._ticks,
            "successful_fetches": self._successful_fetches,
            "failed_fetches": self._failed_fetches,
            "exhausted_attempts": self._exhausted_attempts,
        }
