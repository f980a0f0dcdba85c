"""
Agent orchestrator implementation.

This module provides the top-level per-agent behavior: filtering the shared
tool catalog through the agent's preferences, dispatching tool calls,
draining the inbox and to-do queues through conversation cycles, and the
agent's serialized record.
"""

import logging
import textwrap
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union
import uuid as uuid_lib

from ..conversation.conversation_manager import ConversationManager
from ..conversation.transcript import TranscriptWriter
from ..core.enums import MessageRole, SyncContentKind
from ..core.exceptions import (
    CompletionCycleFailedError, SupervisorNotSetError, ToolDisabledError, ToolNotFoundError
)
from ..core.interfaces import CompletionClient
from ..core.models import (
    AgentRecord, InboxMessage, RuntimeSettings, ToolCallResult, ToolDescriptor,
    ToolPreferences, TOOL_ID_SEPARATOR
)
from ..core.status import AgentStatusModel
from ..tools.mcp_server_manager import MCPServerManager
from ..tools.mcp_tool_proxy import MCPToolProxy
from ..utils.config_validator import ConfigValidator

logger = logging.getLogger(__name__)

ContentListener = Callable[["AgentOrchestrator", SyncContentKind], None]


class AgentOrchestrator:
    """Top-level runtime entity for one agent.

    The orchestrator owns the agent's conversation, queues, preferences and
    status. The server manager is shared and injected; the orchestrator never
    opens or closes server connections itself.

    Overlapping ``think``/``process_*`` calls on the same agent are the
    caller's responsibility to avoid; ``is_busy`` is the signal to check.
    """

    def __init__(
        self,
        name: str,
        system_prompt: str,
        completion_client: CompletionClient,
        server_manager: MCPServerManager,
        agent_id: Optional[str] = None,
        settings: Optional[RuntimeSettings] = None,
        status: Optional[AgentStatusModel] = None,
        tool_preferences: Optional[ToolPreferences] = None,
        context_files: Optional[List[str]] = None,
        supervisor: Optional["AgentOrchestrator"] = None,
        transcript_writer: Optional[TranscriptWriter] = None,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        metadata: Optional[Dict[str, Any]] = None
    ):
        if not name or not name.strip():
            raise ValueError("Agent name cannot be empty")
        if system_prompt is None:
            raise ValueError("Agent system prompt is required")

        self.id = agent_id or str(uuid_lib.uuid4())
        self.name = name.strip()
        self.system_prompt = system_prompt
        self.settings = settings or RuntimeSettings()
        self.server_manager = server_manager
        self.status = status or AgentStatusModel()
        self.tool_preferences = tool_preferences or ToolPreferences()
        self.supervisor = supervisor
        self.transcript_writer = transcript_writer or TranscriptWriter(self.settings.transcript_dir)
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.metadata: Dict[str, Any] = dict(metadata or {})

        self.context_files: List[str] = []
        for filename in context_files or []:
            self.add_context_file(filename)

        self.inbox: List[InboxMessage] = []
        self.to_do_list: List[str] = []

        # Remote content mirror, written only by the content sync engine.
        self.notepad = ""
        self.remote_todo_items: List[str] = []
        self.remote_inbox_items: List[str] = []
        self.last_synced_at: Dict[SyncContentKind, datetime] = {}
        self._content_listeners: List[ContentListener] = []

        self.conversation = ConversationManager(
            completion_client,
            status=self.status,
            tool_invoker=self,
            max_tool_rounds=self.settings.max_tool_rounds,
            agent_id=self.id,
            temperature=temperature,
            max_tokens=max_tokens
        )
        self._reset_pending = False
        self._disposed = False
        self._add_system_preamble()

        logger.info(f"Agent {self.name} ({self.id}) created")

    # ------------------------------------------------------------------
    # Conversation helpers
    # ------------------------------------------------------------------

    @property
    def annotated_system_prompt(self) -> str:
        return f"YOU ARE {self.name}. \nRole play in the conversation as this person.\n{self.system_prompt}"

    @property
    def is_busy(self) -> bool:
        return self.status.is_processing

    def _add_system_preamble(self) -> None:
        self.conversation.add_system_message(self.annotated_system_prompt)

    def reset_conversation(self) -> None:
        """Clear history back to the system preamble."""
        self.conversation.clear_conversation()
        self._add_system_preamble()
        self._reset_pending = False

    def _begin_turn(self, framed_message: str) -> None:
        # A finished inbox turn is cleared lazily, when the next turn starts.
        if self._reset_pending:
            self.reset_conversation()
        self.conversation.add_user_message(framed_message)

    async def _run_turn(self, framed_message: str) -> None:
        self._begin_turn(framed_message)
        try:
            await self.conversation.send_message()
        except BaseException:
            # A failed turn is dropped before the retry re-sends the same item.
            self._reset_pending = True
            raise

    def _tools_summary(self) -> str:
        return ", ".join(tool.tool_id for tool in self.get_available_tools())

    def _frame_inbox_message(self, message: InboxMessage) -> str:
        return "\n".join([
            "------",
            f"MESSAGE RECEIVED FROM: {message.sender}",
            message.content,
            "-------",
            "Process this message and create any necessary tasks.",
            "",
            f"Available MCP tools: {self._tools_summary()}",
            "",
            f"Current date & time: {datetime.now(timezone.utc).isoformat()}",
        ])

    def _frame_task(self, task: str) -> str:
        return "\n".join([
            "------",
            "TO-DO TASK:",
            task,
            "-------",
            "Complete this task. Use appropriate MCP tools as needed.",
            "",
            f"Available MCP tools: {self._tools_summary()}",
            "",
            f"Current date & time: {datetime.now(timezone.utc).isoformat()}",
        ])

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    def get_available_tools(self) -> List[ToolDescriptor]:
        """Shared catalog filtered by server-level, then tool-level preferences."""
        tools = self.server_manager.get_all_tools()
        tools = [t for t in tools if self.tool_preferences.is_server_enabled(t.server_name)]
        return [t for t in tools if self.tool_preferences.tools.get(t.tool_id, True)]

    def get_function_definitions(self) -> List[Dict[str, Any]]:
        return MCPToolProxy(self.get_available_tools()).get_function_definitions()

    async def invoke_tool(self, function_name: str, arguments: Dict[str, Any]) -> ToolCallResult:
        """
        Run a model-requested call against the filtered tool view.

        Raises:
            ToolDisabledError: If the tool exists but the agent disabled it
            ToolNotFoundError: If no server exposes the tool
            ServerUnavailableError: If the owning server is down
        """
        proxy = MCPToolProxy(self.get_available_tools())
        tool = proxy.resolve(function_name)
        if tool is None:
            hidden = MCPToolProxy(self.server_manager.get_all_tools()).resolve(function_name)
            if hidden is not None:
                raise ToolDisabledError(hidden.tool_id)
            raise ToolNotFoundError(function_name)

        problems = proxy.validate_arguments(tool, arguments)
        if problems:
            logger.warning(f"{self.name} sent invalid arguments to {tool.tool_id}: {problems}")
            return ToolCallResult.error(
                f"Invalid arguments for {tool.tool_id}: {'; '.join(problems)}",
                server_name=tool.server_name,
                tool_name=tool.name
            )
        return await self.server_manager.call_tool(tool.server_name, tool.name, arguments)

    async def call_mcp_tool(self, tool_name: str, arguments: Optional[Dict[str, Any]] = None) -> ToolCallResult:
        """
        Call a tool by bare name or ``server:tool`` id.

        A bare name resolves to the first registered server exposing it.

        Raises:
            ToolNotFoundError: If no connected server exposes the tool
            ToolDisabledError: If the agent's preferences disable the tool
            ServerUnavailableError: If the owning server is down
        """
        if TOOL_ID_SEPARATOR in tool_name and self.server_manager.get_tool(tool_name) is not None:
            server_name, _, bare_name = tool_name.partition(TOOL_ID_SEPARATOR)
        else:
            bare_name = tool_name
            server_name = self.server_manager.find_server_for_tool(bare_name)
            if server_name is None:
                raise ToolNotFoundError(tool_name)

        tool_id = f"{server_name}{TOOL_ID_SEPARATOR}{bare_name}"
        if not self.tool_preferences.is_tool_enabled(tool_id):
            raise ToolDisabledError(tool_id)

        # Only a call started from idle owns the processing signal.
        owns_status = self.status.is_idle
        if owns_status:
            self.status.set_processing_status()
        try:
            return await self.server_manager.call_tool(server_name, bare_name, arguments or {})
        finally:
            if owns_status:
                self.status.set_idle_status()

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    def is_server_enabled(self, server_name: str) -> bool:
        return self.tool_preferences.is_server_enabled(server_name)

    def is_tool_enabled(self, tool_id: str) -> bool:
        """Effective flag, false whenever the tool's server is disabled."""
        return self.tool_preferences.is_tool_enabled(tool_id)

    def set_server_enabled(self, server_name: str, enabled: bool) -> None:
        self.tool_preferences.servers = {**self.tool_preferences.servers, server_name: enabled}
        self.status.update_activity()

    def set_tool_enabled(self, tool_id: str, enabled: bool) -> None:
        if TOOL_ID_SEPARATOR not in tool_id:
            raise ValueError(f"Tool preferences are keyed by server:tool, got {tool_id!r}")
        self.tool_preferences.tools = {**self.tool_preferences.tools, tool_id: enabled}
        self.status.update_activity()

    def enable_all_tools(self) -> None:
        self.tool_preferences = ToolPreferences()
        self.status.update_activity()

    # ------------------------------------------------------------------
    # Context files
    # ------------------------------------------------------------------

    def add_context_file(self, filename: str) -> bool:
        """Add a context file. Returns False if it is already present."""
        if filename in self.context_files:
            return False
        self.context_files.append(filename)
        return True

    def remove_context_file(self, filename: str) -> bool:
        if filename not in self.context_files:
            return False
        self.context_files.remove(filename)
        return True

    def has_context_file(self, filename: str) -> bool:
        return filename in self.context_files

    # ------------------------------------------------------------------
    # Queues and messaging
    # ------------------------------------------------------------------

    def receive_message(self, sender: str, content: str) -> InboxMessage:
        message = InboxMessage(sender=sender, content=content)
        self.inbox.append(message)
        return message

    def send_message(self, recipient: "AgentOrchestrator", content: str) -> None:
        """Deliver a message to another agent's inbox."""
        recipient.receive_message(self.name, content)
        logger.info(f"{self.name} sent a message to {recipient.name}")

    def send_message_to_supervisor(self, content: str) -> None:
        if self.supervisor is None:
            raise SupervisorNotSetError(f"Agent {self.name} has no supervisor", agent_id=self.id)
        self.send_message(self.supervisor, content)

    def add_task(self, task: str) -> None:
        if not task or not task.strip():
            raise ValueError("Task cannot be empty")
        self.to_do_list.append(task)

    def complete_task(self, task: Union[int, str]) -> Optional[str]:
        """Remove a task by index or text. Returns the removed task, if any."""
        if isinstance(task, int):
            if 0 <= task < len(self.to_do_list):
                return self.to_do_list.pop(task)
            return None
        if task in self.to_do_list:
            self.to_do_list.remove(task)
            return task
        return None

    # ------------------------------------------------------------------
    # Processing loop
    # ------------------------------------------------------------------

    async def think(self) -> None:
        """Process the inbox fully, then the head of the to-do list."""
        if not self.inbox and not self.to_do_list:
            return
        if self.is_busy:
            logger.info(f"Agent {self.name} is already processing; skipping think")
            return

        await self.process_inbox_items()
        if self.inbox:
            # An inbox item failed; tasks wait until messages are handled.
            return
        await self.process_to_do_list()

    async def process_inbox_items(self) -> int:
        """
        Drain the inbox in arrival order.

        Each item is framed as a user turn and sent through a conversation
        cycle. It is removed only when the cycle succeeds; on failure it
        stays at the head, the error is recorded on the status, and
        processing stops.

        Returns:
            Number of items processed
        """
        processed = 0
        while self.inbox:
            message = self.inbox[0]
            logger.info(f"{self.name} processing inbox message from {message.sender}")
            try:
                await self._run_turn(self._frame_inbox_message(message))
            except CompletionCycleFailedError as e:
                logger.error(f"{self.name} failed to process inbox message from {message.sender}: {e}")
                return processed
            except Exception as e:
                self.status.set_error_status(str(e) or e.__class__.__name__)
                logger.error(f"{self.name} failed to process inbox message from {message.sender}: {e}")
                return processed

            if self.inbox and self.inbox[0] is message:
                self.inbox.pop(0)
            elif message in self.inbox:
                self.inbox.remove(message)
            self._reset_pending = True
            processed += 1
        return processed

    async def process_to_do_list(self) -> bool:
        """
        Work on the head of the to-do list.

        The task is not removed here: completion has to be signaled by the
        model through a tool call or by ``complete_task``.

        Returns:
            True if the conversation cycle succeeded
        """
        if not self.to_do_list:
            return False
        task = self.to_do_list[0]
        logger.info(f"{self.name} working on task: {task}")
        try:
            await self._run_turn(self._frame_task(task))
        except CompletionCycleFailedError as e:
            logger.error(f"{self.name} failed to work on task {task!r}: {e}")
            return False
        except Exception as e:
            self.status.set_error_status(str(e) or e.__class__.__name__)
            logger.error(f"{self.name} failed to work on task {task!r}: {e}")
            return False
        return True

    # ------------------------------------------------------------------
    # Remote content mirror
    # ------------------------------------------------------------------

    def subscribe_content(self, listener: ContentListener) -> Callable[[], None]:
        self._content_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._content_listeners:
                self._content_listeners.remove(listener)

        return unsubscribe

    def apply_synced_content(self, kind: SyncContentKind, value: Any) -> None:
        """Overwrite one mirrored content field and stamp its sync time."""
        if kind == SyncContentKind.NOTEPAD:
            self.notepad = value or ""
        elif kind == SyncContentKind.TODO:
            self.remote_todo_items = list(value or [])
        elif kind == SyncContentKind.INBOX:
            self.remote_inbox_items = list(value or [])
        else:
            raise ValueError(f"Unknown content kind: {kind}")
        self.last_synced_at[kind] = datetime.now(timezone.utc)

        for listener in list(self._content_listeners):
            try:
                listener(self, kind)
            except Exception as e:
                logger.error(f"Content listener {listener!r} failed: {e}")

    # ------------------------------------------------------------------
    # Serialization and diagnostics
    # ------------------------------------------------------------------

    def to_record(self) -> AgentRecord:
        return AgentRecord(
            id=self.id,
            name=self.name,
            system_prompt=self.system_prompt,
            notepad=self.notepad,
            status=self.status.to_record(),
            tool_preferences=self.tool_preferences.model_copy(deep=True),
            context_files=list(self.context_files),
            inbox=[message.model_copy() for message in self.inbox],
            to_do_list=list(self.to_do_list),
            conversation_history=self.conversation.get_history(),
            supervisor=self.supervisor.name if self.supervisor else None,
            metadata=dict(self.metadata),
            temperature=self.temperature,
            max_tokens=self.max_tokens
        )

    def to_dict(self) -> Dict[str, Any]:
        return self.to_record().model_dump(mode="json")

    @classmethod
    def from_record(
        cls,
        record: Union[AgentRecord, Dict[str, Any]],
        completion_client: CompletionClient,
        server_manager: MCPServerManager,
        settings: Optional[RuntimeSettings] = None,
        supervisor: Optional["AgentOrchestrator"] = None,
        transcript_writer: Optional[TranscriptWriter] = None
    ) -> "AgentOrchestrator":
        """Rebuild an agent from its record; history replaces the default preamble."""
        if not isinstance(record, AgentRecord):
            record = AgentRecord.model_validate(record)
        for problem in ConfigValidator().validate_agent_record(record):
            logger.warning(f"Agent record {record.name}: {problem}")

        agent = cls(
            name=record.name,
            system_prompt=record.system_prompt,
            completion_client=completion_client,
            server_manager=server_manager,
            agent_id=record.id,
            settings=settings,
            status=AgentStatusModel.from_record(record.status),
            tool_preferences=record.tool_preferences.model_copy(deep=True),
            context_files=record.context_files,
            supervisor=supervisor,
            transcript_writer=transcript_writer,
            temperature=record.temperature,
            max_tokens=record.max_tokens,
            metadata=record.metadata
        )
        agent.notepad = record.notepad
        agent.inbox = [message.model_copy() for message in record.inbox]
        agent.to_do_list = list(record.to_do_list)
        agent.conversation.clear_conversation()
        for message in record.conversation_history:
            agent.conversation.add_message(message)
        # Restored turns may be unfinished; the next turn starts from the preamble.
        agent._reset_pending = any(m.role != MessageRole.SYSTEM for m in record.conversation_history)
        return agent

    def details(self) -> str:
        """Multi-line summary for display."""
        connected = ", ".join(self.server_manager.get_connected_servers())
        inbox = "\n".join(f"{m.sender}: {m.content}" for m in self.inbox)
        status_line = self.status.status.value
        if self.status.error_message:
            status_line = f"{status_line} ({self.status.error_message})"
        return textwrap.dedent("""\
            ----- {name} -----

            Status
            -----------
            {status}

            Notepad
            -----------
            {notepad}

            Inbox
            -----------
            {inbox}

            ToDo List
            ----------
            {todo}

            Context Files
            -----------
            {files}

            MCP Status
            -----------
            Connected servers: {connected}
            Available tools: {tools}
            """).format(
            name=self.name,
            status=status_line,
            notepad=self.notepad,
            inbox=inbox,
            todo="\n".join(self.to_do_list),
            files="\n".join(self.context_files),
            connected=connected,
            tools=len(self.get_available_tools())
        )

    def dump_conversation_history(self) -> Path:
        """Append the current history to this agent's transcript log."""
        return self.transcript_writer.write(self.name, self.conversation.get_history())

    def dispose(self) -> None:
        """Release local listeners. Shared server connections stay open."""
        if self._disposed:
            return
        self.status.clear_listeners()
        self._content_listeners = []
        self._disposed = True
        logger.info(f"Agent {self.name} ({self.id}) disposed")

    def __repr__(self) -> str:
        return f"AgentOrchestrator(id={self.id!r}, name={self.name!r}, status={self.status.status.value!r})"
