"""
Conversation manager driving one agent's exchange with the completion dependency.

This module owns the ordered message history of a single agent and runs
conversation cycles: send the history, append the assistant reply, resolve
any requested tool calls into tool-role responses, and repeat until the
model answers without tool calls or the round limit is reached.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Set

from ..core.enums import MessageRole
from ..core.exceptions import AgentRuntimeError, CompletionCycleFailedError
from ..core.interfaces import CompletionClient, ToolInvoker
from ..core.models import ChatMessage, ToolCall, ToolCallResult
from ..core.status import AgentStatusModel

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOOL_ROUNDS = 10


class ConversationManager:
    """
    Ordered message history for one agent plus the cycle that extends it.

    This class handles:
    - Appending system, user and keyed context messages
    - Running a conversation cycle with tool-call resolution
    - Keeping the history consistent when a cycle fails
    - Read-only snapshots for persistence and transcripts

    The status model is set to processing for the duration of a cycle and
    to idle or error at its end. Starting a second cycle while one is in
    flight is the caller's responsibility to avoid.
    """

    def __init__(
        self,
        completion_client: CompletionClient,
        status: Optional[AgentStatusModel] = None,
        tool_invoker: Optional[ToolInvoker] = None,
        max_tool_rounds: int = DEFAULT_MAX_TOOL_ROUNDS,
        agent_id: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ):
        if max_tool_rounds < 1:
            raise ValueError("max_tool_rounds must be at least 1")
        self._completion_client = completion_client
        self.status = status or AgentStatusModel()
        self.tool_invoker = tool_invoker
        self.max_tool_rounds = max_tool_rounds
        self.agent_id = agent_id
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._messages: List[ChatMessage] = []

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    @property
    def message_count(self) -> int:
        return len(self._messages)

    def add_system_message(self, text: str) -> None:
        self._messages.append(ChatMessage.system(text))

    def add_user_message(self, text: str) -> None:
        self._messages.append(ChatMessage.user(text))

    def add_message(self, message: ChatMessage) -> None:
        self._messages.append(message.model_copy(deep=True))

    def add_context(self, context_id: str, content: str) -> None:
        """Insert or replace the system message tagged with ``context_id``."""
        for index, message in enumerate(self._messages):
            if message.context_id == context_id:
                self._messages[index] = ChatMessage.system(content, context_id=context_id)
                return
        self._messages.append(ChatMessage.system(content, context_id=context_id))

    def remove_context(self, context_id: str) -> bool:
        before = len(self._messages)
        self._messages = [m for m in self._messages if m.context_id != context_id]
        return len(self._messages) != before

    def clear_conversation(self) -> None:
        """Drop every message. Callers re-add any system preamble."""
        self._messages = []

    def get_history(self) -> List[ChatMessage]:
        """Copy of the history that later appends cannot affect."""
        return [message.model_copy(deep=True) for message in self._messages]

    def to_records(self) -> List[Dict[str, Any]]:
        return [message.model_dump(mode="json") for message in self._messages]

    def load_records(self, records: List[Dict[str, Any]]) -> None:
        """Replace the history with deserialized messages."""
        self._messages = [ChatMessage.model_validate(record) for record in records]

    def validate_history(self) -> List[str]:
        """
        Check that every tool call is answered in place.

        Returns:
            List of problems (empty if consistent)
        """
        problems = []
        pending: List[str] = []
        known: Set[str] = set()

        for index, message in enumerate(self._messages):
            if message.role == MessageRole.TOOL:
                if message.tool_call_id not in known:
                    problems.append(
                        f"Message {index}: tool response {message.tool_call_id} has no matching call"
                    )
                elif message.tool_call_id in pending:
                    pending.remove(message.tool_call_id)
                else:
                    problems.append(
                        f"Message {index}: tool response {message.tool_call_id} is not adjacent to its call"
                    )
                continue

            if pending:
                problems.append(
                    f"Message {index}: tool calls {', '.join(pending)} were not answered before it"
                )
                pending = []

            if message.tool_calls:
                ids = [call.id for call in message.tool_calls]
                pending = list(ids)
                known.update(ids)

        if pending:
            problems.append(f"Tool calls {', '.join(pending)} are unanswered at end of history")
        return problems

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    async def send_message(self) -> ChatMessage:
        """
        Run one conversation cycle.

        Returns:
            The final assistant reply (one without tool calls)

        Raises:
            CompletionCycleFailedError: If the completion dependency fails or
                the tool round limit is reached; status is left at error
            asyncio.CancelledError: Re-raised after pending calls are answered
                and status is set to error
        """
        self.status.set_processing_status()
        try:
            reply = await self._run_cycle()
        except asyncio.CancelledError:
            self._answer_pending_calls("Conversation cycle cancelled")
            self.status.set_error_status("Conversation cycle cancelled")
            logger.warning(f"Conversation cycle cancelled for agent {self.agent_id}")
            raise
        except Exception as e:
            self._answer_pending_calls(f"Conversation cycle aborted: {e}")
            message = str(e) or e.__class__.__name__
            self.status.set_error_status(message)
            logger.error(f"Conversation cycle failed for agent {self.agent_id}: {message}")
            if isinstance(e, CompletionCycleFailedError):
                raise
            raise CompletionCycleFailedError(message, agent_id=self.agent_id) from e

        self.status.set_idle_status()
        return reply

    async def _run_cycle(self) -> ChatMessage:
        for round_number in range(1, self.max_tool_rounds + 1):
            reply = await self._request_completion()
            self._messages.append(reply)

            if not reply.tool_calls:
                return reply

            if round_number == self.max_tool_rounds:
                break

            logger.debug(
                f"Round {round_number}: resolving {len(reply.tool_calls)} tool calls for agent {self.agent_id}"
            )
            for call in reply.tool_calls:
                result = await self._execute_tool_call(call)
                self._messages.append(ChatMessage.tool(
                    call.id, self._render_result(result), name=call.name, is_error=result.is_error
                ))

        self._answer_pending_calls(
            f"Tool call round limit of {self.max_tool_rounds} reached; call not executed"
        )
        self._messages.append(ChatMessage.assistant(
            f"Stopped after {self.max_tool_rounds} tool-calling rounds without a final answer."
        ))
        raise CompletionCycleFailedError(
            f"Tool call round limit of {self.max_tool_rounds} reached",
            agent_id=self.agent_id,
            error_code="MAX_TOOL_ROUNDS"
        )

    async def _request_completion(self) -> ChatMessage:
        tools = self.tool_invoker.get_function_definitions() if self.tool_invoker else []
        reply = await self._completion_client.complete(
            self.get_history(),
            tools,
            temperature=self.temperature,
            max_tokens=self.max_tokens
        )
        if not isinstance(reply, ChatMessage) or reply.role != MessageRole.ASSISTANT:
            raise CompletionCycleFailedError(
                f"Completion returned {getattr(reply, 'role', type(reply).__name__)} instead of an assistant message",
                agent_id=self.agent_id,
                error_code="INVALID_REPLY"
            )
        return reply.model_copy(deep=True)

    async def _execute_tool_call(self, call: ToolCall) -> ToolCallResult:
        """Run one tool call; every failure becomes an error result."""
        try:
            arguments = call.parse_arguments()
        except ValueError as e:
            logger.warning(f"Bad arguments for tool call {call.name}: {e}")
            return ToolCallResult.error(f"Failed to parse arguments for {call.name}: {e}", tool_name=call.name)

        if self.tool_invoker is None:
            return ToolCallResult.error(f"No tools are available to call {call.name}", tool_name=call.name)

        try:
            return await self.tool_invoker.invoke_tool(call.name, arguments)
        except AgentRuntimeError as e:
            logger.warning(f"Tool call {call.name} failed: {e}")
            return ToolCallResult.error(f"Error: {e.message}", tool_name=call.name)
        except Exception as e:
            logger.error(f"Tool call {call.name} raised unexpectedly: {e}")
            return ToolCallResult.error(f"Error: {e}", tool_name=call.name)

    @staticmethod
    def _render_result(result: ToolCallResult) -> str:
        parts = []
        for block in result.content:
            if block.text is not None:
                parts.append(block.text)
            else:
                parts.append(json.dumps(block.to_dict()))
        text = "\n".join(parts)
        if result.is_error and not text.startswith("Error"):
            text = f"Error: {text}" if text else "Error: tool reported a failure"
        return text

    def _answer_pending_calls(self, reason: str) -> None:
        """Give every unanswered call of the last assistant message an error response."""
        for index in range(len(self._messages) - 1, -1, -1):
            message = self._messages[index]
            if message.role == MessageRole.TOOL:
                continue
            if message.role != MessageRole.ASSISTANT or not message.tool_calls:
                return
            answered = {m.tool_call_id for m in self._messages[index + 1:]}
            for call in message.tool_calls:
                if call.id not in answered:
                    self._messages.append(ChatMessage.tool(
                        call.id, f"Error: {reason}", name=call.name, is_error=True
                    ))
            return
