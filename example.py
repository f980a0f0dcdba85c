#!/usr/bin/env python3
"""
Complete Agent Runtime Example

This example demonstrates the agent runtime end to end, including:
- Connecting to MCP tool servers and discovering their tools
- Creating agents with tool preferences and a supervisor
- Draining inbox messages and to-do tasks through conversation cycles
- Direct tool calls and deterministic bare-name resolution
- Content sync with pause/resume
- Persisting an agent record and dumping its transcript

The language model is replaced by a small rule-based completion client so the
example runs without network access. Start it from the project root:

    python example.py
"""

import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from vibe.agents import (
    AgentOrchestrator, AgentRegistry, ContentSyncEngine, MCPServerManager, RuntimeSettings
)
from vibe.agents.core.exceptions import AgentRuntimeError, ToolDisabledError
from vibe.agents.core.interfaces import CompletionClient
from vibe.agents.core.models import AgentRecord, ChatMessage, ToolCall
from vibe.agents.core.enums import MessageRole

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


MCP_CONFIG = {
    "mcpServers": {
        "notepad": {
            "command": sys.executable,
            "args": ["notepad_mcp_server.py"]
        },
        "tasks": {
            "command": sys.executable,
            "args": ["task_list_mcp_server.py"]
        },
        "weather": {
            "url": "http://localhost:8765/mcp",
            "description": "Not running in this example; shows partial failure"
        }
    }
}


class RuleBasedCompletionClient(CompletionClient):
    """Stand-in for a language model.

    Writes every incoming message to the notepad through a tool call, then
    answers once the tool response arrives.
    """

    async def complete(
        self,
        messages: List[ChatMessage],
        tools: List[Dict[str, Any]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> ChatMessage:
        last = messages[-1]
        if last.role == MessageRole.TOOL:
            return ChatMessage.assistant(f"Done. Tool said: {last.content}")

        offered = {tool["function"]["name"] for tool in tools}
        if "notepad_notepad_append" in offered and last.role == MessageRole.USER:
            first_line = next((line for line in last.content.splitlines() if line and line[0] not in "-"), "")
            return ChatMessage.assistant("", [ToolCall(
                name="notepad_notepad_append",
                arguments=json.dumps({"line": first_line})
            )])

        return ChatMessage.assistant("Nothing to do.")


class AgentRuntimeExample:
    """Complete example showcasing the agent runtime."""

    def __init__(self):
        self.settings = RuntimeSettings(max_tool_rounds=5, poll_interval_seconds=1.0)
        self.servers: Optional[MCPServerManager] = None
        self.registry = AgentRegistry()
        self.completion_client = RuleBasedCompletionClient()

    async def setup(self):
        """Connect to the configured tool servers."""
        logger.info("Setting up agent runtime...")
        self.servers = MCPServerManager()
        statuses = await self.servers.initialize(MCP_CONFIG)
        for name, status in statuses.items():
            logger.info(f"  {name}: {status}")
        logger.info(f"Discovered tools: {[t.tool_id for t in self.servers.get_all_tools()]}")

    def create_agent(self, name: str, prompt: str, supervisor: Optional[AgentOrchestrator] = None):
        assert self.servers is not None, "Server manager not initialized"
        agent = AgentOrchestrator(
            name=name,
            system_prompt=prompt,
            completion_client=self.completion_client,
            server_manager=self.servers,
            settings=self.settings,
            supervisor=supervisor
        )
        self.registry.register(agent)
        return agent

    async def example_inbox_and_tasks(self):
        """Example 1: Inbox messages and to-do tasks."""
        logger.info("\nExample 1: Inbox and to-do processing")

        lead = self.create_agent("Lead", "You coordinate the team.")
        worker = self.create_agent("Worker", "You take notes for the team.", supervisor=lead)

        lead.send_message(worker, "Remember that the release is on Friday.")
        worker.add_task("Summarize this week's notes")

        await worker.think()
        logger.info(worker.details())

        worker.send_message_to_supervisor("Notes are up to date.")
        logger.info(f"Lead inbox: {[m.content for m in lead.inbox]}")

    async def example_direct_tool_calls(self):
        """Example 2: Direct calls and preferences."""
        logger.info("\nExample 2: Direct tool calls")
        worker = self.registry.find_by_name("worker")

        result = await worker.call_mcp_tool("notepad_read")
        logger.info(f"notepad_read -> {result.text!r}")

        worker.set_tool_enabled("tasks:task_list_add", False)
        try:
            await worker.call_mcp_tool("task_list_add", {"title": "Should not be added"})
        except ToolDisabledError as e:
            logger.info(f"Disabled tool rejected: {e}")

    async def example_content_sync(self):
        """Example 3: Mirroring remote content for the active agent."""
        logger.info("\nExample 3: Content sync")
        worker = self.registry.find_by_name("worker")
        engine = ContentSyncEngine(self.servers, self.registry, self.settings)

        await engine.start(worker.id)
        await asyncio.sleep(1.5)
        await engine.pause()
        logger.info(f"Mirrored notepad: {worker.notepad!r}")
        logger.info(f"Mirrored tasks: {worker.remote_todo_items}")
        await engine.resume()
        await engine.stop()
        logger.info(f"Sync metrics: {engine.get_metrics()}")

    async def example_persistence(self):
        """Example 4: Records and transcripts."""
        logger.info("\nExample 4: Persistence")
        worker = self.registry.find_by_name("worker")

        record = worker.to_record()
        restored = AgentOrchestrator.from_record(
            AgentRecord.model_validate_json(record.model_dump_json()),
            self.completion_client,
            self.servers,
            settings=self.settings
        )
        logger.info(f"Restored {restored!r} with {restored.conversation.message_count} messages")

        path = worker.dump_conversation_history()
        logger.info(f"Transcript written to {path}")

    async def cleanup(self):
        self.registry.dispose_all()
        if self.servers is not None:
            await self.servers.close_all()

    async def run_all_examples(self):
        """Run all examples in sequence."""
        try:
            await self.setup()
            await self.example_inbox_and_tasks()
            await self.example_direct_tool_calls()
            await self.example_content_sync()
            await self.example_persistence()
            logger.info("\nAll examples completed")
        except AgentRuntimeError as e:
            logger.error(f"Example failed: {e}")
            raise
        finally:
            await self.cleanup()


async def main():
    """Main entry point."""
    example = AgentRuntimeExample()
    await example.run_all_examples()


if __name__ == "__main__":
    asyncio.run(main())
