"""
Human-readable transcript export of conversation histories.

Transcripts are a diagnostic sink: each dump is appended to a log file
named after the agent and is never read back by the runtime.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ..core.enums import MessageRole
from ..core.models import ChatMessage

logger = logging.getLogger(__name__)


class TranscriptWriter:
    """Appends conversation dumps to ``{directory}/{agent name}.log``."""

    def __init__(self, directory: Union[str, Path] = "logs"):
        self.directory = Path(directory)

    def path_for(self, agent_name: str) -> Path:
        return self.directory / f"{agent_name.lower()}.log"

    def render(self, messages: Iterable[ChatMessage], timestamp: Optional[datetime] = None) -> str:
        """Render one dump block."""
        timestamp = timestamp or datetime.now(timezone.utc)
        lines: List[str] = [f"=== Conversation History Dump {timestamp.isoformat()} ==="]

        for message in messages:
            if message.role == MessageRole.TOOL:
                lines.append(f"TOOL RESPONSE for call ID {message.tool_call_id}:")
                lines.append(message.content)
            else:
                lines.append(f"{message.role.value.upper()}: {message.content}")
                if message.tool_calls:
                    lines.append("TOOL CALLS:")
                    lines.append(json.dumps([call.to_dict() for call in message.tool_calls], indent=2))
            lines.append("---")

        lines.append("=== End of Dump ===")
        return "\n".join(lines) + "\n\n"

    def write(self, agent_name: str, messages: Iterable[ChatMessage]) -> Path:
        """Append a dump of ``messages`` to the agent's log file.

        Returns:
            Path of the log file
        """
        path = self.path_for(agent_name)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as handle:
            handle.write(self.render(messages))
        logger.info(f"Conversation history for {agent_name} dumped to {path}")
        return path
