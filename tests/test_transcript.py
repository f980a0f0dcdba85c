"""
Test cases for TranscriptWriter.
"""

from datetime import datetime, timezone

from vibe.agents.core.models import ChatMessage, ToolCall
from vibe.agents.conversation.transcript import TranscriptWriter


def sample_history():
    return [
        ChatMessage.system("You are Alice."),
        ChatMessage.user("read a.txt"),
        ChatMessage.assistant("", [ToolCall(id="call_1", name="files_read", arguments='{"path": "a.txt"}')]),
        ChatMessage.tool("call_1", "contents of a.txt"),
        ChatMessage.assistant("It says hello"),
    ]


class TestTranscriptWriter:
    """Test cases for TranscriptWriter."""

    def test_render(self):
        """Test the human-readable dump format."""
        writer = TranscriptWriter()
        stamp = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        text = writer.render(sample_history(), timestamp=stamp)

        lines = text.splitlines()
        assert lines[0] == "=== Conversation History Dump 2024-05-01T12:00:00+00:00 ==="
        assert "SYSTEM: You are Alice." in lines
        assert "USER: read a.txt" in lines
        assert "TOOL CALLS:" in lines
        assert '"name": "files_read"' in text
        assert "TOOL RESPONSE for call ID call_1:" in lines
        assert "ASSISTANT: It says hello" in lines
        assert lines.count("---") == 5
        assert text.rstrip().endswith("=== End of Dump ===")

    def test_write_appends(self, tmp_path):
        """Test that dumps are appended to a per-agent file."""
        writer = TranscriptWriter(tmp_path / "logs")

        path = writer.write("Alice", sample_history())
        writer.write("Alice", sample_history()[:1])

        assert path == tmp_path / "logs" / "alice.log"
        text = path.read_text(encoding="utf-8")
        assert text.count("=== Conversation History Dump") == 2
        assert text.count("=== End of Dump ===") == 2
