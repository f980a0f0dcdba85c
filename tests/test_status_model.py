"""
Test cases for the agent processing status model.
"""

from vibe.agents.core.enums import AgentProcessingStatus
from vibe.agents.core.status import AgentStatusModel


class TestAgentStatusModel:
    """Test cases for AgentStatusModel."""

    def test_initial_state(self):
        """Test that a new model is idle without an error."""
        status = AgentStatusModel()
        assert status.is_idle
        assert status.error_message is None

    def test_transitions(self):
        """Test processing, error and idle transitions."""
        status = AgentStatusModel()
        status.set_processing_status()
        assert status.is_processing

        status.set_error_status("completion failed")
        assert status.has_error
        assert status.error_message == "completion failed"

        status.set_idle_status()
        assert status.is_idle
        assert status.error_message is None

    def test_clear_error_only_from_error(self):
        """Test that clear_error leaves non-error states alone."""
        status = AgentStatusModel()
        status.set_processing_status()
        status.clear_error()
        assert status.is_processing

        status.set_error_status("boom")
        status.clear_error()
        assert status.is_idle

    def test_timestamps_advance(self):
        """Test that transitions stamp both timestamps."""
        status = AgentStatusModel()
        before = status.last_status_change
        status.set_processing_status()
        assert status.last_status_change >= before
        assert status.last_activity == status.last_status_change

    def test_listeners_see_complete_state(self):
        """Test that listeners run after every field is updated."""
        status = AgentStatusModel()
        seen = []
        status.subscribe(lambda s: seen.append((s.status, s.error_message)))

        status.set_error_status("boom")
        assert seen == [(AgentProcessingStatus.ERROR, "boom")]

    def test_unsubscribe(self):
        """Test that unsubscribed listeners are not called."""
        status = AgentStatusModel()
        calls = []
        unsubscribe = status.subscribe(lambda s: calls.append(s.status))
        unsubscribe()
        status.set_processing_status()
        assert calls == []

    def test_failing_listener_does_not_block_others(self):
        """Test that one failing listener does not stop the others."""
        status = AgentStatusModel()
        calls = []

        def broken(_):
            raise RuntimeError("listener bug")

        status.subscribe(broken)
        status.subscribe(lambda s: calls.append(s.status))
        status.set_processing_status()
        assert calls == [AgentProcessingStatus.PROCESSING]

    def test_update_activity_keeps_status(self):
        """Test that update_activity does not change the status."""
        status = AgentStatusModel()
        status.set_error_status("boom")
        status.update_activity()
        assert status.has_error
        assert status.error_message == "boom"

    def test_dict_round_trip(self):
        """Test serialization to and from a dict."""
        status = AgentStatusModel()
        status.set_error_status("boom")
        restored = AgentStatusModel.from_dict(status.to_dict())
        assert restored.has_error
        assert restored.error_message == "boom"
        assert restored.last_status_change == status.last_status_change

    def test_unknown_status_falls_back_to_idle(self):
        """Test that an unknown stored status restores as idle."""
        restored = AgentStatusModel.from_dict({"status": "sleeping", "error_message": "x"})
        assert restored.is_idle
        assert restored.error_message is None
