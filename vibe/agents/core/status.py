"""
Agent processing status model.

A small observable state machine (idle / processing / error) that agents,
background pollers and UI-style readers share. Every transition stamps a
timestamp and synchronously notifies subscribed listeners.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from .enums import AgentProcessingStatus
from .models import AgentStatusRecord

logger = logging.getLogger(__name__)

StatusListener = Callable[["AgentStatusModel"], None]


class AgentStatusModel:
    """Observable processing status of one agent.

    No transition is rejected: any state can be reached from any other.
    Callers use the status as a signal rather than a strict protocol, so a
    skipped orchestration step never wedges the displayed state.
    """

    def __init__(
        self,
        status: AgentProcessingStatus = AgentProcessingStatus.IDLE,
        error_message: Optional[str] = None,
        last_status_change: Optional[datetime] = None,
        last_activity: Optional[datetime] = None
    ):
        now = datetime.now(timezone.utc)
        self._status = status
        self._error_message = error_message if status == AgentProcessingStatus.ERROR else None
        self._last_status_change = last_status_change or now
        self._last_activity = last_activity or now
        self._listeners: List[StatusListener] = []

    @property
    def status(self) -> AgentProcessingStatus:
        return self._status

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    @property
    def last_status_change(self) -> datetime:
        return self._last_status_change

    @property
    def last_activity(self) -> datetime:
        return self._last_activity

    @property
    def is_idle(self) -> bool:
        return self._status == AgentProcessingStatus.IDLE

    @property
    def is_processing(self) -> bool:
        return self._status == AgentProcessingStatus.PROCESSING

    @property
    def has_error(self) -> bool:
        return self._status == AgentProcessingStatus.ERROR

    def set_processing_status(self) -> None:
        """Mark a completion cycle or tool sequence as in flight."""
        self._transition(AgentProcessingStatus.PROCESSING, None)

    def set_idle_status(self) -> None:
        """Mark the agent idle, clearing any error."""
        self._transition(AgentProcessingStatus.IDLE, None)

    def set_error_status(self, message: str) -> None:
        """Mark the agent failed with a displayable message."""
        self._transition(AgentProcessingStatus.ERROR, message)

    def clear_error(self) -> None:
        """Return from error to idle. No-op in other states."""
        if self.has_error:
            self.set_idle_status()

    def update_activity(self) -> None:
        """Stamp activity without changing the status."""
        self._last_activity = datetime.now(timezone.utc)
        self._notify()

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register a listener called after every change.

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def clear_listeners(self) -> None:
        self._listeners = []

    def _transition(self, status: AgentProcessingStatus, error_message: Optional[str]) -> None:
        now = datetime.now(timezone.utc)
        # All fields are updated before any listener runs.
        self._status = status
        self._error_message = error_message
        self._last_status_change = now
        self._last_activity = now
        logger.debug(f"Status changed to {status}" + (f": {error_message}" if error_message else ""))
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"Status listener {listener!r} failed: {e}")

    def to_record(self) -> AgentStatusRecord:
        return AgentStatusRecord(
            status=self._status,
            error_message=self._error_message,
            last_status_change=self._last_status_change,
            last_activity=self._last_activity
        )

    @classmethod
    def from_record(cls, record: AgentStatusRecord) -> "AgentStatusModel":
        return cls(
            status=record.status,
            error_message=record.error_message,
            last_status_change=record.last_status_change,
            last_activity=record.last_activity
        )

    def to_dict(self) -> Dict[str, Any]:
        return self.to_record().model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgentStatusModel":
        """Restore from a dict; an unknown status falls back to idle."""
        data = dict(data)
        try:
            AgentProcessingStatus(data.get("status"))
        except ValueError:
            logger.warning(f"Unknown agent status {data.get('status')!r}, using idle")
            data["status"] = AgentProcessingStatus.IDLE.value
            data.pop("error_message", None)
        return cls.from_record(AgentStatusRecord.model_validate(data))

    def __repr__(self) -> str:
        return f"AgentStatusModel(status={self._status.value!r}, error_message={self._error_message!r})"
