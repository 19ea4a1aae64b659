"""DAP event bodies the bridge inspects."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class StopReason(str, Enum):
    """Reasons for stopped event."""
    BREAKPOINT = "breakpoint"
    STEP = "step"
    EXCEPTION = "exception"
    PAUSE = "pause"
    ENTRY = "entry"
    GOTO = "goto"
    FUNCTION_BREAKPOINT = "function breakpoint"
    DATA_BREAKPOINT = "data breakpoint"
    INSTRUCTION_BREAKPOINT = "instruction breakpoint"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> "StopReason":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass
class StoppedEventBody:
    """Body of stopped event."""
    reason: StopReason
    thread_id: int | None = None
    all_threads_stopped: bool = False
    description: str | None = None
    text: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StoppedEventBody":
        return cls(
            reason=StopReason.parse(data.get("reason")),
            thread_id=data.get("threadId"),
            all_threads_stopped=data.get("allThreadsStopped", False),
            description=data.get("description"),
            text=data.get("text"),
        )

    def describe(self) -> str:
        """One-line summary for the event log."""
        parts = [f"reason={self.reason.value}"]
        if self.thread_id is not None:
            parts.append(f"thread={self.thread_id}")
        if self.description:
            parts.append(self.description)
        if self.text:
            parts.append(self.text)
        return ", ".join(parts)


@dataclass
class ExitedEventBody:
    """Body of exited event."""
    exit_code: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExitedEventBody":
        return cls(exit_code=data.get("exitCode", 0))
