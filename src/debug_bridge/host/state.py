"""Host-side debug state: session lifecycle and the breakpoint set."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Any


class DebugState(str, Enum):
    """Debug session states."""
    IDLE = "idle"  # No active session
    INITIALIZING = "initializing"  # DAP initializing
    RUNNING = "running"  # Program executing
    STOPPED = "stopped"  # Hit breakpoint/paused
    TERMINATED = "terminated"  # Program ended


@dataclass(frozen=True)
class SourceLocation:
    """A position in a source file. ``line`` is zero-based."""
    path: str
    line: int


@dataclass
class SourceBreakpoint:
    """Represents a line breakpoint owned by the host."""
    location: SourceLocation
    enabled: bool = True
    condition: str | None = None
    verified: bool = False
    id: int | None = None

    @property
    def file(self) -> str:
        return self.location.path

    @property
    def line(self) -> int:
        """1-based line, as seen by callers and by the adapter."""
        return self.location.line + 1

    def to_dap(self) -> dict[str, Any]:
        """Convert to DAP SourceBreakpoint format (linesStartAt1)."""
        bp: dict[str, Any] = {"line": self.line}
        if self.condition:
            bp["condition"] = self.condition
        return bp


class BreakpointRegistry:
    """Manages breakpoints across files."""

    def __init__(self):
        self._breakpoints: dict[str, list[SourceBreakpoint]] = {}  # file -> breakpoints

    def add(self, breakpoint: SourceBreakpoint) -> None:
        """Add a breakpoint, replacing one already at the same line."""
        file_path = normalize_path(breakpoint.file)
        existing = self._breakpoints.setdefault(file_path, [])

        for i, bp in enumerate(existing):
            if bp.location.line == breakpoint.location.line:
                existing[i] = breakpoint
                return

        existing.append(breakpoint)

    def remove(self, location: SourceLocation) -> bool:
        """Remove a breakpoint. Returns True if found."""
        file_path = normalize_path(location.path)
        if file_path not in self._breakpoints:
            return False

        original_count = len(self._breakpoints[file_path])
        self._breakpoints[file_path] = [
            bp for bp in self._breakpoints[file_path] if bp.location.line != location.line
        ]

        if not self._breakpoints[file_path]:
            del self._breakpoints[file_path]

        return len(self._breakpoints.get(file_path, [])) < original_count

    def get_for_file(self, file: str) -> list[SourceBreakpoint]:
        """Get breakpoints for a file."""
        return list(self._breakpoints.get(normalize_path(file), []))

    def get_all(self) -> list[SourceBreakpoint]:
        """Get all breakpoints in insertion order."""
        return [bp for bps in self._breakpoints.values() for bp in bps]

    def get_files(self) -> list[str]:
        """Get files with breakpoints."""
        return list(self._breakpoints.keys())

    def update_from_dap(self, file: str, dap_breakpoints: list[dict[str, Any]]) -> None:
        """Record verification results from a setBreakpoints response.

        Only enabled breakpoints are sent to the adapter, so the response
        lines up with the enabled subset in order.
        """
        enabled = [bp for bp in self.get_for_file(file) if bp.enabled]
        for bp, dap_bp in zip(enabled, dap_breakpoints):
            bp.verified = dap_bp.get("verified", False)
            bp.id = dap_bp.get("id")

    def __len__(self) -> int:
        return sum(len(bps) for bps in self._breakpoints.values())


def normalize_path(path: str) -> str:
    """Normalize file path for consistent lookup."""
    normalized = os.path.normpath(path)
    if os.name == "nt":
        normalized = normalized.lower()
    return normalized
