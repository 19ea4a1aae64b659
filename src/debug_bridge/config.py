"""Bridge configuration from environment variables."""

from __future__ import annotations

import json
import os
import shlex
import shutil
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .commands import FOLLOW_UP_DELAY
from .discovery import DEFAULT_PORTS, default_descriptor_path

DEFAULT_HOST = "127.0.0.1"


def parse_ports(value: str) -> list[int]:
    """Parse a port list such as ``"3001,3005"`` or ``"3001-3010"``.

    Raises:
        ValueError: If the value is empty or holds an invalid port.
    """
    ports: list[int] = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            start_text, end_text = part.split("-", 1)
            start, end = int(start_text), int(end_text)
            if end < start:
                raise ValueError(f"Invalid port range: {part}")
            ports.extend(range(start, end + 1))
        else:
            ports.append(int(part))

    if not ports:
        raise ValueError(f"No ports in: {value!r}")
    for port in ports:
        if not 0 < port < 65536:
            raise ValueError(f"Port out of range: {port}")
    return ports


def resolve_adapter_command(
    command: str | None = None, environ: dict[str, str] | None = None
) -> tuple[list[str], str]:
    """Resolve the debug adapter command line and its adapter id.

    Order: explicit command, ``DEBUG_BRIDGE_ADAPTER``, netcoredbg
    (``NETCOREDBG_PATH`` or PATH), then debugpy's adapter under the current
    interpreter.
    """
    env = os.environ if environ is None else environ
    command = command or env.get("DEBUG_BRIDGE_ADAPTER")
    if command:
        argv = shlex.split(command)
        return argv, _adapter_id(argv)

    netcoredbg = env.get("NETCOREDBG_PATH") or shutil.which("netcoredbg")
    if netcoredbg:
        return [netcoredbg, "--interpreter=vscode"], "coreclr"

    return [sys.executable, "-m", "debugpy.adapter"], "debugpy"


def _adapter_id(argv: list[str]) -> str:
    joined = " ".join(argv)
    if "netcoredbg" in joined:
        return "coreclr"
    if "debugpy" in joined:
        return "debugpy"
    return Path(argv[0]).stem or "bridge"


def load_launch_config(path: str | Path) -> dict[str, Any]:
    """Load a launch/attach configuration from a JSON file.

    Raises:
        ValueError: If the file does not hold a JSON object.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Launch configuration must be a JSON object: {path}")
    return data


@dataclass
class BridgeConfig:
    """Runtime settings for the bridge."""
    host: str = DEFAULT_HOST
    ports: list[int] = field(default_factory=lambda: list(DEFAULT_PORTS))
    descriptor_path: Path = field(default_factory=default_descriptor_path)
    adapter_command: list[str] = field(default_factory=list)
    adapter_id: str = "bridge"
    launch_config: dict[str, Any] | None = None
    follow_up_delay: float = FOLLOW_UP_DELAY
    event_log: Path | None = None

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> BridgeConfig:
        env = os.environ if environ is None else environ
        config = cls()
        if env.get("DEBUG_BRIDGE_HOST"):
            config.host = env["DEBUG_BRIDGE_HOST"]
        if env.get("DEBUG_BRIDGE_PORTS"):
            config.ports = parse_ports(env["DEBUG_BRIDGE_PORTS"])
        if env.get("DEBUG_BRIDGE_PORT_FILE"):
            config.descriptor_path = Path(env["DEBUG_BRIDGE_PORT_FILE"])
        if env.get("DEBUG_BRIDGE_LAUNCH"):
            config.launch_config = load_launch_config(env["DEBUG_BRIDGE_LAUNCH"])
        if env.get("DEBUG_BRIDGE_FOLLOW_UP_DELAY"):
            config.follow_up_delay = float(env["DEBUG_BRIDGE_FOLLOW_UP_DELAY"])
        if env.get("DEBUG_BRIDGE_EVENT_LOG"):
            config.event_log = Path(env["DEBUG_BRIDGE_EVENT_LOG"])
        config.adapter_command, config.adapter_id = resolve_adapter_command(environ=env)
        return config
