"""Port allocation and the discovery descriptor file.

The bridge listens on the first free port of a fixed candidate list and
advertises it in a small JSON file at a well-known temp-dir path, so a client
process can find it without prior coordination. A missing file simply means
the bridge is not running.
"""

from __future__ import annotations

import json
import logging
import os
import socket
import tempfile
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .errors import NoPortAvailable

logger = logging.getLogger(__name__)

DESCRIPTOR_FILENAME = "vscode-claude-debug-port.json"
DEFAULT_PORTS = list(range(3001, 3011))
LISTEN_BACKLOG = 128


def default_descriptor_path() -> Path:
    """Fixed descriptor location in the OS temp directory."""
    return Path(tempfile.gettempdir()) / DESCRIPTOR_FILENAME


@dataclass
class PortDescriptor:
    """Advertisement of a running bridge."""
    port: int
    process_id: int = field(default_factory=os.getpid)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: str = "running"

    def to_dict(self) -> dict[str, Any]:
        return {
            "port": self.port,
            "processId": self.process_id,
            "createdAt": self.created_at.isoformat(),
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PortDescriptor:
        return cls(
            port=int(data["port"]),
            process_id=int(data["processId"]),
            created_at=datetime.fromisoformat(data["createdAt"]),
            status=data.get("status", "running"),
        )


def bind_first_free(ports: Iterable[int], host: str = "127.0.0.1") -> socket.socket:
    """Open a listening socket on the first candidate port that binds.

    Address-in-use and permission errors move on to the next candidate.

    Raises:
        NoPortAvailable: If no candidate could be bound.
    """
    candidates = list(ports)
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    for port in candidates:
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            if os.name != "nt":
                # Allow quick restarts while old connections sit in TIME_WAIT
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
            sock.listen(LISTEN_BACKLOG)
        except OSError as e:
            sock.close()
            logger.debug(f"Port {port} unavailable: {e}")
            continue
        sock.setblocking(False)
        logger.info(f"Bound {host}:{port}")
        return sock

    raise NoPortAvailable(candidates)


def write_descriptor(descriptor: PortDescriptor, path: Path | None = None) -> Path:
    """Write the descriptor, replacing any stale one."""
    path = Path(path) if path is not None else default_descriptor_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(descriptor.to_dict(), indent=2), encoding="utf-8")
    logger.info(f"Port descriptor written to {path}")
    return path


def read_descriptor(path: Path | None = None) -> PortDescriptor | None:
    """Read the descriptor. Returns None if absent or unreadable."""
    path = Path(path) if path is not None else default_descriptor_path()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return PortDescriptor.from_dict(data)
    except FileNotFoundError:
        return None
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.warning(f"Ignoring unreadable port descriptor {path}: {e}")
        return None


def remove_descriptor(path: Path | None = None) -> bool:
    """Delete the descriptor. Failures are logged, never raised."""
    path = Path(path) if path is not None else default_descriptor_path()
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"Failed to remove port descriptor {path}: {e}")
        return False
    logger.info(f"Port descriptor removed: {path}")
    return True
