"""Bridge error taxonomy."""


class BridgeError(Exception):
    """Base exception for debug bridge errors."""

    pass


class InvalidArgument(BridgeError):
    """Raised when a request field is missing or malformed."""

    pass


class NoActiveSession(BridgeError):
    """Raised when no debug session is attached."""

    def __init__(self, message: str = "No active debug session"):
        super().__init__(message)


class ProtocolError(BridgeError):
    """Raised when a debug session request fails or returns unusable data."""

    pass


class EmptyStack(ProtocolError):
    """Raised when a paused session reports no stack frames."""

    def __init__(self, message: str = "Stack trace returned no frames"):
        super().__init__(message)


class EmptyScopes(ProtocolError):
    """Raised when the top frame reports no scopes."""

    def __init__(self, message: str = "Top frame returned no scopes"):
        super().__init__(message)


class NoPortAvailable(BridgeError):
    """Raised when every candidate port is taken."""

    def __init__(self, ports: list[int]):
        self.ports = list(ports)
        super().__init__(f"No available port in candidates: {self.ports}")
