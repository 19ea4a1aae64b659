"""DAP (Debug Adapter Protocol) client implementation."""

from .client import DAPClient
from .protocol import DAPEvent, DAPRequest, DAPRequestError, DAPResponse

__all__ = ["DAPClient", "DAPEvent", "DAPRequest", "DAPRequestError", "DAPResponse"]
