# nuance_sync/app/core/Sync/exceptions.py
from typing import Optional


class SyncError(Exception):
    """Base exception for the sync library."""
    pass

class TransportError(SyncError):
    """Represents an error talking to the remote blob service (network, protocol or bad body)."""
    pass

class AuthError(TransportError):
    """The remote rejected the token on the identity lookup."""
    pass

class RemoteServiceError(TransportError):
    """The remote answered with a non-2xx status."""
    def __init__(self, message, status_code: Optional[int] = None, detail: Optional[str] = None, *args):
        super().__init__(message, *args)
        self.status_code = status_code
        self.detail = detail

    def __str__(self):
        base = super().__str__()
        details = []
        if self.status_code: details.append(f"HTTP {self.status_code}")
        if self.detail: details.append(self.detail)
        return f"{base} ({': '.join(details)})" if details else base

class StateError(SyncError):
    """Represents an error reading/writing the local record store."""
    pass
