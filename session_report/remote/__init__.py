from .auth import Authenticator
from .connection import ConnectionSupervisor, SessionHandle, HANDLE_MAX_AGE

__all__ = [
    "Authenticator",
    "ConnectionSupervisor",
    "SessionHandle",
    "HANDLE_MAX_AGE",
]
