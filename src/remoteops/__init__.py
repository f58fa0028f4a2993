"""
remoteops - ordered remote command sequences over SSH
"""

__version__ = "0.1.0"

from .core import RemoteOps
from .errors import (
    CommandError,
    CommandTimeoutError,
    RemoteOpsError,
    SessionClosedError,
    SessionConnectionError,
)
from .models import ConnectionParams, ContainerQuery, Step
from .session import RemoteSession

__all__ = [
    "CommandError",
    "CommandTimeoutError",
    "ConnectionParams",
    "ContainerQuery",
    "RemoteOps",
    "RemoteOpsError",
    "RemoteSession",
    "SessionClosedError",
    "SessionConnectionError",
    "Step",
]
