"""Error contracts shared by the loadwatch client, CLI and service."""

from .error import (
    BadInputError,
    DecodeError,
    DispatchError,
    EnvelopeError,
    ErrorEnvelope,
    Exit,
    TransportError,
    die,
    guard_cli,
)

__all__ = [
    "Exit",
    "ErrorEnvelope",
    "EnvelopeError",
    "BadInputError",
    "DecodeError",
    "TransportError",
    "DispatchError",
    "guard_cli",
    "die",
]
