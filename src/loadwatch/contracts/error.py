"""Exception taxonomy, JSON error envelope and CLI exit codes for loadwatch.

Each :class:`EnvelopeError` subclass declares the exit code and envelope
label it maps to, so :func:`guard_cli` needs no lookup table.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass
from enum import IntEnum
from functools import wraps
from typing import Any, ClassVar, NoReturn, TypeVar

logger = logging.getLogger(__name__)
T = TypeVar("T")


class Exit(IntEnum):
    """Process exit codes of the ``loadwatch`` CLI."""

    OK = 0
    BAD_INPUT = 2
    DECODE = 3
    TRANSPORT = 4
    DISPATCH = 5


@dataclass(slots=True)
class ErrorEnvelope:
    """The single JSON line written to stderr when a command fails."""

    error: str
    detail: str
    hint: str | None = None

    def to_json(self) -> str:
        body: dict[str, str] = {"error": self.error, "detail": self.detail}
        if self.hint:
            body["hint"] = self.hint
        return json.dumps(body, ensure_ascii=False)


def die(code: Exit, kind: str, detail: str, hint: str | None = None) -> NoReturn:
    sys.stderr.write(ErrorEnvelope(error=kind, detail=detail, hint=hint).to_json() + "\n")
    try:
        sys.stderr.flush()
    finally:
        sys.exit(int(code))


class EnvelopeError(Exception):
    exit_code: ClassVar[Exit] = Exit.BAD_INPUT
    label: ClassVar[str] = "Error"

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class BadInputError(EnvelopeError):
    """Invalid configuration file, environment override or CLI flag."""

    exit_code = Exit.BAD_INPUT
    label = "BadInput"


class DecodeError(EnvelopeError):
    """A backend payload is not valid JSON or does not have the expected shape."""

    exit_code = Exit.DECODE
    label = "Decode"


class TransportError(EnvelopeError):
    """The backend was unreachable or answered with a non-2xx status."""

    exit_code = Exit.TRANSPORT
    label = "Transport"

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        body: str | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.status = status
        self.body = body


class DispatchError(EnvelopeError):
    """A start/stop command was rejected, invalid, or could not be delivered."""

    exit_code = Exit.DISPATCH
    label = "Dispatch"

    def __init__(self, message: str, *, status: int | None = None, hint: str | None = None) -> None:
        super().__init__(message, hint=hint)
        self.status = status


def guard_cli(fn: Callable[..., T]) -> Callable[..., T]:
    """Run a CLI handler, turning loadwatch errors into an envelope and exit code."""

    @wraps(fn)
    def _wrapped(*args: Any, **kwargs: Any) -> T:
        try:
            return fn(*args, **kwargs)
        except EnvelopeError as exc:
            logger.debug("%s failed: %s", fn.__name__, exc)
            die(exc.exit_code, exc.label, str(exc), hint=exc.hint)
        except FileNotFoundError as exc:
            die(Exit.BAD_INPUT, "FileNotFound", str(exc))
        except Exception as exc:  # pragma: no cover
            logger.exception("Unhandled CLI exception")
            die(Exit.BAD_INPUT, "Unhandled", f"{type(exc).__name__}: {exc}")

    return _wrapped


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
