"""Exception classes for the sdpkit library."""

from __future__ import annotations

from typing import Any


__all__ = [
    "SDPKitException",
    "ParseError",
    "SDPException",
    "SDPParseError",
    "SDPMalformedLineError",
    "SDPUnknownFieldError",
    "SDPUnsupportedVersion",
]


class SDPKitException(Exception):
    """Base class for all custom library exceptions."""


class ParseError(SDPKitException, ValueError):
    """Raised when some input data cannot be parsed."""


class SDPException(SDPKitException):
    """Base class for all exceptions raised by the SDP module."""


class SDPParseError(SDPException, ParseError):
    """
    Exception related to SDP data parsing.

    The offending line can be attached with the `line` keyword argument,
    or later by whoever knows it, and is then reported with the message.
    """

    def __init__(self, *args: Any, **kwargs: Any):
        self.line = kwargs.pop("line", None)
        super().__init__(*args, **kwargs)

    def __str__(self) -> str:
        message = super().__str__()
        if self.line is None:
            return message
        line_number = getattr(self.line, "line_number", None)
        location = f"line {line_number}" if line_number is not None else "line"
        return f"{message} ({location}: {self.line!s})"


class SDPMalformedLineError(SDPParseError):
    """Raised when a line lacks the minimum ``<type>=<value>`` shape."""


class SDPUnknownFieldError(SDPParseError):
    """Exception raised when an unknown SDP field is encountered."""


class SDPUnsupportedVersion(SDPParseError, NotImplementedError):
    """The SDP version is not supported by this library."""
