"""Splitting of raw SDP documents into typed line records."""

from __future__ import annotations

import re
from typing import Iterator

from sdpkit.constants import SDP_ENCODING
from sdpkit.exceptions import SDPMalformedLineError
from sdpkit.helpers import slots_dataclass


__all__ = [
    "SDPLine",
    "SDPLines",
    "tokenize",
]


_LINE_SPLIT_PAT: re.Pattern[str] = re.compile(r"\r?\n")


@slots_dataclass(frozen=True)
class SDPLine:
    """
    A single ``<type>=<value>`` line of an SDP document.

    Spec::
        <type>=<value>
    """

    kind: str
    raw_value: str
    line_number: int | None = None

    @classmethod
    def parse(cls, raw_line: str, line_number: int | None = None) -> SDPLine:
        """
        Parse a single raw line into a line record.

        :param raw_line: the line, without line terminator.
        :param line_number: the 1-based line number within the document, if known.
        :return: the parsed line record.
        :raises SDPMalformedLineError: if the line lacks the ``<type>=<value>`` shape.
        """
        location = f" {line_number}" if line_number is not None else ""
        if len(raw_line) < 2 or raw_line[1] != "=" or not raw_line[0].isascii():
            raise SDPMalformedLineError(f"Malformed SDP line{location}: {raw_line!r}")
        if not raw_line[0].isalpha():
            raise SDPMalformedLineError(
                f"Malformed SDP line{location}, type must be a letter: {raw_line!r}"
            )
        return cls(kind=raw_line[0], raw_value=raw_line[2:], line_number=line_number)

    def __str__(self) -> str:
        return f"{self.kind}={self.raw_value}"


class SDPLines:
    """
    Restartable sequence of line records over an SDP document.

    Lines are tokenized lazily on each iteration, so iterating again starts
    over from the first line, and a malformed line is only reported once
    iteration reaches it.
    """

    __slots__ = ("text",)

    def __init__(self, text: str | bytes) -> None:
        if isinstance(text, (bytes, bytearray)):
            try:
                text = bytes(text).decode(SDP_ENCODING)
            except UnicodeDecodeError as e:
                invalid = e.object[e.start : e.end]
                raise SDPMalformedLineError(
                    f"SDP data is not valid {SDP_ENCODING} at byte {e.start}: {invalid!r}"
                ) from e
        self.text: str = text

    def __iter__(self) -> Iterator[SDPLine]:
        for line_number, raw_line in enumerate(_LINE_SPLIT_PAT.split(self.text), 1):
            if not raw_line.strip():
                continue
            yield SDPLine.parse(raw_line, line_number=line_number)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.text!r})"


def tokenize(text: str | bytes) -> SDPLines:
    """Tokenize a raw SDP document (``\\n`` or ``\\r\\n`` separated) into line records."""
    return SDPLines(text)
