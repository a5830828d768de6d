"""Assembly of tokenized SDP lines into a session description tree."""

from __future__ import annotations

import enum
import logging
from typing import Iterable

from sdpkit.exceptions import SDPParseError

from .common import ATTRIBUTE_FIELD_TYPE, SDPAttribute, UnknownAttribute
from .media import SDPMedia, SDPMediaFields, SDPMediaMedia
from .session import SDPSession, SDPSessionFields
from .time import SDPTime, SDPTimeFields, SDPTimeTime
from .tokenizer import SDPLine


__all__ = [
    "SDPScope",
    "SDPAssembler",
]


_logger = logging.getLogger(__name__)


class SDPScope(enum.Enum):
    """The section that lines are currently routed into."""

    SESSION = "session"
    MEDIA = "media"


class SDPAssembler:
    """
    State machine building an :class:`SDPSession` from a stream of line records.

    Lines are routed into the session until the first ``m=`` line, and from then
    on into the media section opened by the most recent ``m=`` line.
    Attribute lines are parsed through the :class:`SDPAttribute` registry,
    every other line through the fields registry of the current section.
    The first error aborts the assembly, with the offending line attached.
    """

    def __init__(self, session_cls: type[SDPSession] = SDPSession) -> None:
        self.session: SDPSession = session_cls()
        self.scope: SDPScope = SDPScope.SESSION
        self._media: SDPMedia | None = None
        self._time: SDPTime | None = None

    @property
    def current_section(self) -> SDPSession | SDPMedia:
        """The section that non-media lines are currently routed into."""
        if self.scope is SDPScope.MEDIA:
            assert self._media is not None
            return self._media
        return self.session

    def feed(self, line: SDPLine) -> None:
        """
        Route a single line record into the session being assembled.

        :raises SDPParseError: if the line is invalid, or not allowed in the current scope.
        """
        try:
            self._route(line)
        except SDPParseError as e:
            if e.line is None:
                e.line = line
            raise

    def _route(self, line: SDPLine) -> None:
        kind, raw_value = line.kind, line.raw_value

        if kind == SDPMediaMedia._type:  # noqa: SLF001
            self._open_media(SDPMediaFields.from_line(kind, raw_value))

        elif kind == ATTRIBUTE_FIELD_TYPE:
            attribute = SDPAttribute.parse(raw_value)
            if isinstance(attribute, UnknownAttribute):
                _logger.debug(f"Preserving unknown SDP attribute {attribute.name!r}")
            self.current_section.add_field(attribute)

        elif self.scope is SDPScope.MEDIA:
            if kind not in SDPMediaFields.get_registry() and (
                kind in SDPSessionFields.get_registry()
                or kind in SDPTimeFields.get_registry()
            ):
                raise SDPParseError(f"Session field {kind}= found after media field")
            assert self._media is not None
            self._media.add_field(SDPMediaFields.from_line(kind, raw_value))

        elif kind in SDPTimeFields.get_registry():
            time_field = SDPTimeFields.from_line(kind, raw_value)
            if isinstance(time_field, SDPTimeTime):
                self._time = SDPTime(time=time_field)
                self.session.add_field(self._time)
            elif self._time is None:
                raise SDPParseError(f"Field {kind}= found before any time field")
            else:
                self._time.add_field(time_field)

        else:
            self.session.add_field(SDPSessionFields.from_line(kind, raw_value))

    def _open_media(self, media_field: SDPMediaMedia) -> None:
        self._media = SDPMedia(media=media_field)
        self.session.add_field(self._media)
        self.scope = SDPScope.MEDIA
        _logger.debug(
            f"Opened SDP media section #{len(self.session.media)}: {media_field.media}"
        )

    @classmethod
    def assemble(
        cls,
        lines: Iterable[SDPLine],
        session_cls: type[SDPSession] = SDPSession,
    ) -> SDPSession:
        """
        Assemble a whole session description from the given line records.

        :param lines: the line records, in document order.
        :param session_cls: the session class to instantiate.
        :return: the assembled session.
        :raises SDPParseError: on the first invalid line.
        """
        assembler = cls(session_cls=session_cls)
        for line in lines:
            assembler.feed(line)
        return assembler.session
