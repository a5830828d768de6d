"""SDP session section and fields definitions and implementations."""

from __future__ import annotations

import logging
from abc import ABC
from dataclasses import astuple, dataclass, field as dataclass_field, fields
from typing import Any, cast

from typing_extensions import Self

from sdpkit.constants import SDP_MIMETYPE, SUPPORTED_SDP_VERSIONS
from sdpkit.exceptions import SDPParseError, SDPUnsupportedVersion
from sdpkit.helpers import (
    FieldsParserSerializer,
    StrValueMixin,
    coerce_word,
    slots_dataclass,
)

from .attributes import MediaFlowType, find_attributes, get_media_flow_type
from .common import (
    SDPAttribute,
    SDPBandwidthField,
    SDPConnectionField,
    SDPEncryptionField,
    SDPField,
    SDPInformationField,
    SDPSection,
)
from .media import SDPMedia
from .time import SDPTime, typed_time_to_seconds
from .tokenizer import tokenize


__all__ = [
    "SDPSessionFields",
    "SDPSessionVersion",
    "SDPSessionOrigin",
    "SDPSessionName",
    "SDPSessionInformation",
    "SDPSessionURI",
    "SDPSessionEmail",
    "SDPSessionPhone",
    "SDPSessionConnection",
    "SDPSessionBandwidth",
    "SDPSessionTimezoneAdjustment",
    "SDPSessionTimezone",
    "SDPSessionEncryption",
    "SDPSession",
]


_logger = logging.getLogger(__name__)


@dataclass
class SDPSessionFields(SDPField, ABC, registry=True, registry_attr="_type"):
    """Base class for the fields allowed at session level, before any ``m=`` line."""


@slots_dataclass
class SDPSessionVersion(StrValueMixin, SDPSessionFields):
    """
    Protocol version, :rfc:`8866#section-5.1`. Only version ``0`` exists.

    Spec::
        v=0
    """

    _type = "v"
    _description = "protocol version"

    def __post_init__(self) -> None:
        if self.value not in SUPPORTED_SDP_VERSIONS:
            raise SDPUnsupportedVersion(f"Unsupported SDP version {self.value!r}")


@slots_dataclass
class SDPSessionOrigin(SDPSessionFields, FieldsParserSerializer):
    """
    Originator of the session and session identifier, :rfc:`8866#section-5.2`.

    The numeric values are kept as strings, as they can exceed 64 bits.

    Spec::
        o=<username> <sess-id> <sess-version> <nettype> <addrtype> <unicast-address>
    """

    _type = "o"
    _description = "originator and session identifier"

    username: str
    sess_id: str
    sess_version: str
    nettype: str
    addrtype: str
    unicast_address: str

    def __post_init__(self) -> None:
        for field in fields(self):
            value = coerce_word(getattr(self, field.name), f"origin {field.name}")
            setattr(self, field.name, value)

    @classmethod
    def parse_raw_value(cls, raw_value: str) -> dict[str, Any]:  # noqa: D102
        names = [field.name for field in fields(cls)]
        values = raw_value.split(" ")
        if len(values) != len(names):
            raise ValueError(f"expected {len(names)} values, got {len(values)}")
        return dict(zip(names, values))

    def serialize(self) -> str:  # noqa: D102
        return " ".join(astuple(self))


@slots_dataclass
class SDPSessionName(StrValueMixin, SDPSessionFields):
    """
    Session name, :rfc:`8866#section-5.3`. Kept verbatim, even if blank.

    Spec::
        s=<session name>
    """

    _type = "s"
    _description = "session name"

    @property
    def session_name(self) -> str:  # noqa: D102
        return self.value


@slots_dataclass
class SDPSessionInformation(SDPInformationField, SDPSessionFields):
    """Session information, :rfc:`8866#section-5.4`."""

    _description = "session information"


@slots_dataclass
class SDPSessionURI(StrValueMixin, SDPSessionFields):
    """
    URI of the session description, :rfc:`8866#section-5.5`.

    Spec::
        u=<uri>
    """

    _type = "u"
    _description = "URI of description"

    @property
    def uri(self) -> str:  # noqa: D102
        return self.value


@slots_dataclass
class SDPSessionEmail(StrValueMixin, SDPSessionFields):
    """
    Contact email address, :rfc:`8866#section-5.6`.

    Spec::
        e=<email-address>
    """

    _type = "e"
    _description = "email address"

    @property
    def email_address(self) -> str:  # noqa: D102
        return self.value


@slots_dataclass
class SDPSessionPhone(StrValueMixin, SDPSessionFields):
    """
    Contact phone number, :rfc:`8866#section-5.6`. The number is kept as written.

    Spec::
        p=<phone-number>
    """

    _type = "p"
    _description = "phone number"

    @property
    def number(self) -> str:
        """The phone number, e.g. ``+1 617 555-6011``."""
        return self.value

    @number.setter
    def number(self, number: str) -> None:
        self.value = number


@slots_dataclass
class SDPSessionConnection(SDPConnectionField, SDPSessionFields):
    """Session-level connection data, :rfc:`8866#section-5.7`."""

    _description = "connection information -- not required if included in all media"


@slots_dataclass
class SDPSessionBandwidth(SDPBandwidthField, SDPSessionFields):
    """Session-level bandwidth, :rfc:`8866#section-5.8`."""

    _description = "zero or more bandwidth information lines"


@slots_dataclass
class SDPSessionTimezoneAdjustment:
    """A single ``<adjustment time> <offset>`` pair of a timezone field."""

    adjustment_time: int
    offset: str

    def __post_init__(self) -> None:
        self.offset = coerce_word(self.offset, "timezone offset")
        typed_time_to_seconds(self.offset)

    @property
    def offset_seconds(self) -> int:
        """The offset, in seconds."""
        return typed_time_to_seconds(self.offset)

    def serialize(self) -> str:  # noqa: D102
        return f"{self.adjustment_time} {self.offset}"

    def __str__(self) -> str:
        return self.serialize()


@slots_dataclass
class SDPSessionTimezone(SDPSessionFields, FieldsParserSerializer):
    """
    Timezone adjustments for repeated sessions, :rfc:`8866#section-5.11`.

    Spec::
        z=<adjustment time> <offset> <adjustment time> <offset> ....
    """

    _type = "z"
    _description = "time zone adjustments"

    adjustments: list[SDPSessionTimezoneAdjustment]

    @classmethod
    def parse_raw_value(cls, raw_value: str) -> dict[str, Any]:  # noqa: D102
        values = raw_value.split()
        if not values or len(values) % 2:
            raise SDPParseError(
                f"Timezone field needs adjustment time and offset pairs: {raw_value!r}"
            )
        pairs = zip(values[::2], values[1::2])
        return {
            "adjustments": [
                SDPSessionTimezoneAdjustment(int(adjustment_time), offset)
                for adjustment_time, offset in pairs
            ]
        }

    def serialize(self) -> str:  # noqa: D102
        return " ".join(map(str, self.adjustments))


@slots_dataclass
class SDPSessionEncryption(SDPEncryptionField, SDPSessionFields):
    """Session-level encryption key, :rfc:`8866#section-5.12`. Obsolete, but still parsed."""

    _description = "encryption key"


@dataclass
class SDPSession(SDPSection):
    """
    A whole SDP document, :rfc:`8866#section-5`.

    Holds the session-level fields, the time descriptions and the media
    descriptions. Every field is optional, so that a session can be built up
    field by field. The fields are declared in the order they are serialized.
    """

    _fields_base = SDPSessionFields
    _start_field = SDPSessionVersion

    version: SDPSessionVersion | None = None
    origin: SDPSessionOrigin | None = None
    name: SDPSessionName | None = None
    information: SDPSessionInformation | None = None
    uri: SDPSessionURI | None = None
    email: SDPSessionEmail | None = None
    phone: SDPSessionPhone | None = None
    connection: SDPSessionConnection | None = None
    bandwidths: list[SDPSessionBandwidth] = dataclass_field(default_factory=list)
    time: list[SDPTime] = dataclass_field(default_factory=list)
    timezone: SDPSessionTimezone | None = None
    encryption: SDPSessionEncryption | None = None
    attributes: list[SDPAttribute] = dataclass_field(default_factory=list)
    media: list[SDPMedia] = dataclass_field(default_factory=list)

    @property
    def mimetype(self) -> str:
        """Always ``application/sdp``."""
        return SDP_MIMETYPE

    @property
    def media_flow_type(self) -> MediaFlowType | None:
        """The session-level media flow direction, if any."""
        return get_media_flow_type(self.attributes)

    def get_attributes(self, name: str) -> list[SDPAttribute]:
        """The session-level attributes with the given name, in order."""
        return find_attributes(self.attributes, name)

    def get_attribute(self, name: str) -> SDPAttribute | None:
        """The first session-level attribute with the given name, or None."""
        return next(iter(self.get_attributes(name)), None)

    def get_media(self, mid: str) -> SDPMedia | None:
        """The media description with the given ``mid``, or None."""
        return next((media for media in self.media if media.mid == mid), None)

    @property
    def connection_address(self) -> tuple[str, int] | None:
        """
        The address and port where media is expected, if any.

        Media descriptions without their own connection data use the
        session-level one. If more than one media description has an address,
        the first one is returned.
        """
        addresses: list[tuple[str, int]] = []
        for media in self.media:
            connection = media.connection or self.connection
            if connection is not None:
                addresses.append((connection.address, media.media.port))
        if len(addresses) > 1:
            _logger.warning(
                f"Multiple connection addresses found in SDP session ({len(addresses)}), "
                "returning first one"
            )
        return addresses[0] if addresses else None

    @classmethod
    def parse(cls, raw_value: str | bytes) -> Self:
        """
        Parse a whole SDP document.

        :param raw_value: the SDP text, or its UTF-8 encoded bytes.
        :return: the parsed SDP session.
        :raises SDPParseError: on the first malformed or invalid line.
        """
        from .assembler import SDPAssembler  # circular import

        return cast(Self, SDPAssembler.assemble(tokenize(raw_value), session_cls=cls))
