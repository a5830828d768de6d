"""Media descriptions: an ``m=`` line and every line up to the next one."""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass, field as dataclass_field

from typing_extensions import Self, override

from sdpkit.exceptions import SDPParseError
from sdpkit.helpers import coerce_word, slots_dataclass

from .attributes import (
    FMTPAttribute,
    MediaFlowType,
    MidAttribute,
    RTPMapAttribute,
    find_attributes,
    get_media_flow_type,
)
from .common import (
    SDPAttribute,
    SDPBandwidthField,
    SDPConnectionField,
    SDPEncryptionField,
    SDPField,
    SDPInformationField,
    SDPSection,
)


__all__ = [
    "SDPMediaFields",
    "SDPMediaMedia",
    "SDPMediaTitle",
    "SDPMediaConnection",
    "SDPMediaBandwidth",
    "SDPMediaEncryption",
    "SDPMedia",
]


@dataclass
class SDPMediaFields(SDPField, ABC, registry=True, registry_attr="_type"):
    """Base class for the fields allowed inside a media description."""


@slots_dataclass
class SDPMediaMedia(SDPMediaFields):
    """
    Media type, transport port, protocol and formats, :rfc:`8866#section-5.14`.

    Formats are kept as strings, since besides RTP payload types they can be
    any token defined by the protocol (e.g. ``webrtc-datachannel``).

    Spec::
        m=<media> <port> <proto> <fmt> ...
        m=<media> <port>/<number of ports> <proto> <fmt> ...
    """

    _type = "m"
    _description = "media name and transport address"

    media: str
    port: int
    protocol: str
    formats: list[str] = dataclass_field(default_factory=list)
    number_of_ports: int | None = None

    def __post_init__(self) -> None:
        self.media = coerce_word(self.media, "media type")
        self.protocol = coerce_word(self.protocol, "media protocol")
        self.formats = [coerce_word(format_, "media format") for format_ in self.formats]
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise SDPParseError(f"Invalid port number in media field: {self.port!r}")
        if not 0 <= self.port <= 65535:
            raise SDPParseError(f"Invalid port number in media field: {self.port}")

    @property
    def ports_spec(self) -> str:
        """The port, with the optional number of ports, as written in the media field."""
        if self.number_of_ports is None:
            return str(self.port)
        return f"{self.port}/{self.number_of_ports}"

    @classmethod
    @override
    def from_raw_value(cls, field_type: str, raw_value: str) -> Self:
        media, ports_spec, protocol, *formats = raw_value.split(" ")
        port, _, number_of_ports = ports_spec.partition("/")
        return cls(
            media=media,
            port=int(port),
            number_of_ports=int(number_of_ports) if number_of_ports else None,
            protocol=protocol,
            formats=formats,
        )

    def serialize(self) -> str:  # noqa: D102
        return " ".join((self.media, self.ports_spec, self.protocol, *self.formats))


@slots_dataclass
class SDPMediaTitle(SDPInformationField, SDPMediaFields):
    """
    Title of the media stream, :rfc:`8866#section-5.4`.

    Spec::
        i=<media title>
    """

    _description = "media title"


@slots_dataclass
class SDPMediaConnection(SDPConnectionField, SDPMediaFields):
    """
    Connection data of the media stream, overriding the session one, :rfc:`8866#section-5.7`.

    Spec::
        c=<nettype> <addrtype> <connection-address>
    """

    _description = "connection information -- optional if included at session-level"


@slots_dataclass
class SDPMediaBandwidth(SDPBandwidthField, SDPMediaFields):
    """
    Bandwidth of the media stream, :rfc:`8866#section-5.8`.

    Spec::
        b=<bwtype>:<bandwidth>
    """

    _description = "zero or more bandwidth information lines"


@slots_dataclass
class SDPMediaEncryption(SDPEncryptionField, SDPMediaFields):
    """
    Encryption key of the media stream, :rfc:`8866#section-5.12`. Obsolete, but still parsed.

    Spec::
        k=<method>
        k=<method>:<encryption key>
    """

    _description = "encryption key"


@slots_dataclass
class SDPMedia(SDPSection):
    """A media description, from its ``m=`` line to the next one, :rfc:`8866#section-5.14`."""

    _fields_base = SDPMediaFields
    _start_field = SDPMediaMedia

    media: SDPMediaMedia
    title: SDPMediaTitle | None = None
    connection: SDPMediaConnection | None = None
    bandwidths: list[SDPMediaBandwidth] = dataclass_field(default_factory=list)
    encryption: SDPMediaEncryption | None = None
    attributes: list[SDPAttribute] = dataclass_field(default_factory=list)

    @property
    def mid(self) -> str | None:
        """The media identifier of this media section, if any."""
        attribute = self.get_attribute(MidAttribute._name)  # noqa: SLF001
        return attribute.value if isinstance(attribute, MidAttribute) else None

    @property
    def media_flow_type(self) -> MediaFlowType | None:
        """The direction declared by the media-level flow attribute, if any."""
        return get_media_flow_type(self.attributes)

    def get_attributes(self, name: str) -> list[SDPAttribute]:
        """All the attributes of this media section with the given name, in order."""
        return find_attributes(self.attributes, name)

    def get_attribute(self, name: str) -> SDPAttribute | None:
        """The first attribute of this media section with the given name, if any."""
        attributes = self.get_attributes(name)
        return attributes[0] if attributes else None

    @property
    def rtpmaps(self) -> dict[int, RTPMapAttribute]:
        """The rtpmap attributes of this media section, by payload type."""
        return {
            attribute.payload_type: attribute
            for attribute in self.attributes
            if isinstance(attribute, RTPMapAttribute)
        }

    @property
    def fmtps(self) -> dict[str, FMTPAttribute]:
        """The fmtp attributes of this media section, by format."""
        return {
            attribute.format: attribute
            for attribute in self.attributes
            if isinstance(attribute, FMTPAttribute)
        }
