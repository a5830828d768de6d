"""SDP attributes definitions and implementations."""

from __future__ import annotations

import enum
import logging
from abc import ABC
from dataclasses import field as dataclass_field
from typing import Any, Iterable, Mapping, Sequence

from frozendict import frozendict
from typing_extensions import Self, override

from sdpkit.constants import SETUP_ROLES
from sdpkit.exceptions import SDPParseError
from sdpkit.helpers import (
    CanonicalOrderedSet,
    IntValueMixin,
    Serializable,
    StrValueMixin,
    canonical_token,
    coerce_word,
    slots_dataclass,
)

from .common import FlagAttribute, SDPAttribute, ValueAttribute


__all__ = [
    "MediaFlowType",
    "MediaFlowAttribute",
    "RecvOnlyFlag",
    "SendRecvFlag",
    "SendOnlyFlag",
    "InactiveFlag",
    "RTCPMuxFlag",
    "RTCPReducedSizeFlag",
    "ICELiteFlag",
    "EndOfCandidatesFlag",
    "ExtmapAllowMixedFlag",
    "PTimeAttribute",
    "MaxPTimeAttribute",
    "MidAttribute",
    "ICEUfragAttribute",
    "ICEPwdAttribute",
    "SetupAttribute",
    "ToolAttribute",
    "SCTPPortAttribute",
    "MaxMessageSizeAttribute",
    "GroupAttribute",
    "MsidSemanticAttribute",
    "ICEOptionsAttribute",
    "RTPMapAttribute",
    "FMTPAttribute",
    "RTCPAttribute",
    "RTCPFeedbackAttribute",
    "ExtmapAttribute",
    "CandidateAttribute",
    "SSRCAttribute",
    "SSRCGroupAttribute",
    "MsidAttribute",
    "FingerprintAttribute",
    "get_media_flow_attribute",
    "get_media_flow_type",
    "find_attributes",
]


_logger = logging.getLogger(__name__)


class MediaFlowType(enum.Enum):
    """Direction of the media flow, as negotiated by the media flow attributes."""

    SENDRECV = "sendrecv"
    SENDONLY = "sendonly"
    RECVONLY = "recvonly"
    INACTIVE = "inactive"


class MediaFlowAttribute(FlagAttribute, ABC):
    """Abstract base dataclass for SDP media flow attributes, defined in :rfc:`8866#section-6.7`."""


@slots_dataclass
class RecvOnlyFlag(MediaFlowAttribute):
    """
    SDP attribute for recvonly media flow, defined in :rfc:`8866#section-6.7.1`.

    Spec::
        recvonly
    """

    _name = "recvonly"


@slots_dataclass
class SendRecvFlag(MediaFlowAttribute):
    """
    SDP attribute for sendrecv media flow, defined in :rfc:`8866#section-6.7.2`.

    Spec::
        sendrecv
    """

    _name = "sendrecv"


@slots_dataclass
class SendOnlyFlag(MediaFlowAttribute):
    """
    SDP attribute for sendonly media flow, defined in :rfc:`8866#section-6.7.3`.

    Spec::
        sendonly
    """

    _name = "sendonly"


@slots_dataclass
class InactiveFlag(MediaFlowAttribute):
    """
    SDP attribute for inactive media flow, defined in :rfc:`8866#section-6.7.4`.

    Spec::
        inactive
    """

    _name = "inactive"


@slots_dataclass
class RTCPMuxFlag(FlagAttribute):
    """SDP attribute for RTP/RTCP multiplexing, defined in :rfc:`5761#section-5.1.1`."""

    _name = "rtcp-mux"


@slots_dataclass
class RTCPReducedSizeFlag(FlagAttribute):
    """SDP attribute for reduced-size RTCP, defined in :rfc:`5506#section-5`."""

    _name = "rtcp-rsize"


@slots_dataclass
class ICELiteFlag(FlagAttribute):
    """SDP attribute for ICE lite implementations, defined in :rfc:`8839#section-5.3`."""

    _name = "ice-lite"


@slots_dataclass
class EndOfCandidatesFlag(FlagAttribute):
    """SDP attribute signaling the end of trickled candidates, :rfc:`8840#section-8.2`."""

    _name = "end-of-candidates"


@slots_dataclass
class ExtmapAllowMixedFlag(FlagAttribute):
    """SDP attribute allowing mixed one/two-byte RTP header extensions, :rfc:`8285#section-6`."""

    _name = "extmap-allow-mixed"


@slots_dataclass
class PTimeAttribute(IntValueMixin, ValueAttribute):
    """
    SDP media attribute for ptime, defined in :rfc:`8866#section-6.4`.

    Spec::
        ptime:<value>
    """

    _name = "ptime"


@slots_dataclass
class MaxPTimeAttribute(IntValueMixin, ValueAttribute):
    """
    SDP media attribute for maxptime, defined in :rfc:`8866#section-6.5`.

    Spec::
        maxptime:<value>
    """

    _name = "maxptime"


@slots_dataclass
class MidAttribute(StrValueMixin, ValueAttribute):
    """
    SDP media attribute for the media identifier, defined in :rfc:`5888#section-4`.

    Spec::
        mid:<identification-tag>
    """

    _name = "mid"

    def __post_init__(self) -> None:
        self.value = canonical_token(self.value)


@slots_dataclass
class ICEUfragAttribute(StrValueMixin, ValueAttribute):
    """SDP attribute for the ICE username fragment, defined in :rfc:`8839#section-5.4`."""

    _name = "ice-ufrag"


@slots_dataclass
class ICEPwdAttribute(StrValueMixin, ValueAttribute):
    """SDP attribute for the ICE password, defined in :rfc:`8839#section-5.4`."""

    _name = "ice-pwd"


@slots_dataclass
class SetupAttribute(StrValueMixin, ValueAttribute):
    """
    SDP attribute for the connection-oriented media setup role, :rfc:`4145#section-4`.

    Spec::
        setup:<role>
    """

    _name = "setup"

    def __post_init__(self) -> None:
        if self.value not in SETUP_ROLES:
            raise SDPParseError(f"Invalid setup role {self.value!r}")


@slots_dataclass
class ToolAttribute(StrValueMixin, ValueAttribute):
    """SDP attribute naming the tool that created the description, :rfc:`8866#section-6.3`."""

    _name = "tool"


@slots_dataclass
class SCTPPortAttribute(IntValueMixin, ValueAttribute):
    """SDP attribute for the SCTP port of a data channel, defined in :rfc:`8841#section-5`."""

    _name = "sctp-port"


@slots_dataclass
class MaxMessageSizeAttribute(IntValueMixin, ValueAttribute):
    """SDP attribute for the maximum SCTP message size, defined in :rfc:`8841#section-6`."""

    _name = "max-message-size"


@slots_dataclass
class GroupAttribute(SDPAttribute):
    """
    SDP session attribute for media lines grouping, defined in :rfc:`5888#section-5`.

    The media identifiers are kept as an ordered set: duplicates are dropped,
    insertion order is preserved, and every identifier is canonicalized the
    same way on parsing, construction and mutation.

    Spec::
        group:<semantics> <identification-tag> *(SP <identification-tag>)
    """

    _name = "group"
    _is_flag = False

    type: str
    mids: CanonicalOrderedSet = dataclass_field(default_factory=CanonicalOrderedSet)

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "type":
            value = canonical_token(value)
        elif name == "mids":
            value = CanonicalOrderedSet(value)
        object.__setattr__(self, name, value)

    @classmethod
    @override
    def of(cls, type: str, *mids: str) -> Self:  # noqa: A002
        return cls(type=type, mids=mids)

    def add_mid(self, mid: str) -> None:
        """Add a media identifier to the group, if not already present."""
        self.mids.add(mid)

    def has_mid(self, mid: str) -> bool:
        """Check whether the media identifier is part of the group."""
        return mid in self.mids

    def remove_mid(self, mid: str) -> bool:
        """Remove a media identifier from the group, returning whether it was present."""
        if mid not in self.mids:
            return False
        self.mids.discard(mid)
        return True

    @classmethod
    def from_raw_value(cls, name: str, raw_value: str | None) -> Self:  # noqa: D102
        values = (raw_value or "").split(" ", 1)
        if len(values) < 2 or not values[1].split():
            raise SDPParseError(f"Could not parse {raw_value!r} as {name} attribute")
        return cls(type=values[0], mids=values[1].split())

    def serialize(self) -> str:  # noqa: D102
        if not self.mids:
            _logger.warning(
                f"Serializing {self._name}:{self.type} without media identifiers, "
                "which cannot be parsed back"
            )
        return " ".join((self.type, *self.mids))


@slots_dataclass
class MsidSemanticAttribute(SDPAttribute):
    """
    SDP session attribute for media stream semantics (e.g. WebRTC ``WMS``).

    Spec::
        msid-semantic: <semantic> *(SP <msid-id>)
    """

    _name = "msid-semantic"
    _is_flag = False

    semantic: str
    identifiers: list[str] = dataclass_field(default_factory=list)

    def __post_init__(self) -> None:
        self.semantic = coerce_word(self.semantic, f"{self._name} semantic")
        self.identifiers = [
            coerce_word(identifier, f"{self._name} identifier") for identifier in self.identifiers
        ]

    @classmethod
    @override
    def of(cls, semantic: str, *identifiers: str) -> Self:
        return cls(semantic=semantic, identifiers=list(identifiers))

    @classmethod
    def from_raw_value(cls, name: str, raw_value: str | None) -> Self:  # noqa: D102
        semantic, *identifiers = (raw_value or "").split()
        return cls(semantic=semantic, identifiers=identifiers)

    def serialize(self) -> str:  # noqa: D102
        return " ".join((self.semantic, *self.identifiers))


@slots_dataclass
class ICEOptionsAttribute(SDPAttribute):
    """
    SDP attribute for the supported ICE options, defined in :rfc:`8839#section-5.6`.

    Spec::
        ice-options:<ice-option-tag> *(SP <ice-option-tag>)
    """

    _name = "ice-options"
    _is_flag = False

    options: CanonicalOrderedSet = dataclass_field(default_factory=CanonicalOrderedSet)

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "options":
            value = CanonicalOrderedSet(value)
        object.__setattr__(self, name, value)

    @classmethod
    @override
    def of(cls, *options: str) -> Self:
        return cls(options=options)

    @classmethod
    def from_raw_value(cls, name: str, raw_value: str | None) -> Self:  # noqa: D102
        options = (raw_value or "").split()
        if not options:
            raise SDPParseError(f"Could not parse {raw_value!r} as {name} attribute")
        return cls(options=options)

    def serialize(self) -> str:  # noqa: D102
        return " ".join(self.options)


@slots_dataclass
class RTPMapAttribute(SDPAttribute):
    """
    SDP media attribute for RTP map, defined in :rfc:`8866#section-6.6`.

    Spec::
        rtpmap:<payload type> <encoding name>/<clock rate>[/<encoding parameters>]
    """

    _name = "rtpmap"
    _is_flag = False

    payload_type: int
    encoding_name: str
    clock_rate: int
    encoding_parameters: str | None = None

    def __post_init__(self) -> None:
        self.encoding_name = coerce_word(self.encoding_name, f"{self._name} encoding name")
        if self.encoding_parameters is not None:
            self.encoding_parameters = coerce_word(
                self.encoding_parameters, f"{self._name} encoding parameters"
            )

    @property
    def channels(self) -> int | None:
        """Number of audio channels, when given as encoding parameters."""
        if self.encoding_parameters is None or not self.encoding_parameters.isdigit():
            return None
        return int(self.encoding_parameters)

    @classmethod
    def from_raw_value(cls, name: str, raw_value: str | None) -> Self:  # noqa: D102
        if not raw_value:
            raise SDPParseError(f"Missing {name} mapping")
        payload_type, _, encoding = raw_value.partition(" ")
        parts = encoding.split("/", 2)
        if len(parts) < 2:
            raise SDPParseError(f"Missing clock rate in {name} mapping {raw_value!r}")
        return cls(
            int(payload_type),
            parts[0],
            int(parts[1]),
            parts[2] if len(parts) == 3 else None,
        )

    def serialize(self) -> str:  # noqa: D102
        parts = [self.encoding_name, str(self.clock_rate)]
        if self.encoding_parameters is not None:
            parts.append(self.encoding_parameters)
        return f"{self.payload_type} {'/'.join(parts)}"


@slots_dataclass
class FMTPAttribute(SDPAttribute):
    """
    SDP media attribute for RTP format parameters, defined in :rfc:`8866#section-6.15`.

    The format specific parameters are not interpreted: parsing stores them
    verbatim as a string, while programmatic users can store any payload object
    that knows how to serialize itself (e.g. codec parameters supplied by a
    media engine), which is then serialized as-is.

    Spec::
        fmtp:<format> <format specific parameters>
    """

    _name = "fmtp"
    _is_flag = False

    format: str
    format_specific_parameters: str | Serializable

    @property
    def parameters(self) -> str:
        """The serialized format specific parameters."""
        if isinstance(self.format_specific_parameters, str):
            return self.format_specific_parameters
        return self.format_specific_parameters.serialize()

    @classmethod
    def from_raw_value(cls, name: str, raw_value: str | None) -> Self:  # noqa: D102
        format_, space, parameters = (raw_value or "").partition(" ")
        if not format_ or not space:
            raise SDPParseError(f"Expected <format> <parameters> in {name}, got {raw_value!r}")
        return cls(format=format_, format_specific_parameters=parameters)

    def serialize(self) -> str:  # noqa: D102
        return f"{self.format} {self.parameters}"


@slots_dataclass
class RTCPAttribute(SDPAttribute):
    """
    SDP media attribute for the RTCP port and address, defined in :rfc:`3605#section-2.1`.

    Spec::
        rtcp:<port> [<nettype> <addrtype> <connection-address>]
    """

    _name = "rtcp"
    _is_flag = False

    port: int
    nettype: str | None = None
    addrtype: str | None = None
    address: str | None = None

    @classmethod
    def from_raw_value(cls, name: str, raw_value: str | None) -> Self:  # noqa: D102
        port, *address_parts = (raw_value or "").split(" ")
        if not address_parts:
            return cls(port=int(port))
        if len(address_parts) != 3:
            raise SDPParseError(f"Could not parse {raw_value!r} as {name} attribute")
        nettype, addrtype, address = address_parts
        return cls(port=int(port), nettype=nettype, addrtype=addrtype, address=address)

    def serialize(self) -> str:  # noqa: D102
        if self.address is None:
            return str(self.port)
        return f"{self.port} {self.nettype} {self.addrtype} {self.address}"


@slots_dataclass
class RTCPFeedbackAttribute(SDPAttribute):
    """
    SDP media attribute for RTCP feedback capabilities, defined in :rfc:`4585#section-4.2`.

    Spec::
        rtcp-fb:<payload type|*> <type> [<parameters>]
    """

    _name = "rtcp-fb"
    _is_flag = False

    payload_type: str
    type: str
    parameters: str | None = None

    @classmethod
    def from_raw_value(cls, name: str, raw_value: str | None) -> Self:  # noqa: D102
        payload_type, type_, *parameters = (raw_value or "").split(" ", 2)
        return cls(
            payload_type=payload_type,
            type=type_,
            parameters=parameters[0] if parameters else None,
        )

    def serialize(self) -> str:  # noqa: D102
        data = f"{self.payload_type} {self.type}"
        if self.parameters is not None:
            data += f" {self.parameters}"
        return data


@slots_dataclass
class ExtmapAttribute(SDPAttribute):
    """
    SDP media attribute for RTP header extensions mapping, defined in :rfc:`8285#section-5`.

    Spec::
        extmap:<value>["/"<direction>] <URI> <extensionattributes>
    """

    _name = "extmap"
    _is_flag = False

    id: int
    uri: str
    direction: str | None = None
    extension_attributes: str | None = None

    @classmethod
    def from_raw_value(cls, name: str, raw_value: str | None) -> Self:  # noqa: D102
        mapping, uri, *extension_attributes = (raw_value or "").split(" ", 2)
        id_, _, direction = mapping.partition("/")
        return cls(
            id=int(id_),
            uri=uri,
            direction=direction or None,
            extension_attributes=extension_attributes[0] if extension_attributes else None,
        )

    def serialize(self) -> str:  # noqa: D102
        data = str(self.id)
        if self.direction is not None:
            data += f"/{self.direction}"
        data += f" {self.uri}"
        if self.extension_attributes is not None:
            data += f" {self.extension_attributes}"
        return data


@slots_dataclass
class CandidateAttribute(SDPAttribute):
    """
    SDP media attribute for ICE candidates, defined in :rfc:`8839#section-5.1`.

    Extension attributes (e.g. ``generation``, ``tcptype``, ``network-id``)
    are kept in order as name/value pairs, each name at most once.

    Spec::
        candidate:<foundation> <component-id> <transport> <priority>
                  <connection-address> <port> typ <cand-type>
                  [raddr <connection-address>] [rport <port>]
                  *(SP <extension-att-name> SP <extension-att-value>)
    """

    _name = "candidate"
    _is_flag = False

    foundation: str
    component: int
    transport: str
    priority: int
    address: str
    port: int
    type: str
    related_address: str | None = None
    related_port: int | None = None
    extensions: Mapping[str, str] = dataclass_field(default_factory=frozendict)

    def __post_init__(self) -> None:
        for attr in ("foundation", "transport", "address", "type"):
            setattr(self, attr, coerce_word(getattr(self, attr), f"{self._name} {attr}"))
        if self.related_address is not None:
            self.related_address = coerce_word(
                self.related_address, f"{self._name} related address"
            )
        self.extensions = frozendict(
            (
                coerce_word(key, f"{self._name} extension name"),
                coerce_word(value, f"{self._name} extension value"),
            )
            for key, value in self.extensions.items()
        )

    @classmethod
    def from_raw_value(cls, name: str, raw_value: str | None) -> Self:  # noqa: D102
        parts = (raw_value or "").split()
        if len(parts) < 8 or parts[6] != "typ":
            raise SDPParseError(f"Could not parse {raw_value!r} as {name} attribute")
        foundation, component, transport, priority, address, port, _, type_ = parts[:8]
        extra = parts[8:]
        if len(extra) % 2 != 0:
            raise SDPParseError(
                f"Unpaired extension attribute in {name} attribute: {raw_value!r}"
            )
        related_address: str | None = None
        related_port: int | None = None
        extensions: dict[str, str] = {}
        for key, value in zip(extra[::2], extra[1::2]):
            if key == "raddr":
                related_address = value
            elif key == "rport":
                related_port = int(value)
            elif key in extensions:
                raise SDPParseError(
                    f"Repeated extension attribute {key!r} in {name} attribute: {raw_value!r}"
                )
            else:
                extensions[key] = value
        return cls(
            foundation=foundation,
            component=int(component),
            transport=transport,
            priority=int(priority),
            address=address,
            port=int(port),
            type=type_,
            related_address=related_address,
            related_port=related_port,
            extensions=frozendict(extensions),
        )

    def serialize(self) -> str:  # noqa: D102
        parts: list[str] = [
            self.foundation,
            str(self.component),
            self.transport,
            str(self.priority),
            self.address,
            str(self.port),
            "typ",
            self.type,
        ]
        if self.related_address is not None:
            parts.extend(("raddr", self.related_address))
        if self.related_port is not None:
            parts.extend(("rport", str(self.related_port)))
        for key, value in self.extensions.items():
            parts.extend((key, value))
        return " ".join(parts)


@slots_dataclass
class SSRCAttribute(SDPAttribute):
    """
    SDP media attribute for source-specific attributes, defined in :rfc:`5576#section-4.1`.

    Spec::
        ssrc:<ssrc-id> <attribute>[:<value>]
    """

    _name = "ssrc"
    _is_flag = False

    ssrc: int
    attribute: str
    value: str | None = None

    @classmethod
    def from_raw_value(cls, name: str, raw_value: str | None) -> Self:  # noqa: D102
        ssrc, source_attribute = (raw_value or "").split(" ", 1)
        attribute, sep, value = source_attribute.partition(":")
        return cls(ssrc=int(ssrc), attribute=attribute, value=value if sep else None)

    def serialize(self) -> str:  # noqa: D102
        if self.value is None:
            return f"{self.ssrc} {self.attribute}"
        return f"{self.ssrc} {self.attribute}:{self.value}"


@slots_dataclass
class SSRCGroupAttribute(SDPAttribute):
    """
    SDP media attribute for grouping of sources, defined in :rfc:`5576#section-4.2`.

    The order of the sources is meaningful (e.g. primary source first for ``FID``).

    Spec::
        ssrc-group:<semantics> <ssrc-id> *(SP <ssrc-id>)
    """

    _name = "ssrc-group"
    _is_flag = False

    semantics: str
    ssrcs: list[int] = dataclass_field(default_factory=list)

    @classmethod
    @override
    def of(cls, semantics: str, *ssrcs: int) -> Self:
        return cls(semantics=semantics, ssrcs=list(ssrcs))

    @classmethod
    def from_raw_value(cls, name: str, raw_value: str | None) -> Self:  # noqa: D102
        semantics, *ssrcs = (raw_value or "").split()
        if not ssrcs:
            raise SDPParseError(f"Could not parse {raw_value!r} as {name} attribute")
        return cls(semantics=semantics, ssrcs=[int(ssrc) for ssrc in ssrcs])

    def serialize(self) -> str:  # noqa: D102
        return " ".join((self.semantics, *(str(ssrc) for ssrc in self.ssrcs)))


@slots_dataclass
class MsidAttribute(SDPAttribute):
    """
    SDP media attribute for media stream identification, defined in :rfc:`8830#section-2`.

    Spec::
        msid:<msid-id> [<msid-appdata>]
    """

    _name = "msid"
    _is_flag = False

    stream_id: str
    track_id: str | None = None

    @classmethod
    def from_raw_value(cls, name: str, raw_value: str | None) -> Self:  # noqa: D102
        stream_id, *track_id = (raw_value or "").split(" ", 1)
        if not stream_id:
            raise SDPParseError(f"Could not parse {raw_value!r} as {name} attribute")
        return cls(stream_id=stream_id, track_id=track_id[0] if track_id else None)

    def serialize(self) -> str:  # noqa: D102
        if self.track_id is None:
            return self.stream_id
        return f"{self.stream_id} {self.track_id}"


@slots_dataclass
class FingerprintAttribute(SDPAttribute):
    """
    SDP attribute for the certificate fingerprint, defined in :rfc:`8122#section-5`.

    Spec::
        fingerprint:<hash-func> <fingerprint>
    """

    _name = "fingerprint"
    _is_flag = False

    hash_function: str
    fingerprint: str

    @classmethod
    def from_raw_value(cls, name: str, raw_value: str | None) -> Self:  # noqa: D102
        hash_function, fingerprint = (raw_value or "").split(" ")
        return cls(hash_function=hash_function, fingerprint=fingerprint)

    def serialize(self) -> str:  # noqa: D102
        return f"{self.hash_function} {self.fingerprint}"


def get_media_flow_attribute(flow_type: MediaFlowType) -> MediaFlowAttribute:
    """Build the flag attribute declaring the given media flow direction."""
    attr_cls = SDPAttribute.lookup(flow_type.value)
    assert issubclass(attr_cls, MediaFlowAttribute)
    return attr_cls()


def get_media_flow_type(attributes: Iterable[SDPAttribute]) -> MediaFlowType | None:
    """
    The media flow direction declared among the given attributes, if any.

    :raises SDPParseError: if more than one direction is declared.
    """
    flows = [
        MediaFlowType(attribute.name)
        for attribute in attributes
        if isinstance(attribute, MediaFlowAttribute)
    ]
    if len(flows) > 1:
        raise SDPParseError(
            f"Conflicting media flow attributes: {', '.join(flow.value for flow in flows)}"
        )
    return flows[0] if flows else None


def find_attributes(
    attributes: Sequence[SDPAttribute], name: str
) -> list[SDPAttribute]:
    """Return all the attributes with the given name, in order."""
    return [attribute for attribute in attributes if attribute.name == name]
