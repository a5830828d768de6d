"""Common base classes for SDP sections, fields and attributes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import (
    Any,
    ClassVar,
    Iterator,
    NamedTuple,
    Union,
    cast,
    get_args,
    get_origin,
    get_type_hints,
)

from typing_extensions import Self, override

from sdpkit.constants import SDP_ENCODING, SDP_LINE_SEPARATOR
from sdpkit.exceptions import SDPParseError, SDPUnknownFieldError
from sdpkit.helpers import (
    DEFAULT,
    DefaultType,
    FieldsParser,
    OptionalStrValueMixin,
    ParseableSerializable,
    Registry,
    StrValueMixin,
    coerce_word,
    unwrap_optional,
)

from .tokenizer import SDPLine


__all__ = [
    "SDPField",
    "SDPAttribute",
    "FlagAttribute",
    "ValueAttribute",
    "UnknownAttribute",
    "SDPInformationField",
    "SDPConnectionField",
    "SDPBandwidthField",
    "SDPEncryptionField",
    "SDPSection",
]


ATTRIBUTE_FIELD_TYPE: str = "a"


@dataclass
class SDPField(Registry[str, "SDPField"], ParseableSerializable, ABC):
    """
    Abstract base dataclass for SDP fields, i.e. ``<type>=<value>`` lines.

    Each section has its own family of field classes, keyed by ``_type``.
    Concrete fields must also set a human-readable ``_description``,
    used in error messages.
    """

    _type: ClassVar[str]
    _description: ClassVar[str]

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)

        if ABC not in cls.__bases__ and not getattr(cls, "_description", None):
            raise ValueError(f"Field class {cls.__name__} has no _description")

    @property
    def type(self) -> str:
        """The one-letter type of the field."""
        return self._type

    @classmethod
    def parse(cls, raw_data: str) -> Self:
        """Parse a whole ``<type>=<value>`` line, with the field class registered for its type."""
        line = SDPLine.parse(raw_data.rstrip("\r\n"))
        return cls.from_line(line.kind, line.raw_value)

    @classmethod
    def from_line(cls, field_type: str, raw_value: str) -> Self:
        """
        Parse the value of a line with the field class registered for its type.

        Errors in the value grammar (including a bare :class:`ValueError`,
        e.g. from an integer conversion) are raised as :class:`SDPParseError`.

        :param field_type: the one-letter field type.
        :param raw_value: the raw value of the field, after the ``=``.
        :return: the field object.
        :raises SDPUnknownFieldError: if no field class is registered for the type.
        """
        try:
            field_cls = cls.lookup(field_type)
        except KeyError:
            raise SDPUnknownFieldError(  # noqa: B904
                f"Unknown field type {field_type}= for {cls.__name__}: {raw_value!r}"
            )

        try:
            return cast(
                Self, field_cls.from_raw_value(field_type=field_type, raw_value=raw_value)
            )
        except SDPParseError:
            raise
        except ValueError as e:
            raise SDPParseError(
                f"Invalid {field_cls._description} field {field_type}=: {raw_value!r}"  # noqa: SLF001
            ) from e

    @classmethod
    def from_raw_value(cls, field_type: str, raw_value: str) -> Self:
        """
        Build the field from its raw value.

        By default, classes implementing :class:`FieldsParser` are built from
        the keyword arguments returned by ``parse_raw_value``.
        """
        if isinstance(cls, FieldsParser):
            return cls(**cls.parse_raw_value(raw_value))
        raise NotImplementedError

    @classmethod
    def of(cls, *args: Any, **kwargs: Any) -> Self:
        """Build a field programmatically, with the same validation as parsing."""
        return cls(*args, **kwargs)

    @abstractmethod
    def serialize(self) -> str:
        """The value of the field, as it goes after the ``=``."""

    def __str__(self) -> str:
        return f"{self.type}={self.serialize()}"


@dataclass
class SDPAttribute(
    Registry[Union[str, DefaultType], "SDPAttribute"],
    ParseableSerializable,
    ABC,
    registry=True,
    registry_attr="_name",
):
    """
    Abstract base dataclass for SDP attributes, and registry of the known attributes.

    Attributes are looked up by their exact (case-sensitive) name. Names without
    a registered class fall back to :class:`UnknownAttribute`, so that they are
    preserved verbatim instead of failing the parsing.
    ``_is_flag`` tells whether the attribute takes no value (``True``),
    requires one (``False``), or accepts both (``None``).
    """

    _name: ClassVar[str | DefaultType]
    _is_flag: ClassVar[bool | None] = None

    @property
    def name(self) -> str:
        """The name of the attribute."""
        if not isinstance(self._name, str):
            raise TypeError(f"{type(self).__name__} must override the name property")
        return self._name

    @property
    def is_flag(self) -> bool:
        """Whether the attribute is serialized without a value."""
        return bool(self._is_flag)

    @classmethod
    def parse(cls, raw_data: str) -> Self:
        """
        Parse an attribute from its raw data, i.e. ``<name>[:<value>]``.

        A leading ``a=`` is accepted and ignored. When called on a concrete
        attribute class, the parsed attribute must be of that class.

        :raises SDPParseError: if the value doesn't match the attribute grammar.
        """
        raw_data = raw_data.removeprefix(f"{ATTRIBUTE_FIELD_TYPE}=").rstrip("\r\n")
        name, colon, value = raw_data.partition(":")
        raw_value: str | None = value if colon else None

        registry = SDPAttribute.get_registry()
        attr_cls = registry.get(name) or registry[DEFAULT]
        if not issubclass(attr_cls, cls):
            raise SDPParseError(
                f"Attribute {name!r} is not a {cls.__name__}: {raw_data!r}"
            )
        if attr_cls._is_flag is True and raw_value is not None:  # noqa: SLF001
            raise SDPParseError(f"Flag attribute {name} cannot have a value: {raw_data!r}")
        if attr_cls._is_flag is False and raw_value is None:  # noqa: SLF001
            raise SDPParseError(f"Attribute {name} requires a value: {raw_data!r}")

        try:
            return cast(Self, attr_cls.from_raw_value(name, raw_value))
        except SDPParseError:
            raise
        except ValueError as e:
            raise SDPParseError(
                f"Could not parse {raw_value!r} as {name} attribute"
            ) from e

    @classmethod
    @abstractmethod
    def from_raw_value(cls, name: str, raw_value: str | None) -> Self:
        """
        Build the attribute from its raw value.

        :param name: the attribute name, as found in the raw data.
        :param raw_value: the text after the first ``:``, or None if there was none.
        """

    @classmethod
    def of(cls, *args: Any, **kwargs: Any) -> Self:
        """Build an attribute programmatically, with the same validation as parsing."""
        return cls(*args, **kwargs)

    @abstractmethod
    def serialize(self) -> str:
        """The value of the attribute, as it goes after the ``:``."""

    def __str__(self) -> str:
        """The whole attribute, without the ``a=`` prefix."""
        if self.is_flag:
            return self.name
        return f"{self.name}:{self.serialize()}"


@dataclass
class FlagAttribute(SDPAttribute, ABC):
    """Abstract base dataclass for SDP attributes that never have a value."""

    _is_flag: ClassVar[bool] = True

    @classmethod
    def from_raw_value(cls, name: str, raw_value: str | None) -> Self:  # noqa: D102
        return cls()

    def serialize(self) -> str:  # noqa: D102
        raise ValueError(f"Flag attribute {self.name} has no value")


@dataclass
class ValueAttribute(SDPAttribute, ABC):
    """Abstract base dataclass for SDP attributes whose value is parsed by a mixin."""

    _is_flag: ClassVar[bool] = False

    @classmethod
    def from_raw_value(cls, name: str, raw_value: str | None) -> Self:  # noqa: D102
        if isinstance(cls, FieldsParser):
            return cls(**cls.parse_raw_value(cast(str, raw_value)))
        raise NotImplementedError


@dataclass
class UnknownAttribute(OptionalStrValueMixin, SDPAttribute):
    """
    Catch-all class for unsupported SDP attributes.

    The name and the value are kept verbatim, the value being ``None``
    when the attribute line had no ``:`` separator.
    """

    _name = DEFAULT

    attribute: str = ""

    @property
    def name(self) -> str:
        """The name of the attribute, as found in the raw data."""
        return self.attribute

    @property
    def is_flag(self) -> bool:
        """Whether the attribute was given without a value."""
        return self.value is None

    @classmethod
    def from_raw_value(cls, name: str, raw_value: str | None) -> Self:  # noqa: D102
        return cls(attribute=name, value=raw_value)


@dataclass
class SDPInformationField(StrValueMixin, SDPField, ABC):
    """
    Shared shape of the session information and media title fields, :rfc:`8866#section-5.4`.

    Spec::
        i=<session description>
    """

    _type = "i"

    @property
    def session_description(self) -> str:
        """The free-form description text."""
        return self.value


@dataclass
class SDPConnectionField(SDPField, ABC):
    """
    Shared shape of the session and media connection fields, :rfc:`8866#section-5.7`.

    IPv4 multicast addresses can be followed by a TTL and a number of
    addresses, IPv6 ones only by a number of addresses.

    Spec::
        c=<nettype> <addrtype> <connection-address>
    """

    _type = "c"

    nettype: str
    addrtype: str
    address: str
    ttl: int | None = None
    number_of_addresses: int | None = None

    def __post_init__(self) -> None:
        self.nettype = coerce_word(self.nettype, "connection network type")
        self.addrtype = coerce_word(self.addrtype, "connection address type")
        self.address = coerce_word(self.address, "connection address")

    @property
    def connection_address(self) -> str:
        """The address with its ``/``-separated suffixes, as written in the field."""
        suffixes = (
            str(number)
            for number in (self.ttl, self.number_of_addresses)
            if number is not None
        )
        return "/".join((self.address, *suffixes))

    @classmethod
    @override
    def from_raw_value(cls, field_type: str, raw_value: str) -> Self:
        nettype, addrtype, connection_address = raw_value.split(" ")
        address, *suffixes = connection_address.split("/")
        numbers = [int(suffix) for suffix in suffixes]
        if len(numbers) > (1 if addrtype == "IP6" else 2):
            raise SDPParseError(f"Invalid {addrtype} connection address {connection_address}")
        ttl: int | None = None
        if addrtype != "IP6" and numbers:
            ttl = numbers.pop(0)
        return cls(
            nettype=nettype,
            addrtype=addrtype,
            address=address,
            ttl=ttl,
            number_of_addresses=numbers[0] if numbers else None,
        )

    def serialize(self) -> str:  # noqa: D102
        return f"{self.nettype} {self.addrtype} {self.connection_address}"


@dataclass
class SDPBandwidthField(SDPField, ABC):
    """
    Shared shape of the session and media bandwidth fields, :rfc:`8866#section-5.8`.

    Spec::
        b=<bwtype>:<bandwidth>
    """

    _type = "b"

    bwtype: str
    bandwidth: int

    @classmethod
    @override
    def from_raw_value(cls, field_type: str, raw_value: str) -> Self:
        bwtype, _, bandwidth = raw_value.partition(":")
        return cls(bwtype=bwtype, bandwidth=int(bandwidth))

    def serialize(self) -> str:  # noqa: D102
        return f"{self.bwtype}:{self.bandwidth}"


@dataclass
class SDPEncryptionField(SDPField, ABC):
    """
    Shared shape of the session and media encryption fields, :rfc:`8866#section-5.12`.

    Spec::
        k=<method>
        k=<method>:<encryption key>
    """

    _type = "k"

    method: str
    key: str | None = None

    @classmethod
    @override
    def from_raw_value(cls, field_type: str, raw_value: str) -> Self:
        method, colon, key = raw_value.partition(":")
        return cls(method=method, key=key if colon else None)

    def serialize(self) -> str:  # noqa: D102
        if self.key is None:
            return self.method
        return f"{self.method}:{self.key}"


class _LayoutEntry(NamedTuple):
    attr: str
    repeated: bool
    value_type: type


@dataclass
class SDPSection(ABC):
    """
    Abstract base dataclass for SDP sections.

    The layout of a section is read from its dataclass annotations: every
    :class:`SDPField`, :class:`SDPAttribute` or nested :class:`SDPSection`
    annotation, optionally wrapped in ``list`` (repeated) or ``| None``,
    receives the lines of the matching type.
    Serialization follows the order of the annotations.
    """

    _fields_base: ClassVar[type[SDPField]]
    _start_field: ClassVar[type[SDPField] | None] = None

    # {sdp type: where its lines go}
    _layout: ClassVar[dict[str, _LayoutEntry]]

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)

        if not hasattr(cls, "_fields_base"):
            raise TypeError(f"SDPSection subclass {cls.__name__} must define _fields_base")
        cls._layout = cls._build_layout()

    @classmethod
    def _build_layout(cls) -> dict[str, _LayoutEntry]:
        layout: dict[str, _LayoutEntry] = {}
        for attr, annotation in get_type_hints(cls).items():
            if get_origin(annotation) is ClassVar:
                continue
            repeated = get_origin(annotation) is list
            value_type = unwrap_optional(get_args(annotation)[0] if repeated else annotation)
            if not isinstance(value_type, type):
                continue
            if issubclass(value_type, SDPField):
                sdp_type = value_type._type  # noqa: SLF001
            elif issubclass(value_type, SDPAttribute):
                sdp_type = ATTRIBUTE_FIELD_TYPE
            elif issubclass(value_type, SDPSection):
                start_field = value_type._start_field  # noqa: SLF001
                if start_field is None:
                    raise TypeError(f"Subsection {value_type.__name__} must define _start_field")
                sdp_type = start_field._type  # noqa: SLF001
            else:
                continue
            layout[sdp_type] = _LayoutEntry(attr, repeated, value_type)
        return layout

    @staticmethod
    def _sdp_type_of(value: SDPField | SDPAttribute | SDPSection) -> str:
        if isinstance(value, SDPField):
            return value.type
        if isinstance(value, SDPAttribute):
            return ATTRIBUTE_FIELD_TYPE
        assert value._start_field is not None  # noqa: SLF001
        return value._start_field._type  # noqa: SLF001

    def add_field(self, value: SDPField | SDPAttribute | SDPSection) -> None:
        """
        Add a field, attribute or subsection to this section.

        Repeated (list) fields are appended to, any other field is set,
        replacing the previous value if there was one.

        :raises SDPParseError: if the value doesn't belong in this section.
        """
        sdp_type = self._sdp_type_of(value)
        entry = self._layout.get(sdp_type)
        if entry is None or not isinstance(value, entry.value_type):
            raise SDPParseError(
                f"{type(value).__name__} ({sdp_type}=) is not allowed in {type(self).__name__}"
            )
        if entry.repeated:
            getattr(self, entry.attr).append(value)
        else:
            setattr(self, entry.attr, value)

    def iter_lines(self) -> Iterator[str]:
        """Iterate over the serialized lines of the section, without line terminators."""
        for entry in self._layout.values():
            value = getattr(self, entry.attr)
            for item in value if entry.repeated else (value,):
                if item is None:
                    continue
                if isinstance(item, SDPSection):
                    yield from item.iter_lines()
                elif isinstance(item, SDPAttribute):
                    yield f"{ATTRIBUTE_FIELD_TYPE}={item}"
                else:
                    yield str(item)

    def serialize(self) -> str:
        """Serialize the section to SDP text, every line terminated by CRLF."""
        return "".join(f"{line}{SDP_LINE_SEPARATOR}" for line in self.iter_lines())

    def __str__(self) -> str:
        return self.serialize()

    def __bytes__(self) -> bytes:
        return self.serialize().encode(SDP_ENCODING)
