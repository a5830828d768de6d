"""Helpers, utilities, and other miscellaneous functions and classes."""

from __future__ import annotations

import enum
import types
from abc import ABC
from collections.abc import MutableSet, Sequence, Set
from dataclasses import dataclass
from inspect import isabstract
from typing import (
    Any,
    Callable,
    Generic,
    Iterable,
    Iterator,
    Protocol,
    TypeVar,
    Union,
    get_args,
    get_origin,
    runtime_checkable,
)

from typing_extensions import Self, dataclass_transform

from .constants import TOKEN_PATTERN
from .exceptions import SDPParseError


_dT = TypeVar("_dT")


@dataclass_transform()
def slots_dataclass(cls: type[_dT] | None = None, /, **kwargs: Any) -> Any:
    """Same as :func:`dataclasses.dataclass`, but with ``slots=True`` unless told otherwise."""
    kwargs.setdefault("slots", True)
    return dataclass(cls, **kwargs)


def unwrap_optional(annotation: Any) -> Any:
    """Return ``X`` for an ``X | None`` (or ``Optional[X]``) annotation, else the annotation as is."""
    if get_origin(annotation) not in (Union, types.UnionType):
        return annotation
    non_none = [arg for arg in get_args(annotation) if arg is not type(None)]
    return non_none[0] if len(non_none) == 1 else annotation


def canonical_token(value: str) -> str:
    """
    Canonicalize a token value, as used for media identifiers, semantics, options, etc.

    Surrounding whitespace is stripped, and the result must be a valid
    ``token`` as defined in :rfc:`8866#section-9`.

    :param value: the raw token value.
    :return: the canonical token.
    :raises SDPParseError: if the value is not a valid token.
    """
    if not isinstance(value, str):
        raise SDPParseError(f"Expected a string token, got {type(value).__name__}")
    token = value.strip()
    if not TOKEN_PATTERN.fullmatch(token):
        raise SDPParseError(f"Invalid token {value!r}")
    return token


def coerce_word(value: Any, description: str) -> str:
    """
    Coerce a value into a single word of a space-separated field value.

    Integers are converted to their decimal string, as programmatic callers
    often pass numeric identifiers, ports or payload types.

    :param value: the value, a string or an integer.
    :param description: what the value is, for error messages.
    :return: the value as a non-empty string without whitespace.
    :raises SDPParseError: if the value is of another type, empty, or has whitespace.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        raise SDPParseError(f"Invalid {description}: expected str or int, got {value!r}")
    if not value or any(char.isspace() for char in value):
        raise SDPParseError(f"Invalid {description} {value!r}")
    return value


class CanonicalOrderedSet(MutableSet[str]):
    """
    Insertion-ordered, duplicate-free set of strings.

    Every element goes through the given canonicalization function before being
    stored or looked up, so all the stored elements are always canonical.
    Compares equal to other ordered sets and sequences with the same elements
    in the same order, and to plain sets with the same elements.
    """

    __slots__ = ("_canonicalize", "_items")

    def __init__(
        self,
        values: Iterable[str] = (),
        canonicalize: Callable[[str], str] = canonical_token,
    ) -> None:
        self._canonicalize: Callable[[str], str] = canonicalize
        self._items: dict[str, None] = {}
        for value in values:
            self.add(value)

    def __contains__(self, value: object) -> bool:
        if not isinstance(value, str):
            return False
        try:
            return self._canonicalize(value) in self._items
        except SDPParseError:
            return False

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def add(self, value: str) -> None:  # noqa: D102
        self._items[self._canonicalize(value)] = None

    def discard(self, value: str) -> None:  # noqa: D102
        self._items.pop(self._canonicalize(value), None)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, (CanonicalOrderedSet, Sequence)) and not isinstance(
            other, str
        ):
            return list(self) == list(other)
        if isinstance(other, Set):
            return set(self._items) == set(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({list(self._items)!r})"


class DefaultType(enum.Enum):
    """Type of the :data:`DEFAULT` sentinel, the registry key of catch-all classes."""

    DEFAULT = enum.auto()

    def __repr__(self) -> str:
        return self.name


DEFAULT = DefaultType.DEFAULT


_ID = TypeVar("_ID")
_RT = TypeVar("_RT", bound="Registry")


class Registry(ABC, Generic[_ID, _RT]):
    """
    Base class for families of classes looked up by the value of a class attribute.

    A class declared with ``registry=True`` becomes the root of a family, with
    its own lookup table, and ``registry_attr`` names the class attribute whose
    value is the lookup key (e.g. ``"_type"`` for SDP fields)::

        class SDPMediaFields(SDPField, ABC, registry=True, registry_attr="_type"):
            ...

    Every concrete subclass of a root is added to the table as soon as its
    class statement runs, so a family is complete once the modules defining it
    are imported. Abstract subclasses without a key are skipped.
    """

    __registry__: dict[_ID, type[_RT]]
    __registry_attr_name__: str
    __registry_root__: type[Registry]

    @classmethod
    def is_abstract(cls) -> bool:
        """Whether the class has abstract methods left, or is declared with ABC as a direct base."""
        return isabstract(cls) or ABC in cls.__bases__

    def __init_subclass__(
        cls,
        *,
        registry: bool = False,
        registry_attr: str | None = None,
        **kwargs: Any,
    ):
        super().__init_subclass__(**kwargs)

        if registry:
            if not registry_attr:
                raise AttributeError(
                    f"Registry root {cls.__name__} must specify a registry_attr"
                )
            cls.__registry__ = {}
            cls.__registry_attr_name__ = registry_attr
            cls.__registry_root__ = cls
            return

        if not hasattr(cls, "__registry_attr_name__"):
            return  # not below any registry root
        key = getattr(cls, cls.__registry_attr_name__, None)
        if key is None:
            if not cls.is_abstract():
                raise ValueError(
                    f"{cls.__name__} must define {cls.__registry_attr_name__} "
                    f"to be part of the {cls.__registry_root__.__name__} registry"
                )
            return
        cls._register(key)

    @classmethod
    def _register(cls, key: _ID) -> None:
        registered = cls.__registry__.get(key)
        # slots dataclasses are re-created under the same qualified name
        if registered is not None and (registered.__module__, registered.__qualname__) != (
            cls.__module__,
            cls.__qualname__,
        ):
            raise NameError(
                f"Both {registered.__name__} and {cls.__name__} are registered in "
                f"{cls.__registry_root__.__name__} for {cls.__registry_attr_name__}={key!r}"
            )
        cls.__registry__[key] = cls

    @classmethod
    def get_registry(cls) -> types.MappingProxyType[_ID, type[_RT]]:
        """A read-only view of the lookup table of the family."""
        return types.MappingProxyType(cls.__registry__)

    @classmethod
    def lookup(cls, key: _ID) -> type[_RT]:
        """
        Return the class registered for the given key.

        :raises KeyError: if no class is registered for the key.
        """
        try:
            return cls.__registry__[key]
        except KeyError:
            raise KeyError(
                f"No {cls.__registry_root__.__name__} registered for "
                f"{cls.__registry_attr_name__}={key!r}"
            ) from None


@runtime_checkable
class Parseable(Protocol):
    """Objects that can be built from their SDP text form."""

    @classmethod
    def parse(cls, raw_value: str) -> Self:
        """Build an instance from its SDP text form."""


@runtime_checkable
class Serializable(Protocol):
    """Objects that can render themselves as SDP text."""

    def serialize(self) -> str:
        """Render the object as SDP text."""


@runtime_checkable
class ParseableSerializable(Parseable, Serializable, Protocol):
    """Objects that convert both ways between SDP text and themselves."""


@runtime_checkable
class FieldsParser(Protocol):
    """Classes that split a raw value into the keyword arguments of their constructor."""

    @classmethod
    def parse_raw_value(cls, raw_value: str) -> dict[str, Any]:
        """Split the raw value into constructor keyword arguments."""


@runtime_checkable
class FieldsParserSerializer(FieldsParser, Serializable, Protocol):
    """A :class:`FieldsParser` that can also serialize its fields back."""


@slots_dataclass
class StrValueMixin(FieldsParserSerializer):
    """Mixin for dataclasses holding a single string, kept verbatim."""

    value: str

    @classmethod
    def parse_raw_value(cls, raw_value: str) -> dict[str, Any]:  # noqa: D102
        return {"value": raw_value}

    def serialize(self) -> str:  # noqa: D102
        return self.value


@slots_dataclass
class OptionalStrValueMixin(FieldsParserSerializer):
    """Like :class:`StrValueMixin`, but where the value can also be missing (``None``)."""

    value: str | None

    @classmethod
    def parse_raw_value(cls, raw_value: str | None) -> dict[str, Any]:  # noqa: D102
        return {"value": raw_value}

    def serialize(self) -> str:  # noqa: D102
        return "" if self.value is None else self.value


@slots_dataclass
class IntValueMixin(FieldsParserSerializer):
    """Mixin for dataclasses holding a single integer, e.g. ``ptime:20``."""

    value: int

    @classmethod
    def parse_raw_value(cls, raw_value: str) -> dict[str, Any]:  # noqa: D102
        return {"value": int(raw_value)}

    def serialize(self) -> str:  # noqa: D102
        return str(self.value)

    def __int__(self) -> int:
        return self.value
