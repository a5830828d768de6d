"""Time descriptions: the ``t=`` and ``r=`` lines, and the section grouping them."""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass, field as dataclass_field

from typing_extensions import Self, override

from sdpkit.constants import TYPED_TIME_MULTIPLIERS, TYPED_TIME_PATTERN
from sdpkit.exceptions import SDPParseError
from sdpkit.helpers import coerce_word, slots_dataclass

from .common import SDPField, SDPSection


__all__ = [
    "SDPTimeFields",
    "SDPTimeTime",
    "SDPTimeRepeat",
    "SDPTime",
    "typed_time_to_seconds",
]


def typed_time_to_seconds(typed_time: str) -> int:
    """
    Convert a typed time (e.g. ``7d``, ``-1h``, ``3600``) into seconds.

    :raises SDPParseError: if the value is not a valid typed time.
    """
    match = TYPED_TIME_PATTERN.fullmatch(typed_time)
    if not match:
        raise SDPParseError(f'Invalid typed time "{typed_time}"')
    time, unit = match.groups()
    return int(time) * TYPED_TIME_MULTIPLIERS[unit]


@dataclass
class SDPTimeFields(SDPField, ABC, registry=True, registry_attr="_type"):
    """Base class for the fields of a time description, ``t=`` and the ``r=`` lines after it."""


@slots_dataclass
class SDPTimeTime(SDPTimeFields):
    """
    Start and stop times of the session, as NTP timestamps, :rfc:`8866#section-5.9`.

    Zero values mean unbounded (or, for both, permanent) sessions.

    Spec::
        t=<start-time> <stop-time>
    """

    _type = "t"
    _description = "time the session is active"

    start_time: int
    stop_time: int

    @classmethod
    @override
    def from_raw_value(cls, field_type: str, raw_value: str) -> Self:
        times = [int(value) for value in raw_value.split(" ")]
        if len(times) != 2:
            raise SDPParseError(f"Expected start and stop times, got {raw_value!r}")
        return cls(*times)

    def serialize(self) -> str:  # noqa: D102
        return " ".join(map(str, (self.start_time, self.stop_time)))


@slots_dataclass
class SDPTimeRepeat(SDPTimeFields):
    """
    Repeat times of the session, :rfc:`8866#section-5.10`.

    Values are kept as typed times (e.g. ``7d``), so they serialize back
    the way they were written; use the ``*_seconds`` properties for arithmetic.

    Spec::
        r=<repeat interval> <active duration> <offsets from start-time>
    """

    _type = "r"
    _description = "zero or more repeat times"

    interval: str
    duration: str
    offsets: list[str] = dataclass_field(default_factory=list)

    def __post_init__(self) -> None:
        self.interval = coerce_word(self.interval, "repeat interval")
        self.duration = coerce_word(self.duration, "active duration")
        self.offsets = [coerce_word(offset, "repeat offset") for offset in self.offsets]
        for typed_time in (self.interval, self.duration, *self.offsets):
            typed_time_to_seconds(typed_time)

    @property
    def interval_seconds(self) -> int:
        """The repeat interval, in seconds."""
        return typed_time_to_seconds(self.interval)

    @property
    def duration_seconds(self) -> int:
        """The active duration, in seconds."""
        return typed_time_to_seconds(self.duration)

    @property
    def offsets_seconds(self) -> list[int]:
        """The offsets from the start time, in seconds."""
        return [typed_time_to_seconds(offset) for offset in self.offsets]

    @classmethod
    @override
    def from_raw_value(cls, field_type: str, raw_value: str) -> Self:
        interval, duration, *offsets = raw_value.split()
        return cls(interval=interval, duration=duration, offsets=offsets)

    def serialize(self) -> str:  # noqa: D102
        return " ".join((self.interval, self.duration, *self.offsets))


@slots_dataclass
class SDPTime(SDPSection):
    """A ``t=`` line with the ``r=`` lines repeating it, :rfc:`8866#section-5.9`."""

    _fields_base = SDPTimeFields
    _start_field = SDPTimeTime

    time: SDPTimeTime
    repeats: list[SDPTimeRepeat] = dataclass_field(default_factory=list)
