"""Various constants used by the sdpkit library."""

from __future__ import annotations

import re as _re


SUPPORTED_SDP_VERSIONS: list[str] = ["0"]

SDP_MIMETYPE: str = "application/sdp"
SDP_LINE_SEPARATOR: str = "\r\n"
SDP_ENCODING: str = "utf-8"

# token-char as defined in RFC 8866 section 9
TOKEN_CHARS: str = r"!#$%&'*+\-.0-9A-Z^_`a-z{|}~"
TOKEN_PATTERN: _re.Pattern[str] = _re.compile(rf"[{TOKEN_CHARS}]+")

# typed-time from RFC 8866 section 5.10, the unit suffix is optional
TYPED_TIME_PATTERN: _re.Pattern[str] = _re.compile(r"(-?\d+)([dhms]?)")
TYPED_TIME_MULTIPLIERS: dict[str, int] = {"d": 86400, "h": 3600, "m": 60, "s": 1, "": 1}

SETUP_ROLES: frozenset[str] = frozenset({"active", "passive", "actpass", "holdconn"})
