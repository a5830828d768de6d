from __future__ import annotations

import pytest

from sdpkit.exceptions import SDPMalformedLineError, SDPParseError
from sdpkit.sdp import SDPLine, SDPLines, tokenize


class TestSDPLine:
    def test_parse(self):
        """Test that a line is split into its type and raw value."""
        line = SDPLine.parse("a=rtpmap:0 PCMU/8000", line_number=7)
        assert line.kind == "a"
        assert line.raw_value == "rtpmap:0 PCMU/8000"
        assert line.line_number == 7
        assert str(line) == "a=rtpmap:0 PCMU/8000"

    def test_value_kept_verbatim(self):
        """Test that values are not stripped, and can be empty."""
        assert SDPLine.parse("s= ").raw_value == " "
        assert SDPLine.parse("s=").raw_value == ""
        assert SDPLine.parse("i=a=b").raw_value == "a=b"

    @pytest.mark.parametrize("raw_line", ["x", "xy", "=v", "1=0", "ä=1", " v=0"])
    def test_malformed(self, raw_line):
        """Test that lines without the ``<type>=<value>`` shape are rejected."""
        with pytest.raises(SDPMalformedLineError):
            SDPLine.parse(raw_line)

    def test_malformed_is_parse_error(self):
        """Test that malformed line errors can be caught as generic parse errors."""
        with pytest.raises(SDPParseError, match="line 3"):
            SDPLine.parse("bogus", line_number=3)

    def test_frozen(self):
        """Test that line records cannot be modified."""
        line = SDPLine.parse("v=0")
        with pytest.raises(AttributeError):
            line.kind = "s"  # type: ignore[misc]


class TestSDPLines:
    def test_line_endings(self):
        """Test that both CRLF and LF line endings are accepted, and blank lines skipped."""
        lines = list(tokenize("v=0\r\no=- 1 1 IN IP4 127.0.0.1\n\r\ns=-\r\n"))
        assert [line.kind for line in lines] == ["v", "o", "s"]
        assert [line.line_number for line in lines] == [1, 2, 4]
        assert lines[2].raw_value == "-"

    def test_bytes(self):
        """Test that UTF-8 encoded bytes are decoded."""
        lines = list(tokenize(b"v=0\r\ns=caf\xc3\xa9\r\n"))
        assert [line.raw_value for line in lines] == ["0", "café"]

    def test_bytes_invalid_encoding(self):
        """Test that bytes which are not valid UTF-8 are reported as parse errors."""
        with pytest.raises(SDPParseError, match="not valid utf-8 at byte 7") as excinfo:
            tokenize(b"v=0\r\ns=\xff\xfe\r\n")
        assert isinstance(excinfo.value, SDPMalformedLineError)
        assert isinstance(excinfo.value.__cause__, UnicodeDecodeError)

    def test_restartable(self):
        """Test that iterating over the lines again starts over from the first line."""
        lines = tokenize("v=0\r\ns=-\r\n")
        assert isinstance(lines, SDPLines)
        assert list(lines) == list(lines)
        assert len(list(lines)) == 2

    def test_lazy_errors(self):
        """Test that a malformed line is reported only once iteration reaches it."""
        lines_iter = iter(tokenize("v=0\r\nbogus\r\n"))
        assert next(lines_iter).kind == "v"
        with pytest.raises(SDPMalformedLineError, match="bogus"):
            next(lines_iter)

    def test_empty(self):
        """Test that an empty document has no lines."""
        assert list(tokenize("")) == []
        assert list(tokenize("\r\n\r\n")) == []
