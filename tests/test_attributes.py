from __future__ import annotations

import logging
from dataclasses import dataclass

import pytest
from frozendict import frozendict

from sdpkit.exceptions import SDPParseError
from sdpkit.helpers import CanonicalOrderedSet, canonical_token
from sdpkit.sdp import (
    CandidateAttribute,
    ExtmapAttribute,
    FingerprintAttribute,
    FMTPAttribute,
    GroupAttribute,
    ICEOptionsAttribute,
    InactiveFlag,
    MediaFlowType,
    MidAttribute,
    MsidAttribute,
    MsidSemanticAttribute,
    PTimeAttribute,
    RTCPAttribute,
    RTCPFeedbackAttribute,
    RTPMapAttribute,
    SDPAttribute,
    SendOnlyFlag,
    SendRecvFlag,
    SetupAttribute,
    SSRCAttribute,
    SSRCGroupAttribute,
    UnknownAttribute,
    get_media_flow_attribute,
    get_media_flow_type,
)


FLAG_NAMES = [
    "sendrecv",
    "sendonly",
    "recvonly",
    "inactive",
    "rtcp-mux",
    "rtcp-rsize",
    "ice-lite",
    "end-of-candidates",
    "extmap-allow-mixed",
]


class TestCanonicalization:
    def test_canonical_token(self):
        """Test that tokens are stripped and validated."""
        assert canonical_token(" audio ") == "audio"
        assert canonical_token("BUNDLE") == "BUNDLE"
        for invalid_token in ("", "   ", "two words", "a\tb", "semi;colon:"):
            with pytest.raises(SDPParseError):
                canonical_token(invalid_token)

    def test_ordered_set(self):
        """Test that the set keeps insertion order and drops duplicates."""
        values = CanonicalOrderedSet(["b", "a", " b", "c "])
        assert list(values) == ["b", "a", "c"]
        assert len(values) == 3
        assert " a " in values
        assert "not a token" not in values
        assert 42 not in values

    def test_ordered_set_equality(self):
        """Test that the set compares in order with sequences, and unordered with sets."""
        values = CanonicalOrderedSet(["audio", "video"])
        assert values == ["audio", "video"]
        assert values == ("audio", "video")
        assert values != ["video", "audio"]
        assert values == {"video", "audio"}
        assert values == CanonicalOrderedSet([" audio", "video "])

    def test_ordered_set_mutation(self):
        """Test that added and discarded values are canonicalized too."""
        values = CanonicalOrderedSet()
        values.add(" x ")
        values.add("y")
        values.discard("x ")
        assert values == ["y"]
        with pytest.raises(SDPParseError):
            values.add("not a token")

    def test_custom_canonicalization(self):
        """Test that a different canonicalization function can be used."""
        values = CanonicalOrderedSet(["Trickle", "TRICKLE"], canonicalize=str.lower)
        assert values == ["trickle"]


class TestAttributeRegistry:
    def test_registered(self):
        """Test that all the known attributes are registered by their exact name."""
        registry = SDPAttribute.get_registry()
        for name in [
            *FLAG_NAMES,
            "mid",
            "ptime",
            "maxptime",
            "group",
            "msid-semantic",
            "rtpmap",
            "fmtp",
            "rtcp",
            "rtcp-fb",
            "extmap",
            "candidate",
            "ssrc",
            "ssrc-group",
            "msid",
            "fingerprint",
            "ice-ufrag",
            "ice-pwd",
            "ice-options",
            "setup",
            "tool",
            "sctp-port",
            "max-message-size",
        ]:
            assert name in registry, f"Attribute {name} is not registered"

    def test_registry_read_only(self):
        """Test that the registry view cannot be modified."""
        with pytest.raises(TypeError):
            SDPAttribute.get_registry()["x-custom"] = UnknownAttribute  # type: ignore[index]

    def test_case_sensitive(self):
        """Test that attribute names are matched case-sensitively."""
        attribute = SDPAttribute.parse("a=SendRecv")
        assert isinstance(attribute, UnknownAttribute)
        assert attribute.name == "SendRecv"

    def test_parse_on_concrete_class(self):
        """Test that concrete classes only parse their own attributes."""
        rtpmap = RTPMapAttribute.parse("rtpmap:0 PCMU/8000")
        assert isinstance(rtpmap, RTPMapAttribute)
        with pytest.raises(SDPParseError):
            RTPMapAttribute.parse("ptime:20")


class TestUnknownAttribute:
    def test_preserved(self):
        """Test that unknown attributes keep their name and value verbatim."""
        attribute = SDPAttribute.parse("a=x-custom:foo bar")
        assert isinstance(attribute, UnknownAttribute)
        assert attribute.name == "x-custom"
        assert attribute.value == "foo bar"
        assert not attribute.is_flag
        assert str(attribute) == "x-custom:foo bar"

    def test_without_value(self):
        """Test that unknown attributes without a colon have no value."""
        attribute = SDPAttribute.parse("x-flag")
        assert isinstance(attribute, UnknownAttribute)
        assert attribute.value is None
        assert attribute.is_flag
        assert str(attribute) == "x-flag"

    def test_empty_value(self):
        """Test that an empty value is distinguished from a missing one."""
        attribute = SDPAttribute.parse("x-empty:")
        assert attribute.value == ""
        assert str(attribute) == "x-empty:"

    def test_value_with_colons(self):
        """Test that only the first colon separates the name from the value."""
        attribute = SDPAttribute.parse("x-url:http://example.com:8080/")
        assert attribute.name == "x-url"
        assert attribute.value == "http://example.com:8080/"


class TestFlagAttributes:
    @pytest.mark.parametrize("name", FLAG_NAMES)
    def test_parse(self, name):
        """Test that flags parse without a value, and serialize to their name."""
        attribute = SDPAttribute.parse(f"a={name}")
        assert not isinstance(attribute, UnknownAttribute)
        assert attribute.is_flag
        assert attribute.name == name
        assert str(attribute) == name

    @pytest.mark.parametrize("name", FLAG_NAMES)
    def test_value_rejected(self, name):
        """Test that flags with a value are rejected."""
        with pytest.raises(SDPParseError):
            SDPAttribute.parse(f"{name}:yes")

    def test_value_attribute_without_value(self):
        """Test that value attributes without a value are rejected."""
        with pytest.raises(SDPParseError):
            SDPAttribute.parse("ptime")

    def test_media_flow_type(self):
        """Test the media flow helpers."""
        assert get_media_flow_type([SendOnlyFlag(), PTimeAttribute(value=20)]) is (
            MediaFlowType.SENDONLY
        )
        assert get_media_flow_type([PTimeAttribute(value=20)]) is None
        assert isinstance(get_media_flow_attribute(MediaFlowType.INACTIVE), InactiveFlag)
        with pytest.raises(SDPParseError):
            get_media_flow_type([SendOnlyFlag(), SendRecvFlag()])


class TestValueAttributes:
    def test_int_value(self):
        """Test that integer attributes are converted."""
        ptime = SDPAttribute.parse("ptime:20")
        assert isinstance(ptime, PTimeAttribute)
        assert ptime.value == 20
        assert int(ptime) == 20
        assert str(ptime) == "ptime:20"

    def test_int_value_invalid(self):
        """Test that invalid integers are reported as parse errors naming the attribute."""
        with pytest.raises(SDPParseError, match="ptime"):
            SDPAttribute.parse("ptime:twenty")

    def test_mid(self):
        """Test that media identifiers are canonical tokens."""
        assert SDPAttribute.parse("mid:audio").value == "audio"
        assert MidAttribute.of(value=" video ").value == "video"
        with pytest.raises(SDPParseError):
            SDPAttribute.parse("mid:two words")

    def test_setup(self):
        """Test that the setup role is validated."""
        assert SDPAttribute.parse("setup:actpass") == SetupAttribute(value="actpass")
        with pytest.raises(SDPParseError):
            SDPAttribute.parse("setup:sideways")


class TestGroupAttribute:
    def test_parse(self):
        """Test that group attributes are parsed with their mids in order."""
        group = SDPAttribute.parse("a=group:BUNDLE audio video")
        assert isinstance(group, GroupAttribute)
        assert group.type == "BUNDLE"
        assert group.mids == ["audio", "video"]
        assert str(group) == "group:BUNDLE audio video"

    @pytest.mark.parametrize(
        "raw_data", ["a=group:BUNDLE", "a=group:BUNDLE ", "a=group:", "a=group"]
    )
    def test_parse_without_mids(self, raw_data):
        """Test that group attributes without mids are rejected."""
        with pytest.raises(SDPParseError):
            SDPAttribute.parse(raw_data)

    def test_parse_duplicates(self):
        """Test that duplicated mids are dropped, keeping the first occurrence."""
        group = SDPAttribute.parse("group:LS 1 0 1")
        assert group.mids == ["1", "0"]

    def test_mutation(self):
        """Test that mids are canonicalized on mutation the same way as when parsing."""
        group = GroupAttribute.of("BUNDLE", "audio")
        group.add_mid(" video ")
        assert group.mids == ["audio", "video"]
        group.add_mid("video")
        assert len(group.mids) == 2
        assert group.has_mid(" video ")
        assert group.remove_mid(" audio ")
        assert not group.remove_mid("audio")
        assert not group.has_mid("audio")
        assert group.mids == ["video"]
        assert str(group) == "group:BUNDLE video"
        assert group == SDPAttribute.parse("group:BUNDLE video")

    def test_invalid_mid(self):
        """Test that invalid mids are rejected on mutation."""
        group = GroupAttribute.of("BUNDLE", "audio")
        with pytest.raises(SDPParseError):
            group.add_mid("two words")
        with pytest.raises(SDPParseError):
            group.add_mid("")
        assert group.mids == ["audio"]

    def test_construction(self):
        """Test that construction and assignment canonicalize the fields."""
        group = GroupAttribute(type=" LS ", mids=[" a", "b ", "a"])
        assert group.type == "LS"
        assert isinstance(group.mids, CanonicalOrderedSet)
        assert group.mids == ["a", "b"]
        group.mids = ("x", " x ")
        assert isinstance(group.mids, CanonicalOrderedSet)
        assert group.mids == ["x"]
        group.type = "BUNDLE "
        assert str(group) == "group:BUNDLE x"

    def test_empty_group(self):
        """Test that an empty group built programmatically serializes without mids."""
        group = GroupAttribute.of("BUNDLE")
        assert str(group) == "group:BUNDLE"
        with pytest.raises(SDPParseError):
            SDPAttribute.parse(str(group))

    def test_emptied_group_warns(self, caplog):
        """Test that serializing a group emptied by mutation logs a warning."""
        group = SDPAttribute.parse("group:BUNDLE 0")
        assert group.remove_mid("0")
        with caplog.at_level(logging.WARNING, logger="sdpkit.sdp.attributes"):
            assert group.serialize() == "BUNDLE"
        assert "group:BUNDLE without media identifiers" in caplog.text
        caplog.clear()
        group.add_mid("1")
        with caplog.at_level(logging.WARNING, logger="sdpkit.sdp.attributes"):
            assert group.serialize() == "BUNDLE 1"
        assert not caplog.records


class TestStructuredAttributes:
    def test_rtpmap(self):
        """Test rtpmap attributes, with and without encoding parameters."""
        opus = SDPAttribute.parse("rtpmap:111 opus/48000/2")
        assert isinstance(opus, RTPMapAttribute)
        assert opus.payload_type == 111
        assert opus.encoding_name == "opus"
        assert opus.clock_rate == 48000
        assert opus.channels == 2
        assert str(opus) == "rtpmap:111 opus/48000/2"
        pcmu = SDPAttribute.parse("rtpmap:0 PCMU/8000")
        assert pcmu.encoding_parameters is None
        assert pcmu.channels is None

    def test_rtpmap_of(self):
        """Test that rtpmap attributes built with of() accept numeric encoding parameters."""
        opus = RTPMapAttribute.of(111, "opus", 48000, 2)
        assert opus.encoding_parameters == "2"
        assert opus.channels == 2
        assert str(opus) == "rtpmap:111 opus/48000/2"
        with pytest.raises(SDPParseError, match="encoding name"):
            RTPMapAttribute.of(0, None, 8000)

    def test_rtpmap_invalid(self):
        """Test that invalid rtpmap attributes are reported as parse errors."""
        for raw_data in ("rtpmap:abc PCMU/8000", "rtpmap:0", "rtpmap:0 PCMU"):
            with pytest.raises(SDPParseError, match="rtpmap"):
                SDPAttribute.parse(raw_data)

    def test_fmtp(self):
        """Test that fmtp parameters are kept verbatim."""
        fmtp = SDPAttribute.parse("fmtp:111 minptime=10; useinbandfec=1")
        assert isinstance(fmtp, FMTPAttribute)
        assert fmtp.format == "111"
        assert fmtp.parameters == "minptime=10; useinbandfec=1"
        assert str(fmtp) == "fmtp:111 minptime=10; useinbandfec=1"

    def test_fmtp_payload(self):
        """Test that fmtp parameters can be any serializable payload object."""

        @dataclass
        class H264Parameters:
            profile_level_id: str
            packetization_mode: int

            def serialize(self) -> str:
                return (
                    f"profile-level-id={self.profile_level_id};"
                    f"packetization-mode={self.packetization_mode}"
                )

        fmtp = FMTPAttribute.of(
            format="102", format_specific_parameters=H264Parameters("42e01f", 1)
        )
        assert fmtp.parameters == "profile-level-id=42e01f;packetization-mode=1"
        assert str(fmtp) == "fmtp:102 profile-level-id=42e01f;packetization-mode=1"
        reparsed = SDPAttribute.parse(str(fmtp))
        assert reparsed.format_specific_parameters == fmtp.parameters

    def test_candidate(self):
        """Test candidate attributes, with extension attributes kept in order."""
        raw_data = (
            "candidate:1467250027 1 udp 2122260223 192.168.0.196 46243 typ host "
            "generation 0 network-id 1"
        )
        candidate = SDPAttribute.parse(raw_data)
        assert isinstance(candidate, CandidateAttribute)
        assert candidate.foundation == "1467250027"
        assert candidate.component == 1
        assert candidate.transport == "udp"
        assert candidate.priority == 2122260223
        assert candidate.address == "192.168.0.196"
        assert candidate.port == 46243
        assert candidate.type == "host"
        assert candidate.related_address is None
        assert isinstance(candidate.extensions, frozendict)
        assert list(candidate.extensions.items()) == [("generation", "0"), ("network-id", "1")]
        assert str(candidate) == raw_data

    def test_candidate_related(self):
        """Test candidate attributes with related address and port."""
        raw_data = (
            "candidate:1853887674 1 udp 1518280447 203.0.113.61 36768 typ srflx "
            "raddr 192.168.0.196 rport 46243 generation 0"
        )
        candidate = SDPAttribute.parse(raw_data)
        assert candidate.related_address == "192.168.0.196"
        assert candidate.related_port == 46243
        assert candidate.extensions == {"generation": "0"}
        assert str(candidate) == raw_data

    @pytest.mark.parametrize(
        "raw_data",
        [
            "candidate:1 1 udp 1 192.0.2.1 5000 host",
            "candidate:1 1 udp 1 192.0.2.1 5000 type host",
            "candidate:1 1 udp 1 192.0.2.1 5000 typ host generation",
            "candidate:1 one udp 1 192.0.2.1 5000 typ host",
            "candidate:1 1 udp 1 192.0.2.1 5000 typ host x 1 x 2",
        ],
    )
    def test_candidate_invalid(self, raw_data):
        """Test that malformed candidates are reported as parse errors."""
        with pytest.raises(SDPParseError):
            SDPAttribute.parse(raw_data)

    def test_candidate_of(self):
        """Test that candidate extension values built with of() are stored as strings."""
        candidate = CandidateAttribute.of(
            foundation=1,
            component=1,
            transport="udp",
            priority=2122260223,
            address="192.0.2.1",
            port=5000,
            type="host",
            extensions={"generation": 0},
        )
        assert candidate.foundation == "1"
        assert candidate.extensions == {"generation": "0"}
        assert str(candidate) == "candidate:1 1 udp 2122260223 192.0.2.1 5000 typ host generation 0"
        with pytest.raises(SDPParseError, match="candidate address"):
            CandidateAttribute.of("1", 1, "udp", 1, "192.0.2.1 x", 5000, "host")

    def test_candidate_repeated_extension(self):
        """Test that a repeated extension attribute is rejected rather than overwritten."""
        with pytest.raises(SDPParseError, match="Repeated extension attribute 'generation'"):
            SDPAttribute.parse(
                "candidate:1 1 udp 1 192.0.2.1 5000 typ host generation 0 generation 1"
            )

    def test_ssrc(self):
        """Test source-specific attributes, with and without value."""
        ssrc = SDPAttribute.parse("ssrc:1001 msid:stream0 track0")
        assert isinstance(ssrc, SSRCAttribute)
        assert ssrc.ssrc == 1001
        assert ssrc.attribute == "msid"
        assert ssrc.value == "stream0 track0"
        assert str(ssrc) == "ssrc:1001 msid:stream0 track0"
        assert SDPAttribute.parse("ssrc:1001 x-flag").value is None

    def test_ssrc_group(self):
        """Test source grouping attributes."""
        ssrc_group = SDPAttribute.parse("ssrc-group:FID 2002 2003")
        assert isinstance(ssrc_group, SSRCGroupAttribute)
        assert ssrc_group.semantics == "FID"
        assert ssrc_group.ssrcs == [2002, 2003]
        assert ssrc_group == SSRCGroupAttribute.of("FID", 2002, 2003)
        with pytest.raises(SDPParseError):
            SDPAttribute.parse("ssrc-group:FID")

    def test_msid_semantic(self):
        """Test that whitespace after the colon is tolerated and normalized."""
        msid_semantic = SDPAttribute.parse("msid-semantic: WMS *")
        assert isinstance(msid_semantic, MsidSemanticAttribute)
        assert msid_semantic.semantic == "WMS"
        assert msid_semantic.identifiers == ["*"]
        assert str(msid_semantic) == "msid-semantic:WMS *"

    def test_msid_semantic_of(self):
        """Test that msid-semantic identifiers built with of() must be single words."""
        assert str(MsidSemanticAttribute.of("WMS", "stream0", 1)) == "msid-semantic:WMS stream0 1"
        with pytest.raises(SDPParseError):
            MsidSemanticAttribute.of("WMS", "two words")

    def test_msid(self):
        """Test media stream identification attributes."""
        msid = SDPAttribute.parse("msid:stream0 track0")
        assert isinstance(msid, MsidAttribute)
        assert (msid.stream_id, msid.track_id) == ("stream0", "track0")
        assert SDPAttribute.parse("msid:stream0").track_id is None

    def test_ice_options(self):
        """Test that ICE options are an ordered set of tokens."""
        ice_options = SDPAttribute.parse("ice-options:trickle renomination trickle")
        assert isinstance(ice_options, ICEOptionsAttribute)
        assert ice_options.options == ["trickle", "renomination"]
        ice_options.options.add(" ice2 ")
        assert str(ice_options) == "ice-options:trickle renomination ice2"

    def test_extmap(self):
        """Test header extension mappings, with and without direction."""
        extmap = SDPAttribute.parse("extmap:2/sendonly urn:ietf:params:rtp-hdrext:toffset")
        assert isinstance(extmap, ExtmapAttribute)
        assert extmap.id == 2
        assert extmap.direction == "sendonly"
        assert extmap.uri == "urn:ietf:params:rtp-hdrext:toffset"
        assert str(extmap) == "extmap:2/sendonly urn:ietf:params:rtp-hdrext:toffset"
        extmap = SDPAttribute.parse("extmap:1 urn:ietf:params:rtp-hdrext:ssrc-audio-level")
        assert extmap.direction is None

    def test_rtcp(self):
        """Test RTCP port attributes, with and without address."""
        rtcp = SDPAttribute.parse("rtcp:9 IN IP4 0.0.0.0")
        assert isinstance(rtcp, RTCPAttribute)
        assert (rtcp.port, rtcp.address) == (9, "0.0.0.0")
        assert str(rtcp) == "rtcp:9 IN IP4 0.0.0.0"
        assert str(SDPAttribute.parse("rtcp:53020")) == "rtcp:53020"
        with pytest.raises(SDPParseError):
            SDPAttribute.parse("rtcp:9 IN IP4")

    def test_rtcp_feedback(self):
        """Test RTCP feedback attributes, with wildcard payload types."""
        rtcp_fb = SDPAttribute.parse("rtcp-fb:* nack pli")
        assert isinstance(rtcp_fb, RTCPFeedbackAttribute)
        assert (rtcp_fb.payload_type, rtcp_fb.type, rtcp_fb.parameters) == ("*", "nack", "pli")
        assert SDPAttribute.parse("rtcp-fb:111 transport-cc").parameters is None

    def test_fingerprint(self):
        """Test certificate fingerprint attributes."""
        fingerprint = SDPAttribute.parse("fingerprint:sha-256 6B:8B:5D:EA")
        assert isinstance(fingerprint, FingerprintAttribute)
        assert fingerprint.hash_function == "sha-256"
        assert fingerprint.fingerprint == "6B:8B:5D:EA"
