from __future__ import annotations

from pathlib import Path

import pytest


SAMPLES_PATH = Path(__file__).parent / "samples"


def _read_sample(filename: str) -> str:
    return (SAMPLES_PATH / filename).read_text(encoding="utf-8")


@pytest.fixture
def webrtc_offer() -> str:
    """A WebRTC offer with BUNDLE grouping, ICE candidates and two media sections."""
    return _read_sample("webrtc_offer.sdp")


@pytest.fixture
def sip_audio_offer() -> str:
    """A plain SIP audio offer, with a session-level connection."""
    return _read_sample("sip_audio_offer.sdp")


@pytest.fixture
def rfc_full() -> str:
    """A session description using every session-level field type."""
    return _read_sample("rfc_full.sdp")


@pytest.fixture(params=sorted(path.name for path in SAMPLES_PATH.glob("*.sdp")))
def sample_sdp(request) -> str:
    """Each one of the sample session descriptions, as text with ``\\n`` line endings."""
    return _read_sample(request.param)
