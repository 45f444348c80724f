"""Adaptive-bitrate rendition catalog, selection, and HLS master playlists.

The catalog is ordered from lowest to highest quality; every helper here
preserves that order. Selection never upscales: a profile is kept only when
both its target height and the width implied by the source aspect ratio fit
inside the source frame.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

HLS_SEGMENT_SECONDS = 6
HLS_VERSION = 6
ASSUMED_ASPECT_RATIO = 16 / 9
SEGMENT_PATTERN = "segment_%03d.ts"
MEDIA_PLAYLIST = "playlist.m3u8"
MASTER_PLAYLIST = "master.m3u8"
POSTER_FILE = "poster.jpg"

_BITRATE_RE = re.compile(r"^\s*(\d+)\s*([kKmM]?)\s*$")


@dataclass(frozen=True)
class StreamingProfile:
    """One rendition: video/audio encode targets plus an optional scale height.

    ``height`` of None means "keep source size" (single-rendition legacy
    mode); such profiles are always selected.
    """

    name: str
    suffix: str
    video_bitrate: str
    audio_bitrate: str
    audio_sample_rate: int
    audio_channels: int = 2
    height: int | None = None
    width: int | None = None

    @property
    def maxrate(self) -> str:
        return self.video_bitrate

    @property
    def bufsize(self) -> str:
        return f"{parse_bitrate(self.video_bitrate) * 2 // 1000}k"

    @property
    def scale(self) -> str | None:
        """ffmpeg scale filter, keeping aspect ratio with an even width."""
        if self.height is None:
            return None
        return f"scale=-2:{self.height}"

    @property
    def bandwidth(self) -> int:
        """Peak bits/second advertised in the master playlist."""
        return parse_bitrate(self.video_bitrate) + parse_bitrate(self.audio_bitrate)

    @property
    def resolution(self) -> tuple[int, int] | None:
        """(width, height) advertised in the master playlist, if known."""
        if self.height is None:
            return None
        width = self.width if self.width is not None else round(self.height * ASSUMED_ASPECT_RATIO)
        return (width, self.height)


ADAPTIVE_PROFILES: tuple[StreamingProfile, ...] = (
    StreamingProfile("Mobile Low", "240p", "400k", "64k", 44100, height=240),
    StreamingProfile("Mobile Medium", "360p", "800k", "96k", 44100, height=360),
    StreamingProfile("Mobile High", "480p", "1200k", "128k", 48000, height=480),
    StreamingProfile("qHD", "540p", "1800k", "128k", 48000, height=540),
    StreamingProfile("HD", "720p", "2500k", "128k", 48000, height=720),
    StreamingProfile("Full HD", "1080p", "4000k", "192k", 48000, height=1080),
)

SOURCE_PROFILE = StreamingProfile("Source", "source", "2500k", "128k", 48000)


def parse_bitrate(value: str) -> int:
    """Convert an ffmpeg bitrate string (``"400k"``, ``"4M"``, ``"64000"``) to bits/second.

    Raises:
        ValueError: If *value* is not a recognised bitrate.
    """
    match = _BITRATE_RE.match(value)
    if not match:
        raise ValueError(f"Invalid bitrate: {value!r}")
    number, unit = int(match.group(1)), match.group(2).lower()
    return number * {"": 1, "k": 1000, "m": 1_000_000}[unit]


def select_profiles(
    width: int,
    height: int,
    catalog: Sequence[StreamingProfile] = ADAPTIVE_PROFILES,
) -> list[StreamingProfile]:
    """Pick the renditions that fit a ``width`` x ``height`` source.

    Never returns an empty list: when nothing fits, the smallest catalog
    entry is returned on its own.

    Raises:
        ValueError: If the dimensions are not positive or the catalog is empty.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Source dimensions must be positive, got {width}x{height}")
    if not catalog:
        raise ValueError("Profile catalog is empty")

    aspect = width / height
    selected = []
    for profile in catalog:
        if profile.height is None:
            selected.append(profile)
            continue
        target_width = round(profile.height * aspect)
        if profile.height <= height and target_width <= width:
            selected.append(profile)

    return selected or [catalog[0]]


def master_playlist(profiles: Iterable[StreamingProfile]) -> str:
    """Render an ``#EXTM3U`` master playlist for *profiles*, in the given order."""
    lines = ["#EXTM3U", f"#EXT-X-VERSION:{HLS_VERSION}", ""]
    for profile in profiles:
        attrs = f"BANDWIDTH={profile.bandwidth}"
        if profile.resolution is not None:
            w, h = profile.resolution
            attrs += f",RESOLUTION={w}x{h}"
        lines.append(f"#EXT-X-STREAM-INF:{attrs}")
        lines.append(f"{profile.suffix}/{MEDIA_PLAYLIST}")
        lines.append("")
    return "\n".join(lines) + "\n"
