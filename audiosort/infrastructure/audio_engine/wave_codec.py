"""
WAV Codec

Sample decoding through soundfile and tag block access through mutagen.

Tags are INFO-style key/value pairs (INAM, IART, ...). They are stored as
ID3 ``TXXX`` frames in the WAV ``id3`` chunk, the container block mutagen
can rewrite in one save; the frame description carries the INFO key.

Known limit: nothing is written to a RIFF ``LIST/INFO`` chunk, so tools that
only read INFO chunks (some DAWs, Windows Explorer) will not see these tags.
An existing ``LIST/INFO`` chunk is left untouched and is not read.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import soundfile as sf
from mutagen.id3 import ID3, TXXX
from mutagen.wave import WAVE

logger = logging.getLogger(__name__)


@dataclass
class AudioProperties:
    """Container-level audio properties."""

    duration_ms: Optional[int] = None
    sample_rate: Optional[int] = None
    bit_depth: Optional[int] = None
    channels: Optional[int] = None


class WaveCodec:
    """
    Black-box WAV codec.

    Read methods raise on unreadable files; callers decide whether a
    failure is fatal.
    """

    def decoded_samples(self, path: str | Path) -> List[np.ndarray]:
        """Decode the audio data and return one contiguous array per channel."""
        data, _ = sf.read(str(path), dtype="int32", always_2d=True)
        return [np.ascontiguousarray(data[:, ch]) for ch in range(data.shape[1])]

    def read_properties(self, path: str | Path) -> AudioProperties:
        info = sf.info(str(path))
        bit_depth = _SUBTYPE_BITS.get(info.subtype)
        return AudioProperties(
            duration_ms=int(round(info.duration * 1000)),
            sample_rate=int(info.samplerate),
            bit_depth=bit_depth,
            channels=int(info.channels),
        )

    def read_tags(self, path: str | Path) -> Dict[str, str]:
        audio = WAVE(str(path))
        tags = audio.tags
        if not isinstance(tags, ID3):
            return {}

        result: Dict[str, str] = {}
        for frame in tags.getall("TXXX"):
            if frame.text:
                result[frame.desc] = str(frame.text[0])
        return result

    def write_tags(self, path: str | Path, values: Dict[str, str]) -> None:
        """
        Replace the whole tag block with ``values``.

        Existing frames are dropped first, so one save either holds the full
        new set or raises and leaves the file as it was.
        """
        audio = WAVE(str(path))
        if audio.tags is None:
            audio.add_tags()

        for key in list(audio.tags.keys()):
            del audio.tags[key]

        for key, value in values.items():
            if value is None or value == "":
                continue
            audio.tags.add(TXXX(encoding=3, desc=key, text=[str(value)]))

        audio.save()


_SUBTYPE_BITS = {
    "PCM_S8": 8,
    "PCM_U8": 8,
    "PCM_16": 16,
    "PCM_24": 24,
    "PCM_32": 32,
    "FLOAT": 32,
    "DOUBLE": 64,
}
