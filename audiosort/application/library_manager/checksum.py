"""
Checksum Identity Resolver

Content identity for audio files: an MD5 over the decoded sample data
only, so retagging or renaming a file never changes it.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from pathlib import Path
from typing import Optional

from audiosort.infrastructure.audio_engine import WaveCodec
from audiosort.infrastructure.cache import FailureCache

logger = logging.getLogger(__name__)


class ChecksumResolver:
    """
    Computes sample-data checksums.

    Decode failures return ``None`` and are logged once per path until the
    owner calls ``failures.clear()``.
    """

    def __init__(self, codec: Optional[WaveCodec] = None, failures: Optional[FailureCache] = None):
        self.codec = codec or WaveCodec()
        self.failures = failures if failures is not None else FailureCache("checksum")

    def compute(self, file_path: str | Path) -> Optional[str]:
        """
        Hash each channel's samples, channels in order.

        Returns:
            Hex digest, or None if the file could not be decoded.
        """
        try:
            channels = self.codec.decoded_samples(file_path)
        except Exception as e:
            if self.failures.should_log(str(file_path)):
                logger.warning(f"Failed to compute checksum for {file_path}: {e}")
            return None

        md5 = hashlib.md5()
        for channel in channels:
            md5.update(channel.tobytes())
        return md5.hexdigest()

    async def compute_async(self, file_path: str | Path) -> Optional[str]:
        return await asyncio.to_thread(self.compute, file_path)
