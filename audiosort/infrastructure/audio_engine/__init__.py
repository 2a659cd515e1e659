"""
Audio Engine Module

WAV decoding and tag block access.
"""

from .wave_codec import AudioProperties, WaveCodec

__all__ = ["AudioProperties", "WaveCodec"]
