"""
Infrastructure Layer - Storage, Codecs and Caches

Modules:
- database: SQLAlchemy models, connection manager, repository
- audio_engine: WAV sample decoding and tag block access
- cache: explicit in-process caches
"""
