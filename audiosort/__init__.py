"""
AudioSort - Taxonomy-Organized Sound Library Engine

Keeps a deduplicated collection of WAV files arranged by UCS-style taxonomy
categories, with a SQLite record per file kept consistent with both its
location on disk and the metadata embedded in the file.

Architecture:
- Application Layer: library, naming and batch-processing services
- Domain Layer: core business entities and exceptions
- Infrastructure Layer: database, tag codec and caches
- Runtime Layer: paths, logging bootstrap
"""

__version__ = "1.0.0"
__author__ = "AudioSort Team"
__description__ = "Taxonomy-organized sound library engine"
