"""
Metadata Synchronizer

Merges caller-supplied metadata with the tags already embedded in a file
and writes the merged set back as one full replacement of the tag block.

Container keys (INFO-style identifiers):

    INAM  title            IKEY  tags, "; "-joined
    IART  author           ISBJ  categories, "; "-joined
    ICOP  copyright        ISUB  primary category
    IRTD  rating x 2       ICMT  {"parentId": n | null}
    IPAR  parent id (legacy plain integer)
    ISFT  writing software
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from audiosort.domain.models import EmbeddedMetadata, FileRecord, MetadataUpdate, is_set
from audiosort.infrastructure.audio_engine import WaveCodec
from audiosort.infrastructure.cache import FailureCache

logger = logging.getLogger(__name__)

SOFTWARE_NAME = "AudioSort"
LIST_SEPARATOR = "; "

TAG_TITLE = "INAM"
TAG_AUTHOR = "IART"
TAG_COPYRIGHT = "ICOP"
TAG_KEYWORDS = "IKEY"
TAG_SUBJECT = "ISBJ"
TAG_PRIMARY = "ISUB"
TAG_RATING = "IRTD"
TAG_COMMENT = "ICMT"
TAG_PARENT = "IPAR"
TAG_SOFTWARE = "ISFT"


def normalize_values(values: Iterable[Any]) -> List[str]:
    """Trim, drop empties and de-duplicate while keeping first-seen order."""
    result: List[str] = []
    seen = set()
    for value in values or []:
        text = str(value).strip() if value is not None else ""
        if text and text not in seen:
            seen.add(text)
            result.append(text)
    return result


def split_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return normalize_values(value.split(";"))


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _clean_rating(value: Optional[int]) -> Optional[int]:
    if value is None or value <= 0:
        return None
    return min(value, 5)


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


class MetadataSynchronizer:
    """
    Reads, merges and writes embedded metadata.

    Read and write failures are logged once per file (through the injected
    ``FailureCache``) and reported as "no metadata"/``False``; the database
    stays the source of truth.
    """

    def __init__(self, codec: Optional[WaveCodec] = None, failures: Optional[FailureCache] = None):
        self.codec = codec or WaveCodec()
        self.failures = failures if failures is not None else FailureCache("metadata")

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def read(self, path: str | Path) -> EmbeddedMetadata:
        try:
            tags = self.codec.read_tags(path)
        except Exception as e:
            if self.failures.should_log(f"read:{path}"):
                logger.warning(f"Failed to read metadata from {path}: {e}")
            return EmbeddedMetadata()
        return self.parse(tags)

    @staticmethod
    def parse(tags: Dict[str, str]) -> EmbeddedMetadata:
        rating = None
        raw_rating = _parse_int(tags.get(TAG_RATING))
        if raw_rating is not None and raw_rating > 0:
            rating = min(raw_rating // 2, 5) or None

        return EmbeddedMetadata(
            title=_clean_text(tags.get(TAG_TITLE)),
            author=_clean_text(tags.get(TAG_AUTHOR)),
            copyright=_clean_text(tags.get(TAG_COPYRIGHT)),
            rating=rating,
            tags=split_list(tags.get(TAG_KEYWORDS)),
            categories=split_list(tags.get(TAG_SUBJECT)),
            parent_file_id=MetadataSynchronizer._parse_parent(tags),
        )

    @staticmethod
    def _parse_parent(tags: Dict[str, str]) -> Optional[int]:
        comment = tags.get(TAG_COMMENT)
        if comment:
            try:
                payload = json.loads(comment)
            except ValueError:
                payload = None
            if isinstance(payload, dict) and "parentId" in payload:
                parent = payload["parentId"]
                if parent is None:
                    return None
                if isinstance(parent, int) and not isinstance(parent, bool):
                    return parent
        return _parse_int(tags.get(TAG_PARENT))

    # ------------------------------------------------------------------
    # Merge / write
    # ------------------------------------------------------------------

    def merge(
        self,
        existing: EmbeddedMetadata,
        update: MetadataUpdate,
        record: FileRecord,
    ) -> EmbeddedMetadata:
        """
        Supplied fields replace, omitted fields keep the embedded value.

        Tags and categories always come from ``record``; the title follows
        the record's custom name unless the update supplies one.
        """
        if is_set(update.custom_name):
            title = _clean_text(update.custom_name)
        else:
            title = record.custom_name or existing.title

        if is_set(update.parent_file_id):
            parent = update.parent_file_id
        else:
            parent = record.parent_file_id

        return EmbeddedMetadata(
            title=title,
            author=_clean_text(update.author) if is_set(update.author) else existing.author,
            copyright=_clean_text(update.copyright) if is_set(update.copyright) else existing.copyright,
            rating=_clean_rating(update.rating) if is_set(update.rating) else existing.rating,
            tags=normalize_values(record.tags),
            categories=normalize_values(record.categories),
            parent_file_id=parent,
        )

    @staticmethod
    def to_tags(metadata: EmbeddedMetadata) -> Dict[str, str]:
        """Full tag map for ``metadata``; absent values are simply left out."""
        tags: Dict[str, str] = {TAG_SOFTWARE: SOFTWARE_NAME}
        if metadata.title:
            tags[TAG_TITLE] = metadata.title
        if metadata.author:
            tags[TAG_AUTHOR] = metadata.author
        if metadata.copyright:
            tags[TAG_COPYRIGHT] = metadata.copyright
        if metadata.tags:
            tags[TAG_KEYWORDS] = LIST_SEPARATOR.join(metadata.tags)
        if metadata.categories:
            tags[TAG_SUBJECT] = LIST_SEPARATOR.join(metadata.categories)
            tags[TAG_PRIMARY] = metadata.categories[0]
        if metadata.rating:
            tags[TAG_RATING] = str(metadata.rating * 2)
        tags[TAG_COMMENT] = json.dumps({"parentId": metadata.parent_file_id})
        if metadata.parent_file_id is not None:
            tags[TAG_PARENT] = str(metadata.parent_file_id)
        return tags

    def write(self, path: str | Path, metadata: EmbeddedMetadata) -> bool:
        try:
            self.codec.write_tags(path, self.to_tags(metadata))
            return True
        except Exception as e:
            if self.failures.should_log(f"write:{path}"):
                logger.warning(f"Failed to write metadata to {path}: {e}")
            return False

    def merge_and_write(
        self,
        path: str | Path,
        record: FileRecord,
        update: Optional[MetadataUpdate] = None,
    ) -> EmbeddedMetadata:
        """Merge ``update`` into the file's current tags and write the result."""
        merged = self.merge(self.read(path), update or MetadataUpdate(), record)
        if self.write(path, merged):
            logger.debug("Metadata written to %s", path)
        return merged

    async def merge_and_write_async(
        self,
        path: str | Path,
        record: FileRecord,
        update: Optional[MetadataUpdate] = None,
    ) -> EmbeddedMetadata:
        return await asyncio.to_thread(self.merge_and_write, path, record, update)
