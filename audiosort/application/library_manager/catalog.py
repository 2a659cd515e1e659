"""
Category Catalog

Loads the UCS taxonomy from its CSV export into the ``categories`` table.
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import List

from audiosort.domain.exceptions import CatalogImportError
from audiosort.domain.models import CategoryRecord
from audiosort.infrastructure.database import LibraryRepository

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("Category", "SubCategory", "CatID", "CatShort")
SYNONYMS_COLUMN = "Synonyms - Comma Separated"


def parse_catalog(csv_path: str | Path) -> List[CategoryRecord]:
    """
    Parse a UCS CSV file.

    Rows without a CatID are skipped.

    Raises:
        CatalogImportError: file missing or a required column absent.
    """
    csv_path = Path(csv_path)
    try:
        with open(csv_path, 'r', encoding='utf-8-sig', newline='') as f:
            reader = csv.DictReader(f)
            header = [name.strip() for name in (reader.fieldnames or [])]
            missing = [col for col in REQUIRED_COLUMNS if col not in header]
            if missing:
                raise CatalogImportError(f"{csv_path.name}: missing column(s) {', '.join(missing)}")

            categories = []
            for row in reader:
                row = {(k or "").strip(): (v or "").strip() for k, v in row.items()}
                cat_id = row.get("CatID", "")
                if not cat_id:
                    continue
                categories.append(CategoryRecord(
                    id=cat_id,
                    category=row.get("Category", ""),
                    sub_category=row.get("SubCategory", ""),
                    short_code=row.get("CatShort", ""),
                    explanation=row.get("Explanations", ""),
                    synonyms=[s.strip() for s in row.get(SYNONYMS_COLUMN, "").split(",") if s.strip()],
                ))
            return categories
    except OSError as e:
        raise CatalogImportError(f"Cannot read catalog {csv_path}: {e}") from e


def load_catalog(repository: LibraryRepository, csv_path: str | Path) -> int:
    """Upsert every category of ``csv_path``; returns the number loaded."""
    categories = parse_catalog(csv_path)
    for category in categories:
        repository.upsert_category(category)
    logger.info("Loaded %d categories from %s", len(categories), csv_path)
    return len(categories)
