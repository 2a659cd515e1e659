import pytest

from audiosort.application.library_manager import load_catalog, parse_catalog
from audiosort.domain.exceptions import CatalogImportError

CSV = (
    "Category,SubCategory,CatID,CatShort,Explanations,Synonyms - Comma Separated\n"
    "VEHICLES,UTILITY,VEHUtil,VEH,Utility vehicles,\"truck, van\"\n"
    "DOORS,WOOD,DOORWood,DOOR,,\n"
    "BROKEN,ROW,,XX,,\n"
)


def test_parse_catalog(tmp_path):
    path = tmp_path / "ucs.csv"
    path.write_text("\ufeff" + CSV, encoding="utf-8")

    categories = parse_catalog(path)

    assert [c.id for c in categories] == ["VEHUtil", "DOORWood"]
    assert categories[0].synonyms == ["truck", "van"]
    assert categories[0].explanation == "Utility vehicles"
    assert categories[1].synonyms == []


def test_missing_column_is_rejected(tmp_path):
    path = tmp_path / "ucs.csv"
    path.write_text("Category,SubCategory,CatID\nA,B,C\n", encoding="utf-8")
    with pytest.raises(CatalogImportError, match="CatShort"):
        parse_catalog(path)


def test_missing_file_is_rejected(tmp_path):
    with pytest.raises(CatalogImportError):
        parse_catalog(tmp_path / "nope.csv")


def test_load_catalog_upserts(tmp_path, repository):
    path = tmp_path / "ucs.csv"
    path.write_text(CSV, encoding="utf-8")

    assert load_catalog(repository, path) == 2
    assert load_catalog(repository, path) == 2
    assert repository.get_category_by_id("VEHUtil").short_code == "VEH"
    assert len(repository.list_categories()) == 2
