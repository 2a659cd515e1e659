from audiosort.application.naming_manager import (
    TaxonomyNamer,
    base_name,
    folder_path,
    format_sequence,
    sanitize_custom_name,
)
from audiosort.domain.models import CategoryRecord

VEH_UTIL = CategoryRecord(id="VEHUtil", category="VEHICLES", sub_category="UTILITY", short_code="VEH")


def test_base_name_without_custom_name():
    assert base_name(VEH_UTIL) == "VEH_Util"
    assert folder_path(VEH_UTIL) == "VEHICLES/UTILITY"


def test_base_name_with_sanitized_custom_name():
    assert sanitize_custom_name("my car!! engine") == "My_Car_Engine"
    assert base_name(VEH_UTIL, "my car!! engine") == "VEH_Util_My_Car_Engine"


def test_blank_custom_name_is_ignored():
    assert base_name(VEH_UTIL, "   ") == "VEH_Util"
    assert base_name(VEH_UTIL, "!!!") == "VEH_Util"
    assert base_name(VEH_UTIL, None) == "VEH_Util"


def test_suffix_requires_short_code_prefix():
    namer = TaxonomyNamer()
    assert namer.cat_id_suffix("DOORWood", "DOOR") == "Wood"
    assert namer.cat_id_suffix("doorWOOD", "DOOR") == "Wood"
    assert namer.cat_id_suffix("AMBForst", "VEH") == ""

    odd = CategoryRecord(id="XYZabc", category="Misc", sub_category="Other", short_code="veh")
    assert namer.base_name(odd) == "VEH"


def test_folder_path_upper_snakes_whitespace():
    category = CategoryRecord(
        id="AMBForst", category="Ambience  Outdoor", sub_category=" forest night ", short_code="AMB"
    )
    assert folder_path(category) == "AMBIENCE_OUTDOOR/FOREST_NIGHT"


def test_sanitize_replaces_and_collapses():
    assert sanitize_custom_name("  hello   world ") == "Hello_World"
    assert sanitize_custom_name("déjà vu") == "D_J_Vu"
    assert sanitize_custom_name("__car-engine  x__") == "Car-engine_X"
    assert sanitize_custom_name("LOUD BANG") == "Loud_Bang"
    assert sanitize_custom_name("") == ""


def test_sequence_formatting():
    namer = TaxonomyNamer()
    assert format_sequence(1) == "01"
    assert format_sequence(10) == "10"
    assert format_sequence(123) == "123"
    assert namer.file_name("VEH_Util") == "VEH_Util.wav"
    assert namer.file_name("VEH_Util", 7) == "VEH_Util_07.wav"


def test_naming_is_deterministic():
    first = TaxonomyNamer()
    second = TaxonomyNamer()
    for name in (None, "my car!! engine", "Door Slam 2"):
        assert first.base_name(VEH_UTIL, name) == second.base_name(VEH_UTIL, name)
        assert first.base_name(VEH_UTIL, name) == first.base_name(VEH_UTIL, name)
