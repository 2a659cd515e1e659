import json

from audiosort.core.config import ConfigManager, LibrarySettings, get_config_manager, reset_config_manager
from audiosort.infrastructure.database import default_database_path
from audiosort.runtime.runtime_config import RuntimeConfig, reset_runtime_config


def test_defaults_are_written_on_first_load(tmp_path):
    manager = ConfigManager(config_dir=tmp_path)
    assert manager.load()
    assert manager.config_path.exists()
    assert manager.get("organize.max_probe_attempts") == 100
    assert manager.get("library.imports_folder") == "_Imports"
    assert manager.get("missing.key", "fallback") == "fallback"


def test_user_values_are_merged_over_defaults(tmp_path):
    (tmp_path / "config.json").write_text(json.dumps({"library": {"root": "/data/sfx"}}), encoding="utf-8")
    manager = ConfigManager(config_dir=tmp_path)
    manager.load()
    assert manager.get("library.root") == "/data/sfx"
    assert manager.get("library.supported_formats") == ["wav", "wave"]


def test_invalid_json_falls_back_to_defaults(tmp_path):
    (tmp_path / "config.json").write_text("{broken", encoding="utf-8")
    manager = ConfigManager(config_dir=tmp_path)
    assert not manager.load()
    assert manager.get("logging.level") == "INFO"


def test_set_persists(tmp_path):
    manager = ConfigManager(config_dir=tmp_path)
    manager.set("organize.max_probe_attempts", 7)
    reloaded = ConfigManager(config_dir=tmp_path)
    assert reloaded.get("organize.max_probe_attempts") == 7


def test_library_settings(tmp_path):
    manager = ConfigManager(config_dir=tmp_path / "cfg")
    settings = LibrarySettings(manager)
    assert settings.library_root() is None

    settings.set_library_root(tmp_path / "lib")
    assert settings.library_root() == (tmp_path / "lib").resolve()
    assert settings.supported_formats == {".wav", ".wave"}

    manager.set("organize.max_probe_attempts", "nope")
    assert settings.max_probe_attempts == 100


def test_runtime_paths_follow_home(tmp_path):
    config = RuntimeConfig.detect(tmp_path / "home")
    config.paths.ensure()
    assert config.paths.database_dir == tmp_path / "home" / "database"
    assert config.paths.logs_dir.is_dir()


def test_default_database_path(tmp_path, monkeypatch):
    monkeypatch.setenv("AUDIOSORT_HOME", str(tmp_path / "home"))
    reset_runtime_config()
    reset_config_manager()
    try:
        assert default_database_path() == tmp_path / "home" / "database" / "audiosort.db"

        get_config_manager().set("database.path", str(tmp_path / "elsewhere.db"))
        assert default_database_path() == tmp_path / "elsewhere.db"
    finally:
        reset_runtime_config()
        reset_config_manager()
