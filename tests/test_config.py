"""Tests for engine and user configuration."""

from eremos.interface.config import (
    DEFAULT_CONFIG,
    get_config_path,
    load_config,
    save_config,
    set_default_seed,
)
from eremos.simulation.sandbox import LevelledReputationService, ThreatMeter, demo_profile
from eremos.state import DEFAULT_ENGINE_CONFIG, MemorySessionStore, engine_config
from eremos.systems import RunLifecycleCoordinator


class TestEngineConfig:
    """Test engine constant overrides."""

    def test_defaults(self):
        config = engine_config()
        assert config == DEFAULT_ENGINE_CONFIG
        assert config is not DEFAULT_ENGINE_CONFIG

    def test_override_merges(self):
        config = engine_config({"custom_extraction_limit": 9})
        assert config["custom_extraction_limit"] == 9
        assert config["starter_extraction_limit"] == 3

    def test_coordinator_uses_overrides(self, loot):
        coordinator = RunLifecycleCoordinator(
            MemorySessionStore(),
            loot=loot,
            threat=ThreatMeter(),
            reputation=LevelledReputationService(),
            config={"default_section_hull": 12, "mia_recovery_floor": 900},
        )
        session = coordinator.new_session(demo_profile())
        coordinator.start_run(0)

        assert coordinator.run.max_hull == 36
        assert coordinator.recovery_cost(session.profile.get_slot(1)) == 900


class TestUserConfig:
    """Test the JSON settings file."""

    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_config(tmp_path) == DEFAULT_CONFIG

    def test_save_and_load(self, tmp_path):
        config = load_config(tmp_path)
        config["log_level"] = "DEBUG"

        assert save_config(config, tmp_path)

        assert load_config(tmp_path)["log_level"] == "DEBUG"
        assert get_config_path(tmp_path).name == ".eremos_config.json"

    def test_partial_file_merged(self, tmp_path):
        get_config_path(tmp_path).write_text('{"show_hit_log": false}')

        config = load_config(tmp_path)

        assert config["show_hit_log"] is False
        assert config["log_level"] == "INFO"

    def test_corrupt_file_gives_defaults(self, tmp_path):
        get_config_path(tmp_path).write_text("{oops")
        assert load_config(tmp_path) == DEFAULT_CONFIG

    def test_set_default_seed(self, tmp_path):
        set_default_seed(99, tmp_path)
        assert load_config(tmp_path)["default_seed"] == 99
