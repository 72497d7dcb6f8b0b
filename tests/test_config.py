"""Configuration tests for blowmeter."""

import pytest
import yaml

from blowmeter.core import AppConfig, BlowConfig, PRESETS
from blowmeter.core.config import DEFAULT_PRESET, LOG_FILE


def test_presets_are_valid_configs():
    """Every preset carries its own name and passes validation."""
    for name, config in PRESETS.items():
        assert config.preset == name
        assert BlowConfig.preset_config(name) is config


def test_metering_preset_decays_at_half_the_increment():
    config = BlowConfig.preset_config("metering")
    assert config.decay == config.increment / 2
    assert config.max_progress == 1.0
    assert config.time_limit is None


def test_challenge_preset_has_time_limit():
    config = BlowConfig.preset_config("challenge")
    assert config.max_progress == 100.0
    assert config.time_limit == 5.0


def test_unknown_preset():
    with pytest.raises(ValueError, match="Unknown preset 'loud'"):
        BlowConfig.preset_config("loud")


@pytest.mark.parametrize(
    "field, value",
    [
        ("interval", 0),
        ("interval", -0.1),
        ("increment", 0),
        ("decay", -1),
        ("max_progress", 0),
        ("time_limit", 0),
    ],
)
def test_blow_config_validation(field, value):
    values = dict(interval=0.1, increment=1.0, decay=0.5, threshold=0.0, max_progress=10.0)
    values[field] = value
    with pytest.raises(ValueError, match=field):
        BlowConfig(**values)


def test_with_overrides_ignores_none():
    base = BlowConfig.preset_config("metering")
    assert base.with_overrides(threshold=None) is base

    changed = base.with_overrides(threshold=-20.0, time_limit=3.0)
    assert changed.threshold == -20.0
    assert changed.time_limit == 3.0
    assert changed.increment == base.increment


def test_app_config(tmp_path, monkeypatch):
    """Test application configuration defaults."""
    monkeypatch.chdir(tmp_path)
    config = AppConfig()

    assert config.get("rate", 16000) == 16000

    config.set("rate", 44100)
    assert config.get("rate") == 44100

    output_dir = config.get_output_dir()
    assert output_dir.exists()

    assert config.get_blow_config() == PRESETS[DEFAULT_PRESET]


def test_app_config_loads_yaml(tmp_path, monkeypatch):
    """Test YAML config loading from project root."""
    config_file = tmp_path / ".blowmeter.yml"
    config_file.write_text(
        yaml.safe_dump(
            {
                "recording": {
                    "rate": 22050,
                    "output_dir": "custom-audio/",
                    "file_extension": "flac",
                },
                "detector": {
                    "preset": "challenge",
                    "threshold": -25,
                    "time_limit": 8,
                },
            }
        ),
        encoding="utf-8",
    )

    monkeypatch.chdir(tmp_path)
    config = AppConfig()

    assert config.get("rate") == 22050
    assert config.get("output_dir") == "custom-audio/"
    assert config.get("file_extension") == "flac"

    blow_config = config.get_blow_config()
    assert blow_config.preset == "challenge"
    assert blow_config.threshold == -25.0
    assert blow_config.time_limit == 8.0
    assert blow_config.increment == PRESETS["challenge"].increment


def test_cli_overrides_win_over_yaml(tmp_path, monkeypatch):
    (tmp_path / ".blowmeter.yml").write_text(
        yaml.safe_dump({"detector": {"threshold": -25}}), encoding="utf-8"
    )
    monkeypatch.chdir(tmp_path)

    blow_config = AppConfig().get_blow_config("challenge", threshold=-10.0)

    assert blow_config.preset == "challenge"
    assert blow_config.threshold == -10.0


def test_invalid_yaml_detector_value(tmp_path, monkeypatch):
    (tmp_path / ".blowmeter.yml").write_text(
        yaml.safe_dump({"detector": {"increment": -1}}), encoding="utf-8"
    )
    monkeypatch.chdir(tmp_path)

    with pytest.raises(ValueError, match="increment"):
        AppConfig().get_blow_config()


def test_non_mapping_config_file(tmp_path, monkeypatch):
    (tmp_path / ".blowmeter.yml").write_text("- just\n- a list\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    with pytest.raises(ValueError, match="must be a mapping"):
        AppConfig()


def test_get_log_path_default(tmp_path, monkeypatch):
    """AppConfig.get_log_path() defaults to output_dir/sessions.jsonl."""
    monkeypatch.chdir(tmp_path)
    log_path = AppConfig().get_log_path(tmp_path / "audio")
    assert log_path.name == LOG_FILE
    assert log_path.parent == tmp_path / "audio"


def test_get_log_path_from_yaml(tmp_path, monkeypatch):
    """AppConfig.get_log_path() respects the log.file YAML key."""
    (tmp_path / ".blowmeter.yml").write_text(
        yaml.safe_dump({"log": {"file": "my_log.jsonl"}}), encoding="utf-8"
    )
    monkeypatch.chdir(tmp_path)
    log_path = AppConfig().get_log_path(tmp_path / "audio")
    assert log_path.name == "my_log.jsonl"
