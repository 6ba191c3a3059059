import json

import pytest

from config import Config, ReplaySettings


def test_defaults() -> None:
    settings = Config(new_data={}).parse_replay()
    assert settings == ReplaySettings()
    assert settings.ticks == 50
    assert settings.lookahead == 1500


def test_ticks_override_and_derived_values() -> None:
    settings = Config(new_data={"replay": {"speed": 1, "step_size": 30, "ticks": 4}}).parse_replay()
    assert settings.ticks == 4
    assert settings.lookahead == 10 * 30 * 1000
    assert settings.as_dict()["ticks"] == 4
    assert ReplaySettings(speed=1).ticks == 1


def test_load_from_file(tmp_path) -> None:
    path = tmp_path / "replay.json"
    path.write_text(json.dumps({"replay": {"speed": 50, "merge_order": "Time"}, "gui": {"_id": "2D"}}))

    config = Config(config_path=str(path))
    settings = config.parse_replay()

    assert settings.speed == 50
    assert settings.merge_order == "time"
    assert config.gui == {"_id": "2D"}
    assert config.logging == {}


@pytest.mark.parametrize(
    "replay",
    [
        {"speed": 0},
        {"step_size": "15"},
        {"ticks": 0},
        {"draw_lines": 1},
        {"merge_order": "random"},
        {"manifest": " "},
        {"unknown_field": True},
    ],
)
def test_invalid_replay_section(replay) -> None:
    with pytest.raises(ValueError):
        Config(new_data={"replay": replay}).parse_replay()


def test_plugins_list_is_allowed() -> None:
    settings = Config(new_data={"replay": {"plugins": ["some.module"]}}).parse_replay()
    assert settings.renderer == "headless"


def test_config_needs_a_source() -> None:
    with pytest.raises(ValueError):
        Config()
    with pytest.raises(ValueError):
        Config(new_data=[1, 2])
