from pathlib import Path

import pytest

from storycompass.settings import StoryCompassSettings


def test_settings_defaults_when_environment_empty() -> None:
    settings = StoryCompassSettings.from_env({})

    assert settings.scenario_root is None
    assert settings.session_root is None
    assert settings.default_age_group == "6-9"
    assert settings.calibration_max_depth == 256
    assert settings.default_percentiles == (50.0, 75.0, 90.0)


def test_settings_reads_environment(tmp_path: Path) -> None:
    settings = StoryCompassSettings.from_env(
        {
            "STORYCOMPASS_SCENARIO_ROOT": f"  {tmp_path}  ",
            "STORYCOMPASS_SESSION_ROOT": "~/sessions",
            "STORYCOMPASS_DEFAULT_AGE_GROUP": " 10-12 ",
            "STORYCOMPASS_CALIBRATION_MAX_DEPTH": "32",
            "STORYCOMPASS_DEFAULT_PERCENTILES": "25, 50,99.5",
        }
    )

    assert settings.scenario_root == tmp_path
    assert settings.session_root == Path("~/sessions").expanduser()
    assert settings.default_age_group == "10-12"
    assert settings.calibration_max_depth == 32
    assert settings.default_percentiles == (25.0, 50.0, 99.5)


def test_blank_values_fall_back_to_defaults() -> None:
    settings = StoryCompassSettings.from_env(
        {
            "STORYCOMPASS_SCENARIO_ROOT": "   ",
            "STORYCOMPASS_DEFAULT_AGE_GROUP": "",
            "STORYCOMPASS_CALIBRATION_MAX_DEPTH": " ",
            "STORYCOMPASS_DEFAULT_PERCENTILES": "",
        }
    )

    assert settings == StoryCompassSettings()


@pytest.mark.parametrize("value", ["zero", "0", "-3"])
def test_max_depth_must_be_positive(value: str) -> None:
    with pytest.raises(ValueError, match="STORYCOMPASS_CALIBRATION_MAX_DEPTH"):
        StoryCompassSettings.from_env({"STORYCOMPASS_CALIBRATION_MAX_DEPTH": value})


@pytest.mark.parametrize("value", ["fifty", "50,101", "-1", ", ,"])
def test_percentiles_must_be_valid(value: str) -> None:
    with pytest.raises(ValueError, match="STORYCOMPASS_DEFAULT_PERCENTILES"):
        StoryCompassSettings.from_env({"STORYCOMPASS_DEFAULT_PERCENTILES": value})
