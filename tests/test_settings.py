from datetime import date
from datetime import datetime
from datetime import timezone

import pytest

from contriblib import settings


#============================================
def test_load_settings_missing_file(tmp_path) -> None:
	"""
	Missing settings file should return empty settings.
	"""
	config, resolved_path = settings.load_settings(str(tmp_path / "missing.yaml"))
	assert config == {}
	assert resolved_path.endswith("missing.yaml")


#============================================
def test_load_settings_reads_yaml(tmp_path) -> None:
	"""
	YAML settings should be parsed into nested mapping values.
	"""
	settings_path = tmp_path / "settings.yaml"
	settings_path.write_text(
		"outputFile: out/contributions.json\n"
		"github:\n"
		"  enabled: true\n"
		"  username: alice\n"
		"  stopDate: 2022-01-01\n"
		"  delayMsPerRequest: 0\n",
		encoding="utf-8",
	)
	config, _ = settings.load_settings(str(settings_path))
	assert settings.get_setting_str(config, ["github", "username"], "") == "alice"
	assert settings.get_setting_int(config, ["github", "delayMsPerRequest"], 1000) == 0
	assert settings.is_source_enabled(config["github"])
	assert config["github"]["stopDate"] == date(2022, 1, 1)


#============================================
def test_load_settings_rejects_non_mapping(tmp_path) -> None:
	"""
	A YAML list at the top level should raise RuntimeError.
	"""
	settings_path = tmp_path / "settings.yaml"
	settings_path.write_text("- a\n- b\n", encoding="utf-8")
	with pytest.raises(RuntimeError):
		settings.load_settings(str(settings_path))


#============================================
def test_get_setting_int_invalid_value_raises() -> None:
	"""
	Invalid integer setting should raise ConfigError.
	"""
	with pytest.raises(settings.ConfigError):
		settings.get_setting_int({"github": {"delayMsPerRequest": "abc"}}, ["github", "delayMsPerRequest"], 0)


#============================================
def test_get_setting_bool_parses_strings() -> None:
	"""
	Common yes/no strings should map to booleans.
	"""
	assert settings.get_setting_bool({"flag": "yes"}, ["flag"], False) is True
	assert settings.get_setting_bool({"flag": "off"}, ["flag"], True) is False
	assert settings.get_setting_bool({}, ["flag"], True) is True
	with pytest.raises(settings.ConfigError):
		settings.get_setting_bool({"flag": "maybe"}, ["flag"], False)


#============================================
def test_is_source_enabled_handles_missing_blocks() -> None:
	"""
	Absent or disabled blocks are not enabled.
	"""
	assert not settings.is_source_enabled(None)
	assert not settings.is_source_enabled({"enabled": False})
	assert settings.is_source_enabled({"enabled": True})


#============================================
def test_require_fields_names_source_and_field() -> None:
	"""
	Missing fields should raise with source label and field name.
	"""
	with pytest.raises(settings.ConfigError) as error_info:
		settings.require_fields("Bugzilla", {"baseUrl": "A"}, ["baseUrl", "username"])
	assert str(error_info.value) == "Bugzilla: username is required"
	assert error_info.value.source == "Bugzilla"
	assert error_info.value.field == "username"


#============================================
def test_require_fields_allows_declared_empty_values() -> None:
	"""
	Fields listed in allow_empty may be empty strings but not absent.
	"""
	settings.require_fields("GitHub", {"filter": ""}, ["filter"], allow_empty=("filter",))
	with pytest.raises(settings.ConfigError):
		settings.require_fields("GitHub", {}, ["filter"], allow_empty=("filter",))


#============================================
def test_parse_config_date_accepts_dates_and_strings() -> None:
	"""
	Dates, naive datetimes and ISO strings should become aware UTC.
	"""
	expected = datetime(2022, 1, 1, tzinfo=timezone.utc)
	assert settings.parse_config_date(date(2022, 1, 1)) == expected
	assert settings.parse_config_date(datetime(2022, 1, 1)) == expected
	assert settings.parse_config_date("2022-01-01") == expected
	assert settings.parse_config_date("2022-01-01T00:00:00Z") == expected
	with pytest.raises(ValueError):
		settings.parse_config_date("not a date")
