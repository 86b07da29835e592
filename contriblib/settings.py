import os
from datetime import date
from datetime import datetime
from datetime import timezone

import yaml


#============================================
class ConfigError(RuntimeError):
	"""
	Raised when a configuration block is missing a field or has the wrong shape.
	"""

	def __init__(self, message: str, source: str = "", field: str = ""):
		super().__init__(message)
		self.source = source
		self.field = field


#============================================
def resolve_settings_path(path_text: str) -> str:
	"""
	Resolve settings path against cwd.
	"""
	if os.path.isabs(path_text):
		return path_text
	return os.path.abspath(path_text)


#============================================
def load_settings(path_text: str) -> tuple[dict, str]:
	"""
	Load YAML settings dict and return it with resolved path.
	"""
	resolved_path = resolve_settings_path(path_text)
	if not os.path.isfile(resolved_path):
		return {}, resolved_path
	with open(resolved_path, "r", encoding="utf-8") as handle:
		data = yaml.safe_load(handle.read())
	if data is None:
		return {}, resolved_path
	if not isinstance(data, dict):
		raise RuntimeError(f"Settings file must contain a mapping: {resolved_path}")
	return data, resolved_path


#============================================
def get_nested_value(settings: dict, keys: list[str], default_value):
	"""
	Read nested mapping value by key path.
	"""
	current = settings
	for key in keys:
		if not isinstance(current, dict):
			return default_value
		if key not in current:
			return default_value
		current = current[key]
	return current


#============================================
def get_setting_str(settings: dict, keys: list[str], default_value: str) -> str:
	"""
	Read a string setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if value is None:
		return default_value
	return str(value).strip()


#============================================
def get_setting_int(settings: dict, keys: list[str], default_value: int) -> int:
	"""
	Read an integer setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if value is None:
		return default_value
	if isinstance(value, bool):
		raise ConfigError(f"Invalid integer for setting path {'.'.join(keys)}: {value}", field=keys[-1])
	try:
		return int(value)
	except ValueError as error:
		raise ConfigError(
			f"Invalid integer for setting path {'.'.join(keys)}: {value}",
			field=keys[-1],
		) from error


#============================================
def get_setting_bool(settings: dict, keys: list[str], default_value: bool) -> bool:
	"""
	Read a boolean setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if isinstance(value, bool):
		return value
	if isinstance(value, str):
		text = value.strip().lower()
		if text in {"1", "true", "yes", "on"}:
			return True
		if text in {"0", "false", "no", "off"}:
			return False
		raise ConfigError(f"Invalid boolean for setting path {'.'.join(keys)}: {value}", field=keys[-1])
	if isinstance(value, int):
		return value != 0
	if value is None:
		return default_value
	raise ConfigError(f"Invalid boolean for setting path {'.'.join(keys)}: {value}", field=keys[-1])


#============================================
def is_source_enabled(source_config) -> bool:
	"""
	Return True when a source block exists and has a truthy enabled flag.
	"""
	if not isinstance(source_config, dict):
		return False
	return get_setting_bool(source_config, ["enabled"], False)


#============================================
def require_mapping(label: str, source_config) -> None:
	"""
	Raise ConfigError unless the source block is absent or a mapping.
	"""
	if source_config is None:
		return
	if not isinstance(source_config, dict):
		raise ConfigError(f"{label}: config must be a mapping", source=label)


#============================================
def require_fields(label: str, source_config: dict, fields: list[str], allow_empty: tuple = ()) -> None:
	"""
	Raise ConfigError for the first missing or empty required field.

	Args:
		label: Human readable source name used in the message.
		source_config: Source configuration mapping.
		fields: Field names that must be present.
		allow_empty: Field names that may hold an empty string.
	"""
	for field in fields:
		value = source_config.get(field)
		if value is None:
			raise ConfigError(f"{label}: {field} is required", source=label, field=field)
		if field in allow_empty:
			continue
		if isinstance(value, str) and not value.strip():
			raise ConfigError(f"{label}: {field} is required", source=label, field=field)


#============================================
def require_date(label: str, source_config: dict, field: str) -> None:
	"""
	Raise ConfigError when a date field cannot be parsed.
	"""
	try:
		parse_config_date(source_config.get(field))
	except ValueError as error:
		raise ConfigError(
			f"{label}: {field} must be an ISO-8601 date, got {source_config.get(field)!r}",
			source=label,
			field=field,
		) from error


#============================================
def require_types_mapping(label: str, source_config: dict, field: str = "types") -> None:
	"""
	Raise ConfigError when a type override block is not a mapping of strings.
	"""
	value = source_config.get(field)
	if value is None:
		return
	if not isinstance(value, dict):
		raise ConfigError(f"{label}: {field} must be a mapping", source=label, field=field)
	for key, text in value.items():
		if not isinstance(text, str):
			raise ConfigError(f"{label}: {field}.{key} must be a string", source=label, field=f"{field}.{key}")


#============================================
def parse_config_date(value) -> datetime:
	"""
	Normalize a YAML date, datetime, or ISO string to an aware UTC datetime.
	"""
	if isinstance(value, datetime):
		if value.tzinfo is None:
			return value.replace(tzinfo=timezone.utc)
		return value.astimezone(timezone.utc)
	if isinstance(value, date):
		return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
	if isinstance(value, str) and value.strip():
		parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
		if parsed.tzinfo is None:
			parsed = parsed.replace(tzinfo=timezone.utc)
		return parsed.astimezone(timezone.utc)
	raise ValueError(f"Unsupported date value: {value!r}")
