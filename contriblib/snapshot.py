import json
import os
import tempfile

from contriblib import console_log
from contriblib.contributions import Contribution


#============================================
def write_json_atomic(path: str, payload) -> None:
	"""
	Write pretty-printed JSON with a trailing newline, replacing the file in one step.
	"""
	directory = os.path.dirname(os.path.abspath(path))
	os.makedirs(directory, exist_ok=True)
	handle, temp_path = tempfile.mkstemp(prefix=".contributions-", suffix=".json", dir=directory)
	try:
		with os.fdopen(handle, "w", encoding="utf-8") as temp_file:
			json.dump(payload, temp_file, ensure_ascii=False, indent=2)
			temp_file.write("\n")
		os.replace(temp_path, path)
	except BaseException:
		if os.path.exists(temp_path):
			os.remove(temp_path)
		raise


#============================================
def load_snapshot(path: str, log_fn=None) -> list[Contribution]:
	"""
	Read the previous snapshot, creating an empty one when the file is missing.
	"""
	if not os.path.isfile(path):
		console_log.emit(log_fn, f"Snapshot {path} does not exist, creating it.")
		write_json_atomic(path, [])
		return []
	with open(path, "r", encoding="utf-8") as handle:
		payload = json.load(handle)
	if not isinstance(payload, list):
		raise RuntimeError(f"Snapshot file must contain a JSON array: {path}")
	return [Contribution.from_dict(entry) for entry in payload]


#============================================
def save_snapshot(path: str, items: list[Contribution]) -> None:
	"""
	Replace the snapshot with the given records.
	"""
	write_json_atomic(path, [item.to_dict() for item in items])
