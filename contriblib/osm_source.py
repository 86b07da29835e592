import xml.etree.ElementTree

from contriblib import console_log
from contriblib import contributions
from contriblib import http_fetch
from contriblib import settings
from contriblib.contributions import Contribution


CONFIG_KEY = "osm"
LABEL = "OpenStreetMap"

OSM_SOURCE = "osm"
SOURCES = (OSM_SOURCE,)

TYPE_EDIT = "OpenStreetMaps Edit"

CHANGESETS_URL = "https://api.openstreetmap.org/api/0.6/changesets"
CHANGESET_LINK = "https://www.openstreetmap.org/changeset"
MAX_EDITS_PER_PAGE = 100


#============================================
def validate(osm_config) -> None:
	"""
	Raise ConfigError when an enabled OpenStreetMap block is incomplete.
	"""
	settings.require_mapping(LABEL, osm_config)
	if not settings.is_source_enabled(osm_config):
		return
	settings.require_fields(LABEL, osm_config, ["displayName", "stopDate"])
	settings.require_date(LABEL, osm_config, "stopDate")


#============================================
def parse_changesets(xml_text: str) -> list:
	"""
	Return changeset elements; malformed XML yields an empty list.
	"""
	try:
		root = xml.etree.ElementTree.fromstring(xml_text)
	except xml.etree.ElementTree.ParseError:
		return []
	return root.findall("changeset")


#============================================
def format_changeset(contribution_type: str, changeset) -> Contribution:
	comment = ""
	for tag in changeset.findall("tag"):
		if tag.get("k") == "comment":
			comment = tag.get("v") or ""
			break
	return Contribution(
		created_at=contributions.parse_timestamp(changeset.get("created_at")),
		description=comment,
		link=f"{CHANGESET_LINK}/{changeset.get('id')}",
		type=contribution_type or TYPE_EDIT,
		source=OSM_SOURCE,
	)


#============================================
def fetch_page(http_client, display_name: str, stop_text: str, created_before: str, log_fn=None) -> list:
	params = {"display_name": display_name, "time": f"{stop_text},{created_before}"}
	try:
		xml_text = http_client.get_text(CHANGESETS_URL, params=params)
	except http_fetch.HttpFetchError as error:
		console_log.emit(log_fn, f"Fetching OSM changesets before {created_before} failed: {error}")
		return []
	return parse_changesets(xml_text)


#============================================
def gather(osm_config, http_client, now_utc=None, log_fn=None) -> list[Contribution]:
	"""
	Return all changesets from now back to stopDate.

	Pages are walked backward using the oldest created_at of the previous
	page. The walk ends on a short page or when that cursor stops moving.
	"""
	if not settings.is_source_enabled(osm_config):
		console_log.emit(log_fn, "OSM source not enabled, skipping.")
		return []
	display_name = settings.get_setting_str(osm_config, ["displayName"], "")
	stop_date = settings.parse_config_date(osm_config.get("stopDate"))
	edit_type = settings.get_setting_str(osm_config, ["editType"], "")
	now = now_utc or contributions.utc_now()

	stop_text = contributions.format_timestamp(stop_date)
	created_before = contributions.format_timestamp(now)
	edits = []
	console_log.emit(log_fn, "Getting edits from OSM.")
	while True:
		changesets = fetch_page(http_client, display_name, stop_text, created_before, log_fn=log_fn)
		processed = [format_changeset(edit_type, changeset) for changeset in changesets]
		console_log.emit(log_fn, f"Got {len(processed)} OSM changeset(s) before {created_before}.")
		edits.extend(processed)
		if len(changesets) != MAX_EDITS_PER_PAGE:
			break
		next_before = contributions.format_timestamp(processed[-1].created_at)
		if next_before == created_before:
			console_log.emit(log_fn, "OSM cursor did not move, stopping.")
			break
		created_before = next_before
	console_log.emit(log_fn, f"OSM: collected {len(edits)} record(s).")
	return edits
