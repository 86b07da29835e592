import io
from datetime import datetime
from datetime import timezone

import feedparser

from contriblib import console_log
from contriblib import contributions
from contriblib import http_fetch
from contriblib import periods
from contriblib import settings
from contriblib.contributions import Contribution


CONFIG_KEY = "mediaWiki"
LABEL = "MediaWiki"

WIKI_SOURCE = "wiki"
SOURCES = (WIKI_SOURCE,)

TYPE_EDIT = "Wiki Edit"


#============================================
def validate(wiki_config) -> None:
	"""
	Raise ConfigError when an enabled MediaWiki block is incomplete.
	"""
	settings.require_mapping(LABEL, wiki_config)
	if not settings.is_source_enabled(wiki_config):
		return
	settings.require_fields(LABEL, wiki_config, ["baseUrl", "username", "stopDate"])
	settings.require_date(LABEL, wiki_config, "stopDate")


#============================================
def parse_feed(xml_text: str) -> list:
	"""
	Parse an RSS document into feed entries; unreadable feeds yield none.
	"""
	feed = feedparser.parse(io.BytesIO(xml_text.encode("utf-8")))
	if feed.bozo and not feed.entries:
		return []
	return list(feed.entries)


#============================================
def fetch_month(http_client, base_url: str, username: str, year: int, month: int, log_fn=None) -> list:
	"""
	Fetch the contributions feed for one month; failures count as empty.
	"""
	params = {"user": username, "year": year, "month": month}
	try:
		xml_text = http_client.get_text(base_url, params=params)
	except http_fetch.HttpFetchError as error:
		console_log.emit(log_fn, f"Fetching wiki edits for {year}-{month:02d} failed: {error}")
		return []
	return parse_feed(xml_text)


#============================================
def format_entry(contribution_type: str, entry) -> Contribution | None:
	published = entry.get("published_parsed") or entry.get("updated_parsed")
	if published is None:
		return None
	return Contribution(
		created_at=datetime(*published[:6], tzinfo=timezone.utc),
		description=f"Edited {entry.get('title', '')}",
		link=entry.get("link", ""),
		type=contribution_type or TYPE_EDIT,
		source=WIKI_SOURCE,
	)


#============================================
def gather(wiki_config, http_client, now_utc=None, log_fn=None) -> list[Contribution]:
	"""
	Return every edit from now back to stopDate, one feed request per month.

	Feed entries outside the requested month are dropped.
	"""
	if not settings.is_source_enabled(wiki_config):
		console_log.emit(log_fn, "MediaWiki source not enabled, skipping.")
		return []
	base_url = settings.get_setting_str(wiki_config, ["baseUrl"], "")
	username = settings.get_setting_str(wiki_config, ["username"], "")
	stop_date = settings.parse_config_date(wiki_config.get("stopDate"))
	edit_type = settings.get_setting_str(wiki_config, ["editType"], "")
	now = now_utc or contributions.utc_now()

	console_log.emit(log_fn, "Getting edits from the wiki.")
	edits = []
	for first_day, _ in periods.iter_month_windows(now, stop_date):
		entries = fetch_month(http_client, base_url, username, first_day.year, first_day.month, log_fn=log_fn)
		for entry in entries:
			contribution = format_entry(edit_type, entry)
			if contribution is None:
				continue
			if (contribution.created_at.year, contribution.created_at.month) != (first_day.year, first_day.month):
				continue
			edits.append(contribution)
		console_log.emit(log_fn, f"Wiki {first_day.year}-{first_day.month:02d}: {len(entries)} feed item(s).")
	console_log.emit(log_fn, f"Wiki: collected {len(edits)} record(s).")
	return edits
