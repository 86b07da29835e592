import time

from contriblib import console_log
from contriblib import contributions
from contriblib import http_fetch
from contriblib import settings
from contriblib.contributions import Contribution


CONFIG_KEY = "bugzilla"
LABEL = "Bugzilla"

CREATED_SOURCE = "bugzilla-created"
COMMENTED_SOURCE = "bugzilla-comments"
SOURCES = (CREATED_SOURCE, COMMENTED_SOURCE)

TYPE_CREATED = "Created a Bug Report"
TYPE_COMMENTED = "Commented on a Bug Report"

RESULTS_PER_PAGE = 500
DEFAULT_DELAY_MS = 500


#============================================
def validate(bugzilla_config) -> None:
	"""
	Raise ConfigError when an enabled Bugzilla block is incomplete.
	"""
	settings.require_mapping(LABEL, bugzilla_config)
	if not settings.is_source_enabled(bugzilla_config):
		return
	settings.require_fields(LABEL, bugzilla_config, ["baseUrl", "username", "stopDate"])
	settings.require_date(LABEL, bugzilla_config, "stopDate")
	settings.require_types_mapping(LABEL, bugzilla_config)
	if settings.get_setting_int(bugzilla_config, ["delayMsPerRequest"], DEFAULT_DELAY_MS) < 0:
		raise settings.ConfigError(
			f"{LABEL}: delayMsPerRequest must not be negative",
			source=LABEL,
			field="delayMsPerRequest",
		)


#============================================
def iter_bug_pages(http_client, base_url: str, username: str, changed_since: str, log_fn=None):
	"""
	Yield pages of bugs the user commented on, offset by RESULTS_PER_PAGE.

	A failed page is logged and ends the walk as an empty page.
	"""
	offset = 0
	while True:
		params = {
			"quicksearch": f"ALL commenter:{username}",
			"limit": RESULTS_PER_PAGE,
			"offset": offset,
			"last_change_time": changed_since,
		}
		try:
			data = http_client.get_json(f"{base_url}/rest/bug", params=params)
			bugs = data.get("bugs") or []
		except http_fetch.HttpFetchError as error:
			console_log.emit(log_fn, f"Fetching Bugzilla bugs at offset {offset} failed: {error}")
			bugs = []
		console_log.emit(log_fn, f"Got {len(bugs)} Bugzilla bug result(s) at offset {offset}.")
		yield bugs
		if len(bugs) < RESULTS_PER_PAGE:
			return
		offset += RESULTS_PER_PAGE


#============================================
def fetch_own_comments(http_client, base_url: str, username: str, bug_id, log_fn=None) -> list[dict]:
	"""
	Return comments on one bug written by the configured user.
	"""
	try:
		data = http_client.get_json(f"{base_url}/rest/bug/{bug_id}/comment")
	except http_fetch.HttpFetchError as error:
		console_log.emit(log_fn, f"Fetching Bugzilla comments for bug {bug_id} failed: {error}")
		return []
	bug_data = (data.get("bugs") or {}).get(str(bug_id)) or {}
	comments = bug_data.get("comments") or []
	return [comment for comment in comments if comment.get("creator") == username]


#============================================
def format_comment(base_url: str, types: dict, comment: dict, title_map: dict) -> Contribution:
	"""
	Normalize one Bugzilla comment; comment number 0 is the bug description.
	"""
	bug_id = comment.get("bug_id")
	count = comment.get("count", 0)
	if count == 0:
		contribution_type = types.get("createdType") or TYPE_CREATED
		source = CREATED_SOURCE
	else:
		contribution_type = types.get("commentedType") or TYPE_COMMENTED
		source = COMMENTED_SOURCE
	return Contribution(
		created_at=contributions.parse_timestamp(comment.get("creation_time")),
		description=title_map.get(bug_id, ""),
		link=f"{base_url}/show_bug.cgi?id={bug_id}#c{count}",
		type=contribution_type,
		source=source,
	)


#============================================
def gather(bugzilla_config, existing: list[Contribution], http_client, log_fn=None) -> list[Contribution]:
	"""
	Return Bugzilla bug reports and comments newer than their cursors.

	Args:
		bugzilla_config: The bugzilla block of the configuration.
		existing: Previously persisted records for the Bugzilla sources.
		http_client: HttpClient used for the REST calls.
		log_fn: Optional logger.

	Returns:
		New contributions, unordered.
	"""
	if not settings.is_source_enabled(bugzilla_config):
		console_log.emit(log_fn, "Bugzilla source not enabled, skipping.")
		return []

	base_url = settings.get_setting_str(bugzilla_config, ["baseUrl"], "").rstrip("/")
	username = settings.get_setting_str(bugzilla_config, ["username"], "")
	stop_date = settings.parse_config_date(bugzilla_config.get("stopDate"))
	delay_ms = settings.get_setting_int(bugzilla_config, ["delayMsPerRequest"], DEFAULT_DELAY_MS)
	types = bugzilla_config.get("types") or {}

	cursors = {
		source: contributions.latest_created_at(existing, (source,), stop_date)
		for source in SOURCES
	}
	# one query serves both categories, so it starts at the older cursor
	changed_since = min(cursors.values()).date().isoformat()

	title_map = {}
	bug_ids = []
	for bugs in iter_bug_pages(http_client, base_url, username, changed_since, log_fn=log_fn):
		for bug in bugs:
			if bug.get("id") in title_map:
				continue
			title_map[bug.get("id")] = bug.get("summary") or ""
			bug_ids.append(bug.get("id"))
	console_log.emit(log_fn, f"Got {len(bug_ids)} bug(s) this user has commented on.")

	results = []
	for index, bug_id in enumerate(bug_ids):
		if index > 0 and delay_ms > 0:
			time.sleep(delay_ms / 1000.0)
		for comment in fetch_own_comments(http_client, base_url, username, bug_id, log_fn=log_fn):
			contribution = format_comment(base_url, types, comment, title_map)
			if contribution.created_at > cursors[contribution.source]:
				results.append(contribution)
	console_log.emit(log_fn, f"Bugzilla: collected {len(results)} new record(s).")
	return results
