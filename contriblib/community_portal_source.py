import re
from datetime import datetime
from datetime import timezone

from bs4 import BeautifulSoup

from contriblib import console_log
from contriblib import contributions
from contriblib import settings
from contriblib.contributions import Contribution


CONFIG_KEY = "communityPortal"
LABEL = "Community Portal"

EVENTS_SOURCE = "community-portal-events"
CAMPAIGNS_SOURCE = "community-portal-campaigns"
SOURCES = (EVENTS_SOURCE, CAMPAIGNS_SOURCE)

TYPE_PARTICIPATION = "Participated in an event"
TYPE_CAMPAIGN = "Participated in a campaign"

NOISE_RE = re.compile(r"[\n\t∙]")
# "Oct 01 - Dec 31, 2021" keeps the start date
CAMPAIGN_END_RE = re.compile(r"\s*-\s*[a-zA-Z]+\s\d{2}")
DATE_FORMATS = (
	"%b %d, %Y %H:%M %Z",
	"%B %d, %Y %H:%M %Z",
	"%b %d, %Y %H:%M",
	"%B %d, %Y %H:%M",
	"%b %d, %Y",
	"%B %d, %Y",
	"%d %b %Y",
	"%d %B %Y",
)


#============================================
def validate(portal_config) -> None:
	"""
	Raise ConfigError when an enabled Community Portal block is incomplete.
	"""
	settings.require_mapping(LABEL, portal_config)
	if not settings.is_source_enabled(portal_config):
		return
	settings.require_fields(LABEL, portal_config, ["baseUrl", "username"])


#============================================
def parse_portal_date(text: str) -> datetime | None:
	"""
	Parse the loosely formatted profile dates; None when unrecognized.
	"""
	value = " ".join(text.split())
	if not value:
		return None
	try:
		return contributions.parse_timestamp(value)
	except ValueError:
		pass
	for date_format in DATE_FORMATS:
		try:
			parsed = datetime.strptime(value, date_format)
		except ValueError:
			continue
		return parsed.replace(tzinfo=timezone.utc)
	return None


#============================================
def clean_text(node) -> str:
	if node is None:
		return ""
	return NOISE_RE.sub("", node.get_text()).strip()


#============================================
def format_entry(node, date_selector: str, title_selector: str, contribution_type: str, source: str, date_fn=None):
	"""
	Build a Contribution from one profile entry, or None if its date is unreadable.
	"""
	date_text = clean_text(node.select_one(date_selector))
	if date_fn is not None:
		date_text = date_fn(date_text)
	created_at = parse_portal_date(date_text)
	if created_at is None:
		return None
	return Contribution(
		created_at=created_at,
		description=clean_text(node.select_one(title_selector)),
		link=node.get("href") or "",
		type=contribution_type,
		source=source,
	)


#============================================
def process_entries(soup, selector: str, build_fn, now, log_fn=None) -> list[Contribution]:
	"""
	Format all entries for one selector, dropping unreadable and future ones.
	"""
	entries = []
	for node in soup.select(selector):
		contribution = build_fn(node)
		if contribution is None:
			console_log.emit(log_fn, f"Skipping {selector} entry with unreadable date.")
			continue
		if contribution.created_at >= now:
			continue
		entries.append(contribution)
	return contributions.sort_contributions(entries)


#============================================
def parse_profile(html_text: str, portal_config: dict, now, log_fn=None) -> list[Contribution]:
	"""
	Extract past events and campaigns from one profile page.
	"""
	soup = BeautifulSoup(html_text, "html.parser")
	participation_type = settings.get_setting_str(portal_config, ["participationType"], "") or TYPE_PARTICIPATION
	campaign_type = settings.get_setting_str(portal_config, ["campaignType"], "") or TYPE_CAMPAIGN
	events = process_entries(
		soup,
		".profile__event",
		lambda node: format_entry(
			node,
			".profile__event-time",
			".profile__event-title",
			participation_type,
			EVENTS_SOURCE,
		),
		now,
		log_fn=log_fn,
	)
	campaigns = process_entries(
		soup,
		".profile__campaign",
		lambda node: format_entry(
			node,
			".profile__campaign-dates",
			".profile__campaign-title",
			campaign_type,
			CAMPAIGNS_SOURCE,
			date_fn=lambda text: CAMPAIGN_END_RE.sub("", text),
		),
		now,
		log_fn=log_fn,
	)
	return events + campaigns


#============================================
def gather(portal_config, http_client, now_utc=None, log_fn=None) -> list[Contribution]:
	"""
	Return every past event and campaign listed on the user's profile.

	The profile is a single page, so a failed fetch propagates.
	"""
	if not settings.is_source_enabled(portal_config):
		console_log.emit(log_fn, "Community Portal source not enabled, skipping.")
		return []
	base_url = settings.get_setting_str(portal_config, ["baseUrl"], "").rstrip("/")
	username = settings.get_setting_str(portal_config, ["username"], "")
	now = now_utc or contributions.utc_now()
	html_text = http_client.get_text(f"{base_url}/{username}")
	results = parse_profile(html_text, portal_config, now, log_fn=log_fn)
	console_log.emit(log_fn, f"Community Portal: collected {len(results)} record(s).")
	return results
