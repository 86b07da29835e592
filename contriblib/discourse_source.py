from contriblib import console_log
from contriblib import contributions
from contriblib import http_fetch
from contriblib import settings
from contriblib.contributions import Contribution


CONFIG_KEY = "discourse"
LABEL = "Discourse"

TOPICS_SOURCE = "discourse-topics"
POSTS_SOURCE = "discourse-posts"
SOURCES = (TOPICS_SOURCE, POSTS_SOURCE)

TYPE_TOPIC = "Created Discourse Topic"
TYPE_POST = "Posted on Discourse Topic"

RESULTS_PER_PAGE = 30
# user_actions filter value for replies
POST_ACTION_FILTER = 5


#============================================
def validate(discourse_config) -> None:
	"""
	Raise ConfigError when an enabled Discourse block is incomplete.
	"""
	settings.require_mapping(LABEL, discourse_config)
	if not settings.is_source_enabled(discourse_config):
		return
	settings.require_fields(LABEL, discourse_config, ["baseUrl", "username"])
	settings.get_setting_bool(discourse_config, ["keepDeletedPost"], False)


#============================================
def keeps_deleted_posts(discourse_config) -> bool:
	"""
	Return True when previously saved records should survive a refetch.
	"""
	if not settings.is_source_enabled(discourse_config):
		return False
	return settings.get_setting_bool(discourse_config, ["keepDeletedPost"], False)


#============================================
def fetch_page(http_client, url: str, params: dict, log_fn=None) -> dict:
	"""
	Fetch one JSON page.

	A failed request propagates and aborts the cycle, since saved Discourse
	records are replaced by what this fetch returns.
	"""
	try:
		data = http_client.get_json(url, params=params)
	except http_fetch.HttpFetchError as error:
		console_log.emit(log_fn, f"Fetching Discourse page {url} {params} failed: {error}")
		raise
	if not isinstance(data, dict):
		return {}
	return data


#============================================
def iter_topic_pages(http_client, base_url: str, username: str, log_fn=None):
	"""
	Yield topic lists created by the user until a short page.
	"""
	page = 0
	while True:
		data = fetch_page(
			http_client,
			f"{base_url}/topics/created-by/{username}.json",
			{"page": page},
			log_fn=log_fn,
		)
		topics = (data.get("topic_list") or {}).get("topics") or []
		console_log.emit(log_fn, f"Got {len(topics)} Discourse topic(s) on page {page}.")
		yield topics
		if len(topics) != RESULTS_PER_PAGE:
			return
		page += 1


#============================================
def iter_post_pages(http_client, base_url: str, username: str, log_fn=None):
	"""
	Yield user action (reply) lists until a short page.
	"""
	offset = 0
	while True:
		data = fetch_page(
			http_client,
			f"{base_url}/user_actions.json",
			{"username": username, "filter": POST_ACTION_FILTER, "offset": offset},
			log_fn=log_fn,
		)
		posts = data.get("user_actions") or []
		console_log.emit(log_fn, f"Got {len(posts)} Discourse post(s) at offset {offset}.")
		yield posts
		if len(posts) != RESULTS_PER_PAGE:
			return
		offset += RESULTS_PER_PAGE


#============================================
def format_topic(contribution_type: str, base_url: str, topic: dict) -> Contribution:
	return Contribution(
		created_at=contributions.parse_timestamp(topic.get("created_at")),
		description=topic.get("title") or "",
		link=f"{base_url}/t/{topic.get('slug')}/{topic.get('id')}",
		type=contribution_type or TYPE_TOPIC,
		source=TOPICS_SOURCE,
	)


#============================================
def format_post(contribution_type: str, base_url: str, post: dict) -> Contribution:
	return Contribution(
		created_at=contributions.parse_timestamp(post.get("created_at")),
		description=post.get("title") or "",
		link=f"{base_url}/t/{post.get('slug')}/{post.get('topic_id')}/{post.get('post_number')}",
		type=contribution_type or TYPE_POST,
		source=POSTS_SOURCE,
	)


#============================================
def gather(discourse_config, http_client, log_fn=None) -> list[Contribution]:
	"""
	Return every topic and post the user currently has on the forum.
	"""
	if not settings.is_source_enabled(discourse_config):
		console_log.emit(log_fn, "Discourse source not enabled, skipping.")
		return []

	base_url = settings.get_setting_str(discourse_config, ["baseUrl"], "").rstrip("/")
	username = settings.get_setting_str(discourse_config, ["username"], "")
	topic_type = settings.get_setting_str(discourse_config, ["topicType"], "")
	post_type = settings.get_setting_str(discourse_config, ["postType"], "")

	console_log.emit(log_fn, "Getting topics from Discourse.")
	topics = [
		format_topic(topic_type, base_url, topic)
		for page in iter_topic_pages(http_client, base_url, username, log_fn=log_fn)
		for topic in page
	]
	console_log.emit(log_fn, "Getting posts from Discourse.")
	posts = [
		format_post(post_type, base_url, post)
		for page in iter_post_pages(http_client, base_url, username, log_fn=log_fn)
		for post in page
	]
	console_log.emit(log_fn, f"Discourse: collected {len(topics)} topic(s) and {len(posts)} post(s).")
	return topics + posts
