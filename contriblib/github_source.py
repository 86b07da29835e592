"""GitHub contributions: commits, created issues and pull requests, reviews, comments.

Each category keeps its own cursor in the snapshot. Searches walk month
windows backward from now, page by page, until the cursor or the
configured stopDate is reached.
"""

# Standard Library
import re
import time
from datetime import timedelta

from contriblib import console_log
from contriblib import contributions
from contriblib import github_client
from contriblib import periods
from contriblib import settings
from contriblib.contributions import Contribution
from contriblib.contributions import RawItem
from contriblib.contributions import RawItemKind


CONFIG_KEY = "github"
LABEL = "GitHub"

COMMIT_SOURCE = "github-commit"
ISSUE_SOURCE = "github-issues-created"
PR_SOURCE = "github-pr-created"
REVIEW_SOURCE = "github-reviews"
COMMENT_SOURCE = "github-comments"
SOURCES = (COMMIT_SOURCE, ISSUE_SOURCE, PR_SOURCE, REVIEW_SOURCE, COMMENT_SOURCE)

# search results stop at 1000 items, 10 pages of 100
MAX_PAGES_PER_WINDOW = 10
DEFAULT_DELAY_MS = 1000
FOLLOW_UP_LOOKBACK = timedelta(days=365)
REPOSITORY_URL_RE = re.compile(r"github\.com/repos/([^/]+)/([^/?#]+)")

DEFAULT_TYPES = {
	"commit": "GitHub Commit",
	"privateCommit": "Commit in private repository",
	"createdIssue": "Created Issue Report",
	"createdPR": "Created PR",
	"commentedPR": "Commented on a Pull Request",
	"approvedPR": "Approved a Pull Request",
	"changesRequestedPR": "Requested changes on a Pull Request",
	"reviewedPR": "Reviewed a Pull Request",
	"commented": "Commented on an Issue",
}

CATEGORY_TOGGLES = (
	"commitsEnabled",
	"issuesEnabled",
	"prsEnabled",
	"reviewsEnabled",
	"commentsEnabled",
)


#============================================
def validate(github_config) -> None:
	"""
	Raise ConfigError when an enabled GitHub block is incomplete.
	"""
	settings.require_mapping(LABEL, github_config)
	if not settings.is_source_enabled(github_config):
		return
	settings.require_fields(LABEL, github_config, ["username", "stopDate", "filter"], allow_empty=("filter",))
	settings.require_date(LABEL, github_config, "stopDate")
	try:
		re.compile(str(github_config.get("filter")))
	except re.error as error:
		raise settings.ConfigError(
			f"{LABEL}: filter is not a valid regular expression: {error}",
			source=LABEL,
			field="filter",
		) from error
	settings.require_types_mapping(LABEL, github_config)
	for toggle in CATEGORY_TOGGLES + ("allowPrivate",):
		settings.get_setting_bool(github_config, [toggle], True)
	if settings.get_setting_int(github_config, ["delayMsPerRequest"], DEFAULT_DELAY_MS) < 0:
		raise settings.ConfigError(
			f"{LABEL}: delayMsPerRequest must not be negative",
			source=LABEL,
			field="delayMsPerRequest",
		)


#============================================
def resolve_types(github_config: dict) -> dict:
	"""
	Merge configured type overrides over the built-in labels.
	"""
	types = dict(DEFAULT_TYPES)
	overrides = github_config.get("types") or {}
	for key, value in overrides.items():
		if value:
			types[key] = value
	return types


#============================================
def wait_ms(delay_ms: int) -> None:
	"""
	Sleep between requests; zero disables waiting.
	"""
	if delay_ms <= 0:
		return
	time.sleep(delay_ms / 1000.0)


#============================================
def matches_filter(filter_re: re.Pattern, payload: dict) -> bool:
	"""
	Return True when the item URL matches the filter and its repository is not a fork.
	"""
	html_url = payload.get("html_url") or ""
	if not filter_re.search(html_url):
		return False
	repository = payload.get("repository") or {}
	return not repository.get("fork", False)


#============================================
def repo_full_name_from_url(repository_url: str) -> str:
	"""
	Extract owner/name from an API repository URL.
	"""
	match = REPOSITORY_URL_RE.search(repository_url or "")
	if not match:
		return ""
	return f"{match.group(1)}/{match.group(2)}"


#============================================
def authored_by(payload: dict, username: str) -> bool:
	"""
	Return True when the payload's user login equals the configured user.
	"""
	user = payload.get("user") or {}
	login = str(user.get("login") or "")
	return login.lower() == username.lower()


#============================================
def format_commit(types: dict, payload: dict, context: dict) -> Contribution:
	commit = payload.get("commit") or {}
	author = commit.get("author") or {}
	repository = payload.get("repository") or {}
	if repository.get("private"):
		description = types["privateCommit"]
		link = ""
	else:
		owner = (repository.get("owner") or {}).get("login") or ""
		description = f"{owner}/{repository.get('name') or ''}: {commit.get('message') or ''}"
		link = payload.get("html_url") or ""
	return Contribution(
		created_at=contributions.parse_timestamp(author.get("date")),
		description=description,
		link=link,
		type=types["commit"],
		source=COMMIT_SOURCE,
	)


#============================================
def format_issue(types: dict, payload: dict, context: dict) -> Contribution:
	return Contribution(
		created_at=contributions.parse_timestamp(payload.get("created_at")),
		description=payload.get("title") or "",
		link=payload.get("html_url") or "",
		type=types["createdIssue"],
		source=ISSUE_SOURCE,
	)


#============================================
def format_pull_request(types: dict, payload: dict, context: dict) -> Contribution:
	return Contribution(
		created_at=contributions.parse_timestamp(payload.get("created_at")),
		description=payload.get("title") or "",
		link=payload.get("html_url") or "",
		type=types["createdPR"],
		source=PR_SOURCE,
	)


#============================================
def format_review(types: dict, payload: dict, context: dict) -> Contribution:
	state_types = {
		"COMMENTED": types["commentedPR"],
		"APPROVED": types["approvedPR"],
		"CHANGES_REQUESTED": types["changesRequestedPR"],
	}
	return Contribution(
		created_at=contributions.parse_timestamp(payload.get("submitted_at")),
		description=context.get("title") or "",
		link=payload.get("html_url") or "",
		type=state_types.get(payload.get("state"), types["reviewedPR"]),
		source=REVIEW_SOURCE,
	)


#============================================
def format_comment(types: dict, payload: dict, context: dict) -> Contribution:
	return Contribution(
		created_at=contributions.parse_timestamp(payload.get("created_at")),
		description=context.get("title") or "",
		link=payload.get("html_url") or "",
		type=types["commented"],
		source=COMMENT_SOURCE,
	)


FORMATTERS = {
	RawItemKind.COMMIT: format_commit,
	RawItemKind.ISSUE: format_issue,
	RawItemKind.PULL_REQUEST: format_pull_request,
	RawItemKind.REVIEW: format_review,
	RawItemKind.COMMENT: format_comment,
}


#============================================
def format_item(types: dict, raw_item: RawItem) -> Contribution:
	"""
	Normalize one tagged upstream item.
	"""
	formatter = FORMATTERS[raw_item.kind]
	return formatter(types, raw_item.payload, raw_item.context)


#============================================
def iter_search_pages(
	search_fn,
	query_template: str,
	sort: str,
	stop_date,
	lower_bound,
	now,
	delay_ms: int,
	log_fn=None,
):
	"""
	Yield raw result pages for one search across month windows.

	Each window is paged until a short page or the page cap. A failed
	page counts as empty, which ends that window.

	Args:
		search_fn: Client search callable taking (query, sort, page).
		query_template: Query text with a {range} placeholder.
		sort: Search sort field.
		stop_date: Configured lower bound.
		lower_bound: Cursor-derived lower bound for the walk.
		now: Reference instant for the first window.
		delay_ms: Wait before each page request.
		log_fn: Optional logger.
	"""
	for window in periods.iter_month_windows(now, stop_date, lower_bound):
		query = query_template.format(range=periods.format_range(window))
		for page in range(1, MAX_PAGES_PER_WINDOW + 1):
			wait_ms(delay_ms)
			try:
				items = search_fn(query, sort, page)
			except github_client.GitHubFetchError as error:
				console_log.emit(log_fn, f"GitHub search failed for '{query}' page {page}: {error}")
				items = []
			console_log.emit(log_fn, f"GitHub search '{query}' page {page}: {len(items)} result(s)")
			yield items
			if len(items) < github_client.RESULTS_PER_PAGE:
				break
	console_log.emit(log_fn, "GitHub search reached the stop date.")


#============================================
class GitHubGatherer:
	"""
	Collect all enabled GitHub categories for one configured user.
	"""

	def __init__(self, github_config: dict, client, now_utc=None, log_fn=None):
		self.config = github_config
		self.client = client
		self.log_fn = log_fn
		self.now = now_utc or contributions.utc_now()
		self.username = settings.get_setting_str(github_config, ["username"], "")
		self.stop_date = settings.parse_config_date(github_config.get("stopDate"))
		self.filter_re = re.compile(str(github_config.get("filter") or ""), re.IGNORECASE)
		self.types = resolve_types(github_config)
		self.delay_ms = settings.get_setting_int(github_config, ["delayMsPerRequest"], DEFAULT_DELAY_MS)

	#============================================
	def log(self, message: str) -> None:
		console_log.emit(self.log_fn, message)

	#============================================
	def category_enabled(self, toggle: str) -> bool:
		return settings.get_setting_bool(self.config, [toggle], True)

	#============================================
	def check_private_scope(self) -> None:
		"""
		Abort when the token can read private data without allowPrivate.
		"""
		if not self.client.has_private_repo_scope():
			return
		if settings.get_setting_bool(self.config, ["allowPrivate"], False):
			self.log("GitHub token has private repo scope; allowPrivate is set, continuing.")
			return
		raise github_client.PrivateScopeError(
			"GitHub: GITHUB_TOKEN has private repo scope, but the config does not specify "
			+ "allowPrivate to fetch private repos. Are you sure you want to fetch private information?"
		)

	#============================================
	def search(self, search_fn, query_template: str, sort: str, lower_bound):
		"""
		Yield filtered raw payloads for one search walk.
		"""
		pages = iter_search_pages(
			search_fn,
			query_template,
			sort,
			self.stop_date,
			lower_bound,
			self.now,
			self.delay_ms,
			log_fn=self.log_fn,
		)
		for page in pages:
			for payload in page:
				if matches_filter(self.filter_re, payload):
					yield payload

	#============================================
	def finish(self, raw_items: list[RawItem], lower_bound) -> list[Contribution]:
		"""
		Format raw items and keep only those newer than the cursor.
		"""
		formatted = [format_item(self.types, raw_item) for raw_item in raw_items]
		return contributions.newer_than(formatted, lower_bound)

	#============================================
	def process_commits(self, lower_bound) -> list[Contribution]:
		self.log("Getting commits from GitHub.")
		query = f"author:{self.username} author-date:{{range}}"
		raw_items = [
			RawItem(RawItemKind.COMMIT, payload)
			for payload in self.search(self.client.search_commits, query, "committer-date", lower_bound)
		]
		return self.finish(raw_items, lower_bound)

	#============================================
	def process_issues(self, lower_bound) -> list[Contribution]:
		self.log("Getting issues from GitHub.")
		query = f"author:{self.username} created:{{range}} is:issue"
		raw_items = [
			RawItem(RawItemKind.ISSUE, payload)
			for payload in self.search(self.client.search_issues, query, "created", lower_bound)
		]
		return self.finish(raw_items, lower_bound)

	#============================================
	def process_pull_requests(self, lower_bound) -> list[Contribution]:
		self.log("Getting pull requests from GitHub.")
		query = f"author:{self.username} created:{{range}} is:pull-request"
		raw_items = [
			RawItem(RawItemKind.PULL_REQUEST, payload)
			for payload in self.search(self.client.search_issues, query, "created", lower_bound)
		]
		return self.finish(raw_items, lower_bound)

	#============================================
	def collect_follow_ups(self, parents: list[dict], list_fn, kind: RawItemKind) -> list[RawItem]:
		"""
		Fetch child items (reviews or comments) one parent at a time.

		Only children authored by the configured user and matching the
		filter are kept. A failed parent is skipped.
		"""
		raw_items = []
		for parent in parents:
			repo_full_name = repo_full_name_from_url(parent.get("repository_url") or "")
			number = parent.get("number")
			if (not repo_full_name) or (number is None):
				self.log(f"Skipping item without repository or number: {parent.get('html_url')}")
				continue
			wait_ms(self.delay_ms)
			try:
				children = list_fn(repo_full_name, number)
			except github_client.GitHubFetchError as error:
				self.log(f"Fetching {kind.value}s for {repo_full_name}#{number} failed: {error}")
				continue
			for child in children:
				if not authored_by(child, self.username):
					continue
				if not matches_filter(self.filter_re, child):
					continue
				raw_items.append(RawItem(kind, child, {"title": parent.get("title") or ""}))
		return raw_items

	#============================================
	def process_reviews(self, lower_bound) -> list[Contribution]:
		"""
		Collect reviews by searching reviewed pull requests first.

		A pull request created long before the cursor can be reviewed
		later, so the search reaches one year further back than the cursor.
		"""
		self.log("Getting reviews from GitHub.")
		query = f"reviewed-by:{self.username} created:{{range}} is:pull-request"
		search_bound = lower_bound - FOLLOW_UP_LOOKBACK
		pull_requests = list(self.search(self.client.search_issues, query, "created", search_bound))
		self.log(f"Fetching reviews for {len(pull_requests)} pull request(s).")
		raw_items = self.collect_follow_ups(pull_requests, self.client.list_reviews, RawItemKind.REVIEW)
		raw_items = [item for item in raw_items if item.payload.get("submitted_at")]
		return self.finish(raw_items, lower_bound)

	#============================================
	def process_comments(self, lower_bound) -> list[Contribution]:
		self.log("Getting comments from GitHub.")
		query = f"commenter:{self.username} created:{{range}} is:issue"
		search_bound = lower_bound - FOLLOW_UP_LOOKBACK
		issues = list(self.search(self.client.search_issues, query, "created", search_bound))
		self.log(f"Fetching comments for {len(issues)} issue(s).")
		raw_items = self.collect_follow_ups(issues, self.client.list_comments, RawItemKind.COMMENT)
		return self.finish(raw_items, lower_bound)

	#============================================
	def gather(self, existing: list[Contribution]) -> list[Contribution]:
		"""
		Run every enabled category with its own cursor.
		"""
		self.check_private_scope()
		categories = (
			("commitsEnabled", COMMIT_SOURCE, self.process_commits),
			("issuesEnabled", ISSUE_SOURCE, self.process_issues),
			("prsEnabled", PR_SOURCE, self.process_pull_requests),
			("reviewsEnabled", REVIEW_SOURCE, self.process_reviews),
			("commentsEnabled", COMMENT_SOURCE, self.process_comments),
		)
		results = []
		for toggle, source, process_fn in categories:
			if not self.category_enabled(toggle):
				self.log(f"GitHub {source} not enabled, skipping.")
				continue
			lower_bound = contributions.latest_created_at(existing, (source,), self.stop_date)
			found = process_fn(lower_bound)
			self.log(f"GitHub {source}: collected {len(found)} new record(s).")
			results.extend(found)
		self.log("Finished gathering GitHub contributions.")
		return results


#============================================
def gather(github_config, existing: list[Contribution], client=None, now_utc=None, log_fn=None) -> list[Contribution]:
	"""
	Return new GitHub contributions since each category's cursor.

	Args:
		github_config: The github block of the configuration.
		existing: Previously persisted records for the GitHub sources.
		client: Shared GitHubClient; built from the environment when None.
		now_utc: Reference instant for the month walk.
		log_fn: Optional logger.
	"""
	if not settings.is_source_enabled(github_config):
		console_log.emit(log_fn, "GitHub source not enabled, skipping.")
		return []
	if client is None:
		client = github_client.GitHubClient.from_environment(log_fn=log_fn)
	gatherer = GitHubGatherer(github_config, client, now_utc=now_utc, log_fn=log_fn)
	return gatherer.gather(existing)
