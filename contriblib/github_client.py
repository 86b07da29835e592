import os
import time
from datetime import datetime
from datetime import timezone

from github import Auth
from github import Github
from github.GithubException import GithubException

from contriblib import console_log


RESULTS_PER_PAGE = 100
TOKEN_ENV_NAME = "GITHUB_TOKEN"
PRIVATE_REPO_SCOPE = "repo"


#============================================
class MissingCredentialError(RuntimeError):
	"""
	Raised when the forge token is not available in the environment.
	"""


#============================================
class PrivateScopeError(RuntimeError):
	"""
	Raised when the token can read private repositories without an explicit opt-in.
	"""


#============================================
class GitHubFetchError(RuntimeError):
	"""
	Raised when one GitHub API call fails.
	"""


#============================================
class RateLimitError(GitHubFetchError):
	"""
	Raised when GitHub API rate limits block further requests.
	"""


#============================================
class GitHubClient:
	"""
	Thin PyGithub wrapper for the contribution fetch use-cases.
	"""

	def __init__(self, token: str, log_fn=None):
		self.log_fn = log_fn
		self._rate_check_count = 0
		self._low_remaining_threshold = 2
		self._max_proactive_sleep_seconds = 60
		self._api_call_count = 0
		self._api_calls_by_context: dict[str, int] = {}
		self.client = Github(auth=Auth.Token(token), per_page=RESULTS_PER_PAGE, retry=None)

	#============================================
	@classmethod
	def from_environment(cls, log_fn=None) -> "GitHubClient":
		"""
		Build the client from the GITHUB_TOKEN environment variable.
		"""
		token = (os.environ.get(TOKEN_ENV_NAME, "") or "").strip()
		if not token:
			raise MissingCredentialError(
				f"GitHub: no {TOKEN_ENV_NAME} provided in the environment variables"
			)
		console_log.emit(log_fn, "Initializing GitHub client from environment token.")
		return cls(token, log_fn=log_fn)

	#============================================
	def log(self, message: str) -> None:
		"""
		Emit one log line when logger is configured.
		"""
		console_log.emit(self.log_fn, message)

	#============================================
	def record_api_call(self, context: str) -> None:
		"""
		Track one outbound GitHub API call.
		"""
		self._api_call_count += 1
		if context not in self._api_calls_by_context:
			self._api_calls_by_context[context] = 0
		self._api_calls_by_context[context] += 1

	#============================================
	def api_usage_snapshot(self) -> dict:
		"""
		Return API counters for reporting.
		"""
		return {
			"api_call_count": self._api_call_count,
			"api_calls_by_context": dict(self._api_calls_by_context),
		}

	#============================================
	def normalize_datetime(self, value: datetime) -> datetime:
		"""
		Normalize datetime to timezone-aware UTC.
		"""
		if value.tzinfo is None:
			return value.replace(tzinfo=timezone.utc)
		return value.astimezone(timezone.utc)

	#============================================
	def parse_rate_limit_reset(self, reset_value) -> datetime:
		"""
		Normalize PyGithub reset values to timezone-aware UTC datetime.
		"""
		if isinstance(reset_value, datetime):
			return self.normalize_datetime(reset_value)
		if isinstance(reset_value, (int, float)):
			return datetime.fromtimestamp(float(reset_value), tz=timezone.utc)
		if isinstance(reset_value, str):
			return datetime.fromisoformat(reset_value.replace("Z", "+00:00"))
		raise RuntimeError(f"Unsupported rate-limit reset value: {reset_value!r}")

	#============================================
	def get_rate_limit_snapshot(self, resource_name: str) -> tuple[int, datetime]:
		"""
		Read remaining/reset for one rate-limit resource across PyGithub versions.
		"""
		self.record_api_call("GET /rate_limit")
		overview = self.client.get_rate_limit()
		rate_limit = getattr(overview, resource_name, None)
		if rate_limit is None:
			resources = getattr(overview, "resources", None)
			if isinstance(resources, dict):
				rate_limit = resources.get(resource_name)
			elif resources is not None:
				rate_limit = getattr(resources, resource_name, None)
		if rate_limit is None:
			raise RuntimeError(f"Rate limit data does not expose {resource_name} resource fields.")
		remaining = int(getattr(rate_limit, "remaining"))
		reset_time = self.parse_rate_limit_reset(getattr(rate_limit, "reset"))
		return remaining, reset_time

	#============================================
	def maybe_wait_for_rate_limit(self, context: str, resource_name: str = "core", force: bool = False) -> None:
		"""
		Sleep until reset when rate limit is very low.
		"""
		self._rate_check_count += 1
		if (not force) and (self._rate_check_count % 15 != 0):
			return
		try:
			remaining, reset_time = self.get_rate_limit_snapshot(resource_name)
		except (GithubException, RuntimeError) as error:
			self.log(f"Rate limit check ({context}) unavailable: {error}")
			return
		self.log(
			f"Rate limit check ({context}): {resource_name} remaining={remaining}, "
			+ f"reset_at={reset_time.isoformat()}"
		)
		if remaining > self._low_remaining_threshold:
			return
		sleep_seconds = int((reset_time - datetime.now(timezone.utc)).total_seconds()) + 1
		if sleep_seconds <= 0:
			return
		if sleep_seconds > self._max_proactive_sleep_seconds:
			self.log(
				"Rate limit is low, but proactive wait exceeds cap "
				+ f"({sleep_seconds}s > {self._max_proactive_sleep_seconds}s); "
				+ "skipping proactive sleep and continuing."
			)
			return
		self.log(
			f"Rate limit is low ({remaining}); sleeping {sleep_seconds}s until reset."
		)
		time.sleep(sleep_seconds)

	#============================================
	def call_api(self, context: str, call_fn):
		"""
		Run one API call and translate PyGithub errors.
		"""
		try:
			self.record_api_call(context)
			return call_fn()
		except GithubException as error:
			self.raise_from_github_error(error, context)

	#============================================
	def raise_from_github_error(self, error: GithubException, context: str) -> None:
		"""
		Raise a human-readable rate-limit error or a generic fetch error.
		"""
		status = getattr(error, "status", None)
		if status not in (403, 429):
			raise GitHubFetchError(f"GitHub API call failed while {context}: {error}") from error
		raise RateLimitError(
			"GitHub API rate limit exceeded while "
			+ f"{context}; status={status}."
		) from error

	#============================================
	def has_private_repo_scope(self) -> bool:
		"""
		Return True when the token grants the private repository scope.
		"""
		def read_scopes():
			login = self.client.get_user().login
			self.log(f"Authenticated to GitHub as {login}.")
			return self.client.oauth_scopes or []

		scopes = self.call_api("GET /user", read_scopes)
		return PRIVATE_REPO_SCOPE in [scope.strip() for scope in scopes]

	#============================================
	def request_json(self, context: str, path: str, parameters: dict):
		"""
		GET one endpoint and return its decoded JSON body.

		Payloads are read as returned by the endpoint. Wrapping them in
		PyGithub objects would complete each one with an extra request and
		replace search-only fields such as repository.
		"""
		def fetch():
			_, data = self.client.requester.requestJsonAndCheck("GET", path, parameters=parameters)
			return data

		return self.call_api(context, fetch)

	#============================================
	def search_page(self, path: str, query: str, sort: str, page: int) -> list[dict]:
		"""
		Return the raw items of one 1-based search results page.
		"""
		self.maybe_wait_for_rate_limit(f"{path} {query}", resource_name="search")
		parameters = {"q": query, "sort": sort, "per_page": RESULTS_PER_PAGE, "page": page}
		data = self.request_json(f"GET {path}", path, parameters) or {}
		return list(data.get("items") or [])

	#============================================
	def list_all(self, path: str) -> list[dict]:
		"""
		Return every item of a paginated list endpoint.
		"""
		items = []
		page = 1
		while True:
			self.maybe_wait_for_rate_limit(f"GET {path} page {page}")
			data = self.request_json(f"GET {path}", path, {"per_page": RESULTS_PER_PAGE, "page": page}) or []
			items.extend(data)
			if len(data) < RESULTS_PER_PAGE:
				return items
			page += 1

	#============================================
	def search_commits(self, query: str, sort: str, page: int) -> list[dict]:
		return self.search_page("/search/commits", query, sort, page)

	#============================================
	def search_issues(self, query: str, sort: str, page: int) -> list[dict]:
		return self.search_page("/search/issues", query, sort, page)

	#============================================
	def list_reviews(self, repo_full_name: str, number: int) -> list[dict]:
		"""
		List raw review payloads for one pull request.
		"""
		return self.list_all(f"/repos/{repo_full_name}/pulls/{number}/reviews")

	#============================================
	def list_comments(self, repo_full_name: str, number: int) -> list[dict]:
		"""
		List raw comment payloads for one issue.
		"""
		return self.list_all(f"/repos/{repo_full_name}/issues/{number}/comments")
