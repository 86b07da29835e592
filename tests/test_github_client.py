from datetime import datetime
from datetime import timezone
from types import SimpleNamespace

import pytest
from github.GithubException import GithubException

from contriblib import github_client
from contriblib import github_source


#============================================
def make_stub_client(inner_client):
	"""
	Build GitHubClient instance around a fake PyGithub object.
	"""
	client = github_client.GitHubClient.__new__(github_client.GitHubClient)
	client.log_fn = None
	client._rate_check_count = 0
	client._low_remaining_threshold = 5
	client._max_proactive_sleep_seconds = 60
	client._api_call_count = 0
	client._api_calls_by_context = {}
	client.client = inner_client
	return client


#============================================
class FakeRequester:
	"""
	Records GET requests and answers from canned bodies keyed by path and page.
	"""

	def __init__(self, bodies: dict):
		self.bodies = bodies
		self.calls = []

	def requestJsonAndCheck(self, verb, url, parameters=None, headers=None, input=None, follow_302_redirect=False):
		self.calls.append((verb, url, dict(parameters or {})))
		page = (parameters or {}).get("page", 1)
		return {}, self.bodies.get((url, page), [])


#============================================
def test_rate_limit_snapshot_from_search_attribute() -> None:
	"""
	Rate limit should parse from overview.search shape.
	"""
	reset_time = datetime(2026, 2, 22, 3, 30, 0, tzinfo=timezone.utc)
	overview = SimpleNamespace(search=SimpleNamespace(remaining=42, reset=reset_time))
	client = make_stub_client(SimpleNamespace(get_rate_limit=lambda: overview))
	remaining, parsed_reset = client.get_rate_limit_snapshot("search")
	assert remaining == 42
	assert parsed_reset == reset_time


#============================================
def test_rate_limit_snapshot_from_resources_dict() -> None:
	"""
	Rate limit should parse from overview.resources['core'] shape.
	"""
	overview = SimpleNamespace(
		resources={"core": SimpleNamespace(remaining=3, reset=1761110400)}
	)
	client = make_stub_client(SimpleNamespace(get_rate_limit=lambda: overview))
	remaining, parsed_reset = client.get_rate_limit_snapshot("core")
	assert remaining == 3
	assert parsed_reset.tzinfo is not None


#============================================
def test_maybe_wait_for_rate_limit_handles_unknown_shape() -> None:
	"""
	Unknown rate-limit shape should not crash wait checks.
	"""
	client = make_stub_client(SimpleNamespace(get_rate_limit=lambda: SimpleNamespace(resources={})))
	client.maybe_wait_for_rate_limit("unit-test", force=True)


#============================================
def test_from_environment_requires_token(monkeypatch) -> None:
	"""
	Missing token should raise MissingCredentialError before any request.
	"""
	monkeypatch.delenv("GITHUB_TOKEN", raising=False)
	with pytest.raises(github_client.MissingCredentialError):
		github_client.GitHubClient.from_environment()


#============================================
def test_call_api_translates_rate_limit_status() -> None:
	"""
	403 and 429 responses should surface as RateLimitError.
	"""
	client = make_stub_client(SimpleNamespace())

	def failing_call():
		raise GithubException(403, {"message": "rate limited"}, None)

	with pytest.raises(github_client.RateLimitError):
		client.call_api("unit-test", failing_call)


#============================================
def test_call_api_translates_other_errors() -> None:
	"""
	Other API errors should surface as GitHubFetchError, not RateLimitError.
	"""
	client = make_stub_client(SimpleNamespace())

	def failing_call():
		raise GithubException(422, {"message": "validation failed"}, None)

	with pytest.raises(github_client.GitHubFetchError) as error_info:
		client.call_api("unit-test", failing_call)
	assert not isinstance(error_info.value, github_client.RateLimitError)


#============================================
def test_has_private_repo_scope_reads_oauth_scopes() -> None:
	"""
	The repo scope among the token scopes means private access.
	"""
	inner = SimpleNamespace(
		get_user=lambda: SimpleNamespace(login="alice"),
		oauth_scopes=["read:user", " repo"],
	)
	assert make_stub_client(inner).has_private_repo_scope()
	inner.oauth_scopes = ["public_repo"]
	assert not make_stub_client(inner).has_private_repo_scope()
	inner.oauth_scopes = None
	assert not make_stub_client(inner).has_private_repo_scope()


#============================================
def make_private_commit_item() -> dict:
	"""
	Build one commit search item from a private repository.
	"""
	return {
		"sha": "abc",
		"url": "https://api.github.com/repos/contribution-test/foo/commits/abc",
		"html_url": "https://github.com/contribution-test/foo/commit/abc",
		"commit": {"message": "Test Commit Message", "author": {"date": "2022-02-10T10:00:00Z"}},
		"repository": {
			"name": "foo",
			"owner": {"login": "contribution-test"},
			"private": True,
			"fork": False,
		},
	}


#============================================
def test_search_commits_sends_query_and_page() -> None:
	"""
	Search pages are requested 1-based with the query and sort.
	"""
	item = make_private_commit_item()
	requester = FakeRequester({("/search/commits", 2): {"total_count": 101, "items": [item]}})
	client = make_stub_client(SimpleNamespace(requester=requester))
	items = client.search_commits("author:alice", "committer-date", 2)
	assert items == [item]
	assert requester.calls == [(
		"GET",
		"/search/commits",
		{"q": "author:alice", "sort": "committer-date", "per_page": 100, "page": 2},
	)]
	assert client.api_usage_snapshot()["api_call_count"] == 1


#============================================
def test_search_keeps_repository_without_extra_requests(monkeypatch) -> None:
	"""
	A real client should return search items untouched with one request.
	"""
	client = github_client.GitHubClient("token")
	calls = []
	item = make_private_commit_item()

	def request_json_and_check(verb, url, parameters=None, headers=None, input=None, follow_302_redirect=False):
		calls.append(url)
		if url == "/search/commits":
			return {}, {"total_count": 1, "items": [item]}
		return {}, {"sha": "abc", "commit": item["commit"]}

	monkeypatch.setattr(client.client.requester, "requestJsonAndCheck", request_json_and_check)
	items = client.search_commits("author:alice", "committer-date", 1)
	assert calls == ["/search/commits"]
	assert items[0]["repository"]["private"] is True
	contribution = github_source.format_commit(github_source.DEFAULT_TYPES, items[0], {})
	assert contribution.description == "Commit in private repository"
	assert contribution.link == ""


#============================================
def test_list_reviews_walks_pages() -> None:
	"""
	A full page of reviews should request the next page.
	"""
	path = "/repos/contribution-test/foo/pulls/5/reviews"
	first_page = [{"id": index} for index in range(100)]
	requester = FakeRequester({(path, 1): first_page, (path, 2): [{"id": 100}]})
	client = make_stub_client(SimpleNamespace(requester=requester))
	reviews = client.list_reviews("contribution-test/foo", 5)
	assert len(reviews) == 101
	assert [call[2]["page"] for call in requester.calls] == [1, 2]


#============================================
def test_list_comments_translates_errors() -> None:
	"""
	API errors on follow-up lists surface as GitHubFetchError.
	"""
	def failing(verb, url, parameters=None, headers=None, input=None, follow_302_redirect=False):
		raise GithubException(404, {"message": "Not Found"}, None)

	client = make_stub_client(SimpleNamespace(requester=SimpleNamespace(requestJsonAndCheck=failing)))
	with pytest.raises(github_client.GitHubFetchError):
		client.list_comments("contribution-test/foo", 7)
