import pytest

from contriblib import discourse_source
from contriblib import http_fetch


BASE_URL = "https://discourse.example.org"


#============================================
def make_config(**overrides) -> dict:
	config = {"enabled": True, "baseUrl": BASE_URL, "username": "alice"}
	config.update(overrides)
	return config


#============================================
class FakeDiscourseHttp:
	"""
	Serves topic pages by page number and post pages by offset.
	"""

	def __init__(self, topic_pages: dict, post_pages: dict):
		self.topic_pages = topic_pages
		self.post_pages = post_pages
		self.calls = []

	def get_json(self, url: str, params=None):
		self.calls.append((url, dict(params or {})))
		if url.endswith("/user_actions.json"):
			value = self.post_pages.get(params["offset"], [])
			if isinstance(value, Exception):
				raise value
			return {"user_actions": value}
		return {"topic_list": {"topics": self.topic_pages.get(params["page"], [])}}


#============================================
def make_topic(index: int) -> dict:
	return {"id": index, "slug": f"topic-{index}", "title": f"Topic {index}", "created_at": "2022-02-01T10:00:00.000Z"}


#============================================
def make_post(index: int) -> dict:
	return {
		"topic_id": index,
		"slug": f"topic-{index}",
		"post_number": 3,
		"title": f"Topic {index}",
		"created_at": "2022-02-02T10:00:00.000Z",
	}


#============================================
def test_gather_topics_and_posts() -> None:
	"""
	Topics and replies should map to their tags and links.
	"""
	http_client = FakeDiscourseHttp({0: [make_topic(7)]}, {0: [make_post(8)]})
	result = discourse_source.gather(make_config(), http_client)
	assert [(item.source, item.type, item.link) for item in result] == [
		("discourse-topics", "Created Discourse Topic", f"{BASE_URL}/t/topic-7/7"),
		("discourse-posts", "Posted on Discourse Topic", f"{BASE_URL}/t/topic-8/8/3"),
	]
	post_params = [params for url, params in http_client.calls if url.endswith("/user_actions.json")]
	assert post_params == [{"username": "alice", "filter": 5, "offset": 0}]


#============================================
def test_gather_pages_while_full() -> None:
	"""
	Pages of exactly 30 items continue; a shorter page ends the walk.
	"""
	topic_pages = {0: [make_topic(index) for index in range(30)], 1: [make_topic(99)]}
	post_pages = {0: [make_post(index) for index in range(30)], 30: [make_post(index) for index in range(30)]}
	http_client = FakeDiscourseHttp(topic_pages, post_pages)
	result = discourse_source.gather(make_config(), http_client)
	assert len(result) == 31 + 60
	topic_calls = [params["page"] for url, params in http_client.calls if url.endswith(".json") and "created-by" in url]
	post_calls = [params["offset"] for url, params in http_client.calls if url.endswith("/user_actions.json")]
	assert topic_calls == [0, 1]
	assert post_calls == [0, 30, 60]


#============================================
def test_failed_page_propagates() -> None:
	"""
	A failed page aborts the gather instead of returning partial data.
	"""
	http_client = FakeDiscourseHttp({0: [make_topic(1)]}, {0: http_fetch.HttpFetchError("boom")})
	with pytest.raises(http_fetch.HttpFetchError):
		discourse_source.gather(make_config(), http_client)


#============================================
def test_custom_types() -> None:
	"""
	topicType and postType override the default labels.
	"""
	http_client = FakeDiscourseHttp({0: [make_topic(1)]}, {0: [make_post(2)]})
	result = discourse_source.gather(make_config(topicType="Topic", postType="Reply"), http_client)
	assert [item.type for item in result] == ["Topic", "Reply"]


#============================================
def test_keeps_deleted_posts() -> None:
	"""
	Retention is opt-in and only applies to an enabled block.
	"""
	assert not discourse_source.keeps_deleted_posts(make_config())
	assert discourse_source.keeps_deleted_posts(make_config(keepDeletedPost=True))
	assert not discourse_source.keeps_deleted_posts({"enabled": False, "keepDeletedPost": True})
