from datetime import datetime
from datetime import timezone

from contriblib import contributions
from contriblib.contributions import Contribution


#============================================
def make_contribution(created_at: datetime, source: str = "github-commit", type_text: str = "GitHub Commit", description: str = "desc") -> Contribution:
	"""
	Build one contribution with test defaults.
	"""
	return Contribution(
		created_at=created_at,
		description=description,
		link="https://example.org",
		type=type_text,
		source=source,
	)


#============================================
def test_ensure_unique_contributions_removes_duplicates() -> None:
	"""
	Same source, type and instant should collapse to the first record.
	"""
	when = datetime(2022, 3, 2, 10, 0, 0, tzinfo=timezone.utc)
	first = make_contribution(when, description="first")
	second = make_contribution(when, description="second")
	result = contributions.ensure_unique_contributions([first, second])
	assert result == [first]


#============================================
def test_ensure_unique_contributions_compares_milliseconds() -> None:
	"""
	Sub-millisecond differences should not make records distinct.
	"""
	first = make_contribution(datetime(2022, 3, 2, 10, 0, 0, 123000, tzinfo=timezone.utc))
	second = make_contribution(datetime(2022, 3, 2, 10, 0, 0, 123999, tzinfo=timezone.utc))
	third = make_contribution(datetime(2022, 3, 2, 10, 0, 0, 124000, tzinfo=timezone.utc))
	result = contributions.ensure_unique_contributions([first, second, third])
	assert result == [first, third]


#============================================
def test_ensure_unique_contributions_keeps_other_types_and_sources() -> None:
	"""
	Different type or source at the same instant are distinct records.
	"""
	when = datetime(2022, 3, 2, tzinfo=timezone.utc)
	items = [
		make_contribution(when),
		make_contribution(when, type_text="Other"),
		make_contribution(when, source="github-reviews"),
	]
	assert len(contributions.ensure_unique_contributions(items)) == 3


#============================================
def test_to_dict_uses_snapshot_shape() -> None:
	"""
	Serialized records should use the persisted key names and UTC millis.
	"""
	item = make_contribution(datetime(2008, 3, 10, 0, 21, 39, tzinfo=timezone.utc))
	payload = item.to_dict()
	assert list(payload.keys()) == ["createdAt", "description", "link", "type", "source"]
	assert payload["createdAt"] == "2008-03-10T00:21:39.000Z"


#============================================
def test_from_dict_parses_iso_strings() -> None:
	"""
	Snapshot entries should parse back to aware datetimes.
	"""
	item = Contribution.from_dict({
		"createdAt": "2008-03-10T00:21:39.000Z",
		"description": "Fix sorting",
		"link": "https://bugzilla.mozilla.org/show_bug.cgi?id=421834#c0",
		"type": "Created a Bug Report",
		"source": "bugzilla-created",
	})
	assert item.created_at == datetime(2008, 3, 10, 0, 21, 39, tzinfo=timezone.utc)
	assert item.source == "bugzilla-created"
	assert Contribution.from_dict(item.to_dict()) == item


#============================================
def test_latest_created_at_uses_matching_sources_only() -> None:
	"""
	The cursor should be the newest record of the requested tags.
	"""
	fallback = datetime(2022, 1, 1, tzinfo=timezone.utc)
	existing = [
		make_contribution(datetime(2022, 2, 1, tzinfo=timezone.utc)),
		make_contribution(datetime(2022, 5, 1, tzinfo=timezone.utc), source="github-reviews"),
		make_contribution(datetime(2022, 3, 1, tzinfo=timezone.utc)),
	]
	latest = contributions.latest_created_at(existing, ("github-commit",), fallback)
	assert latest == datetime(2022, 3, 1, tzinfo=timezone.utc)
	missing = contributions.latest_created_at(existing, ("wiki",), fallback)
	assert missing == fallback


#============================================
def test_newer_than_is_strict() -> None:
	"""
	A record at exactly the lower bound should be dropped.
	"""
	bound = datetime(2022, 3, 1, tzinfo=timezone.utc)
	at_bound = make_contribution(bound)
	after = make_contribution(datetime(2022, 3, 1, 0, 0, 1, tzinfo=timezone.utc))
	assert contributions.newer_than([at_bound, after], bound) == [after]


#============================================
def test_sort_contributions_newest_first() -> None:
	"""
	Sorting should order records by descending created_at.
	"""
	old = make_contribution(datetime(2020, 1, 1, tzinfo=timezone.utc))
	new = make_contribution(datetime(2022, 1, 1, tzinfo=timezone.utc))
	assert contributions.sort_contributions([old, new]) == [new, old]
