"""Shared contribution record and the helpers every source adapter uses.

A Contribution is identified by its source tag, its type label and its
creation instant truncated to milliseconds. Description and link are
display data only.
"""

# Standard Library
import enum
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from datetime import timezone

from contriblib import settings


#============================================
class RawItemKind(enum.Enum):
	"""
	Upstream item shapes produced by the forge endpoints.
	"""
	COMMIT = "commit"
	ISSUE = "issue"
	PULL_REQUEST = "pull_request"
	REVIEW = "review"
	COMMENT = "comment"


#============================================
@dataclass(frozen=True)
class RawItem:
	"""
	One upstream payload tagged with the kind of endpoint that returned it.

	The context mapping holds data from the parent item, such as the
	pull request title for a review.
	"""
	kind: RawItemKind
	payload: dict
	context: dict = field(default_factory=dict)


#============================================
@dataclass(frozen=True)
class Contribution:
	created_at: datetime
	description: str
	link: str
	type: str
	source: str

	#============================================
	def identity_key(self) -> tuple:
		"""
		Return the tuple two records must share to count as duplicates.
		"""
		return (self.source, self.type, truncate_to_millis(self.created_at))

	#============================================
	def to_dict(self) -> dict:
		"""
		Serialize to the persisted snapshot shape.
		"""
		return {
			"createdAt": format_timestamp(self.created_at),
			"description": self.description,
			"link": self.link,
			"type": self.type,
			"source": self.source,
		}

	#============================================
	@classmethod
	def from_dict(cls, payload: dict) -> "Contribution":
		"""
		Parse one persisted snapshot entry.
		"""
		if not isinstance(payload, dict):
			raise ValueError(f"Snapshot entry must be an object: {payload!r}")
		return cls(
			created_at=parse_timestamp(payload.get("createdAt")),
			description=str(payload.get("description") or ""),
			link=str(payload.get("link") or ""),
			type=str(payload.get("type") or ""),
			source=str(payload.get("source") or ""),
		)


#============================================
def utc_now() -> datetime:
	"""
	Return UTC now as a timezone-aware datetime.
	"""
	return datetime.now(timezone.utc)


#============================================
def parse_timestamp(value) -> datetime:
	"""
	Parse an ISO timestamp string, date, or datetime into aware UTC.
	"""
	return settings.parse_config_date(value)


#============================================
def truncate_to_millis(value: datetime) -> datetime:
	"""
	Drop sub-millisecond precision.
	"""
	normalized = value.astimezone(timezone.utc)
	return normalized.replace(microsecond=(normalized.microsecond // 1000) * 1000)


#============================================
def format_timestamp(value: datetime) -> str:
	"""
	Format as YYYY-MM-DDTHH:MM:SS.mmmZ in UTC.
	"""
	normalized = truncate_to_millis(value)
	millis = normalized.microsecond // 1000
	return normalized.strftime("%Y-%m-%dT%H:%M:%S") + f".{millis:03d}Z"


#============================================
def ensure_unique_contributions(contributions: list[Contribution]) -> list[Contribution]:
	"""
	Remove duplicates, keeping the first occurrence of each identity.
	"""
	seen = set()
	unique = []
	for contribution in contributions:
		key = contribution.identity_key()
		if key in seen:
			continue
		seen.add(key)
		unique.append(contribution)
	return unique


#============================================
def latest_created_at(existing: list[Contribution], sources: tuple, fallback: datetime) -> datetime:
	"""
	Return the newest created_at among records tagged with one of the sources.

	Args:
		existing: Previously persisted contributions.
		sources: Source tags that share one cursor.
		fallback: Lower bound used when no matching record exists.

	Returns:
		The high-water mark for the given tags.
	"""
	matching = [item.created_at for item in existing if item.source in sources]
	if not matching:
		return fallback
	return max(matching)


#============================================
def newer_than(contributions: list[Contribution], lower_bound: datetime) -> list[Contribution]:
	"""
	Keep records strictly newer than the lower bound.
	"""
	return [item for item in contributions if item.created_at > lower_bound]


#============================================
def sort_contributions(contributions: list[Contribution]) -> list[Contribution]:
	"""
	Sort newest first.
	"""
	return sorted(contributions, key=lambda item: item.created_at, reverse=True)


#============================================
def filter_by_sources(contributions: list[Contribution], sources: tuple) -> list[Contribution]:
	"""
	Keep only records whose source tag is listed.
	"""
	return [item for item in contributions if item.source in sources]


#============================================
def count_by_source(contributions: list[Contribution]) -> dict[str, int]:
	"""
	Count records per source tag.
	"""
	counts: dict[str, int] = {}
	for item in contributions:
		if item.source not in counts:
			counts[item.source] = 0
		counts[item.source] += 1
	return counts
