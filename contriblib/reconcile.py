"""One aggregation cycle: validate, fetch every source, merge, persist.

Incremental sources only return records newer than their cursors, so
their saved records are kept. Full-refetch sources return their whole
current state, so their saved records are replaced, except Discourse
when keepDeletedPost is set.
"""

# Standard Library
import os

from contriblib import bugzilla_source
from contriblib import community_portal_source
from contriblib import console_log
from contriblib import contributions
from contriblib import discourse_source
from contriblib import github_source
from contriblib import http_fetch
from contriblib import osm_source
from contriblib import snapshot
from contriblib import validator
from contriblib import wiki_source
from contriblib.contributions import Contribution


FULL_REFETCH_SOURCES = (
	community_portal_source.SOURCES
	+ discourse_source.SOURCES
	+ wiki_source.SOURCES
	+ osm_source.SOURCES
)


#============================================
def retained_snapshot_records(existing: list[Contribution], config: dict) -> list[Contribution]:
	"""
	Return saved records that survive this cycle before merging.

	Args:
		existing: The previous snapshot.
		config: Full configuration, used for the Discourse retention opt-in.

	Returns:
		Saved incremental records, plus saved Discourse records when
		keepDeletedPost is enabled.
	"""
	kept_sources = ()
	if discourse_source.keeps_deleted_posts(config.get(discourse_source.CONFIG_KEY)):
		kept_sources = discourse_source.SOURCES
	return [
		item for item in existing
		if (item.source not in FULL_REFETCH_SOURCES) or (item.source in kept_sources)
	]


#============================================
def merge_results(existing: list[Contribution], config: dict, full_refetch: list, incremental: list) -> list[Contribution]:
	"""
	Deduplicate retained, full-refetch and incremental records in that order.
	"""
	retained = retained_snapshot_records(existing, config)
	return contributions.ensure_unique_contributions(retained + full_refetch + incremental)


#============================================
def fetch_all(
	config,
	existing_contributions: list[Contribution] | None = None,
	http_client=None,
	github_client=None,
	now_utc=None,
	log_fn=None,
) -> list[Contribution]:
	"""
	Run one cycle and return the merged records, newest first.

	When outputFile is configured the snapshot is read from and written to
	it; otherwise existing_contributions is the prior state and nothing is
	written. A cycle whose merged count equals the prior count skips the
	write.

	Args:
		config: Full configuration mapping.
		existing_contributions: Prior records when no outputFile is set.
		http_client: Shared HttpClient; created when None.
		github_client: Shared GitHubClient; created on demand when None.
		now_utc: Reference instant passed to the adapters.
		log_fn: Optional logger.
	"""
	validator.validate_config(config)
	now = now_utc or contributions.utc_now()
	http_client = http_client or http_fetch.HttpClient(log_fn=log_fn)

	output_file = config.get("outputFile")
	if output_file:
		console_log.emit(log_fn, f"Checking output file {output_file}.")
		existing = snapshot.load_snapshot(os.path.abspath(output_file), log_fn=log_fn)
	else:
		existing = list(existing_contributions or [])
	console_log.emit(log_fn, f"Loaded {len(existing)} saved contribution(s).")

	console_log.emit(log_fn, "Fetching all sources.")
	bugzilla_result = bugzilla_source.gather(
		config.get(bugzilla_source.CONFIG_KEY),
		contributions.filter_by_sources(existing, bugzilla_source.SOURCES),
		http_client,
		log_fn=log_fn,
	)
	github_result = github_source.gather(
		config.get(github_source.CONFIG_KEY),
		contributions.filter_by_sources(existing, github_source.SOURCES),
		client=github_client,
		now_utc=now,
		log_fn=log_fn,
	)
	wiki_result = wiki_source.gather(
		config.get(wiki_source.CONFIG_KEY),
		http_client,
		now_utc=now,
		log_fn=log_fn,
	)
	community_portal_result = community_portal_source.gather(
		config.get(community_portal_source.CONFIG_KEY),
		http_client,
		now_utc=now,
		log_fn=log_fn,
	)
	discourse_result = discourse_source.gather(
		config.get(discourse_source.CONFIG_KEY),
		http_client,
		log_fn=log_fn,
	)
	osm_result = osm_source.gather(
		config.get(osm_source.CONFIG_KEY),
		http_client,
		now_utc=now,
		log_fn=log_fn,
	)

	console_log.emit(log_fn, f"New Bugzilla contributions: {len(bugzilla_result)}")
	console_log.emit(log_fn, f"New GitHub contributions: {len(github_result)}")
	console_log.emit(log_fn, f"Community Portal contributions: {len(community_portal_result)}")
	console_log.emit(log_fn, f"Discourse contributions: {len(discourse_result)}")
	console_log.emit(log_fn, f"Wiki contributions: {len(wiki_result)}")
	console_log.emit(log_fn, f"OSM contributions: {len(osm_result)}")

	merged = merge_results(
		existing,
		config,
		discourse_result + wiki_result + community_portal_result + osm_result,
		github_result + bugzilla_result,
	)
	merged = contributions.sort_contributions(merged)

	# length comparison only; an equal add/remove count is treated as unchanged
	if len(merged) == len(existing):
		console_log.emit(log_fn, "No update, skipping snapshot write.")
		return merged
	if output_file:
		snapshot.save_snapshot(os.path.abspath(output_file), merged)
		console_log.emit(log_fn, f"Wrote {len(merged)} contribution(s) to {output_file}")
	return merged

