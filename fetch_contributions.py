#!/usr/bin/env python3
import argparse
import json
import os
import sys

from contriblib import console_log
from contriblib import contributions
from contriblib import github_client
from contriblib import http_fetch
from contriblib import reconcile
from contriblib import settings
from contriblib import validator


log_step = console_log.make_log_step("fetch_contributions")


#============================================
def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
	"""
	Parse command-line arguments.
	"""
	parser = argparse.ArgumentParser(
		description="Gather contributions from all configured sources into one JSON snapshot."
	)
	parser.add_argument(
		"--settings",
		default="settings.yaml",
		help="YAML settings path with one block per source.",
	)
	parser.add_argument(
		"--output",
		default="",
		help="Snapshot JSON path (overrides outputFile from settings).",
	)
	parser.add_argument(
		"--stdout",
		action="store_true",
		help="Print the merged contributions as JSON.",
	)
	args = parser.parse_args(argv)
	return args


#============================================
def build_config(args: argparse.Namespace) -> dict:
	"""
	Load settings and apply command-line overrides.
	"""
	settings_path = settings.resolve_settings_path(args.settings)
	if not os.path.isfile(settings_path):
		raise settings.ConfigError(f"Settings file not found: {settings_path}", field="settings")
	config, settings_path = settings.load_settings(args.settings)
	log_step(f"Using settings file: {settings_path}")
	if args.output.strip():
		config["outputFile"] = args.output.strip()
	return config


#============================================
def run(args: argparse.Namespace) -> int:
	"""
	Run one aggregation cycle and return the process exit code.
	"""
	try:
		config = build_config(args)
		validator.validate_config(config)
		http_client = http_fetch.HttpClient(log_fn=log_step)
		client = None
		if settings.is_source_enabled(config.get("github")):
			client = github_client.GitHubClient.from_environment(log_fn=log_step)
		result = reconcile.fetch_all(
			config,
			http_client=http_client,
			github_client=client,
			log_fn=log_step,
		)
	except (RuntimeError, ValueError, OSError) as error:
		log_step(f"Run failed: {error}")
		log_step("Aborting without writing the snapshot.")
		return 1
	log_step(f"Finished with {len(result)} contribution(s).")
	for source, count in sorted(contributions.count_by_source(result).items()):
		log_step(f"  {source}: {count}")
	log_step(f"HTTP requests: {http_client.request_count()}")
	if client is not None:
		usage = client.api_usage_snapshot()
		log_step(f"GitHub API usage: calls={usage.get('api_call_count', 0)}")
	if args.stdout:
		json.dump([item.to_dict() for item in result], sys.stdout, ensure_ascii=False, indent=2)
		sys.stdout.write("\n")
	return 0


#============================================
def main() -> None:
	"""
	Entry point for the console script.
	"""
	args = parse_args()
	sys.exit(run(args))


if __name__ == "__main__":
	main()
