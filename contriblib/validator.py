from contriblib import bugzilla_source
from contriblib import community_portal_source
from contriblib import discourse_source
from contriblib import github_source
from contriblib import osm_source
from contriblib import settings
from contriblib import wiki_source


SOURCE_MODULES = (
	bugzilla_source,
	community_portal_source,
	discourse_source,
	github_source,
	osm_source,
	wiki_source,
)


#============================================
def validate_config(config) -> None:
	"""
	Check the whole configuration before any source performs I/O.

	Each source block is validated by its own module. Absent or disabled
	blocks only need to be mappings.
	"""
	if not isinstance(config, dict):
		raise settings.ConfigError("No config passed!")
	output_file = config.get("outputFile")
	if (output_file is not None) and (not isinstance(output_file, str) or not output_file.strip()):
		raise settings.ConfigError("outputFile must be a non-empty path", field="outputFile")
	for module in SOURCE_MODULES:
		module.validate(config.get(module.CONFIG_KEY))
