"""Default configuration values and file templates."""

from podarc.config.schema import PipelineConfig, SeriesOverrides

DEFAULT_PIPELINE_CONFIG = PipelineConfig()
DEFAULT_SERIES_OVERRIDES = SeriesOverrides()


def get_default_config_content() -> str:
    """Return the commented config.yaml written on first run."""
    return """# podarc configuration
version: "1"

# RSS feed to ingest
feed_url: null

# Directory that will contain data/ and public/
output_dir: .

log_level: INFO

llm:
  # claude or gemini
  provider: claude
  primary_model: claude-sonnet-4-5
  fallback_model: claude-haiku-4-5
  # Leave empty to use ANTHROPIC_API_KEY / GOOGLE_API_KEY
  api_key: null
  max_attempts: 3
  timeout_seconds: 30
  # Show hosts, never reported as key people
  hosts: []

grouping:
  # Maximum days between consecutive parts of one series
  max_gap_days: 14
"""


def get_default_overrides_content() -> str:
    """Return the series-overrides.yaml written on first run."""
    return """# Manual series corrections, applied after automatic grouping.
#
# overrides:
#   - series_id: nelson-20240101
#     episode_ids:
#       - guid-one
#       - guid-two
#     series_key_raw: Nelson
overrides: []
"""
