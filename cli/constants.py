"""CLI constants."""

RED_ORANGE = "\033[38;2;244;89;53m"
GREEN = "\033[32m"
RED = "\033[31m"
RESET = "\033[0m"

DEFAULT_CONFIG_PATH = "~/.redcloud/uploader.json"

USAGE_TEXT = """Usage: redcloud-upload [--debug] [--config PATH] FILE [FILE ...]

Uploads files to the chunk store in resumable chunks.
Files already on the store are skipped, partial uploads resume.

Options:
  --config PATH   Config file (default: ~/.redcloud/uploader.json)
  --debug         Verbose logging
  --help          Show this help"""

PROGRESS_STEP_PERCENT = 10
