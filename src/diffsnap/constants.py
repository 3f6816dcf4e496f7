"""Project-wide constants for diffsnap."""

CONFIG_FILE_NAME = "diffsnap.yaml"
LOCK_FILE_NAME = "diffsnap.lock"
DEFAULT_OUTPUT_DIR_NAME = "diffsnap"

SNAPSHOT_SUFFIX = ".patch"
SCRATCH_SUFFIX = ".tmp"
TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"

DEFAULT_MAX_SNAPSHOTS = 10
DEFAULT_WATCH_MINUTES = 5
DEFAULT_LOG_LEVEL = "WARNING"
MAX_LABEL_LENGTH = 100
