"""Default parameters shared by the library and the CLI."""

# Session segmentation
DEFAULT_GAP_THRESHOLD = 1800  # 30 minutes, in seconds
PROGRESS_INTERVAL = 100  # sessions between progress callbacks

# Session queries
DEFAULT_SEARCH_LIMIT = 20
DEFAULT_PREVIEW_COUNT = 5
DEFAULT_SESSION_MESSAGES_LIMIT = 500
CLI_SESSION_MESSAGES_LIMIT = 1000

# Context filtering
DEFAULT_CONTEXT_SIZE = 10
CLI_CONTEXT_SIZE = 20

# Rows fetched per round-trip when streaming messages
FETCH_BATCH_SIZE = 10000
