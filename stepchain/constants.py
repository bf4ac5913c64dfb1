DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 500
MAX_TOKENS_LIMIT = 4096
MAX_TEMPERATURE = 2.0

# Characters of live output forwarded to progress notifications
NOTIFICATION_OUTPUT_PREVIEW = 100

MAX_WIDGET_SELECTIONS = 4
