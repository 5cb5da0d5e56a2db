"""Shared constants across the application."""

# Sentinel reported for an order line whose quantity the external API omitted
QUANTITY_NOT_AVAILABLE = "N/A"

# Statuses after which an order no longer changes on the IdoSell side
FINAL_ORDER_STATUSES = frozenset(
    {
        "finished",
        "finished_ext",
        "canceled",
        "returned",
        "lost",
        "false",
        "joined",
    }
)

# Default limits
DEFAULT_ORDER_LIST_LIMIT = 100
MAX_ORDER_LIST_LIMIT = 1000
MAX_ORDER_WORTH = 1_000_000

# Batch sizes
IDOSELL_MAX_PAGE_SIZE = 100

# Time windows
SCHEDULER_DEFAULT_TIMEZONE = "Europe/Warsaw"
STATUS_MONITOR_FRESH_MINUTES = 15
STATUS_MONITOR_MODIFIED_LOOKBACK_HOURS = 1
