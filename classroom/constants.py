"""Fixed tuning values for lesson progress tracking."""

# Seconds of wall-clock time between periodic progress saves
SAVE_INTERVAL_SECONDS = 10

# Watched percentage at which a lesson counts as complete
COMPLETION_THRESHOLD_PERCENT = 90

ADMIN_ROLE = "admin"

# Viewing sessions without a player update for this long are closed
SESSION_IDLE_TIMEOUT_SECONDS = 6 * SAVE_INTERVAL_SECONDS
